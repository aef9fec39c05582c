"""Document chunkers, configuration loading and an HTTP client with a command line for a knowledge-base server."""

__version__ = "0.1.0"