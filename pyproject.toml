[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "pandabase"
version = "0.1.0"
description = "Document chunking, configuration loading and a command-line client for a knowledge-base server"
requires-python = ">=3.10"
keywords = ["rag", "chunking", "knowledge-base", "vector-search", "cli"]
classifiers = [
    "Development Status :: 4 - Beta",
    "Environment :: Console",
    "Intended Audience :: Developers",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: Text Processing :: Indexing",
]
dependencies = [
    "pyyaml",
    "requests",
]

[project.optional-dependencies]
test = [
    "pytest",
    "responses",
]

[project.scripts]
pandabase = "pandabase.cli:main"

[tool.hatch.build.targets.wheel]
packages = ["pandabase"]

[tool.pytest.ini_options]
addopts = "-ra"
