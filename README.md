# pandabase

A Python toolkit for a document knowledge-base server. It has three parts:

- **Chunkers** (`pandabase.chunker`): split parsed documents into chunks
  ready for embedding.
- **Configuration** (`pandabase.config`): load server settings from a file
  and `PANDABASE_*` environment variables, with defaults filled in.
- **Client and command line** (`pandabase.client`, `pandabase.cli`): talk
  to a running server over its HTTP API.

## Installation

```
pip install .
```

To run the tests, install the `test` extra (`pytest` and `responses`):

```
pip install ".[test]"
pytest
```

## Chunking documents

```python
from pandabase.chunker import LineBasedChunker, ParsedDocument

doc = ParsedDocument(content="Line 1\nLine 2\nLine 3")
chunks = LineBasedChunker(max_chunk_size=1000, max_lines=2).split(doc)
for chunk in chunks:
    print(chunk.location.line_start, chunk.location.line_end, chunk.content)
```

A document is a `ParsedDocument`. It holds `content` and an optional
`DocumentStructure` made of `Element`s and `Section`s. Each chunker's `split`
returns a list of `Chunk`s. A chunk has its text, a `LocationInfo` and a
metadata dict such as `chunk_index` and `line_count`. Blank content gives an
empty list.

There are three chunkers:

- `LineBasedChunker(max_chunk_size, max_lines)` puts whole lines into each
  chunk and limits chunks by size and by line count. The defaults are 1000
  and 50.
- `MarkdownChunker(max_chunk_size)` starts a new chunk at each Markdown
  heading. It does this only when the document structure lists sections.
  Otherwise it works as a line-based chunker. A section deeper than level 1
  that outgrows the size limit is split, and the extra chunks are marked
  `continued`. The default size is 2000.
- `StructuredChunker(max_chunk_size)` groups the structural elements and
  starts a new chunk at each heading element or when the size limit would be
  passed. A document without elements is chunked line by line. The default
  size is 2000.

Sizes are counted in UTF-8 bytes. A size or line limit of zero or less
selects the default.

`parse_heading(line)` returns `(level, title)` for a Markdown heading from
`#` to `######` followed by a space, and `None` for any other line.
`token_count(text)` estimates one token for every four characters.

## Configuration

```python
from pandabase.config import load

cfg = load("config.yaml")
print(cfg.database.host, cfg.embedding.dimensions)
```

`load` returns a `Config` dataclass. Its sections are `database`, `redis`,
`storage`, `server`, `log`, `embedding`, `auth` (with
`oauth_providers.google` and `oauth_providers.github`) and `post_process`.
Settings are applied in this order, with later ones taking precedence:

1. Built-in defaults, such as `localhost:5432` for the database and 1536
   embedding dimensions.
2. Values from the file. The file may be `.yaml`, `.yml` or `.json`, and the
   path is optional.
3. Environment variables. For example, `database.host` is read from
   `PANDABASE_DATABASE_HOST`. A variable only overrides a key that has a
   default or that appears in the file. You can pass a mapping as `env` in
   place of `os.environ`.

Any failure raises `ConfigError`. This includes an unreadable file, a value
that cannot be converted, and embedding dimensions outside 1–8192.

## Command line

```
pandabase auth register
pandabase auth login
pandabase auth status
pandabase auth logout
pandabase namespace list
pandabase namespace create my-notes
pandabase namespace delete <namespace-id>
pandabase document list <namespace-id> --status completed
pandabase document upload <namespace-id> ./notes.md --chunk-size 500 --chunk-overlap 50
pandabase document delete <namespace-id> <document-id>
pandabase document download <namespace-id> <document-id> out.pdf
pandabase document import <namespace-id> https://example.com/article --parser web --render
pandabase document batch-import <namespace-id> urls.txt --concurrency 5
pandabase search query <namespace-id> how do chunkers work
pandabase config set-server http://localhost:8080
```

`namespace` can be shortened to `ns`, and `document` to `doc` or `docs`.

These options apply to every command:

- `--server` / `-s` picks the server. The default is `http://localhost:8080`.
- `--token-file` / `-t` sets where login tokens are stored. The default is
  `~/.pandabase/tokens.json`. The file is written so that only its owner can
  read it.

`auth login` and `auth register` ask for their values on standard input.
`batch-import` reads one URL per line and skips blank lines and lines that
begin with `#`. `search query` returns the five best matches. The command
exits with status 1 and prints `Error: ...` when a command fails.

You can also use the client from Python:

```python
from pandabase.client import PandabaseClient

client = PandabaseClient("http://localhost:8080", access_token="token")
for ns in client.list_namespaces():
    print(ns["id"], ns["name"])
```

`PandabaseClient` has these methods: `login`, `register`, `me`,
`list_namespaces`, `create_namespace`, `delete_namespace`, `list_documents`,
`upload_document`, `delete_document`, `download_document`, `import_url` and
`search`.

- A failed request or an unexpected status raises `ApiError`, which carries
  `status_code` and `body`.
- `register` raises `ValueError` for a password shorter than 8 characters.

`pandabase.session` holds the token store (`TokenStore`, `load_tokens`,
`save_tokens`) and the display helpers `truncate` and `format_time`.

## What this package does not do

- It is not the server. It does not parse, embed, store or search documents.
  The client and command line need a running server to talk to.
- The chunkers work on documents that some parser has already produced.
- `config set-server` writes the URL to `~/.pandabase/config.json`, but the
  command line does not read that file back. Use `--server` to choose a
  server.
- Passwords are read as ordinary input, so they are shown on the screen as
  you type them.