"""Command-line client for the knowledge-base server."""

from __future__ import annotations

import argparse
import sys
import threading
from concurrent.futures import ThreadPoolExecutor
from datetime import datetime
from pathlib import Path
from typing import Any, Iterable, Mapping, Optional, Sequence

from pandabase.client import DEFAULT_SERVER_URL, ApiError, PandabaseClient
from pandabase.session import (
    TokenStore,
    default_token_path,
    format_time,
    load_tokens,
    save_server_url,
    save_tokens,
    truncate,
)

NOT_AUTHENTICATED = "not authenticated. Run 'pandabase auth login'"
SEARCH_TOP_K = 5

_print_lock = threading.Lock()


class _CliError(Exception):
    """A command failed in a way that should be reported to the user."""


def _say(text: str = "") -> None:
    with _print_lock:
        print(text)


def _format_rfc3339(value: datetime) -> str:
    text = value.replace(microsecond=0).isoformat()
    if text.endswith("+00:00"):
        text = text[: -len("+00:00")] + "Z"
    return text


def _prompt(label: str) -> str:
    return input(label).strip()


def _require_tokens(args: argparse.Namespace) -> TokenStore:
    try:
        return load_tokens(args.token_file)
    except (OSError, ValueError) as exc:
        raise _CliError(NOT_AUTHENTICATED) from exc


def _authed_client(args: argparse.Namespace) -> PandabaseClient:
    tokens = _require_tokens(args)
    return PandabaseClient(args.server, tokens.access_token)


def read_urls(text: str) -> list[str]:
    """Return the URLs listed one per line, skipping blank lines and ``#`` comments."""
    urls = (line.strip() for line in text.split("\n"))
    return [url for url in urls if url and not url.startswith("#")]


def format_namespaces(namespaces: Iterable[Mapping[str, Any]]) -> str:
    """Render namespaces as a table."""
    rows = list(namespaces)
    if not rows:
        return "No namespaces found\n"
    lines = [f"{'ID':<36} {'NAME':<20} CREATED", "-" * 80]
    for ns in rows:
        lines.append(
            f"{str(ns.get('id') or ''):<36} "
            f"{truncate(str(ns.get('name') or ''), 20):<20} "
            f"{format_time(str(ns.get('created_at') or ''))}"
        )
    return "\n".join(lines) + "\n"


def format_documents(result: Mapping[str, Any]) -> str:
    """Render a page of documents as a table followed by the total count."""
    docs = result.get("data") or []
    if not docs:
        return "No documents found\n"
    lines = [
        f"{'ID':<36} {'TYPE':<15} {'STATUS':<12} {'FILENAME':<20} CREATED",
        "-" * 100,
    ]
    for doc in docs:
        metadata = doc.get("metadata") or {}
        filename = metadata.get("original_filename")
        if not isinstance(filename, str):
            filename = "unknown"
        lines.append(
            f"{str(doc.get('id') or ''):<36} "
            f"{str(doc.get('source_type') or ''):<15} "
            f"{str(doc.get('status') or ''):<12} "
            f"{truncate(filename, 20):<20} "
            f"{format_time(str(doc.get('created_at') or ''))}"
        )
    total = int(result.get("total") or 0)
    lines.append("")
    lines.append(f"Total: {total} documents")
    return "\n".join(lines) + "\n"


def format_search_results(results: Sequence[Mapping[str, Any]]) -> str:
    """Render search hits with their scores, sources and a content preview."""
    if not results:
        return "No results found\n"
    parts = [f"Found {len(results)} results:\n\n"]
    for number, hit in enumerate(results, start=1):
        chunk = hit.get("chunk") or {}
        metadata = chunk.get("metadata") or {}
        parts.append(f"[{number}] Score: {float(hit.get('score') or 0):.4f}\n")
        source = metadata.get("file_name")
        if isinstance(source, str):
            parts.append(f"    Source: {source}\n")
        parts.append(f"    {truncate(str(chunk.get('content') or ''), 200)}\n\n")
    return "".join(parts)


def _cmd_login(args: argparse.Namespace) -> None:
    email = _prompt("Email: ")
    typed = _prompt("Password: ")
    tokens = PandabaseClient(args.server).login(email, typed)
    save_tokens(tokens, args.token_file)
    _say("✓ Login successful")


def _cmd_logout(args: argparse.Namespace) -> None:
    try:
        Path(args.token_file).unlink()
    except FileNotFoundError:
        pass
    _say("✓ Logged out")


def _cmd_status(args: argparse.Namespace) -> None:
    try:
        tokens = load_tokens(args.token_file)
    except (OSError, ValueError):
        _say("Not authenticated")
        return
    client = PandabaseClient(args.server, tokens.access_token)
    try:
        user = client.me()
    except ApiError as exc:
        if exc.status_code == 401:
            _say("Token expired or invalid. Please login again.")
            return
        raise
    if not isinstance(user, dict):
        user = {}
    _say(f"Authenticated as: {user.get('name', '')} ({user.get('email', '')})")
    _say(f"Role: {user.get('role', '')}")
    _say(f"Token expires: {_format_rfc3339(tokens.expires_at)}")


def _cmd_register(args: argparse.Namespace) -> None:
    name = _prompt("Name: ")
    email = _prompt("Email: ")
    typed = _prompt("Password (min 8 chars): ")
    tokens = PandabaseClient(args.server).register(name, email, typed)
    save_tokens(tokens, args.token_file)
    _say("✓ Registration successful - you are now logged in as admin")


def _cmd_ns_list(args: argparse.Namespace) -> None:
    namespaces = _authed_client(args).list_namespaces()
    print(format_namespaces(namespaces), end="")


def _cmd_ns_create(args: argparse.Namespace) -> None:
    result = _authed_client(args).create_namespace(args.name)
    _say(f"✓ Created namespace '{args.name}' (ID: {result.get('id', '')})")


def _cmd_ns_delete(args: argparse.Namespace) -> None:
    _authed_client(args).delete_namespace(args.id)
    _say("✓ Namespace deleted")


def _cmd_doc_list(args: argparse.Namespace) -> None:
    result = _authed_client(args).list_documents(args.namespace_id, args.status or None)
    print(format_documents(result or {}), end="")


def _cmd_doc_upload(args: argparse.Namespace) -> None:
    client = _authed_client(args)
    path = Path(args.file_path)
    try:
        with path.open("rb"):
            pass
    except OSError as exc:
        raise _CliError(f"failed to open file: {exc}") from exc
    _say(f"Uploading {path.name}...")
    result = client.upload_document(
        args.namespace_id, path, args.chunk_size, args.chunk_overlap
    )
    _say("✓ Uploaded successfully")
    _say(f"  Document ID: {result.get('document_id', '')}")
    _say(f"  Task ID: {result.get('task_id', '')}")
    _say(f"  Status: {result.get('status', '')}")


def _cmd_doc_delete(args: argparse.Namespace) -> None:
    _authed_client(args).delete_document(args.namespace_id, args.document_id)
    _say("✓ Document deletion queued")


def _cmd_doc_download(args: argparse.Namespace) -> None:
    size = _authed_client(args).download_document(
        args.namespace_id, args.document_id, args.output_path
    )
    _say(f"✓ Downloaded {args.output_path} ({size} bytes)")


def _perform_import(
    client: PandabaseClient,
    namespace_id: str,
    url: str,
    parser: str,
    chunk_size: int,
    chunk_overlap: int,
    render: bool,
) -> None:
    result = client.import_url(namespace_id, url, parser, chunk_size, chunk_overlap, render)
    _say(
        f"✓ Queued import: {url} (Doc ID: {result.get('document_id', '')}, "
        f"Task ID: {result.get('task_id', '')})"
    )


def _cmd_doc_import(args: argparse.Namespace) -> None:
    _perform_import(
        _authed_client(args),
        args.namespace_id,
        args.url,
        args.parser,
        args.chunk_size,
        args.chunk_overlap,
        args.render,
    )


def _cmd_doc_batch_import(args: argparse.Namespace) -> None:
    client = _authed_client(args)
    try:
        content = Path(args.file_path).read_text(encoding="utf-8")
    except OSError as exc:
        raise _CliError(f"failed to read file: {exc}") from exc

    urls = read_urls(content)
    if not urls:
        _say("No valid URLs found in file")
        return
    if args.concurrency < 1:
        raise _CliError("concurrency must be at least 1")

    _say(f"Batch importing {len(urls)} URLs with concurrency {args.concurrency}...")

    def work(url: str) -> None:
        try:
            _perform_import(client, args.namespace_id, url, args.parser, 1000, 100, False)
        except (ApiError, OSError, ValueError) as exc:
            _say(f"✗ Failed import: {url} - {exc}")

    with ThreadPoolExecutor(max_workers=args.concurrency) as pool:
        list(pool.map(work, urls))

    _say("✓ Batch import process finished")


def _cmd_search(args: argparse.Namespace) -> None:
    query = " ".join(args.query)
    results = _authed_client(args).search(args.namespace_id, query, SEARCH_TOP_K)
    print(format_search_results(results), end="")


def _cmd_set_server(args: argparse.Namespace) -> None:
    save_server_url(args.url)
    _say(f"✓ Default server URL set to: {args.url}")


def _group(subparsers: Any, name: str, help_text: str, aliases: Sequence[str] = ()) -> Any:
    parser = subparsers.add_parser(name, help=help_text, aliases=list(aliases))
    children = parser.add_subparsers(dest="action", metavar="<command>")
    children.required = True
    return children


def build_parser() -> argparse.ArgumentParser:
    """Build the argument parser with every command and its options."""
    parser = argparse.ArgumentParser(
        prog="pandabase",
        description="A client for the knowledge-base server.",
    )
    parser.add_argument(
        "-s", "--server", default=DEFAULT_SERVER_URL, help="server URL"
    )
    parser.add_argument(
        "-t",
        "--token-file",
        default=str(default_token_path()),
        help="path to token storage file",
    )
    commands = parser.add_subparsers(dest="command", metavar="<command>")
    commands.required = True

    auth = _group(commands, "auth", "authentication commands")
    auth.add_parser("login", help="log in").set_defaults(handler=_cmd_login)
    auth.add_parser("logout", help="log out and clear tokens").set_defaults(handler=_cmd_logout)
    auth.add_parser("status", help="check authentication status").set_defaults(
        handler=_cmd_status
    )
    auth.add_parser(
        "register", help="register the initial admin account"
    ).set_defaults(handler=_cmd_register)

    ns = _group(commands, "namespace", "manage namespaces", aliases=["ns"])
    ns.add_parser("list", help="list all namespaces").set_defaults(handler=_cmd_ns_list)
    create = ns.add_parser("create", help="create a namespace")
    create.add_argument("name")
    create.set_defaults(handler=_cmd_ns_create)
    delete = ns.add_parser("delete", help="delete a namespace")
    delete.add_argument("id")
    delete.set_defaults(handler=_cmd_ns_delete)

    docs = _group(commands, "document", "manage documents", aliases=["doc", "docs"])
    doc_list = docs.add_parser("list", help="list documents in a namespace")
    doc_list.add_argument("namespace_id")
    doc_list.add_argument(
        "--status", default="", help="filter by status (pending, processing, completed, failed)"
    )
    doc_list.set_defaults(handler=_cmd_doc_list)

    upload = docs.add_parser("upload", help="upload a document")
    upload.add_argument("namespace_id")
    upload.add_argument("file_path")
    upload.add_argument("--chunk-size", type=int, default=500)
    upload.add_argument("--chunk-overlap", type=int, default=50)
    upload.set_defaults(handler=_cmd_doc_upload)

    doc_delete = docs.add_parser("delete", help="delete a document")
    doc_delete.add_argument("namespace_id")
    doc_delete.add_argument("document_id")
    doc_delete.set_defaults(handler=_cmd_doc_delete)

    download = docs.add_parser("download", help="download a document")
    download.add_argument("namespace_id")
    download.add_argument("document_id")
    download.add_argument("output_path")
    download.set_defaults(handler=_cmd_doc_download)

    imp = docs.add_parser("import", help="import a document from a URL")
    imp.add_argument("namespace_id")
    imp.add_argument("url")
    imp.add_argument("--parser", default="web", help="parser type (web, notion)")
    imp.add_argument("--chunk-size", type=int, default=1000)
    imp.add_argument("--chunk-overlap", type=int, default=100)
    imp.add_argument("--render", action="store_true", help="render JavaScript")
    imp.set_defaults(handler=_cmd_doc_import)

    batch = docs.add_parser("batch-import", help="import every URL listed in a file")
    batch.add_argument("namespace_id")
    batch.add_argument("file_path")
    batch.add_argument("--parser", default="web", help="parser type (web, notion)")
    batch.add_argument("--concurrency", type=int, default=5)
    batch.set_defaults(handler=_cmd_doc_batch_import)

    search = _group(commands, "search", "search documents by similarity")
    query = search.add_parser("query", help="search for similar content")
    query.add_argument("namespace_id")
    query.add_argument("query", nargs="+")
    query.set_defaults(handler=_cmd_search)

    config = _group(commands, "config", "manage client configuration")
    set_server = config.add_parser("set-server", help="set the default server URL")
    set_server.add_argument("url")
    set_server.set_defaults(handler=_cmd_set_server)

    return parser


def main(argv: Optional[Sequence[str]] = None) -> int:
    """Run the client and return its exit status."""
    args = build_parser().parse_args(argv)
    try:
        args.handler(args)
    except (_CliError, ApiError, OSError, ValueError) as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())