import json

import pytest
import responses

from pandabase.cli import (
    build_parser,
    format_documents,
    format_namespaces,
    format_search_results,
    main,
    read_urls,
)
from pandabase.session import TokenStore, load_tokens, save_tokens

BASE = "http://localhost:8080/api/v1"


@pytest.fixture
def token_file(tmp_path):
    path = tmp_path / "tokens.json"
    save_tokens(TokenStore(access_token="token", refresh_token="token"), path)
    return path


def test_read_urls_skips_blank_and_comment_lines():
    text = "https://example.com/a\n\n  # comment\n  https://example.com/b  \n"
    assert read_urls(text) == ["https://example.com/a", "https://example.com/b"]


def test_read_urls_empty():
    assert read_urls("\n# only\n   \n") == []


def test_format_namespaces_empty():
    assert format_namespaces([]) == "No namespaces found\n"


def test_format_namespaces_table():
    out = format_namespaces(
        [{"id": "ns-1", "name": "docs", "created_at": "2024-01-02T03:04:05Z"}]
    )
    lines = out.splitlines()
    assert lines[0].startswith("ID")
    assert lines[1] == "-" * 80
    assert "ns-1" in lines[2]
    assert lines[2].endswith("2024-01-02 03:04")


def test_format_namespaces_truncates_long_names():
    name = "n" * 40
    out = format_namespaces([{"id": "x", "name": name, "created_at": ""}])
    assert name not in out
    assert "n" * 17 + "..." in out


def test_format_documents_empty():
    assert format_documents({"data": [], "total": 0}) == "No documents found\n"


def test_format_documents_rows_and_total():
    result = {
        "data": [
            {"id": "d1", "source_type": "file", "status": "completed",
             "created_at": "bad", "metadata": {"original_filename": "a.txt"}},
            {"id": "d2", "source_type": "web", "status": "pending",
             "created_at": "", "metadata": None},
        ],
        "total": 2,
    }
    out = format_documents(result)
    assert "a.txt" in out
    assert "unknown" in out
    assert out.splitlines()[1] == "-" * 100
    assert out.endswith("Total: 2 documents\n")


def test_format_search_results():
    results = [
        {"score": 0.5, "chunk": {"content": "text", "metadata": {"file_name": "a.txt"}}},
        {"score": 0.25, "chunk": {"content": "other", "metadata": {}}},
    ]
    out = format_search_results(results)
    assert out.startswith("Found 2 results:\n\n")
    assert "[1] Score: 0.5000\n" in out
    assert "    Source: a.txt\n" in out
    assert out.count("Source:") == 1
    assert "    other\n\n" in out


def test_format_search_results_empty():
    assert format_search_results([]) == "No results found\n"


def test_parser_defaults_and_aliases():
    parser = build_parser()
    upload = parser.parse_args(["doc", "upload", "n", "f"])
    assert (upload.chunk_size, upload.chunk_overlap) == (500, 50)
    imp = parser.parse_args(["docs", "import", "n", "https://example.com"])
    assert (imp.parser, imp.chunk_size, imp.chunk_overlap, imp.render) == ("web", 1000, 100, False)
    batch = parser.parse_args(["document", "batch-import", "n", "f"])
    assert batch.concurrency == 5
    assert parser.parse_args(["ns", "create", "x"]).name == "x"
    assert parser.parse_args([]
                             + ["auth", "status"]).server == "http://localhost:8080"


def test_parser_rejects_missing_arguments():
    with pytest.raises(SystemExit):
        build_parser().parse_args(["namespace", "create"])


def test_logout_removes_token_file(token_file, capsys):
    assert main(["-t", str(token_file), "auth", "logout"]) == 0
    assert not token_file.exists()
    assert "Logged out" in capsys.readouterr().out


def test_logout_without_file_succeeds(tmp_path):
    assert main(["-t", str(tmp_path / "none.json"), "auth", "logout"]) == 0


def test_command_without_tokens_fails(tmp_path, capsys):
    assert main(["-t", str(tmp_path / "none.json"), "ns", "list"]) == 1
    assert "not authenticated" in capsys.readouterr().err


def test_status_without_tokens(tmp_path, capsys):
    assert main(["-t", str(tmp_path / "none.json"), "auth", "status"]) == 0
    assert "Not authenticated" in capsys.readouterr().out


def test_login_saves_tokens(tmp_path, monkeypatch, capsys):
    answers = iter(["user@example.com", "password"])
    monkeypatch.setattr("builtins.input", lambda prompt="": next(answers))
    path = tmp_path / "t" / "tokens.json"
    with responses.RequestsMock() as rsps:
        rsps.add(responses.POST, f"{BASE}/auth/login", status=200,
                 json={"access_token": "token", "refresh_token": "token", "expires_in": 3600})
        assert main(["-t", str(path), "auth", "login"]) == 0
        sent = json.loads(rsps.calls[0].request.body)
    assert sent == {"email": "user@example.com", "password": "password"}
    assert load_tokens(path).access_token == "token"
    assert "Login successful" in capsys.readouterr().out


def test_status_with_expired_token(token_file, capsys):
    with responses.RequestsMock() as rsps:
        rsps.add(responses.GET, f"{BASE}/auth/me", status=401, body="nope")
        assert main(["-t", str(token_file), "auth", "status"]) == 0
    assert "Token expired or invalid" in capsys.readouterr().out


def test_namespace_list_sends_bearer_token(token_file, capsys):
    with responses.RequestsMock() as rsps:
        rsps.add(responses.GET, f"{BASE}/namespaces", status=200,
                 json=[{"id": "ns-1", "name": "docs", "created_at": "2024-01-02T03:04:05Z"}])
        assert main(["-t", str(token_file), "namespace", "list"]) == 0
        assert rsps.calls[0].request.headers["Authorization"] == "Bearer token"
    out = capsys.readouterr().out
    assert "ns-1" in out
    assert "2024-01-02 03:04" in out


def test_namespace_create_failure_reports_body(token_file, capsys):
    with responses.RequestsMock() as rsps:
        rsps.add(responses.POST, f"{BASE}/namespaces", status=500, body="boom")
        assert main(["-t", str(token_file), "ns", "create", "x"]) == 1
    assert "failed to create namespace: boom" in capsys.readouterr().err


def test_upload_missing_file(token_file, tmp_path, capsys):
    missing = tmp_path / "missing.txt"
    assert main(["-t", str(token_file), "doc", "upload", "n", str(missing)]) == 1
    assert "failed to open file" in capsys.readouterr().err


def test_upload_sends_chunk_options(token_file, tmp_path, capsys):
    doc = tmp_path / "a.txt"
    doc.write_text("hello")
    with responses.RequestsMock() as rsps:
        rsps.add(responses.POST, f"{BASE}/namespaces/n/documents", status=201,
                 json={"document_id": "d1", "task_id": "t1", "status": "pending"})
        argv = ["-t", str(token_file), "doc", "upload", "n", str(doc), "--chunk-size", "700"]
        assert main(argv) == 0
        body = rsps.calls[0].request.body
    assert b'name="chunk_size"' in body
    assert b"700" in body
    out = capsys.readouterr().out
    assert "Uploading a.txt..." in out
    assert "Document ID: d1" in out


def test_download_writes_file(token_file, tmp_path, capsys):
    target = tmp_path / "out.bin"
    with responses.RequestsMock() as rsps:
        rsps.add(responses.GET, f"{BASE}/namespaces/n/documents/d/download",
                 status=200, body=b"hello")
        assert main(["-t", str(token_file), "doc", "download", "n", "d", str(target)]) == 0
    assert target.read_bytes() == b"hello"
    assert "(5 bytes)" in capsys.readouterr().out


def test_batch_import_posts_each_url(token_file, tmp_path, capsys):
    listing = tmp_path / "urls.txt"
    listing.write_text("https://example.com/1\n# skip\nhttps://example.com/2\n\nhttps://example.com/3\n")
    with responses.RequestsMock() as rsps:
        rsps.add(responses.POST, f"{BASE}/namespaces/n/documents/import", status=201,
                 json={"document_id": "d", "task_id": "t"})
        argv = ["-t", str(token_file), "doc", "batch-import", "n", str(listing),
                "--concurrency", "2"]
        assert main(argv) == 0
        sent = sorted(json.loads(call.request.body)["url"] for call in rsps.calls)
    assert sent == ["https://example.com/1", "https://example.com/2", "https://example.com/3"]
    out = capsys.readouterr().out
    assert out.count("Queued import") == 3
    assert "Batch import process finished" in out


def test_batch_import_reports_failures(token_file, tmp_path, capsys):
    listing = tmp_path / "urls.txt"
    listing.write_text("https://example.com/1\n")
    with responses.RequestsMock() as rsps:
        rsps.add(responses.POST, f"{BASE}/namespaces/n/documents/import", status=400, body="bad")
        assert main(["-t", str(token_file), "doc", "batch-import", "n", str(listing)]) == 0
    assert "✗ Failed import: https://example.com/1" in capsys.readouterr().out


def test_search_joins_query_words(token_file, capsys):
    with responses.RequestsMock() as rsps:
        rsps.add(responses.POST, f"{BASE}/search", status=200,
                 json=[{"score": 0.9, "chunk": {"content": "found", "metadata": {}}}])
        assert main(["-t", str(token_file), "search", "query", "n", "hello", "world"]) == 0
        sent = json.loads(rsps.calls[0].request.body)
    assert sent == {"namespace_ids": ["n"], "query": "hello world", "top_k": 5}
    assert "Found 1 results:" in capsys.readouterr().out


def test_set_server_writes_config(tmp_path, monkeypatch):
    monkeypatch.setenv("HOME", str(tmp_path))
    monkeypatch.setenv("USERPROFILE", str(tmp_path))
    assert main(["config", "set-server", "http://example.com"]) == 0
    saved = json.loads((tmp_path / ".pandabase" / "config.json").read_text())
    assert saved == {"server_url": "http://example.com"}