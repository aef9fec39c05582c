import json
from datetime import datetime, timedelta, timezone

import pytest

from pandabase.session import (
    TokenStore,
    default_config_path,
    default_token_path,
    format_time,
    load_tokens,
    save_server_url,
    save_tokens,
    tokens_from_response,
    truncate,
)

NOW = datetime(2024, 1, 2, 3, 4, 5, tzinfo=timezone.utc)


def test_tokens_from_response_adds_lifetime():
    tokens = tokens_from_response(
        {"access_token": "token", "refresh_token": "secret", "expires_in": 3600}, now=NOW
    )
    assert tokens.access_token == "token"
    assert tokens.refresh_token == "secret"
    assert tokens.expires_at - NOW == timedelta(seconds=3600)


def test_tokens_from_response_missing_lifetime_expires_now():
    tokens = tokens_from_response({"access_token": "token"}, now=NOW)
    assert tokens.expires_at == NOW
    assert tokens.refresh_token == ""


def test_token_store_dict_round_trip():
    tokens = TokenStore("token", "secret", NOW)
    assert TokenStore.from_dict(tokens.to_dict()) == tokens


def test_token_store_utc_uses_z_suffix():
    tokens = TokenStore("token", "secret", NOW)
    assert tokens.to_dict()["expires_at"].endswith("Z")


def test_from_dict_accepts_nanosecond_fraction():
    tokens = TokenStore.from_dict(
        {"access_token": "token", "expires_at": "2024-01-02T03:04:05.123456789+02:00"}
    )
    assert tokens.expires_at.microsecond == 123456
    assert tokens.expires_at.utcoffset() == timedelta(hours=2)


def test_save_and_load_round_trip(tmp_path):
    path = tmp_path / "nested" / "tokens.json"
    tokens = TokenStore("token", "secret", NOW)
    save_tokens(tokens, path)
    assert load_tokens(path) == tokens
    assert path.stat().st_mode & 0o777 == 0o600


def test_load_missing_file_raises(tmp_path):
    with pytest.raises(FileNotFoundError):
        load_tokens(tmp_path / "absent.json")


def test_load_invalid_json_raises(tmp_path):
    path = tmp_path / "tokens.json"
    path.write_text("not json", encoding="utf-8")
    with pytest.raises(ValueError):
        load_tokens(path)


def test_save_server_url(tmp_path):
    path = tmp_path / "cfg" / "config.json"
    save_server_url("http://localhost:9000", path)
    assert json.loads(path.read_text(encoding="utf-8")) == {"server_url": "http://localhost:9000"}


def test_default_paths_under_home(monkeypatch, tmp_path):
    monkeypatch.setenv("HOME", str(tmp_path))
    monkeypatch.setenv("USERPROFILE", str(tmp_path))
    assert default_token_path() == tmp_path / ".pandabase" / "tokens.json"
    assert default_config_path() == tmp_path / ".pandabase" / "config.json"


def test_truncate_short_text_unchanged():
    assert truncate("hello", 10) == "hello"
    assert truncate("hello", 5) == "hello"


def test_truncate_long_text():
    result = truncate("abcdefghij", 5)
    assert result == "ab..."
    assert len(result) == 5


@pytest.mark.parametrize("max_len", [4, 8, 20])
def test_truncate_respects_limit(max_len):
    result = truncate("x" * 50, max_len)
    assert len(result.encode("utf-8")) == max_len
    assert result.endswith("...")


def test_format_time_utc():
    assert format_time("2024-03-05T14:07:09Z") == "2024-03-05 14:07"


@pytest.mark.parametrize(
    "value",
    [
        "2024-03-05T14:07:09.123456789Z",
        "2024-03-05T14:07:09+05:30",
        "2024-03-05T14:07:09",
    ],
)
def test_format_time_variants_keep_wall_clock(value):
    assert format_time(value) == format_time("2024-03-05T14:07:09Z")


@pytest.mark.parametrize("value", ["", "yesterday", "2024-13-45T99:00:00Z"])
def test_format_time_unparseable_returned(value):
    assert format_time(value) == value