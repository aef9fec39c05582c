"""Local state of the command-line client: stored tokens, settings and display helpers."""

from __future__ import annotations

import json
import os
import re
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Any, Mapping, Optional, Union

PathLike = Union[str, "os.PathLike[str]"]

_EPOCH = datetime(1, 1, 1, tzinfo=timezone.utc)

_TIMESTAMP = re.compile(
    r"(\d{4})-(\d{2})-(\d{2})T(\d{2}):(\d{2}):(\d{2})"
    r"(?:\.(\d+))?"
    r"(Z|[+-]\d{2}:\d{2})?"
)


def _parse_timestamp(value: str) -> datetime:
    """Parse an RFC 3339 timestamp; the zone is optional and any fraction is accepted."""
    match = _TIMESTAMP.fullmatch(value)
    if match is None:
        raise ValueError(f"invalid timestamp: {value!r}")
    year, month, day, hour, minute, second = (int(g) for g in match.groups()[:6])
    fraction = match.group(7) or ""
    microsecond = int((fraction + "000000")[:6])
    zone = match.group(8)
    tz: Optional[timezone] = None
    if zone == "Z":
        tz = timezone.utc
    elif zone:
        sign = 1 if zone[0] == "+" else -1
        offset = timedelta(hours=int(zone[1:3]), minutes=int(zone[4:6]))
        tz = timezone(sign * offset)
    return datetime(year, month, day, hour, minute, second, microsecond, tzinfo=tz)


def _format_timestamp(value: datetime) -> str:
    text = value.isoformat()
    if text.endswith("+00:00"):
        text = text[: -len("+00:00")] + "Z"
    return text


@dataclass
class TokenStore:
    """Tokens kept between runs of the client."""

    access_token: str = ""
    refresh_token: str = ""
    expires_at: datetime = _EPOCH

    def to_dict(self) -> dict[str, str]:
        """Return the JSON form stored on disk."""
        return {
            "access_token": self.access_token,
            "refresh_token": self.refresh_token,
            "expires_at": _format_timestamp(self.expires_at),
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "TokenStore":
        """Build a store from its JSON form; missing fields take empty values."""
        expires = data.get("expires_at")
        return cls(
            access_token=str(data.get("access_token") or ""),
            refresh_token=str(data.get("refresh_token") or ""),
            expires_at=_parse_timestamp(expires) if expires else _EPOCH,
        )


def tokens_from_response(result: Mapping[str, Any], now: Optional[datetime] = None) -> TokenStore:
    """Turn a login or registration response into a token store."""
    if now is None:
        now = datetime.now(timezone.utc).astimezone()
    expires_in = int(result.get("expires_in") or 0)
    return TokenStore(
        access_token=str(result.get("access_token") or ""),
        refresh_token=str(result.get("refresh_token") or ""),
        expires_at=now + timedelta(seconds=expires_in),
    )


def _home_file(name: str, fallback: str) -> Path:
    try:
        home = Path.home()
    except (RuntimeError, KeyError):
        return Path(fallback)
    return home / ".pandabase" / name


def default_token_path() -> Path:
    """Where tokens are stored unless another path is given."""
    return _home_file("tokens.json", ".pandabase_tokens.json")


def default_config_path() -> Path:
    """Where the client's settings are stored."""
    return _home_file("config.json", ".pandabase_config.json")


def _write_private(path: Path, data: Mapping[str, Any]) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    text = json.dumps(data, indent=2)
    fd = os.open(path, os.O_WRONLY | os.O_CREAT | os.O_TRUNC, 0o600)
    with os.fdopen(fd, "w", encoding="utf-8") as fh:
        fh.write(text)


def load_tokens(path: Optional[PathLike] = None) -> TokenStore:
    """Read stored tokens; raises ``OSError`` or ``ValueError`` if they cannot be read."""
    target = Path(path) if path is not None else default_token_path()
    data = json.loads(target.read_text(encoding="utf-8"))
    if not isinstance(data, dict):
        raise ValueError("token file must hold a JSON object")
    return TokenStore.from_dict(data)


def save_tokens(tokens: TokenStore, path: Optional[PathLike] = None) -> None:
    """Write tokens to disk, readable by the owner only."""
    target = Path(path) if path is not None else default_token_path()
    _write_private(target, tokens.to_dict())


def save_server_url(url: str, path: Optional[PathLike] = None) -> None:
    """Store the default server URL in the client's settings file."""
    target = Path(path) if path is not None else default_config_path()
    _write_private(target, {"server_url": url})


def truncate(text: str, max_len: int) -> str:
    """Shorten ``text`` to ``max_len`` UTF-8 bytes, ending in an ellipsis."""
    raw = text.encode("utf-8")
    if len(raw) <= max_len:
        return text
    return raw[: max(max_len - 3, 0)].decode("utf-8", errors="ignore") + "..."


def format_time(value: str) -> str:
    """Render a timestamp as ``YYYY-MM-DD HH:MM``; unparseable text is returned unchanged."""
    try:
        parsed = _parse_timestamp(value)
    except ValueError:
        return value
    return parsed.strftime("%Y-%m-%d %H:%M")