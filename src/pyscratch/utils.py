from __future__ import annotations

import json
import re
import uuid
from datetime import datetime, timezone
from pathlib import Path
from typing import Any


_EPOCH = datetime.min.replace(tzinfo=timezone.utc)


def now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def parse_iso(dt: str) -> datetime:
    """
    Parses an ISO8601 timestamp. Naive values are treated as UTC, and a trailing
    'Z' is accepted so documents written by other tools still sort correctly.
    """
    if dt.endswith("Z"):
        dt = dt[:-1] + "+00:00"
    parsed = datetime.fromisoformat(dt)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def sort_key_iso(dt: str) -> datetime:
    try:
        return parse_iso(dt)
    except ValueError:
        return _EPOCH


def new_id() -> str:
    return uuid.uuid4().hex[:12]


def new_session_id() -> str:
    """
    Session ids are the UTC creation time with filesystem-safe separators plus a
    short random suffix, so lexical order is chronological order.
    """
    stamp = datetime.now(timezone.utc).strftime("%Y-%m-%dT%H-%M-%S-%f")
    return f"{stamp}_{uuid.uuid4().hex[:6]}"


def safe_filename(name: str) -> str:
    """
    Reduces a user-supplied filename to its final component and strips
    characters that are unsafe on common filesystems.
    """
    base = Path(name.strip()).name
    return re.sub(r'[\\/:*?"<>|]', "_", base)


def read_json(path: Path) -> Any:
    return json.loads(path.read_text(encoding="utf-8"))


def write_json(path: Path, obj: Any) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(obj, indent=2, ensure_ascii=False), encoding="utf-8")


def dumps_json(obj: Any) -> bytes:
    return json.dumps(obj, indent=2, ensure_ascii=False).encode("utf-8")
