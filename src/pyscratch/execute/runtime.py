"""
Harness runtime bundled into every compiled transform.

This module is copied verbatim into the transform's zipapp and executed by a
child interpreter, so it must only import from the standard library.

Input classification by suffix:
  .json  parsed with json.loads; malformed JSON falls back to the raw text
  .csv   split into lines, then each line on ',' (no quoting or escaping)
  .txt   split into lines
  other  the raw text
"""

from __future__ import annotations

import asyncio
import importlib
import inspect
import json
import math
import sys
import traceback
from pathlib import Path
from typing import Any, Callable

ENTRY_POINT = "transform"
COMPAT_NAME = "input"


class InputContext:
    """The classified input handed to transform(ctx)."""

    __slots__ = ("raw", "data", "path")

    def __init__(self, raw: str, data: Any, path: str) -> None:
        self.raw = raw
        self.data = data
        self.path = path

    def __repr__(self) -> str:
        return f"InputContext(path={self.path!r}, data={type(self.data).__name__})"


def classify_input(filename: str, raw: str) -> Any:
    suffix = Path(filename).suffix.lower()
    if suffix == ".json":
        try:
            return json.loads(raw)
        except ValueError:
            return raw
    if suffix == ".csv":
        return [line.split(",") for line in raw.split("\n")]
    if suffix == ".txt":
        return raw.split("\n")
    return raw


def load_input(path: str) -> InputContext:
    raw = Path(path).read_text(encoding="utf-8", errors="replace")
    return InputContext(raw=raw, data=classify_input(path, raw), path=path)


def _wants_argument(fn: Callable[..., Any]) -> bool:
    try:
        params = inspect.signature(fn).parameters.values()
    except (TypeError, ValueError):
        return False
    return any(
        p.kind in (p.POSITIONAL_ONLY, p.POSITIONAL_OR_KEYWORD, p.VAR_POSITIONAL)
        for p in params
    )


async def _await(awaitable: Any) -> Any:
    return await awaitable


def invoke(fn: Callable[..., Any], ctx: InputContext) -> Any:
    """Calls the entry function with ctx if it takes a parameter, awaiting coroutines."""
    result = fn(ctx) if _wants_argument(fn) else fn()
    if inspect.isawaitable(result):
        result = asyncio.run(_await(result))
    return result


def _finite(value: Any) -> Any:
    """Replaces NaN and the infinities with None."""
    if isinstance(value, float):
        return value if math.isfinite(value) else None
    if isinstance(value, dict):
        return {k: _finite(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [_finite(v) for v in value]
    return value


def _json_default(obj: Any) -> Any:
    if isinstance(obj, (set, frozenset)):
        return _finite(sorted(obj, key=repr))
    for attr in ("to_dict", "tolist"):
        method = getattr(obj, attr, None)
        if callable(method):
            return _finite(method())
    return str(obj)


def serialize(result: Any) -> str:
    return json.dumps(
        _finite(result), indent=2, ensure_ascii=False, allow_nan=False, default=_json_default
    )


def main(argv: list[str], module_name: str) -> int:
    if len(argv) < 2:
        sys.stderr.write("usage: <artifact> INPUT_PATH\n")
        return 2

    try:
        ctx = load_input(argv[1])
        module = importlib.import_module(module_name)
        entry = getattr(module, ENTRY_POINT, None)
        if not callable(entry):
            raise TypeError(f"Transform script must define a callable '{ENTRY_POINT}'.")
        # Zero-argument scripts read the context from a module-level 'input' name.
        setattr(module, COMPAT_NAME, ctx)
        text = serialize(invoke(entry, ctx))
    except Exception:
        traceback.print_exc(file=sys.stderr)
        return 1

    sys.stdout.write(text + "\n")
    sys.stdout.flush()
    return 0
