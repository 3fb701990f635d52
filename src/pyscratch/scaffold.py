from __future__ import annotations

import io
import json
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import pandas as pd


@dataclass(frozen=True)
class InputShape:
    """What a new transform's `ctx.data` will look like for a given parent file."""

    type_hint: str
    notes: list[str] = field(default_factory=list)


def describe_shape(value: Any, indent: str = "") -> str:
    """
    Renders a parsed JSON value as a Python type description.

    Lists are described by their first element; dicts list every key.
    """
    if value is None:
        return "Any"
    if isinstance(value, bool):
        return "bool"
    if isinstance(value, (int, float, str)):
        return type(value).__name__
    if isinstance(value, list):
        if not value:
            return "list[Any]"
        return f"list[{describe_shape(value[0], indent)}]"
    if isinstance(value, dict):
        if not value:
            return "dict[str, Any]"
        inner = indent + "    "
        lines = [f"{inner}{key!r}: {describe_shape(v, inner)}," for key, v in value.items()]
        return "{\n" + "\n".join(lines) + f"\n{indent}}}"
    return "Any"


def _csv_columns(raw: str, max_rows: int = 1000) -> list[str]:
    try:
        df = pd.read_csv(io.StringIO(raw), nrows=max_rows)
    except (pd.errors.EmptyDataError, pd.errors.ParserError, ValueError):
        return []
    return [f"{col}: {dtype}" for col, dtype in df.dtypes.astype(str).items()]


def describe_input(filename: str, raw: str, indent: str = "") -> InputShape:
    suffix = Path(filename).suffix.lower()
    if suffix == ".json":
        try:
            return InputShape(describe_shape(json.loads(raw), indent))
        except ValueError:
            return InputShape("Any", ["The input is not valid JSON yet; ctx.data is the raw text."])
    if suffix == ".csv":
        notes = ["Rows are split on ',' with no quote handling; ctx.data[0] is the header row."]
        columns = _csv_columns(raw)
        if columns:
            notes.append("Columns (inferred): " + ", ".join(columns))
        return InputShape("list[list[str]]", notes)
    if suffix == ".txt":
        return InputShape("list[str]", ["One entry per line."])
    return InputShape("str")


_TEMPLATE_HEADER = """\
Transformation script for {parent_label}.

transform(ctx) receives the classified input:
    ctx.raw   the file content as text
    ctx.path  path of the materialized input file
    ctx.data  {type_hint}
{notes}
Whatever transform returns is written as JSON to this transform's output.
It may also be declared `async def`.
"""

_TEMPLATE_BODY = '''

def transform(ctx):
    # Example: return [row[0] for row in ctx.data[1:]]
    return ctx.data
'''


def render_transform_template(parent_label: str, parent_filename: str, parent_raw: str) -> str:
    shape = describe_input(parent_filename, parent_raw, indent="    ")
    notes = "".join(f"\n{line}\n" for line in shape.notes)
    header = _TEMPLATE_HEADER.format(parent_label=parent_label, type_hint=shape.type_hint, notes=notes)
    # Header lines are comments: input key names never end up parsed as code.
    commented = "\n".join(f"# {line}".rstrip() for line in header.splitlines())
    return commented + "\n" + _TEMPLATE_BODY
