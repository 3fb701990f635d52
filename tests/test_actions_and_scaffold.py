from __future__ import annotations

from pathlib import Path

import pytest

from pyscratch.actions import add_transform, create_input, export_node, import_input
from pyscratch.errors import ArtifactExists, InvalidNode
from pyscratch.models import NodeType
from pyscratch.scaffold import describe_input, describe_shape, render_transform_template


def test_describe_shape_nested() -> None:
    shape = describe_shape({"a": 1, "items": [{"id": "x", "ok": True}], "none": None, "empty": []})
    assert "'a': int," in shape
    assert "'items': list[{" in shape
    assert "'ok': bool," in shape
    assert "'none': Any," in shape
    assert "'empty': list[Any]," in shape


def test_describe_input_by_suffix() -> None:
    assert describe_input("d.json", "[1, 2]").type_hint == "list[int]"
    assert describe_input("d.json", "{oops").type_hint == "Any"
    assert describe_input("notes.txt", "a\nb").type_hint == "list[str]"
    assert describe_input("blob.bin", "zzz").type_hint == "str"

    csv_shape = describe_input("d.csv", "name,age\nann,3\nbob,4\n")
    assert csv_shape.type_hint == "list[list[str]]"
    assert any("name: " in note and "age: int64" in note for note in csv_shape.notes)


def test_describe_input_empty_csv_has_no_column_note() -> None:
    shape = describe_input("d.csv", "")
    assert not any(note.startswith("Columns") for note in shape.notes)


def test_template_is_valid_python_for_awkward_keys() -> None:
    source = render_transform_template("data.json", "data.json", '{"a\\"\\"\\"b": 1, "c\\\\d": [1]}')
    namespace: dict = {}
    exec(compile(source, "template.py", "exec"), namespace)
    assert callable(namespace["transform"])


def test_create_input_adds_node_and_file(store, session_id) -> None:
    node = create_input(store, "data.json", b'{"a": 1}')

    assert node.type == NodeType.INPUT
    assert node.parent_id is None
    assert node.label == node.filename == "data.json"
    assert store.read_artifact(session_id, "data.json") == b'{"a": 1}'
    assert store.get_node(session_id, node.id) == node


def test_create_input_refuses_existing_file(store, session_id) -> None:
    create_input(store, "data.json")
    with pytest.raises(ArtifactExists):
        create_input(store, "data.json")


def test_create_input_strips_directories(store, session_id) -> None:
    node = create_input(store, "../../etc/data.txt")
    assert node.filename == "data.txt"


def test_import_input_copies_file(store, session_id, tmp_path: Path) -> None:
    src = tmp_path / "rows.csv"
    src.write_text("a,b\n1,2\n", encoding="utf-8")
    node = import_input(store, src)
    assert node.filename == "rows.csv"
    assert store.read_artifact(session_id, "rows.csv") == b"a,b\n1,2\n"


def test_add_transform_scaffolds_script(store, session_id) -> None:
    parent = create_input(store, "data.json", b'{"a": 1}')

    node = add_transform(store, parent.id)

    assert node.type == NodeType.TRANSFORM
    assert node.parent_id == parent.id
    assert node.filename == f"transform-{node.id}.py"
    script = store.read_artifact(session_id, node.filename).decode("utf-8")
    assert "def transform(ctx):" in script
    assert "'a': int" in script


def test_add_transform_unknown_parent(store, session_id) -> None:
    with pytest.raises(InvalidNode):
        add_transform(store, "ghost")


def test_export_node(store, session_id, tmp_path: Path) -> None:
    node = create_input(store, "data.json", b"[]")
    out_dir = tmp_path / "exported"
    out_dir.mkdir()

    target = export_node(store, node.id, out_dir)
    assert target == out_dir / "data.json"
    assert target.read_bytes() == b"[]"

    renamed = export_node(store, node.id, tmp_path / "nested" / "copy.json")
    assert renamed.read_bytes() == b"[]"
