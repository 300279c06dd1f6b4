"""Tests for building the API graph from rustdoc JSON."""

import json
from pathlib import Path

import pytest

from crate_api.kernel.api import PathKind
from crate_api.kernel.errors import ApiParseError, CrateApiError, ErrorKind
from crate_api.kernel.rustdoc import ApiBuilder, parse_api
from crate_api.kernel.rustdoc_types import (
    ImportInner,
    ModuleInner,
    TerminalInner,
    parse_rustdoc,
    parse_rustdoc_json,
)

HERE = Path(__file__).resolve().parent
FIXTURES = HERE.parent / "fixtures"


def item(kind: str, name=None, crate_id: int = 0, **inner) -> dict:
    return {"crate_id": crate_id, "name": name, "kind": kind, "inner": inner}


def reexport(name: str, target=None) -> dict:
    return {"crate_id": 0, "name": None, "kind": "import", "inner": {"name": name, "id": target}}


def create_raw(index: dict, paths: dict, external_crates=None, root: str = "0:0") -> dict:
    """Helper to create a rustdoc document."""
    return {
        "root": root,
        "index": index,
        "paths": {
            raw_id: {"crate_id": crate_id, "path": path, "kind": kind}
            for raw_id, (crate_id, path, kind) in paths.items()
        },
        "external_crates": external_crates or {},
        "format_version": 9,
    }


def build(raw: dict):
    return parse_api(parse_rustdoc(raw))


def assert_rooted_tree(api):
    """Every non-root path has exactly one parent, except synthesized imports' copies."""
    owners = {}
    for path in api.paths:
        if path.kind is PathKind.IMPORT:
            continue
        for child in path.children:
            owners.setdefault(child, []).append(path.id)
    import_ids = {path.id for path in api.paths if path.kind is PathKind.IMPORT}
    for path in api.paths:
        if path.id == api.root_id:
            assert path.id not in owners
        elif path.id in import_ids:
            continue
        else:
            assert len(owners.get(path.id, [])) == 1, f"{path.path} has owners {owners.get(path.id)}"


def load_fixture_api(version: str):
    data = json.loads((FIXTURES / "basic" / version / "rustdoc.json").read_text(encoding="utf-8"))
    return build(data)


def test_old_format_fixture():
    api = load_fixture_api("old")

    assert api.root_id == 0
    assert [p.path for p in api.paths] == [
        "demo",
        "demo::io",
        "demo::Config",
        "demo::io::Reader",
        "demo::io::read_all",
        "serde::ser::Serialize",
        "demo::Serialize",
        "demo::Reader",
    ]
    root = api.root
    assert root.kind is PathKind.MODULE
    assert root.span.filename == "src/lib.rs"
    assert root.children == [1, 2, 5, 6, 7]
    assert api.paths[1].children == [3, 4]

    assert [c.name for c in api.crates] == ["serde"]
    assert api.paths[5].crate_id == 0
    assert api.paths[5].kind is PathKind.TRAIT

    # Terminal items get an item attached to their own path
    assert api.items[api.paths[2].item_id].name == "Config"
    assert api.items[api.paths[3].item_id].name == "Reader"

    # Re-exports share the target's item
    reader_import = api.paths[7]
    assert reader_import.kind is PathKind.IMPORT
    assert reader_import.item_id == api.paths[3].item_id
    assert reader_import.crate_id is None
    assert_rooted_tree(api)


def test_externally_tagged_fixture_matches_flat_encoding():
    old = load_fixture_api("old")
    new = load_fixture_api("new")

    assert [p.path for p in new.paths][:8] == [p.path for p in old.paths][:6] + ["bytes::Bytes", "demo::Serialize"]
    assert [c.name for c in new.crates] == ["serde", "bytes"]
    assert new.paths[new.root_id].children[-3:] == [7, 8, 9]
    assert new.paths[9].path == "demo::Bytes"
    assert_rooted_tree(new)


def test_local_crate_is_never_materialized():
    raw = create_raw(
        {"0:0": item("module", "root", items=["0:1"]), "0:1": item("function", "f")},
        {"0:0": (0, ["root"], "module"), "0:1": (0, ["root", "f"], "function")},
    )
    api = build(raw)
    assert api.crates == []
    assert all(p.crate_id is None for p in api.paths)
    assert all(i.crate_id is None for i in api.items)


def test_items_without_path_entries_inherit_parent_path():
    raw = create_raw(
        {
            "0:0": item("module", "root", items=["0:1", "0:2"]),
            "0:1": item("struct", "S"),
            "0:2": item("impl", items=["0:3"]),
            "0:3": item("method", "new"),
        },
        {"0:0": (0, ["root"], "module"), "0:1": (0, ["root", "S"], "struct")},
    )
    api = build(raw)

    assert [p.path for p in api.paths] == ["root", "root::S"]
    # The method has no path of its own but still becomes an item
    assert [i.name for i in api.items] == ["S", "new"]
    assert api.paths[1].item_id == 0


def test_trait_and_enum_members_are_children():
    raw = create_raw(
        {
            "0:0": item("module", "root", items=["0:1", "0:2"]),
            "0:1": item("trait", "Read", items=["0:3"]),
            "0:2": item("enum", "Mode", variants=["0:4", "0:5"]),
            "0:3": item("method", "read"),
            "0:4": item("variant", "Fast"),
            "0:5": item("variant", "Slow"),
        },
        {
            "0:0": (0, ["root"], "module"),
            "0:1": (0, ["root", "Read"], "trait"),
            "0:2": (0, ["root", "Mode"], "enum"),
            "0:3": (0, ["root", "Read", "read"], "method"),
            "0:4": (0, ["root", "Mode", "Fast"], "variant"),
            "0:5": (0, ["root", "Mode", "Slow"], "variant"),
        },
    )
    api = build(raw)
    by_name = {p.path: p for p in api.paths}

    assert by_name["root::Read"].children == [by_name["root::Read::read"].id]
    assert by_name["root::Mode"].children == [
        by_name["root::Mode::Fast"].id,
        by_name["root::Mode::Slow"].id,
    ]
    assert by_name["root::Mode"].item_id is None
    assert by_name["root::Mode::Fast"].item_id is not None


def test_structural_children_precede_reexports():
    raw = create_raw(
        {
            "0:0": item("module", "root", items=["0:1", "0:2", "0:3", "0:4"]),
            "0:1": reexport("Alias", "0:5"),
            "0:2": item("module", "inner", items=["0:5"]),
            "0:3": reexport("Other", "0:6"),
            "0:4": item("struct", "Plain"),
            "0:5": item("struct", "Target"),
            "0:6": item("function", "helper"),
        },
        {
            "0:0": (0, ["root"], "module"),
            "0:2": (0, ["root", "inner"], "module"),
            "0:4": (0, ["root", "Plain"], "struct"),
            "0:5": (0, ["root", "inner", "Target"], "struct"),
            "0:6": (0, ["root", "helper"], "function"),
        },
    )
    api = build(raw)
    root = api.root
    names = [api.paths[child].path for child in root.children]

    # Target is reached through the import first, so it is attached where it was re-exported
    assert names == [
        "root::inner",
        "root::Plain",
        "root::inner::Target",
        "root::helper",
        "root::Alias",
        "root::Other",
    ]
    assert_rooted_tree(api)


def test_reexport_copies_children_by_value():
    raw = create_raw(
        {
            "0:0": item("module", "root", items=["0:1", "0:2"]),
            "0:1": item("module", "inner", items=["0:3"]),
            "0:2": reexport("inner2", "0:1"),
            "0:3": item("function", "f"),
        },
        {
            "0:0": (0, ["root"], "module"),
            "0:1": (0, ["root", "inner"], "module"),
            "0:3": (0, ["root", "inner", "f"], "function"),
        },
    )
    api = build(raw)
    inner = api.paths[1]
    alias = next(p for p in api.paths if p.path == "root::inner2")

    assert alias.kind is PathKind.IMPORT
    assert alias.children == inner.children
    alias.children.append(99)
    assert 99 not in inner.children


def test_cyclic_reexport_terminates():
    raw = create_raw(
        {
            "0:0": item("module", "root", items=["0:1"]),
            "0:1": item("module", "child", items=["0:2"]),
            "0:2": reexport("parent", "0:0"),
        },
        {"0:0": (0, ["root"], "module"), "0:1": (0, ["root", "child"], "module")},
    )
    api = build(raw)
    assert [p.path for p in api.paths] == ["root", "root::child", "root::child::parent"]
    assert api.paths[2].children == [1]


def test_memoization_returns_cached_ids():
    raw = parse_rustdoc(create_raw(
        {"0:0": item("module", "root", items=["0:1"]), "0:1": item("struct", "S", crate_id=3)},
        {"0:0": (0, ["root"], "module"), "0:1": (3, ["dep", "S"], "struct")},
        external_crates={"3": {"name": "dep"}},
    ))
    builder = ApiBuilder(raw)
    builder.build()

    path_count = len(builder.api.paths)
    assert builder.add_path(0, "0:1", None) == 1
    assert builder.add_crate(3) == 0
    assert builder.add_crate(0) is None
    assert builder.add_item("0:1", raw.index["0:1"], 0) == 0
    assert len(builder.api.paths) == path_count
    assert len(builder.api.crates) == 1
    assert len(builder.api.items) == 1


def test_deferred_resolution_is_idempotent():
    raw = parse_rustdoc(create_raw(
        {
            "0:0": item("module", "root", items=["0:1"]),
            "0:1": reexport("F", "0:2"),
            "0:2": item("function", "f"),
        },
        {"0:0": (0, ["root"], "module"), "0:2": (0, ["root", "f"], "function")},
    ))
    builder = ApiBuilder(raw)
    builder.traverse()
    builder.resolve_deferred_imports()
    once = builder.api.model_copy(deep=True)
    builder.resolve_deferred_imports()

    assert builder.api == once
    assert [p.path for p in once.paths] == ["root", "root::f", "root::F"]


def test_unresolvable_import_is_skipped():
    raw = create_raw(
        {
            "0:0": item("module", "root", items=["0:1", "0:2"]),
            "0:1": reexport("Gone", "9:9"),
            "0:2": reexport("u8"),
        },
        {"0:0": (0, ["root"], "module")},
    )
    api = build(raw)
    assert [p.path for p in api.paths] == ["root"]
    assert api.root.children == []


def test_external_item_uses_path_table_crate():
    raw = create_raw(
        {
            "0:0": item("module", "root", items=["0:1"]),
            "0:1": reexport("Value", "5:1"),
        },
        {"0:0": (0, ["root"], "module"), "5:1": (5, ["json", "Value"], "enum")},
        external_crates={"5": {"name": "serde_json"}},
    )
    api = build(raw)
    assert api.crates[0].name == "serde_json"
    value = next(p for p in api.paths if p.path == "json::Value")
    assert value.crate_id == 0
    alias = next(p for p in api.paths if p.path == "root::Value")
    assert alias.crate_id is None


def test_missing_external_crate_name_degrades():
    raw = create_raw(
        {"0:0": item("module", "root", items=["0:1"]), "0:1": item("struct", "S", crate_id=7)},
        {"0:0": (0, ["root"], "module")},
    )
    api = build(raw)
    assert [c.name for c in api.crates] == ["<unknown>"]
    assert api.items[0].crate_id == 0


def test_integer_ids_are_accepted():
    raw = {
        "root": 0,
        "index": {
            "0": {"crate_id": 0, "name": "root", "inner": {"module": {"items": [1]}}},
            "1": {"crate_id": 0, "name": "Alias", "inner": {"type_alias": {"type": {}}}},
        },
        "paths": {
            "0": {"crate_id": 0, "path": ["root"], "kind": "module"},
            "1": {"crate_id": 0, "path": ["root", "Alias"], "kind": "type_alias"},
        },
    }
    parsed = parse_rustdoc(raw)
    assert isinstance(parsed.index["0"].inner, ModuleInner)
    assert isinstance(parsed.index["1"].inner, TerminalInner)
    assert parsed.index["1"].inner.kind == "typedef"

    api = parse_api(parsed)
    assert api.paths[1].kind is PathKind.TYPEDEF


def test_import_without_target():
    parsed = parse_rustdoc(create_raw(
        {"0:0": item("module", "root", items=["0:1"]), "0:1": reexport("i32")},
        {"0:0": (0, ["root"], "module")},
    ))
    inner = parsed.index["0:1"].inner
    assert isinstance(inner, ImportInner)
    assert inner.id is None


@pytest.mark.parametrize(
    "data",
    [
        [],
        {"index": {}},
        {"root": "0:0"},
        {"root": "0:0", "index": {"0:0": {"crate_id": 0, "kind": "not_a_kind", "inner": {}}}},
        {"root": "0:0", "index": {"0:0": {"crate_id": "abc", "kind": "module", "inner": {}}}},
    ],
)
def test_malformed_rustdoc_raises_api_parse(data):
    with pytest.raises(ApiParseError) as excinfo:
        parse_rustdoc(data)
    assert excinfo.value.kind is ErrorKind.API_PARSE


def test_invalid_json_raises_api_parse():
    with pytest.raises(ApiParseError):
        parse_rustdoc_json("{not json")


def test_root_missing_from_index_raises_api_parse():
    raw = parse_rustdoc(create_raw({"0:1": item("struct", "S")}, {}))
    with pytest.raises(ApiParseError):
        parse_api(raw)


def test_unhandled_item_variant_raises_crate_api_error():
    raw = parse_rustdoc(create_raw(
        {"0:0": item("module", "root")},
        {"0:0": (0, ["root"], "module")},
    ))
    raw.index["0:0"] = raw.index["0:0"].model_copy(update={"inner": object()})

    with pytest.raises(CrateApiError) as excinfo:
        parse_api(raw)
    assert excinfo.value.kind is ErrorKind.UNKNOWN
