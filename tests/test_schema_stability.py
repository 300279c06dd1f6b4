"""Test that the JSON documents crate-api writes keep their shape."""

from crate_api.api import DiffResult
from crate_api.kernel.api import Api


def test_api_schema_stable():
    """Top-level fields of `crate-api api --format json` output.

    This prevents "one more optional field" from creeping in during refactors.
    """
    schema = Api.model_json_schema(mode="serialization")

    assert set(schema["properties"]) == {"root_id", "paths", "items", "crates", "features"}
    assert schema["additionalProperties"] is False
    assert set(schema["$defs"]["ApiPath"]["properties"]) == {
        "id", "crate_id", "path", "kind", "span", "item_id", "children",
    }
    assert set(schema["$defs"]["Crate"]["properties"]) == {"id", "name", "version_requirement"}
    assert "module" in schema["$defs"]["PathKind"]["enum"]


def test_diff_result_schema_stable():
    """Fields of `crate-api diff --format json` output."""
    schema = DiffResult.model_json_schema(mode="serialization")

    assert set(schema["properties"]) == {"diffs", "counts", "breaking"}
    assert set(schema["$defs"]["Diff"]["properties"]) == {"severity", "rule", "before", "after"}
    assert set(schema["$defs"]["RuleId"]["properties"]) == {
        "name", "explanation", "category", "default_severity",
    }
    assert schema["$defs"]["Severity"]["enum"] == ["allow", "report", "warn"]
