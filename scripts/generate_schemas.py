"""Generate JSON schemas from Pydantic models and save to schemas/ directory."""

import json
import sys
from pathlib import Path

# Add src to path
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from crate_api.api import DiffResult
from crate_api.kernel.api import Api


def generate_schemas():
    """Generate JSON schemas for the documents crate-api writes."""
    schemas_dir = Path(__file__).parent.parent / "schemas"
    schemas_dir.mkdir(exist_ok=True)

    # `crate-api api --format json`
    api_schema = Api.model_json_schema(mode="serialization")
    api_schema_path = schemas_dir / "api.schema.json"
    with open(api_schema_path, 'w', encoding='utf-8') as f:
        json.dump(api_schema, f, indent=2, ensure_ascii=False)
    print(f"Generated: {api_schema_path}")

    # `crate-api diff --format json`
    diff_schema = DiffResult.model_json_schema(mode="serialization")
    diff_schema_path = schemas_dir / "diff_result.schema.json"
    with open(diff_schema_path, 'w', encoding='utf-8') as f:
        json.dump(diff_schema, f, indent=2, ensure_ascii=False)
    print(f"Generated: {diff_schema_path}")

    print("\nSchema generation complete!")


if __name__ == "__main__":
    generate_schemas()
