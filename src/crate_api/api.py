"""Public API for crate-api.

High-level functions accepting file paths or already-decoded dicts and
returning complete, structured results.
"""

import json
import os
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

from pydantic import BaseModel, Field, ValidationError

from crate_api.codes import Severity
from crate_api.kernel.api import Api
from crate_api.kernel.diff import Diff, diff as diff_apis
from crate_api.kernel.errors import ApiParseError
from crate_api.kernel.manifest import Manifest
from crate_api.kernel.rustdoc import parse_api
from crate_api.kernel.rustdoc_types import RawCrate, parse_rustdoc
from crate_api.report import sort_diffs

PathLike = Union[str, os.PathLike, Path]


def _normalize_path(path: PathLike) -> Path:
    """Normalize path input to Path object."""
    return Path(path) if not isinstance(path, Path) else path


def _read_text(path: Path) -> str:
    try:
        return path.read_text(encoding="utf-8")
    except OSError as e:
        raise ApiParseError(f"Failed when loading {path}: {e}") from e


def _load_json(path: Path) -> Any:
    text = _read_text(path)
    try:
        return json.loads(text)
    except json.JSONDecodeError as e:
        raise ApiParseError(f"Failed when parsing json at {path}: {e}") from e


class DiffResult(BaseModel):
    """Stable result model for an API comparison."""
    diffs: List[Diff]  # loudest first
    counts: Dict[str, int] = Field(default_factory=dict)  # severity -> count
    breaking: bool = False  # any warn-severity diff


def load_rustdoc(rustdoc: Union[PathLike, Dict]) -> RawCrate:
    """Load a rustdoc JSON dump from a path or a decoded dict."""
    if isinstance(rustdoc, dict):
        return parse_rustdoc(rustdoc)
    return parse_rustdoc(_load_json(_normalize_path(rustdoc)))


def load_manifest(manifest: Union[PathLike, Dict]) -> Manifest:
    """Load a package manifest.

    Dicts and ``.json`` files are ``cargo metadata`` package entries;
    anything else is read as a ``Cargo.toml``.
    """
    if isinstance(manifest, dict):
        return Manifest.from_metadata(manifest)
    manifest_path = _normalize_path(manifest)
    if manifest_path.suffix == ".json":
        return Manifest.from_metadata(_load_json(manifest_path))
    return Manifest.from_cargo_toml(_read_text(manifest_path))


def build_api(
    rustdoc: Union[PathLike, Dict, RawCrate],
    manifest: Optional[Union[PathLike, Dict, Manifest]] = None,
) -> Api:
    """Build the API graph of a package, enriched with its manifest if given."""
    raw = rustdoc if isinstance(rustdoc, RawCrate) else load_rustdoc(rustdoc)
    api = parse_api(raw)
    if manifest is not None:
        if not isinstance(manifest, Manifest):
            manifest = load_manifest(manifest)
        manifest.into_api(api)
    return api


def load_api(api: Union[PathLike, Dict]) -> Api:
    """Load an ``Api`` previously written as JSON."""
    data = api if isinstance(api, dict) else _load_json(_normalize_path(api))
    try:
        return Api.model_validate(data)
    except ValidationError as e:
        raise ApiParseError(f"Failed when parsing API JSON: {e}") from e


def diff(before: Api, after: Api) -> DiffResult:
    """Compare two enriched APIs."""
    diffs = sort_diffs(diff_apis(before, after))
    counts: Dict[str, int] = {}
    for item in diffs:
        counts[item.severity.value] = counts.get(item.severity.value, 0) + 1
    return DiffResult(
        diffs=diffs,
        counts=counts,
        breaking=any(item.severity is Severity.WARN for item in diffs),
    )
