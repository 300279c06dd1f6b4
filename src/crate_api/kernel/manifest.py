"""Package manifest: dependency requirements and feature flags.

The manifest enriches an ``Api`` in place: public crates get the version
requirement their package declares, and the feature table is copied over.
"""

import tomllib
from typing import Any, Dict, Iterator, List, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from crate_api._internal.logging import get_logger

from .api import Api, CrateId, Feature, OptionalDependency
from .errors import ApiParseError
from .version_req import VersionReq

logger = get_logger(__name__)

# Dependency tables that can leak into the public API (dev-dependencies cannot)
_PUBLIC_DEPENDENCY_TABLES = ("dependencies", "build-dependencies")


def _crate_key(name: str) -> str:
    """Cargo package names may use '-', rustdoc crate names always use '_'."""
    return name.replace("-", "_")


class Dependency(BaseModel):
    """A declared dependency."""
    name: str  # package name
    version_requirement: VersionReq
    rename: Optional[str] = None  # name the package is imported under, if renamed
    optional: bool = False

    model_config = ConfigDict(extra="forbid")

    @property
    def activation_name(self) -> str:
        """Feature name that activates this dependency when optional."""
        return self.rename or self.name


class Manifest(BaseModel):
    """The parts of a package descriptor that matter to the API surface."""
    name: str
    version: str = "0.0.0"
    dependencies: List[Dependency] = Field(default_factory=list)
    features: Dict[str, List[str]] = Field(default_factory=dict)

    model_config = ConfigDict(extra="forbid")

    @property
    def optional_dependencies(self) -> List[Dependency]:
        return [dep for dep in self.dependencies if dep.optional]

    def into_api(self, api: Api) -> None:
        """Merge this manifest into ``api`` (see ``merge_manifest``)."""
        merge_manifest(self, api)

    @classmethod
    def from_cargo_toml(cls, text: str) -> "Manifest":
        """Load from the text of a ``Cargo.toml`` (raises ApiParseError)."""
        try:
            document = tomllib.loads(text)
        except tomllib.TOMLDecodeError as e:
            raise ApiParseError(f"Failed when parsing Cargo.toml: {e}") from e

        package = document.get("package")
        if not isinstance(package, dict) or not isinstance(package.get("name"), str):
            raise ApiParseError("Cargo.toml is missing [package] name")
        # `version.workspace = true` and omitted versions both fall back to 0.0.0
        version = package.get("version")
        if not isinstance(version, str):
            version = "0.0.0"

        dependencies = [
            _dependency_from_toml(key, value) for key, value in _iter_toml_dependencies(document)
        ]

        features = document.get("features", {})
        if not isinstance(features, dict):
            raise ApiParseError("Cargo.toml [features] must be a table")

        return _build_manifest(
            name=package["name"],
            version=version,
            dependencies=dependencies,
            features=features,
        )

    @classmethod
    def from_metadata(cls, package: Dict[str, Any]) -> "Manifest":
        """Load from one package entry of ``cargo metadata`` output."""
        if not isinstance(package, dict) or not isinstance(package.get("name"), str):
            raise ApiParseError("package metadata is missing 'name'")

        dependencies = []
        for raw in package.get("dependencies", []):
            if not isinstance(raw, dict) or "name" not in raw:
                raise ApiParseError(f"malformed dependency entry in metadata for {package['name']}")
            if raw.get("kind") == "dev":
                continue
            dependencies.append(_build_dependency(
                name=raw["name"],
                version_requirement=_parse_requirement(raw.get("req", "*"), raw["name"]),
                rename=raw.get("rename"),
                optional=bool(raw.get("optional", False)),
            ))

        return _build_manifest(
            name=package["name"],
            version=str(package.get("version", "0.0.0")),
            dependencies=dependencies,
            features=package.get("features", {}),
        )


def _build_manifest(**fields: Any) -> Manifest:
    try:
        return Manifest(**fields)
    except ValidationError as e:
        raise ApiParseError(f"Invalid package manifest: {e}") from e


def _build_dependency(**fields: Any) -> Dependency:
    try:
        return Dependency(**fields)
    except ValidationError as e:
        raise ApiParseError(f"Invalid dependency '{fields.get('name')}': {e}") from e


def _parse_requirement(text: Any, dependency: str) -> VersionReq:
    try:
        return VersionReq.parse(text)
    except ValueError as e:
        raise ApiParseError(f"Invalid version requirement for '{dependency}': {e}") from e


def _iter_toml_dependencies(document: Dict[str, Any]) -> Iterator[Tuple[str, Any]]:
    tables = [document]
    target = document.get("target", {})
    if isinstance(target, dict):
        tables.extend(cfg for cfg in target.values() if isinstance(cfg, dict))
    for table in tables:
        for table_name in _PUBLIC_DEPENDENCY_TABLES:
            dependencies = table.get(table_name, {})
            if not isinstance(dependencies, dict):
                raise ApiParseError(f"Cargo.toml [{table_name}] must be a table")
            yield from dependencies.items()


def _dependency_from_toml(key: str, value: Any) -> Dependency:
    if isinstance(value, str):
        return _build_dependency(name=key, version_requirement=_parse_requirement(value, key))
    if not isinstance(value, dict):
        raise ApiParseError(f"dependency '{key}' must be a string or a table")

    package = value.get("package")
    return _build_dependency(
        name=package or key,
        # path/git/workspace dependencies without a version accept anything
        version_requirement=_parse_requirement(value.get("version", "*"), key),
        rename=key if package else None,
        optional=bool(value.get("optional", False)),
    )


def _matching_crates(dependency: Dependency, crate_ids: Dict[str, List[CrateId]]) -> List[CrateId]:
    """Crates a dependency can be imported as: its package name or its rename."""
    keys = {_crate_key(dependency.name)}
    if dependency.rename:
        keys.add(_crate_key(dependency.rename))
    return sorted({crate_id for key in keys for crate_id in crate_ids.get(key, [])})


def merge_manifest(manifest: Manifest, api: Api) -> None:
    """Attach dependency requirements and features to ``api`` in place.

    A requirement is only attached when the dependency matches exactly one
    public crate by name and no other dependency resolves to that crate.
    Anything else is skipped rather than guessed.
    """
    crate_ids: Dict[str, List[CrateId]] = {}
    for crate in api.crates:
        crate_ids.setdefault(_crate_key(crate.name), []).append(crate.id)

    claimants: Dict[CrateId, List[Dependency]] = {}
    for dependency in manifest.dependencies:
        matches = _matching_crates(dependency, crate_ids)
        if not matches:
            # Not part of the public API
            continue
        if len(matches) > 1:
            logger.debug("manifest.ambiguous_crate", dependency=dependency.name, crates=matches)
            continue
        claimants.setdefault(matches[0], []).append(dependency)

    for crate_id, dependencies in claimants.items():
        if len(dependencies) > 1:
            logger.debug(
                "manifest.duplicate_dependency",
                crate=api.crates[crate_id].name,
                dependencies=[d.name for d in dependencies],
            )
            continue
        api.crates[crate_id].version_requirement = dependencies[0].version_requirement

    for name, dependencies in manifest.features.items():
        api.features[name] = Feature(name=name, dependencies=list(dependencies))
    for dependency in manifest.optional_dependencies:
        activation = dependency.activation_name
        if activation not in api.features:
            api.features[activation] = OptionalDependency(
                name=activation,
                package=dependency.name if dependency.rename else None,
            )
