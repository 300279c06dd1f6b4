"""Run ``cargo doc`` to produce a rustdoc JSON dump (internal).

This is the only part of crate-api that blocks on another process. There
is no timeout: callers that need one impose it around this call.
"""

import json
import os
import subprocess
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

from pydantic import BaseModel, ConfigDict

from crate_api._internal.logging import get_logger
from crate_api.kernel.errors import ApiParseError

logger = get_logger(__name__)

RUSTDOCFLAGS = "-Z unstable-options --document-hidden-items --output-format=json"


class CargoDocOptions(BaseModel):
    """Knobs for the rustdoc invocation.

    ``deps`` documents dependencies too. Leaving it off is faster and
    avoids rustdoc bugs with some dependency trees; turning it on lets
    re-exported dependency items show up in the API.
    """
    deps: bool = False
    toolchain: str = "nightly"
    all_features: bool = True

    model_config = ConfigDict(extra="forbid")


def _run(cmd: List[str], env: Optional[Dict[str, str]] = None) -> subprocess.CompletedProcess:
    try:
        return subprocess.run(cmd, capture_output=True, text=True, env=env)
    except OSError as e:
        raise ApiParseError(f"Failed when running {cmd[0]}: {e}") from e


class RustDocCommand:
    """Generates rustdoc JSON for the package at a manifest path."""

    def __init__(self, options: Optional[CargoDocOptions] = None):
        self.options = options or CargoDocOptions()

    def _metadata(self, manifest_path: Path) -> Dict[str, Any]:
        result = _run([
            "cargo", "metadata",
            "--format-version", "1",
            "--no-deps",
            "--manifest-path", str(manifest_path),
        ])
        if result.returncode != 0:
            raise ApiParseError(
                f"Failed when running cargo-metadata on {manifest_path}: {result.stderr}"
            )
        try:
            return json.loads(result.stdout)
        except json.JSONDecodeError as e:
            raise ApiParseError(f"Failed when parsing cargo-metadata output: {e}") from e

    def package_metadata(self, manifest_path: Union[str, Path]) -> Dict[str, Any]:
        """The ``cargo metadata`` entry of the package at ``manifest_path``."""
        manifest_path = Path(manifest_path).resolve()
        metadata = self._metadata(manifest_path)
        return _select_package(metadata, manifest_path)

    def json_path(self, manifest_path: Union[str, Path]) -> Path:
        """Run ``cargo doc`` and return the path of the JSON it wrote."""
        manifest_path = Path(manifest_path).resolve()
        metadata = self._metadata(manifest_path)
        package = _select_package(metadata, manifest_path)
        target_dir = Path(metadata["target_directory"]) / "crate-api"

        cmd = ["cargo", f"+{self.options.toolchain}", "doc"]
        if self.options.all_features:
            cmd.append("--all-features")
        cmd.extend(["--manifest-path", str(manifest_path)])
        if not self.options.deps:
            cmd.append("--no-deps")

        env = {
            **os.environ,
            "RUSTDOCFLAGS": RUSTDOCFLAGS,
            # Keep nightly artifacts away from the regular toolchain's
            "CARGO_TARGET_DIR": str(target_dir),
        }
        logger.debug("cargo_doc.run", cmd=cmd, target_dir=str(target_dir))
        result = _run(cmd, env=env)
        if result.returncode != 0:
            raise ApiParseError(
                f"Failed when running cargo-doc on {manifest_path}: {result.stderr}"
            )

        return target_dir / "doc" / f"{_lib_name(package)}.json"

    def dump_raw(self, manifest_path: Union[str, Path]) -> str:
        """Run ``cargo doc`` and return the rustdoc JSON text."""
        json_path = self.json_path(manifest_path)
        try:
            return json_path.read_text(encoding="utf-8")
        except OSError as e:
            raise ApiParseError(f"Failed when loading {json_path}: {e}") from e


def _select_package(metadata: Dict[str, Any], manifest_path: Path) -> Dict[str, Any]:
    packages = metadata.get("packages") or []
    for package in packages:
        if Path(package.get("manifest_path", "")) == manifest_path:
            return package
    if not packages:
        raise ApiParseError(f"cargo-metadata reported no package for {manifest_path}")
    return packages[0]


def _lib_name(package: Dict[str, Any]) -> str:
    for target in package.get("targets", []):
        if "lib" in target.get("kind", []):
            return target["name"].replace("-", "_")
    return package["name"].replace("-", "_")
