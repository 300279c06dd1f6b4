"""crate-api: public API extraction and compatibility diffing for Rust packages."""

from importlib.metadata import version, PackageNotFoundError

try:
    __version__ = version("crate-api")
except PackageNotFoundError:
    __version__ = "dev"

# Public API exports
# Note: diff is exported from crate_api.api, not from root
# This avoids a name conflict with crate_api.kernel.diff
from crate_api.api import build_api, load_api, load_manifest, load_rustdoc, DiffResult
from crate_api.codes import Category, Severity
from crate_api.kernel.api import Api
from crate_api.kernel.errors import ApiParseError, CrateApiError

__all__ = [
    "__version__",
    "build_api",
    "load_api",
    "load_manifest",
    "load_rustdoc",
    "Api",
    "DiffResult",
    "Category",
    "Severity",
    "ApiParseError",
    "CrateApiError",
]
