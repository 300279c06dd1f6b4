"""Error types raised by the crate-api kernel."""

from enum import Enum


class ErrorKind(str, Enum):
    """Classification of kernel failures."""

    API_PARSE = "api_parse"
    UNKNOWN = "unknown"


class CrateApiError(Exception):
    """Base exception for crate-api failures.

    The message is the human-readable context; the underlying cause, if
    any, is chained with ``raise ... from``.
    """

    def __init__(self, kind: ErrorKind, context: str):
        self.kind = kind
        self.context = context
        super().__init__(context)


class ApiParseError(CrateApiError):
    """Raised when a rustdoc dump or package manifest cannot be understood."""

    def __init__(self, context: str):
        super().__init__(ErrorKind.API_PARSE, context)
