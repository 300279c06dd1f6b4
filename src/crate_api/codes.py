"""Severity and category constants for diff records.

These constants prevent stringly-typed classifications and give
severities a total order.
"""

from enum import Enum


class Category(str, Enum):
    """What kind of difference a diff record describes."""

    ADDED = "added"
    REMOVED = "removed"
    CHANGED = "changed"
    UNKNOWN = "unknown"


class Severity(str, Enum):
    """How loudly a difference should be surfaced: allow < report < warn."""

    ALLOW = "allow"
    REPORT = "report"
    WARN = "warn"

    @property
    def rank(self) -> int:
        return _SEVERITY_RANK[self]

    def __lt__(self, other):
        if not isinstance(other, Severity):
            return NotImplemented
        return self.rank < other.rank

    def __le__(self, other):
        if not isinstance(other, Severity):
            return NotImplemented
        return self.rank <= other.rank

    def __gt__(self, other):
        if not isinstance(other, Severity):
            return NotImplemented
        return self.rank > other.rank

    def __ge__(self, other):
        if not isinstance(other, Severity):
            return NotImplemented
        return self.rank >= other.rank


_SEVERITY_RANK = {
    Severity.ALLOW: 0,
    Severity.REPORT: 1,
    Severity.WARN: 2,
}
