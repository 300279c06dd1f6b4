"""Cargo version requirements and their breaking-interval algebra.

A requirement such as ``">=1.2, <2"`` is a conjunction of comparators.
For compatibility checks each comparator is reduced to a band using the
rule that the leftmost non-zero component is the highest one allowed to
vary while staying compatible: ``^1.4.2`` and ``^1.9`` both pin to
``(1, 0, 0)``, ``^0.3.1`` pins to ``(0, 3, 0)``.
"""

import re
import sys
from enum import Enum
from typing import List, NamedTuple, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field, model_serializer, model_validator

from .errors import CrateApiError, ErrorKind

Version = Tuple[int, int, int]

MIN_VERSION: Version = (0, 0, 0)
MAX_VERSION: Version = (sys.maxsize, sys.maxsize, sys.maxsize)

_WILDCARDS = ("*", "x", "X")
_COMPARATOR_RE = re.compile(
    r"""^(?P<op>=|>=|>|<=|<|~|\^)?\s*
        (?P<major>\d+|[*xX])
        (?:\.(?P<minor>\d+|[*xX]))?
        (?:\.(?P<patch>\d+|[*xX]))?
        (?:-(?P<pre>[0-9A-Za-z.-]+))?
        (?:\+(?P<build>[0-9A-Za-z.-]+))?$""",
    re.VERBOSE,
)


class Op(str, Enum):
    """Comparator operator."""

    EXACT = "="
    GREATER = ">"
    GREATER_EQ = ">="
    LESS = "<"
    LESS_EQ = "<="
    TILDE = "~"
    CARET = "^"
    WILDCARD = "*"


class BreakingInterval(NamedTuple):
    lower: Version
    upper: Version


class Comparator(BaseModel):
    """A single ``op major[.minor[.patch]][-pre]`` term."""

    op: Op
    major: int = Field(..., ge=0)
    minor: Optional[int] = Field(None, ge=0)
    patch: Optional[int] = Field(None, ge=0)
    pre: str = ""

    model_config = ConfigDict(frozen=True, extra="forbid")

    def __str__(self) -> str:
        if self.op is Op.WILDCARD:
            if self.minor is None:
                return f"{self.major}.*"
            return f"{self.major}.{self.minor}.*"
        text = f"{self.op.value}{self.major}"
        if self.minor is not None:
            text += f".{self.minor}"
        if self.patch is not None:
            text += f".{self.patch}"
        if self.pre:
            text += f"-{self.pre}"
        return text

    def _pin(self) -> Optional[Tuple[Version, int]]:
        """Pin point and the index of the component that is allowed to vary."""
        if self.major >= 1:
            return (self.major, 0, 0), 0
        if self.minor is not None and self.minor >= 1:
            return (0, self.minor, 0), 1
        if self.patch is not None:
            return (0, 0, self.patch), 2
        return None

    def bounds(self) -> Tuple[Optional[Version], Optional[Version]]:
        """Lower and upper band this comparator contributes (None = unbounded)."""
        pinned = self._pin()
        if pinned is None:
            return None, None
        version, index = pinned

        if self.op in (Op.EXACT, Op.GREATER_EQ, Op.TILDE, Op.CARET, Op.WILDCARD):
            return version, version
        if self.op is Op.GREATER:
            return _band(version, index, 1), None
        if self.op is Op.LESS:
            return None, _band(version, index, -1)
        if self.op is Op.LESS_EQ:
            return None, version
        raise CrateApiError(ErrorKind.UNKNOWN, f"unhandled operator {self.op!r}")


def _band(version: Version, index: int, delta: int) -> Version:
    """Move the pinned component by ``delta`` (floored at zero) and zero the rest."""
    parts = [0, 0, 0]
    parts[index] = max(version[index] + delta, 0)
    return (parts[0], parts[1], parts[2])


def _parse_number(value: Optional[str]) -> Optional[int]:
    if value is None or value in _WILDCARDS:
        return None
    return int(value)


def parse_comparator(text: str) -> Optional[Comparator]:
    """Parse one comparator; a lone wildcard yields None (matches anything)."""
    text = text.strip()
    if text in _WILDCARDS:
        return None

    match = _COMPARATOR_RE.match(text)
    if match is None:
        raise ValueError(f"invalid version requirement term: '{text}'")

    op_text = match.group("op")
    major_text = match.group("major")
    minor_text = match.group("minor")
    patch_text = match.group("patch")
    pre = match.group("pre") or ""

    if major_text in _WILDCARDS:
        raise ValueError(f"wildcard major version must stand alone: '{text}'")
    if minor_text in _WILDCARDS and patch_text is not None and patch_text not in _WILDCARDS:
        raise ValueError(f"unexpected patch version after wildcard: '{text}'")

    wildcard = minor_text in _WILDCARDS or patch_text in _WILDCARDS
    if wildcard and pre:
        raise ValueError(f"pre-release not allowed with wildcard: '{text}'")
    if pre and patch_text is None:
        raise ValueError(f"pre-release requires a full version: '{text}'")

    if wildcard and op_text in (None, "="):
        op = Op.WILDCARD
    elif op_text is None:
        op = Op.CARET
    else:
        op = Op(op_text)

    return Comparator(
        op=op,
        major=int(major_text),
        minor=_parse_number(minor_text),
        patch=_parse_number(patch_text),
        pre=pre,
    )


class VersionReq(BaseModel):
    """A conjunction of comparators; no comparators means ``*``.

    Serializes to (and validates from) its canonical string form so that
    an ``Api`` dump reads ``"version_requirement": "^1.0"``.
    """

    comparators: List[Comparator] = Field(default_factory=list)

    model_config = ConfigDict(frozen=True)

    @model_validator(mode="before")
    @classmethod
    def _from_text(cls, data):
        if isinstance(data, str):
            return {"comparators": _parse_comparators(data)}
        return data

    @model_serializer
    def _to_text(self) -> str:
        return str(self)

    @classmethod
    def parse(cls, text: str) -> "VersionReq":
        """Parse a Cargo requirement string (raises ValueError on bad input)."""
        return cls(comparators=_parse_comparators(text))

    def __str__(self) -> str:
        if not self.comparators:
            return "*"
        return ", ".join(str(c) for c in self.comparators)

    def breaking_interval(self) -> BreakingInterval:
        """Intersect the bands of all comparators."""
        lower = MIN_VERSION
        upper = MAX_VERSION
        for comparator in self.comparators:
            low, high = comparator.bounds()
            if low is not None:
                lower = max(lower, low)
            if high is not None:
                upper = min(upper, high)
        return BreakingInterval(lower, upper)


def _parse_comparators(text: str) -> List[Comparator]:
    if not isinstance(text, str) or not text.strip():
        raise ValueError("empty version requirement")
    comparators = []
    for part in text.split(","):
        comparator = parse_comparator(part)
        if comparator is not None:
            comparators.append(comparator)
    return comparators


def is_breaking_change(before: VersionReq, after: VersionReq) -> bool:
    """True when ``after`` raises the lower band or lowers the upper band."""
    old = before.breaking_interval()
    new = after.breaking_interval()
    return new.lower > old.lower or new.upper < old.upper
