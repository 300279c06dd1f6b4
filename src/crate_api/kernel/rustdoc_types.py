"""Pydantic models for the rustdoc JSON dump (only the fields the builder reads)."""

from __future__ import annotations

import json
from typing import Annotated, Any, Dict, List, Literal, Optional, Tuple, Union

from pydantic import BaseModel, BeforeValidator, ConfigDict, Field, ValidationError, model_validator

from .api import PathKind
from .errors import ApiParseError


def _coerce_id(value: Any) -> Any:
    # Newer format versions use integer ids.
    if isinstance(value, int) and not isinstance(value, bool):
        return str(value)
    return value


RawId = Annotated[str, BeforeValidator(_coerce_id)]

# Kind names that changed between rustdoc format versions
_KIND_ALIASES = {
    "use": "import",
    "type_alias": "typedef",
}


def _normalize_kind(kind: str) -> str:
    return _KIND_ALIASES.get(kind, kind)


class RawSpan(BaseModel):
    filename: str
    begin: Tuple[int, int]
    end: Tuple[int, int]

    model_config = ConfigDict(extra="ignore")


class ModuleInner(BaseModel):
    kind: Literal["module"]
    items: List[RawId] = Field(default_factory=list)

    model_config = ConfigDict(extra="ignore")


class ImportInner(BaseModel):
    kind: Literal["import"]
    name: str
    id: Optional[RawId] = None  # None for primitives and unresolvable targets

    model_config = ConfigDict(extra="ignore")


class TraitInner(BaseModel):
    kind: Literal["trait"]
    items: List[RawId] = Field(default_factory=list)

    model_config = ConfigDict(extra="ignore")


class ImplInner(BaseModel):
    kind: Literal["impl"]
    items: List[RawId] = Field(default_factory=list)

    model_config = ConfigDict(extra="ignore")


class EnumInner(BaseModel):
    kind: Literal["enum"]
    variants: List[RawId] = Field(default_factory=list)

    model_config = ConfigDict(extra="ignore")


class TerminalInner(BaseModel):
    """Any item kind that has no members the builder follows."""
    kind: Literal[
        "extern_crate",
        "struct",
        "struct_field",
        "union",
        "variant",
        "function",
        "typedef",
        "opaque_ty",
        "constant",
        "trait_alias",
        "method",
        "static",
        "foreign_type",
        "macro",
        "proc_attribute",
        "proc_derive",
        "assoc_const",
        "assoc_type",
        "primitive",
        "keyword",
    ]

    model_config = ConfigDict(extra="ignore")


RawInner = Annotated[
    Union[ModuleInner, ImportInner, TraitInner, ImplInner, EnumInner, TerminalInner],
    Field(discriminator="kind"),
]


class RawItem(BaseModel):
    """One entry of the rustdoc ``index``.

    Accepts both encodings of the item variant: the flat one
    (``"kind": "module", "inner": {...}``) and the externally tagged one
    (``"inner": {"module": {...}}``).
    """

    id: Optional[RawId] = None
    crate_id: int = 0
    name: Optional[str] = None
    span: Optional[RawSpan] = None
    docs: Optional[str] = None
    inner: RawInner

    model_config = ConfigDict(extra="ignore")

    @model_validator(mode="before")
    @classmethod
    def _tag_inner(cls, data: Any) -> Any:
        if not isinstance(data, dict):
            return data
        data = dict(data)
        inner = data.get("inner")
        kind = data.pop("kind", None)
        if kind is None and isinstance(inner, dict) and len(inner) == 1 and "kind" not in inner:
            ((kind, inner),) = inner.items()
        elif kind is None and isinstance(inner, str):
            kind, inner = inner, {}
        if kind is None:
            return data
        payload = inner if isinstance(inner, dict) else {}
        data["inner"] = {**payload, "kind": _normalize_kind(kind)}
        return data


class RawItemSummary(BaseModel):
    """Entry of the rustdoc ``paths`` table."""
    crate_id: int = 0
    path: List[str]
    kind: PathKind

    model_config = ConfigDict(extra="ignore")

    @model_validator(mode="before")
    @classmethod
    def _alias_kind(cls, data: Any) -> Any:
        if isinstance(data, dict) and isinstance(data.get("kind"), str):
            data = {**data, "kind": _normalize_kind(data["kind"])}
        return data


class RawExternalCrate(BaseModel):
    name: str
    html_root_url: Optional[str] = None

    model_config = ConfigDict(extra="ignore")


class RawCrate(BaseModel):
    """Top-level rustdoc JSON document."""
    root: RawId
    crate_version: Optional[str] = None
    includes_private: bool = False
    index: Dict[RawId, RawItem]
    paths: Dict[RawId, RawItemSummary] = Field(default_factory=dict)
    external_crates: Dict[int, RawExternalCrate] = Field(default_factory=dict)
    format_version: Optional[int] = None

    model_config = ConfigDict(extra="ignore")


def parse_rustdoc(data: Any) -> RawCrate:
    """Validate a decoded rustdoc JSON document (raises ApiParseError)."""
    if not isinstance(data, dict):
        raise ApiParseError(f"rustdoc JSON must be an object, got {type(data).__name__}")
    try:
        return RawCrate.model_validate(data)
    except ValidationError as e:
        raise ApiParseError(f"Failed when parsing rustdoc JSON: {e}") from e


def parse_rustdoc_json(text: Union[str, bytes]) -> RawCrate:
    """Decode and validate rustdoc JSON text (raises ApiParseError)."""
    try:
        data = json.loads(text)
    except json.JSONDecodeError as e:
        raise ApiParseError(f"Failed when parsing rustdoc JSON: {e}") from e
    return parse_rustdoc(data)
