"""Normalized API graph: arenas of paths, items and crates addressed by id."""

from __future__ import annotations

from enum import Enum
from typing import Annotated, Dict, List, Literal, Optional, Tuple, Union

from pydantic import BaseModel, ConfigDict, Field

from .version_req import VersionReq

CrateId = int
PathId = int
ItemId = int


class PathKind(str, Enum):
    """Kind of a named location, mirroring rustdoc's item kinds."""

    MODULE = "module"
    EXTERN_CRATE = "extern_crate"
    IMPORT = "import"
    STRUCT = "struct"
    STRUCT_FIELD = "struct_field"
    UNION = "union"
    ENUM = "enum"
    VARIANT = "variant"
    FUNCTION = "function"
    TYPEDEF = "typedef"
    OPAQUE_TY = "opaque_ty"
    CONSTANT = "constant"
    TRAIT = "trait"
    TRAIT_ALIAS = "trait_alias"
    METHOD = "method"
    IMPL = "impl"
    STATIC = "static"
    FOREIGN_TYPE = "foreign_type"
    MACRO = "macro"
    PROC_ATTRIBUTE = "proc_attribute"
    PROC_DERIVE = "proc_derive"
    ASSOC_CONST = "assoc_const"
    ASSOC_TYPE = "assoc_type"
    PRIMITIVE = "primitive"
    KEYWORD = "keyword"


class Span(BaseModel):
    filename: str
    begin: Tuple[int, int]
    end: Tuple[int, int]

    model_config = ConfigDict(extra="forbid")


class Crate(BaseModel):
    """An external crate reachable from the public surface."""
    id: CrateId
    name: str
    version_requirement: Optional[VersionReq] = None

    model_config = ConfigDict(extra="forbid")


class ApiPath(BaseModel):
    """A named location in the module/type hierarchy."""
    id: PathId
    crate_id: Optional[CrateId] = None
    path: str  # "::"-separated, e.g. "mycrate::io::Reader"
    kind: PathKind
    span: Optional[Span] = None
    item_id: Optional[ItemId] = None
    children: List[PathId] = Field(default_factory=list)  # declaration order

    model_config = ConfigDict(extra="forbid")


class Item(BaseModel):
    """Terminal payload referenced (possibly shared) by paths."""
    id: ItemId
    crate_id: Optional[CrateId] = None
    name: Optional[str] = None
    span: Optional[Span] = None

    model_config = ConfigDict(extra="forbid")


class Feature(BaseModel):
    type: Literal["feature"] = "feature"
    name: str
    dependencies: List[str] = Field(default_factory=list)

    model_config = ConfigDict(extra="forbid")


class OptionalDependency(BaseModel):
    type: Literal["optional_dependency"] = "optional_dependency"
    name: str  # activation name (the rename, if any)
    package: Optional[str] = None  # underlying package when renamed

    model_config = ConfigDict(extra="forbid")


AnyFeature = Annotated[Union[Feature, OptionalDependency], Field(discriminator="type")]


class Api(BaseModel):
    """The public surface of one package.

    Ids are indices into their arena. They are only meaningful for the
    ``Api`` that issued them.
    """

    root_id: Optional[PathId] = None
    paths: List[ApiPath] = Field(default_factory=list)
    items: List[Item] = Field(default_factory=list)
    crates: List[Crate] = Field(default_factory=list)
    features: Dict[str, AnyFeature] = Field(default_factory=dict)

    model_config = ConfigDict(extra="forbid")

    def add_path(
        self,
        path: str,
        kind: PathKind,
        *,
        crate_id: Optional[CrateId] = None,
        span: Optional[Span] = None,
        item_id: Optional[ItemId] = None,
        children: Optional[List[PathId]] = None,
    ) -> PathId:
        """Append a path; the first one added becomes the root."""
        path_id = len(self.paths)
        self.paths.append(ApiPath(
            id=path_id,
            crate_id=crate_id,
            path=path,
            kind=kind,
            span=span,
            item_id=item_id,
            children=list(children or []),
        ))
        if self.root_id is None:
            self.root_id = path_id
        return path_id

    def add_item(
        self,
        *,
        crate_id: Optional[CrateId] = None,
        name: Optional[str] = None,
        span: Optional[Span] = None,
    ) -> ItemId:
        item_id = len(self.items)
        self.items.append(Item(id=item_id, crate_id=crate_id, name=name, span=span))
        return item_id

    def add_crate(self, name: str, version_requirement: Optional[VersionReq] = None) -> CrateId:
        crate_id = len(self.crates)
        self.crates.append(Crate(id=crate_id, name=name, version_requirement=version_requirement))
        return crate_id

    def get_path(self, path_id: PathId) -> Optional[ApiPath]:
        if 0 <= path_id < len(self.paths):
            return self.paths[path_id]
        return None

    def get_item(self, item_id: ItemId) -> Optional[Item]:
        if 0 <= item_id < len(self.items):
            return self.items[item_id]
        return None

    def get_crate(self, crate_id: CrateId) -> Optional[Crate]:
        if 0 <= crate_id < len(self.crates):
            return self.crates[crate_id]
        return None

    @property
    def root(self) -> Optional[ApiPath]:
        if self.root_id is None:
            return None
        return self.get_path(self.root_id)
