"""Build the normalized API graph from a rustdoc JSON dump.

The dump is walked breadth-first from the root item. Paths, items and
crates are memoized per raw id, so every raw id is materialized at most
once. Re-exports are collected during the walk and resolved afterwards,
once every target has its path and children filled in.
"""

from collections import deque
from typing import Deque, Dict, List, Optional, Set, Tuple

from crate_api._internal.logging import get_logger

from .api import Api, CrateId, ItemId, PathId, PathKind, Span
from .errors import ApiParseError, CrateApiError, ErrorKind
from .rustdoc_types import (
    EnumInner,
    ImplInner,
    ImportInner,
    ModuleInner,
    RawCrate,
    RawItem,
    RawSpan,
    TerminalInner,
    TraitInner,
)

logger = get_logger(__name__)

# Raw crate id of the package being documented
LOCAL_CRATE_ID = 0

UNKNOWN_CRATE_NAME = "<unknown>"


def _convert_span(span: Optional[RawSpan]) -> Optional[Span]:
    if span is None:
        return None
    return Span(filename=span.filename, begin=span.begin, end=span.end)


class ApiBuilder:
    """One-shot builder turning a ``RawCrate`` into an ``Api``.

    Holds all per-build state (queue, memo tables, deferred imports), so a
    fresh builder is needed for every dump.
    """

    def __init__(self, raw: RawCrate):
        self.raw = raw
        self.api = Api()
        self._crate_ids: Dict[int, CrateId] = {}
        self._path_ids: Dict[str, PathId] = {}
        self._item_ids: Dict[str, ItemId] = {}
        self._visited: Set[str] = set()
        self._deferred_imports: List[Tuple[PathId, str, str]] = []

    def build(self) -> Api:
        """Walk the dump and resolve re-exports."""
        self.traverse()
        self.resolve_deferred_imports()
        logger.debug(
            "api.built",
            root=self.raw.root,
            paths=len(self.api.paths),
            items=len(self.api.items),
            crates=len(self.api.crates),
        )
        return self.api

    def traverse(self) -> None:
        """Breadth-first walk from the root, recording re-exports for later."""
        if self.raw.root not in self.raw.index:
            raise ApiParseError(f"root item '{self.raw.root}' is missing from the rustdoc index")

        queue: Deque[Tuple[Optional[PathId], str]] = deque([(None, self.raw.root)])
        while queue:
            parent_path_id, raw_id = queue.popleft()
            if raw_id in self._visited:
                continue
            self._visited.add(raw_id)

            raw_item = self.raw.index.get(raw_id)
            if raw_item is None:
                # Item of another crate: only the path table knows about it
                summary = self.raw.paths.get(raw_id)
                if summary is None:
                    logger.debug("rustdoc.unknown_id", raw_id=raw_id)
                    continue
                crate_id = self.add_crate(summary.crate_id)
                self.add_path(parent_path_id, raw_id, crate_id)
                continue

            crate_id = self.add_crate(raw_item.crate_id)
            path_id = self.add_path(parent_path_id, raw_id, crate_id)
            if path_id is None:
                path_id = parent_path_id
            self._dispatch(queue, path_id, raw_id, raw_item, crate_id)

    def _dispatch(
        self,
        queue: Deque[Tuple[Optional[PathId], str]],
        path_id: Optional[PathId],
        raw_id: str,
        raw_item: RawItem,
        crate_id: Optional[CrateId],
    ) -> None:
        inner = raw_item.inner
        if isinstance(inner, ModuleInner):
            queue.extend((path_id, child) for child in inner.items)
        elif isinstance(inner, ImportInner):
            if inner.id is None:
                return
            queue.append((path_id, inner.id))
            if path_id is not None:
                self._deferred_imports.append((path_id, inner.name, inner.id))
        elif isinstance(inner, TraitInner):
            queue.extend((path_id, child) for child in inner.items)
        elif isinstance(inner, ImplInner):
            queue.extend((path_id, child) for child in inner.items)
        elif isinstance(inner, EnumInner):
            queue.extend((path_id, child) for child in inner.variants)
        elif isinstance(inner, TerminalInner):
            item_id = self.add_item(raw_id, raw_item, crate_id)
            own_path_id = self._path_ids.get(raw_id)
            if own_path_id is not None:
                self.api.paths[own_path_id].item_id = item_id
        else:
            raise CrateApiError(ErrorKind.UNKNOWN, f"unhandled rustdoc item variant: {type(inner).__name__}")

    def add_crate(self, raw_crate_id: int) -> Optional[CrateId]:
        """Crate entity for a raw crate id; the local crate has none."""
        if raw_crate_id == LOCAL_CRATE_ID:
            return None
        if raw_crate_id in self._crate_ids:
            return self._crate_ids[raw_crate_id]

        external = self.raw.external_crates.get(raw_crate_id)
        name = external.name if external is not None else UNKNOWN_CRATE_NAME
        crate_id = self.api.add_crate(name)
        self._crate_ids[raw_crate_id] = crate_id
        return crate_id

    def add_path(
        self,
        parent_path_id: Optional[PathId],
        raw_id: str,
        crate_id: Optional[CrateId],
    ) -> Optional[PathId]:
        """Path for a raw id, or None if the path table does not name it."""
        if raw_id in self._path_ids:
            return self._path_ids[raw_id]

        summary = self.raw.paths.get(raw_id)
        if summary is None:
            return None

        raw_item = self.raw.index.get(raw_id)
        path_id = self.api.add_path(
            "::".join(summary.path),
            summary.kind,
            crate_id=crate_id,
            span=_convert_span(raw_item.span if raw_item is not None else None),
        )
        if parent_path_id is not None:
            self.api.paths[parent_path_id].children.append(path_id)
        self._path_ids[raw_id] = path_id
        return path_id

    def add_item(self, raw_id: str, raw_item: RawItem, crate_id: Optional[CrateId]) -> ItemId:
        if raw_id in self._item_ids:
            return self._item_ids[raw_id]
        item_id = self.api.add_item(
            crate_id=crate_id,
            name=raw_item.name,
            span=_convert_span(raw_item.span),
        )
        self._item_ids[raw_id] = item_id
        return item_id

    def resolve_deferred_imports(self) -> None:
        """Materialize each recorded re-export as an import path under its owner.

        Consumes the recorded entries, so calling this again is a no-op.
        """
        deferred, self._deferred_imports = self._deferred_imports, []
        for owner_id, name, target_raw_id in deferred:
            target_id = self._path_ids.get(target_raw_id)
            if target_id is None:
                logger.debug("rustdoc.import_unresolved", name=name, target=target_raw_id)
                continue
            owner = self.api.paths[owner_id]
            target = self.api.paths[target_id]
            import_id = self.api.add_path(
                f"{owner.path}::{name}",
                PathKind.IMPORT,
                crate_id=owner.crate_id,
                item_id=target.item_id,
                children=target.children,
            )
            owner.children.append(import_id)


def parse_api(raw: RawCrate) -> Api:
    """Build the API graph for one rustdoc dump."""
    return ApiBuilder(raw).build()
