"""Markdown and JSON rendering of APIs and diffs."""

import json
from typing import Any, List, Optional, Sequence

from pydantic import BaseModel

from crate_api.codes import Category, Severity
from crate_api.kernel.api import Api, ApiPath, Feature, PathKind
from crate_api.kernel.diff import DEPENDENCY_REQUIREMENT, Diff, Location

_KIND_ORDER = {kind: index for index, kind in enumerate(PathKind)}
_CATEGORY_ORDER = {category: index for index, category in enumerate(Category)}

_SEVERITY_HEADINGS = {
    Severity.WARN: "## Breaking Changes",
    Severity.REPORT: "## Changes",
}

_CATEGORY_LABELS = {
    Category.ADDED: "**Added**",
    Category.REMOVED: "**Removed**",
    Category.CHANGED: "**Changed**",
}


def _sort_key(path: ApiPath):
    return (_KIND_ORDER[path.kind], path.path)


def _crate_line(api: Api, path: ApiPath, lines: List[str]) -> None:
    if path.crate_id is None:
        return
    crate = api.get_crate(path.crate_id)
    if crate is not None:
        lines.append(f"*from crate `{crate.name}`*")
        lines.append("")


def render_api_markdown(api: Api) -> str:
    """Render the path tree, feature flags and public dependencies."""
    root = api.root
    if root is None:
        return ""

    lines: List[str] = []

    # Re-exports share children with their target, so a path can be reached twice
    rendered = set()
    stack = [root.id]
    while stack:
        path_id = stack.pop()
        if path_id in rendered:
            continue
        rendered.add(path_id)
        path = api.paths[path_id]
        children = sorted((api.paths[child] for child in path.children), key=_sort_key)

        if path.kind is PathKind.MODULE:
            depth = path.path.count("::") + 1
            lines.append(f"{'#' * depth} `{path.path}`")
            lines.append("")
            _crate_line(api, path, lines)
            modules = [child for child in children if child.kind is PathKind.MODULE]
            other = [child for child in children if child.kind is not PathKind.MODULE]
            # Non-module members are listed before nested modules
            stack.extend(child.id for child in reversed(modules))
            stack.extend(child.id for child in reversed(other))
        else:
            lines.append(f"**`{path.path}`** *({path.kind.value})*")
            lines.append("")
            _crate_line(api, path, lines)
            stack.extend(child.id for child in reversed(children))

    if api.features:
        lines.append("## Feature Flags")
        lines.append("")
        for feature in api.features.values():
            if isinstance(feature, Feature):
                lines.append(f"`{feature.name}`")
                for dependency in feature.dependencies:
                    lines.append(f"- `{dependency}`")
            elif feature.package is not None:
                lines.append(f"`{feature.name}` *(dependency `{feature.package}`)*")
            else:
                lines.append(f"`{feature.name}` *(dependency)*")
            lines.append("")

    if api.crates:
        lines.append("## Public Dependencies")
        lines.append("")
        for crate in api.crates:
            requirement = crate.version_requirement
            version = str(requirement) if requirement is not None else "unknown"
            lines.append(f"- `{crate.name}` (version {version})")
        lines.append("")

    return "\n".join(lines)


def location_name(api: Api, location: Optional[Location]) -> Optional[str]:
    """Most specific display name for a location, if it resolves."""
    if location is None:
        return None
    if location.path_id is not None:
        path = api.get_path(location.path_id)
        if path is not None:
            return path.path
    if location.item_id is not None:
        item = api.get_item(location.item_id)
        if item is not None and item.name is not None:
            return item.name
    if location.crate_id is not None:
        crate = api.get_crate(location.crate_id)
        if crate is not None:
            return crate.name
    return None


def sort_diffs(diffs: Sequence[Diff]) -> List[Diff]:
    """Loudest first, then by category and rule name."""
    return sorted(
        diffs,
        key=lambda d: (-d.severity.rank, _CATEGORY_ORDER[d.category], d.rule.name),
    )


def _requirement_line(before: Api, after: Api, diff: Diff) -> str:
    before_crate = before.crates[diff.before.crate_id]
    after_crate = after.crates[diff.after.crate_id]
    return (
        f"- `{after_crate.name}` (public dependency): changed version requirement "
        f"from {before_crate.version_requirement} to {after_crate.version_requirement}"
    )


def render_diff_markdown(before: Api, after: Api, diffs: Sequence[Diff]) -> str:
    """Render reportable diffs grouped by severity, then category.

    Allow-severity diffs are not rendered.
    """
    lines: List[str] = []
    last_severity: Optional[Severity] = None
    last_category: Optional[Category] = None

    for diff in sort_diffs(d for d in diffs if d.severity > Severity.ALLOW):
        if diff.severity != last_severity:
            if lines:
                lines.append("")
            lines.append(_SEVERITY_HEADINGS[diff.severity])
            lines.append("")
            last_severity = diff.severity
            last_category = None
        if diff.category != last_category:
            label = _CATEGORY_LABELS.get(diff.category)
            if label is not None:
                lines.append(label)
            last_category = diff.category

        if diff.rule == DEPENDENCY_REQUIREMENT:
            lines.append(_requirement_line(before, after, diff))
        else:
            name = location_name(after, diff.after) or location_name(before, diff.before)
            lines.append(f"- `{name}`: {diff.rule.explanation}")

    return "\n".join(lines)


def to_jsonable(value: Any) -> Any:
    if isinstance(value, BaseModel):
        return value.model_dump(mode="json")
    if isinstance(value, (list, tuple)):
        return [to_jsonable(v) for v in value]
    return value


def render_json(value: Any) -> str:
    """Pretty JSON for a model or a list of models."""
    return json.dumps(to_jsonable(value), indent=2, ensure_ascii=False)
