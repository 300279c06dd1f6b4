"""Compatibility diff between two API graphs.

Each check appends independent ``Diff`` records; the result is unordered
and callers sort it for display. The only check family today compares the
public dependencies of both sides.
"""

from typing import Dict, List, Optional

from pydantic import BaseModel, ConfigDict

from crate_api._internal.logging import get_logger
from crate_api.codes import Category, Severity

from .api import Api, CrateId, ItemId, PathId
from .version_req import is_breaking_change

logger = get_logger(__name__)


class RuleId(BaseModel):
    """Identity and defaults of one kind of difference."""
    name: str
    explanation: str
    category: Category
    default_severity: Severity

    model_config = ConfigDict(frozen=True, extra="forbid")


class Location(BaseModel):
    """Where a difference lives within one side's ``Api``."""
    crate_id: Optional[CrateId] = None
    path_id: Optional[PathId] = None
    item_id: Optional[ItemId] = None

    model_config = ConfigDict(extra="forbid")


class Diff(BaseModel):
    """A single difference between the "before" and "after" APIs."""
    severity: Severity
    rule: RuleId
    before: Optional[Location] = None
    after: Optional[Location] = None

    model_config = ConfigDict(extra="forbid")

    @classmethod
    def from_rule(
        cls,
        rule: RuleId,
        *,
        before: Optional[Location] = None,
        after: Optional[Location] = None,
    ) -> "Diff":
        if before is None and after is None:
            raise ValueError(f"{rule.name}: a diff needs a before or an after location")
        return cls(severity=rule.default_severity, rule=rule, before=before, after=after)

    @property
    def category(self) -> Category:
        return self.rule.category


DEPENDENCY_ADDED = RuleId(
    name="dependency-added",
    explanation="Public dependency was added",
    category=Category.ADDED,
    default_severity=Severity.REPORT,
)

# Removing a public dependency is a consequence of API changes, not a cause
DEPENDENCY_REMOVED = RuleId(
    name="dependency-removed",
    explanation="Public dependency was removed",
    category=Category.REMOVED,
    default_severity=Severity.ALLOW,
)

DEPENDENCY_AMBIGUOUS = RuleId(
    name="dependency-ambiguous",
    explanation="Public dependency's version requirement is unknown, could not check compatibility",
    category=Category.UNKNOWN,
    default_severity=Severity.ALLOW,
)

DEPENDENCY_REQUIREMENT = RuleId(
    name="dependency-requirement",
    explanation="Public dependency's version requirement changed in a breaking way",
    category=Category.CHANGED,
    default_severity=Severity.WARN,
)

RULES = (
    DEPENDENCY_ADDED,
    DEPENDENCY_REMOVED,
    DEPENDENCY_AMBIGUOUS,
    DEPENDENCY_REQUIREMENT,
)


def diff(before: Api, after: Api) -> List[Diff]:
    """Compare two APIs and return every difference found."""
    changes: List[Diff] = []
    diff_into(before, after, changes)
    return changes


def diff_into(before: Api, after: Api, changes: List[Diff]) -> None:
    """Append the differences between ``before`` and ``after`` to ``changes``."""
    start = len(changes)
    diff_dependencies(before, after, changes)
    logger.debug("diff.complete", diffs=len(changes) - start)


def _crates_by_name(api: Api) -> Dict[str, CrateId]:
    # Two crates sharing a name cannot be told apart; the first one wins
    crate_ids: Dict[str, CrateId] = {}
    for crate in api.crates:
        crate_ids.setdefault(crate.name, crate.id)
    return crate_ids


def diff_dependencies(before: Api, after: Api, changes: List[Diff]) -> None:
    """Public dependency additions, removals and breaking requirement changes."""
    before_crates = _crates_by_name(before)
    after_crates = _crates_by_name(after)

    for name, crate_id in before_crates.items():
        if name not in after_crates:
            changes.append(Diff.from_rule(
                DEPENDENCY_REMOVED,
                before=Location(crate_id=crate_id),
            ))

    for name, crate_id in after_crates.items():
        if name not in before_crates:
            changes.append(Diff.from_rule(
                DEPENDENCY_ADDED,
                after=Location(crate_id=crate_id),
            ))

    for name, before_id in before_crates.items():
        after_id = after_crates.get(name)
        if after_id is None:
            continue
        before_req = before.crates[before_id].version_requirement
        after_req = after.crates[after_id].version_requirement
        locations = {
            "before": Location(crate_id=before_id),
            "after": Location(crate_id=after_id),
        }

        if before_req is None or after_req is None:
            changes.append(Diff.from_rule(DEPENDENCY_AMBIGUOUS, **locations))
        elif before_req == after_req:
            continue
        elif is_breaking_change(before_req, after_req):
            changes.append(Diff.from_rule(DEPENDENCY_REQUIREMENT, **locations))
