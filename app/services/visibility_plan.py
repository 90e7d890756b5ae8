"""
Visibility Plan Resolver.

Combines the static form plan (``form_rules`` content table) with the
runtime iterations policy.  Nothing here is persisted: the plan is
recomputed on every request from the exercise's current progress.

Iterations state machine, first matching rule wins:

    step_no < 60                 → HIDDEN
    number_of_causes < 2         → HIDDEN
    has_causality                → HIDDEN
    60 <= step_no < 100          → ENABLED  (static mode kept)
    step_no >= 100               → LOCKED   (mode forced to 3)
"""

from __future__ import annotations

import enum
from dataclasses import dataclass, field, replace

from app.repositories import form_rules

ITERATIONS_FORM = "iterations"
ITERATIONS_MIN_STEP = 60
ITERATIONS_LOCK_STEP = 100
ITERATIONS_MIN_CAUSES = 2


class VisibilityMode(enum.IntEnum):
    HIDDEN = 0
    ENABLED = 1
    LIMITED = 2
    LOCKED = 3


class IterationsState(enum.Enum):
    HIDDEN = "hidden"
    ENABLED = "enabled"
    LOCKED = "locked"


@dataclass(frozen=True)
class VisibilityPlanEntry:
    form_code: str
    mode: VisibilityMode
    component: str = ""
    sort_order: int = 0

    def to_dict(self) -> dict:
        return {
            "form_code": self.form_code,
            "mode": int(self.mode),
            "component": self.component,
            "sort_order": self.sort_order,
        }


@dataclass(frozen=True)
class VisibilityPlan:
    """Ordered renderable entries plus the full ``{form_code: mode}`` map."""

    entries: tuple[VisibilityPlanEntry, ...] = ()
    visibility: dict[str, int] = field(default_factory=dict)

    @property
    def form_codes(self) -> list[str]:
        return [e.form_code for e in self.entries]

    def to_dict(self) -> dict:
        return {
            "plan": [e.to_dict() for e in self.entries],
            "visibility": dict(self.visibility),
        }


def resolve_iterations_state(step_no: int, number_of_causes: int, has_causality: bool) -> IterationsState:
    if step_no < ITERATIONS_MIN_STEP:
        return IterationsState.HIDDEN
    if number_of_causes < ITERATIONS_MIN_CAUSES:
        return IterationsState.HIDDEN
    if has_causality:
        return IterationsState.HIDDEN
    if step_no < ITERATIONS_LOCK_STEP:
        return IterationsState.ENABLED
    return IterationsState.LOCKED


def apply_iterations_policy(entries, state: IterationsState) -> list[VisibilityPlanEntry]:
    """Return a new entry list with the iterations override applied."""
    result = []
    for entry in entries:
        if entry.form_code != ITERATIONS_FORM:
            result.append(entry)
        elif state is IterationsState.HIDDEN:
            continue
        elif state is IterationsState.LOCKED:
            # Locked overrides the static mode, hidden rules included.
            result.append(replace(entry, mode=VisibilityMode.LOCKED))
        else:
            result.append(entry)
    return result


def resolve_visibility_plan(
    session,
    skill_id: int,
    format_id: int,
    step_no: int,
    template_id: int = 0,
    number_of_causes: int = 0,
    has_causality: bool = False,
) -> VisibilityPlan:
    rules = form_rules.find_plan_rules(session, skill_id, format_id, step_no, template_id)
    static_entries = [
        VisibilityPlanEntry(
            form_code=r["form_code"],
            mode=VisibilityMode(r["mode"]),
            component=r["component"],
            sort_order=r["sort_order"],
        )
        for r in rules
    ]

    state = resolve_iterations_state(step_no, number_of_causes, has_causality)
    entries = apply_iterations_policy(static_entries, state)

    visibility = {e.form_code: int(e.mode) for e in static_entries}
    visibility.update({e.form_code: int(e.mode) for e in entries})
    if state is IterationsState.HIDDEN:
        visibility[ITERATIONS_FORM] = int(VisibilityMode.HIDDEN)
    visibility.setdefault(ITERATIONS_FORM, int(VisibilityMode.HIDDEN))

    return VisibilityPlan(
        entries=tuple(e for e in entries if e.mode > VisibilityMode.HIDDEN),
        visibility=visibility,
    )
