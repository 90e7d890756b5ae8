"""
Workflow Audit Sink: append-only writes to ``log_team_workflow``.

insert() is the only mutation this module offers.  It flushes inside the
caller's transaction so the audit row commits or rolls back together
with the form mutation it describes.
"""

import logging

from sqlalchemy import select

from app.models.workflow import WorkflowLogEntry

logger = logging.getLogger(__name__)


def insert(
    session,
    scope,
    *,
    step_no: int,
    crud: int,
    actor_token: str,
    ci_id: str | None = None,
    action_id: int | None = None,
    deviation_id: int | None = None,
    function_id: int | None = None,
    info: str | None = None,
) -> WorkflowLogEntry:
    entry = WorkflowLogEntry(
        access_id=scope.access_id,
        team_no=scope.team_no,
        outline_id=scope.outline_id,
        exercise_no=scope.exercise_no,
        theme_id=scope.theme_id or None,
        scenario_id=scope.scenario_id or None,
        step_no=int(step_no),
        crud=int(crud),
        ci_id=ci_id,
        action_id=action_id,
        deviation_id=deviation_id,
        function_id=function_id,
        info=info,
        actor_token=actor_token,
    )
    session.add(entry)
    session.flush()
    logger.debug(
        "Workflow event step=%s crud=%s info=%s", entry.step_no, entry.crud, info,
        extra=scope.as_log_extra(),
    )
    return entry


def read_entries(session, scope, *, step_no: int | None = None) -> list[dict]:
    """Oldest-first audit trail for one scope, optionally narrowed to a step."""
    stmt = select(WorkflowLogEntry).where(
        WorkflowLogEntry.access_id == scope.access_id,
        WorkflowLogEntry.team_no == scope.team_no,
        WorkflowLogEntry.outline_id == scope.outline_id,
        WorkflowLogEntry.exercise_no == scope.exercise_no,
    )
    if step_no is not None:
        stmt = stmt.where(WorkflowLogEntry.step_no == step_no)
    stmt = stmt.order_by(WorkflowLogEntry.id.asc())
    return [row.to_dict() for row in session.scalars(stmt)]
