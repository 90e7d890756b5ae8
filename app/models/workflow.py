"""
Exercise Forms Sync
Workflow domain model.

Models:
    - WorkflowLogEntry: immutable, append-only trail of discrete team actions
      (symptom/fact/cause/action created, deleted, prioritised).

Downstream analytics and the instructor polling view read this table; the
forms engine only ever inserts into it, inside the same transaction as the
mutation it describes.
"""

import enum
from datetime import datetime, timezone

from app.models import db


# ── Constants ────────────────────────────────────────────────────────────────


class WorkflowCrud(enum.IntEnum):
    """Numeric CRUD-kind codes stored in ``log_team_workflow.crud``."""

    CREATE = 1
    DELETE = 4
    PRIORITY = 9


# Exercise step each audited form belongs to (y-axis of the workflow chart).
WORKFLOW_STEPS = {
    "symptoms": 1,
    "facts": 2,
    "causes": 3,
    "actions": 4,
}


class WorkflowLogEntry(db.Model):
    """
    Immutable workflow event.

    One row per meaningful mutation.  Correlation columns (ci_id,
    action_id, deviation_id, function_id, info) are filled per form type.
    """

    __tablename__ = "log_team_workflow"
    __table_args__ = (
        db.Index(
            "idx_workflow_scope",
            "access_id", "team_no", "outline_id", "exercise_no",
        ),
        db.Index("idx_workflow_ts", "created_at"),
    )

    id = db.Column(db.Integer, primary_key=True)
    access_id = db.Column(db.Integer, nullable=False)
    team_no = db.Column(db.Integer, nullable=False)
    outline_id = db.Column(db.Integer, nullable=False)
    exercise_no = db.Column(db.Integer, nullable=False)
    theme_id = db.Column(db.Integer, nullable=True)
    scenario_id = db.Column(db.Integer, nullable=True)

    step_no = db.Column(db.Integer, nullable=False, comment="1 symptoms | 2 facts | 3 causes | 4 actions")
    crud = db.Column(db.Integer, nullable=False, comment="1 create | 4 delete | 9 priority")

    ci_id = db.Column(db.String(60), nullable=True)
    action_id = db.Column(db.Integer, nullable=True)
    deviation_id = db.Column(db.Integer, nullable=True)
    function_id = db.Column(db.Integer, nullable=True)
    info = db.Column(db.String(255), nullable=True)

    actor_token = db.Column(db.String(128), nullable=True)
    created_at = db.Column(
        db.DateTime(timezone=True), nullable=False,
        default=lambda: datetime.now(timezone.utc),
    )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "access_id": self.access_id,
            "team_no": self.team_no,
            "outline_id": self.outline_id,
            "exercise_no": self.exercise_no,
            "theme_id": self.theme_id,
            "scenario_id": self.scenario_id,
            "step_no": self.step_no,
            "crud": self.crud,
            "ci_id": self.ci_id,
            "action_id": self.action_id,
            "deviation_id": self.deviation_id,
            "function_id": self.function_id,
            "info": self.info,
            "actor_token": self.actor_token,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }

    def __repr__(self):
        return f"<WorkflowLogEntry {self.id}: step={self.step_no} crud={self.crud}>"
