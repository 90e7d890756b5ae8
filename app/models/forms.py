"""
Exercise Forms Sync
Form domain models.

Models:
    - FormVersion: per (scope, form_key) optimistic-concurrency counter
    - Symptom, Fact, Cause, Action: multi-row forms, one row per entry
    - Iteration, Description, Attachment: singleton rows per (scope, theme, scenario)
    - Reflection: singleton row per scope
    - SpecificationField: sparse map, one row per whitelisted field name
"""

from datetime import datetime, timezone

from app.models import db
from app.models.base import ExerciseScopedModel


# ── Versions ─────────────────────────────────────────────────────────────────


class FormVersion(db.Model):
    """
    Monotonic version counter for one form of one exercise scope.

    Absent row ⇒ version 0 ("never written").  Only the version lock
    repository mutates this table; a write to form X never touches the
    row of form Y.
    """

    __tablename__ = "problem_form_versions"

    access_id = db.Column(db.Integer, primary_key=True, autoincrement=False)
    team_no = db.Column(db.Integer, primary_key=True, autoincrement=False)
    outline_id = db.Column(db.Integer, primary_key=True, autoincrement=False)
    exercise_no = db.Column(db.Integer, primary_key=True, autoincrement=False)
    form_key = db.Column(db.String(40), primary_key=True)

    version = db.Column(db.Integer, nullable=False, default=0)
    actor_token = db.Column(db.String(128), nullable=True)
    updated_at = db.Column(
        db.DateTime(timezone=True), nullable=False,
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )

    def to_dict(self) -> dict:
        return {
            "form_key": self.form_key,
            "version": self.version,
            "actor_token": self.actor_token,
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
        }

    def __repr__(self):
        return f"<FormVersion {self.form_key}={self.version}>"


# ── Multi-row forms ──────────────────────────────────────────────────────────


class Symptom(ExerciseScopedModel):
    """Observed deviation of a function; at most one per scope is flagged priority."""

    __tablename__ = "problem_form_symptoms"
    __table_args__ = (
        ExerciseScopedModel.scope_composite_index("problem_form_symptoms"),
    )

    id = db.Column(db.Integer, primary_key=True)
    theme_id = db.Column(db.Integer, nullable=True)
    scenario_id = db.Column(db.Integer, nullable=True)
    deviation_id = db.Column(db.Integer, nullable=False, default=0)
    function_id = db.Column(db.Integer, nullable=False, default=0)
    clarify_text = db.Column(db.Text, nullable=False, default="")
    is_priority = db.Column(db.Boolean, nullable=False, default=False)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "deviation_id": self.deviation_id,
            "function_id": self.function_id,
            "clarify_text": self.clarify_text,
            "is_priority": int(bool(self.is_priority)),
        }

    def __repr__(self):
        return f"<Symptom {self.id}: dev={self.deviation_id} fn={self.function_id}>"


class Fact(ExerciseScopedModel):
    """Fact collected by the team, keyed by a content meta key."""

    __tablename__ = "problem_form_facts"
    __table_args__ = (
        ExerciseScopedModel.scope_composite_index("problem_form_facts"),
    )

    id = db.Column(db.Integer, primary_key=True)
    theme_id = db.Column(db.Integer, nullable=True)
    scenario_id = db.Column(db.Integer, nullable=True)
    key_meta = db.Column(
        db.String(60), nullable=False, default="",
        comment="Content key (other_ok | other_not are free-form and not audited)",
    )
    key_value = db.Column(db.String(255), nullable=False, default="")
    text = db.Column(db.Text, nullable=False, default="")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "key_meta": self.key_meta,
            "key_value": self.key_value,
            "text": self.text,
        }

    def __repr__(self):
        return f"<Fact {self.id}: {self.key_meta}>"


class Cause(ExerciseScopedModel):
    """Possible cause; ``list_no`` is a dense 1..N ordering within the scope."""

    __tablename__ = "problem_form_causes"
    __table_args__ = (
        ExerciseScopedModel.scope_composite_index("problem_form_causes", "list_no"),
    )

    id = db.Column(db.Integer, primary_key=True)
    theme_id = db.Column(db.Integer, nullable=True)
    scenario_id = db.Column(db.Integer, nullable=True)
    ci_id = db.Column(db.String(60), nullable=False, default="")
    deviation_text = db.Column(db.Text, nullable=False, default="")
    likelihood_text = db.Column(db.Text, nullable=False, default="")
    evidence_text = db.Column(db.Text, nullable=False, default="")
    is_proven = db.Column(db.Boolean, nullable=False, default=False)
    is_disproven = db.Column(db.Boolean, nullable=False, default=False)
    test_what = db.Column(db.Text, nullable=False, default="")
    test_where = db.Column(db.Text, nullable=False, default="")
    test_when = db.Column(db.Text, nullable=False, default="")
    test_extent = db.Column(db.Text, nullable=False, default="")
    list_no = db.Column(db.Integer, nullable=False, default=1)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "ci_id": self.ci_id,
            "deviation_text": self.deviation_text,
            "likelihood_text": self.likelihood_text,
            "evidence_text": self.evidence_text,
            "is_proven": int(bool(self.is_proven)),
            "is_disproven": int(bool(self.is_disproven)),
            "test_what": self.test_what,
            "test_where": self.test_where,
            "test_when": self.test_when,
            "test_extent": self.test_extent,
            "list_no": self.list_no,
        }

    def __repr__(self):
        return f"<Cause {self.id}: ci={self.ci_id} #{self.list_no}>"


class Action(ExerciseScopedModel):
    """Corrective action taken against a configuration item."""

    __tablename__ = "problem_form_actions"
    __table_args__ = (
        ExerciseScopedModel.scope_composite_index("problem_form_actions"),
    )

    id = db.Column(db.Integer, primary_key=True)
    theme_id = db.Column(db.Integer, nullable=True)
    scenario_id = db.Column(db.Integer, nullable=True)
    ci_id = db.Column(db.String(60), nullable=False, default="")
    action_id = db.Column(db.Integer, nullable=False, default=0)
    effect_text = db.Column(db.Text, nullable=False, default="")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "ci_id": self.ci_id,
            "action_id": self.action_id,
            "effect_text": self.effect_text,
        }

    def __repr__(self):
        return f"<Action {self.id}: ci={self.ci_id} action={self.action_id}>"


# ── Singleton forms ──────────────────────────────────────────────────────────


class Iteration(ExerciseScopedModel):
    __tablename__ = "problem_form_iterations"
    __table_args__ = (
        ExerciseScopedModel.scope_composite_index(
            "problem_form_iterations", "theme_id", "scenario_id", unique=True,
        ),
    )

    id = db.Column(db.Integer, primary_key=True)
    theme_id = db.Column(db.Integer, nullable=False, default=0)
    scenario_id = db.Column(db.Integer, nullable=False, default=0)
    text = db.Column(db.Text, nullable=False, default="")

    def to_dict(self) -> dict:
        return {"text": self.text}


class Description(ExerciseScopedModel):
    __tablename__ = "problem_form_description"
    __table_args__ = (
        ExerciseScopedModel.scope_composite_index(
            "problem_form_description", "theme_id", "scenario_id", unique=True,
        ),
    )

    id = db.Column(db.Integer, primary_key=True)
    theme_id = db.Column(db.Integer, nullable=False, default=0)
    scenario_id = db.Column(db.Integer, nullable=False, default=0)
    short_description = db.Column(db.Text, nullable=False, default="")
    long_description = db.Column(db.Text, nullable=False, default="")
    work_notes = db.Column(db.Text, nullable=False, default="")

    def to_dict(self) -> dict:
        return {
            "short_description": self.short_description,
            "long_description": self.long_description,
            "work_notes": self.work_notes,
        }


class Reflection(ExerciseScopedModel):
    __tablename__ = "problem_form_reflections"
    __table_args__ = (
        ExerciseScopedModel.scope_composite_index("problem_form_reflections", unique=True),
    )

    id = db.Column(db.Integer, primary_key=True)
    keep_text = db.Column(db.Text, nullable=False, default="")
    improve_text = db.Column(db.Text, nullable=False, default="")

    def to_dict(self) -> dict:
        return {"keep_text": self.keep_text, "improve_text": self.improve_text}


class Attachment(ExerciseScopedModel):
    """Single binary attachment per (scope, theme, scenario)."""

    __tablename__ = "problem_form_attachments"
    __table_args__ = (
        ExerciseScopedModel.scope_composite_index(
            "problem_form_attachments", "theme_id", "scenario_id", unique=True,
        ),
    )

    id = db.Column(db.Integer, primary_key=True)
    theme_id = db.Column(db.Integer, nullable=False, default=0)
    scenario_id = db.Column(db.Integer, nullable=False, default=0)
    file_name = db.Column(db.String(255), nullable=False)
    file = db.Column(db.LargeBinary, nullable=True)

    def to_meta_dict(self) -> dict:
        return {"id": self.id, "file_name": self.file_name}

    def __repr__(self):
        return f"<Attachment {self.id}: {self.file_name}>"


class SpecificationField(ExerciseScopedModel):
    """One named free-text field of the problem specification."""

    __tablename__ = "problem_form_kt_specification"
    __table_args__ = (
        ExerciseScopedModel.scope_composite_index(
            "problem_form_kt_specification", "theme_id", "scenario_id", "field", unique=True,
        ),
    )

    id = db.Column(db.Integer, primary_key=True)
    theme_id = db.Column(db.Integer, nullable=False, default=0)
    scenario_id = db.Column(db.Integer, nullable=False, default=0)
    field = db.Column(db.String(40), nullable=False)
    text = db.Column(db.Text, nullable=False, default="")

    def __repr__(self):
        return f"<SpecificationField {self.field}>"
