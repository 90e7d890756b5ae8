"""
Exercise Forms Sync
Shared content models (read-only for the forms engine).

Models:
    - FormTemplate: template_id → template_code ("default", "kt", ...)
    - FormRule: static visibility rule per (skill, format, step, template, form)

Rows are authored by the content team; the forms engine never writes them.
"""

from app.models import db

# Rule ``mode`` strings accepted by the content editor.
RULE_MODES = {"enabled", "limited", "disabled"}


class FormTemplate(db.Model):
    __tablename__ = "meta_form_templates"

    id = db.Column(db.Integer, primary_key=True)
    template_code = db.Column(db.String(40), nullable=False, unique=True)
    name = db.Column(db.String(120), nullable=False, default="")

    def __repr__(self):
        return f"<FormTemplate {self.id}: {self.template_code}>"


class FormRule(db.Model):
    """
    One row of the static form plan.

    ``template_id = 0`` rules apply to every template; a rule carrying the
    requested template_id replaces the template-agnostic rule for the same
    form code.
    """

    __tablename__ = "form_rules"
    __table_args__ = (
        db.Index("idx_form_rules_lookup", "skill_id", "format_id", "step_no"),
        db.UniqueConstraint(
            "skill_id", "format_id", "step_no", "template_id", "form",
            name="uq_form_rules_form",
        ),
    )

    id = db.Column(db.Integer, primary_key=True)
    skill_id = db.Column(db.Integer, nullable=False)
    format_id = db.Column(db.Integer, nullable=False)
    step_no = db.Column(db.Integer, nullable=False)
    template_id = db.Column(db.Integer, nullable=False, default=0)
    form = db.Column(db.String(40), nullable=False, comment="form_code, e.g. causes | iterations")
    is_visible = db.Column(db.Boolean, nullable=False, default=True)
    mode = db.Column(db.String(20), nullable=False, default="disabled", comment="enabled | limited | disabled")
    component = db.Column(db.String(80), nullable=False, default="", comment="UI component reference")
    sort_order = db.Column(db.Integer, nullable=False, default=0)

    def __repr__(self):
        return f"<FormRule {self.form} step={self.step_no} mode={self.mode}>"
