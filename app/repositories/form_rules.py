"""
Form rules repository: read-only access to the shared content tables.

find_plan_rules() turns ``form_rules`` rows into the static form plan the
visibility resolver starts from.  Numeric modes:

    0 = hidden
    1 = enabled  (editable)
    2 = limited  (visible, no buttons)
    3 = disabled (visible, locked)
"""

from sqlalchemy import or_, select

from app.models.content import FormRule, FormTemplate

DEFAULT_TEMPLATE_CODE = "default"

_MODE_CODES = {
    "enabled": 1,
    "limited": 2,
    "disabled": 3,
}


def rule_mode(is_visible, mode: str | None) -> int:
    """Map one rule row to its numeric mode; unknown mode strings lock the form."""
    if not is_visible:
        return 0
    return _MODE_CODES.get((mode or "disabled").strip().lower(), 3)


def find_plan_rules(session, skill_id: int, format_id: int, step_no: int,
                    template_id: int = 0) -> list[dict]:
    """
    Ordered static plan for one exercise step.

    Rules pinned to ``template_id`` replace the template-agnostic rule
    (``template_id = 0``) for the same form code.  Result is sorted by
    ``sort_order`` then form code and includes hidden entries (mode 0).
    """
    template_ids = [0]
    if template_id and template_id > 0:
        template_ids.append(template_id)

    stmt = (
        select(FormRule)
        .where(
            FormRule.skill_id == skill_id,
            FormRule.format_id == format_id,
            FormRule.step_no == step_no,
            or_(*[FormRule.template_id == tid for tid in template_ids]),
        )
        .order_by(FormRule.template_id.asc(), FormRule.id.asc())
    )

    by_form: dict[str, dict] = {}
    for rule in session.scalars(stmt):
        form_code = (rule.form or "").strip()
        if not form_code:
            continue
        # template_id ascending: a template-specific rule overwrites the generic one
        by_form[form_code] = {
            "form_code": form_code,
            "mode": rule_mode(rule.is_visible, rule.mode),
            "component": rule.component or "",
            "sort_order": int(rule.sort_order or 0),
        }

    return sorted(by_form.values(), key=lambda e: (e["sort_order"], e["form_code"]))


def template_code_by_id(session, template_id: int) -> str:
    if not template_id or template_id <= 0:
        return DEFAULT_TEMPLATE_CODE
    code = session.execute(
        select(FormTemplate.template_code).where(FormTemplate.id == template_id)
    ).scalar_one_or_none()
    code = (code or "").strip()
    return code or DEFAULT_TEMPLATE_CODE
