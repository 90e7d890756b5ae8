"""
Exercise State Service: one-shot read of versions, plan and form data.

Clients call this when entering a step (and after a reconnect) instead of
issuing one read per form.  Only forms present in the resolved plan are
fetched, so the cost of the read follows what the step renders.
"""

import logging

from app.core.exceptions import InvalidArgumentError
from app.repositories import causes, form_rules
from app.repositories.form_versions import read_versions
from app.services.form_payloads import build_form_data
from app.services.form_schemas import FormKey
from app.services.visibility_plan import resolve_visibility_plan

logger = logging.getLogger(__name__)

KNOWN_FORM_KEYS = tuple(k.value for k in FormKey)


def read_exercise_state(
    session,
    scope,
    *,
    skill_id: int,
    format_id: int,
    step_no: int,
    template_id: int,
    number_of_causes: int | None = None,
    has_causality: bool = False,
) -> dict:
    """Return ``{"versions", "case", "forms"}`` for one exercise step.

    ``versions`` always lists every known form key (0 when never written).
    ``number_of_causes`` defaults to the live cause count of the scope.

    Raises:
        InvalidArgumentError: invalid scope, or a non-positive
            template_id / format_id / step_no.
    """
    scope.validate()
    for name, value in (("template_id", template_id), ("format_id", format_id), ("step_no", step_no)):
        if value <= 0:
            raise InvalidArgumentError(f"Invalid {name}", details={name: value})

    if number_of_causes is None:
        number_of_causes = causes.count_rows(session, scope)

    plan = resolve_visibility_plan(
        session,
        skill_id=skill_id,
        format_id=format_id,
        step_no=step_no,
        template_id=template_id,
        number_of_causes=number_of_causes,
        has_causality=has_causality,
    )

    versions = read_versions(session, scope)
    for key in KNOWN_FORM_KEYS:
        versions.setdefault(key, 0)

    forms = {}
    for form_code in plan.form_codes:
        if form_code not in KNOWN_FORM_KEYS:
            # Plan entries such as static content panels have no form storage.
            continue
        forms.update(build_form_data(session, scope, form_code))

    logger.debug(
        "Exercise state step=%s plan=%s", step_no, plan.form_codes,
        extra=scope.as_log_extra(),
    )

    return {
        "versions": versions,
        "case": {
            "visibility": plan.visibility,
            "plan": [e.to_dict() for e in plan.entries],
            "template_code": form_rules.template_code_by_id(session, template_id),
        },
        "forms": forms,
    }
