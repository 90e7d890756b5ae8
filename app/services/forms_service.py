"""
Forms Service: conflict-safe read/write façade over the form repositories.

Write path (one transaction, per (scope, form_key) row lock):

    lock version → compare expected_version → mutate → audit → bump → commit

A stale ``expected_version`` rolls back and returns a ``FormConflict``
carrying the canonical state.  Successful writes re-read the canonical
payload after commit instead of echoing the applied values.

Usage:
    service = FormsService(db.session, lock_timeout_ms=5000)
    result = service.write(parse_write_request(scope, "causes", "create", payload, actor, 0))
"""

import logging

from app.core.exceptions import InvalidArgumentError
from app.core.scope import assert_actor
from app.models.workflow import WORKFLOW_STEPS, WorkflowCrud
from app.repositories import (
    actions,
    causes,
    description,
    facts,
    iterations,
    reflections,
    specification,
    symptoms,
    workflow_log,
)
from app.repositories.form_versions import (
    bump_version,
    lock_current_version,
    read_version,
    write_transaction,
)
from app.services.form_payloads import build_form_data
from app.services.form_schemas import (
    PAYLOAD_SCHEMAS,
    CrudVerb,
    FormConflict,
    FormKey,
    FormResponse,
    FormWriteRequest,
    parse_form_key,
)

logger = logging.getLogger(__name__)

# Fact keys the team types freely; they are not countable workflow events.
UNAUDITED_FACT_KEYS = frozenset({"other_ok", "other_not"})


def _log(session, req: FormWriteRequest, crud: WorkflowCrud, **fields) -> None:
    workflow_log.insert(
        session,
        req.scope,
        step_no=WORKFLOW_STEPS[req.form_key.value],
        crud=crud,
        actor_token=req.actor_token,
        **fields,
    )


# ── Symptoms ─────────────────────────────────────────────────────────────────


def _symptoms_create(session, req):
    p = req.payload
    symptoms.create(
        session, req.scope,
        deviation_id=p.deviation_id,
        function_id=p.function_id,
        clarify_text=p.clarify_text,
        actor_token=req.actor_token,
    )
    _log(session, req, WorkflowCrud.CREATE,
         deviation_id=p.deviation_id, function_id=p.function_id, info="symptom")


def _symptoms_update(session, req):
    symptoms.update_text(session, req.scope, req.payload.id, req.payload.clarify_text, req.actor_token)


def _symptoms_delete(session, req):
    row = symptoms.find_by_id(session, req.scope, req.payload.id)
    symptoms.delete(session, req.scope, req.payload.id)
    if row is not None:
        _log(session, req, WorkflowCrud.DELETE, deviation_id=row.deviation_id, function_id=row.function_id)


def _symptoms_priority(session, req):
    row = symptoms.find_by_id(session, req.scope, req.payload.id)
    symptoms.set_priority(session, req.scope, req.payload.id, req.actor_token)
    if row is not None:
        _log(session, req, WorkflowCrud.PRIORITY,
             deviation_id=row.deviation_id, function_id=row.function_id, info="priority")


# ── Facts ────────────────────────────────────────────────────────────────────


def _facts_create(session, req):
    p = req.payload
    facts.create(
        session, req.scope,
        key_meta=p.key_meta, key_value=p.key_value, text=p.text,
        actor_token=req.actor_token,
    )
    if p.key_meta not in UNAUDITED_FACT_KEYS:
        _log(session, req, WorkflowCrud.CREATE, info=p.key_meta)


def _facts_update(session, req):
    facts.update_text(session, req.scope, req.payload.id, req.payload.text, req.actor_token)


def _facts_delete(session, req):
    facts.delete(session, req.scope, req.payload.id)


# ── Causes ───────────────────────────────────────────────────────────────────


def _causes_create(session, req):
    p = req.payload
    new_id = causes.create(
        session, req.scope,
        ci_id=p.ci_id,
        deviation_text=p.deviation_text,
        list_no=causes.next_list_no(session, req.scope),
        actor_token=req.actor_token,
    )
    _log(session, req, WorkflowCrud.CREATE, ci_id=p.ci_id or None, info=str(new_id))


def _causes_update(session, req):
    p = req.payload
    causes.update_cause(
        session, req.scope, p.id,
        likelihood_text=p.likelihood_text,
        evidence_text=p.evidence_text,
        is_proven=p.is_proven,
        is_disproven=p.is_disproven,
        test_what=p.test_what,
        test_where=p.test_where,
        test_when=p.test_when,
        test_extent=p.test_extent,
        actor_token=req.actor_token,
    )


def _causes_delete(session, req):
    cause_id = req.payload.id
    if cause_id <= 0:
        return
    row = causes.find_by_id(session, req.scope, cause_id)
    ci_id = (row.ci_id or None) if row is not None else None
    causes.delete(session, req.scope, cause_id)
    _log(session, req, WorkflowCrud.DELETE, ci_id=ci_id, info=str(cause_id))


def _causes_arrange(session, req):
    causes.arrange(session, req.scope, list(req.payload.ids_in_order), req.actor_token)


# ── Actions ──────────────────────────────────────────────────────────────────


def _actions_create(session, req):
    p = req.payload
    actions.create(
        session, req.scope,
        ci_id=p.ci_id, action_id=p.action_id, effect_text=p.effect_text,
        actor_token=req.actor_token,
    )
    _log(
        session, req, WorkflowCrud.CREATE,
        ci_id=p.ci_id or None,
        action_id=p.action_id if p.action_id > 0 else None,
        info=str(p.action_id) if p.action_id > 0 else None,
    )


def _actions_update(session, req):
    actions.update_effect(session, req.scope, req.payload.id, req.payload.effect_text, req.actor_token)


def _actions_delete(session, req):
    row_id = req.payload.id
    if row_id <= 0:
        return
    row = actions.find_by_id(session, req.scope, row_id)
    ci_id = (row.ci_id or None) if row is not None else None
    action_id = (row.action_id or None) if row is not None else None
    actions.delete(session, req.scope, row_id)
    _log(session, req, WorkflowCrud.DELETE, ci_id=ci_id, action_id=action_id)


# ── Singletons ───────────────────────────────────────────────────────────────


def _iterations_upsert(session, req):
    iterations.upsert(session, req.scope, text=req.payload.text, actor_token=req.actor_token)


def _description_upsert(session, req):
    p = req.payload
    description.upsert(
        session, req.scope,
        short_description=p.short_description,
        long_description=p.long_description,
        work_notes=p.work_notes,
        actor_token=req.actor_token,
    )


def _reflections_upsert(session, req):
    p = req.payload
    reflections.upsert(
        session, req.scope, keep_text=p.keep_text, improve_text=p.improve_text,
        actor_token=req.actor_token,
    )


def _specification_upsert(session, req):
    """Returns False when the field is not whitelisted (nothing written)."""
    return specification.upsert_one(
        session, req.scope, req.payload.field, req.payload.text, req.actor_token,
    )


_HANDLERS = {
    (FormKey.SYMPTOMS, CrudVerb.CREATE): _symptoms_create,
    (FormKey.SYMPTOMS, CrudVerb.UPDATE): _symptoms_update,
    (FormKey.SYMPTOMS, CrudVerb.DELETE): _symptoms_delete,
    (FormKey.SYMPTOMS, CrudVerb.PRIORITY): _symptoms_priority,
    (FormKey.FACTS, CrudVerb.CREATE): _facts_create,
    (FormKey.FACTS, CrudVerb.UPDATE): _facts_update,
    (FormKey.FACTS, CrudVerb.DELETE): _facts_delete,
    (FormKey.CAUSES, CrudVerb.CREATE): _causes_create,
    (FormKey.CAUSES, CrudVerb.UPDATE): _causes_update,
    (FormKey.CAUSES, CrudVerb.DELETE): _causes_delete,
    (FormKey.CAUSES, CrudVerb.ARRANGE): _causes_arrange,
    (FormKey.ACTIONS, CrudVerb.CREATE): _actions_create,
    (FormKey.ACTIONS, CrudVerb.UPDATE): _actions_update,
    (FormKey.ACTIONS, CrudVerb.DELETE): _actions_delete,
    (FormKey.ITERATIONS, CrudVerb.UPSERT): _iterations_upsert,
    (FormKey.DESCRIPTION, CrudVerb.UPSERT): _description_upsert,
    (FormKey.REFLECTIONS, CrudVerb.UPSERT): _reflections_upsert,
    (FormKey.SPECIFICATION, CrudVerb.UPSERT): _specification_upsert,
}

if set(_HANDLERS) != set(PAYLOAD_SCHEMAS):
    raise RuntimeError("forms_service handler table out of sync with PAYLOAD_SCHEMAS")


class FormsService:
    """Read/write orchestration for one database session."""

    def __init__(self, session, lock_timeout_ms: int | None = None):
        self.session = session
        self.lock_timeout_ms = lock_timeout_ms

    def read(self, scope, form_key) -> FormResponse:
        """Side-effect free: no lock, no transaction beyond the implicit one."""
        key = parse_form_key(form_key)
        scope.validate()
        data = build_form_data(self.session, scope, key)
        version = read_version(self.session, scope, key.value)
        return FormResponse(form_key=key.value, version=version, data=data)

    def write(self, req: FormWriteRequest) -> FormResponse | FormConflict:
        scope = req.scope
        scope.validate()
        assert_actor(req.actor_token)

        handler = _HANDLERS.get((req.form_key, req.crud))
        if handler is None:
            raise InvalidArgumentError(
                "Invalid crud/form combination",
                details={"form_key": str(req.form_key), "crud": str(req.crud)},
            )

        key = req.form_key.value
        log_extra = {
            **scope.as_log_extra(),
            "form_key": key,
            "crud": req.crud.value,
            "expected_version": req.expected_version,
        }

        with write_transaction(self.session, self.lock_timeout_ms, operation=f"{key}.{req.crud.value}"):
            current = lock_current_version(self.session, scope, key)

            if req.expected_version != current:
                self.session.rollback()
                conflict_version = current
                new_version = None
            elif handler(self.session, req) is False:
                # Nothing was written; leave the version untouched.
                self.session.rollback()
                conflict_version = None
                new_version = current
            else:
                new_version = bump_version(self.session, scope, key, req.actor_token)
                self.session.commit()
                conflict_version = None

        data = build_form_data(self.session, scope, key)

        if conflict_version is not None:
            logger.warning(
                "Version conflict on %s: expected %s, current %s",
                key, req.expected_version, conflict_version,
                extra={**log_extra, "version": conflict_version},
            )
            return FormConflict(form_key=key, current_version=conflict_version, data=data)

        if new_version == current:
            logger.info("Form %s.%s ignored, nothing to write", key, req.crud.value, extra=log_extra)
        else:
            logger.info(
                "Form %s.%s committed at version %s", key, req.crud.value, new_version,
                extra={**log_extra, "version": new_version},
            )
        return FormResponse(form_key=key, version=new_version, data=data)
