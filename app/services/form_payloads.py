"""
Payload builder: canonical read of one form, shaped ``{form_key: ...}``.

Used by the read path, after every committed write, and after every
rejected write (conflict) so callers can resync without a second round
trip.  Attachments are served as metadata only; the blob goes through
AttachmentsService.read().
"""

from app.repositories import (
    actions,
    attachments,
    causes,
    description,
    facts,
    iterations,
    reflections,
    specification,
    symptoms,
)
from app.services.form_schemas import FormKey, parse_form_key

_READERS = {
    FormKey.SYMPTOMS: symptoms.read,
    FormKey.FACTS: facts.read,
    FormKey.CAUSES: causes.read,
    FormKey.ACTIONS: actions.read,
    FormKey.ITERATIONS: iterations.read,
    FormKey.DESCRIPTION: description.read,
    FormKey.REFLECTIONS: reflections.read,
    FormKey.ATTACHMENTS: attachments.read_meta,
    FormKey.SPECIFICATION: specification.read_all,
}


def build_form_data(session, scope, form_key) -> dict:
    key = parse_form_key(form_key)
    return {key.value: _READERS[key](session, scope)}
