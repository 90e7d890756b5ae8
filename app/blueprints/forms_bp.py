"""
Exercise Forms Sync
Forms blueprint: OCC read/write endpoints for the problem-solving exercise forms.

Endpoints summary:
    FORMS       /api/v1/problem/forms/<form_key>        GET, POST
    ATTACHMENT  /api/v1/problem/attachments             GET   (full read, data URI)
                /api/v1/problem/attachments/upload      POST  (multipart: file, expected_version)
                /api/v1/problem/attachments/delete      POST
    STATE       /api/v1/problem/exercise/state          GET

Scope ids (access_id, team_no, outline_id, exercise_no, theme_id,
scenario_id) come from the query string on GET and from the JSON or
form body on POST.  The writer is identified by the X-Actor-Token header
(``actor_token`` body field as fallback).

Responses use the ``{"ok", "data", "error"}`` envelope; a version
conflict answers 409 with the canonical state in ``data``.
"""

import logging

from flask import Blueprint, current_app, request

from app.blueprints import actor_from_request, request_input, scope_from_input
from app.core.exceptions import InvalidArgumentError, StorageFailureError
from app.core.scope import assert_actor, coerce_int
from app.models import db
from app.repositories.form_versions import read_version
from app.services.attachments_service import FORM_KEY as ATTACHMENTS_KEY
from app.services.attachments_service import AttachmentsService, validate_upload
from app.services.exercise_state_service import read_exercise_state
from app.services.form_schemas import CrudVerb, FormConflict, parse_write_request
from app.services.forms_service import FormsService
from app.utils.errors import E, api_conflict, api_error, api_ok

logger = logging.getLogger(__name__)

forms_bp = Blueprint("forms_bp", __name__, url_prefix="/api/v1/problem")


# ── Helpers ──────────────────────────────────────────────────────────────────


def _lock_timeout_ms():
    return current_app.config.get("FORMS_LOCK_TIMEOUT_MS")


def _forms_service() -> FormsService:
    return FormsService(db.session, lock_timeout_ms=_lock_timeout_ms())


def _attachments_service() -> AttachmentsService:
    return AttachmentsService(db.session, lock_timeout_ms=_lock_timeout_ms())


def _respond(result):
    if isinstance(result, FormConflict):
        return api_conflict(result.to_dict())
    return api_ok(result.to_dict())


def _truthy(value) -> bool:
    if isinstance(value, str):
        return value.strip().lower() in ("1", "true", "yes", "on")
    return bool(value)


@forms_bp.errorhandler(InvalidArgumentError)
def _invalid_argument(exc):
    return api_error(E.VALIDATION_INVALID, exc.message, details=exc.details)


@forms_bp.errorhandler(StorageFailureError)
def _storage_failure(exc):
    return api_error(
        E.DATABASE, "Storage failure, please retry",
        details={"operation": exc.operation} if exc.operation else None,
    )


# ═══════════════════════════════════════════════════════════════════════════
#  FORMS
# ═══════════════════════════════════════════════════════════════════════════


@forms_bp.route("/forms/<form_key>", methods=["GET"])
def read_form(form_key):
    """Current version + canonical data for one form. Never locks."""
    scope = scope_from_input(request_input())
    return api_ok(_forms_service().read(scope, form_key).to_dict())


@forms_bp.route("/forms/<form_key>", methods=["POST"])
def write_form(form_key):
    """
    OCC write.

    Body: {crud, expected_version, payload, <scope ids>}
    ``crud == "read"`` answers like GET.
    """
    data = request_input()
    scope = scope_from_input(data)
    crud = str(data.get("crud") or CrudVerb.READ.value)

    if crud.strip().lower() == CrudVerb.READ.value:
        return api_ok(_forms_service().read(scope, form_key).to_dict())

    req = parse_write_request(
        scope,
        form_key,
        crud,
        data.get("payload"),
        actor_from_request(data),
        data.get("expected_version"),
    )
    return _respond(_forms_service().write(req))


# ═══════════════════════════════════════════════════════════════════════════
#  ATTACHMENTS
# ═══════════════════════════════════════════════════════════════════════════


@forms_bp.route("/attachments", methods=["GET"])
def read_attachment():
    scope = scope_from_input(request_input())
    view = _attachments_service().read(scope)
    return api_ok({
        "form_key": ATTACHMENTS_KEY,
        "version": read_version(db.session, scope, ATTACHMENTS_KEY),
        "attachment": view,
    })


@forms_bp.route("/attachments/upload", methods=["POST"])
def upload_attachment():
    """Multipart upload: ``file`` + ``expected_version`` + scope fields."""
    data = request_input()
    scope = scope_from_input(data)
    scope.validate()
    actor = assert_actor(actor_from_request(data))

    upload = request.files.get("file")
    if upload is None:
        raise InvalidArgumentError("Missing file", details={"file": "required"})
    blob = upload.read()
    validate_upload(
        upload.filename or "",
        blob,
        allowed_extensions=current_app.config.get("ATTACHMENT_ALLOWED_EXTENSIONS", ()),
        max_bytes=current_app.config.get("ATTACHMENT_MAX_BYTES", 0),
    )

    result = _attachments_service().upload(
        scope, actor, coerce_int(data.get("expected_version")), upload.filename, blob,
    )
    return _respond(result)


@forms_bp.route("/attachments/delete", methods=["POST"])
def delete_attachment():
    data = request_input()
    scope = scope_from_input(data)
    result = _attachments_service().delete(
        scope, actor_from_request(data), coerce_int(data.get("expected_version")),
    )
    return _respond(result)


# ═══════════════════════════════════════════════════════════════════════════
#  EXERCISE STATE
# ═══════════════════════════════════════════════════════════════════════════


@forms_bp.route("/exercise/state", methods=["GET"])
def exercise_state():
    """
    Versions + visibility plan + plan-filtered form data in one read.

    Query: skill_id, format_id, step_no, template_id, has_causality,
    number_of_causes (optional, defaults to the live cause count).
    """
    data = request_input()
    scope = scope_from_input(data)
    raw_causes = data.get("number_of_causes")

    state = read_exercise_state(
        db.session,
        scope,
        skill_id=coerce_int(data.get("skill_id")),
        format_id=coerce_int(data.get("format_id")),
        step_no=coerce_int(data.get("step_no")),
        template_id=coerce_int(data.get("template_id")),
        number_of_causes=coerce_int(raw_causes) if raw_causes not in (None, "") else None,
        has_causality=_truthy(data.get("has_causality")),
    )
    return api_ok(state)
