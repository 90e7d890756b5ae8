"""
Attachments Service: OCC path for the single binary attachment per scope.

Runs the same lock → compare → mutate → bump → commit cycle as
FormsService, but outside the generic handler table because the payload
is a multipart upload rather than a JSON mapping.  Versions live under
the ``attachments`` form key.
"""

import base64
import logging
import os

from app.core.exceptions import InvalidArgumentError
from app.core.scope import assert_actor
from app.repositories import attachments
from app.repositories.form_versions import bump_version, lock_current_version, write_transaction
from app.services.form_schemas import FormConflict, FormKey, FormResponse

logger = logging.getLogger(__name__)

FORM_KEY = FormKey.ATTACHMENTS.value

DEFAULT_ALLOWED_EXTENSIONS = ("jpg", "jpeg", "png", "gif", "webp")
DEFAULT_MAX_BYTES = 5 * 1024 * 1024

_MIME_TYPES = {
    "jpg": "image/jpeg",
    "jpeg": "image/jpeg",
    "png": "image/png",
    "gif": "image/gif",
    "webp": "image/webp",
}


def file_extension(file_name: str) -> str:
    return os.path.splitext(file_name or "")[1].lstrip(".").lower()


def file_data_uri(file_name: str | None, blob: bytes | None) -> str | None:
    """Render a stored blob as ``data:<mime>;base64,...``; None when empty."""
    if not blob:
        return None
    mime = _MIME_TYPES.get(file_extension(file_name or ""), "application/octet-stream")
    return f"data:{mime};base64,{base64.b64encode(blob).decode('ascii')}"


def validate_upload(file_name: str, blob: bytes | None,
                    allowed_extensions=DEFAULT_ALLOWED_EXTENSIONS,
                    max_bytes: int = DEFAULT_MAX_BYTES) -> None:
    """Reject empty, oversized or non-image uploads before any storage access."""
    if not file_name or not blob:
        raise InvalidArgumentError("Invalid upload", details={"file": "required"})

    ext = file_extension(file_name)
    allowed = {e.lower() for e in allowed_extensions}
    if ext not in allowed:
        raise InvalidArgumentError(
            "Invalid file type", details={"extension": ext, "allowed": sorted(allowed)},
        )
    if len(blob) > max_bytes:
        raise InvalidArgumentError(
            "File too large", details={"size": len(blob), "max_bytes": max_bytes},
        )


class AttachmentsService:
    def __init__(self, session, lock_timeout_ms: int | None = None):
        self.session = session
        self.lock_timeout_ms = lock_timeout_ms

    # ── Reads ────────────────────────────────────────────────────────────

    def read(self, scope) -> dict:
        """Full view with the blob as a data URI; a missing attachment is not an error."""
        scope.validate()
        row = attachments.read(self.session, scope)
        return {
            "id": row["id"],
            "file_name": row["file_name"],
            "file_data_uri": file_data_uri(row["file_name"], row["file"]),
        }

    def read_meta(self, scope) -> dict:
        scope.validate()
        return attachments.read_meta(self.session, scope)

    # ── Writes ───────────────────────────────────────────────────────────

    def upload(self, scope, actor_token: str, expected_version: int,
               file_name: str, blob: bytes) -> FormResponse | FormConflict:
        def mutate():
            attachments.upsert(
                self.session, scope, file_name=file_name, blob=blob, actor_token=actor_token,
            )

        return self._write(scope, actor_token, expected_version, mutate, operation="upload")

    def delete(self, scope, actor_token: str, expected_version: int) -> FormResponse | FormConflict:
        def mutate():
            attachments.delete(self.session, scope)

        return self._write(scope, actor_token, expected_version, mutate, operation="delete")

    def _write(self, scope, actor_token, expected_version, mutate, *, operation: str):
        scope.validate()
        actor_token = assert_actor(actor_token)
        log_extra = {
            **scope.as_log_extra(),
            "form_key": FORM_KEY,
            "crud": operation,
            "expected_version": expected_version,
        }

        with write_transaction(self.session, self.lock_timeout_ms, operation=f"{FORM_KEY}.{operation}"):
            current = lock_current_version(self.session, scope, FORM_KEY)
            if expected_version != current:
                self.session.rollback()
                new_version = None
            else:
                mutate()
                new_version = bump_version(self.session, scope, FORM_KEY, actor_token)
                self.session.commit()

        view = {"attachment": self.read(scope)}

        if new_version is None:
            logger.warning(
                "Attachment %s conflict: expected %s, current %s", operation, expected_version, current,
                extra={**log_extra, "version": current},
            )
            return FormConflict(form_key=FORM_KEY, current_version=current, data=view)

        logger.info(
            "Attachment %s committed at version %s", operation, new_version,
            extra={**log_extra, "version": new_version},
        )
        return FormResponse(form_key=FORM_KEY, version=new_version, data=view)
