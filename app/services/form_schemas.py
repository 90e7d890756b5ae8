"""
Form request/response schemas.

Every write enters the engine as a ``FormWriteRequest``: a closed
(FormKey, CrudVerb) pair plus one typed payload object.  Coercion happens
here, at the request boundary, so repositories only ever see clean
values.  Missing scalars default to ``0`` / ``""`` the same way the AJAX
clients have always relied on.

Results come back as either ``FormResponse`` or ``FormConflict``; a
version conflict is a value, never an exception.
"""

from __future__ import annotations

import enum
from dataclasses import dataclass, field
from typing import Any, Mapping

from app.core.exceptions import InvalidArgumentError
from app.core.scope import ExerciseScope, assert_actor, coerce_int

__all__ = [
    "ExerciseScope",
    "FormKey",
    "CrudVerb",
    "PAYLOAD_SCHEMAS",
    "FormWriteRequest",
    "FormResponse",
    "FormConflict",
    "parse_form_key",
    "parse_write_request",
]


class FormKey(str, enum.Enum):
    SYMPTOMS = "symptoms"
    FACTS = "facts"
    CAUSES = "causes"
    ACTIONS = "actions"
    ITERATIONS = "iterations"
    DESCRIPTION = "description"
    REFLECTIONS = "reflections"
    ATTACHMENTS = "attachments"
    SPECIFICATION = "specification"


class CrudVerb(str, enum.Enum):
    READ = "read"
    CREATE = "create"
    UPDATE = "update"
    DELETE = "delete"
    UPSERT = "upsert"
    PRIORITY = "priority"
    ARRANGE = "arrange"
    UPLOAD = "upload"


def _text(data: Mapping[str, Any], key: str) -> str:
    value = data.get(key)
    if value is None:
        return ""
    return value if isinstance(value, str) else str(value)


def _flag(data: Mapping[str, Any], key: str) -> bool:
    return coerce_int(data.get(key)) > 0


# ── Payload DTOs ─────────────────────────────────────────────────────────────


@dataclass(frozen=True)
class RowRef:
    """Id-only payload (deletes, symptom priority)."""

    id: int

    @classmethod
    def from_payload(cls, data: Mapping[str, Any]) -> "RowRef":
        return cls(id=coerce_int(data.get("id")))


@dataclass(frozen=True)
class SymptomCreate:
    deviation_id: int
    function_id: int
    clarify_text: str

    @classmethod
    def from_payload(cls, data: Mapping[str, Any]) -> "SymptomCreate":
        return cls(
            deviation_id=coerce_int(data.get("deviation_id")),
            function_id=coerce_int(data.get("function_id")),
            clarify_text=_text(data, "clarify_text"),
        )


@dataclass(frozen=True)
class SymptomUpdate:
    id: int
    clarify_text: str

    @classmethod
    def from_payload(cls, data: Mapping[str, Any]) -> "SymptomUpdate":
        return cls(id=coerce_int(data.get("id")), clarify_text=_text(data, "clarify_text"))


@dataclass(frozen=True)
class FactCreate:
    key_meta: str
    key_value: str
    text: str

    @classmethod
    def from_payload(cls, data: Mapping[str, Any]) -> "FactCreate":
        return cls(
            key_meta=_text(data, "key_meta"),
            key_value=_text(data, "key_value"),
            text=_text(data, "text"),
        )


@dataclass(frozen=True)
class FactUpdate:
    id: int
    text: str

    @classmethod
    def from_payload(cls, data: Mapping[str, Any]) -> "FactUpdate":
        return cls(id=coerce_int(data.get("id")), text=_text(data, "text"))


@dataclass(frozen=True)
class CauseCreate:
    ci_id: str
    deviation_text: str

    @classmethod
    def from_payload(cls, data: Mapping[str, Any]) -> "CauseCreate":
        return cls(ci_id=_text(data, "ci_id"), deviation_text=_text(data, "deviation_text"))


@dataclass(frozen=True)
class CauseUpdate:
    id: int
    likelihood_text: str
    evidence_text: str
    is_proven: bool
    is_disproven: bool
    test_what: str = ""
    test_where: str = ""
    test_when: str = ""
    test_extent: str = ""

    @classmethod
    def from_payload(cls, data: Mapping[str, Any]) -> "CauseUpdate":
        return cls(
            id=coerce_int(data.get("id")),
            likelihood_text=_text(data, "likelihood_text"),
            evidence_text=_text(data, "evidence_text"),
            is_proven=_flag(data, "is_proven"),
            is_disproven=_flag(data, "is_disproven"),
            test_what=_text(data, "test_what"),
            test_where=_text(data, "test_where"),
            test_when=_text(data, "test_when"),
            test_extent=_text(data, "test_extent"),
        )


@dataclass(frozen=True)
class CauseArrange:
    ids_in_order: tuple[int, ...] = ()

    @classmethod
    def from_payload(cls, data: Mapping[str, Any]) -> "CauseArrange":
        raw = data.get("ids_in_order")
        if not isinstance(raw, (list, tuple)):
            raw = []
        ids = tuple(i for i in (coerce_int(v) for v in raw) if i > 0)
        return cls(ids_in_order=ids)


@dataclass(frozen=True)
class ActionCreate:
    ci_id: str
    action_id: int
    effect_text: str

    @classmethod
    def from_payload(cls, data: Mapping[str, Any]) -> "ActionCreate":
        return cls(
            ci_id=_text(data, "ci_id"),
            action_id=coerce_int(data.get("action_id")),
            effect_text=_text(data, "effect_text"),
        )


@dataclass(frozen=True)
class ActionUpdate:
    id: int
    effect_text: str

    @classmethod
    def from_payload(cls, data: Mapping[str, Any]) -> "ActionUpdate":
        return cls(id=coerce_int(data.get("id")), effect_text=_text(data, "effect_text"))


@dataclass(frozen=True)
class IterationUpsert:
    text: str

    @classmethod
    def from_payload(cls, data: Mapping[str, Any]) -> "IterationUpsert":
        return cls(text=_text(data, "text"))


@dataclass(frozen=True)
class DescriptionUpsert:
    short_description: str
    long_description: str
    work_notes: str

    @classmethod
    def from_payload(cls, data: Mapping[str, Any]) -> "DescriptionUpsert":
        return cls(
            short_description=_text(data, "short_description"),
            long_description=_text(data, "long_description"),
            work_notes=_text(data, "work_notes"),
        )


@dataclass(frozen=True)
class ReflectionsUpsert:
    keep_text: str
    improve_text: str

    @classmethod
    def from_payload(cls, data: Mapping[str, Any]) -> "ReflectionsUpsert":
        return cls(keep_text=_text(data, "keep_text"), improve_text=_text(data, "improve_text"))


@dataclass(frozen=True)
class SpecificationUpsert:
    field: str
    text: str

    @classmethod
    def from_payload(cls, data: Mapping[str, Any]) -> "SpecificationUpsert":
        return cls(field=_text(data, "field"), text=_text(data, "text"))


# Closed table of write combinations.  Attachments are absent on purpose:
# binary uploads go through AttachmentsService.
PAYLOAD_SCHEMAS: dict[tuple[FormKey, CrudVerb], type] = {
    (FormKey.SYMPTOMS, CrudVerb.CREATE): SymptomCreate,
    (FormKey.SYMPTOMS, CrudVerb.UPDATE): SymptomUpdate,
    (FormKey.SYMPTOMS, CrudVerb.DELETE): RowRef,
    (FormKey.SYMPTOMS, CrudVerb.PRIORITY): RowRef,
    (FormKey.FACTS, CrudVerb.CREATE): FactCreate,
    (FormKey.FACTS, CrudVerb.UPDATE): FactUpdate,
    (FormKey.FACTS, CrudVerb.DELETE): RowRef,
    (FormKey.CAUSES, CrudVerb.CREATE): CauseCreate,
    (FormKey.CAUSES, CrudVerb.UPDATE): CauseUpdate,
    (FormKey.CAUSES, CrudVerb.DELETE): RowRef,
    (FormKey.CAUSES, CrudVerb.ARRANGE): CauseArrange,
    (FormKey.ACTIONS, CrudVerb.CREATE): ActionCreate,
    (FormKey.ACTIONS, CrudVerb.UPDATE): ActionUpdate,
    (FormKey.ACTIONS, CrudVerb.DELETE): RowRef,
    (FormKey.ITERATIONS, CrudVerb.UPSERT): IterationUpsert,
    (FormKey.DESCRIPTION, CrudVerb.UPSERT): DescriptionUpsert,
    (FormKey.REFLECTIONS, CrudVerb.UPSERT): ReflectionsUpsert,
    (FormKey.SPECIFICATION, CrudVerb.UPSERT): SpecificationUpsert,
}


# ── Requests ─────────────────────────────────────────────────────────────────


@dataclass(frozen=True)
class FormWriteRequest:
    scope: ExerciseScope
    form_key: FormKey
    crud: CrudVerb
    payload: Any
    actor_token: str
    expected_version: int


def parse_form_key(value: str | FormKey) -> FormKey:
    try:
        return FormKey((value or "").strip().lower() if isinstance(value, str) else value)
    except ValueError:
        raise InvalidArgumentError("Unknown form_key", details={"form_key": value}) from None


def _parse_crud(value: str | CrudVerb) -> CrudVerb:
    try:
        return CrudVerb((value or "").strip().lower() if isinstance(value, str) else value)
    except ValueError:
        raise InvalidArgumentError("Unknown crud", details={"crud": value}) from None


def parse_write_request(
    scope: ExerciseScope,
    form_key: str | FormKey,
    crud: str | CrudVerb,
    payload: Any,
    actor_token: str | None,
    expected_version: Any,
) -> FormWriteRequest:
    """Validate and coerce one raw write into a FormWriteRequest.

    Raises:
        InvalidArgumentError: bad scope, missing actor, unknown key or verb,
            an unsupported (key, verb) pair, or a payload that is not a mapping.
    """
    scope.validate()
    actor = assert_actor(actor_token)

    key = parse_form_key(form_key)
    verb = _parse_crud(crud)
    schema = PAYLOAD_SCHEMAS.get((key, verb))
    if schema is None:
        raise InvalidArgumentError(
            "Invalid crud/form combination",
            details={"form_key": key.value, "crud": verb.value},
        )

    if payload is None:
        payload = {}
    if not isinstance(payload, Mapping):
        raise InvalidArgumentError("payload must be an object", details={"payload": type(payload).__name__})

    return FormWriteRequest(
        scope=scope,
        form_key=key,
        crud=verb,
        payload=schema.from_payload(payload),
        actor_token=actor,
        expected_version=coerce_int(expected_version),
    )


# ── Results ──────────────────────────────────────────────────────────────────


@dataclass(frozen=True)
class FormResponse:
    form_key: str
    version: int
    data: dict = field(default_factory=dict)
    ok: bool = True

    def to_dict(self) -> dict:
        return {"form_key": self.form_key, "version": self.version, "data": self.data}


@dataclass(frozen=True)
class FormConflict:
    """Rejected write: carries the canonical state the caller should resync to."""

    form_key: str
    current_version: int
    data: dict = field(default_factory=dict)
    ok: bool = False

    def to_dict(self) -> dict:
        return {
            "form_key": self.form_key,
            "current_version": self.current_version,
            "data": self.data,
        }
