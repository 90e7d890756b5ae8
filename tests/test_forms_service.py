"""
Forms orchestrator tests.

Covers the OCC write path end to end against the test database:
    - version monotonicity and per-form isolation
    - conflict exclusivity (stale expected_version never clobbers)
    - read purity
    - handler table per (form_key, crud) incl. workflow audit side-effects
    - cause arrange ordering and foreign-id tolerance
    - specification whitelist
    - full rollback on storage failure
    - argument validation before storage access
"""

import pytest
from sqlalchemy import func, select
from sqlalchemy.exc import OperationalError

from app.core.exceptions import InvalidArgumentError, StorageFailureError
from app.core.scope import ExerciseScope, coerce_int
from app.models import db
from app.models.forms import Cause, FormVersion, SpecificationField, Symptom
from app.models.workflow import WorkflowCrud, WorkflowLogEntry
from app.repositories import workflow_log
from app.repositories.causes import DEFAULT_LIKELIHOOD
from app.services import forms_service as forms_service_module
from app.services.form_schemas import (
    PAYLOAD_SCHEMAS,
    CrudVerb,
    FormConflict,
    FormKey,
    FormResponse,
    parse_write_request,
)

ACTOR = "actor-token-a"


# ═════════════════════════════════════════════════════════════════════════════
# Helpers
# ═════════════════════════════════════════════════════════════════════════════


def _write(forms, scope, form_key, crud, payload=None, expected=None, actor=ACTOR):
    """Write against the current version unless ``expected`` is given."""
    if expected is None:
        expected = forms.read(scope, form_key).version
    req = parse_write_request(scope, form_key, crud, payload or {}, actor, expected)
    return forms.write(req)


def _make_cause(scope, cause_id, list_no, ci_id="CI-1"):
    """Create a Cause row with a fixed primary key (bypasses the service)."""
    row = Cause(
        id=cause_id,
        access_id=scope.access_id,
        team_no=scope.team_no,
        outline_id=scope.outline_id,
        exercise_no=scope.exercise_no,
        ci_id=ci_id,
        deviation_text=f"cause {cause_id}",
        likelihood_text=DEFAULT_LIKELIHOOD,
        list_no=list_no,
    )
    db.session.add(row)
    db.session.commit()
    return row


def _count(model):
    return db.session.execute(select(func.count()).select_from(model)).scalar()


def _list_nos(scope):
    rows = db.session.execute(
        select(Cause.id, Cause.list_no).where(*Cause.scope_filter(scope))
    ).all()
    return {r.id: r.list_no for r in rows}


# ═════════════════════════════════════════════════════════════════════════════
# Versioning
# ═════════════════════════════════════════════════════════════════════════════


class TestVersioning:
    def test_read_unwritten_form(self, forms, scope):
        res = forms.read(scope, "causes")
        assert isinstance(res, FormResponse)
        assert res.ok is True
        assert res.version == 0
        assert res.data == {"causes": []}

    def test_each_write_bumps_by_exactly_one(self, forms, scope):
        for expected in range(5):
            res = _write(forms, scope, "facts", "create",
                         {"key_meta": "other_ok", "text": f"fact {expected}"}, expected=expected)
            assert isinstance(res, FormResponse)
            assert res.version == expected + 1

        assert forms.read(scope, "facts").version == 5
        assert len(forms.read(scope, "facts").data["facts"]) == 5

    def test_write_never_touches_other_form_versions(self, forms, scope):
        _write(forms, scope, "facts", "create", {"key_meta": "k1"})
        _write(forms, scope, "causes", "create", {"ci_id": "CI-1"})
        _write(forms, scope, "causes", "create", {"ci_id": "CI-2"})

        assert forms.read(scope, "facts").version == 1
        assert forms.read(scope, "causes").version == 2
        assert forms.read(scope, "symptoms").version == 0

    def test_scopes_are_isolated(self, forms, scope, other_scope):
        _write(forms, scope, "symptoms", "create", {"deviation_id": 1, "function_id": 2})

        res = forms.read(other_scope, "symptoms")
        assert res.version == 0
        assert res.data == {"symptoms": []}

    def test_read_is_pure(self, forms, scope):
        _write(forms, scope, "reflections", "upsert", {"keep_text": "k", "improve_text": "i"})
        before = forms.read(scope, "reflections")

        for _ in range(3):
            again = forms.read(scope, "reflections")
            assert again.version == before.version
            assert again.data == before.data

        assert _count(FormVersion) == 1
        assert _count(WorkflowLogEntry) == 0


# ═════════════════════════════════════════════════════════════════════════════
# Conflicts
# ═════════════════════════════════════════════════════════════════════════════


class TestConflicts:
    def test_second_writer_with_same_expected_version_gets_conflict(self, forms, scope):
        first = _write(forms, scope, "causes", "create", {"ci_id": "CI-A", "deviation_text": "A"}, expected=0)
        second = _write(forms, scope, "causes", "create", {"ci_id": "CI-B", "deviation_text": "B"},
                        expected=0, actor="actor-token-b")

        assert isinstance(first, FormResponse)
        assert first.version == 1

        assert isinstance(second, FormConflict)
        assert second.ok is False
        assert second.current_version == 1
        assert second.data == first.data

        # The loser's mutation, audit entry and bump were all rolled back
        assert _count(Cause) == 1
        assert len(workflow_log.read_entries(db.session, scope)) == 1
        assert forms.read(scope, "causes").version == 1

    def test_conflict_to_dict_shape(self, forms, scope):
        _write(forms, scope, "iterations", "upsert", {"text": "v1"}, expected=0)
        conflict = _write(forms, scope, "iterations", "upsert", {"text": "stale"}, expected=0)

        assert conflict.to_dict() == {
            "form_key": "iterations",
            "current_version": 1,
            "data": {"iterations": {"text": "v1"}},
        }

    def test_expected_version_ahead_of_current_conflicts(self, forms, scope):
        res = _write(forms, scope, "description", "upsert", {"short_description": "x"}, expected=4)
        assert isinstance(res, FormConflict)
        assert res.current_version == 0
        assert _count(FormVersion) == 0

    def test_retry_with_current_version_succeeds(self, forms, scope):
        _write(forms, scope, "iterations", "upsert", {"text": "v1"}, expected=0)
        conflict = _write(forms, scope, "iterations", "upsert", {"text": "v2"}, expected=0)
        retried = _write(forms, scope, "iterations", "upsert", {"text": "v2"},
                         expected=conflict.current_version)

        assert isinstance(retried, FormResponse)
        assert retried.version == 2
        assert retried.data == {"iterations": {"text": "v2"}}


# ═════════════════════════════════════════════════════════════════════════════
# Symptoms
# ═════════════════════════════════════════════════════════════════════════════


class TestSymptoms:
    def test_create_logs_symptom_event(self, forms, scope):
        res = _write(forms, scope, "symptoms", "create",
                     {"deviation_id": 4, "function_id": 8, "clarify_text": "slow"})

        rows = res.data["symptoms"]
        assert len(rows) == 1
        assert rows[0]["deviation_id"] == 4
        assert rows[0]["clarify_text"] == "slow"
        assert rows[0]["is_priority"] == 0

        entries = workflow_log.read_entries(db.session, scope)
        assert len(entries) == 1
        assert entries[0]["step_no"] == 1
        assert entries[0]["crud"] == WorkflowCrud.CREATE
        assert entries[0]["deviation_id"] == 4
        assert entries[0]["function_id"] == 8
        assert entries[0]["info"] == "symptom"
        assert entries[0]["actor_token"] == ACTOR

    def test_update_changes_clarify_text_only(self, forms, scope):
        res = _write(forms, scope, "symptoms", "create", {"deviation_id": 4, "function_id": 8})
        sid = res.data["symptoms"][0]["id"]

        res = _write(forms, scope, "symptoms", "update",
                     {"id": sid, "clarify_text": "clarified", "deviation_id": 99})
        row = res.data["symptoms"][0]
        assert row["clarify_text"] == "clarified"
        assert row["deviation_id"] == 4
        assert len(workflow_log.read_entries(db.session, scope)) == 1

    def test_priority_flags_exactly_one(self, forms, scope):
        _write(forms, scope, "symptoms", "create", {"deviation_id": 1, "function_id": 1})
        res = _write(forms, scope, "symptoms", "create", {"deviation_id": 2, "function_id": 2})
        first_id, second_id = [r["id"] for r in res.data["symptoms"]]

        _write(forms, scope, "symptoms", "priority", {"id": first_id})
        res = _write(forms, scope, "symptoms", "priority", {"id": second_id})

        flags = {r["id"]: r["is_priority"] for r in res.data["symptoms"]}
        assert flags == {first_id: 0, second_id: 1}

        priority_events = [
            e for e in workflow_log.read_entries(db.session, scope) if e["crud"] == WorkflowCrud.PRIORITY
        ]
        assert len(priority_events) == 2
        assert priority_events[-1]["deviation_id"] == 2
        assert priority_events[-1]["info"] == "priority"

    def test_priority_on_unknown_row_is_not_logged(self, forms, scope):
        res = _write(forms, scope, "symptoms", "priority", {"id": 12345})
        assert res.version == 1
        assert workflow_log.read_entries(db.session, scope) == []

    def test_delete_logs_with_deleted_row_ids(self, forms, scope):
        res = _write(forms, scope, "symptoms", "create", {"deviation_id": 6, "function_id": 7})
        sid = res.data["symptoms"][0]["id"]

        res = _write(forms, scope, "symptoms", "delete", {"id": sid})
        assert res.data == {"symptoms": []}

        last = workflow_log.read_entries(db.session, scope)[-1]
        assert last["crud"] == WorkflowCrud.DELETE
        assert last["deviation_id"] == 6
        assert last["function_id"] == 7

    def test_delete_of_missing_row_is_not_logged(self, forms, scope):
        _write(forms, scope, "symptoms", "delete", {"id": 999})
        assert workflow_log.read_entries(db.session, scope) == []


# ═════════════════════════════════════════════════════════════════════════════
# Facts
# ═════════════════════════════════════════════════════════════════════════════


class TestFacts:
    def test_create_logs_key_meta(self, forms, scope):
        _write(forms, scope, "facts", "create", {"key_meta": "what_is", "key_value": "pump", "text": "t"})

        entries = workflow_log.read_entries(db.session, scope)
        assert len(entries) == 1
        assert entries[0]["step_no"] == 2
        assert entries[0]["crud"] == WorkflowCrud.CREATE
        assert entries[0]["info"] == "what_is"

    @pytest.mark.parametrize("key_meta", ["other_ok", "other_not"])
    def test_free_form_keys_are_not_logged(self, forms, scope, key_meta):
        res = _write(forms, scope, "facts", "create", {"key_meta": key_meta, "text": "note"})
        assert len(res.data["facts"]) == 1
        assert workflow_log.read_entries(db.session, scope) == []

    def test_update_and_delete(self, forms, scope):
        res = _write(forms, scope, "facts", "create", {"key_meta": "other_ok", "text": "old"})
        fid = res.data["facts"][0]["id"]

        res = _write(forms, scope, "facts", "update", {"id": fid, "text": "new"})
        assert res.data["facts"][0]["text"] == "new"

        res = _write(forms, scope, "facts", "delete", {"id": fid})
        assert res.data == {"facts": []}
        assert res.version == 3
        assert workflow_log.read_entries(db.session, scope) == []


# ═════════════════════════════════════════════════════════════════════════════
# Causes
# ═════════════════════════════════════════════════════════════════════════════


class TestCauses:
    def test_create_appends_with_next_list_no(self, forms, scope):
        _write(forms, scope, "causes", "create", {"ci_id": "CI-1", "deviation_text": "a"})
        res = _write(forms, scope, "causes", "create", {"ci_id": "CI-2", "deviation_text": "b"})

        rows = res.data["causes"]
        assert [r["list_no"] for r in rows] == [1, 2]
        assert all(r["likelihood_text"] == DEFAULT_LIKELIHOOD for r in rows)

    def test_create_audit_info_is_new_id(self, forms, scope):
        res = _write(forms, scope, "causes", "create", {"ci_id": "CI-9", "deviation_text": "x"})
        new_id = res.data["causes"][0]["id"]

        assert _count(Cause) == 1
        entries = workflow_log.read_entries(db.session, scope)
        assert len(entries) == 1
        assert entries[0]["step_no"] == 3
        assert entries[0]["crud"] == WorkflowCrud.CREATE
        assert entries[0]["ci_id"] == "CI-9"
        assert entries[0]["info"] == str(new_id)

    def test_update_sets_assessment_and_test_fields(self, forms, scope):
        res = _write(forms, scope, "causes", "create", {"ci_id": "CI-1"})
        cid = res.data["causes"][0]["id"]

        res = _write(forms, scope, "causes", "update", {
            "id": cid,
            "likelihood_text": "▲",
            "evidence_text": "log excerpt",
            "is_proven": "1",
            "is_disproven": 0,
            "test_what": "w",
            "test_where": "wh",
            "test_when": "wn",
            "test_extent": "e",
        })
        row = res.data["causes"][0]
        assert row["likelihood_text"] == "▲"
        assert row["evidence_text"] == "log excerpt"
        assert row["is_proven"] == 1
        assert row["is_disproven"] == 0
        assert (row["test_what"], row["test_where"], row["test_when"], row["test_extent"]) == (
            "w", "wh", "wn", "e",
        )

    def test_delete_logs_deleted_id_and_ci(self, forms, scope):
        res = _write(forms, scope, "causes", "create", {"ci_id": "CI-3"})
        cid = res.data["causes"][0]["id"]

        res = _write(forms, scope, "causes", "delete", {"id": cid})
        assert res.data == {"causes": []}

        last = workflow_log.read_entries(db.session, scope)[-1]
        assert last["crud"] == WorkflowCrud.DELETE
        assert last["ci_id"] == "CI-3"
        assert last["info"] == str(cid)

    def test_delete_with_non_positive_id_is_not_logged(self, forms, scope):
        _write(forms, scope, "causes", "delete", {"id": 0})
        assert workflow_log.read_entries(db.session, scope) == []

    def test_arrange_rewrites_list_no(self, forms, scope):
        _make_cause(scope, 7, 1)
        _make_cause(scope, 3, 2)
        _make_cause(scope, 9, 3)

        res = _write(forms, scope, "causes", "arrange", {"ids_in_order": [9, 7, 3]})

        assert _list_nos(scope) == {9: 1, 7: 2, 3: 3}
        assert [r["id"] for r in res.data["causes"]] == [9, 7, 3]
        # Reordering is not a countable workflow event
        assert workflow_log.read_entries(db.session, scope) == []

    def test_arrange_ignores_foreign_ids(self, forms, scope, other_scope):
        _make_cause(scope, 7, 1)
        _make_cause(scope, 3, 2)
        _make_cause(scope, 9, 3)
        _make_cause(other_scope, 20, 5)

        res = _write(forms, scope, "causes", "arrange", {"ids_in_order": [20, 9, 7, 3, "x", -1]})

        assert isinstance(res, FormResponse)
        assert _list_nos(scope) == {9: 1, 7: 2, 3: 3}
        assert _list_nos(other_scope) == {20: 5}

    def test_arrange_with_garbage_payload_is_noop(self, forms, scope):
        _make_cause(scope, 7, 1)
        res = _write(forms, scope, "causes", "arrange", {"ids_in_order": "9,7"})
        assert res.version == 1
        assert _list_nos(scope) == {7: 1}


# ═════════════════════════════════════════════════════════════════════════════
# Actions
# ═════════════════════════════════════════════════════════════════════════════


class TestActions:
    def test_create_logs_action_id(self, forms, scope):
        _write(forms, scope, "actions", "create", {"ci_id": "CI-1", "action_id": 42, "effect_text": "ok"})

        entry = workflow_log.read_entries(db.session, scope)[0]
        assert entry["step_no"] == 4
        assert entry["crud"] == WorkflowCrud.CREATE
        assert entry["ci_id"] == "CI-1"
        assert entry["action_id"] == 42
        assert entry["info"] == "42"

    def test_create_without_action_id_logs_nulls(self, forms, scope):
        _write(forms, scope, "actions", "create", {"ci_id": "", "effect_text": "x"})

        entry = workflow_log.read_entries(db.session, scope)[0]
        assert entry["ci_id"] is None
        assert entry["action_id"] is None
        assert entry["info"] is None

    def test_update_changes_effect_text(self, forms, scope):
        res = _write(forms, scope, "actions", "create", {"ci_id": "CI-1", "action_id": 5})
        aid = res.data["actions"][0]["id"]

        res = _write(forms, scope, "actions", "update", {"id": aid, "effect_text": "resolved"})
        assert res.data["actions"][0]["effect_text"] == "resolved"
        assert res.data["actions"][0]["action_id"] == 5

    def test_delete_logs_row_correlation(self, forms, scope):
        res = _write(forms, scope, "actions", "create", {"ci_id": "CI-2", "action_id": 8})
        aid = res.data["actions"][0]["id"]

        _write(forms, scope, "actions", "delete", {"id": aid})

        last = workflow_log.read_entries(db.session, scope)[-1]
        assert last["crud"] == WorkflowCrud.DELETE
        assert last["ci_id"] == "CI-2"
        assert last["action_id"] == 8


# ═════════════════════════════════════════════════════════════════════════════
# Singleton forms
# ═════════════════════════════════════════════════════════════════════════════


class TestSingletons:
    def test_iterations_upsert_replaces(self, forms, scope):
        _write(forms, scope, "iterations", "upsert", {"text": "first"})
        res = _write(forms, scope, "iterations", "upsert", {"text": "second"})

        assert res.version == 2
        assert res.data == {"iterations": {"text": "second"}}
        assert workflow_log.read_entries(db.session, scope) == []

    def test_iterations_keyed_by_theme_and_scenario(self, forms, scope):
        _write(forms, scope, "iterations", "upsert", {"text": "theme 5"})
        other_theme = ExerciseScope(
            scope.access_id, scope.team_no, scope.outline_id, scope.exercise_no,
            theme_id=6, scenario_id=scope.scenario_id,
        )
        assert forms.read(other_theme, "iterations").data == {"iterations": {"text": ""}}

    def test_description_upsert_replaces_all_fields(self, forms, scope):
        _write(forms, scope, "description", "upsert",
               {"short_description": "s", "long_description": "l", "work_notes": "w"})
        res = _write(forms, scope, "description", "upsert", {"short_description": "s2"})

        assert res.data == {"description": {
            "short_description": "s2", "long_description": "", "work_notes": "",
        }}

    def test_reflections_are_scope_wide(self, forms, scope):
        _write(forms, scope, "reflections", "upsert", {"keep_text": "keep", "improve_text": "improve"})
        other_theme = ExerciseScope(
            scope.access_id, scope.team_no, scope.outline_id, scope.exercise_no, theme_id=1, scenario_id=1,
        )
        assert forms.read(other_theme, "reflections").data == {
            "reflections": {"keep_text": "keep", "improve_text": "improve"},
        }

    def test_empty_defaults(self, forms, scope):
        assert forms.read(scope, "description").data == {"description": {
            "short_description": "", "long_description": "", "work_notes": "",
        }}
        assert forms.read(scope, "reflections").data == {"reflections": {"keep_text": "", "improve_text": ""}}
        assert forms.read(scope, "attachments").data == {"attachments": {"id": 0, "file_name": None}}
        assert forms.read(scope, "specification").data == {"specification": {}}


# ═════════════════════════════════════════════════════════════════════════════
# Specification whitelist
# ═════════════════════════════════════════════════════════════════════════════


class TestSpecification:
    def test_upsert_whitelisted_field(self, forms, scope):
        res = _write(forms, scope, "specification", "upsert", {"field": "  What_IS ", "text": "pump P-101"})

        assert res.version == 1
        assert res.data == {"specification": {"what_is": "pump P-101"}}

        res = _write(forms, scope, "specification", "upsert", {"field": "what_is", "text": "pump P-102"})
        assert res.data == {"specification": {"what_is": "pump P-102"}}
        assert _count(SpecificationField) == 1

    def test_unknown_field_is_silent_noop(self, forms, scope):
        res = _write(forms, scope, "specification", "upsert", {"field": "why_is", "text": "nope"})

        assert isinstance(res, FormResponse)
        assert res.ok is True
        assert res.version == 0
        assert res.data == {"specification": {}}
        assert _count(SpecificationField) == 0
        assert _count(FormVersion) == 0

    def test_problem_statement_is_allowed(self, forms, scope):
        res = _write(forms, scope, "specification", "upsert", {"field": "problem_statement", "text": "ps"})
        assert res.data == {"specification": {"problem_statement": "ps"}}


# ═════════════════════════════════════════════════════════════════════════════
# Failure handling
# ═════════════════════════════════════════════════════════════════════════════


class TestFailures:
    def test_storage_failure_rolls_back_mutation_and_audit(self, forms, scope, monkeypatch):
        def _fail(*args, **kwargs):
            raise OperationalError("UPDATE problem_form_versions", {}, Exception("lock timeout"))

        monkeypatch.setattr(forms_service_module, "bump_version", _fail)

        with pytest.raises(StorageFailureError):
            _write(forms, scope, "causes", "create", {"ci_id": "CI-1"}, expected=0)

        assert _count(Cause) == 0
        assert _count(WorkflowLogEntry) == 0
        assert _count(FormVersion) == 0

    def test_unexpected_error_rolls_back(self, forms, scope, monkeypatch):
        def _boom(*args, **kwargs):
            raise RuntimeError("boom")

        monkeypatch.setattr(forms_service_module, "bump_version", _boom)

        with pytest.raises(RuntimeError):
            _write(forms, scope, "symptoms", "create", {"deviation_id": 1}, expected=0)

        assert _count(Symptom) == 0
        assert _count(WorkflowLogEntry) == 0

    @pytest.mark.parametrize("field", ["access_id", "team_no", "outline_id", "exercise_no"])
    def test_non_positive_scope_id_rejected(self, forms, scope_params, field):
        bad = ExerciseScope.from_mapping({**scope_params, field: 0})
        with pytest.raises(InvalidArgumentError) as exc_info:
            parse_write_request(bad, "causes", "create", {}, ACTOR, 0)
        assert exc_info.value.message == f"Invalid {field}"
        assert _count(FormVersion) == 0

    def test_missing_actor_rejected(self, scope):
        with pytest.raises(InvalidArgumentError, match="Missing actor_token"):
            parse_write_request(scope, "causes", "create", {}, "  ", 0)

    def test_unknown_form_key_rejected(self, scope):
        with pytest.raises(InvalidArgumentError, match="Unknown form_key"):
            parse_write_request(scope, "hypotheses", "create", {}, ACTOR, 0)

    @pytest.mark.parametrize("form_key,crud", [
        ("iterations", "create"),
        ("facts", "priority"),
        ("actions", "arrange"),
        ("attachments", "upload"),
        ("specification", "delete"),
    ])
    def test_unsupported_combination_rejected(self, scope, form_key, crud):
        with pytest.raises(InvalidArgumentError, match="Invalid crud/form combination"):
            parse_write_request(scope, form_key, crud, {}, ACTOR, 0)

    def test_non_mapping_payload_rejected(self, scope):
        with pytest.raises(InvalidArgumentError):
            parse_write_request(scope, "causes", "arrange", [9, 7, 3], ACTOR, 0)

    def test_handler_table_covers_every_schema(self):
        assert set(forms_service_module._HANDLERS) == set(PAYLOAD_SCHEMAS)
        assert (FormKey.ATTACHMENTS, CrudVerb.UPLOAD) not in PAYLOAD_SCHEMAS


@pytest.mark.parametrize("raw,expected", [
    ("7", 7),
    ("7.9", 7),
    ("abc", 0),
    ("1e999", 0),
    (float("inf"), 0),
    (float("nan"), 0),
    (None, 0),
    (True, 1),
])
def test_coerce_int_never_raises(raw, expected):
    assert coerce_int(raw) == expected
