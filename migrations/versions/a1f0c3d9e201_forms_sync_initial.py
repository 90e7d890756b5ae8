"""forms_sync_initial

Creates the exercise forms engine schema:
  - problem_form_versions - per (scope, form_key) OCC counter
  - problem_form_symptoms/facts/causes/actions - multi-row forms
  - problem_form_iterations/description/attachments/kt_specification - singleton
    or sparse rows per (scope, theme, scenario)
  - problem_form_reflections - singleton row per scope
  - log_team_workflow - append-only workflow audit trail
  - meta_form_templates, form_rules - read-only content tables

Tables created conditionally (IF NOT EXISTS semantics) so the revision can
run against databases that already received tables via db.create_all().

Revision ID: a1f0c3d9e201
Revises:
Create Date: 2026-10-19 09:00:00.000000
"""
from alembic import op
import sqlalchemy as sa
from sqlalchemy import inspect as sa_inspect


# revision identifiers, used by Alembic.
revision = "a1f0c3d9e201"
down_revision = None
branch_labels = None
depends_on = None

_SCOPE_COLS = ("access_id", "team_no", "outline_id", "exercise_no")


def _scope_columns(content_keyed=False):
    """Scope + bookkeeping columns shared by every form table."""
    cols = [sa.Column(name, sa.Integer(), nullable=False) for name in _SCOPE_COLS]
    if content_keyed:
        cols += [
            sa.Column("theme_id", sa.Integer(), nullable=False, server_default="0"),
            sa.Column("scenario_id", sa.Integer(), nullable=False, server_default="0"),
        ]
    cols += [
        sa.Column("actor_token", sa.String(length=128), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
    ]
    return cols


def _multi_row_columns():
    return [
        sa.Column("theme_id", sa.Integer(), nullable=True),
        sa.Column("scenario_id", sa.Integer(), nullable=True),
    ] + _scope_columns()


def upgrade():
    bind = op.get_bind()
    inspector = sa_inspect(bind)
    existing = set(inspector.get_table_names())

    # ── Versions ──────────────────────────────────────────────────────────
    if "problem_form_versions" not in existing:
        op.create_table(
            "problem_form_versions",
            *[sa.Column(name, sa.Integer(), nullable=False) for name in _SCOPE_COLS],
            sa.Column("form_key", sa.String(length=40), nullable=False),
            sa.Column("version", sa.Integer(), nullable=False, server_default="0"),
            sa.Column("actor_token", sa.String(length=128), nullable=True),
            sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
            sa.PrimaryKeyConstraint(*_SCOPE_COLS, "form_key"),
        )

    # ── Multi-row forms ───────────────────────────────────────────────────
    if "problem_form_symptoms" not in existing:
        op.create_table(
            "problem_form_symptoms",
            sa.Column("id", sa.Integer(), primary_key=True),
            *_multi_row_columns(),
            sa.Column("deviation_id", sa.Integer(), nullable=False, server_default="0"),
            sa.Column("function_id", sa.Integer(), nullable=False, server_default="0"),
            sa.Column("clarify_text", sa.Text(), nullable=False, server_default=""),
            sa.Column("is_priority", sa.Boolean(), nullable=False, server_default=sa.false()),
        )
        op.create_index("ix_problem_form_symptoms_scope", "problem_form_symptoms", list(_SCOPE_COLS))

    if "problem_form_facts" not in existing:
        op.create_table(
            "problem_form_facts",
            sa.Column("id", sa.Integer(), primary_key=True),
            *_multi_row_columns(),
            sa.Column("key_meta", sa.String(length=60), nullable=False, server_default="",
                      comment="Content key (other_ok | other_not are free-form and not audited)"),
            sa.Column("key_value", sa.String(length=255), nullable=False, server_default=""),
            sa.Column("text", sa.Text(), nullable=False, server_default=""),
        )
        op.create_index("ix_problem_form_facts_scope", "problem_form_facts", list(_SCOPE_COLS))

    if "problem_form_causes" not in existing:
        op.create_table(
            "problem_form_causes",
            sa.Column("id", sa.Integer(), primary_key=True),
            *_multi_row_columns(),
            sa.Column("ci_id", sa.String(length=60), nullable=False, server_default=""),
            sa.Column("deviation_text", sa.Text(), nullable=False, server_default=""),
            sa.Column("likelihood_text", sa.Text(), nullable=False, server_default=""),
            sa.Column("evidence_text", sa.Text(), nullable=False, server_default=""),
            sa.Column("is_proven", sa.Boolean(), nullable=False, server_default=sa.false()),
            sa.Column("is_disproven", sa.Boolean(), nullable=False, server_default=sa.false()),
            sa.Column("test_what", sa.Text(), nullable=False, server_default=""),
            sa.Column("test_where", sa.Text(), nullable=False, server_default=""),
            sa.Column("test_when", sa.Text(), nullable=False, server_default=""),
            sa.Column("test_extent", sa.Text(), nullable=False, server_default=""),
            sa.Column("list_no", sa.Integer(), nullable=False, server_default="1"),
        )
        op.create_index(
            "ix_problem_form_causes_list_no", "problem_form_causes", [*_SCOPE_COLS, "list_no"],
        )

    if "problem_form_actions" not in existing:
        op.create_table(
            "problem_form_actions",
            sa.Column("id", sa.Integer(), primary_key=True),
            *_multi_row_columns(),
            sa.Column("ci_id", sa.String(length=60), nullable=False, server_default=""),
            sa.Column("action_id", sa.Integer(), nullable=False, server_default="0"),
            sa.Column("effect_text", sa.Text(), nullable=False, server_default=""),
        )
        op.create_index("ix_problem_form_actions_scope", "problem_form_actions", list(_SCOPE_COLS))

    # ── Singleton forms ───────────────────────────────────────────────────
    if "problem_form_iterations" not in existing:
        op.create_table(
            "problem_form_iterations",
            sa.Column("id", sa.Integer(), primary_key=True),
            *_scope_columns(content_keyed=True),
            sa.Column("text", sa.Text(), nullable=False, server_default=""),
        )
        op.create_index(
            "uq_problem_form_iterations_theme_id_scenario_id", "problem_form_iterations",
            [*_SCOPE_COLS, "theme_id", "scenario_id"], unique=True,
        )

    if "problem_form_description" not in existing:
        op.create_table(
            "problem_form_description",
            sa.Column("id", sa.Integer(), primary_key=True),
            *_scope_columns(content_keyed=True),
            sa.Column("short_description", sa.Text(), nullable=False, server_default=""),
            sa.Column("long_description", sa.Text(), nullable=False, server_default=""),
            sa.Column("work_notes", sa.Text(), nullable=False, server_default=""),
        )
        op.create_index(
            "uq_problem_form_description_theme_id_scenario_id", "problem_form_description",
            [*_SCOPE_COLS, "theme_id", "scenario_id"], unique=True,
        )

    if "problem_form_reflections" not in existing:
        op.create_table(
            "problem_form_reflections",
            sa.Column("id", sa.Integer(), primary_key=True),
            *_scope_columns(),
            sa.Column("keep_text", sa.Text(), nullable=False, server_default=""),
            sa.Column("improve_text", sa.Text(), nullable=False, server_default=""),
        )
        op.create_index(
            "uq_problem_form_reflections_scope", "problem_form_reflections",
            list(_SCOPE_COLS), unique=True,
        )

    if "problem_form_attachments" not in existing:
        op.create_table(
            "problem_form_attachments",
            sa.Column("id", sa.Integer(), primary_key=True),
            *_scope_columns(content_keyed=True),
            sa.Column("file_name", sa.String(length=255), nullable=False),
            sa.Column("file", sa.LargeBinary(), nullable=True),
        )
        op.create_index(
            "uq_problem_form_attachments_theme_id_scenario_id", "problem_form_attachments",
            [*_SCOPE_COLS, "theme_id", "scenario_id"], unique=True,
        )

    if "problem_form_kt_specification" not in existing:
        op.create_table(
            "problem_form_kt_specification",
            sa.Column("id", sa.Integer(), primary_key=True),
            *_scope_columns(content_keyed=True),
            sa.Column("field", sa.String(length=40), nullable=False),
            sa.Column("text", sa.Text(), nullable=False, server_default=""),
        )
        op.create_index(
            "uq_problem_form_kt_specification_theme_id_scenario_id_field",
            "problem_form_kt_specification",
            [*_SCOPE_COLS, "theme_id", "scenario_id", "field"], unique=True,
        )

    # ── Workflow audit trail ──────────────────────────────────────────────
    if "log_team_workflow" not in existing:
        op.create_table(
            "log_team_workflow",
            sa.Column("id", sa.Integer(), primary_key=True),
            *[sa.Column(name, sa.Integer(), nullable=False) for name in _SCOPE_COLS],
            sa.Column("theme_id", sa.Integer(), nullable=True),
            sa.Column("scenario_id", sa.Integer(), nullable=True),
            sa.Column("step_no", sa.Integer(), nullable=False,
                      comment="1 symptoms | 2 facts | 3 causes | 4 actions"),
            sa.Column("crud", sa.Integer(), nullable=False, comment="1 create | 4 delete | 9 priority"),
            sa.Column("ci_id", sa.String(length=60), nullable=True),
            sa.Column("action_id", sa.Integer(), nullable=True),
            sa.Column("deviation_id", sa.Integer(), nullable=True),
            sa.Column("function_id", sa.Integer(), nullable=True),
            sa.Column("info", sa.String(length=255), nullable=True),
            sa.Column("actor_token", sa.String(length=128), nullable=True),
            sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        )
        op.create_index("idx_workflow_scope", "log_team_workflow", list(_SCOPE_COLS))
        op.create_index("idx_workflow_ts", "log_team_workflow", ["created_at"])

    # ── Content tables ────────────────────────────────────────────────────
    if "meta_form_templates" not in existing:
        op.create_table(
            "meta_form_templates",
            sa.Column("id", sa.Integer(), primary_key=True),
            sa.Column("template_code", sa.String(length=40), nullable=False, unique=True),
            sa.Column("name", sa.String(length=120), nullable=False, server_default=""),
        )

    if "form_rules" not in existing:
        op.create_table(
            "form_rules",
            sa.Column("id", sa.Integer(), primary_key=True),
            sa.Column("skill_id", sa.Integer(), nullable=False),
            sa.Column("format_id", sa.Integer(), nullable=False),
            sa.Column("step_no", sa.Integer(), nullable=False),
            sa.Column("template_id", sa.Integer(), nullable=False, server_default="0"),
            sa.Column("form", sa.String(length=40), nullable=False,
                      comment="form_code, e.g. causes | iterations"),
            sa.Column("is_visible", sa.Boolean(), nullable=False, server_default=sa.true()),
            sa.Column("mode", sa.String(length=20), nullable=False, server_default="disabled",
                      comment="enabled | limited | disabled"),
            sa.Column("component", sa.String(length=80), nullable=False, server_default="",
                      comment="UI component reference"),
            sa.Column("sort_order", sa.Integer(), nullable=False, server_default="0"),
            sa.UniqueConstraint(
                "skill_id", "format_id", "step_no", "template_id", "form",
                name="uq_form_rules_form",
            ),
        )
        op.create_index("idx_form_rules_lookup", "form_rules", ["skill_id", "format_id", "step_no"])


def downgrade():
    for table in (
        "form_rules",
        "meta_form_templates",
        "log_team_workflow",
        "problem_form_kt_specification",
        "problem_form_attachments",
        "problem_form_reflections",
        "problem_form_description",
        "problem_form_iterations",
        "problem_form_actions",
        "problem_form_causes",
        "problem_form_facts",
        "problem_form_symptoms",
        "problem_form_versions",
    ):
        op.drop_table(table)
