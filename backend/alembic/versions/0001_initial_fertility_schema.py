"""Initial schema for FertiAssist.

Создаёт enum-типы, таблицы клиник, пациентов, циклов, анализов, документов,
AI-консультаций и журнала аудита, а также индексы под выборки справочника
и истории.
"""

from __future__ import annotations

import uuid

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql


# revision identifiers, used by Alembic.
revision = "0001_initial_fertility_schema"
down_revision = None
branch_labels = None
depends_on = None


def _create_enums() -> None:
    op.execute(
        "CREATE TYPE user_role AS ENUM "
        "('ADMIN','DOCTOR','NURSE','STAFF','EMBRYOLOGIST')"
    )
    op.execute(
        "CREATE TYPE cycle_status AS ENUM "
        "('PLANNING','STIMULATION','MONITORING','TRIGGER','RETRIEVAL','FERTILIZATION',"
        "'TRANSFER','TWW','POSITIVE','NEGATIVE','CANCELLED','COMPLETED')"
    )
    op.execute(
        "CREATE TYPE doc_type AS ENUM "
        "('ULTRASOUND','LAB_REPORT','CONSENT_FORM','PRESCRIPTION','MEDICAL_HISTORY',"
        "'INSURANCE_CARD','EMBRYO_IMAGE','SPERM_ANALYSIS','OTHER')"
    )


def _id_column() -> sa.Column:
    return sa.Column(
        "id",
        postgresql.UUID(as_uuid=True),
        primary_key=True,
        nullable=False,
        default=uuid.uuid4,
    )


def _created_at() -> sa.Column:
    return sa.Column(
        "created_at",
        sa.DateTime(timezone=True),
        server_default=sa.text("now()"),
        nullable=False,
    )


def _updated_at() -> sa.Column:
    return sa.Column(
        "updated_at",
        sa.DateTime(timezone=True),
        server_default=sa.text("now()"),
        nullable=False,
    )


def upgrade() -> None:
    _create_enums()

    # A) clinics / users
    op.create_table(
        "clinics",
        _id_column(),
        sa.Column("name", sa.Text(), nullable=False),
        sa.Column("license_number", sa.Text(), nullable=True),
        sa.Column("address", postgresql.JSONB(), nullable=True),
        sa.Column("phone", sa.Text(), nullable=True),
        sa.Column("email", sa.Text(), nullable=True),
        _created_at(),
        _updated_at(),
    )

    op.create_table(
        "users",
        _id_column(),
        sa.Column("external_auth_id", sa.Text(), nullable=False),
        sa.Column("email", sa.Text(), nullable=False),
        sa.Column("first_name", sa.Text(), nullable=False),
        sa.Column("last_name", sa.Text(), nullable=False),
        sa.Column(
            "role",
            postgresql.ENUM(name="user_role", create_type=False),
            nullable=False,
            server_default="STAFF",
        ),
        sa.Column(
            "clinic_id",
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey("clinics.id", ondelete="RESTRICT"),
            nullable=False,
        ),
        sa.Column(
            "is_active",
            sa.Boolean(),
            nullable=False,
            server_default=sa.text("true"),
        ),
        _created_at(),
        _updated_at(),
        sa.UniqueConstraint("external_auth_id", name="uq_users_external_auth_id"),
        sa.UniqueConstraint("email", name="uq_users_email"),
    )

    # B) patients / patient_profiles
    op.create_table(
        "patients",
        _id_column(),
        sa.Column(
            "clinic_id",
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey("clinics.id", ondelete="RESTRICT"),
            nullable=False,
        ),
        sa.Column("mrn", sa.Text(), nullable=False),
        sa.Column("first_name", sa.Text(), nullable=False),
        sa.Column("last_name", sa.Text(), nullable=False),
        sa.Column("date_of_birth", sa.DateTime(timezone=True), nullable=False),
        sa.Column("phone", sa.Text(), nullable=True),
        sa.Column("email", sa.Text(), nullable=True),
        sa.Column("address", postgresql.JSONB(), nullable=True),
        sa.Column("insurance", postgresql.JSONB(), nullable=True),
        _created_at(),
        _updated_at(),
        sa.UniqueConstraint("mrn", name="uq_patients_mrn"),
    )
    # Справочник сортируется по updated_at DESC, created_at DESC.
    op.create_index(
        "ix_patients_updated_created",
        "patients",
        [sa.text("updated_at DESC"), sa.text("created_at DESC")],
    )
    op.create_index("ix_patients_clinic_id", "patients", ["clinic_id"])

    op.create_table(
        "patient_profiles",
        _id_column(),
        sa.Column(
            "patient_id",
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey("patients.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("age", sa.Integer(), nullable=True),
        sa.Column("height", sa.Float(), nullable=True),
        sa.Column("weight", sa.Float(), nullable=True),
        sa.Column("bmi", sa.Float(), nullable=True),
        sa.Column("blood_type", sa.Text(), nullable=True),
        sa.Column("diagnosis", postgresql.JSONB(), nullable=True),
        sa.Column("medical_history", postgresql.JSONB(), nullable=True),
        sa.Column("surgical_history", postgresql.JSONB(), nullable=True),
        sa.Column("family_history", postgresql.JSONB(), nullable=True),
        sa.Column("lifestyle", postgresql.JSONB(), nullable=True),
        sa.Column("allergies", postgresql.JSONB(), nullable=True),
        sa.Column("current_medications", postgresql.JSONB(), nullable=True),
        sa.Column("reproductive_history", postgresql.JSONB(), nullable=True),
        sa.Column("partner_info", postgresql.JSONB(), nullable=True),
        _created_at(),
        _updated_at(),
        sa.UniqueConstraint("patient_id", name="uq_patient_profiles_patient_id"),
    )

    # C) treatment_cycles / lab_results
    op.create_table(
        "treatment_cycles",
        _id_column(),
        sa.Column(
            "patient_id",
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey("patients.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("cycle_number", sa.Integer(), nullable=False),
        sa.Column("protocol_type", sa.Text(), nullable=True),
        sa.Column("start_date", sa.DateTime(timezone=True), nullable=True),
        sa.Column("expected_retrieval", sa.DateTime(timezone=True), nullable=True),
        sa.Column("actual_retrieval", sa.DateTime(timezone=True), nullable=True),
        sa.Column("transfer_date", sa.DateTime(timezone=True), nullable=True),
        sa.Column(
            "status",
            postgresql.ENUM(name="cycle_status", create_type=False),
            nullable=False,
            server_default="PLANNING",
        ),
        sa.Column("medications", postgresql.JSONB(), nullable=True),
        sa.Column("monitoring_data", postgresql.JSONB(), nullable=True),
        sa.Column("outcome", postgresql.JSONB(), nullable=True),
        sa.Column("notes", sa.Text(), nullable=True),
        _created_at(),
        _updated_at(),
    )
    op.create_index("ix_treatment_cycles_patient_id", "treatment_cycles", ["patient_id"])

    op.create_table(
        "lab_results",
        _id_column(),
        sa.Column(
            "patient_id",
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey("patients.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column(
            "cycle_id",
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey("treatment_cycles.id", ondelete="SET NULL"),
            nullable=True,
        ),
        sa.Column("test_type", sa.Text(), nullable=False),
        sa.Column("test_date", sa.DateTime(timezone=True), nullable=False),
        sa.Column("cycle_day", sa.Integer(), nullable=True),
        sa.Column("values", postgresql.JSONB(), nullable=False),
        sa.Column("reference_ranges", postgresql.JSONB(), nullable=True),
        sa.Column("flags", postgresql.JSONB(), nullable=True),
        sa.Column("interpretation", sa.Text(), nullable=True),
        sa.Column("ordered_by", sa.Text(), nullable=True),
        _created_at(),
    )
    op.create_index(
        "ix_lab_results_patient_test_date",
        "lab_results",
        ["patient_id", sa.text("test_date DESC")],
    )

    # D) documents
    op.create_table(
        "documents",
        _id_column(),
        sa.Column(
            "patient_id",
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey("patients.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column(
            "cycle_id",
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey("treatment_cycles.id", ondelete="SET NULL"),
            nullable=True,
        ),
        sa.Column(
            "document_type",
            postgresql.ENUM(name="doc_type", create_type=False),
            nullable=False,
        ),
        sa.Column("file_name", sa.Text(), nullable=False),
        sa.Column("file_path", sa.Text(), nullable=False),
        sa.Column("file_size", sa.Integer(), nullable=True),
        sa.Column("mime_type", sa.Text(), nullable=True),
        sa.Column(
            "processed",
            sa.Boolean(),
            nullable=False,
            server_default=sa.text("false"),
        ),
        sa.Column("ai_extracted_data", postgresql.JSONB(), nullable=True),
        sa.Column("uploaded_by", sa.Text(), nullable=True),
        _created_at(),
    )

    # E) ai_predictions (аудит консультаций)
    op.create_table(
        "ai_predictions",
        _id_column(),
        sa.Column(
            "patient_id",
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey("patients.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column(
            "cycle_id",
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey("treatment_cycles.id", ondelete="SET NULL"),
            nullable=True,
        ),
        sa.Column("prediction_type", sa.Text(), nullable=False),
        sa.Column("input_data", postgresql.JSONB(), nullable=False),
        sa.Column("prediction_result", postgresql.JSONB(), nullable=False),
        sa.Column(
            "confidence_score",
            sa.Float(),
            nullable=True,
            server_default=sa.text("0.85"),
        ),
        sa.Column("model_version", sa.Text(), nullable=True),
        _created_at(),
    )
    # История пациента: WHERE patient_id = ? ORDER BY created_at DESC LIMIT n
    op.create_index(
        "ix_ai_predictions_patient_created_at",
        "ai_predictions",
        ["patient_id", sa.text("created_at DESC")],
    )

    # F) audit_logs
    op.create_table(
        "audit_logs",
        _id_column(),
        sa.Column("user_id", sa.Text(), nullable=True),
        sa.Column("action", sa.Text(), nullable=False),
        sa.Column("resource_type", sa.Text(), nullable=False),
        sa.Column("resource_id", sa.Text(), nullable=False),
        sa.Column("old_values", postgresql.JSONB(), nullable=True),
        sa.Column("new_values", postgresql.JSONB(), nullable=True),
        sa.Column("ip_address", sa.Text(), nullable=True),
        sa.Column("user_agent", sa.Text(), nullable=True),
        _created_at(),
    )
    op.create_index(
        "ix_audit_logs_resource",
        "audit_logs",
        ["resource_type", "resource_id"],
    )


def downgrade() -> None:
    # Таблицы удаляем в обратном порядке зависимостей
    op.drop_index("ix_audit_logs_resource", table_name="audit_logs")
    op.drop_table("audit_logs")

    op.drop_index("ix_ai_predictions_patient_created_at", table_name="ai_predictions")
    op.drop_table("ai_predictions")

    op.drop_table("documents")

    op.drop_index("ix_lab_results_patient_test_date", table_name="lab_results")
    op.drop_table("lab_results")

    op.drop_index("ix_treatment_cycles_patient_id", table_name="treatment_cycles")
    op.drop_table("treatment_cycles")

    op.drop_table("patient_profiles")

    op.drop_index("ix_patients_clinic_id", table_name="patients")
    op.drop_index("ix_patients_updated_created", table_name="patients")
    op.drop_table("patients")

    op.drop_table("users")
    op.drop_table("clinics")

    op.execute("DROP TYPE IF EXISTS doc_type")
    op.execute("DROP TYPE IF EXISTS cycle_status")
    op.execute("DROP TYPE IF EXISTS user_role")
