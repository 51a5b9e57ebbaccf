"""configuration engine tables

Revision ID: 0001_config_engine
Revises:
Create Date: 2026-10-19 00:00:00
"""
from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects.postgresql import JSONB

revision = "0001_config_engine"
down_revision = None
branch_labels = None
depends_on = None

JSON_TYPE = sa.JSON().with_variant(JSONB, "postgresql")


def upgrade() -> None:
    op.create_table(
        "configuration_entries",
        sa.Column("id", sa.String(length=36), primary_key=True),
        sa.Column("key", sa.String(length=255), nullable=False),
        sa.Column("value", sa.Text(), nullable=False),
        sa.Column("environment", sa.String(length=64), nullable=False),
        sa.Column("application", sa.String(length=128), nullable=False),
        sa.Column("tenant_id", sa.String(length=64)),
        sa.Column("description", sa.Text()),
        sa.Column("is_active", sa.Boolean(), server_default=sa.text("true"), nullable=False),
        sa.Column("is_encrypted", sa.Boolean(), server_default=sa.text("false"), nullable=False),
        sa.Column("version", sa.Integer(), nullable=False),
        sa.Column("validation_rule", JSON_TYPE),
        sa.Column("tags", JSON_TYPE, nullable=False),
        sa.Column("created_by", sa.String(length=128), nullable=False),
        sa.Column("updated_by", sa.String(length=128)),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index(
        "uq_configuration_entries_scope",
        "configuration_entries",
        ["key", "environment", "application", sa.text("coalesce(tenant_id, '')")],
        unique=True,
    )
    op.create_index(
        "ix_configuration_entries_scope",
        "configuration_entries",
        ["environment", "application", "tenant_id"],
    )

    op.create_table(
        "feature_flags",
        sa.Column("id", sa.String(length=36), primary_key=True),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("environment", sa.String(length=64), nullable=False),
        sa.Column("application", sa.String(length=128), nullable=False),
        sa.Column("tenant_id", sa.String(length=64)),
        sa.Column("description", sa.Text()),
        sa.Column("is_enabled", sa.Boolean(), server_default=sa.text("false"), nullable=False),
        sa.Column("rules", JSON_TYPE, nullable=False),
        sa.Column("schedule", JSON_TYPE),
        sa.Column("metadata", JSON_TYPE, nullable=False),
        sa.Column("created_by", sa.String(length=128), nullable=False),
        sa.Column("updated_by", sa.String(length=128)),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index(
        "uq_feature_flags_scope",
        "feature_flags",
        ["name", "environment", "application", sa.text("coalesce(tenant_id, '')")],
        unique=True,
    )
    op.create_index(
        "ix_feature_flags_scope", "feature_flags", ["environment", "application", "tenant_id"]
    )

    op.create_table(
        "deployments",
        sa.Column("id", sa.String(length=36), primary_key=True),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("description", sa.Text()),
        sa.Column("environment", sa.String(length=64), nullable=False),
        sa.Column("application", sa.String(length=128), nullable=False),
        sa.Column("tenant_id", sa.String(length=64)),
        sa.Column("status", sa.String(length=32), nullable=False),
        sa.Column("metadata", JSON_TYPE, nullable=False),
        sa.Column("created_by", sa.String(length=128), nullable=False),
        sa.Column("deployed_by", sa.String(length=128)),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("deployed_at", sa.DateTime(timezone=True)),
        sa.Column("completed_at", sa.DateTime(timezone=True)),
        sa.Column("rollback_reason", sa.Text()),
    )

    op.create_table(
        "deployment_items",
        sa.Column("id", sa.String(length=36), primary_key=True),
        sa.Column(
            "deployment_id",
            sa.String(length=36),
            sa.ForeignKey("deployments.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("position", sa.Integer(), nullable=False),
        sa.Column("configuration_id", sa.String(length=36), nullable=False),
        sa.Column("action", sa.String(length=16), nullable=False),
        sa.Column("old_value", sa.Text()),
        sa.Column("new_value", sa.Text()),
        sa.Column("status", sa.String(length=32), nullable=False),
        sa.Column("error_message", sa.Text()),
        sa.Column("processed_at", sa.DateTime(timezone=True)),
        sa.Column("previous_entry", JSON_TYPE),
    )
    op.create_index("ix_deployment_items_deployment_id", "deployment_items", ["deployment_id"])

    op.create_table(
        "configuration_snapshots",
        sa.Column("id", sa.String(length=36), primary_key=True),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("description", sa.Text()),
        sa.Column("environment", sa.String(length=64), nullable=False),
        sa.Column("application", sa.String(length=128), nullable=False),
        sa.Column("tenant_id", sa.String(length=64)),
        sa.Column("created_by", sa.String(length=128), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("is_automatic", sa.Boolean(), server_default=sa.text("false"), nullable=False),
        sa.Column("tags", JSON_TYPE, nullable=False),
        sa.Column("configuration_data", JSON_TYPE, nullable=False),
        sa.Column("encrypted_keys", JSON_TYPE, nullable=False),
        sa.Column("feature_flag_data", JSON_TYPE, nullable=False),
    )
    op.create_index(
        "ix_configuration_snapshots_scope",
        "configuration_snapshots",
        ["environment", "application", "tenant_id"],
    )

    op.create_table(
        "config_engine_audit_logs",
        sa.Column("id", sa.BigInteger().with_variant(sa.Integer(), "sqlite"), primary_key=True, autoincrement=True),
        sa.Column("audit_id", sa.String(length=36), nullable=False, unique=True),
        sa.Column("entity_type", sa.String(length=32), nullable=False),
        sa.Column("entity_id", sa.String(length=64), nullable=False),
        sa.Column("action", sa.String(length=64), nullable=False),
        sa.Column("old_value", sa.Text()),
        sa.Column("new_value", sa.Text()),
        sa.Column("user_id", sa.String(length=128), nullable=False),
        sa.Column("tenant_id", sa.String(length=64)),
        sa.Column("request_id", sa.String(length=64)),
        sa.Column("details", JSON_TYPE),
        sa.Column("timestamp", sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index(
        "ix_config_engine_audit_entity", "config_engine_audit_logs", ["entity_type", "entity_id"]
    )
    op.create_index("ix_config_engine_audit_timestamp", "config_engine_audit_logs", ["timestamp"])


def downgrade() -> None:
    op.drop_index("ix_config_engine_audit_timestamp", table_name="config_engine_audit_logs")
    op.drop_index("ix_config_engine_audit_entity", table_name="config_engine_audit_logs")
    op.drop_table("config_engine_audit_logs")
    op.drop_index("ix_configuration_snapshots_scope", table_name="configuration_snapshots")
    op.drop_table("configuration_snapshots")
    op.drop_index("ix_deployment_items_deployment_id", table_name="deployment_items")
    op.drop_table("deployment_items")
    op.drop_table("deployments")
    op.drop_index("ix_feature_flags_scope", table_name="feature_flags")
    op.drop_index("uq_feature_flags_scope", table_name="feature_flags")
    op.drop_table("feature_flags")
    op.drop_index("ix_configuration_entries_scope", table_name="configuration_entries")
    op.drop_index("uq_configuration_entries_scope", table_name="configuration_entries")
    op.drop_table("configuration_entries")
