"""Initial schema: organizations, locations, provider accounts, jobs, reviews, audit logs.

Revision ID: 0001
Revises:
Create Date: 2026-10-19
"""

from alembic import op
import sqlalchemy as sa

revision = "0001"
down_revision = None
branch_labels = None
depends_on = None


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
    ]


def upgrade() -> None:
    op.create_table(
        "organizations",
        sa.Column("id", sa.String(128), primary_key=True),
        sa.Column("name", sa.String(200), nullable=False),
        *_timestamps(),
    )

    op.create_table(
        "locations",
        sa.Column("id", sa.String(128), primary_key=True),
        sa.Column("organization_id", sa.String(128), sa.ForeignKey("organizations.id"), nullable=False),
        sa.Column("name", sa.String(200), nullable=False),
        sa.Column("address", sa.String(500), nullable=True),
        *_timestamps(),
    )
    op.create_index("ix_locations_organization_id", "locations", ["organization_id"])

    op.create_table(
        "location_provider_links",
        sa.Column("id", sa.String(128), primary_key=True),
        sa.Column("location_id", sa.String(128), sa.ForeignKey("locations.id"), nullable=False),
        sa.Column("provider", sa.String(50), nullable=False),
        sa.Column("external_location_id", sa.String(500), nullable=False),
        sa.Column("metadata_json", sa.JSON(), nullable=False),
        *_timestamps(),
        sa.UniqueConstraint("location_id", "provider", name="uq_location_links_location_provider"),
    )
    op.create_index("ix_location_provider_links_location_id", "location_provider_links", ["location_id"])

    op.create_table(
        "provider_accounts",
        sa.Column("id", sa.String(128), primary_key=True),
        sa.Column("organization_id", sa.String(128), sa.ForeignKey("organizations.id"), nullable=False),
        sa.Column("provider", sa.String(50), nullable=False),
        sa.Column("external_account_id", sa.String(255), nullable=True),
        sa.Column("display_name", sa.String(255), nullable=True),
        sa.Column("token_encrypted", sa.Text(), nullable=True),
        sa.Column("refresh_token_encrypted", sa.Text(), nullable=True),
        sa.Column("scopes", sa.JSON(), nullable=False),
        sa.Column("expires_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("metadata_json", sa.JSON(), nullable=False),
        *_timestamps(),
        sa.UniqueConstraint("organization_id", "provider", name="uq_provider_accounts_org_provider"),
    )
    op.create_index("ix_provider_accounts_organization_id", "provider_accounts", ["organization_id"])

    op.create_table(
        "job_schedules",
        sa.Column("id", sa.String(128), primary_key=True),
        sa.Column("organization_id", sa.String(128), sa.ForeignKey("organizations.id"), nullable=False),
        sa.Column("job_key", sa.String(100), nullable=False),
        sa.Column("enabled", sa.Boolean(), nullable=False),
        sa.Column("cadence_minutes", sa.Integer(), nullable=False),
        sa.Column("next_run_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("last_enqueued_at", sa.DateTime(timezone=True), nullable=True),
        *_timestamps(),
        sa.UniqueConstraint("organization_id", "job_key", name="uq_job_schedules_org_job"),
    )
    op.create_index("ix_job_schedules_organization_id", "job_schedules", ["organization_id"])

    op.create_table(
        "job_runs",
        sa.Column("id", sa.String(128), primary_key=True),
        sa.Column("organization_id", sa.String(128), sa.ForeignKey("organizations.id"), nullable=False),
        sa.Column("job_key", sa.String(100), nullable=False),
        sa.Column("status", sa.String(20), nullable=False),
        sa.Column("started_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("finished_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("summary_json", sa.JSON(), nullable=False),
        sa.Column("error_json", sa.JSON(), nullable=False),
        sa.Column("actor_user_id", sa.String(128), nullable=True),
        *_timestamps(),
    )
    op.create_index("ix_job_runs_organization_id", "job_runs", ["organization_id"])
    op.create_index(
        "uq_job_runs_running",
        "job_runs",
        ["organization_id", "job_key"],
        unique=True,
        postgresql_where=sa.text("status = 'running'"),
        sqlite_where=sa.text("status = 'running'"),
    )

    op.create_table(
        "job_run_items",
        sa.Column("id", sa.String(128), primary_key=True),
        sa.Column("job_run_id", sa.String(128), sa.ForeignKey("job_runs.id"), nullable=False),
        sa.Column("location_id", sa.String(128), nullable=True),
        sa.Column("status", sa.String(20), nullable=False),
        sa.Column("count", sa.Integer(), nullable=True),
        sa.Column("error_json", sa.JSON(), nullable=False),
        *_timestamps(),
    )
    op.create_index("ix_job_run_items_job_run_id", "job_run_items", ["job_run_id"])

    op.create_table(
        "reviews",
        sa.Column("id", sa.String(128), primary_key=True),
        sa.Column("provider", sa.String(50), nullable=False),
        sa.Column("external_review_id", sa.String(255), nullable=False),
        sa.Column("location_id", sa.String(128), sa.ForeignKey("locations.id"), nullable=False),
        sa.Column("rating", sa.Float(), nullable=False),
        sa.Column("comment", sa.Text(), nullable=True),
        sa.Column("author", sa.String(255), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("reply_text", sa.Text(), nullable=True),
        sa.Column("replied_at", sa.DateTime(timezone=True), nullable=True),
        sa.UniqueConstraint("provider", "external_review_id", name="uq_reviews_provider_external"),
    )
    op.create_index("ix_reviews_location_id", "reviews", ["location_id"])

    op.create_table(
        "audit_logs",
        sa.Column("id", sa.String(128), primary_key=True),
        sa.Column("actor_user_id", sa.String(128), nullable=True),
        sa.Column("organization_id", sa.String(128), nullable=True),
        sa.Column("action", sa.String(100), nullable=False),
        sa.Column("target_type", sa.String(50), nullable=True),
        sa.Column("target_id", sa.String(255), nullable=True),
        sa.Column("metadata_json", sa.JSON(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
    )
    op.create_index("ix_audit_logs_actor_user_id", "audit_logs", ["actor_user_id"])
    op.create_index("ix_audit_logs_organization_id", "audit_logs", ["organization_id"])
    op.create_index("ix_audit_logs_action", "audit_logs", ["action"])


def downgrade() -> None:
    op.drop_table("audit_logs")
    op.drop_table("reviews")
    op.drop_table("job_run_items")
    op.drop_index("uq_job_runs_running", table_name="job_runs")
    op.drop_table("job_runs")
    op.drop_table("job_schedules")
    op.drop_table("provider_accounts")
    op.drop_table("location_provider_links")
    op.drop_table("locations")
    op.drop_table("organizations")
