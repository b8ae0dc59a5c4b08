"""create competitor pricing tables and scrape session notify trigger

Revision ID: 20261018_0001
Revises:
Create Date: 2026-10-18 09:00:00
"""

from __future__ import annotations

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision = "20261018_0001"
down_revision = None
branch_labels = None
depends_on = None

NOTIFY_CHANNEL = "scrape_session_created"


def upgrade() -> None:
    op.create_table(
        "competitors",
        sa.Column("id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("pricing_page_url", sa.Text(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_competitors_name", "competitors", ["name"], unique=False)

    op.create_table(
        "scrape_sessions",
        sa.Column("id", postgresql.UUID(as_uuid=True), server_default=sa.text("gen_random_uuid()"), nullable=False),
        sa.Column("competitor_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("status", sa.String(length=32), server_default=sa.text("'pending'"), nullable=False),
        sa.Column("scraped_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
        sa.Column("completed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("error_message", sa.Text(), nullable=True),
        sa.ForeignKeyConstraint(["competitor_id"], ["competitors.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_scrape_sessions_competitor_id", "scrape_sessions", ["competitor_id"], unique=False)
    op.create_index("ix_scrape_sessions_status", "scrape_sessions", ["status"], unique=False)
    op.create_index("ix_scrape_sessions_scraped_at", "scrape_sessions", ["scraped_at"], unique=False)

    op.create_table(
        "pricing_plans",
        sa.Column("id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("scrape_session_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("competitor_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("plan_name", sa.String(length=255), nullable=False),
        sa.Column("price", sa.Float(), nullable=True),
        sa.Column("currency", sa.String(length=3), server_default=sa.text("'USD'"), nullable=False),
        sa.Column("billing_cycle", sa.String(length=16), server_default=sa.text("'monthly'"), nullable=False),
        sa.Column("description", sa.Text(), server_default=sa.text("''"), nullable=False),
        sa.Column("is_current", sa.Boolean(), server_default=sa.true(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
        sa.ForeignKeyConstraint(["scrape_session_id"], ["scrape_sessions.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["competitor_id"], ["competitors.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(
        "ix_pricing_plans_competitor_current",
        "pricing_plans",
        ["competitor_id", "is_current"],
        unique=False,
    )
    op.create_index("ix_pricing_plans_scrape_session_id", "pricing_plans", ["scrape_session_id"], unique=False)

    op.create_table(
        "plan_features",
        sa.Column("id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("plan_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("feature_text", sa.Text(), nullable=False),
        sa.Column("position", sa.Integer(), server_default=sa.text("0"), nullable=False),
        sa.Column("is_current", sa.Boolean(), server_default=sa.true(), nullable=False),
        sa.ForeignKeyConstraint(["plan_id"], ["pricing_plans.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(
        "ix_plan_features_plan_current",
        "plan_features",
        ["plan_id", "is_current"],
        unique=False,
    )

    op.execute(
        f"""
        CREATE OR REPLACE FUNCTION notify_scrape_session_created() RETURNS trigger AS $$
        BEGIN
            PERFORM pg_notify('{NOTIFY_CHANNEL}', row_to_json(NEW)::text);
            RETURN NEW;
        END;
        $$ LANGUAGE plpgsql;
        """
    )
    op.execute(
        """
        CREATE TRIGGER scrape_session_created_notify
        AFTER INSERT ON scrape_sessions
        FOR EACH ROW EXECUTE FUNCTION notify_scrape_session_created();
        """
    )


def downgrade() -> None:
    op.execute("DROP TRIGGER IF EXISTS scrape_session_created_notify ON scrape_sessions")
    op.execute("DROP FUNCTION IF EXISTS notify_scrape_session_created()")
    op.drop_index("ix_plan_features_plan_current", table_name="plan_features")
    op.drop_table("plan_features")
    op.drop_index("ix_pricing_plans_scrape_session_id", table_name="pricing_plans")
    op.drop_index("ix_pricing_plans_competitor_current", table_name="pricing_plans")
    op.drop_table("pricing_plans")
    op.drop_index("ix_scrape_sessions_scraped_at", table_name="scrape_sessions")
    op.drop_index("ix_scrape_sessions_status", table_name="scrape_sessions")
    op.drop_index("ix_scrape_sessions_competitor_id", table_name="scrape_sessions")
    op.drop_table("scrape_sessions")
    op.drop_index("ix_competitors_name", table_name="competitors")
    op.drop_table("competitors")
