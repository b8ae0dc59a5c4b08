"""add claimed_at to scrape_sessions

Revision ID: 20261018_0002
Revises: 20261018_0001
Create Date: 2026-10-18 12:00:00
"""

from __future__ import annotations

from alembic import op
import sqlalchemy as sa

revision = "20261018_0002"
down_revision = "20261018_0001"
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.add_column(
        "scrape_sessions",
        sa.Column(
            "claimed_at",
            sa.DateTime(timezone=True),
            nullable=True,
            comment="set once by the worker that runs the session",
        ),
    )


def downgrade() -> None:
    op.drop_column("scrape_sessions", "claimed_at")
