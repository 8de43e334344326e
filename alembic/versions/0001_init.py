"""users, forms and form responses

Revision ID: 0001_init
Revises:
Create Date: 2026-10-19 12:00:00.000000
"""

from __future__ import annotations

import sqlalchemy as sa
from alembic import op
from sqlalchemy.dialects import postgresql


# revision identifiers, used by Alembic.
revision = "0001_init"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        "users",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column("email", sa.String(length=320), nullable=False, unique=True),
        sa.Column("password_hash", sa.String(length=255), nullable=True),
        sa.Column("display_name", sa.String(length=200), nullable=True),
        sa.Column("photo_url", sa.String(length=1000), nullable=True),
        sa.Column("provider", sa.String(length=30), nullable=False, server_default="password"),
        sa.Column("google_sub", sa.String(length=255), nullable=True, unique=True),
        sa.Column("last_login_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
    )

    op.create_table(
        "forms",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column("owner_id", sa.String(length=128), nullable=False),
        sa.Column("name", sa.String(length=300), nullable=False),
        sa.Column("description", sa.Text(), nullable=False, server_default=""),
        sa.Column("elements", sa.JSON(), nullable=False),
        sa.Column("slug", sa.String(length=200), nullable=True),
        sa.Column("is_published", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("responses_count", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("version", sa.Integer(), nullable=False, server_default="1"),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index("ix_forms_owner_created", "forms", ["owner_id", "created_at"])

    op.create_table(
        "form_responses",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column(
            "form_id",
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey("forms.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("answers", sa.JSON(), nullable=False),
        sa.Column("timestamp", sa.BigInteger(), nullable=False),
        sa.Column("respondent_id", sa.String(length=128), nullable=True),
        sa.Column("respondent_email", sa.String(length=320), nullable=True),
    )
    op.create_index("ix_form_responses_form_timestamp", "form_responses", ["form_id", "timestamp"])


def downgrade() -> None:
    op.drop_index("ix_form_responses_form_timestamp", table_name="form_responses")
    op.drop_table("form_responses")
    op.drop_index("ix_forms_owner_created", table_name="forms")
    op.drop_table("forms")
    op.drop_table("users")
