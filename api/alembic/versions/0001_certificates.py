"""users and certificates

Revision ID: 0001_certificates
Revises:
Create Date: 2026-10-19

Accounts keyed by Clerk user id, and certificate records keyed by the
caller-minted cert_id.
"""

import sqlalchemy as sa

from alembic import op

# revision identifiers, used by Alembic.
revision = "0001_certificates"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    # Users table - Clerk user id as PK
    op.create_table(
        "users",
        sa.Column("id", sa.String(255), nullable=False),
        sa.Column("email", sa.String(255), nullable=False),
        sa.Column("first_name", sa.String(255), nullable=True),
        sa.Column("last_name", sa.String(255), nullable=True),
        sa.Column("avatar_url", sa.Text(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_users_email", "users", ["email"])

    # Certificates table - one row per cert_id, upserted on registration
    op.create_table(
        "certificates",
        sa.Column("cert_id", sa.String(255), nullable=False),
        sa.Column("user_id", sa.String(255), nullable=False),
        sa.Column("full_name", sa.String(255), nullable=False),
        sa.Column("course_key", sa.String(100), nullable=False),
        sa.Column("issued_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("storage_path", sa.Text(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
        sa.PrimaryKeyConstraint("cert_id"),
        sa.ForeignKeyConstraint(["user_id"], ["users.id"], ondelete="CASCADE"),
    )
    op.create_index("ix_certificates_user", "certificates", ["user_id"])


def downgrade() -> None:
    op.drop_index("ix_certificates_user", table_name="certificates")
    op.drop_table("certificates")
    op.drop_index("ix_users_email", table_name="users")
    op.drop_table("users")
