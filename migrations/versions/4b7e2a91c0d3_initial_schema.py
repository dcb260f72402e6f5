"""initial_schema

Revision ID: 4b7e2a91c0d3
Revises:
Create Date: 2026-10-19 09:12:44.318502

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql


# revision identifiers, used by Alembic.
revision: str = '4b7e2a91c0d3'
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

FILING_STATUSES = (
    "new",
    "documents_pending",
    "review",
    "filed",
    "accepted",
    "approved",
    "paid",
)


def upgrade() -> None:
    """Create users, permission, role audit, and tax filing tables."""
    op.create_table(
        "users",
        sa.Column("id", sa.String(length=36), nullable=False),
        sa.Column("email", sa.String(length=255), nullable=True),
        sa.Column("first_name", sa.String(length=255), nullable=True),
        sa.Column("last_name", sa.String(length=255), nullable=True),
        sa.Column("phone", sa.String(length=20), nullable=True),
        sa.Column("role", sa.String(length=20), nullable=True),
        sa.Column("office_id", sa.String(length=36), nullable=True),
        sa.Column("assigned_to", sa.String(length=36), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=False),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=True),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("email"),
    )
    op.create_index("ix_users_role", "users", ["role"])

    op.create_table(
        "permissions",
        sa.Column("id", sa.String(length=36), nullable=False),
        sa.Column("slug", sa.String(length=100), nullable=False),
        sa.Column("label", sa.String(length=255), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("feature_group", sa.String(length=100), nullable=False),
        sa.Column("sort_order", sa.Integer(), nullable=False),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("slug"),
    )

    op.create_table(
        "role_permissions",
        sa.Column("id", sa.String(length=36), nullable=False),
        sa.Column("role", sa.String(length=20), nullable=False),
        sa.Column("permission_id", sa.String(length=36), nullable=False),
        sa.Column("granted", sa.Boolean(), nullable=False),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=True),
        sa.ForeignKeyConstraint(["permission_id"], ["permissions.id"]),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint(
            "role", "permission_id", name="uq_role_permissions_role_permission"
        ),
    )
    op.create_index("ix_role_permissions_role", "role_permissions", ["role"])
    op.create_index(
        "ix_role_permissions_permission_id", "role_permissions", ["permission_id"]
    )

    op.create_table(
        "role_audit_log",
        sa.Column("id", sa.String(length=36), nullable=False),
        sa.Column("user_id", sa.String(length=36), nullable=False),
        sa.Column("user_name", sa.Text(), nullable=True),
        sa.Column("previous_role", sa.String(length=20), nullable=True),
        sa.Column("new_role", sa.String(length=20), nullable=False),
        sa.Column("changed_by_id", sa.String(length=36), nullable=False),
        sa.Column("changed_by_name", sa.Text(), nullable=True),
        sa.Column("reason", sa.Text(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.ForeignKeyConstraint(["user_id"], ["users.id"]),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_role_audit_log_user_id", "role_audit_log", ["user_id"])

    op.create_table(
        "tax_filings",
        sa.Column("id", sa.String(length=36), nullable=False),
        sa.Column("client_id", sa.String(length=36), nullable=False),
        sa.Column("tax_year", sa.Integer(), nullable=False),
        sa.Column(
            "status",
            sa.Enum(*FILING_STATUSES, name="filingstatus", native_enum=False, length=30),
            nullable=False,
        ),
        sa.Column("documents_received_at", sa.DateTime(), nullable=True),
        sa.Column("submitted_at", sa.DateTime(), nullable=True),
        sa.Column("accepted_at", sa.DateTime(), nullable=True),
        sa.Column("approved_at", sa.DateTime(), nullable=True),
        sa.Column("funded_at", sa.DateTime(), nullable=True),
        sa.Column("estimated_refund", sa.Numeric(precision=10, scale=2), nullable=True),
        sa.Column("actual_refund", sa.Numeric(precision=10, scale=2), nullable=True),
        sa.Column("service_fee", sa.Numeric(precision=10, scale=2), nullable=True),
        sa.Column("fee_paid", sa.Boolean(), nullable=False),
        sa.Column("preparer_id", sa.String(length=36), nullable=True),
        sa.Column("preparer_name", sa.Text(), nullable=True),
        sa.Column("office_location", sa.String(length=100), nullable=True),
        sa.Column("filing_type", sa.String(length=50), nullable=False),
        sa.Column("federal_status", sa.String(length=50), nullable=True),
        sa.Column("state_status", sa.String(length=50), nullable=True),
        sa.Column("states_filed", postgresql.JSONB(astext_type=sa.Text()), nullable=True),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("status_history", postgresql.JSONB(astext_type=sa.Text()), nullable=False),
        sa.Column("version", sa.Integer(), nullable=False),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=True),
        sa.ForeignKeyConstraint(["client_id"], ["users.id"]),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("client_id", "tax_year", name="uq_tax_filings_client_year"),
    )
    op.create_index("ix_tax_filings_tax_year", "tax_filings", ["tax_year"])
    op.create_index("ix_tax_filings_status", "tax_filings", ["status"])
    op.create_index("ix_tax_filings_preparer_id", "tax_filings", ["preparer_id"])


def downgrade() -> None:
    """Drop every table created by this revision."""
    op.drop_index("ix_tax_filings_preparer_id", table_name="tax_filings")
    op.drop_index("ix_tax_filings_status", table_name="tax_filings")
    op.drop_index("ix_tax_filings_tax_year", table_name="tax_filings")
    op.drop_table("tax_filings")
    op.drop_index("ix_role_audit_log_user_id", table_name="role_audit_log")
    op.drop_table("role_audit_log")
    op.drop_index("ix_role_permissions_permission_id", table_name="role_permissions")
    op.drop_index("ix_role_permissions_role", table_name="role_permissions")
    op.drop_table("role_permissions")
    op.drop_table("permissions")
    op.drop_index("ix_users_role", table_name="users")
    op.drop_table("users")
