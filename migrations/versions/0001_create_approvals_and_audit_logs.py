"""create approvals and audit_logs

Revision ID: 0001_approvals_audit
Revises:
Create Date: 2026-10-19 00:00:00.000000
"""

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = "0001_approvals_audit"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        "approvals",
        sa.Column("id", sa.String(length=36), primary_key=True),
        sa.Column(
            "type",
            sa.Enum("purchase", "reimbursement", "vacation", name="approval_type", native_enum=False),
            nullable=False,
        ),
        sa.Column("amount", sa.Numeric(18, 2), nullable=True),
        sa.Column("requester", sa.String(length=255), nullable=False),
        sa.Column("approver", sa.String(length=255), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("justification", sa.Text(), nullable=True),
        sa.Column(
            "status",
            sa.Enum("pending", "approved", "rejected", name="approval_status", native_enum=False),
            nullable=False,
        ),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("response_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("response_by", sa.String(length=255), nullable=True),
    )
    op.create_index("ix_approvals_status", "approvals", ["status"])
    op.create_index("ix_approvals_requester", "approvals", ["requester"])
    op.create_index("ix_approvals_approver", "approvals", ["approver"])

    op.create_table(
        "audit_logs",
        sa.Column("id", sa.String(length=36), primary_key=True),
        sa.Column("approver", sa.String(length=255), nullable=False),
        sa.Column(
            "action",
            sa.Enum("approved", "rejected", "deleted", "restored", name="audit_action", native_enum=False),
            nullable=False,
        ),
        sa.Column("timestamp", sa.DateTime(timezone=True), nullable=False),
        sa.Column("comment", sa.Text(), nullable=False, server_default=""),
        sa.Column("approval_id", sa.String(length=36), nullable=False),
        sa.Column("metadata", sa.JSON(), nullable=True),
    )
    op.create_index("ix_audit_logs_timestamp", "audit_logs", ["timestamp"])
    op.create_index("ix_audit_logs_approver", "audit_logs", ["approver"])
    op.create_index("ix_audit_logs_approval_id", "audit_logs", ["approval_id"])


def downgrade() -> None:
    op.drop_index("ix_audit_logs_approval_id", table_name="audit_logs")
    op.drop_index("ix_audit_logs_approver", table_name="audit_logs")
    op.drop_index("ix_audit_logs_timestamp", table_name="audit_logs")
    op.drop_table("audit_logs")

    op.drop_index("ix_approvals_approver", table_name="approvals")
    op.drop_index("ix_approvals_requester", table_name="approvals")
    op.drop_index("ix_approvals_status", table_name="approvals")
    op.drop_table("approvals")
