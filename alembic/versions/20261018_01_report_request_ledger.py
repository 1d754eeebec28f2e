"""Report request ledger baseline

Revision ID: 20261018_01
Revises: None
Create Date: 2026-10-18
"""
# pylint: disable=no-member,invalid-name,wrong-import-order

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = "20261018_01"
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """Upgrade schema."""

    op.create_table(
        "report_request",
        sa.Column("report_request_id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("uuid", sa.String(length=36), nullable=False),
        sa.Column("definition_ref", sa.Text(), nullable=False),
        sa.Column("parameters", sa.Text(), nullable=False, server_default=sa.text("'{}'")),
        sa.Column("rendering_mode", sa.Text(), nullable=False),
        sa.Column("priority", sa.String(length=16), nullable=False),
        sa.Column("requested_by", sa.Text(), nullable=False),
        sa.Column("requested_at_utc", sa.DateTime(timezone=True), nullable=False),
        sa.Column("evaluate_started_at_utc", sa.DateTime(timezone=True), nullable=True),
        sa.Column("evaluate_completed_at_utc", sa.DateTime(timezone=True), nullable=True),
        sa.Column("render_completed_at_utc", sa.DateTime(timezone=True), nullable=True),
        sa.Column("status", sa.String(length=16), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.UniqueConstraint("uuid", name="uq_report_request_uuid"),
        sa.CheckConstraint(
            "status IN ('REQUESTED', 'SCHEDULED', 'PROCESSING', 'COMPLETED', 'FAILED', 'DELETED')",
            name="ck_report_request_status",
        ),
        sa.CheckConstraint(
            "priority IN ('HIGHEST', 'HIGH', 'NORMAL', 'LOW', 'LOWEST')",
            name="ck_report_request_priority",
        ),
    )
    op.create_index("ix_report_request_status", "report_request", ["status"])
    op.create_index("ix_report_request_requested_at_utc", "report_request", ["requested_at_utc"])
    op.create_index(
        "ix_report_request_definition_ref_requested_at_utc",
        "report_request",
        ["definition_ref", "requested_at_utc"],
    )

    op.create_table(
        "saved_report",
        sa.Column("uuid", sa.String(length=36), primary_key=True),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("saved_at_utc", sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(
            ["uuid"],
            ["report_request.uuid"],
            name="fk_saved_report_report_request_uuid",
            ondelete="CASCADE",
        ),
    )


def downgrade() -> None:
    """Downgrade schema."""

    op.drop_table("saved_report")
    op.drop_index("ix_report_request_definition_ref_requested_at_utc", table_name="report_request")
    op.drop_index("ix_report_request_requested_at_utc", table_name="report_request")
    op.drop_index("ix_report_request_status", table_name="report_request")
    op.drop_table("report_request")
