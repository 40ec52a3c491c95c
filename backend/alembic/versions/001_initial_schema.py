"""Initial schema: bookings (occasions and tickets) and booking_guests.

Revision ID: 001
Revises: None
Create Date: 2026-10-19
"""
from typing import Sequence, Union
from alembic import op
import sqlalchemy as sa

revision: str = "001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    # Bookings table: organiser rows are occasions, child rows are tickets
    op.create_table(
        "bookings",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("booking_type", sa.String(20), nullable=False, server_default="occasion"),
        sa.Column("is_occasion_organiser", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        sa.Column("parent_booking_id", sa.Integer(), sa.ForeignKey("bookings.id"), nullable=True),
        sa.Column("venue", sa.String(20), nullable=False),
        sa.Column("occasion_name", sa.String(255), nullable=True),
        sa.Column("booking_date", sa.Date(), nullable=False),
        sa.Column("capacity", sa.Integer(), nullable=True),
        sa.Column("organiser_token", sa.String(32), nullable=True),
        sa.Column("share_token", sa.String(32), nullable=True),
        sa.Column("reference_code", sa.String(20), nullable=True),
        sa.Column("guest_list_token", sa.String(64), nullable=True),
        sa.Column("ticket_quantity", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("ticket_price_cents", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("total_amount_cents", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("customer_name", sa.String(255), nullable=True),
        sa.Column("customer_email", sa.String(255), nullable=True),
        sa.Column("customer_phone", sa.String(50), nullable=True),
        sa.Column("status", sa.String(20), nullable=False, server_default="confirmed"),
        sa.Column("payment_status", sa.String(20), nullable=False, server_default="pending"),
        sa.Column("payment_reference", sa.String(100), nullable=True),
        sa.Column("idempotency_key", sa.String(45), nullable=True),
        sa.Column("payment_completed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("booking_source", sa.String(30), nullable=True),
        sa.Column("staff_notes", sa.Text(), nullable=True),
        sa.Column("version", sa.Integer(), nullable=False, server_default=sa.text("1")),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.CheckConstraint("venue IN ('manor', 'hippie')", name="check_booking_venue"),
        sa.CheckConstraint(
            "status IN ('pending', 'confirmed', 'cancelled', 'completed')",
            name="check_booking_status",
        ),
        sa.CheckConstraint("ticket_quantity >= 0", name="check_ticket_quantity_non_negative"),
        sa.CheckConstraint("ticket_price_cents >= 0", name="check_ticket_price_non_negative"),
        sa.CheckConstraint(
            "NOT is_occasion_organiser OR capacity > 0",
            name="check_occasion_capacity_positive",
        ),
        sa.CheckConstraint(
            "is_occasion_organiser OR parent_booking_id IS NULL OR ticket_quantity > 0",
            name="check_child_ticket_quantity_positive",
        ),
    )
    op.create_index("ix_bookings_id", "bookings", ["id"])
    op.create_index("ix_bookings_parent_booking_id", "bookings", ["parent_booking_id"])
    # Every capacity read sums child tickets of one occasion, excluding cancelled
    op.create_index("ix_bookings_parent_status", "bookings", ["parent_booking_id", "status"])
    # Dashboard listings filter and sort by date
    op.create_index("ix_bookings_booking_date", "bookings", ["booking_date"])
    # Unique tokens: a collision is a retryable insert error
    op.create_index("ix_bookings_organiser_token", "bookings", ["organiser_token"], unique=True)
    op.create_index("ix_bookings_share_token", "bookings", ["share_token"], unique=True)
    op.create_index("ix_bookings_reference_code", "bookings", ["reference_code"], unique=True)
    op.create_index("ix_bookings_guest_list_token", "bookings", ["guest_list_token"], unique=True)
    op.create_index(
        "uq_bookings_parent_idempotency_key",
        "bookings",
        ["parent_booking_id", "idempotency_key"],
        unique=True,
    )

    # Guest entries
    op.create_table(
        "booking_guests",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column(
            "booking_id",
            sa.Integer(),
            sa.ForeignKey("bookings.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("guest_name", sa.String(255), nullable=False),
        sa.Column("is_organiser", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
    )
    op.create_index("ix_booking_guests_id", "booking_guests", ["id"])
    op.create_index("ix_booking_guests_booking_id", "booking_guests", ["booking_id"])


def downgrade() -> None:
    op.drop_table("booking_guests")
    op.drop_table("bookings")
