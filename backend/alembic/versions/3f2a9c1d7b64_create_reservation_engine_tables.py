"""
Create reservation engine tables.

Creates titles, copies, library cards, loan details, reservations and the
allocation tables (reservation_queue, reservation_holds) plus notifications.

reservation_holds carries unique constraints on reservation_id and copy_id:
a copy can be held for at most one reservation and a reservation holds at
most one copy. reservation_queue has no unique (book_title_id, position)
constraint because the tail shift updates positions in bulk.

Revision ID: 3f2a9c1d7b64
Revises:
Create Date: 2026-10-17 10:12:44.518203
"""

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


revision: str = "3f2a9c1d7b64"
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

copy_status = sa.Enum("AVAILABLE", "ON_LOAN", "DAMAGED", "LOST", name="copy_status")
reservation_status = sa.Enum(
    "PENDING", "READY", "FULFILLED", "EXPIRED", "CANCELLED",
    name="reservation_status",
)
notification_type = sa.Enum("BOOK_READY", name="notification_type")


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    ]


def upgrade() -> None:
    """Create all tables and indexes."""
    op.create_table(
        "book_titles",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("title", sa.String(length=500), nullable=False),
        *_timestamps(),
    )

    op.create_table(
        "library_cards",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("card_number", sa.String(length=50), nullable=False, unique=True),
        sa.Column("reader_id", sa.Uuid(), nullable=False),
        *_timestamps(),
    )
    op.create_index("ix_library_cards_reader_id", "library_cards", ["reader_id"])

    op.create_table(
        "book_copies",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column(
            "book_title_id",
            sa.Uuid(),
            sa.ForeignKey("book_titles.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("availability_status", copy_status, nullable=False),
        sa.Column("condition", sa.String(length=100), nullable=True),
        sa.Column("price", sa.Numeric(10, 2), nullable=True),
        *_timestamps(),
    )
    op.create_index("ix_book_copies_book_title_id", "book_copies", ["book_title_id"])
    op.create_index("ix_book_copies_availability_status", "book_copies", ["availability_status"])

    op.create_table(
        "loan_details",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column(
            "copy_id",
            sa.Uuid(),
            sa.ForeignKey("book_copies.id", ondelete="RESTRICT"),
            nullable=False,
        ),
        sa.Column(
            "card_id",
            sa.Uuid(),
            sa.ForeignKey("library_cards.id", ondelete="RESTRICT"),
            nullable=False,
        ),
        sa.Column("loaned_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("due_date", sa.DateTime(timezone=True), nullable=False),
        sa.Column("return_date", sa.DateTime(timezone=True), nullable=True),
        *_timestamps(),
    )
    op.create_index("ix_loan_details_copy_open", "loan_details", ["copy_id", "return_date"])
    op.create_index("ix_loan_details_card_id", "loan_details", ["card_id"])

    op.create_table(
        "reservations",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column(
            "card_id",
            sa.Uuid(),
            sa.ForeignKey("library_cards.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column(
            "book_title_id",
            sa.Uuid(),
            sa.ForeignKey("book_titles.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("reservation_date", sa.DateTime(timezone=True), nullable=False),
        sa.Column("expiration_date", sa.DateTime(timezone=True), nullable=True),
        sa.Column("status", reservation_status, nullable=False),
        *_timestamps(),
    )
    op.create_index("ix_reservations_card_status", "reservations", ["card_id", "status"])
    op.create_index("ix_reservations_title_status", "reservations", ["book_title_id", "status"])

    op.create_table(
        "reservation_queue",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column(
            "reservation_id",
            sa.Uuid(),
            sa.ForeignKey("reservations.id", ondelete="CASCADE"),
            nullable=False,
            unique=True,
        ),
        sa.Column(
            "book_title_id",
            sa.Uuid(),
            sa.ForeignKey("book_titles.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("position", sa.Integer(), nullable=False),
        *_timestamps(),
    )
    op.create_index(
        "ix_reservation_queue_title_position",
        "reservation_queue",
        ["book_title_id", "position"],
    )

    op.create_table(
        "reservation_holds",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column(
            "reservation_id",
            sa.Uuid(),
            sa.ForeignKey("reservations.id", ondelete="CASCADE"),
            nullable=False,
            unique=True,
        ),
        sa.Column(
            "copy_id",
            sa.Uuid(),
            sa.ForeignKey("book_copies.id", ondelete="CASCADE"),
            nullable=False,
            unique=True,
        ),
        sa.Column("expires_at", sa.DateTime(timezone=True), nullable=False),
        *_timestamps(),
    )
    op.create_index("ix_reservation_holds_expires_at", "reservation_holds", ["expires_at"])

    op.create_table(
        "notifications",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("reader_id", sa.Uuid(), nullable=False),
        sa.Column(
            "reservation_id",
            sa.Uuid(),
            sa.ForeignKey("reservations.id", ondelete="SET NULL"),
            nullable=True,
        ),
        sa.Column("notification_type", notification_type, nullable=False),
        sa.Column("message", sa.Text(), nullable=False),
        sa.Column("created_date", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column("is_read", sa.Boolean(), nullable=False),
    )
    op.create_index(
        "ix_notifications_reader_created",
        "notifications",
        ["reader_id", "created_date"],
    )


def downgrade() -> None:
    """Drop all tables and enum types."""
    op.drop_table("notifications")
    op.drop_table("reservation_holds")
    op.drop_table("reservation_queue")
    op.drop_table("reservations")
    op.drop_table("loan_details")
    op.drop_table("book_copies")
    op.drop_table("library_cards")
    op.drop_table("book_titles")

    bind = op.get_bind()
    notification_type.drop(bind, checkfirst=True)
    reservation_status.drop(bind, checkfirst=True)
    copy_status.drop(bind, checkfirst=True)
