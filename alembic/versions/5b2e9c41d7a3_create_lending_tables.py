"""
Create users, books, loans and settings tables

Books carry the stock counters (total_copies, available_copies) guarded by a
check constraint so that 0 <= available_copies <= total_copies holds even if
a write bypasses the application. Loans get a unique index on ref_nbr.

Revision ID: 5b2e9c41d7a3
Revises:
Create Date: 2026-10-19 10:12:44.318204
"""

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


revision: str = "5b2e9c41d7a3"
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column("created_at", sa.DateTime(), server_default=sa.func.now(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), server_default=sa.func.now(), nullable=False),
    ]


def upgrade() -> None:
    """Create the lending schema."""
    op.create_table(
        "users",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("email", sa.String(255), nullable=False),
        sa.Column("password_hash", sa.String(255), nullable=False),
        sa.Column("role", sa.String(16), nullable=False),
        *_timestamps(),
    )
    op.create_index("ix_users_email", "users", ["email"], unique=True)

    op.create_table(
        "books",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("title", sa.String(500), nullable=False),
        sa.Column("isbn", sa.String(32), nullable=False, unique=True),
        sa.Column("author", sa.String(255), nullable=True),
        sa.Column("total_copies", sa.Integer(), nullable=False),
        sa.Column("available_copies", sa.Integer(), nullable=False),
        *_timestamps(),
        sa.CheckConstraint("total_copies >= 1", name="ck_books_total_copies_positive"),
        sa.CheckConstraint(
            "available_copies >= 0 AND available_copies <= total_copies",
            name="ck_books_available_copies_range",
        ),
    )

    op.create_table(
        "loans",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("ref_nbr", sa.String(32), nullable=False),
        sa.Column(
            "book_id",
            sa.Uuid(),
            sa.ForeignKey("books.id", ondelete="RESTRICT"),
            nullable=False,
        ),
        sa.Column(
            "borrower_id",
            sa.Uuid(),
            sa.ForeignKey("users.id", ondelete="RESTRICT"),
            nullable=False,
        ),
        sa.Column("quantity", sa.Integer(), nullable=False),
        sa.Column("status", sa.String(16), nullable=False),
        sa.Column("is_lost", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("date_borrowed", sa.DateTime(), nullable=False),
        sa.Column("expected_return_date", sa.DateTime(), nullable=False),
        sa.Column("date_returned", sa.DateTime(), nullable=True),
        sa.Column("date_canceled", sa.DateTime(), nullable=True),
        sa.Column("fees", sa.Numeric(10, 2), nullable=True),
        sa.Column("transaction_date", sa.DateTime(), nullable=False),
        sa.Column("notes", sa.String(500), nullable=True),
        *_timestamps(),
        sa.CheckConstraint("quantity >= 1", name="ck_loans_quantity_positive"),
        sa.CheckConstraint(
            "expected_return_date >= date_borrowed",
            name="ck_loans_expected_after_borrowed",
        ),
        sa.CheckConstraint(
            "date_returned IS NULL OR date_returned >= date_borrowed",
            name="ck_loans_returned_after_borrowed",
        ),
        sa.CheckConstraint("fees IS NULL OR fees >= 0", name="ck_loans_fees_non_negative"),
    )
    op.create_index("ux_loans_ref_nbr", "loans", ["ref_nbr"], unique=True)
    op.create_index("ix_loans_book_id", "loans", ["book_id"])
    op.create_index("ix_loans_borrower_id", "loans", ["borrower_id"])
    op.create_index("ix_loans_status", "loans", ["status"])
    op.create_index("ix_loans_date_borrowed", "loans", ["date_borrowed"])
    op.create_index(
        "ix_loans_borrower_book_status",
        "loans",
        ["borrower_id", "book_id", "status"],
    )
    op.create_index("ix_loans_overdue", "loans", ["status", "expected_return_date"])

    op.create_table(
        "settings",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("key", sa.String(100), nullable=False, unique=True),
        sa.Column("value", sa.JSON(), nullable=True),
        sa.Column("type", sa.String(50), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        *_timestamps(),
    )


def downgrade() -> None:
    """Drop the lending schema."""
    op.drop_table("settings")
    op.drop_index("ix_loans_overdue", table_name="loans")
    op.drop_index("ix_loans_borrower_book_status", table_name="loans")
    op.drop_index("ix_loans_date_borrowed", table_name="loans")
    op.drop_index("ix_loans_status", table_name="loans")
    op.drop_index("ix_loans_borrower_id", table_name="loans")
    op.drop_index("ix_loans_book_id", table_name="loans")
    op.drop_index("ux_loans_ref_nbr", table_name="loans")
    op.drop_table("loans")
    op.drop_table("books")
    op.drop_index("ix_users_email", table_name="users")
    op.drop_table("users")
