"""
Model de empréstimo (transaction) de livros.
"""

import uuid
from datetime import datetime
from decimal import Decimal
from typing import TYPE_CHECKING, Optional

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    DateTime,
    Enum as SQLEnum,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    Uuid,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from lending.db.session import Base
from lending.models.base import UUIDMixin, TimestampMixin, utcnow
from lending.models.enums import LoanStatus

if TYPE_CHECKING:
    from lending.models.book import Book
    from lending.models.user import User


OPEN_STATUSES = (LoanStatus.BORROWED, LoanStatus.OVERDUE)
CLOSED_STATUSES = (LoanStatus.RETURNED, LoanStatus.CANCELED)


class Loan(Base, UUIDMixin, TimestampMixin):
    """
    Empréstimo de `quantity` cópias de um livro para um leitor.

    Regras de negócio:
        - ref_nbr é único e imutável (CTU-XXXXXX)
        - expected_return_date >= date_borrowed
        - date_returned >= date_borrowed quando presente
        - fees nulo = multa calculada automaticamente; valor = multa manual
        - is_lost é ortogonal ao status e impede a devolução das cópias ao estoque

    Attributes:
        id: UUID único do empréstimo
        ref_nbr: Número de referência legível
        book_id: FK para o livro
        borrower_id: FK para o leitor
        quantity: Cópias reservadas por este empréstimo
        status: borrowed, returned, overdue ou canceled
        is_lost: Cópia marcada como perdida
        date_borrowed: Data/hora do empréstimo
        expected_return_date: Data/hora prevista de devolução
        date_returned: Data/hora da devolução (null se não devolvido)
        date_canceled: Data/hora do cancelamento (null se não cancelado)
        fees: Multa manual (null = automática)
        transaction_date: Momento em que o registro foi criado
        notes: Observações do leitor ou do operador
    """
    __tablename__ = "loans"

    ref_nbr: Mapped[str] = mapped_column(String(32), nullable=False)
    book_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("books.id", ondelete="RESTRICT"),
        nullable=False,
    )
    borrower_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("users.id", ondelete="RESTRICT"),
        nullable=False,
    )
    quantity: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    status: Mapped[LoanStatus] = mapped_column(
        SQLEnum(
            LoanStatus,
            name="loan_status",
            native_enum=False,
            length=16,
            values_callable=lambda enum: [member.value for member in enum],
        ),
        nullable=False,
        default=LoanStatus.BORROWED,
    )
    is_lost: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    date_borrowed: Mapped[datetime] = mapped_column(DateTime, nullable=False)
    expected_return_date: Mapped[datetime] = mapped_column(DateTime, nullable=False)
    date_returned: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)
    date_canceled: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)
    fees: Mapped[Optional[Decimal]] = mapped_column(Numeric(10, 2), nullable=True)
    transaction_date: Mapped[datetime] = mapped_column(
        DateTime,
        nullable=False,
        default=utcnow,
    )
    notes: Mapped[Optional[str]] = mapped_column(String(500), nullable=True)

    # Relationships
    book: Mapped["Book"] = relationship(
        "Book",
        back_populates="loans",
        lazy="selectin",
    )
    borrower: Mapped["User"] = relationship(
        "User",
        back_populates="loans",
        lazy="selectin",
    )

    __table_args__ = (
        Index("ux_loans_ref_nbr", "ref_nbr", unique=True),
        Index("ix_loans_book_id", "book_id"),
        Index("ix_loans_borrower_id", "borrower_id"),
        Index("ix_loans_status", "status"),
        Index("ix_loans_date_borrowed", "date_borrowed"),
        # Empréstimos em aberto de um leitor para um livro
        Index("ix_loans_borrower_book_status", "borrower_id", "book_id", "status"),
        # Busca de atrasados derivados (borrowed e vencido)
        Index("ix_loans_overdue", "status", "expected_return_date"),
        CheckConstraint("quantity >= 1", name="ck_loans_quantity_positive"),
        CheckConstraint(
            "expected_return_date >= date_borrowed",
            name="ck_loans_expected_after_borrowed",
        ),
        CheckConstraint(
            "date_returned IS NULL OR date_returned >= date_borrowed",
            name="ck_loans_returned_after_borrowed",
        ),
        CheckConstraint("fees IS NULL OR fees >= 0", name="ck_loans_fees_non_negative"),
    )

    def __repr__(self) -> str:
        return f"<Loan {self.ref_nbr} - {self.status.value}>"

    @property
    def is_open(self) -> bool:
        """True enquanto as cópias estão com o leitor (borrowed/overdue)."""
        return self.status in OPEN_STATUSES
