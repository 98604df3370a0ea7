"""
Model de livro do catálogo, com o par de contadores de estoque.
"""

from typing import TYPE_CHECKING, List, Optional

from sqlalchemy import CheckConstraint, Integer, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from lending.db.session import Base
from lending.models.base import UUIDMixin, TimestampMixin

if TYPE_CHECKING:
    from lending.models.loan import Loan


class Book(Base, UUIDMixin, TimestampMixin):
    """
    Livro do catálogo.

    Regras de estoque:
        - total_copies >= 1, alterado apenas por edição de catálogo
        - 0 <= available_copies <= total_copies
        - available_copies só muda pelo InventoryLedger (reserve/release/resize)

    Attributes:
        id: UUID único do livro
        title: Título
        isbn: ISBN único
        author: Nome do autor
        total_copies: Cópias físicas no acervo
        available_copies: Cópias na estante neste momento
        loans: Empréstimos do livro
    """
    __tablename__ = "books"

    title: Mapped[str] = mapped_column(String(500), nullable=False)
    isbn: Mapped[str] = mapped_column(String(32), unique=True, nullable=False)
    author: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    total_copies: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    available_copies: Mapped[int] = mapped_column(Integer, nullable=False, default=1)

    # Relationships
    loans: Mapped[List["Loan"]] = relationship(
        "Loan",
        back_populates="book",
        lazy="noload",
    )

    __table_args__ = (
        CheckConstraint("total_copies >= 1", name="ck_books_total_copies_positive"),
        CheckConstraint(
            "available_copies >= 0 AND available_copies <= total_copies",
            name="ck_books_available_copies_range",
        ),
    )

    def __repr__(self) -> str:
        return f"<Book {self.title} ({self.available_copies}/{self.total_copies})>"

    @property
    def copies_on_loan(self) -> int:
        """Cópias atualmente fora da estante."""
        return self.total_copies - self.available_copies

    @property
    def is_available(self) -> bool:
        return self.available_copies > 0
