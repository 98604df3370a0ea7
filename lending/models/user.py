"""
Model de usuário do sistema.
"""

from typing import TYPE_CHECKING, List

from sqlalchemy import Enum as SQLEnum, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from lending.db.session import Base
from lending.models.base import UUIDMixin, TimestampMixin
from lending.models.enums import UserRole

if TYPE_CHECKING:
    from lending.models.loan import Loan


class User(Base, UUIDMixin, TimestampMixin):
    """
    Usuário da biblioteca.

    ADMIN opera o balcão (cria, altera e exclui empréstimos);
    STUDENT e TEACHER são leitores e aparecem como borrower nos empréstimos.

    Attributes:
        id: UUID único do usuário
        name: Nome completo
        email: Email único (usado como login)
        password_hash: Hash bcrypt da senha
        role: ADMIN, STUDENT ou TEACHER
        loans: Empréstimos em que o usuário é o leitor
    """
    __tablename__ = "users"

    name: Mapped[str] = mapped_column(String(255), nullable=False)
    email: Mapped[str] = mapped_column(
        String(255),
        unique=True,
        nullable=False,
        index=True,
    )
    password_hash: Mapped[str] = mapped_column(String(255), nullable=False)
    role: Mapped[UserRole] = mapped_column(
        SQLEnum(UserRole, name="user_role", native_enum=False, length=16),
        nullable=False,
        default=UserRole.STUDENT,
    )

    # Relationships
    loans: Mapped[List["Loan"]] = relationship(
        "Loan",
        back_populates="borrower",
        lazy="noload",
    )

    def __repr__(self) -> str:
        return f"<User {self.email}>"

    @property
    def is_admin(self) -> bool:
        return self.role == UserRole.ADMIN
