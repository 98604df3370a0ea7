"""
Models SQLAlchemy da aplicação.

Importar todos os models aqui para que o Alembic detecte as mudanças.
"""

from lending.models.enums import UserRole, LoanStatus, FeeInterval
from lending.models.user import User
from lending.models.book import Book
from lending.models.loan import Loan
from lending.models.setting import Setting

__all__ = [
    "UserRole",
    "LoanStatus",
    "FeeInterval",
    "User",
    "Book",
    "Loan",
    "Setting",
]
