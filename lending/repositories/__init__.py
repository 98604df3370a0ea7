"""
Módulo de repositórios - acesso a dados.
"""

from lending.repositories.base import BaseRepository
from lending.repositories.user import UserRepository
from lending.repositories.book import BookRepository
from lending.repositories.loan import LoanRepository
from lending.repositories.setting import SettingRepository

__all__ = [
    "BaseRepository",
    "UserRepository",
    "BookRepository",
    "LoanRepository",
    "SettingRepository",
]
