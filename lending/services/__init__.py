"""
Módulo de serviços - lógica de negócio.
"""

from lending.services.auth import AuthService
from lending.services.book import BookService
from lending.services.inventory import InventoryLedger
from lending.services.lending import LendingService
from lending.services.loan_state import LoanState, LoanStateMachine
from lending.services.reference import ReferenceAllocator
from lending.services.settings import LateFeeSettingsService

__all__ = [
    "AuthService",
    "BookService",
    "InventoryLedger",
    "LendingService",
    "LoanState",
    "LoanStateMachine",
    "ReferenceAllocator",
    "LateFeeSettingsService",
]
