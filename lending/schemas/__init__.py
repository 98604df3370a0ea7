"""
Schemas Pydantic da aplicação.
"""

from lending.schemas.base import (
    BaseSchema,
    ErrorResponse,
    PaginatedResponse,
    TimestampSchema,
)
from lending.schemas.health import HealthResponse
from lending.schemas.user import (
    TokenResponse,
    UserLogin,
    UserRead,
    UserWithToken,
)
from lending.schemas.book import (
    BookAvailability,
    BookCreate,
    BookRead,
    BookUpdate,
)
from lending.schemas.loan import (
    BorrowerStats,
    LoanCreate,
    LoanDetail,
    LoanListFilters,
    LoanSummary,
    LoanUpdate,
    SelfBorrow,
)
from lending.schemas.setting import LateFeeConfig, LateFeeConfigUpdate

__all__ = [
    # Base
    "BaseSchema",
    "ErrorResponse",
    "PaginatedResponse",
    "TimestampSchema",
    # Health
    "HealthResponse",
    # User
    "TokenResponse",
    "UserLogin",
    "UserRead",
    "UserWithToken",
    # Book
    "BookAvailability",
    "BookCreate",
    "BookRead",
    "BookUpdate",
    # Loan
    "BorrowerStats",
    "LoanCreate",
    "LoanDetail",
    "LoanListFilters",
    "LoanSummary",
    "LoanUpdate",
    "SelfBorrow",
    # Settings
    "LateFeeConfig",
    "LateFeeConfigUpdate",
]
