"""
Enums utilizados nos models da aplicação.
"""

import enum


class UserRole(str, enum.Enum):
    """Roles de usuário no sistema."""
    ADMIN = "ADMIN"
    STUDENT = "STUDENT"
    TEACHER = "TEACHER"


class LoanStatus(str, enum.Enum):
    """
    Status de um empréstimo (transaction).

    Fluxo:
        BORROWED -> RETURNED (devolvido, libera cópias)
        BORROWED -> CANCELED (cancelado, libera cópias)
        BORROWED -> OVERDUE  (atrasado, não mexe no estoque)
        OVERDUE  -> RETURNED / CANCELED

    RETURNED e CANCELED são terminais. A perda (is_lost) é um flag à parte.
    """
    BORROWED = "borrowed"
    RETURNED = "returned"
    OVERDUE = "overdue"
    CANCELED = "canceled"


class FeeInterval(str, enum.Enum):
    """Unidade de cobrança da multa por atraso."""
    SECOND = "second"
    MINUTE = "minute"
    HOUR = "hour"
    DAY = "day"
    WEEK = "week"
    MONTH = "month"
    YEAR = "year"
