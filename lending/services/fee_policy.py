"""
Política de multa por atraso.

Funções puras: recebem a configuração explicitamente e não tocam no banco.

Regra:
    unidades = ceil((fim_efetivo - devolução_prevista) / intervalo), mínimo 0
    multa    = unidades * rate

`second` a `week` têm duração fixa. `month` e `year` são contados no
calendário (relativedelta), e qualquer fração de unidade conta como uma
unidade inteira.
"""

import math
from datetime import datetime, timedelta
from decimal import ROUND_HALF_UP, Decimal
from typing import Optional

from dateutil.relativedelta import relativedelta

from lending.models.base import as_naive_utc
from lending.models.enums import FeeInterval, LoanStatus
from lending.schemas.setting import LateFeeConfig

ZERO = Decimal("0.00")
CENTS = Decimal("0.01")

FIXED_INTERVALS = {
    FeeInterval.SECOND: timedelta(seconds=1),
    FeeInterval.MINUTE: timedelta(minutes=1),
    FeeInterval.HOUR: timedelta(hours=1),
    FeeInterval.DAY: timedelta(days=1),
    FeeInterval.WEEK: timedelta(weeks=1),
}


def _calendar_units(start: datetime, end: datetime, months_per_unit: int) -> int:
    """Meses (ou anos) de calendário entre start e end, arredondando para cima."""
    delta = relativedelta(end, start)
    months = delta.years * 12 + delta.months
    units, remainder = divmod(months, months_per_unit)
    if remainder or start + relativedelta(months=months) < end:
        units += 1
    return units


def overdue_units(
    expected_return_date: datetime,
    effective_end_date: datetime,
    interval: FeeInterval,
) -> int:
    """Quantidade de intervalos (arredondada para cima) após o vencimento."""
    expected = as_naive_utc(expected_return_date)
    end = as_naive_utc(effective_end_date)
    if end <= expected:
        return 0

    if interval == FeeInterval.MONTH:
        return _calendar_units(expected, end, 1)
    if interval == FeeInterval.YEAR:
        return _calendar_units(expected, end, 12)

    return math.ceil((end - expected) / FIXED_INTERVALS[interval])


def calculate_late_fee(
    expected_return_date: datetime,
    effective_end_date: datetime,
    config: LateFeeConfig,
) -> Decimal:
    """
    Calcula a multa automática.

    Args:
        expected_return_date: Data prevista de devolução
        effective_end_date: Data de devolução ou "agora"
        config: Configuração vigente (enabled, rate, interval)

    Returns:
        Valor da multa, nunca negativo (0 se desabilitada ou no prazo)
    """
    if not config.enabled or config.rate <= 0:
        return ZERO

    units = overdue_units(expected_return_date, effective_end_date, config.interval)
    amount = Decimal(units) * config.rate
    return amount.quantize(CENTS, rounding=ROUND_HALF_UP)


def effective_end_date(loan, now: datetime) -> Optional[datetime]:
    """
    Fim do período cobrado de um empréstimo.

    Com date_returned: date_returned; aberto: now. Cancelado sem devolução
    não tem período cobrável (None) e não gera multa.
    """
    if loan.date_returned is not None:
        return loan.date_returned
    if loan.status == LoanStatus.CANCELED:
        return None
    return now


def days_overdue(loan, now: datetime) -> int:
    """Dias inteiros de atraso até o fim efetivo (0 se no prazo ou cancelado)."""
    end = effective_end_date(loan, now)
    if end is None:
        return 0
    end = as_naive_utc(end)
    expected = as_naive_utc(loan.expected_return_date)
    if end <= expected:
        return 0
    return (end - expected).days
