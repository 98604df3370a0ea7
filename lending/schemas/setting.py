"""
Schemas Pydantic para configurações (multa por atraso).
"""

from decimal import Decimal

from pydantic import Field

from lending.models.enums import FeeInterval
from lending.schemas.base import BaseSchema


class LateFeeConfig(BaseSchema):
    """
    Configuração da multa por atraso.

    Lida no momento do cálculo (não é copiada para o empréstimo), portanto
    uma alteração vale também para empréstimos já abertos.
    """
    enabled: bool = Field(False, description="Cobrança automática habilitada")
    rate: Decimal = Field(
        Decimal("0"),
        ge=0,
        max_digits=10,
        decimal_places=2,
        description="Valor cobrado por intervalo",
        examples=["5.00"],
    )
    interval: FeeInterval = Field(FeeInterval.DAY, description="Unidade de cobrança")


class LateFeeConfigUpdate(LateFeeConfig):
    """Payload do PUT /settings/late-fees (todos os campos obrigatórios)."""
    enabled: bool
    rate: Decimal = Field(..., ge=0, max_digits=10, decimal_places=2)
    interval: FeeInterval
