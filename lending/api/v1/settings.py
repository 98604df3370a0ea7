"""
Endpoints de configuração da multa por atraso.

Contratos:
    - GET /settings/late-fees: Configuração vigente
    - PUT /settings/late-fees: Substitui a configuração (somente ADMIN)

A alteração vale imediatamente para todos os empréstimos, inclusive os
já abertos, pois a multa é recalculada a cada leitura.
"""

from fastapi import APIRouter

from lending.core.deps import AdminUser, CurrentUser, DbSession
from lending.schemas.setting import LateFeeConfig, LateFeeConfigUpdate
from lending.services.settings import LateFeeSettingsService

router = APIRouter(prefix="/settings", tags=["Settings"])


@router.get(
    "/late-fees",
    response_model=LateFeeConfig,
    summary="Configuração de multa por atraso",
)
async def get_late_fees(
    db: DbSession,
    current_user: CurrentUser,
) -> LateFeeConfig:
    service = LateFeeSettingsService(db)
    return await service.get_config()


@router.put(
    "/late-fees",
    response_model=LateFeeConfig,
    summary="Alterar multa por atraso",
    description="Intervalos: second, minute, hour, day, week, month, year. **Requer ADMIN.**",
)
async def update_late_fees(
    data: LateFeeConfigUpdate,
    db: DbSession,
    admin: AdminUser,
) -> LateFeeConfig:
    service = LateFeeSettingsService(db)
    return await service.update_config(data)
