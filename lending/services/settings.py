"""
Service da configuração de multa por atraso.

A configuração é lida do banco a cada cálculo (sem singleton em memória),
então uma alteração feita pelo administrador vale na próxima leitura.
Enquanto nada for salvo, os valores LATE_FEE_* do ambiente são usados.
"""

import logging

from pydantic import ValidationError
from sqlalchemy.ext.asyncio import AsyncSession

from lending.core.config import get_settings
from lending.models.setting import LATE_FEE_CONFIG_KEY
from lending.repositories.setting import SettingRepository
from lending.schemas.setting import LateFeeConfig, LateFeeConfigUpdate

logger = logging.getLogger(__name__)
settings = get_settings()


def default_late_fee_config() -> LateFeeConfig:
    """Configuração padrão vinda das variáveis de ambiente."""
    return LateFeeConfig(
        enabled=settings.LATE_FEE_ENABLED,
        rate=settings.LATE_FEE_RATE,
        interval=settings.LATE_FEE_INTERVAL,
    )


class LateFeeSettingsService:
    """Leitura e gravação da configuração de multa."""

    def __init__(self, db: AsyncSession):
        self.db = db
        self.repo = SettingRepository(db)

    async def get_config(self) -> LateFeeConfig:
        """
        Configuração vigente.

        Um valor salvo inválido é ignorado (com warning) em favor do padrão.
        """
        setting = await self.repo.get_by_key(LATE_FEE_CONFIG_KEY)
        if setting is None or not setting.value:
            return default_late_fee_config()

        try:
            return LateFeeConfig.model_validate(setting.value)
        except ValidationError as e:
            logger.warning(f"late_fee_config inválida no banco, usando padrão: {e}")
            return default_late_fee_config()

    async def update_config(self, data: LateFeeConfigUpdate) -> LateFeeConfig:
        """Grava a nova configuração e a devolve."""
        config = LateFeeConfig.model_validate(data.model_dump())
        await self.repo.upsert(
            LATE_FEE_CONFIG_KEY,
            config.model_dump(mode="json"),
            type="fees",
            description="Configuração de multa por atraso",
        )
        await self.db.commit()

        logger.info(
            f"Multa por atraso atualizada: enabled={config.enabled} "
            f"rate={config.rate} interval={config.interval.value}"
        )
        return config
