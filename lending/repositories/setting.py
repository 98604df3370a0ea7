"""
Repository para a tabela de configurações chave/valor.
"""

from typing import Any

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from lending.models.setting import Setting
from lending.repositories.base import BaseRepository


class SettingRepository(BaseRepository[Setting]):
    """Repository para Setting."""

    def __init__(self, db: AsyncSession):
        super().__init__(Setting, db)

    async def get_by_key(self, key: str) -> Setting | None:
        """Busca configuração pela chave, relendo do banco."""
        result = await self.db.execute(
            select(Setting)
            .where(Setting.key == key)
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    async def upsert(
        self,
        key: str,
        value: Any,
        type: str = "general",
        description: str | None = None,
    ) -> Setting:
        """Cria ou substitui o valor de uma chave."""
        setting = await self.get_by_key(key)
        if setting is None:
            return await self.create(
                key=key,
                value=value,
                type=type,
                description=description,
            )

        setting.value = value
        setting.type = type
        if description is not None:
            setting.description = description
        await self.db.flush()
        return setting
