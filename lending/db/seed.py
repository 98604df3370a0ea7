"""
Script de seed para criar dados iniciais no banco.

Uso:
    python -m lending.db.seed

Cria o usuário admin (balcão) e a configuração padrão de multa por atraso,
se ainda não existirem.
"""

import asyncio
import logging

from sqlalchemy.ext.asyncio import AsyncSession

from lending.core.config import get_settings
from lending.core.logging import setup_logging
from lending.core.security import hash_password
from lending.db.session import async_session_factory
from lending.models.enums import UserRole
from lending.models.setting import LATE_FEE_CONFIG_KEY
from lending.repositories.setting import SettingRepository
from lending.repositories.user import UserRepository
from lending.services.settings import default_late_fee_config

logger = logging.getLogger(__name__)
settings = get_settings()


async def create_admin(db: AsyncSession) -> None:
    """Cria o admin com ADMIN_EMAIL / ADMIN_PASSWORD do .env."""
    repo = UserRepository(db)
    email = settings.ADMIN_EMAIL.lower()

    if await repo.get_by_email(email):
        logger.info(f"Admin já existe: {email}")
        return

    admin = await repo.create(
        name="Administrador",
        email=email,
        password_hash=hash_password(settings.ADMIN_PASSWORD),
        role=UserRole.ADMIN,
    )
    logger.info(f"Admin criado: {email} (ID: {admin.id})")


async def create_late_fee_config(db: AsyncSession) -> None:
    """Grava a configuração de multa padrão (LATE_FEE_* do .env)."""
    repo = SettingRepository(db)

    if await repo.get_by_key(LATE_FEE_CONFIG_KEY):
        logger.info("Configuração de multa já existe")
        return

    await repo.create(
        key=LATE_FEE_CONFIG_KEY,
        value=default_late_fee_config().model_dump(mode="json"),
        type="fees",
        description="Configuração de multa por atraso",
    )
    logger.info("Configuração de multa padrão criada")


async def main() -> None:
    """Executa todos os seeds numa única transação."""
    setup_logging()
    logger.info("Executando seeds...")
    async with async_session_factory() as db:
        await create_admin(db)
        await create_late_fee_config(db)
        await db.commit()
    logger.info("Seeds concluídos!")


if __name__ == "__main__":
    asyncio.run(main())
