"""
Repository para consultas de User (diretório de leitores).
"""

from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from lending.models.user import User
from lending.repositories.base import BaseRepository


class UserRepository(BaseRepository[User]):
    """Repository para operações de User."""

    def __init__(self, db: AsyncSession):
        super().__init__(User, db)

    async def get_by_email(self, email: str) -> User | None:
        """Busca usuário pelo email (login)."""
        result = await self.db.execute(
            select(User).where(User.email == email.lower())
        )
        return result.scalar_one_or_none()

    async def exists(self, user_id: UUID) -> bool:
        """Verifica se o leitor existe."""
        result = await self.db.execute(
            select(User.id).where(User.id == user_id)
        )
        return result.scalar_one_or_none() is not None
