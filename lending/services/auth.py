"""
Service de autenticação (login do balcão e dos leitores).
"""

import logging

from fastapi import HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from lending.core.config import get_settings
from lending.core.security import create_access_token, verify_password
from lending.repositories.user import UserRepository
from lending.schemas.user import TokenResponse, UserRead, UserWithToken

logger = logging.getLogger(__name__)
settings = get_settings()


class AuthService:
    """Service para operações de autenticação."""

    def __init__(self, db: AsyncSession):
        self.db = db
        self.user_repo = UserRepository(db)

    async def login(self, email: str, password: str) -> UserWithToken:
        """
        Autentica usuário e retorna token JWT.

        Raises:
            HTTPException 401: Credenciais inválidas
        """
        user = await self.user_repo.get_by_email(email)

        if user is None or not verify_password(password, user.password_hash):
            logger.info(f"Login recusado para {email}")
            raise HTTPException(
                status_code=status.HTTP_401_UNAUTHORIZED,
                detail="Email ou senha incorretos",
                headers={"WWW-Authenticate": "Bearer"},
            )

        access_token = create_access_token(user.id, user.role.value)

        return UserWithToken(
            user=UserRead.model_validate(user),
            token=TokenResponse(
                access_token=access_token,
                token_type="bearer",
                expires_in=settings.JWT_EXPIRES_MINUTES * 60,
            ),
        )
