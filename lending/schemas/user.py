"""
Schemas Pydantic para User e autenticação.
"""

from uuid import UUID

from pydantic import EmailStr

from lending.models.enums import UserRole
from lending.schemas.base import BaseSchema, TimestampSchema


class UserRead(TimestampSchema):
    """
    Schema para leitura de usuário.

    Nunca expõe password_hash.
    """
    id: UUID
    name: str
    email: EmailStr
    role: UserRole


class UserLogin(BaseSchema):
    """Schema para login."""
    email: EmailStr
    password: str


class TokenResponse(BaseSchema):
    """Resposta de autenticação com token JWT."""
    access_token: str
    token_type: str = "bearer"
    expires_in: int


class UserWithToken(BaseSchema):
    """Usuário com token JWT (retorno do login)."""
    user: UserRead
    token: TokenResponse
