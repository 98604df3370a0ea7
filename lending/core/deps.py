"""
Dependencies FastAPI: sessão de banco, usuário autenticado e balcão (admin).
"""

from typing import Annotated

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.ext.asyncio import AsyncSession

from lending.core.security import token_subject
from lending.db.session import get_db
from lending.models.user import User

# Scheme Bearer para extrair token do header Authorization
security = HTTPBearer()


async def get_current_user(
    credentials: Annotated[HTTPAuthorizationCredentials, Depends(security)],
    db: Annotated[AsyncSession, Depends(get_db)],
) -> User:
    """
    Dependency que retorna o usuário do token JWT.

    Raises:
        HTTPException 401: Token inválido, expirado ou usuário inexistente
    """
    user_id = token_subject(credentials.credentials)
    user = await db.get(User, user_id) if user_id else None

    if user is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Token inválido ou expirado",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return user


async def require_admin(
    current_user: Annotated[User, Depends(get_current_user)],
) -> User:
    """
    Dependency para operações de balcão (criar, alterar e excluir empréstimos).

    Raises:
        HTTPException 403: Usuário não é admin
    """
    if not current_user.is_admin:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Acesso restrito ao balcão da biblioteca",
        )
    return current_user


# Type aliases para uso nos endpoints
CurrentUser = Annotated[User, Depends(get_current_user)]
AdminUser = Annotated[User, Depends(require_admin)]
DbSession = Annotated[AsyncSession, Depends(get_db)]
