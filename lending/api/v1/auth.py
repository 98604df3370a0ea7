"""
Endpoints de autenticação.

Rate Limiting aplicado:
    - POST /login: 10 req/min (rate_limit_auth)
"""

from fastapi import APIRouter, Depends

from lending.core.deps import CurrentUser, DbSession
from lending.core.rate_limit import rate_limit_auth
from lending.schemas.user import UserLogin, UserRead, UserWithToken
from lending.services.auth import AuthService

router = APIRouter(prefix="/auth", tags=["Auth"])


@router.post(
    "/login",
    response_model=UserWithToken,
    summary="Autenticar usuário",
    description="Retorna token JWT para uso no header Authorization.",
)
async def login(
    data: UserLogin,
    db: DbSession,
    _: None = Depends(rate_limit_auth),
) -> UserWithToken:
    """
    Login do balcão (ADMIN) ou de leitores (STUDENT/TEACHER).

    Uso: `Authorization: Bearer <access_token>`
    """
    service = AuthService(db)
    return await service.login(data.email, data.password)


@router.get(
    "/me",
    response_model=UserRead,
    summary="Dados do usuário autenticado",
)
async def get_me(current_user: CurrentUser) -> UserRead:
    return UserRead.model_validate(current_user)
