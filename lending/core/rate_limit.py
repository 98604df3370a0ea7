"""
Rate limiting com contador de janela fixa no Redis.

Protege as rotas que mexem em estoque (criar empréstimo, empréstimo pelo
leitor) e o login. Identifica o cliente pelo usuário do JWT ou pelo IP.

Configurável via variáveis de ambiente:
    - RATE_LIMIT_ENABLED: bool (default: True)
    - RATE_LIMIT_REQUESTS: int (default: 60) - requests por janela
    - RATE_LIMIT_WINDOW_SECONDS: int (default: 60) - tamanho da janela

Sem Redis (ou com erro no Redis) a requisição passa (fail-open).
"""

import logging
from typing import Optional

from fastapi import Depends, HTTPException, Request, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from lending.core.config import get_settings
from lending.core.security import token_subject
from lending.db import redis as redis_db

logger = logging.getLogger(__name__)
settings = get_settings()
optional_bearer = HTTPBearer(auto_error=False)


class RateLimiter:
    """
    Dependency de rate limiting.

    Args:
        requests: Número máximo de requests na janela (default: config)
        window: Janela em segundos (default: config)
        key_prefix: Prefixo da chave no Redis, separa os limites por rota
    """

    def __init__(
        self,
        requests: Optional[int] = None,
        window: Optional[int] = None,
        key_prefix: str = "rate_limit",
    ):
        self.requests = requests or settings.RATE_LIMIT_REQUESTS
        self.window = window or settings.RATE_LIMIT_WINDOW_SECONDS
        self.key_prefix = key_prefix

    async def __call__(
        self,
        request: Request,
        credentials: Optional[HTTPAuthorizationCredentials] = Depends(optional_bearer),
    ) -> None:
        """
        Raises:
            HTTPException 429: Limite excedido (com header Retry-After)
        """
        client = redis_db.redis_client
        if not settings.RATE_LIMIT_ENABLED or client is None:
            return

        key = f"{self.key_prefix}:{self.identify(request, credentials)}"

        try:
            current = await client.incr(key)
            if current == 1:
                await client.expire(key, self.window)

            if current > self.requests:
                ttl = await client.ttl(key)
                retry_after = ttl if ttl and ttl > 0 else self.window
                logger.info(f"Rate limit excedido para {key}")
                raise HTTPException(
                    status_code=status.HTTP_429_TOO_MANY_REQUESTS,
                    detail=f"Limite de requisições excedido. Tente novamente em {retry_after} segundos.",
                    headers={"Retry-After": str(retry_after)},
                )
        except HTTPException:
            raise
        except Exception as e:
            logger.warning(f"Erro no rate limit, liberando requisição: {e}")

    @staticmethod
    def identify(
        request: Request,
        credentials: Optional[HTTPAuthorizationCredentials],
    ) -> str:
        """user:<id> se houver token válido, senão ip:<ip do cliente>."""
        if credentials:
            user_id = token_subject(credentials.credentials)
            if user_id:
                return f"user:{user_id}"

        forwarded = request.headers.get("X-Forwarded-For")
        if forwarded:
            return f"ip:{forwarded.split(',')[0].strip()}"
        return f"ip:{request.client.host if request.client else 'unknown'}"


# Instâncias por grupo de rotas
rate_limit_loans = RateLimiter(key_prefix="rate_limit:loans")
rate_limit_auth = RateLimiter(requests=10, window=60, key_prefix="rate_limit:auth")
