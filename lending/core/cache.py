"""
Cache de disponibilidade de livros usando Redis.

Configurável via variáveis de ambiente:
    - CACHE_ENABLED: bool (default: True) - Habilita/desabilita cache
    - CACHE_AVAILABILITY_TTL_SECONDS: int (default: 15) - TTL do cache

Uso:
    data = await cache_service.get_availability(book_id)
    if data is None:
        data = await compute_availability()
        await cache_service.set_availability(book_id, data)

Invalidação:
    Toda reserva, liberação ou redimensionamento de estoque feito pelo
    InventoryLedger invalida a chave do livro após o commit.

Erros do Redis nunca derrubam a requisição: são registrados e tratados
como cache miss.
"""

import json
import logging
from typing import Optional
from uuid import UUID

from lending.core.config import get_settings
from lending.db import redis as redis_db

logger = logging.getLogger(__name__)
settings = get_settings()


class CacheService:
    """Operações de cache de disponibilidade."""

    PREFIX_AVAILABILITY = "cache:availability"

    def __init__(self, ttl: Optional[int] = None):
        self.ttl = ttl or settings.CACHE_AVAILABILITY_TTL_SECONDS

    def _key(self, book_id: UUID) -> str:
        return f"{self.PREFIX_AVAILABILITY}:{book_id}"

    @staticmethod
    def _enabled() -> bool:
        return settings.CACHE_ENABLED and redis_db.redis_client is not None

    async def get_availability(self, book_id: UUID) -> Optional[dict]:
        """
        Busca disponibilidade no cache.

        Returns:
            Dados de disponibilidade ou None se não em cache
        """
        if not self._enabled():
            return None

        try:
            data = await redis_db.redis_client.get(self._key(book_id))
            return json.loads(data) if data else None
        except Exception as e:
            logger.warning(f"Erro ao buscar cache de disponibilidade: {e}")
            return None

    async def set_availability(
        self,
        book_id: UUID,
        data: dict,
        ttl: Optional[int] = None,
    ) -> bool:
        """
        Salva disponibilidade no cache.

        Returns:
            True se salvou com sucesso, False caso contrário
        """
        if not self._enabled():
            return False

        try:
            await redis_db.redis_client.setex(
                self._key(book_id),
                ttl or self.ttl,
                json.dumps(data, default=str),
            )
            return True
        except Exception as e:
            logger.warning(f"Erro ao salvar cache de disponibilidade: {e}")
            return False

    async def invalidate_availability(self, book_id: UUID) -> bool:
        """
        Remove a disponibilidade de um livro do cache.

        Returns:
            True se invalidou com sucesso, False caso contrário
        """
        if not self._enabled():
            return False

        try:
            await redis_db.redis_client.delete(self._key(book_id))
            logger.debug(f"Cache de disponibilidade invalidado: {book_id}")
            return True
        except Exception as e:
            logger.warning(f"Erro ao invalidar cache de disponibilidade: {e}")
            return False


# Instância global para uso nos services
cache_service = CacheService()
