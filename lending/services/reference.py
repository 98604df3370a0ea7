"""
Geração do número de referência dos empréstimos (ex.: CTU-7K2Q9M).

A unicidade é verificada contra os ref_nbr já persistidos, não contra um
contador em memória, para valer com vários processos. A unique constraint
da tabela continua sendo a última barreira.
"""

import logging
import secrets
import string

from sqlalchemy.ext.asyncio import AsyncSession

from lending.core.config import get_settings
from lending.core.exceptions import ReferenceCollision
from lending.repositories.loan import LoanRepository

logger = logging.getLogger(__name__)
settings = get_settings()

REF_ALPHABET = string.ascii_uppercase + string.digits


def generate_ref_nbr(
    prefix: str | None = None,
    length: int | None = None,
) -> str:
    """Sorteia um ref_nbr (sem verificar unicidade)."""
    prefix = settings.REF_NBR_PREFIX if prefix is None else prefix
    length = length or settings.REF_NBR_LENGTH
    return prefix + "".join(secrets.choice(REF_ALPHABET) for _ in range(length))


class ReferenceAllocator:
    """Aloca ref_nbr únicos, tentando de novo em caso de colisão."""

    def __init__(self, db: AsyncSession, max_attempts: int | None = None):
        self.loan_repo = LoanRepository(db)
        self.max_attempts = max_attempts or settings.REF_NBR_MAX_ATTEMPTS

    async def allocate(self) -> str:
        """
        Gera um ref_nbr ainda não utilizado.

        Raises:
            ReferenceCollision: Todas as tentativas colidiram
        """
        for attempt in range(1, self.max_attempts + 1):
            ref_nbr = generate_ref_nbr()
            if not await self.loan_repo.ref_nbr_exists(ref_nbr):
                return ref_nbr
            logger.warning(f"Colisão de ref_nbr {ref_nbr} (tentativa {attempt})")

        raise ReferenceCollision(
            f"Não foi possível gerar um número de referência único "
            f"após {self.max_attempts} tentativas"
        )
