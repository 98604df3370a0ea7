"""
Inventory Ledger: único caminho de escrita de Book.available_copies.

Invariante: 0 <= available_copies <= total_copies para todo livro.

Cada operação é um UPDATE condicional de uma instrução (compare-and-swap),
de modo que duas reservas simultâneas da última cópia não passam ambas.
O ledger só faz flush; quem chama decide o commit, para que reserva e
gravação do empréstimo (ou liberação e fechamento) sejam uma transação.
"""

import logging
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from lending.core.cache import cache_service
from lending.core.exceptions import InsufficientCopies, LoanValidationError, NotFound
from lending.models.book import Book
from lending.repositories.book import BookRepository

logger = logging.getLogger(__name__)


class InventoryLedger:
    """Reserva, libera e redimensiona o estoque de cópias de um livro."""

    def __init__(self, db: AsyncSession):
        self.db = db
        self.book_repo = BookRepository(db)

    async def _require_book(self, book_id: UUID) -> Book:
        book = await self.book_repo.get_fresh(book_id)
        if book is None:
            raise NotFound("Livro não encontrado", book_id=str(book_id))
        return book

    async def reserve(self, book_id: UUID, quantity: int) -> None:
        """
        Retira `quantity` cópias da estante.

        Raises:
            LoanValidationError: quantity < 1
            NotFound: Livro inexistente
            InsufficientCopies: available_copies < quantity (nada é alterado)
        """
        if quantity < 1:
            raise LoanValidationError("Quantidade deve ser pelo menos 1")

        if await self.book_repo.decrement_available(book_id, quantity):
            logger.info(f"Reservada(s) {quantity} cópia(s) do livro {book_id}")
            return

        book = await self._require_book(book_id)
        logger.info(
            f"Reserva recusada para livro {book_id}: "
            f"{quantity} solicitada(s), {book.available_copies} disponível(is)"
        )
        raise InsufficientCopies(book_id, quantity, book.available_copies)

    async def release(self, book_id: UUID, quantity: int) -> None:
        """
        Devolve `quantity` cópias à estante, limitado a total_copies.

        O limite protege contra liberação dupla sem quebrar a requisição;
        quando ele atua, um warning é registrado.

        Raises:
            NotFound: Livro inexistente
        """
        before = await self._require_book(book_id)
        await self.book_repo.increment_available(book_id, quantity)

        if before.available_copies + quantity > before.total_copies:
            logger.warning(
                f"Liberação de {quantity} cópia(s) do livro {book_id} excederia "
                f"total_copies ({before.available_copies}/{before.total_copies}); "
                f"valor limitado"
            )
        else:
            logger.info(f"Liberada(s) {quantity} cópia(s) do livro {book_id}")

    async def resize(self, book_id: UUID, total_copies: int) -> None:
        """
        Altera total_copies (edição de catálogo) preservando as emprestadas.

        Raises:
            LoanValidationError: total_copies < 1
            NotFound: Livro inexistente
        """
        if total_copies < 1:
            raise LoanValidationError("total_copies deve ser pelo menos 1")
        if not await self.book_repo.resize_total(book_id, total_copies):
            raise NotFound("Livro não encontrado", book_id=str(book_id))
        logger.info(f"Livro {book_id} agora tem {total_copies} cópia(s) no acervo")

    async def snapshot(self, book_id: UUID) -> Book:
        """Estado atual do livro, relido do banco."""
        return await self._require_book(book_id)

    @staticmethod
    async def invalidate(book_id: UUID) -> None:
        """Invalida o cache de disponibilidade (chamar após o commit)."""
        await cache_service.invalidate_availability(book_id)
