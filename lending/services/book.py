"""
Service do catálogo: cadastro, edição e disponibilidade de livros.

O estoque (available_copies) nunca é escrito aqui diretamente; mudanças de
total_copies passam pelo InventoryLedger.resize.
"""

import logging
from uuid import UUID

from fastapi import HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from lending.core.cache import cache_service
from lending.core.exceptions import NotFound
from lending.models.book import Book
from lending.repositories.book import BookRepository
from lending.schemas.book import BookAvailability, BookCreate, BookUpdate
from lending.services.inventory import InventoryLedger

logger = logging.getLogger(__name__)


class BookService:
    """Service para operações de catálogo de Book."""

    def __init__(self, db: AsyncSession):
        self.db = db
        self.book_repo = BookRepository(db)
        self.ledger = InventoryLedger(db)

    async def get_book(self, book_id: UUID) -> Book:
        """
        Busca livro por ID.

        Raises:
            NotFound 404: Livro não encontrado
        """
        book = await self.book_repo.get_fresh(book_id)
        if book is None:
            raise NotFound("Livro não encontrado", book_id=str(book_id))
        return book

    async def list_books(
        self,
        title: str | None = None,
        only_available: bool = False,
        page: int = 1,
        page_size: int = 20,
    ) -> tuple[list[Book], int]:
        """Lista livros com filtros e paginação."""
        return await self.book_repo.search(
            title=title,
            only_available=only_available,
            page=page,
            page_size=page_size,
        )

    async def create_book(self, data: BookCreate) -> Book:
        """
        Cadastra livro com todas as cópias na estante.

        Raises:
            HTTPException 409: ISBN já cadastrado
        """
        if await self.book_repo.get_by_isbn(data.isbn):
            raise HTTPException(
                status_code=status.HTTP_409_CONFLICT,
                detail="ISBN já cadastrado",
            )

        book = await self.book_repo.create(
            title=data.title,
            isbn=data.isbn,
            author=data.author,
            total_copies=data.total_copies,
            available_copies=data.total_copies,
        )
        await self.db.commit()

        logger.info(f"Livro {book.isbn} cadastrado com {book.total_copies} cópia(s)")
        return book

    async def update_book(self, book_id: UUID, data: BookUpdate) -> Book:
        """
        Edita dados de catálogo.

        total_copies é aplicado pelo ledger, que preserva as cópias emprestadas.

        Raises:
            NotFound 404: Livro não encontrado
        """
        try:
            book = await self.get_book(book_id)
            await self.book_repo.update(book, title=data.title, author=data.author)
            if data.total_copies is not None:
                await self.ledger.resize(book_id, data.total_copies)
            await self.db.commit()
        except Exception:
            await self.db.rollback()
            raise

        if data.total_copies is not None:
            await self.ledger.invalidate(book_id)
        return await self.get_book(book_id)

    async def check_availability(self, book_id: UUID) -> BookAvailability:
        """
        Disponibilidade atual do livro.

        Consulta primeiro o cache Redis; em cache miss lê o banco e grava
        o resultado com TTL curto. O ledger invalida a chave a cada mudança.

        Raises:
            NotFound 404: Livro não encontrado
        """
        cached = await cache_service.get_availability(book_id)
        if cached is not None:
            return BookAvailability.model_validate(cached)

        book = await self.get_book(book_id)
        availability = BookAvailability(
            book_id=book.id,
            title=book.title,
            total_copies=book.total_copies,
            available_copies=book.available_copies,
            copies_on_loan=book.copies_on_loan,
            is_available=book.is_available,
        )
        await cache_service.set_availability(book_id, availability.model_dump(mode="json"))
        return availability
