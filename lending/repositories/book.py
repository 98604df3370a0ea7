"""
Repository para operações de Book no banco de dados.

As três escritas em available_copies são UPDATEs condicionais de uma única
instrução: o banco serializa escritas concorrentes na mesma linha, e a
condição do WHERE é reavaliada depois da espera pelo lock.
"""

from uuid import UUID

from sqlalchemy import case, func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from lending.models.book import Book
from lending.repositories.base import BaseRepository


class BookRepository(BaseRepository[Book]):
    """Repository para operações CRUD de Book e contadores de estoque."""

    def __init__(self, db: AsyncSession):
        super().__init__(Book, db)

    async def get_fresh(self, book_id: UUID) -> Book | None:
        """Busca livro ignorando o estado em cache da sessão."""
        result = await self.db.execute(
            select(Book)
            .where(Book.id == book_id)
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    async def get_by_isbn(self, isbn: str) -> Book | None:
        """Busca livro pelo ISBN."""
        result = await self.db.execute(select(Book).where(Book.isbn == isbn))
        return result.scalar_one_or_none()

    async def search(
        self,
        title: str | None = None,
        only_available: bool = False,
        page: int = 1,
        page_size: int = 20,
    ) -> tuple[list[Book], int]:
        """
        Busca livros com filtros e paginação.

        Returns:
            Tupla (lista de livros, total)
        """
        skip = (page - 1) * page_size
        query = select(Book)

        if title:
            query = query.where(Book.title.ilike(f"%{title}%"))
        if only_available:
            query = query.where(Book.available_copies > 0)

        count_result = await self.db.execute(
            select(func.count()).select_from(query.subquery())
        )
        total = count_result.scalar_one()

        result = await self.db.execute(
            query.offset(skip).limit(page_size).order_by(Book.title)
        )
        return list(result.scalars().all()), total

    # ==========================================
    # Contadores de estoque (uso exclusivo do InventoryLedger)
    # ==========================================

    async def decrement_available(self, book_id: UUID, quantity: int) -> bool:
        """
        Decrementa available_copies se houver `quantity` cópias.

        Returns:
            True se a linha foi alterada, False se não havia cópias suficientes
            (ou o livro não existe).
        """
        result = await self.db.execute(
            update(Book)
            .where(Book.id == book_id, Book.available_copies >= quantity)
            .values(available_copies=Book.available_copies - quantity)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount == 1

    async def increment_available(self, book_id: UUID, quantity: int) -> bool:
        """
        Incrementa available_copies limitado a total_copies.

        Returns:
            True se o livro existe e foi atualizado.
        """
        restored = Book.available_copies + quantity
        result = await self.db.execute(
            update(Book)
            .where(Book.id == book_id)
            .values(
                available_copies=case(
                    (restored > Book.total_copies, Book.total_copies),
                    else_=restored,
                )
            )
            .execution_options(synchronize_session=False)
        )
        return result.rowcount == 1

    async def resize_total(self, book_id: UUID, total_copies: int) -> bool:
        """
        Altera total_copies preservando as cópias emprestadas.

        available = max(0, novo_total - (total_atual - available_atual))
        """
        remaining = total_copies - (Book.total_copies - Book.available_copies)
        result = await self.db.execute(
            update(Book)
            .where(Book.id == book_id)
            .values(
                total_copies=total_copies,
                available_copies=case((remaining < 0, 0), else_=remaining),
            )
            .execution_options(synchronize_session=False)
        )
        return result.rowcount == 1
