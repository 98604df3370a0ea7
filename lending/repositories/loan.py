"""
Repository para operações de Loan no banco de dados.
"""

from datetime import datetime, time, timedelta
from uuid import UUID

from sqlalchemy import Row, and_, delete, func, or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload
from sqlalchemy.sql.elements import ColumnElement

from lending.models.book import Book
from lending.models.enums import LoanStatus
from lending.models.loan import Loan, OPEN_STATUSES
from lending.models.user import User
from lending.repositories.base import BaseRepository
from lending.schemas.loan import LoanListFilters


class LoanRepository(BaseRepository[Loan]):
    """Repository para operações CRUD de Loan."""

    def __init__(self, db: AsyncSession):
        super().__init__(Loan, db)

    async def get_with_relations(self, loan_id: UUID) -> Loan | None:
        """Busca empréstimo com livro e leitor, sempre relido do banco."""
        result = await self.db.execute(
            select(Loan)
            .where(Loan.id == loan_id)
            .options(
                selectinload(Loan.book),
                selectinload(Loan.borrower),
            )
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    async def ref_nbr_exists(self, ref_nbr: str) -> bool:
        """Verifica se o número de referência já foi usado."""
        result = await self.db.execute(
            select(Loan.id).where(Loan.ref_nbr == ref_nbr)
        )
        return result.first() is not None

    async def has_open_loan(self, borrower_id: UUID, book_id: UUID) -> bool:
        """Verifica se o leitor já tem empréstimo em aberto deste livro."""
        result = await self.db.execute(
            select(Loan.id).where(
                Loan.borrower_id == borrower_id,
                Loan.book_id == book_id,
                Loan.status.in_(OPEN_STATUSES),
            )
        )
        return result.first() is not None

    async def compare_and_set_status(
        self,
        loan_id: UUID,
        expected: tuple[LoanStatus, ...],
        target: LoanStatus,
        **values,
    ) -> bool:
        """
        Altera o status apenas se o status atual estiver em `expected`.

        Dois fechamentos concorrentes do mesmo empréstimo resultam em um
        único UPDATE efetivo; o segundo recebe False.
        """
        result = await self.db.execute(
            update(Loan)
            .where(Loan.id == loan_id, Loan.status.in_(expected))
            .values(status=target, **values)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount == 1

    async def delete_returning(self, loan_id: UUID) -> Row | None:
        """
        Remove o empréstimo e devolve o estado que ele tinha no momento do DELETE.

        Em exclusões concorrentes apenas uma recebe a linha; as demais
        recebem None.
        """
        result = await self.db.execute(
            delete(Loan)
            .where(Loan.id == loan_id)
            .returning(
                Loan.ref_nbr,
                Loan.book_id,
                Loan.quantity,
                Loan.status,
                Loan.is_lost,
            )
            .execution_options(synchronize_session=False)
        )
        return result.first()

    @staticmethod
    def _overdue_clause(now: datetime) -> ColumnElement[bool]:
        """overdue persistido ou borrowed já vencido."""
        return or_(
            Loan.status == LoanStatus.OVERDUE,
            and_(
                Loan.status == LoanStatus.BORROWED,
                Loan.expected_return_date < now,
            ),
        )

    def _filtered(self, filters: LoanListFilters, now: datetime):
        query = select(Loan)

        if filters.status == LoanStatus.OVERDUE:
            query = query.where(self._overdue_clause(now))
        elif filters.status is not None:
            query = query.where(Loan.status == filters.status)

        if filters.is_lost is not None:
            query = query.where(Loan.is_lost.is_(filters.is_lost))
        if filters.borrower_id:
            query = query.where(Loan.borrower_id == filters.borrower_id)
        if filters.book_id:
            query = query.where(Loan.book_id == filters.book_id)
        if filters.search:
            term = f"%{filters.search}%"
            query = (
                query.join(Loan.book)
                .join(Loan.borrower)
                .where(
                    or_(
                        Loan.ref_nbr.ilike(term),
                        Book.title.ilike(term),
                        User.name.ilike(term),
                    )
                )
            )
        if filters.start_date:
            query = query.where(
                Loan.transaction_date >= datetime.combine(filters.start_date, time.min)
            )
        if filters.end_date:
            next_day = filters.end_date + timedelta(days=1)
            query = query.where(
                Loan.transaction_date < datetime.combine(next_day, time.min)
            )

        return query

    async def search(
        self,
        filters: LoanListFilters,
        now: datetime,
    ) -> tuple[list[Loan], int]:
        """
        Busca empréstimos com filtros e paginação.

        Args:
            filters: Filtros (status, is_lost, borrower, livro, busca, período)
            now: Referência para o filtro de atrasados

        Returns:
            Tupla (lista de empréstimos, total)
        """
        query = self._filtered(filters, now)
        skip = (filters.page - 1) * filters.page_size

        count_result = await self.db.execute(
            select(func.count()).select_from(query.subquery())
        )
        total = count_result.scalar_one()

        result = await self.db.execute(
            query.options(selectinload(Loan.book), selectinload(Loan.borrower))
            .order_by(Loan.transaction_date.desc())
            .offset(skip)
            .limit(filters.page_size)
        )
        return list(result.scalars().all()), total

    async def list_all(self, filters: LoanListFilters, now: datetime) -> list[Loan]:
        """Lista todos os empréstimos filtrados, sem paginação (relatórios)."""
        result = await self.db.execute(
            self._filtered(filters, now)
            .options(selectinload(Loan.book), selectinload(Loan.borrower))
            .order_by(Loan.transaction_date.desc())
        )
        return list(result.scalars().all())

    async def count_by_status(self, borrower_id: UUID) -> dict[LoanStatus, int]:
        """Conta empréstimos de um leitor agrupados por status persistido."""
        result = await self.db.execute(
            select(Loan.status, func.count(Loan.id))
            .where(Loan.borrower_id == borrower_id)
            .group_by(Loan.status)
        )
        counts = {status: 0 for status in LoanStatus}
        for status, count in result.all():
            counts[LoanStatus(status)] = count
        return counts

    async def count_lost(self, borrower_id: UUID) -> int:
        """Conta empréstimos de um leitor marcados como perdidos."""
        result = await self.db.execute(
            select(func.count(Loan.id)).where(
                Loan.borrower_id == borrower_id,
                Loan.is_lost.is_(True),
            )
        )
        return result.scalar_one()

    async def count_overdue(self, borrower_id: UUID, now: datetime) -> int:
        """Conta atrasados (persistidos ou derivados) de um leitor."""
        result = await self.db.execute(
            select(func.count(Loan.id)).where(
                Loan.borrower_id == borrower_id,
                self._overdue_clause(now),
            )
        )
        return result.scalar_one()
