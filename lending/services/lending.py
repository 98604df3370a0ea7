"""
Service orquestrador dos empréstimos (Lending Service).

Único ponto de entrada para criar, alterar e excluir empréstimos. Compõe
InventoryLedger, ReferenceAllocator, LoanStateMachine e a política de multa.

Regras de negócio:
    - A reserva de cópias acontece antes da gravação do empréstimo, na
      mesma transação; falhou qualquer passo, tudo é desfeito (rollback)
    - Mudanças de status passam pela máquina de estados
    - Excluir um empréstimo aberto e não perdido devolve as cópias
    - A multa automática é recalculada a cada leitura com a configuração
      vigente; a multa manual (fees) tem precedência
"""

import logging
from datetime import datetime, timedelta
from decimal import Decimal
from typing import Awaitable, Callable, TypeVar
from uuid import UUID

from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from lending.core.config import get_settings
from lending.core.exceptions import (
    DuplicateLoan,
    LoanValidationError,
    NotFound,
    ReferenceCollision,
)
from lending.models.base import as_naive_utc, utcnow
from lending.models.enums import LoanStatus
from lending.models.loan import Loan
from lending.models.user import User
from lending.repositories.loan import LoanRepository
from lending.repositories.user import UserRepository
from lending.schemas.loan import (
    BorrowerStats,
    LoanCreate,
    LoanDetail,
    LoanListFilters,
    LoanSummary,
    LoanUpdate,
    SelfBorrow,
)
from lending.schemas.setting import LateFeeConfig
from lending.services.fee_policy import (
    ZERO,
    calculate_late_fee,
    days_overdue,
    effective_end_date,
)
from lending.services.inventory import InventoryLedger
from lending.services.loan_state import LoanState, LoanStateMachine
from lending.services.reference import ReferenceAllocator
from lending.services.settings import LateFeeSettingsService

logger = logging.getLogger(__name__)
settings = get_settings()

T = TypeVar("T")

DATE_FIELDS = ("date_borrowed", "expected_return_date", "date_returned")


class LendingService:
    """Casos de uso de empréstimo: criar, atualizar, excluir e consultar."""

    def __init__(
        self,
        db: AsyncSession,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.db = db
        self.clock = clock
        self.loan_repo = LoanRepository(db)
        self.user_repo = UserRepository(db)
        self.ledger = InventoryLedger(db)
        self.allocator = ReferenceAllocator(db)
        self.state_machine = LoanStateMachine(db, self.ledger)
        self.fee_settings = LateFeeSettingsService(db)

    # ==========================================
    # Transação
    # ==========================================

    async def _atomic(self, operation: Callable[[], Awaitable[T]]) -> T:
        """Executa `operation` e faz commit; qualquer erro desfaz tudo."""
        try:
            result = await operation()
            await self.db.commit()
            return result
        except IntegrityError as e:
            await self.db.rollback()
            if "ref_nbr" in str(e.orig):
                logger.warning("Colisão de ref_nbr detectada pela unique constraint")
                raise ReferenceCollision(
                    "Número de referência duplicado; tente novamente"
                ) from e
            raise
        except Exception:
            await self.db.rollback()
            raise

    # ==========================================
    # Create Loan
    # ==========================================

    async def create_loan(self, data: LoanCreate) -> LoanDetail:
        """
        Cria um empréstimo no status borrowed.

        Fluxo:
            1. Valida datas (expected_return_date >= date_borrowed)
            2. Verifica se o leitor existe
            3. Reserva `quantity` cópias no InventoryLedger
            4. Gera ref_nbr único
            5. Grava o empréstimo e faz commit (reserva + registro juntos)

        Raises:
            LoanValidationError 422: Datas fora de ordem
            NotFound 404: Leitor ou livro inexistente
            InsufficientCopies 409: Cópias insuficientes
            ReferenceCollision 503: Não foi possível gerar ref_nbr único
        """
        now = self.clock()
        date_borrowed = as_naive_utc(data.date_borrowed) if data.date_borrowed else now
        expected = as_naive_utc(data.expected_return_date)
        self._check_dates(date_borrowed, expected, None)

        if not await self.user_repo.exists(data.borrower_id):
            raise NotFound("Usuário não encontrado", borrower_id=str(data.borrower_id))

        async def operation() -> Loan:
            await self.ledger.reserve(data.book_id, data.quantity)
            ref_nbr = await self.allocator.allocate()
            return await self.loan_repo.create(
                ref_nbr=ref_nbr,
                book_id=data.book_id,
                borrower_id=data.borrower_id,
                quantity=data.quantity,
                status=LoanStatus.BORROWED,
                is_lost=False,
                date_borrowed=date_borrowed,
                expected_return_date=expected,
                fees=data.fees,
                transaction_date=now,
                notes=data.notes,
            )

        loan = await self._atomic(operation)
        await self.ledger.invalidate(data.book_id)

        logger.info(
            f"Empréstimo {loan.ref_nbr} criado: livro {data.book_id}, "
            f"leitor {data.borrower_id}, {data.quantity} cópia(s)"
        )
        return await self.get_loan(loan.id)

    async def borrow_for_user(
        self,
        user: User,
        book_id: UUID,
        data: SelfBorrow,
    ) -> LoanDetail:
        """
        Empréstimo feito pelo próprio leitor (1 cópia).

        Regras:
            - due_date depois de hoje e no máximo SELF_BORROW_MAX_DAYS à frente
            - Um empréstimo em aberto por leitor e livro

        Raises:
            LoanValidationError 422: due_date fora da janela permitida
            DuplicateLoan 409: Leitor já está com este livro
            InsufficientCopies 409: Nenhuma cópia disponível
        """
        now = self.clock()
        due_date = as_naive_utc(data.due_date)
        max_due = now + timedelta(days=settings.SELF_BORROW_MAX_DAYS)

        if due_date.date() <= now.date():
            raise LoanValidationError("A data de devolução deve ser depois de hoje")
        if due_date > max_due:
            raise LoanValidationError(
                f"A data de devolução deve ser em até {settings.SELF_BORROW_MAX_DAYS} dias"
            )

        if await self.loan_repo.has_open_loan(user.id, book_id):
            raise DuplicateLoan("Você já possui um empréstimo ativo deste livro")

        return await self.create_loan(
            LoanCreate(
                book_id=book_id,
                borrower_id=user.id,
                quantity=1,
                date_borrowed=now,
                expected_return_date=due_date,
                notes=data.notes,
            )
        )

    # ==========================================
    # Update Loan
    # ==========================================

    async def update_loan(self, loan_id: UUID, data: LoanUpdate) -> LoanDetail:
        """
        Aplica uma combinação de mudança de status, perda, multa e datas.

        Apenas os campos enviados são considerados. `fees` enviado como null
        volta à multa automática. Se a transição for recusada, nada muda.

        Empréstimos devolvidos ou cancelados não aceitam edição de datas.

        Fluxo:
            1. Aplica is_lost, fees, notes e datas ao registro
            2. Revalida as datas do registro resultante, incluindo a data de
               devolução que será carimbada
            3. Passa a mudança de status pela máquina de estados
               (que libera cópias quando a tabela manda)
            4. Commit único

        Raises:
            NotFound 404: Empréstimo inexistente
            InvalidTransition 409: Mudança de status proibida
            LoanValidationError 422: Datas inconsistentes ou empréstimo encerrado
        """
        fields = data.model_fields_set
        now = self.clock()

        async def operation() -> UUID:
            loan = await self._get_loan_or_404(loan_id)
            target = data.status if "status" in fields and data.status else loan.status

            edited_dates = [
                name for name in DATE_FIELDS
                if name in fields and getattr(data, name) is not None
            ]
            if edited_dates and LoanState.of(loan).is_terminal:
                raise LoanValidationError(
                    "Empréstimos encerrados só aceitam alterações de multa, perda e observações",
                    fields=edited_dates,
                )

            if "date_returned" in fields and data.date_returned is not None:
                if target != LoanStatus.RETURNED:
                    raise LoanValidationError(
                        "date_returned só pode ser informada para empréstimos devolvidos"
                    )

            if "is_lost" in fields and data.is_lost is not None:
                loan.is_lost = data.is_lost
            if "fees" in fields:
                loan.fees = data.fees
            if "notes" in fields:
                loan.notes = data.notes
            if "date_borrowed" in fields and data.date_borrowed is not None:
                loan.date_borrowed = as_naive_utc(data.date_borrowed)
            if "expected_return_date" in fields and data.expected_return_date is not None:
                loan.expected_return_date = as_naive_utc(data.expected_return_date)

            date_returned = (
                as_naive_utc(data.date_returned) if data.date_returned else None
            )
            # devolução sem data explícita é carimbada com now
            closing_date = None
            if target == LoanStatus.RETURNED and loan.status != LoanStatus.RETURNED:
                closing_date = date_returned or now

            self._check_dates(
                loan.date_borrowed,
                loan.expected_return_date,
                closing_date or loan.date_returned,
            )
            await self.db.flush()

            await self.state_machine.transition(
                loan,
                target,
                now,
                date_returned=date_returned,
                override_overdue=data.override_overdue,
            )
            return loan.book_id

        book_id = await self._atomic(operation)
        await self.ledger.invalidate(book_id)
        return await self.get_loan(loan_id)

    # ==========================================
    # Delete Loan
    # ==========================================

    async def delete_loan(self, loan_id: UUID) -> None:
        """
        Exclui o empréstimo, devolvendo as cópias se ainda estava aberto.

        Empréstimos devolvidos, cancelados ou perdidos não liberam nada
        (as cópias já voltaram ou não vão voltar).

        A decisão de liberar usa o estado devolvido pelo próprio DELETE, então
        exclusões concorrentes (ou uma exclusão disputando com uma devolução)
        liberam no máximo uma vez.

        Raises:
            NotFound 404: Empréstimo inexistente (inclusive já excluído)
        """

        async def operation():
            removed = await self.loan_repo.delete_returning(loan_id)
            if removed is None:
                raise NotFound("Empréstimo não encontrado", loan_id=str(loan_id))
            state = LoanState(status=LoanStatus(removed.status), lost=bool(removed.is_lost))
            if state.releases_on_delete:
                await self.ledger.release(removed.book_id, removed.quantity)
            return removed

        removed = await self._atomic(operation)
        await self.ledger.invalidate(removed.book_id)
        logger.info(f"Empréstimo {removed.ref_nbr} excluído")

    # ==========================================
    # Read path
    # ==========================================

    async def get_loan(self, loan_id: UUID) -> LoanDetail:
        """
        Busca empréstimo com multa calculada agora.

        Raises:
            NotFound 404: Empréstimo inexistente
        """
        loan = await self._get_loan_or_404(loan_id)
        config = await self.fee_settings.get_config()
        return self.to_detail(loan, config, self.clock())

    async def list_loans(
        self,
        filters: LoanListFilters,
    ) -> tuple[list[LoanDetail], int]:
        """
        Lista empréstimos com filtros e paginação.

        Returns:
            Tupla (lista de LoanDetail, total)
        """
        now = self.clock()
        loans, total = await self.loan_repo.search(filters, now)
        config = await self.fee_settings.get_config()
        return [self.to_detail(loan, config, now) for loan in loans], total

    async def summarize(self, filters: LoanListFilters) -> LoanSummary:
        """Totais por status e soma das multas devidas do conjunto filtrado."""
        now = self.clock()
        loans = await self.loan_repo.list_all(filters, now)
        config = await self.fee_settings.get_config()

        summary = LoanSummary(total=len(loans))
        total_fees = ZERO
        for loan in loans:
            detail = self.to_detail(loan, config, now)
            status_name = detail.effective_status.value
            setattr(summary, status_name, getattr(summary, status_name) + 1)
            if loan.is_lost:
                summary.lost += 1
            total_fees += detail.amount_due
        summary.total_fees = total_fees
        return summary

    async def borrower_stats(self, borrower_id: UUID) -> BorrowerStats:
        """Contadores dos empréstimos de um leitor."""
        now = self.clock()
        counts = await self.loan_repo.count_by_status(borrower_id)
        return BorrowerStats(
            total=sum(counts.values()),
            active=counts[LoanStatus.BORROWED] + counts[LoanStatus.OVERDUE],
            overdue=await self.loan_repo.count_overdue(borrower_id, now),
            returned=counts[LoanStatus.RETURNED],
            lost=await self.loan_repo.count_lost(borrower_id),
        )

    # ==========================================
    # Utility / Validation
    # ==========================================

    @staticmethod
    def calculated_fees(loan: Loan, config: LateFeeConfig, now: datetime) -> Decimal:
        """Multa automática do empréstimo neste instante (0 se cancelado)."""
        end = effective_end_date(loan, now)
        if end is None:
            return ZERO
        return calculate_late_fee(loan.expected_return_date, end, config)

    @classmethod
    def to_detail(cls, loan: Loan, config: LateFeeConfig, now: datetime) -> LoanDetail:
        """Monta a projeção de leitura com os campos derivados."""
        state = LoanState.of(loan)
        return LoanDetail.from_loan(
            loan,
            effective_status=state.effective_status(loan.expected_return_date, now),
            calculated_fees=cls.calculated_fees(loan, config, now),
            days_overdue=days_overdue(loan, now),
        )

    async def _get_loan_or_404(self, loan_id: UUID) -> Loan:
        loan = await self.loan_repo.get_with_relations(loan_id)
        if loan is None:
            raise NotFound("Empréstimo não encontrado", loan_id=str(loan_id))
        return loan

    @staticmethod
    def _check_dates(
        date_borrowed: datetime,
        expected_return_date: datetime,
        date_returned: datetime | None,
    ) -> None:
        """
        Raises:
            LoanValidationError: Devolução prevista ou efetiva antes do empréstimo
        """
        if as_naive_utc(expected_return_date) < as_naive_utc(date_borrowed):
            raise LoanValidationError(
                "A data prevista de devolução deve ser igual ou posterior à data do empréstimo"
            )
        if date_returned is not None and as_naive_utc(date_returned) < as_naive_utc(date_borrowed):
            raise LoanValidationError(
                "A data de devolução deve ser igual ou posterior à data do empréstimo"
            )
