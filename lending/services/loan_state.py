"""
Máquina de estados do empréstimo.

O estado é o par (status, lost). A tabela TRANSITIONS é a única fonte de
verdade sobre quais mudanças de status existem e o que cada uma faz com o
estoque; nenhum outro ponto do código decide liberação de cópias.

    borrowed -> returned   libera cópias (se não perdido), grava date_returned
    borrowed -> canceled   libera cópias (se não perdido), grava date_canceled
    borrowed -> overdue    exige vencimento ou override do operador
    overdue  -> returned   idem borrowed -> returned
    overdue  -> canceled   idem borrowed -> canceled
    X        -> X          sem efeito (edição de multa, datas, is_lost)

returned e canceled são terminais.
"""

import logging
from dataclasses import dataclass, replace
from datetime import datetime
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession

from lending.core.exceptions import InvalidTransition
from lending.models.base import as_naive_utc
from lending.models.enums import LoanStatus
from lending.models.loan import Loan
from lending.repositories.loan import LoanRepository
from lending.services.inventory import InventoryLedger

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TransitionRule:
    """Efeitos de uma transição da tabela."""
    releases_inventory: bool = False
    requires_past_due: bool = False
    stamp: Optional[str] = None


TRANSITIONS: dict[tuple[LoanStatus, LoanStatus], TransitionRule] = {
    (LoanStatus.BORROWED, LoanStatus.RETURNED): TransitionRule(
        releases_inventory=True, stamp="date_returned"
    ),
    (LoanStatus.BORROWED, LoanStatus.CANCELED): TransitionRule(
        releases_inventory=True, stamp="date_canceled"
    ),
    (LoanStatus.BORROWED, LoanStatus.OVERDUE): TransitionRule(requires_past_due=True),
    (LoanStatus.OVERDUE, LoanStatus.RETURNED): TransitionRule(
        releases_inventory=True, stamp="date_returned"
    ),
    (LoanStatus.OVERDUE, LoanStatus.CANCELED): TransitionRule(
        releases_inventory=True, stamp="date_canceled"
    ),
}


@dataclass(frozen=True)
class Transition:
    """Transição validada, pronta para ser aplicada."""
    source: LoanStatus
    target: LoanStatus
    releases_inventory: bool
    stamp: Optional[str]

    @property
    def is_noop(self) -> bool:
        return self.source == self.target


@dataclass(frozen=True)
class LoanState:
    """Estado composto (status, lost) de um empréstimo."""
    status: LoanStatus
    lost: bool = False

    @classmethod
    def of(cls, loan: Loan) -> "LoanState":
        return cls(status=loan.status, lost=bool(loan.is_lost))

    @property
    def is_open(self) -> bool:
        return self.status in (LoanStatus.BORROWED, LoanStatus.OVERDUE)

    @property
    def is_terminal(self) -> bool:
        return not self.is_open

    @property
    def releases_on_delete(self) -> bool:
        """Excluir o empréstimo devolve as cópias? Só se aberto e não perdido."""
        return self.is_open and not self.lost

    def with_lost(self, lost: bool) -> "LoanState":
        """Alterna o flag de perda; nunca mexe no status."""
        return replace(self, lost=lost)

    def effective_status(self, expected_return_date: datetime, now: datetime) -> LoanStatus:
        """borrowed vencido é exibido como overdue (detecção preguiçosa)."""
        if (
            self.status == LoanStatus.BORROWED
            and as_naive_utc(expected_return_date) < as_naive_utc(now)
        ):
            return LoanStatus.OVERDUE
        return self.status

    def plan(
        self,
        target: LoanStatus,
        past_due: bool = False,
        override: bool = False,
    ) -> Transition:
        """
        Valida a ida para `target` e devolve a transição com seus efeitos.

        Raises:
            InvalidTransition: Transição fora da tabela ou precondição falhou
        """
        if target == self.status:
            return Transition(self.status, target, False, None)

        rule = TRANSITIONS.get((self.status, target))
        if rule is None:
            reason = "status final" if self.is_terminal else None
            raise InvalidTransition(self.status.value, target.value, reason)

        if rule.requires_past_due and not (past_due or override):
            raise InvalidTransition(
                self.status.value,
                target.value,
                "a data prevista de devolução ainda não passou",
            )

        return Transition(
            source=self.status,
            target=target,
            releases_inventory=rule.releases_inventory and not self.lost,
            stamp=rule.stamp,
        )


class LoanStateMachine:
    """Aplica transições validadas a empréstimos persistidos."""

    def __init__(self, db: AsyncSession, ledger: InventoryLedger | None = None):
        self.db = db
        self.loan_repo = LoanRepository(db)
        self.ledger = ledger or InventoryLedger(db)

    async def transition(
        self,
        loan: Loan,
        target: LoanStatus,
        now: datetime,
        date_returned: datetime | None = None,
        override_overdue: bool = False,
    ) -> Transition:
        """
        Leva o empréstimo para `target`, liberando estoque quando a tabela manda.

        O fechamento é um compare-and-set sobre o status lido; se outra
        requisição mudou o status nesse meio tempo, nada é liberado.

        Raises:
            InvalidTransition: Transição proibida ou status alterado em paralelo
        """
        state = LoanState.of(loan)
        past_due = as_naive_utc(loan.expected_return_date) < as_naive_utc(now)
        step = state.plan(target, past_due=past_due, override=override_overdue)
        if step.is_noop:
            return step

        values = {}
        if step.stamp == "date_returned":
            values["date_returned"] = date_returned or now
        elif step.stamp == "date_canceled":
            values["date_canceled"] = now

        changed = await self.loan_repo.compare_and_set_status(
            loan.id,
            expected=(step.source,),
            target=step.target,
            **values,
        )
        if not changed:
            raise InvalidTransition(
                step.source.value,
                step.target.value,
                "o empréstimo foi alterado por outra operação",
            )

        if step.releases_inventory:
            await self.ledger.release(loan.book_id, loan.quantity)
        elif step.target in (LoanStatus.RETURNED, LoanStatus.CANCELED):
            logger.info(
                f"Empréstimo {loan.ref_nbr} fechado como perdido; "
                f"{loan.quantity} cópia(s) não voltam ao estoque"
            )

        logger.info(
            f"Empréstimo {loan.ref_nbr}: {step.source.value} -> {step.target.value}"
        )
        return step
