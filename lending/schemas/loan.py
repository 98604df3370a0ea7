"""
Schemas Pydantic para Loan (empréstimo / transaction).
"""

from datetime import date, datetime
from decimal import Decimal
from uuid import UUID

from pydantic import BaseModel, Field

from lending.models.enums import LoanStatus

ZERO = Decimal("0.00")


class LoanCreate(BaseModel):
    """
    Schema para o balcão criar um empréstimo.

    `fees` nulo significa multa automática; um valor fixa a multa manualmente.
    """

    book_id: UUID = Field(..., description="ID do livro")
    borrower_id: UUID = Field(..., description="ID do leitor")
    quantity: int = Field(1, ge=1, le=100, description="Cópias emprestadas")
    date_borrowed: datetime | None = Field(None, description="Padrão: agora")
    expected_return_date: datetime = Field(..., description="Devolução prevista")
    fees: Decimal | None = Field(None, ge=0, max_digits=10, decimal_places=2)
    notes: str | None = Field(None, max_length=500)


class LoanUpdate(BaseModel):
    """
    Schema de atualização parcial.

    Apenas os campos enviados são aplicados. Enviar `"fees": null`
    remove a multa manual e volta ao cálculo automático.

    `override_overdue` permite marcar como overdue antes do vencimento.
    """

    status: LoanStatus | None = None
    is_lost: bool | None = None
    fees: Decimal | None = Field(None, ge=0, max_digits=10, decimal_places=2)
    date_borrowed: datetime | None = None
    expected_return_date: datetime | None = None
    date_returned: datetime | None = None
    notes: str | None = Field(None, max_length=500)
    override_overdue: bool = False


class SelfBorrow(BaseModel):
    """Schema para o próprio leitor pegar um livro (1 cópia)."""

    due_date: datetime = Field(..., description="Data prevista de devolução")
    notes: str | None = Field(None, max_length=500)


class LoanDetail(BaseModel):
    """
    Projeção de leitura do empréstimo.

    Traz a multa manual (`fees`) e a calculada (`calculated_fees`) lado a
    lado; `amount_due` é o valor efetivamente cobrado (manual vence).
    Os campos derivados são recalculados a cada leitura pelo service.
    """

    id: UUID
    ref_nbr: str
    book_id: UUID
    book_title: str | None = None
    borrower_id: UUID
    borrower_name: str | None = None
    borrower_email: str | None = None
    quantity: int
    status: LoanStatus
    effective_status: LoanStatus
    is_lost: bool
    date_borrowed: datetime
    expected_return_date: datetime
    date_returned: datetime | None = None
    date_canceled: datetime | None = None
    fees: Decimal | None = None
    calculated_fees: Decimal = ZERO
    amount_due: Decimal = ZERO
    days_overdue: int = 0
    transaction_date: datetime
    notes: str | None = None
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}

    @classmethod
    def from_loan(
        cls,
        loan,
        effective_status: LoanStatus,
        calculated_fees: Decimal,
        days_overdue: int = 0,
    ) -> "LoanDetail":
        """
        Cria LoanDetail a partir de um Loan com relações carregadas.

        Args:
            loan: Objeto Loan do SQLAlchemy
            effective_status: Status derivado (overdue para borrowed vencido)
            calculated_fees: Multa automática calculada agora
            days_overdue: Dias inteiros de atraso
        """
        book = getattr(loan, "book", None)
        borrower = getattr(loan, "borrower", None)
        amount_due = loan.fees if loan.fees is not None else calculated_fees

        return cls(
            id=loan.id,
            ref_nbr=loan.ref_nbr,
            book_id=loan.book_id,
            book_title=book.title if book else None,
            borrower_id=loan.borrower_id,
            borrower_name=borrower.name if borrower else None,
            borrower_email=borrower.email if borrower else None,
            quantity=loan.quantity,
            status=loan.status,
            effective_status=effective_status,
            is_lost=loan.is_lost,
            date_borrowed=loan.date_borrowed,
            expected_return_date=loan.expected_return_date,
            date_returned=loan.date_returned,
            date_canceled=loan.date_canceled,
            fees=loan.fees,
            calculated_fees=calculated_fees,
            amount_due=amount_due,
            days_overdue=days_overdue,
            transaction_date=loan.transaction_date,
            notes=loan.notes,
            created_at=loan.created_at,
            updated_at=loan.updated_at,
        )


class LoanListFilters(BaseModel):
    """Filtros para listagem de empréstimos."""

    status: LoanStatus | None = Field(
        None,
        description="overdue inclui empréstimos borrowed já vencidos",
    )
    is_lost: bool | None = None
    borrower_id: UUID | None = None
    book_id: UUID | None = None
    search: str | None = Field(
        None,
        max_length=50,
        description="Busca por ref_nbr, título do livro ou nome do leitor",
    )
    start_date: date | None = Field(None, description="transaction_date a partir deste dia")
    end_date: date | None = Field(None, description="transaction_date até este dia (inclusive)")
    page: int = Field(1, ge=1)
    page_size: int = Field(15, ge=1, le=100)


class LoanSummary(BaseModel):
    """Totais de um conjunto filtrado de empréstimos (relatório)."""

    total: int = 0
    borrowed: int = 0
    returned: int = 0
    overdue: int = 0
    canceled: int = 0
    lost: int = 0
    total_fees: Decimal = ZERO


class BorrowerStats(BaseModel):
    """Contadores dos empréstimos de um leitor."""

    total: int = 0
    active: int = 0
    overdue: int = 0
    returned: int = 0
    lost: int = 0
