"""
Endpoints de Empréstimos (Loan / transaction).

Contratos:
    - POST /loans: Cria empréstimo (balcão)
    - GET /loans: Lista empréstimos com filtros
    - GET /loans/summary: Totais e multas do conjunto filtrado (balcão)
    - GET /loans/my/stats: Contadores do leitor autenticado
    - GET /loans/{id}: Detalhes com multa calculada
    - PATCH /loans/{id}: Status, perda, multa manual e datas (balcão)
    - DELETE /loans/{id}: Exclui, devolvendo cópias se ainda aberto (balcão)

Autorização:
    - STUDENT/TEACHER: veem apenas os próprios empréstimos
    - ADMIN: vê e altera todos

Status codes:
    - 200/201/204: Sucesso
    - 401: Não autenticado
    - 403: Sem permissão
    - 404: Empréstimo, livro ou leitor não encontrado
    - 409: Cópias insuficientes ou transição inválida
    - 422: Datas inconsistentes
    - 503: Falha transitória ao gerar ref_nbr
"""

from datetime import date
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query, Response, status

from lending.core.deps import AdminUser, CurrentUser, DbSession
from lending.core.rate_limit import rate_limit_loans
from lending.models.enums import LoanStatus
from lending.schemas.base import ErrorResponse, PaginatedResponse
from lending.schemas.loan import (
    BorrowerStats,
    LoanCreate,
    LoanDetail,
    LoanListFilters,
    LoanSummary,
    LoanUpdate,
)
from lending.services.lending import LendingService

router = APIRouter(prefix="/loans", tags=["Loans"])

LOAN_ERRORS = {
    404: {"model": ErrorResponse},
    409: {"model": ErrorResponse},
    422: {"model": ErrorResponse},
}


def loan_filters(
    status_filter: LoanStatus | None = Query(
        None,
        alias="status",
        description="overdue inclui borrowed já vencidos",
    ),
    is_lost: bool | None = Query(None),
    borrower_id: UUID | None = Query(None, description="Filtrar por leitor (apenas ADMIN)"),
    book_id: UUID | None = Query(None),
    search: str | None = Query(
        None,
        max_length=50,
        description="Busca por ref_nbr, título do livro ou nome do leitor",
    ),
    start_date: date | None = Query(None, description="transaction_date a partir deste dia"),
    end_date: date | None = Query(None, description="transaction_date até este dia"),
    page: int = Query(1, ge=1),
    page_size: int = Query(15, ge=1, le=100),
) -> LoanListFilters:
    return LoanListFilters(
        status=status_filter,
        is_lost=is_lost,
        borrower_id=borrower_id,
        book_id=book_id,
        search=search,
        start_date=start_date,
        end_date=end_date,
        page=page,
        page_size=page_size,
    )


@router.post(
    "",
    response_model=LoanDetail,
    status_code=status.HTTP_201_CREATED,
    responses={**LOAN_ERRORS, 503: {"model": ErrorResponse}},
    summary="Criar empréstimo",
    description="Reserva as cópias e registra o empréstimo. **Requer ADMIN.**",
)
async def create_loan(
    data: LoanCreate,
    db: DbSession,
    admin: AdminUser,
    _: None = Depends(rate_limit_loans),
) -> LoanDetail:
    """
    Regras:
        - expected_return_date >= date_borrowed
        - quantity <= available_copies do livro
        - fees nulo = multa automática
    """
    service = LendingService(db)
    return await service.create_loan(data)


@router.get(
    "",
    response_model=PaginatedResponse[LoanDetail],
    summary="Listar empréstimos",
)
async def list_loans(
    db: DbSession,
    current_user: CurrentUser,
    filters: LoanListFilters = Depends(loan_filters),
) -> PaginatedResponse[LoanDetail]:
    """Leitores só enxergam os próprios empréstimos (borrower_id é ignorado)."""
    if not current_user.is_admin:
        filters.borrower_id = current_user.id

    service = LendingService(db)
    items, total = await service.list_loans(filters)
    return PaginatedResponse.create(items, total, filters.page, filters.page_size)


@router.get(
    "/summary",
    response_model=LoanSummary,
    summary="Resumo dos empréstimos",
    description="Contagem por status e soma das multas devidas. **Requer ADMIN.**",
)
async def loan_summary(
    db: DbSession,
    admin: AdminUser,
    filters: LoanListFilters = Depends(loan_filters),
) -> LoanSummary:
    service = LendingService(db)
    return await service.summarize(filters)


@router.get(
    "/my/stats",
    response_model=BorrowerStats,
    summary="Meus contadores de empréstimo",
)
async def my_stats(
    db: DbSession,
    current_user: CurrentUser,
) -> BorrowerStats:
    service = LendingService(db)
    return await service.borrower_stats(current_user.id)


@router.get(
    "/{loan_id}",
    response_model=LoanDetail,
    responses={404: {"model": ErrorResponse}},
    summary="Detalhes do empréstimo",
)
async def get_loan(
    loan_id: UUID,
    db: DbSession,
    current_user: CurrentUser,
) -> LoanDetail:
    """
    Raises:
        403: Empréstimo de outro leitor
        404: Empréstimo não encontrado
    """
    service = LendingService(db)
    loan = await service.get_loan(loan_id)

    if not current_user.is_admin and loan.borrower_id != current_user.id:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Você não tem permissão para ver este empréstimo",
        )
    return loan


@router.patch(
    "/{loan_id}",
    response_model=LoanDetail,
    responses=LOAN_ERRORS,
    summary="Atualizar empréstimo",
    description=(
        "Altera status (returned, canceled, overdue), is_lost, multa manual e "
        "datas. Devolução e cancelamento devolvem as cópias, exceto se o "
        "empréstimo estiver marcado como perdido. **Requer ADMIN.**"
    ),
)
async def update_loan(
    loan_id: UUID,
    data: LoanUpdate,
    db: DbSession,
    admin: AdminUser,
) -> LoanDetail:
    service = LendingService(db)
    return await service.update_loan(loan_id, data)


@router.delete(
    "/{loan_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    responses={404: {"model": ErrorResponse}},
    summary="Excluir empréstimo",
    description="Exclui o registro; se ainda aberto e não perdido, devolve as cópias. **Requer ADMIN.**",
)
async def delete_loan(
    loan_id: UUID,
    db: DbSession,
    admin: AdminUser,
) -> Response:
    service = LendingService(db)
    await service.delete_loan(loan_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
