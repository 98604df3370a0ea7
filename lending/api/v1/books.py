"""
Endpoints de Livros (catálogo, disponibilidade e empréstimo pelo leitor).

Contratos:
    - POST /books: Cadastra livro (somente ADMIN)
    - GET /books: Lista livros paginado
    - GET /books/{id}: Detalhes do livro
    - PATCH /books/{id}: Edita catálogo, inclusive total_copies (somente ADMIN)
    - GET /books/{id}/availability: Cópias disponíveis (cache Redis)
    - POST /books/{id}/borrow: Leitor pega 1 cópia

Status codes:
    - 200/201: Sucesso
    - 401: Não autenticado
    - 403: Sem permissão (não é admin)
    - 404: Livro não encontrado
    - 409: ISBN duplicado, sem cópias ou empréstimo já em aberto
    - 422: Data de devolução fora da janela permitida
"""

from uuid import UUID

from fastapi import APIRouter, Depends, Query, status

from lending.core.deps import AdminUser, CurrentUser, DbSession
from lending.core.rate_limit import rate_limit_loans
from lending.schemas.base import ErrorResponse, PaginatedResponse
from lending.schemas.book import BookAvailability, BookCreate, BookRead, BookUpdate
from lending.schemas.loan import LoanDetail, SelfBorrow
from lending.services.book import BookService
from lending.services.lending import LendingService

router = APIRouter(prefix="/books", tags=["Books"])


@router.post(
    "",
    response_model=BookRead,
    status_code=status.HTTP_201_CREATED,
    summary="Cadastrar livro",
    description="Cria o livro com todas as cópias disponíveis. **Requer ADMIN.**",
)
async def create_book(
    data: BookCreate,
    db: DbSession,
    admin: AdminUser,
) -> BookRead:
    service = BookService(db)
    book = await service.create_book(data)
    return BookRead.model_validate(book)


@router.get(
    "",
    response_model=PaginatedResponse[BookRead],
    summary="Listar livros",
)
async def list_books(
    db: DbSession,
    current_user: CurrentUser,
    title: str | None = Query(None, description="Filtrar por título (parcial)"),
    only_available: bool = Query(False, description="Apenas com cópias na estante"),
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=100),
) -> PaginatedResponse[BookRead]:
    service = BookService(db)
    books, total = await service.list_books(title, only_available, page, page_size)
    return PaginatedResponse.create(
        [BookRead.model_validate(book) for book in books],
        total,
        page,
        page_size,
    )


@router.get(
    "/{book_id}",
    response_model=BookRead,
    responses={404: {"model": ErrorResponse}},
    summary="Detalhes do livro",
)
async def get_book(
    book_id: UUID,
    db: DbSession,
    current_user: CurrentUser,
) -> BookRead:
    service = BookService(db)
    return BookRead.model_validate(await service.get_book(book_id))


@router.patch(
    "/{book_id}",
    response_model=BookRead,
    responses={404: {"model": ErrorResponse}},
    summary="Editar livro",
    description=(
        "Alterar total_copies recalcula as disponíveis mantendo as emprestadas. "
        "**Requer ADMIN.**"
    ),
)
async def update_book(
    book_id: UUID,
    data: BookUpdate,
    db: DbSession,
    admin: AdminUser,
) -> BookRead:
    service = BookService(db)
    book = await service.update_book(book_id, data)
    return BookRead.model_validate(book)


@router.get(
    "/{book_id}/availability",
    response_model=BookAvailability,
    responses={404: {"model": ErrorResponse}},
    summary="Disponibilidade do livro",
    description="Cópias na estante e emprestadas. Resposta cacheada por alguns segundos.",
)
async def book_availability(
    book_id: UUID,
    db: DbSession,
    current_user: CurrentUser,
) -> BookAvailability:
    service = BookService(db)
    return await service.check_availability(book_id)


@router.post(
    "/{book_id}/borrow",
    response_model=LoanDetail,
    status_code=status.HTTP_201_CREATED,
    responses={
        404: {"model": ErrorResponse},
        409: {"model": ErrorResponse},
        422: {"model": ErrorResponse},
    },
    summary="Pegar livro emprestado",
)
async def borrow_book(
    book_id: UUID,
    data: SelfBorrow,
    db: DbSession,
    current_user: CurrentUser,
    _: None = Depends(rate_limit_loans),
) -> LoanDetail:
    """
    Empréstimo feito pelo próprio leitor.

    Regras:
        - 1 cópia por empréstimo
        - due_date depois de hoje e em até SELF_BORROW_MAX_DAYS dias
        - No máximo um empréstimo em aberto por livro
    """
    service = LendingService(db)
    return await service.borrow_for_user(current_user, book_id, data)
