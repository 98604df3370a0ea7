"""
Schemas Pydantic para Book (catálogo e disponibilidade).
"""

from uuid import UUID

from pydantic import Field

from lending.schemas.base import BaseSchema, TimestampSchema


class BookCreate(BaseSchema):
    """Schema para cadastro de livro; available_copies nasce igual a total_copies."""
    title: str = Field(..., min_length=1, max_length=500, examples=["Dom Casmurro"])
    isbn: str = Field(..., min_length=10, max_length=32, examples=["9788535910663"])
    author: str | None = Field(None, max_length=255, examples=["Machado de Assis"])
    total_copies: int = Field(1, ge=1, le=10000)


class BookUpdate(BaseSchema):
    """
    Schema para edição de catálogo.

    Alterar total_copies recalcula available_copies mantendo as cópias
    emprestadas: available = max(0, novo_total - emprestadas).
    """
    title: str | None = Field(None, min_length=1, max_length=500)
    author: str | None = Field(None, max_length=255)
    total_copies: int | None = Field(None, ge=1, le=10000)


class BookRead(TimestampSchema):
    """Schema para leitura de livro."""
    id: UUID
    title: str
    isbn: str
    author: str | None
    total_copies: int
    available_copies: int


class BookAvailability(BaseSchema):
    """Disponibilidade de um livro (cacheada no Redis)."""
    book_id: UUID
    title: str
    total_copies: int
    available_copies: int
    copies_on_loan: int
    is_available: bool
