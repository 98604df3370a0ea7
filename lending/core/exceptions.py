"""
Erros de domínio do motor de empréstimos.

Todos herdam de HTTPException para que services e endpoints os tratem
como os demais erros da API: o service levanta, o FastAPI renderiza.
O campo `detail` sempre carrega um `code` estável e uma `message` legível,
de modo que a camada de apresentação consiga distinguir "sem cópias" de
"transição inválida" sem interpretar texto.
"""

from typing import Any

from fastapi import HTTPException, status


class LendingError(HTTPException):
    """Base dos erros do motor de empréstimos."""

    code: str = "lending_error"
    status_code: int = status.HTTP_400_BAD_REQUEST

    def __init__(self, message: str, **extra: Any):
        self.message = message
        self.extra = extra
        super().__init__(
            status_code=self.status_code,
            detail={"code": self.code, "message": message, **extra},
        )

    def __str__(self) -> str:
        return self.message


class NotFound(LendingError):
    """Empréstimo, livro ou usuário inexistente."""

    code = "not_found"
    status_code = status.HTTP_404_NOT_FOUND


class InsufficientCopies(LendingError):
    """Reserva pediu mais cópias do que as disponíveis."""

    code = "insufficient_copies"
    status_code = status.HTTP_409_CONFLICT

    def __init__(self, book_id: Any, requested: int, available: int):
        self.book_id = book_id
        self.requested = requested
        self.available = available
        super().__init__(
            f"Cópias insuficientes: {available} disponível(is), "
            f"{requested} solicitada(s).",
            requested=requested,
            available=available,
        )


class InvalidTransition(LendingError):
    """Mudança de status não permitida a partir do status atual."""

    code = "invalid_transition"
    status_code = status.HTTP_409_CONFLICT

    def __init__(self, current: str, target: str, reason: str | None = None):
        self.current = current
        self.target = target
        message = f"Não é possível alterar o status de {current} para {target}"
        if reason:
            message = f"{message}: {reason}"
        super().__init__(message, current=current, target=target)


class LoanValidationError(LendingError):
    """Dados do empréstimo violam uma regra (ex.: datas fora de ordem)."""

    code = "validation_error"
    status_code = status.HTTP_422_UNPROCESSABLE_ENTITY


class DuplicateLoan(LendingError):
    """Leitor já possui empréstimo em aberto para o mesmo livro."""

    code = "duplicate_loan"
    status_code = status.HTTP_409_CONFLICT


class ReferenceCollision(LendingError):
    """Não foi possível gerar um ref_nbr único dentro do limite de tentativas."""

    code = "reference_collision"
    status_code = status.HTTP_503_SERVICE_UNAVAILABLE
