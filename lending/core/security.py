"""
Hash de senha (bcrypt) e tokens de acesso (JWT) dos operadores e leitores.
"""

import logging
from datetime import datetime, timedelta, timezone
from typing import Any
from uuid import UUID

import bcrypt
from jose import JWTError, jwt

from lending.core.config import get_settings

logger = logging.getLogger(__name__)
settings = get_settings()


def hash_password(password: str) -> str:
    """Gera hash bcrypt da senha."""
    hashed = bcrypt.hashpw(password.encode("utf-8"), bcrypt.gensalt())
    return hashed.decode("utf-8")


def verify_password(plain_password: str, hashed_password: str) -> bool:
    """
    Verifica se a senha corresponde ao hash.

    Um hash malformado no banco conta como senha incorreta.
    """
    try:
        return bcrypt.checkpw(
            plain_password.encode("utf-8"),
            hashed_password.encode("utf-8"),
        )
    except ValueError as e:
        logger.debug(f"Hash de senha inválido: {e}")
        return False


def create_access_token(
    user_id: UUID | str,
    role: str,
    expires_delta: timedelta | None = None,
) -> str:
    """
    Cria token JWT para o usuário.

    Args:
        user_id: ID do usuário (claim `sub`)
        role: Papel do usuário (claim `role`)
        expires_delta: Validade customizada (padrão: JWT_EXPIRES_MINUTES)

    Returns:
        Token JWT assinado
    """
    issued_at = datetime.now(timezone.utc)
    expire = issued_at + (
        expires_delta or timedelta(minutes=settings.JWT_EXPIRES_MINUTES)
    )

    payload = {
        "sub": str(user_id),
        "role": role,
        "exp": expire,
        "iat": issued_at,
    }
    return jwt.encode(payload, settings.JWT_SECRET, algorithm=settings.JWT_ALGORITHM)


def decode_token(token: str) -> dict[str, Any] | None:
    """
    Decodifica e valida token JWT.

    Returns:
        Payload do token ou None se inválido/expirado
    """
    try:
        return jwt.decode(
            token,
            settings.JWT_SECRET,
            algorithms=[settings.JWT_ALGORITHM],
        )
    except JWTError:
        return None


def token_subject(token: str) -> UUID | None:
    """ID do usuário contido no token, ou None se o token não serve."""
    payload = decode_token(token)
    if payload is None:
        return None

    try:
        return UUID(payload.get("sub", ""))
    except (TypeError, ValueError):
        return None
