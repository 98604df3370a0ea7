"""
Testes unitários para funções de segurança.
"""

import uuid
from datetime import timedelta

from lending.core.security import (
    create_access_token,
    decode_token,
    hash_password,
    token_subject,
    verify_password,
)


class TestPasswordHashing:
    """Testes para hash de senha."""

    def test_hash_is_salted(self):
        password = "MinhaSenh@123"
        first, second = hash_password(password), hash_password(password)

        assert first != password
        assert first != second

    def test_verify_password(self):
        hashed = hash_password("MinhaSenh@123")

        assert verify_password("MinhaSenh@123", hashed) is True
        assert verify_password("SenhaErrada123", hashed) is False
        assert verify_password("", hashed) is False

    def test_malformed_hash_is_rejected(self):
        assert verify_password("MinhaSenh@123", "não-é-bcrypt") is False


class TestJWT:
    """Testes para JWT."""

    def test_token_carries_subject_and_role(self):
        user_id = uuid.uuid4()
        token = create_access_token(user_id, "ADMIN")

        payload = decode_token(token)
        assert payload["sub"] == str(user_id)
        assert payload["role"] == "ADMIN"
        assert token_subject(token) == user_id

    def test_expired_token(self):
        token = create_access_token(uuid.uuid4(), "STUDENT", expires_delta=timedelta(seconds=-1))

        assert decode_token(token) is None
        assert token_subject(token) is None

    def test_garbage_token(self):
        assert decode_token("isto.nao.e.jwt") is None
        assert token_subject("isto.nao.e.jwt") is None

    def test_non_uuid_subject(self):
        token = create_access_token("admin", "ADMIN")
        assert token_subject(token) is None
