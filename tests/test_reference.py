"""
Testes do gerador de números de referência (ref_nbr).
"""

import re
from unittest.mock import AsyncMock, patch

import pytest

from lending.core.exceptions import ReferenceCollision
from lending.services.reference import ReferenceAllocator, generate_ref_nbr

REF_PATTERN = re.compile(r"^CTU-[A-Z0-9]{6}$")


def test_generated_ref_nbr_format():
    for _ in range(50):
        assert REF_PATTERN.match(generate_ref_nbr())


def test_custom_prefix_and_length():
    ref = generate_ref_nbr(prefix="LIB-", length=8)
    assert ref.startswith("LIB-")
    assert len(ref) == 12


class TestReferenceAllocator:
    """Testes para ReferenceAllocator (repository mockado)."""

    @pytest.mark.anyio
    async def test_returns_first_unused_reference(self):
        allocator = ReferenceAllocator(AsyncMock(), max_attempts=5)

        with patch.object(
            allocator.loan_repo,
            "ref_nbr_exists",
            AsyncMock(side_effect=[True, True, False]),
        ) as exists:
            ref = await allocator.allocate()

        assert REF_PATTERN.match(ref)
        assert exists.await_count == 3

    @pytest.mark.anyio
    async def test_raises_after_max_attempts(self):
        allocator = ReferenceAllocator(AsyncMock(), max_attempts=3)

        with patch.object(
            allocator.loan_repo,
            "ref_nbr_exists",
            AsyncMock(return_value=True),
        ) as exists:
            with pytest.raises(ReferenceCollision) as exc_info:
                await allocator.allocate()

        assert exists.await_count == 3
        assert exc_info.value.status_code == 503
        assert exc_info.value.detail["code"] == "reference_collision"
