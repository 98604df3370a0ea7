"""
Testes de integração do LendingService (SQLite).

Cobre criação, transições, perda, exclusão, multa manual/automática e
o empréstimo feito pelo próprio leitor.
"""

import uuid
from datetime import timedelta
from decimal import Decimal
from unittest.mock import AsyncMock, patch

import pytest

from conftest import add_book, available_copies
from lending.core.exceptions import (
    DuplicateLoan,
    InsufficientCopies,
    InvalidTransition,
    LoanValidationError,
    NotFound,
    ReferenceCollision,
)
from lending.models.enums import FeeInterval, LoanStatus
from lending.schemas.loan import LoanCreate, LoanListFilters, LoanUpdate, SelfBorrow
from lending.schemas.setting import LateFeeConfigUpdate
from lending.services.lending import LendingService
from lending.services.settings import LateFeeSettingsService


@pytest.fixture
async def service_db(session_factory):
    """Sessão própria do service: rollbacks não expiram os objetos das fixtures."""
    async with session_factory() as session:
        yield session


@pytest.fixture
def service(service_db, now):
    return LendingService(service_db, clock=lambda: now)


def new_loan(book, borrower, due, **kwargs) -> LoanCreate:
    return LoanCreate(
        book_id=book.id,
        borrower_id=borrower.id,
        expected_return_date=due,
        **kwargs,
    )


async def enable_fees(db, rate: str = "10.00", interval: FeeInterval = FeeInterval.DAY):
    await LateFeeSettingsService(db).update_config(
        LateFeeConfigUpdate(enabled=True, rate=Decimal(rate), interval=interval)
    )


# ==========================================
# Create
# ==========================================

class TestCreateLoan:
    """Testes para create_loan."""

    @pytest.mark.anyio
    async def test_create_reserves_and_returns_detail(self, service, test_db, book, reader, due):
        loan = await service.create_loan(new_loan(book, reader, due))

        assert loan.status == LoanStatus.BORROWED
        assert loan.effective_status == LoanStatus.BORROWED
        assert loan.ref_nbr.startswith("CTU-")
        assert loan.quantity == 1
        assert loan.book_title == "Dom Casmurro"
        assert loan.borrower_name == "Ana Leitora"
        assert loan.calculated_fees == Decimal("0.00")
        assert await available_copies(test_db, book.id) == 0

    @pytest.mark.anyio
    async def test_third_loan_on_two_copies_is_refused(self, service, test_db, reader, due):
        """Livro com 2 cópias: a terceira reserva falha e o estoque fica em 0."""
        book = await add_book(test_db, total_copies=2)
        await service.create_loan(new_loan(book, reader, due))
        await service.create_loan(new_loan(book, reader, due))

        with pytest.raises(InsufficientCopies):
            await service.create_loan(new_loan(book, reader, due))

        assert await available_copies(test_db, book.id) == 0
        loans, total = await service.list_loans(LoanListFilters(book_id=book.id))
        assert total == 2

    @pytest.mark.anyio
    async def test_multi_copy_loan(self, service, test_db, reader, due):
        book = await add_book(test_db, total_copies=5)
        loan = await service.create_loan(new_loan(book, reader, due, quantity=3))

        assert await available_copies(test_db, book.id) == 2

        await service.update_loan(loan.id, LoanUpdate(status=LoanStatus.RETURNED))
        assert await available_copies(test_db, book.id) == 5

    @pytest.mark.anyio
    async def test_unknown_borrower(self, service, test_db, book, due):
        with pytest.raises(NotFound):
            await service.create_loan(
                LoanCreate(book_id=book.id, borrower_id=uuid.uuid4(), expected_return_date=due)
            )
        assert await available_copies(test_db, book.id) == 1

    @pytest.mark.anyio
    async def test_unknown_book(self, service, reader, due):
        with pytest.raises(NotFound):
            await service.create_loan(
                LoanCreate(book_id=uuid.uuid4(), borrower_id=reader.id, expected_return_date=due)
            )

    @pytest.mark.anyio
    async def test_expected_before_borrowed_is_rejected(self, service, test_db, book, reader, now):
        with pytest.raises(LoanValidationError):
            await service.create_loan(new_loan(book, reader, now - timedelta(days=1)))
        assert await available_copies(test_db, book.id) == 1

    @pytest.mark.anyio
    async def test_reference_failure_rolls_back_reservation(self, service, test_db, book, reader, due):
        """Se o ref_nbr não puder ser gerado, a reserva é desfeita."""
        with patch.object(
            service.allocator,
            "allocate",
            AsyncMock(side_effect=ReferenceCollision("sem referência")),
        ):
            with pytest.raises(ReferenceCollision):
                await service.create_loan(new_loan(book, reader, due))

        assert await available_copies(test_db, book.id) == 1


# ==========================================
# Update / transitions
# ==========================================

class TestUpdateLoan:
    """Testes para update_loan."""

    @pytest.mark.anyio
    async def test_return_releases_copy(self, service, test_db, book, reader, due, now):
        loan = await service.create_loan(new_loan(book, reader, due))
        assert await available_copies(test_db, book.id) == 0

        updated = await service.update_loan(loan.id, LoanUpdate(status=LoanStatus.RETURNED))

        assert updated.status == LoanStatus.RETURNED
        assert updated.date_returned == now
        assert await available_copies(test_db, book.id) == 1

    @pytest.mark.anyio
    async def test_return_with_explicit_date(self, service, test_db, book, reader, due, now):
        loan = await service.create_loan(new_loan(book, reader, due))
        returned_at = now + timedelta(days=2)

        updated = await service.update_loan(
            loan.id,
            LoanUpdate(status=LoanStatus.RETURNED, date_returned=returned_at),
        )
        assert updated.date_returned == returned_at

    @pytest.mark.anyio
    async def test_cancel_releases_copy(self, service, test_db, book, reader, due, now):
        loan = await service.create_loan(new_loan(book, reader, due))

        updated = await service.update_loan(loan.id, LoanUpdate(status=LoanStatus.CANCELED))

        assert updated.status == LoanStatus.CANCELED
        assert updated.date_canceled == now
        assert await available_copies(test_db, book.id) == 1

    @pytest.mark.anyio
    async def test_returning_a_canceled_loan_is_invalid(self, service, test_db, book, reader, due):
        loan = await service.create_loan(new_loan(book, reader, due))
        await service.update_loan(loan.id, LoanUpdate(status=LoanStatus.CANCELED))

        with pytest.raises(InvalidTransition):
            await service.update_loan(loan.id, LoanUpdate(status=LoanStatus.RETURNED))

        after = await service.get_loan(loan.id)
        assert after.status == LoanStatus.CANCELED
        assert after.date_returned is None
        assert await available_copies(test_db, book.id) == 1

    @pytest.mark.anyio
    async def test_rejected_transition_discards_other_edits(self, service, book, reader, due):
        loan = await service.create_loan(new_loan(book, reader, due))
        await service.update_loan(loan.id, LoanUpdate(status=LoanStatus.RETURNED))

        with pytest.raises(InvalidTransition):
            await service.update_loan(
                loan.id,
                LoanUpdate(status=LoanStatus.BORROWED, notes="não deve gravar"),
            )

        after = await service.get_loan(loan.id)
        assert after.notes is None

    @pytest.mark.anyio
    async def test_overdue_requires_past_due_or_override(self, service, test_db, book, reader, due):
        loan = await service.create_loan(new_loan(book, reader, due))

        with pytest.raises(InvalidTransition):
            await service.update_loan(loan.id, LoanUpdate(status=LoanStatus.OVERDUE))

        updated = await service.update_loan(
            loan.id,
            LoanUpdate(status=LoanStatus.OVERDUE, override_overdue=True),
        )
        assert updated.status == LoanStatus.OVERDUE
        assert await available_copies(test_db, book.id) == 0

        returned = await service.update_loan(loan.id, LoanUpdate(status=LoanStatus.RETURNED))
        assert returned.status == LoanStatus.RETURNED
        assert await available_copies(test_db, book.id) == 1

    @pytest.mark.anyio
    async def test_date_returned_on_open_loan_is_rejected(self, service, book, reader, due, now):
        loan = await service.create_loan(new_loan(book, reader, due))

        with pytest.raises(LoanValidationError):
            await service.update_loan(loan.id, LoanUpdate(date_returned=now))

    @pytest.mark.anyio
    async def test_date_returned_before_borrowed_is_rejected(self, service, test_db, book, reader, due, now):
        loan = await service.create_loan(new_loan(book, reader, due))

        with pytest.raises(LoanValidationError):
            await service.update_loan(
                loan.id,
                LoanUpdate(status=LoanStatus.RETURNED, date_returned=now - timedelta(days=1)),
            )
        assert await available_copies(test_db, book.id) == 0

    @pytest.mark.anyio
    async def test_unknown_loan(self, service):
        with pytest.raises(NotFound):
            await service.update_loan(uuid.uuid4(), LoanUpdate(notes="x"))

    @pytest.mark.anyio
    async def test_returning_future_dated_loan_needs_explicit_date(
        self, service, test_db, book, reader, now
    ):
        """Devolver sem data carimbaria now, antes de date_borrowed."""
        starts = now + timedelta(days=2)
        loan = await service.create_loan(
            new_loan(book, reader, starts + timedelta(days=7), date_borrowed=starts)
        )

        with pytest.raises(LoanValidationError):
            await service.update_loan(loan.id, LoanUpdate(status=LoanStatus.RETURNED))

        after = await service.get_loan(loan.id)
        assert after.status == LoanStatus.BORROWED
        assert await available_copies(test_db, book.id) == 0

        returned = await service.update_loan(
            loan.id,
            LoanUpdate(status=LoanStatus.RETURNED, date_returned=starts + timedelta(days=1)),
        )
        assert returned.status == LoanStatus.RETURNED
        assert await available_copies(test_db, book.id) == 1

    @pytest.mark.anyio
    async def test_closed_loan_dates_are_frozen(self, service, test_db, book, reader, now):
        await enable_fees(test_db, rate="10.00")
        loan = await service.create_loan(
            new_loan(book, reader, now - timedelta(days=1), date_borrowed=now - timedelta(days=10))
        )
        await service.update_loan(loan.id, LoanUpdate(status=LoanStatus.RETURNED))

        for edit in (
            LoanUpdate(expected_return_date=now - timedelta(days=8)),
            LoanUpdate(date_borrowed=now - timedelta(days=9)),
            LoanUpdate(date_returned=now),
        ):
            with pytest.raises(LoanValidationError):
                await service.update_loan(loan.id, edit)

        detail = await service.get_loan(loan.id)
        assert detail.expected_return_date == now - timedelta(days=1)
        assert detail.calculated_fees == Decimal("10.00")

        waived = await service.update_loan(
            loan.id, LoanUpdate(fees=Decimal("0"), notes="multa perdoada")
        )
        assert waived.amount_due == Decimal("0")
        assert waived.notes == "multa perdoada"


# ==========================================
# Lost flag
# ==========================================

class TestLostLoans:
    """O flag is_lost impede a volta das cópias ao estoque."""

    @pytest.mark.anyio
    async def test_returning_a_lost_loan_keeps_stock(self, service, test_db, book, reader, due):
        loan = await service.create_loan(new_loan(book, reader, due))
        await service.update_loan(loan.id, LoanUpdate(is_lost=True))

        updated = await service.update_loan(loan.id, LoanUpdate(status=LoanStatus.RETURNED))

        assert updated.status == LoanStatus.RETURNED
        assert updated.is_lost is True
        assert await available_copies(test_db, book.id) == 0

    @pytest.mark.anyio
    async def test_lost_and_closed_in_the_same_update(self, service, test_db, book, reader, due):
        loan = await service.create_loan(new_loan(book, reader, due))

        await service.update_loan(
            loan.id,
            LoanUpdate(is_lost=True, status=LoanStatus.CANCELED),
        )
        assert await available_copies(test_db, book.id) == 0

    @pytest.mark.anyio
    async def test_unmarking_lost_before_return_releases(self, service, test_db, book, reader, due):
        loan = await service.create_loan(new_loan(book, reader, due))
        await service.update_loan(loan.id, LoanUpdate(is_lost=True))

        await service.update_loan(
            loan.id,
            LoanUpdate(is_lost=False, status=LoanStatus.RETURNED),
        )
        assert await available_copies(test_db, book.id) == 1

    @pytest.mark.anyio
    async def test_marking_lost_does_not_change_status(self, service, test_db, book, reader, due):
        loan = await service.create_loan(new_loan(book, reader, due))

        updated = await service.update_loan(loan.id, LoanUpdate(is_lost=True))

        assert updated.status == LoanStatus.BORROWED
        assert await available_copies(test_db, book.id) == 0


# ==========================================
# Delete
# ==========================================

class TestDeleteLoan:
    """Testes para delete_loan."""

    @pytest.mark.anyio
    async def test_delete_open_loan_releases(self, service, test_db, book, reader, due):
        loan = await service.create_loan(new_loan(book, reader, due))

        await service.delete_loan(loan.id)

        assert await available_copies(test_db, book.id) == 1
        with pytest.raises(NotFound):
            await service.get_loan(loan.id)

    @pytest.mark.anyio
    async def test_delete_twice_is_not_found_and_releases_once(self, service, test_db, reader, due):
        book = await add_book(test_db, total_copies=2)
        loan = await service.create_loan(new_loan(book, reader, due))
        await service.create_loan(new_loan(book, reader, due))
        assert await available_copies(test_db, book.id) == 0

        await service.delete_loan(loan.id)
        with pytest.raises(NotFound):
            await service.delete_loan(loan.id)

        assert await available_copies(test_db, book.id) == 1

    @pytest.mark.anyio
    async def test_delete_returned_loan_does_not_release(self, service, test_db, reader, due):
        book = await add_book(test_db, total_copies=2)
        loan = await service.create_loan(new_loan(book, reader, due))
        await service.create_loan(new_loan(book, reader, due))
        await service.update_loan(loan.id, LoanUpdate(status=LoanStatus.RETURNED))
        assert await available_copies(test_db, book.id) == 1

        await service.delete_loan(loan.id)

        assert await available_copies(test_db, book.id) == 1

    @pytest.mark.anyio
    async def test_delete_lost_loan_does_not_release(self, service, test_db, book, reader, due):
        loan = await service.create_loan(new_loan(book, reader, due))
        await service.update_loan(loan.id, LoanUpdate(is_lost=True))

        await service.delete_loan(loan.id)

        assert await available_copies(test_db, book.id) == 0


# ==========================================
# Fees
# ==========================================

class TestFees:
    """Multa automática e multa manual."""

    @pytest.mark.anyio
    async def test_three_days_late_costs_thirty(self, service, test_db, book, reader, now):
        await enable_fees(test_db, rate="10.00")
        loan = await service.create_loan(
            new_loan(book, reader, now - timedelta(days=3), date_borrowed=now - timedelta(days=10))
        )

        assert loan.effective_status == LoanStatus.OVERDUE
        assert loan.status == LoanStatus.BORROWED
        assert loan.calculated_fees == Decimal("30.00")
        assert loan.amount_due == Decimal("30.00")
        assert loan.days_overdue == 3

    @pytest.mark.anyio
    async def test_fees_disabled_by_default(self, service, book, reader, now):
        loan = await service.create_loan(
            new_loan(book, reader, now - timedelta(days=3), date_borrowed=now - timedelta(days=10))
        )
        assert loan.calculated_fees == Decimal("0.00")

    @pytest.mark.anyio
    async def test_config_change_applies_to_open_loans(self, service, test_db, book, reader, now):
        await enable_fees(test_db, rate="10.00")
        loan = await service.create_loan(
            new_loan(book, reader, now - timedelta(days=3), date_borrowed=now - timedelta(days=10))
        )

        await enable_fees(test_db, rate="1.50")

        detail = await service.get_loan(loan.id)
        assert detail.calculated_fees == Decimal("4.50")

    @pytest.mark.anyio
    async def test_manual_fee_wins_and_can_be_cleared(self, service, test_db, book, reader, now):
        await enable_fees(test_db, rate="10.00")
        loan = await service.create_loan(
            new_loan(book, reader, now - timedelta(days=3), date_borrowed=now - timedelta(days=10))
        )

        waived = await service.update_loan(loan.id, LoanUpdate(fees=Decimal("0")))
        assert waived.fees == Decimal("0")
        assert waived.calculated_fees == Decimal("30.00")
        assert waived.amount_due == Decimal("0")

        cleared = await service.update_loan(loan.id, LoanUpdate(fees=None))
        assert cleared.fees is None
        assert cleared.amount_due == Decimal("30.00")

    @pytest.mark.anyio
    async def test_returned_loan_fee_stops_at_return(self, service, service_db, test_db, book, reader, now):
        await enable_fees(test_db, rate="10.00")
        loan = await service.create_loan(
            new_loan(book, reader, now - timedelta(days=2), date_borrowed=now - timedelta(days=10))
        )
        await service.update_loan(loan.id, LoanUpdate(status=LoanStatus.RETURNED))

        later = LendingService(service_db, clock=lambda: now + timedelta(days=30))
        detail = await later.get_loan(loan.id)
        assert detail.calculated_fees == Decimal("20.00")

    @pytest.mark.anyio
    async def test_canceled_loan_is_not_billed(self, service, test_db, book, reader, now):
        await enable_fees(test_db, rate="10.00")
        loan = await service.create_loan(
            new_loan(book, reader, now - timedelta(days=5), date_borrowed=now - timedelta(days=10))
        )
        assert loan.calculated_fees == Decimal("50.00")

        canceled = await service.update_loan(loan.id, LoanUpdate(status=LoanStatus.CANCELED))

        assert canceled.calculated_fees == Decimal("0.00")
        assert canceled.amount_due == Decimal("0.00")
        assert canceled.days_overdue == 0
        summary = await service.summarize(LoanListFilters())
        assert summary.canceled == 1
        assert summary.total_fees == Decimal("0.00")


# ==========================================
# Self-service borrow
# ==========================================

class TestBorrowForUser:
    """Empréstimo feito pelo próprio leitor."""

    @pytest.mark.anyio
    async def test_borrow_one_copy(self, service, test_db, reader, now):
        book = await add_book(test_db, total_copies=3)

        loan = await service.borrow_for_user(
            reader, book.id, SelfBorrow(due_date=now + timedelta(days=7))
        )

        assert loan.quantity == 1
        assert loan.borrower_id == reader.id
        assert await available_copies(test_db, book.id) == 2

    @pytest.mark.anyio
    async def test_second_open_loan_for_same_book_is_duplicate(self, service, test_db, reader, now):
        book = await add_book(test_db, total_copies=3)
        await service.borrow_for_user(reader, book.id, SelfBorrow(due_date=now + timedelta(days=7)))

        with pytest.raises(DuplicateLoan):
            await service.borrow_for_user(
                reader, book.id, SelfBorrow(due_date=now + timedelta(days=7))
            )
        assert await available_copies(test_db, book.id) == 2

    @pytest.mark.anyio
    @pytest.mark.parametrize("days", [0, 61])
    async def test_due_date_window(self, service, book, reader, now, days):
        with pytest.raises(LoanValidationError):
            await service.borrow_for_user(
                reader, book.id, SelfBorrow(due_date=now + timedelta(days=days))
            )


# ==========================================
# Reports
# ==========================================

class TestReports:
    """Listagem, resumo e contadores do leitor."""

    @pytest.mark.anyio
    async def test_overdue_filter_includes_borrowed_past_due(self, service, test_db, reader, now, due):
        book = await add_book(test_db, total_copies=3)
        late = await service.create_loan(
            new_loan(book, reader, now - timedelta(days=1), date_borrowed=now - timedelta(days=5))
        )
        await service.create_loan(new_loan(book, reader, due))

        items, total = await service.list_loans(LoanListFilters(status=LoanStatus.OVERDUE))

        assert total == 1
        assert items[0].id == late.id

    @pytest.mark.anyio
    async def test_summary_and_stats(self, service, test_db, reader, now, due):
        await enable_fees(test_db, rate="10.00")
        book = await add_book(test_db, total_copies=4)
        await service.create_loan(
            new_loan(book, reader, now - timedelta(days=2), date_borrowed=now - timedelta(days=5))
        )
        returned = await service.create_loan(new_loan(book, reader, due))
        await service.update_loan(returned.id, LoanUpdate(status=LoanStatus.RETURNED))
        lost = await service.create_loan(new_loan(book, reader, due))
        await service.update_loan(lost.id, LoanUpdate(is_lost=True))

        summary = await service.summarize(LoanListFilters())
        assert summary.total == 3
        assert summary.overdue == 1
        assert summary.returned == 1
        assert summary.borrowed == 1
        assert summary.lost == 1
        assert summary.total_fees == Decimal("20.00")

        stats = await service.borrower_stats(reader.id)
        assert stats.total == 3
        assert stats.active == 2
        assert stats.overdue == 1
        assert stats.returned == 1
        assert stats.lost == 1

    @pytest.mark.anyio
    async def test_search_matches_title_and_borrower_name(
        self, service, test_db, book, reader, other_reader, due
    ):
        other_book = await add_book(test_db, isbn="9788508133136", title="Quincas Borba")
        first = await service.create_loan(new_loan(book, reader, due))
        second = await service.create_loan(new_loan(other_book, other_reader, due))

        by_title, total = await service.list_loans(LoanListFilters(search="quincas"))
        assert total == 1
        assert by_title[0].id == second.id

        by_name, total = await service.list_loans(LoanListFilters(search="leitora"))
        assert total == 1
        assert by_name[0].id == first.id

        by_ref, total = await service.list_loans(LoanListFilters(search=first.ref_nbr))
        assert total == 1
        assert by_ref[0].id == first.id

    @pytest.mark.anyio
    async def test_transaction_date_range(self, service, service_db, test_db, reader, now):
        book = await add_book(test_db, total_copies=2)
        earlier = now - timedelta(days=10)
        old = await LendingService(service_db, clock=lambda: earlier).create_loan(
            new_loan(book, reader, earlier + timedelta(days=30))
        )
        recent = await service.create_loan(new_loan(book, reader, now + timedelta(days=14)))

        items, total = await service.list_loans(
            LoanListFilters(start_date=(now - timedelta(days=1)).date())
        )
        assert total == 1
        assert items[0].id == recent.id

        items, total = await service.list_loans(
            LoanListFilters(end_date=(now - timedelta(days=5)).date())
        )
        assert total == 1
        assert items[0].id == old.id

        summary = await service.summarize(
            LoanListFilters(start_date=earlier.date(), end_date=now.date())
        )
        assert summary.total == 2
