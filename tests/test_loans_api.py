"""
Testes de integração dos endpoints de empréstimos, livros e configurações.

Fluxos completos pela API:
    - Balcão cria, devolve, cancela e exclui empréstimos
    - Leitor pega livro e vê apenas os próprios empréstimos
    - Erros tipados (code) para estoque e transições
"""

from datetime import timedelta

import pytest
from httpx import AsyncClient

from conftest import PASSWORD, add_book
from lending.models.base import utcnow


def iso(delta_days: int, delta_hours: int = 0) -> str:
    return (utcnow() + timedelta(days=delta_days, hours=delta_hours)).isoformat()


async def create_loan(client: AsyncClient, headers: dict, book_id, borrower_id, **extra):
    payload = {
        "book_id": str(book_id),
        "borrower_id": str(borrower_id),
        "expected_return_date": iso(14),
        **extra,
    }
    return await client.post("/api/v1/loans", json=payload, headers=headers)


async def availability(client: AsyncClient, headers: dict, book_id) -> int:
    response = await client.get(f"/api/v1/books/{book_id}/availability", headers=headers)
    assert response.status_code == 200
    return response.json()["available_copies"]


# ==========================================
# Auth
# ==========================================

@pytest.mark.anyio
async def test_login_and_me(client: AsyncClient, reader):
    response = await client.post(
        "/api/v1/auth/login",
        json={"email": "ANA@biblioteca.dev", "password": PASSWORD},
    )
    assert response.status_code == 200
    token = response.json()["token"]["access_token"]

    me = await client.get("/api/v1/auth/me", headers={"Authorization": f"Bearer {token}"})
    assert me.status_code == 200
    assert me.json()["email"] == "ana@biblioteca.dev"
    assert me.json()["role"] == "STUDENT"


@pytest.mark.anyio
async def test_login_wrong_password(client: AsyncClient, reader):
    response = await client.post(
        "/api/v1/auth/login",
        json={"email": "ana@biblioteca.dev", "password": "errada"},
    )
    assert response.status_code == 401


@pytest.mark.anyio
async def test_requires_token(client: AsyncClient):
    response = await client.get("/api/v1/loans")
    assert response.status_code in (401, 403)


# ==========================================
# Loans (balcão)
# ==========================================

@pytest.mark.anyio
async def test_create_and_return_loan(client: AsyncClient, admin_headers, book, reader):
    response = await create_loan(client, admin_headers, book.id, reader.id)

    assert response.status_code == 201
    loan = response.json()
    assert loan["status"] == "borrowed"
    assert loan["ref_nbr"].startswith("CTU-")
    assert await availability(client, admin_headers, book.id) == 0

    response = await client.patch(
        f"/api/v1/loans/{loan['id']}",
        json={"status": "returned"},
        headers=admin_headers,
    )
    assert response.status_code == 200
    assert response.json()["status"] == "returned"
    assert response.json()["date_returned"] is not None
    assert await availability(client, admin_headers, book.id) == 1


@pytest.mark.anyio
async def test_insufficient_copies_is_409_with_code(client: AsyncClient, admin_headers, book, reader):
    await create_loan(client, admin_headers, book.id, reader.id)

    response = await create_loan(client, admin_headers, book.id, reader.id)

    assert response.status_code == 409
    detail = response.json()["detail"]
    assert detail["code"] == "insufficient_copies"
    assert detail["available"] == 0


@pytest.mark.anyio
async def test_invalid_transition_is_409(client: AsyncClient, admin_headers, book, reader):
    loan = (await create_loan(client, admin_headers, book.id, reader.id)).json()
    await client.patch(
        f"/api/v1/loans/{loan['id']}", json={"status": "canceled"}, headers=admin_headers
    )

    response = await client.patch(
        f"/api/v1/loans/{loan['id']}", json={"status": "returned"}, headers=admin_headers
    )

    assert response.status_code == 409
    assert response.json()["detail"]["code"] == "invalid_transition"


@pytest.mark.anyio
async def test_bad_dates_are_422(client: AsyncClient, admin_headers, book, reader):
    response = await create_loan(
        client, admin_headers, book.id, reader.id, expected_return_date=iso(-2)
    )
    assert response.status_code == 422
    assert response.json()["detail"]["code"] == "validation_error"


@pytest.mark.anyio
async def test_delete_loan_then_not_found(client: AsyncClient, admin_headers, book, reader):
    loan = (await create_loan(client, admin_headers, book.id, reader.id)).json()

    response = await client.delete(f"/api/v1/loans/{loan['id']}", headers=admin_headers)
    assert response.status_code == 204
    assert await availability(client, admin_headers, book.id) == 1

    response = await client.delete(f"/api/v1/loans/{loan['id']}", headers=admin_headers)
    assert response.status_code == 404
    assert response.json()["detail"]["code"] == "not_found"
    assert await availability(client, admin_headers, book.id) == 1


@pytest.mark.anyio
async def test_reader_cannot_create_or_update(client: AsyncClient, reader_headers, book, reader):
    response = await create_loan(client, reader_headers, book.id, reader.id)
    assert response.status_code == 403


@pytest.mark.anyio
async def test_summary_is_admin_only(client: AsyncClient, admin_headers, reader_headers):
    assert (await client.get("/api/v1/loans/summary", headers=reader_headers)).status_code == 403

    response = await client.get("/api/v1/loans/summary", headers=admin_headers)
    assert response.status_code == 200
    assert response.json()["total"] == 0


# ==========================================
# Leitor
# ==========================================

@pytest.mark.anyio
async def test_reader_borrows_and_lists_own_loans(
    client: AsyncClient, test_db, admin_headers, reader_headers, reader, other_reader
):
    book = await add_book(test_db, total_copies=3)
    await create_loan(client, admin_headers, book.id, other_reader.id)

    response = await client.post(
        f"/api/v1/books/{book.id}/borrow",
        json={"due_date": iso(7)},
        headers=reader_headers,
    )
    assert response.status_code == 201
    assert response.json()["borrower_id"] == str(reader.id)

    response = await client.get("/api/v1/loans", headers=reader_headers)
    assert response.status_code == 200
    page = response.json()
    assert page["total"] == 1
    assert page["items"][0]["borrower_id"] == str(reader.id)

    response = await client.get("/api/v1/loans", headers=admin_headers)
    assert response.json()["total"] == 2

    stats = await client.get("/api/v1/loans/my/stats", headers=reader_headers)
    assert stats.json()["active"] == 1


@pytest.mark.anyio
async def test_reader_cannot_see_other_loans(
    client: AsyncClient, admin_headers, reader_headers, book, other_reader
):
    loan = (await create_loan(client, admin_headers, book.id, other_reader.id)).json()

    response = await client.get(f"/api/v1/loans/{loan['id']}", headers=reader_headers)
    assert response.status_code == 403


@pytest.mark.anyio
async def test_duplicate_self_borrow_is_409(client: AsyncClient, test_db, reader_headers):
    book = await add_book(test_db, total_copies=2)
    await client.post(
        f"/api/v1/books/{book.id}/borrow", json={"due_date": iso(7)}, headers=reader_headers
    )

    response = await client.post(
        f"/api/v1/books/{book.id}/borrow", json={"due_date": iso(7)}, headers=reader_headers
    )
    assert response.status_code == 409
    assert response.json()["detail"]["code"] == "duplicate_loan"


# ==========================================
# Catálogo e configurações
# ==========================================

@pytest.mark.anyio
async def test_catalog_resize_keeps_loaned_copies(client: AsyncClient, admin_headers, reader):
    response = await client.post(
        "/api/v1/books",
        json={"title": "Memórias Póstumas", "isbn": "9788508133136", "total_copies": 3},
        headers=admin_headers,
    )
    assert response.status_code == 201
    book_id = response.json()["id"]
    await create_loan(client, admin_headers, book_id, reader.id, quantity=2)

    response = await client.patch(
        f"/api/v1/books/{book_id}", json={"total_copies": 5}, headers=admin_headers
    )
    assert response.status_code == 200
    assert response.json()["total_copies"] == 5
    assert response.json()["available_copies"] == 3


@pytest.mark.anyio
async def test_duplicate_isbn_is_409(client: AsyncClient, admin_headers, book):
    response = await client.post(
        "/api/v1/books",
        json={"title": "Outro", "isbn": book.isbn, "total_copies": 1},
        headers=admin_headers,
    )
    assert response.status_code == 409


@pytest.mark.anyio
async def test_late_fee_settings_round_trip(client: AsyncClient, admin_headers, reader_headers):
    response = await client.get("/api/v1/settings/late-fees", headers=reader_headers)
    assert response.status_code == 200
    assert response.json()["enabled"] is False

    payload = {"enabled": True, "rate": "2.50", "interval": "week"}
    assert (
        await client.put("/api/v1/settings/late-fees", json=payload, headers=reader_headers)
    ).status_code == 403

    response = await client.put("/api/v1/settings/late-fees", json=payload, headers=admin_headers)
    assert response.status_code == 200

    current = (await client.get("/api/v1/settings/late-fees", headers=reader_headers)).json()
    assert current["enabled"] is True
    assert current["interval"] == "week"
    assert current["rate"] == "2.50"


@pytest.mark.anyio
async def test_overdue_loan_shows_fee(client: AsyncClient, admin_headers, book, reader):
    await client.put(
        "/api/v1/settings/late-fees",
        json={"enabled": True, "rate": "10.00", "interval": "day"},
        headers=admin_headers,
    )
    response = await create_loan(
        client,
        admin_headers,
        book.id,
        reader.id,
        date_borrowed=iso(-10),
        expected_return_date=iso(-3, delta_hours=1),
    )

    loan = response.json()
    assert loan["effective_status"] == "overdue"
    assert loan["calculated_fees"] == "30.00"
