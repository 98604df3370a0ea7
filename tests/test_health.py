"""
Testes para o endpoint de healthcheck.
"""

import pytest
from httpx import AsyncClient, ASGITransport

from lending.main import app


@pytest.fixture
async def client():
    """Cliente HTTP sem override: usa o engine configurado em DATABASE_URL."""
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac


@pytest.mark.anyio
async def test_health_check_reports_database(client: AsyncClient):
    response = await client.get("/health")

    assert response.status_code == 200
    data = response.json()
    assert data["status"] == "healthy"
    assert data["database"] == "up"


@pytest.mark.anyio
async def test_health_check_returns_app_info(client: AsyncClient):
    data = (await client.get("/health")).json()

    assert data["app_name"] == "Library Lending API"
    assert "environment" in data
