"""
Fixtures compartilhadas para testes.

Os testes com banco rodam em SQLite (aiosqlite) num arquivo temporário,
com as tabelas criadas a partir do metadata a cada teste. Defina
TEST_DATABASE_URL para apontar para outro banco.
"""

import os
import tempfile
from datetime import timedelta
from typing import AsyncGenerator

_TEST_DB_PATH = os.path.join(tempfile.gettempdir(), "library_lending_test.db")
TEST_DATABASE_URL = os.environ.get(
    "TEST_DATABASE_URL", f"sqlite+aiosqlite:///{_TEST_DB_PATH}"
)
os.environ["DATABASE_URL"] = TEST_DATABASE_URL
os.environ.setdefault("LOG_LEVEL", "WARNING")

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import NullPool

import lending.models  # noqa: F401
from lending.core.security import create_access_token, hash_password
from lending.db.session import Base, get_db
from lending.main import app
from lending.models.base import utcnow
from lending.models.book import Book
from lending.models.enums import UserRole
from lending.models.user import User

PASSWORD = "Senha123!"


# ==========================================
# Event loop configuration
# ==========================================

@pytest.fixture(scope="session")
def anyio_backend():
    return "asyncio"


# ==========================================
# Database fixtures
# ==========================================

@pytest.fixture
async def test_engine():
    """
    Engine de teste com NullPool: cada sessão abre a própria conexão,
    o que permite testar duas transações concorrentes de verdade.
    """
    engine = create_async_engine(TEST_DATABASE_URL, echo=False, poolclass=NullPool)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    await engine.dispose()


@pytest.fixture
def session_factory(test_engine):
    return async_sessionmaker(
        test_engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )


@pytest.fixture
async def test_db(session_factory) -> AsyncGenerator[AsyncSession, None]:
    """Sessão independente para cada teste."""
    async with session_factory() as session:
        yield session


# ==========================================
# HTTP Client fixtures
# ==========================================

@pytest.fixture
async def client(session_factory) -> AsyncGenerator[AsyncClient, None]:
    """
    Cliente HTTP assíncrono para testes.

    Substitui a dependency get_db para usar o engine de teste.
    """

    async def override_get_db():
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_db] = override_get_db

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()


# ==========================================
# Data fixtures
# ==========================================

async def add_user(
    db: AsyncSession,
    name: str,
    email: str,
    role: UserRole = UserRole.STUDENT,
) -> User:
    user = User(
        name=name,
        email=email,
        password_hash=hash_password(PASSWORD),
        role=role,
    )
    db.add(user)
    await db.commit()
    return user


async def add_book(
    db: AsyncSession,
    total_copies: int = 1,
    isbn: str = "9788535910663",
    title: str = "Dom Casmurro",
) -> Book:
    book = Book(
        title=title,
        isbn=isbn,
        author="Machado de Assis",
        total_copies=total_copies,
        available_copies=total_copies,
    )
    db.add(book)
    await db.commit()
    return book


async def available_copies(db: AsyncSession, book_id) -> int:
    """Lê o contador direto do banco, sem passar pelo identity map."""
    result = await db.execute(select(Book.available_copies).where(Book.id == book_id))
    return result.scalar_one()


@pytest.fixture
async def admin(test_db) -> User:
    return await add_user(test_db, "Balcão", "admin@biblioteca.dev", UserRole.ADMIN)


@pytest.fixture
async def reader(test_db) -> User:
    return await add_user(test_db, "Ana Leitora", "ana@biblioteca.dev")


@pytest.fixture
async def other_reader(test_db) -> User:
    return await add_user(test_db, "Bruno Leitor", "bruno@biblioteca.dev", UserRole.TEACHER)


@pytest.fixture
async def book(test_db) -> Book:
    """Livro com uma única cópia."""
    return await add_book(test_db, total_copies=1)


@pytest.fixture
def now():
    """Instante fixo usado como relógio dos services."""
    return utcnow().replace(microsecond=0)


@pytest.fixture
def due(now):
    return now + timedelta(days=14)


# ==========================================
# Auth fixtures
# ==========================================

@pytest.fixture
def admin_headers(admin: User) -> dict:
    token = create_access_token(admin.id, admin.role.value)
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def reader_headers(reader: User) -> dict:
    token = create_access_token(reader.id, reader.role.value)
    return {"Authorization": f"Bearer {token}"}
