"""
Ponto de entrada da aplicação FastAPI.

Configura a aplicação, inclui as rotas e define o ciclo de vida
(startup/shutdown) com banco e Redis.

Execução:
    uvicorn lending.main:app --reload
"""

from contextlib import asynccontextmanager

from fastapi import FastAPI

from lending.api.v1.router import api_router
from lending.core.config import get_settings
from lending.core.logging import setup_logging, get_logger
from lending.db.session import check_database_connection, engine
from lending.db.redis import init_redis, close_redis, check_redis_connection
from lending.schemas.health import HealthResponse

settings = get_settings()
logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Startup:
        - Configura logging
        - Conecta ao Redis (opcional: sem ele não há cache nem rate limit)
        - Verifica conexão com o banco

    Shutdown:
        - Fecha Redis e o pool de conexões
    """
    setup_logging()
    logger.info(f"Iniciando {settings.APP_NAME} em ambiente {settings.ENVIRONMENT}")

    try:
        await init_redis()
        if await check_redis_connection():
            logger.info("Conexão com Redis estabelecida")
        else:
            logger.warning("Redis não disponível - cache e rate limit desligados")
            await close_redis()
    except Exception as e:
        logger.warning(f"Falha ao conectar ao Redis: {e}")

    success, error = await check_database_connection()
    if success:
        logger.info("Conexão com o banco estabelecida")
    else:
        logger.warning(f"Banco não disponível: {error}")

    yield

    logger.info(f"Encerrando {settings.APP_NAME}")
    await close_redis()
    await engine.dispose()


app = FastAPI(
    title=settings.APP_NAME,
    description="Empréstimos de livros com controle de estoque de cópias e multas por atraso",
    version="0.1.0",
    docs_url="/docs",
    redoc_url="/redoc",
    openapi_url="/openapi.json",
    lifespan=lifespan,
)

app.include_router(api_router)


@app.get(
    "/health",
    response_model=HealthResponse,
    tags=["Health"],
    summary="Verifica status da aplicação",
)
async def health_check() -> HealthResponse:
    """
    Healthcheck para load balancers e monitoramento.

    Responde 200 mesmo com o banco fora; o campo `database` indica o estado.
    """
    database_ok, _ = await check_database_connection()
    return HealthResponse(
        status="healthy" if database_ok else "unhealthy",
        app_name=settings.APP_NAME,
        environment=settings.ENVIRONMENT,
        database="up" if database_ok else "down",
    )
