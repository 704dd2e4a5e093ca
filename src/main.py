"""FastAPI application entry point.

Run with: uvicorn src.main:app --reload --port 8000
"""

# ruff: noqa: E402  -- uvloop.install() must run before other imports

import uvloop

uvloop.install()

import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from redis.exceptions import RedisError
from sqlalchemy import text

from config.settings import settings
from src.el_common.database import engine
from src.el_common.errors import AppError
from src.el_common.redis_client import close_redis, get_redis
from src.el_common.response import error_response
from src.el_gateway.api.router import router as user_router
from src.el_gateway.middleware.rate_limit import RateLimitMiddleware
from src.el_gateway.middleware.request_log import RequestLogMiddleware
from src.el_grading.api.router import router as tests_router
from src.el_ledger.api.router import router as credits_router
from src.el_ledger.domain.pricing import validate_pricing_table
from src.el_llm.client import build_openai_client
from src.el_payment.api.router import router as payments_router
from src.el_tutor.api.router import router as tutor_router

logging.basicConfig(
    level=settings.LOG_LEVEL,
    format="%(asctime)s %(levelname)s %(name)s %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Startup: validate pricing, verify DB + Redis, build the LLM transport.
    Shutdown: dispose."""
    # Startup; a bad pricing table is fatal.
    validate_pricing_table(settings.DEFAULT_AI_MODEL)
    async with engine.connect() as conn:
        await conn.execute(text("SELECT 1"))
    redis = await get_redis()
    try:
        await redis.ping()
    except RedisError as exc:
        logger.warning("Redis unreachable at startup, rate limiting disabled until it is: %s", exc)
    app.state.openai_client = build_openai_client()
    yield
    # Shutdown
    await app.state.openai_client.close()
    await engine.dispose()
    await close_redis()


app = FastAPI(
    title=settings.APP_NAME,
    version="0.1.0",
    lifespan=lifespan,
)


# Last added runs first: request ids exist before the limiter answers.
app.add_middleware(RateLimitMiddleware)
app.add_middleware(RequestLogMiddleware)


@app.exception_handler(AppError)
async def app_error_handler(request: Request, exc: AppError) -> JSONResponse:
    resp = error_response(exc.code, exc.message)
    request_id = getattr(request.state, "request_id", None)
    if request_id:
        resp.request_id = request_id
    return JSONResponse(
        status_code=exc.http_status,
        content=resp.model_dump(),
    )


app.include_router(tutor_router, prefix="/api/v1")
app.include_router(tests_router, prefix="/api/v1")
app.include_router(credits_router, prefix="/api/v1")
app.include_router(user_router, prefix="/api/v1")
app.include_router(payments_router, prefix="/api/v1")


@app.get("/health")
async def health() -> dict[str, str]:
    return {"status": "ok", "version": "0.1.0"}
