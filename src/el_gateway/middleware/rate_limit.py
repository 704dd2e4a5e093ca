"""Fixed-window rate limiting for the AI endpoints.

Every ask/submit call spends real money upstream, so those two routes are
capped per caller: ``AI_RATE_LIMIT_PER_MINUTE`` requests per 60s window.

  1. Redis MULTI { SET NX EX, INCR } on "ratelimit:{account_id_or_ip}:ai", so
     the counter never exists without its TTL
  2. Caller = JWT ``sub`` when a valid bearer token is present, else client IP
     (X-Forwarded-For aware)
  3. Over the limit → RateLimitError (9001) envelope with Retry-After

If Redis is unreachable the request is let through and a warning is logged;
the credit check still bounds spend.
"""

import logging
import re

from redis.exceptions import RedisError
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import JSONResponse, Response
from starlette.types import ASGIApp

from config.settings import settings
from src.el_common.errors import RateLimitError
from src.el_common.redis_client import get_redis
from src.el_common.response import error_response
from src.el_gateway.auth.jwt_handler import subject_or_none

logger = logging.getLogger(__name__)

_WINDOW_SECONDS = 60
_AI_PATH_RE = re.compile(r"^/api/v1/(chapters/[^/]+/ask|tests/[^/]+/submit)$")


def _client_key(request: Request) -> str:
    auth = request.headers.get("authorization", "")
    if auth.lower().startswith("bearer "):
        sub = subject_or_none(auth[7:].strip())
        if sub:
            return f"user:{sub}"
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        return f"ip:{forwarded.split(',')[0].strip()}"
    return f"ip:{request.client.host if request.client else 'unknown'}"


class RateLimitMiddleware(BaseHTTPMiddleware):
    def __init__(self, app: ASGIApp, limit_per_minute: int | None = None) -> None:
        super().__init__(app)
        self._limit = (
            settings.AI_RATE_LIMIT_PER_MINUTE if limit_per_minute is None else limit_per_minute
        )

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        if (
            self._limit <= 0
            or request.method != "POST"
            or not _AI_PATH_RE.match(request.url.path)
        ):
            return await call_next(request)

        key = f"ratelimit:{_client_key(request)}:ai"
        try:
            redis = await get_redis()
            async with redis.pipeline(transaction=True) as pipe:
                pipe.set(key, 0, ex=_WINDOW_SECONDS, nx=True)
                pipe.incr(key)
                _, count = await pipe.execute()
            retry_after = await redis.ttl(key) if count > self._limit else 0
        except RedisError as exc:
            logger.warning("Rate limiter unavailable, allowing %s: %s", key, exc)
            return await call_next(request)

        if count > self._limit:
            err = RateLimitError()
            logger.info("Rate limit hit for %s (%d/%d)", key, count, self._limit)
            return JSONResponse(
                status_code=err.http_status,
                content=error_response(err.code, err.message).model_dump(),
                headers={"Retry-After": str(max(retry_after, 1))},
            )
        return await call_next(request)
