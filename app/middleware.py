import json
import logging
import time
import uuid

from fastapi import Request
from redis.exceptions import RedisError
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.responses import Response

from .errors import failure

logger = logging.getLogger("app.access")

UNLIMITED_PATHS = ("/docs", "/openapi.json", "/health")


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next):
        request_id = request.headers.get("X-Request-Id") or str(uuid.uuid4())
        request.state.request_id = request_id

        start = time.perf_counter()
        line = {"request_id": request_id, "method": request.method, "path": request.url.path}
        try:
            response: Response = await call_next(request)
        except Exception:
            line.update(status=500, duration_ms=round((time.perf_counter() - start) * 1000, 2))
            logger.error(json.dumps(line))
            raise

        response.headers["X-Request-Id"] = request_id
        line.update(
            status=response.status_code,
            duration_ms=round((time.perf_counter() - start) * 1000, 2),
            user_sub=getattr(request.state, "user_sub", None),
            user_roles=getattr(request.state, "user_roles", None),
        )
        logger.info(json.dumps(line))
        return response


class RateLimitMiddleware(BaseHTTPMiddleware):
    """Fixed one-minute window per client IP, counted in Redis. Redis errors let the request through."""

    def __init__(self, app, redis_client, max_per_minute: int = 120):
        super().__init__(app)
        self.redis = redis_client
        self.max_per_minute = max_per_minute

    async def dispatch(self, request: Request, call_next):
        if request.url.path in UNLIMITED_PATHS or request.url.path.startswith("/docs/"):
            return await call_next(request)

        ip = request.client.host if request.client else "unknown"
        epoch_minute = int(time.time() // 60)
        key = f"rl:ip:{ip}:{epoch_minute}"

        try:
            count = await self.redis.incr(key)
            if count == 1:
                await self.redis.expire(key, 70)
        except RedisError as e:
            logger.warning(f"Rate limiter unavailable: {e}")
            return await call_next(request)

        if count > self.max_per_minute:
            return failure(429, "Too many requests")

        return await call_next(request)
