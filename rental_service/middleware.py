import json
import time
import uuid

from fastapi import Request
from fastapi.responses import JSONResponse
from redis.exceptions import RedisError
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.responses import Response

from . import redis_client as rc


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next):
        request_id = request.headers.get("X-Request-Id") or str(uuid.uuid4())
        request.state.request_id = request_id

        start = time.perf_counter()
        try:
            response: Response = await call_next(request)
        except Exception:
            duration_ms = (time.perf_counter() - start) * 1000
            print(json.dumps({
                "request_id": request_id,
                "method": request.method,
                "path": request.url.path,
                "status": 500,
                "duration_ms": round(duration_ms, 2),
            }))
            raise

        duration_ms = (time.perf_counter() - start) * 1000
        response.headers["X-Request-Id"] = request_id

        print(json.dumps({
            "request_id": request_id,
            "method": request.method,
            "path": request.url.path,
            "status": response.status_code,
            "duration_ms": round(duration_ms, 2),
            "user_sub": getattr(request.state, "user_sub", None),
            "user_roles": getattr(request.state, "user_roles", None),
        }))
        return response


class RateLimitMiddleware(BaseHTTPMiddleware):
    """
    Fixed one-minute window per client IP, counted in Redis.
    Does nothing when Redis is not configured.
    """

    def __init__(self, app, max_per_minute: int = 120):
        super().__init__(app)
        self.max_per_minute = max_per_minute

    async def dispatch(self, request: Request, call_next):
        if rc.redis_client is None:
            return await call_next(request)
        if request.url.path in ("/docs", "/openapi.json", "/health"):
            return await call_next(request)
        if request.url.path.startswith("/docs/"):
            return await call_next(request)

        ip = request.client.host if request.client else "unknown"
        epoch_minute = int(time.time() // 60)
        key = f"rl:ip:{ip}:{epoch_minute}"

        try:
            count = await rc.redis_client.incr(key)
            if count == 1:
                await rc.redis_client.expire(key, 70)
        except RedisError as e:
            print(f"[rental-service] rate limiter unavailable: {e}")
            return await call_next(request)

        if count > self.max_per_minute:
            return JSONResponse(status_code=429, content={"detail": "Too many requests"})

        return await call_next(request)
