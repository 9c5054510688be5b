import logging

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from slowapi import Limiter
from slowapi.errors import RateLimitExceeded
from slowapi.middleware import SlowAPIMiddleware
from slowapi.util import get_remote_address

from app.config import Settings

LOGGER = logging.getLogger(__name__)

RATE_LIMIT_MESSAGE = "Too many requests, please try again later."


def build_limiter(config: Settings) -> Limiter:
    # One budget per client address, shared by every route.
    return Limiter(
        key_func=get_remote_address,
        application_limits=[config.rate_limit],
        enabled=config.rate_limit_enabled,
    )


def rate_limit_exceeded_handler(request: Request, exc: RateLimitExceeded) -> JSONResponse:
    # SlowAPIMiddleware calls this without awaiting it; keep it synchronous.
    LOGGER.warning(
        "Rate limit exceeded: ip=%s path=%s limit=%s",
        get_remote_address(request),
        request.url.path,
        exc.detail,
    )
    return JSONResponse(
        status_code=429,
        content={"success": False, "message": RATE_LIMIT_MESSAGE},
    )


def install_rate_limit(app: FastAPI, config: Settings) -> Limiter:
    limiter = build_limiter(config)
    app.state.limiter = limiter
    app.add_exception_handler(RateLimitExceeded, rate_limit_exceeded_handler)
    app.add_middleware(SlowAPIMiddleware)
    return limiter
