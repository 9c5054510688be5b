import logging
import time
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError
from starlette.exceptions import HTTPException as StarletteHTTPException
from starlette.middleware.base import BaseHTTPMiddleware

from app.config import DEFAULT_JWT_SECRET, settings
from app.database import engine, init_db, ping
from app.logging_config import configure_logging
from app.rate_limit import install_rate_limit
from app.routers import albums, auth, health
from app.services.authority import session_authority
from app.services.errors import AuthFailure
from app.services.events import event_emitter
from app.services.users import account_store

LOGGER = logging.getLogger(__name__)


def prepare_database() -> bool:
    """Create tables and the seed account. The API still starts without a database."""
    if not ping():
        LOGGER.warning("DB not reachable; API will operate without DB")
        return False
    init_db()
    try:
        account_store.ensure_seed_account()
    except (ValueError, SQLAlchemyError) as exc:
        LOGGER.warning("Seed account not created: %s", exc)
    return True


@asynccontextmanager
async def lifespan(app: FastAPI):
    configure_logging(settings)
    if settings.jwt_secret == DEFAULT_JWT_SECRET:
        LOGGER.warning("JWT_SECRET is not set; using the built-in development secret")
    prepare_database()
    event_emitter.start()
    yield
    event_emitter.close()
    session_authority.close()
    engine.dispose()


app = FastAPI(title="Album Log Backend", lifespan=lifespan)


class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next):
        response = await call_next(request)
        response.headers["X-Content-Type-Options"] = "nosniff"
        response.headers["X-Frame-Options"] = "DENY"
        response.headers["Referrer-Policy"] = "no-referrer"
        return response


class RequestLogMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next):
        start = time.perf_counter()
        response = await call_next(request)
        LOGGER.info(
            "HTTP %s %s status=%s ms=%.1f ua=%s ip=%s",
            request.method,
            request.url.path,
            response.status_code,
            (time.perf_counter() - start) * 1000.0,
            request.headers.get("user-agent", "unknown"),
            request.client.host if request.client else None,
        )
        return response


app.add_middleware(RequestLogMiddleware)
app.add_middleware(SecurityHeadersMiddleware)
install_rate_limit(app, settings)
app.add_middleware(
    CORSMiddleware,
    allow_origins=[settings.frontend_url],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


def _error(status_code: int, message: str, **extra) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content={"success": False, "message": message, **extra},
    )


@app.exception_handler(AuthFailure)
async def auth_failure_handler(request: Request, exc: AuthFailure) -> JSONResponse:
    return _error(exc.status_code, exc.message)


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(
    request: Request, exc: StarletteHTTPException
) -> JSONResponse:
    message = exc.detail
    if exc.status_code == 404 and message == "Not Found":
        message = "Endpoint not found"
    return _error(exc.status_code, str(message))


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    return _error(400, "Validation failed", errors=jsonable_encoder(exc.errors()))


@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    LOGGER.error("Unhandled error on %s %s", request.method, request.url.path, exc_info=exc)
    return _error(500, "Internal server error")


app.include_router(health.router)
app.include_router(auth.router, prefix="/api")
app.include_router(albums.router, prefix="/api")
