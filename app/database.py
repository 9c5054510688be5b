import logging
import os
from contextlib import contextmanager

from sqlalchemy import create_engine
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import declarative_base, sessionmaker

LOGGER = logging.getLogger(__name__)


def _build_database_url() -> str:
    raw_url = os.getenv("DATABASE_URL", "").strip()
    if raw_url.startswith("postgresql://"):
        return raw_url.replace("postgresql://", "postgresql+psycopg://", 1)
    return raw_url


def _engine_kwargs(url: str) -> dict:
    kwargs = {"pool_pre_ping": True}
    if url.startswith("sqlite"):
        # Requests and the last-used touch run on different threads.
        kwargs["connect_args"] = {"check_same_thread": False}
    return kwargs


DATABASE_URL = _build_database_url()
engine = create_engine(DATABASE_URL or "sqlite://", **_engine_kwargs(DATABASE_URL))
SessionLocal = sessionmaker(
    bind=engine, autoflush=False, autocommit=False, expire_on_commit=False
)
Base = declarative_base()


def init_db() -> None:
    if not DATABASE_URL:
        raise RuntimeError("DATABASE_URL is not configured")
    from app.models.schema import account as _account  # noqa: F401
    from app.models.schema import album as _album  # noqa: F401
    from app.models.schema import token as _token  # noqa: F401

    Base.metadata.create_all(bind=engine)
    LOGGER.info("Database tables ensured on %s", engine.url.render_as_string(hide_password=True))


def ping() -> bool:
    try:
        with engine.connect() as connection:
            connection.exec_driver_sql("SELECT 1")
    except SQLAlchemyError as exc:
        LOGGER.warning("Database ping failed: %s", exc)
        return False
    return True


@contextmanager
def session_scope():
    session = SessionLocal()
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()
