from sqlalchemy import create_engine
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import declarative_base, sessionmaker

from app.core.config import ReadIntEnv, RequireEnv

Base = declarative_base()
engine = None
SessionLocal = None


def BuildConnectionUrl() -> str:
    return RequireEnv("DATABASE_URL")


def _engine_options(url: str) -> dict:
    if url.startswith("sqlite"):
        return {"connect_args": {"check_same_thread": False}}
    return {
        "pool_pre_ping": True,
        "pool_size": ReadIntEnv("SQLALCHEMY_POOL_SIZE", 10),
        "max_overflow": ReadIntEnv("SQLALCHEMY_MAX_OVERFLOW", 20),
        "pool_timeout": ReadIntEnv("SQLALCHEMY_POOL_TIMEOUT", 60),
    }


def _ensure_engine():
    global engine, SessionLocal
    if engine is None:
        url = BuildConnectionUrl()
        engine = create_engine(url, **_engine_options(url))
        SessionLocal = sessionmaker(bind=engine, autocommit=False, autoflush=False)


def GetEngine():
    _ensure_engine()
    return engine


def GetDb():
    if SessionLocal is None:
        _ensure_engine()
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def IsUniqueViolation(exc: IntegrityError, constraint_name: str, columns: tuple[str, ...] = ()) -> bool:
    """True when ``exc`` was raised by the named unique constraint.

    Server databases report the constraint name. SQLite only reports the
    ``table.column`` pairs, so those are matched when ``columns`` is given.
    """
    message = str(getattr(exc, "orig", exc))
    if constraint_name in message:
        return True
    return bool(columns) and "UNIQUE constraint failed" in message and all(column in message for column in columns)
