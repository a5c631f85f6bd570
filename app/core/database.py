"""PostgreSQL connection and session management."""

from collections.abc import Generator

from sqlalchemy import create_engine, text
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, sessionmaker

from app.core.config import settings

engine = create_engine(
    settings.DATABASE_URL,
    pool_pre_ping=True,
    echo=settings.DEBUG,
)

SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


def get_db() -> Generator[Session, None, None]:
    """Dependency that yields a DB session and closes it when done."""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def check_db_connected(db: Session) -> bool:
    """Run a trivial query to verify the database is reachable."""
    try:
        db.execute(text("SELECT 1"))
        return True
    except Exception:
        return False


def violated_unique_field(exc: IntegrityError, fields: tuple[str, ...]) -> str | None:
    """
    Return which of fields a unique-constraint IntegrityError refers to, if any.

    Works off the driver message, which names the column on both PostgreSQL
    ("Key (email)=...") and SQLite ("UNIQUE constraint failed: users.email").
    """
    message = str(exc.orig) if exc.orig is not None else str(exc)
    for field in fields:
        if field in message:
            return field
    return None
