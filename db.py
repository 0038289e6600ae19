from sqlalchemy.orm import declarative_base, sessionmaker
from sqlalchemy import create_engine, event
import os


def _set_sqlite_pragmas(dbapi_connection, connection_record):
    """Configure SQLite for concurrent readers while a refresh is writing."""
    cursor = dbapi_connection.cursor()
    try:
        # Wait for locks instead of failing immediately.
        cursor.execute("PRAGMA busy_timeout=5000")
        # Readers are not blocked by the replace-all writer.
        cursor.execute("PRAGMA journal_mode=WAL")
        cursor.execute("PRAGMA synchronous=NORMAL")
    finally:
        cursor.close()


def make_engine(url: str):
    """Create an engine; SQLite URLs get thread-sharing and pragma setup."""

    if url.startswith("sqlite"):
        eng = create_engine(
            url,
            connect_args={"check_same_thread": False, "timeout": 30},
            pool_pre_ping=True,
        )
        event.listen(eng, "connect", _set_sqlite_pragmas)
        return eng
    return create_engine(url, pool_pre_ping=True)


DB_PATH = os.path.join(os.path.dirname(__file__), "data", "shelters.db")
SQLALCHEMY_DATABASE_URL = os.getenv("SHELTER_DATABASE_URL") or f"sqlite:///{DB_PATH}"

if SQLALCHEMY_DATABASE_URL == f"sqlite:///{DB_PATH}":
    os.makedirs(os.path.dirname(DB_PATH), exist_ok=True)

engine = make_engine(SQLALCHEMY_DATABASE_URL)

SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)
Base = declarative_base()
