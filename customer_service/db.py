# customer_service/db.py

import logging
import os
from typing import Optional

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import declarative_base, sessionmaker

logger = logging.getLogger(__name__)


def _database_url_from_env() -> str:
    url = os.getenv("DATABASE_URL")
    if url:
        return url

    postgres_host = os.getenv("POSTGRES_HOST")
    if postgres_host:
        postgres_user = os.getenv("POSTGRES_USER", "postgres")
        postgres_password = os.getenv("POSTGRES_PASSWORD", "postgres")
        postgres_db = os.getenv("POSTGRES_DB", "customers")
        postgres_port = os.getenv("POSTGRES_PORT", "5432")
        return (
            "postgresql://"
            f"{postgres_user}:{postgres_password}@"
            f"{postgres_host}:{postgres_port}/{postgres_db}"
        )

    return "sqlite:///./database.db"


def _enable_sqlite_foreign_keys(dbapi_connection, connection_record):
    # SQLite ships with foreign key enforcement off for every new connection
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


def make_engine(url: str) -> Engine:
    """
    Builds an engine for the given URL.

    SQLite connections are shared across the server's worker threads and get
    foreign key enforcement switched on, so ON DELETE CASCADE and the
    address -> customer reference hold the same way they do on PostgreSQL.
    """
    if url.startswith("sqlite"):
        engine = create_engine(url, connect_args={"check_same_thread": False})
        event.listen(engine, "connect", _enable_sqlite_foreign_keys)
    else:
        engine = create_engine(url, pool_pre_ping=True)
    return engine


DATABASE_URL = _database_url_from_env()

engine = make_engine(DATABASE_URL)
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)
Base = declarative_base()


def ensure_schema(bind: Optional[Engine] = None) -> None:
    """Creates the customer and address tables if they do not exist yet."""
    # Import registers the mapped tables on Base.metadata
    from . import models  # noqa: F401

    target = bind if bind is not None else engine
    Base.metadata.create_all(bind=target)
    logger.info(
        f"Customer Service: Schema ensured for tables: {', '.join(sorted(Base.metadata.tables))}"
    )


def dispose_engine() -> None:
    engine.dispose()
    logger.info("Customer Service: Database connections closed.")


def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
