"""Database setup for the SQLite key-value store using SQLModel."""

from sqlalchemy.engine import Engine
from sqlmodel import Field, SQLModel, Session, create_engine


class KeyValueEntry(SQLModel, table=True):
    """One persisted key-value pair (a whole collection or a cache entry)."""

    __tablename__ = "key_value_entries"

    key: str = Field(primary_key=True)
    value: str


def make_engine(database_url: str, echo: bool = False) -> Engine:
    """Create an engine for the given SQLite URL."""
    return create_engine(
        database_url,
        echo=echo,
        connect_args={"check_same_thread": False},  # Needed for SQLite
    )


def create_db_and_tables(engine: Engine) -> None:
    """Create all database tables."""
    SQLModel.metadata.create_all(engine)


def get_session(engine: Engine) -> Session:
    """Open a new session bound to the engine."""
    return Session(engine)
