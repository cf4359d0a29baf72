from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import DeclarativeBase


class Base(DeclarativeBase):
    pass


def dialect_insert(session: AsyncSession, model):
    """Return an INSERT supporting ON CONFLICT for the session's backend.

    PostgreSQL in production, SQLite in tests; both expose the same
    on_conflict_do_nothing / on_conflict_do_update API.
    """
    if session.bind.dialect.name == "postgresql":
        return postgresql.insert(model)
    return sqlite.insert(model)
