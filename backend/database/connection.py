import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

from sqlalchemy import text
from sqlalchemy.engine import Row
from sqlalchemy.exc import InvalidRequestError, ResourceClosedError
from sqlalchemy.ext.asyncio import (
    AsyncConnection,
    AsyncEngine,
    AsyncTransaction,
    create_async_engine,
)

logger = logging.getLogger(__name__)

IDENTITY_STORE = "identity"
PROFILE_STORE = "profile"


def normalize_async_url(url: str) -> str:
    """Ensure the asyncpg driver is used for plain PostgreSQL URLs."""
    if url.startswith("postgresql://"):
        return url.replace("postgresql://", "postgresql+asyncpg://", 1)
    if url.startswith("postgres://"):
        return url.replace("postgres://", "postgresql+asyncpg://", 1)
    return url


@dataclass(frozen=True)
class StoreDescriptor:
    """Connection settings for one store"""
    name: str
    url: str
    ssl: Optional[str] = None
    echo: bool = False

    def __repr__(self) -> str:
        # URLs carry credentials
        return f"StoreDescriptor(name={self.name!r}, ssl={self.ssl!r})"


class StoreAccessor:
    """
    One database session for the length of a cleanup run.

    Wraps a single AsyncConnection and at most one explicit transaction.
    Driver errors propagate unchanged (SQLAlchemyError or OSError); the
    cleanup components translate them into their own error types.
    """

    def __init__(self, descriptor: StoreDescriptor):
        self.descriptor = descriptor
        self._engine: Optional[AsyncEngine] = None
        self._conn: Optional[AsyncConnection] = None
        self._transaction: Optional[AsyncTransaction] = None

    @property
    def name(self) -> str:
        return self.descriptor.name

    @property
    def in_transaction(self) -> bool:
        return self._transaction is not None and self._transaction.is_active

    def _engine_options(self) -> Dict[str, Any]:
        options: Dict[str, Any] = {
            "echo": self.descriptor.echo,
            "pool_pre_ping": True,
            "pool_size": 1,
            "max_overflow": 0,
        }
        if self.descriptor.ssl:
            options["connect_args"] = {"ssl": self.descriptor.ssl}
        return options

    async def open(self) -> None:
        """Open the connection and verify it answers."""
        try:
            self._engine = create_async_engine(
                normalize_async_url(self.descriptor.url),
                **self._engine_options()
            )
            self._conn = await self._engine.connect()
            await self._conn.execute(text("SELECT 1"))
            # end the autobegun transaction so begin() starts a clean one
            await self._conn.rollback()
        except Exception:
            await self.close()
            raise
        logger.info(f"Connected to {self.name} store")

    async def begin(self) -> None:
        if self._conn is None:
            raise ResourceClosedError(f"{self.name} store session is not open")
        self._transaction = await self._conn.begin()

    async def commit(self) -> None:
        if not self.in_transaction:
            raise InvalidRequestError(f"{self.name} store has no active transaction")
        await self._transaction.commit()
        self._transaction = None

    async def rollback(self) -> None:
        """Roll back the open transaction; a no-op when none is active."""
        if self.in_transaction:
            await self._transaction.rollback()
        self._transaction = None

    async def fetch_all(self, statement) -> List[Row]:
        result = await self._require_conn().execute(statement)
        return list(result.fetchall())

    async def execute(self, statement) -> int:
        """Execute a write statement and return the affected row count."""
        result = await self._require_conn().execute(statement)
        return result.rowcount

    async def close(self) -> None:
        """Release the connection and dispose the engine."""
        conn, engine = self._conn, self._engine
        self._conn = None
        self._engine = None
        self._transaction = None
        try:
            if conn is not None:
                await conn.close()
        finally:
            if engine is not None:
                await engine.dispose()

    def _require_conn(self) -> AsyncConnection:
        if self._conn is None:
            raise ResourceClosedError(f"{self.name} store session is not open")
        return self._conn
