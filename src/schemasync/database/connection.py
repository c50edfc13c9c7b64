"""
Database connection management for schemasync.

A thin asyncpg pool wrapper used by the PostgreSQL backend.
"""

import asyncio
import logging
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Dict, List, Optional
from urllib.parse import parse_qs, urlparse

import asyncpg
from pydantic import BaseModel, Field, field_validator

from ..exceptions import ConfigurationError, DatabaseConnectionError


logger = logging.getLogger(__name__)


class ConnectionConfig(BaseModel):
    """Database connection configuration."""

    host: str = Field("localhost", description="Database host")
    port: int = Field(5432, description="Database port")
    database: str = Field(..., description="Database name")
    user: str = Field("", description="Database user")
    password: str = Field("", description="Database password")

    min_size: int = Field(1, description="Minimum connections in pool")
    max_size: int = Field(5, description="Maximum connections in pool")

    command_timeout: float = Field(60.0, description="Command timeout in seconds")
    schema_name: str = Field("public", description="Schema holding the managed tables")
    ssl_mode: Optional[str] = Field(None, description="SSL mode")
    server_settings: Dict[str, str] = Field(
        default_factory=lambda: {"application_name": "schemasync"},
        description="PostgreSQL server settings",
    )

    @field_validator("database")
    @classmethod
    def validate_database(cls, v):
        if not v or not v.strip():
            raise ValueError("Database name is required")
        return v

    @classmethod
    def from_url(cls, url: str, **overrides: Any) -> "ConnectionConfig":
        """Create configuration from a ``postgresql://`` URL."""
        parsed = urlparse(url)

        if parsed.scheme not in ("postgresql", "postgres"):
            raise ConfigurationError(f"Invalid database URL scheme: {parsed.scheme}")

        if not parsed.path or parsed.path == "/":
            raise ConfigurationError("Database name is required")

        query_params = parse_qs(parsed.query) if parsed.query else {}

        config_data: Dict[str, Any] = {
            "host": parsed.hostname or "localhost",
            "port": parsed.port or 5432,
            "database": parsed.path.lstrip("/"),
            "user": parsed.username or "",
            "password": parsed.password or "",
        }
        if "sslmode" in query_params:
            config_data["ssl_mode"] = query_params["sslmode"][0]
        config_data.update(overrides)

        return cls(**config_data)

    def to_connection_kwargs(self) -> Dict[str, Any]:
        """Convert to asyncpg connection kwargs."""
        kwargs = {
            "host": self.host,
            "port": self.port,
            "database": self.database,
            "user": self.user,
            "password": self.password,
            "command_timeout": self.command_timeout,
            "server_settings": self.server_settings,
        }
        if self.ssl_mode:
            kwargs["ssl"] = self.ssl_mode
        return kwargs


class ConnectionPool:
    """Async PostgreSQL connection pool wrapper."""

    def __init__(self, config: ConnectionConfig):
        self.config = config
        self._pool: Optional[asyncpg.Pool] = None
        self._lock = asyncio.Lock()

    async def initialize(self) -> None:
        """Initialize the connection pool."""
        async with self._lock:
            if self._pool is not None:
                return

            try:
                logger.info(
                    f"Initializing connection pool to {self.config.host}:{self.config.port}"
                    f"/{self.config.database} (min={self.config.min_size}, max={self.config.max_size})"
                )
                self._pool = await asyncpg.create_pool(
                    **self.config.to_connection_kwargs(),
                    min_size=self.config.min_size,
                    max_size=self.config.max_size,
                )
            except Exception as e:
                logger.error(f"Failed to initialize connection pool: {e}")
                raise DatabaseConnectionError(
                    f"Failed to initialize connection pool: {e}", cause=e
                ) from e

    async def close(self) -> None:
        """Close the connection pool."""
        async with self._lock:
            if self._pool is not None:
                logger.info("Closing connection pool")
                await self._pool.close()
                self._pool = None

    @asynccontextmanager
    async def acquire(self) -> AsyncIterator[asyncpg.Connection]:
        """Acquire a connection from the pool."""
        if self._pool is None:
            raise DatabaseConnectionError("Pool is not connected")

        async with self._pool.acquire() as connection:
            yield connection

    async def fetch(self, query: str, *args) -> List[asyncpg.Record]:
        async with self.acquire() as conn:
            return await conn.fetch(query, *args)

    async def __aenter__(self) -> "ConnectionPool":
        await self.initialize()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()
