"""Postgres persistence for credentials and session drafts.

Uses ``asyncpg`` with a module-level pool created at app startup.  The
``garmin_credentials`` and ``sessions`` tables are defined in
``schema.sql``; ``sessions.garmin_activity_id`` carries the UNIQUE
constraint that makes activity import idempotent.
"""

from __future__ import annotations

import logging
import uuid
from contextlib import asynccontextmanager
from pathlib import Path
from typing import AsyncGenerator

import asyncpg

from src.wearables.base import ConflictError, SessionDraft, WearableCredential

logger = logging.getLogger("swellsync.db")

SCHEMA_PATH = Path(__file__).parent / "schema.sql"

# Module-level connection pool, initialized once at app startup
_pool: asyncpg.Pool | None = None


async def init_pool(dsn: str, min_size: int = 2, max_size: int = 10) -> asyncpg.Pool:
    """Create the asyncpg connection pool. Call once at app startup."""
    global _pool
    _pool = await asyncpg.create_pool(
        dsn,
        min_size=min_size,
        max_size=max_size,
        command_timeout=30,
    )
    logger.info("Database pool initialized (min=%d, max=%d)", min_size, max_size)
    return _pool


async def close_pool() -> None:
    """Drain the pool. Call at app shutdown."""
    global _pool
    if _pool:
        await _pool.close()
        _pool = None
        logger.info("Database pool closed")


def get_pool() -> asyncpg.Pool:
    if _pool is None:
        raise RuntimeError("Database pool not initialized — call init_pool() first")
    return _pool


@asynccontextmanager
async def get_connection() -> AsyncGenerator[asyncpg.Connection, None]:
    """Acquire a pooled connection inside a transaction.

    Usage::

        async with get_connection() as conn:
            row = await conn.fetchrow("SELECT ...", value)
    """
    pool = get_pool()
    async with pool.acquire() as conn:
        async with conn.transaction():
            yield conn


async def apply_schema() -> None:
    """Create tables if they do not exist."""
    async with get_connection() as conn:
        await conn.execute(SCHEMA_PATH.read_text(encoding="utf-8"))
    logger.info("Database schema applied")


# ---------------------------------------------------------------------------
# Persistence adapter
# ---------------------------------------------------------------------------


def _credential_from_row(row: asyncpg.Record) -> WearableCredential:
    return WearableCredential(
        user_id=row["user_id"],
        access_token=row["access_token"],
        refresh_token=row["refresh_token"],
        expires_at=row["expires_at"],
        external_account_id=row["garmin_user_id"],
    )


def _draft_from_row(row: asyncpg.Record) -> SessionDraft:
    return SessionDraft(
        id=str(row["id"]),
        user_id=row["user_id"],
        spot_id=row["spot_id"],
        spot_name=row["spot_name"],
        date=row["date"],
        start_time=row["start_time"],
        duration_minutes=row["duration"],
        external_activity_id=row["garmin_activity_id"],
        notes=row["notes"],
        wave_count=row["wave_count"],
        board=row["board"],
        rating=row["rating"],
    )


class PostgresPersistence:
    """asyncpg-backed Persistence implementation."""

    async def create_session_draft(self, draft: SessionDraft) -> str:
        """Insert a session draft and return its id.

        Raises:
            ConflictError: If ``garmin_activity_id`` already exists.
        """
        session_id = uuid.uuid4()
        try:
            async with get_connection() as conn:
                await conn.execute(
                    """
                    INSERT INTO sessions (
                        id, user_id, spot_id, spot_name, date, start_time, duration,
                        wave_count, board, notes, rating, garmin_activity_id
                    )
                    VALUES ($1, $2, $3, $4, $5, $6, $7, $8, $9, $10, $11, $12)
                    """,
                    session_id,
                    draft.user_id,
                    draft.spot_id,
                    draft.spot_name,
                    draft.date,
                    draft.start_time,
                    draft.duration_minutes,
                    draft.wave_count,
                    draft.board,
                    draft.notes,
                    draft.rating,
                    draft.external_activity_id,
                )
        except asyncpg.UniqueViolationError as exc:
            raise ConflictError(draft.external_activity_id) from exc
        return str(session_id)

    async def find_session_by_external_activity_id(
        self, external_activity_id: str
    ) -> SessionDraft | None:
        async with get_connection() as conn:
            row = await conn.fetchrow(
                "SELECT * FROM sessions WHERE garmin_activity_id = $1",
                external_activity_id,
            )
        return _draft_from_row(row) if row else None

    async def get_credential(self, user_id: str) -> WearableCredential | None:
        async with get_connection() as conn:
            row = await conn.fetchrow(
                "SELECT * FROM garmin_credentials WHERE user_id = $1", user_id
            )
        return _credential_from_row(row) if row else None

    async def upsert_credential(self, credential: WearableCredential) -> None:
        async with get_connection() as conn:
            await conn.execute(
                """
                INSERT INTO garmin_credentials (
                    user_id, access_token, refresh_token, expires_at, garmin_user_id, updated_at
                )
                VALUES ($1, $2, $3, $4, $5, now())
                ON CONFLICT (user_id) DO UPDATE SET
                    access_token = EXCLUDED.access_token,
                    refresh_token = EXCLUDED.refresh_token,
                    expires_at = EXCLUDED.expires_at,
                    garmin_user_id = COALESCE(EXCLUDED.garmin_user_id,
                                              garmin_credentials.garmin_user_id),
                    updated_at = now()
                """,
                credential.user_id,
                credential.access_token,
                credential.refresh_token,
                credential.expires_at,
                credential.external_account_id,
            )

    async def delete_credential(self, user_id: str) -> None:
        async with get_connection() as conn:
            await conn.execute("DELETE FROM garmin_credentials WHERE user_id = $1", user_id)

    async def find_user_by_external_account_id(self, external_account_id: str) -> str | None:
        async with get_connection() as conn:
            return await conn.fetchval(
                "SELECT user_id FROM garmin_credentials WHERE garmin_user_id = $1",
                external_account_id,
            )

    async def ping(self) -> bool:
        async with get_connection() as conn:
            await conn.fetchval("SELECT 1")
        return True
