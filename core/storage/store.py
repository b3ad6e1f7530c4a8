"""Report store backends for completed inspections."""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Protocol

import httpx
from postgrest.exceptions import APIError
from supabase import Client, create_client

from core.inspections.normalizer import PersistencePayload
from core.utils.errors import PersistenceError

logger = logging.getLogger("inspecta.storage")


class ReportStore(Protocol):
    """Protocol for stores that accept one persistence payload per submission."""

    async def insert(self, payload: PersistencePayload) -> dict[str, Any]:
        """Insert the payload and return the stored row or raise ``PersistenceError``."""


class SupabaseReportStore:
    """Inserts report rows through the Supabase PostgREST client."""

    def __init__(self, url: str, key: str, *, table: str = "reports") -> None:
        if not url or not key:
            raise ValueError("store_url and store_key must be set for the Supabase store")
        self.client: Client = create_client(url, key)
        self.table = table

    async def insert(self, payload: PersistencePayload) -> dict[str, Any]:
        return await asyncio.to_thread(self._insert_sync, payload.as_row())

    def _insert_sync(self, row: dict[str, Any]) -> dict[str, Any]:
        try:
            result = self.client.table(self.table).insert(row).execute()
        except APIError as exc:
            logger.error(
                "store insert rejected: table=%s message=%s details=%s hint=%s code=%s",
                self.table,
                exc.message,
                exc.details,
                exc.hint,
                exc.code,
            )
            raise PersistenceError(
                exc.message or "store rejected the report",
                details=exc.details,
                hint=exc.hint,
                code=exc.code,
            ) from exc
        except httpx.HTTPError as exc:
            logger.error("store unreachable: table=%s error=%s", self.table, exc)
            raise PersistenceError(f"store request failed: {exc}") from exc

        if not result.data:
            raise PersistenceError("store accepted the insert but returned no row")
        return result.data[0]


class InMemoryReportStore:
    """Process-local store for development runs and tests."""

    def __init__(self, *, unique_columns: tuple[str, ...] = ()) -> None:
        self.rows: list[dict[str, Any]] = []
        self.unique_columns = unique_columns

    async def insert(self, payload: PersistencePayload) -> dict[str, Any]:
        row = payload.as_row()
        for column in self.unique_columns:
            if column not in row:
                continue
            if any(existing.get(column) == row[column] for existing in self.rows):
                raise PersistenceError(
                    "duplicate key value violates unique constraint",
                    details=f"Key ({column})=({row[column]}) already exists.",
                    code="23505",
                )
        stored = {"id": len(self.rows) + 1, **row}
        self.rows.append(stored)
        return stored
