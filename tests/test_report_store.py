from __future__ import annotations

from unittest.mock import MagicMock, patch

import httpx
import pytest
from postgrest.exceptions import APIError

from core.inspections.normalizer import normalize
from core.storage.store import InMemoryReportStore, SupabaseReportStore
from core.utils.errors import PersistenceError


def _store_with_client(client: MagicMock) -> SupabaseReportStore:
    with patch("core.storage.store.create_client", return_value=client):
        return SupabaseReportStore("https://test.supabase.co", "test-key", table="reports")


@pytest.mark.anyio
async def test_supabase_store_inserts_row_and_returns_stored_record(complete_record) -> None:
    client = MagicMock()
    execute = client.table.return_value.insert.return_value.execute
    execute.return_value = MagicMock(data=[{"id": 42, "inspection_type": "API510"}])
    store = _store_with_client(client)
    payload = normalize(complete_record("API510"), "REPORT TEXT")

    stored = await store.insert(payload)

    assert stored["id"] == 42
    client.table.assert_called_with("reports")
    inserted_row = client.table.return_value.insert.call_args.args[0]
    assert inserted_row == payload.as_row()


@pytest.mark.anyio
async def test_supabase_api_error_becomes_persistence_error(complete_record) -> None:
    client = MagicMock()
    client.table.return_value.insert.return_value.execute.side_effect = APIError(
        {
            "message": "duplicate key value violates unique constraint",
            "details": "Key (equipment_id)=(V-101) already exists.",
            "hint": None,
            "code": "23505",
        }
    )
    store = _store_with_client(client)

    with pytest.raises(PersistenceError) as excinfo:
        await store.insert(normalize(complete_record("API510"), "REPORT TEXT"))

    error = excinfo.value
    assert error.kind == "persistence"
    assert error.code == "23505"
    assert "duplicate key" in error.message
    assert "equipment_id" in error.message


@pytest.mark.anyio
async def test_supabase_transport_error_becomes_persistence_error(complete_record) -> None:
    client = MagicMock()
    client.table.return_value.insert.return_value.execute.side_effect = httpx.ConnectError(
        "connection refused"
    )
    store = _store_with_client(client)

    with pytest.raises(PersistenceError, match="store request failed"):
        await store.insert(normalize(complete_record("API570"), "REPORT TEXT"))


def test_supabase_store_requires_credentials() -> None:
    with pytest.raises(ValueError, match="store_url and store_key"):
        SupabaseReportStore("", "")


@pytest.mark.anyio
async def test_in_memory_store_enforces_unique_columns(complete_record) -> None:
    store = InMemoryReportStore(unique_columns=("equipment_id",))
    payload = normalize(complete_record("API510"), "REPORT TEXT")

    stored = await store.insert(payload)
    assert stored["id"] == 1

    with pytest.raises(PersistenceError) as excinfo:
        await store.insert(payload)
    assert "equipment_id" in excinfo.value.message
    assert len(store.rows) == 1


@pytest.mark.anyio
async def test_store_hint_is_shown_when_details_are_missing(complete_record) -> None:
    client = MagicMock()
    client.table.return_value.insert.return_value.execute.side_effect = APIError(
        {
            "message": "permission denied for table reports",
            "details": None,
            "hint": "Grant INSERT on reports to the service role.",
            "code": "42501",
        }
    )
    store = _store_with_client(client)

    with pytest.raises(PersistenceError) as excinfo:
        await store.insert(normalize(complete_record("API653"), "REPORT TEXT"))

    assert excinfo.value.message == (
        "permission denied for table reports (Grant INSERT on reports to the service role.)"
    )
    assert excinfo.value.hint == "Grant INSERT on reports to the service role."
