from datetime import datetime, timezone
from types import SimpleNamespace
from unittest.mock import MagicMock

import pytest

from config import Settings
from database import DatabaseClient, DatabaseError, to_row
from models import LeadStatus


def client_returning(data=None, count=None, error=None):
    """DatabaseClient whose Supabase query chain ends in a canned execute()"""
    supabase = MagicMock()
    query = supabase.table.return_value
    # every builder method returns the same query object
    for method in ("select", "eq", "limit", "order", "range", "or_", "insert", "update", "delete", "in_", "gte"):
        getattr(query, method).return_value = query
    if error:
        query.execute.side_effect = error
    else:
        query.execute.return_value = SimpleNamespace(data=data, count=count)

    db = DatabaseClient(Settings(SUPABASE_URL="http://localhost", SUPABASE_SERVICE_ROLE_KEY="key"))
    db._client = supabase
    return db, supabase, query


def test_to_row_serializes_enums_and_datetimes():
    moment = datetime(2024, 5, 1, 12, tzinfo=timezone.utc)
    assert to_row({"status": LeadStatus.NEW, "enriched_at": moment, "city": "Paris"}) == {
        "status": "new",
        "enriched_at": "2024-05-01T12:00:00+00:00",
        "city": "Paris",
    }


@pytest.mark.asyncio
async def test_get_lead_parses_row():
    db, supabase, query = client_returning(data=[{"id": "l1", "company_name": "Acme", "tags": None}])

    lead = await db.get_lead("l1")

    supabase.table.assert_called_with("leads")
    query.eq.assert_called_with("id", "l1")
    assert lead.company_name == "Acme"
    assert lead.tags == []


@pytest.mark.asyncio
async def test_get_missing_lead_returns_none():
    db, _, _ = client_returning(data=[])
    assert await db.get_lead("missing") is None


@pytest.mark.asyncio
async def test_list_leads_applies_search_filters_and_range():
    db, _, query = client_returning(data=[{"id": "l1"}], count=41)

    leads, total = await db.list_leads(search="acme", filters={"status": "new"}, offset=25, limit=25)

    assert total == 41
    assert [lead.id for lead in leads] == ["l1"]
    query.range.assert_called_with(25, 49)
    query.eq.assert_called_with("status", "new")
    assert "company_name.ilike.%acme%" in query.or_.call_args[0][0]


@pytest.mark.asyncio
async def test_update_lead_sends_serialized_values():
    db, _, query = client_returning(data=[{"id": "l1", "status": "contacted"}])

    rows = await db.update_lead("l1", {"status": LeadStatus.CONTACTED})

    query.update.assert_called_with({"status": "contacted"})
    assert rows == [{"id": "l1", "status": "contacted"}]


@pytest.mark.asyncio
async def test_delete_leads_counts_deleted_rows():
    db, _, query = client_returning(data=[{"id": "a"}, {"id": "b"}])

    assert await db.delete_leads(["a", "b", "c"]) == 2
    query.in_.assert_called_with("id", ["a", "b", "c"])


@pytest.mark.asyncio
async def test_query_failures_become_database_errors():
    db, _, _ = client_returning(error=RuntimeError("permission denied for table leads"))

    with pytest.raises(DatabaseError, match="permission denied"):
        await db.insert_lead({"company_name": "Acme"})


@pytest.mark.asyncio
async def test_close_drops_client():
    db, _, _ = client_returning(data=[])
    await db.close()
    assert db._client is None
