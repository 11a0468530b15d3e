import pytest

from database import LeadNotFoundError
from lead_manager import LeadManager, LeadValidationError


@pytest.mark.asyncio
async def test_create_lead_applies_defaults_and_computes_score(store):
    manager = LeadManager(store)

    lead = await manager.create_lead({
        "first_name": "Jean",
        "last_name": "Dupont",
        "email": "jean@acme.fr",
        "company_name": "Acme",
        "score": 99,
    })

    assert lead.id in store.leads
    assert lead.score == 30
    assert lead.type.value == "B2B"
    assert lead.source.value == "manual"
    assert lead.status.value == "new"
    assert lead.country == "France"


@pytest.mark.asyncio
async def test_create_lead_reports_field_errors(store):
    manager = LeadManager(store)

    with pytest.raises(LeadValidationError) as exc_info:
        await manager.create_lead({"email": "not-an-email", "website": "acme.fr", "status": "archived"})

    assert set(exc_info.value.errors) == {"email", "website", "status"}
    assert store.leads == {}


@pytest.mark.asyncio
async def test_empty_email_is_accepted(store):
    lead = await LeadManager(store).create_lead({"company_name": "Acme", "email": ""})
    assert lead.score == 10


@pytest.mark.asyncio
async def test_update_lead_writes_only_submitted_fields_without_rescoring(store):
    lead_id = store.add_lead(company_name="Acme", score=10, notes="keep me")
    manager = LeadManager(store)

    lead = await manager.update_lead(lead_id, {"phone": "0102030405", "status": "contacted"})

    assert lead.phone == "0102030405"
    assert lead.status.value == "contacted"
    assert lead.notes == "keep me"
    assert lead.score == 10


@pytest.mark.asyncio
async def test_update_rejects_score(store):
    lead_id = store.add_lead(company_name="Acme", score=10)

    with pytest.raises(LeadValidationError) as exc_info:
        await LeadManager(store).update_lead(lead_id, {"score": 100})

    assert "score" in exc_info.value.errors
    assert store.leads[lead_id]["score"] == 10


@pytest.mark.asyncio
async def test_update_missing_lead(store):
    with pytest.raises(LeadNotFoundError):
        await LeadManager(store).update_lead("missing", {"notes": "x"})


@pytest.mark.asyncio
async def test_empty_update_returns_current_lead(store):
    lead_id = store.add_lead(company_name="Acme")
    lead = await LeadManager(store).update_lead(lead_id, {})
    assert lead.company_name == "Acme"


@pytest.mark.asyncio
async def test_list_leads_searches_filters_and_paginates(store):
    for index in range(5):
        store.add_lead(company_name=f"Acme {index}", status="new")
    store.add_lead(company_name="Globex", status="qualified", email="boss@globex.com")
    manager = LeadManager(store)

    page = await manager.list_leads(search="acme", page=2, per_page=2)
    assert page.total == 5
    assert [lead.company_name for lead in page.leads] == ["Acme 2", "Acme 1"]

    qualified = await manager.list_leads(status="qualified")
    assert [lead.email for lead in qualified.leads] == ["boss@globex.com"]

    by_email = await manager.list_leads(search="GLOBEX.COM")
    assert by_email.total == 1


@pytest.mark.asyncio
async def test_get_and_delete_lead(store):
    lead_id = store.add_lead(company_name="Acme")
    manager = LeadManager(store)

    assert (await manager.get_lead(lead_id)).company_name == "Acme"

    await manager.delete_lead(lead_id)
    with pytest.raises(LeadNotFoundError):
        await manager.get_lead(lead_id)
    with pytest.raises(LeadNotFoundError):
        await manager.delete_lead(lead_id)


@pytest.mark.asyncio
async def test_bulk_delete_counts_existing_leads(store):
    ids = [store.add_lead(company_name=name) for name in ("A", "B", "C")]

    deleted = await LeadManager(store).delete_leads(ids[:2] + ["missing"])

    assert deleted == 2
    assert list(store.leads) == [ids[2]]
