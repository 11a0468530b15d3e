from datetime import datetime, timezone

import pytest

from models import Lead
from scoring import calculate_score, score_category


def complete_lead():
    return {
        "email": "jean.dupont@acme.fr",
        "email_verified": "valid",
        "phone": "+33 1 23 45 67 89",
        "first_name": "Jean",
        "last_name": "Dupont",
        "company_name": "Acme",
        "siren": "552100554",
        "website": "https://acme.fr",
        "linkedin_url": "https://linkedin.com/in/jdupont",
        "enriched_at": "2024-05-01T10:00:00+00:00",
        "sector": "Conseil",
        "city": "Paris",
    }


def test_complete_lead_earns_every_criterion_and_is_hot():
    breakdown = calculate_score(complete_lead())

    # every weight awarded once: 20 + 4 * 10 + 10 + 4 * 5
    assert breakdown.total == 90
    assert len(breakdown.details) == 10
    assert breakdown.category == "hot"


def test_unverified_email_only_scores_10():
    breakdown = calculate_score({"email": "a@b.fr"})

    assert breakdown.total == 10
    assert breakdown.category == "cold"
    assert [d.criterion for d in breakdown.details] == ["Email present"]


def test_email_phone_name_is_cold_then_warm_with_company_and_registry():
    lead = {"email": "a@b.fr", "phone": "0102030405", "first_name": "Ana", "last_name": "Lopez"}
    assert calculate_score(lead).total == 30
    assert calculate_score(lead).category == "cold"

    lead.update({"company_name": "Lopez SARL", "siret": "55210055400013"})
    breakdown = calculate_score(lead)
    assert breakdown.total == 50
    assert breakdown.category == "warm"


@pytest.mark.parametrize("verified", [None, "invalid", "unknown", "disposable"])
def test_only_a_valid_verification_earns_the_verified_points(verified):
    assert calculate_score({"email": "a@b.fr", "email_verified": verified}).total == 10


def test_verification_without_email_earns_nothing():
    assert calculate_score({"email_verified": "valid"}).total == 0


def test_first_name_alone_is_not_a_full_name():
    assert calculate_score({"first_name": "Ana"}).total == 0


def test_score_is_pure_and_order_independent():
    lead = complete_lead()
    reversed_lead = dict(reversed(list(lead.items())))

    assert calculate_score(lead) == calculate_score(lead)
    assert calculate_score(reversed_lead).total == calculate_score(lead).total


def test_accepts_lead_models():
    lead = Lead(
        email="jean@acme.fr",
        email_verified="valid",
        company_name="Acme",
        enriched_at=datetime(2024, 5, 1, tzinfo=timezone.utc),
    )
    assert calculate_score(lead).total == 40


def test_empty_lead_scores_zero():
    breakdown = calculate_score({})
    assert breakdown.total == 0
    assert breakdown.details == []
    assert breakdown.category == "cold"


@pytest.mark.parametrize("total,category", [(100, "hot"), (71, "hot"), (70, "warm"), (40, "warm"), (39, "cold"), (0, "cold")])
def test_category_thresholds(total, category):
    assert score_category(total) == category
