"""
Lead scoring: a fixed-weight completeness heuristic
"""
from typing import Any, List, Mapping, Union

from pydantic import BaseModel

from models import EmailVerificationStatus, ScoreBreakdown, ScoreDetail

MAX_SCORE = 100
HOT_THRESHOLD = 70
WARM_THRESHOLD = 40


def score_category(total: int) -> str:
    """Map a total onto hot / warm / cold"""
    if total > HOT_THRESHOLD:
        return "hot"
    if total >= WARM_THRESHOLD:
        return "warm"
    return "cold"


def calculate_score(lead: Union[Mapping[str, Any], BaseModel]) -> ScoreBreakdown:
    """
    Compute the score breakdown of a (possibly partial) lead

    Args:
        lead: Lead attributes as a mapping or a pydantic model; missing keys count as absent

    Returns:
        ScoreBreakdown with the matched criteria, the capped total and its category
    """
    if isinstance(lead, BaseModel):
        lead = lead.dict()

    details: List[ScoreDetail] = []

    def award(criterion: str, points: int) -> None:
        details.append(ScoreDetail(criterion=criterion, points=points))

    if lead.get("email"):
        verified = lead.get("email_verified")
        if verified in (EmailVerificationStatus.VALID, EmailVerificationStatus.VALID.value):
            award("Verified email", 20)
        else:
            award("Email present", 10)

    if lead.get("phone"):
        award("Phone", 10)
    if lead.get("first_name") and lead.get("last_name"):
        award("Full name", 10)
    if lead.get("company_name"):
        award("Company", 10)
    if lead.get("siren") or lead.get("siret"):
        award("SIREN/SIRET", 10)
    if lead.get("website"):
        award("Website", 5)
    if lead.get("linkedin_url"):
        award("LinkedIn", 5)
    if lead.get("enriched_at"):
        award("Enriched", 10)
    if lead.get("sector"):
        award("Sector", 5)
    if lead.get("city"):
        award("City", 5)

    total = min(MAX_SCORE, sum(detail.points for detail in details))
    return ScoreBreakdown(total=total, details=details, category=score_category(total))
