"""
Lead Manager: validated create/update, lookup, listing and deletion of leads
"""
from typing import Any, Dict, List, Optional

from loguru import logger
from pydantic import ValidationError

from config import get_settings
from database import LeadNotFoundError, LeadStore
from models import Lead, LeadCreate, LeadPage, LeadUpdate
from scoring import calculate_score


class LeadValidationError(ValueError):
    """Raised when a submitted lead fails validation; carries field-keyed messages"""

    def __init__(self, errors: Dict[str, List[str]]):
        super().__init__(f"Invalid lead data: {errors}")
        self.errors = errors


def field_errors(exc: ValidationError) -> Dict[str, List[str]]:
    """Flatten pydantic errors into {field: [messages]}"""
    errors: Dict[str, List[str]] = {}
    for error in exc.errors():
        field = str(error["loc"][0]) if error["loc"] else "__root__"
        errors.setdefault(field, []).append(error["msg"])
    return errors


class LeadManager:
    """Lead CRUD on top of an injected store"""

    def __init__(self, db: LeadStore):
        self.db = db
        self.settings = get_settings()

    async def list_leads(
        self,
        search: Optional[str] = None,
        status: Optional[str] = None,
        source: Optional[str] = None,
        lead_type: Optional[str] = None,
        page: int = 1,
        per_page: Optional[int] = None,
    ) -> LeadPage:
        """
        List leads newest first with search, filters and pagination

        Args:
            search: Substring matched case-insensitively on names, email and company
            status: Exact status filter
            source: Exact source filter
            lead_type: Exact type filter (B2B / B2C)
            page: 1-based page number
            per_page: Page size, defaults to the configured page size

        Returns:
            LeadPage with the page's leads and the total match count
        """
        page = max(page, 1)
        per_page = per_page or self.settings.default_page_size
        filters = {
            column: value
            for column, value in {"status": status, "source": source, "type": lead_type}.items()
            if value
        }

        leads, total = await self.db.list_leads(
            search=search,
            filters=filters,
            offset=(page - 1) * per_page,
            limit=per_page,
        )
        return LeadPage(leads=leads, total=total, page=page, per_page=per_page)

    async def get_lead(self, lead_id: str) -> Lead:
        lead = await self.db.get_lead(lead_id)
        if lead is None:
            raise LeadNotFoundError(f"Lead {lead_id} not found")
        return lead

    async def create_lead(self, payload: Dict[str, Any]) -> Lead:
        """
        Validate and insert a lead; the stored score is computed, not taken from input

        Raises:
            LeadValidationError: If the payload fails validation
        """
        payload = {"country": self.settings.default_country, **payload}
        try:
            data = LeadCreate(**payload)
        except ValidationError as e:
            raise LeadValidationError(field_errors(e)) from e

        lead_data = data.dict()
        lead_data["score"] = calculate_score(lead_data).total

        lead = await self.db.insert_lead(lead_data)
        logger.info(f"Created lead {lead.id} ({lead.display_name()}) with score {lead_data['score']}")
        return lead

    async def update_lead(self, lead_id: str, payload: Dict[str, Any]) -> Lead:
        """
        Validate and apply a partial update; only submitted fields are written

        Raises:
            LeadValidationError: If the payload fails validation
            LeadNotFoundError: If the lead does not exist
        """
        try:
            data = LeadUpdate(**payload)
        except ValidationError as e:
            raise LeadValidationError(field_errors(e)) from e

        changes = data.dict(exclude_unset=True)
        if not changes:
            return await self.get_lead(lead_id)

        rows = await self.db.update_lead(lead_id, changes)
        if not rows:
            raise LeadNotFoundError(f"Lead {lead_id} not found")

        logger.info(f"Updated lead {lead_id}: {sorted(changes)}")
        return Lead(**rows[0])

    async def delete_lead(self, lead_id: str) -> None:
        deleted = await self.db.delete_leads([lead_id])
        if not deleted:
            raise LeadNotFoundError(f"Lead {lead_id} not found")
        logger.info(f"Deleted lead {lead_id}")

    async def delete_leads(self, lead_ids: List[str]) -> int:
        """Delete several leads; returns how many existed"""
        if not lead_ids:
            return 0
        deleted = await self.db.delete_leads(lead_ids)
        logger.info(f"Deleted {deleted}/{len(lead_ids)} leads")
        return deleted
