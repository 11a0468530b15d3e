"""
Shared fixtures: an in-memory lead store and stub enrichment providers
"""
import itertools
import uuid
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Optional, Tuple

import pytest

from database import DatabaseError, to_row
from models import (
    CompanyProfile,
    EmailCandidate,
    EmailVerification,
    EmailVerificationStatus,
    EnrichmentLogEntry,
    Lead,
    ScrapingJob,
)

SEARCH_COLUMNS = ("first_name", "last_name", "email", "company_name")


class InMemoryStore:
    """Dict-backed LeadStore used in place of Supabase"""

    def __init__(self) -> None:
        self.leads: Dict[str, Dict[str, Any]] = {}
        self.logs: List[EnrichmentLogEntry] = []
        self.jobs: Dict[str, Dict[str, Any]] = {}
        self.imports: Dict[str, Dict[str, Any]] = {}
        self.fail_lead_updates = False
        self.fail_log_writes = False
        self.fail_job_updates = False
        self._base_time = datetime.now(timezone.utc) - timedelta(minutes=1)
        self._ticks = itertools.count()

    def _now(self) -> datetime:
        # Strictly increasing so newest-first ordering is deterministic
        return self._base_time + timedelta(milliseconds=next(self._ticks))

    def add_lead(self, **fields: Any) -> str:
        """Seed a lead synchronously and return its ID"""
        lead_id = str(uuid.uuid4())
        self.leads[lead_id] = {**to_row(fields), "id": lead_id, "created_at": self._now()}
        return lead_id

    def add_job(self, **fields: Any) -> str:
        job_id = str(uuid.uuid4())
        job = ScrapingJob(**{"name": "job", **fields})
        self.jobs[job_id] = {
            **to_row(job.dict(exclude={"id", "created_at"})),
            "id": job_id,
            "created_at": self._now(),
        }
        return job_id

    def _newest_first(self, rows):
        return sorted(rows, key=lambda row: row["created_at"], reverse=True)

    # leads

    async def get_lead(self, lead_id: str) -> Optional[Lead]:
        row = self.leads.get(lead_id)
        return Lead(**row) if row else None

    async def list_leads(
        self,
        search: Optional[str] = None,
        filters: Optional[Dict[str, str]] = None,
        offset: int = 0,
        limit: int = 25,
    ) -> Tuple[List[Lead], int]:
        rows = list(self.leads.values())
        if search:
            needle = search.lower()
            rows = [
                row for row in rows
                if any(needle in (row.get(column) or "").lower() for column in SEARCH_COLUMNS)
            ]
        for column, value in (filters or {}).items():
            rows = [row for row in rows if row.get(column) == value]

        rows = self._newest_first(rows)
        return [Lead(**row) for row in rows[offset:offset + limit]], len(rows)

    async def find_lead_id(self, field: str, value: str) -> Optional[str]:
        for lead_id, row in self.leads.items():
            if row.get(field) == value:
                return lead_id
        return None

    async def insert_lead(self, data: Dict[str, Any]) -> Lead:
        lead_id = self.add_lead(**data)
        return Lead(**self.leads[lead_id])

    async def update_lead(self, lead_id: str, data: Dict[str, Any]) -> List[Dict[str, Any]]:
        if self.fail_lead_updates:
            raise DatabaseError("connection reset")
        if lead_id not in self.leads:
            return []
        self.leads[lead_id].update(to_row(data))
        return [dict(self.leads[lead_id])]

    async def delete_leads(self, lead_ids: List[str]) -> int:
        return sum(1 for lead_id in lead_ids if self.leads.pop(lead_id, None) is not None)

    async def count_leads(self, status: Optional[str] = None, created_since: Optional[datetime] = None) -> int:
        rows = self.leads.values()
        if status:
            rows = [row for row in rows if row.get("status") == status]
        if created_since:
            rows = [row for row in rows if row["created_at"] >= created_since]
        return len(list(rows))

    async def fetch_lead_columns(self, columns: str, limit: Optional[int] = None) -> List[Dict[str, Any]]:
        names = [name.strip() for name in columns.split(",")]
        rows = self._newest_first(self.leads.values())
        if limit:
            rows = rows[:limit]
        return [{name: row.get(name) for name in names} for row in rows]

    # enrichment logs

    async def insert_enrichment_log(self, entry: EnrichmentLogEntry) -> None:
        if self.fail_log_writes:
            raise DatabaseError("enrichment_logs unavailable")
        self.logs.append(entry.copy(update={"id": str(uuid.uuid4()), "created_at": self._now()}))

    async def fetch_enrichment_logs(self, lead_id: Optional[str] = None, limit: int = 100) -> List[EnrichmentLogEntry]:
        entries = [entry for entry in reversed(self.logs) if lead_id is None or entry.lead_id == lead_id]
        return entries[:limit]

    # scraping jobs

    async def insert_scraping_job(self, job: ScrapingJob) -> ScrapingJob:
        job_id = str(uuid.uuid4())
        self.jobs[job_id] = {
            **to_row(job.dict(exclude={"id", "created_at"})),
            "id": job_id,
            "created_at": self._now(),
        }
        return ScrapingJob(**self.jobs[job_id])

    async def get_scraping_job(self, job_id: str) -> Optional[ScrapingJob]:
        row = self.jobs.get(job_id)
        return ScrapingJob(**row) if row else None

    async def list_scraping_jobs(self) -> List[ScrapingJob]:
        return [ScrapingJob(**row) for row in self._newest_first(self.jobs.values())]

    async def update_scraping_job(self, job_id: str, data: Dict[str, Any]) -> List[Dict[str, Any]]:
        if self.fail_job_updates:
            raise DatabaseError("scraping_jobs unavailable")
        if job_id not in self.jobs:
            return []
        self.jobs[job_id].update(to_row(data))
        return [dict(self.jobs[job_id])]

    async def delete_scraping_job(self, job_id: str) -> int:
        return 1 if self.jobs.pop(job_id, None) is not None else 0

    # imports

    async def insert_import_record(self, filename: str, total_rows: int) -> Optional[str]:
        import_id = str(uuid.uuid4())
        self.imports[import_id] = {"filename": filename, "status": "processing", "total_rows": total_rows}
        return import_id

    async def update_import_record(self, import_id: str, data: Dict[str, Any]) -> None:
        self.imports[import_id].update(data)

    async def close(self):
        pass


class StubPappers:
    def __init__(self, profile: Optional[CompanyProfile] = None):
        self.profile = profile
        self.siren_calls: List[str] = []
        self.name_calls: List[str] = []

    async def search_company_by_siren(self, siren: str) -> Optional[CompanyProfile]:
        self.siren_calls.append(siren)
        return self.profile

    async def search_company_by_name(self, name: str) -> Optional[CompanyProfile]:
        self.name_calls.append(name)
        return self.profile

    async def close(self):
        pass


class StubHunter:
    def __init__(self, email: Optional[str] = None):
        self.email = email
        self.calls: List[Tuple[str, str, str]] = []

    async def find_email(self, domain: str, first_name: str, last_name: str) -> Optional[EmailCandidate]:
        self.calls.append((domain, first_name, last_name))
        if not self.email:
            return None
        return EmailCandidate(email=self.email, domain=domain, raw={"email": self.email})

    async def close(self):
        pass


class StubNeverBounce:
    def __init__(self, result: EmailVerificationStatus = EmailVerificationStatus.VALID, reason: str = "checked"):
        self.result = result
        self.reason = reason
        self.calls: List[str] = []

    async def verify_email(self, email: str) -> EmailVerification:
        self.calls.append(email)
        return EmailVerification(email=email, result=self.result, reason=self.reason)

    async def close(self):
        pass


@pytest.fixture
def store():
    return InMemoryStore()


@pytest.fixture
def acme_profile():
    return CompanyProfile(
        siren="552100554",
        siret="55210055400013",
        denomination="ACME CONSEIL",
        sector="Conseil en systèmes informatiques",
        company_size="10 à 19 salariés",
        address="12 rue de la Paix",
        postal_code="75002",
        city="Paris",
        website="https://www.acme-conseil.fr",
        raw={"siren": "552100554", "denomination": "ACME CONSEIL"},
    )
