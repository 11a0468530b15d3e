"""
Supabase database client and operations
"""
import asyncio
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional, Protocol, Tuple

import httpx
from loguru import logger
from supabase import Client, create_client
from tenacity import retry, stop_after_attempt, wait_exponential, retry_if_exception_type

from config import Settings, get_settings
from models import EnrichmentLogEntry, Lead, ScrapingJob


class DatabaseError(Exception):
    """Raised when Supabase rejects or fails a query"""
    pass


class LeadNotFoundError(LookupError):
    """Raised when a lead id does not exist"""
    pass


class JobNotFoundError(LookupError):
    """Raised when a scraping job id does not exist"""
    pass


def to_row(data: Dict[str, Any]) -> Dict[str, Any]:
    """Convert enums and datetimes into JSON-compatible column values"""
    row = {}
    for key, value in data.items():
        if isinstance(value, Enum):
            value = value.value
        elif isinstance(value, datetime):
            value = value.isoformat()
        row[key] = value
    return row


class LeadStore(Protocol):
    """Storage operations the lead pipelines depend on"""

    async def get_lead(self, lead_id: str) -> Optional[Lead]: ...

    async def list_leads(
        self,
        search: Optional[str] = None,
        filters: Optional[Dict[str, str]] = None,
        offset: int = 0,
        limit: int = 25,
    ) -> Tuple[List[Lead], int]: ...

    async def find_lead_id(self, field: str, value: str) -> Optional[str]: ...

    async def insert_lead(self, data: Dict[str, Any]) -> Lead: ...

    async def update_lead(self, lead_id: str, data: Dict[str, Any]) -> List[Dict[str, Any]]: ...

    async def delete_leads(self, lead_ids: List[str]) -> int: ...

    async def count_leads(self, status: Optional[str] = None, created_since: Optional[datetime] = None) -> int: ...

    async def fetch_lead_columns(self, columns: str, limit: Optional[int] = None) -> List[Dict[str, Any]]: ...

    async def insert_enrichment_log(self, entry: EnrichmentLogEntry) -> None: ...

    async def fetch_enrichment_logs(self, lead_id: Optional[str] = None, limit: int = 100) -> List[EnrichmentLogEntry]: ...

    async def insert_scraping_job(self, job: ScrapingJob) -> ScrapingJob: ...

    async def get_scraping_job(self, job_id: str) -> Optional[ScrapingJob]: ...

    async def list_scraping_jobs(self) -> List[ScrapingJob]: ...

    async def update_scraping_job(self, job_id: str, data: Dict[str, Any]) -> List[Dict[str, Any]]: ...

    async def delete_scraping_job(self, job_id: str) -> int: ...

    async def insert_import_record(self, filename: str, total_rows: int) -> Optional[str]: ...

    async def update_import_record(self, import_id: str, data: Dict[str, Any]) -> None: ...


class DatabaseClient:
    """Supabase database client; one instance is built per application and injected"""

    def __init__(self, settings: Optional[Settings] = None):
        self.settings = settings or get_settings()
        self._client: Optional[Client] = None
        self._connection_lock = asyncio.Lock()

    async def get_client(self) -> Client:
        """Get or create Supabase client"""
        if self._client is None:
            async with self._connection_lock:
                if self._client is None:
                    try:
                        self._client = create_client(
                            self.settings.supabase_url,
                            self.settings.supabase_service_role_key,
                        )
                        logger.info("Supabase client initialized successfully")
                    except Exception as e:
                        logger.error(f"Failed to initialize Supabase client: {e}")
                        raise DatabaseError(f"Failed to initialize Supabase client: {e}") from e
        return self._client

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=1, max=10),
        retry=retry_if_exception_type(httpx.TransportError),
        reraise=True
    )
    async def _read(self, query):
        """Execute an idempotent query, retrying transport failures"""
        return await asyncio.to_thread(query.execute)

    async def _write(self, query):
        """Execute a write exactly once"""
        return await asyncio.to_thread(query.execute)

    # ------------------------------------------------------------------ leads

    async def get_lead(self, lead_id: str) -> Optional[Lead]:
        """Fetch a single lead by ID"""
        client = await self.get_client()
        try:
            response = await self._read(
                client.table("leads").select("*").eq("id", lead_id).limit(1)
            )
        except Exception as e:
            logger.error(f"Failed to fetch lead {lead_id}: {e}")
            raise DatabaseError(str(e)) from e

        if not response.data:
            return None
        return Lead(**response.data[0])

    async def list_leads(
        self,
        search: Optional[str] = None,
        filters: Optional[Dict[str, str]] = None,
        offset: int = 0,
        limit: int = 25,
    ) -> Tuple[List[Lead], int]:
        """
        Fetch a page of leads, newest first

        Args:
            search: Case-insensitive substring matched against names, email and company
            filters: Exact-match column filters (status, source, type)
            offset: Number of rows to skip
            limit: Page size

        Returns:
            Tuple of (leads, exact total of matching rows)
        """
        client = await self.get_client()
        query = (
            client.table("leads")
            .select("*", count="exact")
            .order("created_at", desc=True)
            .range(offset, offset + limit - 1)
        )

        if search:
            query = query.or_(
                f"first_name.ilike.%{search}%,last_name.ilike.%{search}%,"
                f"email.ilike.%{search}%,company_name.ilike.%{search}%"
            )
        for column, value in (filters or {}).items():
            query = query.eq(column, value)

        try:
            response = await self._read(query)
        except Exception as e:
            logger.error(f"Failed to list leads: {e}")
            raise DatabaseError(str(e)) from e

        leads = [Lead(**lead_data) for lead_data in response.data or []]
        logger.debug(f"Fetched {len(leads)} leads (total {response.count})")
        return leads, response.count or 0

    async def find_lead_id(self, field: str, value: str) -> Optional[str]:
        """Return the ID of a lead whose column exactly equals value"""
        client = await self.get_client()
        try:
            response = await self._read(
                client.table("leads").select("id").eq(field, value).limit(1)
            )
        except Exception as e:
            logger.error(f"Failed to look up lead by {field}: {e}")
            raise DatabaseError(str(e)) from e

        if response.data:
            return response.data[0]["id"]
        return None

    async def insert_lead(self, data: Dict[str, Any]) -> Lead:
        """Insert a lead and return the stored row"""
        client = await self.get_client()
        try:
            response = await self._write(client.table("leads").insert(to_row(data)))
        except Exception as e:
            logger.error(f"Failed to insert lead: {e}")
            raise DatabaseError(str(e)) from e

        return Lead(**response.data[0])

    async def update_lead(self, lead_id: str, data: Dict[str, Any]) -> List[Dict[str, Any]]:
        """Apply a partial update to one lead; returns the updated rows"""
        client = await self.get_client()
        try:
            response = await self._write(
                client.table("leads").update(to_row(data)).eq("id", lead_id)
            )
        except Exception as e:
            logger.error(f"Failed to update lead {lead_id}: {e}")
            raise DatabaseError(str(e)) from e

        logger.debug(f"Updated lead {lead_id} ({len(data)} fields)")
        return response.data or []

    async def delete_leads(self, lead_ids: List[str]) -> int:
        """Delete leads by ID; returns the number of deleted rows"""
        client = await self.get_client()
        try:
            response = await self._write(client.table("leads").delete().in_("id", lead_ids))
        except Exception as e:
            logger.error(f"Failed to delete leads: {e}")
            raise DatabaseError(str(e)) from e

        return len(response.data or [])

    async def count_leads(self, status: Optional[str] = None, created_since: Optional[datetime] = None) -> int:
        """Count leads, optionally by status and creation date"""
        client = await self.get_client()
        query = client.table("leads").select("id", count="exact")
        if status:
            query = query.eq("status", status)
        if created_since:
            query = query.gte("created_at", created_since.isoformat())

        try:
            response = await self._read(query)
        except Exception as e:
            logger.error(f"Failed to count leads: {e}")
            raise DatabaseError(str(e)) from e

        return response.count or 0

    async def fetch_lead_columns(self, columns: str, limit: Optional[int] = None) -> List[Dict[str, Any]]:
        """Fetch selected columns of all leads, newest first"""
        client = await self.get_client()
        query = client.table("leads").select(columns).order("created_at", desc=True)
        if limit:
            query = query.limit(limit)

        try:
            response = await self._read(query)
        except Exception as e:
            logger.error(f"Failed to fetch lead columns '{columns}': {e}")
            raise DatabaseError(str(e)) from e

        return response.data or []

    # -------------------------------------------------------- enrichment logs

    async def insert_enrichment_log(self, entry: EnrichmentLogEntry) -> None:
        """Append an enrichment audit row"""
        client = await self.get_client()
        row = to_row(entry.dict(exclude={"id", "created_at"}))
        try:
            await self._write(client.table("enrichment_logs").insert(row))
        except Exception as e:
            logger.error(f"Failed to write enrichment log for lead {entry.lead_id}: {e}")
            raise DatabaseError(str(e)) from e

    async def fetch_enrichment_logs(self, lead_id: Optional[str] = None, limit: int = 100) -> List[EnrichmentLogEntry]:
        """Fetch the latest enrichment logs, optionally for one lead"""
        client = await self.get_client()
        query = client.table("enrichment_logs").select("*").order("created_at", desc=True).limit(limit)
        if lead_id:
            query = query.eq("lead_id", lead_id)

        try:
            response = await self._read(query)
        except Exception as e:
            logger.error(f"Failed to fetch enrichment logs: {e}")
            raise DatabaseError(str(e)) from e

        return [EnrichmentLogEntry(**row) for row in response.data or []]

    # ---------------------------------------------------------- scraping jobs

    async def insert_scraping_job(self, job: ScrapingJob) -> ScrapingJob:
        """Save a new scraping job"""
        client = await self.get_client()
        job_data = job.dict(exclude_none=True)
        job_data.pop("id", None)
        job_data.pop("created_at", None)

        try:
            response = await self._write(client.table("scraping_jobs").insert(to_row(job_data)))
        except Exception as e:
            logger.error(f"Failed to save scraping job: {e}")
            raise DatabaseError(str(e)) from e

        return ScrapingJob(**response.data[0])

    async def get_scraping_job(self, job_id: str) -> Optional[ScrapingJob]:
        """Get scraping job by ID"""
        client = await self.get_client()
        try:
            response = await self._read(
                client.table("scraping_jobs").select("*").eq("id", job_id).limit(1)
            )
        except Exception as e:
            logger.error(f"Failed to get scraping job {job_id}: {e}")
            raise DatabaseError(str(e)) from e

        if response.data:
            return ScrapingJob(**response.data[0])
        return None

    async def list_scraping_jobs(self) -> List[ScrapingJob]:
        """List scraping jobs, newest first"""
        client = await self.get_client()
        try:
            response = await self._read(
                client.table("scraping_jobs").select("*").order("created_at", desc=True)
            )
        except Exception as e:
            logger.error(f"Failed to list scraping jobs: {e}")
            raise DatabaseError(str(e)) from e

        return [ScrapingJob(**job_data) for job_data in response.data or []]

    async def update_scraping_job(self, job_id: str, data: Dict[str, Any]) -> List[Dict[str, Any]]:
        """Update scraping job columns"""
        client = await self.get_client()
        try:
            response = await self._write(
                client.table("scraping_jobs").update(to_row(data)).eq("id", job_id)
            )
        except Exception as e:
            logger.error(f"Failed to update scraping job {job_id}: {e}")
            raise DatabaseError(str(e)) from e

        return response.data or []

    async def delete_scraping_job(self, job_id: str) -> int:
        client = await self.get_client()
        try:
            response = await self._write(client.table("scraping_jobs").delete().eq("id", job_id))
        except Exception as e:
            logger.error(f"Failed to delete scraping job {job_id}: {e}")
            raise DatabaseError(str(e)) from e

        return len(response.data or [])

    # ---------------------------------------------------------------- imports

    async def insert_import_record(self, filename: str, total_rows: int) -> Optional[str]:
        """Create an imports row in 'processing' state and return its ID"""
        client = await self.get_client()
        try:
            response = await self._write(
                client.table("imports").insert({
                    "filename": filename,
                    "status": "processing",
                    "total_rows": total_rows,
                })
            )
        except Exception as e:
            logger.error(f"Failed to create import record: {e}")
            raise DatabaseError(str(e)) from e

        if response.data:
            return response.data[0]["id"]
        return None

    async def update_import_record(self, import_id: str, data: Dict[str, Any]) -> None:
        client = await self.get_client()
        try:
            await self._write(client.table("imports").update(to_row(data)).eq("id", import_id))
        except Exception as e:
            logger.error(f"Failed to update import record {import_id}: {e}")
            raise DatabaseError(str(e)) from e

    async def close(self):
        """Close database connections"""
        if self._client:
            # Supabase client doesn't have explicit close method, but we can clear the reference
            self._client = None
            logger.info("Database client closed")


def create_db_client(settings: Optional[Settings] = None) -> DatabaseClient:
    """Build a database client; callers own and inject the instance"""
    return DatabaseClient(settings)
