"""
Job Manager for scraping jobs
Handles job creation, status transitions and cleanup; the scrape itself is run by an external caller
"""
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from loguru import logger

from database import JobNotFoundError, LeadStore
from importer import import_scraping_results
from models import ImportReport, ScrapingJob, ScrapingJobStatus

# Allowed status transitions: pending -> running -> completed | failed
JOB_TRANSITIONS = {
    ScrapingJobStatus.PENDING: {ScrapingJobStatus.RUNNING, ScrapingJobStatus.FAILED},
    ScrapingJobStatus.RUNNING: {ScrapingJobStatus.COMPLETED, ScrapingJobStatus.FAILED},
    ScrapingJobStatus.COMPLETED: set(),
    ScrapingJobStatus.FAILED: set(),
}


class InvalidJobTransitionError(ValueError):
    """Raised when a status change is not allowed from the job's current status"""
    pass


class JobManager:
    """Manages scraping job creation and lifecycle"""

    def __init__(self, db: LeadStore):
        self.db = db

    async def create_job(self, name: str, query: str, max_results: int = 20) -> ScrapingJob:
        """
        Create a new Google Maps scraping job in pending state

        Args:
            name: Display name of the job
            query: Search query passed to the scraper
            max_results: Maximum number of listings to collect

        Returns:
            Created job object

        Raises:
            ValueError: If parameters are invalid
        """
        if not name or not query:
            raise ValueError("Job must specify a name and a query")
        if max_results < 1:
            raise ValueError("max_results must be at least 1")

        job = ScrapingJob(
            name=name,
            source_type="google_maps",
            config={"query": query, "maxResults": max_results},
            status=ScrapingJobStatus.PENDING,
        )
        saved = await self.db.insert_scraping_job(job)
        logger.info(f"Created scraping job {saved.id} for query '{query}'")
        return saved

    async def get_job(self, job_id: str) -> ScrapingJob:
        """
        Get job by ID

        Raises:
            JobNotFoundError: If the job does not exist
        """
        job = await self.db.get_scraping_job(job_id)
        if job is None:
            raise JobNotFoundError(f"Scraping job {job_id} not found")
        logger.debug(f"Retrieved job {job_id} with status {job.status.value}")
        return job

    async def list_jobs(self) -> List[ScrapingJob]:
        return await self.db.list_scraping_jobs()

    async def update_job_status(
        self,
        job_id: str,
        status: ScrapingJobStatus,
        results: Optional[List[Dict[str, Any]]] = None,
        total_results: Optional[int] = None,
        error: Optional[str] = None,
    ) -> ScrapingJob:
        """
        Move a job to a new status

        Args:
            job_id: Job ID to update
            status: New status
            results: Collected listings, stored as-is
            total_results: Number of listings collected
            error: Error message if failed

        Returns:
            The updated job

        Raises:
            JobNotFoundError: If the job does not exist
            InvalidJobTransitionError: If the transition is not allowed
        """
        status = ScrapingJobStatus(status)
        job = await self.get_job(job_id)

        if status not in JOB_TRANSITIONS[job.status]:
            raise InvalidJobTransitionError(
                f"Cannot move job {job_id} from {job.status.value} to {status.value}"
            )

        now = datetime.now(timezone.utc)
        update_data: Dict[str, Any] = {"status": status}

        # Handle timestamps
        if status == ScrapingJobStatus.RUNNING:
            update_data["started_at"] = now
        elif status in (ScrapingJobStatus.COMPLETED, ScrapingJobStatus.FAILED):
            update_data["completed_at"] = now

        if results is not None:
            update_data["results"] = results
        if total_results is not None:
            update_data["total_results"] = total_results
        if error:
            update_data["error"] = error

        rows = await self.db.update_scraping_job(job_id, update_data)
        logger.info(f"Updated scraping job {job_id} status to {status.value}")

        if rows:
            return ScrapingJob(**rows[0])
        return job.copy(update=update_data)

    async def delete_job(self, job_id: str) -> None:
        deleted = await self.db.delete_scraping_job(job_id)
        if not deleted:
            raise JobNotFoundError(f"Scraping job {job_id} not found")
        logger.info(f"Deleted scraping job {job_id}")

    async def import_results(self, job_id: str, selected_indices: List[int]) -> ImportReport:
        """Promote selected results of a job to leads"""
        return await import_scraping_results(self.db, job_id, selected_indices)
