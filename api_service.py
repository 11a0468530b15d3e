"""
HTTP API for the lead management service
Exposes lead CRUD, imports, enrichment, scraping jobs and dashboard stats
"""
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Any, Dict, List, NoReturn, Optional

import uvicorn
from fastapi import Depends, FastAPI, HTTPException, Request
from fastapi.middleware.cors import CORSMiddleware
from loguru import logger
from pydantic import BaseModel, Field

from config import get_settings
from dashboard import get_dashboard_stats
from database import DatabaseError, LeadStore, create_db_client
from enrichment import LeadEnricher, get_enrichment_logs
from importer import import_leads, parse_csv
from job_manager import InvalidJobTransitionError, JobManager
from lead_manager import LeadManager, LeadValidationError
from models import (
    BatchItemResult,
    DashboardStats,
    EnrichmentLogEntry,
    EnrichmentOutcome,
    GoogleMapsResult,
    ImportReport,
    Lead,
    LeadPage,
    LeadSource,
    ScrapingJob,
    ScrapingJobStatus,
)


# Pydantic models for API requests
class BulkDeleteRequest(BaseModel):
    ids: List[str]


class CsvImportRequest(BaseModel):
    """CSV text plus a column -> lead field mapping"""
    csv_content: str
    mapping: Dict[str, str]
    source: LeadSource = LeadSource.IMPORT
    filename: str = "csv-import"
    delimiter: str = ","


class BatchEnrichRequest(BaseModel):
    lead_ids: List[str] = Field(..., min_length=1)


class CreateScrapingJobRequest(BaseModel):
    name: str
    query: str
    max_results: int = Field(20, ge=1)


class JobStatusUpdateRequest(BaseModel):
    """Status change reported by whatever runs the scrape"""
    status: ScrapingJobStatus
    results: Optional[List[GoogleMapsResult]] = None
    total_results: Optional[int] = None
    error: Optional[str] = None


class ImportResultsRequest(BaseModel):
    indices: List[int]


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Build the shared store and enricher once per process"""
    logger.info("Starting Lead Management API Service")
    app.state.db = create_db_client()
    app.state.enricher = LeadEnricher(app.state.db)
    yield
    await app.state.enricher.close()
    await app.state.db.close()
    logger.info("Shutting down Lead Management API Service")


# Create FastAPI app
app = FastAPI(
    title="Lead Management API",
    description="Lead capture, enrichment, import and scraping job management",
    version="1.0.0",
    lifespan=lifespan
)

# Add CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


def get_db(request: Request) -> LeadStore:
    return request.app.state.db


def get_enricher(request: Request) -> LeadEnricher:
    return request.app.state.enricher


def get_lead_manager(db: LeadStore = Depends(get_db)) -> LeadManager:
    return LeadManager(db)


def get_job_manager(db: LeadStore = Depends(get_db)) -> JobManager:
    return JobManager(db)


def raise_http_error(e: Exception, action: str) -> NoReturn:
    """Translate a domain exception into the matching HTTP error"""
    if isinstance(e, HTTPException):
        raise e
    if isinstance(e, LeadValidationError):
        raise HTTPException(status_code=422, detail={"message": "Invalid lead data", "errors": e.errors})
    if isinstance(e, InvalidJobTransitionError):
        raise HTTPException(status_code=409, detail=str(e))
    if isinstance(e, LookupError):
        raise HTTPException(status_code=404, detail=str(e))
    if isinstance(e, ValueError):
        raise HTTPException(status_code=400, detail=str(e))

    logger.error(f"Failed to {action}: {e}")
    if isinstance(e, DatabaseError):
        raise HTTPException(status_code=500, detail=f"Database error while trying to {action}")
    raise HTTPException(status_code=500, detail=f"Failed to {action}: {str(e)}")


@app.get("/ping")
async def ping():
    """Simple ping endpoint to check service availability"""
    return {
        "ping": "pong",
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "service": get_settings().service_name
    }


@app.get("/health")
async def health_check():
    """Basic health check endpoint"""
    return {"status": "healthy", "service": get_settings().service_name}


# ------------------------------------------------------------------ leads

@app.get("/leads", response_model=LeadPage)
async def list_leads(
    search: Optional[str] = None,
    status: Optional[str] = None,
    source: Optional[str] = None,
    type: Optional[str] = None,
    page: int = 1,
    per_page: Optional[int] = None,
    manager: LeadManager = Depends(get_lead_manager),
):
    """List leads newest first, with search, filters and pagination"""
    try:
        return await manager.list_leads(
            search=search, status=status, source=source, lead_type=type, page=page, per_page=per_page
        )
    except Exception as e:
        raise_http_error(e, "list leads")


@app.post("/leads", response_model=Lead, status_code=201)
async def create_lead(payload: Dict[str, Any], manager: LeadManager = Depends(get_lead_manager)):
    try:
        return await manager.create_lead(payload)
    except Exception as e:
        raise_http_error(e, "create lead")


@app.post("/leads/bulk-delete")
async def bulk_delete_leads(request: BulkDeleteRequest, manager: LeadManager = Depends(get_lead_manager)):
    try:
        deleted = await manager.delete_leads(request.ids)
        return {"deleted": deleted}
    except Exception as e:
        raise_http_error(e, "delete leads")


@app.post("/leads/import", response_model=ImportReport)
async def import_csv(request: CsvImportRequest, db: LeadStore = Depends(get_db)):
    """
    Import leads from CSV text

    Rows without an email, company or phone are reported as errors; rows whose
    email already exists are counted as duplicates and left untouched.
    """
    try:
        rows = parse_csv(request.csv_content, delimiter=request.delimiter)
        return await import_leads(
            db, rows, request.mapping, source=request.source.value, filename=request.filename
        )
    except Exception as e:
        raise_http_error(e, "import leads")


@app.get("/leads/{lead_id}", response_model=Lead)
async def get_lead(lead_id: str, manager: LeadManager = Depends(get_lead_manager)):
    try:
        return await manager.get_lead(lead_id)
    except Exception as e:
        raise_http_error(e, "get lead")


@app.patch("/leads/{lead_id}", response_model=Lead)
async def update_lead(lead_id: str, payload: Dict[str, Any], manager: LeadManager = Depends(get_lead_manager)):
    try:
        return await manager.update_lead(lead_id, payload)
    except Exception as e:
        raise_http_error(e, "update lead")


@app.delete("/leads/{lead_id}")
async def delete_lead(lead_id: str, manager: LeadManager = Depends(get_lead_manager)):
    try:
        await manager.delete_lead(lead_id)
        return {"message": f"Lead {lead_id} deleted"}
    except Exception as e:
        raise_http_error(e, "delete lead")


@app.post("/leads/{lead_id}/enrich", response_model=EnrichmentOutcome)
async def enrich_lead(lead_id: str, enricher: LeadEnricher = Depends(get_enricher)):
    """Run the enrichment chain for one lead; provider failures are reported, not raised"""
    outcome = await enricher.enrich_lead(lead_id)
    if not outcome.success and outcome.error == "Lead not found":
        raise HTTPException(status_code=404, detail=f"Lead {lead_id} not found")
    return outcome


# ------------------------------------------------------------- enrichment

@app.post("/enrichment/batch", response_model=List[BatchItemResult])
async def enrich_batch(request: BatchEnrichRequest, enricher: LeadEnricher = Depends(get_enricher)):
    return await enricher.enrich_leads_batch(request.lead_ids)


@app.get("/enrichment/logs", response_model=List[EnrichmentLogEntry])
async def list_enrichment_logs(lead_id: Optional[str] = None, db: LeadStore = Depends(get_db)):
    try:
        return await get_enrichment_logs(db, lead_id=lead_id, limit=get_settings().enrichment_log_limit)
    except Exception as e:
        raise_http_error(e, "fetch enrichment logs")


# ----------------------------------------------------------- scraping jobs

@app.get("/scraping/jobs", response_model=List[ScrapingJob])
async def list_scraping_jobs(manager: JobManager = Depends(get_job_manager)):
    try:
        return await manager.list_jobs()
    except Exception as e:
        raise_http_error(e, "list scraping jobs")


@app.post("/scraping/jobs", response_model=ScrapingJob, status_code=201)
async def create_scraping_job(request: CreateScrapingJobRequest, manager: JobManager = Depends(get_job_manager)):
    """Register a Google Maps scraping job; the scrape itself reports back via the status route"""
    try:
        job = await manager.create_job(request.name, request.query, request.max_results)
        logger.info(f"Created scraping job {job.id} via API")
        return job
    except Exception as e:
        raise_http_error(e, "create scraping job")


@app.get("/scraping/jobs/{job_id}", response_model=ScrapingJob)
async def get_scraping_job(job_id: str, manager: JobManager = Depends(get_job_manager)):
    try:
        return await manager.get_job(job_id)
    except Exception as e:
        raise_http_error(e, "get scraping job")


@app.patch("/scraping/jobs/{job_id}/status", response_model=ScrapingJob)
async def update_scraping_job_status(
    job_id: str,
    request: JobStatusUpdateRequest,
    manager: JobManager = Depends(get_job_manager),
):
    try:
        return await manager.update_job_status(
            job_id,
            request.status,
            results=[result.dict() for result in request.results] if request.results is not None else None,
            total_results=request.total_results,
            error=request.error,
        )
    except Exception as e:
        raise_http_error(e, "update scraping job")


@app.post("/scraping/jobs/{job_id}/import", response_model=ImportReport)
async def import_scraping_results(
    job_id: str,
    request: ImportResultsRequest,
    manager: JobManager = Depends(get_job_manager),
):
    try:
        return await manager.import_results(job_id, request.indices)
    except Exception as e:
        raise_http_error(e, "import scraping results")


@app.delete("/scraping/jobs/{job_id}")
async def delete_scraping_job(job_id: str, manager: JobManager = Depends(get_job_manager)):
    try:
        await manager.delete_job(job_id)
        return {"message": f"Job {job_id} deleted"}
    except Exception as e:
        raise_http_error(e, "delete scraping job")


# -------------------------------------------------------------- dashboard

@app.get("/dashboard", response_model=DashboardStats)
async def dashboard(db: LeadStore = Depends(get_db)):
    try:
        return await get_dashboard_stats(db)
    except Exception as e:
        raise_http_error(e, "compute dashboard stats")


if __name__ == "__main__":
    from main import setup_logging
    setup_logging()

    settings = get_settings()
    logger.info(f"Starting Lead Management API Service on {settings.host}:{settings.port}")
    uvicorn.run(
        app,
        host=settings.host,
        port=settings.port,
        log_level="info",
        access_log=False
    )
