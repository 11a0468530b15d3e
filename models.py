"""
Pydantic models for the Lead Management Service
"""
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Literal, Optional, Union
from urllib.parse import urlparse

from pydantic import BaseModel, EmailStr, Field, validator


class LeadType(str, Enum):
    B2B = "B2B"
    B2C = "B2C"


class LeadSource(str, Enum):
    SCRAPING = "scraping"
    LANDING_PAGE = "landing_page"
    IMPORT = "import"
    MANUAL = "manual"


class LeadStatus(str, Enum):
    NEW = "new"
    CONTACTED = "contacted"
    QUALIFIED = "qualified"
    CONVERTED = "converted"
    LOST = "lost"


class EmailVerificationStatus(str, Enum):
    """Outcome of an email verification check"""
    VALID = "valid"
    INVALID = "invalid"
    DISPOSABLE = "disposable"
    UNKNOWN = "unknown"


class EnrichmentStatus(str, Enum):
    SUCCESS = "success"
    ERROR = "error"
    SKIPPED = "skipped"


class ScrapingJobStatus(str, Enum):
    PENDING = "pending"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"


# Columns that may be written from forms, CSV mappings and enrichment
LEAD_TEXT_FIELDS = [
    "first_name", "last_name", "email", "phone", "company_name", "job_title",
    "siren", "siret", "company_size", "revenue", "sector", "address", "city",
    "postal_code", "country", "website", "linkedin_url", "twitter_url",
    "facebook_url", "notes",
]


class Lead(BaseModel):
    """Lead model from Supabase leads table"""
    id: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    type: LeadType = LeadType.B2B
    source: LeadSource = LeadSource.MANUAL
    status: LeadStatus = LeadStatus.NEW
    score: Optional[int] = Field(0, ge=0, le=100)

    first_name: Optional[str] = None
    last_name: Optional[str] = None
    email: Optional[str] = None
    phone: Optional[str] = None
    company_name: Optional[str] = None
    job_title: Optional[str] = None

    # Company registry data
    siren: Optional[str] = None
    siret: Optional[str] = None
    company_size: Optional[str] = None
    revenue: Optional[str] = None
    sector: Optional[str] = None

    # Location
    address: Optional[str] = None
    city: Optional[str] = None
    postal_code: Optional[str] = None
    country: Optional[str] = None

    # Web presence
    website: Optional[str] = None
    linkedin_url: Optional[str] = None
    twitter_url: Optional[str] = None
    facebook_url: Optional[str] = None

    tags: List[str] = Field(default_factory=list)
    notes: Optional[str] = None
    raw_data: Optional[Any] = None

    # None means the address has never been checked
    email_verified: Optional[EmailVerificationStatus] = None
    enriched_at: Optional[datetime] = None

    @validator("tags", pre=True)
    def coerce_tags(cls, v):
        return v or []

    def display_name(self) -> str:
        """Return a readable name for UI or logs"""
        full_name = " ".join(filter(None, [self.first_name, self.last_name])).strip()
        return full_name or self.company_name or self.email or "(Unnamed Lead)"


class LeadCreate(BaseModel):
    """Validation schema for leads submitted through forms and the API"""
    type: LeadType = LeadType.B2B
    source: LeadSource = LeadSource.MANUAL
    status: LeadStatus = LeadStatus.NEW
    score: int = Field(0, ge=0, le=100)
    first_name: str = ""
    last_name: str = ""
    email: Union[EmailStr, Literal[""]] = ""
    phone: str = ""
    company_name: str = ""
    job_title: str = ""
    siren: str = ""
    siret: str = ""
    company_size: str = ""
    revenue: str = ""
    sector: str = ""
    address: str = ""
    city: str = ""
    postal_code: str = ""
    country: str = "France"
    website: str = ""
    linkedin_url: str = ""
    twitter_url: str = ""
    facebook_url: str = ""
    tags: List[str] = Field(default_factory=list)
    notes: str = ""

    @validator("website")
    def validate_website(cls, v):
        """Website must be an absolute http(s) URL when provided"""
        if v:
            parsed = urlparse(v)
            if parsed.scheme not in ("http", "https") or not parsed.netloc:
                raise ValueError("Invalid URL")
        return v


class LeadUpdate(BaseModel):
    """Partial update schema; score is derived and cannot be submitted"""
    type: Optional[LeadType] = None
    source: Optional[LeadSource] = None
    status: Optional[LeadStatus] = None
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    email: Optional[Union[EmailStr, Literal[""]]] = None
    phone: Optional[str] = None
    company_name: Optional[str] = None
    job_title: Optional[str] = None
    siren: Optional[str] = None
    siret: Optional[str] = None
    company_size: Optional[str] = None
    revenue: Optional[str] = None
    sector: Optional[str] = None
    address: Optional[str] = None
    city: Optional[str] = None
    postal_code: Optional[str] = None
    country: Optional[str] = None
    website: Optional[str] = None
    linkedin_url: Optional[str] = None
    twitter_url: Optional[str] = None
    facebook_url: Optional[str] = None
    tags: Optional[List[str]] = None
    notes: Optional[str] = None

    model_config = {"extra": "forbid"}

    @validator("website")
    def validate_website(cls, v):
        if v:
            parsed = urlparse(v)
            if parsed.scheme not in ("http", "https") or not parsed.netloc:
                raise ValueError("Invalid URL")
        return v


class LeadPage(BaseModel):
    """One page of leads plus the total number of matching rows"""
    leads: List[Lead] = Field(default_factory=list)
    total: int = 0
    page: int = 1
    per_page: int = 25


class ScoreDetail(BaseModel):
    criterion: str
    points: int


class ScoreBreakdown(BaseModel):
    """Point breakdown computed from a lead's current attributes"""
    total: int = Field(..., ge=0, le=100)
    details: List[ScoreDetail] = Field(default_factory=list)
    category: Literal["hot", "warm", "cold"]


class CompanyProfile(BaseModel):
    """Normalized company data from the Pappers registry"""
    siren: Optional[str] = None
    siret: Optional[str] = None
    denomination: Optional[str] = None
    sector: Optional[str] = None
    company_size: Optional[str] = None
    revenue: Optional[str] = None
    address: Optional[str] = None
    postal_code: Optional[str] = None
    city: Optional[str] = None
    website: Optional[str] = None
    raw: Dict[str, Any] = Field(default_factory=dict)

    def lead_fields(self) -> Dict[str, str]:
        """Return the non-empty fields that map onto lead columns"""
        fields = {
            "siren": self.siren,
            "siret": self.siret,
            "sector": self.sector,
            "company_size": self.company_size,
            "revenue": self.revenue,
            "address": self.address,
            "postal_code": self.postal_code,
            "city": self.city,
            "website": self.website,
        }
        return {key: value for key, value in fields.items() if value}


class EmailCandidate(BaseModel):
    """Email found by the Hunter.io Email Finder"""
    email: str
    score: Optional[int] = None
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    position: Optional[str] = None
    domain: Optional[str] = None
    raw: Dict[str, Any] = Field(default_factory=dict)


class EmailVerification(BaseModel):
    """Verification outcome plus why it is what it is"""
    email: str
    result: EmailVerificationStatus = EmailVerificationStatus.UNKNOWN
    result_code: Optional[Union[int, str]] = None
    # checked | missing_credential | request_failed | unrecognized_result
    reason: str = "checked"

    @property
    def checked(self) -> bool:
        return self.reason == "checked"


class EnrichmentLogEntry(BaseModel):
    """Append-only audit row written once per provider call"""
    id: Optional[str] = None
    lead_id: str
    provider: str
    data: Optional[Any] = None
    status: EnrichmentStatus
    created_at: Optional[datetime] = None


class ProviderResult(BaseModel):
    """What a single provider step contributed to an enrichment run"""
    provider: str
    status: EnrichmentStatus
    data: Optional[Dict[str, Any]] = None


class EnrichmentOutcome(BaseModel):
    """Result of enriching one lead"""
    lead_id: str
    success: bool
    error: Optional[str] = None
    results: List[ProviderResult] = Field(default_factory=list)
    updates: Dict[str, Any] = Field(default_factory=dict)
    score: Optional[int] = None


class BatchItemResult(BaseModel):
    lead_id: str
    success: bool
    error: Optional[str] = None


class RowError(BaseModel):
    row: int
    error: str


class ImportReport(BaseModel):
    """Aggregate counts for a CSV or scrape-result import"""
    imported: int = 0
    duplicates: int = 0
    errors: List[RowError] = Field(default_factory=list)
    total: int = 0


class GoogleMapsResult(BaseModel):
    """One listing collected by a Google Maps scrape"""
    name: str = ""
    address: str = ""
    phone: str = ""
    website: str = ""
    rating: Optional[float] = None
    reviews_count: Optional[int] = None
    category: str = ""
    place_url: str = ""


class ScrapingJob(BaseModel):
    """Scraping job model matching scraping_jobs table"""
    id: Optional[str] = None
    name: str
    source_type: str = "google_maps"
    config: Dict[str, Any] = Field(default_factory=dict)
    status: ScrapingJobStatus = ScrapingJobStatus.PENDING
    results: List[Dict[str, Any]] = Field(default_factory=list)
    total_results: int = 0
    imported_results: int = 0
    error: Optional[str] = None
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    created_at: Optional[datetime] = None

    @validator("results", pre=True)
    def coerce_results(cls, v):
        return v or []

    @validator("total_results", "imported_results", pre=True)
    def coerce_counts(cls, v):
        return v or 0


class DashboardStats(BaseModel):
    total: int = 0
    this_month: int = 0
    conversion_rate: int = 0
    avg_score: int = 0
    by_source: Dict[str, int] = Field(default_factory=dict)
    by_status: Dict[str, int] = Field(default_factory=dict)
    recent_leads: List[Dict[str, Any]] = Field(default_factory=list)
