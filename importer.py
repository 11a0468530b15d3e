"""
CSV and scrape-result import with minimal-identity checks and deduplication
"""
import csv
import io
from typing import Any, Dict, List, Mapping, Optional, Sequence

from loguru import logger

from database import JobNotFoundError, LeadStore
from models import LEAD_TEXT_FIELDS, ImportReport, LeadSource, LeadStatus, LeadType, RowError
from scoring import calculate_score

IDENTITY_FIELDS = ("email", "company_name", "phone")
IGNORE_TARGET = "ignore"

# Scrape listing key -> lead column
SCRAPE_FIELD_MAPPING = {
    "name": "company_name",
    "address": "address",
    "phone": "phone",
    "website": "website",
    "category": "sector",
}


def parse_csv(content: str, delimiter: str = ",") -> List[Dict[str, str]]:
    """Parse CSV text whose first row is the header; values stay strings"""
    reader = csv.DictReader(io.StringIO(content), delimiter=delimiter)
    return [
        {key: value or "" for key, value in row.items() if key is not None}
        for row in reader
    ]


def validate_mapping(mapping: Mapping[str, str]) -> None:
    """Reject mappings that target columns a lead does not have"""
    unknown = sorted(
        target for target in mapping.values()
        if target and target != IGNORE_TARGET and target not in LEAD_TEXT_FIELDS
    )
    if unknown:
        raise ValueError(f"Unknown lead fields in column mapping: {unknown}")


def map_row(row: Mapping[str, Any], mapping: Mapping[str, str], source: str) -> Dict[str, Any]:
    """Project mapped, non-empty columns of an external row onto a lead draft"""
    lead: Dict[str, Any] = {"source": source}
    for column, field in mapping.items():
        if field and field != IGNORE_TARGET and row.get(column):
            lead[field] = row[column]
    return lead


def has_identity(lead: Mapping[str, Any]) -> bool:
    return any(lead.get(field) for field in IDENTITY_FIELDS)


async def find_duplicate(db: LeadStore, lead: Mapping[str, Any], fallback_keys: Sequence[str] = ()) -> Optional[str]:
    """
    Return the ID of an existing lead with the same dedup key

    Email is checked first; when the draft has no email, each fallback key is
    tried in order. Matching is exact string equality.
    """
    if lead.get("email"):
        return await db.find_lead_id("email", lead["email"])

    for key in fallback_keys:
        if lead.get(key):
            existing = await db.find_lead_id(key, lead[key])
            if existing:
                return existing
    return None


async def import_leads(
    db: LeadStore,
    rows: Sequence[Mapping[str, Any]],
    mapping: Mapping[str, str],
    source: str = LeadSource.IMPORT.value,
    filename: str = "csv-import",
) -> ImportReport:
    """
    Import external rows as leads

    Every row is attempted independently; existing leads are never modified.

    Args:
        db: Lead store
        rows: String-keyed records (e.g. from parse_csv)
        mapping: Column name -> lead field ("ignore" to drop a column)
        source: Source label stamped on every imported lead
        filename: Name recorded on the import record

    Returns:
        ImportReport with imported/duplicate counts and row-indexed errors
    """
    validate_mapping(mapping)
    report = ImportReport(total=len(rows))

    import_id = None
    try:
        import_id = await db.insert_import_record(filename, len(rows))
    except Exception as e:
        logger.warning(f"Could not create import record for {filename}: {e}")

    for index, row in enumerate(rows, start=1):
        lead = map_row(row, mapping, source)

        if not has_identity(lead):
            report.errors.append(RowError(row=index, error="No identifier (email, company or phone)"))
            continue

        try:
            if await find_duplicate(db, lead):
                report.duplicates += 1
                continue
            await db.insert_lead(lead)
        except Exception as e:
            logger.warning(f"Import row {index} failed: {e}")
            report.errors.append(RowError(row=index, error=str(e)))
            continue

        report.imported += 1

    if import_id:
        try:
            await db.update_import_record(import_id, {
                "status": "completed",
                "imported_rows": report.imported,
                "duplicates": report.duplicates,
                "errors": [error.dict() for error in report.errors],
            })
        except Exception as e:
            logger.warning(f"Could not finalize import record {import_id}: {e}")

    logger.info(
        f"Import finished: {report.imported} imported, {report.duplicates} duplicates, "
        f"{len(report.errors)} errors out of {report.total} rows"
    )
    return report


def scrape_result_to_lead(result: Mapping[str, Any]) -> Dict[str, Any]:
    """Map a Google Maps listing onto a lead draft"""
    lead = map_row(result, SCRAPE_FIELD_MAPPING, LeadSource.SCRAPING.value)
    lead["type"] = LeadType.B2B.value
    lead["status"] = LeadStatus.NEW.value
    lead["raw_data"] = dict(result)
    return lead


async def import_scraping_results(db: LeadStore, job_id: str, selected_indices: Sequence[int]) -> ImportReport:
    """
    Promote selected results of a scraping job to leads

    Args:
        db: Lead store
        job_id: Scraping job holding the results
        selected_indices: Positions in the job's result array to import

    Returns:
        ImportReport whose total is the number of selected results

    Raises:
        JobNotFoundError: If the job does not exist
    """
    job = await db.get_scraping_job(job_id)
    if job is None:
        raise JobNotFoundError(f"Scraping job {job_id} not found")

    report = ImportReport(total=len(selected_indices))

    for index in selected_indices:
        row_number = index + 1
        if index < 0 or index >= len(job.results):
            report.errors.append(RowError(row=row_number, error=f"No result at index {index}"))
            continue

        lead = scrape_result_to_lead(job.results[index])
        if not has_identity(lead):
            report.errors.append(RowError(row=row_number, error="No identifier (email, company or phone)"))
            continue

        try:
            if await find_duplicate(db, lead, fallback_keys=("phone", "company_name")):
                report.duplicates += 1
                continue
            lead["score"] = calculate_score(lead).total
            await db.insert_lead(lead)
        except Exception as e:
            logger.warning(f"Scrape result {index} of job {job_id} failed to import: {e}")
            report.errors.append(RowError(row=row_number, error=str(e)))
            continue

        report.imported += 1

    try:
        await db.update_scraping_job(job_id, {"imported_results": report.imported})
    except Exception as e:
        logger.warning(f"Could not record imported count on scraping job {job_id}: {e}")

    logger.info(
        f"Imported {report.imported}/{report.total} results from scraping job {job_id} "
        f"({report.duplicates} duplicates)"
    )
    return report
