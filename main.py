"""
Command line entry point for the lead management service
Runs the HTTP API and one-off enrichment, import and reporting tasks
"""
# -*- coding: utf-8 -*-
import asyncio
import os
import sys
from pathlib import Path
from typing import Dict, List, Optional

import typer
import uvicorn
from loguru import logger

from config import get_settings
from dashboard import get_dashboard_stats
from database import create_db_client
from enrichment import LeadEnricher, get_enrichment_logs
from importer import import_leads, parse_csv
from models import LeadSource

# CLI Application
app = typer.Typer(help="Lead Management Service - API server and maintenance commands")


def setup_logging():
    """Configure loguru sinks from settings"""
    settings = get_settings()
    logger.remove()  # Remove default handler

    log_format = (
        "<green>{time:YYYY-MM-DD HH:mm:ss.SSS}</green> | "
        "<level>{level: <8}</level> | "
        "<cyan>{name}</cyan> | "
        "<level>{message}</level>"
    )

    logger.add(
        sys.stdout,
        level=settings.log_level,
        format=log_format,
        colorize=True,
        backtrace=settings.debug_mode,
        diagnose=settings.debug_mode
    )

    if settings.log_file_enabled:
        os.makedirs(settings.log_file_path, exist_ok=True)

        logger.add(
            f"{settings.log_file_path}/service.log",
            level=settings.log_level,
            format=log_format,
            rotation=settings.log_rotation,
            retention=settings.log_retention,
            compression="gz",
            colorize=False
        )
        logger.add(
            f"{settings.log_file_path}/errors.log",
            level="ERROR",
            format=log_format,
            rotation=settings.log_rotation,
            retention="90 days",
            compression="gz",
            colorize=False
        )

    logger.info(f"Logging configured (level: {settings.log_level})")


def parse_mapping(pairs: List[str]) -> Dict[str, str]:
    """Turn ["Column=field", ...] into a column mapping"""
    mapping = {}
    for pair in pairs:
        column, sep, field = pair.partition("=")
        if not sep or not column.strip() or not field.strip():
            raise ValueError(f"Invalid mapping '{pair}', expected COLUMN=field")
        mapping[column.strip()] = field.strip()
    return mapping


@app.command()
def serve(
    port: Optional[int] = typer.Option(None, "--port", "-p", help="Port for the API server"),
    host: Optional[str] = typer.Option(None, "--host", "-h", help="Host for the API server")
):
    """Run the HTTP API"""
    setup_logging()
    settings = get_settings()
    host = host or settings.host
    port = port or settings.port

    logger.info(f"Starting API server on {host}:{port}")
    uvicorn.run(
        "api_service:app",
        host=host,
        port=port,
        log_level="info",
        access_log=False
    )


@app.command()
def enrich(
    lead_ids: List[str] = typer.Argument(..., help="Lead IDs to enrich, processed in order")
):
    """Enrich leads one after another and print a per-lead result"""
    async def run():
        db = create_db_client()
        enricher = LeadEnricher(db)
        try:
            results = await enricher.enrich_leads_batch(lead_ids)
        finally:
            await enricher.close()
            await db.close()

        for item in results:
            if item.success:
                typer.echo(f" {item.lead_id}: enriched")
            else:
                typer.echo(f" {item.lead_id}: failed ({item.error})", err=True)

        failed = sum(1 for item in results if not item.success)
        typer.echo(f"Done: {len(results) - failed}/{len(results)} leads enriched")
        if failed == len(results):
            raise typer.Exit(1)

    setup_logging()
    asyncio.run(run())


@app.command("import-csv")
def import_csv(
    path: Path = typer.Argument(..., exists=True, dir_okay=False, help="CSV file with a header row"),
    mapping: List[str] = typer.Option(..., "--map", "-m", help="Column mapping as COLUMN=field (repeatable)"),
    source: LeadSource = typer.Option(LeadSource.IMPORT, "--source", "-s", help="Source stamped on imported leads"),
    delimiter: str = typer.Option(",", "--delimiter", "-d", help="CSV field delimiter")
):
    """Import leads from a CSV file"""
    try:
        column_mapping = parse_mapping(mapping)
    except ValueError as e:
        typer.echo(f" {e}", err=True)
        raise typer.Exit(1)

    async def run():
        db = create_db_client()
        try:
            rows = parse_csv(path.read_text(encoding="utf-8-sig"), delimiter=delimiter)
            report = await import_leads(db, rows, column_mapping, source=source.value, filename=path.name)
        except ValueError as e:
            typer.echo(f" Import failed: {e}", err=True)
            raise typer.Exit(1)
        finally:
            await db.close()

        typer.echo(f" Imported: {report.imported}")
        typer.echo(f" Duplicates: {report.duplicates}")
        typer.echo(f" Errors: {len(report.errors)}")
        for error in report.errors:
            typer.echo(f"   row {error.row}: {error.error}")

    setup_logging()
    asyncio.run(run())


@app.command()
def logs(
    lead_id: Optional[str] = typer.Option(None, "--lead-id", "-l", help="Only show logs for this lead"),
    limit: Optional[int] = typer.Option(None, "--limit", "-n", help="Maximum number of rows")
):
    """Show the latest enrichment log rows"""
    async def run():
        db = create_db_client()
        try:
            entries = await get_enrichment_logs(
                db, lead_id=lead_id, limit=limit or get_settings().enrichment_log_limit
            )
        finally:
            await db.close()

        if not entries:
            typer.echo("No enrichment logs")
            return
        for entry in entries:
            created = entry.created_at.isoformat() if entry.created_at else "-"
            typer.echo(f"{created}  {entry.lead_id}  {entry.provider:<12} {entry.status.value}")

    setup_logging()
    asyncio.run(run())


@app.command()
def stats():
    """Print dashboard KPIs"""
    async def run():
        db = create_db_client()
        try:
            dashboard = await get_dashboard_stats(db)
        finally:
            await db.close()

        typer.echo(f" Total leads: {dashboard.total}")
        typer.echo(f" This month: {dashboard.this_month}")
        typer.echo(f" Conversion rate: {dashboard.conversion_rate}%")
        typer.echo(f" Average score: {dashboard.avg_score}/100")
        typer.echo(f" By source: {dashboard.by_source}")
        typer.echo(f" By status: {dashboard.by_status}")

    setup_logging()
    asyncio.run(run())


if __name__ == "__main__":
    app()
