"""
Dashboard KPIs computed from the leads table
"""
import asyncio
import math
from collections import Counter
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from loguru import logger

from database import LeadStore
from models import DashboardStats

RECENT_LEADS_LIMIT = 10
RECENT_LEAD_COLUMNS = "id, first_name, last_name, email, company_name, status, score, created_at"


def start_of_month(now: Optional[datetime] = None) -> datetime:
    now = now or datetime.now(timezone.utc)
    return now.replace(day=1, hour=0, minute=0, second=0, microsecond=0)


def round_half_up(value: float) -> int:
    return math.floor(value + 0.5)


def _count_by(rows: List[Dict[str, Any]], column: str) -> Dict[str, int]:
    return dict(Counter(row.get(column) for row in rows if row.get(column)))


async def get_dashboard_stats(db: LeadStore, now: Optional[datetime] = None) -> DashboardStats:
    """
    Gather headline counts, breakdowns and the latest leads

    Conversion rate and average score are whole-number percentages/points,
    0 when there are no leads.
    """
    total, this_month, converted, rows, recent = await asyncio.gather(
        db.count_leads(),
        db.count_leads(created_since=start_of_month(now)),
        db.count_leads(status="converted"),
        db.fetch_lead_columns("score, source, status"),
        db.fetch_lead_columns(RECENT_LEAD_COLUMNS, limit=RECENT_LEADS_LIMIT),
    )

    conversion_rate = round_half_up(converted / total * 100) if total else 0
    scores = [row.get("score") or 0 for row in rows]
    avg_score = round_half_up(sum(scores) / len(scores)) if scores else 0

    stats = DashboardStats(
        total=total,
        this_month=this_month,
        conversion_rate=conversion_rate,
        avg_score=avg_score,
        by_source=_count_by(rows, "source"),
        by_status=_count_by(rows, "status"),
        recent_leads=recent,
    )
    logger.debug(f"Dashboard stats: {total} leads, {conversion_rate}% converted, avg score {avg_score}")
    return stats
