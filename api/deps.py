"""FastAPI dependencies: stores and request filter parsing."""

from datetime import datetime, timezone

from fastapi import Depends, HTTPException, Query, status
from pydantic import ValidationError
from sqlalchemy.ext.asyncio import AsyncSession

from database import get_db
from processor.dashboard_metrics import DashboardFilters
from processor.dashboard_store import DashboardStore, get_dashboard_store
from processor.report_store import ReportStore, get_report_store


async def report_store(db: AsyncSession = Depends(get_db)) -> ReportStore:
    return get_report_store(db)


async def dashboard_store(db: AsyncSession = Depends(get_db)) -> DashboardStore:
    return get_dashboard_store(db)


def dashboard_filters(
    start_date: str | None = Query(None, alias="startDate"),
    end_date: str | None = Query(None, alias="endDate"),
    sentiment: str | None = Query(None),
    search: str | None = Query(None),
) -> DashboardFilters:
    """Parse the shared dashboard filter query params; bad values -> 400."""
    try:
        filters = DashboardFilters(
            start_date=start_date or None,
            end_date=end_date or None,
            sentiment=sentiment,
            search=search,
        )
    except ValidationError as e:
        messages = "; ".join(err["msg"] for err in e.errors())
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Invalid filter: {messages}",
        )
    if filters.start_date and filters.end_date and filters.start_date > filters.end_date:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Invalid filter: startDate is after endDate",
        )
    return filters


def filters_echo(filters: DashboardFilters) -> dict:
    return {
        "start_date": filters.start_date.isoformat() if filters.start_date else None,
        "end_date": filters.end_date.isoformat() if filters.end_date else None,
        "sentiment": filters.sentiment,
        "search": filters.search,
    }


def now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()
