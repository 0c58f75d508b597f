"""Dashboard API -- live aggregates and stored ad-hoc dashboards."""

import logging

from fastapi import APIRouter, Depends, HTTPException, Query, Request
from sqlalchemy.ext.asyncio import AsyncSession

from api.deps import dashboard_filters, dashboard_store, filters_echo, now_iso
from api.services.dashboard_service import build_dashboard
from database import get_db
from database.repository import fetch_dashboard_metrics
from processor.dashboard_metrics import DashboardFilters
from processor.dashboard_store import DashboardStore

logger = logging.getLogger("adpulse.api.dashboard")

router = APIRouter(prefix="/api/dashboard", tags=["dashboard"])

# ids that mean "aggregate live data" rather than "look up a stored dashboard"
LIVE_DASHBOARD_IDS = {"default", "brand"}


@router.get("")
async def get_dashboard(
    id: str | None = Query(None, description="default | brand | stored dashboard id"),
    brand: str | None = None,
    filters: DashboardFilters = Depends(dashboard_filters),
    db: AsyncSession = Depends(get_db),
    store: DashboardStore = Depends(dashboard_store),
):
    """Aggregated dashboard for all brands or one brand, or a stored dashboard.

    Query: startDate/endDate (ISO-8601), sentiment (all|positive|negative|neutral),
    search (free text). A startDate before 1980 means lifetime.
    """
    dashboard_id = id or "default"

    if dashboard_id not in LIVE_DASHBOARD_IDS:
        data = await store.get(dashboard_id)
        if data is None:
            raise HTTPException(status_code=404, detail="Dashboard not found")
        return {
            "id": dashboard_id,
            "data": data,
            "filters": filters_echo(filters),
            "timestamp": now_iso(),
        }

    try:
        payload = await build_dashboard(db, filters, brand=brand)
    except Exception:
        logger.exception("[dashboard] aggregation failed (brand=%s)", brand)
        raise HTTPException(status_code=500, detail="Failed to fetch dashboard data")

    return {
        "id": dashboard_id,
        "brand": brand,
        "data": payload.model_dump(mode="json"),
        "filters": filters_echo(filters),
        "timestamp": now_iso(),
    }


@router.get("/overview")
async def get_overview(db: AsyncSession = Depends(get_db)):
    """Global ad/comment totals and sentiment shares (no filters)."""
    try:
        metrics = await fetch_dashboard_metrics(db)
    except Exception:
        logger.exception("[dashboard] overview failed")
        raise HTTPException(status_code=500, detail="Failed to fetch dashboard metrics")
    return {**metrics, "timestamp": now_iso()}


@router.post("/create")
async def create_dashboard(
    request: Request,
    store: DashboardStore = Depends(dashboard_store),
):
    """Store an arbitrary dashboard definition and return its shareable id."""
    try:
        body = await request.json()
    except ValueError:
        raise HTTPException(status_code=400, detail="Invalid dashboard data")
    if not isinstance(body, dict):
        raise HTTPException(status_code=400, detail="Invalid dashboard data")

    try:
        dashboard_id = await store.put(body)
    except Exception:
        logger.exception("[dashboard] create failed")
        raise HTTPException(status_code=500, detail="Failed to create dashboard")

    logger.info("Created dashboard with ID: %s", dashboard_id)
    return {
        "success": True,
        "dashboard_id": dashboard_id,
        "message": "Dashboard created successfully",
        "url": f"/dashboard?id={dashboard_id}",
    }
