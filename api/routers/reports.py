"""Report snapshot API -- create, list and fetch shareable reports."""

import logging

from fastapi import APIRouter, Depends, HTTPException, Request

from api.deps import report_store
from processor.report_store import (
    ReportStore,
    ReportValidationError,
    is_valid_report_id,
    report_url,
    validate_report_payload,
)

logger = logging.getLogger("adpulse.api.reports")

router = APIRouter(prefix="/api/reports", tags=["reports"])


@router.get("")
async def list_reports(store: ReportStore = Depends(report_store)):
    """Report metadata with a shareable URL per report."""
    try:
        reports = await store.list_reports()
    except Exception:
        logger.exception("[reports] list failed")
        raise HTTPException(status_code=500, detail="Failed to get reports")
    return {"reports": [{**r, "report_url": report_url(r["id"])} for r in reports]}


@router.post("")
async def create_report(request: Request, store: ReportStore = Depends(report_store)):
    """Body: {"title": str, "data": {"brand": str, "ads": [...]}}."""
    try:
        body = await request.json()
    except ValueError:
        raise HTTPException(status_code=400, detail="Invalid JSON body")

    try:
        title, data = validate_report_payload(body)
    except ReportValidationError as e:
        raise HTTPException(status_code=400, detail=str(e))

    try:
        meta = await store.create_report(title, data)
    except Exception:
        logger.exception("[reports] create failed")
        raise HTTPException(status_code=500, detail="Failed to create report")

    return {"report_id": meta["id"], "report_url": report_url(meta["id"])}


@router.get("/{report_id}")
async def get_report(report_id: str, store: ReportStore = Depends(report_store)):
    if not is_valid_report_id(report_id):
        raise HTTPException(status_code=400, detail="Invalid report ID format")

    try:
        data = await store.get_report(report_id)
    except Exception:
        logger.exception("[reports] fetch failed (id=%s)", report_id)
        raise HTTPException(status_code=500, detail="Failed to fetch report")

    if data is None:
        raise HTTPException(status_code=404, detail="Report not found")

    return {**data, "_metadata": {"report_url": report_url(report_id)}}
