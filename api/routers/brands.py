"""Brand list + per-brand summary API."""

import logging

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.ext.asyncio import AsyncSession

from api.deps import now_iso
from database import get_db
from database.repository import fetch_ads_by_brand, fetch_brands, fetch_comments_by_brand
from processor.dashboard_metrics import summarize_brand

logger = logging.getLogger("adpulse.api.brands")

router = APIRouter(prefix="/api/brands", tags=["brands"])


@router.get("")
async def get_brands(
    id: str | None = None,
    db: AsyncSession = Depends(get_db),
):
    """Without ``id``: every brand. With ``id``: that brand's totals and top themes."""
    try:
        if not id:
            brands = await fetch_brands(db)
            return {"brands": brands, "count": len(brands), "timestamp": now_iso()}

        ads = await fetch_ads_by_brand(db, id)
        comments = await fetch_comments_by_brand(db, id)
    except Exception:
        logger.exception("[brands] fetch failed (brand=%s)", id)
        raise HTTPException(status_code=500, detail="Failed to fetch brand data")

    summary = summarize_brand(id, ads, comments)
    return {
        "brand": id,
        "summary": summary.model_dump(mode="json", exclude={"brand"}),
        "timestamp": now_iso(),
    }
