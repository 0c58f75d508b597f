"""Single ad detail API."""

import logging

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.ext.asyncio import AsyncSession

from api.deps import now_iso
from database import get_db
from database.repository import fetch_ad_by_id, fetch_comments_by_ad_id
from processor.dashboard_metrics import count_themes, sentiment_breakdown

logger = logging.getLogger("adpulse.api.ads")

router = APIRouter(prefix="/api/ads", tags=["ads"])


@router.get("/{ad_id}")
async def get_ad(ad_id: str, db: AsyncSession = Depends(get_db)):
    """Ad with all of its comments, sentiment split and theme counts."""
    try:
        ad = await fetch_ad_by_id(db, ad_id)
        comments = await fetch_comments_by_ad_id(db, ad_id) if ad else []
    except Exception:
        logger.exception("[ads] fetch failed (ad_id=%s)", ad_id)
        raise HTTPException(status_code=500, detail="Failed to fetch ad")

    if ad is None:
        raise HTTPException(status_code=404, detail="Ad not found")

    return {
        "ad": ad.model_dump(mode="json"),
        "comments": [c.model_dump(mode="json") for c in comments],
        "sentiment": sentiment_breakdown(comments).model_dump(),
        "themes": [t.model_dump() for t in count_themes(comments, limit=None)],
        "timestamp": now_iso(),
    }
