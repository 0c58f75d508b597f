"""Scope loading + aggregation shared by the dashboard and export routers."""

import logging

from sqlalchemy.ext.asyncio import AsyncSession

from database.repository import (
    fetch_ads,
    fetch_ads_by_brand,
    fetch_comments,
    fetch_comments_by_brand,
)
from processor.dashboard_metrics import DashboardFilters, DashboardPayload, aggregate_dashboard
from processor.normalizer import AdRecord, CommentRecord

logger = logging.getLogger("adpulse.dashboard")


async def load_scope(
    db: AsyncSession, brand: str | None = None
) -> tuple[list[AdRecord], list[CommentRecord]]:
    """All ads/comments, or one brand's."""
    if brand:
        ads = await fetch_ads_by_brand(db, brand)
        comments = await fetch_comments_by_brand(db, brand)
    else:
        ads = await fetch_ads(db)
        comments = await fetch_comments(db)
    logger.debug("loaded scope brand=%s ads=%d comments=%d", brand, len(ads), len(comments))
    return ads, comments


async def build_dashboard(
    db: AsyncSession,
    filters: DashboardFilters,
    brand: str | None = None,
) -> DashboardPayload:
    ads, comments = await load_scope(db, brand)
    return aggregate_dashboard(
        ads,
        comments,
        filters,
        title=f"{brand} Dashboard" if brand else "Ad Performance Dashboard",
        brand=brand,
        # the all-brands charts go straight from weekly to monthly
        allow_biweekly=brand is not None,
    )
