"""Read-side data access -- ORM rows -> canonical ad/comment records.

Every fetch returns fully materialised lists. Database errors are not
caught here; the API layer turns them into 500 responses.
"""

from __future__ import annotations

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from database.models import Ad, ClusterComment, Comment, CommentCluster
from processor.normalizer import (
    AdRecord,
    CommentRecord,
    normalize_ad,
    normalize_ads,
    normalize_comments,
)


def _row_dict(row, columns) -> dict:
    """ORM row -> raw dict, legacy extra_data columns first so mapped columns win."""
    data = dict(row.extra_data or {})
    for col in columns:
        value = getattr(row, col)
        if value is not None:
            data[col] = value
    return data


_AD_FIELDS = (
    "ad_id", "account_id", "brand", "ad_name", "ad_title", "ad_text",
    "angle_type", "media_url", "image_url", "video_url", "post_link",
    "platform", "created_at",
)
_COMMENT_FIELDS = (
    "comment_id", "ad_id", "brand", "message", "sentiment", "theme", "created_time",
)


def _to_ad(row: Ad) -> AdRecord:
    return normalize_ad(_row_dict(row, _AD_FIELDS))


def _to_ads(rows) -> list[AdRecord]:
    return normalize_ads(_row_dict(r, _AD_FIELDS) for r in rows)


async def _cluster_names(db: AsyncSession, comment_ids: list[str]) -> dict[str, str]:
    if not comment_ids:
        return {}
    result = await db.execute(
        select(CommentCluster.comment_id, CommentCluster.cluster_name)
        .where(CommentCluster.comment_id.in_(comment_ids))
        .where(CommentCluster.cluster_name.isnot(None))
        .order_by(CommentCluster.id)
    )
    names: dict[str, str] = {}
    for comment_id, cluster_name in result.all():
        names.setdefault(comment_id, cluster_name)
    return names


async def _to_comments(db: AsyncSession, rows: list[Comment]) -> list[CommentRecord]:
    """Normalise comments; rows without a theme fall back to their cluster name."""
    missing = [r.comment_id for r in rows if not r.theme]
    clusters = await _cluster_names(db, missing)

    raw = []
    for row in rows:
        data = _row_dict(row, _COMMENT_FIELDS)
        if not row.theme and row.comment_id in clusters:
            data["Cluster name"] = clusters[row.comment_id]
        raw.append(data)
    return normalize_comments(raw)


# ── Ads ──


async def fetch_ads(db: AsyncSession) -> list[AdRecord]:
    result = await db.execute(select(Ad).order_by(Ad.id))
    return _to_ads(result.scalars())


async def fetch_ads_by_brand(db: AsyncSession, brand: str) -> list[AdRecord]:
    result = await db.execute(select(Ad).where(Ad.brand == brand).order_by(Ad.id))
    return _to_ads(result.scalars())


async def fetch_ad_by_id(db: AsyncSession, ad_id: str) -> AdRecord | None:
    result = await db.execute(select(Ad).where(Ad.ad_id == ad_id))
    row = result.scalar_one_or_none()
    return _to_ad(row) if row else None


async def fetch_brands(db: AsyncSession) -> list[str]:
    """Distinct, non-null brand names."""
    result = await db.execute(
        select(Ad.brand).where(Ad.brand.isnot(None)).distinct().order_by(Ad.brand)
    )
    return [r[0] for r in result.all()]


# ── Comments ──


async def fetch_comments(db: AsyncSession) -> list[CommentRecord]:
    result = await db.execute(select(Comment).order_by(Comment.id))
    return await _to_comments(db, list(result.scalars()))


async def fetch_comments_by_brand(db: AsyncSession, brand: str) -> list[CommentRecord]:
    result = await db.execute(
        select(Comment).where(Comment.brand == brand).order_by(Comment.id)
    )
    return await _to_comments(db, list(result.scalars()))


async def fetch_comments_by_ad_id(db: AsyncSession, ad_id: str) -> list[CommentRecord]:
    result = await db.execute(
        select(Comment).where(Comment.ad_id == ad_id).order_by(Comment.id)
    )
    return await _to_comments(db, list(result.scalars()))


async def fetch_comment_clusters(db: AsyncSession) -> list[dict]:
    result = await db.execute(select(CommentCluster).order_by(CommentCluster.id))
    return [
        {
            "id": c.id,
            "cluster_name": c.cluster_name,
            "cluster_description": c.cluster_description,
            "meta_cluster": c.meta_cluster,
            "comment": c.comment,
            "ad": c.ad,
            "ad_id": c.ad_id,
            "comment_id": c.comment_id,
            "created_at": c.created_at,
        }
        for c in result.scalars()
    ]


async def fetch_cluster_comment_mappings(db: AsyncSession) -> list[dict]:
    result = await db.execute(select(ClusterComment).order_by(ClusterComment.id))
    return [{"id": m.id, "comment_id": m.comment_id} for m in result.scalars()]


# ── Overview ──


async def fetch_dashboard_metrics(db: AsyncSession) -> dict:
    """Global totals + sentiment distribution, computed in SQL.

    Sentiment shares are over comments that carry a sentiment label.
    """
    ad_count = (await db.execute(select(func.count(Ad.id)))).scalar() or 0
    comment_count = (await db.execute(select(func.count(Comment.id)))).scalar() or 0

    result = await db.execute(
        select(func.lower(Comment.sentiment), func.count(Comment.id))
        .where(Comment.sentiment.isnot(None))
        .group_by(func.lower(Comment.sentiment))
    )
    counts = {label: cnt for label, cnt in result.all()}
    labelled = sum(counts.values())
    positive = counts.get("positive", 0)
    negative = counts.get("negative", 0)
    neutral = labelled - positive - negative
    denominator = labelled or 1

    return {
        "total_ads": ad_count,
        "total_comments": comment_count,
        "sentiment_distribution": {
            "positive": positive / denominator * 100,
            "negative": negative / denominator * 100,
            "neutral": neutral / denominator * 100,
        },
    }
