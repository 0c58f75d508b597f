"""Repository reads against the seeded database."""

import sys
from datetime import datetime, timezone
from pathlib import Path

sys.path.insert(0, str(Path(__file__).resolve().parent.parent))

import pytest

from database.models import ClusterComment
from database.repository import (
    fetch_ad_by_id,
    fetch_ads,
    fetch_ads_by_brand,
    fetch_brands,
    fetch_cluster_comment_mappings,
    fetch_comment_clusters,
    fetch_comments_by_ad_id,
    fetch_comments_by_brand,
    fetch_dashboard_metrics,
)


@pytest.mark.asyncio
async def test_ads(db_session, seeded):
    ads = await fetch_ads(db_session)
    assert [a.ad_id for a in ads] == ["A1", "A2", "A3", "G1"]
    assert [a.ad_id for a in await fetch_ads_by_brand(db_session, "Globex")] == ["G1"]
    assert await fetch_brands(db_session) == ["Acme", "Globex"]


@pytest.mark.asyncio
async def test_ad_by_id_reads_timestamps_as_utc(db_session, seeded):
    ad = await fetch_ad_by_id(db_session, "A1")
    assert ad.created_at == datetime(2024, 1, 5, tzinfo=timezone.utc)
    assert ad.thumbnail == "https://cdn.example.com/a1.jpg"
    assert await fetch_ad_by_id(db_session, "nope") is None


@pytest.mark.asyncio
async def test_comments_fall_back_to_cluster_name(db_session, seeded):
    comments = await fetch_comments_by_ad_id(db_session, "A1")
    assert [c.theme for c in comments] == ["Price", "Price", "Quality"]
    assert comments[0].sentiment == "positive"

    acme = await fetch_comments_by_brand(db_session, "Acme")
    assert len(acme) == 7


@pytest.mark.asyncio
async def test_cluster_tables(db_session, seeded):
    db_session.add(ClusterComment(comment_id="c2"))
    await db_session.commit()

    clusters = await fetch_comment_clusters(db_session)
    assert clusters[0]["cluster_name"] == "Price"
    assert clusters[0]["comment_id"] == "c2"

    mappings = await fetch_cluster_comment_mappings(db_session)
    assert [m["comment_id"] for m in mappings] == ["c2"]


@pytest.mark.asyncio
async def test_dashboard_metrics_empty_db(db_session):
    metrics = await fetch_dashboard_metrics(db_session)
    assert metrics["total_ads"] == 0
    assert metrics["sentiment_distribution"] == {"positive": 0, "negative": 0, "neutral": 0}
