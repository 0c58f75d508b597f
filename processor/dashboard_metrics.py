"""Dashboard metrics aggregation -- ads + comments -> chart-ready payload.

Input lists are already scoped (all brands or one brand) by the caller.
Everything here is a pure in-memory transform: no I/O, inputs are never
mutated, and data problems degrade to zeros / empty lists instead of
raising.

Steps:
1. Current window + the preceding window of equal length
   (lifetime windows compare against [epoch, start)).
2. Each window is filtered date -> sentiment -> search, in that order.
3. Ad/comment totals, sentiment shares, % change vs the previous window.
4. Time-series buckets sized to the window length.
5. Top ads by comment count, theme and angle-type breakdowns.
"""

from __future__ import annotations

import logging
import math
from collections import Counter, defaultdict
from datetime import datetime, timedelta, timezone
from typing import Iterable, Sequence

from pydantic import BaseModel, Field, field_validator

from processor.normalizer import AdRecord, CommentRecord, parse_timestamp
from processor.time_buckets import TimeSeries, build_time_series

logger = logging.getLogger(__name__)

LIFETIME_CUTOFF_YEAR = 1980
DEFAULT_WINDOW_DAYS = 30
TOP_ADS_LIMIT = 5
TOP_THEMES_LIMIT = 5
BRAND_THEMES_LIMIT = 10
PERFORMANCE_COMMENT_WEIGHT = 30

SENTIMENT_FILTERS = ("all", "positive", "negative", "neutral")

EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)
ONE_MS = timedelta(milliseconds=1)


# ── Models ──


class DashboardFilters(BaseModel):
    start_date: datetime | None = None
    end_date: datetime | None = None
    sentiment: str = "all"
    search: str = ""

    @field_validator("start_date", "end_date", mode="before")
    @classmethod
    def to_utc(cls, v):
        if v is None:
            return None
        parsed = parse_timestamp(v)
        if parsed is None:
            raise ValueError(f"invalid date: {v!r}")
        return parsed

    @field_validator("sentiment", mode="before")
    @classmethod
    def check_sentiment(cls, v) -> str:
        value = (v or "all").strip().lower()
        if value not in SENTIMENT_FILTERS:
            raise ValueError(
                f"sentiment must be one of {', '.join(SENTIMENT_FILTERS)}"
            )
        return value

    @field_validator("search", mode="before")
    @classmethod
    def strip_search(cls, v) -> str:
        return (v or "").strip()


class Period(BaseModel):
    start: datetime
    end: datetime
    previous_start: datetime
    previous_end: datetime
    lifetime: bool = False


class SentimentBreakdown(BaseModel):
    total: int = 0
    positive: int = 0
    negative: int = 0
    neutral: int = 0
    positive_pct: float = 0.0
    negative_pct: float = 0.0
    neutral_pct: float = 0.0


class Metric(BaseModel):
    """Current-period value + % change vs the previous period.

    ``favorable`` already accounts for lower-is-better metrics, so clients
    only colour by it.
    """

    id: str
    label: str
    value: int | float
    change: float
    higher_is_better: bool = True
    trend: str = "flat"
    favorable: bool | None = None


class TimeSeriesDataset(BaseModel):
    name: str
    data: list[int]


class TimeSeriesData(BaseModel):
    labels: list[str] = Field(default_factory=list)
    datasets: list[TimeSeriesDataset] = Field(default_factory=list)


class ChartData(BaseModel):
    labels: list[str] = Field(default_factory=list)
    values: list[int | float] = Field(default_factory=list)


class CategoryCount(BaseModel):
    name: str
    count: int
    percentage: float


class TopAd(BaseModel):
    ad_id: str
    account_id: str | None = None
    brand: str | None = None
    ad_name: str | None = None
    ad_text: str | None = None
    image: str | None = None
    platform: str | None = None
    angle_type: str | None = None
    post_link: str | None = None
    created_at: datetime | None = None
    comments_count: int
    positive_percentage: float
    negative_percentage: float
    neutral_percentage: float
    performance: int


class TableRow(BaseModel):
    id: str
    values: list[str | int | float | None]


class TableData(BaseModel):
    headers: list[str] = Field(default_factory=list)
    rows: list[TableRow] = Field(default_factory=list)


class DashboardPayload(BaseModel):
    title: str
    brand: str | None = None
    granularity: str
    period: Period
    metrics: list[Metric]
    time_series: TimeSeriesData
    sentiment_distribution: ChartData
    top_ads: list[TopAd]
    table_data: TableData
    theme_breakdown: list[CategoryCount]
    angle_type_distribution: list[CategoryCount]
    ads: list[AdRecord]
    all_comments: list[CommentRecord]


class BrandSummary(BaseModel):
    brand: str
    total_ads: int
    total_comments: int
    sentiment_distribution: SentimentBreakdown
    top_themes: list[CategoryCount]


# ── Period / filters ──


def is_lifetime(start: datetime) -> bool:
    return start.year < LIFETIME_CUTOFF_YEAR


def compute_period(
    start: datetime, end: datetime, *, lifetime: bool | None = None
) -> Period:
    """Current window plus the immediately preceding window of equal length.

    ``lifetime`` defaults to the pre-1980 start sentinel.
    """
    if lifetime is None:
        lifetime = is_lifetime(start)
    if lifetime:
        return Period(
            start=start,
            end=end,
            previous_start=EPOCH,
            previous_end=start - ONE_MS,
            lifetime=True,
        )
    duration = end - start
    return Period(
        start=start,
        end=end,
        previous_start=start - duration,
        previous_end=start - ONE_MS,
    )


def filter_by_date(
    records: Iterable,
    attr: str,
    lower: datetime | None,
    upper: datetime,
) -> list:
    """Keep records whose ``attr`` timestamp lies in [lower, upper].

    ``lower=None`` means unbounded below. Records without a timestamp never
    pass.
    """
    kept = []
    for record in records:
        ts = getattr(record, attr)
        if ts is None:
            continue
        if lower is not None and ts < lower:
            continue
        if ts > upper:
            continue
        kept.append(record)
    return kept


def filter_by_sentiment(
    comments: Iterable[CommentRecord], sentiment: str | None
) -> list[CommentRecord]:
    if not sentiment or sentiment == "all":
        return list(comments)
    if sentiment == "neutral":
        return [c for c in comments if c.sentiment not in ("positive", "negative")]
    return [c for c in comments if c.sentiment == sentiment]


def _contains(query: str, *fields: str | None) -> bool:
    return any(query in f.lower() for f in fields if f)


def apply_search(
    ads: Sequence[AdRecord],
    comments: Sequence[CommentRecord],
    query: str | None,
) -> tuple[list[AdRecord], list[CommentRecord]]:
    """Case-insensitive substring search across ads and comments.

    Comments: direct text matches plus every comment of a matching ad.
    Ads: direct matches plus ads owning a directly matching comment.
    """
    q = (query or "").strip().lower()
    if not q:
        return list(ads), list(comments)

    matched_ad_ids = {
        ad.ad_id
        for ad in ads
        if _contains(q, ad.ad_name, ad.ad_title, ad.ad_text, ad.brand)
    }
    direct_ids = {
        c.comment_id for c in comments if _contains(q, c.message, c.theme)
    }
    commented_ad_ids = {
        c.ad_id for c in comments if c.comment_id in direct_ids and c.ad_id
    }

    filtered_comments = [
        c for c in comments
        if c.comment_id in direct_ids or (c.ad_id and c.ad_id in matched_ad_ids)
    ]
    filtered_ads = [
        ad for ad in ads
        if ad.ad_id in matched_ad_ids or ad.ad_id in commented_ad_ids
    ]
    return filtered_ads, filtered_comments


def _filter_period(
    ads: Sequence[AdRecord],
    comments: Sequence[CommentRecord],
    lower: datetime | None,
    upper: datetime,
    filters: DashboardFilters,
) -> tuple[list[AdRecord], list[CommentRecord]]:
    period_ads = filter_by_date(ads, "created_at", lower, upper)
    period_comments = filter_by_date(comments, "created_time", lower, upper)
    period_comments = filter_by_sentiment(period_comments, filters.sentiment)
    return apply_search(period_ads, period_comments, filters.search)


# ── Scalar metrics ──


def sentiment_breakdown(comments: Sequence[CommentRecord]) -> SentimentBreakdown:
    total = len(comments)
    positive = sum(1 for c in comments if c.sentiment == "positive")
    negative = sum(1 for c in comments if c.sentiment == "negative")
    neutral = total - positive - negative
    if total == 0:
        return SentimentBreakdown()

    denominator = max(total, 1)
    return SentimentBreakdown(
        total=total,
        positive=positive,
        negative=negative,
        neutral=neutral,
        positive_pct=positive / denominator * 100,
        negative_pct=negative / denominator * 100,
        neutral_pct=neutral / denominator * 100,
    )


def calculate_percentage_change(current: float, previous: float) -> float:
    if previous == 0:
        return 100.0 if current > 0 else 0.0
    return (current - previous) / previous * 100


def make_metric(
    metric_id: str,
    label: str,
    current: int | float,
    previous: int | float,
    *,
    higher_is_better: bool = True,
) -> Metric:
    change = calculate_percentage_change(current, previous)
    if change > 0:
        trend = "up"
    elif change < 0:
        trend = "down"
    else:
        trend = "flat"
    favorable = None if trend == "flat" else (change > 0) == higher_is_better
    return Metric(
        id=metric_id,
        label=label,
        value=current,
        change=change,
        higher_is_better=higher_is_better,
        trend=trend,
        favorable=favorable,
    )


def build_metrics(
    current_ads: Sequence[AdRecord],
    current_comments: Sequence[CommentRecord],
    previous_ads: Sequence[AdRecord],
    previous_comments: Sequence[CommentRecord],
) -> list[Metric]:
    cur = sentiment_breakdown(current_comments)
    prev = sentiment_breakdown(previous_comments)
    return [
        make_metric("total_ads", "Total Ads", len(current_ads), len(previous_ads)),
        make_metric("total_comments", "Total Comments", cur.total, prev.total),
        make_metric(
            "positive_sentiment", "Positive Sentiment",
            cur.positive_pct, prev.positive_pct,
        ),
        make_metric(
            "negative_sentiment", "Negative Sentiment",
            cur.negative_pct, prev.negative_pct,
            higher_is_better=False,
        ),
        make_metric(
            "neutral_sentiment", "Neutral Sentiment",
            cur.neutral_pct, prev.neutral_pct,
            higher_is_better=False,
        ),
    ]


# ── Rankings / breakdowns ──


def round_half_up(value: float) -> int:
    return math.floor(value + 0.5)


def rank_top_ads(
    ads: Sequence[AdRecord],
    comments: Sequence[CommentRecord],
    limit: int = TOP_ADS_LIMIT,
) -> list[TopAd]:
    """Ads ordered by comment count (desc, stable); ads without comments drop out.

    performance = min(100, round(positive% + count / top_count * 30))
    """
    by_ad: dict[str, list[CommentRecord]] = defaultdict(list)
    for c in comments:
        if c.ad_id:
            by_ad[c.ad_id].append(c)

    ranked = [(ad, by_ad[ad.ad_id]) for ad in ads if by_ad.get(ad.ad_id)]
    ranked.sort(key=lambda pair: len(pair[1]), reverse=True)
    ranked = ranked[:limit]
    if not ranked:
        return []

    top_count = len(ranked[0][1])
    results: list[TopAd] = []
    for ad, ad_comments in ranked:
        breakdown = sentiment_breakdown(ad_comments)
        score = breakdown.positive_pct + (
            len(ad_comments) / top_count * PERFORMANCE_COMMENT_WEIGHT
        )
        results.append(
            TopAd(
                ad_id=ad.ad_id,
                account_id=ad.account_id,
                brand=ad.brand,
                ad_name=ad.display_name,
                ad_text=ad.ad_text,
                image=ad.thumbnail,
                platform=ad.platform,
                angle_type=ad.angle_type,
                post_link=ad.post_link,
                created_at=ad.created_at,
                comments_count=len(ad_comments),
                positive_percentage=breakdown.positive_pct,
                negative_percentage=breakdown.negative_pct,
                neutral_percentage=breakdown.neutral_pct,
                performance=min(100, round_half_up(score)),
            )
        )
    return results


def _category_counts(
    names: Iterable[str], total: int, limit: int | None = None
) -> list[CategoryCount]:
    counter = Counter(names)
    denominator = max(total, 1)
    return [
        CategoryCount(name=name, count=count, percentage=count / denominator * 100)
        for name, count in counter.most_common(limit)
    ]


def count_themes(
    comments: Sequence[CommentRecord], limit: int | None = TOP_THEMES_LIMIT
) -> list[CategoryCount]:
    """Theme frequency, most common first. Comments without a theme are skipped."""
    return _category_counts(
        (c.theme for c in comments if c.theme), len(comments), limit
    )


def count_angle_types(ads: Sequence[AdRecord]) -> list[CategoryCount]:
    return _category_counts((ad.angle_type for ad in ads), len(ads))


def _time_series_data(series: TimeSeries) -> TimeSeriesData:
    return TimeSeriesData(
        labels=series.labels,
        datasets=[
            TimeSeriesDataset(name="Total Comments", data=[b.total for b in series.buckets]),
            TimeSeriesDataset(name="Positive", data=[b.positive for b in series.buckets]),
            TimeSeriesDataset(name="Negative", data=[b.negative for b in series.buckets]),
        ],
    )


def _table_data(top_ads: Sequence[TopAd]) -> TableData:
    return TableData(
        headers=["Ad", "Brand", "Platform", "Comments", "Positive %", "Negative %", "Performance"],
        rows=[
            TableRow(
                id=ad.ad_id,
                values=[
                    ad.ad_name or ad.ad_id,
                    ad.brand,
                    ad.platform or "Unknown",
                    ad.comments_count,
                    round(ad.positive_percentage, 1),
                    round(ad.negative_percentage, 1),
                    ad.performance,
                ],
            )
            for ad in top_ads
        ],
    )


# ── Entry points ──


def aggregate_dashboard(
    ads: Sequence[AdRecord],
    comments: Sequence[CommentRecord],
    filters: DashboardFilters | None = None,
    *,
    title: str = "Ad Performance Dashboard",
    brand: str | None = None,
    allow_biweekly: bool = True,
    now: datetime | None = None,
) -> DashboardPayload:
    """Build the full dashboard payload for one scoped ad/comment set.

    Args:
        ads: Ads in scope (all brands or a single brand).
        comments: Comments in scope.
        filters: Window, sentiment and search filters.
        title: Dashboard title echoed in the payload.
        brand: Brand label echoed in the payload.
        allow_biweekly: Enable the 14-day bucket tier (91-180 day windows).
        now: Clock used only when ``filters.end_date`` is missing.
    """
    filters = filters or DashboardFilters()
    end = filters.end_date or now or datetime.now(timezone.utc)
    start = filters.start_date or end - timedelta(days=DEFAULT_WINDOW_DAYS)
    # only an explicit start date can select lifetime mode
    lifetime = filters.start_date is not None and is_lifetime(start)
    period = compute_period(start, end, lifetime=lifetime)

    lower = None if period.lifetime else period.start
    current_ads, current_comments = _filter_period(ads, comments, lower, end, filters)
    previous_ads, previous_comments = _filter_period(
        ads, comments, period.previous_start, period.previous_end, filters
    )

    metrics = build_metrics(current_ads, current_comments, previous_ads, previous_comments)
    series = build_time_series(
        current_comments,
        start,
        end,
        lifetime=period.lifetime,
        allow_biweekly=allow_biweekly,
    )

    # ads created before the window still rank when their comments are current
    rank_candidates, _ = apply_search(ads, current_comments, filters.search)
    top_ads = rank_top_ads(rank_candidates, current_comments)
    breakdown = sentiment_breakdown(current_comments)

    logger.debug(
        "aggregate_dashboard brand=%s window=%s..%s granularity=%s ads=%d comments=%d",
        brand, start.isoformat(), end.isoformat(), series.granularity,
        len(current_ads), len(current_comments),
    )

    return DashboardPayload(
        title=title,
        brand=brand,
        granularity=series.granularity,
        period=period,
        metrics=metrics,
        time_series=_time_series_data(series),
        sentiment_distribution=ChartData(
            labels=["Positive", "Negative", "Neutral"],
            values=[breakdown.positive, breakdown.negative, breakdown.neutral],
        ),
        top_ads=top_ads,
        table_data=_table_data(top_ads),
        theme_breakdown=count_themes(current_comments),
        angle_type_distribution=count_angle_types(current_ads),
        ads=current_ads,
        all_comments=current_comments,
    )


def summarize_brand(
    brand: str,
    ads: Sequence[AdRecord],
    comments: Sequence[CommentRecord],
    theme_limit: int = BRAND_THEMES_LIMIT,
) -> BrandSummary:
    """Unfiltered brand totals for the brand detail view."""
    return BrandSummary(
        brand=brand,
        total_ads=len(ads),
        total_comments=len(comments),
        sentiment_distribution=sentiment_breakdown(comments),
        top_themes=count_themes(comments, limit=theme_limit),
    )
