"""Dashboard aggregation over in-memory ad/comment records."""

import sys
from datetime import datetime, timedelta, timezone
from pathlib import Path

sys.path.insert(0, str(Path(__file__).resolve().parent.parent))

import pytest
from pydantic import ValidationError

from processor.dashboard_metrics import (
    EPOCH,
    DashboardFilters,
    aggregate_dashboard,
    apply_search,
    calculate_percentage_change,
    compute_period,
    count_themes,
    filter_by_sentiment,
    make_metric,
    rank_top_ads,
    sentiment_breakdown,
    summarize_brand,
)
from processor.normalizer import AdRecord, CommentRecord


def utc(*args):
    return datetime(*args, tzinfo=timezone.utc)


def ad(ad_id, created, **kw):
    return AdRecord(ad_id=ad_id, brand="Acme", created_at=created, **kw)


def comment(cid, ad_id, sentiment, created, theme=None, message="text"):
    return CommentRecord(
        comment_id=cid, ad_id=ad_id, brand="Acme", message=message,
        sentiment=sentiment, theme=theme, created_time=created,
    )


@pytest.fixture
def ads():
    return [
        ad("A1", utc(2024, 1, 5), ad_name="Summer Sale", angle_type="UGC"),
        ad("A2", utc(2023, 12, 20), ad_title="Winter Promo"),
        ad("A3", utc(2024, 1, 20), ad_name="New Year"),
    ]


@pytest.fixture
def comments():
    return [
        comment("c1", "A1", "positive", utc(2024, 1, 6), theme="Price"),
        comment("c2", "A1", "negative", utc(2024, 1, 7), theme="Price", message="too pricey"),
        comment("c3", "A1", "positive", utc(2024, 1, 10), theme="Quality"),
        comment("c4", "A2", "positive", utc(2024, 1, 15)),
        comment("c5", "A3", "neutral", utc(2024, 1, 21)),
        comment("c6", "A2", "positive", utc(2023, 12, 25)),
        comment("c7", "A2", "negative", utc(2023, 12, 26)),
    ]


@pytest.fixture
def january():
    return DashboardFilters(
        start_date="2024-01-01T00:00:00Z", end_date="2024-01-31T23:59:59Z"
    )


def metric(payload, metric_id):
    return next(m for m in payload.metrics if m.id == metric_id)


# ── Filters / period ──


def test_filters_reject_unknown_sentiment():
    with pytest.raises(ValidationError):
        DashboardFilters(sentiment="angry")


def test_filters_reject_bad_date():
    with pytest.raises(ValidationError):
        DashboardFilters(start_date="yesterday-ish")


def test_filters_normalise_values():
    f = DashboardFilters(sentiment=" Positive ", search="  price ")
    assert f.sentiment == "positive"
    assert f.search == "price"


def test_previous_period_has_equal_length():
    period = compute_period(utc(2024, 1, 1), utc(2024, 1, 31))
    assert period.previous_end == utc(2023, 12, 31, 23, 59, 59, 999000)
    assert period.previous_start == utc(2023, 12, 2)
    assert not period.lifetime


def test_lifetime_period_compares_against_epoch():
    period = compute_period(utc(1900, 1, 1), utc(2024, 1, 31))
    assert period.lifetime
    assert period.previous_start == EPOCH


def test_neutral_filter_includes_unlabelled():
    items = [
        comment("1", None, "positive", None),
        comment("2", None, None, None),
        comment("3", None, "mixed", None),
    ]
    assert [c.comment_id for c in filter_by_sentiment(items, "neutral")] == ["2", "3"]


# ── Metrics ──


def test_percentage_change():
    assert calculate_percentage_change(0, 0) == 0
    assert calculate_percentage_change(5, 0) == 100
    assert calculate_percentage_change(50, 100) == -50


def test_lower_is_better_metric_is_favorable_when_falling():
    m = make_metric("negative_sentiment", "Negative", 20, 50, higher_is_better=False)
    assert m.trend == "down"
    assert m.favorable is True


def test_flat_metric_has_no_favorability():
    m = make_metric("total_ads", "Total Ads", 3, 3)
    assert m.trend == "flat"
    assert m.favorable is None


def test_january_window(ads, comments, january):
    payload = aggregate_dashboard(ads, comments, january)

    assert payload.granularity == "daily"
    assert len(payload.time_series.labels) == 31
    assert payload.time_series.labels[0] == "Jan 1"

    assert metric(payload, "total_ads").value == 2
    assert metric(payload, "total_ads").change == 100
    assert metric(payload, "total_comments").value == 5
    assert metric(payload, "total_comments").change == pytest.approx(150)
    assert metric(payload, "positive_sentiment").value == pytest.approx(60)
    assert metric(payload, "positive_sentiment").change == pytest.approx(20)

    negative = metric(payload, "negative_sentiment")
    assert negative.value == pytest.approx(20)
    assert negative.change == pytest.approx(-60)
    assert negative.favorable is True

    neutral = metric(payload, "neutral_sentiment")
    assert neutral.change == 100
    assert neutral.favorable is False

    assert payload.sentiment_distribution.values == [3, 1, 1]


def test_bucket_totals_match_comment_count(ads, comments, january):
    payload = aggregate_dashboard(ads, comments, january)
    totals = payload.time_series.datasets[0]
    assert totals.name == "Total Comments"
    assert sum(totals.data) == len(payload.all_comments) == 5


def test_top_ads_include_older_ads_with_current_comments(ads, comments, january):
    payload = aggregate_dashboard(ads, comments, january)

    assert [a.ad_id for a in payload.top_ads] == ["A1", "A2", "A3"]
    a1, a2, a3 = payload.top_ads
    assert a1.comments_count == 3
    assert a1.performance == 97
    assert a2.performance == 100
    assert a3.performance == 10
    assert a2.ad_name == "Winter Promo"
    assert [row.id for row in payload.table_data.rows] == ["A1", "A2", "A3"]


def test_theme_and_angle_breakdowns(ads, comments, january):
    payload = aggregate_dashboard(ads, comments, january)

    themes = [(t.name, t.count) for t in payload.theme_breakdown]
    assert themes == [("Price", 2), ("Quality", 1)]
    assert payload.theme_breakdown[0].percentage == pytest.approx(40)

    angles = [(a.name, a.count) for a in payload.angle_type_distribution]
    assert angles == [("UGC", 1), ("Unknown", 1)]


def test_sentiment_filter_leaves_ads_alone(ads, comments):
    filters = DashboardFilters(
        start_date="2024-01-01T00:00:00Z", end_date="2024-01-31T23:59:59Z",
        sentiment="positive",
    )
    payload = aggregate_dashboard(ads, comments, filters)

    assert metric(payload, "total_comments").value == 3
    assert metric(payload, "positive_sentiment").value == 100
    assert metric(payload, "total_ads").value == 2
    assert all(c.sentiment == "positive" for c in payload.all_comments)


def test_search_filters_both_sides(ads, comments):
    filters = DashboardFilters(
        start_date="2024-01-01T00:00:00Z", end_date="2024-01-31T23:59:59Z",
        search="PRICEY",
    )
    payload = aggregate_dashboard(ads, comments, filters)

    assert [c.comment_id for c in payload.all_comments] == ["c2"]
    assert [a.ad_id for a in payload.ads] == ["A1"]


def test_search_by_ad_pulls_in_its_comments(ads, comments):
    found_ads, found_comments = apply_search(ads, comments, "summer")
    assert [a.ad_id for a in found_ads] == ["A1"]
    assert [c.comment_id for c in found_comments] == ["c1", "c2", "c3"]


def test_lifetime_window(ads, comments):
    filters = DashboardFilters(start_date="1900-01-01T00:00:00Z", end_date="2024-01-31T23:59:59Z")
    payload = aggregate_dashboard(ads, comments, filters)

    assert payload.period.lifetime
    assert payload.granularity == "yearly"
    labels = payload.time_series.labels
    assert labels[0] == "1970"
    totals = dict(zip(labels, payload.time_series.datasets[0].data))
    assert totals["2023"] == 2
    assert totals["2024"] == 5
    assert metric(payload, "total_comments").value == 7
    assert metric(payload, "total_comments").change == 100


def test_empty_comments(ads, january):
    payload = aggregate_dashboard(ads, [], january)

    comments_metric = metric(payload, "total_comments")
    assert comments_metric.value == 0
    assert comments_metric.change == 0
    assert comments_metric.favorable is None
    assert payload.top_ads == []
    assert payload.theme_breakdown == []
    assert payload.sentiment_distribution.values == [0, 0, 0]
    assert sum(payload.time_series.datasets[0].data) == 0


def test_default_window_is_last_30_days(ads, comments):
    now = utc(2024, 2, 1)
    payload = aggregate_dashboard(ads, comments, now=now)
    assert payload.period.end == now
    assert payload.period.start == now - timedelta(days=30)


def test_default_start_before_1980_is_not_lifetime(ads, comments):
    payload = aggregate_dashboard(
        ads, comments, DashboardFilters(end_date="1980-01-10T00:00:00Z")
    )
    assert not payload.period.lifetime
    assert payload.period.start == utc(1979, 12, 11)
    assert payload.granularity == "daily"


def test_inputs_are_not_mutated(ads, comments, january):
    before = [c.model_dump() for c in comments]
    aggregate_dashboard(ads, comments, january)
    assert [c.model_dump() for c in comments] == before


# ── Ranking / brand summary ──


def test_ranking_is_stable_and_drops_silent_ads():
    candidates = [ad(f"B{i}", utc(2024, 1, 1)) for i in range(1, 5)]
    items = [
        comment("1", "B1", "positive", utc(2024, 1, 2)),
        comment("2", "B1", "positive", utc(2024, 1, 2)),
        comment("3", "B2", "negative", utc(2024, 1, 2)),
        comment("4", "B2", "negative", utc(2024, 1, 2)),
        comment("5", "B3", "neutral", utc(2024, 1, 2)),
        comment("6", "B3", "neutral", utc(2024, 1, 2)),
        comment("7", "B3", "neutral", utc(2024, 1, 2)),
    ]
    ranked = rank_top_ads(candidates, items)
    assert [r.ad_id for r in ranked] == ["B3", "B1", "B2"]
    assert ranked[1].performance == 100
    assert ranked[2].performance == 20


def test_top_ads_keep_five_most_commented():
    candidates = [ad(f"A{i}", utc(2024, 1, 1)) for i in range(8)]
    items = [
        comment(f"A{i}-{j}", f"A{i}", "positive", utc(2024, 1, 2))
        for i in range(8)
        for j in range(i + 1)
    ]
    ranked = rank_top_ads(candidates, items)
    assert [r.ad_id for r in ranked] == ["A7", "A6", "A5", "A4", "A3"]
    assert ranked[0].comments_count == 8


def test_theme_breakdown_keeps_five(january):
    items = [
        comment(f"t{i}-{j}", "A1", "positive", utc(2024, 1, 10), theme=f"T{i}")
        for i in range(6)
        for j in range(i + 1)
    ]
    themes = count_themes(items)
    assert [t.name for t in themes] == ["T5", "T4", "T3", "T2", "T1"]

    payload = aggregate_dashboard([ad("A1", utc(2024, 1, 5))], items, january)
    assert len(payload.theme_breakdown) == 5


def test_summarize_brand(ads, comments):
    summary = summarize_brand("Acme", ads, comments)
    assert summary.total_ads == 3
    assert summary.total_comments == 7
    assert summary.sentiment_distribution.positive == 4
    assert summary.top_themes[0].name == "Price"


# ── Reference scenarios ──


def test_two_comment_january_scenario():
    ads = [AdRecord(ad_id="a1", brand="X")]
    comments = [
        CommentRecord(comment_id="c1", ad_id="a1", sentiment="Positive", created_time="2024-01-05"),
        CommentRecord(comment_id="c2", ad_id="a1", sentiment="negative", created_time="2024-01-06"),
    ]
    filters = DashboardFilters(start_date="2024-01-01", end_date="2024-01-31")
    payload = aggregate_dashboard(ads, comments, filters, brand="X")

    assert metric(payload, "total_comments").value == 2
    assert metric(payload, "positive_sentiment").value == 50
    assert metric(payload, "negative_sentiment").value == 50
    assert metric(payload, "neutral_sentiment").value == 0

    labels = payload.time_series.labels
    total, positive, negative = (d.data for d in payload.time_series.datasets)
    assert len(labels) == 31
    jan5, jan6 = labels.index("Jan 5"), labels.index("Jan 6")
    assert (total[jan5], positive[jan5]) == (1, 1)
    assert (total[jan6], negative[jan6]) == (1, 1)


def test_lifetime_from_1970_scenario():
    end = utc(2026, 10, 18)
    filters = DashboardFilters(start_date="1970-01-01T00:00:00Z", end_date=end)
    payload = aggregate_dashboard([], [], filters)

    assert payload.period.previous_start == EPOCH
    assert payload.period.previous_end == EPOCH - timedelta(milliseconds=1)
    labels = payload.time_series.labels
    assert labels[0] == "1970"
    assert labels[-1] == "2026"


@pytest.mark.parametrize("p,n,t", [(0, 0, 0), (1, 1, 1), (3, 0, 4), (0, 7, 0)])
def test_percentages_sum_to_100(p, n, t):
    items = (
        [comment(f"p{i}", None, "positive", None) for i in range(p)]
        + [comment(f"n{i}", None, "negative", None) for i in range(n)]
        + [comment(f"t{i}", None, None, None) for i in range(t)]
    )
    b = sentiment_breakdown(items)
    total = b.positive_pct + b.negative_pct + b.neutral_pct
    if p + n + t:
        assert total == pytest.approx(100)
    else:
        assert total == 0
