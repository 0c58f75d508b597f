"""Ad/comment normalisation -- raw table rows -> canonical records.

The source tables drifted over time (``angel_type`` vs ``Angle Type``,
``theme`` vs ``Cluster name`` ...). Every fallback chain lives here so the
aggregator and the API only ever see one field name per concept.
"""

from __future__ import annotations

from datetime import date, datetime, timezone
from typing import Any, Iterable

from pydantic import BaseModel, field_validator

# ── Field fallback chains (first non-empty value wins) ──
ANGLE_TYPE_KEYS = (
    "angle_type", "angel_type", "Angel Type", "Angel", "angel",
    "Angle Type", "Angle_Type", "angle",
)
AD_BODY_KEYS = ("ad_creative_body", "ad_text", "body")
AD_TIMESTAMP_KEYS = ("created_at", "created_time")
MEDIA_KEYS = ("media_url", "image_url", "video_url")
THEME_KEYS = ("theme", "Cluster name", "cluster_name")
MESSAGE_KEYS = ("message", "content", "text")

UNKNOWN_ANGLE = "Unknown"

AD_COLUMNS = {
    "ad_id", "account_id", "brand", "ad_name", "ad_title", "ad_text",
    "angle_type", "media_url", "image_url", "video_url", "post_link",
    "platform", "explanation", "created_at",
}
COMMENT_COLUMNS = {
    "comment_id", "ad_id", "brand", "message", "sentiment", "theme",
    "created_time", "created_at",
}


def _first(row: dict, keys: Iterable[str]) -> Any:
    for key in keys:
        value = row.get(key)
        if value is None:
            continue
        if isinstance(value, str) and not value.strip():
            continue
        return value
    return None


def parse_timestamp(value: Any) -> datetime | None:
    """Parse a DB/JSON timestamp into an aware UTC datetime.

    Accepts datetimes, dates, epoch seconds and ISO-8601 strings
    (``Z`` / ``+00:00`` / ``+0000`` offsets, date-only). Naive values are
    taken as UTC. Anything else returns None.
    """
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, datetime):
        dt = value
    elif isinstance(value, date):
        dt = datetime(value.year, value.month, value.day)
    elif isinstance(value, (int, float)):
        try:
            return datetime.fromtimestamp(value, tz=timezone.utc)
        except (OverflowError, OSError, ValueError):
            return None
    elif isinstance(value, str):
        text = value.strip()
        if not text:
            return None
        if text.endswith("Z"):
            text = text[:-1] + "+00:00"
        try:
            dt = datetime.fromisoformat(text)
        except ValueError:
            return None
    else:
        return None

    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def resolve_angle_type(row: dict) -> str:
    value = _first(row, ANGLE_TYPE_KEYS)
    return str(value).strip() if value is not None else UNKNOWN_ANGLE


def _clean_str(v: Any) -> str | None:
    if v is None:
        return None
    text = str(v).strip()
    return text or None


class AdRecord(BaseModel):
    """Canonical ad."""

    ad_id: str
    brand: str | None = None
    account_id: str | None = None
    ad_name: str | None = None
    ad_title: str | None = None
    ad_text: str | None = None
    angle_type: str = UNKNOWN_ANGLE
    media_url: str | None = None
    image_url: str | None = None
    video_url: str | None = None
    post_link: str | None = None
    platform: str | None = None
    created_at: datetime | None = None

    @field_validator("ad_id", mode="before")
    @classmethod
    def coerce_id(cls, v: Any) -> str:
        return str(v).strip() if v is not None else ""

    @field_validator(
        "brand", "account_id", "ad_name", "ad_title", "ad_text",
        "media_url", "image_url", "video_url", "post_link", "platform",
        mode="before",
    )
    @classmethod
    def clean_optional(cls, v: Any) -> str | None:
        return _clean_str(v)

    @field_validator("created_at", mode="before")
    @classmethod
    def parse_created(cls, v: Any) -> datetime | None:
        return parse_timestamp(v)

    @property
    def display_name(self) -> str | None:
        return self.ad_name or self.ad_title

    @property
    def thumbnail(self) -> str | None:
        return self.image_url or self.media_url or self.video_url


class CommentRecord(BaseModel):
    """Canonical comment. ``sentiment`` is always lower-case or None."""

    comment_id: str
    ad_id: str | None = None
    brand: str | None = None
    message: str = ""
    sentiment: str | None = None
    theme: str | None = None
    created_time: datetime | None = None

    @field_validator("comment_id", mode="before")
    @classmethod
    def coerce_id(cls, v: Any) -> str:
        return str(v).strip() if v is not None else ""

    @field_validator("ad_id", "brand", "theme", mode="before")
    @classmethod
    def clean_optional(cls, v: Any) -> str | None:
        return _clean_str(v)

    @field_validator("message", mode="before")
    @classmethod
    def clean_message(cls, v: Any) -> str:
        return str(v).strip() if v is not None else ""

    @field_validator("sentiment", mode="before")
    @classmethod
    def lower_sentiment(cls, v: Any) -> str | None:
        text = _clean_str(v)
        return text.lower() if text else None

    @field_validator("created_time", mode="before")
    @classmethod
    def parse_created(cls, v: Any) -> datetime | None:
        return parse_timestamp(v)


def normalize_ad(row: dict) -> AdRecord:
    """Map one raw ad row (any historical column layout) to an AdRecord."""
    media = _first(row, MEDIA_KEYS)
    return AdRecord(
        ad_id=row.get("ad_id"),
        brand=row.get("brand"),
        account_id=row.get("account_id"),
        ad_name=row.get("ad_name"),
        ad_title=row.get("ad_title"),
        ad_text=_first(row, AD_BODY_KEYS),
        angle_type=resolve_angle_type(row),
        media_url=media,
        image_url=row.get("image_url"),
        video_url=row.get("video_url"),
        post_link=row.get("post_link"),
        platform=row.get("platform"),
        created_at=_first(row, AD_TIMESTAMP_KEYS),
    )


def normalize_comment(row: dict) -> CommentRecord:
    """Map one raw comment row to a CommentRecord."""
    return CommentRecord(
        comment_id=row.get("comment_id"),
        ad_id=row.get("ad_id"),
        brand=row.get("brand"),
        message=_first(row, MESSAGE_KEYS),
        sentiment=row.get("sentiment"),
        theme=_first(row, THEME_KEYS),
        created_time=_first(row, ("created_time", "created_at")),
    )


def normalize_ads(rows: Iterable[dict]) -> list[AdRecord]:
    return [normalize_ad(r) for r in rows]


def normalize_comments(rows: Iterable[dict]) -> list[CommentRecord]:
    return [normalize_comment(r) for r in rows]


def split_extra(row: dict, known: set[str]) -> tuple[dict, dict]:
    """Split a raw row into (known columns, leftover legacy columns)."""
    known_part = {k: v for k, v in row.items() if k in known}
    extra = {k: v for k, v in row.items() if k not in known and k != "id"}
    return known_part, extra
