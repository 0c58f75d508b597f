"""Export API -- CSV & Excel for the filtered dashboard comments and ads."""

import csv
import io
import logging
from collections import Counter
from datetime import datetime, timezone
from urllib.parse import quote

from fastapi import APIRouter, Depends, HTTPException
from fastapi.responses import StreamingResponse
from openpyxl import Workbook
from openpyxl.styles import Alignment, Font, PatternFill
from openpyxl.utils import get_column_letter
from sqlalchemy.ext.asyncio import AsyncSession

from api.deps import dashboard_filters
from api.services.dashboard_service import build_dashboard
from database import get_db
from processor.dashboard_metrics import DashboardFilters, DashboardPayload

logger = logging.getLogger("adpulse.api.export")

router = APIRouter(prefix="/api/export", tags=["export"])

# ---------------------------------------------------------------------------
# Utility helpers
# ---------------------------------------------------------------------------

UTF8_BOM = "\ufeff"
XLSX_MEDIA_TYPE = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"

COMMENT_HEADER = ["comment_id", "ad_id", "brand", "created_time", "sentiment", "theme", "message"]
AD_HEADER = [
    "ad_id", "brand", "ad_name", "platform", "angle_type", "created_at",
    "comments", "positive", "negative", "post_link",
]


def _safe(value) -> str:
    if value is None:
        return ""
    return str(value)


def _utc_str(dt: datetime | None) -> str:
    if dt is None:
        return ""
    return dt.astimezone(timezone.utc).strftime("%Y-%m-%d %H:%M:%S")


def _today_str() -> str:
    return datetime.now(timezone.utc).strftime("%Y%m%d")


def _filename(kind: str, brand: str | None, ext: str) -> str:
    scope = brand or "all"
    return f"adpulse_{kind}_{scope}_{_today_str()}.{ext}"


def _safe_cd(filename: str) -> dict[str, str]:
    """RFC 5987 Content-Disposition with non-ASCII support."""
    ascii_name = filename.encode("ascii", "replace").decode("ascii").replace("?", "_")
    utf8_name = quote(filename, safe="")
    return {"Content-Disposition": f"attachment; filename=\"{ascii_name}\"; filename*=UTF-8''{utf8_name}"}


def _csv_streaming_response(filename: str, header: list[str], rows: list[list[str]]) -> StreamingResponse:
    buf = io.StringIO()
    buf.write(UTF8_BOM)
    writer = csv.writer(buf)
    writer.writerow(header)
    writer.writerows(rows)
    buf.seek(0)

    return StreamingResponse(
        iter([buf.getvalue()]),
        media_type="text/csv; charset=utf-8",
        headers=_safe_cd(filename),
    )


# ---------------------------------------------------------------------------
# Excel helpers
# ---------------------------------------------------------------------------

_HEADER_FONT = Font(bold=True, color="FFFFFF", size=11)
_HEADER_FILL = PatternFill(start_color="2563EB", end_color="2563EB", fill_type="solid")
_HEADER_ALIGN = Alignment(horizontal="center", vertical="center")


def _style_header(ws, col_count: int):
    for col in range(1, col_count + 1):
        cell = ws.cell(row=1, column=col)
        cell.font = _HEADER_FONT
        cell.fill = _HEADER_FILL
        cell.alignment = _HEADER_ALIGN


def _auto_width(ws, col_count: int, max_width: int = 40):
    for col in range(1, col_count + 1):
        max_len = 0
        for row in ws.iter_rows(min_col=col, max_col=col):
            for cell in row:
                val = str(cell.value or "")
                max_len = max(max_len, min(len(val), max_width))
        ws.column_dimensions[get_column_letter(col)].width = max(max_len + 2, 10)


def _xlsx_response(title: str, header: list[str], rows: list[list], filename: str) -> StreamingResponse:
    wb = Workbook()
    ws = wb.active
    ws.title = title
    ws.append(header)
    for row in rows:
        ws.append(row)
    _style_header(ws, len(header))
    _auto_width(ws, len(header))
    ws.freeze_panes = "A2"

    buf = io.BytesIO()
    wb.save(buf)
    buf.seek(0)
    return StreamingResponse(
        iter([buf.getvalue()]),
        media_type=XLSX_MEDIA_TYPE,
        headers=_safe_cd(filename),
    )


# ---------------------------------------------------------------------------
# Row builders
# ---------------------------------------------------------------------------


def _comment_rows(payload: DashboardPayload) -> list[list[str]]:
    return [
        [
            c.comment_id,
            _safe(c.ad_id),
            _safe(c.brand),
            _utc_str(c.created_time),
            _safe(c.sentiment),
            _safe(c.theme),
            c.message,
        ]
        for c in payload.all_comments
    ]


def _ad_rows(payload: DashboardPayload) -> list[list]:
    totals = Counter(c.ad_id for c in payload.all_comments if c.ad_id)
    positives = Counter(
        c.ad_id for c in payload.all_comments if c.ad_id and c.sentiment == "positive"
    )
    negatives = Counter(
        c.ad_id for c in payload.all_comments if c.ad_id and c.sentiment == "negative"
    )
    return [
        [
            ad.ad_id,
            _safe(ad.brand),
            _safe(ad.display_name),
            _safe(ad.platform),
            ad.angle_type,
            _utc_str(ad.created_at),
            totals[ad.ad_id],
            positives[ad.ad_id],
            negatives[ad.ad_id],
            _safe(ad.post_link),
        ]
        for ad in payload.ads
    ]


async def _payload(db: AsyncSession, filters: DashboardFilters, brand: str | None) -> DashboardPayload:
    try:
        return await build_dashboard(db, filters, brand=brand)
    except Exception:
        logger.exception("[export] aggregation failed (brand=%s)", brand)
        raise HTTPException(status_code=500, detail="Failed to export data")


# ---------------------------------------------------------------------------
# 1. GET /api/export/comments(.xlsx)
# ---------------------------------------------------------------------------
@router.get("/comments")
async def export_comments(
    brand: str | None = None,
    filters: DashboardFilters = Depends(dashboard_filters),
    db: AsyncSession = Depends(get_db),
):
    """Comments in the current dashboard window (same filters) as CSV."""
    payload = await _payload(db, filters, brand)
    return _csv_streaming_response(
        _filename("comments", brand, "csv"), COMMENT_HEADER, _comment_rows(payload)
    )


@router.get("/comments.xlsx")
async def export_comments_xlsx(
    brand: str | None = None,
    filters: DashboardFilters = Depends(dashboard_filters),
    db: AsyncSession = Depends(get_db),
):
    payload = await _payload(db, filters, brand)
    return _xlsx_response(
        "Comments", COMMENT_HEADER, _comment_rows(payload), _filename("comments", brand, "xlsx")
    )


# ---------------------------------------------------------------------------
# 2. GET /api/export/ads(.xlsx)
# ---------------------------------------------------------------------------
@router.get("/ads")
async def export_ads(
    brand: str | None = None,
    filters: DashboardFilters = Depends(dashboard_filters),
    db: AsyncSession = Depends(get_db),
):
    """Ads in the current dashboard window with per-ad comment counts, as CSV."""
    payload = await _payload(db, filters, brand)
    rows = [[_safe(v) for v in row] for row in _ad_rows(payload)]
    return _csv_streaming_response(_filename("ads", brand, "csv"), AD_HEADER, rows)


@router.get("/ads.xlsx")
async def export_ads_xlsx(
    brand: str | None = None,
    filters: DashboardFilters = Depends(dashboard_filters),
    db: AsyncSession = Depends(get_db),
):
    payload = await _payload(db, filters, brand)
    return _xlsx_response("Ads", AD_HEADER, _ad_rows(payload), _filename("ads", brand, "xlsx"))
