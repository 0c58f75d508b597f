"""JSON exports of the source ad/comment tables -> ads / comments.

Each input file is a JSON array of row objects (or {"rows": [...]}).
Known columns land in their mapped fields; everything else (legacy
angle-type spellings, cluster names ...) is kept in extra_data. Existing
ad_id / comment_id rows are updated in place.

Usage:
    python scripts/import_rows.py --ads ads.json --comments comments.json
"""
import argparse
import asyncio
import json
import os
import sys
from pathlib import Path

from loguru import logger

_root = str(Path(__file__).resolve().parent.parent)
sys.path.insert(0, _root)

from sqlalchemy import select

from database import async_session, init_db
from database.models import Ad, Comment
from processor.normalizer import (
    AD_COLUMNS,
    COMMENT_COLUMNS,
    normalize_ad,
    normalize_comment,
    split_extra,
)


def read_rows(path: Path) -> list[dict]:
    with open(path, encoding="utf-8") as fh:
        payload = json.load(fh)
    if isinstance(payload, dict):
        payload = payload.get("rows", [])
    return [r for r in payload if isinstance(r, dict)]


def ad_values(row: dict) -> dict | None:
    """Column values for one raw ad row, or None when it has no ad_id."""
    record = normalize_ad(row)
    if not record.ad_id:
        return None
    known, extra = split_extra(row, AD_COLUMNS)
    return {
        **record.model_dump(),
        "explanation": known.get("explanation"),
        "extra_data": extra,
    }


def comment_values(row: dict) -> dict | None:
    record = normalize_comment(row)
    if not record.comment_id:
        return None
    _, extra = split_extra(row, COMMENT_COLUMNS)
    values = record.model_dump()
    # keep the source casing; readers lower-case on the way out
    values["sentiment"] = row.get("sentiment") or None
    values["extra_data"] = extra
    return values


async def _upsert(session, model, key: str, rows: list[dict]) -> tuple[int, int]:
    inserted = updated = 0
    for values in rows:
        result = await session.execute(
            select(model).where(getattr(model, key) == values[key])
        )
        obj = result.scalar_one_or_none()
        if obj is None:
            session.add(model(**values))
            inserted += 1
        else:
            for field, value in values.items():
                setattr(obj, field, value)
            updated += 1
    await session.commit()
    return inserted, updated


async def import_ads(session, raw_rows: list[dict]) -> tuple[int, int]:
    rows = [v for v in (ad_values(r) for r in raw_rows) if v]
    skipped = len(raw_rows) - len(rows)
    if skipped:
        logger.warning(f"[import_rows] {skipped} ad rows without ad_id skipped")
    return await _upsert(session, Ad, "ad_id", rows)


async def import_comments(session, raw_rows: list[dict]) -> tuple[int, int]:
    rows = [v for v in (comment_values(r) for r in raw_rows) if v]
    skipped = len(raw_rows) - len(rows)
    if skipped:
        logger.warning(f"[import_rows] {skipped} comment rows without comment_id skipped")
    return await _upsert(session, Comment, "comment_id", rows)


async def main(ads_path: Path | None, comments_path: Path | None):
    await init_db()
    async with async_session() as session:
        if ads_path:
            inserted, updated = await import_ads(session, read_rows(ads_path))
            logger.info(f"[import_rows] ads: inserted={inserted} updated={updated}")
        if comments_path:
            inserted, updated = await import_comments(session, read_rows(comments_path))
            logger.info(f"[import_rows] comments: inserted={inserted} updated={updated}")


if __name__ == "__main__":
    os.chdir(_root)
    parser = argparse.ArgumentParser(description="Import ad/comment JSON exports")
    parser.add_argument("--ads", type=Path, help="JSON file of ad rows")
    parser.add_argument("--comments", type=Path, help="JSON file of comment rows")
    args = parser.parse_args()
    if not args.ads and not args.comments:
        parser.error("nothing to import: pass --ads and/or --comments")
    asyncio.run(main(args.ads, args.comments))
