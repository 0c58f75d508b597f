"""Legacy file reports -> report_metadata / reports tables.

Reads data/reports/index.json and copies every report whose JSON blob
exists into the database. Re-running is safe: ids already present are
skipped.

Usage:
    python scripts/migrate_reports.py                       # migrate
    python scripts/migrate_reports.py --dry-run             # report only
    python scripts/migrate_reports.py --reports-dir /path/to/reports
"""
import argparse
import asyncio
import json
import os
import sys
from datetime import datetime, timezone
from pathlib import Path

from loguru import logger

_root = str(Path(__file__).resolve().parent.parent)
sys.path.insert(0, _root)

from sqlalchemy import select

from database import async_session, init_db
from database.models import Report, ReportMetadata
from processor.normalizer import parse_timestamp


def load_index(reports_dir: Path) -> list[dict]:
    index_path = reports_dir / "index.json"
    if not index_path.exists():
        logger.warning(f"[migrate_reports] no index at {index_path}")
        return []
    with open(index_path, encoding="utf-8") as fh:
        return json.load(fh).get("reports", [])


async def migrate(session, reports_dir: Path, dry_run: bool = False) -> dict:
    """Copy file reports into the database.

    Returns counts: migrated / skipped_existing / skipped_missing / failed.
    A broken entry is logged and skipped; the rest still migrate.
    """
    stats = {"migrated": 0, "skipped_existing": 0, "skipped_missing": 0, "failed": 0}

    entries = load_index(reports_dir)
    logger.info(f"[migrate_reports] {len(entries)} reports in index")

    existing = set((await session.execute(select(ReportMetadata.id))).scalars())

    for entry in entries:
        report_id = entry.get("id")
        if not report_id:
            stats["failed"] += 1
            logger.error(f"[migrate_reports] index entry without id: {entry}")
            continue
        if report_id in existing:
            stats["skipped_existing"] += 1
            continue

        blob = reports_dir / f"{report_id}.json"
        if not blob.exists():
            stats["skipped_missing"] += 1
            logger.warning(f"[migrate_reports] {report_id}: data file missing, skipped")
            continue

        try:
            with open(blob, encoding="utf-8") as fh:
                data = json.load(fh)
        except (OSError, ValueError) as e:
            stats["failed"] += 1
            logger.error(f"[migrate_reports] {report_id}: unreadable data file ({e})")
            continue
        if not isinstance(data, dict):
            stats["failed"] += 1
            logger.error(f"[migrate_reports] {report_id}: data file is not an object")
            continue

        if dry_run:
            stats["migrated"] += 1
            logger.info(f"[migrate_reports] would migrate {report_id} ({entry.get('title')})")
            continue

        session.add(
            ReportMetadata(
                id=report_id,
                title=entry.get("title") or "Untitled report",
                brand=entry.get("brand") or data.get("brand"),
                created=parse_timestamp(entry.get("created")) or datetime.now(timezone.utc),
                ad_count=entry.get("adCount", len(data.get("ads", []))),
            )
        )
        session.add(Report(id=report_id, data=data))
        try:
            await session.commit()
        except Exception as e:
            await session.rollback()
            stats["failed"] += 1
            logger.error(f"[migrate_reports] {report_id}: insert failed ({e})")
            continue

        existing.add(report_id)
        stats["migrated"] += 1
        logger.info(f"[migrate_reports] migrated {report_id}")

    return stats


async def main(reports_dir: Path, dry_run: bool):
    await init_db()
    async with async_session() as session:
        stats = await migrate(session, reports_dir, dry_run=dry_run)
    mode = "dry-run" if dry_run else "done"
    logger.info(
        f"[migrate_reports] {mode}: migrated={stats['migrated']} "
        f"existing={stats['skipped_existing']} missing={stats['skipped_missing']} "
        f"failed={stats['failed']}"
    )


if __name__ == "__main__":
    os.chdir(_root)
    parser = argparse.ArgumentParser(description="Migrate file reports into the database")
    parser.add_argument(
        "--reports-dir",
        default=os.getenv("REPORTS_DIR", "data/reports"),
        help="directory holding index.json and <id>.json files",
    )
    parser.add_argument("--dry-run", action="store_true", help="report only, write nothing")
    args = parser.parse_args()
    asyncio.run(main(Path(args.reports_dir), args.dry_run))
