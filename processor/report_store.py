"""Report snapshot storage -- file/database store factory.

Reports are immutable JSON snapshots ({"brand": ..., "ads": [...]}) plus a
small metadata row used for listings.
REPORT_STORE_TYPE selects the backend (database/file).

File layout (legacy, still readable by scripts/migrate_reports.py):

    data/reports/index.json     {"reports": [{id, title, brand, created, adCount}, ...]}
    data/reports/<id>.json      report data
"""

from __future__ import annotations

import json
import os
import re
import uuid
from abc import ABC, abstractmethod
from datetime import datetime, timezone
from pathlib import Path

from loguru import logger
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from database.models import Report, ReportMetadata

DEFAULT_BASE_URL = "http://localhost:3000"
REPORT_ID_RE = re.compile(r"^[A-Za-z0-9-]+$")


class ReportValidationError(ValueError):
    """Report payload is missing required fields."""


def is_valid_report_id(report_id: str | None) -> bool:
    return bool(report_id) and REPORT_ID_RE.match(report_id) is not None


def report_url(report_id: str) -> str:
    base = os.getenv("BASE_URL", DEFAULT_BASE_URL).rstrip("/")
    return f"{base}/reports/{report_id}"


def validate_report_payload(body) -> tuple[str, dict]:
    """Return (title, data) or raise ReportValidationError."""
    if not isinstance(body, dict) or not body.get("title") or "data" not in body:
        raise ReportValidationError("Missing required fields: title and data")
    data = body["data"]
    if not isinstance(data, dict) or not data.get("brand") or not isinstance(data.get("ads"), list):
        raise ReportValidationError('Data must include "brand" and "ads" array')
    return str(body["title"]), data


def _iso(dt: datetime | None) -> str | None:
    if dt is None:
        return None
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt.isoformat()


class ReportStore(ABC):
    """Report storage interface."""

    @abstractmethod
    async def list_reports(self) -> list[dict]:
        """Metadata for every report: id, title, brand, created, ad_count."""

    @abstractmethod
    async def get_report(self, report_id: str) -> dict | None:
        """Report data, or None when the id is unknown."""

    @abstractmethod
    async def create_report(self, title: str, data: dict) -> dict:
        """Persist a report and return its metadata."""


class FileReportStore(ReportStore):
    """Local JSON files (development / legacy deployments)."""

    def __init__(self, base_dir: str | Path | None = None):
        self.base_dir = Path(base_dir or os.getenv("REPORTS_DIR", "data/reports"))
        self.base_dir.mkdir(parents=True, exist_ok=True)

    @property
    def index_path(self) -> Path:
        return self.base_dir / "index.json"

    def _read_index(self) -> list[dict]:
        if not self.index_path.exists():
            self.index_path.write_text(json.dumps({"reports": []}), encoding="utf-8")
            return []
        with open(self.index_path, encoding="utf-8") as fh:
            return json.load(fh).get("reports", [])

    @staticmethod
    def _from_index(entry: dict) -> dict:
        return {
            "id": entry["id"],
            "title": entry.get("title"),
            "brand": entry.get("brand"),
            "created": entry.get("created"),
            "ad_count": entry.get("adCount", entry.get("ad_count", 0)),
        }

    async def list_reports(self) -> list[dict]:
        return [self._from_index(e) for e in self._read_index()]

    async def get_report(self, report_id: str) -> dict | None:
        if not is_valid_report_id(report_id):
            return None
        path = self.base_dir / f"{report_id}.json"
        if not path.exists():
            return None
        with open(path, encoding="utf-8") as fh:
            return json.load(fh)

    async def create_report(self, title: str, data: dict) -> dict:
        report_id = str(uuid.uuid4())
        entry = {
            "id": report_id,
            "title": title,
            "brand": data.get("brand"),
            "created": _iso(datetime.now(timezone.utc)),
            "adCount": len(data.get("ads", [])),
        }

        with open(self.base_dir / f"{report_id}.json", "w", encoding="utf-8") as fh:
            json.dump(data, fh, indent=2, ensure_ascii=False)

        reports = self._read_index()
        reports.append(entry)
        with open(self.index_path, "w", encoding="utf-8") as fh:
            json.dump({"reports": reports}, fh, indent=2, ensure_ascii=False)

        logger.info(f"[report_store] created report {report_id} ({entry['adCount']} ads)")
        return self._from_index(entry)

    def __repr__(self):
        return f"FileReportStore({self.base_dir})"


class DatabaseReportStore(ReportStore):
    """report_metadata + reports tables."""

    def __init__(self, db: AsyncSession):
        self.db = db

    @staticmethod
    def _meta(row: ReportMetadata) -> dict:
        return {
            "id": row.id,
            "title": row.title,
            "brand": row.brand,
            "created": _iso(row.created),
            "ad_count": row.ad_count or 0,
        }

    async def list_reports(self) -> list[dict]:
        result = await self.db.execute(
            select(ReportMetadata).order_by(ReportMetadata.created)
        )
        return [self._meta(r) for r in result.scalars()]

    async def get_report(self, report_id: str) -> dict | None:
        if not is_valid_report_id(report_id):
            return None
        report = await self.db.get(Report, report_id)
        return report.data if report else None

    async def create_report(self, title: str, data: dict) -> dict:
        report_id = str(uuid.uuid4())
        meta = ReportMetadata(
            id=report_id,
            title=title,
            brand=data.get("brand"),
            created=datetime.now(timezone.utc),
            ad_count=len(data.get("ads", [])),
        )
        self.db.add(meta)
        self.db.add(Report(id=report_id, data=data))
        await self.db.commit()

        logger.info(f"[report_store] created report {report_id} ({meta.ad_count} ads)")
        return self._meta(meta)

    def __repr__(self):
        return "DatabaseReportStore()"


def get_report_store(db: AsyncSession) -> ReportStore:
    """Environment-driven report store factory.

    REPORT_STORE_TYPE:
        - "database" (default): report_metadata + reports tables
        - "file": JSON files under REPORTS_DIR
    """
    store_type = os.getenv("REPORT_STORE_TYPE", "database").lower()

    if store_type == "file":
        return FileReportStore()
    return DatabaseReportStore(db)
