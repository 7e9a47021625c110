from __future__ import annotations
import math
import uuid
import logging
from datetime import datetime, timedelta, timezone
from typing import Any, BinaryIO, Dict, List, Optional, Protocol

from app.blobs import BlobStore
from app.errors import StorageError, ValidationError
from app.models import Report
from app.storage import RecordStore

logger = logging.getLogger(__name__)

MIN_DESCRIPTION_LENGTH = 3


class PhotoUpload(Protocol):
    file: BinaryIO
    filename: Optional[str]
    content_type: Optional[str]


def parse_coordinate(value: Any) -> Optional[float]:
    """Lenient float parsing: anything unusable becomes None instead of an error."""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, str):
        value = value.strip()
        if not value:
            return None
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    return number if math.isfinite(number) else None


def parse_location(lat: Any, lng: Any) -> tuple[Optional[float], Optional[float]]:
    lat_f, lng_f = parse_coordinate(lat), parse_coordinate(lng)
    if lat_f is None or lng_f is None:
        return None, None
    return lat_f, lng_f


def has_photo(photo: Optional[PhotoUpload]) -> bool:
    return photo is not None and bool(getattr(photo, "filename", None))


def new_report_id() -> str:
    return uuid.uuid4().hex


class ReportService:
    def __init__(self, records: RecordStore, blobs: BlobStore):
        self.records = records
        self.blobs = blobs

    def ensure(self) -> None:
        self.blobs.ensure()
        self.records.ensure()

    def submit(
        self,
        description: Optional[str],
        lat: Any = None,
        lng: Any = None,
        photo: Optional[PhotoUpload] = None,
    ) -> Report:
        text = (description or "").strip()
        with_photo = has_photo(photo)
        if len(text) < MIN_DESCRIPTION_LENGTH and not with_photo:
            raise ValidationError()

        blob = None
        if with_photo:
            blob = self.blobs.store(photo.file, photo.content_type, photo.filename)

        lat_f, lng_f = parse_location(lat, lng)
        report = Report(
            id=new_report_id(),
            description=text,
            lat=lat_f,
            lng=lng_f,
            photo=blob.url if blob else None,
            resolved=False,
        )
        try:
            report = self.records.append(report)
        except StorageError:
            if blob is not None:
                logger.warning("Discarding orphaned upload %s", blob.name)
                self.blobs.discard(blob)
            raise
        logger.info("Accepted report %s (photo=%s, location=%s)", report.id, bool(blob), lat_f is not None)
        return report

    def list(self) -> List[Report]:
        return self.records.load_all()

    def toggle(self, report_id: str) -> Report:
        report = self.records.update_by_id(
            report_id, lambda r: r.model_copy(update={"resolved": not r.resolved})
        )
        logger.info("Report %s is now %s", report.id, "resolved" if report.resolved else "pending")
        return report

    def stats(self, days: int = 30) -> Dict[str, Any]:
        since = datetime.now(timezone.utc) - timedelta(days=days)
        reports = self.records.load_all()

        day_counts: Dict[str, int] = {}
        window = 0
        for r in reports:
            created = parse_timestamp(r.created_at)
            if created is None or created < since:
                continue
            window += 1
            day = created.strftime("%Y-%m-%d")
            day_counts[day] = day_counts.get(day, 0) + 1

        resolved = sum(1 for r in reports if r.resolved)
        return {
            "window_days": days,
            "total_reports": len(reports),
            "resolved": resolved,
            "pending": len(reports) - resolved,
            "with_photo": sum(1 for r in reports if r.photo),
            "with_location": sum(1 for r in reports if r.lat is not None and r.lng is not None),
            "window_reports": window,
            "trend": [{"day": k, "count": day_counts[k]} for k in sorted(day_counts.keys())],
        }


def parse_timestamp(value: str) -> Optional[datetime]:
    try:
        ts = datetime.fromisoformat(value.replace("Z", "+00:00"))
    except (AttributeError, ValueError):
        return None
    if ts.tzinfo is None:
        ts = ts.replace(tzinfo=timezone.utc)
    return ts
