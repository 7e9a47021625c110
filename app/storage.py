from __future__ import annotations
import os, json, logging, tempfile, threading
from datetime import datetime, timezone
from typing import Callable, List

import pydantic

from app.errors import MalformedStoreError, NotFoundError, StorageError
from app.models import Report

logger = logging.getLogger(__name__)


def utc_now() -> str:
    return datetime.now(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


class RecordStore:
    """Newest-first collection of reports kept in a single JSON file.

    Every operation loads the whole file and every mutation rewrites it, so
    all of them run under one lock to keep concurrent requests from losing
    each other's writes.
    """

    def __init__(self, path: str):
        self.path = path
        self._lock = threading.Lock()

    def ensure(self) -> None:
        os.makedirs(os.path.dirname(os.path.abspath(self.path)), exist_ok=True)
        with self._lock:
            if not os.path.exists(self.path):
                self._write([])

    # ---------------- Read ----------------
    def load_all(self) -> List[Report]:
        with self._lock:
            return self._read()

    def _read(self) -> List[Report]:
        try:
            return self._decode()
        except FileNotFoundError:
            logger.warning("Record file %s is missing, serving an empty list", self.path)
            return []
        except MalformedStoreError as e:
            logger.error("Record file %s is unreadable: %s", self.path, e.detail)
            return []
        except OSError as e:
            logger.error("Cannot read record file %s: %s", self.path, e)
            return []

    def _decode(self) -> List[Report]:
        try:
            with open(self.path, "r", encoding="utf-8") as f:
                data = json.loads(f.read())
        except ValueError as e:
            # UnicodeDecodeError lands here too
            raise MalformedStoreError(detail=f"invalid JSON: {e}")
        rows = data.get("reports") if isinstance(data, dict) else None
        if not isinstance(rows, list):
            raise MalformedStoreError(detail="missing 'reports' list")
        reports: List[Report] = []
        for i, row in enumerate(rows):
            try:
                reports.append(Report.model_validate(row))
            except pydantic.ValidationError as e:
                logger.error("Skipping bad record #%d in %s: %d error(s)", i, self.path, e.error_count())
                continue
        return reports

    # ---------------- Write ----------------
    def _write(self, reports: List[Report]) -> None:
        payload = {"reports": [r.to_json() for r in reports]}
        folder = os.path.dirname(os.path.abspath(self.path))
        tmp = None
        try:
            fd, tmp = tempfile.mkstemp(prefix=".db-", suffix=".tmp", dir=folder)
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(payload, f, ensure_ascii=False, indent=2)
                f.flush()
                os.fsync(f.fileno())
            os.replace(tmp, self.path)
        except OSError as e:
            logger.error("Cannot write record file %s: %s", self.path, e)
            if tmp and os.path.exists(tmp):
                os.unlink(tmp)
            raise StorageError(detail=str(e)) from e

    def append(self, report: Report) -> Report:
        with self._lock:
            reports = self._read()
            stamp = utc_now()
            # ISO timestamps in the same format compare correctly as strings
            if reports and reports[0].created_at > stamp:
                stamp = reports[0].created_at
            report = report.model_copy(update={"created_at": stamp})
            reports.insert(0, report)
            self._write(reports)
            return report

    def update_by_id(self, report_id: str, mutator: Callable[[Report], Report]) -> Report:
        with self._lock:
            reports = self._read()
            for i, r in enumerate(reports):
                if r.id == report_id:
                    reports[i] = mutator(r)
                    self._write(reports)
                    return reports[i]
            raise NotFoundError(f"Report {report_id} not found")
