from __future__ import annotations

import io
import os
import tempfile
from dataclasses import dataclass, field
from pathlib import Path
from typing import BinaryIO, Optional

# Keep the import-time default service away from the working directory.
os.environ.setdefault("DATA_DIR", tempfile.mkdtemp(prefix="civic-reports-"))

import pytest
from fastapi.testclient import TestClient

from app.blobs import BlobStore
from app.service import ReportService
from app.storage import RecordStore

MAX_BYTES = 5 * 1024 * 1024


@dataclass
class Upload:
    filename: Optional[str]
    content_type: Optional[str]
    data: bytes = b""
    file: BinaryIO = field(init=False)

    def __post_init__(self) -> None:
        self.file = io.BytesIO(self.data)


@pytest.fixture
def records(tmp_path: Path) -> RecordStore:
    store = RecordStore(str(tmp_path / "db.json"))
    store.ensure()
    return store


@pytest.fixture
def blobs(tmp_path: Path) -> BlobStore:
    store = BlobStore(str(tmp_path / "uploads"), MAX_BYTES)
    store.ensure()
    return store


@pytest.fixture
def service(records: RecordStore, blobs: BlobStore) -> ReportService:
    return ReportService(records, blobs)


@pytest.fixture
def client(service: ReportService):
    from app.main import app

    previous = app.state.service
    app.state.service = service
    try:
        yield TestClient(app)
    finally:
        app.state.service = previous
