from __future__ import annotations
import os, time, secrets, logging
from dataclasses import dataclass
from typing import BinaryIO, Optional

from app.errors import NotFoundError, PayloadTooLarge, StorageError, UnsupportedMediaType

logger = logging.getLogger(__name__)

ALLOWED_EXTENSIONS = {".jpeg", ".jpg", ".png", ".webp"}
ALLOWED_TYPES = {
    "image/jpeg": ".jpg",
    "image/jpg": ".jpg",
    "image/png": ".png",
    "image/webp": ".webp",
}
DEFAULT_EXTENSION = ".jpg"
CHUNK_SIZE = 64 * 1024


@dataclass(frozen=True)
class BlobRef:
    name: str
    path: str
    url: str
    size: int


def pick_extension(declared_type: Optional[str], original_name: Optional[str]) -> str:
    ext = os.path.splitext(original_name or "")[1].lower()
    if not ext:
        return DEFAULT_EXTENSION
    if ext in ALLOWED_EXTENSIONS:
        return ext
    return ALLOWED_TYPES.get((declared_type or "").lower(), DEFAULT_EXTENSION)


def is_allowed(declared_type: Optional[str], original_name: Optional[str]) -> bool:
    mime = (declared_type or "").split(";")[0].strip().lower()
    ext = os.path.splitext(original_name or "")[1].lower()
    return mime in ALLOWED_TYPES or ext in ALLOWED_EXTENSIONS


def new_blob_name(ext: str) -> str:
    # token_urlsafe(6) yields 8 characters
    return f"{int(time.time() * 1000)}-{secrets.token_urlsafe(6)}{ext}"


class BlobStore:
    """Photo files under a single upload directory."""

    def __init__(self, root: str, max_bytes: int, url_prefix: str = "/uploads"):
        self.root = root
        self.max_bytes = max_bytes
        self.url_prefix = url_prefix.rstrip("/")

    def ensure(self) -> None:
        os.makedirs(self.root, exist_ok=True)

    def store(self, stream: BinaryIO, declared_type: Optional[str], original_name: Optional[str]) -> BlobRef:
        if not is_allowed(declared_type, original_name):
            logger.warning("Rejected upload %r (%s): unsupported type", original_name, declared_type)
            raise UnsupportedMediaType(
                detail=f"Allowed: {', '.join(sorted(e.lstrip('.') for e in ALLOWED_EXTENSIONS))}"
            )

        mime = (declared_type or "").split(";")[0].strip().lower()
        name = new_blob_name(pick_extension(mime, original_name))
        final = os.path.join(self.root, name)
        part = final + ".part"
        size = 0
        stored = False
        try:
            self.ensure()
            with open(part, "xb") as out:
                while True:
                    chunk = stream.read(CHUNK_SIZE)
                    if not chunk:
                        break
                    size += len(chunk)
                    if size > self.max_bytes:
                        raise PayloadTooLarge(
                            detail=f"Maximum size is {self.max_bytes // (1024 * 1024)}MB"
                        )
                    out.write(chunk)
            os.replace(part, final)
            stored = True
        except PayloadTooLarge:
            logger.warning("Rejected upload %r: larger than %d bytes", original_name, self.max_bytes)
            raise
        except OSError as e:
            logger.error("Cannot write upload %s: %s", final, e)
            raise StorageError(detail=str(e)) from e
        finally:
            if not stored:
                self._remove(part)

        logger.info("Stored upload %s (%d bytes)", name, size)
        return BlobRef(name=name, path=final, url=f"{self.url_prefix}/{name}", size=size)

    def resolve(self, name: str) -> str:
        if not name or name != os.path.basename(name) or name.startswith(".") or name.endswith(".part"):
            raise NotFoundError("File not found")
        path = os.path.join(self.root, name)
        if not os.path.isfile(path):
            raise NotFoundError("File not found")
        return path

    def discard(self, ref: BlobRef) -> None:
        self._remove(ref.path)

    def _remove(self, path: str) -> None:
        try:
            os.unlink(path)
        except FileNotFoundError:
            pass
        except OSError as e:
            logger.warning("Could not remove %s: %s", path, e)
