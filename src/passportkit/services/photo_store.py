"""Durable photo storage on the local filesystem with signed, expiring links.

Objects are stored as ``<root>/photos/<uuid>.jpg``. Download links carry an
expiry timestamp and an HMAC-SHA256 signature over ``<photo_id>:<expires>``.
"""

from __future__ import annotations

import hashlib
import hmac
import logging
import time
import uuid
from pathlib import Path
from urllib.parse import urlencode

logger = logging.getLogger(__name__)

PHOTO_PREFIX = "photos"


class LocalPhotoStore:
    """Stores paid-for photos and hands out time-limited download links."""

    def __init__(self, root: str | Path, signing_key: str, public_base_url: str, url_ttl: int) -> None:
        self._dir = Path(root) / PHOTO_PREFIX
        self._dir.mkdir(parents=True, exist_ok=True)
        self._key = signing_key.encode()
        self._public_base_url = public_base_url.rstrip("/")
        self._url_ttl = url_ttl

    def path_for(self, photo_id: str) -> Path:
        return self._dir / f"{photo_id}.jpg"

    def put(self, data: bytes) -> str:
        """Write a JPEG and return its new photo id."""
        photo_id = str(uuid.uuid4())
        self.path_for(photo_id).write_bytes(data)
        logger.info("Stored photo %s (%d bytes)", photo_id, len(data))
        return photo_id

    def exists(self, photo_id: str) -> bool:
        return self.path_for(photo_id).is_file()

    def _signature(self, photo_id: str, expires: int) -> str:
        message = f"{photo_id}:{expires}".encode()
        return hmac.new(self._key, message, hashlib.sha256).hexdigest()

    def signed_url(self, photo_id: str, now: float | None = None) -> str:
        expires = int((time.time() if now is None else now) + self._url_ttl)
        query = urlencode({"expires": expires, "signature": self._signature(photo_id, expires)})
        return f"{self._public_base_url}/api/v1/photos/{photo_id}.jpg?{query}"

    def check_signature(self, photo_id: str, expires: int, signature: str, now: float | None = None) -> bool:
        if expires < (time.time() if now is None else now):
            return False
        return hmac.compare_digest(self._signature(photo_id, expires), signature)

    def delete_older_than(self, max_age: float, now: float | None = None) -> int:
        """Remove photos last written more than ``max_age`` seconds ago."""
        cutoff = (time.time() if now is None else now) - max_age
        deleted = 0
        for path in self._dir.glob("*.jpg"):
            if path.stat().st_mtime < cutoff:
                path.unlink(missing_ok=True)
                deleted += 1
        if deleted:
            logger.info("Deleted %d expired photos", deleted)
        return deleted
