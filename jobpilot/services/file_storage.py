"""
Résumé file storage (MongoDB GridFS).

A stored file is addressed by its key (the GridFS file id as a string); the
download URL handed to the database points at our own download route.
"""

import logging
from typing import Optional, Tuple

from bson import ObjectId
from bson.errors import InvalidId
from gridfs.errors import NoFile

from jobpilot.core.config import get_settings
from jobpilot.db.mongodb import get_resume_bucket

logger = logging.getLogger(__name__)

settings = get_settings()


def resume_download_url(user_id: str) -> str:
    return f"{settings.server_url.rstrip('/')}/api/users/{user_id}/resume/file"


class ResumeFileStore:
    def __init__(self, bucket=None):
        self._bucket = bucket

    @property
    def bucket(self):
        if self._bucket is None:
            self._bucket = get_resume_bucket()
        return self._bucket

    def put(self, user_id: str, filename: str, content: bytes, content_type: str = None) -> str:
        """Store a file and return its key."""
        file_id = self.bucket.upload_from_stream(
            filename,
            content,
            metadata={"user_id": user_id, "content_type": content_type},
        )
        logger.info("Stored resume file %s for user %s", file_id, user_id)
        return str(file_id)

    def get(self, file_key: str) -> Optional[Tuple[str, bytes, Optional[str]]]:
        """Return ``(filename, content, content_type)`` or None when missing."""
        try:
            stream = self.bucket.open_download_stream(ObjectId(file_key))
        except (InvalidId, NoFile):
            return None
        metadata = stream.metadata or {}
        return stream.filename, stream.read(), metadata.get("content_type")

    def delete(self, file_key: str) -> None:
        try:
            self.bucket.delete(ObjectId(file_key))
        except (InvalidId, NoFile):
            logger.warning("Resume file %s was already gone", file_key)


# Singleton instance
_file_store: ResumeFileStore = None


def get_file_store() -> ResumeFileStore:
    global _file_store
    if _file_store is None:
        _file_store = ResumeFileStore()
    return _file_store
