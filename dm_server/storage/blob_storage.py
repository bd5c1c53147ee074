"""Disk-backed blob storage for media message content.

Media messages never carry bytes inline; clients upload the file first and
submit the returned reference as the message content.
"""
import logging
import os
from typing import Optional

from werkzeug.utils import secure_filename

from config import config
from dm_server.exception.MessagingError import ValidationError
from dm_server.messaging.models import ContentType
from dm_server.utils.generator import generate_blob_ref

logger = logging.getLogger(__name__)


class BlobStorage:
    """Stores uploads under ``<root>/<content_type>/<ref>``."""

    def __init__(self, root: Optional[str] = None, allowed_extensions=None, max_bytes: Optional[int] = None):
        self.root = os.path.abspath(root or config.UPLOAD_DIR)
        self.allowed_extensions = {e.lower() for e in (allowed_extensions or config.ALLOWED_UPLOAD_EXTENSIONS)}
        self.max_bytes = max_bytes if max_bytes is not None else config.MAX_UPLOAD_SIZE_MB * 1024 * 1024

    def directory_for(self, content_type: ContentType) -> str:
        content_type = ContentType.parse(content_type)
        if not content_type.is_media:
            raise ValidationError('text messages have no blob content')
        return os.path.join(self.root, content_type.value)

    def save(self, content_type: ContentType, filename: str, data: bytes) -> str:
        """Write ``data`` and return the stable reference for it."""
        directory = self.directory_for(content_type)
        safe_name = secure_filename(filename or '')
        extension = os.path.splitext(safe_name)[1].lstrip('.').lower()
        if extension not in self.allowed_extensions:
            raise ValidationError(f"File type '.{extension}' is not allowed")
        if not data:
            raise ValidationError('Uploaded file is empty')
        if len(data) > self.max_bytes:
            raise ValidationError(f"File exceeds {self.max_bytes // (1024 * 1024)} MB limit")

        os.makedirs(directory, exist_ok=True)
        ref = generate_blob_ref(extension)
        with open(os.path.join(directory, ref), 'wb') as f:
            f.write(data)
        logger.info("BLOB_STORAGE: stored %s/%s (%d bytes)", ContentType.parse(content_type).value, ref, len(data))
        return ref

    def path_for(self, content_type: ContentType, ref: str) -> Optional[str]:
        """Absolute path of a stored blob, or None if it does not exist."""
        safe_ref = secure_filename(ref or '')
        if not safe_ref or safe_ref != ref:
            return None
        path = os.path.join(self.directory_for(content_type), safe_ref)
        return path if os.path.isfile(path) else None


_blob_storage: Optional[BlobStorage] = None


def get_blob_storage() -> BlobStorage:
    global _blob_storage
    if _blob_storage is None:
        _blob_storage = BlobStorage()
    return _blob_storage


def set_blob_storage(storage: Optional[BlobStorage]):
    global _blob_storage
    _blob_storage = storage
