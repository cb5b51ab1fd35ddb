"""
Attachment staging for message uploads.

Uploads are written to a private staging directory first and validated there.
Only ``publish`` moves a file under the public upload directory, at the URL
recorded on the message. A staged or published file whose message is never
committed must be removed with ``discard``.
"""

import logging
import os
import re
import uuid
from dataclasses import dataclass
from typing import BinaryIO

from app.config import Settings, settings as default_settings
from app.exceptions import StorageException, ValidationException

logger = logging.getLogger(__name__)

CHUNK_SIZE = 64 * 1024


@dataclass
class StagedAttachment:
    path: str
    url: str
    name: str
    size: int
    mime: str
    stored_name: str = ""

    @property
    def is_image(self) -> bool:
        return self.mime.startswith("image/")


class AttachmentStore:
    def __init__(
        self,
        upload_dir: str | None = None,
        url_prefix: str | None = None,
        settings: Settings = default_settings,
        staging_dir: str | None = None,
    ):
        self.upload_dir = upload_dir or settings.upload_dir
        self.staging_dir = staging_dir or settings.upload_staging_dir
        self.url_prefix = (url_prefix or settings.upload_url_prefix).rstrip("/")
        self.max_bytes = settings.attachment_max_bytes
        self.allowed_types = set(settings.attachment_allowed_types)

    def stage(self, stream: BinaryIO, filename: str, mime: str) -> StagedAttachment:
        """Write an upload to the staging directory.

        Reading stops one byte past the size ceiling; the oversized file is
        still staged so that validation can reject and discard it.
        """
        os.makedirs(self.staging_dir, exist_ok=True)
        safe_name = self._sanitize_filename(filename)
        stored_name = f"{uuid.uuid4().hex}_{safe_name}"
        path = os.path.join(self.staging_dir, stored_name)

        size = 0
        with open(path, "wb") as f:
            while size <= self.max_bytes:
                chunk = stream.read(CHUNK_SIZE)
                if not chunk:
                    break
                f.write(chunk)
                size += len(chunk)

        logger.debug("Staged attachment %s (%d bytes)", path, size)
        return StagedAttachment(
            path=path,
            url=f"{self.url_prefix}/{stored_name}",
            name=safe_name,
            size=size,
            mime=(mime or "application/octet-stream").lower(),
            stored_name=stored_name,
        )

    def validate(self, staged: StagedAttachment) -> None:
        if staged.mime not in self.allowed_types:
            raise ValidationException(
                f"File type {staged.mime} is not allowed.",
                code="attachment_type_not_allowed",
            )
        if staged.size == 0:
            raise ValidationException(
                "Attachment is empty.", code="attachment_empty"
            )
        if staged.size > self.max_bytes:
            raise ValidationException(
                f"Attachment exceeds the {self.max_bytes // (1024 * 1024)} MB limit.",
                code="attachment_too_large",
            )

    def publish(self, staged: StagedAttachment) -> None:
        """Move a validated file to its public location."""
        target = os.path.join(self.upload_dir, staged.stored_name)
        try:
            os.makedirs(self.upload_dir, exist_ok=True)
            os.replace(staged.path, target)
        except OSError as exc:
            logger.error("Could not publish attachment %s: %s", staged.path, exc)
            raise StorageException() from exc
        staged.path = target
        logger.debug("Published attachment %s", target)

    def discard(self, staged: StagedAttachment) -> bool:
        """Remove a staged or published file. Returns False if removal failed."""
        try:
            os.remove(staged.path)
        except FileNotFoundError:
            return True
        except OSError:
            logger.warning("Could not remove attachment %s", staged.path, exc_info=True)
            return False
        logger.debug("Discarded attachment %s", staged.path)
        return True

    @staticmethod
    def _sanitize_filename(filename: str) -> str:
        name = os.path.basename((filename or "").replace("\\", "/")).strip()
        name = re.sub(r"[^\w. -]", "_", name)
        name = name.lstrip(".")
        return name[:200] or "attachment"
