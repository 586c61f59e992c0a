"""
BoardScan Backend — Board Image Storage Service
=================================================

What:  Validates, stores, resolves and removes uploaded board photos.
Who:   ScanService (store before classification, remove on failure) and the
       file-serving route (resolve a stored relative path safely).

Checks run cheapest first:
    1. extension      (no bytes read)
    2. size           (Content-Length header, then actual byte count)
    3. magic bytes    (python-magic; catches renamed files)
    4. write to disk  (aiofiles, YYYY/MM/DD/<uuid>.<ext>)

Stored paths are relative to STORAGE_ROOT and contain no client input, so a
record's image_path can be served back without exposing the filesystem.
"""

import logging
import os
import uuid
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional, Tuple

import aiofiles

from boardscan.config import settings
from boardscan.exceptions import FileStorageError, NotFoundError, ValidationError

logger = logging.getLogger(__name__)

# ── Allowed Image Types ───────────────────────────────────────────────────
ALLOWED_MIME_TYPES = {
    "image/png": ".png",
    "image/jpeg": ".jpg",
    "image/jpg": ".jpg",
    "image/webp": ".webp",
}

ALLOWED_EXTENSIONS = {".png", ".jpg", ".jpeg", ".webp"}

_EXTENSION_MIME = {
    ".png": "image/png",
    ".jpg": "image/jpeg",
    ".jpeg": "image/jpeg",
    ".webp": "image/webp",
}


class ImageService:
    """
    Upload lifecycle for board photos.

    validate_and_store() returns (absolute_path, relative_path): the absolute
    path goes to the vision service, the relative path to the database.
    """

    def __init__(self, storage_root: Optional[str] = None):
        self.storage_root = Path(storage_root or settings.storage_root).resolve()
        self.storage_root.mkdir(parents=True, exist_ok=True)
        logger.info("ImageService initialized with storage_root=%s", self.storage_root)

    def validate_extension(self, filename: str) -> str:
        ext = Path(filename or "").suffix.lower()
        if ext not in ALLOWED_EXTENSIONS:
            raise ValidationError(
                message=(
                    f"File type '{ext or 'none'}' is not supported. "
                    f"Allowed types: {', '.join(sorted(ALLOWED_EXTENSIONS))}"
                ),
                field="image",
                context={"extension": ext, "allowed": sorted(ALLOWED_EXTENSIONS)},
            )
        return ext

    def validate_size(self, content_length: Optional[int], actual_size: int) -> None:
        """
        Reject empty uploads and anything above MAX_FILE_SIZE.

        Content-Length is checked first so an honest client is rejected
        before the body matters; the actual size catches lying headers.
        """
        max_mb = settings.max_file_size / (1024 * 1024)

        if actual_size == 0:
            raise ValidationError(message="Uploaded image is empty.", field="image")

        if content_length and content_length > settings.max_file_size:
            raise ValidationError(
                message=f"Image exceeds maximum size of {max_mb:.0f}MB.",
                field="image",
                context={"max_size_mb": max_mb, "reported_size": content_length},
            )

        if actual_size > settings.max_file_size:
            raise ValidationError(
                message=(
                    f"Image size ({actual_size / (1024 * 1024):.1f}MB) exceeds "
                    f"maximum of {max_mb:.0f}MB."
                ),
                field="image",
                context={"max_size_mb": max_mb, "actual_size": actual_size},
            )

    def validate_mime_type(self, content: bytes, filename: str) -> str:
        """Sniff the real content type from the file header bytes."""
        try:
            import magic
            mime_type = magic.from_buffer(content, mime=True)
        except ImportError:
            # libmagic missing (e.g. minimal CI image): trust the extension
            logger.warning(
                "python-magic not available — falling back to extension-based type detection"
            )
            mime_type = _EXTENSION_MIME.get(
                Path(filename or "").suffix.lower(), "application/octet-stream"
            )
        except Exception as e:
            logger.error("MIME type detection failed: %s", str(e))
            raise FileStorageError(
                message="Could not verify image type. Please try again.",
                context={"error": str(e)},
            )

        if mime_type not in ALLOWED_MIME_TYPES:
            raise ValidationError(
                message=(
                    f"File content type '{mime_type}' is not supported. "
                    "The upload must be a PNG, JPEG or WebP photo."
                ),
                field="image",
                context={"detected_mime": mime_type},
            )
        return mime_type

    def _generate_storage_path(self, extension: str) -> Tuple[Path, str]:
        date_dir = datetime.now(timezone.utc).strftime("%Y/%m/%d")
        relative_path = f"{date_dir}/{uuid.uuid4()}{extension}"
        return self.storage_root / relative_path, relative_path

    async def store_image(self, content: bytes, extension: str) -> Tuple[str, str]:
        absolute_path, relative_path = self._generate_storage_path(extension)

        try:
            absolute_path.parent.mkdir(parents=True, exist_ok=True)
            async with aiofiles.open(absolute_path, "wb") as f:
                await f.write(content)
        except OSError as e:
            logger.error("Failed to store image at %s: %s", absolute_path, str(e))
            raise FileStorageError(
                message="Failed to save uploaded image. Please try again.",
                context={"os_error": str(e)},
            )

        logger.info("Image stored: %s (%d bytes)", relative_path, len(content))
        return str(absolute_path), relative_path

    async def remove_image(self, file_path: str) -> None:
        """
        Best-effort delete after a failed scan.

        Never raises: the caller is already propagating the original failure.
        """
        try:
            path = Path(file_path)
            if path.exists():
                os.remove(path)
                logger.info("Removed image: %s", path.name)
        except OSError as e:
            logger.warning("Failed to remove image %s: %s", file_path, str(e))

    def resolve_stored_path(self, relative_path: str) -> Path:
        """
        Map a stored relative path back to a file under STORAGE_ROOT.

        Raises NotFoundError for anything outside the root or missing, so
        traversal attempts look exactly like unknown files.
        """
        candidate = (self.storage_root / relative_path).resolve()
        if not candidate.is_relative_to(self.storage_root):
            logger.warning("Rejected path outside storage root: %s", relative_path)
            raise NotFoundError(resource="file")
        if not candidate.is_file():
            raise NotFoundError(resource="file")
        return candidate

    async def validate_and_store(
        self,
        filename: str,
        content: bytes,
        content_length: Optional[int] = None,
    ) -> Tuple[str, str]:
        ext = self.validate_extension(filename)
        self.validate_size(content_length, len(content))
        self.validate_mime_type(content, filename)
        return await self.store_image(content, ext)


# ── Singleton Instance ────────────────────────────────────────────────────
image_service = ImageService()
