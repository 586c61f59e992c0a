"""
BoardScan Backend — Image Service Unit Tests
===============================================

What:  Upload validation (extension, size, MIME type), storage layout,
       cleanup and safe resolution of stored paths.
How:   Each test gets its own storage root under pytest's tmp_path.

Test Strategy:
    ✅ Allowed extensions (.png, .jpg, .jpeg, .webp), case-insensitive
    ✅ Rejected extensions (.gif, .pdf, none)
    ✅ Size limits and empty uploads
    ✅ Date-organized storage paths that never reuse the client filename
    ✅ Path traversal on the serving side looks like a missing file
    ❌ MIME sniffing needs python-magic (skipped if unavailable)
"""

from pathlib import Path
from unittest.mock import patch

import pytest

from boardscan.exceptions import NotFoundError, ValidationError
from boardscan.services.image_service import ImageService


@pytest.fixture
def service(temp_storage):
    return ImageService(storage_root=temp_storage)


class TestImageValidation:

    # ── Extension Validation ──────────────────────────────────────────────

    @pytest.mark.parametrize("filename", ["board.png", "board.jpg", "board.jpeg", "board.webp", "BOARD.JPG"])
    def test_allowed_extensions(self, service, filename):
        service.validate_extension(filename)

    @pytest.mark.parametrize("filename", ["board.gif", "scan.pdf", "noextension", "tool.exe"])
    def test_rejected_extensions(self, service, filename):
        with pytest.raises(ValidationError, match="not supported") as exc_info:
            service.validate_extension(filename)
        assert exc_info.value.field == "image"

    # ── Size Validation ───────────────────────────────────────────────────

    def test_size_within_limit(self, service):
        service.validate_size(1000, 1000)

    def test_size_over_limit_rejected(self, service):
        too_big = 10 * 1024 * 1024 + 1
        with pytest.raises(ValidationError, match="exceeds"):
            service.validate_size(None, too_big)

    def test_reported_size_over_limit_rejected(self, service):
        with pytest.raises(ValidationError, match="exceeds"):
            service.validate_size(50 * 1024 * 1024, 10)

    def test_empty_upload_rejected(self, service):
        with pytest.raises(ValidationError, match="empty"):
            service.validate_size(0, 0)

    # ── MIME Validation ───────────────────────────────────────────────────

    def test_renamed_file_rejected_by_content(self, service):
        pytest.importorskip("magic")
        with patch("magic.from_buffer", return_value="application/pdf"):
            with pytest.raises(ValidationError, match="content type"):
                service.validate_mime_type(b"%PDF-1.7", "board.jpg")

    def test_jpeg_content_accepted(self, service, sample_image_bytes):
        pytest.importorskip("magic")
        with patch("magic.from_buffer", return_value="image/jpeg"):
            assert service.validate_mime_type(sample_image_bytes, "board.jpg") == "image/jpeg"


class TestImageStorage:

    @pytest.mark.asyncio
    async def test_store_uses_date_directories_and_uuid_names(self, service, temp_storage, sample_image_bytes):
        with patch.object(service, "validate_mime_type", return_value="image/jpeg"):
            abs_path, rel_path = await service.validate_and_store(
                filename="../../etc/passwd.jpg",
                content=sample_image_bytes,
                content_length=len(sample_image_bytes),
            )

        assert rel_path.count("/") == 3
        assert rel_path.endswith(".jpg")
        assert "passwd" not in rel_path
        assert Path(abs_path).read_bytes() == sample_image_bytes
        assert Path(abs_path).is_relative_to(Path(temp_storage).resolve())

    @pytest.mark.asyncio
    async def test_remove_image_deletes_file(self, service, tmp_path):
        target = tmp_path / "stale.jpg"
        target.write_bytes(b"content")

        await service.remove_image(str(target))
        assert not target.exists()

    @pytest.mark.asyncio
    async def test_remove_missing_image_does_not_raise(self, service, tmp_path):
        await service.remove_image(str(tmp_path / "nonexistent.jpg"))


class TestStoredPathResolution:

    def test_resolves_existing_file(self, service, temp_storage):
        stored = Path(temp_storage) / "2025" / "01" / "02" / "a.jpg"
        stored.parent.mkdir(parents=True)
        stored.write_bytes(b"x")

        assert service.resolve_stored_path("2025/01/02/a.jpg") == stored.resolve()

    def test_missing_file_not_found(self, service):
        with pytest.raises(NotFoundError):
            service.resolve_stored_path("2025/01/02/missing.jpg")

    def test_traversal_not_found(self, service, tmp_path):
        (tmp_path / "secret.txt").write_text("nope")
        with pytest.raises(NotFoundError):
            service.resolve_stored_path("../secret.txt")
