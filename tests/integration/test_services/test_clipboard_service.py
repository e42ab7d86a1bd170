"""Tests for the ingestion path."""

import base64
import hashlib
import time
from datetime import datetime
from pathlib import Path

import pytest

from clipstash.models import ClipboardSnapshot, ContentType
from fixtures.services import ServiceStack, services, small_limit_services
from fixtures.test_data import generate_image, image_size, make_new_item

MB = 1024 * 1024


class TestIngestText:
    """Test plain and rich text ingestion."""

    def test_new_plain_text(self, services: ServiceStack):
        item_id = services.clipboard_service.ingest(ContentType.PLAIN_TEXT, b"Hello, World!", plain_text="Hello, World!")

        item = services.database_service.get_item(item_id)
        assert item.content_type == ContentType.PLAIN_TEXT
        assert item.content_hash == hashlib.sha256(b"Hello, World!").hexdigest()
        assert item.is_favorited is False
        assert item.content_size == 13

    def test_duplicate_bumps_existing_row(self, services: ServiceStack):
        first_id = services.clipboard_service.ingest(ContentType.PLAIN_TEXT, b"again", plain_text="again")
        first_updated = services.database_service.get_item(first_id).updated_at
        time.sleep(0.01)

        second_id = services.clipboard_service.ingest(ContentType.PLAIN_TEXT, b"again", plain_text="again")

        assert second_id == first_id
        assert services.database_service.get_total_count() == 1
        assert services.database_service.get_item(first_id).updated_at > first_updated

    def test_rich_text_keeps_html(self, services: ServiceStack):
        item_id = services.clipboard_service.ingest(
            ContentType.RICH_TEXT, b"bold", plain_text="bold", rich_content=b"<b>bold</b>",
            source_app="org.example.Editor", source_app_name="Editor",
        )

        detail = services.database_service.get_item_detail(item_id)
        item = services.database_service.get_item(item_id)
        assert detail.rich_content == "<b>bold</b>"
        assert item.source_app_name == "Editor"

    def test_content_type_accepts_wire_string(self, services: ServiceStack):
        item_id = services.clipboard_service.ingest("plain_text", b"wire", plain_text="wire")

        assert services.database_service.get_item(item_id).content_type == ContentType.PLAIN_TEXT

    def test_unknown_content_type_rejected(self, services: ServiceStack):
        with pytest.raises(ValueError):
            services.clipboard_service.ingest("video", b"x")

    def test_empty_text_skipped(self, services: ServiceStack):
        assert services.clipboard_service.ingest(ContentType.PLAIN_TEXT, b"", plain_text="") is None
        assert services.database_service.get_total_count() == 0


class TestSizeGate:
    """Test the configurable size limit."""

    def test_exact_limit_accepted(self, small_limit_services: ServiceStack):
        data = b"a" * MB

        assert small_limit_services.clipboard_service.ingest(ContentType.PLAIN_TEXT, data) is not None

    def test_one_byte_over_skipped(self, small_limit_services: ServiceStack):
        data = b"a" * (MB + 1)

        assert small_limit_services.clipboard_service.ingest(ContentType.PLAIN_TEXT, data) is None
        assert small_limit_services.database_service.get_total_count() == 0

    def test_file_uses_size_on_disk(self, small_limit_services: ServiceStack, tmp_path: Path):
        big_file = tmp_path / "big.bin"
        big_file.write_bytes(b"\0" * (MB + 1))

        result = small_limit_services.clipboard_service.ingest(
            ContentType.FILE, str(big_file).encode(), file_path=str(big_file)
        )

        assert result is None

    def test_file_content_size_is_size_on_disk(self, services: ServiceStack, tmp_path: Path):
        doc = tmp_path / "notes.txt"
        doc.write_bytes(b"x" * 5000)

        item_id = services.clipboard_service.ingest(ContentType.FILE, str(doc).encode(), file_path=str(doc))

        item = services.database_service.get_item(item_id)
        assert item.content_size == 5000
        assert item.file_name == "notes.txt"

    def test_directory_skipped(self, services: ServiceStack, tmp_path: Path):
        result = services.clipboard_service.ingest(ContentType.FILE, str(tmp_path).encode(), file_path=str(tmp_path))

        assert result is None
        assert services.database_service.get_total_count() == 0


class TestIngestImage:
    """Test inline image ingestion."""

    def test_image_gets_thumbnail_and_archive(self, services: ServiceStack):
        data = generate_image(800, 600)

        item_id = services.clipboard_service.ingest(ContentType.IMAGE, data)

        item = services.database_service.get_item(item_id)
        image_path = Path(item.image_path)
        assert image_size(services.database_service.get_thumbnail(item_id)) == (400, 300, "PNG")
        assert image_path.parent == services.images_dir / datetime.now().strftime("%Y-%m")
        assert image_path.suffix == ".png"
        assert image_path.read_bytes() == data

    def test_duplicate_image_not_archived_twice(self, services: ServiceStack):
        data = generate_image(50, 50)

        services.clipboard_service.ingest(ContentType.IMAGE, data)
        services.clipboard_service.ingest(ContentType.IMAGE, data)

        archived = [p for p in services.images_dir.rglob("*") if p.is_file()]
        assert len(archived) == 1


class TestDeferredFileThumbnail:
    """Image files are thumbnailed after the row exists."""

    def test_image_file_thumbnail_and_notifications(self, services: ServiceStack, tmp_path: Path):
        photo = tmp_path / "photo.jpg"
        photo.write_bytes(generate_image(800, 600, format="JPEG"))

        item_id = services.clipboard_service.ingest(ContentType.FILE, str(photo).encode(), file_path=str(photo))
        services.wait_for_background()

        assert image_size(services.database_service.get_thumbnail(item_id)) == (400, 300, "PNG")
        assert services.notified.count(item_id) == 2

    def test_non_image_file_has_no_thumbnail(self, services: ServiceStack, tmp_path: Path):
        doc = tmp_path / "report.pdf"
        doc.write_bytes(b"%PDF-1.4")

        item_id = services.clipboard_service.ingest(ContentType.FILE, str(doc).encode(), file_path=str(doc))
        services.wait_for_background()

        assert services.database_service.get_thumbnail(item_id) is None
        assert services.notified == [item_id]


class TestSideEffects:
    """Notifications, retention and concurrent duplicates."""

    def test_new_item_notifies_once(self, services: ServiceStack):
        item_id = services.clipboard_service.ingest(ContentType.PLAIN_TEXT, b"note", plain_text="note")
        services.clipboard_service.ingest(ContentType.PLAIN_TEXT, b"note", plain_text="note")
        services.wait_for_background()

        assert services.notified == [item_id]

    def test_failing_listener_does_not_break_ingest(self, services: ServiceStack):
        def broken_listener(item_id):
            raise RuntimeError("listener exploded")

        services.notification_service.subscribe(broken_listener)

        item_id = services.clipboard_service.ingest(ContentType.PLAIN_TEXT, b"still ok", plain_text="still ok")
        services.wait_for_background()

        assert services.notified == [item_id]

    def test_retention_runs_after_new_item(self, services: ServiceStack):
        services.settings_service.update_settings(**{"retention.policy": "count", "retention.count": 2})

        for i in range(5):
            services.clipboard_service.ingest(ContentType.PLAIN_TEXT, f"entry {i}".encode(), plain_text=f"entry {i}")
        services.wait_for_background()

        remaining = [item.plain_text for item in services.database_service.get_items()]
        assert remaining == ["entry 4", "entry 3"]

    def test_concurrent_duplicate_collapses(self, services: ServiceStack, monkeypatch):
        raw = b"raced"
        existing_id = services.database_service.add_item(
            make_new_item("raced", content_hash=hashlib.sha256(raw).hexdigest())
        )
        real_bump = services.database_service.find_and_bump_by_hash
        calls = []

        def bump_missing_first(content_hash, timestamp=None):
            calls.append(content_hash)
            if len(calls) == 1:
                return None
            return real_bump(content_hash, timestamp)

        monkeypatch.setattr(services.database_service, "find_and_bump_by_hash", bump_missing_first)

        result = services.clipboard_service.ingest(ContentType.PLAIN_TEXT, raw, plain_text="raced")

        assert result == existing_id
        assert len(calls) == 2
        assert services.database_service.get_total_count() == 1

    def test_concurrent_duplicate_image_archive_removed(self, services: ServiceStack, monkeypatch):
        data = generate_image(20, 20)
        services.database_service.add_item(
            make_new_item("", content_type="image", content_hash=hashlib.sha256(data).hexdigest())
        )
        real_bump = services.database_service.find_and_bump_by_hash
        calls = []

        def bump_missing_first(content_hash, timestamp=None):
            calls.append(content_hash)
            return None if len(calls) == 1 else real_bump(content_hash, timestamp)

        monkeypatch.setattr(services.database_service, "find_and_bump_by_hash", bump_missing_first)

        services.clipboard_service.ingest(ContentType.IMAGE, data)
        services.wait_for_background()

        assert [p for p in services.images_dir.rglob("*") if p.is_file()] == []


class TestSubmit:
    """Snapshots are ingested on the worker thread."""

    def test_submit_returns_future(self, services: ServiceStack):
        snapshot = ClipboardSnapshot(ContentType.PLAIN_TEXT, b"queued", plain_text="queued")

        item_id = services.clipboard_service.submit(snapshot).result(timeout=10)

        assert services.database_service.get_item(item_id).plain_text == "queued"

    def test_handle_clipboard_event_text(self, services: ServiceStack):
        future = services.clipboard_service.handle_clipboard_event(
            {"content_type": "plain_text", "plain_text": "from observer", "source_app_name": "Browser"}
        )

        item = services.database_service.get_item(future.result(timeout=10))
        assert item.plain_text == "from observer"
        assert item.source_app_name == "Browser"

    def test_handle_clipboard_event_image(self, services: ServiceStack):
        data = generate_image(30, 30)
        future = services.clipboard_service.handle_clipboard_event(
            {"content_type": "image", "data": base64.b64encode(data).decode()}
        )

        item = services.database_service.get_item(future.result(timeout=10))
        assert item.content_type == ContentType.IMAGE
        assert item.content_hash == hashlib.sha256(data).hexdigest()

    def test_handle_clipboard_event_rejects_bad_type(self, services: ServiceStack):
        with pytest.raises(ValueError):
            services.clipboard_service.handle_clipboard_event({"content_type": "hologram"})

    def test_handle_clipboard_event_image_requires_data(self, services: ServiceStack):
        with pytest.raises(ValueError):
            services.clipboard_service.handle_clipboard_event({"content_type": "image"})
