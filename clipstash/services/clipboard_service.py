#!/usr/bin/env python3
"""
Clipboard Service - Processes clipboard events

Every observed clipboard change goes through the same steps: size gate, hash,
dedup bump or insert (with an inline thumbnail for images), then the background
side effects: deferred file thumbnail, change notification and retention.
"""
import base64
import logging
from concurrent.futures import Future, ThreadPoolExecutor
from pathlib import Path
from typing import Dict, Optional, Tuple

from clipstash.errors import ConflictError
from clipstash.models import ClipboardSnapshot, ContentType, NewClipboardItem
from clipstash.services.database_service import DatabaseService
from clipstash.services.notification_service import NotificationService
from clipstash.services.retention_service import RetentionService
from clipstash.services.settings_service import SettingsService
from clipstash.services.thumbnail_service import ThumbnailService
from clipstash.utils import compute_hash, exceeds_size_limit, is_image_file, parse_size_limit

logger = logging.getLogger(__name__)


class ClipboardService:
    """Service for processing clipboard events"""

    def __init__(
        self,
        database_service: DatabaseService,
        thumbnail_service: ThumbnailService,
        settings_service: SettingsService,
        retention_service: RetentionService,
        notification_service: NotificationService,
    ):
        """
        Initialize clipboard service

        Args:
            database_service: Database service for storing clipboard data
            thumbnail_service: Thumbnail service for image processing
            settings_service: Source of the size limit
            retention_service: Runs the retention policy after new items
            notification_service: Receives the ids of new rows
        """
        logger.info("[ClipboardService.__init__] Starting initialization...")
        self.db_service = database_service
        self.thumbnail_service = thumbnail_service
        self.settings_service = settings_service
        self.retention_service = retention_service
        self.notification_service = notification_service
        # One ingestion at a time, in arrival order
        self.executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="ingest")
        logger.info("[ClipboardService.__init__] Initialization complete")

    def submit(self, snapshot: ClipboardSnapshot) -> Future:
        """
        Queue a clipboard snapshot for ingestion without blocking the caller

        Returns:
            Future resolving to the ingest() result
        """
        return self.executor.submit(self.ingest_snapshot, snapshot)

    def ingest_snapshot(self, snapshot: ClipboardSnapshot) -> Optional[str]:
        return self.ingest(
            snapshot.content_type,
            snapshot.raw_bytes,
            plain_text=snapshot.plain_text,
            rich_content=snapshot.rich_content,
            file_path=snapshot.file_path,
            file_name=snapshot.file_name,
            source_app=snapshot.source_app,
            source_app_name=snapshot.source_app_name,
        )

    def ingest(
        self,
        content_type: ContentType,
        raw_bytes: bytes,
        plain_text: Optional[str] = None,
        rich_content: Optional[bytes] = None,
        file_path: Optional[str] = None,
        file_name: Optional[str] = None,
        source_app: str = "",
        source_app_name: str = "",
    ) -> Optional[str]:
        """
        Store one clipboard change

        Returns:
            The item id (new or bumped duplicate), or None when the change was skipped

        Raises:
            StorageError: The insert or bump failed
        """
        result = self._ingest(
            ContentType(content_type),
            raw_bytes,
            plain_text,
            rich_content,
            file_path,
            file_name,
            source_app,
            source_app_name,
        )
        if result is None:
            return None
        item_id, _created = result
        return item_id

    def _content_size(self, content_type: ContentType, raw_bytes: bytes, file_path: Optional[str]) -> Optional[int]:
        """Byte size used by the size gate, or None for content that is never stored"""
        if content_type == ContentType.FILE and file_path:
            path = Path(file_path)
            if path.is_dir():
                logger.info(f"Skipping directory: {file_path}")
                return None
            try:
                return path.stat().st_size
            except OSError as e:
                logger.warning(f"Could not stat {file_path}, using path length: {e}")
                return len(raw_bytes)
        return len(raw_bytes)

    def _ingest(
        self,
        content_type: ContentType,
        raw_bytes: bytes,
        plain_text: Optional[str],
        rich_content: Optional[bytes],
        file_path: Optional[str],
        file_name: Optional[str],
        source_app: str,
        source_app_name: str,
    ) -> Optional[Tuple[str, bool]]:
        """Returns (item_id, created) or None for a skip"""
        if not raw_bytes:
            logger.info(f"Skipping empty {content_type} content")
            return None

        content_size = self._content_size(content_type, raw_bytes, file_path)
        if content_size is None:
            return None

        max_size_mb = parse_size_limit(self.settings_service.get("max_item_size_mb"))
        if exceeds_size_limit(content_size, max_size_mb):
            logger.info(f"Clipboard content exceeds size limit ({content_size}B > {max_size_mb}MB), skipping")
            return None

        content_hash = compute_hash(raw_bytes)

        existing_id = self.db_service.find_and_bump_by_hash(content_hash)
        if existing_id:
            logger.info(f"↻ Duplicate content detected, bumped item {existing_id}")
            return existing_id, False

        thumbnail = None
        image_path = None
        if content_type == ContentType.IMAGE:
            thumbnail, image_path = self.thumbnail_service.submit(self._process_image, raw_bytes).result()

        if file_path and not file_name:
            file_name = Path(file_path).name

        new_item = NewClipboardItem(
            content_type=content_type,
            content_hash=content_hash,
            content_size=content_size,
            plain_text=plain_text or "",
            rich_content=rich_content,
            thumbnail=thumbnail,
            image_path=image_path,
            file_path=file_path,
            file_name=file_name,
            source_app=source_app or "",
            source_app_name=source_app_name or "",
        )

        try:
            item_id = self.db_service.add_item(new_item)
        except ConflictError:
            # Same content inserted concurrently; collapse onto the stored row
            existing_id = self.db_service.find_and_bump_by_hash(content_hash)
            if existing_id is None:
                raise
            logger.info(f"↻ Duplicate content stored concurrently, bumped item {existing_id}")
            if image_path:
                self.retention_service.remove_files_async([image_path])
            return existing_id, False

        logger.info(f"✓ New clipboard item stored: {item_id} ({content_type})")
        self._after_insert(item_id, new_item)
        return item_id, True

    def _process_image(self, image_data: bytes) -> Tuple[Optional[bytes], Optional[str]]:
        """Thumbnail and archive an inline image; runs on the thumbnail pool"""
        thumbnail = self.thumbnail_service.generate_thumbnail(image_data)
        try:
            image_path = self.thumbnail_service.save_original(image_data, "png")
        except OSError as e:
            logger.warning(f"Could not archive original image: {e}")
            image_path = None
        return thumbnail, image_path

    def _after_insert(self, item_id: str, item: NewClipboardItem):
        """Fire the background side effects of a new row"""
        if item.content_type == ContentType.FILE and item.file_path and is_image_file(item.file_path):
            self.thumbnail_service.process_file_thumbnail_async(
                item_id, item.file_path, on_done=self.notification_service.notify
            )
        self.notification_service.notify(item_id)
        self.retention_service.run_retention_cleanup_async()

    def handle_clipboard_event(self, event_data: Dict) -> Future:
        """
        Handle a clipboard event sent by an external clipboard observer

        Args:
            event_data: {"content_type": "plain_text|rich_text|image|file",
                         "plain_text": ..., "rich_content": <html str>,
                         "data": <base64 image bytes>, "file_path": ..., "file_name": ...,
                         "source_app": ..., "source_app_name": ...}

        Returns:
            Future resolving to the ingest() result

        Raises:
            ValueError: Unknown content type or missing payload
        """
        content_type = ContentType(event_data.get("content_type"))
        plain_text = event_data.get("plain_text")
        rich_content = event_data.get("rich_content")
        file_path = event_data.get("file_path")

        if content_type == ContentType.IMAGE:
            data_b64 = event_data.get("data")
            if not data_b64:
                raise ValueError("image event is missing the data field")
            raw_bytes = base64.b64decode(data_b64)
        elif content_type == ContentType.FILE:
            if not file_path:
                raise ValueError("file event is missing the file_path field")
            raw_bytes = file_path.encode("utf-8")
        else:
            raw_bytes = (plain_text or "").encode("utf-8")

        logger.info(f"Processing clipboard event: {content_type}")
        snapshot = ClipboardSnapshot(
            content_type=content_type,
            raw_bytes=raw_bytes,
            plain_text=plain_text if content_type != ContentType.FILE else (plain_text or file_path),
            rich_content=rich_content.encode("utf-8") if isinstance(rich_content, str) else rich_content,
            file_path=file_path,
            file_name=event_data.get("file_name"),
            source_app=event_data.get("source_app") or "",
            source_app_name=event_data.get("source_app_name") or "",
        )
        return self.submit(snapshot)

    def shutdown(self):
        self.executor.shutdown(wait=True)
