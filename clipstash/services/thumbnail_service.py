#!/usr/bin/env python3
"""
Thumbnail Service - Handles thumbnail generation and original image archival
"""
import logging
import uuid
from concurrent.futures import Future, ThreadPoolExecutor
from datetime import datetime
from io import BytesIO
from pathlib import Path
from typing import Callable, Optional

from PIL import Image

from clipstash.services.database_service import DatabaseService

logger = logging.getLogger(__name__)

# Thumbnails wider than this are scaled down to it
THUMBNAIL_WIDTH = 400


class ThumbnailService:
    """Service for generating image thumbnails asynchronously"""

    def __init__(self, database_service: DatabaseService, images_dir: Path, max_workers: int = 2):
        """
        Initialize thumbnail service

        Args:
            database_service: Database service for storing deferred thumbnails
            images_dir: Root of the month-partitioned original image archive
            max_workers: Maximum number of worker threads
        """
        logger.info("[ThumbnailService.__init__] Starting initialization...")
        self.db_service = database_service
        self.images_dir = Path(images_dir)
        logger.info("[ThumbnailService.__init__] Creating ThreadPoolExecutor...")
        self.executor = ThreadPoolExecutor(max_workers=max_workers, thread_name_prefix="thumbnail")
        logger.info("[ThumbnailService.__init__] Initialization complete")

    def generate_thumbnail(self, image_data: bytes, max_width: int = THUMBNAIL_WIDTH) -> Optional[bytes]:
        """
        Generate a thumbnail from image data

        Images wider than max_width are resized to that width keeping the aspect ratio.
        Smaller images keep their size. The output is always PNG.

        Args:
            image_data: Original image bytes
            max_width: Maximum width in pixels

        Returns:
            Thumbnail image bytes (PNG format) or None on error
        """
        try:
            image = Image.open(BytesIO(image_data))
            image.load()

            # Palette and bilevel images would be resized with NEAREST
            if image.mode not in ("L", "RGB", "RGBA"):
                image = image.convert("RGBA")

            width, height = image.size
            if width > max_width:
                new_height = max(1, int(max_width / width * height))
                image = image.resize((max_width, new_height), Image.Resampling.LANCZOS)

            thumbnail_io = BytesIO()
            image.save(thumbnail_io, format="PNG", optimize=True)
            thumbnail_bytes = thumbnail_io.getvalue()

            logger.info(f"Generated thumbnail: {(width, height)} -> {image.size}, {len(thumbnail_bytes)} bytes")
            return thumbnail_bytes

        except Exception as e:
            logger.error(f"Error generating thumbnail: {e}")
            return None

    def save_original(self, data: bytes, extension: str) -> str:
        """
        Archive an original image under images/<YYYY-MM>/<uuid>.<extension>

        Returns:
            The stored path
        """
        month_dir = self.images_dir / datetime.now().strftime("%Y-%m")
        month_dir.mkdir(parents=True, exist_ok=True)
        path = month_dir / f"{uuid.uuid4()}.{extension.lstrip('.').lower()}"
        path.write_bytes(data)
        logger.info(f"Saved original image: {path} ({len(data)} bytes)")
        return str(path)

    def submit(self, fn: Callable, *args) -> Future:
        """Run CPU-bound work on the thumbnail pool"""
        return self.executor.submit(fn, *args)

    def process_file_thumbnail_async(
        self, item_id: str, file_path: str, on_done: Optional[Callable[[str], None]] = None
    ) -> Future:
        """
        Generate the thumbnail of an image file in a background thread

        The row already exists; any failure leaves it without a thumbnail.

        Args:
            item_id: Database item ID
            file_path: Image file on disk
            on_done: Called with item_id once the thumbnail is stored
        """
        def worker():
            try:
                image_data = Path(file_path).read_bytes()
            except OSError as e:
                logger.warning(f"Could not read {file_path} for thumbnail: {e}")
                return
            try:
                thumbnail = self.generate_thumbnail(image_data)
                if thumbnail and self.db_service.update_thumbnail(item_id, thumbnail):
                    logger.info(f"Thumbnail saved for item {item_id}")
                    if on_done:
                        on_done(item_id)
            except Exception as e:
                logger.error(f"Error in thumbnail worker: {e}")

        return self.executor.submit(worker)

    def shutdown(self):
        """Shutdown the executor"""
        self.executor.shutdown(wait=True)
