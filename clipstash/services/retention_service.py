#!/usr/bin/env python3
"""
Retention Service - Policy cleanup, history clearing and image file garbage collection

Rows are always deleted first. The image files they referenced are removed afterwards,
best-effort, on a background thread; a failed removal is logged and left for the
startup orphan sweep.
"""
import logging
import os
from concurrent.futures import Future, ThreadPoolExecutor
from datetime import datetime
from pathlib import Path
from typing import Iterable, Optional

from clipstash.services.database_service import DatabaseService
from clipstash.services.settings_service import SettingsService

logger = logging.getLogger(__name__)


def _parse_int(value: Optional[str]) -> int:
    try:
        return int(value)
    except (TypeError, ValueError):
        return 0


class RetentionService:
    """Service for removing items and reclaiming their image files"""

    def __init__(self, database_service: DatabaseService, settings_service: SettingsService, images_dir: Path):
        logger.info("[RetentionService.__init__] Starting initialization...")
        self.db_service = database_service
        self.settings_service = settings_service
        self.images_dir = Path(images_dir)
        self.executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="retention")
        logger.info("[RetentionService.__init__] Initialization complete")

    def run_retention_cleanup(self, now: Optional[datetime] = None) -> int:
        """
        Apply the configured retention policy

        Returns:
            Number of items removed
        """
        policy = (self.settings_service.get("retention_policy") or "unlimited").strip().lower()
        days = _parse_int(self.settings_service.get("retention_days"))
        count = _parse_int(self.settings_service.get("retention_count"))
        return self.cleanup(policy, days, count, now)

    def run_retention_cleanup_async(self) -> Future:
        """Apply the configured policy in the background; failures are logged only"""
        def worker():
            try:
                return self.run_retention_cleanup()
            except Exception as e:
                logger.error(f"Background retention cleanup failed: {e}")
                return 0

        return self.executor.submit(worker)

    def cleanup(self, policy: str, days: int = 0, count: int = 0, now: Optional[datetime] = None) -> int:
        """Remove items matched by a policy, then schedule removal of their image files"""
        deleted, image_paths = self.db_service.cleanup_with_image_paths(policy, days, count, now)
        if deleted:
            logger.info(f"Retention policy '{policy}' removed {deleted} items")
            self.remove_files_async(image_paths)
        return deleted

    def clear_history(self) -> int:
        """Remove every non-favorited item. Returns the number removed"""
        deleted, image_paths = self.db_service.clear_history_with_image_paths()
        if deleted:
            self.remove_files_async(image_paths)
        return deleted

    def delete_item(self, item_id: str) -> bool:
        """Delete one item. False if it does not exist"""
        deleted, image_path = self.db_service.delete_item_with_image_path(item_id)
        if deleted:
            logger.info(f"Deleted item {item_id}")
            if image_path:
                self.remove_files_async([image_path])
        return deleted

    def remove_files_async(self, paths: Iterable[str]) -> Future:
        """Delete files in the background; failures are logged only"""
        paths = list(paths)

        def worker():
            for path in paths:
                try:
                    os.remove(path)
                    logger.debug(f"Removed image file {path}")
                except FileNotFoundError:
                    pass
                except OSError as e:
                    logger.warning(f"Could not remove image file {path}: {e}")

        return self.executor.submit(worker)

    def cleanup_orphan_images(self) -> int:
        """
        Delete archived image files no stored item references

        Only the month directories under the image directory are scanned.

        Returns:
            Number of files removed
        """
        if not self.images_dir.is_dir():
            return 0

        try:
            referenced = {os.path.realpath(p) for p in self.db_service.get_all_image_paths()}
        except Exception as e:
            logger.error(f"Orphan sweep could not read referenced paths: {e}")
            return 0

        removed = 0
        try:
            month_dirs = [d for d in self.images_dir.iterdir() if d.is_dir()]
        except OSError as e:
            logger.warning(f"Orphan sweep could not list {self.images_dir}: {e}")
            return 0

        for month_dir in month_dirs:
            try:
                entries = list(month_dir.iterdir())
            except OSError as e:
                logger.warning(f"Orphan sweep could not list {month_dir}: {e}")
                continue
            for entry in entries:
                if not entry.is_file() or os.path.realpath(entry) in referenced:
                    continue
                try:
                    entry.unlink()
                    removed += 1
                except OSError as e:
                    logger.warning(f"Could not remove orphan image {entry}: {e}")

        if removed:
            logger.info(f"Orphan sweep removed {removed} unreferenced image files")
        return removed

    def shutdown(self):
        self.executor.shutdown(wait=True)
