#!/usr/bin/env python3
"""
Database Service - Wrapper for database operations
"""
import logging
import sqlite3
import threading
from contextlib import contextmanager
from datetime import datetime
from typing import List, Optional, Tuple

from clipstash.database import ClipboardDB
from clipstash.errors import ConflictError, StorageError
from clipstash.models import ClipboardItem, ContentType, Group, ItemDetail, NewClipboardItem

logger = logging.getLogger(__name__)


class DatabaseService:
    """Service for managing database operations with thread-safety"""

    def __init__(self, db_path: Optional[str] = None):
        """
        Initialize database service

        Args:
            db_path: Optional path to database file (":memory:" for tests)
        """
        logger.info("[DatabaseService.__init__] Starting initialization...")
        logger.info(f"[DatabaseService.__init__] Connecting to database: {db_path or 'default path'}")
        try:
            self.db = ClipboardDB(db_path)
        except sqlite3.Error as e:
            raise StorageError(f"Could not open database {db_path}: {e}") from e
        self.lock = threading.Lock()
        logger.info("[DatabaseService.__init__] Initialization complete")

    @contextmanager
    def _locked(self, operation: str):
        """Serialize access to the connection and translate sqlite errors"""
        with self.lock:
            try:
                yield
            except sqlite3.IntegrityError as e:
                raise ConflictError(f"{operation}: {e}") from e
            except sqlite3.Error as e:
                logger.error(f"Database error in {operation}: {e}")
                raise StorageError(f"{operation}: {e}") from e

    # ========== Items ==========

    def add_item(self, item: NewClipboardItem, timestamp: Optional[str] = None) -> str:
        """Thread-safe insert of an item and its shadow row"""
        with self._locked("add_item"):
            return self.db.add_item(item, timestamp)

    def find_and_bump_by_hash(self, content_hash: str, timestamp: Optional[str] = None) -> Optional[str]:
        """Thread-safe atomic dedup bump"""
        with self._locked("find_and_bump_by_hash"):
            return self.db.find_and_bump_by_hash(content_hash, timestamp)

    def get_item(self, item_id: str) -> Optional[ClipboardItem]:
        """Thread-safe get item from database"""
        with self._locked("get_item"):
            return self.db.get_item(item_id)

    def get_item_detail(self, item_id: str) -> Optional[ItemDetail]:
        with self._locked("get_item_detail"):
            return self.db.get_item_detail(item_id)

    def get_thumbnail(self, item_id: str) -> Optional[bytes]:
        with self._locked("get_thumbnail"):
            return self.db.get_thumbnail(item_id)

    def update_thumbnail(self, item_id: str, thumbnail: bytes) -> bool:
        """Thread-safe update item thumbnail"""
        with self._locked("update_thumbnail"):
            return self.db.update_thumbnail(item_id, thumbnail)

    def toggle_favorite(self, item_id: str) -> Optional[bool]:
        """Thread-safe toggle favorite status"""
        with self._locked("toggle_favorite"):
            return self.db.toggle_favorite(item_id)

    def delete_item(self, item_id: str) -> bool:
        """Thread-safe delete item"""
        with self._locked("delete_item"):
            return self.db.delete_item(item_id)

    # ========== Listing and search ==========

    def get_items(
        self, content_type: Optional[ContentType] = None, limit: int = 50, offset: int = 0
    ) -> List[ClipboardItem]:
        """Thread-safe get items from database"""
        with self._locked("get_items"):
            return self.db.get_items(content_type, limit, offset)

    def get_favorited_items(
        self, content_type: Optional[ContentType] = None, limit: int = 200, offset: int = 0
    ) -> List[ClipboardItem]:
        with self._locked("get_favorited_items"):
            return self.db.get_favorited_items(content_type, limit, offset)

    def get_total_count(self, content_type: Optional[ContentType] = None) -> int:
        """Thread-safe get total item count"""
        with self._locked("get_total_count"):
            return self.db.get_total_count(content_type)

    def search_items(
        self, query: str, content_type: Optional[ContentType] = None, limit: int = 50
    ) -> List[ClipboardItem]:
        """Thread-safe search"""
        with self._locked("search_items"):
            return self.db.search_items(query, content_type, limit)

    # ========== Retention ==========

    def cleanup_with_image_paths(
        self, policy: str, days: int = 0, count: int = 0, now: Optional[datetime] = None
    ) -> Tuple[int, List[str]]:
        """Resolve image paths and run the cleanup under one lock; returns (removed, paths)"""
        with self._locked("cleanup_with_image_paths"):
            image_paths = self.db.get_retention_image_paths(policy, days, count, now)
            deleted = self.db.cleanup_by_retention(policy, days, count, now)
        return deleted, image_paths

    def clear_history_with_image_paths(self) -> Tuple[int, List[str]]:
        """Resolve image paths and clear history under one lock; returns (removed, paths)"""
        with self._locked("clear_history_with_image_paths"):
            image_paths = self.db.get_non_favorited_image_paths()
            deleted = self.db.clear_history()
        return deleted, image_paths

    def delete_item_with_image_path(self, item_id: str) -> Tuple[bool, Optional[str]]:
        """Delete an item and return the image path it referenced"""
        with self._locked("delete_item_with_image_path"):
            image_path = self.db.get_image_path(item_id)
            deleted = self.db.delete_item(item_id)
        return deleted, image_path

    def get_all_image_paths(self) -> List[str]:
        with self._locked("get_all_image_paths"):
            return self.db.get_all_image_paths()

    # ========== Groups ==========

    def create_group(self, name: str) -> int:
        """Thread-safe create group. Raises ConflictError for a duplicate name"""
        with self._locked("create_group"):
            return self.db.create_group(name)

    def get_groups(self) -> List[Group]:
        with self._locked("get_groups"):
            return self.db.get_groups()

    def delete_group(self, group_id: int) -> bool:
        with self._locked("delete_group"):
            return self.db.delete_group(group_id)

    def add_item_to_group(self, item_id: str, group_id: int) -> bool:
        with self._locked("add_item_to_group"):
            return self.db.add_item_to_group(item_id, group_id)

    def remove_item_from_group(self, item_id: str, group_id: int) -> bool:
        with self._locked("remove_item_from_group"):
            return self.db.remove_item_from_group(item_id, group_id)

    def get_groups_for_item(self, item_id: str) -> List[Group]:
        with self._locked("get_groups_for_item"):
            return self.db.get_groups_for_item(item_id)

    def get_items_in_group(self, group_id: int, limit: int = 50, offset: int = 0) -> List[ClipboardItem]:
        with self._locked("get_items_in_group"):
            return self.db.get_items_in_group(group_id, limit, offset)

    def close(self):
        """Close database connection"""
        with self.lock:
            self.db.close()
