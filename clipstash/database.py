#!/usr/bin/env python3
"""
Database layer for ClipStash
Handles SQLite storage of clipboard items and their full-text search shadow rows
"""

import logging
import sqlite3
import uuid
from datetime import datetime, timedelta, timezone
from typing import List, Optional, Tuple

from clipstash.models import ClipboardItem, ContentType, Group, ItemDetail, NewClipboardItem
from clipstash.utils import default_data_dir, format_timestamp, timestamp_now

logger = logging.getLogger(__name__)

# Trigram shingles cannot represent shorter fragments
MIN_FTS_QUERY_LENGTH = 3

# Columns returned by listings and search; the thumbnail blob is served separately
ITEM_COLUMNS = (
    "id, content_type, plain_text, image_path, file_path, file_name, source_app, "
    "source_app_name, content_size, content_hash, is_favorited, created_at, updated_at"
)


def _fold_case(value: Optional[str]) -> Optional[str]:
    return value.lower() if isinstance(value, str) else value


class ClipboardDB:
    """SQLite database for clipboard items"""

    def __init__(self, db_path: str = None):
        if db_path is None:
            # Default to ~/.local/share/clipstash/clipstash.db
            db_dir = default_data_dir()
            db_dir.mkdir(parents=True, exist_ok=True)
            db_path = db_dir / "clipstash.db"

        self.db_path = str(db_path)
        self.conn = sqlite3.connect(self.db_path, check_same_thread=False)
        self.conn.row_factory = sqlite3.Row
        # SQLite LIKE folds ASCII only; the trigram index folds all of Unicode
        self.conn.create_function("fold_case", 1, _fold_case, deterministic=True)
        self.conn.execute("PRAGMA foreign_keys = ON")
        if self.db_path != ":memory:":
            self.conn.execute("PRAGMA journal_mode = WAL")
        self._init_db()

    def _init_db(self):
        """Initialize database schema"""
        cursor = self.conn.cursor()
        cursor.execute(
            """
            CREATE TABLE IF NOT EXISTS clipboard_items (
                id TEXT PRIMARY KEY,
                content_type TEXT NOT NULL,
                plain_text TEXT NOT NULL DEFAULT '',
                rich_content BLOB,
                thumbnail BLOB,
                image_path TEXT,
                file_path TEXT,
                file_name TEXT,
                source_app TEXT NOT NULL DEFAULT '',
                source_app_name TEXT NOT NULL DEFAULT '',
                content_size INTEGER NOT NULL DEFAULT 0,
                content_hash TEXT NOT NULL,
                is_favorited INTEGER NOT NULL DEFAULT 0,
                created_at TEXT NOT NULL,
                updated_at TEXT NOT NULL
            )
            """
        )

        # One row per content hash; concurrent inserts of the same content collide here
        cursor.execute(
            """
            CREATE UNIQUE INDEX IF NOT EXISTS idx_content_hash
            ON clipboard_items(content_hash)
            """
        )
        cursor.execute(
            """
            CREATE INDEX IF NOT EXISTS idx_updated_at
            ON clipboard_items(updated_at DESC)
            """
        )
        cursor.execute(
            """
            CREATE INDEX IF NOT EXISTS idx_favorited_updated_at
            ON clipboard_items(is_favorited, updated_at DESC)
            """
        )
        cursor.execute(
            """
            CREATE INDEX IF NOT EXISTS idx_created_at
            ON clipboard_items(created_at)
            """
        )

        # Search shadow table, one row per item
        cursor.execute(
            """
            CREATE VIRTUAL TABLE IF NOT EXISTS clipboard_fts
            USING fts5(item_id UNINDEXED, plain_text, file_name, source_app_name, tokenize="trigram")
            """
        )

        cursor.execute(
            """
            CREATE TABLE IF NOT EXISTS groups (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                name TEXT NOT NULL UNIQUE,
                created_at TEXT NOT NULL
            )
            """
        )
        cursor.execute(
            """
            CREATE TABLE IF NOT EXISTS item_groups (
                item_id TEXT NOT NULL,
                group_id INTEGER NOT NULL,
                created_at TEXT NOT NULL,
                PRIMARY KEY (item_id, group_id),
                FOREIGN KEY (item_id) REFERENCES clipboard_items(id) ON DELETE CASCADE,
                FOREIGN KEY (group_id) REFERENCES groups(id) ON DELETE CASCADE
            )
            """
        )
        cursor.execute(
            """
            CREATE INDEX IF NOT EXISTS idx_item_groups_group
            ON item_groups(group_id)
            """
        )

        self.conn.commit()
        logger.info(f"Database initialized or already exists at: {self.db_path}")

    @staticmethod
    def _row_to_item(row: sqlite3.Row) -> ClipboardItem:
        return ClipboardItem(
            id=row["id"],
            content_type=ContentType(row["content_type"]),
            plain_text=row["plain_text"],
            image_path=row["image_path"],
            file_path=row["file_path"],
            file_name=row["file_name"],
            source_app=row["source_app"],
            source_app_name=row["source_app_name"],
            content_size=row["content_size"],
            content_hash=row["content_hash"],
            is_favorited=bool(row["is_favorited"]),
            created_at=row["created_at"],
            updated_at=row["updated_at"],
        )

    # ========== Items ==========

    def add_item(self, item: NewClipboardItem, timestamp: str = None) -> str:
        """
        Insert a clipboard item together with its search shadow row

        Both rows are written in one transaction; either both exist afterwards or neither.

        Args:
            item: The item payload
            timestamp: created_at/updated_at value (defaults to now)

        Returns:
            The generated item id
        """
        if timestamp is None:
            timestamp = timestamp_now()

        item_id = str(uuid.uuid4())
        with self.conn:
            self.conn.execute(
                """
                INSERT INTO clipboard_items (id, content_type, plain_text, rich_content, thumbnail, image_path,
                    file_path, file_name, source_app, source_app_name, content_size, content_hash,
                    created_at, updated_at)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    item_id,
                    item.content_type.value,
                    item.plain_text,
                    item.rich_content,
                    item.thumbnail,
                    item.image_path,
                    item.file_path,
                    item.file_name,
                    item.source_app,
                    item.source_app_name,
                    item.content_size,
                    item.content_hash,
                    timestamp,
                    timestamp,
                ),
            )
            self.conn.execute(
                """
                INSERT INTO clipboard_fts (item_id, plain_text, file_name, source_app_name)
                VALUES (?, ?, ?, ?)
                """,
                (item_id, item.plain_text, item.file_name or "", item.source_app_name),
            )

        logger.info(
            f"Added item to DB: ID={item_id}, Type={item.content_type.value}, Hash={item.content_hash[:16]}..."
        )
        return item_id

    def find_and_bump_by_hash(self, content_hash: str, timestamp: str = None) -> Optional[str]:
        """
        Refresh updated_at of the item with this hash and return its id

        Lookup and update happen in a single statement, so two callers racing on the
        same content both see the same row.

        Returns:
            Item id if found, None otherwise
        """
        if timestamp is None:
            timestamp = timestamp_now()

        with self.conn:
            cursor = self.conn.execute(
                "UPDATE clipboard_items SET updated_at = ? WHERE content_hash = ? RETURNING id",
                (timestamp, content_hash),
            )
            rows = cursor.fetchall()
        return rows[0]["id"] if rows else None

    def get_item(self, item_id: str) -> Optional[ClipboardItem]:
        """Get a single item by ID (without thumbnail)"""
        row = self.conn.execute(
            f"SELECT {ITEM_COLUMNS} FROM clipboard_items WHERE id = ?", (item_id,)
        ).fetchone()
        return self._row_to_item(row) if row else None

    def get_item_detail(self, item_id: str) -> Optional[ItemDetail]:
        """Get full item detail, with rich content decoded as UTF-8"""
        row = self.conn.execute(
            """
            SELECT id, content_type, plain_text, rich_content, image_path, file_path, file_name, content_size
            FROM clipboard_items
            WHERE id = ?
            """,
            (item_id,),
        ).fetchone()
        if not row:
            return None

        rich_content = row["rich_content"]
        if rich_content is not None:
            rich_content = bytes(rich_content).decode("utf-8", errors="replace")

        return ItemDetail(
            id=row["id"],
            content_type=ContentType(row["content_type"]),
            plain_text=row["plain_text"],
            rich_content=rich_content,
            image_path=row["image_path"],
            file_path=row["file_path"],
            file_name=row["file_name"],
            content_size=row["content_size"],
        )

    def get_thumbnail(self, item_id: str) -> Optional[bytes]:
        """Get the thumbnail blob for a single item"""
        row = self.conn.execute(
            "SELECT thumbnail FROM clipboard_items WHERE id = ?", (item_id,)
        ).fetchone()
        if row and row["thumbnail"] is not None:
            return bytes(row["thumbnail"])
        return None

    def get_image_path(self, item_id: str) -> Optional[str]:
        """Return the archived image path of an item (None if not an image or not found)"""
        row = self.conn.execute(
            "SELECT image_path FROM clipboard_items WHERE id = ?", (item_id,)
        ).fetchone()
        return row["image_path"] if row else None

    def update_thumbnail(self, item_id: str, thumbnail: bytes, timestamp: str = None) -> bool:
        """Update thumbnail for an item"""
        if timestamp is None:
            timestamp = timestamp_now()

        with self.conn:
            cursor = self.conn.execute(
                "UPDATE clipboard_items SET thumbnail = ?, updated_at = ? WHERE id = ?",
                (thumbnail, timestamp, item_id),
            )
        return cursor.rowcount > 0

    def toggle_favorite(self, item_id: str, timestamp: str = None) -> Optional[bool]:
        """
        Flip the favorite flag of an item

        Returns:
            The new favorite state, or None if the item does not exist
        """
        if timestamp is None:
            timestamp = timestamp_now()

        with self.conn:
            cursor = self.conn.execute(
                """
                UPDATE clipboard_items
                SET is_favorited = 1 - is_favorited, updated_at = ?
                WHERE id = ?
                RETURNING is_favorited
                """,
                (timestamp, item_id),
            )
            rows = cursor.fetchall()
        return bool(rows[0]["is_favorited"]) if rows else None

    def delete_item(self, item_id: str) -> bool:
        """Delete an item, its shadow row and its group associations"""
        with self.conn:
            self.conn.execute("DELETE FROM clipboard_fts WHERE item_id = ?", (item_id,))
            self.conn.execute("DELETE FROM item_groups WHERE item_id = ?", (item_id,))
            cursor = self.conn.execute("DELETE FROM clipboard_items WHERE id = ?", (item_id,))
        return cursor.rowcount > 0

    # ========== Listing ==========

    def _select_items(
        self,
        where_clauses: List[str],
        params: list,
        limit: int,
        offset: int = 0,
    ) -> List[ClipboardItem]:
        where_clause = ""
        if where_clauses:
            where_clause = "WHERE " + " AND ".join(where_clauses)

        query = f"""
            SELECT {ITEM_COLUMNS}
            FROM clipboard_items
            {where_clause}
            ORDER BY updated_at DESC, rowid DESC
            LIMIT ? OFFSET ?
        """
        rows = self.conn.execute(query, tuple(params) + (limit, offset)).fetchall()
        return [self._row_to_item(row) for row in rows]

    def get_items(
        self,
        content_type: Optional[ContentType] = None,
        limit: int = 50,
        offset: int = 0,
    ) -> List[ClipboardItem]:
        """
        Get clipboard items, most recently updated first

        Args:
            content_type: Optional content type filter
            limit: Maximum number of items to return
            offset: Number of items to skip

        Returns:
            List of items without thumbnail blobs
        """
        where_clauses = []
        params = []
        if content_type is not None:
            where_clauses.append("content_type = ?")
            params.append(ContentType(content_type).value)
        return self._select_items(where_clauses, params, limit, offset)

    def get_favorited_items(
        self,
        content_type: Optional[ContentType] = None,
        limit: int = 200,
        offset: int = 0,
    ) -> List[ClipboardItem]:
        """Get favorited items, optionally filtered by content type"""
        where_clauses = ["is_favorited = 1"]
        params = []
        if content_type is not None:
            where_clauses.append("content_type = ?")
            params.append(ContentType(content_type).value)
        return self._select_items(where_clauses, params, limit, offset)

    def get_total_count(self, content_type: Optional[ContentType] = None) -> int:
        """Count stored items, optionally of one content type"""
        if content_type is None:
            row = self.conn.execute("SELECT COUNT(*) AS count FROM clipboard_items").fetchone()
        else:
            row = self.conn.execute(
                "SELECT COUNT(*) AS count FROM clipboard_items WHERE content_type = ?",
                (ContentType(content_type).value,),
            ).fetchone()
        return row["count"]

    # ========== Search ==========

    def search_items(
        self,
        query: str,
        content_type: Optional[ContentType] = None,
        limit: int = 50,
    ) -> List[ClipboardItem]:
        """
        Search plain text, file name and source app name

        Queries of three or more characters run as an FTS5 phrase match against the
        trigram index. Shorter queries fall back to a LIKE substring scan over case-folded
        columns. Both paths are case-insensitive across Unicode.

        Args:
            query: Search string, matched as a literal substring
            content_type: Optional content type filter
            limit: Maximum number of results

        Returns:
            Matching items, most recently updated first
        """
        if not query:
            return []

        where_clauses = []
        params = []

        if len(query) >= MIN_FTS_QUERY_LENGTH:
            # Quote as a phrase; embedded quotes are doubled
            fts_query = '"' + query.replace('"', '""') + '"'
            where_clauses.append(
                "id IN (SELECT item_id FROM clipboard_fts WHERE clipboard_fts MATCH ?)"
            )
            params.append(fts_query)
            logger.debug(f"[SEARCH DB] FTS query: {fts_query}")
        else:
            escaped = query.lower().replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")
            like_pattern = f"%{escaped}%"
            where_clauses.append(
                "(fold_case(plain_text) LIKE ? ESCAPE '\\' OR fold_case(file_name) LIKE ? ESCAPE '\\' "
                "OR fold_case(source_app_name) LIKE ? ESCAPE '\\')"
            )
            params.extend([like_pattern, like_pattern, like_pattern])
            logger.debug(f"[SEARCH DB] LIKE fallback: {like_pattern}")

        if content_type is not None:
            where_clauses.append("content_type = ?")
            params.append(ContentType(content_type).value)

        return self._select_items(where_clauses, params, limit)

    # ========== Retention ==========

    @staticmethod
    def _retention_predicate(
        policy: str, days: int, count: int, now: datetime = None
    ) -> Optional[Tuple[str, tuple]]:
        """
        WHERE clause selecting the items a retention policy removes

        Returns None for "unlimited", unknown policies and non-positive parameters.
        """
        if policy == "days" and days > 0:
            if now is None:
                now = datetime.now(timezone.utc)
            cutoff = format_timestamp(now - timedelta(days=days))
            return "is_favorited = 0 AND created_at < ?", (cutoff,)
        if policy == "count" and count > 0:
            return (
                """is_favorited = 0 AND id NOT IN (
                    SELECT id FROM clipboard_items
                    WHERE is_favorited = 0
                    ORDER BY updated_at DESC, rowid DESC
                    LIMIT ?
                )""",
                (count,),
            )
        return None

    def _delete_where(self, predicate: str, params: tuple) -> int:
        """Delete shadow rows, group associations and items matching predicate, in one transaction"""
        with self.conn:
            self.conn.execute(
                f"DELETE FROM clipboard_fts WHERE item_id IN (SELECT id FROM clipboard_items WHERE {predicate})",
                params,
            )
            self.conn.execute(
                f"DELETE FROM item_groups WHERE item_id IN (SELECT id FROM clipboard_items WHERE {predicate})",
                params,
            )
            cursor = self.conn.execute(f"DELETE FROM clipboard_items WHERE {predicate}", params)
        return cursor.rowcount

    def get_retention_image_paths(
        self, policy: str, days: int = 0, count: int = 0, now: datetime = None
    ) -> List[str]:
        """Return image paths of the items cleanup_by_retention would remove"""
        predicate = self._retention_predicate(policy, days, count, now)
        if predicate is None:
            return []
        where, params = predicate
        rows = self.conn.execute(
            f"SELECT image_path FROM clipboard_items WHERE {where} AND image_path IS NOT NULL",
            params,
        ).fetchall()
        return [row["image_path"] for row in rows]

    def cleanup_by_retention(
        self, policy: str, days: int = 0, count: int = 0, now: datetime = None
    ) -> int:
        """
        Remove non-favorited items according to a retention policy

        Args:
            policy: "unlimited", "days" or "count"
            days: For "days", remove items created strictly before now - days
            count: For "count", keep only this many most recently updated items
            now: Reference time for the "days" policy (defaults to current time)

        Returns:
            Number of items removed
        """
        predicate = self._retention_predicate(policy, days, count, now)
        if predicate is None:
            return 0
        where, params = predicate
        deleted = self._delete_where(where, params)
        if deleted:
            logger.info(f"Retention cleanup ({policy}) removed {deleted} items")
        return deleted

    def get_non_favorited_image_paths(self) -> List[str]:
        """Return image paths of all non-favorited items (used before clear_history)"""
        rows = self.conn.execute(
            "SELECT image_path FROM clipboard_items WHERE is_favorited = 0 AND image_path IS NOT NULL"
        ).fetchall()
        return [row["image_path"] for row in rows]

    def clear_history(self) -> int:
        """Remove all non-favorited items. Returns the number removed"""
        deleted = self._delete_where("is_favorited = 0", ())
        logger.info(f"Cleared history: {deleted} items removed")
        return deleted

    def get_all_image_paths(self) -> List[str]:
        """Return every image path currently referenced by a stored item"""
        rows = self.conn.execute(
            "SELECT image_path FROM clipboard_items WHERE image_path IS NOT NULL"
        ).fetchall()
        return [row["image_path"] for row in rows]

    # ========== Groups ==========

    def create_group(self, name: str) -> int:
        """
        Create a new group

        Raises:
            sqlite3.IntegrityError: If a group with this name already exists
        """
        try:
            with self.conn:
                cursor = self.conn.execute(
                    "INSERT INTO groups (name, created_at) VALUES (?, ?)",
                    (name, timestamp_now()),
                )
        except sqlite3.IntegrityError as e:
            logger.error(f"Failed to create group '{name}': {e}")
            raise
        group_id = cursor.lastrowid
        logger.info(f"Created group: ID={group_id}, Name='{name}'")
        return group_id

    def get_groups(self) -> List[Group]:
        """Get all groups with their item counts"""
        rows = self.conn.execute(
            """
            SELECT g.id, g.name, g.created_at, COUNT(ig.item_id) AS item_count
            FROM groups g
            LEFT JOIN item_groups ig ON g.id = ig.group_id
            GROUP BY g.id
            ORDER BY g.name ASC
            """
        ).fetchall()
        return [
            Group(id=row["id"], name=row["name"], created_at=row["created_at"], item_count=row["item_count"])
            for row in rows
        ]

    def delete_group(self, group_id: int) -> bool:
        """Delete a group and its item associations (the items stay)"""
        with self.conn:
            self.conn.execute("DELETE FROM item_groups WHERE group_id = ?", (group_id,))
            cursor = self.conn.execute("DELETE FROM groups WHERE id = ?", (group_id,))
        success = cursor.rowcount > 0
        if success:
            logger.info(f"Deleted group ID={group_id}")
        return success

    def add_item_to_group(self, item_id: str, group_id: int) -> bool:
        """
        Associate an item with a group

        Returns:
            True if added, False if already associated or either side does not exist
        """
        try:
            with self.conn:
                self.conn.execute(
                    "INSERT INTO item_groups (item_id, group_id, created_at) VALUES (?, ?, ?)",
                    (item_id, group_id, timestamp_now()),
                )
        except sqlite3.IntegrityError:
            logger.warning(f"Could not add item {item_id} to group {group_id}")
            return False
        return True

    def remove_item_from_group(self, item_id: str, group_id: int) -> bool:
        with self.conn:
            cursor = self.conn.execute(
                "DELETE FROM item_groups WHERE item_id = ? AND group_id = ?",
                (item_id, group_id),
            )
        return cursor.rowcount > 0

    def get_groups_for_item(self, item_id: str) -> List[Group]:
        rows = self.conn.execute(
            """
            SELECT g.id, g.name, g.created_at
            FROM groups g
            INNER JOIN item_groups ig ON g.id = ig.group_id
            WHERE ig.item_id = ?
            ORDER BY g.name ASC
            """,
            (item_id,),
        ).fetchall()
        return [Group(id=row["id"], name=row["name"], created_at=row["created_at"]) for row in rows]

    def get_items_in_group(self, group_id: int, limit: int = 50, offset: int = 0) -> List[ClipboardItem]:
        return self._select_items(
            ["id IN (SELECT item_id FROM item_groups WHERE group_id = ?)"],
            [group_id],
            limit,
            offset,
        )

    def close(self):
        """Close database connection"""
        self.conn.close()
