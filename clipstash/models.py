#!/usr/bin/env python3
"""
Data models for clipboard items
"""
from dataclasses import dataclass
from enum import Enum
from typing import Optional


class ContentType(Enum):
    """Kind of clipboard content, stored by its wire value"""

    PLAIN_TEXT = "plain_text"
    RICH_TEXT = "rich_text"
    IMAGE = "image"
    FILE = "file"

    def __str__(self) -> str:
        return self.value


@dataclass
class ClipboardItem:
    """A stored clipboard item as returned by listings and search (no thumbnail blob)"""

    id: str
    content_type: ContentType
    plain_text: str
    content_size: int
    content_hash: str
    created_at: str
    updated_at: str
    image_path: Optional[str] = None
    file_path: Optional[str] = None
    file_name: Optional[str] = None
    source_app: str = ""
    source_app_name: str = ""
    is_favorited: bool = False

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "content_type": self.content_type.value,
            "plain_text": self.plain_text,
            "image_path": self.image_path,
            "file_path": self.file_path,
            "file_name": self.file_name,
            "source_app": self.source_app,
            "source_app_name": self.source_app_name,
            "content_size": self.content_size,
            "content_hash": self.content_hash,
            "is_favorited": self.is_favorited,
            "created_at": self.created_at,
            "updated_at": self.updated_at,
        }


@dataclass
class ItemDetail:
    """Full item detail for preview, rich content decoded as text"""

    id: str
    content_type: ContentType
    plain_text: str
    content_size: int
    rich_content: Optional[str] = None
    image_path: Optional[str] = None
    file_path: Optional[str] = None
    file_name: Optional[str] = None

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "content_type": self.content_type.value,
            "plain_text": self.plain_text,
            "rich_content": self.rich_content,
            "image_path": self.image_path,
            "file_path": self.file_path,
            "file_name": self.file_name,
            "content_size": self.content_size,
        }


@dataclass
class NewClipboardItem:
    """Payload for inserting a new clipboard item"""

    content_type: ContentType
    content_hash: str
    content_size: int
    plain_text: str = ""
    rich_content: Optional[bytes] = None
    thumbnail: Optional[bytes] = None
    image_path: Optional[str] = None
    file_path: Optional[str] = None
    file_name: Optional[str] = None
    source_app: str = ""
    source_app_name: str = ""


@dataclass
class Group:
    """User-defined group of clipboard items"""

    id: int
    name: str
    created_at: str
    item_count: int = 0

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "created_at": self.created_at,
            "item_count": self.item_count,
        }


@dataclass
class ClipboardSnapshot:
    """One observed clipboard change, as handed over by the clipboard observer"""

    content_type: ContentType
    raw_bytes: bytes
    plain_text: Optional[str] = None
    rich_content: Optional[bytes] = None
    file_path: Optional[str] = None
    file_name: Optional[str] = None
    source_app: str = ""
    source_app_name: str = ""
