#!/usr/bin/env python3
"""
Exceptions raised by the storage core
"""


class ClipStashError(Exception):
    """Base class for ClipStash errors"""


class StorageError(ClipStashError):
    """A database transaction or connection failed"""


class ConflictError(StorageError):
    """A write collided with a uniqueness constraint (duplicate content hash or group name)"""
