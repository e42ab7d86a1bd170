#!/usr/bin/env python3
"""
Notification Service - Fans out clipboard change events to listeners
"""
import logging
import threading
from concurrent.futures import Future, ThreadPoolExecutor
from typing import Callable, List

logger = logging.getLogger(__name__)


class NotificationService:
    """Delivers item ids of new or changed rows to subscribed listeners"""

    def __init__(self):
        self._listeners: List[Callable[[str], None]] = []
        self._lock = threading.Lock()
        self.executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="notify")

    def subscribe(self, listener: Callable[[str], None]):
        with self._lock:
            self._listeners.append(listener)

    def notify(self, item_id: str) -> Future:
        """Queue a change event; listeners run on the notification thread"""
        with self._lock:
            listeners = list(self._listeners)

        def deliver():
            for listener in listeners:
                try:
                    listener(item_id)
                except Exception as e:
                    logger.error(f"Notification listener failed for item {item_id}: {e}")

        return self.executor.submit(deliver)

    def shutdown(self):
        self.executor.shutdown(wait=True)
