#!/usr/bin/env python3
"""
WebSocket Service - Handles WebSocket communication with UI clients and clipboard observers
"""
import asyncio
import base64
import json
import logging
from typing import Optional, Set

import websockets
import websockets.exceptions

from clipstash.errors import ClipStashError, ConflictError
from clipstash.models import ContentType

logger = logging.getLogger(__name__)


class WebSocketService:
    """Service for WebSocket communication with UI clients"""

    def __init__(self, database_service, settings_service, clipboard_service, retention_service):
        """
        Initialize WebSocket service

        Args:
            database_service: Database service
            settings_service: Settings service
            clipboard_service: Clipboard service (ingestion)
            retention_service: Retention service (deletes and cleanup)
        """
        logger.info("[WebSocketService.__init__] Starting initialization...")
        self.db_service = database_service
        self.settings_service = settings_service
        self.clipboard_service = clipboard_service
        self.retention_service = retention_service
        self.clients: Set = set()
        self.loop: Optional[asyncio.AbstractEventLoop] = None
        logger.info("[WebSocketService.__init__] Initialization complete")

    def attach_loop(self, loop: asyncio.AbstractEventLoop):
        """Event loop that change notifications are broadcast on"""
        self.loop = loop

    def on_item_changed(self, item_id: str):
        """Notification listener; called from a worker thread"""
        if self.loop is None or self.loop.is_closed():
            return
        asyncio.run_coroutine_threadsafe(
            self.broadcast({"type": "clipboard_changed", "id": item_id}), self.loop
        )

    async def websocket_handler(self, websocket):
        """Handle WebSocket client connections"""
        logger.info(f"WebSocket client connected from {websocket.remote_address}")
        self.clients.add(websocket)

        try:
            async for message in websocket:
                try:
                    await self._handle_message(websocket, message)
                except (ClipStashError, ValueError, TypeError) as e:
                    logger.error(f"Error handling WebSocket message: {e}")
                    await websocket.send(json.dumps({"type": "error", "message": str(e)}))
                except websockets.exceptions.ConnectionClosed:
                    raise
                except Exception as e:
                    logger.exception(f"Unexpected error handling WebSocket message: {e}")
                    await websocket.send(json.dumps({"type": "error", "message": "internal error"}))

        except websockets.exceptions.ConnectionClosed:
            pass
        finally:
            self.clients.discard(websocket)
            logger.info("WebSocket client disconnected")

    async def _handle_message(self, websocket, message: str):
        """Handle individual WebSocket message"""
        data = json.loads(message)
        if not isinstance(data, dict):
            raise ValueError("message must be a JSON object")
        action = data.get("action")

        if action == "get_history":
            await self._handle_get_history(websocket, data)
        elif action == "get_favorites":
            await self._handle_get_favorites(websocket, data)
        elif action == "search":
            await self._handle_search(websocket, data)
        elif action == "get_item":
            await self._handle_get_item(websocket, data)
        elif action == "get_thumbnail":
            await self._handle_get_thumbnail(websocket, data)
        elif action == "delete_item":
            await self._handle_delete_item(websocket, data)
        elif action == "toggle_favorite":
            await self._handle_toggle_favorite(websocket, data)
        elif action == "clear_history":
            await self._handle_clear_history(websocket)
        elif action == "run_retention_cleanup":
            await self._handle_run_retention_cleanup(websocket)
        elif action == "update_retention_settings":
            await self._handle_update_retention_settings(websocket, data)
        elif action == "get_total_count":
            await self._handle_get_total_count(websocket, data)
        elif action == "get_groups":
            await self._handle_get_groups(websocket)
        elif action == "create_group":
            await self._handle_create_group(websocket, data)
        elif action == "delete_group":
            await self._handle_delete_group(websocket, data)
        elif action == "add_item_to_group":
            await self._handle_add_item_to_group(websocket, data)
        elif action == "remove_item_from_group":
            await self._handle_remove_item_from_group(websocket, data)
        elif action == "get_item_groups":
            await self._handle_get_item_groups(websocket, data)
        elif action == "get_group_items":
            await self._handle_get_group_items(websocket, data)
        elif action == "clipboard_event":
            await self._handle_clipboard_event(websocket, data)
        else:
            logger.warning(f"Unknown WebSocket action: {action}")
            await websocket.send(json.dumps({"type": "error", "message": f"Unknown action: {action}"}))

    @staticmethod
    def _content_type(data) -> Optional[ContentType]:
        value = data.get("content_type")
        return ContentType(value) if value else None

    async def _handle_get_history(self, websocket, data):
        """Handle get_history action"""
        limit = data.get("limit", 50)
        offset = data.get("offset", 0)
        content_type = self._content_type(data)

        items = self.db_service.get_items(content_type, limit, offset)
        total_count = self.db_service.get_total_count(content_type)
        logger.info(f"Returned {len(items)} items (total: {total_count})")

        response = {
            "type": "history",
            "items": [item.to_dict() for item in items],
            "total_count": total_count,
            "offset": offset,
        }
        await websocket.send(json.dumps(response))

    async def _handle_get_favorites(self, websocket, data):
        limit = data.get("limit", 200)
        offset = data.get("offset", 0)
        items = self.db_service.get_favorited_items(self._content_type(data), limit, offset)
        response = {"type": "favorites", "items": [item.to_dict() for item in items], "offset": offset}
        await websocket.send(json.dumps(response))

    async def _handle_search(self, websocket, data):
        """Handle search action"""
        query = data.get("query", "").strip()
        limit = data.get("limit", 50)

        if query:
            logger.info(f"Searching for: '{query}' (limit={limit})")
            results = self.db_service.search_items(query, self._content_type(data), limit)
            items = [item.to_dict() for item in results]
            logger.info(f"Search complete: {len(items)} results")
        else:
            items = []
        response = {"type": "search_results", "query": query, "items": items, "count": len(items)}
        await websocket.send(json.dumps(response))

    async def _handle_get_item(self, websocket, data):
        """Handle get_item action"""
        item_id = data.get("id")
        if not item_id:
            await websocket.send(json.dumps({"type": "item", "item": None, "error": "id is required"}))
            return

        detail = self.db_service.get_item_detail(item_id)
        if detail:
            response = {"type": "item", "item": detail.to_dict()}
        else:
            response = {"type": "item", "item": None, "error": "Item not found"}
            logger.warning(f"Item {item_id} not found")
        await websocket.send(json.dumps(response))

    async def _handle_get_thumbnail(self, websocket, data):
        item_id = data.get("id")
        thumbnail = self.db_service.get_thumbnail(item_id) if item_id else None
        thumbnail_b64 = base64.b64encode(thumbnail).decode("utf-8") if thumbnail else None
        await websocket.send(json.dumps({"type": "thumbnail", "id": item_id, "thumbnail": thumbnail_b64}))

    async def _handle_delete_item(self, websocket, data):
        """Handle delete_item action"""
        item_id = data.get("id")
        success = bool(item_id) and self.retention_service.delete_item(item_id)
        await websocket.send(json.dumps({"type": "item_deleted", "id": item_id, "success": success}))
        if success:
            await self.broadcast({"type": "item_deleted", "id": item_id})

    async def _handle_toggle_favorite(self, websocket, data):
        item_id = data.get("id")
        is_favorited = self.db_service.toggle_favorite(item_id) if item_id else None
        if is_favorited is None:
            response = {"type": "favorite_toggled", "id": item_id, "success": False, "error": "Item not found"}
        else:
            response = {"type": "favorite_toggled", "id": item_id, "success": True, "is_favorited": is_favorited}
        await websocket.send(json.dumps(response))

    async def _handle_clear_history(self, websocket):
        deleted = self.retention_service.clear_history()
        await websocket.send(json.dumps({"type": "history_cleared", "deleted": deleted}))
        await self.broadcast({"type": "history_cleared", "deleted": deleted})

    async def _handle_run_retention_cleanup(self, websocket):
        deleted = self.retention_service.run_retention_cleanup()
        await websocket.send(json.dumps({"type": "retention_cleanup", "deleted": deleted}))

    async def _handle_update_retention_settings(self, websocket, data):
        """Handle update_retention_settings action"""
        updates = {}
        for key in ("policy", "days", "count"):
            if key in data:
                updates[f"retention.{key}"] = data[key]

        logger.info(f"Updating retention settings: {updates}")
        try:
            self.settings_service.update_settings(**updates)
        except ValueError as e:
            # pydantic's ValidationError is a ValueError
            logger.error(f"Error updating retention settings: {e}")
            await websocket.send(json.dumps({"type": "retention_updated", "success": False, "error": str(e)}))
            return

        deleted = self.retention_service.run_retention_cleanup()
        await websocket.send(json.dumps({"type": "retention_updated", "success": True, "deleted": deleted}))

    async def _handle_get_total_count(self, websocket, data):
        """Handle get_total_count action"""
        total = self.db_service.get_total_count(self._content_type(data))
        await websocket.send(json.dumps({"type": "total_count", "total": total}))
        logger.info(f"Sent total count: {total}")

    async def _handle_get_groups(self, websocket):
        groups = self.db_service.get_groups()
        await websocket.send(json.dumps({"type": "groups", "groups": [g.to_dict() for g in groups]}))

    async def _handle_create_group(self, websocket, data):
        name = (data.get("name") or "").strip()
        if not name:
            await websocket.send(json.dumps({"type": "group_created", "success": False, "error": "name is required"}))
            return
        try:
            group_id = self.db_service.create_group(name)
        except ConflictError:
            response = {"type": "group_created", "success": False, "error": f"Group '{name}' already exists"}
        else:
            response = {"type": "group_created", "success": True, "id": group_id, "name": name}
        await websocket.send(json.dumps(response))

    async def _handle_delete_group(self, websocket, data):
        group_id = data.get("group_id")
        success = group_id is not None and self.db_service.delete_group(group_id)
        await websocket.send(json.dumps({"type": "group_deleted", "group_id": group_id, "success": success}))

    async def _handle_add_item_to_group(self, websocket, data):
        item_id = data.get("id")
        group_id = data.get("group_id")
        success = self.db_service.add_item_to_group(item_id, group_id)
        await websocket.send(json.dumps({"type": "item_group_added", "id": item_id, "group_id": group_id, "success": success}))

    async def _handle_remove_item_from_group(self, websocket, data):
        item_id = data.get("id")
        group_id = data.get("group_id")
        success = self.db_service.remove_item_from_group(item_id, group_id)
        await websocket.send(
            json.dumps({"type": "item_group_removed", "id": item_id, "group_id": group_id, "success": success})
        )

    async def _handle_get_item_groups(self, websocket, data):
        item_id = data.get("id")
        groups = self.db_service.get_groups_for_item(item_id)
        await websocket.send(json.dumps({"type": "item_groups", "id": item_id, "groups": [g.to_dict() for g in groups]}))

    async def _handle_get_group_items(self, websocket, data):
        group_id = data.get("group_id")
        limit = data.get("limit", 50)
        offset = data.get("offset", 0)
        items = self.db_service.get_items_in_group(group_id, limit, offset)
        await websocket.send(
            json.dumps({"type": "group_items", "group_id": group_id, "items": [item.to_dict() for item in items]})
        )

    async def _handle_clipboard_event(self, websocket, data):
        """Handle clipboard_event action"""
        event_data = data.get("data", {})
        if not isinstance(event_data, dict):
            raise ValueError("clipboard_event data must be a JSON object")
        logger.info(f"Received clipboard event via WebSocket: {event_data.get('content_type', 'unknown')}")
        self.clipboard_service.handle_clipboard_event(event_data)
        await websocket.send(json.dumps({"type": "clipboard_event_accepted"}))

    async def broadcast(self, message: dict):
        """Broadcast message to all WebSocket clients"""
        if self.clients:
            message_json = json.dumps(message)
            await asyncio.gather(*[client.send(message_json) for client in list(self.clients)], return_exceptions=True)
