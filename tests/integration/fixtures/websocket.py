"""WebSocket fixtures and mocks for tests."""

import json
from typing import Any, Dict, List


class FakeWebSocket:
    """Fake WebSocket client for testing."""

    def __init__(self, incoming: List[str] = None):
        self.sent_messages: List[str] = []
        self.received_messages: List[str] = list(incoming or [])
        self.remote_address = ("127.0.0.1", 50000)
        self.closed = False

    async def send(self, message: str):
        """Simulate sending a message."""
        self.sent_messages.append(message)

    def __aiter__(self):
        return self

    async def __anext__(self) -> str:
        """Yield queued messages, then end the connection."""
        if not self.received_messages:
            raise StopAsyncIteration
        return self.received_messages.pop(0)

    async def close(self):
        """Close the connection."""
        self.closed = True

    def get_sent_json(self, index: int = -1) -> Dict[str, Any]:
        """Get a sent message as parsed JSON."""
        return json.loads(self.sent_messages[index])

    def get_all_sent_json(self) -> List[Dict[str, Any]]:
        """Get all sent messages as parsed JSON."""
        return [json.loads(msg) for msg in self.sent_messages]


def create_websocket_message(action: str, **data) -> str:
    """Create a WebSocket message JSON string."""
    message = {"action": action, **data}
    return json.dumps(message)
