"""WebSocket connection manager for the real-time activity feed."""
import logging
from collections import defaultdict

from fastapi import WebSocket

from streakboard.services.events import DomainEvent, event_payload

logger = logging.getLogger(__name__)


class ActivityFeedManager:
    """Manages activity-feed WebSocket connections per user.

    Doubles as an EventSink: each published event goes to every open
    connection of the user it concerns.
    """

    def __init__(self):
        # user_id -> list of WebSocket connections (a user can have several devices)
        self.active_connections: dict[int, list[WebSocket]] = defaultdict(list)

    async def connect(self, websocket: WebSocket, user_id: int):
        """Accept and register a new connection."""
        await websocket.accept()
        self.active_connections[user_id].append(websocket)
        logger.debug(
            'User %s connected. Total connections: %d',
            user_id, len(self.active_connections[user_id]),
        )

    def disconnect(self, websocket: WebSocket, user_id: int):
        """Remove a connection."""
        if websocket in self.active_connections[user_id]:
            self.active_connections[user_id].remove(websocket)
        if not self.active_connections[user_id]:
            del self.active_connections[user_id]

    async def send_to_user(self, user_id: int, message: dict):
        """Send a message to all connections of a specific user."""
        if user_id not in self.active_connections:
            return
        dead_connections = []
        for connection in self.active_connections[user_id]:
            try:
                await connection.send_json(message)
            except Exception as e:
                logger.info('Dropping feed connection for user %s: %s', user_id, e)
                dead_connections.append(connection)
        # Clean up dead connections
        for conn in dead_connections:
            self.disconnect(conn, user_id)

    async def publish(self, event: DomainEvent) -> None:
        await self.send_to_user(event.user_id, {'type': event.name, **event_payload(event)})
