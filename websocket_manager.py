# websocket_manager.py

from typing import List
from fastapi import WebSocket
import logging

logger = logging.getLogger(__name__)

class ConnectionManager:
    def __init__(self):
        # Back-office dashboards (orders, stock alerts)
        self.admin_connections: List[WebSocket] = []

    async def connect_admin(self, websocket: WebSocket):
        await websocket.accept()
        self.admin_connections.append(websocket)
        logger.info(f"Admin WebSocket connected ({len(self.admin_connections)} open)")

    def disconnect_admin(self, websocket: WebSocket):
        if websocket in self.admin_connections:
            self.admin_connections.remove(websocket)

    async def broadcast_admin(self, message: dict):
        """Sends a message to every open dashboard"""
        to_remove = []
        for connection in self.admin_connections:
            try:
                await connection.send_json(message)
            except Exception:
                to_remove.append(connection)

        for dead_conn in to_remove:
            self.disconnect_admin(dead_conn)

# Global instance
manager = ConnectionManager()
