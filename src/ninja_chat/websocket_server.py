"""
WebSocket Server for the Chat Server

Accepts client connections, feeds every received frame to the
RequestRouter and reports connection close so the user's session is
dropped.
"""

import logging

import websockets

from .router import RequestRouter

logger = logging.getLogger(__name__)


class WebSocketServer:
    """
    WebSocket server for handling client connections.

    Each connection is served by its own task. Frames from one client
    are processed one at a time, in the order they arrive.
    """

    def __init__(self, router: RequestRouter, host: str, port: int):
        """
        Initialize the WebSocket server.

        Args:
            router: The request router instance
            host: Host address to bind to
            port: Port to listen on
        """
        self.router = router
        self.host = host
        self.port = port
        self.server = None

    async def start(self):
        """Start the WebSocket server."""
        self.server = await websockets.serve(
            self.handle_client, self.host, self.port
        )
        logger.info(f"WebSocket server started on ws://{self.host}:{self.port}")

    async def stop(self):
        """Stop the WebSocket server."""
        if self.server:
            self.server.close()
            await self.server.wait_closed()
            logger.info("WebSocket server stopped")

    async def handle_client(self, websocket):
        """
        Handle a client connection.

        Args:
            websocket: The WebSocket connection, also used as the
                client's delivery handle
        """
        client_id = id(websocket)
        logger.info(f"Client {client_id} connected")

        try:
            async for message in websocket:
                if isinstance(message, bytes):
                    message = message.decode("utf-8", errors="replace")
                await self.router.handle_message(websocket, message)
        except websockets.exceptions.ConnectionClosed:
            logger.info(f"Client {client_id} disconnected")
        except Exception as e:
            logger.error(f"Error handling client {client_id}: {e}")
        finally:
            await self.router.handle_disconnect(websocket)
