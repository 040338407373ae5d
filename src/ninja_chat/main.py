#!/usr/bin/env python3
"""
Ninja Chat Server

A multi-client chat server: clients create accounts, log in and
exchange messages in groups relayed by this process.
"""

import asyncio
import logging
import os
import sys

from .credential_store import (
    CredentialStore,
    DEFAULT_BCRYPT_ROUNDS,
    DEFAULT_USERS_DB_PATH,
)
from .errors import StorageError
from .group_store import GroupStore
from .router import RequestRouter
from .session_registry import SessionRegistry, DEFAULT_SEND_TIMEOUT
from .websocket_server import WebSocketServer

# Configure logging
logging.basicConfig(
    level=os.environ.get("LOG_LEVEL", "INFO").upper(),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)

logger = logging.getLogger(__name__)


def build_router(
    users_db_path: str,
    bcrypt_rounds: int = DEFAULT_BCRYPT_ROUNDS,
    send_timeout: float = DEFAULT_SEND_TIMEOUT,
) -> RequestRouter:
    """
    Wire the credential store, session registry and group store together.

    Raises:
        StorageError: If the credential store cannot be opened
    """
    credentials = CredentialStore(users_db_path, rounds=bcrypt_rounds)
    sessions = SessionRegistry(send_timeout=send_timeout)
    groups = GroupStore()
    return RequestRouter(credentials, sessions, groups)


async def run_server(host: str, port: int, router: RequestRouter):
    """
    Run the chat server until cancelled.

    Args:
        host: WebSocket host address to bind to
        port: WebSocket port to listen on
        router: Fully wired request router
    """
    ws_server = WebSocketServer(router, host, port)
    await ws_server.start()

    logger.info(f"Chat server listening on ws://{host}:{port}")

    try:
        # Wait indefinitely
        await asyncio.Event().wait()
    except asyncio.CancelledError:
        logger.info("Server shutdown requested")
    finally:
        await ws_server.stop()
        logger.info("Chat server stopped")


def main():
    """Main entry point for the chat server."""
    logger.info("Starting chat server...")

    # Get configuration from environment or use defaults
    host = os.environ.get("CHAT_HOST", "0.0.0.0")
    port = int(os.environ.get("CHAT_PORT", "8080"))
    users_db_path = os.environ.get("USERS_DB_PATH", DEFAULT_USERS_DB_PATH)
    bcrypt_rounds = int(
        os.environ.get("BCRYPT_ROUNDS", str(DEFAULT_BCRYPT_ROUNDS))
    )
    send_timeout = float(
        os.environ.get("SEND_TIMEOUT", str(DEFAULT_SEND_TIMEOUT))
    )

    try:
        router = build_router(users_db_path, bcrypt_rounds, send_timeout)
    except StorageError as e:
        logger.error(f"Cannot open credential store: {e}")
        sys.exit(1)

    try:
        asyncio.run(run_server(host, port, router))
    except KeyboardInterrupt:
        logger.info("Shutting down chat server...")
        sys.exit(0)


if __name__ == "__main__":
    main()
