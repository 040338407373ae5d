"""
Ninja Chat Server Package

This package provides the chat server: the credential store, the
session registry, the request router and the WebSocket transport that
feeds it.
"""

from .credential_store import CredentialStore, User
from .errors import (
    ChatError,
    AuthError,
    AlreadyExistsError,
    MalformedRequestError,
    StorageError,
)
from .group_store import GroupStore, Group, GroupMessage, EVERYBODY
from .router import RequestRouter
from .session_registry import SessionRegistry
from .websocket_server import WebSocketServer

__all__ = [
    "CredentialStore",
    "User",
    "ChatError",
    "AuthError",
    "AlreadyExistsError",
    "MalformedRequestError",
    "StorageError",
    "GroupStore",
    "Group",
    "GroupMessage",
    "EVERYBODY",
    "RequestRouter",
    "SessionRegistry",
    "WebSocketServer",
]
