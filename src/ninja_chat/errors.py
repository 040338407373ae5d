"""
Error Types for the Chat Server

Exceptions raised by the credential store and the request router.
Handlers translate them into fail envelopes; only a StorageError at
startup is fatal.
"""

from typing import Optional


class ChatError(Exception):
    """Base class for all chat server errors."""


class AuthError(ChatError):
    """Bad credentials supplied for a login."""


class AlreadyExistsError(ChatError):
    """An account with the same (case-insensitive) username exists."""

    def __init__(self, username: str):
        super().__init__(f"User '{username}' already exists")
        self.username = username


class MalformedRequestError(ChatError):
    """
    A request is missing a field or carries an invalid value.

    Attributes:
        request_type: The ``type`` of the rejected request, if known
    """

    def __init__(self, message: str, request_type: Optional[str] = None):
        super().__init__(message)
        self.request_type = request_type


class StorageError(ChatError):
    """The credential file could not be read or written."""
