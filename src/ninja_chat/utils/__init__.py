"""
Utilities for the Chat Server

This module contains request validation helpers.
"""

from .validation import (
    validate_credentials,
    validate_message_content,
    validate_message_request,
    require_fields,
)

__all__ = [
    "validate_credentials",
    "validate_message_content",
    "validate_message_request",
    "require_fields",
]
