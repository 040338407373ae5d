"""
Event Schema Definitions

Contains functions for creating the presence events broadcast to
connected clients.
"""

from typing import Any, Dict


def create_online_event(username: str) -> Dict[str, Any]:
    """Create the event announcing that a user logged in."""
    return {"type": "online", "username": username}


def create_created_event(username: str) -> Dict[str, Any]:
    """Create the event announcing a newly created account."""
    return {"type": "created", "username": username}


def create_offline_event(username: str) -> Dict[str, Any]:
    """Create the event announcing that a user logged out or disconnected."""
    return {"type": "offline", "username": username}


def create_evicted_event(username: str) -> Dict[str, Any]:
    """
    Create the notice sent to a session replaced by a newer login.

    Args:
        username: The user whose older session was dropped

    Returns:
        dict: Evicted event
    """
    return {
        "type": "evicted",
        "username": username,
        "message": "Logged in from another location.",
    }
