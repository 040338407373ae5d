"""
Schemas for the Chat Server

This module contains the envelope builders for replies and broadcast
events exchanged with clients.
"""

from .responses import (
    create_success_response,
    create_fail_response,
    create_logout_response,
    create_user_status_list,
)
from .events import (
    create_online_event,
    create_created_event,
    create_offline_event,
    create_evicted_event,
)

__all__ = [
    "create_success_response",
    "create_fail_response",
    "create_logout_response",
    "create_user_status_list",
    "create_online_event",
    "create_created_event",
    "create_offline_event",
    "create_evicted_event",
]
