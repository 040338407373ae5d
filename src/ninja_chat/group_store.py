"""
Group Store

In-memory collection of chat groups and their message history. Groups
are identified by their hash; the "Everybody" group (hash "0") always
exists and reaches every online user.
"""

import logging
import threading
from dataclasses import dataclass, field
from typing import Any, Dict, List

logger = logging.getLogger(__name__)

EVERYBODY = "Everybody"
EVERYBODY_HASH = "0"


@dataclass
class GroupMessage:
    """A single message posted to a group."""

    sender: str
    timestamp: str
    message: str

    def to_dict(self) -> Dict[str, Any]:
        return {
            "from": self.sender,
            "timestamp": self.timestamp,
            "message": self.message,
        }


@dataclass
class Group:
    """
    A named group of users sharing a message history.

    Attributes:
        group_hash: Opaque identifier chosen by the client that created it
        name: Display name
        users: Member usernames
        messages: History, oldest first
    """

    group_hash: str
    name: str
    users: List[str] = field(default_factory=list)
    messages: List[GroupMessage] = field(default_factory=list)
    _lock: threading.Lock = field(
        default_factory=threading.Lock, repr=False, compare=False
    )

    @property
    def is_everybody(self) -> bool:
        return EVERYBODY in self.users or self.group_hash == EVERYBODY_HASH

    def has_member(self, username: str) -> bool:
        return self.is_everybody or username in self.users

    def add_message(self, sender: str, timestamp: str, text: str) -> GroupMessage:
        """Append a message to the group's history."""
        message = GroupMessage(sender, timestamp, text)
        with self._lock:
            self.messages.append(message)
        return message

    def to_dict(self) -> Dict[str, Any]:
        """Convert to the group descriptor sent to clients."""
        with self._lock:
            messages = [m.to_dict() for m in self.messages]
        return {
            "name": self.name,
            "hash": self.group_hash,
            "users": list(self.users),
            "messages": messages,
        }


class GroupStore:
    """
    Looks up or creates groups and lists the groups a user belongs to.
    """

    def __init__(self):
        self._groups: Dict[str, Group] = {}
        self._lock = threading.Lock()
        self._groups[EVERYBODY_HASH] = Group(
            EVERYBODY_HASH, EVERYBODY, [EVERYBODY]
        )

    def group(self, group_hash: str, name: str, users: List[str]) -> Group:
        """
        Return the group with this hash, creating it if it is new.

        An existing group keeps its name; any users not yet listed are
        added to its membership.
        """
        with self._lock:
            existing = self._groups.get(group_hash)
            if existing is None:
                existing = Group(group_hash, name, list(users))
                self._groups[group_hash] = existing
                logger.info(
                    f"Created group '{name}' ({group_hash}) with "
                    f"{len(users)} members"
                )
            else:
                for username in users:
                    if username not in existing.users:
                        existing.users.append(username)
            return existing

    def get_group(self, group_hash: str):
        with self._lock:
            return self._groups.get(group_hash)

    def get_groups(self, username: str) -> List[Dict[str, Any]]:
        """Descriptors of every group the user can see, Everybody first."""
        with self._lock:
            groups = list(self._groups.values())
        return [g.to_dict() for g in groups if g.has_member(username)]
