"""
Session Registry

Tracks which users are online and the delivery handle (the client's
WebSocket connection) each one is reachable through.
"""

import asyncio
import logging
import threading
from typing import Any, Dict, Iterable, List, Optional, Tuple

logger = logging.getLogger(__name__)

DEFAULT_SEND_TIMEOUT = 5  # seconds to wait on a single recipient


class SessionRegistry:
    """
    Maps online usernames to their delivery handles.

    A delivery handle is any object with an ``async send(payload: str)``
    method. All map access goes through a single lock that is released
    before any payload is sent, so one slow client never holds up the
    registry. Sends are bounded by ``send_timeout``.
    """

    def __init__(self, send_timeout: float = DEFAULT_SEND_TIMEOUT):
        """
        Initialize the session registry.

        Args:
            send_timeout: Seconds to wait for a single delivery before
                giving up on that recipient
        """
        self.send_timeout = send_timeout
        self._sessions: Dict[str, Any] = {}  # username -> delivery handle
        self._lock = threading.Lock()

    def add(self, username: str, handle: Any) -> Optional[Any]:
        """
        Register a session, replacing any prior one for the username.

        Args:
            username: The authenticated username
            handle: Delivery handle for the user's connection

        Returns:
            The handle that was displaced, or None
        """
        with self._lock:
            previous = self._sessions.pop(username, None)
            self._sessions[username] = handle

        if previous is not None and previous is not handle:
            logger.info(f"Replaced existing session for {username}")
            return previous
        logger.info(f"Registered session for {username}")
        return None

    def remove(self, username: str, handle: Any = None) -> Optional[Any]:
        """
        Unregister a session. Unknown usernames are ignored.

        Args:
            username: The username to remove
            handle: If given, only remove the session when it is still
                bound to this handle

        Returns:
            The removed handle, or None if nothing was removed
        """
        with self._lock:
            current = self._sessions.get(username)
            if current is None:
                return None
            if handle is not None and current is not handle:
                return None
            del self._sessions[username]

        logger.info(f"Removed session for {username}")
        return current

    def remove_handle(self, handle: Any) -> Optional[str]:
        """
        Unregister whichever username is bound to ``handle``.

        Returns:
            The username that was removed, or None
        """
        with self._lock:
            for username, current in self._sessions.items():
                if current is handle:
                    del self._sessions[username]
                    break
            else:
                return None

        logger.info(f"Removed session for {username} on disconnect")
        return username

    def find(self, username: str) -> Optional[Any]:
        """Return the delivery handle for an online user, or None."""
        with self._lock:
            return self._sessions.get(username)

    def username_for(self, handle: Any) -> Optional[str]:
        """Return the username bound to ``handle``, or None."""
        with self._lock:
            for username, current in self._sessions.items():
                if current is handle:
                    return username
        return None

    def is_online(self, username: str) -> bool:
        return self.find(username) is not None

    def snapshot_online_users(self) -> List[str]:
        """Usernames of all online users, in registration order."""
        with self._lock:
            return list(self._sessions)

    def _snapshot_sessions(self) -> List[Tuple[str, Any]]:
        with self._lock:
            return list(self._sessions.items())

    async def broadcast_to_all(self, payload: str) -> int:
        """
        Deliver ``payload`` to every session registered at call time.

        Returns:
            Number of recipients the payload was delivered to
        """
        return await self._deliver(payload, self._snapshot_sessions())

    async def broadcast_to_set(
        self, payload: str, usernames: Iterable[str]
    ) -> int:
        """
        Deliver ``payload`` only to online users listed in ``usernames``.

        Returns:
            Number of recipients the payload was delivered to
        """
        targets = set(usernames)
        sessions = [
            (username, handle)
            for username, handle in self._snapshot_sessions()
            if username in targets
        ]
        return await self._deliver(payload, sessions)

    async def send_to(self, username: str, payload: str) -> bool:
        """
        Deliver ``payload`` to a single online user.

        Returns:
            True if the user was online and the send succeeded
        """
        handle = self.find(username)
        if handle is None:
            return False
        return await self.send_to_handle(username, handle, payload)

    async def _deliver(
        self, payload: str, sessions: List[Tuple[str, Any]]
    ) -> int:
        if not sessions:
            return 0
        results = await asyncio.gather(
            *(
                self.send_to_handle(username, handle, payload)
                for username, handle in sessions
            )
        )
        return sum(1 for ok in results if ok)

    async def send_to_handle(
        self, username: str, handle: Any, payload: str
    ) -> bool:
        """
        Deliver ``payload`` to one handle, bounded by ``send_timeout``.

        Failures are logged and reported as False, never raised.
        """
        try:
            await asyncio.wait_for(
                handle.send(payload), timeout=self.send_timeout
            )
            return True
        except asyncio.TimeoutError:
            logger.warning(
                f"Timed out after {self.send_timeout}s sending to {username}"
            )
        except Exception as e:
            logger.warning(f"Failed to send to {username}: {e}")
        return False
