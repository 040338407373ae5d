"""
Request Router for the Chat Server

Handles every client -> server request decoded by the transport.
Supports:
    - login
    - create (account creation)
    - message
    - logout

Each request produces at most one direct reply to the sender plus any
number of broadcasts routed through the SessionRegistry. Connection
close is reported through handle_disconnect.
"""

import asyncio
import json
import logging
from typing import Any, Dict

from .credential_store import CredentialStore
from .errors import (
    AlreadyExistsError,
    AuthError,
    MalformedRequestError,
    StorageError,
)
from .group_store import EVERYBODY, GroupStore
from .schemas import (
    create_created_event,
    create_evicted_event,
    create_fail_response,
    create_logout_response,
    create_offline_event,
    create_online_event,
    create_success_response,
    create_user_status_list,
)
from .session_registry import SessionRegistry
from .utils import require_fields, validate_credentials, validate_message_request

logger = logging.getLogger(__name__)

LOGIN_FAILED = "Failed to login! Username doesn't exist and/or wrong password!"
CREATE_EXISTS = (
    "Failed to create account! User already exists.\n"
    "Try a different username."
)
CREATE_STORAGE_FAILED = "Failed to create account! Internal server error."
INTERNAL_ERROR = "Internal server error"


class RequestRouter:
    """
    Dispatches decoded requests to their handlers.

    The router holds no per-connection state of its own; who is online
    lives in the SessionRegistry and who may log in lives in the
    CredentialStore, both injected at construction.
    """

    def __init__(
        self,
        credentials: CredentialStore,
        sessions: SessionRegistry,
        groups: GroupStore,
    ):
        """
        Initialize the request router

        Args:
            credentials: Store of registered accounts
            sessions: Registry of online users
            groups: Group collaborator for message history
        """
        self.credentials = credentials
        self.sessions = sessions
        self.groups = groups
        self._handlers = {
            "login": self.handle_login,
            "create": self.handle_create,
            "message": self.handle_chat_message,
            "logout": self.handle_logout,
        }

    async def handle_message(self, handle, message: str):
        """
        Entry point for a raw text frame received from a client
        """
        try:
            request = json.loads(message)
        except json.JSONDecodeError:
            await self._send_fail(handle, "error", "Message must be valid JSON.")
            return

        await self.handle_request(handle, request)

    async def handle_request(self, handle, request: Dict[str, Any]):
        """
        Dispatch one decoded request.

        Malformed requests and unexpected handler errors are answered
        with a fail envelope; they never propagate to the transport.
        """
        if not isinstance(request, dict):
            await self._send_fail(handle, "error", "Request must be a JSON object.")
            return

        msg_type = request.get("type")
        handler = self._handlers.get(msg_type) if isinstance(msg_type, str) else None
        if handler is None:
            logger.warning(f"Unknown request type: {msg_type}")
            await self._send_fail(
                handle, "error", f"Unknown message type '{msg_type}'."
            )
            return

        try:
            await handler(handle, request)
        except MalformedRequestError as e:
            logger.warning(f"Rejected malformed {msg_type} request: {e}")
            await self._send_fail(
                handle, e.request_type or msg_type, f"Malformed request: {e}"
            )
        except Exception as e:
            logger.error(f"Error handling {msg_type} request: {e}")
            await self._send_fail(handle, msg_type, INTERNAL_ERROR)

    async def handle_login(self, handle, request: Dict[str, Any]):
        """
        Handles login

        Expected request format:
        {
            "type": "login",
            "username": "...",
            "password": "..."
        }
        """
        username, password = validate_credentials(request, "login")
        logger.info(f"[LOGIN] {username}")

        loop = asyncio.get_running_loop()
        try:
            user = await loop.run_in_executor(
                None, self.credentials.login, username, password
            )
        except AuthError:
            logger.info(f"Login failed for {username}")
            await self._send_fail(handle, "login", LOGIN_FAILED)
            return

        # Sessions are keyed by the casing the account was created with
        username = user.username

        await self._open_session(username, handle)
        await self._send(handle, self._success_sync("login", username))
        await self._broadcast(create_online_event(username))

    async def handle_create(self, handle, request: Dict[str, Any]):
        """
        Handles account creation

        Expected request format:
        {
            "type": "create",
            "username": "...",
            "password": "..."
        }
        """
        username, password = validate_credentials(request, "create")
        logger.info(f"[CREATE] {username}")

        loop = asyncio.get_running_loop()
        try:
            await loop.run_in_executor(
                None, self.credentials.create, username, password
            )
        except AlreadyExistsError:
            logger.info(f"Account {username} already exists")
            await self._send_fail(handle, "create", CREATE_EXISTS)
            return
        except StorageError as e:
            logger.error(f"Could not store account {username}: {e}")
            await self._send_fail(handle, "create", CREATE_STORAGE_FAILED)
            return

        await self._open_session(username, handle)
        await self._send(handle, self._success_sync("create", username))
        await self._broadcast(create_created_event(username))

    async def handle_chat_message(self, handle, request: Dict[str, Any]):
        """
        Handles a chat message to a group

        Expected request format:
        {
            "type": "message",
            "name": "CS342",
            "hash": "...",
            "users": ["alice", "bob"],
            "from": "alice",
            "timestamp": "04/04/2016 - 12:24:02",
            "message": "..."
        }

        The request is relayed verbatim. A ``users`` list containing
        "Everybody" reaches every online user. The sender does not have
        to be logged in and ``from`` is not checked against the session.
        """
        users = validate_message_request(request)
        logger.info(
            f"[MESSAGE] {request['from']} -> {request['name']} "
            f"({request['hash']})"
        )

        group = self.groups.group(request["hash"], request["name"], users)
        group.add_message(request["from"], request["timestamp"], request["message"])

        payload = json.dumps(request)
        if EVERYBODY in users:
            delivered = await self.sessions.broadcast_to_all(payload)
        else:
            delivered = await self.sessions.broadcast_to_set(payload, users)
        logger.debug(f"Message delivered to {delivered} sessions")

    async def handle_logout(self, handle, request: Dict[str, Any]):
        """
        Handles logout

        Expected request format:
        {
            "type": "logout",
            "username": "..."
        }

        Only the connection the user is logged in on can end the
        session. Logging out a user that is not online (or is online
        elsewhere) still succeeds and changes nothing.
        """
        require_fields(request, ("username",), "logout")
        username = request["username"]
        if not isinstance(username, str):
            raise MalformedRequestError("username must be a string", "logout")
        logger.info(f"[LOGOUT] {username}")

        removed = self.sessions.remove(username, handle)
        await self._send(
            handle, create_logout_response(self.sessions.snapshot_online_users())
        )
        if removed is not None:
            await self._broadcast(create_offline_event(username))

    async def handle_disconnect(self, handle):
        """
        Drop the session bound to a closed connection, if any.
        """
        username = self.sessions.remove_handle(handle)
        if username is None:
            return
        logger.info(f"{username} disconnected")
        await self._broadcast(create_offline_event(username))

    async def _open_session(self, username: str, handle):
        """
        Bind ``username`` to ``handle``.

        A connection carries at most one user: if this handle was logged
        in as someone else, that session ends first. If the user was
        online elsewhere, the older connection is evicted and told so.
        """
        previous_user = self.sessions.username_for(handle)
        if previous_user is not None and previous_user != username:
            self.sessions.remove(previous_user, handle)
            await self._broadcast(create_offline_event(previous_user))

        evicted = self.sessions.add(username, handle)
        if evicted is not None:
            logger.info(f"Evicting older session for {username}")
            await self.sessions.send_to_handle(
                username, evicted, json.dumps(create_evicted_event(username))
            )

    def _success_sync(self, response_type: str, username: str) -> Dict[str, Any]:
        users = create_user_status_list(
            self.credentials.usernames(), self.sessions.is_online
        )
        groups = self.groups.get_groups(username)
        return create_success_response(response_type, username, users, groups)

    async def _broadcast(self, event: Dict[str, Any]):
        await self.sessions.broadcast_to_all(json.dumps(event))

    async def _send(self, handle, payload: Dict[str, Any]):
        username = self.sessions.username_for(handle) or "client"
        await self.sessions.send_to_handle(username, handle, json.dumps(payload))

    async def _send_fail(self, handle, response_type: str, message: str):
        """
        Unified fail response format
        """
        await self._send(handle, create_fail_response(response_type, message))
