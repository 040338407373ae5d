"""
Validation Utilities

Contains functions for validating decoded client requests. Each
validator raises MalformedRequestError naming the offending field.
"""

from typing import Any, Dict, Iterable, List, Tuple, Optional

from ..errors import MalformedRequestError

# Message validation constants
MAX_MESSAGE_LENGTH = 5000
MAX_USERNAME_LENGTH = 64
MAX_PASSWORD_BYTES = 72  # bcrypt ignores/rejects anything longer

MESSAGE_FIELDS = ("name", "hash", "users", "from", "timestamp", "message")


def require_fields(
    request: Dict[str, Any], fields: Iterable[str], request_type: str
):
    """
    Ensure every field in ``fields`` is present and not None.

    Raises:
        MalformedRequestError: If a field is missing
    """
    for name in fields:
        if request.get(name) is None:
            raise MalformedRequestError(
                f"Missing required field '{name}'", request_type
            )


def validate_message_content(content: str) -> Tuple[bool, Optional[str]]:
    """
    Validate message content.

    Args:
        content: The message content to validate

    Returns:
        tuple: (is_valid, error_message)
            - is_valid: True if content is valid, False otherwise
            - error_message: Error message if invalid, None if valid
    """
    if not content:
        return False, "Message content cannot be empty"

    if len(content) > MAX_MESSAGE_LENGTH:
        return (
            False,
            f"Message content too long (max {MAX_MESSAGE_LENGTH} characters)",
        )

    return True, None


def validate_credentials(
    request: Dict[str, Any], request_type: str
) -> Tuple[str, str]:
    """
    Extract and validate ``username`` and ``password``.

    Both must be non-empty strings without whitespace, since the
    credential file separates fields with whitespace.

    Returns:
        tuple: (username, password)
    """
    require_fields(request, ("username", "password"), request_type)
    username = request["username"]
    password = request["password"]

    if not isinstance(username, str) or not username:
        raise MalformedRequestError(
            "username must be a non-empty string", request_type
        )
    if len(username) > MAX_USERNAME_LENGTH or any(c.isspace() for c in username):
        raise MalformedRequestError(
            f"username must be at most {MAX_USERNAME_LENGTH} characters "
            f"with no whitespace",
            request_type,
        )
    if not isinstance(password, str) or not password:
        raise MalformedRequestError(
            "password must be a non-empty string", request_type
        )
    if len(password.encode("utf-8")) > MAX_PASSWORD_BYTES:
        raise MalformedRequestError(
            f"password too long (max {MAX_PASSWORD_BYTES} bytes)", request_type
        )

    return username, password


def validate_message_request(request: Dict[str, Any]) -> List[str]:
    """
    Validate a ``message`` request.

    Returns:
        list: The destination usernames from the ``users`` field
    """
    require_fields(request, MESSAGE_FIELDS, "message")

    users = request["users"]
    if not isinstance(users, list) or not all(isinstance(u, str) for u in users):
        raise MalformedRequestError("users must be a list of strings", "message")

    for name in ("name", "hash", "from", "timestamp", "message"):
        if not isinstance(request[name], str):
            raise MalformedRequestError(f"{name} must be a string", "message")

    is_valid, error = validate_message_content(request["message"])
    if not is_valid:
        raise MalformedRequestError(error, "message")

    return users
