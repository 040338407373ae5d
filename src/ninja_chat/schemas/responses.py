"""
Response Schema Definitions

Contains functions for creating the replies sent back to the client
that issued a request.
"""

from typing import Any, Callable, Dict, List


def create_user_status_list(
    usernames: List[str],
    is_online: Callable[[str], bool],
) -> List[Dict[str, Any]]:
    """
    Create the ``users`` list of a success response.

    Args:
        usernames: Every known username, in creation order
        is_online: Predicate telling whether a username has a live session

    Returns:
        list: ``{"username", "online"}`` entries
    """
    return [
        {"username": username, "online": is_online(username)}
        for username in usernames
    ]


def create_success_response(
    response_type: str,
    username: str,
    users: List[Dict[str, Any]],
    groups: List[Dict[str, Any]],
) -> Dict[str, Any]:
    """
    Create the success response for a login or account creation.

    Args:
        response_type: "login" or "create"
        username: The user that is now logged in
        users: Output of create_user_status_list
        groups: Group descriptors visible to the user

    Returns:
        dict: Success response
    """
    return {
        "type": response_type,
        "status": "success",
        "username": username,
        "users": users,
        "groups": groups,
    }


def create_fail_response(
    response_type: str,
    message: str,
) -> Dict[str, Any]:
    """
    Create a fail response.

    Args:
        response_type: Type of the request that failed
        message: Human readable reason

    Returns:
        dict: Fail response
    """
    return {
        "type": response_type,
        "status": "fail",
        "message": message,
    }


def create_logout_response(online_users: List[str]) -> Dict[str, Any]:
    """
    Create the logout response carrying the users still online.
    """
    return {
        "type": "logout",
        "status": "success",
        "users": online_users,
    }
