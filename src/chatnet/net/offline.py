"""Canned responses served when no endpoint is reachable."""

import copy
from typing import Any, Mapping, Optional

from chatnet.net.urls import strip_query

USERS_PATH = "/api/v1/users/"
LOGIN_PATH = "/api/v1/users/login"

DEMO_USER: dict[str, Any] = {
    "id": 1,
    "email": "demo@example.com",
    "full_name": "Demo User",
    "is_active": True,
    "roles": "user",
}

DEMO_LOGIN: dict[str, Any] = {
    "access_token": "mock_token_123",
    "token_type": "bearer",
    "user": DEMO_USER,
}

# Login and registration keep working in a demo mode without a backend
DEFAULT_OFFLINE_RESPONSES: dict[str, Any] = {
    LOGIN_PATH: DEMO_LOGIN,
    USERS_PATH: DEMO_USER,
}


def get_offline_payload(path: str, table: Mapping[str, Any]) -> Optional[Any]:
    """A fresh copy of the canned payload for ``path``, if it has one."""
    key = strip_query(path)
    if key not in table:
        return None
    return copy.deepcopy(table[key])
