"""
REST API surface of the chat backend: chat, agents, auth and user profiles.
"""

from chatnet.api.client import ChatApiClient
from chatnet.api.profiles import UserProfileService

__all__ = ["ChatApiClient", "UserProfileService"]
