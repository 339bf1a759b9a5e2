"""
User profile service.

Unlike :class:`~chatnet.api.client.ChatApiClient`, these methods return parsed
models and raise :class:`~chatnet.net.errors.ChatNetError` subclasses when the
backend reports an error or cannot be reached.
"""

from typing import Any, Optional

from chatnet.api.models import (
    PersonalizationData,
    UserProfile,
    UserProfileCreate,
    UserProfileUpdate,
)
from chatnet.config.logging_config import get_logger
from chatnet.net.errors import ChatNetError, HttpStatusError
from chatnet.net.router import RequestRouter

log = get_logger(__name__)

PROFILES_PATH = "/api/v1/user-profiles"

COMMUNICATION_STYLES = {
    "balanced": "Natural, friendly tone",
    "formal": "Professional, business-like",
    "casual": "Friendly, conversational",
    "technical": "Precise, detailed",
}

RESPONSE_LENGTHS = {
    "short": "Concise, key points only",
    "medium": "Standard length responses",
    "detailed": "Comprehensive with examples",
}

LANGUAGES = {"en": "English", "vi": "Tiếng Việt"}


class UserProfileService:
    def __init__(self, router: RequestRouter):
        self.router = router

    @staticmethod
    def get_preference_options() -> dict[str, dict[str, str]]:
        """Selectable values with their labels, for settings screens."""
        return {
            "communication_style": dict(COMMUNICATION_STYLES),
            "response_length_preference": dict(RESPONSE_LENGTHS),
            "language_preference": dict(LANGUAGES),
        }

    async def create_profile(self, user_id: int, profile: UserProfileCreate) -> UserProfile:
        log.info(f"Creating profile for user {user_id}")
        response = await self.router.post(f"{PROFILES_PATH}/?user_id={user_id}", profile.model_dump())
        return UserProfile.model_validate(response.raise_for_error())

    async def get_profile(self, user_id: int) -> Optional[UserProfile]:
        """Fetch a profile; ``None`` when the user has none yet."""
        response = await self.router.get(f"{PROFILES_PATH}/{user_id}")
        if response.status == 404:
            log.debug(f"No profile for user {user_id}")
            return None
        return UserProfile.model_validate(response.raise_for_error())

    async def get_or_create_profile(self, user_id: int, defaults: Optional[dict[str, Any]] = None) -> UserProfile:
        """
        Return the user's profile, creating one from ``defaults`` if missing.

        A 409 from the create call means another client created the profile
        in between, so the existing one is fetched instead.
        """
        profile = await self.get_profile(user_id)
        if profile is not None:
            return profile

        create = UserProfileCreate.model_validate(defaults or {})
        try:
            return await self.create_profile(user_id, create)
        except HttpStatusError as e:
            if e.status != 409:
                raise
            log.info(f"Profile for user {user_id} already exists, fetching it")
            profile = await self.get_profile(user_id)
            if profile is None:
                raise
            return profile

    async def update_profile(self, user_id: int, update: UserProfileUpdate) -> UserProfile:
        response = await self.router.put(f"{PROFILES_PATH}/{user_id}", update.model_dump(exclude_none=True))
        return UserProfile.model_validate(response.raise_for_error())

    async def get_personalization_data(self, user_id: int) -> PersonalizationData:
        response = await self.router.get(f"{PROFILES_PATH}/{user_id}/personalization")
        return PersonalizationData.model_validate(response.raise_for_error())

    async def record_interaction(self, user_id: int) -> bool:
        """Bump the interaction counter. Failures are logged, not raised."""
        response = await self.router.post(f"{PROFILES_PATH}/{user_id}/interaction")
        try:
            response.raise_for_error()
        except ChatNetError as e:
            log.warning(f"Error recording interaction for user {user_id}: {e}")
            return False
        return True

    async def update_topics(self, user_id: int, topics: list[str]) -> None:
        response = await self.router.post(f"{PROFILES_PATH}/{user_id}/topics", list(topics))
        response.raise_for_error()

    async def delete_profile(self, user_id: int) -> None:
        response = await self.router.delete(f"{PROFILES_PATH}/{user_id}")
        response.raise_for_error()
