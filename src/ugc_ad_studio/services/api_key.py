"""Runtime selection of the Gemini API key."""

import functools

import structlog

from ugc_ad_studio.config import get_settings
from ugc_ad_studio.exceptions import ApiKeyMissingError

logger = structlog.get_logger()


class ApiKeyManager:
    """Holds the currently selected API key and whether it is usable.

    Video generation bills against the caller's own key, so the key can be
    re-selected at runtime and is dropped when the API reports it unknown.

    Args:
        api_key: Initial key, typically from settings.
    """

    def __init__(self, api_key: str | None = None):
        self._api_key = api_key or None
        self._ready = self._api_key is not None

    @property
    def ready(self) -> bool:
        return self._ready

    def select(self, api_key: str) -> None:
        """Store a new key and mark it ready."""
        api_key = api_key.strip()
        if not api_key:
            raise ApiKeyMissingError("API key must not be empty")
        self._api_key = api_key
        self._ready = True
        logger.info("api_key_selected")

    def invalidate(self) -> None:
        """Mark the current key unusable until a new one is selected."""
        self._ready = False
        logger.warning("api_key_invalidated")

    def require(self) -> str:
        """Return the current key or raise if none is ready."""
        if not self._ready or not self._api_key:
            raise ApiKeyMissingError("API key required. Please select your key.")
        return self._api_key


@functools.lru_cache
def get_key_manager() -> ApiKeyManager:
    """Get the process-wide key manager."""
    return ApiKeyManager(get_settings().gemini_api_key)
