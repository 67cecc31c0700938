"""Custom exception types for ugc-ad-studio."""


class UGCAdStudioError(Exception):
    """Base exception for ugc-ad-studio errors."""


class ApiKeyMissingError(UGCAdStudioError):
    """Raised when no Gemini API key has been selected."""


class GenerationError(UGCAdStudioError):
    """Raised when a generative endpoint returns no usable result."""


class AudioDecodeError(UGCAdStudioError):
    """Raised when PCM audio bytes cannot be decoded into samples."""


class RegenerationError(UGCAdStudioError):
    """Raised when an asset cannot be regenerated in the current state."""
