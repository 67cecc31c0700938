"""Selectable ad options and fixed scene ordering."""

from ugc_ad_studio.models.campaign import SCENE_ORDER  # noqa: F401

MOOD_OPTIONS: list[str] = [
    "Authentic & Relatable",
    "Upbeat & Energetic",
    "Calm & Soothing",
    "Funny & Humorous",
    "Inspirational & Aspirational",
    "Serious & Informative",
    "Trendy & Cool",
    "Luxurious & Premium",
]

BACKGROUND_OPTIONS: list[str] = [
    "Cozy Bedroom",
    "Modern Kitchen",
    "Bright Bathroom",
    "Minimalist Living Room",
    "Home Office",
    "Sunny Park",
    "Busy City Street",
    "Chic Cafe",
]

# Shown while a video operation is being polled, one per poll
VIDEO_LOADING_MESSAGES: list[str] = [
    "Warming up the virtual cameras...",
    "Choreographing pixels into motion...",
    "This can take a few minutes, great videos take time!",
    "Consulting with the AI director...",
    "Rendering your vision into a 9:16 masterpiece...",
    "Adding the final cinematic touches...",
    "Almost there! Your video is being packaged.",
]


def video_loading_message(index: int) -> str:
    """Rotating progress message for the given poll index."""
    return VIDEO_LOADING_MESSAGES[index % len(VIDEO_LOADING_MESSAGES)]
