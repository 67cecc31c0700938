"""Gemini API client for script, image, speech and video generation."""

import asyncio
import base64
import time
from collections.abc import AsyncIterator, Awaitable, Callable
from contextlib import asynccontextmanager

import structlog
from google import genai
from google.genai import types
from google.genai.client import AsyncClient

from ugc_ad_studio.config import Settings
from ugc_ad_studio.exceptions import GenerationError
from ugc_ad_studio.generation.prompts import (
    SCENE_DESCRIPTIONS,
    build_audio_prompt,
    build_image_prompt,
    build_script_prompt,
    build_video_prompt,
)
from ugc_ad_studio.models.campaign import SCENE_ORDER, AdInput, Scripts
from ugc_ad_studio.services.api_key import ApiKeyManager

logger = structlog.get_logger()

KEY_NOT_FOUND_MESSAGE = "Requested entity was not found"

# Awaited with the number of completed polls while a video renders
ProgressCallback = Callable[[int], Awaitable[None]]

SCRIPT_SCHEMA = types.Schema(
    type=types.Type.OBJECT,
    properties={
        scene.value: types.Schema(
            type=types.Type.STRING,
            description=SCENE_DESCRIPTIONS[scene.value],
        )
        for scene in SCENE_ORDER
    },
    required=[scene.value for scene in SCENE_ORDER],
)


def is_key_not_found(error: BaseException) -> bool:
    """Whether an API error means the selected key is unknown to the service."""
    return KEY_NOT_FOUND_MESSAGE in str(error)


def _image_part(data: str) -> types.Part:
    return types.Part.from_bytes(data=base64.b64decode(data), mime_type="image/jpeg")


def _with_key(uri: str, api_key: str) -> str:
    separator = "&" if "?" in uri else "?"
    return f"{uri}{separator}key={api_key}"


class GeminiService:
    """Async wrapper over the google-genai SDK.

    A new SDK client is built for every request so that a key selected at
    runtime is picked up by the next call, and closed once the request ends.

    Args:
        settings: Application settings (model names, polling intervals).
        key_manager: Source of the currently selected API key.
    """

    def __init__(self, settings: Settings, key_manager: ApiKeyManager):
        self.settings = settings
        self.key_manager = key_manager

    @asynccontextmanager
    async def _aio(self, api_key: str | None = None) -> AsyncIterator[AsyncClient]:
        client = genai.Client(api_key=api_key or self.key_manager.require())
        try:
            yield client.aio
        finally:
            await client.aio.aclose()

    async def generate_scripts(self, inputs: AdInput) -> Scripts:
        """Generate one script line per scene as schema-constrained JSON."""
        parts = [types.Part.from_text(text=build_script_prompt(inputs))]
        if inputs.product_image:
            parts.append(_image_part(inputs.product_image))
        if inputs.model_image:
            parts.append(_image_part(inputs.model_image))

        async with self._aio() as aio:
            response = await aio.models.generate_content(
                model=self.settings.script_model,
                contents=types.Content(role="user", parts=parts),
                config=types.GenerateContentConfig(
                    response_mime_type="application/json",
                    response_schema=SCRIPT_SCHEMA,
                ),
            )
        text = (response.text or "").strip()
        scripts = Scripts.model_validate_json(text)
        logger.info("scripts_generated", product=inputs.product_name)
        return scripts

    async def generate_image(self, script: str, inputs: AdInput) -> str:
        """Generate a 9:16 PNG for a scene.

        Returns:
            Base64-encoded PNG bytes.
        """
        async with self._aio() as aio:
            response = await aio.models.generate_images(
                model=self.settings.image_model,
                prompt=build_image_prompt(script, inputs),
                config=types.GenerateImagesConfig(
                    number_of_images=1,
                    aspect_ratio="9:16",
                    output_mime_type="image/png",
                ),
            )
        if not response.generated_images:
            raise GenerationError("Image generation returned no images.")
        image_bytes = response.generated_images[0].image.image_bytes
        return base64.b64encode(image_bytes).decode("ascii")

    async def generate_audio(self, script: str) -> bytes:
        """Synthesize narration for a scene.

        Returns:
            Raw PCM16 little-endian mono samples at the TTS sample rate,
            or empty bytes when the response carries no audio.
        """
        async with self._aio() as aio:
            response = await aio.models.generate_content(
                model=self.settings.tts_model,
                contents=build_audio_prompt(script),
                config=types.GenerateContentConfig(
                    response_modalities=["AUDIO"],
                    speech_config=types.SpeechConfig(
                        voice_config=types.VoiceConfig(
                            prebuilt_voice_config=types.PrebuiltVoiceConfig(
                                voice_name=self.settings.tts_voice,
                            )
                        )
                    ),
                ),
            )
        try:
            inline = response.candidates[0].content.parts[0].inline_data
        except (IndexError, TypeError, AttributeError):
            return b""
        if inline is None or not inline.data:
            return b""
        return inline.data

    async def generate_video(
        self,
        script: str,
        inputs: AdInput,
        on_progress: ProgressCallback | None = None,
    ) -> str:
        """Start a video operation and poll it until done.

        Returns:
            Download URL for the generated clip, authorized with the API key.

        Raises:
            GenerationError: If the operation fails, times out, or yields no URL.
        """
        api_key = self.key_manager.require()

        image = None
        if inputs.product_image:
            image = types.Image(
                image_bytes=base64.b64decode(inputs.product_image),
                mime_type="image/jpeg",
            )

        started = time.monotonic()
        timeout = self.settings.video_poll_timeout_seconds
        polls = 0
        async with self._aio(api_key) as aio:
            operation = await aio.models.generate_videos(
                model=self.settings.video_model,
                prompt=build_video_prompt(script, inputs),
                image=image,
                config=types.GenerateVideosConfig(
                    number_of_videos=1,
                    resolution="720p",
                    aspect_ratio="9:16",
                ),
            )
            logger.info("video_operation_started", operation=getattr(operation, "name", None))

            while not operation.done:
                await asyncio.sleep(self.settings.video_poll_interval_seconds)
                operation = await aio.operations.get(operation)
                polls += 1
                logger.debug("video_operation_polled", polls=polls, done=operation.done)
                if on_progress is not None:
                    await on_progress(polls)
                if (
                    not operation.done
                    and timeout is not None
                    and time.monotonic() - started > timeout
                ):
                    raise GenerationError(f"Video generation timed out after {timeout:.0f}s.")

        if operation.error:
            raise GenerationError(f"Video generation failed: {operation.error}")

        uri = None
        if operation.response and operation.response.generated_videos:
            video = operation.response.generated_videos[0].video
            uri = video.uri if video else None
        if not uri:
            raise GenerationError("Video generation failed to produce a download link.")

        logger.info("video_generated", polls=polls, elapsed=round(time.monotonic() - started, 1))
        return _with_key(uri, api_key)
