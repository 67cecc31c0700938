"""Per-scene asset generation: scripts first, then image/audio/video fan-out."""

import asyncio
from collections.abc import Awaitable, Callable, Coroutine
from pathlib import Path
from typing import Any

import structlog

from ugc_ad_studio.audio.wav import pcm16_to_wav, wav_data_url
from ugc_ad_studio.config import Settings
from ugc_ad_studio.exceptions import RegenerationError
from ugc_ad_studio.models.campaign import (
    SCENE_ORDER,
    AdInput,
    AssetKind,
    Campaign,
    CampaignStatus,
    SceneType,
)
from ugc_ad_studio.models.catalog import video_loading_message
from ugc_ad_studio.services.api_key import ApiKeyManager
from ugc_ad_studio.services.gemini import GeminiService, is_key_not_found
from ugc_ad_studio.storage.campaigns import save_campaign

logger = structlog.get_logger()

Notify = Callable[[dict[str, Any]], Awaitable[None]]

KEY_ERROR_MESSAGE = "API Key error. Please re-select your key."

MEDIA_KINDS = (AssetKind.IMAGE, AssetKind.AUDIO, AssetKind.VIDEO)

_FAILURE_LABELS = {
    AssetKind.SCRIPT: "Script failed",
    AssetKind.IMAGE: "Image failed",
    AssetKind.AUDIO: "Audio failed",
    AssetKind.VIDEO: "Video failed",
}


class CampaignOrchestrator:
    """Drives one browser's campaign and reports every state change.

    Script generation is awaited; the image, audio and video for each scene
    then run as independent tasks, so one failed asset never blocks another.

    Args:
        settings: Application settings.
        service: Gemini API wrapper.
        key_manager: Selected API key state.
        notify: Async callback receiving each update message.
        campaigns_dir: Where finished campaigns are saved; None disables saving.
    """

    def __init__(
        self,
        settings: Settings,
        service: GeminiService,
        key_manager: ApiKeyManager,
        notify: Notify,
        campaigns_dir: Path | None = None,
    ):
        self.settings = settings
        self.service = service
        self.key_manager = key_manager
        self.notify = notify
        self.campaigns_dir = campaigns_dir
        self.campaign = Campaign()
        self._tasks: set[asyncio.Task] = set()

    async def generate(self, inputs: AdInput) -> Campaign:
        """Generate scripts, then start asset generation for every scene.

        Returns once the scripts have resolved; assets keep generating in
        the background (see `wait`).

        Raises:
            ApiKeyMissingError: If no API key is ready.
        """
        self.key_manager.require()
        await self.cancel()

        campaign = Campaign(inputs=inputs, status=CampaignStatus.GENERATING, is_loading=True)
        self.campaign = campaign
        logger.info(
            "campaign_started", campaign_id=campaign.campaign_id, product=inputs.product_name
        )

        for scene_type in SCENE_ORDER:
            campaign.update_asset(scene_type, AssetKind.SCRIPT, is_loading=True)
        await self._send_state(campaign)
        await self._send_scenes(campaign)

        try:
            scripts = await self.service.generate_scripts(inputs)
        except Exception as exc:
            logger.exception("script_generation_failed", campaign_id=campaign.campaign_id)
            for scene_type in SCENE_ORDER:
                campaign.update_asset(scene_type, AssetKind.SCRIPT, is_loading=False)
            campaign.error = f"Failed to generate scripts: {exc}"
            campaign.status = CampaignStatus.ERROR
            campaign.is_loading = False
            await self._send_scenes(campaign)
            await self._send_state(campaign)
            return campaign

        for scene_type in SCENE_ORDER:
            campaign.update_asset(
                scene_type, AssetKind.SCRIPT, data=scripts[scene_type], is_loading=False
            )
        campaign.is_loading = False
        await self._send_scenes(campaign)
        await self._send_state(campaign)

        asset_tasks = []
        for scene_type in SCENE_ORDER:
            script = scripts[scene_type]
            if not script:
                continue
            for kind in MEDIA_KINDS:
                campaign.update_asset(scene_type, kind, is_loading=True, error=None)
                asset_tasks.append(self._spawn(
                    self._run_asset(campaign, scene_type, kind, script, _FAILURE_LABELS[kind])
                ))
        self._spawn(self._finish(campaign, asset_tasks))
        return campaign

    async def regenerate(self, scene_type: SceneType, kind: AssetKind) -> asyncio.Task | None:
        """Regenerate a single asset of one scene in the background.

        Returns:
            The regeneration task, or None when nothing has been submitted yet.

        Raises:
            RegenerationError: If the scene has no script to build from, or
                one of its assets is still being generated.
        """
        campaign = self.campaign
        if campaign.inputs is None:
            return None

        scene = campaign.scene(scene_type)
        if not scene.script.data:
            raise RegenerationError("Script must exist to regenerate assets.")
        if scene.is_anything_loading:
            raise RegenerationError("Asset is already being generated.")

        logger.info("asset_regeneration_requested", scene=scene_type.value, asset=kind.value)
        # Marked before the task starts so a second request is rejected
        campaign.update_asset(scene_type, kind, is_loading=True, error=None)
        label = f"Failed to regenerate {kind.value}"
        return self._spawn(
            self._regenerate_and_save(campaign, scene_type, kind, scene.script.data, label)
        )

    async def wait(self) -> None:
        """Wait for all outstanding asset tasks to finish."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    async def cancel(self) -> None:
        """Cancel all outstanding asset tasks."""
        tasks = list(self._tasks)
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
        self._tasks.clear()
        # Tasks cancelled before their first step never clear their own spinner
        for scene in self.campaign.scenes:
            for kind in AssetKind:
                if scene.asset(kind).is_loading:
                    self.campaign.update_asset(scene.type, kind, is_loading=False)

    async def close(self) -> None:
        """Cancel outstanding work and keep a snapshot of what has finished."""
        interrupted = bool(self._tasks)
        await self.cancel()
        if interrupted and self.campaign.inputs is not None:
            logger.info("campaign_interrupted", campaign_id=self.campaign.campaign_id)
            self._save(self.campaign)

    def _spawn(self, coro: Coroutine[Any, Any, Any]) -> asyncio.Task:
        task = asyncio.create_task(coro)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    async def _run_asset(
        self,
        campaign: Campaign,
        scene_type: SceneType,
        kind: AssetKind,
        script: str,
        failure_label: str,
    ) -> None:
        """Generate one asset and record its data or error on the campaign."""
        await self._update(campaign, scene_type, kind, is_loading=True, error=None)
        try:
            data = await self._produce(campaign, scene_type, kind, script)
        except asyncio.CancelledError:
            campaign.update_asset(scene_type, kind, is_loading=False)
            raise
        except Exception as exc:
            logger.exception(
                "asset_generation_failed",
                campaign_id=campaign.campaign_id,
                scene=scene_type.value,
                asset=kind.value,
            )
            await self._update(
                campaign, scene_type, kind, error=f"{failure_label}: {exc}", is_loading=False
            )
            if kind is AssetKind.VIDEO and is_key_not_found(exc):
                campaign.error = KEY_ERROR_MESSAGE
                self.key_manager.invalidate()
                await self._send_state(campaign)
                await self.notify({"type": "key_status", "ready": False})
            return

        await self._update(campaign, scene_type, kind, data=data, is_loading=False)
        logger.info("asset_generated", scene=scene_type.value, asset=kind.value)

    async def _produce(
        self,
        campaign: Campaign,
        scene_type: SceneType,
        kind: AssetKind,
        script: str,
    ) -> str:
        inputs = campaign.inputs
        if kind is AssetKind.IMAGE:
            image = await self.service.generate_image(script, inputs)
            return f"data:image/png;base64,{image}"
        if kind is AssetKind.AUDIO:
            pcm = await self.service.generate_audio(script)
            wav = pcm16_to_wav(
                pcm,
                sample_rate=self.settings.audio_sample_rate,
                channels=self.settings.audio_channels,
            )
            return wav_data_url(wav)
        if kind is AssetKind.VIDEO:
            async def on_progress(polls: int) -> None:
                await self.notify({
                    "type": "video_progress",
                    "campaign_id": campaign.campaign_id,
                    "scene": scene_type.value,
                    "polls": polls,
                    "message": video_loading_message(polls - 1),
                })

            return await self.service.generate_video(script, inputs, on_progress=on_progress)

        scripts = await self.service.generate_scripts(inputs)
        return scripts[scene_type]

    async def _finish(self, campaign: Campaign, tasks: list[asyncio.Task]) -> None:
        await asyncio.gather(*tasks, return_exceptions=True)
        campaign.status = CampaignStatus.COMPLETED
        logger.info("campaign_completed", campaign_id=campaign.campaign_id)
        await self._send_state(campaign)
        self._save(campaign)

    async def _regenerate_and_save(
        self,
        campaign: Campaign,
        scene_type: SceneType,
        kind: AssetKind,
        script: str,
        failure_label: str,
    ) -> None:
        await self._run_asset(campaign, scene_type, kind, script, failure_label)
        self._save(campaign)

    def _save(self, campaign: Campaign) -> None:
        if self.campaigns_dir is not None:
            save_campaign(self.campaigns_dir, campaign)

    async def _update(
        self, campaign: Campaign, scene_type: SceneType, kind: AssetKind, **fields: Any
    ) -> None:
        campaign.update_asset(scene_type, kind, **fields)
        await self.notify({
            "type": "scene_update",
            "campaign_id": campaign.campaign_id,
            "scene": campaign.scene(scene_type).model_dump(mode="json"),
        })

    async def _send_scenes(self, campaign: Campaign) -> None:
        for scene in campaign.scenes:
            await self.notify({
                "type": "scene_update",
                "campaign_id": campaign.campaign_id,
                "scene": scene.model_dump(mode="json"),
            })

    async def _send_state(self, campaign: Campaign) -> None:
        await self.notify({
            "type": "campaign_state",
            "campaign_id": campaign.campaign_id,
            "status": campaign.status.value,
            "is_loading": campaign.is_loading,
            "error": campaign.error,
        })
