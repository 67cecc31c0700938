"""Tests for campaign orchestration: script generation and per-scene fan-out."""

import asyncio
import base64
from unittest.mock import MagicMock

import numpy as np
import pytest

from ugc_ad_studio.audio.wav import read_wav
from ugc_ad_studio.exceptions import ApiKeyMissingError, RegenerationError
from ugc_ad_studio.generation.orchestrator import KEY_ERROR_MESSAGE, CampaignOrchestrator
from ugc_ad_studio.models.campaign import (
    SCENE_ORDER,
    AdInput,
    AssetKind,
    CampaignStatus,
    SceneType,
    Scripts,
)
from ugc_ad_studio.models.catalog import VIDEO_LOADING_MESSAGES
from ugc_ad_studio.services.api_key import ApiKeyManager
from ugc_ad_studio.storage.campaigns import load_campaign

PCM = np.array([-32768, -2, 0], dtype="<i2").tobytes()


class FakeService:
    """Stands in for GeminiService; failures keyed by (kind, script)."""

    def __init__(self, scripts: Scripts | None = None):
        self.scripts = scripts or Scripts(
            Hook="Hook line", Problem="Problem line", Solution="Solution line", CTA="CTA line"
        )
        self.failures: dict[tuple[str, str | None], Exception] = {}
        self.calls: list[tuple[str, str | None]] = []

    def _check(self, kind: str, script: str | None = None) -> None:
        self.calls.append((kind, script))
        for key in ((kind, script), (kind, None)):
            if key in self.failures:
                raise self.failures[key]

    async def generate_scripts(self, inputs):
        self._check("script")
        return self.scripts

    async def generate_image(self, script, inputs):
        self._check("image", script)
        return base64.b64encode(f"png:{script}".encode()).decode("ascii")

    async def generate_audio(self, script):
        self._check("audio", script)
        return PCM

    async def generate_video(self, script, inputs, on_progress=None):
        self._check("video", script)
        if on_progress is not None:
            await on_progress(1)
            await on_progress(2)
        return f"https://video.example/{script.replace(' ', '_')}"


@pytest.fixture
def inputs():
    return AdInput(
        product_name="Glow Serum",
        moods=["a", "b", "c", "d"],
        backgrounds=["e", "f", "g", "h"],
        product_image="aW1n",
    )


@pytest.fixture
def settings():
    settings = MagicMock()
    settings.audio_sample_rate = 24000
    settings.audio_channels = 1
    return settings


@pytest.fixture
def messages():
    return []


@pytest.fixture
def service():
    return FakeService()


@pytest.fixture
def key_manager():
    return ApiKeyManager("test-key")


@pytest.fixture
def orchestrator(settings, service, key_manager, messages, tmp_path):
    async def notify(message):
        messages.append(message)

    return CampaignOrchestrator(
        settings=settings,
        service=service,
        key_manager=key_manager,
        notify=notify,
        campaigns_dir=tmp_path,
    )


class TestGenerate:
    async def test_full_campaign(self, orchestrator, inputs):
        campaign = await orchestrator.generate(inputs)
        assert campaign.is_loading is False
        assert campaign.scene(SceneType.HOOK).script.data == "Hook line"

        await orchestrator.wait()

        assert campaign.status == CampaignStatus.COMPLETED
        assert campaign.error is None
        for scene in campaign.scenes:
            assert not scene.is_anything_loading
            for kind in AssetKind:
                assert scene.asset(kind).error is None
        hook = campaign.scene(SceneType.HOOK)
        assert hook.image.data == "data:image/png;base64," + base64.b64encode(b"png:Hook line").decode()
        assert hook.video.data == "https://video.example/Hook_line"

    async def test_audio_converted_to_wav(self, orchestrator, inputs):
        campaign = await orchestrator.generate(inputs)
        await orchestrator.wait()

        audio = campaign.scene(SceneType.CTA).audio.data
        assert audio.startswith("data:audio/wav;base64,")
        wav = read_wav(base64.b64decode(audio.split(",", 1)[1]))
        assert wav.sample_rate == 24000
        assert wav.channels == 1
        np.testing.assert_array_equal(wav.samples, [-32768, -2, 0])

    async def test_every_scene_gets_every_asset(self, orchestrator, service, inputs):
        await orchestrator.generate(inputs)
        await orchestrator.wait()
        for kind in ("image", "audio", "video"):
            scripts = {script for k, script in service.calls if k == kind}
            assert scripts == {"Hook line", "Problem line", "Solution line", "CTA line"}

    async def test_scripts_loading_then_resolved(self, orchestrator, inputs, messages):
        await orchestrator.generate(inputs)
        await orchestrator.wait()

        first_hook = next(
            m for m in messages if m["type"] == "scene_update" and m["scene"]["type"] == "Hook"
        )
        assert first_hook["scene"]["script"]["is_loading"] is True
        states = [m["status"] for m in messages if m["type"] == "campaign_state"]
        assert states[0] == "generating"
        assert states[-1] == "completed"

    async def test_script_failure(self, orchestrator, service, inputs):
        service.failures[("script", None)] = RuntimeError("model overloaded")

        campaign = await orchestrator.generate(inputs)
        await orchestrator.wait()

        assert campaign.error == "Failed to generate scripts: model overloaded"
        assert campaign.status == CampaignStatus.ERROR
        assert campaign.is_loading is False
        for scene in campaign.scenes:
            assert scene.script.is_loading is False
            assert scene.image.data is None
        assert [k for k, _ in service.calls] == ["script"]

    async def test_partial_failure_isolated(self, orchestrator, service, inputs):
        service.failures[("image", "Hook line")] = RuntimeError("safety filter")

        campaign = await orchestrator.generate(inputs)
        await orchestrator.wait()

        hook = campaign.scene(SceneType.HOOK)
        assert hook.image.error == "Image failed: safety filter"
        assert hook.image.data is None
        assert hook.image.is_loading is False
        assert hook.audio.data is not None
        assert hook.video.data is not None
        assert campaign.scene(SceneType.PROBLEM).image.data is not None
        assert campaign.error is None

    async def test_audio_and_video_error_labels(self, orchestrator, service, inputs):
        service.failures[("audio", None)] = RuntimeError("tts down")
        service.failures[("video", None)] = RuntimeError("veo down")

        campaign = await orchestrator.generate(inputs)
        await orchestrator.wait()

        for scene in campaign.scenes:
            assert scene.audio.error == "Audio failed: tts down"
            assert scene.video.error == "Video failed: veo down"
            assert scene.image.error is None

    async def test_video_key_not_found_invalidates_key(
        self, orchestrator, service, key_manager, inputs, messages
    ):
        service.failures[("video", "CTA line")] = RuntimeError(
            "404 NOT_FOUND. Requested entity was not found."
        )

        campaign = await orchestrator.generate(inputs)
        await orchestrator.wait()

        assert campaign.error == KEY_ERROR_MESSAGE
        assert key_manager.ready is False
        assert {"type": "key_status", "ready": False} in messages

    async def test_empty_script_skips_scene(self, settings, key_manager, messages, inputs):
        service = FakeService(Scripts(Hook="Hook line", Problem="", Solution="Sol", CTA="Buy"))

        async def notify(message):
            messages.append(message)

        orchestrator = CampaignOrchestrator(settings, service, key_manager, notify)
        campaign = await orchestrator.generate(inputs)
        await orchestrator.wait()

        problem = campaign.scene(SceneType.PROBLEM)
        assert problem.image.data is None
        assert problem.video.data is None
        assert all(script != "" for _, script in service.calls)

    async def test_requires_api_key(self, orchestrator, key_manager, service, inputs):
        key_manager.invalidate()
        with pytest.raises(ApiKeyMissingError):
            await orchestrator.generate(inputs)
        assert service.calls == []

    async def test_video_progress_messages(self, orchestrator, inputs, messages):
        await orchestrator.generate(inputs)
        await orchestrator.wait()

        hook_progress = [
            m for m in messages if m["type"] == "video_progress" and m["scene"] == "Hook"
        ]
        assert [m["message"] for m in hook_progress] == VIDEO_LOADING_MESSAGES[0:2]

    async def test_campaign_saved_on_completion(self, orchestrator, inputs, tmp_path):
        campaign = await orchestrator.generate(inputs)
        await orchestrator.wait()

        saved = load_campaign(tmp_path, campaign.campaign_id)
        assert saved is not None
        assert saved.status == CampaignStatus.COMPLETED
        assert saved.scene(SceneType.SOLUTION).script.data == "Solution line"

    async def test_new_generate_replaces_campaign(self, orchestrator, inputs):
        first = await orchestrator.generate(inputs)
        second = await orchestrator.generate(inputs)
        await orchestrator.wait()

        assert orchestrator.campaign is second
        assert first.campaign_id != second.campaign_id
        assert second.status == CampaignStatus.COMPLETED


class TestRegenerate:
    async def test_noop_before_submission(self, orchestrator, service):
        assert await orchestrator.regenerate(SceneType.HOOK, AssetKind.IMAGE) is None
        assert service.calls == []

    async def test_requires_script(self, orchestrator, service, inputs):
        service.failures[("script", None)] = RuntimeError("nope")
        await orchestrator.generate(inputs)

        with pytest.raises(RegenerationError, match="Script must exist"):
            await orchestrator.regenerate(SceneType.HOOK, AssetKind.IMAGE)

    async def test_regenerate_image(self, orchestrator, service, inputs):
        campaign = await orchestrator.generate(inputs)
        await orchestrator.wait()
        service.calls.clear()

        task = await orchestrator.regenerate(SceneType.SOLUTION, AssetKind.IMAGE)
        await task

        assert service.calls == [("image", "Solution line")]
        assert campaign.scene(SceneType.SOLUTION).image.data.startswith("data:image/png;base64,")

    async def test_regenerate_failure_message(self, orchestrator, service, inputs):
        campaign = await orchestrator.generate(inputs)
        await orchestrator.wait()
        service.failures[("audio", None)] = RuntimeError("tts down")

        await (await orchestrator.regenerate(SceneType.HOOK, AssetKind.AUDIO))

        audio = campaign.scene(SceneType.HOOK).audio
        assert audio.error == "Failed to regenerate audio: tts down"
        assert audio.is_loading is False
        assert audio.data is not None

    async def test_regenerate_clears_previous_error(self, orchestrator, service, inputs):
        service.failures[("video", "Hook line")] = RuntimeError("veo down")
        campaign = await orchestrator.generate(inputs)
        await orchestrator.wait()
        assert campaign.scene(SceneType.HOOK).video.error == "Video failed: veo down"

        service.failures.clear()
        await (await orchestrator.regenerate(SceneType.HOOK, AssetKind.VIDEO))

        video = campaign.scene(SceneType.HOOK).video
        assert video.error is None
        assert video.data == "https://video.example/Hook_line"

    async def test_regenerate_script_replaces_only_that_scene(self, orchestrator, service, inputs):
        campaign = await orchestrator.generate(inputs)
        await orchestrator.wait()
        service.scripts = Scripts(Hook="New hook", Problem="New problem", Solution="x", CTA="y")

        await (await orchestrator.regenerate(SceneType.HOOK, AssetKind.SCRIPT))

        assert campaign.scene(SceneType.HOOK).script.data == "New hook"
        assert campaign.scene(SceneType.PROBLEM).script.data == "Problem line"

    async def test_rejected_while_first_pass_in_flight(self, orchestrator, service, inputs):
        release = asyncio.Event()
        generate_image = service.generate_image

        async def gated_image(script, inputs):
            await release.wait()
            return await generate_image(script, inputs)

        service.generate_image = gated_image
        campaign = await orchestrator.generate(inputs)

        with pytest.raises(RegenerationError, match="already being generated"):
            await orchestrator.regenerate(SceneType.HOOK, AssetKind.IMAGE)
        with pytest.raises(RegenerationError, match="already being generated"):
            await orchestrator.regenerate(SceneType.HOOK, AssetKind.VIDEO)

        release.set()
        await orchestrator.wait()

        assert len([k for k, _ in service.calls if k == "image"]) == 4
        hook = campaign.scene(SceneType.HOOK)
        assert not hook.is_anything_loading
        assert hook.image.data.startswith("data:image/png;base64,")

    async def test_second_regenerate_rejected_until_first_finishes(
        self, orchestrator, service, inputs
    ):
        campaign = await orchestrator.generate(inputs)
        await orchestrator.wait()
        service.calls.clear()

        release = asyncio.Event()
        generate_image = service.generate_image

        async def gated_image(script, inputs):
            await release.wait()
            return await generate_image(script, inputs)

        service.generate_image = gated_image
        task = await orchestrator.regenerate(SceneType.HOOK, AssetKind.IMAGE)
        assert campaign.scene(SceneType.HOOK).image.is_loading is True
        with pytest.raises(RegenerationError):
            await orchestrator.regenerate(SceneType.HOOK, AssetKind.IMAGE)

        release.set()
        await task

        assert service.calls == [("image", "Hook line")]
        assert campaign.scene(SceneType.HOOK).image.is_loading is False
        task = await orchestrator.regenerate(SceneType.HOOK, AssetKind.IMAGE)
        await task

    async def test_regenerated_asset_is_saved(self, orchestrator, service, inputs, tmp_path):
        campaign = await orchestrator.generate(inputs)
        await orchestrator.wait()
        service.failures[("image", None)] = RuntimeError("gone")

        await (await orchestrator.regenerate(SceneType.CTA, AssetKind.IMAGE))

        saved = load_campaign(tmp_path, campaign.campaign_id)
        assert saved.scene(SceneType.CTA).image.error == "Failed to regenerate image: gone"


class TestCancel:
    async def test_cancel_stops_outstanding_assets(self, orchestrator, service, inputs):
        campaign = await orchestrator.generate(inputs)
        await orchestrator.cancel()
        await orchestrator.wait()

        assert [k for k, _ in service.calls] == ["script"]
        assert campaign.status == CampaignStatus.GENERATING
        assert [s.type for s in campaign.scenes] == SCENE_ORDER
        assert not any(scene.is_anything_loading for scene in campaign.scenes)

    async def test_close_saves_interrupted_campaign(self, orchestrator, service, inputs, tmp_path):
        release = asyncio.Event()

        async def stuck_video(script, inputs, on_progress=None):
            await release.wait()

        service.generate_video = stuck_video
        campaign = await orchestrator.generate(inputs)
        await asyncio.sleep(0.01)

        await orchestrator.close()

        saved = load_campaign(tmp_path, campaign.campaign_id)
        assert saved is not None
        hook = saved.scene(SceneType.HOOK)
        assert hook.image.data is not None
        assert hook.audio.data is not None
        assert hook.video.data is None
        assert hook.video.is_loading is False

    async def test_close_without_work_saves_nothing(self, orchestrator, tmp_path):
        await orchestrator.close()
        assert list(tmp_path.iterdir()) == []
