"""Browser WebSocket handler - pushes campaign and asset state as it changes."""

import structlog
from fastapi import WebSocket, WebSocketDisconnect
from pydantic import ValidationError

from ugc_ad_studio.config import Settings
from ugc_ad_studio.exceptions import ApiKeyMissingError, RegenerationError
from ugc_ad_studio.generation.orchestrator import CampaignOrchestrator
from ugc_ad_studio.models.campaign import AdInput, AssetKind, SceneType
from ugc_ad_studio.services.api_key import ApiKeyManager, get_key_manager
from ugc_ad_studio.services.gemini import GeminiService

logger = structlog.get_logger()


def _validation_message(exc: ValidationError) -> str:
    errors = exc.errors()
    if not errors:
        return "Invalid input."
    return str(errors[0].get("msg", "Invalid input.")).removeprefix("Value error, ")


class BrowserSession:
    """Binds one browser connection to its campaign orchestrator.

    Args:
        settings: Application settings.
        browser_ws: WebSocket connection to the browser.
        key_manager: Selected API key state.
    """

    def __init__(self, settings: Settings, browser_ws: WebSocket, key_manager: ApiKeyManager):
        self.settings = settings
        self.browser_ws = browser_ws
        self.key_manager = key_manager
        self.orchestrator = CampaignOrchestrator(
            settings=settings,
            service=GeminiService(settings, key_manager),
            key_manager=key_manager,
            notify=self._send_to_browser,
            campaigns_dir=settings.campaigns_dir,
        )

    async def handle_message(self, data: dict) -> None:
        msg_type = data.get("type", "")

        if msg_type == "generate":
            try:
                inputs = AdInput.model_validate(data.get("inputs") or {})
            except ValidationError as exc:
                await self._send_error(_validation_message(exc))
                return
            try:
                await self.orchestrator.generate(inputs)
            except ApiKeyMissingError as exc:
                await self.send_key_status()
                await self._send_error(str(exc))

        elif msg_type == "regenerate":
            try:
                scene_type = SceneType(data.get("scene", ""))
                kind = AssetKind(data.get("asset", ""))
            except ValueError:
                await self._send_error("Unknown scene or asset type.")
                return
            try:
                await self.orchestrator.regenerate(scene_type, kind)
            except RegenerationError as exc:
                await self._send_error(str(exc))

        elif msg_type == "key_status":
            await self.send_key_status()

        else:
            logger.warning("unknown_browser_message", type=msg_type)

    async def send_key_status(self) -> None:
        await self._send_to_browser({"type": "key_status", "ready": self.key_manager.ready})

    async def close(self) -> None:
        await self.orchestrator.close()

    async def _send_error(self, message: str) -> None:
        await self._send_to_browser({"type": "error", "message": message})

    async def _send_to_browser(self, data: dict) -> None:
        """Send a message to the browser WebSocket."""
        try:
            await self.browser_ws.send_json(data)
        except Exception:
            logger.warning("browser_send_failed", type=data.get("type"))


async def handle_browser_websocket(websocket: WebSocket, settings: Settings) -> None:
    """Handle a browser WebSocket connection."""
    await websocket.accept()
    session = BrowserSession(settings, websocket, get_key_manager())
    await session.send_key_status()

    try:
        while True:
            data = await websocket.receive_json()
            await session.handle_message(data)

    except WebSocketDisconnect:
        logger.info("browser_disconnected")
    except Exception:
        logger.exception("websocket_handler_error")
    finally:
        await session.close()
