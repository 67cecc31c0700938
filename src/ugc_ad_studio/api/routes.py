"""REST API routes for options, API key selection and saved campaigns."""

import base64
import uuid

import structlog
from fastapi import APIRouter, HTTPException
from fastapi.responses import RedirectResponse, Response
from pydantic import BaseModel

from ugc_ad_studio.config import get_settings
from ugc_ad_studio.exceptions import ApiKeyMissingError
from ugc_ad_studio.models.campaign import AssetKind, SceneType
from ugc_ad_studio.models.catalog import (
    BACKGROUND_OPTIONS,
    MOOD_OPTIONS,
    SCENE_ORDER,
    VIDEO_LOADING_MESSAGES,
)
from ugc_ad_studio.services.api_key import get_key_manager
from ugc_ad_studio.storage.campaigns import list_campaigns, load_campaign

logger = structlog.get_logger()
router = APIRouter(prefix="/api")

_DOWNLOAD_TYPES = {
    AssetKind.SCRIPT: ("text/plain; charset=utf-8", "txt"),
    AssetKind.IMAGE: ("image/png", "png"),
    AssetKind.AUDIO: ("audio/wav", "wav"),
}


class KeySelection(BaseModel):
    api_key: str


def validate_campaign_id(campaign_id: str) -> str:
    try:
        uuid.UUID(campaign_id)
    except ValueError:
        raise HTTPException(status_code=400, detail="Invalid campaign ID format")
    return campaign_id


def _decode_data_url(data: str) -> bytes:
    _, _, payload = data.partition(",")
    return base64.b64decode(payload)


@router.get("/health")
async def health_check() -> dict:
    """Health check endpoint."""
    return {"status": "ok"}


@router.get("/options")
async def get_options() -> dict:
    """Selectable moods and backgrounds plus fixed scene order."""
    return {
        "moods": MOOD_OPTIONS,
        "backgrounds": BACKGROUND_OPTIONS,
        "scenes": [s.value for s in SCENE_ORDER],
        "video_loading_messages": VIDEO_LOADING_MESSAGES,
    }


@router.get("/key")
async def get_key_status() -> dict:
    return {"ready": get_key_manager().ready}


@router.post("/key")
async def select_key(selection: KeySelection) -> dict:
    """Select the API key used for all subsequent generation requests."""
    manager = get_key_manager()
    try:
        manager.select(selection.api_key)
    except ApiKeyMissingError as exc:
        raise HTTPException(status_code=400, detail=str(exc))
    return {"ready": manager.ready}


@router.get("/campaigns")
async def get_campaigns() -> list[dict]:
    """List all saved campaigns."""
    return list_campaigns(get_settings().campaigns_dir)


@router.get("/campaigns/{campaign_id}")
async def get_campaign(campaign_id: str) -> dict:
    """Get a saved campaign with all scene assets."""
    campaign_id = validate_campaign_id(campaign_id)
    campaign = load_campaign(get_settings().campaigns_dir, campaign_id)
    if campaign is None:
        raise HTTPException(status_code=404, detail="Campaign not found")
    return campaign.model_dump(mode="json")


@router.get("/campaigns/{campaign_id}/scenes/{scene}/{asset}")
async def download_asset(campaign_id: str, scene: str, asset: str) -> Response:
    """Download one generated asset as a file."""
    campaign_id = validate_campaign_id(campaign_id)
    try:
        scene_type = SceneType(scene)
        kind = AssetKind(asset)
    except ValueError:
        raise HTTPException(status_code=400, detail="Unknown scene or asset type")

    campaign = load_campaign(get_settings().campaigns_dir, campaign_id)
    if campaign is None:
        raise HTTPException(status_code=404, detail="Campaign not found")
    data = campaign.scene(scene_type).asset(kind).data
    if not data:
        raise HTTPException(status_code=404, detail="Asset not generated")

    if kind is AssetKind.VIDEO:
        return RedirectResponse(data)

    media_type, ext = _DOWNLOAD_TYPES[kind]
    content = data.encode("utf-8") if kind is AssetKind.SCRIPT else _decode_data_url(data)
    filename = f"{scene_type.value}_{kind.value}.{ext}"
    logger.info("asset_downloaded", campaign_id=campaign_id, filename=filename)
    return Response(
        content=content,
        media_type=media_type,
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )
