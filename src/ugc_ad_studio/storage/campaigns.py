"""Campaign snapshot persistence (one JSON file per campaign, atomic write)."""

import json
import os
import tempfile
from pathlib import Path

import structlog

from ugc_ad_studio.models.campaign import Campaign

logger = structlog.get_logger()


def campaign_path(campaigns_dir: Path, campaign_id: str) -> Path:
    return campaigns_dir / f"{campaign_id}.json"


def save_campaign(campaigns_dir: Path, campaign: Campaign) -> Path:
    """Write a campaign snapshot, replacing any previous one atomically."""
    campaigns_dir.mkdir(parents=True, exist_ok=True)
    path = campaign_path(campaigns_dir, campaign.campaign_id)
    with tempfile.NamedTemporaryFile(
        "w", dir=campaigns_dir, delete=False, suffix=".tmp", encoding="utf-8"
    ) as tmp:
        tmp.write(campaign.model_dump_json(indent=2))
    os.replace(tmp.name, path)
    logger.info("campaign_saved", path=str(path))
    return path


def load_campaign(campaigns_dir: Path, campaign_id: str) -> Campaign | None:
    """Load a campaign snapshot, or None if it was never saved."""
    path = campaign_path(campaigns_dir, campaign_id)
    if not path.exists():
        return None
    return Campaign.model_validate_json(path.read_text(encoding="utf-8"))


def list_campaigns(campaigns_dir: Path) -> list[dict]:
    """Summaries of all saved campaigns, newest first."""
    summaries = []
    if not campaigns_dir.exists():
        return summaries
    for path in campaigns_dir.glob("*.json"):
        try:
            data = json.loads(path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError):
            logger.warning("campaign_parse_error", path=str(path))
            continue
        inputs = data.get("inputs") or {}
        summaries.append({
            "campaign_id": data.get("campaign_id", path.stem),
            "created_at": data.get("created_at", ""),
            "status": data.get("status", ""),
            "product_name": inputs.get("product_name", ""),
            "error": data.get("error"),
        })
    summaries.sort(key=lambda s: s["created_at"], reverse=True)
    return summaries
