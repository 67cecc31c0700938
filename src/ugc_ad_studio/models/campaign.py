"""Campaign, scene and asset data models."""

import uuid
from datetime import datetime
from enum import StrEnum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator


class SceneType(StrEnum):
    """The four narrative segments of an ad, in playback order."""

    HOOK = "Hook"
    PROBLEM = "Problem"
    SOLUTION = "Solution"
    CTA = "CTA"


SCENE_ORDER: list[SceneType] = list(SceneType)


class AssetKind(StrEnum):
    """Generated artifact types attached to each scene."""

    SCRIPT = "script"
    IMAGE = "image"
    AUDIO = "audio"
    VIDEO = "video"


class CampaignStatus(StrEnum):
    """Campaign lifecycle states."""

    CREATED = "created"
    GENERATING = "generating"
    COMPLETED = "completed"
    ERROR = "error"


class Asset(BaseModel):
    """Loading/error/data state of one generated artifact."""

    data: str | None = None
    is_loading: bool = False
    error: str | None = None


class Scene(BaseModel):
    """One ad segment with its script, image, audio and video assets."""

    type: SceneType
    script: Asset = Field(default_factory=Asset)
    image: Asset = Field(default_factory=Asset)  # data:image/png;base64 URL
    audio: Asset = Field(default_factory=Asset)  # data:audio/wav;base64 URL
    video: Asset = Field(default_factory=Asset)  # download URL

    def asset(self, kind: AssetKind) -> Asset:
        return getattr(self, kind.value)

    @property
    def is_anything_loading(self) -> bool:
        return any(self.asset(kind).is_loading for kind in AssetKind)


def create_initial_scene(scene_type: SceneType) -> Scene:
    """Create a scene whose four assets are all idle and empty."""
    return Scene(type=scene_type)


class AdInput(BaseModel):
    """Product details submitted for a campaign."""

    product_name: str = Field(min_length=1)
    moods: list[str]
    backgrounds: list[str]
    product_image: str | None = Field(default=None, validate_default=True)  # base64 JPEG
    model_image: str | None = None  # base64 JPEG

    @field_validator("product_name")
    @classmethod
    def _strip_name(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("Please enter a product name.")
        return value

    @field_validator("moods", "backgrounds")
    @classmethod
    def _exactly_four(cls, value: list[str]) -> list[str]:
        if len(value) != 4:
            raise ValueError("Please select exactly 4 moods and 4 backgrounds.")
        return value

    @field_validator("product_image")
    @classmethod
    def _product_image_required(cls, value: str | None) -> str:
        if not value:
            raise ValueError("Please upload a product image.")
        return value


class Scripts(BaseModel):
    """One short script line per scene, keyed by scene name."""

    model_config = ConfigDict(populate_by_name=True)

    hook: str = Field(alias="Hook")
    problem: str = Field(alias="Problem")
    solution: str = Field(alias="Solution")
    cta: str = Field(alias="CTA")

    def __getitem__(self, scene_type: SceneType) -> str:
        return getattr(self, scene_type.name.lower())


class Campaign(BaseModel):
    """A single ad generation run and the state of all of its scenes."""

    campaign_id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    status: CampaignStatus = CampaignStatus.CREATED
    created_at: datetime = Field(default_factory=datetime.now)
    inputs: AdInput | None = None
    scenes: list[Scene] = Field(
        default_factory=lambda: [create_initial_scene(t) for t in SCENE_ORDER]
    )
    is_loading: bool = False
    error: str | None = None

    def scene(self, scene_type: SceneType) -> Scene:
        for scene in self.scenes:
            if scene.type == scene_type:
                return scene
        raise KeyError(scene_type)

    def update_asset(self, scene_type: SceneType, kind: AssetKind, **fields: Any) -> Asset:
        """Merge fields into one asset, leaving every other asset untouched."""
        scene = self.scene(scene_type)
        updated = scene.asset(kind).model_copy(update=fields)
        setattr(scene, kind.value, updated)
        return updated

