"""Application configuration using pydantic-settings."""

import functools
from pathlib import Path
from typing import Any

import yaml
from pydantic import Field
from pydantic_settings import BaseSettings, PydanticBaseSettingsSource, SettingsConfigDict


def _find_project_root() -> Path:
    """Find project root by locating pyproject.toml."""
    current = Path(__file__).resolve()
    for parent in [current] + list(current.parents):
        if (parent / "pyproject.toml").exists():
            return parent
    return Path(__file__).resolve().parent.parent.parent


class YamlSettingsSource(PydanticBaseSettingsSource):
    """Custom settings source that loads from config/settings.yaml."""

    def get_field_value(self, field_name: str) -> tuple[Any, str, bool]:
        """Not used - we implement __call__ instead."""
        return None, "", False

    def __call__(self) -> dict[str, Any]:
        """Load settings from YAML file."""
        yaml_path = _find_project_root() / "config" / "settings.yaml"
        if not yaml_path.exists():
            return {}

        with open(yaml_path, encoding='utf-8') as f:
            data = yaml.safe_load(f) or {}

        # Flatten nested structure to match Settings field names
        flattened = {}
        if 'server' in data:
            flattened['host'] = data['server'].get('host')
            flattened['port'] = data['server'].get('port')
        if 'audio' in data:
            flattened['audio_sample_rate'] = data['audio'].get('sample_rate')
            flattened['audio_channels'] = data['audio'].get('channels')
        if 'gemini' in data:
            gemini = data['gemini']
            for key in ('script_model', 'image_model', 'tts_model', 'tts_voice', 'video_model'):
                flattened[key] = gemini.get(key)
        if 'video' in data:
            flattened['video_poll_interval_seconds'] = data['video'].get('poll_interval_seconds')
            flattened['video_poll_timeout_seconds'] = data['video'].get('poll_timeout_seconds')

        return {k: v for k, v in flattened.items() if v is not None}


class Settings(BaseSettings):
    """Application settings loaded from environment and config files."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Gemini (None means a key must be selected at runtime via /api/key)
    gemini_api_key: str | None = Field(default=None, description="Gemini API key")
    script_model: str = Field(default="gemini-2.5-pro")
    image_model: str = Field(default="imagen-4.0-generate-001")
    tts_model: str = Field(default="gemini-2.5-flash-preview-tts")
    tts_voice: str = Field(default="Kore")
    video_model: str = Field(default="veo-3.1-fast-generate-preview")

    # Authentication (optional: None disables auth)
    app_secret: str | None = Field(default=None)

    # Audio returned by the TTS model
    audio_sample_rate: int = Field(default=24000)
    audio_channels: int = Field(default=1)

    # Video operation polling
    video_poll_interval_seconds: float = Field(default=10.0)
    video_poll_timeout_seconds: float | None = Field(default=None)

    # Server
    host: str = Field(default="0.0.0.0")
    port: int = Field(default=8000)

    # Paths
    project_root: Path = Field(default_factory=_find_project_root)

    @property
    def campaigns_dir(self) -> Path:
        d = self.project_root / "data" / "campaigns"
        d.mkdir(parents=True, exist_ok=True)
        return d

    @property
    def frontend_dir(self) -> Path:
        return self.project_root / "frontend"

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        """Customise settings sources to include YAML file.

        Priority order (highest to lowest):
        1. init_settings (arguments passed to Settings())
        2. env_settings (environment variables)
        3. dotenv_settings (.env file)
        4. YamlSettingsSource (settings.yaml)
        5. file_secret_settings
        """
        return (
            init_settings,
            env_settings,
            dotenv_settings,
            YamlSettingsSource(settings_cls),
            file_secret_settings,
        )


@functools.lru_cache
def get_settings() -> Settings:
    """Get application settings singleton."""
    return Settings()
