"""Engine and server settings: environment, .env and config/settings.yaml."""

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
    """Reads config/settings.yaml and flattens its sections onto Settings fields."""

    def get_field_value(self, field_name: str) -> tuple[Any, str, bool]:
        """Unused; values come from __call__."""
        return None, "", False

    def __call__(self) -> dict[str, Any]:
        yaml_path = _find_project_root() / "config" / "settings.yaml"
        if not yaml_path.exists():
            return {}

        with open(yaml_path, encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}

        flattened = {}
        if "server" in data:
            flattened["host"] = data["server"].get("host")
            flattened["port"] = data["server"].get("port")
        if "engine" in data:
            engine = data["engine"]
            flattened["history_limit"] = engine.get("history_limit")
            flattened["evaluation_window"] = engine.get("evaluation_window")
            flattened["catalog_path"] = engine.get("catalog_path")
        if "positions" in data:
            positions = data["positions"]
            flattened["position_backend_url"] = positions.get("backend_url")
            flattened["position_backend_timeout"] = positions.get("backend_timeout")
            flattened["position_storage_prefix"] = positions.get("storage_prefix")
            flattened["recommendations_ttl_seconds"] = positions.get(
                "recommendations_ttl_seconds"
            )

        # Remove None values
        return {k: v for k, v in flattened.items() if v is not None}


class Settings(BaseSettings):
    """Learning engine settings."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Engine
    history_limit: int = Field(default=20, ge=1)
    evaluation_window: int = Field(default=5, ge=1)
    catalog_path: Path | None = Field(default=None)

    # Position tracking
    position_backend_url: str | None = Field(default=None)
    position_backend_timeout: float = Field(default=5.0)
    position_storage_prefix: str = Field(default="eng_learn_")
    recommendations_ttl_seconds: float = Field(default=600.0)

    # Server
    host: str = Field(default="0.0.0.0")
    port: int = Field(default=8000)

    # Paths
    project_root: Path = Field(default_factory=_find_project_root)

    @property
    def profiles_dir(self) -> Path:
        d = self.project_root / "data" / "learner_profiles"
        d.mkdir(parents=True, exist_ok=True)
        return d

    @property
    def resolved_catalog_path(self) -> Path:
        """Catalog file, defaulting to config/catalog.yaml."""
        if self.catalog_path is not None:
            return self.catalog_path
        return self.project_root / "config" / "catalog.yaml"

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        """Init kwargs, then environment, .env, settings.yaml and secrets."""
        return (
            init_settings,
            env_settings,
            dotenv_settings,
            YamlSettingsSource(settings_cls),
            file_secret_settings,
        )


@functools.lru_cache
def get_settings() -> Settings:
    """Process-wide settings instance."""
    return Settings()
