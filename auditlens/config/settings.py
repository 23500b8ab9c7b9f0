"""Root settings model for auditlens configuration."""

from typing import Any

from pydantic import Field
from pydantic_settings import (
    BaseSettings,
    PydanticBaseSettingsSource,
    SettingsConfigDict,
)

from auditlens.config.models.cache import CacheConfig
from auditlens.config.models.history import HistoryConfig
from auditlens.config.models.observability import ObservabilityConfig

# TOML values handed to the settings source by get_settings()
_toml_config: dict[str, Any] = {}


def set_toml_config(config: dict[str, Any]) -> None:
    """Set the TOML configuration read by TomlConfigSettingsSource."""
    global _toml_config
    _toml_config = config


class TomlConfigSettingsSource(PydanticBaseSettingsSource):
    """Settings source backed by the merged TOML configuration."""

    def get_field_value(
        self, field: Any, field_name: str  # noqa: ARG002
    ) -> tuple[Any, str, bool]:
        value = _toml_config.get(field_name)
        return value, field_name, value is not None

    def __call__(self) -> dict[str, Any]:
        return _toml_config.copy()


class Settings(BaseSettings):
    """Root configuration object.

    Precedence, highest first:
    1. constructor arguments
    2. AUDITLENS_* environment variables (``__`` separates nested keys)
    3. config/default.toml overlaid with config/{AUDITLENS_ENV}.toml
    4. model defaults
    """

    model_config = SettingsConfigDict(
        env_prefix="AUDITLENS_",
        env_nested_delimiter="__",
        case_sensitive=False,
        extra="ignore",
    )

    app_name: str = Field(default="auditlens", description="Application name for logging")
    cache: CacheConfig = Field(
        default_factory=CacheConfig,
        description="Metadata cache persistence",
    )
    history: HistoryConfig = Field(
        default_factory=HistoryConfig,
        description="Change history retrieval",
    )
    observability: ObservabilityConfig = Field(
        default_factory=ObservabilityConfig,
        description="Logging configuration",
    )

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,  # noqa: ARG003
        file_secret_settings: PydanticBaseSettingsSource,  # noqa: ARG003
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        return (
            init_settings,
            env_settings,
            TomlConfigSettingsSource(settings_cls),
        )
