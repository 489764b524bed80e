from pathlib import Path
from typing import Any

from pydantic import Field, field_validator
from pydantic_settings import (
    BaseSettings,
    PydanticBaseSettingsSource,
    SettingsConfigDict,
)

from spacedeck.application.steps import format_learning_steps, parse_learning_steps
from spacedeck.domain.constants import (
    DEFAULT_BURY_SIBLINGS,
    DEFAULT_EASY_BONUS,
    DEFAULT_EASY_INTERVAL_DAYS,
    DEFAULT_GRADUATING_INTERVAL_DAYS,
    DEFAULT_INTERVAL_MODIFIER,
    DEFAULT_LEARNING_STEPS,
    DEFAULT_MAX_INTERVAL_DAYS,
    DEFAULT_NEW_PER_DAY,
    DEFAULT_REVIEWS_PER_DAY,
    DEFAULT_STARTING_EASE,
    MAX_EASE,
    MIN_EASE,
)
from spacedeck.domain.models import SchedulerConfig


def config_file_candidates() -> list[Path]:
    return [
        Path.home() / ".config/spacedeck/config.toml",
        Path.home() / ".spacedeck.toml",
    ]


class AppConfig(BaseSettings):
    """
    Configuration model for spacedeck.
    Supports loading from:
    1. Environment variables (SPACEDECK_*)
    2. Config file (~/.config/spacedeck/config.toml)
    3. Manual overrides (CLI)
    """

    model_config = SettingsConfigDict(
        env_prefix="SPACEDECK_",
        extra="ignore",
    )

    # Paths
    collection_path: Path = Field(
        default_factory=lambda: Path.home() / ".local/share/spacedeck/collection.json"
    )

    # Daily limits
    new_per_day: int = Field(default=DEFAULT_NEW_PER_DAY, ge=0)
    reviews_per_day: int = Field(default=DEFAULT_REVIEWS_PER_DAY, ge=0)

    # Scheduling
    learning_steps: str = DEFAULT_LEARNING_STEPS
    graduating_interval_days: int = Field(default=DEFAULT_GRADUATING_INTERVAL_DAYS, ge=1)
    easy_interval_days: int = Field(default=DEFAULT_EASY_INTERVAL_DAYS, ge=1)
    starting_ease: float = Field(default=DEFAULT_STARTING_EASE, ge=MIN_EASE, le=MAX_EASE)
    easy_bonus: float = Field(default=DEFAULT_EASY_BONUS, gt=0)
    interval_modifier: float = Field(default=DEFAULT_INTERVAL_MODIFIER, gt=0)
    max_interval_days: int = Field(default=DEFAULT_MAX_INTERVAL_DAYS, ge=1)
    bury_siblings: bool = DEFAULT_BURY_SIBLINGS

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        from pydantic_settings import TomlConfigSettingsSource

        # First existing file wins
        toml_file = next((f for f in config_file_candidates() if f.exists()), None)

        # Earlier sources take priority: CLI overrides, then env, then TOML
        if toml_file:
            return (
                init_settings,
                env_settings,
                TomlConfigSettingsSource(settings_cls, toml_file=toml_file),
            )
        return (init_settings, env_settings)

    @field_validator("learning_steps", mode="before")
    @classmethod
    def normalize_learning_steps(cls, v: Any) -> str:
        if v is None:
            return DEFAULT_LEARNING_STEPS
        if isinstance(v, (list, tuple)):
            v = ",".join(str(part) for part in v)
        # Canonical form; malformed tokens are dropped, an empty ladder becomes the default
        return format_learning_steps(parse_learning_steps(str(v)))

    @field_validator("collection_path", mode="before")
    @classmethod
    def resolve_path(cls, v: Any) -> Path:
        return Path(v).expanduser().resolve()

    def scheduler_config(self) -> SchedulerConfig:
        """Immutable snapshot of the scheduling options for the core."""
        return SchedulerConfig(
            new_per_day=self.new_per_day,
            reviews_per_day=self.reviews_per_day,
            learning_steps=self.learning_steps,
            graduating_interval_days=self.graduating_interval_days,
            easy_interval_days=self.easy_interval_days,
            starting_ease=self.starting_ease,
            easy_bonus=self.easy_bonus,
            interval_modifier=self.interval_modifier,
            max_interval_days=self.max_interval_days,
            bury_siblings=self.bury_siblings,
        )


def resolve_config(cli_overrides: dict[str, Any] | None = None) -> AppConfig:
    """
    Multi-layered configuration resolution.
    1. Defaults in AppConfig
    2. ~/.config/spacedeck/config.toml (if exists)
    3. Environment variables (SPACEDECK_*)
    4. cli_overrides (passed from Typer)
    """
    # Typer passes None for options the user did not set
    overrides = {k: v for k, v in (cli_overrides or {}).items() if v is not None}
    return AppConfig(**overrides)
