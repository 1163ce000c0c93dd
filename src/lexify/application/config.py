from pathlib import Path
from typing import Any, Literal

from pydantic import Field, field_validator
from pydantic_settings import (
    BaseSettings,
    PydanticBaseSettingsSource,
    SettingsConfigDict,
)

from lexify.application.utils.text import parse_step
from lexify.domain.constants import (
    DEFAULT_LEARNING_STEPS,
    DEFAULT_MAXIMUM_INTERVAL,
    DEFAULT_RELEARNING_STEPS,
    DEFAULT_REQUEST_RETENTION,
    FAILURE_THRESHOLD,
    MAX_WORD_LENGTH,
    QUIZ_LOG_SIZE,
    REQUEST_TIMEOUT,
)


def config_files() -> list[Path]:
    """Candidate TOML files, highest priority first."""
    return [
        Path.home() / ".config/lexify/config.toml",
        Path.home() / ".lexify.toml",
    ]


class AppConfig(BaseSettings):
    """
    Configuration model for Lexify.
    Supports loading from:
    1. Environment variables (LEXIFY_*)
    2. Config file (~/.config/lexify/config.toml or ~/.lexify.toml)
    3. Manual overrides (CLI)
    """

    model_config = SettingsConfigDict(
        env_prefix="LEXIFY_",
        extra="ignore",
    )

    # Paths
    data_file: Path = Field(default_factory=lambda: Path.home() / ".config/lexify/words.json")

    # AI service
    ai_base_url: str | None = None
    ai_api_key: str | None = None
    request_timeout: float = REQUEST_TIMEOUT

    # Scheduler
    request_retention: float = DEFAULT_REQUEST_RETENTION
    maximum_interval: int = DEFAULT_MAXIMUM_INTERVAL
    enable_fuzz: bool = True
    enable_short_term: bool = True
    learning_steps: list[str] = Field(default_factory=lambda: list(DEFAULT_LEARNING_STEPS))
    relearning_steps: list[str] = Field(default_factory=lambda: list(DEFAULT_RELEARNING_STEPS))

    # Store and games
    max_word_length: int = MAX_WORD_LENGTH
    failure_threshold: int = FAILURE_THRESHOLD
    quiz_log_size: int = QUIZ_LOG_SIZE
    game_mode: Literal["multiple-choice", "text-input"] = "multiple-choice"

    verbose: int = 1

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
        toml_file = next((f for f in config_files() if f.exists()), None)

        if toml_file:
            return (
                init_settings,
                env_settings,
                TomlConfigSettingsSource(settings_cls, toml_file=toml_file),
            )
        return (
            init_settings,
            env_settings,
        )

    @field_validator("data_file", mode="before")
    @classmethod
    def resolve_path(cls, v: Any) -> Path:
        return Path(v).expanduser().resolve()

    @field_validator("learning_steps", "relearning_steps")
    @classmethod
    def validate_steps(cls, v: list[str]) -> list[str]:
        for step in v:
            parse_step(step)
        return v

    @field_validator("request_retention")
    @classmethod
    def validate_retention(cls, v: float) -> float:
        if not 0 < v < 1:
            raise ValueError("request_retention must be between 0 and 1 (exclusive)")
        return v

    @field_validator("maximum_interval", "max_word_length", "failure_threshold", "quiz_log_size")
    @classmethod
    def validate_positive(cls, v: int) -> int:
        if v < 1:
            raise ValueError("must be a positive integer")
        return v

    @field_validator("ai_base_url")
    @classmethod
    def strip_trailing_slash(cls, v: str | None) -> str | None:
        if v is None:
            return None
        v = v.strip().rstrip("/")
        return v or None


def resolve_config(cli_overrides: dict[str, Any] | None = None) -> AppConfig:
    """
    Multi-layered configuration resolution.
    1. Defaults in AppConfig
    2. ~/.config/lexify/config.toml (if exists)
    3. Environment variables (LEXIFY_*)
    4. cli_overrides (passed from Typer)
    """
    overrides = {k: v for k, v in (cli_overrides or {}).items() if v is not None}
    return AppConfig(**overrides)
