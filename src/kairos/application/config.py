from pathlib import Path
from typing import Any, Literal

from pydantic import Field, field_validator
from pydantic_settings import (
    BaseSettings,
    PydanticBaseSettingsSource,
    SettingsConfigDict,
    TomlConfigSettingsSource,
)

from kairos.domain.constants import (
    DEFAULT_DESIRED_RETENTION,
    DEFAULT_FUZZ_FACTOR,
    DEFAULT_LEARNING_STEPS,
    DEFAULT_MAXIMUM_INTERVAL,
    DEFAULT_PARAMETERS,
    DEFAULT_RELEARNING_STEPS,
)
from kairos.domain.scheduling.parameters import ParameterSet


def _find_config_file() -> Path | None:
    # Resolved per call so a changed HOME is honoured.
    for f in (Path.home() / ".config/kairos/config.toml", Path.home() / ".kairos.toml"):
        if f.exists():
            return f
    return None


class AppConfig(BaseSettings):
    """
    Configuration model for kairos.
    Supports loading from:
    1. Config file (~/.config/kairos/config.toml or ~/.kairos.toml)
    2. Environment variables (KAIROS_*)
    3. Manual overrides (CLI)
    Later sources win.
    """

    model_config = SettingsConfigDict(
        env_prefix="KAIROS_",
        extra="ignore",
    )

    # Memory model
    weights: list[float] = Field(default_factory=lambda: list(DEFAULT_PARAMETERS))
    desired_retention: float = DEFAULT_DESIRED_RETENTION
    maximum_interval: int = DEFAULT_MAXIMUM_INTERVAL

    # Fuzzing
    enable_fuzzing: bool = True
    fuzz_factor: float = DEFAULT_FUZZ_FACTOR

    # Steps (minutes)
    learning_steps: list[float] = Field(default_factory=lambda: list(DEFAULT_LEARNING_STEPS))
    relearning_steps: list[float] = Field(
        default_factory=lambda: list(DEFAULT_RELEARNING_STEPS)
    )

    # Storage
    backend: Literal["memory", "yaml"] = "yaml"
    store_path: Path = Field(
        default_factory=lambda: Path.home() / ".local/share/kairos/store.yaml"
    )

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
        # Earlier sources take priority.
        toml_file = _find_config_file()
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

    @field_validator("store_path", mode="before")
    @classmethod
    def resolve_path(cls, v: Any) -> Path:
        return Path(v).expanduser().resolve()

    def to_parameters(self) -> ParameterSet:
        """
        Build the validated parameter set.

        Raises:
            InvalidParameter: If any model value is out of range.
        """
        return ParameterSet(
            weights=tuple(self.weights),
            desired_retention=self.desired_retention,
            maximum_interval=self.maximum_interval,
            enable_fuzzing=self.enable_fuzzing,
            fuzz_factor=self.fuzz_factor,
            learning_steps=tuple(self.learning_steps),
            relearning_steps=tuple(self.relearning_steps),
        )


def resolve_config(cli_overrides: dict[str, Any] | None = None) -> AppConfig:
    """
    Multi-layered configuration resolution.
    1. Defaults in AppConfig
    2. ~/.config/kairos/config.toml (if exists)
    3. Environment variables (KAIROS_*)
    4. cli_overrides (passed from Typer, None values dropped)
    """
    overrides = {k: v for k, v in (cli_overrides or {}).items() if v is not None}
    return AppConfig(**overrides)
