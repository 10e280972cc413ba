"""Engine settings loaded from YAML with environment overrides."""

from __future__ import annotations

import os
from pathlib import Path
from typing import Literal

import yaml  # type: ignore[import-untyped]
from pydantic import BaseModel, ConfigDict, Field, ValidationError

_ENV_PREFIX = "FILLENGINE_"


class AnalysisSettings(BaseModel):
    model_config = ConfigDict(extra="forbid", frozen=True)

    base_url: str = "https://api.anthropic.com/v1/messages"
    api_version: str = "2023-06-01"
    model: str = "claude-sonnet-4-5"
    timeout_seconds: float = Field(default=90.0, gt=0)
    max_tokens: int = Field(default=8192, gt=0)
    max_retries: int = Field(default=1, ge=0)
    retry_base_delay_seconds: float = Field(default=1.0, ge=0)
    retry_max_delay_seconds: float = Field(default=10.0, ge=0)
    analysis_temperature: float = Field(default=0.1, ge=0, le=1)
    fill_temperature: float = Field(default=0.5, ge=0, le=1)


class ConversionSettings(BaseModel):
    model_config = ConfigDict(extra="forbid", frozen=True)

    command: list[str] = Field(default_factory=lambda: ["soffice"])
    timeout_seconds: float = Field(default=60.0, gt=0)


class LayoutSettings(BaseModel):
    model_config = ConfigDict(extra="forbid", frozen=True)

    default_font_size: float = Field(default=11, gt=0)
    line_height_factor: float = Field(default=1.2, gt=0)
    font_name: str = "helv"


class EngineSettings(BaseModel):
    """Top-level engine configuration."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    language: Literal["nl", "en"] = "nl"
    analysis: AnalysisSettings = Field(default_factory=AnalysisSettings)
    conversion: ConversionSettings = Field(default_factory=ConversionSettings)
    layout: LayoutSettings = Field(default_factory=LayoutSettings)


def load_settings(path: Path | None = None) -> EngineSettings:
    """Load settings from YAML and apply FILLENGINE_* environment overrides."""

    settings_path = path or Path(__file__).with_name("settings.yaml")

    try:
        raw = yaml.safe_load(settings_path.read_text(encoding="utf-8"))
    except FileNotFoundError as exc:
        raise ValueError(f"Settings file not found: {settings_path}") from exc
    except yaml.YAMLError as exc:
        raise ValueError(f"Invalid YAML in settings file: {settings_path}") from exc

    if raw is None:
        raw = {}
    if not isinstance(raw, dict):
        raise ValueError(f"Settings file must contain a mapping: {settings_path}")

    try:
        settings = EngineSettings.model_validate(raw)
    except ValidationError as exc:
        raise ValueError(f"Invalid settings schema: {settings_path}") from exc

    return _apply_env_overrides(settings)


def _apply_env_overrides(settings: EngineSettings) -> EngineSettings:
    analysis = settings.analysis.model_copy(
        update={
            "model": os.getenv(f"{_ENV_PREFIX}ANALYSIS_MODEL") or settings.analysis.model,
            "timeout_seconds": _positive_float(
                "ANALYSIS_TIMEOUT_SECONDS", settings.analysis.timeout_seconds
            ),
        }
    )
    conversion = settings.conversion.model_copy(
        update={
            "timeout_seconds": _positive_float(
                "CONVERSION_TIMEOUT_SECONDS", settings.conversion.timeout_seconds
            ),
        }
    )
    command = os.getenv(f"{_ENV_PREFIX}CONVERTER")
    if command:
        conversion = conversion.model_copy(update={"command": command.split()})

    language = os.getenv(f"{_ENV_PREFIX}LANGUAGE", settings.language).strip().lower()
    if language not in ("nl", "en"):
        language = settings.language

    return settings.model_copy(
        update={"analysis": analysis, "conversion": conversion, "language": language}
    )


def _positive_float(name: str, default: float) -> float:
    raw = os.getenv(f"{_ENV_PREFIX}{name}")
    if raw is None:
        return default
    try:
        parsed = float(raw)
    except ValueError:
        return default
    return parsed if parsed > 0 else default
