"""App configuration loading helpers."""

from __future__ import annotations

import logging
import uuid
from pathlib import Path

import tomllib

from pydantic import BaseModel, Field, ValidationError

CONFIG_FILE = Path.home() / ".config" / "tabpilot" / "config.toml"

LOG = logging.getLogger(__name__)


class CompletionSettings(BaseModel):
    """Tunables for the completion engine and its network client."""

    enabled: bool = True
    disabled_languages: set[str] = Field(default_factory=set)
    debounce_ms: int = Field(default=300, ge=0)
    rejection_window_ms: int = Field(default=10_000, gt=0)
    continuation_window_ms: int = Field(default=500, ge=0)
    history_capacity: int = Field(default=20, ge=1)
    network_timeout_ms: int = Field(default=2_000, gt=0)
    server_url: str = "http://localhost:8080"
    completions_path: str = "/completion-agent/api/v1/completions"
    model: str = "default"
    temperature: float = Field(default=0.1, ge=0.0)
    client_id: str = Field(default_factory=lambda: uuid.uuid4().hex)
    demo_mode: bool = False

    @property
    def debounce_delay(self) -> float:
        return self.debounce_ms / 1000

    @property
    def rejection_window(self) -> float:
        return self.rejection_window_ms / 1000

    @property
    def continuation_window(self) -> float:
        return self.continuation_window_ms / 1000

    @property
    def network_timeout(self) -> float:
        return self.network_timeout_ms / 1000

    def is_language_enabled(self, language_id: str) -> bool:
        return language_id not in self.disabled_languages


class AppConfig(BaseModel):
    """Shape of the application configuration file."""

    telemetry_enabled: bool = False
    completion: CompletionSettings = Field(default_factory=CompletionSettings)

    def with_completion(self, **updates: object) -> AppConfig:
        """Return a copy with completion settings changes applied."""

        completion = self.completion.model_copy(update=updates)
        return self.model_copy(update={"completion": completion})


def load_config() -> AppConfig:
    """Load configuration from disk; fall back to defaults if missing or invalid."""

    try:
        data = _read_config_file()
    except FileNotFoundError:
        return AppConfig()
    except (tomllib.TOMLDecodeError, OSError):
        LOG.warning("Ignoring unreadable config file %s", CONFIG_FILE)
        return AppConfig()

    try:
        completion = CompletionSettings(**data.get("completion", {}))
    except ValidationError as exc:
        LOG.warning("Ignoring invalid completion settings: %s", exc)
        completion = CompletionSettings()
    return AppConfig(
        telemetry_enabled=data.get(
            "telemetry_enabled", AppConfig.model_fields["telemetry_enabled"].default
        ),
        completion=completion,
    )


_INT_KEYS = (
    "debounce_ms",
    "rejection_window_ms",
    "continuation_window_ms",
    "history_capacity",
    "network_timeout_ms",
)
_STR_KEYS = ("server_url", "completions_path", "model", "client_id")
_BOOL_KEYS = ("enabled", "demo_mode")


def _read_config_file() -> dict[str, object]:
    with CONFIG_FILE.open("rb") as handle:
        raw = tomllib.load(handle)
    data: dict[str, object] = {}
    if isinstance(raw, dict):
        telemetry = raw.get("telemetry_enabled")
        if isinstance(telemetry, bool):
            data["telemetry_enabled"] = telemetry
        completion = raw.get("completion")
        if isinstance(completion, dict):
            parsed: dict[str, object] = {}
            for key in _INT_KEYS:
                value = completion.get(key)
                if isinstance(value, int) and not isinstance(value, bool):
                    parsed[key] = value
            for key in _STR_KEYS:
                value = completion.get(key)
                if isinstance(value, str):
                    parsed[key] = value
            for key in _BOOL_KEYS:
                value = completion.get(key)
                if isinstance(value, bool):
                    parsed[key] = value
            temperature = completion.get("temperature")
            if isinstance(temperature, (int, float)) and not isinstance(temperature, bool):
                parsed["temperature"] = float(temperature)
            languages = completion.get("disabled_languages")
            if isinstance(languages, list):
                parsed["disabled_languages"] = {str(lang) for lang in languages}
            data["completion"] = parsed
    return data


__all__ = ["AppConfig", "CONFIG_FILE", "CompletionSettings", "load_config"]
