"""Configuration contract and settings helpers.

The pipeline never owns the settings store. It receives a plain mapping with
the store's key names, applies environment overrides, and turns it into an
immutable :class:`Configuration`. Nothing downstream reads a setting that was
not validated here.
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from typing import Any, Iterable, Mapping

from ..ai.errors import ConfigurationError

__all__ = [
    "Configuration",
    "SettingDefinition",
    "SETTINGS_SCHEMA",
    "REQUIRED_SETTINGS",
    "default_settings",
    "load_configuration",
    "parse_features",
]

LOGGER = logging.getLogger(__name__)

_ENV_OVERRIDES: Mapping[str, str] = {
    "INKWELL_MODEL": "model_name",
    "INKWELL_BETAS": "betas",
}
_INT_ENV_OVERRIDES: Mapping[str, str] = {
    "INKWELL_MAX_RETRIES": "max_retries",
    "INKWELL_REQUEST_TIMEOUT": "request_timeout",
    "INKWELL_CONTEXT_WINDOW": "context_window",
    "INKWELL_THINKING_BUDGET": "thinking_budget_tokens",
    "INKWELL_MAX_OUTPUT_TOKENS": "betas_max_tokens",
    "INKWELL_DESIRED_OUTPUT_TOKENS": "desired_output_tokens",
    "INKWELL_MAX_THINKING_BUDGET": "max_thinking_budget",
}


@dataclass(slots=True, frozen=True)
class SettingDefinition:
    """Describes one API setting as the settings store presents it."""

    name: str
    label: str
    type: str
    default: Any
    description: str
    attribute: str


SETTINGS_SCHEMA: tuple[SettingDefinition, ...] = (
    SettingDefinition(
        name="max_retries",
        label="Max Retries",
        type="number",
        default=1,
        description="Maximum number of retry attempts if the API call fails.",
        attribute="max_retries",
    ),
    SettingDefinition(
        name="request_timeout",
        label="Request Timeout (seconds)",
        type="number",
        default=300,
        description="Maximum time (in seconds) to wait for a response from the API.",
        attribute="request_timeout_seconds",
    ),
    SettingDefinition(
        name="desired_output_tokens",
        label="Desired Output Tokens",
        type="number",
        default=12_000,
        description="Tokens reserved for the visible answer (12,000 tokens is roughly 9,000 words).",
        attribute="desired_output_tokens",
    ),
    SettingDefinition(
        name="context_window",
        label="Context Window (tokens)",
        type="number",
        default=200_000,
        description="Maximum number of tokens shared by the prompt and all output.",
        attribute="context_window_tokens",
    ),
    SettingDefinition(
        name="thinking_budget_tokens",
        label="Thinking Budget (tokens)",
        type="number",
        default=32_000,
        description="Thinking tokens every run must be able to reserve; smaller budgets abort the run.",
        attribute="thinking_budget_tokens",
    ),
    SettingDefinition(
        name="betas_max_tokens",
        label="Max Output Tokens",
        type="number",
        default=128_000,
        description="Upper bound the service accepts for thinking plus visible output.",
        attribute="max_output_tokens",
    ),
    SettingDefinition(
        name="model_name",
        label="Model Name",
        type="text",
        default="claude-3-7-sonnet-20250219",
        description="Model identifier sent with every request.",
        attribute="model_id",
    ),
    SettingDefinition(
        name="betas",
        label="Beta Features",
        type="text",
        default="output-128k-2025-02-19",
        description="Comma-separated feature flags enabled on each request.",
        attribute="enabled_features",
    ),
    SettingDefinition(
        name="max_thinking_budget",
        label="Max Thinking Budget",
        type="number",
        default=32_000,
        description="Cap applied to the thinking budget computed for a prompt.",
        attribute="max_thinking_budget_tokens",
    ),
)

REQUIRED_SETTINGS: tuple[str, ...] = tuple(item.name for item in SETTINGS_SCHEMA)
_NUMERIC_SETTINGS: tuple[SettingDefinition, ...] = tuple(
    item for item in SETTINGS_SCHEMA if item.type == "number"
)


@dataclass(slots=True, frozen=True)
class Configuration:
    """Validated, immutable settings consumed by the pipeline."""

    max_retries: int
    request_timeout_seconds: int
    context_window_tokens: int
    thinking_budget_tokens: int
    max_output_tokens: int
    desired_output_tokens: int
    max_thinking_budget_tokens: int
    model_id: str
    enabled_features: frozenset[str] = field(default_factory=frozenset)

    def __post_init__(self) -> None:
        invalid = [
            item.attribute
            for item in _NUMERIC_SETTINGS
            if not _is_non_negative_int(getattr(self, item.attribute))
        ]
        if not isinstance(self.model_id, str) or not self.model_id.strip():
            invalid.append("model_id")
        if invalid:
            raise ConfigurationError.for_fields(invalid=invalid)
        if not isinstance(self.enabled_features, frozenset):
            object.__setattr__(self, "enabled_features", frozenset(self.enabled_features))

    @classmethod
    def from_settings(cls, payload: Mapping[str, Any]) -> "Configuration":
        """Build a configuration from settings-store key names.

        Raises:
            ConfigurationError: listing every missing or invalid setting.
        """

        missing = [name for name in REQUIRED_SETTINGS if payload.get(name) is None]
        if missing:
            raise ConfigurationError.for_fields(missing=missing)

        values: dict[str, Any] = {}
        invalid: list[str] = []
        for item in SETTINGS_SCHEMA:
            raw = payload[item.name]
            if item.name == "betas":
                values[item.attribute] = parse_features(raw)
            elif item.type == "number":
                coerced = _coerce_int(raw)
                if coerced is None or coerced < 0:
                    invalid.append(item.name)
                else:
                    values[item.attribute] = coerced
            else:
                values[item.attribute] = str(raw).strip()
        if invalid:
            raise ConfigurationError.for_fields(invalid=invalid)
        return cls(**values)

    def to_settings(self) -> dict[str, Any]:
        """Return the settings-store representation of this configuration."""

        payload: dict[str, Any] = {}
        for item in SETTINGS_SCHEMA:
            value = getattr(self, item.attribute)
            if item.name == "betas":
                value = ",".join(sorted(value))
            payload[item.name] = value
        return payload

    def feature_enabled(self, name: str) -> bool:
        return name in self.enabled_features


def default_settings() -> dict[str, Any]:
    """Return the default settings mapping described by :data:`SETTINGS_SCHEMA`."""

    return {item.name: item.default for item in SETTINGS_SCHEMA}


def load_configuration(
    payload: Mapping[str, Any] | None = None,
    *,
    env: Mapping[str, str] | None = None,
) -> Configuration:
    """Apply environment overrides to ``payload`` and validate the result."""

    merged: dict[str, Any] = dict(payload or {})
    environment = os.environ if env is None else env
    for env_name, key in _ENV_OVERRIDES.items():
        value = environment.get(env_name)
        if value:
            merged[key] = value
    for env_name, key in _INT_ENV_OVERRIDES.items():
        value = environment.get(env_name)
        if value is None or value == "":
            continue
        coerced = _coerce_int(value)
        if coerced is None:
            LOGGER.warning("Ignoring non-integer value for %s: %r", env_name, value)
            continue
        merged[key] = coerced
    configuration = Configuration.from_settings(merged)
    LOGGER.debug(
        "Configuration loaded (model=%s, context_window=%s, thinking_budget=%s)",
        configuration.model_id,
        configuration.context_window_tokens,
        configuration.thinking_budget_tokens,
    )
    return configuration


def parse_features(raw: str | Iterable[str] | None) -> frozenset[str]:
    """Normalize a comma-separated string or iterable of feature names."""

    if raw is None:
        return frozenset()
    items = raw.split(",") if isinstance(raw, str) else list(raw)
    return frozenset(str(item).strip() for item in items if str(item).strip())


def _coerce_int(value: Any) -> int | None:
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        return int(value) if value.is_integer() else None
    if isinstance(value, str):
        try:
            return int(value.strip())
        except ValueError:
            return None
    return None


def _is_non_negative_int(value: Any) -> bool:
    return isinstance(value, int) and not isinstance(value, bool) and value >= 0
