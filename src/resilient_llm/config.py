"""Configuration for resilient-llm.

Config discovery (first match wins):
  1. ``--config`` flag / explicit path
  2. ``./resilient_llm.yaml``
  3. ``~/.config/resilient-llm/config.yaml``
  4. Built-in defaults

``RESILIENT_LLM_*`` environment variables override whatever the file says.
"""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Any, Mapping

import yaml
from pydantic import AliasChoices, BaseModel, Field

from resilient_llm.errors import ConfigurationError

_logger = logging.getLogger(__name__)


class ClientConfig(BaseModel):
    """Process-wide, read-only client settings.

    Accepts both snake_case names and the camelCase keys used by the
    settings store (``llmApiKey``, ``llmBaseUrl``, ``llmModel``).
    """

    llm_api_key: str = Field(
        default="", validation_alias=AliasChoices("llm_api_key", "llmApiKey"),
    )
    llm_base_url: str = Field(
        default="", validation_alias=AliasChoices("llm_base_url", "llmBaseUrl"),
    )
    # Overrides the per-request model when set
    llm_model: str | None = Field(
        default=None, validation_alias=AliasChoices("llm_model", "llmModel"),
    )
    debug: bool = False
    debug_log_path: str | None = None
    timeout: float = 120

    def require_credentials(self) -> None:
        """Raise ``ConfigurationError`` unless both key and endpoint are set."""
        missing = [
            name
            for name, value in (
                ("llm_api_key", self.llm_api_key),
                ("llm_base_url", self.llm_base_url),
            )
            if not value or not value.strip()
        ]
        if missing:
            raise ConfigurationError(
                f"LLM endpoint is not configured (missing: {', '.join(missing)})",
                context={"missing": missing},
            )


# ---------------------------------------------------------------------------
# Loading
# ---------------------------------------------------------------------------

CONFIG_FILENAME = "resilient_llm.yaml"

_SEARCH_PATHS = [
    Path(".") / CONFIG_FILENAME,
    Path.home() / ".config" / "resilient-llm" / "config.yaml",
]

_ENV_OVERRIDES = {
    "RESILIENT_LLM_API_KEY": "llm_api_key",
    "RESILIENT_LLM_BASE_URL": "llm_base_url",
    "RESILIENT_LLM_MODEL": "llm_model",
    "RESILIENT_LLM_DEBUG": "debug",
}


def _env_overrides(environ: Mapping[str, str]) -> dict[str, Any]:
    overrides: dict[str, Any] = {}
    for env_name, key in _ENV_OVERRIDES.items():
        value = environ.get(env_name)
        if value is None or value == "":
            continue
        if key == "debug":
            overrides[key] = value.strip().lower() in ("1", "true", "yes", "on")
        else:
            overrides[key] = value
    return overrides


def load_config(
    config_path: str | Path | None = None,
    environ: Mapping[str, str] | None = None,
) -> tuple[ClientConfig, Path | None]:
    """Load configuration from YAML plus environment overrides.

    Returns (config, resolved_path).  *resolved_path* is ``None`` when
    no file was found and built-in defaults are used.
    """
    env = os.environ if environ is None else environ

    resolved: Path | None = None
    if config_path is not None:
        resolved = Path(config_path)
        if not resolved.exists():
            raise FileNotFoundError(f"Config file not found: {config_path}")
    else:
        for candidate in _SEARCH_PATHS:
            if candidate.exists():
                resolved = candidate
                break

    raw: dict[str, Any] = {}
    if resolved is None:
        _logger.info("No config file found, using defaults")
    else:
        _logger.info("Loading config from %s", resolved)
        with open(resolved, encoding="utf-8") as f:
            raw = yaml.safe_load(f) or {}

    # Env wins over both snake_case and camelCase file keys
    overrides = _env_overrides(env)
    if overrides:
        for key in overrides:
            camel = "".join(
                part if i == 0 else part.capitalize()
                for i, part in enumerate(key.split("_"))
            )
            raw.pop(camel, None)
        raw.update(overrides)

    config = ClientConfig.model_validate(raw)
    return config, resolved.resolve() if resolved else None
