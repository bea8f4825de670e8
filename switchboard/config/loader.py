"""
Configuration loader for the Switchboard router.

Precedence, highest first:
    1. Explicit configuration (YAML file merged with an `overrides` dict)
    2. Environment variables
    3. Defaults declared on the pydantic models

Environment variables:
    DEFAULT_PROVIDER          Provider used when a request names none
    DEFAULT_MODEL             Model used when nothing else selects one
    ENABLE_COST_OPTIMIZATION  "true" enables task-type model substitution
    CHEAP_MODEL               Model for cheap-tier task types
    EXPENSIVE_MODEL           Model for expensive-tier task types
    DISABLE_FALLBACK          Literal "true" disables the fallback chain
    FALLBACK_PROVIDERS        Comma-separated fallback order
    STATE_SERVICE_URL         Base URL of the usage telemetry sink
    LLM_TELEMETRY_ENABLED     "false" disables usage reporting
    SWITCHBOARD_CONFIG        Path to a YAML config file
"""

from __future__ import annotations

import copy
import logging
import os
from pathlib import Path
from typing import Any, Mapping, Optional

import yaml
from pydantic import ValidationError

from switchboard.config.schema import RouterConfig
from switchboard.exceptions import RouterConfigurationError

logger = logging.getLogger(__name__)

CONFIG_PATH_ENV = "SWITCHBOARD_CONFIG"


def _deep_merge(base: dict[str, Any], override: Mapping[str, Any]) -> dict[str, Any]:
    """Recursively merge `override` into a copy of `base`."""
    merged = copy.deepcopy(base)
    for key, value in override.items():
        if isinstance(value, Mapping) and isinstance(merged.get(key), dict):
            merged[key] = _deep_merge(merged[key], value)
        else:
            merged[key] = copy.deepcopy(value)
    return merged


def config_from_env(environ: Optional[Mapping[str, str]] = None) -> dict[str, Any]:
    """Build the environment layer as a raw config dict."""
    env = os.environ if environ is None else environ
    raw: dict[str, Any] = {}

    if env.get("DEFAULT_PROVIDER"):
        raw["default_provider"] = env["DEFAULT_PROVIDER"]
    if env.get("DEFAULT_MODEL"):
        raw["default_model"] = env["DEFAULT_MODEL"]

    cost: dict[str, Any] = {}
    if env.get("ENABLE_COST_OPTIMIZATION"):
        cost["enabled"] = env["ENABLE_COST_OPTIMIZATION"].strip().lower() == "true"
    if env.get("CHEAP_MODEL"):
        cost["cheap_model"] = env["CHEAP_MODEL"]
    if env.get("EXPENSIVE_MODEL"):
        cost["expensive_model"] = env["EXPENSIVE_MODEL"]
    if cost:
        raw["cost_optimization"] = cost

    fallback: dict[str, Any] = {}
    # Only the exact string "true" disables fallback
    if env.get("DISABLE_FALLBACK") == "true":
        fallback["enabled"] = False
    if env.get("FALLBACK_PROVIDERS"):
        fallback["providers"] = [
            name.strip() for name in env["FALLBACK_PROVIDERS"].split(",") if name.strip()
        ]
    if fallback:
        raw["fallback"] = fallback

    telemetry: dict[str, Any] = {}
    if env.get("STATE_SERVICE_URL"):
        telemetry["state_service_url"] = env["STATE_SERVICE_URL"]
    if env.get("LLM_TELEMETRY_ENABLED"):
        telemetry["enabled"] = env["LLM_TELEMETRY_ENABLED"].strip().lower() not in ("false", "0", "no")
    if telemetry:
        raw["telemetry"] = telemetry

    return raw


def read_config_file(config_path: str | Path) -> dict[str, Any]:
    """Read a YAML config file into a dict."""
    config_path = Path(config_path)
    if not config_path.exists():
        raise RouterConfigurationError(
            f"Config not found: {config_path}",
            config_path=str(config_path),
        )

    with open(config_path, "r") as f:
        try:
            raw = yaml.safe_load(f)
        except yaml.YAMLError as e:
            raise RouterConfigurationError(
                f"Config file is not valid YAML: {config_path}\n{e}",
                config_path=str(config_path),
            ) from e

    if raw is None:
        return {}
    if not isinstance(raw, dict):
        raise RouterConfigurationError(
            f"Config file must contain a mapping: {config_path}",
            config_path=str(config_path),
        )
    return raw


def load_router_config(
    config_path: Optional[str | Path] = None,
    overrides: Optional[Mapping[str, Any]] = None,
    environ: Optional[Mapping[str, str]] = None,
) -> RouterConfig:
    """
    Build and validate the router configuration.

    Args:
        config_path: Optional YAML file. Defaults to $SWITCHBOARD_CONFIG if set.
        overrides: Explicit settings, merged over the YAML file.
        environ: Environment mapping (defaults to os.environ).

    Returns:
        Validated, immutable RouterConfig.

    Raises:
        RouterConfigurationError: If the file is missing/unreadable or the
            merged configuration fails validation.
    """
    env = os.environ if environ is None else environ
    raw = config_from_env(env)

    config_path = config_path or env.get(CONFIG_PATH_ENV) or None
    if config_path:
        raw = _deep_merge(raw, read_config_file(config_path))
    if overrides:
        raw = _deep_merge(raw, overrides)

    try:
        config = RouterConfig(**raw)
    except ValidationError as e:
        raise RouterConfigurationError(
            f"Invalid router configuration:\n{e}",
            config_path=str(config_path) if config_path else None,
            details={"errors": e.errors(include_url=False)},
        ) from e

    logger.debug(
        "router_config_loaded",
        extra={
            "default_provider": config.default_provider,
            "cost_optimization": config.cost_optimization.enabled,
            "fallback_enabled": config.fallback.enabled,
            "fallback_providers": list(config.fallback.providers),
            "config_path": str(config_path) if config_path else None,
        },
    )
    return config
