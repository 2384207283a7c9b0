"""User configuration loaded from an optional YAML file."""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml
from jsonschema import ValidationError

from noisectl.core.errors import ConfigError
from noisectl.core.profile_loader import load_schema_validator, normalize_mac_prefix

LOGGER = logging.getLogger(__name__)

CONFIG_ENV_VAR = "NOISECTL_CONFIG"
DEFAULT_VENDOR_PREFIXES = ("C8:7B:23",)


def _config_dir() -> Path:
    return Path(os.environ.get("XDG_CONFIG_HOME", Path.home() / ".config")) / "noisectl"


def default_config_path() -> Path:
    override = os.environ.get(CONFIG_ENV_VAR)
    if override:
        return Path(override)
    return _config_dir() / "config.yaml"


def default_registry_path() -> Path:
    return _config_dir() / "devices.tsv"


@dataclass(frozen=True)
class Settings:
    repeat_count: int = 3
    inter_write_delay_s: float = 0.333
    timeout_s: float = 10.0
    rfcomm_channel: int | None = None
    registry_path: Path = field(default_factory=default_registry_path)
    vendor_prefixes: tuple[str, ...] = DEFAULT_VENDOR_PREFIXES
    parallel_dispatch: bool = False
    coalesce_requests: bool = False


def load_settings(path: Path | None = None) -> Settings:
    config_path = path or default_config_path()
    if not config_path.exists():
        LOGGER.debug("No config file at %s, using defaults", config_path)
        return Settings()

    try:
        content = config_path.read_text(encoding="utf-8")
    except OSError as exc:
        raise ConfigError(f"Could not read config file {config_path}: {exc}") from exc

    try:
        doc = yaml.safe_load(content)
    except yaml.YAMLError as exc:
        raise ConfigError(f"Invalid YAML in {config_path}: {exc}") from exc

    if doc is None:
        return Settings()
    if not isinstance(doc, dict):
        raise ConfigError(f"Config file {config_path} must contain a mapping at root")

    validator = load_schema_validator("config.schema.json")
    try:
        validator.validate(doc)
    except ValidationError as exc:
        where = ".".join(str(p) for p in exc.path)
        where = f" ({where})" if where else ""
        raise ConfigError(f"Invalid config {config_path}{where}: {exc.message}") from exc

    return _settings_from_doc(doc)


def _settings_from_doc(doc: dict[str, Any]) -> Settings:
    defaults = Settings()
    registry_path = doc.get("registry_path")
    return Settings(
        repeat_count=int(doc.get("repeat_count", defaults.repeat_count)),
        inter_write_delay_s=(
            doc["inter_write_delay_ms"] / 1000.0
            if "inter_write_delay_ms" in doc
            else defaults.inter_write_delay_s
        ),
        timeout_s=float(doc.get("timeout_s", defaults.timeout_s)),
        rfcomm_channel=doc.get("rfcomm_channel"),
        registry_path=Path(registry_path).expanduser() if registry_path else defaults.registry_path,
        vendor_prefixes=tuple(
            normalize_mac_prefix(p) for p in doc.get("vendor_prefixes", defaults.vendor_prefixes)
        ),
        parallel_dispatch=bool(doc.get("parallel_dispatch", defaults.parallel_dispatch)),
        coalesce_requests=bool(doc.get("coalesce_requests", defaults.coalesce_requests)),
    )
