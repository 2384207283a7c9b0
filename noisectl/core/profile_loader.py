"""Loading and validation of YAML command tables for device profiles."""

from __future__ import annotations

import json
import logging
import os
import re
from dataclasses import dataclass
from importlib import resources
from importlib.resources.abc import Traversable
from pathlib import Path
from types import MappingProxyType
from typing import Any

import yaml
from jsonschema import ValidationError, validators

from noisectl.core.errors import ProfileLoadError, ProfileValidationError
from noisectl.core.model import CommandTable, DeviceProfile, MatchRules, Mode

_HEX_RE = re.compile(r"^[0-9a-f]+$")
_MAX_FRAME_BYTES = 64
LOGGER = logging.getLogger(__name__)


class UniqueKeyLoader(yaml.SafeLoader):
    """YAML loader that rejects duplicate mapping keys."""


# Drop YAML 1.1 booleans so the "off" mode token stays a string.
UniqueKeyLoader.yaml_implicit_resolvers = {
    key: list(value) for key, value in yaml.SafeLoader.yaml_implicit_resolvers.items()
}

for first_char, mappings in list(UniqueKeyLoader.yaml_implicit_resolvers.items()):
    UniqueKeyLoader.yaml_implicit_resolvers[first_char] = [
        (tag, regexp)
        for tag, regexp in mappings
        if tag != "tag:yaml.org,2002:bool"
    ]


def _construct_mapping(loader: UniqueKeyLoader, node: yaml.Node, deep: bool = False) -> dict[str, Any]:
    mapping: dict[str, Any] = {}
    for key_node, value_node in node.value:
        key = loader.construct_object(key_node, deep=deep)
        if key in mapping:
            raise ProfileValidationError(f"Duplicate key '{key}' in YAML document")
        mapping[key] = loader.construct_object(value_node, deep=deep)
    return mapping


UniqueKeyLoader.add_constructor(
    yaml.resolver.BaseResolver.DEFAULT_MAPPING_TAG,
    _construct_mapping,
)


@dataclass(frozen=True)
class LoadedProfiles:
    tables: MappingProxyType[DeviceProfile, CommandTable]
    warnings: tuple[str, ...]


def load_schema_validator(name: str) -> Any:
    schema_text = resources.files("noisectl.schemas").joinpath(name).read_text(
        encoding="utf-8"
    )
    schema = json.loads(schema_text)
    validator_cls = validators.validator_for(schema)
    validator_cls.check_schema(schema)
    return validator_cls(schema)


def _profile_dirs() -> tuple[Path, Path]:
    xdg_config = Path(os.environ.get("XDG_CONFIG_HOME", Path.home() / ".config"))
    xdg_data = Path(os.environ.get("XDG_DATA_HOME", Path.home() / ".local/share"))
    return xdg_config / "noisectl/profiles", xdg_data / "noisectl/profiles"


def _read_yaml(path: Path | Traversable) -> dict[str, Any]:
    try:
        content = path.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as exc:
        raise ProfileLoadError(f"Could not read profile file {path}: {exc}") from exc

    try:
        loaded = yaml.load(content, Loader=UniqueKeyLoader)
    except yaml.YAMLError as exc:
        raise ProfileValidationError(f"Invalid YAML in {path}: {exc}") from exc

    if not isinstance(loaded, dict):
        raise ProfileValidationError(f"Profile file {path} must contain a mapping at root")
    return loaded


def normalize_hex(value: str, *, context: str) -> bytes:
    normalized = value.strip().lower().replace(" ", "")
    if len(normalized) == 0:
        raise ProfileValidationError(f"{context} must not be empty")
    if len(normalized) % 2 != 0:
        raise ProfileValidationError(f"{context} must have even-length hex")
    if not _HEX_RE.match(normalized):
        raise ProfileValidationError(f"{context} must contain only [0-9a-f]")
    frame = bytes.fromhex(normalized)
    if len(frame) > _MAX_FRAME_BYTES:
        raise ProfileValidationError(
            f"{context} exceeds max frame size {_MAX_FRAME_BYTES} bytes"
        )
    return frame


def normalize_mac_prefix(prefix: str) -> str:
    return prefix.strip().upper()


def _build_table(doc: dict[str, Any], source: Path | Traversable) -> CommandTable:
    # Unquoted numeric tokens (10:) come back as ints.
    if isinstance(doc.get("frames"), dict):
        doc["frames"] = {str(key): value for key, value in doc["frames"].items()}

    validator = load_schema_validator("profile.schema.json")
    try:
        validator.validate(doc)
    except ValidationError as exc:
        path = ".".join(str(p) for p in exc.path)
        where = f" ({path})" if path else ""
        raise ProfileValidationError(f"Schema validation failed for {source}{where}: {exc.message}") from exc

    profile = DeviceProfile.lookup(doc["code"])
    if profile is None:
        known = ", ".join(p.code for p in DeviceProfile)
        raise ProfileValidationError(
            f"Unknown profile code '{doc['code']}' in {source}. Known: {known}"
        )

    frames: dict[Mode, bytes] = {}
    for token, hex_frame in doc["frames"].items():
        frames[Mode(token)] = normalize_hex(hex_frame, context=f"{profile.code}.frames.{token}")

    match = doc.get("match", {})
    return CommandTable(
        profile=profile,
        name=doc["name"],
        match=MatchRules(
            name_contains=tuple(match.get("name_contains", [])),
            mac_prefix=tuple(normalize_mac_prefix(p) for p in match.get("mac_prefix", [])),
        ),
        frames=MappingProxyType(frames),
    )


def _iter_packaged_profile_paths() -> list[Traversable]:
    profile_root = resources.files("noisectl.profiles")
    return [item for item in profile_root.iterdir() if item.name.endswith((".yml", ".yaml"))]


def _iter_user_profile_paths() -> list[Path]:
    paths: list[Path] = []
    for directory in _profile_dirs():
        if not directory.exists() or not directory.is_dir():
            continue
        paths.extend(sorted(p for p in directory.iterdir() if p.suffix in {".yml", ".yaml"}))
    return paths


def load_profiles() -> LoadedProfiles:
    tables: dict[DeviceProfile, CommandTable] = {}
    warnings: list[str] = []

    for path in sorted(_iter_packaged_profile_paths(), key=lambda p: p.name):
        table = _build_table(_read_yaml(path), path)
        tables[table.profile] = table

    for path in _iter_user_profile_paths():
        try:
            table = _build_table(_read_yaml(path), path)
        except (ProfileLoadError, ProfileValidationError) as exc:
            # Packaged tables stay in effect when a user file is broken.
            warning = f"Ignoring user profile {path}: {exc}"
            LOGGER.warning(warning)
            warnings.append(warning)
            continue
        if table.profile in tables:
            warning = f"User profile '{table.profile.code}' overrides packaged command table"
            LOGGER.warning(warning)
            warnings.append(warning)
        tables[table.profile] = table

    return LoadedProfiles(tables=MappingProxyType(tables), warnings=tuple(warnings))
