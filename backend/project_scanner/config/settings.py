"""Project scanning settings: defaults, JSON file loading and env overrides."""
from __future__ import annotations

import json
import logging
import os
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional

from dotenv import find_dotenv, load_dotenv
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from ..scanner.errors import SettingsError
from ..scanner.paths import normalize_exclude_entries
from ..scanner.walker import DEFAULT_EXCLUDE_PATHS, DEFAULT_MAX_DEPTH

logger = logging.getLogger(__name__)

ENV_ENABLED = "PROJECT_SCAN_ENABLED"
ENV_SCAN_PATHS = "PROJECT_SCAN_PATHS"
ENV_EXCLUDE = "PROJECT_SCAN_EXCLUDE"
ENV_MAX_DEPTH = "PROJECT_SCAN_MAX_DEPTH"

_TRUE_VALUES = {"1", "true", "yes", "on"}
_FALSE_VALUES = {"0", "false", "no", "off"}


class ScanSettings(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    enabled: bool = True
    scan_paths: List[str] = Field(default_factory=list, alias="scanPaths")
    exclude_paths: List[str] = Field(
        default_factory=lambda: list(DEFAULT_EXCLUDE_PATHS), alias="excludePaths"
    )
    max_depth: int = Field(DEFAULT_MAX_DEPTH, ge=0, alias="maxDepth")

    @field_validator("scan_paths")
    @classmethod
    def _strip_scan_paths(cls, value: List[str]) -> List[str]:
        cleaned: List[str] = []
        for item in value:
            item = item.strip()
            if item and item not in cleaned:
                cleaned.append(item)
        return cleaned

    @field_validator("exclude_paths")
    @classmethod
    def _normalize_excludes(cls, value: List[str]) -> List[str]:
        return normalize_exclude_entries(value)

    def to_dict(self) -> Dict[str, Any]:
        return self.model_dump(by_alias=True)


def settings_from_mapping(data: Mapping[str, Any]) -> ScanSettings:
    """
    Build settings from a decoded document. Accepts the bare settings object
    or the engine-style ``{"settings": {"projectScanning": {...}}}`` wrapper.
    """
    section: Any = data
    settings_block = data.get("settings")
    if isinstance(settings_block, Mapping) and "projectScanning" in settings_block:
        section = settings_block["projectScanning"]
    elif "projectScanning" in data:
        section = data["projectScanning"]

    if not isinstance(section, Mapping):
        raise SettingsError("projectScanning settings must be an object")
    try:
        return ScanSettings.model_validate(dict(section))
    except ValidationError as exc:
        raise SettingsError(f"Invalid scan settings: {exc}") from exc


def load_scan_settings(
    path: Optional[Path] = None,
    *,
    environ: Optional[Mapping[str, str]] = None,
    use_dotenv: bool = True,
) -> ScanSettings:
    """
    Load settings from an optional JSON file, then apply environment overrides.

    ``.env`` files are loaded first (without overriding real variables) unless
    ``use_dotenv`` is False or an explicit ``environ`` mapping is given.
    """
    if environ is None:
        if use_dotenv:
            load_dotenv(find_dotenv(usecwd=True), override=False)
        environ = os.environ

    if path is not None:
        config_path = Path(path).expanduser()
        try:
            data = json.loads(config_path.read_text(encoding="utf-8"))
        except FileNotFoundError as exc:
            raise SettingsError(f"Settings file not found: {config_path}") from exc
        except (OSError, json.JSONDecodeError, UnicodeDecodeError) as exc:
            raise SettingsError(f"Unable to read settings file {config_path}: {exc}") from exc
        if not isinstance(data, Mapping):
            raise SettingsError(f"Settings file {config_path} must contain a JSON object")
        settings = settings_from_mapping(data)
    else:
        settings = ScanSettings()

    return apply_env_overrides(settings, environ)


def apply_env_overrides(settings: ScanSettings, environ: Mapping[str, str]) -> ScanSettings:
    updates: Dict[str, Any] = {}

    enabled = environ.get(ENV_ENABLED)
    if enabled is not None and enabled.strip():
        token = enabled.strip().lower()
        if token in _TRUE_VALUES:
            updates["enabled"] = True
        elif token in _FALSE_VALUES:
            updates["enabled"] = False
        else:
            raise SettingsError(f"{ENV_ENABLED} must be a boolean, got '{enabled}'")

    scan_paths = environ.get(ENV_SCAN_PATHS)
    if scan_paths:
        updates["scan_paths"] = [item for item in scan_paths.split(os.pathsep) if item.strip()]

    exclude = environ.get(ENV_EXCLUDE)
    if exclude:
        updates["exclude_paths"] = [item for item in exclude.split(",") if item.strip()]

    max_depth = environ.get(ENV_MAX_DEPTH)
    if max_depth is not None and max_depth.strip():
        try:
            updates["max_depth"] = int(max_depth)
        except ValueError as exc:
            raise SettingsError(f"{ENV_MAX_DEPTH} must be an integer, got '{max_depth}'") from exc

    if not updates:
        return settings

    logger.debug(f"Applying environment overrides: {sorted(updates)}")
    merged = settings.model_dump()
    merged.update(updates)
    try:
        return ScanSettings.model_validate(merged)
    except ValidationError as exc:
        raise SettingsError(f"Invalid scan settings from environment: {exc}") from exc
