from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Mapping

import yaml
from dotenv import load_dotenv

load_dotenv()

CONFIG_ENV_KEY = "AICC_CONFIG"
DEFAULT_ENCODING = "utf8-lossy"


class ConfigError(ValueError):
    """Raised when the YAML configuration is invalid."""


def _parse_bool(value: Any, default: bool) -> bool:
    if value is None:
        return default
    if isinstance(value, bool):
        return value
    return str(value).strip().lower() in {"1", "true", "yes", "on"}


@dataclass
class Settings:
    strict_root: bool = False
    encoding: str = DEFAULT_ENCODING
    log_level: str = "INFO"
    # table -> canonical column -> extra raw header spellings
    column_aliases: Dict[str, Dict[str, List[str]]] = field(default_factory=dict)


def _parse_column_aliases(raw: Any, path: Path) -> Dict[str, Dict[str, List[str]]]:
    if raw is None:
        return {}
    if not isinstance(raw, Mapping):
        raise ConfigError(f"`column_aliases` in {path} must map table names to columns")

    aliases: Dict[str, Dict[str, List[str]]] = {}
    for table, columns in raw.items():
        if not isinstance(columns, Mapping):
            raise ConfigError(f"`column_aliases.{table}` in {path} must map columns to header names")
        parsed: Dict[str, List[str]] = {}
        for canon, headers in columns.items():
            if isinstance(headers, str):
                headers = [headers]
            if not isinstance(headers, list):
                raise ConfigError(f"`column_aliases.{table}.{canon}` in {path} must be a string or list")
            parsed[str(canon)] = [str(h) for h in headers]
        aliases[str(table)] = parsed
    return aliases


def load_config_file(path: Path) -> Dict[str, Any]:
    if not path.exists():
        raise ConfigError(f"Configuration file not found: {path}")
    try:
        with path.open("r", encoding="utf-8") as handle:
            data = yaml.safe_load(handle) or {}
    except yaml.YAMLError as exc:
        raise ConfigError(f"Invalid YAML in {path}: {exc}") from exc
    if not isinstance(data, dict):
        raise ConfigError(f"Configuration in {path} must be a mapping")
    return data


def load_settings(path: Path | None = None) -> Settings:
    """
    Build Settings from an optional YAML file, then environment overrides.

    The file path comes from ``path`` or the AICC_CONFIG variable. Environment
    variables (AICC_STRICT_ROOT, AICC_ENCODING, AICC_LOG_LEVEL) win over the file.
    """

    if path is None and os.getenv(CONFIG_ENV_KEY):
        path = Path(os.environ[CONFIG_ENV_KEY])
    data = load_config_file(path) if path is not None else {}

    strict_root = _parse_bool(data.get("strict_root"), False)
    encoding = str(data.get("encoding") or DEFAULT_ENCODING)
    log_level = str(data.get("log_level") or "INFO")
    aliases = _parse_column_aliases(data.get("column_aliases"), path) if path is not None else {}

    return Settings(
        strict_root=_parse_bool(os.getenv("AICC_STRICT_ROOT"), strict_root),
        encoding=os.getenv("AICC_ENCODING", encoding),
        log_level=os.getenv("AICC_LOG_LEVEL", log_level).upper(),
        column_aliases=aliases,
    )
