"""Host configuration (YAML file + environment overrides)."""

from __future__ import annotations

import os
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, TypeVar

import yaml

from i18n_native_host.utils.log_setup import get_logger

logger = get_logger("config")

T = TypeVar("T")

CONFIG_ENV = "I18N_HOST_CONFIG"
DEFAULT_CONFIG_PATH = Path.home() / ".config" / "i18n-native-host" / "config.yaml"

DEFAULT_NAMESPACES = ["reviewed", "old"]
DEFAULT_INDENT = 4
# Chrome accepts extension -> host messages up to 64 MiB.
DEFAULT_MAX_MESSAGE_BYTES = 64 * 1024 * 1024


class ConfigError(RuntimeError):
    pass


@dataclass
class HostConfig:
    namespaces: List[str] = field(default_factory=lambda: list(DEFAULT_NAMESPACES))
    indent: int = DEFAULT_INDENT
    max_message_bytes: int = DEFAULT_MAX_MESSAGE_BYTES
    log_level: str = "info"
    log_file: Optional[str] = None
    source: Optional[str] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any], source: Optional[str] = None) -> "HostConfig":
        config = cls(source=source)
        if "namespaces" in data:
            config.namespaces = _normalize_namespaces(data.get("namespaces"))
            if not config.namespaces:
                raise ConfigError("namespaces must list at least one namespace")
        if "indent" in data:
            config.indent = _as_int(data.get("indent"), "indent", minimum=0)
        if "max_message_bytes" in data:
            config.max_message_bytes = _as_int(
                data.get("max_message_bytes"), "max_message_bytes", minimum=4
            )
        if data.get("log_level"):
            config.log_level = str(data.get("log_level")).strip().lower()
        if data.get("log_file"):
            config.log_file = str(data.get("log_file")).strip()
        return config


def _normalize_namespaces(value: Any) -> List[str]:
    if isinstance(value, str):
        items = value.split(",")
    elif isinstance(value, (list, tuple)):
        items = [str(item) for item in value if item is not None]
    else:
        raise ConfigError(f"namespaces must be a list, got {type(value).__name__}")
    result: List[str] = []
    for item in items:
        name = item.strip()
        if name.endswith(".json"):
            name = name[: -len(".json")]
        if not name:
            continue
        if "/" in name or "\\" in name or name in {".", ".."}:
            raise ConfigError(f"Invalid namespace name: {item!r}")
        if name not in result:
            result.append(name)
    return result


def _as_int(value: Any, name: str, minimum: Optional[int] = None) -> int:
    try:
        number = int(str(value).strip())
    except (TypeError, ValueError):
        raise ConfigError(f"{name} must be an integer, got {value!r}") from None
    if minimum is not None and number < minimum:
        raise ConfigError(f"{name} must be >= {minimum}, got {number}")
    return number


def _env_namespaces(raw: str) -> List[str]:
    names = _normalize_namespaces(raw)
    if not names:
        raise ConfigError("no namespace names given")
    return names


def _env_override(name: str, current: T, parse: Callable[[str], T]) -> T:
    """Parse ``$name`` with ``parse``; a bad value is logged and ``current`` kept."""
    raw = os.environ.get(name, "").strip()
    if not raw:
        return current
    try:
        return parse(raw)
    except ConfigError as exc:
        logger.warning("Ignoring %s=%r: %s (keeping %r)", name, raw, exc, current)
        return current


def resolve_config_path(explicit: Optional[str] = None) -> Optional[Path]:
    if explicit:
        return Path(explicit).expanduser()
    from_env = os.environ.get(CONFIG_ENV, "").strip()
    if from_env:
        return Path(from_env).expanduser()
    if DEFAULT_CONFIG_PATH.is_file():
        return DEFAULT_CONFIG_PATH
    return None


def load_config(path: Optional[str] = None) -> HostConfig:
    """Load the host config.

    An explicitly requested file (flag or env var) must exist; the default
    location is optional. Environment overrides are applied last.
    """
    config_path = resolve_config_path(path)
    if config_path is None:
        config = HostConfig()
    else:
        if not config_path.is_file():
            raise ConfigError(f"Config file not found: {config_path}")
        try:
            raw = yaml.safe_load(config_path.read_text(encoding="utf-8"))
        except (OSError, yaml.YAMLError) as exc:
            raise ConfigError(f"Failed to read config {config_path}: {exc}") from exc
        if raw is None:
            raw = {}
        if not isinstance(raw, dict):
            raise ConfigError(f"Config {config_path} must be a mapping")
        config = HostConfig.from_dict(raw, source=str(config_path))
    return apply_env_overrides(config)


def apply_env_overrides(config: HostConfig) -> HostConfig:
    log_level = os.environ.get("I18N_HOST_LOG_LEVEL", "").strip().lower()
    log_file = os.environ.get("I18N_HOST_LOG_FILE", "").strip()
    return replace(
        config,
        namespaces=_env_override("I18N_HOST_NAMESPACES", config.namespaces, _env_namespaces),
        indent=_env_override(
            "I18N_HOST_INDENT", config.indent, lambda raw: _as_int(raw, "indent", minimum=0)
        ),
        max_message_bytes=_env_override(
            "I18N_HOST_MAX_MESSAGE_BYTES",
            config.max_message_bytes,
            lambda raw: _as_int(raw, "max_message_bytes", minimum=4),
        ),
        log_level=log_level or config.log_level,
        log_file=log_file or config.log_file,
    )
