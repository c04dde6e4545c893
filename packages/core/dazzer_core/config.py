"""Persistent bootstrap settings schema and load/save helpers."""

from __future__ import annotations

import json
import math
import os
import platform
from dataclasses import asdict, dataclass, field
from pathlib import Path
from typing import Any


CONFIG_VERSION = 1

DEFAULT_ARTIFACT_BASE_URL = "https://storage.googleapis.com/dazzer-asts-prod/binaries"
DEFAULT_API_BASE_URL = "https://api.dazzer.io"
FALLBACK_VERSION = "0.1.0"
MAX_REDIRECTS = 5


@dataclass
class EndpointsConfig:
    artifact_base_url: str = DEFAULT_ARTIFACT_BASE_URL
    api_base_url: str = DEFAULT_API_BASE_URL


@dataclass
class InstallConfig:
    # None means "next to the installed dazzer_bootstrap package".
    install_root: str | None = None
    base_name: str = "dazzer"
    prefer_bundled: bool = True
    max_redirects: int = MAX_REDIRECTS
    download_timeout_s: int = 180
    version_timeout_s: int = 10
    fallback_version: str = FALLBACK_VERSION


@dataclass
class TelemetryConfig:
    enabled: bool = True
    timeout_s: float = 5.0


@dataclass
class AppConfig:
    config_version: int = CONFIG_VERSION
    endpoints: EndpointsConfig = field(default_factory=EndpointsConfig)
    install: InstallConfig = field(default_factory=InstallConfig)
    telemetry: TelemetryConfig = field(default_factory=TelemetryConfig)


def config_root() -> Path:
    system = platform.system()
    if system == "Windows":
        base = Path(os.environ.get("APPDATA", Path.home() / "AppData" / "Roaming"))
        return base / "Dazzer"
    if system == "Darwin":
        return Path.home() / "Library" / "Application Support" / "Dazzer"
    return Path.home() / ".config" / "dazzer"


def config_path() -> Path:
    override = os.environ.get("DAZZER_CONFIG", "").strip()
    if override:
        return Path(override).expanduser()
    return config_root() / "config.json"


def _merge(dataclass_type, raw: dict[str, Any]):
    defaults = dataclass_type()  # type: ignore[misc]
    if not isinstance(raw, dict):
        return defaults
    for k, v in raw.items():
        if hasattr(defaults, k):
            setattr(defaults, k, v)
    return defaults


def _as_int(value: Any, default: int) -> int:
    if isinstance(value, float) and not math.isfinite(value):
        return default
    try:
        return int(value)
    except (TypeError, ValueError):
        return default


def _as_float(value: Any, default: float) -> float:
    try:
        out = float(value)
    except (TypeError, ValueError):
        return default
    return out if math.isfinite(out) else default


def _as_bool(value: Any, default: bool) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, (int, float)):
        return bool(value)
    if isinstance(value, str):
        text = value.strip().lower()
        if text in ("1", "true", "yes", "on"):
            return True
        if text in ("0", "false", "no", "off"):
            return False
    return default


def _as_str(value: Any, default: str) -> str:
    return value if isinstance(value, str) and value.strip() else default


def _normalize_endpoints(cfg: AppConfig) -> None:
    cfg.endpoints.artifact_base_url = _as_str(cfg.endpoints.artifact_base_url, DEFAULT_ARTIFACT_BASE_URL).rstrip("/")
    cfg.endpoints.api_base_url = _as_str(cfg.endpoints.api_base_url, DEFAULT_API_BASE_URL).rstrip("/")


def _normalize_install(cfg: AppConfig) -> None:
    defaults = InstallConfig()
    cfg.install.max_redirects = max(0, min(20, _as_int(cfg.install.max_redirects, defaults.max_redirects)))
    cfg.install.download_timeout_s = max(1, _as_int(cfg.install.download_timeout_s, defaults.download_timeout_s))
    cfg.install.version_timeout_s = max(1, _as_int(cfg.install.version_timeout_s, defaults.version_timeout_s))
    cfg.install.prefer_bundled = _as_bool(cfg.install.prefer_bundled, defaults.prefer_bundled)
    if not isinstance(cfg.install.install_root, str) or not cfg.install.install_root.strip():
        cfg.install.install_root = None
    cfg.install.base_name = _as_str(cfg.install.base_name, defaults.base_name)
    cfg.install.fallback_version = _as_str(cfg.install.fallback_version, defaults.fallback_version)


def _normalize_telemetry(cfg: AppConfig) -> None:
    defaults = TelemetryConfig()
    cfg.telemetry.enabled = _as_bool(cfg.telemetry.enabled, defaults.enabled)
    cfg.telemetry.timeout_s = max(1.0, _as_float(cfg.telemetry.timeout_s, defaults.timeout_s))


def _apply_env(cfg: AppConfig) -> None:
    artifact_url = os.environ.get("DAZZER_ARTIFACT_BASE_URL", "").strip()
    if artifact_url:
        cfg.endpoints.artifact_base_url = artifact_url
    api_url = os.environ.get("DAZZER_API_BASE_URL", "").strip()
    if api_url:
        cfg.endpoints.api_base_url = api_url
    install_root = os.environ.get("DAZZER_INSTALL_ROOT", "").strip()
    if install_root:
        cfg.install.install_root = install_root
    if os.environ.get("DAZZER_NO_ANALYTICS", "").strip() == "1":
        cfg.telemetry.enabled = False


def load_config(path: Path | None = None, *, apply_env: bool = True) -> AppConfig:
    path = path or config_path()
    data: dict[str, Any] = {}
    if path.exists():
        try:
            raw = json.loads(path.read_text(encoding="utf-8"))
        except (OSError, ValueError):
            raw = {}
        if isinstance(raw, dict):
            data = raw

    cfg = AppConfig(
        config_version=_as_int(data.get("config_version"), CONFIG_VERSION),
        endpoints=_merge(EndpointsConfig, data.get("endpoints", {})),
        install=_merge(InstallConfig, data.get("install", {})),
        telemetry=_merge(TelemetryConfig, data.get("telemetry", {})),
    )

    if apply_env:
        _apply_env(cfg)
    _normalize_endpoints(cfg)
    _normalize_install(cfg)
    _normalize_telemetry(cfg)
    return cfg


def save_config(cfg: AppConfig, path: Path | None = None) -> Path:
    cfg.config_version = CONFIG_VERSION
    path = path or config_path()
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(asdict(cfg), indent=2, sort_keys=True), encoding="utf-8")
    return path
