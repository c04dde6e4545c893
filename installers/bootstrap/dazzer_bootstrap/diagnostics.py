"""Doctor payload describing the host, configuration and installed binary."""

from __future__ import annotations

import os
import platform
import re
import sys
from dataclasses import asdict, is_dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

from dazzer_core.config import AppConfig, config_path
from dazzer_core.logging_setup import log_dir

from .errors import BootstrapError
from .resolver import binary_name, locate_artifact, require_published, resolve_platform
from .service import bin_dir, installed_binary_path


_SECRET_RE = re.compile(r"(token|secret|password|apikey|api_key|auth)", re.IGNORECASE)


def _jsonable(value: Any) -> Any:
    if is_dataclass(value):
        return asdict(value)
    if isinstance(value, Path):
        return str(value)
    return value


def redact(value: Any) -> Any:
    if isinstance(value, dict):
        out: dict[str, Any] = {}
        for k, v in value.items():
            if _SECRET_RE.search(k):
                out[k] = "***REDACTED***"
            else:
                out[k] = redact(v)
        return out
    if isinstance(value, list):
        return [redact(v) for v in value]
    return value


def _platform_section(cfg: AppConfig) -> dict[str, Any]:
    system, machine = platform.system(), platform.machine()
    section: dict[str, Any] = {"system": system, "machine": machine}
    try:
        target = require_published(resolve_platform(system, machine))
    except BootstrapError as exc:
        section["supported"] = False
        section["error"] = str(exc)
        return section

    artifact = locate_artifact(target, "unknown", cfg.endpoints.artifact_base_url, cfg.install.base_name)
    section.update(
        {
            "supported": True,
            "target": str(target),
            "bundled_artifact": artifact.local_file_name,
            "bundled_present": (bin_dir(cfg) / artifact.local_file_name).is_file(),
            "remote_url": artifact.remote_url,
            "binary_name": binary_name(target, cfg.install.base_name),
        }
    )
    return section


def build_doctor_payload(cfg: AppConfig) -> dict[str, Any]:
    binary = installed_binary_path(cfg)
    env = {k: v for k, v in os.environ.items() if k.startswith("DAZZER_")}
    try:
        logs: str | None = str(log_dir())
    except OSError:
        logs = None

    return {
        "ts_utc": datetime.now(timezone.utc).isoformat(),
        "python": sys.version.split()[0],
        "platform": _platform_section(cfg),
        "binary": {
            "path": str(binary),
            "exists": binary.is_file(),
            "executable": binary.is_file() and (os.name == "nt" or os.access(binary, os.X_OK)),
        },
        "config_path": str(config_path()),
        "config": redact(_jsonable(cfg)),
        "env": redact(env),
        "log_dir": logs,
    }
