"""Fire-and-forget install analytics.

Reporting runs on a daemon thread whose result and errors are discarded.
``TelemetryReporter.report`` returns as soon as the thread is started and
never raises. Callers that are about to exit may ``flush`` with a short
bound; a post still running after that is abandoned with the interpreter.
"""

from __future__ import annotations

import json
import logging
import platform
import threading
import time
from dataclasses import asdict, dataclass
from importlib import metadata
from typing import Callable

from .net import build_opener, make_request
from .resolver import PlatformId

logger = logging.getLogger("dazzer.telemetry")

ANALYTICS_PATH = "/analytics/install"
DEFAULT_TIMEOUT_S = 5.0
FLUSH_TIMEOUT_S = 2.0


def _pip_version() -> str:
    try:
        return metadata.version("pip")
    except Exception:
        return "unknown"


@dataclass(frozen=True)
class InstallEvent:
    os: str
    arch: str
    version: str
    method: str = "pip"
    client_runtime_version: str = ""
    package_manager_version: str = "unknown"

    @classmethod
    def build(cls, target: PlatformId, version: str, method: str = "pip") -> "InstallEvent":
        return cls(
            os=target.os.value,
            arch=target.arch.value,
            version=version,
            method=method,
            client_runtime_version=platform.python_version(),
            package_manager_version=_pip_version(),
        )


Sender = Callable[[str, InstallEvent, float], None]


def post_event(endpoint: str, event: InstallEvent, timeout_s: float) -> None:
    body = json.dumps(asdict(event)).encode("utf-8")
    request = make_request(endpoint, method="POST", data=body, content_type="application/json")
    with build_opener().open(request, timeout=timeout_s) as response:
        response.read()


class TelemetryReporter:
    def __init__(
        self,
        endpoint: str,
        *,
        enabled: bool = True,
        timeout_s: float = DEFAULT_TIMEOUT_S,
        sender: Sender | None = None,
    ) -> None:
        self.endpoint = endpoint
        self.enabled = enabled
        self.timeout_s = timeout_s
        self._sender = sender or post_event
        self._pending: list[threading.Thread] = []

    @classmethod
    def from_config(cls, cfg) -> "TelemetryReporter":
        return cls(
            cfg.endpoints.api_base_url.rstrip("/") + ANALYTICS_PATH,
            enabled=cfg.telemetry.enabled,
            timeout_s=cfg.telemetry.timeout_s,
        )

    def report(self, event: InstallEvent) -> threading.Thread | None:
        if not self.enabled:
            logger.debug("telemetry disabled", extra={"event": "telemetry_skipped"})
            return None
        try:
            thread = threading.Thread(
                target=self._send_quietly,
                args=(event,),
                name="dazzer-telemetry",
                daemon=True,
            )
            thread.start()
        except Exception:
            logger.debug("telemetry dispatch failed", exc_info=True, extra={"event": "telemetry_failed"})
            return None
        self._pending.append(thread)
        return thread

    def flush(self, timeout_s: float = FLUSH_TIMEOUT_S) -> bool:
        """Wait up to ``timeout_s`` in total for started posts. True when none is left running."""
        deadline = time.monotonic() + timeout_s
        for thread in self._pending:
            thread.join(max(0.0, deadline - time.monotonic()))
        self._pending = [t for t in self._pending if t.is_alive()]
        if self._pending:
            logger.debug("telemetry abandoned at exit", extra={"event": "telemetry_abandoned"})
        return not self._pending

    def _send_quietly(self, event: InstallEvent) -> None:
        try:
            self._sender(self.endpoint, event, self.timeout_s)
        except Exception:
            logger.debug("telemetry post failed", exc_info=True, extra={"event": "telemetry_failed"})
        else:
            logger.debug("telemetry sent", extra={"event": "telemetry_sent"})
