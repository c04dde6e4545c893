"""Run the installed dazzer binary with passthrough args, env and exit status."""

from __future__ import annotations

import logging
import os
import signal
import subprocess
import sys
import threading
from contextlib import contextmanager
from dataclasses import dataclass
from pathlib import Path
from typing import Iterator, Mapping, Sequence

from dazzer_core.config import load_config
from dazzer_core.logging_setup import configure_logging

from .errors import BinaryMissing, BootstrapError, LaunchError, PermissionDenied
from .service import installed_binary_path

logger = logging.getLogger("dazzer.launcher")

# Relayed to the child while the launcher waits on it.
FORWARDED_SIGNALS = tuple(getattr(signal, name) for name in ("SIGTERM", "SIGHUP") if hasattr(signal, name))


@dataclass(frozen=True)
class LaunchResult:
    returncode: int
    signal: int | None = None


@contextmanager
def _forward_signals(child: subprocess.Popen) -> Iterator[None]:
    if os.name == "nt" or threading.current_thread() is not threading.main_thread():
        yield
        return

    def relay(signum, _frame) -> None:
        child.send_signal(signum)

    previous = {signum: signal.signal(signum, relay) for signum in FORWARDED_SIGNALS}
    try:
        yield
    finally:
        for signum, handler in previous.items():
            signal.signal(signum, signal.SIG_DFL if handler is None else handler)


def _wait(child: subprocess.Popen) -> int:
    while True:
        try:
            return child.wait()
        except KeyboardInterrupt:
            # The child shares our process group and got the same SIGINT.
            continue


def launch(binary: Path, argv: Sequence[str], env: Mapping[str, str] | None = None) -> LaunchResult:
    if not binary.is_file():
        raise BinaryMissing(f"Dazzer CLI binary not found: {binary}")

    cmd = [str(binary), *argv]
    try:
        child = subprocess.Popen(cmd, env=dict(os.environ if env is None else env), shell=False)
    except FileNotFoundError as exc:
        raise BinaryMissing(f"Failed to execute Dazzer CLI binary: {binary}") from exc
    except PermissionError as exc:
        raise PermissionDenied(str(binary)) from exc
    except OSError as exc:
        raise LaunchError(f"Failed to run Dazzer CLI: {exc}") from exc

    with _forward_signals(child):
        returncode = _wait(child)
    if returncode < 0:
        return LaunchResult(returncode=returncode, signal=-returncode)
    return LaunchResult(returncode=returncode)


def propagate(result: LaunchResult) -> int:
    """Turn a child's outcome into ours.

    A normal exit code is returned for the caller to exit with. A child killed
    by a signal is mirrored by killing this process with the same signal;
    ``128 + signum`` is returned only if that signal did not end us.
    """
    if result.signal is None:
        return result.returncode

    signum = result.signal
    try:
        signal.signal(signum, signal.SIG_DFL)
    except (OSError, ValueError) as exc:
        logger.debug("cannot reset handler for signal %s: %s", signum, exc)
    os.kill(os.getpid(), signum)
    return 128 + signum


def _print_failure(exc: BootstrapError) -> None:
    print(str(exc), file=sys.stderr)
    for line in exc.remediation:
        print(line, file=sys.stderr)


def run_main(argv: Sequence[str] | None = None) -> int:
    args = sys.argv[1:] if argv is None else list(argv)
    configure_logging(console=False)
    binary = installed_binary_path(load_config())

    try:
        result = launch(binary, args)
    except BootstrapError as exc:
        logger.error("launch failed: %s", exc, extra={"event": "launch_failed", "path": str(binary)})
        _print_failure(exc)
        return 1
    return propagate(result)


def main() -> None:
    raise SystemExit(run_main())


if __name__ == "__main__":
    main()
