"""Shared install service used by the CLI frontends and the launcher."""

from __future__ import annotations

import http.client
import logging
import os
import platform
import re
import shutil
import subprocess
import sys
import tempfile
import urllib.error
import urllib.parse
import urllib.request
from contextlib import contextmanager
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Iterator

from dazzer_core.config import FALLBACK_VERSION, MAX_REDIRECTS, AppConfig

from .errors import DownloadFailed, InstallError, NetworkError, RedirectLoop, WriteError
from .net import build_opener, make_request
from .resolver import (
    ArtifactReference,
    OsName,
    PlatformId,
    binary_name,
    detect_platform,
    locate_artifact,
    require_published,
    resolve_platform,
)
from .telemetry import InstallEvent, TelemetryReporter

logger = logging.getLogger("dazzer.service")

ProgressCallback = Callable[[str], None]

REDIRECT_STATUSES = frozenset({301, 302, 303, 307, 308})
CHUNK_SIZE = 1024 * 1024
_VERSION_RE = re.compile(r"^\d+\.\d+\.\d+")
_NETWORK_ERRORS = (urllib.error.URLError, OSError, http.client.HTTPException)


def _remove_partial(path: Path) -> None:
    try:
        path.unlink()
    except FileNotFoundError:
        pass
    except OSError:
        logger.warning("could not remove partial file", extra={"event": "cleanup_failed", "path": str(path)})


def _open(opener: urllib.request.OpenerDirector, url: str, timeout: float):
    try:
        return opener.open(make_request(url), timeout=timeout)
    except urllib.error.HTTPError as exc:
        # Error statuses (and, with redirects disabled, 3xx) still carry headers.
        return exc
    except _NETWORK_ERRORS as exc:
        reason = getattr(exc, "reason", None) or exc
        raise NetworkError(f"Network error while downloading {url}: {reason}") from exc


def _stream_to_file(response, dest: Path, url: str) -> int:
    expected = response.headers.get("Content-Length")
    written = 0
    try:
        with dest.open("wb") as fh:
            while True:
                try:
                    chunk = response.read(CHUNK_SIZE)
                except _NETWORK_ERRORS as exc:
                    raise NetworkError(f"Connection lost while downloading {url}: {exc}") from exc
                if not chunk:
                    break
                fh.write(chunk)
                written += len(chunk)
            fh.flush()
            os.fsync(fh.fileno())
    except OSError as exc:
        raise WriteError(f"Failed to write {dest}: {exc}") from exc

    if expected is not None and expected.isdigit() and int(expected) != written:
        raise NetworkError(f"Incomplete download from {url}: got {written} of {expected} bytes")
    return written


def fetch_artifact(
    url: str,
    dest: Path,
    *,
    max_redirects: int = MAX_REDIRECTS,
    timeout: float = 180,
    opener: urllib.request.OpenerDirector | None = None,
) -> Path:
    """Download ``url`` into ``dest``, following at most ``max_redirects`` hops.

    ``dest`` holds the complete payload on return. On any failure it is
    removed before the error propagates.
    """
    opener = opener or build_opener(follow_redirects=False)
    current = url
    hops = 0
    try:
        while True:
            scheme = urllib.parse.urlsplit(current).scheme.lower()
            if scheme not in ("http", "https"):
                raise NetworkError(f"Unsupported URL scheme for download: {current}")

            logger.info("downloading", extra={"event": "download_request", "url": current})
            response = _open(opener, current, timeout)
            with response:
                status = response.getcode()
                if status in REDIRECT_STATUSES:
                    _remove_partial(dest)
                    location = response.headers.get("Location")
                    if not location:
                        raise DownloadFailed(status, current)
                    hops += 1
                    if hops > max_redirects:
                        raise RedirectLoop(url, hops)
                    current = urllib.parse.urljoin(current, location)
                    continue

                if status != 200:
                    raise DownloadFailed(status, current)

                size = _stream_to_file(response, dest, current)
                logger.info(
                    "download complete",
                    extra={"event": "download_complete", "url": current, "path": str(dest), "status": status},
                )
                logger.debug("downloaded %d bytes after %d redirect(s)", size, hops)
                return dest
    except Exception:
        _remove_partial(dest)
        raise


@contextmanager
def staged_download(directory: Path, suffix: str = ".download") -> Iterator[Path]:
    """Yield a fresh temp path inside ``directory``; it is removed on exit either way."""
    try:
        directory.mkdir(parents=True, exist_ok=True)
        fd, name = tempfile.mkstemp(prefix=".dazzer-", suffix=suffix, dir=directory)
        os.close(fd)
    except OSError as exc:
        raise WriteError(f"Cannot create temporary file in {directory}: {exc}") from exc

    path = Path(name)
    try:
        yield path
    finally:
        _remove_partial(path)


@dataclass(frozen=True)
class InstallTarget:
    final_path: Path
    temp_path: Path
    executable_bit: bool


def install_artifact(source: Path, target: Path, executable: bool | None = None) -> InstallTarget:
    """Replace ``target`` with a copy of ``source``.

    The copy is staged next to the target, made executable (mode 0755) unless
    installing for Windows, and renamed over the removed previous artifact.
    Re-running with the same inputs yields the same end state.
    """
    if executable is None:
        executable = os.name != "nt"
    staged = target.with_name(f".{target.name}.partial")
    plan = InstallTarget(final_path=target, temp_path=staged, executable_bit=executable)

    try:
        target.parent.mkdir(parents=True, exist_ok=True)
        if source.resolve() != target.resolve():
            shutil.copyfile(source, staged)
            if executable:
                os.chmod(staged, 0o755)
            if target.exists() or target.is_symlink():
                target.unlink()
            os.replace(staged, target)
        elif not target.is_file():
            raise FileNotFoundError(f"No such file: {source}")
        if executable:
            os.chmod(target, 0o755)
    except OSError as exc:
        raise InstallError(f"Failed to install {source.name} to {target}: {exc}") from exc
    finally:
        _remove_partial(staged)

    logger.info("artifact installed", extra={"event": "artifact_installed", "path": str(target)})
    return plan


def resolve_version(
    url: str,
    *,
    fallback: str = FALLBACK_VERSION,
    timeout: float = 10,
    opener: urllib.request.OpenerDirector | None = None,
) -> str:
    """Return the advertised current version, or ``fallback`` on any failure."""
    opener = opener or build_opener()
    try:
        with opener.open(make_request(url, accept="text/plain"), timeout=timeout) as response:
            body = response.read()
    except (*_NETWORK_ERRORS, ValueError) as exc:
        logger.warning(
            "failed to fetch version, using default: %s",
            exc,
            extra={"event": "version_fallback", "url": url},
        )
        return fallback

    text = body.decode("utf-8", errors="replace").strip()
    if not _VERSION_RE.match(text):
        logger.warning("invalid version from API, using default", extra={"event": "version_fallback", "url": url})
        return fallback
    return text


def install_root(cfg: AppConfig) -> Path:
    if cfg.install.install_root:
        return Path(cfg.install.install_root).expanduser()
    return Path(__file__).resolve().parent


def bin_dir(cfg: AppConfig) -> Path:
    return install_root(cfg) / "bin"


def installed_binary_path(cfg: AppConfig) -> Path:
    suffix = ".exe" if sys.platform == "win32" else ""
    return bin_dir(cfg) / (cfg.install.base_name + suffix)


@dataclass(frozen=True)
class InstallResult:
    platform: PlatformId
    version: str
    artifact: ArtifactReference
    installed_path: Path
    source: str


def install(
    cfg: AppConfig,
    *,
    progress: ProgressCallback | None = None,
    system: str | None = None,
    machine: str | None = None,
    force_download: bool = False,
    reporter: TelemetryReporter | None = None,
) -> InstallResult:
    progress = progress or (lambda _msg: None)

    if system is None and machine is None:
        target = detect_platform()
    else:
        target = resolve_platform(system or platform.system(), machine or platform.machine())
    require_published(target)
    progress(f"Platform: {target}")

    version = resolve_version(
        cfg.endpoints.api_base_url.rstrip("/") + "/version",
        fallback=cfg.install.fallback_version,
        timeout=cfg.install.version_timeout_s,
    )
    progress(f"Version: {version}")

    artifact = locate_artifact(target, version, cfg.endpoints.artifact_base_url, cfg.install.base_name)
    directory = bin_dir(cfg)
    bundled = directory / artifact.local_file_name
    final_path = directory / binary_name(target, cfg.install.base_name)
    executable = target.os is not OsName.WINDOWS

    if cfg.install.prefer_bundled and not force_download and bundled.is_file():
        progress(f"Using bundled binary: {artifact.local_file_name}")
        install_artifact(bundled, final_path, executable=executable)
        source = "bundled"
    else:
        progress(f"Downloading {artifact.remote_url}")
        with staged_download(directory) as tmp:
            fetch_artifact(
                artifact.remote_url,
                tmp,
                max_redirects=cfg.install.max_redirects,
                timeout=cfg.install.download_timeout_s,
            )
            install_artifact(tmp, final_path, executable=executable)
        source = "download"

    progress(f"Binary ready: {final_path.name}")

    reporter = reporter or TelemetryReporter.from_config(cfg)
    reporter.report(InstallEvent.build(target, version))

    return InstallResult(
        platform=target,
        version=version,
        artifact=artifact,
        installed_path=final_path,
        source=source,
    )


@dataclass(frozen=True)
class CheckResult:
    name: str
    ok: bool
    detail: str = ""


def verify_installation(binary: Path, timeout: float = 30) -> list[CheckResult]:
    """Check that ``binary`` exists, is executable and answers ``--help``."""
    checks: list[CheckResult] = []
    if not binary.is_file():
        checks.append(CheckResult("exists", False, f"Binary not found at: {binary}"))
        return checks
    checks.append(CheckResult("exists", True, str(binary)))

    if os.name != "nt" and not binary.stat().st_mode & 0o111:
        checks.append(CheckResult("executable", False, "Binary is not executable"))
        return checks
    checks.append(CheckResult("executable", True))

    try:
        completed = subprocess.run(
            [str(binary), "--help"],
            capture_output=True,
            text=True,
            timeout=timeout,
            check=False,
        )
    except (OSError, subprocess.TimeoutExpired) as exc:
        checks.append(CheckResult("runs", False, f"Binary failed to run: {exc}"))
        return checks

    if completed.returncode != 0:
        checks.append(CheckResult("runs", False, f"Binary exited with code {completed.returncode}"))
        return checks

    lines = (completed.stdout or completed.stderr or "").splitlines()
    checks.append(CheckResult("runs", True, lines[0] if lines else ""))
    return checks
