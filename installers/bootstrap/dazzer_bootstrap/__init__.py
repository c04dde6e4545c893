"""Installer and launcher for the platform-specific dazzer binary."""

from .errors import (
    BinaryMissing,
    BootstrapError,
    DownloadFailed,
    InstallError,
    LaunchError,
    NetworkError,
    PermissionDenied,
    RedirectLoop,
    UnsupportedArchitecture,
    UnsupportedPlatform,
    WriteError,
)
from .launcher import LaunchResult, launch, propagate
from .resolver import (
    Arch,
    ArtifactReference,
    OsName,
    PlatformId,
    binary_name,
    detect_platform,
    locate_artifact,
    require_published,
    resolve_platform,
)
from .service import (
    InstallResult,
    InstallTarget,
    fetch_artifact,
    install,
    install_artifact,
    resolve_version,
    staged_download,
    verify_installation,
)
from .telemetry import InstallEvent, TelemetryReporter

__all__ = [
    "Arch",
    "ArtifactReference",
    "BinaryMissing",
    "BootstrapError",
    "DownloadFailed",
    "InstallError",
    "InstallEvent",
    "InstallResult",
    "InstallTarget",
    "LaunchError",
    "LaunchResult",
    "NetworkError",
    "OsName",
    "PermissionDenied",
    "PlatformId",
    "RedirectLoop",
    "TelemetryReporter",
    "UnsupportedArchitecture",
    "UnsupportedPlatform",
    "WriteError",
    "binary_name",
    "detect_platform",
    "fetch_artifact",
    "install",
    "install_artifact",
    "launch",
    "locate_artifact",
    "propagate",
    "require_published",
    "resolve_platform",
    "resolve_version",
    "staged_download",
    "verify_installation",
]
