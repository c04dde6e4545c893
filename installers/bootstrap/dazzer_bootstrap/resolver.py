"""Platform detection and artifact naming for the bundled dazzer binaries."""

from __future__ import annotations

import platform
from dataclasses import dataclass
from enum import Enum

from .errors import UnsupportedArchitecture, UnsupportedPlatform


class OsName(str, Enum):
    DARWIN = "darwin"
    LINUX = "linux"
    WINDOWS = "windows"


class Arch(str, Enum):
    AMD64 = "amd64"
    ARM64 = "arm64"
    # Published artifacts use the Go spelling for 32-bit x86.
    X86 = "386"


_OS_ALIASES: dict[str, OsName] = {
    "darwin": OsName.DARWIN,
    "linux": OsName.LINUX,
    "windows": OsName.WINDOWS,
    "win32": OsName.WINDOWS,
}

_ARCH_ALIASES: dict[str, Arch] = {
    "x86_64": Arch.AMD64,
    "amd64": Arch.AMD64,
    "x64": Arch.AMD64,
    "arm64": Arch.ARM64,
    "aarch64": Arch.ARM64,
    "x86": Arch.X86,
    "386": Arch.X86,
    "i386": Arch.X86,
    "i686": Arch.X86,
    "ia32": Arch.X86,
}


@dataclass(frozen=True)
class PlatformId:
    os: OsName
    arch: Arch

    def __str__(self) -> str:
        return f"{self.os.value}-{self.arch.value}"


PUBLISHED_PLATFORMS: frozenset[PlatformId] = frozenset(
    {
        PlatformId(OsName.DARWIN, Arch.AMD64),
        PlatformId(OsName.DARWIN, Arch.ARM64),
        PlatformId(OsName.LINUX, Arch.AMD64),
        PlatformId(OsName.LINUX, Arch.ARM64),
        PlatformId(OsName.WINDOWS, Arch.AMD64),
    }
)


def _supported_list() -> str:
    return ", ".join(sorted(str(p) for p in PUBLISHED_PLATFORMS))


def resolve_platform(system: str, machine: str) -> PlatformId:
    os_name = _OS_ALIASES.get((system or "").strip().lower())
    if os_name is None:
        raise UnsupportedPlatform(
            f"Unsupported platform: {system}. Dazzer CLI supports Mac, Linux, and Windows."
        )

    arch = _ARCH_ALIASES.get((machine or "").strip().lower())
    if arch is None:
        raise UnsupportedArchitecture(
            f"Unsupported architecture: {machine}. Dazzer CLI supports x64, arm64, and x86."
        )

    return PlatformId(os=os_name, arch=arch)


def require_published(target: PlatformId) -> PlatformId:
    """Reject pairs the resolver recognizes but no artifact is published for."""
    if target not in PUBLISHED_PLATFORMS:
        raise UnsupportedPlatform(f"Binary not found for {target}. Supported platforms: {_supported_list()}")
    return target


def detect_platform() -> PlatformId:
    return resolve_platform(platform.system(), platform.machine())


@dataclass(frozen=True)
class ArtifactReference:
    platform: PlatformId
    version: str
    remote_key: str
    local_file_name: str
    remote_url: str


def executable_suffix(target: PlatformId) -> str:
    return ".exe" if target.os is OsName.WINDOWS else ""


def binary_name(target: PlatformId, base_name: str = "dazzer") -> str:
    """Name of the installed executable, e.g. ``dazzer`` or ``dazzer.exe``."""
    return base_name + executable_suffix(target)


def locate_artifact(
    target: PlatformId,
    version: str,
    base_url: str,
    base_name: str = "dazzer",
) -> ArtifactReference:
    """Compute the bundled file name and remote location for ``target``.

    The version is carried along for reporting only; artifacts are addressed
    by platform name, never by version path.
    """
    file_name = f"{base_name}-{target.os.value}-{target.arch.value}{executable_suffix(target)}"
    return ArtifactReference(
        platform=target,
        version=version,
        remote_key=f"binaries/{file_name}",
        local_file_name=file_name,
        remote_url=f"{base_url.rstrip('/')}/{file_name}",
    )
