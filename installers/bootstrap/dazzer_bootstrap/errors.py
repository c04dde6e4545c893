"""Failure kinds raised by the installer and launcher.

Every error carries a short list of remediation steps that the command line
frontends print under the message.
"""

from __future__ import annotations


ISSUES_URL = "https://github.com/dazzer-io/dazzer-cli/issues"

INSTALL_COMMAND = "dazzer-bootstrap install"


class BootstrapError(RuntimeError):
    remediation: tuple[str, ...] = (
        "Verify your platform is supported (Mac, Linux, Windows on x64/ARM64)",
        f"Try installing again: {INSTALL_COMMAND}",
        f"Download without the bundled copy: {INSTALL_COMMAND} --force-download",
        f"Report issues: {ISSUES_URL}",
    )


class UnsupportedPlatform(BootstrapError):
    pass


class UnsupportedArchitecture(BootstrapError):
    pass


class NetworkError(BootstrapError):
    pass


class DownloadFailed(BootstrapError):
    def __init__(self, status_code: int, url: str = "") -> None:
        super().__init__(f"Failed to download: HTTP {status_code}" + (f" ({url})" if url else ""))
        self.status_code = status_code
        self.url = url


class RedirectLoop(BootstrapError):
    def __init__(self, url: str, hops: int) -> None:
        super().__init__(f"Too many redirects ({hops}) while downloading {url}")
        self.url = url
        self.hops = hops


class WriteError(BootstrapError):
    pass


class InstallError(BootstrapError):
    pass


class BinaryMissing(BootstrapError):
    remediation = (
        "This usually means installation was incomplete.",
        f"Run the installer: {INSTALL_COMMAND}",
        "pip and uv only unpack the package; the binary is placed by the installer.",
        f"If the problem persists, please report: {ISSUES_URL}",
    )


class PermissionDenied(BootstrapError):
    def __init__(self, path: str) -> None:
        super().__init__(f"Permission denied executing Dazzer CLI: {path}")
        self.path = path
        self.remediation = (
            "Try fixing permissions:",
            f'  chmod +x "{path}"',
        )


class LaunchError(BootstrapError):
    remediation = (f"Please report: {ISSUES_URL}",)
