"""CLI entrypoints for installing, verifying and diagnosing the dazzer binary."""

from __future__ import annotations

import argparse
import json
import logging
import sys
from importlib import metadata

from dazzer_core.config import load_config
from dazzer_core.logging_setup import configure_logging

from .diagnostics import build_doctor_payload
from .errors import BootstrapError
from .launcher import run_main
from .service import install, installed_binary_path, verify_installation
from .telemetry import TelemetryReporter

logger = logging.getLogger("dazzer.cli")


def _print_json(data: object) -> None:
    print(json.dumps(data, indent=2, sort_keys=True, default=str))


def _installed_version() -> str:
    try:
        return metadata.version("dazzer-cli")
    except Exception:
        return "0.1.0"


def _print_troubleshooting(exc: BootstrapError) -> None:
    print(f"\nInstallation failed: {exc}", file=sys.stderr)
    print("\nTroubleshooting:", file=sys.stderr)
    for idx, step in enumerate(exc.remediation, start=1):
        print(f"{idx}. {step}", file=sys.stderr)


def cmd_install(args: argparse.Namespace) -> int:
    cfg = load_config()
    if args.install_root:
        cfg.install.install_root = args.install_root
    if args.no_telemetry:
        cfg.telemetry.enabled = False

    reporter = TelemetryReporter.from_config(cfg)
    print("Installing Dazzer CLI...")
    try:
        result = install(cfg, progress=print, force_download=args.force_download, reporter=reporter)
    except BootstrapError as exc:
        logger.exception("install failed", extra={"event": "install_failed"})
        _print_troubleshooting(exc)
        return 1

    logger.info(
        "install complete",
        extra={"event": "install_complete", "platform": str(result.platform), "path": str(result.installed_path)},
    )
    print("\nDazzer CLI installed successfully!")
    print("\nGet started:")
    print("  dazzer init    # Configure your access token")
    print("  dazzer scan .  # Scan current directory")
    print("\nDocumentation: https://github.com/dazzer-io/dazzer-cli")
    reporter.flush()
    return 0


def cmd_verify(args: argparse.Namespace) -> int:
    cfg = load_config()
    if args.install_root:
        cfg.install.install_root = args.install_root
    binary = installed_binary_path(cfg)

    print("Testing Dazzer CLI installation...\n")
    checks = verify_installation(binary)
    for check in checks:
        mark = "ok" if check.ok else "FAILED"
        line = f"  [{mark}] {check.name}"
        if check.detail:
            line += f": {check.detail}"
        print(line)

    if all(c.ok for c in checks) and len(checks) == 3:
        print("\nAll checks passed! Dazzer CLI is ready to use.")
        return 0
    return 1


def cmd_doctor(_args: argparse.Namespace) -> int:
    payload = build_doctor_payload(load_config())
    payload["bootstrap_version"] = _installed_version()
    _print_json(payload)
    return 0


def cmd_run(args: argparse.Namespace) -> int:
    passthrough = list(args.args)
    if passthrough[:1] == ["--"]:
        passthrough = passthrough[1:]
    return run_main(passthrough)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="dazzer-bootstrap", description="Dazzer CLI installer and launcher")
    parser.add_argument("--version", action="version", version=f"%(prog)s {_installed_version()}")
    sub = parser.add_subparsers(dest="command", required=True)

    install_cmd = sub.add_parser("install", help="Install the platform binary")
    install_cmd.add_argument("--force-download", action="store_true", help="Ignore bundled binaries and download")
    install_cmd.add_argument("--no-telemetry", action="store_true", help="Do not send install analytics")
    install_cmd.add_argument("--install-root", default=None, help="Directory holding bin/")
    install_cmd.set_defaults(func=cmd_install)

    verify_cmd = sub.add_parser("verify", help="Check the installed binary exists, is executable and runs")
    verify_cmd.add_argument("--install-root", default=None, help="Directory holding bin/")
    verify_cmd.set_defaults(func=cmd_verify)

    doctor_cmd = sub.add_parser("doctor", help="Print platform, config and install diagnostics")
    doctor_cmd.set_defaults(func=cmd_doctor)

    run_cmd = sub.add_parser("run", help="Run the installed binary with the given arguments")
    run_cmd.add_argument("args", nargs=argparse.REMAINDER)
    run_cmd.set_defaults(func=cmd_run)

    return parser


def main(argv: list[str] | None = None) -> int:
    configure_logging(console=False)
    parser = build_parser()
    args = parser.parse_args(argv)
    return int(args.func(args))


if __name__ == "__main__":
    raise SystemExit(main())
