from __future__ import annotations

import runpy
from pathlib import Path

import dazzer_bootstrap.__main__ as bootstrap_main


def test_main_defaults_to_install(monkeypatch) -> None:
    calls: list[list[str]] = []
    monkeypatch.setattr(bootstrap_main, "_cli_main", lambda argv=None: calls.append(list(argv or [])) or 0)

    rc = bootstrap_main.main([])
    assert rc == 0
    assert calls == [["install"]]


def test_main_passes_through_args(monkeypatch) -> None:
    calls: list[list[str]] = []
    monkeypatch.setattr(bootstrap_main, "_cli_main", lambda argv=None: calls.append(list(argv or [])) or 0)

    rc = bootstrap_main.main(["verify", "--install-root", "/opt/dazzer"])
    assert rc == 0
    assert calls == [["verify", "--install-root", "/opt/dazzer"]]


def test_main_module_runpath_without_package_context() -> None:
    main_path = (
        Path(__file__).resolve().parents[1]
        / "installers"
        / "bootstrap"
        / "dazzer_bootstrap"
        / "__main__.py"
    )
    result = runpy.run_path(str(main_path))
    assert "main" in result
