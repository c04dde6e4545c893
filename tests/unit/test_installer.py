from __future__ import annotations

import os
import stat

import pytest

from dazzer_bootstrap.errors import InstallError
from dazzer_bootstrap.service import install_artifact

posix_only = pytest.mark.skipif(os.name == "nt", reason="execute bits are POSIX-only")


def _mode(path) -> int:
    return stat.S_IMODE(path.stat().st_mode)


@pytest.fixture
def bundled(tmp_path):
    src = tmp_path / "bin" / "dazzer-linux-amd64"
    src.parent.mkdir()
    src.write_bytes(b"#!/bin/sh\necho dazzer\n")
    return src


def test_copies_into_place(bundled) -> None:
    target = bundled.parent / "dazzer"
    plan = install_artifact(bundled, target, executable=True)

    assert target.read_bytes() == bundled.read_bytes()
    assert plan.final_path == target
    assert plan.executable_bit is True
    assert not plan.temp_path.exists()


@posix_only
def test_sets_0755(bundled) -> None:
    target = bundled.parent / "dazzer"
    os.chmod(bundled, 0o600)

    install_artifact(bundled, target, executable=True)
    assert _mode(target) == 0o755


def test_garbage_target_fully_replaced(bundled) -> None:
    target = bundled.parent / "dazzer"
    target.write_bytes(b"garbage" * 10_000)

    install_artifact(bundled, target, executable=True)
    assert target.read_bytes() == bundled.read_bytes()


@posix_only
def test_idempotent(bundled) -> None:
    target = bundled.parent / "dazzer"
    install_artifact(bundled, target, executable=True)
    first = (target.read_bytes(), _mode(target))

    install_artifact(bundled, target, executable=True)
    assert (target.read_bytes(), _mode(target)) == first
    assert sorted(p.name for p in bundled.parent.iterdir()) == ["dazzer", "dazzer-linux-amd64"]


@posix_only
def test_readonly_previous_target_is_replaced(bundled) -> None:
    target = bundled.parent / "dazzer"
    target.write_bytes(b"old")
    os.chmod(target, 0o444)

    install_artifact(bundled, target, executable=True)
    assert target.read_bytes() == bundled.read_bytes()


def test_not_executable_leaves_mode_alone(bundled) -> None:
    target = bundled.parent / "dazzer.exe"
    install_artifact(bundled, target, executable=False)
    assert target.read_bytes() == bundled.read_bytes()


@posix_only
def test_same_path_only_sets_mode(bundled) -> None:
    os.chmod(bundled, 0o600)
    install_artifact(bundled, bundled, executable=True)
    assert _mode(bundled) == 0o755
    assert bundled.read_bytes() == b"#!/bin/sh\necho dazzer\n"


def test_missing_source_is_install_error(tmp_path) -> None:
    target = tmp_path / "bin" / "dazzer"
    with pytest.raises(InstallError):
        install_artifact(tmp_path / "nope", target, executable=True)
    assert not target.exists()
    assert not (tmp_path / "bin" / ".dazzer.partial").exists()


def test_failed_copy_keeps_previous_target(bundled, monkeypatch) -> None:
    import dazzer_bootstrap.service as service

    target = bundled.parent / "dazzer"
    target.write_bytes(b"previous")

    def broken_copy(src, dst):
        with open(dst, "wb") as fh:
            fh.write(b"half")
        raise OSError(28, "No space left on device")

    monkeypatch.setattr(service.shutil, "copyfile", broken_copy)

    with pytest.raises(InstallError):
        install_artifact(bundled, target, executable=True)
    assert target.read_bytes() == b"previous"
    assert not (bundled.parent / ".dazzer.partial").exists()
