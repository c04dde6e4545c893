import sys
import unittest
from pathlib import Path

ROOT = Path(__file__).resolve().parents[2]
sys.path.insert(0, str(ROOT / "installers" / "bootstrap"))
sys.path.insert(0, str(ROOT / "packages" / "core"))

from dazzer_bootstrap.errors import UnsupportedArchitecture, UnsupportedPlatform
from dazzer_bootstrap.resolver import (
    PUBLISHED_PLATFORMS,
    Arch,
    OsName,
    PlatformId,
    binary_name,
    locate_artifact,
    require_published,
    resolve_platform,
)

BASE_URL = "https://storage.googleapis.com/dazzer-asts-prod/binaries"


class ResolvePlatformTests(unittest.TestCase):
    def test_published_pairs(self):
        cases = {
            ("Darwin", "x86_64"): PlatformId(OsName.DARWIN, Arch.AMD64),
            ("Darwin", "arm64"): PlatformId(OsName.DARWIN, Arch.ARM64),
            ("Linux", "x86_64"): PlatformId(OsName.LINUX, Arch.AMD64),
            ("Linux", "aarch64"): PlatformId(OsName.LINUX, Arch.ARM64),
            ("Windows", "AMD64"): PlatformId(OsName.WINDOWS, Arch.AMD64),
            ("win32", "x64"): PlatformId(OsName.WINDOWS, Arch.AMD64),
        }
        for (system, machine), expected in cases.items():
            with self.subTest(system=system, machine=machine):
                self.assertEqual(resolve_platform(system, machine), expected)

    def test_recognized_pairs_resolve(self):
        for os_name in OsName:
            for arch in Arch:
                with self.subTest(os=os_name, arch=arch):
                    self.assertEqual(resolve_platform(os_name.value, arch.value), PlatformId(os_name, arch))

    def test_unknown_os(self):
        for system in ("FreeBSD", "SunOS", "", "aix"):
            with self.subTest(system=system):
                with self.assertRaises(UnsupportedPlatform):
                    resolve_platform(system, "x86_64")

    def test_unknown_arch(self):
        for machine in ("ppc64le", "s390x", "riscv64", ""):
            with self.subTest(machine=machine):
                with self.assertRaises(UnsupportedArchitecture):
                    resolve_platform("Linux", machine)

    def test_os_checked_before_arch(self):
        with self.assertRaises(UnsupportedPlatform):
            resolve_platform("Plan9", "mips")

    def test_unpublished_pair_resolves_but_is_not_published(self):
        target = resolve_platform("Linux", "i686")
        self.assertEqual(target, PlatformId(OsName.LINUX, Arch.X86))
        with self.assertRaises(UnsupportedPlatform) as ctx:
            require_published(target)
        self.assertIn("linux-386", str(ctx.exception))
        with self.assertRaises(UnsupportedPlatform):
            require_published(resolve_platform("Windows", "ARM64"))

    def test_published_pairs_pass_the_gate(self):
        for target in PUBLISHED_PLATFORMS:
            with self.subTest(target=str(target)):
                self.assertIs(require_published(target), target)


class LocateArtifactTests(unittest.TestCase):
    def test_linux_names(self):
        ref = locate_artifact(PlatformId(OsName.LINUX, Arch.AMD64), "1.2.3", BASE_URL)
        self.assertEqual(ref.local_file_name, "dazzer-linux-amd64")
        self.assertEqual(ref.remote_key, "binaries/dazzer-linux-amd64")
        self.assertEqual(ref.remote_url, BASE_URL + "/dazzer-linux-amd64")
        self.assertEqual(ref.version, "1.2.3")

    def test_windows_gets_exe_suffix(self):
        target = PlatformId(OsName.WINDOWS, Arch.AMD64)
        ref = locate_artifact(target, "1.2.3", BASE_URL + "/")
        self.assertEqual(ref.local_file_name, "dazzer-windows-amd64.exe")
        self.assertEqual(ref.remote_url, BASE_URL + "/dazzer-windows-amd64.exe")
        self.assertEqual(binary_name(target), "dazzer.exe")
        self.assertEqual(binary_name(PlatformId(OsName.DARWIN, Arch.ARM64)), "dazzer")

    def test_deterministic(self):
        target = PlatformId(OsName.DARWIN, Arch.ARM64)
        self.assertEqual(
            locate_artifact(target, "0.1.0", BASE_URL),
            locate_artifact(target, "0.1.0", BASE_URL),
        )

    def test_version_does_not_change_location(self):
        target = PlatformId(OsName.LINUX, Arch.ARM64)
        a = locate_artifact(target, "0.1.0", BASE_URL)
        b = locate_artifact(target, "9.9.9", BASE_URL)
        self.assertEqual(a.remote_url, b.remote_url)
        self.assertEqual(a.local_file_name, b.local_file_name)


if __name__ == "__main__":
    unittest.main()
