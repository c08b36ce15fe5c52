"""
Tests for platform resolution.
"""

from unittest.mock import patch

import pytest

import platform_resolver
from platform_resolver import PlatformId, current_platform, resolve, supported_platforms
from provisioning_errors import ProvisioningErrorKind, UnsupportedPlatformError


class TestResolve:
    """Test mapping of host identifiers to PlatformIds."""

    @pytest.mark.parametrize(
        "os_name,arch,expected",
        [
            ("Darwin", "arm64", PlatformId.DARWIN_ARM64),
            ("Darwin", "x86_64", PlatformId.DARWIN_X64),
            ("Linux", "aarch64", PlatformId.LINUX_AARCH64),
            ("Linux", "x86_64", PlatformId.LINUX_X64),
            ("Windows", "ARM64", PlatformId.WIN32_ARM64),
            ("Windows", "AMD64", PlatformId.WIN32_X64),
        ],
    )
    def test_supported_hosts(self, os_name, arch, expected):
        """Test the identifiers Python reports on each supported host."""
        assert resolve(os_name, arch) is expected

    @pytest.mark.parametrize(
        "os_name,arch,expected",
        [
            ("macos", "x64", PlatformId.DARWIN_X64),
            ("mac", "aarch64", PlatformId.DARWIN_ARM64),
            ("win32", "x86-64", PlatformId.WIN32_X64),
            ("  LINUX ", "amd64", PlatformId.LINUX_X64),
        ],
    )
    def test_aliases(self, os_name, arch, expected):
        assert resolve(os_name, arch) is expected

    def test_every_supported_pair_has_distinct_id(self):
        """Each supported pair maps to its own PlatformId."""
        ids = [resolve(os_name, arch) for os_name, arch in supported_platforms()]
        assert len(ids) == len(set(ids)) == len(PlatformId)

    def test_resolution_is_stable(self):
        assert resolve("Linux", "x86_64") is resolve("Linux", "x86_64")

    @pytest.mark.parametrize(
        "os_name,arch",
        [
            ("Linux", "i686"),
            ("Linux", "riscv64"),
            ("FreeBSD", "x86_64"),
            ("Darwin", "ppc"),
            ("", ""),
        ],
    )
    def test_unsupported_hosts(self, os_name, arch):
        """Test that unmatched hosts fail instead of guessing."""
        with pytest.raises(UnsupportedPlatformError) as exc_info:
            resolve(os_name, arch)

        error = exc_info.value
        assert error.kind is ProvisioningErrorKind.UNSUPPORTED_PLATFORM
        assert error.os_name == os_name
        assert error.arch == arch
        assert not error.retryable

    def test_error_message_names_host(self):
        with pytest.raises(UnsupportedPlatformError, match="FreeBSD/x86_64"):
            resolve("FreeBSD", "x86_64")


class TestPlatformId:
    """Test artifact naming derived from PlatformIds."""

    def test_linux_asset_name(self):
        assert (
            PlatformId.LINUX_X64.asset_name
            == "emmylua_ls-linux-x64-glibc.2.17.tar.gz"
        )

    def test_darwin_asset_name(self):
        assert PlatformId.DARWIN_ARM64.asset_name == "emmylua_ls-darwin-arm64.tar.gz"

    def test_windows_uses_zip_and_exe(self):
        assert PlatformId.WIN32_X64.asset_name == "emmylua_ls-win32-x64.zip"
        assert PlatformId.WIN32_X64.binary_name == "emmylua_ls.exe"
        assert PlatformId.WIN32_ARM64.archive_extension == "zip"

    def test_posix_binary_name(self):
        assert PlatformId.LINUX_AARCH64.binary_name == "emmylua_ls"
        assert PlatformId.DARWIN_X64.binary_name == "emmylua_ls"


class TestCurrentPlatform:
    @patch.object(platform_resolver.platform, "machine", return_value="arm64")
    @patch.object(platform_resolver.platform, "system", return_value="Darwin")
    def test_uses_host_identifiers(self, mock_system, mock_machine):
        assert current_platform() is PlatformId.DARWIN_ARM64
        mock_system.assert_called_once()
        mock_machine.assert_called_once()

    @patch.object(platform_resolver.platform, "machine", return_value="sparc")
    @patch.object(platform_resolver.platform, "system", return_value="SunOS")
    def test_unsupported_host(self, mock_system, mock_machine):
        with pytest.raises(UnsupportedPlatformError):
            current_platform()
