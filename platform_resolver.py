"""
Platform Resolution

Maps the host operating system and CPU architecture to the release artifact
identifier the upstream project publishes builds for.
"""

import platform
from enum import Enum

from constants import ASSET_PREFIX, BINARY_BASENAME
from provisioning_errors import UnsupportedPlatformError

_OS_ALIASES = {
    "darwin": "darwin",
    "macos": "darwin",
    "mac": "darwin",
    "osx": "darwin",
    "linux": "linux",
    "windows": "windows",
    "win32": "windows",
    "win": "windows",
}

_ARCH_ALIASES = {
    "x86_64": "x86_64",
    "x86-64": "x86_64",
    "amd64": "x86_64",
    "x64": "x86_64",
    "aarch64": "aarch64",
    "arm64": "aarch64",
}


class PlatformId(Enum):
    """Release artifact identifiers, one per published os/arch pair."""

    DARWIN_ARM64 = "darwin-arm64"
    DARWIN_X64 = "darwin-x64"
    LINUX_AARCH64 = "linux-aarch64-glibc.2.17"
    LINUX_X64 = "linux-x64-glibc.2.17"
    WIN32_ARM64 = "win32-arm64"
    WIN32_X64 = "win32-x64"

    @property
    def is_windows(self) -> bool:
        return self.value.startswith("win32")

    @property
    def archive_extension(self) -> str:
        return "zip" if self.is_windows else "tar.gz"

    @property
    def asset_name(self) -> str:
        """Name of the release asset built for this platform."""
        return f"{ASSET_PREFIX}{self.value}.{self.archive_extension}"

    @property
    def binary_name(self) -> str:
        """Name of the server executable inside the archive."""
        return f"{BINARY_BASENAME}.exe" if self.is_windows else BINARY_BASENAME


_SUPPORTED = {
    ("darwin", "aarch64"): PlatformId.DARWIN_ARM64,
    ("darwin", "x86_64"): PlatformId.DARWIN_X64,
    ("linux", "aarch64"): PlatformId.LINUX_AARCH64,
    ("linux", "x86_64"): PlatformId.LINUX_X64,
    ("windows", "aarch64"): PlatformId.WIN32_ARM64,
    ("windows", "x86_64"): PlatformId.WIN32_X64,
}


def resolve(os_name: str, arch: str) -> PlatformId:
    """Resolve raw host identifiers to a PlatformId.

    Args:
        os_name: Operating system as reported by the host (e.g. 'Linux', 'Darwin')
        arch: CPU architecture as reported by the host (e.g. 'x86_64', 'arm64')

    Returns:
        The PlatformId of the matching release artifact

    Raises:
        UnsupportedPlatformError: If no artifact is published for the pair
    """
    normalized_os = _OS_ALIASES.get((os_name or "").strip().lower())
    normalized_arch = _ARCH_ALIASES.get((arch or "").strip().lower())

    platform_id = _SUPPORTED.get((normalized_os, normalized_arch))  # type: ignore[arg-type]
    if platform_id is None:
        raise UnsupportedPlatformError(os_name, arch)
    return platform_id


def current_platform() -> PlatformId:
    """Resolve the PlatformId of the running host."""
    return resolve(platform.system(), platform.machine())


def supported_platforms() -> list[tuple[str, str]]:
    """List the normalized (os, arch) pairs that have published artifacts."""
    return list(_SUPPORTED.keys())
