"""
Binary Cache

Tracks the locally installed language server, decides when a download is needed
and guarantees the executable it hands out carries the execute bit.

Installations are recorded per channel in a small JSON state file inside the
cache root. The "latest" channel follows upstream releases; every pinned version
is its own channel, so workspaces with different selectors keep their binaries
side by side. The state file is only ever replaced atomically after a fetch has
fully succeeded, so a failed or abandoned fetch leaves the previous installation
in place and usable.

State file layout:

    {
      "installations": {
        "latest": {"installed_version": "0.9.0", "path": "...", ...},
        "0.8.0": {"installed_version": "0.8.0", "path": "...", ...}
      }
    }
"""

import json
import logging
import time
from collections.abc import Callable
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Union

from constants import INSTALLATION_STATE_FILENAME, LATEST_VERSION, STAGING_PREFIX
from host_capabilities import FileSystem
from lsp_settings import BinarySettings
from platform_resolver import PlatformId, current_platform
from provisioning_errors import ProvisioningFailedError
from release_fetcher import ReleaseFetcher, VersionSelector


@dataclass
class CachedInstallation:
    """Record of an installed server executable."""

    installed_version: str
    path: Path
    executable: bool = False
    checked_at: float = 0.0

    def to_dict(self) -> dict[str, Any]:
        return {
            "installed_version": self.installed_version,
            "path": str(self.path),
            "executable": self.executable,
            "checked_at": self.checked_at,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "CachedInstallation":
        return cls(
            installed_version=str(data["installed_version"]),
            path=Path(data["path"]),
            executable=bool(data.get("executable", False)),
            checked_at=float(data.get("checked_at", 0.0)),
        )


@dataclass
class UserSuppliedBinary:
    """Executable configured by the user; bypasses all download logic."""

    path: str
    arguments: list[str] | None = None
    env: dict[str, str] = field(default_factory=dict)


@dataclass
class ManagedBinary:
    """Executable provisioned into the cache by the bridge."""

    cached_path: Path
    version: str


BinaryLocation = Union[UserSuppliedBinary, ManagedBinary]


class BinaryCache:
    """Keeps runnable language server executables in the cache directory."""

    def __init__(
        self,
        fetcher: ReleaseFetcher,
        filesystem: FileSystem,
        cache_root: Path,
        platform_resolver: Callable[[], PlatformId] = current_platform,
        clock: Callable[[], float] = time.time,
        logger: logging.Logger | None = None,
    ):
        """
        Initialize the binary cache.

        Args:
            fetcher: ReleaseFetcher used to materialize missing versions
            filesystem: FileSystem holding the cache
            cache_root: Directory holding the state file and installed versions
            platform_resolver: Returns the PlatformId of the running host
            clock: Returns the current time in seconds since the epoch
            logger: Logger instance, defaults to the module logger
        """
        self.fetcher = fetcher
        self.filesystem = filesystem
        self.cache_root = Path(cache_root)
        self.platform_resolver = platform_resolver
        self.clock = clock
        self.logger = logger or logging.getLogger(__name__)

    @property
    def state_path(self) -> Path:
        return self.cache_root / INSTALLATION_STATE_FILENAME

    def _load_state(self) -> dict[str, CachedInstallation]:
        if not self.filesystem.exists(self.state_path):
            return {}
        try:
            data = json.loads(self.filesystem.read_text(self.state_path))
            return {
                str(channel): CachedInstallation.from_dict(record)
                for channel, record in data["installations"].items()
            }
        except (OSError, ValueError, KeyError, TypeError, AttributeError) as e:
            self.logger.warning(
                f"Ignoring unreadable installation record {self.state_path}: {e}"
            )
            return {}

    def _save_installation(self, channel: str, installation: CachedInstallation) -> None:
        state = self._load_state()
        state[channel] = installation
        content = json.dumps(
            {"installations": {c: i.to_dict() for c, i in sorted(state.items())}},
            indent=2,
        )
        try:
            self.filesystem.write_text_atomic(self.state_path, content)
        except OSError as e:
            raise ProvisioningFailedError(
                f"Could not write installation record {self.state_path}: {e}"
            ) from e

    def installation(self, channel: str = LATEST_VERSION) -> CachedInstallation | None:
        """Read the installation record of a channel

        Args:
            channel: 'latest' or a pinned version

        Returns:
            CachedInstallation, or None if nothing is installed for the channel
            or the record is unreadable
        """
        return self._load_state().get(channel)

    def is_ready(self, channel: str = LATEST_VERSION) -> bool:
        """Check whether the channel's recorded installation is present on disk."""
        installation = self.installation(channel)
        return installation is not None and self.filesystem.is_file(installation.path)

    def needs_update_check(self, interval: float) -> bool:
        """Check whether the latest channel was last checked over interval seconds ago."""
        installation = self.installation()
        if installation is None:
            return True
        return self.clock() - installation.checked_at >= interval

    def record_update_check(self) -> None:
        """Mark the latest channel as checked against upstream now."""
        installation = self.installation()
        if installation is None:
            return
        installation.checked_at = self.clock()
        self._save_installation(LATEST_VERSION, installation)

    def _is_valid(
        self, installation: CachedInstallation, latest_version_hint: str
    ) -> bool:
        if (
            latest_version_hint != LATEST_VERSION
            and installation.installed_version != latest_version_hint
        ):
            self.logger.info(
                f"Installed version {installation.installed_version} differs from "
                f"{latest_version_hint}, update required"
            )
            return False
        if not self.filesystem.is_file(installation.path):
            self.logger.warning(f"Installed binary is missing: {installation.path}")
            return False
        return True

    def ensure_ready(
        self,
        latest_version_hint: str,
        binary_settings: BinarySettings | None = None,
        channel: str = LATEST_VERSION,
    ) -> BinaryLocation:
        """Return a runnable executable, downloading it if needed

        Args:
            latest_version_hint: Version the channel should hold, or 'latest'
                to accept whatever the channel has installed
            binary_settings: User binary override, if any
            channel: 'latest', or the pinned version the request came from

        Returns:
            UserSuppliedBinary when an override path is configured,
            ManagedBinary otherwise

        Raises:
            UnsupportedPlatformError: If the host has no published artifact
            FetchFailedError: If the release cannot be retrieved
            NoMatchingArtifactError: If the release lacks the platform's asset
            ExtractionFailedError: If the archive is corrupt or incomplete
            ProvisioningFailedError: If the cache cannot be written
        """
        if binary_settings is not None and binary_settings.has_override:
            self.logger.info(f"Using user-supplied binary: {binary_settings.path}")
            return UserSuppliedBinary(
                path=binary_settings.path,  # type: ignore[arg-type]
                arguments=binary_settings.arguments,
                env=dict(binary_settings.env),
            )

        recorded = self.installation(channel)
        if recorded is not None and self._is_valid(recorded, latest_version_hint):
            installation = recorded
        else:
            installation = self._install(latest_version_hint, channel)

        if not installation.executable or not self.filesystem.is_executable(
            installation.path
        ):
            try:
                self.filesystem.make_executable(installation.path)
            except OSError as e:
                raise ProvisioningFailedError(
                    f"Could not make {installation.path} executable: {e}"
                ) from e
            installation.executable = True
            self._save_installation(channel, installation)

        return ManagedBinary(
            cached_path=installation.path, version=installation.installed_version
        )

    def _install(self, latest_version_hint: str, channel: str) -> CachedInstallation:
        platform_id = self.platform_resolver()
        selector = VersionSelector.parse(latest_version_hint)
        self.logger.info(f"Fetching {selector} for {platform_id.value} ({channel} channel)")

        version, path = self.fetcher.fetch(platform_id, selector)
        if not selector.is_latest and version != selector.value:
            self.logger.warning(
                f"Requested version {selector.value} but release index returned {version}"
            )

        installation = CachedInstallation(
            installed_version=version, path=path, checked_at=self.clock()
        )
        self._save_installation(channel, installation)
        self.prune()
        return installation

    def prune(self) -> list[Path]:
        """Remove installed versions no channel refers to

        Only the versions directory is touched, so a cache root shared with other
        data is safe. Staging directories are left alone.

        Returns:
            List of removed directories
        """
        in_use = {i.installed_version for i in self._load_state().values()}
        removed = []
        for entry in self.filesystem.list_dir(self.fetcher.versions_root):
            if entry.name in in_use or entry.name.startswith(STAGING_PREFIX):
                continue
            if self.filesystem.is_file(entry):
                continue
            self.filesystem.remove_tree(entry)
            removed.append(entry)
            self.logger.debug(f"Removed stale installation {entry}")
        return removed
