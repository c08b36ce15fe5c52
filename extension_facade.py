#!/usr/bin/env python3

"""
EmmyLua Extension Facade

Single entry point the host runtime calls to obtain a runnable language server
command and the workspace configuration for the EmmyLua language server.

This facade:
- Honors a user-configured binary before any download logic runs
- Otherwise provisions the managed binary, checking upstream at most once per day
- Falls back to the cached binary when the release index is unreachable
- Builds the initialization payload and recomputes it when settings change
"""

import logging
import os
from collections.abc import Callable
from pathlib import Path
from typing import Any

from dotenv import load_dotenv

from binary_cache import BinaryCache, BinaryLocation, UserSuppliedBinary
from configuration_bridge import ConfigurationBridge
from constants import (
    CACHE_DIR,
    ENV_CACHE_DIR,
    ENV_GITHUB_TOKEN,
    LATEST_VERSION,
    SERVER_ID,
    UPDATE_CHECK_INTERVAL_SECONDS,
)
from host_capabilities import (
    LocalFileSystem,
    ProcessSpawner,
    RequestsDownloader,
    SettingsProvider,
    SubprocessSpawner,
)
from lsp_server_manager import (
    InstallationStatus,
    LanguageServerExtension,
    LaunchCommand,
)
from lsp_settings import LspSettings
from provisioning_errors import BridgeError, FetchFailedError, ProvisioningFailedError
from release_fetcher import ReleaseFetcher, VersionSelector
from settings_store import SettingsStore
from system_utils import setup_logging

StatusCallback = Callable[[InstallationStatus], None]
ConfigurationCallback = Callable[[str, dict[str, Any]], None]


class EmmyLuaExtension(LanguageServerExtension):
    """Language server extension for the EmmyLua language server."""

    def __init__(
        self,
        settings_provider: SettingsProvider,
        binary_cache: BinaryCache,
        release_fetcher: ReleaseFetcher,
        bridge: ConfigurationBridge | None = None,
        spawner: ProcessSpawner | None = None,
        status_callback: StatusCallback | None = None,
        update_check_interval: float = UPDATE_CHECK_INTERVAL_SECONDS,
        server_id: str = SERVER_ID,
        logger: logging.Logger | None = None,
    ):
        """
        Initialize the extension.

        Args:
            settings_provider: Source of per-workspace server settings
            binary_cache: Cache providing the managed server binary
            release_fetcher: Fetcher used to learn the latest upstream version
            bridge: Configuration bridge, a default one is created if omitted
            spawner: Process spawner used by launch()
            status_callback: Receives installation status changes
            update_check_interval: Minimum seconds between upstream update checks
            server_id: Settings namespace of the server
            logger: Logger instance, defaults to the module logger
        """
        self.settings_provider = settings_provider
        self.binary_cache = binary_cache
        self.release_fetcher = release_fetcher
        self.bridge = bridge or ConfigurationBridge()
        self.spawner = spawner or SubprocessSpawner()
        self.status_callback = status_callback
        self.update_check_interval = update_check_interval
        self.server_id = server_id
        self.logger = logger or logging.getLogger(__name__)

        self._configurations: dict[str, dict[str, Any]] = {}

    def _set_status(self, status: InstallationStatus) -> None:
        if self.status_callback is None:
            return
        try:
            self.status_callback(status)
        except Exception as e:
            self.logger.error(f"❌ Error in installation status callback: {e}")

    def _latest_version_hint(self, selector: VersionSelector) -> str:
        """Determine the version the cache should hold

        A pinned selector is returned as is. For 'latest' the version installed
        on the latest channel is reused while its last update check is recent;
        otherwise the release index is asked, and the installed version is used
        if it is unreachable. Pinned installations never answer for 'latest'.
        """
        if not selector.is_latest:
            return selector.value

        installation = self.binary_cache.installation()
        cache_ready = self.binary_cache.is_ready()
        if (
            installation is not None
            and cache_ready
            and not self.binary_cache.needs_update_check(self.update_check_interval)
        ):
            self.logger.debug(
                f"Update checked recently, using installed {installation.installed_version}"
            )
            return installation.installed_version

        self._set_status(InstallationStatus.CHECKING_FOR_UPDATE)
        try:
            release = self.release_fetcher.resolve_release(selector)
        except FetchFailedError as e:
            if installation is not None and cache_ready:
                self.logger.warning(
                    f"Release index unreachable, using installed "
                    f"{installation.installed_version}: {e}"
                )
                return installation.installed_version
            raise

        if installation is not None and installation.installed_version == release.version:
            self.binary_cache.record_update_check()
        return release.version

    def command(self, workspace_root: str) -> LaunchCommand:
        """Get the command that starts the server for a workspace

        Args:
            workspace_root: Workspace root path

        Returns:
            LaunchCommand with executable path, arguments and environment

        Raises:
            BridgeError: If provisioning fails; the concrete subclass names
                the failure kind
        """
        settings = self.settings_provider.lsp_settings(self.server_id, workspace_root)

        if settings.binary.has_override:
            location = self.binary_cache.ensure_ready(LATEST_VERSION, settings.binary)
        else:
            location = self._provision(settings)

        if isinstance(location, UserSuppliedBinary):
            return LaunchCommand(
                command=location.path,
                args=self.bridge.launch_arguments(location.arguments, managed=False),
                env=dict(location.env),
            )

        self.logger.info(
            f"✅ Language server {location.version} ready at {location.cached_path}"
        )
        return LaunchCommand(
            command=str(location.cached_path),
            args=self.bridge.launch_arguments(settings.binary.arguments, managed=True),
            env=dict(settings.binary.env),
        )

    def _provision(self, settings: LspSettings) -> BinaryLocation:
        """Provision the managed binary, reporting installation status."""
        try:
            try:
                selector = VersionSelector.parse(settings.version)
            except ValueError as e:
                raise ProvisioningFailedError(str(e)) from e

            hint = self._latest_version_hint(selector)
            channel = selector.value
            installation = self.binary_cache.installation(channel)
            if (
                installation is None
                or installation.installed_version != hint
                or not self.binary_cache.is_ready(channel)
            ):
                self._set_status(InstallationStatus.DOWNLOADING)

            location = self.binary_cache.ensure_ready(hint, channel=channel)
        except BridgeError as e:
            self._set_status(InstallationStatus.FAILED)
            self.logger.error(f"❌ Failed to provision language server ({e.kind.value}): {e}")
            raise

        self._set_status(InstallationStatus.NONE)
        return location

    def workspace_configuration(
        self, workspace_root: str, user_settings: dict[str, Any] | None = None
    ) -> dict[str, Any]:
        """Get the initialization payload for a workspace

        Args:
            workspace_root: Workspace root path
            user_settings: User configuration mapping; read from the settings
                provider when omitted

        Returns:
            Merged initialization payload
        """
        if user_settings is None:
            user_settings = self.settings_provider.lsp_settings(
                self.server_id, workspace_root
            ).user_configuration()

        payload = self.bridge.build_launch_config(workspace_root, user_settings)
        self._configurations[workspace_root] = payload
        return payload

    def launch(self, workspace_root: str) -> Any:
        """Resolve the server command and spawn it

        Nothing is spawned when provisioning fails.

        Returns:
            Handle of the spawned process
        """
        launch_command = self.command(workspace_root)
        return self.spawner.spawn(launch_command, cwd=workspace_root)

    def refresh_configurations(self) -> dict[str, dict[str, Any]]:
        """Recompute the payload of every known workspace

        Returns:
            Mapping of workspace root to payload for workspaces whose payload changed
        """
        changed = {}
        for workspace_root, previous in list(self._configurations.items()):
            try:
                payload = self.workspace_configuration(workspace_root)
            except ValueError as e:
                self.logger.error(
                    f"❌ Invalid settings for {workspace_root}, keeping previous configuration: {e}"
                )
                continue
            if payload != previous:
                changed[workspace_root] = payload
        return changed

    def watch_settings(
        self, store: SettingsStore, callback: ConfigurationCallback
    ) -> None:
        """Push reconfigured payloads to callback whenever store reloads

        Args:
            store: Settings store whose reloads trigger recomputation
            callback: Called with (workspace_root, payload) for each change
        """

        def on_reload():
            for workspace_root, payload in self.refresh_configurations().items():
                self.logger.info(f"Configuration changed for {workspace_root}")
                callback(workspace_root, payload)

        store.add_reload_callback(on_reload)


def create_extension(
    settings_path: str | None = None,
    cache_dir: str | None = None,
    status_callback: StatusCallback | None = None,
    configure_logging: bool = False,
) -> EmmyLuaExtension:
    """Create an EmmyLuaExtension wired to the local machine.

    Args:
        settings_path: Optional path to the settings file
        cache_dir: Optional cache directory for downloaded binaries
        status_callback: Receives installation status changes
        configure_logging: Install the bridge's file and stderr log handlers

    Returns:
        EmmyLuaExtension instance

    Raises:
        RuntimeError: If the settings file cannot be loaded
    """
    load_dotenv()
    if configure_logging:
        setup_logging()

    store = SettingsStore(settings_path)
    if not store.load_configuration():
        raise RuntimeError(f"Failed to load settings from {store.settings_path}")

    cache_root = Path(cache_dir or os.getenv(ENV_CACHE_DIR) or CACHE_DIR)
    filesystem = LocalFileSystem()
    fetcher = ReleaseFetcher(
        downloader=RequestsDownloader(),
        filesystem=filesystem,
        cache_root=cache_root,
        token=os.getenv(ENV_GITHUB_TOKEN),
    )
    cache = BinaryCache(fetcher=fetcher, filesystem=filesystem, cache_root=cache_root)

    return EmmyLuaExtension(
        settings_provider=store,
        binary_cache=cache,
        release_fetcher=fetcher,
        bridge=ConfigurationBridge(filesystem=filesystem),
        status_callback=status_callback,
    )
