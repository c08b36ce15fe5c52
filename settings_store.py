#!/usr/bin/env python3

"""
Settings Store for the EmmyLua Bridge

Handles loading and watching the JSON settings file that stands in for the
editor's settings surface, and serves per-workspace language server settings.

Settings file layout:

    {
      "lsp": {"emmylua": {"binary": {...}, "initialization_options": {...}}},
      "workspaces": {
        "/abs/workspace": {"lsp": {"emmylua": {"version": "0.9.0"}}}
      }
    }

A workspace entry overrides the global server block one top-level key at a time.
"""

import json
import logging
import os
import threading
from collections.abc import Callable
from pathlib import Path
from typing import Any

from constants import ENV_SETTINGS_PATH, SETTINGS_PATH
from host_capabilities import SettingsProvider
from lsp_settings import LspSettings


class SettingsStore(SettingsProvider):
    """Serves language server settings from a JSON settings file"""

    def __init__(self, settings_path: str | None = None):
        """
        Initialize settings store

        Args:
            settings_path: Path to the settings file.
                          Defaults to ~/.local/share/emmylua-bridge/settings.json
        """
        self.logger = logging.getLogger(__name__)

        # Determine settings file path
        if settings_path:
            self.settings_path = Path(settings_path)
        else:
            # Check environment variable first
            env_settings = os.getenv(ENV_SETTINGS_PATH)
            if env_settings:
                self.settings_path = Path(env_settings)
            else:
                self.settings_path = SETTINGS_PATH

        self._data: dict[str, Any] = {}

        # Hot reload support
        self._last_modified: float | None = None
        self._reload_callbacks: list[Callable[[], None]] = []
        self._stop_watching = threading.Event()
        self._watch_thread: threading.Thread | None = None

    @classmethod
    def create_from_file(cls, settings_path: str) -> "SettingsStore":
        """
        Factory method to create a SettingsStore with loaded settings.

        Args:
            settings_path: Path to the settings file.

        Returns:
            SettingsStore instance with loaded settings

        Raises:
            RuntimeError: If settings fail to load
        """
        store = cls(settings_path)
        if not store.load_configuration():
            raise RuntimeError(f"Failed to load settings from {store.settings_path}")
        return store

    def load_configuration(self) -> bool:
        """
        Load settings from file

        A missing settings file is not an error: every server then runs with
        default settings.

        Returns:
            True if settings loaded successfully, False otherwise
        """
        try:
            if not self.settings_path.exists():
                self.logger.info(
                    f"Settings file not found, using defaults: {self.settings_path}"
                )
                self._data = {}
                return True

            self.logger.info(f"Loading settings from {self.settings_path}")
            with open(self.settings_path, encoding="utf-8") as f:
                data = json.load(f)

            self._validate_settings(data)
            self._data = data
            self.logger.info(f"✅ Successfully loaded settings from {self.settings_path}")
            return True

        except Exception as e:
            self.logger.error(f"❌ Failed to load settings: {e}")
            return False

    def _validate_settings(self, data: Any) -> None:
        """Validate the top-level structure and every server block"""
        if not isinstance(data, dict):
            raise ValueError("Settings file must contain a JSON object")

        lsp_blocks = data.get("lsp", {})
        if not isinstance(lsp_blocks, dict):
            raise ValueError("'lsp' must be a dictionary")
        for server_id, block in lsp_blocks.items():
            try:
                LspSettings.from_dict(block)
            except ValueError as e:
                raise ValueError(f"Invalid settings for server '{server_id}': {e}") from e

        workspaces = data.get("workspaces", {})
        if not isinstance(workspaces, dict):
            raise ValueError("'workspaces' must be a dictionary")
        for workspace, workspace_data in workspaces.items():
            if not isinstance(workspace_data, dict):
                raise ValueError(f"Workspace '{workspace}' settings must be a dictionary")
            workspace_blocks = workspace_data.get("lsp", {})
            if not isinstance(workspace_blocks, dict):
                raise ValueError(f"Workspace '{workspace}' 'lsp' must be a dictionary")
            for server_id, workspace_block in workspace_blocks.items():
                if not isinstance(workspace_block, dict):
                    raise ValueError(
                        f"Workspace '{workspace}' settings for server '{server_id}' "
                        f"must be a dictionary"
                    )
                merged = dict(lsp_blocks.get(server_id) or {})
                merged.update(workspace_block)
                try:
                    LspSettings.from_dict(merged)
                except ValueError as e:
                    raise ValueError(
                        f"Invalid settings for server '{server_id}' in workspace "
                        f"'{workspace}': {e}"
                    ) from e

    def _raw_block(self, server_id: str, workspace_root: str | None) -> dict[str, Any]:
        block: dict[str, Any] = dict(self._data.get("lsp", {}).get(server_id) or {})
        if workspace_root:
            key = os.path.abspath(os.path.expanduser(workspace_root))
            workspace_data = self._data.get("workspaces", {}).get(key) or {}
            workspace_block = workspace_data.get("lsp", {}).get(server_id) or {}
            block.update(workspace_block)
        return block

    def lsp_settings(self, server_id: str, workspace_root: str) -> LspSettings:
        """
        Get language server settings for a workspace

        Args:
            server_id: Language server identifier (e.g. 'emmylua')
            workspace_root: Workspace root path

        Returns:
            LspSettings for the server, defaults if nothing is configured
        """
        return LspSettings.from_dict(self._raw_block(server_id, workspace_root))

    def add_reload_callback(self, callback: Callable[[], None]) -> None:
        """
        Add a callback function to be called when settings are reloaded

        Args:
            callback: Function to call when settings change
        """
        self._reload_callbacks.append(callback)

    def check_for_config_changes(self) -> bool:
        """
        Check if the settings file has been modified and reload if necessary

        Returns:
            True if settings were reloaded, False otherwise
        """
        if not self.settings_path.exists():
            return False

        try:
            current_modified = self.settings_path.stat().st_mtime

            # Initialize on first check
            if self._last_modified is None:
                self._last_modified = current_modified
                return False

            if current_modified > self._last_modified:
                self.logger.info(f"Settings file changed, reloading: {self.settings_path}")

                previous = self._data
                if self.load_configuration():
                    self._last_modified = current_modified

                    if self._data == previous:
                        self.logger.debug("Settings content unchanged after reload")
                        return False

                    for callback in self._reload_callbacks:
                        try:
                            callback()
                        except Exception as e:
                            self.logger.error(f"❌ Error in reload callback: {e}")

                    return True
                else:
                    self.logger.error(
                        "❌ Failed to reload settings, keeping previous version"
                    )
                    # Reset modification time to avoid repeated reload attempts
                    self._last_modified = current_modified
                    self._data = previous

            return False

        except OSError as e:
            self.logger.error(f"❌ Error checking settings file: {e}")
            return False

    def start_watching_config(self, check_interval: float = 1.0) -> threading.Thread:
        """
        Start watching the settings file for changes

        Args:
            check_interval: How often to check for changes in seconds

        Returns:
            The daemon thread running the watch loop
        """
        if self._watch_thread is not None and self._watch_thread.is_alive():
            return self._watch_thread

        self._stop_watching.clear()

        def watch_loop():
            while not self._stop_watching.is_set():
                try:
                    self.check_for_config_changes()
                except Exception as e:
                    self.logger.error(f"❌ Error in settings watcher: {e}")
                self._stop_watching.wait(check_interval)

        self._watch_thread = threading.Thread(target=watch_loop, daemon=True)
        self._watch_thread.start()
        self.logger.info(f"✅ Started watching settings file: {self.settings_path}")
        return self._watch_thread

    def stop_watching_config(self, timeout: float = 5.0) -> None:
        """
        Stop the settings watcher and wait for its thread to exit

        Args:
            timeout: Maximum seconds to wait for the thread
        """
        self._stop_watching.set()
        if self._watch_thread is not None:
            self._watch_thread.join(timeout)
            self._watch_thread = None
        self.logger.info(f"Stopped watching settings file: {self.settings_path}")
