"""
Configuration Bridge

Discovers the project configuration file at a workspace root and merges it with
the user's settings into the initialization payload handed to the server.

The bridge owns no copy of the server's configuration schema. Values are passed
through untouched and only the top-level keys take part in the merge: a key the
user sets replaces the project file's value for that key, every other key of the
project file passes through, and keys present in neither are left out so the
server applies its own defaults.
"""

import copy
import json
import logging
from pathlib import Path
from typing import Any

from constants import DEFAULT_SERVER_ARGUMENTS, PROJECT_CONFIG_FILENAME
from host_capabilities import FileSystem, LocalFileSystem, describe_json


class ConfigurationBridge:
    """Builds initialization payloads and launch arguments for workspaces."""

    def __init__(
        self,
        filesystem: FileSystem | None = None,
        config_filename: str = PROJECT_CONFIG_FILENAME,
        default_arguments: list[str] | None = None,
        logger: logging.Logger | None = None,
    ):
        self.filesystem = filesystem or LocalFileSystem()
        self.config_filename = config_filename
        self.default_arguments = list(
            DEFAULT_SERVER_ARGUMENTS if default_arguments is None else default_arguments
        )
        self.logger = logger or logging.getLogger(__name__)

    def project_config_path(self, workspace_root: str) -> Path:
        return Path(workspace_root) / self.config_filename

    def discover_project_config(self, workspace_root: str) -> dict[str, Any] | None:
        """Read the project configuration file directly under workspace_root

        Subdirectories are not searched. A file that is not valid JSON, or whose
        top level is not an object, is left out of the payload; the server reads
        the same file and reports the problem itself.

        Args:
            workspace_root: Workspace root path

        Returns:
            The parsed configuration, or None if absent or unusable
        """
        config_path = self.project_config_path(workspace_root)
        if not self.filesystem.is_file(config_path):
            self.logger.debug(f"No project configuration at {config_path}")
            return None

        try:
            data = json.loads(self.filesystem.read_text(config_path))
        except (OSError, UnicodeDecodeError) as e:
            self.logger.warning(f"❌ Could not read {config_path}: {e}")
            return None
        except ValueError as e:
            self.logger.warning(
                f"❌ {config_path} is not valid JSON, leaving it to the server: {e}"
            )
            return None

        if not isinstance(data, dict):
            self.logger.warning(
                f"❌ {config_path} does not contain a JSON object, leaving it to the server"
            )
            return None

        self.logger.info(f"✅ Found project configuration: {config_path}")
        return data

    def build_launch_config(
        self, workspace_root: str, user_settings: dict[str, Any] | None
    ) -> dict[str, Any]:
        """Merge project configuration and user settings

        Args:
            workspace_root: Workspace root path
            user_settings: User-supplied configuration mapping, or None

        Returns:
            Initialization payload for the server
        """
        payload: dict[str, Any] = {}

        project_config = self.discover_project_config(workspace_root)
        if project_config:
            payload.update(copy.deepcopy(project_config))

        if user_settings:
            overridden = sorted(k for k in user_settings if k in payload)
            if overridden:
                self.logger.debug(f"User settings override project keys: {overridden}")
            payload.update(copy.deepcopy(user_settings))

        self.logger.debug(f"Initialization payload for {workspace_root}: {describe_json(payload)}")
        return payload

    def launch_arguments(self, user_arguments: list[str] | None, managed: bool) -> list[str]:
        """Arguments for the server process

        Args:
            user_arguments: Arguments from the user's binary settings, if any
            managed: Whether the executable was provisioned by the bridge

        Returns:
            The user's arguments verbatim when given, the default stdio
            arguments for a managed binary, otherwise an empty list
        """
        if user_arguments is not None:
            return list(user_arguments)
        if managed:
            return list(self.default_arguments)
        return []
