"""
Language Server Extension Interface

This module provides the abstract interface a host runtime calls to start a
language server and feed it configuration, enabling pluggable server
implementations for different languages.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class InstallationStatus(Enum):
    """Installation progress reported to the host while provisioning."""

    NONE = "none"
    CHECKING_FOR_UPDATE = "checking_for_update"
    DOWNLOADING = "downloading"
    FAILED = "failed"


@dataclass
class LaunchCommand:
    """Command the host spawns to start the language server."""

    command: str
    args: list[str] = field(default_factory=list)
    env: dict[str, str] = field(default_factory=dict)

    def to_argv(self) -> list[str]:
        """Return the full argument vector for process spawning."""
        return [self.command, *self.args]


class LanguageServerExtension(ABC):
    """Abstract interface for a language server extension."""

    @abstractmethod
    def command(self, workspace_root: str) -> LaunchCommand:
        """Get the command that starts the server for a workspace."""
        pass

    @abstractmethod
    def workspace_configuration(
        self, workspace_root: str, user_settings: dict[str, Any] | None = None
    ) -> dict[str, Any]:
        """Get the initialization payload for a workspace."""
        pass
