"""
Language Server Settings Model

Typed view of the settings block the editor keeps for the language server.
Only the binary override and version selector are interpreted here; the
initialization options are passed through untouched.
"""

from dataclasses import dataclass, field
from typing import Any

from constants import LATEST_VERSION


@dataclass
class BinarySettings:
    """User override for the server executable."""

    path: str | None = None
    arguments: list[str] | None = None
    env: dict[str, str] = field(default_factory=dict)

    def __post_init__(self):
        """Validate binary settings after initialization"""
        if self.path is not None:
            if not isinstance(self.path, str):
                raise ValueError(
                    f"binary.path must be a string, got {type(self.path).__name__}"
                )
            if not self.path.strip():
                raise ValueError("binary.path cannot be empty or whitespace")
        if self.arguments is not None:
            if not isinstance(self.arguments, list) or not all(
                isinstance(arg, str) for arg in self.arguments
            ):
                raise ValueError("binary.arguments must be a list of strings")
        if not isinstance(self.env, dict) or not all(
            isinstance(k, str) and isinstance(v, str) for k, v in self.env.items()
        ):
            raise ValueError("binary.env must map strings to strings")

    @property
    def has_override(self) -> bool:
        return self.path is not None

    @classmethod
    def from_dict(cls, data: dict[str, Any] | None) -> "BinarySettings":
        if data is None:
            return cls()
        if not isinstance(data, dict):
            raise ValueError("binary settings must be a dictionary")
        return cls(
            path=data.get("path"),
            arguments=data.get("arguments"),
            env=data.get("env") or {},
        )


@dataclass
class LspSettings:
    """Settings block for one language server."""

    binary: BinarySettings = field(default_factory=BinarySettings)
    initialization_options: dict[str, Any] | None = None
    settings: dict[str, Any] | None = None
    version: str = LATEST_VERSION

    def __post_init__(self):
        """Validate settings after initialization"""
        for name in ("initialization_options", "settings"):
            value = getattr(self, name)
            if value is not None and not isinstance(value, dict):
                raise ValueError(
                    f"{name} must be a dictionary, got {type(value).__name__}"
                )
        if not isinstance(self.version, str) or not self.version.strip():
            raise ValueError("version must be a non-empty string")
        self.version = self.version.strip()

    @classmethod
    def from_dict(cls, data: dict[str, Any] | None) -> "LspSettings":
        """Create LspSettings from the raw settings dictionary

        Args:
            data: Settings block as stored by the editor, or None

        Returns:
            LspSettings instance

        Raises:
            ValueError: If the binary override or version is malformed
        """
        if data is None:
            return cls()
        if not isinstance(data, dict):
            raise ValueError("language server settings must be a dictionary")

        return cls(
            binary=BinarySettings.from_dict(data.get("binary")),
            initialization_options=data.get("initialization_options"),
            settings=data.get("settings"),
            version=data.get("version") or LATEST_VERSION,
        )

    def user_configuration(self) -> dict[str, Any]:
        """Return the user's configuration mapping.

        `settings` is layered beneath `initialization_options`, one top-level
        key at a time.
        """
        merged: dict[str, Any] = {}
        if self.settings:
            merged.update(self.settings)
        if self.initialization_options:
            merged.update(self.initialization_options)
        return merged
