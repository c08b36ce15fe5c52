"""
Provisioning error definitions for the EmmyLua bridge.

Provides a typed exception for every way provisioning can fail so the host can
tell an unfixable failure (unsupported platform) from a retry-worthy one
(network trouble) and present a specific diagnostic.
"""

import enum


class ProvisioningErrorKind(enum.Enum):
    """Kinds of provisioning failure reported to the host."""

    UNSUPPORTED_PLATFORM = "unsupported_platform"
    FETCH_FAILED = "fetch_failed"
    NO_MATCHING_ARTIFACT = "no_matching_artifact"
    EXTRACTION_FAILED = "extraction_failed"
    PROVISIONING_FAILED = "provisioning_failed"


class BridgeError(Exception):
    """Base class for all errors raised by the bridge."""

    kind: ProvisioningErrorKind = ProvisioningErrorKind.PROVISIONING_FAILED
    retryable: bool = True

    def __init__(self, reason: str):
        self.reason = reason
        super().__init__(reason)

    def to_dict(self) -> dict:
        """Serialize the error for host-side diagnostics."""
        return {
            "kind": self.kind.value,
            "reason": self.reason,
            "retryable": self.retryable,
            "description": get_error_description(self.kind),
        }


class UnsupportedPlatformError(BridgeError):
    """The host os/arch pair has no published artifact."""

    kind = ProvisioningErrorKind.UNSUPPORTED_PLATFORM
    retryable = False

    def __init__(self, os_name: str, arch: str):
        self.os_name = os_name
        self.arch = arch
        super().__init__(f"unsupported platform/architecture: {os_name}/{arch}")


class FetchFailedError(BridgeError):
    """The release index or an asset download could not be retrieved."""

    kind = ProvisioningErrorKind.FETCH_FAILED


class NoMatchingArtifactError(BridgeError):
    """A release exists but carries no asset for the requested platform."""

    kind = ProvisioningErrorKind.NO_MATCHING_ARTIFACT

    def __init__(self, version: str, asset_name: str, available: list[str]):
        self.version = version
        self.asset_name = asset_name
        self.available = available
        message = f"release {version} has no asset named '{asset_name}'"
        if available:
            message += f". Available assets: {', '.join(available)}"
        else:
            message += ". The release has no assets."
        super().__init__(message)


class ExtractionFailedError(BridgeError):
    """The downloaded archive is corrupt or lacks the server executable."""

    kind = ProvisioningErrorKind.EXTRACTION_FAILED


class ProvisioningFailedError(BridgeError):
    """The cache could not be written or the installed binary prepared."""

    kind = ProvisioningErrorKind.PROVISIONING_FAILED


def get_error_description(kind: ProvisioningErrorKind) -> str:
    """Get human-readable description of an error kind."""
    descriptions = {
        ProvisioningErrorKind.UNSUPPORTED_PLATFORM: "No language server build is published for this operating system and architecture",
        ProvisioningErrorKind.FETCH_FAILED: "Could not reach the language server release index or download the release",
        ProvisioningErrorKind.NO_MATCHING_ARTIFACT: "The release does not (yet) contain a build for this platform",
        ProvisioningErrorKind.EXTRACTION_FAILED: "The downloaded language server archive is corrupt or incomplete",
        ProvisioningErrorKind.PROVISIONING_FAILED: "The language server could not be installed into the local cache",
    }
    return descriptions.get(kind, f"Unknown error kind: {kind}")
