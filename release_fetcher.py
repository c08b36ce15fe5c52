"""
Release Fetcher

Resolves a version selector against the upstream GitHub release index, downloads
the archive built for the host platform and extracts the server executable into
the version-keyed cache directory.
"""

import logging
import os
import re
import tarfile
import zipfile
from dataclasses import dataclass, field
from pathlib import Path, PurePosixPath
from typing import Any

from constants import (
    GITHUB_API_URL,
    GITHUB_API_VERSION,
    GITHUB_RELEASE_REPO,
    LATEST_VERSION,
    VERSIONS_DIRNAME,
)
from host_capabilities import Downloader, FileSystem
from platform_resolver import PlatformId
from provisioning_errors import (
    ExtractionFailedError,
    FetchFailedError,
    NoMatchingArtifactError,
    ProvisioningFailedError,
)

_VERSION_PATTERN = re.compile(r"^[A-Za-z0-9][A-Za-z0-9._+-]*$")


@dataclass(frozen=True)
class VersionSelector:
    """Either the latest release or a pinned release tag."""

    value: str = LATEST_VERSION

    def __post_init__(self):
        if self.value != LATEST_VERSION and not _VERSION_PATTERN.match(self.value):
            raise ValueError(f"Invalid version selector: {self.value!r}")

    @property
    def is_latest(self) -> bool:
        return self.value == LATEST_VERSION

    @classmethod
    def latest(cls) -> "VersionSelector":
        return cls(LATEST_VERSION)

    @classmethod
    def pinned(cls, version: str) -> "VersionSelector":
        return cls(version.strip())

    @classmethod
    def parse(cls, text: str | None) -> "VersionSelector":
        """Create a selector from a settings value; empty means latest."""
        if text is None or not text.strip():
            return cls.latest()
        return cls(text.strip())

    def __str__(self) -> str:
        return self.value


@dataclass
class ReleaseAsset:
    """A downloadable file attached to a release."""

    name: str
    download_url: str
    size: int = 0


@dataclass
class Release:
    """A published release of the language server."""

    version: str
    assets: list[ReleaseAsset] = field(default_factory=list)
    prerelease: bool = False
    draft: bool = False

    @classmethod
    def from_api(cls, data: Any) -> "Release":
        """Create a Release from a GitHub API release object

        Raises:
            FetchFailedError: If the release object is malformed
        """
        if not isinstance(data, dict):
            raise FetchFailedError("Release index returned a non-object release")

        version = data.get("tag_name")
        if not isinstance(version, str) or not _VERSION_PATTERN.match(version):
            raise FetchFailedError(f"Release index returned invalid tag: {version!r}")

        assets = []
        for asset in data.get("assets") or []:
            try:
                assets.append(
                    ReleaseAsset(
                        name=asset["name"],
                        download_url=asset["browser_download_url"],
                        size=asset.get("size", 0),
                    )
                )
            except (KeyError, TypeError) as e:
                raise FetchFailedError(
                    f"Release {version} has a malformed asset entry: {e}"
                ) from e

        return cls(
            version=version,
            assets=assets,
            prerelease=bool(data.get("prerelease", False)),
            draft=bool(data.get("draft", False)),
        )

    def find_asset(self, name: str) -> ReleaseAsset | None:
        for asset in self.assets:
            if asset.name == name:
                return asset
        return None


class ReleaseFetcher:
    """Downloads language server releases into the cache."""

    def __init__(
        self,
        downloader: Downloader,
        filesystem: FileSystem,
        cache_root: Path,
        repo: str = GITHUB_RELEASE_REPO,
        api_url: str = GITHUB_API_URL,
        token: str | None = None,
        logger: logging.Logger | None = None,
    ):
        """
        Initialize the release fetcher.

        Args:
            downloader: Downloader used for the release index and assets
            filesystem: FileSystem used for staging and promotion
            cache_root: Directory holding staging directories and installed versions
            repo: GitHub 'owner/name' slug publishing the releases
            api_url: Base URL of the GitHub REST API
            token: Optional GitHub token, raises the API rate limit
            logger: Logger instance, defaults to the module logger
        """
        self.downloader = downloader
        self.filesystem = filesystem
        self.cache_root = Path(cache_root)
        self.repo = repo
        self.api_url = api_url.rstrip("/")
        self.token = token
        self.logger = logger or logging.getLogger(__name__)

    def _headers(self) -> dict[str, str]:
        headers = {
            "Accept": "application/vnd.github+json",
            "X-GitHub-Api-Version": GITHUB_API_VERSION,
        }
        if self.token:
            headers["Authorization"] = f"Bearer {self.token}"
        return headers

    @property
    def versions_root(self) -> Path:
        """Directory holding one subdirectory per installed version."""
        return self.cache_root / VERSIONS_DIRNAME

    def install_path(self, version: str, platform_id: PlatformId) -> Path:
        """Deterministic location of an installed version's executable."""
        return self.versions_root / version / platform_id.binary_name

    def resolve_release(self, selector: VersionSelector) -> Release:
        """Resolve a selector against the release index

        Args:
            selector: Latest or pinned version

        Returns:
            The matching Release

        Raises:
            FetchFailedError: If the index is unreachable or the release unusable
        """
        if selector.is_latest:
            url = f"{self.api_url}/repos/{self.repo}/releases/latest"
        else:
            url = f"{self.api_url}/repos/{self.repo}/releases/tags/{selector.value}"

        self.logger.debug(f"Resolving release '{selector}' from {url}")
        release = Release.from_api(self.downloader.get_json(url, headers=self._headers()))

        if selector.is_latest and (release.draft or release.prerelease):
            raise FetchFailedError(
                f"Release index reported {release.version} as latest but it is not a final release"
            )
        if not release.assets:
            raise FetchFailedError(f"Release {release.version} has no assets yet")

        self.logger.info(f"Resolved release '{selector}' to {release.version}")
        return release

    def fetch(
        self, platform_id: PlatformId, selector: VersionSelector
    ) -> tuple[str, Path]:
        """Download and install the server for a platform

        The executable is staged in a temporary directory inside the cache root
        and moved into place with a single rename, so an interrupted fetch never
        leaves a half-written executable at the install path.

        Args:
            platform_id: Platform whose artifact to install
            selector: Latest or pinned version

        Returns:
            Tuple of (installed version, executable path)

        Raises:
            FetchFailedError: If the index or asset cannot be retrieved
            NoMatchingArtifactError: If the release has no asset for the platform
            ExtractionFailedError: If the archive is corrupt or lacks the executable
            ProvisioningFailedError: If the cache cannot be written
        """
        release = self.resolve_release(selector)

        asset = release.find_asset(platform_id.asset_name)
        if asset is None:
            raise NoMatchingArtifactError(
                release.version,
                platform_id.asset_name,
                [a.name for a in release.assets],
            )

        try:
            staging_dir = self.filesystem.make_staging_dir(self.cache_root)
        except OSError as e:
            raise ProvisioningFailedError(
                f"Could not create staging directory in {self.cache_root}: {e}"
            ) from e

        try:
            archive_path = staging_dir / asset.name
            self.logger.info(
                f"Downloading {asset.name} ({release.version}) from {asset.download_url}"
            )
            self.downloader.download(
                asset.download_url, archive_path, headers=self._download_headers()
            )

            extract_dir = staging_dir / "extracted"
            extract_archive(archive_path, extract_dir)
            binary_path = find_binary(extract_dir, platform_id.binary_name)

            destination = self.install_path(release.version, platform_id)
            try:
                self.filesystem.make_executable(binary_path)
                self.filesystem.promote(binary_path, destination)
            except OSError as e:
                raise ProvisioningFailedError(
                    f"Could not install {platform_id.binary_name} to {destination}: {e}"
                ) from e

            self.logger.info(f"✅ Installed {release.version} at {destination}")
            return release.version, destination
        finally:
            self.filesystem.remove_tree(staging_dir)

    def _download_headers(self) -> dict[str, str]:
        headers = {"Accept": "application/octet-stream"}
        if self.token:
            headers["Authorization"] = f"Bearer {self.token}"
        return headers


def _check_member_name(name: str) -> None:
    path = PurePosixPath(name.replace("\\", "/"))
    if path.is_absolute() or ".." in path.parts or re.match(r"^[A-Za-z]:", name):
        raise ExtractionFailedError(f"Archive member has an unsafe path: {name}")


def extract_archive(archive_path: Path, extract_dir: Path) -> None:
    """Extract a .tar.gz or .zip archive

    Raises:
        ExtractionFailedError: If the archive is corrupt, of an unknown format,
            or contains members that would escape extract_dir
    """
    name = archive_path.name
    os.makedirs(extract_dir, exist_ok=True)
    try:
        if name.endswith((".tar.gz", ".tgz")):
            with tarfile.open(archive_path, "r:gz") as tar:
                for member in tar.getmembers():
                    _check_member_name(member.name)
                tar.extractall(extract_dir, filter="data")
        elif name.endswith(".zip"):
            with zipfile.ZipFile(archive_path) as zip_ref:
                for member_name in zip_ref.namelist():
                    _check_member_name(member_name)
                zip_ref.extractall(extract_dir)
        else:
            raise ExtractionFailedError(f"Unsupported archive format: {name}")
    except ExtractionFailedError:
        raise
    except (tarfile.TarError, zipfile.BadZipFile, EOFError, OSError) as e:
        raise ExtractionFailedError(f"Failed to extract {name}: {e}") from e


def find_binary(extract_dir: Path, binary_name: str) -> Path:
    """Locate the server executable inside an extracted archive

    Well-known locations are checked first, then the whole tree.

    Raises:
        ExtractionFailedError: If the executable is not in the archive
    """
    stem = binary_name.removesuffix(".exe")
    common_paths = [
        extract_dir / binary_name,
        extract_dir / "bin" / binary_name,
        extract_dir / stem / binary_name,
        extract_dir / stem / "bin" / binary_name,
    ]
    for path in common_paths:
        if path.is_file():
            return path

    for path in sorted(extract_dir.rglob(binary_name)):
        if path.is_file():
            return path

    contents = sorted(
        str(p.relative_to(extract_dir)) for p in extract_dir.rglob("*")
    )[:20]
    raise ExtractionFailedError(
        f"Archive does not contain '{binary_name}'. Contents: {contents or 'empty'}"
    )
