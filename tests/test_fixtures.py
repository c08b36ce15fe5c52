"""
Test fixtures and fake host capabilities for the EmmyLua bridge test suite.

This module provides fake implementations of the host capability interfaces
using dependency injection instead of unittest.mock patches.

Currently provides:
- FakeDownloader: Serves release index documents and archives from memory
- StaticSettingsProvider: Returns fixed settings per workspace
- RecordingSpawner: Records spawn requests instead of starting processes
- FakeClock: Controllable time source
- make_tar_gz / make_zip: Build release archives in memory

Usage:
    from tests.test_fixtures import FakeDownloader, make_tar_gz

    def test_something(tmp_path):
        downloader = FakeDownloader()
        downloader.add_release("0.9.0", {ASSET: make_tar_gz({"emmylua_ls": b"bin"})})
"""

import io
import tarfile
import zipfile
from pathlib import Path
from typing import Any

from constants import GITHUB_API_URL, GITHUB_RELEASE_REPO
from host_capabilities import Downloader, ProcessSpawner, SettingsProvider
from lsp_server_manager import LaunchCommand
from lsp_settings import LspSettings
from platform_resolver import PlatformId
from provisioning_errors import FetchFailedError

LINUX_ASSET = PlatformId.LINUX_X64.asset_name
RELEASES_URL = f"{GITHUB_API_URL}/repos/{GITHUB_RELEASE_REPO}/releases"


def make_tar_gz(members: dict[str, bytes], mode: int = 0o644) -> bytes:
    """Build a gzipped tarball holding the given members."""
    buffer = io.BytesIO()
    with tarfile.open(fileobj=buffer, mode="w:gz") as tar:
        for name, data in members.items():
            info = tarfile.TarInfo(name)
            info.size = len(data)
            info.mode = mode
            tar.addfile(info, io.BytesIO(data))
    return buffer.getvalue()


def make_zip(members: dict[str, bytes]) -> bytes:
    """Build a zip archive holding the given members."""
    buffer = io.BytesIO()
    with zipfile.ZipFile(buffer, "w") as zip_ref:
        for name, data in members.items():
            zip_ref.writestr(name, data)
    return buffer.getvalue()


def server_archive(content: bytes = b"#!/bin/sh\necho emmylua\n") -> bytes:
    """A Linux release archive with the executable at its root."""
    return make_tar_gz({"emmylua_ls": content})


class FakeDownloader(Downloader):
    """In-memory release index and asset host."""

    def __init__(self):
        self.documents: dict[str, Any] = {}
        self.files: dict[str, bytes] = {}
        self.json_requests: list[str] = []
        self.downloads: list[str] = []
        self.headers: list[dict[str, str] | None] = []
        self.fail_index = False
        self.fail_downloads = False

    def add_release(
        self,
        version: str,
        assets: dict[str, bytes],
        latest: bool = True,
        prerelease: bool = False,
    ) -> dict[str, Any]:
        """Publish a release; with latest=True it also becomes /releases/latest."""
        release = {
            "tag_name": version,
            "draft": False,
            "prerelease": prerelease,
            "assets": [
                {
                    "name": name,
                    "browser_download_url": f"https://downloads.invalid/{version}/{name}",
                    "size": len(data),
                }
                for name, data in assets.items()
            ],
        }
        for name, data in assets.items():
            self.files[f"https://downloads.invalid/{version}/{name}"] = data
        self.documents[f"{RELEASES_URL}/tags/{version}"] = release
        if latest:
            self.documents[f"{RELEASES_URL}/latest"] = release
        return release

    def get_json(self, url: str, headers: dict[str, str] | None = None) -> Any:
        self.json_requests.append(url)
        self.headers.append(headers)
        if self.fail_index:
            raise FetchFailedError(f"Request to {url} failed: connection refused")
        if url not in self.documents:
            raise FetchFailedError(f"Request to {url} failed: 404 Not Found")
        return self.documents[url]

    def download(
        self, url: str, destination: Path, headers: dict[str, str] | None = None
    ) -> None:
        self.downloads.append(url)
        if self.fail_downloads:
            raise FetchFailedError(f"Download of {url} failed: connection reset")
        if url not in self.files:
            raise FetchFailedError(f"Download of {url} failed: 404 Not Found")
        Path(destination).write_bytes(self.files[url])


class StaticSettingsProvider(SettingsProvider):
    """Settings provider returning fixed settings blocks."""

    def __init__(self, settings: dict[str, Any] | None = None):
        self.default = settings
        self.per_workspace: dict[str, dict[str, Any]] = {}
        self.requests: list[tuple[str, str]] = []

    def set_workspace(self, workspace_root: str, settings: dict[str, Any]) -> None:
        self.per_workspace[workspace_root] = settings

    def lsp_settings(self, server_id: str, workspace_root: str) -> LspSettings:
        self.requests.append((server_id, workspace_root))
        return LspSettings.from_dict(self.per_workspace.get(workspace_root, self.default))


class RecordingSpawner(ProcessSpawner):
    """Records spawn requests instead of starting processes."""

    def __init__(self):
        self.spawned: list[tuple[LaunchCommand, str]] = []

    def spawn(self, command: LaunchCommand, cwd: str) -> Any:
        self.spawned.append((command, cwd))
        return {"argv": command.to_argv(), "cwd": cwd}


class FakeClock:
    """Controllable time source."""

    def __init__(self, now: float = 1_700_000_000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds
