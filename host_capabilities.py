"""
Host Capabilities

Interfaces for the primitives the host runtime provides to the bridge
(settings retrieval, process spawning, downloads and filesystem access),
together with default implementations backed by the local machine.

Provisioning and configuration code only talks to these interfaces, so tests
can inject fakes without touching the network or the real cache directory.
"""

import abc
import json
import logging
import os
import shutil
import stat
import subprocess
import tempfile
from pathlib import Path
from typing import Any

import requests

from constants import DEFAULT_HTTP_TIMEOUT, DOWNLOAD_CHUNK_SIZE, STAGING_PREFIX
from lsp_server_manager import LaunchCommand
from lsp_settings import LspSettings
from provisioning_errors import FetchFailedError, ProvisioningFailedError

logger = logging.getLogger(__name__)

_EXECUTE_BITS = stat.S_IXUSR | stat.S_IXGRP | stat.S_IXOTH


class SettingsProvider(abc.ABC):
    """Source of per-workspace language server settings."""

    @abc.abstractmethod
    def lsp_settings(self, server_id: str, workspace_root: str) -> LspSettings:
        """Get the settings block for a server in a workspace."""
        pass


class ProcessSpawner(abc.ABC):
    """Starts the language server process."""

    @abc.abstractmethod
    def spawn(self, command: LaunchCommand, cwd: str) -> Any:
        """Spawn the server and return a handle to the running process."""
        pass


class Downloader(abc.ABC):
    """Retrieves release metadata and release assets."""

    @abc.abstractmethod
    def get_json(self, url: str, headers: dict[str, str] | None = None) -> Any:
        """Fetch and decode a JSON document.

        Raises:
            FetchFailedError: If the document cannot be retrieved or decoded
        """
        pass

    @abc.abstractmethod
    def download(
        self, url: str, destination: Path, headers: dict[str, str] | None = None
    ) -> None:
        """Download a file to destination.

        Raises:
            FetchFailedError: If the download does not complete
        """
        pass


class FileSystem(abc.ABC):
    """Filesystem operations used by the binary cache."""

    @abc.abstractmethod
    def exists(self, path: Path) -> bool:
        pass

    @abc.abstractmethod
    def is_file(self, path: Path) -> bool:
        pass

    @abc.abstractmethod
    def read_text(self, path: Path) -> str:
        pass

    @abc.abstractmethod
    def write_text_atomic(self, path: Path, content: str) -> None:
        """Write content so readers see either the old or the new file."""
        pass

    @abc.abstractmethod
    def make_staging_dir(self, parent: Path) -> Path:
        """Create a private temporary directory under parent."""
        pass

    @abc.abstractmethod
    def promote(self, source: Path, destination: Path) -> None:
        """Atomically move source over destination."""
        pass

    @abc.abstractmethod
    def remove_tree(self, path: Path) -> None:
        pass

    @abc.abstractmethod
    def list_dir(self, path: Path) -> list[Path]:
        pass

    @abc.abstractmethod
    def make_executable(self, path: Path) -> None:
        pass

    @abc.abstractmethod
    def is_executable(self, path: Path) -> bool:
        pass


class LocalFileSystem(FileSystem):
    """FileSystem backed by the local disk."""

    def exists(self, path: Path) -> bool:
        return Path(path).exists()

    def is_file(self, path: Path) -> bool:
        return Path(path).is_file()

    def read_text(self, path: Path) -> str:
        return Path(path).read_text(encoding="utf-8")

    def write_text_atomic(self, path: Path, content: str) -> None:
        path = Path(path)
        path.parent.mkdir(parents=True, exist_ok=True)
        fd, temp_name = tempfile.mkstemp(
            prefix=STAGING_PREFIX, dir=str(path.parent), text=True
        )
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                f.write(content)
            os.replace(temp_name, path)
        except BaseException:
            Path(temp_name).unlink(missing_ok=True)
            raise

    def make_staging_dir(self, parent: Path) -> Path:
        parent = Path(parent)
        parent.mkdir(parents=True, exist_ok=True)
        return Path(tempfile.mkdtemp(prefix=STAGING_PREFIX, dir=str(parent)))

    def promote(self, source: Path, destination: Path) -> None:
        destination = Path(destination)
        destination.parent.mkdir(parents=True, exist_ok=True)
        os.replace(source, destination)

    def remove_tree(self, path: Path) -> None:
        path = Path(path)
        if path.is_dir():
            shutil.rmtree(path, ignore_errors=True)
        else:
            path.unlink(missing_ok=True)

    def list_dir(self, path: Path) -> list[Path]:
        path = Path(path)
        if not path.is_dir():
            return []
        return sorted(path.iterdir())

    def make_executable(self, path: Path) -> None:
        # Windows has no execute bit
        if os.name == "nt":
            return
        path = Path(path)
        mode = path.stat().st_mode
        path.chmod(mode | _EXECUTE_BITS)

    def is_executable(self, path: Path) -> bool:
        if os.name == "nt":
            return Path(path).is_file()
        return os.access(path, os.X_OK)


class RequestsDownloader(Downloader):
    """Downloader backed by a requests session."""

    def __init__(
        self,
        timeout: float = DEFAULT_HTTP_TIMEOUT,
        session: requests.Session | None = None,
    ):
        self.timeout = timeout
        self.session = session or requests.Session()

    def get_json(self, url: str, headers: dict[str, str] | None = None) -> Any:
        logger.debug(f"GET {url}")
        try:
            response = self.session.get(url, headers=headers, timeout=self.timeout)
            response.raise_for_status()
            return response.json()
        except requests.Timeout as e:
            raise FetchFailedError(f"Request to {url} timed out: {e}") from e
        except requests.RequestException as e:
            raise FetchFailedError(f"Request to {url} failed: {e}") from e
        except ValueError as e:
            raise FetchFailedError(f"Invalid JSON returned by {url}: {e}") from e

    def download(
        self, url: str, destination: Path, headers: dict[str, str] | None = None
    ) -> None:
        logger.debug(f"Downloading {url} to {destination}")
        try:
            with self.session.get(
                url, headers=headers, stream=True, timeout=self.timeout
            ) as response:
                response.raise_for_status()
                with open(destination, "wb") as f:
                    for chunk in response.iter_content(chunk_size=DOWNLOAD_CHUNK_SIZE):
                        if chunk:
                            f.write(chunk)
        except requests.Timeout as e:
            raise FetchFailedError(f"Download of {url} timed out: {e}") from e
        except requests.RequestException as e:
            raise FetchFailedError(f"Download of {url} failed: {e}") from e
        except OSError as e:
            raise ProvisioningFailedError(
                f"Could not write download to {destination}: {e}"
            ) from e


class SubprocessSpawner(ProcessSpawner):
    """ProcessSpawner that starts the server as a child process over stdio."""

    def spawn(self, command: LaunchCommand, cwd: str) -> subprocess.Popen:
        env = os.environ.copy()
        env.update(command.env)
        logger.info(f"Starting language server: {' '.join(command.to_argv())}")
        return subprocess.Popen(
            command.to_argv(),
            cwd=cwd,
            env=env,
            stdin=subprocess.PIPE,
            stdout=subprocess.PIPE,
            stderr=subprocess.PIPE,
        )


def describe_json(value: Any) -> str:
    """Short printable form of a JSON value for log lines."""
    text = json.dumps(value, sort_keys=True)
    return text if len(text) <= 200 else text[:200] + "..."
