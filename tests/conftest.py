"""
Pytest configuration and shared fixtures for the EmmyLua bridge tests.
"""

import logging

import pytest

from binary_cache import BinaryCache
from configuration_bridge import ConfigurationBridge
from extension_facade import EmmyLuaExtension
from host_capabilities import LocalFileSystem
from platform_resolver import PlatformId
from release_fetcher import ReleaseFetcher
from tests.test_fixtures import (
    FakeClock,
    FakeDownloader,
    RecordingSpawner,
    StaticSettingsProvider,
)


@pytest.fixture
def cache_root(tmp_path):
    """Cache directory isolated per test."""
    root = tmp_path / "cache"
    root.mkdir()
    return root


@pytest.fixture
def workspace(tmp_path):
    """Empty workspace root."""
    root = tmp_path / "workspace"
    root.mkdir()
    return root


@pytest.fixture
def filesystem():
    return LocalFileSystem()


@pytest.fixture
def downloader():
    return FakeDownloader()


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def fetcher(downloader, filesystem, cache_root):
    return ReleaseFetcher(
        downloader=downloader,
        filesystem=filesystem,
        cache_root=cache_root,
        logger=logging.getLogger("test.release_fetcher"),
    )


@pytest.fixture
def binary_cache(fetcher, filesystem, cache_root, clock):
    return BinaryCache(
        fetcher=fetcher,
        filesystem=filesystem,
        cache_root=cache_root,
        platform_resolver=lambda: PlatformId.LINUX_X64,
        clock=clock,
    )


@pytest.fixture
def settings_provider():
    return StaticSettingsProvider()


@pytest.fixture
def spawner():
    return RecordingSpawner()


@pytest.fixture
def status_log():
    return []


@pytest.fixture
def extension(settings_provider, binary_cache, fetcher, filesystem, spawner, status_log):
    return EmmyLuaExtension(
        settings_provider=settings_provider,
        binary_cache=binary_cache,
        release_fetcher=fetcher,
        bridge=ConfigurationBridge(filesystem=filesystem),
        spawner=spawner,
        status_callback=status_log.append,
    )
