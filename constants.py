#!/usr/bin/env python3

"""
Shared constants for the EmmyLua bridge.

This file contains constants used across the provisioning and configuration modules.
"""

from pathlib import Path

# Language server identity
SERVER_ID = "emmylua"
BINARY_BASENAME = "emmylua_ls"
ASSET_PREFIX = f"{BINARY_BASENAME}-"

# Upstream release source
GITHUB_RELEASE_REPO = "EmmyLuaLs/emmylua-analyzer-rust"
GITHUB_API_URL = "https://api.github.com"
GITHUB_API_VERSION = "2022-11-28"

# Version selection
LATEST_VERSION = "latest"
UPDATE_CHECK_INTERVAL_SECONDS = 24 * 60 * 60

# Network
DEFAULT_HTTP_TIMEOUT = 30.0
DOWNLOAD_CHUNK_SIZE = 8192

# Workspace configuration
PROJECT_CONFIG_FILENAME = ".emmyrc.json"

# Arguments handed to a managed server binary
DEFAULT_SERVER_ARGUMENTS = ["-c", "stdio", "--log-level", "error"]

# Local storage
DATA_DIR = Path.home() / ".local" / "share" / "emmylua-bridge"
CACHE_DIR = DATA_DIR / "bin"
LOG_DIR = DATA_DIR / "logs"
SETTINGS_PATH = DATA_DIR / "settings.json"
INSTALLATION_STATE_FILENAME = "installation.json"
VERSIONS_DIRNAME = "versions"
STAGING_PREFIX = ".staging-"

# Environment variables
ENV_SETTINGS_PATH = "EMMYLUA_BRIDGE_SETTINGS"
ENV_CACHE_DIR = "EMMYLUA_BRIDGE_CACHE_DIR"
ENV_GITHUB_TOKEN = "GITHUB_TOKEN"
