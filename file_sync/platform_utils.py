"""
Cross-platform utilities for File Sync.

Centralises OS detection and the application directories so every other
module can import a single canonical set of helpers rather than scattering
``sys.platform`` checks throughout the codebase.

Supported platforms:
  - Linux (primary; rsync and ssh are expected on PATH)
  - macOS 12+ (Monterey and newer)
  - Windows (best-effort; needs rsync/ssh from Cygwin, MSYS2 or WSL)
"""

from __future__ import annotations

import logging
import os
import shutil
import sys
from pathlib import Path

logger = logging.getLogger(__name__)

# ---- platform flags ----------------------------------------------------

IS_WINDOWS: bool = sys.platform == "win32"
IS_MACOS: bool = sys.platform == "darwin"

# ---- directories -------------------------------------------------------


def get_config_dir() -> Path:
    """
    Return the application config directory, created if needed.

    - Windows : ``%APPDATA%\\FileSync``
    - macOS   : ``~/Library/Application Support/FileSync``
    - Linux   : ``$XDG_CONFIG_HOME/FileSync`` (default ``~/.config``)
    """
    if IS_WINDOWS:
        base = os.environ.get("APPDATA", str(Path.home()))
    elif IS_MACOS:
        base = str(Path.home() / "Library" / "Application Support")
    else:
        base = os.environ.get("XDG_CONFIG_HOME", str(Path.home() / ".config"))

    config_dir = Path(base) / "FileSync"
    config_dir.mkdir(parents=True, exist_ok=True)
    return config_dir


def get_log_path() -> Path:
    """Return the path to the log file (inside the config directory)."""
    return get_config_dir() / "file_sync.log"


# ---- external tools ----------------------------------------------------

REQUIRED_TOOLS = ("rsync", "ssh")

_INSTALL_HINTS = {
    "rsync": "apt-get install rsync  |  yum install rsync  |  brew install rsync",
    "ssh": "apt-get install openssh-client  |  yum install openssh-clients",
}


def find_missing_tools(tools: tuple[str, ...] = REQUIRED_TOOLS) -> list[str]:
    """Return the names in *tools* that cannot be found on PATH."""
    missing = [tool for tool in tools if shutil.which(tool) is None]
    for tool in missing:
        logger.error("Missing dependency: %s", tool)
        hint = _INSTALL_HINTS.get(tool)
        if hint:
            logger.error("  install with: %s", hint)
    return missing
