"""
Desktop platforms the League client runs on
"""

import os
import sys
from pathlib import Path

from .base import Platform


class WindowsPlatform(Platform):
    name = "windows"
    client_process_names = ("LeagueClientUx.exe", "LeagueClientUx")

    def detect(self) -> bool:
        return sys.platform.startswith("win")

    def lockfile_path(self) -> Path:
        local_app_data = os.environ.get("LOCALAPPDATA")
        base = Path(local_app_data) if local_app_data else Path.home() / "AppData" / "Local"
        return base / "Riot Games" / "League of Legends" / "lockfile"


class MacPlatform(Platform):
    name = "macos"

    def detect(self) -> bool:
        return sys.platform == "darwin"

    def lockfile_path(self) -> Path:
        return (
            Path.home()
            / "Library"
            / "Application Support"
            / "Riot Games"
            / "League of Legends"
            / "lockfile"
        )


class LinuxPlatform(Platform):
    """Wine/Lutris installs expose the lockfile under ~/.config"""

    name = "linux"
    client_process_names = ("LeagueClientUx.exe", "LeagueClientUx")

    def detect(self) -> bool:
        return True

    def lockfile_path(self) -> Path:
        return Path.home() / ".config" / "leagueclient" / "lockfile"
