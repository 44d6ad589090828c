"""
Platform abstraction for locating the League client
"""

from .base import Platform
from .desktop import LinuxPlatform, MacPlatform, WindowsPlatform


def detect_platform() -> Platform:
    """Auto-detect the current platform"""
    platforms = [
        WindowsPlatform(),
        MacPlatform(),
    ]

    for platform in platforms:
        if platform.detect():
            return platform

    # Anything else uses the XDG-style location
    return LinuxPlatform()


__all__ = ["Platform", "WindowsPlatform", "MacPlatform", "LinuxPlatform", "detect_platform"]
