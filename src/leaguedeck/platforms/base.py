"""
Base platform abstraction for locating the League client
"""

import logging
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Tuple

logger = logging.getLogger(__name__)


class Platform(ABC):
    """Base platform class for OS specific client locations"""

    name: str = "base"

    # Process names of the client UX process, compared case-insensitively
    client_process_names: Tuple[str, ...] = ("LeagueClientUx",)

    @abstractmethod
    def detect(self) -> bool:
        """
        Detect if this platform is currently running

        Returns:
            True if this platform is detected
        """
        pass

    @abstractmethod
    def lockfile_path(self) -> Path:
        """
        Location of the client lockfile on this platform

        Returns:
            Path to the lockfile (which may not exist)
        """
        pass

    def is_client_process(self, process_name: str) -> bool:
        """Check whether a process name belongs to the client UX process"""
        if not process_name:
            return False
        lowered = process_name.lower()
        return any(lowered == name.lower() for name in self.client_process_names)
