"""
Interface to the Stream Deck plugin host
"""

import logging
from abc import ABC, abstractmethod
from typing import Any, Awaitable, Dict, Optional, Union

logger = logging.getLogger(__name__)


class PluginHost(ABC):
    """
    The host plugin runtime as seen by leaguedeck.

    Implementations forward draw calls to the physical device. ``draw`` may
    return an awaitable; the render engine awaits it when it does.
    """

    name: str = "base"

    @abstractmethod
    def draw(
        self,
        device_id: str,
        render_spec: Dict[str, Any],
        image_format: Optional[str] = None,
        image_data: Optional[str] = None,
    ) -> Union[None, Awaitable[None]]:
        """
        Draw a key.

        Args:
            device_id: Device serial
            render_spec: Dict with uid, title, width and style
            image_format: "base64" when image_data is given
            image_data: PNG data URL

        Raises:
            Exception: Any failure; messages containing "not alive" or
                "not connected" mean the key is gone for good
        """
        pass
