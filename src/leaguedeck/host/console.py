"""
Host that logs draw calls instead of sending them to hardware.

Used when running leaguedeck standalone, e.g. to watch the client state
transitions from a terminal.
"""

import logging
from typing import Any, Dict, Optional

from .base import PluginHost

logger = logging.getLogger(__name__)


class ConsoleHost(PluginHost):
    name = "console"

    def __init__(self):
        self.draw_count = 0

    def draw(
        self,
        device_id: str,
        render_spec: Dict[str, Any],
        image_format: Optional[str] = None,
        image_data: Optional[str] = None,
    ) -> None:
        self.draw_count += 1
        title = render_spec.get("title", "").replace("\n", " | ")
        kind = f"image ({len(image_data or '')} bytes)" if image_format else "text"
        logger.info(f"[{device_id}/{render_spec.get('uid')}] {kind}: {title}")
