"""
Render specs and key images for widgets
"""

import base64
import io
import logging
import os
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple

from PIL import Image, ImageDraw, ImageFont

logger = logging.getLogger(__name__)

DEFAULT_TITLE = "League of Legends"
DEFAULT_WIDTH = 72
DEFAULT_BACKGROUND = "#1E3A8A"


def default_style() -> Dict[str, Any]:
    return {
        "showTitle": True,
        "showImage": False,
        "showIcon": False,
        "showEmoji": False,
        "backgroundColor": DEFAULT_BACKGROUND,
    }


@dataclass
class RenderSpec:
    """
    What the host should show on one key.

    Text-only specs go to ``draw(device, spec)``; specs carrying
    ``image_data`` go to ``draw(device, spec, "base64", image_data)``.
    """

    uid: str
    title: str = DEFAULT_TITLE
    width: int = DEFAULT_WIDTH
    style: Dict[str, Any] = field(default_factory=default_style)
    image_data: Optional[str] = None

    @property
    def has_image(self) -> bool:
        return self.image_data is not None

    def to_dict(self) -> Dict[str, Any]:
        """Host-facing render dictionary (image travels separately)"""
        return {
            "uid": self.uid,
            "title": self.title,
            "width": self.width,
            "style": dict(self.style),
        }

    def to_state(self) -> Dict[str, Any]:
        """JSON form kept in the state store"""
        state = self.to_dict()
        state["imageData"] = self.image_data
        return state

    @classmethod
    def from_state(cls, state: Dict[str, Any]) -> "RenderSpec":
        style = default_style()
        style.update(state.get("style") or {})
        return cls(
            uid=state["uid"],
            title=state.get("title", DEFAULT_TITLE),
            width=state.get("width", DEFAULT_WIDTH),
            style=style,
            image_data=state.get("imageData"),
        )


class ButtonRenderer:
    """
    Builds render specs and key images.

    Text specs cover transient states; Pillow images carry widget content and
    the offline placeholder. Fonts are cached per (name, size).

    Attributes:
        font_cache: Dictionary mapping font keys to loaded ImageFont objects
    """

    IMAGE_SIZE = (72, 72)

    CONNECTION_STATE_STYLES = {
        "connected": ("League Connected", "#006400"),
        "disconnected": ("League Offline", "#8B0000"),
        "reconnecting": ("Reconnecting...", "#FF8C00"),
    }
    UNKNOWN_STATE_STYLE = ("Status Unknown", "#696969")
    ERROR_BACKGROUND = "#FF4500"
    OFFLINE_BACKGROUND = "#1A1A1A"
    OFFLINE_ACCENT = "#8B0000"

    def __init__(self, font_name: str = "DejaVu Sans"):
        self.font_name = font_name
        self.font_cache: Dict[str, Any] = {}

    def text_spec(self, uid: str, title: str, background_color: Optional[str] = None) -> RenderSpec:
        style = default_style()
        if background_color:
            style["backgroundColor"] = background_color
        return RenderSpec(uid=uid, title=title, style=style)

    def image_spec(self, uid: str, title: str, image: Image.Image) -> RenderSpec:
        style = default_style()
        style.update({"showTitle": False, "showImage": True})
        return RenderSpec(uid=uid, title=title, style=style, image_data=self.to_data_url(image))

    def content_spec(
        self, uid: str, lines: List[str], background_color: str = DEFAULT_BACKGROUND
    ) -> RenderSpec:
        """
        Widget content as an image, falling back to a text spec when
        Pillow cannot render it.
        """
        title = "\n".join(lines)
        try:
            image = self.render_text_image(lines, background_color)
        except (OSError, ValueError) as e:
            logger.warning(f"Image rendering failed for {uid}, using text: {e}")
            return self.text_spec(uid, title, background_color)
        return self.image_spec(uid, title, image)

    def connection_state_spec(self, uid: str, state: Any) -> RenderSpec:
        key = getattr(state, "value", state)
        title, color = self.CONNECTION_STATE_STYLES.get(key, self.UNKNOWN_STATE_STYLE)
        return self.text_spec(uid, title, color)

    def offline_spec(self, uid: str, label: str) -> RenderSpec:
        """Rich placeholder shown while the client is not running"""
        title, color = self.CONNECTION_STATE_STYLES["disconnected"]
        try:
            image = self.render_offline_image(label)
        except (OSError, ValueError) as e:
            logger.warning(f"Offline image rendering failed for {uid}: {e}")
            return self.text_spec(uid, title, color)
        return self.image_spec(uid, title, image)

    def error_spec(self, uid: str, message: str = "Error") -> RenderSpec:
        return self.text_spec(uid, message, self.ERROR_BACKGROUND)

    def render_text_image(
        self,
        lines: List[str],
        background_color: str = DEFAULT_BACKGROUND,
        text_color: str = "#FFFFFF",
    ) -> Image.Image:
        image = Image.new("RGB", self.IMAGE_SIZE, background_color)
        draw = ImageDraw.Draw(image)
        self._draw_lines(draw, lines, text_color, font_size=12)
        return image

    def render_offline_image(self, label: str) -> Image.Image:
        image = Image.new("RGB", self.IMAGE_SIZE, self.OFFLINE_BACKGROUND)
        draw = ImageDraw.Draw(image)
        width, height = self.IMAGE_SIZE

        # Accent bars top and bottom
        draw.rectangle((0, 0, width, 5), fill=self.OFFLINE_ACCENT)
        draw.rectangle((0, height - 6, width, height), fill=self.OFFLINE_ACCENT)

        self._draw_lines(draw, [label, "League", "Offline"], "#DDDDDD", font_size=11)
        return image

    @staticmethod
    def to_data_url(image: Image.Image) -> str:
        buffer = io.BytesIO()
        image.save(buffer, format="PNG")
        encoded = base64.b64encode(buffer.getvalue()).decode("ascii")
        return f"data:image/png;base64,{encoded}"

    def _draw_lines(
        self,
        draw: ImageDraw.ImageDraw,
        lines: List[str],
        text_color: str,
        font_size: int,
        line_spacing: int = 2,
    ) -> None:
        """Draw lines centred horizontally and vertically"""
        font = self._load_font(self.font_name, font_size)
        lines = [line for line in lines if line] or [""]

        boxes: List[Tuple[int, int, int, int]] = [
            draw.textbbox((0, 0), line, font=font) for line in lines
        ]
        total_height = sum(box[3] - box[1] for box in boxes) + (len(lines) - 1) * line_spacing

        width, height = self.IMAGE_SIZE
        y_offset = (height - total_height) // 2
        for line, box in zip(lines, boxes):
            text_x = (width - (box[2] - box[0])) // 2
            # bbox top can be negative for tall ascenders
            draw.text((text_x, y_offset - box[1]), line, font=font, fill=text_color)
            y_offset += (box[3] - box[1]) + line_spacing

    def _load_font(self, font_name: str, font_size: int):
        """Load a font with caching"""
        cache_key = f"{font_name}_{font_size}"
        if cache_key in self.font_cache:
            return self.font_cache[cache_key]

        font = None
        candidates = [font_name]
        if not font_name.endswith((".ttf", ".otf")):
            candidates.append(font_name.replace(" ", "") + ".ttf")

        for candidate in candidates:
            try:
                font = ImageFont.truetype(os.path.expanduser(candidate), font_size)
                break
            except OSError:
                continue

        if font is None:
            logger.debug(f"Font '{font_name}' not found, using default")
            font = ImageFont.load_default()

        self.font_cache[cache_key] = font
        return font
