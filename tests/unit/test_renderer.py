"""
Tests for render specs and Pillow key images.
"""

import base64
import io

import pytest
from PIL import Image

from leaguedeck.device.renderer import DEFAULT_BACKGROUND, ButtonRenderer, RenderSpec
from leaguedeck.managers.connection import ConnectionState


def decode(data_url):
    prefix = "data:image/png;base64,"
    assert data_url.startswith(prefix)
    return Image.open(io.BytesIO(base64.b64decode(data_url[len(prefix):])))


class TestRenderSpec:
    def test_text_spec_defaults(self, renderer):
        spec = renderer.text_spec("k1", "Hello")

        assert spec.has_image is False
        assert spec.to_dict() == {
            "uid": "k1",
            "title": "Hello",
            "width": 72,
            "style": {
                "showTitle": True,
                "showImage": False,
                "showIcon": False,
                "showEmoji": False,
                "backgroundColor": DEFAULT_BACKGROUND,
            },
        }

    def test_state_round_trip_keeps_image(self, renderer):
        spec = renderer.content_spec("k1", ["RP 10", "BE 20"])
        restored = RenderSpec.from_state(spec.to_state())

        assert restored == spec
        assert "imageData" not in spec.to_dict()

    def test_from_state_fills_missing_style(self):
        spec = RenderSpec.from_state({"uid": "k1", "style": {"backgroundColor": "#000000"}})

        assert spec.title == "League of Legends"
        assert spec.style["showTitle"] is True
        assert spec.style["backgroundColor"] == "#000000"


class TestButtonRenderer:
    def test_content_spec_is_png_image(self, renderer):
        spec = renderer.content_spec("k1", ["Faker#KR1", "Level 30"], "#3C2A4D")

        assert spec.title == "Faker#KR1\nLevel 30"
        assert spec.style["showImage"] is True
        assert spec.style["showTitle"] is False
        image = decode(spec.image_data)
        assert image.size == (72, 72)
        assert image.getpixel((0, 0)) == (0x3C, 0x2A, 0x4D)

    def test_content_spec_falls_back_to_text(self, renderer, monkeypatch):
        def broken(*args, **kwargs):
            raise OSError("no font backend")

        monkeypatch.setattr(renderer, "render_text_image", broken)
        spec = renderer.content_spec("k1", ["RP 10"], "#1E2328")

        assert spec.has_image is False
        assert spec.title == "RP 10"
        assert spec.style["backgroundColor"] == "#1E2328"

    @pytest.mark.parametrize(
        "state,title,color",
        [
            (ConnectionState.CONNECTED, "League Connected", "#006400"),
            (ConnectionState.DISCONNECTED, "League Offline", "#8B0000"),
            ("reconnecting", "Reconnecting...", "#FF8C00"),
            ("sideways", "Status Unknown", "#696969"),
        ],
    )
    def test_connection_state_spec(self, renderer, state, title, color):
        spec = renderer.connection_state_spec("k1", state)
        assert spec.title == title
        assert spec.style["backgroundColor"] == color

    def test_offline_spec_has_accent_bars(self, renderer):
        spec = renderer.offline_spec("k1", "Rank")

        assert spec.title == "League Offline"
        image = decode(spec.image_data)
        assert image.getpixel((36, 1)) == (0x8B, 0x00, 0x00)
        assert image.getpixel((36, 70)) == (0x8B, 0x00, 0x00)
        assert image.getpixel((1, 20)) == (0x1A, 0x1A, 0x1A)

    def test_error_spec(self, renderer):
        spec = renderer.error_spec("k1")
        assert spec.title == "Error"
        assert spec.style["backgroundColor"] == "#FF4500"

    def test_font_cache(self):
        renderer = ButtonRenderer(font_name="No Such Font")
        first = renderer._load_font(renderer.font_name, 12)

        assert renderer._load_font(renderer.font_name, 12) is first
        assert list(renderer.font_cache) == ["No Such Font_12"]
