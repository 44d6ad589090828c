from .manager import DeviceManager
from .renderer import ButtonRenderer, RenderSpec

__all__ = ["DeviceManager", "ButtonRenderer", "RenderSpec"]
