from .base import PluginHost
from .console import ConsoleHost

__all__ = ["PluginHost", "ConsoleHost"]
