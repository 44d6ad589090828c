"""
Widget kinds shown on Stream Deck keys
"""

from .base import BaseWidget, LiveWidget, WidgetContext, WidgetId, WidgetKind, WidgetSurface

__all__ = ["BaseWidget", "LiveWidget", "WidgetContext", "WidgetId", "WidgetKind", "WidgetSurface"]
