"""
Base classes for all widget kinds.
"""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Dict, List, NamedTuple, Optional

logger = logging.getLogger(__name__)

ACTION_PREFIX = "com.sondrenjaastad.leagueoflegends."


class WidgetKind(str, Enum):
    """Closed set of widget kinds, keyed by the host action id suffix."""

    SUMMONER = "summoner"
    RANK = "rank"
    WALLET = "wallet"
    GAMESTATS = "gamestats"
    TEAMKILLS = "teamkills"
    KDA = "kda"
    WARDSCORE = "wardscore"

    @property
    def action_id(self) -> str:
        return f"{ACTION_PREFIX}{self.value}"

    @classmethod
    def from_action(cls, action_id: Optional[str]) -> Optional["WidgetKind"]:
        """Map a host action id (or bare kind name) to a WidgetKind"""
        if not action_id:
            return None
        suffix = action_id.rsplit(".", 1)[-1]
        try:
            return cls(suffix)
        except ValueError:
            return None


class WidgetId(NamedTuple):
    device_id: str
    uid: str

    def __str__(self) -> str:
        return f"{self.device_id}-{self.uid}"


@dataclass
class WidgetContext:
    """
    What a widget may know when it draws.

    Attributes:
        connected: Whether the client API is connected
        in_game: Whether a match is in progress
        data: Lookup of the latest payload for a logical type
    """

    connected: bool
    in_game: bool
    data: Callable[[str], Any]


class WidgetSurface(ABC):
    """Drawing and registry capability handed to every widget."""

    @abstractmethod
    def draw_text(
        self, widget_id: WidgetId, title: str, background_color: Optional[str] = None
    ) -> bool:
        pass

    @abstractmethod
    def draw_image(
        self, widget_id: WidgetId, lines: List[str], background_color: Optional[str] = None
    ) -> bool:
        pass

    @abstractmethod
    def get_widget(self, widget_id: WidgetId) -> Optional[Dict[str, Any]]:
        pass

    @abstractmethod
    def set_widget(self, widget_id: WidgetId, config: Dict[str, Any]) -> None:
        pass


class BaseWidget(ABC):
    """
    Base class for all League widgets.

    A widget instance serves every key of its kind; per-key state, when a
    kind needs any, is keyed by WidgetId.

    Class Attributes:
        kind: WidgetKind this class implements
        data_type: Logical data type the widget displays (None = static)
        label: Short name shown on placeholders
        background_color: Background of the content image

    Example:
        >>> class LevelWidget(BaseWidget):
        ...     kind = WidgetKind.SUMMONER
        ...     data_type = "summoner"
        ...     label = "Level"
        ...
        ...     def render_lines(self, data, widget_id):
        ...         return [f"Lv {data['summonerLevel']}"]
    """

    kind: WidgetKind = None
    data_type: Optional[str] = None
    label: str = ""
    background_color: str = "#1E3A8A"

    def __init__(self, surface: WidgetSurface):
        if not self.kind:
            raise ValueError(f"{self.__class__.__name__} must define kind")
        self.surface = surface

    def initialize(self, widget_id: WidgetId, context: WidgetContext) -> None:
        self.refresh(widget_id, context)

    def on_data(self, widget_id: WidgetId, context: WidgetContext) -> None:
        self.refresh(widget_id, context)

    def on_interact(self, widget_id: WidgetId, context: WidgetContext) -> None:
        self.refresh(widget_id, context)

    def forget(self, widget_id: WidgetId) -> None:
        """Drop per-key state when a key goes away"""
        pass

    def forget_device(self, device_id: str) -> None:
        pass

    def refresh(self, widget_id: WidgetId, context: WidgetContext) -> None:
        data = context.data(self.data_type) if self.data_type else None
        if self.data_type and data is None:
            self.surface.draw_text(widget_id, f"{self.label}\nLoading...")
            return

        try:
            lines = self.render_lines(data, widget_id)
        except (KeyError, TypeError, ValueError, ZeroDivisionError) as e:
            logger.warning(f"{self.kind.value} widget cannot render payload: {e}")
            lines = None

        if not lines:
            self.surface.draw_text(widget_id, f"{self.label}\nUnavailable")
            return
        self.surface.draw_image(widget_id, lines, self.background_color)

    @abstractmethod
    def render_lines(self, data: Any, widget_id: WidgetId) -> Optional[List[str]]:
        """
        Turn the latest payload into display lines.

        Args:
            data: Payload for data_type (None for static widgets)
            widget_id: Key being drawn

        Returns:
            Lines to draw, or None when the payload has nothing to show
        """
        pass


class LiveWidget(BaseWidget):
    """Widget fed by the in-match live client API."""

    data_type = "livegame"
    background_color = "#0B3D2E"

    def refresh(self, widget_id: WidgetId, context: WidgetContext) -> None:
        if not context.in_game:
            self.show_not_in_game(widget_id)
            return
        super().refresh(widget_id, context)

    def show_not_in_game(self, widget_id: WidgetId) -> None:
        self.surface.draw_text(widget_id, f"{self.label}\nNot in game", "#2F2F2F")
