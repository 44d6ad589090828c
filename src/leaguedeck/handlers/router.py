"""
Event router - decides what every widget shows.

Subscribed to data, game-state and connection events; turns them into draw
requests through the WidgetSurface it implements for the widgets.
"""

import logging
from typing import Any, Callable, Dict, Optional

from ..device.renderer import DEFAULT_BACKGROUND, ButtonRenderer
from ..managers.connection import ConnectionState
from ..managers.live import LiveGameLoop
from ..managers.widget import WidgetManager, WidgetRegistry, WidgetRuntimeRecord
from ..utils.events import ConnectionChanged, DataUpdated, GameStateChanged, WidgetRemoved
from ..widgets.base import BaseWidget, WidgetContext, WidgetId, WidgetKind, WidgetSurface

logger = logging.getLogger(__name__)


class EventRouter(WidgetSurface):
    """
    Maps logical data types to handlers and widget kinds to widgets.

    Unknown data types and unknown widget kinds are logged, never fatal.
    """

    IN_GAME_PHASE = "InProgress"
    UNKNOWN_WIDGET_BACKGROUND = "#696969"

    def __init__(
        self,
        widget_manager: WidgetManager,
        renderer: ButtonRenderer,
        registry: WidgetRegistry,
        live_loop: LiveGameLoop,
        data_source: Callable[[str], Any],
    ):
        """
        Args:
            widget_manager: Render engine and widget records
            renderer: Builds render specs
            registry: Widget kinds; must implement every WidgetKind
            live_loop: In-match poll loop started and stopped by phase changes
            data_source: Latest polled payload for a logical type
        """
        self.widget_manager = widget_manager
        self.renderer = renderer
        self.live_loop = live_loop
        self.data_source = data_source

        self.widgets: Dict[WidgetKind, BaseWidget] = registry.create_all(self)
        self.handlers: Dict[str, Callable[[DataUpdated], None]] = {
            "summoner": self._refresh_data_widgets,
            "ranked": self._refresh_data_widgets,
            "wallet": self._refresh_data_widgets,
            "livegame": self._refresh_data_widgets,
            "gameflow": self._handle_gameflow,
            "champselect": self._handle_champ_select,
        }

        self.connection_state: Optional[ConnectionState] = None
        self.current_phase: Optional[str] = None
        self.in_game = False

    @property
    def connected(self) -> bool:
        return self.connection_state is ConnectionState.CONNECTED

    def context(self) -> WidgetContext:
        return WidgetContext(connected=self.connected, in_game=self.in_game, data=self._data)

    def _data(self, logical_type: str) -> Any:
        if logical_type == LiveGameLoop.LOGICAL_TYPE:
            return self.live_loop.snapshot
        return self.data_source(logical_type)

    # WidgetSurface

    def draw_text(
        self, widget_id: WidgetId, title: str, background_color: Optional[str] = None
    ) -> bool:
        spec = self.renderer.text_spec(widget_id.uid, title, background_color)
        return self.widget_manager.request_render(widget_id, spec)

    def draw_image(
        self, widget_id: WidgetId, lines, background_color: Optional[str] = None
    ) -> bool:
        spec = self.renderer.content_spec(
            widget_id.uid, lines, background_color or DEFAULT_BACKGROUND
        )
        return self.widget_manager.request_render(widget_id, spec)

    def get_widget(self, widget_id: WidgetId) -> Optional[Dict[str, Any]]:
        record = self.widget_manager.get_record(widget_id)
        return record.config if record else None

    def set_widget(self, widget_id: WidgetId, config: Dict[str, Any]) -> None:
        record = self.widget_manager.get_record(widget_id)
        if record is None:
            logger.debug(f"Cannot update config of unknown widget {widget_id}")
            return
        record.config = dict(config)

    # Widgets

    def widget_for(self, record: WidgetRuntimeRecord) -> Optional[BaseWidget]:
        kind = record.kind
        return self.widgets.get(kind) if kind else None

    def initialize_widget(self, widget_id: WidgetId) -> bool:
        """
        Draw a key from scratch with whatever data is cached.

        Returns:
            True if the key belongs to a known widget kind
        """
        record = self.widget_manager.get_record(widget_id)
        if record is None:
            return False

        widget = self.widget_for(record)
        if widget is None:
            logger.warning(f"Unknown widget action '{record.config.get('cid')}' on {widget_id}")
            self.draw_text(widget_id, "Unknown\nWidget", self.UNKNOWN_WIDGET_BACKGROUND)
            return False

        if not self.connected:
            self._show_connection_state(record)
            return True

        widget.initialize(widget_id, self.context())
        return True

    def reinitialize_all(self) -> int:
        count = 0
        for record in list(self.widget_manager.records.values()):
            if record.renderable and self.initialize_widget(record.widget_id):
                count += 1
        logger.info(f"Reinitialized {count} widgets")
        return count

    def _show_connection_state(self, record: WidgetRuntimeRecord) -> None:
        state = self.connection_state or ConnectionState.DISCONNECTED
        if state is ConnectionState.DISCONNECTED:
            kind = record.kind
            label = kind.value.title() if kind else "League"
            spec = self.renderer.offline_spec(record.widget_uid, label)
        else:
            spec = self.renderer.connection_state_spec(record.widget_uid, state)
        self.widget_manager.request_render(record.widget_id, spec)

    def _widgets_of_type(self, logical_type: str):
        for record in list(self.widget_manager.records.values()):
            if not record.renderable:
                continue
            widget = self.widget_for(record)
            if widget is not None and widget.data_type == logical_type:
                yield record.widget_id, widget

    # Data handlers

    def handle_data_update(self, event: DataUpdated) -> None:
        handler = self.handlers.get(event.logical_type)
        if handler is None:
            logger.warning(f"No handler for data type '{event.logical_type}'")
            return
        handler(event)

    def _refresh_data_widgets(self, event: DataUpdated) -> None:
        if not event.changed or not self.connected:
            return
        context = self.context()
        for widget_id, widget in self._widgets_of_type(event.logical_type):
            widget.on_data(widget_id, context)

    def _handle_gameflow(self, event: DataUpdated) -> None:
        if event.payload is not None:
            self._apply_phase(str(event.payload))

    def _handle_champ_select(self, event: DataUpdated) -> None:
        if event.changed:
            logger.debug("Champion select session updated")

    def handle_game_state_change(self, event: GameStateChanged) -> None:
        self._apply_phase(event.phase)

    def _apply_phase(self, phase: str) -> None:
        if phase == self.current_phase:
            return

        previous, self.current_phase = self.current_phase, phase
        was_in_game, self.in_game = self.in_game, phase == self.IN_GAME_PHASE
        logger.debug(f"Router phase {previous} -> {phase}")

        if self.in_game and not was_in_game:
            logger.info("Match started, enabling live stats")
            self.live_loop.start()
            self._refresh_live_widgets()
        elif was_in_game and not self.in_game:
            logger.info("Match ended, disabling live stats")
            self.live_loop.stop()
            self._refresh_live_widgets()

    def _refresh_live_widgets(self) -> None:
        context = self.context()
        for widget_id, widget in self._widgets_of_type(LiveGameLoop.LOGICAL_TYPE):
            widget.refresh(widget_id, context)

    # Connection

    def handle_connection_change(self, event: ConnectionChanged) -> None:
        state = ConnectionState(getattr(event.state, "value", event.state))
        if state is self.connection_state:
            return
        self.connection_state = state

        if state is ConnectionState.CONNECTED:
            self.reinitialize_all()
            return

        self.live_loop.stop()
        self.in_game = False
        self.current_phase = None
        self.widget_manager.render_connection_state(state)

    # Interaction

    def handle_interaction(self, widget_id: WidgetId) -> bool:
        """
        React to a key press.

        Returns:
            True if a widget handled it
        """
        record = self.widget_manager.get_record(widget_id)
        if record is None:
            logger.debug(f"Interaction on unregistered widget {widget_id}")
            return False

        widget = self.widget_for(record)
        if widget is None:
            logger.warning(f"Interaction on unknown widget action '{record.config.get('cid')}'")
            return False

        if not self.connected:
            self._show_connection_state(record)
            return True

        widget.on_interact(widget_id, self.context())
        return True

    def handle_widget_removed(self, event: WidgetRemoved) -> None:
        self.forget_widget(event.widget_id)

    def forget_widget(self, widget_id: WidgetId) -> None:
        for widget in self.widgets.values():
            widget.forget(widget_id)

    def forget_device(self, device_id: str) -> None:
        for widget in self.widgets.values():
            widget.forget_device(device_id)
