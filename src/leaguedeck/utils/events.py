"""
In-process event bus and the event payloads exchanged between components.
"""

import logging
from collections import defaultdict
from dataclasses import dataclass, field
from typing import Any, Callable, DefaultDict, List, Optional

from .errors import safe_execute

logger = logging.getLogger(__name__)


class Events:
    """Event names used on the bus."""

    DATA_UPDATED = "data_updated"
    GAME_STATE_CHANGED = "game_state_changed"
    CONNECTION_CHANGED = "connection_changed"
    ERROR = "error"
    WIDGET_RENDERED = "widget_rendered"
    WIDGET_ERROR = "widget_error"
    WIDGET_REMOVED = "widget_removed"
    DEVICE_CONNECTED = "device_connected"
    DEVICE_DISCONNECTED = "device_disconnected"


@dataclass(frozen=True)
class DataUpdated:
    logical_type: str
    payload: Any
    previous_payload: Any
    timestamp: float
    changed: bool = True
    endpoint: Optional[str] = None


@dataclass(frozen=True)
class GameStateChanged:
    phase: str
    previous_phase: Optional[str]
    timestamp: float


@dataclass(frozen=True)
class ConnectionChanged:
    state: Any
    connected: bool
    reason: str
    timestamp: float


@dataclass(frozen=True)
class ServiceError:
    message: str
    code: str
    recoverable: bool = True
    endpoint: Optional[str] = None


@dataclass(frozen=True)
class WidgetRendered:
    widget_id: Any
    timestamp: float


@dataclass(frozen=True)
class WidgetRenderFailed:
    widget_id: Any
    error: Exception
    error_count: int
    terminal: bool


@dataclass(frozen=True)
class WidgetRemoved:
    widget_id: Any
    state_forgotten: bool = False


@dataclass(frozen=True)
class DeviceEvent:
    device_id: str
    timestamp: float
    extra: dict = field(default_factory=dict)


class EventEmitter:
    """
    Synchronous publish/subscribe dispatcher.

    Listeners run in subscription order on the emitting call stack. A
    listener that raises is logged and skipped; the remaining listeners
    still run.
    """

    def __init__(self):
        self._listeners: DefaultDict[str, List[Callable[[Any], Any]]] = defaultdict(list)

    def on(self, event: str, listener: Callable[[Any], Any]) -> None:
        self._listeners[event].append(listener)

    def off(self, event: str, listener: Callable[[Any], Any]) -> None:
        try:
            self._listeners[event].remove(listener)
        except ValueError:
            logger.debug(f"Listener not registered for '{event}'")

    def emit(self, event: str, payload: Any = None) -> int:
        """
        Deliver payload to every listener of event.

        Returns:
            Number of listeners invoked
        """
        listeners = list(self._listeners.get(event, ()))
        for listener in listeners:
            safe_execute(lambda: listener(payload), description=f"listener for '{event}'")
        return len(listeners)

    def listener_count(self, event: str) -> int:
        return len(self._listeners.get(event, ()))

    def remove_all_listeners(self, event: Optional[str] = None) -> None:
        if event is None:
            self._listeners.clear()
        else:
            self._listeners.pop(event, None)
