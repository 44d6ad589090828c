"""
Main controller for leaguedeck - wires the managers together.
"""

import asyncio
import logging
import time
from typing import Any, Dict, Iterable, List, Optional

from .client.discovery import ConnectionDiscoverer
from .client.live import LiveClient
from .config.loader import ConfigLoader, endpoint_configs
from .device.manager import DeviceManager
from .device.renderer import ButtonRenderer
from .handlers.router import EventRouter
from .host.base import PluginHost
from .host.console import ConsoleHost
from .managers.connection import ConnectionManager
from .managers.live import LiveGameLoop
from .managers.poller import PollerSupervisor
from .managers.widget import WidgetManager, WidgetRegistry
from .platforms import detect_platform
from .state.store import StateStore
from .utils.errors import error_boundary
from .utils.events import (
    ConnectionChanged,
    DeviceEvent,
    EventEmitter,
    Events,
    ServiceError,
    WidgetRenderFailed,
    WidgetRendered,
)
from .widgets.base import WidgetId
from .widgets.summoner import riot_id

logger = logging.getLogger(__name__)


class LeagueDeckController:
    """
    Main controller orchestrating the League client and the Stream Deck keys.

    This controller delegates specific responsibilities to specialized managers:
    - ConnectionManager: Client process monitoring and (re)connection
    - PollerSupervisor: Per-endpoint polling of the client API
    - LiveGameLoop: In-match statistics while a game runs
    - EventRouter: What every key shows
    - WidgetManager: Throttled, retried draws and key lifecycle
    - StateStore: Last-known state persisted between runs
    """

    CONNECTION_SERVICE = "league"

    def __init__(self, config_path: Optional[str] = None, host: Optional[PluginHost] = None):
        """
        Initialize the controller.

        Args:
            config_path: Path to YAML configuration file (defaults when None)
            host: Plugin host receiving draws (logs draws when None)

        Raises:
            ConfigurationError: If the configuration file is invalid
        """
        self.config_path = config_path
        self.config_loader = ConfigLoader()
        self.config: Dict[str, Any] = (
            self.config_loader.load(config_path) if config_path else self.config_loader.defaults()
        )

        league = self.config["league"]
        live_game = self.config["live_game"]
        rendering = self.config["rendering"]
        state = self.config["state"]

        self.host: PluginHost = host or ConsoleHost()
        self.platform = detect_platform()
        logger.info(f"Detected platform: {self.platform.name}")

        # Core components
        self.emitter = EventEmitter()
        self.state_store = StateStore(
            state["file"],
            auto_save_interval=state["auto_save_interval"],
            max_cache_age=state["max_cache_age"],
        )
        self.device_manager = DeviceManager(self.emitter)
        self.renderer = ButtonRenderer()

        # Client side
        self.discoverer = ConnectionDiscoverer(
            platform=self.platform,
            lockfile_path=league["lockfile"],
            request_timeout=league["request_timeout"],
        )
        self.poller = PollerSupervisor(endpoint_configs(self.config), self.emitter)
        self.connection_manager = ConnectionManager(
            self.discoverer,
            self.poller,
            self.emitter,
            process_check_interval=league["process_check_interval"],
            reconnect_delay=league["reconnect_delay"],
            max_reconnect_attempts=league["max_reconnect_attempts"],
        )
        self.live_client = LiveClient(timeout=live_game["timeout"])
        self.live_loop = LiveGameLoop(
            self.live_client,
            self.emitter,
            riot_id_provider=self._current_riot_id,
            interval=live_game["interval"],
        )

        # Device side
        self.widget_manager = WidgetManager(
            self.host,
            self.device_manager,
            self.state_store,
            self.emitter,
            self.renderer,
            throttle_interval=rendering["throttle_interval"],
            max_retries=rendering["max_retries"],
            retry_delay=rendering["retry_delay"],
            cleanup_interval=rendering["cleanup_interval"],
            stale_render_age=rendering["stale_render_age"],
        )
        self.widget_registry = WidgetRegistry()
        self.widget_registry.auto_discover()
        logger.info(
            f"Registered widgets: {[kind.value for kind in self.widget_registry.list_widgets()]}"
        )
        self.router = EventRouter(
            self.widget_manager,
            self.renderer,
            self.widget_registry,
            self.live_loop,
            data_source=self.poller.get_cached,
        )

        # Widget configs last reported per device, restored on device reconnect
        self.device_configs: Dict[str, List[Dict[str, Any]]] = {}

        self.started = False
        self._shutting_down = False
        self._stopped = asyncio.Event()

        self._wire_events()

    @property
    def shutting_down(self) -> bool:
        return self._shutting_down

    def _current_riot_id(self) -> Optional[str]:
        return riot_id(self.poller.get_cached("summoner"))

    def _wire_events(self) -> None:
        self.emitter.on(Events.CONNECTION_CHANGED, self.router.handle_connection_change)
        self.emitter.on(Events.CONNECTION_CHANGED, self._persist_connection_state)
        self.emitter.on(Events.DATA_UPDATED, self.router.handle_data_update)
        self.emitter.on(Events.GAME_STATE_CHANGED, self.router.handle_game_state_change)
        self.emitter.on(Events.ERROR, self._on_service_error)
        self.emitter.on(Events.WIDGET_RENDERED, self._on_widget_rendered)
        self.emitter.on(Events.WIDGET_ERROR, self._on_widget_error)
        self.emitter.on(Events.WIDGET_REMOVED, self.router.handle_widget_removed)
        self.emitter.on(Events.DEVICE_CONNECTED, self._on_device_connected)
        self.emitter.on(Events.DEVICE_DISCONNECTED, self._on_device_disconnected)

    # Event listeners

    def _persist_connection_state(self, event: ConnectionChanged) -> None:
        self.state_store.update_connection_state(
            self.CONNECTION_SERVICE,
            {
                "state": getattr(event.state, "value", event.state),
                "connected": event.connected,
                "reason": event.reason,
                "timestamp": event.timestamp,
            },
        )

    def _on_service_error(self, event: ServiceError) -> None:
        if event.recoverable:
            logger.warning(f"Recoverable error ({event.code}): {event.message}")
        else:
            logger.error(f"Non-recoverable error ({event.code}): {event.message}")

    def _on_widget_rendered(self, event: WidgetRendered) -> None:
        logger.debug(f"Rendered widget {event.widget_id}")

    def _on_widget_error(self, event: WidgetRenderFailed) -> None:
        logger.warning(
            f"Render of widget {event.widget_id} failed "
            f"({event.error_count} in a row): {event.error.message}"
        )

    def _on_device_connected(self, event: DeviceEvent) -> None:
        configs = self.device_configs.get(event.device_id)
        if not configs or self.widget_manager.records_for_device(event.device_id):
            return
        records = self.widget_manager.register_widgets(event.device_id, configs)
        for record in records:
            self.router.initialize_widget(record.widget_id)
        logger.info(
            f"Re-registered {len(records)} widgets for reconnected device {event.device_id}"
        )

    def _on_device_disconnected(self, event: DeviceEvent) -> None:
        self.router.forget_device(event.device_id)

    # Host entry points

    @error_boundary()
    def handle_device_status(self, devices: Iterable[Any]) -> None:
        """Reconcile connected devices with the host's device list"""
        added, removed = self.device_manager.update_status(devices)
        if added or removed:
            logger.info(f"Device status: {len(added)} added, {len(removed)} removed")

    @error_boundary(default_return=0)
    def handle_widgets_registered(self, device_id: str, configs: Iterable[Dict[str, Any]]) -> int:
        """
        Register the full key list of a device and draw every key.

        Keys of the device that are missing from ``configs`` are removed.

        Returns:
            Number of keys registered
        """
        configs = [dict(config) for config in configs]
        wanted = {str(config.get("uid")) for config in configs}
        for record in self.widget_manager.records_for_device(device_id):
            if record.widget_uid not in wanted:
                self.widget_manager.remove_widget(record.widget_id, forget_state=True)

        # Not cached while registering, so the device_connected event fired
        # by registration does not restore the previous key list
        self.device_configs.pop(device_id, None)
        records = self.widget_manager.register_widgets(device_id, configs)
        self.device_configs[device_id] = configs

        for record in records:
            self.router.initialize_widget(record.widget_id)
        return len(records)

    @error_boundary(default_return=False)
    def handle_widget_interaction(self, device_id: str, config: Dict[str, Any]) -> bool:
        """
        Forward a key press to its widget.

        Returns:
            True if a widget handled the press
        """
        uid = config.get("uid") if config else None
        if not uid:
            logger.warning(f"Interaction without key uid on device {device_id}")
            return False
        return self.router.handle_interaction(WidgetId(device_id, str(uid)))

    # Lifecycle

    async def start(self) -> None:
        """Load persisted state and start every background loop"""
        if self.started:
            logger.warning("Controller already started")
            return

        logger.info("Starting leaguedeck")
        self.state_store.load()
        self.state_store.start_auto_save()
        self.widget_manager.start()
        self.connection_manager.start_monitoring()
        self.started = True

    async def run(self) -> None:
        """Start and keep running until stop() is called, then shut down"""
        await self.start()
        try:
            await self._stopped.wait()
        finally:
            await self.shutdown()

    def stop(self) -> None:
        """Ask run() to return; safe to call from a signal handler"""
        logger.info("Stop requested")
        self._stopped.set()

    async def shutdown(self) -> None:
        """Stop everything and save state. Safe to call more than once."""
        if self._shutting_down:
            logger.debug("Shutdown already in progress")
            return
        self._shutting_down = True
        logger.info("Shutting down leaguedeck...")

        await self.connection_manager.shutdown()
        self.live_loop.stop()
        await self.live_client.aclose()
        self.widget_manager.shutdown()
        await self.state_store.shutdown()

        self._stopped.set()
        logger.info("Shutdown complete")

    def force_refresh(self) -> int:
        """
        Replay cached data to every key and redraw the last known renders.

        Returns:
            Number of keys re-rendered from stored state
        """
        logger.info("Forcing refresh")
        replayed = self.poller.replay()
        rendered = self.widget_manager.force_render_all()
        logger.debug(f"Replayed {replayed} cached responses")
        return rendered

    async def force_reconnect(self) -> None:
        await self.connection_manager.force_reconnect()

    def get_status(self) -> Dict[str, Any]:
        return {
            "started": self.started,
            "shutting_down": self._shutting_down,
            "timestamp": time.time(),
            "connection": self.connection_manager.get_status(),
            "game_phase": self.router.current_phase,
            "in_game": self.router.in_game,
            "cached_types": self.poller.cached_types(),
            "widgets": self.widget_manager.get_status(),
            "devices": self.device_manager.get_status(),
            "registered_devices": sorted(self.device_configs),
            "state": self.state_store.get_summary(),
        }
