"""
Widget management: render throttling, retries and widget lifecycle.

Every draw request for a key goes through a per-key timer so that requests
coalesce (the newest payload wins), draws for one key are spaced at least
``throttle_interval`` apart and never overlap, and failed draws are retried
with linear backoff until the key is declared dead or failed.
"""

import asyncio
import inspect
import logging
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Iterable, List, Optional, Set

from ..device.manager import DeviceManager
from ..device.renderer import ButtonRenderer, RenderSpec
from ..host.base import PluginHost
from ..state.store import StateStore
from ..utils.errors import RenderError, error_boundary
from ..utils.events import (
    DeviceEvent,
    EventEmitter,
    Events,
    WidgetRemoved,
    WidgetRenderFailed,
    WidgetRendered,
)
from ..widgets.base import BaseWidget, WidgetId, WidgetKind, WidgetSurface

logger = logging.getLogger(__name__)


class WidgetLifecycle(str, Enum):
    INACTIVE = "inactive"
    ACTIVE = "active"
    DEAD = "dead"
    FAILED = "failed"


@dataclass
class WidgetRuntimeRecord:
    device_id: str
    widget_uid: str
    config: Dict[str, Any]
    lifecycle: WidgetLifecycle = WidgetLifecycle.INACTIVE
    last_render_timestamp: Optional[float] = None
    consecutive_error_count: int = 0

    @property
    def widget_id(self) -> WidgetId:
        return WidgetId(self.device_id, self.widget_uid)

    @property
    def kind(self) -> Optional[WidgetKind]:
        return WidgetKind.from_action(self.config.get("cid") or self.config.get("action"))

    @property
    def renderable(self) -> bool:
        return self.lifecycle in (WidgetLifecycle.INACTIVE, WidgetLifecycle.ACTIVE)


@dataclass
class PendingRenderTask:
    widget_id: WidgetId
    payload: RenderSpec
    scheduled_at: float
    timer: Optional[asyncio.TimerHandle] = field(default=None, repr=False)


class WidgetManager:
    """
    Manages widget runtime records and their draws.

    Responsibilities:
    - Widget registration and removal (per device)
    - Coalesced, throttled, serialized draw execution
    - Retry with linear backoff; dead/failed classification
    - Periodic cleanup of dead/failed widgets and stale bookkeeping
    - Bulk connection-state renders
    """

    # Timing constants
    THROTTLE_INTERVAL = 0.1  # Minimum spacing between draws of one key
    MAX_RETRIES = 3
    RETRY_DELAY = 1.0  # Multiplied by the consecutive error count
    CLEANUP_INTERVAL = 5.0
    STALE_RENDER_AGE = 300.0

    def __init__(
        self,
        host: PluginHost,
        device_manager: DeviceManager,
        state_store: StateStore,
        emitter: EventEmitter,
        renderer: ButtonRenderer,
        throttle_interval: float = THROTTLE_INTERVAL,
        max_retries: int = MAX_RETRIES,
        retry_delay: float = RETRY_DELAY,
        cleanup_interval: float = CLEANUP_INTERVAL,
        stale_render_age: float = STALE_RENDER_AGE,
    ):
        self.host = host
        self.device_manager = device_manager
        self.state_store = state_store
        self.emitter = emitter
        self.renderer = renderer
        self.throttle_interval = throttle_interval
        self.max_retries = max_retries
        self.retry_delay = retry_delay
        self.cleanup_interval = cleanup_interval
        self.stale_render_age = stale_render_age

        self.records: Dict[WidgetId, WidgetRuntimeRecord] = {}
        self._pending: Dict[WidgetId, PendingRenderTask] = {}
        self._executing: Dict[WidgetId, asyncio.Task] = {}
        self._inflight: Set[asyncio.Task] = set()
        # Loop time of the start of the last draw attempt per key
        self._last_attempt: Dict[WidgetId, float] = {}
        # Loop time at which the last successful draw per key completed
        self._last_success: Dict[WidgetId, float] = {}

        self._cleanup_task: Optional[asyncio.Task] = None

        self.emitter.on(Events.DEVICE_DISCONNECTED, self._on_device_disconnected)

    # Registration

    def register_widgets(
        self, device_id: str, configs: Iterable[Dict[str, Any]]
    ) -> List[WidgetRuntimeRecord]:
        """
        Create runtime records for a device's keys.

        Registering keys implies the device is connected.

        Returns:
            Records created, in config order
        """
        self.device_manager.connect(device_id)

        created = []
        for config in configs:
            uid = config.get("uid")
            if not uid:
                logger.warning(f"Ignoring widget without uid on device {device_id}")
                continue

            widget_id = WidgetId(device_id, str(uid))
            if widget_id in self.records:
                self._cancel_pending(widget_id)

            record = WidgetRuntimeRecord(device_id, str(uid), dict(config))
            self.records[widget_id] = record
            created.append(record)

        logger.info(f"Registered {len(created)} widgets for device {device_id}")
        return created

    def get_record(self, widget_id: WidgetId) -> Optional[WidgetRuntimeRecord]:
        return self.records.get(widget_id)

    def records_for_device(self, device_id: str) -> List[WidgetRuntimeRecord]:
        return [record for record in self.records.values() if record.device_id == device_id]

    def remove_widget(self, widget_id: WidgetId, forget_state: bool = False) -> bool:
        """
        Deregister a key and drop its transient render state.

        Args:
            widget_id: Key to remove
            forget_state: Also remove its persisted last-known state

        Returns:
            True if the key was registered
        """
        record = self.records.pop(widget_id, None)
        self._cancel_pending(widget_id)
        self._last_attempt.pop(widget_id, None)
        self._last_success.pop(widget_id, None)
        if forget_state:
            self.state_store.remove_widget_state(str(widget_id))
        if record is None:
            return False
        self.emitter.emit(Events.WIDGET_REMOVED, WidgetRemoved(widget_id, forget_state))
        return True

    def remove_device_widgets(self, device_id: str) -> int:
        widget_ids = [record.widget_id for record in self.records_for_device(device_id)]
        for widget_id in widget_ids:
            self.remove_widget(widget_id)
        if widget_ids:
            logger.info(f"Removed {len(widget_ids)} widgets of device {device_id}")
        return len(widget_ids)

    def _on_device_disconnected(self, event: DeviceEvent) -> None:
        self.remove_device_widgets(event.device_id)

    # Rendering

    def request_render(self, widget_id: WidgetId, spec: RenderSpec) -> bool:
        """
        Queue a draw for a key. Never blocks.

        Returns:
            True if the request was accepted
        """
        record = self.records.get(widget_id)
        if record is None:
            logger.debug(f"Render requested for unknown widget {widget_id}")
            return False
        if not self.device_manager.is_connected(record.device_id):
            logger.debug(f"Device {record.device_id} not connected, skipping render")
            return False
        if not record.renderable:
            logger.debug(f"Widget {widget_id} is {record.lifecycle.value}, skipping render")
            return False

        self.state_store.update_widget_state(
            str(widget_id), {"render": spec.to_state(), "cid": record.config.get("cid")}
        )
        self._schedule(widget_id, spec, self._throttle_delay(widget_id))
        return True

    def _throttle_delay(self, widget_id: WidgetId) -> float:
        # A slow draw that succeeded counts from its completion
        marks = [
            mark
            for mark in (self._last_attempt.get(widget_id), self._last_success.get(widget_id))
            if mark is not None
        ]
        if not marks:
            return 0.0
        last = max(marks)
        elapsed = asyncio.get_running_loop().time() - last
        return max(0.0, self.throttle_interval - elapsed)

    def _schedule(self, widget_id: WidgetId, spec: RenderSpec, delay: float) -> None:
        self._cancel_pending(widget_id)

        loop = asyncio.get_running_loop()
        task = PendingRenderTask(widget_id, spec, loop.time() + delay)
        task.timer = loop.call_later(delay, self._fire, task)
        self._pending[widget_id] = task

    def _cancel_pending(self, widget_id: WidgetId) -> None:
        task = self._pending.pop(widget_id, None)
        if task and task.timer:
            task.timer.cancel()

    def _fire(self, task: PendingRenderTask) -> None:
        if self._pending.get(task.widget_id) is not task:
            return

        if task.widget_id in self._executing:
            # Picked up again when the running draw finishes
            task.timer = None
            return

        # Armed before the last draw completed
        remaining = self._throttle_delay(task.widget_id)
        if remaining > 0:
            self._schedule(task.widget_id, task.payload, remaining)
            return

        del self._pending[task.widget_id]
        execution = asyncio.ensure_future(self._execute(task))
        self._executing[task.widget_id] = execution
        self._inflight.add(execution)
        execution.add_done_callback(self._inflight.discard)

    async def _execute(self, task: PendingRenderTask) -> None:
        widget_id = task.widget_id
        try:
            record = self.records.get(widget_id)
            if record is None or not record.renderable:
                return

            self._last_attempt[widget_id] = asyncio.get_running_loop().time()
            try:
                await self._draw(record, task.payload)
            except Exception as e:
                self._handle_render_error(record, task.payload, e)
            else:
                self._handle_render_success(record)
        finally:
            self._executing.pop(widget_id, None)
            self._resume_deferred(widget_id)

    async def _draw(self, record: WidgetRuntimeRecord, spec: RenderSpec) -> None:
        if spec.has_image:
            result = self.host.draw(record.device_id, spec.to_dict(), "base64", spec.image_data)
        else:
            result = self.host.draw(record.device_id, spec.to_dict())
        if inspect.isawaitable(result):
            await result

    def _resume_deferred(self, widget_id: WidgetId) -> None:
        task = self._pending.get(widget_id)
        if task is not None and task.timer is None:
            self._schedule(widget_id, task.payload, self._throttle_delay(widget_id))

    def _handle_render_success(self, record: WidgetRuntimeRecord) -> None:
        # Removed while the draw was in flight
        if self.records.get(record.widget_id) is not record:
            return

        self._last_success[record.widget_id] = asyncio.get_running_loop().time()
        record.last_render_timestamp = time.time()
        record.consecutive_error_count = 0
        record.lifecycle = WidgetLifecycle.ACTIVE
        self.emitter.emit(
            Events.WIDGET_RENDERED, WidgetRendered(record.widget_id, record.last_render_timestamp)
        )

    def _handle_render_error(
        self, record: WidgetRuntimeRecord, spec: RenderSpec, exc: Exception
    ) -> None:
        widget_id = record.widget_id
        if self.records.get(widget_id) is not record:
            return

        error = RenderError.classify(widget_id, exc)
        record.consecutive_error_count += 1
        self.emitter.emit(
            Events.WIDGET_ERROR,
            WidgetRenderFailed(widget_id, error, record.consecutive_error_count, error.terminal),
        )

        if error.terminal:
            record.lifecycle = WidgetLifecycle.DEAD
            logger.warning(f"Widget {widget_id} is no longer reachable: {error.message}")
            return

        if record.consecutive_error_count > self.max_retries:
            record.lifecycle = WidgetLifecycle.FAILED
            logger.error(
                f"Widget {widget_id} failed after {self.max_retries} retries: {error.message}"
            )
            self._draw_failure_placeholder(record)
            return

        if widget_id in self._pending:
            # A newer request is already queued and doubles as the retry
            return

        delay = max(
            self.retry_delay * record.consecutive_error_count, self._throttle_delay(widget_id)
        )
        logger.debug(
            f"Retrying widget {widget_id} in {delay:.2f}s "
            f"(attempt {record.consecutive_error_count}/{self.max_retries}): {error.message}"
        )
        self._schedule(widget_id, self._last_known_spec(widget_id, spec), delay)

    def _last_known_spec(
        self, widget_id: WidgetId, fallback: Optional[RenderSpec]
    ) -> Optional[RenderSpec]:
        state = self.state_store.get_widget_state(str(widget_id)) or {}
        render = state.get("render")
        if not render:
            return fallback
        try:
            return RenderSpec.from_state(render)
        except (KeyError, TypeError) as e:
            logger.debug(f"Stored render state for {widget_id} unusable: {e}")
            return fallback

    def _draw_failure_placeholder(self, record: WidgetRuntimeRecord) -> None:
        """Best-effort error tile, sent outside the retry machinery."""
        spec = self.renderer.error_spec(record.widget_uid)

        async def attempt() -> None:
            try:
                await self._draw(record, spec)
            except Exception as e:
                logger.debug(f"Error placeholder for {record.widget_id} not shown: {e}")

        execution = asyncio.ensure_future(attempt())
        self._inflight.add(execution)
        execution.add_done_callback(self._inflight.discard)

    def render_connection_state(self, state: Any) -> int:
        """
        Render the connection state on every inactive or active key.

        The disconnected state gets the rich offline placeholder; every
        other state a plain text tile.

        Returns:
            Number of keys a render was requested for
        """
        targets = [record for record in self.records.values() if record.renderable]
        if not targets:
            logger.debug("No widgets to render connection state on")
            return 0

        state_value = getattr(state, "value", state)
        for record in targets:
            if state_value == "disconnected":
                kind = record.kind
                label = kind.value.title() if kind else "League"
                spec = self.renderer.offline_spec(record.widget_uid, label)
            else:
                spec = self.renderer.connection_state_spec(record.widget_uid, state_value)
            self.request_render(record.widget_id, spec)

        logger.info(f"Rendered {state_value} state on {len(targets)} widgets")
        return len(targets)

    def force_render_all(self) -> int:
        """Re-request the last stored render of every key"""
        count = 0
        for widget_id in list(self.records):
            spec = self._last_known_spec(widget_id, None)
            if spec is not None and self.request_render(widget_id, spec):
                count += 1
        logger.info(f"Force rendered {count} widgets")
        return count

    # Cleanup

    def start(self) -> None:
        if self._cleanup_task and not self._cleanup_task.done():
            return
        self._cleanup_task = asyncio.get_running_loop().create_task(self._cleanup_loop())

    async def _cleanup_loop(self) -> None:
        while True:
            await asyncio.sleep(self.cleanup_interval)
            self.perform_cleanup()

    @error_boundary(default_return=0)
    def perform_cleanup(self) -> int:
        """
        Deregister dead/failed keys and purge stale bookkeeping.

        Returns:
            Number of keys deregistered
        """
        finished = [
            widget_id
            for widget_id, record in self.records.items()
            if record.lifecycle in (WidgetLifecycle.DEAD, WidgetLifecycle.FAILED)
        ]
        for widget_id in finished:
            self.remove_widget(widget_id, forget_state=True)

        now = asyncio.get_running_loop().time()
        stale = 0
        for marks in (self._last_attempt, self._last_success):
            expired = [
                widget_id
                for widget_id, mark in marks.items()
                if widget_id not in self.records or now - mark > self.stale_render_age
            ]
            for widget_id in expired:
                del marks[widget_id]
            stale += len(expired)

        if finished or stale:
            logger.debug(f"Cleanup removed {len(finished)} widgets and {stale} stale timestamps")
        return len(finished)

    def shutdown(self) -> None:
        if self._cleanup_task:
            self._cleanup_task.cancel()
            self._cleanup_task = None
        for widget_id in list(self._pending):
            self._cancel_pending(widget_id)
        logger.debug("Widget manager stopped")

    def get_status(self) -> Dict[str, Any]:
        by_state: Dict[str, int] = {lifecycle.value: 0 for lifecycle in WidgetLifecycle}
        for record in self.records.values():
            by_state[record.lifecycle.value] += 1
        return {
            "widgets": len(self.records),
            "by_state": by_state,
            "pending_renders": len(self._pending),
            "executing_renders": len(self._executing),
            "connected_devices": sorted(self.device_manager.connected_devices),
        }


class WidgetRegistry:
    """
    Registry of widget kinds, filled by auto-discovery.

    Uses the same import-and-scan pattern for every module in the widgets
    package; ``ensure_complete`` checks that each WidgetKind is implemented.
    """

    def __init__(self):
        self._widgets: Dict[WidgetKind, type] = {}

    def register(self, widget_class: type) -> None:
        """
        Register a widget class.

        Raises:
            TypeError: If widget_class doesn't inherit from BaseWidget
            ValueError: If kind is not defined
        """
        if not isinstance(widget_class, type) or not issubclass(widget_class, BaseWidget):
            raise TypeError(f"{widget_class} must inherit from BaseWidget")

        kind = widget_class.kind
        if not kind:
            raise ValueError(f"{widget_class.__name__} must define kind class attribute")

        if kind in self._widgets and self._widgets[kind] is not widget_class:
            logger.warning(f"Overwriting existing widget kind: {kind.value}")

        self._widgets[kind] = widget_class
        logger.debug(f"Registered widget kind: {kind.value}")

    def get_widget_class(self, kind: WidgetKind):
        return self._widgets.get(kind)

    def list_widgets(self) -> List[WidgetKind]:
        return list(self._widgets.keys())

    def missing_kinds(self) -> List[WidgetKind]:
        return [kind for kind in WidgetKind if kind not in self._widgets]

    def ensure_complete(self) -> None:
        """
        Raises:
            ValueError: If any WidgetKind has no implementation
        """
        missing = self.missing_kinds()
        if missing:
            names = ", ".join(kind.value for kind in missing)
            raise ValueError(f"No widget implementation for: {names}")

    def create_all(self, surface: WidgetSurface) -> Dict[WidgetKind, BaseWidget]:
        """Instantiate one widget per kind"""
        self.ensure_complete()
        return {kind: widget_class(surface) for kind, widget_class in self._widgets.items()}

    def auto_discover(self) -> None:
        """Auto-discover and register all widget modules."""
        import importlib
        import pkgutil

        import leaguedeck.widgets as widgets_pkg

        for _importer, modname, _ispkg in pkgutil.iter_modules(widgets_pkg.__path__):
            if modname in ["base", "__init__"]:
                continue

            try:
                module = importlib.import_module(f"leaguedeck.widgets.{modname}")
            except ImportError as e:
                logger.error(f"Failed to load widget module {modname}: {e}")
                continue

            for attr_name in dir(module):
                attr = getattr(module, attr_name)
                if (
                    isinstance(attr, type)
                    and issubclass(attr, BaseWidget)
                    and getattr(attr, "kind", None)
                ):
                    self.register(attr)
