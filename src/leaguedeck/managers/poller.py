"""
Endpoint poller supervisor - one independent timer per LCU endpoint.
"""

import asyncio
import logging
import time
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Set

import httpx

from ..client.handle import ConnectionHandle
from ..config.loader import EndpointConfig
from ..utils.errors import PollError
from ..utils.events import DataUpdated, EventEmitter, Events, GameStateChanged, ServiceError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CachedResponse:
    payload: Any
    timestamp: float


class PollerSupervisor:
    """
    Polls every configured endpoint on its own schedule while connected.

    Each endpoint re-arms its timer only after its own request finishes, so a
    slow or failing endpoint never delays the others. Every callback carries
    the handle it was started with and is dropped once that handle is no
    longer current.
    """

    GAME_PHASE_TYPE = "gameflow"

    def __init__(self, endpoints: List[EndpointConfig], emitter: EventEmitter):
        self.endpoints = list(endpoints)
        self.emitter = emitter

        self._handle: Optional[ConnectionHandle] = None
        self._timers: Dict[str, asyncio.TimerHandle] = {}
        self._inflight: Set[asyncio.Task] = set()
        self._cache: Dict[str, CachedResponse] = {}

        self._phase: Optional[str] = None
        self._phase_seen = False

    @property
    def running(self) -> bool:
        return self._handle is not None

    @property
    def handle(self) -> Optional[ConnectionHandle]:
        return self._handle

    def start(self, handle: ConnectionHandle) -> None:
        """Start polling every endpoint against handle with a fresh cache"""
        if self._handle is not None:
            self.stop()

        self._handle = handle
        self._cache.clear()
        self._phase = None
        self._phase_seen = False

        for endpoint in self.endpoints:
            self._schedule(endpoint, handle, 0)

        logger.info(
            f"Started polling {len(self.endpoints)} endpoints (generation {handle.generation})"
        )

    def stop(self) -> None:
        """
        Cancel every poll timer and forget the cache.

        In-flight requests are left to finish; their results are discarded.
        """
        if self._handle is None and not self._timers:
            return

        for timer in self._timers.values():
            timer.cancel()
        self._timers.clear()

        generation = self._handle.generation if self._handle else None
        self._handle = None
        self._cache.clear()
        self._phase = None
        self._phase_seen = False

        logger.info(f"Stopped polling (generation {generation})")

    def get_cached(self, logical_type: str) -> Any:
        entry = self._cache.get(logical_type)
        return entry.payload if entry else None

    def cached_types(self) -> List[str]:
        return list(self._cache)

    @property
    def current_phase(self) -> Optional[str]:
        return self._phase

    def replay(self) -> int:
        """
        Re-emit data_updated for every cached response.

        Returns:
            Number of events emitted
        """
        count = 0
        for logical_type, entry in list(self._cache.items()):
            self.emitter.emit(
                Events.DATA_UPDATED,
                DataUpdated(
                    logical_type=logical_type,
                    payload=entry.payload,
                    previous_payload=entry.payload,
                    timestamp=entry.timestamp,
                    changed=True,
                ),
            )
            count += 1
        return count

    def _is_current(self, handle: ConnectionHandle) -> bool:
        return self._handle is not None and self._handle.generation == handle.generation

    def _schedule(self, endpoint: EndpointConfig, handle: ConnectionHandle, delay: float) -> None:
        loop = asyncio.get_running_loop()
        self._timers[endpoint.path] = loop.call_later(delay, self._tick, endpoint, handle)

    def _tick(self, endpoint: EndpointConfig, handle: ConnectionHandle) -> None:
        if not self._is_current(handle):
            return
        self._timers.pop(endpoint.path, None)

        task = asyncio.ensure_future(self._poll(endpoint, handle))
        self._inflight.add(task)
        task.add_done_callback(self._inflight.discard)

    async def _poll(self, endpoint: EndpointConfig, handle: ConnectionHandle) -> None:
        try:
            payload = await handle.get(endpoint.path)
        except (httpx.HTTPError, ValueError) as e:
            if self._is_current(handle):
                self._report_failure(endpoint, PollError(endpoint.path, str(e) or repr(e)))
        else:
            if self._is_current(handle):
                self._apply(endpoint, payload)
            else:
                logger.debug(f"Discarding stale response from {endpoint.path}")
        finally:
            if self._is_current(handle):
                self._schedule(endpoint, handle, endpoint.interval)

    def _apply(self, endpoint: EndpointConfig, payload: Any) -> None:
        now = time.time()
        previous = self._cache.get(endpoint.logical_type)
        previous_payload = previous.payload if previous else None
        self._cache[endpoint.logical_type] = CachedResponse(payload, now)

        self.emitter.emit(
            Events.DATA_UPDATED,
            DataUpdated(
                logical_type=endpoint.logical_type,
                payload=payload,
                previous_payload=previous_payload,
                timestamp=now,
                changed=previous is None or previous_payload != payload,
                endpoint=endpoint.path,
            ),
        )

        if endpoint.logical_type == self.GAME_PHASE_TYPE:
            self._track_phase(str(payload), now)

    def _track_phase(self, phase: str, timestamp: float) -> None:
        # The first phase of a session is the baseline, not a transition
        if not self._phase_seen:
            self._phase_seen = True
            self._phase = phase
            logger.info(f"Game phase: {phase}")
            return

        if phase == self._phase:
            return

        previous = self._phase
        self._phase = phase
        logger.info(f"Game phase changed: {previous} -> {phase}")
        self.emitter.emit(
            Events.GAME_STATE_CHANGED,
            GameStateChanged(phase=phase, previous_phase=previous, timestamp=timestamp),
        )

    def _report_failure(self, endpoint: EndpointConfig, error: PollError) -> None:
        if endpoint.suppress_errors:
            logger.debug(f"Poll of {endpoint.path} failed (suppressed): {error.message}")
            return

        logger.debug(f"Poll of {endpoint.path} failed: {error.message}")
        self.emitter.emit(
            Events.ERROR,
            ServiceError(
                message=f"Polling error for {endpoint.path}: {error.message}",
                code="POLLING_ERROR",
                recoverable=True,
                endpoint=endpoint.path,
            ),
        )
