"""
Connection management for the League client.

Monitors the client process, drives connect/reconnect/disconnect transitions
and owns the current ConnectionHandle.
"""

import asyncio
import dataclasses
import logging
import time
from enum import Enum
from typing import Any, Dict, Optional

from ..client.discovery import ConnectionDiscoverer
from ..client.handle import ConnectionHandle
from ..utils.errors import DiscoveryError
from ..utils.events import ConnectionChanged, EventEmitter, Events
from .poller import PollerSupervisor

logger = logging.getLogger(__name__)


class ConnectionState(str, Enum):
    DISCONNECTED = "disconnected"
    CONNECTED = "connected"
    RECONNECTING = "reconnecting"


class ConnectionManager:
    """
    Manages the League client connection lifecycle.

    Responsibilities:
    - Periodic liveness check of the client process
    - Reconnection with linear backoff when the process appears
    - Immediate teardown when the process disappears
    - Exactly one connection_changed event per actual state change
    """

    # Timing constants
    PROCESS_CHECK_INTERVAL = 3.0  # Seconds between liveness checks
    RECONNECT_DELAY = 2.0  # Base reconnect delay, multiplied by the attempt number
    MAX_RECONNECT_ATTEMPTS = 5

    def __init__(
        self,
        discoverer: ConnectionDiscoverer,
        poller: PollerSupervisor,
        emitter: EventEmitter,
        process_check_interval: float = PROCESS_CHECK_INTERVAL,
        reconnect_delay: float = RECONNECT_DELAY,
        max_reconnect_attempts: int = MAX_RECONNECT_ATTEMPTS,
    ):
        """
        Initialize the connection manager.

        Args:
            discoverer: Finds and validates the client API
            poller: Poller supervisor started on every successful connect
            emitter: Event bus for connection_changed
            process_check_interval: Seconds between liveness checks
            reconnect_delay: Base reconnect delay in seconds
            max_reconnect_attempts: Attempts per reconnect round
        """
        self.discoverer = discoverer
        self.poller = poller
        self.emitter = emitter
        self.process_check_interval = process_check_interval
        self.reconnect_delay = reconnect_delay
        self.max_reconnect_attempts = max_reconnect_attempts

        self.state = ConnectionState.DISCONNECTED
        self.handle: Optional[ConnectionHandle] = None
        self.generation = 0
        self.last_reason: Optional[str] = None
        self.last_change: Optional[float] = None
        self.reconnect_attempts = 0

        self.running = False
        self.shutting_down = False

        self._attempts_exhausted = False
        self._monitor_task: Optional[asyncio.Task] = None
        self._reconnect_task: Optional[asyncio.Task] = None

    @property
    def connected(self) -> bool:
        return self.state is ConnectionState.CONNECTED

    def start_monitoring(self) -> None:
        """Start the liveness check loop on the running event loop"""
        if self._monitor_task and not self._monitor_task.done():
            logger.warning("Connection monitoring already running")
            return

        self.running = True
        self.shutting_down = False
        self._monitor_task = asyncio.get_running_loop().create_task(self._monitor_loop())
        logger.debug("Connection monitoring started")

    async def _monitor_loop(self) -> None:
        while self.running:
            try:
                await self.check_process()
            except Exception as e:
                logger.error(f"Error in connection monitor: {e}", exc_info=True)
            await asyncio.sleep(self.process_check_interval)

    async def check_process(self) -> None:
        """One liveness check: react to the client process appearing or disappearing"""
        if self.shutting_down:
            return

        # The process table walk can be slow; keep it off the event loop
        running = await asyncio.to_thread(self.discoverer.is_client_running)
        if self.shutting_down:
            return

        if not running:
            # Next appearance of the process starts a fresh reconnect round
            self._attempts_exhausted = False
            if self.state is not ConnectionState.DISCONNECTED:
                logger.info("League client process stopped")
                await self.disconnect("League process stopped")
            return

        if self.state is ConnectionState.DISCONNECTED and not self._attempts_exhausted:
            if not self._reconnecting():
                logger.info("League client process detected")
                self._start_reconnect("League process detected")

    def _reconnecting(self) -> bool:
        return self._reconnect_task is not None and not self._reconnect_task.done()

    def _start_reconnect(self, reason: str) -> None:
        self._set_state(ConnectionState.RECONNECTING, reason)
        self._reconnect_task = asyncio.get_running_loop().create_task(
            self._reconnect(self.generation)
        )

    async def _reconnect(self, round_generation: int) -> None:
        """Try to connect up to max_reconnect_attempts times with linear backoff"""
        for attempt in range(1, self.max_reconnect_attempts + 1):
            if attempt > 1:
                await asyncio.sleep(self.reconnect_delay * attempt)

            # A disconnect or shutdown during the wait ends this round
            if self.generation != round_generation or self.shutting_down:
                return

            self.reconnect_attempts = attempt
            logger.info(f"Connection attempt {attempt}/{self.max_reconnect_attempts}")
            if await self.connect(expected_generation=round_generation):
                self.reconnect_attempts = 0
                return

        if self.generation != round_generation:
            return

        self._attempts_exhausted = True
        logger.warning(
            f"Giving up after {self.max_reconnect_attempts} attempts; "
            f"waiting for the client process to restart"
        )
        self._set_state(ConnectionState.DISCONNECTED, "Max reconnection attempts reached")

    async def connect(self, expected_generation: Optional[int] = None) -> bool:
        """
        Make a single connection attempt.

        Args:
            expected_generation: If given, the attempt is discarded when a
                teardown happened while discovery was in flight

        Returns:
            True if connected
        """
        try:
            handle = await self.discoverer.discover()
        except DiscoveryError as e:
            logger.debug(f"Connection attempt failed: {e.message}")
            return False

        stale = expected_generation is not None and self.generation != expected_generation
        if stale or self.shutting_down:
            logger.debug("Discarding connection made by an obsolete attempt")
            await handle.aclose()
            return False

        if self.handle is not None:
            await self._teardown()

        self.generation += 1
        self.handle = dataclasses.replace(handle, generation=self.generation)
        self._attempts_exhausted = False
        self.poller.start(self.handle)
        self._set_state(ConnectionState.CONNECTED, "Connected successfully")
        return True

    async def disconnect(self, reason: str) -> None:
        """Tear down the current session and announce DISCONNECTED"""
        await self._teardown()
        self._set_state(ConnectionState.DISCONNECTED, reason)

    async def _teardown(self) -> None:
        # Bumping the generation invalidates every pending callback of the old session
        self.generation += 1
        self.poller.stop()

        handle, self.handle = self.handle, None
        if handle is not None:
            await handle.aclose()

    async def force_reconnect(self) -> None:
        """Drop the current session and start a fresh reconnect round"""
        logger.info("Forcing reconnection")
        # A round sleeping between attempts is replaced, not joined
        self._cancel_reconnect()
        if self.state is not ConnectionState.DISCONNECTED:
            await self.disconnect("Forced reconnect")
        self._attempts_exhausted = False
        if not self.shutting_down:
            self._start_reconnect("Forced reconnect")

    def _cancel_reconnect(self) -> None:
        if self._reconnecting():
            self._reconnect_task.cancel()
        self._reconnect_task = None

    def _set_state(self, state: ConnectionState, reason: str) -> bool:
        """
        Move to state, emitting connection_changed if it actually changed.

        Returns:
            True if an event was emitted
        """
        if state is self.state:
            logger.debug(f"Connection state already {state.value}, ignoring ({reason})")
            return False

        previous = self.state
        self.state = state
        self.last_reason = reason
        self.last_change = time.time()

        logger.info(f"Connection state: {previous.value} -> {state.value} ({reason})")
        self.emitter.emit(
            Events.CONNECTION_CHANGED,
            ConnectionChanged(
                state=state,
                connected=state is ConnectionState.CONNECTED,
                reason=reason,
                timestamp=self.last_change,
            ),
        )
        return True

    async def shutdown(self) -> None:
        """Stop monitoring and close the session"""
        self.shutting_down = True
        self.running = False

        if self._monitor_task and not self._monitor_task.done():
            self._monitor_task.cancel()
        self._monitor_task = None
        self._cancel_reconnect()

        if self.handle is not None or self.state is not ConnectionState.DISCONNECTED:
            await self.disconnect("Service shutdown")

        logger.debug("Connection monitoring stopped")

    def get_status(self) -> Dict[str, Any]:
        return {
            "state": self.state.value,
            "connected": self.connected,
            "generation": self.generation,
            "reason": self.last_reason,
            "last_change": self.last_change,
            "reconnect_attempts": self.reconnect_attempts,
            "max_reconnect_attempts": self.max_reconnect_attempts,
            "attempts_exhausted": self._attempts_exhausted,
            "port": self.handle.port if self.handle else None,
            "version": self.handle.version if self.handle else None,
            "monitoring": self.running,
        }
