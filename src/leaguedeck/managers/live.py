"""
Fast poll loop for in-match statistics, active only while a game runs.
"""

import asyncio
import logging
import time
from typing import Callable, Optional, Set

from ..client.live import LiveClient, LiveGameSnapshot
from ..utils.errors import LiveDataError
from ..utils.events import DataUpdated, EventEmitter, Events

logger = logging.getLogger(__name__)


class LiveGameLoop:
    """
    Polls the live client API every ``interval`` seconds between start() and
    stop(), emitting ``data_updated`` with logical type ``livegame``.

    Each start() opens a new session; callbacks of older sessions are ignored.
    """

    LOGICAL_TYPE = "livegame"
    UPDATE_INTERVAL = 3.0

    def __init__(
        self,
        live_client: LiveClient,
        emitter: EventEmitter,
        riot_id_provider: Callable[[], Optional[str]],
        interval: float = UPDATE_INTERVAL,
    ):
        self.live_client = live_client
        self.emitter = emitter
        self.riot_id_provider = riot_id_provider
        self.interval = interval

        self.running = False
        self.snapshot: Optional[LiveGameSnapshot] = None
        self._session = 0
        self._timer: Optional[asyncio.TimerHandle] = None
        self._inflight: Set[asyncio.Task] = set()

    def start(self) -> None:
        if self.running:
            return
        self.running = True
        self._session += 1
        self.snapshot = None
        logger.info("Live game updates started")
        self._schedule(self._session, 0)

    def stop(self) -> None:
        if not self.running:
            return
        self.running = False
        self._session += 1
        if self._timer:
            self._timer.cancel()
            self._timer = None
        self.snapshot = None
        logger.info("Live game updates stopped")

    def _schedule(self, session: int, delay: float) -> None:
        self._timer = asyncio.get_running_loop().call_later(delay, self._tick, session)

    def _tick(self, session: int) -> None:
        if session != self._session:
            return
        self._timer = None
        task = asyncio.ensure_future(self._update(session))
        self._inflight.add(task)
        task.add_done_callback(self._inflight.discard)

    async def _update(self, session: int) -> None:
        try:
            snapshot = await self._fetch()
        except LiveDataError as e:
            # Normal during loading screens
            logger.debug(f"Live game data unavailable: {e.message}")
        else:
            if session == self._session:
                self._publish(snapshot)
        finally:
            if session == self._session:
                self._schedule(session, self.interval)

    async def _fetch(self) -> LiveGameSnapshot:
        player_list = await self.live_client.player_list()

        riot_id = self.riot_id_provider()
        scores = None
        if riot_id:
            try:
                scores = await self.live_client.player_scores(riot_id)
            except LiveDataError as e:
                logger.debug(f"Player scores unavailable for {riot_id}: {e.message}")

        return LiveGameSnapshot(player_list=player_list, riot_id=riot_id, scores=scores)

    def _publish(self, snapshot: LiveGameSnapshot) -> None:
        previous, self.snapshot = self.snapshot, snapshot
        self.emitter.emit(
            Events.DATA_UPDATED,
            DataUpdated(
                logical_type=self.LOGICAL_TYPE,
                payload=snapshot,
                previous_payload=previous,
                timestamp=time.time(),
                changed=previous != snapshot,
            ),
        )
