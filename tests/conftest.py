"""
Pytest configuration and fixtures
"""

import asyncio
from typing import Any, Dict, List, Optional
from unittest.mock import Mock

import httpx
import pytest

from leaguedeck.client.handle import ConnectionHandle
from leaguedeck.device.manager import DeviceManager
from leaguedeck.device.renderer import ButtonRenderer
from leaguedeck.host.base import PluginHost
from leaguedeck.managers.widget import WidgetManager
from leaguedeck.state.store import StateStore
from leaguedeck.utils.events import EventEmitter


class RecordingHost(PluginHost):
    """Host double that records every draw and fails on demand"""

    name = "recording"

    def __init__(self):
        self.draws: List[Dict[str, Any]] = []
        # uid -> exceptions raised by the next draws, in order
        self.failures: Dict[str, List[Exception]] = {}
        # uid -> exception raised by every draw
        self.always_fail: Dict[str, Exception] = {}

    def draw(self, device_id, render_spec, image_format=None, image_data=None):
        loop = asyncio.get_running_loop()
        self.draws.append(
            {
                "device_id": device_id,
                "uid": render_spec["uid"],
                "title": render_spec["title"],
                "spec": render_spec,
                "image_format": image_format,
                "image_data": image_data,
                "time": loop.time(),
            }
        )
        uid = render_spec["uid"]
        if self.failures.get(uid):
            raise self.failures[uid].pop(0)
        if uid in self.always_fail:
            raise self.always_fail[uid]

    def draws_for(self, uid: str) -> List[Dict[str, Any]]:
        return [draw for draw in self.draws if draw["uid"] == uid]

    def titles_for(self, uid: str) -> List[str]:
        return [draw["title"] for draw in self.draws_for(uid)]


class EventRecorder:
    """Collects payloads of the events it is subscribed to"""

    def __init__(self, emitter: EventEmitter, *events: str):
        self.received: Dict[str, List[Any]] = {event: [] for event in events}
        for event in events:
            emitter.on(event, self.received[event].append)

    def __getitem__(self, event: str) -> List[Any]:
        return self.received[event]


class FakeClock:
    def __init__(self, now: float = 1_000_000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def emitter():
    return EventEmitter()


@pytest.fixture
def record_events(emitter):
    """Factory subscribing an EventRecorder to the given events"""

    def factory(*events: str) -> EventRecorder:
        return EventRecorder(emitter, *events)

    return factory


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def state_file(tmp_path):
    return tmp_path / "state" / "plugin-state.json"


@pytest.fixture
def state_store(state_file, clock):
    return StateStore(str(state_file), auto_save_interval=60, max_cache_age=300, clock=clock)


@pytest.fixture
def host():
    return RecordingHost()


@pytest.fixture
def renderer():
    return ButtonRenderer()


@pytest.fixture
def device_manager(emitter):
    return DeviceManager(emitter)


@pytest.fixture
def widget_manager(host, device_manager, state_store, emitter, renderer):
    """Widget manager with short timings"""
    manager = WidgetManager(
        host,
        device_manager,
        state_store,
        emitter,
        renderer,
        throttle_interval=0.02,
        max_retries=3,
        retry_delay=0.03,
        cleanup_interval=60.0,
        stale_render_age=300.0,
    )
    yield manager
    manager.shutdown()


@pytest.fixture
def widget_configs():
    """Three keys of different kinds as the host reports them"""
    return [
        {"uid": "k1", "cid": "com.sondrenjaastad.leagueoflegends.summoner"},
        {"uid": "k2", "cid": "com.sondrenjaastad.leagueoflegends.rank"},
        {"uid": "k3", "cid": "com.sondrenjaastad.leagueoflegends.wallet"},
    ]


@pytest.fixture
def summoner_payload():
    return {
        "gameName": "Faker",
        "tagLine": "KR1",
        "displayName": "Hide on bush",
        "summonerLevel": 30,
        "percentCompleteForNextLevel": 50,
    }


@pytest.fixture
def ranked_payload():
    return {
        "queueMap": {
            "RANKED_SOLO_5x5": {
                "tier": "GOLD",
                "division": "II",
                "leaguePoints": 45,
                "wins": 10,
                "losses": 8,
            },
            "RANKED_FLEX_SR": {
                "tier": "SILVER",
                "division": "I",
                "leaguePoints": 12,
                "wins": 3,
                "losses": 4,
            },
            "RANKED_FLEX_TT": {"tier": "", "division": "NA"},
        }
    }


@pytest.fixture
def wait_until():
    """Poll a predicate on the running loop until it holds or time runs out"""

    async def waiter(predicate, timeout: float = 2.0, interval: float = 0.005) -> bool:
        loop = asyncio.get_running_loop()
        deadline = loop.time() + timeout
        while loop.time() < deadline:
            if predicate():
                return True
            await asyncio.sleep(interval)
        return predicate()

    return waiter


@pytest.fixture
async def make_handle():
    """Factory for ConnectionHandles backed by an httpx.MockTransport"""
    handles: List[ConnectionHandle] = []

    def factory(handler, generation: int = 1, port: int = 50000) -> ConnectionHandle:
        client = httpx.AsyncClient(
            base_url=f"https://127.0.0.1:{port}", transport=httpx.MockTransport(handler)
        )
        handle = ConnectionHandle(
            host="127.0.0.1",
            port=port,
            credential="secret",
            protocol="https",
            discovered_at=0.0,
            generation=generation,
            client=client,
        )
        handles.append(handle)
        return handle

    yield factory

    for handle in handles:
        await handle.aclose()


@pytest.fixture(autouse=True)
def no_process_scan(monkeypatch):
    """Never look at the real process table during tests"""
    monkeypatch.setattr("psutil.process_iter", Mock(return_value=[]))


@pytest.fixture
def fake_process():
    """Factory for psutil process doubles carrying only .info"""

    def factory(name: str, cmdline: Optional[List[str]] = None) -> Mock:
        process = Mock()
        process.info = {"name": name, "cmdline": cmdline or [name]}
        return process

    return factory
