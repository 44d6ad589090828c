"""
Integration tests for LeagueDeckController.

These tests run the whole controller against a fake League client:
- Client appearing, data reaching the keys, client going away
- Match start and end driving the live stats keys
- Device unplug and replug
- State persisted across shutdown
"""

import asyncio
import json

import httpx
import pytest
import yaml

from leaguedeck.controller import LeagueDeckController
from leaguedeck.managers.connection import ConnectionState
from leaguedeck.managers.widget import WidgetLifecycle
from leaguedeck.widgets.base import WidgetId, WidgetKind

DEVICE = "DEV1"
PREFIX = "com.sondrenjaastad.leagueoflegends."

KEYS = [
    {"uid": "sum", "cid": PREFIX + "summoner"},
    {"uid": "rank", "cid": PREFIX + "rank"},
    {"uid": "wallet", "cid": PREFIX + "wallet"},
    {"uid": "kda", "cid": PREFIX + "kda"},
]


class FakeLeagueClient:
    """Serves the client API, the live client API and Data Dragon"""

    def __init__(self, summoner, ranked):
        self.running = True
        self.phase = "Lobby"
        self.responses = {
            "/lol-summoner/v1/current-summoner": summoner,
            "/lol-ranked/v1/current-ranked-stats": ranked,
            "/lol-inventory/v1/wallet": {"rp": 1350, "ip": 24000},
            "/api/versions.json": ["15.20.1", "15.19.1"],
            "/liveclientdata/playerlist": [
                {"riotId": "Faker#KR1", "team": "CHAOS", "scores": {"kills": 6}},
                {"riotId": "Enemy#NA1", "team": "ORDER", "scores": {"kills": 2}},
            ],
            "/liveclientdata/playerscores": {"kills": 6, "deaths": 1, "assists": 9},
        }

    def __call__(self, request: httpx.Request) -> httpx.Response:
        path = request.url.path
        if path == "/lol-gameflow/v1/gameflow-phase":
            return httpx.Response(200, json=self.phase)
        if path.startswith("/liveclientdata") and self.phase != "InProgress":
            return httpx.Response(404, json={"errorCode": "RESOURCE_NOT_FOUND"})
        if path in self.responses:
            return httpx.Response(200, json=self.responses[path])
        return httpx.Response(404, json={"message": "not found"})


@pytest.fixture
def league(summoner_payload, ranked_payload):
    return FakeLeagueClient(summoner_payload, ranked_payload)


@pytest.fixture
def config_file(tmp_path):
    lockfile = tmp_path / "lockfile"
    lockfile.write_text("LeagueClient:4242:50123:secret-token:https")

    endpoints = [
        {"path": "/lol-summoner/v1/current-summoner", "interval": 0.05, "type": "summoner"},
        {"path": "/lol-gameflow/v1/gameflow-phase", "interval": 0.03, "type": "gameflow"},
        {"path": "/lol-ranked/v1/current-ranked-stats", "interval": 0.05, "type": "ranked"},
        {
            "path": "/lol-inventory/v1/wallet",
            "interval": 0.05,
            "type": "wallet",
            "suppress_errors": True,
        },
    ]
    config = {
        "league": {
            "process_check_interval": 0.03,
            "reconnect_delay": 0.03,
            "max_reconnect_attempts": 3,
            "lockfile": str(lockfile),
            "endpoints": endpoints,
        },
        "live_game": {"interval": 0.03},
        "rendering": {"throttle_interval": 0.01, "retry_delay": 0.02},
        "state": {"file": str(tmp_path / "state.json"), "auto_save_interval": 0.05},
    }
    path = tmp_path / "config.yaml"
    path.write_text(yaml.dump(config))
    return path


@pytest.fixture
async def controller(config_file, host, league):
    controller = LeagueDeckController(str(config_file), host=host)
    transport = httpx.MockTransport(league)
    controller.discoverer.transport = transport
    controller.live_client.transport = transport
    controller.discoverer.is_client_running = lambda: league.running
    yield controller
    await controller.shutdown()


@pytest.fixture
def last_title(host):
    def title(uid):
        titles = host.titles_for(uid)
        return titles[-1] if titles else None

    return title


async def connected(controller, wait_until):
    return await wait_until(
        lambda: controller.connection_manager.state is ConnectionState.CONNECTED
    )


class TestClientLifecycle:
    async def test_keys_follow_client_data(self, controller, last_title, wait_until):
        controller.handle_widgets_registered(DEVICE, KEYS)
        assert await wait_until(lambda: last_title("sum") == "League Offline")

        await controller.start()
        assert await connected(controller, wait_until)

        assert await wait_until(lambda: last_title("sum") == "Faker#KR1\nLevel 30\nXP 50%")
        assert await wait_until(lambda: last_title("rank") == "Solo/Duo\nGOLD II • 45 LP\n10W 8L")
        assert await wait_until(lambda: last_title("wallet") == "RP 1,350\nBE 24,000")
        assert last_title("kda") == "KDA\nNot in game"
        assert controller.discoverer.version == "15.20.1"

    async def test_client_exit_shows_offline(
        self, controller, league, last_title, wait_until
    ):
        controller.handle_widgets_registered(DEVICE, KEYS)
        await controller.start()
        assert await connected(controller, wait_until)
        assert await wait_until(lambda: last_title("sum") == "Faker#KR1\nLevel 30\nXP 50%")

        league.running = False

        assert await wait_until(
            lambda: controller.connection_manager.state is ConnectionState.DISCONNECTED
        )
        assert await wait_until(
            lambda: all(last_title(key["uid"]) == "League Offline" for key in KEYS)
        )
        stored = controller.state_store.get_connection_state("league")
        assert stored["state"] == "disconnected"
        assert stored["reason"] == "League process stopped"
        assert controller.poller.cached_types() == []

        league.running = True
        assert await connected(controller, wait_until)
        assert await wait_until(lambda: last_title("sum") == "Faker#KR1\nLevel 30\nXP 50%")

    async def test_match_drives_live_keys(self, controller, league, last_title, wait_until):
        controller.handle_widgets_registered(DEVICE, KEYS)
        await controller.start()
        assert await connected(controller, wait_until)
        assert await wait_until(lambda: controller.poller.get_cached("summoner") is not None)

        league.phase = "InProgress"

        assert await wait_until(lambda: controller.router.in_game)
        assert await wait_until(lambda: last_title("kda") == "KDA\n6/1/9\n15.0 KDA")

        league.phase = "EndOfGame"

        assert await wait_until(lambda: not controller.router.in_game)
        assert await wait_until(lambda: last_title("kda") == "KDA\nNot in game")
        assert controller.live_loop.running is False


class TestHostEvents:
    async def test_device_unplug_and_replug(self, controller, host, last_title, wait_until):
        await controller.start()
        assert await connected(controller, wait_until)
        controller.handle_widgets_registered(DEVICE, KEYS)
        assert await wait_until(lambda: last_title("wallet") == "RP 1,350\nBE 24,000")

        controller.handle_device_status([])
        assert controller.widget_manager.records_for_device(DEVICE) == []
        assert controller.state_store.get_widget_state(f"{DEVICE}-wallet") is not None

        draws_before = len(host.draws_for("wallet"))
        controller.handle_device_status([{"serialNumber": DEVICE}])

        assert len(controller.widget_manager.records_for_device(DEVICE)) == len(KEYS)
        assert await wait_until(lambda: len(host.draws_for("wallet")) > draws_before)
        assert last_title("wallet") == "RP 1,350\nBE 24,000"

    async def test_reregistration_drops_removed_keys(self, controller, wait_until):
        controller.handle_widgets_registered(DEVICE, KEYS)
        assert controller.handle_widgets_registered(DEVICE, KEYS[:2]) == 2

        uids = {r.widget_uid for r in controller.widget_manager.records_for_device(DEVICE)}
        assert uids == {"sum", "rank"}
        assert controller.state_store.get_widget_state(f"{DEVICE}-wallet") is None

    async def test_press_cycles_rank(self, controller, last_title, wait_until):
        controller.handle_widgets_registered(DEVICE, KEYS)
        await controller.start()
        assert await wait_until(lambda: last_title("rank") == "Solo/Duo\nGOLD II • 45 LP\n10W 8L")

        assert controller.handle_widget_interaction(DEVICE, {"uid": "rank"}) is True
        assert await wait_until(lambda: last_title("rank") == "Flex\nSILVER I • 12 LP\n3W 4L")

    async def test_swept_rank_key_frees_its_queue(self, controller, last_title, wait_until):
        solo = "Solo/Duo\nGOLD II • 45 LP\n10W 8L"
        controller.handle_widgets_registered(DEVICE, [{"uid": "r1", "cid": PREFIX + "rank"}])
        await controller.start()
        assert await wait_until(lambda: last_title("r1") == solo)

        widget_manager = controller.widget_manager
        widget_manager.get_record(WidgetId(DEVICE, "r1")).lifecycle = WidgetLifecycle.DEAD
        assert widget_manager.perform_cleanup() == 1

        controller.handle_widgets_registered(DEVICE, [{"uid": "r2", "cid": PREFIX + "rank"}])

        assert await wait_until(lambda: last_title("r2") == solo)
        rank = controller.router.widgets[WidgetKind.RANK]
        assert list(rank.queues.selections) == [WidgetId(DEVICE, "r2")]

    async def test_press_without_uid(self, controller):
        assert controller.handle_widget_interaction(DEVICE, {}) is False


class TestShutdown:
    async def test_run_until_stopped(self, controller, wait_until):
        task = asyncio.ensure_future(controller.run())
        assert await wait_until(lambda: controller.started)

        controller.stop()
        await asyncio.wait_for(task, 2.0)

        assert controller.shutting_down is True
        assert controller.connection_manager.state is ConnectionState.DISCONNECTED

    async def test_state_saved_on_shutdown(self, controller, tmp_path, wait_until):
        controller.handle_widgets_registered(DEVICE, KEYS)
        await controller.start()
        assert await connected(controller, wait_until)

        await controller.shutdown()
        await controller.shutdown()

        document = json.loads((tmp_path / "state.json").read_text())
        assert f"{DEVICE}-sum" in document["keys"]
        assert document["connections"]["league"]["state"] == "disconnected"
        assert document["connections"]["league"]["reason"] == "Service shutdown"

    async def test_state_restored_on_start(self, config_file, host):
        first = LeagueDeckController(str(config_file), host=host)
        first.state_store.set_preference("brightness", 70)
        await first.shutdown()

        second = LeagueDeckController(str(config_file), host=host)
        second.discoverer.is_client_running = lambda: False
        await second.start()
        try:
            assert second.state_store.get_preference("brightness") == 70
        finally:
            await second.shutdown()

    async def test_status(self, controller, wait_until):
        controller.handle_widgets_registered(DEVICE, KEYS)
        await controller.start()
        assert await connected(controller, wait_until)

        status = controller.get_status()
        assert status["started"] is True
        assert status["connection"]["connected"] is True
        assert status["registered_devices"] == [DEVICE]
        assert status["widgets"]["widgets"] == len(KEYS)


class TestForcedActions:
    async def test_force_refresh_redraws_keys(self, controller, host, last_title, wait_until):
        controller.handle_widgets_registered(DEVICE, KEYS)
        await controller.start()
        assert await wait_until(lambda: last_title("wallet") == "RP 1,350\nBE 24,000")

        draws_before = len(host.draws_for("wallet"))
        assert controller.force_refresh() == len(KEYS)

        assert await wait_until(lambda: len(host.draws_for("wallet")) > draws_before)
        assert last_title("wallet") == "RP 1,350\nBE 24,000"

    async def test_force_reconnect_builds_new_session(self, controller, wait_until):
        await controller.start()
        assert await connected(controller, wait_until)
        generation = controller.connection_manager.handle.generation

        await controller.force_reconnect()

        assert await connected(controller, wait_until)
        assert controller.connection_manager.handle.generation > generation
