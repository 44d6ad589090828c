"""
Tests for League client discovery and the connection handle.
"""

import base64
from unittest.mock import Mock

import httpx
import psutil
import pytest

from leaguedeck.client.discovery import ClientCredentials, ConnectionDiscoverer
from leaguedeck.client.handle import is_loopback, loopback_ssl_context
from leaguedeck.platforms import LinuxPlatform
from leaguedeck.utils.errors import DiscoveryError


@pytest.fixture
def lockfile(tmp_path):
    path = tmp_path / "lockfile"
    path.write_text("LeagueClient:4242:54321:s3cr3t-token:https")
    return path


def lcu_handler(validation_status=200, versions_status=200, seen=None):
    """MockTransport handler for the client API and Data Dragon"""

    def handler(request: httpx.Request) -> httpx.Response:
        if seen is not None:
            seen.append(request)
        if request.url.host == "ddragon.leagueoflegends.com":
            return httpx.Response(versions_status, json=["15.20.1", "15.19.1"])
        if request.url.path == ConnectionDiscoverer.VALIDATION_PATH:
            return httpx.Response(validation_status, json={"gameName": "Faker"})
        return httpx.Response(404)

    return handler


def make_discoverer(lockfile_path, handler=None):
    return ConnectionDiscoverer(
        platform=LinuxPlatform(),
        lockfile_path=str(lockfile_path),
        transport=httpx.MockTransport(handler or lcu_handler()),
    )


class TestCredentials:
    def test_read_lockfile(self, lockfile):
        discoverer = make_discoverer(lockfile)
        assert discoverer.read_lockfile() == ClientCredentials(54321, "s3cr3t-token", "https")

    def test_missing_lockfile(self, tmp_path):
        assert make_discoverer(tmp_path / "nope").read_lockfile() is None

    @pytest.mark.parametrize("content", ["garbage", "LeagueClient:1:notaport:pw:https"])
    def test_malformed_lockfile(self, tmp_path, content):
        path = tmp_path / "lockfile"
        path.write_text(content)
        assert make_discoverer(path).read_lockfile() is None

    def test_scan_processes(self, tmp_path, monkeypatch, fake_process):
        """Test that credentials are taken from the client command line"""
        processes = [
            fake_process("chrome"),
            fake_process(
                "LeagueClientUx.exe",
                ["LeagueClientUx.exe", "--app-port=50123", "--remoting-auth-token=ab-CD_9"],
            ),
        ]
        monkeypatch.setattr(psutil, "process_iter", Mock(return_value=processes))

        credentials = make_discoverer(tmp_path / "nope").scan_processes()
        assert credentials == ClientCredentials(50123, "ab-CD_9", "https", "process")

    def test_scan_skips_vanished_processes(self, tmp_path, monkeypatch, fake_process):
        vanished = Mock()
        vanished.info = Mock()
        vanished.info.get.side_effect = psutil.NoSuchProcess(123)
        monkeypatch.setattr(
            psutil,
            "process_iter",
            Mock(return_value=[vanished, fake_process("LeagueClientUx.exe")]),
        )

        # Process found but without port/token arguments
        assert make_discoverer(tmp_path / "nope").scan_processes() is None

    def test_is_client_running(self, tmp_path, monkeypatch, fake_process):
        discoverer = make_discoverer(tmp_path / "nope")
        assert discoverer.is_client_running() is False

        monkeypatch.setattr(
            psutil, "process_iter", Mock(return_value=[fake_process("leagueclientux")])
        )
        assert discoverer.is_client_running() is True


class TestDiscover:
    async def test_discover_builds_validated_handle(self, lockfile):
        """Test that discovery validates credentials and returns an open handle"""
        seen = []
        discoverer = make_discoverer(lockfile, lcu_handler(seen=seen))

        handle = await discoverer.discover()
        try:
            assert handle.port == 54321
            assert handle.credential == "s3cr3t-token"
            assert handle.base_url == "https://127.0.0.1:54321"
            assert handle.version == "15.20.1"

            validation = seen[0]
            expected = base64.b64encode(b"riot:s3cr3t-token").decode()
            assert validation.headers["authorization"] == f"Basic {expected}"
            assert validation.url.port == 54321

            assert await handle.get(ConnectionDiscoverer.VALIDATION_PATH) == {"gameName": "Faker"}
        finally:
            await handle.aclose()

    async def test_not_running(self, tmp_path):
        with pytest.raises(DiscoveryError) as excinfo:
            await make_discoverer(tmp_path / "nope").discover()
        assert excinfo.value.reason == DiscoveryError.NOT_RUNNING

    async def test_validation_failed(self, lockfile):
        discoverer = make_discoverer(lockfile, lcu_handler(validation_status=401))

        with pytest.raises(DiscoveryError) as excinfo:
            await discoverer.discover()
        assert excinfo.value.reason == DiscoveryError.VALIDATION_FAILED
        assert excinfo.value.details["port"] == 54321

    async def test_version_fallback(self, lockfile):
        discoverer = make_discoverer(lockfile, lcu_handler(versions_status=503))

        handle = await discoverer.discover()
        await handle.aclose()
        assert handle.version == ConnectionDiscoverer.FALLBACK_VERSION

    async def test_each_discovery_builds_new_handle(self, lockfile):
        discoverer = make_discoverer(lockfile)
        first = await discoverer.discover()
        second = await discoverer.discover()
        await first.aclose()
        await second.aclose()

        assert first.client is not second.client


class TestLoopbackTls:
    @pytest.mark.parametrize("host", ["127.0.0.1", "::1", "localhost"])
    def test_loopback_hosts(self, host):
        assert is_loopback(host)
        assert loopback_ssl_context(host).check_hostname is False

    def test_remote_host_rejected(self):
        assert not is_loopback("8.8.8.8")
        with pytest.raises(ValueError):
            loopback_ssl_context("example.com")
