"""
Discovery of the local League client API.

Credentials come from the client lockfile or, when that is missing, from the
command line of the running LeagueClientUx process.
"""

import asyncio
import logging
import re
import time
from pathlib import Path
from typing import NamedTuple, Optional

import httpx
import psutil

from ..platforms import Platform, detect_platform
from ..utils.errors import DiscoveryError
from .handle import ConnectionHandle, loopback_ssl_context

logger = logging.getLogger(__name__)


class ClientCredentials(NamedTuple):
    port: int
    token: str
    protocol: str = "https"
    source: str = "lockfile"


class ConnectionDiscoverer:
    """
    Finds the local client and builds a validated ConnectionHandle.

    Each call to discover() produces a brand-new handle; port and token
    change whenever the client restarts, so nothing is reused.
    """

    HOST = "127.0.0.1"
    USERNAME = "riot"
    VALIDATION_PATH = "/lol-summoner/v1/current-summoner"
    VERSIONS_URL = "https://ddragon.leagueoflegends.com/api/versions.json"
    FALLBACK_VERSION = "15.10.1"
    VERSION_TIMEOUT = 5.0

    PORT_PATTERN = re.compile(r"--app-port=(\d+)")
    TOKEN_PATTERN = re.compile(r"--remoting-auth-token=([\w-]+)")

    def __init__(
        self,
        platform: Optional[Platform] = None,
        lockfile_path: Optional[str] = None,
        request_timeout: float = 5.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """
        Args:
            platform: Platform used for lockfile location and process names
            lockfile_path: Explicit lockfile path overriding the platform default
            request_timeout: Timeout for API requests in seconds
            transport: Optional httpx transport (used by tests)
        """
        self.platform = platform or detect_platform()
        self.lockfile_override = Path(lockfile_path).expanduser() if lockfile_path else None
        self.request_timeout = request_timeout
        self.transport = transport
        self.version = self.FALLBACK_VERSION

    @property
    def lockfile_path(self) -> Path:
        return self.lockfile_override or self.platform.lockfile_path()

    async def discover(self) -> ConnectionHandle:
        """
        Locate and validate the client API.

        Returns:
            A validated ConnectionHandle with an open HTTP client

        Raises:
            DiscoveryError: "not running" when no credentials were found,
                "validation failed" when the API rejected the validation call
        """
        # The process table walk can be slow; keep it off the event loop
        credentials = self.read_lockfile() or await asyncio.to_thread(self.scan_processes)
        if credentials is None:
            raise DiscoveryError(DiscoveryError.NOT_RUNNING)

        client = self._build_client(credentials)
        try:
            response = await client.get(self.VALIDATION_PATH)
            response.raise_for_status()
        except httpx.HTTPError as e:
            await client.aclose()
            raise DiscoveryError(
                DiscoveryError.VALIDATION_FAILED,
                {"port": credentials.port, "error": str(e)},
            ) from e

        self.version = await self.fetch_version()

        logger.info(
            f"Connected to League client on port {credentials.port} "
            f"(credentials from {credentials.source}, version {self.version})"
        )
        return ConnectionHandle(
            host=self.HOST,
            port=credentials.port,
            credential=credentials.token,
            protocol=credentials.protocol,
            discovered_at=time.time(),
            version=self.version,
            client=client,
        )

    def read_lockfile(self) -> Optional[ClientCredentials]:
        """
        Parse the lockfile (name:pid:port:password:protocol).

        Returns:
            Credentials, or None when the file is absent or malformed
        """
        path = self.lockfile_path
        try:
            content = path.read_text(encoding="utf-8").strip()
        except FileNotFoundError:
            logger.debug(f"No lockfile at {path}")
            return None
        except OSError as e:
            logger.debug(f"Cannot read lockfile {path}: {e}")
            return None

        parts = content.split(":")
        if len(parts) < 5:
            logger.warning(f"Malformed lockfile at {path}")
            return None

        _name, _pid, port, password, protocol = parts[:5]
        try:
            port_number = int(port)
        except ValueError:
            logger.warning(f"Lockfile at {path} has invalid port '{port}'")
            return None

        return ClientCredentials(port_number, password, protocol or "https", "lockfile")

    def scan_processes(self) -> Optional[ClientCredentials]:
        """
        Extract credentials from the LeagueClientUx command line.

        Returns:
            Credentials, or None when no matching process exposes them
        """
        for process in psutil.process_iter(["name", "cmdline"]):
            try:
                name = process.info.get("name") or ""
                if not self.platform.is_client_process(name):
                    continue
                cmdline = " ".join(process.info.get("cmdline") or [])
            except (psutil.NoSuchProcess, psutil.AccessDenied, psutil.ZombieProcess):
                continue

            port_match = self.PORT_PATTERN.search(cmdline)
            token_match = self.TOKEN_PATTERN.search(cmdline)
            if port_match and token_match:
                return ClientCredentials(
                    int(port_match.group(1)), token_match.group(1), "https", "process"
                )
            logger.debug(f"Client process {name} found without port/token arguments")

        return None

    def is_client_running(self) -> bool:
        """Check the process table for the client UX process"""
        for process in psutil.process_iter(["name"]):
            try:
                if self.platform.is_client_process(process.info.get("name") or ""):
                    return True
            except (psutil.NoSuchProcess, psutil.AccessDenied, psutil.ZombieProcess):
                continue
        return False

    async def fetch_version(self) -> str:
        """Latest game version from Data Dragon, or the bundled fallback"""
        try:
            async with httpx.AsyncClient(
                timeout=self.VERSION_TIMEOUT, transport=self.transport
            ) as client:
                response = await client.get(self.VERSIONS_URL)
                response.raise_for_status()
                versions = response.json()
            if isinstance(versions, list) and versions:
                return str(versions[0])
            logger.warning("Unexpected version list format, using fallback")
        except (httpx.HTTPError, ValueError) as e:
            logger.warning(f"Failed to fetch game version, using fallback: {e}")
        return self.FALLBACK_VERSION

    def _build_client(self, credentials: ClientCredentials) -> httpx.AsyncClient:
        base_url = f"{credentials.protocol}://{self.HOST}:{credentials.port}"
        return httpx.AsyncClient(
            base_url=base_url,
            auth=(self.USERNAME, credentials.token),
            timeout=self.request_timeout,
            verify=loopback_ssl_context(self.HOST),
            transport=self.transport,
            headers={"Accept": "application/json"},
        )
