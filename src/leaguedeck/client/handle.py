"""
Connection handle for one League client session.
"""

import ipaddress
import logging
import ssl
from dataclasses import dataclass, field
from typing import Any, Optional

import httpx

logger = logging.getLogger(__name__)


def is_loopback(host: str) -> bool:
    if host == "localhost":
        return True
    try:
        return ipaddress.ip_address(host).is_loopback
    except ValueError:
        return False


def loopback_ssl_context(host: str) -> ssl.SSLContext:
    """
    TLS context that accepts any certificate, for loopback hosts only.

    The client APIs listen on 127.0.0.1 with a self-signed certificate whose
    issuer changes between installs, so there is nothing stable to pin.

    Raises:
        ValueError: If host is not a loopback address
    """
    if not is_loopback(host):
        raise ValueError(f"Refusing to disable certificate checks for non-loopback host {host}")

    context = ssl.create_default_context()
    context.check_hostname = False
    context.verify_mode = ssl.CERT_NONE
    return context


@dataclass(frozen=True)
class ConnectionHandle:
    """
    Authenticated access to one client session.

    Immutable: a reconnect builds a new handle instead of mutating this one,
    so an in-flight poll keeps talking to the session it started with.
    """

    host: str
    port: int
    credential: str
    protocol: str
    discovered_at: float
    generation: int = 0
    version: Optional[str] = None
    client: Optional[httpx.AsyncClient] = field(default=None, compare=False, repr=False)

    @property
    def base_url(self) -> str:
        return f"{self.protocol}://{self.host}:{self.port}"

    async def get(self, path: str) -> Any:
        """
        GET a JSON resource.

        Raises:
            httpx.HTTPError: On transport errors or non-2xx responses
            ValueError: If the body is not JSON
        """
        if self.client is None:
            raise RuntimeError("Connection handle has no HTTP client")
        response = await self.client.get(path)
        response.raise_for_status()
        return response.json()

    async def aclose(self) -> None:
        if self.client is not None:
            await self.client.aclose()
            logger.debug(f"Closed client for {self.base_url} (generation {self.generation})")
