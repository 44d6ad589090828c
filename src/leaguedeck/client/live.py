"""
Client for the in-match Live Client Data API.

The API only answers while a match is running, listens on a fixed port and
needs no authentication.
"""

import logging
from dataclasses import dataclass
from typing import Any, Optional

import httpx

from ..utils.errors import LiveDataError
from .handle import loopback_ssl_context

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class LiveGameSnapshot:
    """One poll of the live client API"""

    player_list: Any
    riot_id: Optional[str] = None
    scores: Any = None


class LiveClient:
    HOST = "127.0.0.1"
    PORT = 2999

    PLAYER_LIST_PATH = "/liveclientdata/playerlist"
    PLAYER_SCORES_PATH = "/liveclientdata/playerscores"

    def __init__(self, timeout: float = 2.0, transport: Optional[httpx.AsyncBaseTransport] = None):
        self.timeout = timeout
        self.transport = transport
        self._client: Optional[httpx.AsyncClient] = None

    @property
    def base_url(self) -> str:
        return f"https://{self.HOST}:{self.PORT}"

    def _ensure_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(
                base_url=self.base_url,
                timeout=self.timeout,
                verify=loopback_ssl_context(self.HOST),
                transport=self.transport,
            )
        return self._client

    async def get(self, path: str, params: Optional[dict] = None) -> Any:
        """
        GET a JSON resource from the live API.

        Raises:
            LiveDataError: When the API is unreachable or answers with an error
        """
        try:
            response = await self._ensure_client().get(path, params=params)
            response.raise_for_status()
            return response.json()
        except (httpx.HTTPError, ValueError) as e:
            raise LiveDataError(path, f"Live client request failed: {e}") from e

    async def player_list(self) -> Any:
        return await self.get(self.PLAYER_LIST_PATH)

    async def player_scores(self, riot_id: str) -> Any:
        return await self.get(self.PLAYER_SCORES_PATH, params={"riotId": riot_id})

    async def aclose(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None
