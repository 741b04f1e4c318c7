import logging
from typing import Any, Optional

import httpx

from ..config import settings
from ..core.errors import InvalidMetadataError, NetworkError
from .base import MetadataProvider


logger = logging.getLogger(__name__)


class IpfsGatewayProvider(MetadataProvider):
    """Fetches descriptor documents through an HTTP IPFS gateway"""

    name = "ipfs_gateway"

    def __init__(
        self,
        gateway_url: Optional[str] = None,
        client: Optional[httpx.AsyncClient] = None,
        timeout_s: Optional[float] = None,
    ):
        self.base_url = gateway_url or settings.ipfs_gateway_url
        if not self.base_url.endswith("/"):
            self.base_url += "/"
        self.timeout_s = timeout_s or settings.request_timeout_seconds
        self._client = client or httpx.AsyncClient(timeout=self.timeout_s)

    def gateway_url(self, cid: str) -> str:
        return f"{self.base_url}{cid.lstrip('/')}"

    async def fetch_json(self, cid: str) -> Any:
        url = self.gateway_url(cid)
        try:
            response = await self._client.get(url)
        except httpx.HTTPError as e:
            logger.warning(f"Gateway request failed for {cid}: {e}")
            raise NetworkError(f"Failed to fetch metadata {cid}: {e}", endpoint=url) from e

        if response.status_code >= 500 or response.status_code == 429:
            raise NetworkError(
                f"Gateway returned {response.status_code} for {cid}",
                endpoint=url,
            )
        if response.status_code >= 400:
            raise InvalidMetadataError(
                f"Metadata {cid} not available (HTTP {response.status_code})",
                cid=cid,
            )

        try:
            return response.json()
        except ValueError as e:
            raise InvalidMetadataError(f"Metadata {cid} is not valid JSON", cid=cid) from e

    async def aclose(self) -> None:
        await self._client.aclose()
