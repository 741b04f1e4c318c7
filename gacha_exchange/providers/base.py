from abc import ABC, abstractmethod
from typing import Any


class Provider(ABC):
    """Base provider interface"""

    name: str
    timeout_s: float = 10


class MetadataProvider(Provider):
    """Provider for off-chain descriptor documents"""

    @abstractmethod
    async def fetch_json(self, cid: str) -> Any:
        """Fetch and decode the JSON document stored under a content identifier"""
        pass

    @abstractmethod
    def gateway_url(self, cid: str) -> str:
        """Resolvable URL for a content identifier"""
        pass

    async def aclose(self) -> None:
        """Release any held connections"""
        return None
