"""
Collection and marketplace reads.

Builds RawIdentifiers from contract reads and enriches them through the
MetadataResolver. Views accept partial batches: a token whose metadata
cannot be resolved is logged and left out.
"""

import asyncio
import logging
from decimal import Decimal
from typing import Any, Iterable, List, Literal, Optional, Sequence

from ...config import settings
from ..chain.gateway import ChainGateway
from ..errors import ExecutionError
from ..metadata.resolver import MetadataResolver
from ..models import Item, Listing, RawIdentifier
from ..units import format_ether


logger = logging.getLogger(__name__)

SortKey = Literal["price", "rarity"]


class CollectionReader:
    """Reads owned tokens and active listings from the contract."""

    def __init__(
        self,
        gateway: ChainGateway,
        resolver: MetadataResolver,
        max_concurrency: Optional[int] = None,
    ):
        self.gateway = gateway
        self.resolver = resolver
        self._semaphore = asyncio.Semaphore(max_concurrency or settings.max_concurrent_requests)

    async def _call(self, method: str, *args: Any) -> Any:
        async with self._semaphore:
            return await self.gateway.call(method, *args)

    async def raw_identifier(self, token_id: int) -> RawIdentifier:
        token_uri, rarity = await asyncio.gather(
            self._call("tokenURI", token_id),
            self._call("getRarity", token_id),
        )
        return RawIdentifier(token_id=int(token_id), rarity=int(rarity), token_uri=token_uri)

    async def identifiers(self, token_ids: Sequence[int]) -> List[RawIdentifier]:
        """RawIdentifiers for ``token_ids``, in the same order."""
        if not token_ids:
            return []
        return list(await asyncio.gather(*(self.raw_identifier(t) for t in token_ids)))

    async def listing(self, token_id: int) -> Optional[Listing]:
        if not await self._call("isTokenListed", token_id):
            return None
        return await self._read_listing(token_id)

    async def _read_listing(self, token_id: int) -> Listing:
        seller, price_wei, active = await self._call("getTokenListing", token_id)
        return Listing(active=bool(active), price=format_ether(price_wei), seller=seller)

    async def _enrich(self, raws: Sequence[RawIdentifier]) -> List[Item]:
        results = await self.resolver.resolve_settled(raws)
        items: List[Item] = []
        for raw, result in zip(raws, results):
            if isinstance(result, ExecutionError):
                logger.warning(f"Skipping token {raw.token_id}: {result.message}")
                continue
            items.append(result)
        return items

    async def owned_items(self, account: str) -> List[Item]:
        """Tokens owned by ``account`` with their listing facet attached."""
        token_ids = [int(t) for t in await self._call("getTokensOfOwner", account)]
        items = await self._enrich(await self.identifiers(token_ids))

        listings = await asyncio.gather(*(self.listing(item.id) for item in items))
        for item, listing in zip(items, listings):
            item.listing = listing
        return items

    async def active_listings(self, sort_by: Optional[SortKey] = None) -> List[Item]:
        """Every token currently offered for sale."""
        total_supply = int(await self._call("totalSupply"))
        token_ids = list(range(1, total_supply + 1))

        listings = await asyncio.gather(*(self._read_listing(t) for t in token_ids))
        active = {t: l for t, l in zip(token_ids, listings) if l.active}

        items = await self._enrich(await self.identifiers(list(active)))
        for item in items:
            item.listing = active[item.id]

        if sort_by:
            return sort_listings(items, sort_by)
        return items


def sort_listings(items: Iterable[Item], sort_by: SortKey = "price") -> List[Item]:
    """Cheapest first for price, rarest first for rarity."""
    if sort_by == "price":
        return sorted(
            items,
            key=lambda i: i.listing.price_decimal if i.listing else Decimal("Infinity"),
        )
    if sort_by == "rarity":
        return sorted(items, key=lambda i: i.rarity, reverse=True)
    raise ValueError(f"Unknown sort key: {sort_by}")
