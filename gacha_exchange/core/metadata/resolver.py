"""
Metadata resolution.

Turns on-chain token identifiers into enriched Items by fetching the
descriptor each token URI points at. Fetches run concurrently; results come
back in input order because callers treat index 0 as the single-pull result.
"""

import asyncio
import logging
from typing import List, Optional, Sequence, Union

from pydantic import ValidationError

from ...cache import ContentCache
from ...config import settings
from ...providers.base import MetadataProvider
from ..errors import ExecutionError, InvalidMetadataError
from ..models import CharacterTraits, Item, ItemKind, ItemTraits, RawIdentifier
from .descriptor import UNKNOWN_TRAIT, Descriptor


logger = logging.getLogger(__name__)


class MetadataResolver:
    """
    Resolves RawIdentifiers into Items.

    Descriptors are cached by content identifier for the lifetime of the
    resolver; a content identifier always names the same document.
    """

    def __init__(
        self,
        provider: MetadataProvider,
        cache: Optional[ContentCache] = None,
        uri_prefix: Optional[str] = None,
    ):
        self.provider = provider
        self.cache = cache or ContentCache(max_size=settings.metadata_cache_size)
        self.uri_prefix = uri_prefix or settings.ipfs_uri_prefix

    def content_id(self, uri: str) -> str:
        """Strip the content-addressing scheme from a URI."""
        if uri.startswith(self.uri_prefix):
            return uri[len(self.uri_prefix):]
        return uri

    def resolve_uri(self, uri: str) -> str:
        """Rewrite a content-addressed URI to a gateway URL; other URIs pass through."""
        if uri.startswith(self.uri_prefix):
            return self.provider.gateway_url(self.content_id(uri))
        return uri

    async def descriptor(self, cid: str, token_id: Optional[int] = None) -> Descriptor:
        cached = await self.cache.get(cid)
        if cached is not None:
            return cached

        document = await self.provider.fetch_json(cid)
        if not isinstance(document, dict):
            raise InvalidMetadataError(
                f"Metadata for token {token_id} is not an object",
                token_id=token_id,
                cid=cid,
            )
        try:
            descriptor = Descriptor.model_validate(document)
        except ValidationError as e:
            raise InvalidMetadataError(
                f"Invalid metadata format for token {token_id}: {e.error_count()} error(s)",
                token_id=token_id,
                cid=cid,
            ) from e

        await self.cache.set(cid, descriptor)
        return descriptor

    async def resolve_one(self, raw: RawIdentifier) -> Item:
        cid = self.content_id(raw.token_uri)
        if not cid:
            raise InvalidMetadataError(f"Token {raw.token_id} has an empty token URI", token_id=raw.token_id)

        try:
            descriptor = await self.descriptor(cid, token_id=raw.token_id)
        except InvalidMetadataError as e:
            if e.token_id is None:
                e.token_id = raw.token_id
                e.context.token_id = raw.token_id
            raise

        element = descriptor.trait("Element")
        if element != UNKNOWN_TRAIT:
            kind = ItemKind.CHARACTER
            traits: Union[CharacterTraits, ItemTraits] = CharacterTraits(
                element=element,
                weapon=descriptor.trait("Weapon"),
                faction=descriptor.trait("Faction"),
            )
        else:
            kind = ItemKind.ITEM
            traits = ItemTraits(category=descriptor.trait("Category"))

        return Item(
            id=raw.token_id,
            name=descriptor.name or f"Item #{raw.token_id}",
            rarity=raw.rarity + 1,
            image=self.resolve_uri(descriptor.image),
            kind=kind,
            traits=traits,
            description=descriptor.description or "",
        )

    async def resolve_settled(
        self,
        raw_identifiers: Sequence[RawIdentifier],
    ) -> List[Union[Item, ExecutionError]]:
        """
        Resolve every identifier, returning per-element outcomes.

        A failed element is returned as its typed error in place; siblings
        are unaffected. Errors that are not ExecutionErrors are bugs and
        propagate.
        """
        if not raw_identifiers:
            return []

        outcomes = await asyncio.gather(
            *(self.resolve_one(raw) for raw in raw_identifiers),
            return_exceptions=True,
        )

        results: List[Union[Item, ExecutionError]] = []
        for raw, outcome in zip(raw_identifiers, outcomes):
            if isinstance(outcome, ExecutionError):
                logger.warning(f"Metadata resolution failed for token {raw.token_id}: {outcome.message}")
                results.append(outcome)
            elif isinstance(outcome, BaseException):
                raise outcome
            else:
                results.append(outcome)
        return results

    async def resolve(self, raw_identifiers: Sequence[RawIdentifier]) -> List[Item]:
        """
        Resolve every identifier or fail.

        All fetches are allowed to settle before the first failure (in input
        order) is raised, so no sibling is left half-done.
        """
        results = await self.resolve_settled(raw_identifiers)
        for result in results:
            if isinstance(result, ExecutionError):
                raise result
        return [r for r in results if isinstance(r, Item)]
