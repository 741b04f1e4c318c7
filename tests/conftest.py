"""
Shared fixtures: an in-memory contract and an in-memory metadata store.
"""

import asyncio
from typing import Any, Dict, List, Optional, Tuple

import pytest

from gacha_exchange.cache import ContentCache
from gacha_exchange.core.chain.gateway import ChainGateway
from gacha_exchange.core.errors import InvalidMetadataError
from gacha_exchange.core.metadata.resolver import MetadataResolver
from gacha_exchange.core.models import Operation, Receipt, TxParams
from gacha_exchange.providers.base import MetadataProvider


PULL_PRICE = 10**15
MULTI_PULL_PRICE = 9 * 10**15


class FakeChainGateway(ChainGateway):
    """
    In-memory stand-in for the collectible contract.

    Successful sends advance the chain transaction count, like a mined
    transaction would.
    """

    def __init__(self, chain_nonce: int = 0):
        self.chain_nonce = chain_nonce
        self.constants: Dict[str, int] = {
            "PULL_PRICE": PULL_PRICE,
            "MULTI_PULL_PRICE": MULTI_PULL_PRICE,
            "MAX_SUPPLY": 1000,
        }
        self.gas_estimate = 100_000
        self.gas_price = 1_000_000_000

        # token id -> (token uri, 0-based rarity)
        self.tokens: Dict[int, Tuple[str, int]] = {}
        self.owners: Dict[str, List[int]] = {}
        # token id -> (seller, price wei, active)
        self.listings: Dict[int, Tuple[str, int, bool]] = {}

        self.pull_results: List[List[int]] = []
        self.send_errors: List[Optional[Exception]] = []
        self.send_delay = 0.0

        self.sent: List[Tuple[Operation, TxParams]] = []
        self.estimates: List[Tuple[Operation, str, int]] = []
        self.nonce_reads = 0

    def add_token(self, token_id: int, uri: str, rarity: int, owner: Optional[str] = None) -> None:
        self.tokens[token_id] = (uri, rarity)
        if owner:
            self.owners.setdefault(owner.lower(), []).append(token_id)

    async def estimate_gas(self, operation: Operation, sender: str, value: int) -> int:
        self.estimates.append((operation, sender, value))
        return self.gas_estimate

    async def read_constant(self, name: str) -> int:
        return self.constants[name]

    async def call(self, method: str, *args: Any) -> Any:
        if method == "tokenURI":
            return self.tokens[args[0]][0]
        if method == "getRarity":
            return self.tokens[args[0]][1]
        if method == "getTokensOfOwner":
            return list(self.owners.get(args[0].lower(), []))
        if method == "totalSupply":
            return len(self.tokens)
        if method == "isTokenListed":
            listing = self.listings.get(args[0])
            return bool(listing and listing[2])
        if method == "getTokenListing":
            return self.listings.get(args[0], ("0x" + "0" * 40, 0, False))
        if method in self.constants:
            return self.constants[method]
        raise KeyError(method)

    async def send(self, operation: Operation, params: TxParams) -> Receipt:
        self.sent.append((operation, params))
        await asyncio.sleep(self.send_delay)

        error = self.send_errors.pop(0) if self.send_errors else None
        if error is not None:
            raise error

        self.chain_nonce += 1
        token_ids = self.pull_results.pop(0) if operation.is_pull and self.pull_results else []
        return Receipt(tx_hash=f"0x{len(self.sent):064x}", token_ids=token_ids, nonce=params.nonce)

    async def get_confirmed_nonce(self, account: str) -> int:
        self.nonce_reads += 1
        return self.chain_nonce

    async def get_gas_price(self) -> int:
        return self.gas_price


class FakeMetadataProvider(MetadataProvider):
    """Serves descriptor documents from a dict, optionally with per-cid delays."""

    name = "fake_metadata"

    def __init__(self, documents: Optional[Dict[str, Any]] = None):
        self.documents: Dict[str, Any] = documents or {}
        self.delays: Dict[str, float] = {}
        self.gates: Dict[str, asyncio.Event] = {}
        self.fetches: List[str] = []
        self.closed = False

    def gateway_url(self, cid: str) -> str:
        return f"https://gateway.test/ipfs/{cid}"

    async def fetch_json(self, cid: str) -> Any:
        self.fetches.append(cid)
        if cid in self.gates:
            await self.gates[cid].wait()
        if cid in self.delays:
            await asyncio.sleep(self.delays[cid])
        if cid not in self.documents:
            raise InvalidMetadataError(f"Metadata {cid} not available (HTTP 404)", cid=cid)
        return self.documents[cid]

    async def aclose(self) -> None:
        self.closed = True


def character_document(name: str, element: str = "Pyro", weapon: str = "Sword", faction: str = "Mondstadt") -> Dict[str, Any]:
    return {
        "name": name,
        "description": f"{name} descriptor",
        "image": f"ipfs://img-{name.lower()}",
        "attributes": [
            {"trait_type": "Element", "value": element},
            {"trait_type": "Weapon", "value": weapon},
            {"trait_type": "Faction", "value": faction},
        ],
    }


def item_document(name: str, category: str = "Artifact") -> Dict[str, Any]:
    return {
        "name": name,
        "image": f"ipfs://img-{name.lower()}",
        "attributes": [{"trait_type": "Category", "value": category}],
    }


@pytest.fixture
def gateway() -> FakeChainGateway:
    return FakeChainGateway()


@pytest.fixture
def metadata_provider() -> FakeMetadataProvider:
    return FakeMetadataProvider()


@pytest.fixture
def resolver(metadata_provider: FakeMetadataProvider) -> MetadataResolver:
    return MetadataResolver(metadata_provider, cache=ContentCache(max_size=100), uri_prefix="ipfs://")


@pytest.fixture
def character_doc():
    return character_document


@pytest.fixture
def item_doc():
    return item_document
