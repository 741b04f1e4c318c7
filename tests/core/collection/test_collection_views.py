"""
Tests for collection and marketplace reads and the view state.
"""

import pytest

from gacha_exchange.core.collection import CollectionReader, ViewState, sort_listings
from gacha_exchange.core.models import ItemKind, Listing


ACCOUNT = "0x1111111111111111111111111111111111111111"
SELLER = "0x3333333333333333333333333333333333333333"


@pytest.fixture
def reader(gateway, resolver) -> CollectionReader:
    return CollectionReader(gateway, resolver, max_concurrency=2)


def seed_tokens(gateway, metadata_provider, character_doc, item_doc):
    gateway.add_token(1, "ipfs://c1", 4, owner=ACCOUNT)
    gateway.add_token(2, "ipfs://c2", 1, owner=ACCOUNT)
    gateway.add_token(3, "ipfs://c3", 2, owner=SELLER)
    gateway.add_token(4, "ipfs://c4", 0, owner=SELLER)
    metadata_provider.documents.update({
        "c1": character_doc("Diluc"),
        "c2": item_doc("Compass"),
        "c3": character_doc("Kaeya", element="Cryo"),
        "c4": item_doc("Map"),
    })


# =============================================================================
# Reader
# =============================================================================

class TestCollectionReader:
    """Tests for CollectionReader."""

    @pytest.mark.asyncio
    async def test_identifiers_preserve_order(self, gateway, reader):
        gateway.add_token(5, "ipfs://x", 3)
        gateway.add_token(6, "ipfs://y", 0)

        raws = await reader.identifiers([6, 5])

        assert [(r.token_id, r.rarity, r.token_uri) for r in raws] == [(6, 0, "ipfs://y"), (5, 3, "ipfs://x")]

    @pytest.mark.asyncio
    async def test_owned_items_with_listing_facet(self, gateway, metadata_provider, character_doc, item_doc, reader):
        seed_tokens(gateway, metadata_provider, character_doc, item_doc)
        gateway.listings[2] = (ACCOUNT, 5 * 10**16, True)

        items = await reader.owned_items(ACCOUNT)

        assert [item.id for item in items] == [1, 2]
        assert items[0].kind == ItemKind.CHARACTER
        assert items[0].listing is None
        assert items[1].listing == Listing(active=True, price="0.05", seller=ACCOUNT)

    @pytest.mark.asyncio
    async def test_unresolvable_tokens_are_skipped(self, gateway, metadata_provider, character_doc, item_doc, reader):
        seed_tokens(gateway, metadata_provider, character_doc, item_doc)
        del metadata_provider.documents["c2"]

        items = await reader.owned_items(ACCOUNT)

        assert [item.id for item in items] == [1]

    @pytest.mark.asyncio
    async def test_active_listings_scan_supply(self, gateway, metadata_provider, character_doc, item_doc, reader):
        seed_tokens(gateway, metadata_provider, character_doc, item_doc)
        gateway.listings[3] = (SELLER, 2 * 10**18, True)
        gateway.listings[4] = (SELLER, 10**17, True)
        gateway.listings[1] = (ACCOUNT, 10**18, False)

        items = await reader.active_listings(sort_by="price")

        assert [item.id for item in items] == [4, 3]
        assert items[0].listing.price == "0.1"
        assert items[1].listing.price == "2"

    @pytest.mark.asyncio
    async def test_empty_marketplace(self, reader):
        assert await reader.active_listings() == []


class TestSortListings:
    """Tests for marketplace ordering."""

    @pytest.mark.asyncio
    async def test_rarity_sort_is_descending(self, gateway, metadata_provider, character_doc, item_doc, reader):
        seed_tokens(gateway, metadata_provider, character_doc, item_doc)
        for token_id in (1, 2, 3):
            gateway.listings[token_id] = (SELLER, 10**18, True)

        items = await reader.active_listings(sort_by="rarity")

        assert [item.rarity for item in items] == [5, 3, 2]

    def test_unknown_key(self):
        with pytest.raises(ValueError):
            sort_listings([], "name")


# =============================================================================
# View State
# =============================================================================

class TestViewState:
    """Tests for ViewState bookkeeping."""

    @pytest.mark.asyncio
    async def test_list_unlist_and_purchase(self, gateway, metadata_provider, character_doc, item_doc, reader):
        seed_tokens(gateway, metadata_provider, character_doc, item_doc)
        view = ViewState()
        view.replace_collection(await reader.owned_items(ACCOUNT))

        view.mark_listed(1, Listing(active=True, price="0.05", seller=ACCOUNT))
        assert view.get(1).is_listed
        assert view.get_listing(1) is not None

        view.mark_unlisted(1)
        assert not view.get(1).is_listed
        assert view.get_listing(1) is None

        gateway.listings[3] = (SELLER, 10**18, True)
        view.replace_marketplace(await reader.active_listings())
        bought = view.transfer_purchase(3)

        assert bought.listing is None
        assert view.get(3) is bought
        assert view.marketplace == []

    def test_purchase_of_unknown_listing(self):
        assert ViewState().transfer_purchase(99) is None

    def test_clear(self):
        view = ViewState()
        view.last_pulled = ["x"]
        view.clear()
        assert view.collection == [] and view.marketplace == [] and view.last_pulled == []
