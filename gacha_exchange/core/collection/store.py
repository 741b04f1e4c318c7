"""Durable view state for the collection and marketplace views."""

from __future__ import annotations

import logging
from dataclasses import replace
from typing import Dict, Iterable, List, Optional

from ..models import Item, Listing


logger = logging.getLogger(__name__)


class ViewState:
    """
    Items visible to the user.

    Items enter the collection only through ``commit`` (after a reveal) or
    a full refresh; the store owns them from then on.
    """

    def __init__(self) -> None:
        self._collection: Dict[int, Item] = {}
        self._marketplace: Dict[int, Item] = {}
        self.last_pulled: List[Item] = []

    @property
    def collection(self) -> List[Item]:
        return list(self._collection.values())

    @property
    def marketplace(self) -> List[Item]:
        return list(self._marketplace.values())

    def get(self, item_id: int) -> Optional[Item]:
        return self._collection.get(item_id)

    def get_listing(self, item_id: int) -> Optional[Item]:
        return self._marketplace.get(item_id)

    def commit(self, items: Iterable[Item]) -> None:
        """Take ownership of freshly revealed items."""
        committed = list(items)
        for item in committed:
            self._collection[item.id] = item
        self.last_pulled = committed
        logger.debug(f"Committed {len(committed)} item(s) to collection")

    def replace_collection(self, items: Iterable[Item]) -> None:
        self._collection = {item.id: item for item in items}

    def replace_marketplace(self, items: Iterable[Item]) -> None:
        self._marketplace = {item.id: item for item in items}

    def mark_listed(self, item_id: int, listing: Listing) -> None:
        item = self._collection.get(item_id)
        if item is not None:
            item.listing = listing
            self._marketplace[item_id] = item

    def mark_unlisted(self, item_id: int) -> None:
        item = self._collection.get(item_id)
        if item is not None:
            item.listing = None
        self._marketplace.pop(item_id, None)

    def transfer_purchase(self, item_id: int) -> Optional[Item]:
        """Move a bought listing from the marketplace into the collection."""
        item = self._marketplace.pop(item_id, None)
        if item is None:
            return None
        owned = replace(item, listing=None)
        self._collection[owned.id] = owned
        return owned

    def clear(self) -> None:
        self._collection.clear()
        self._marketplace.clear()
        self.last_pulled = []
