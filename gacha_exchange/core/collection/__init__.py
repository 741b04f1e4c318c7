"""Collection and marketplace views."""

from .reader import CollectionReader, sort_listings
from .store import ViewState

__all__ = [
    "CollectionReader",
    "ViewState",
    "sort_listings",
]
