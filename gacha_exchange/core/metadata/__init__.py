"""
Token metadata resolution.

- MetadataResolver: RawIdentifier -> Item, concurrent and order preserving
- Descriptor: validated shape of the off-chain descriptor document
"""

from .descriptor import UNKNOWN_TRAIT, Attribute, Descriptor
from .resolver import MetadataResolver

__all__ = [
    "Attribute",
    "Descriptor",
    "MetadataResolver",
    "UNKNOWN_TRAIT",
]
