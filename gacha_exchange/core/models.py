"""
Exchange domain models and types.
"""

from dataclasses import dataclass, field
from decimal import Decimal
from enum import Enum
from typing import Any, ClassVar, Dict, List, Optional, Tuple, Union

from .units import EtherAmount, ether_to_wei, parse_ether


class OperationKind(str, Enum):
    """State-changing contract operations."""
    PULL = "pull"
    MULTI_PULL = "multi_pull"
    MINT = "mint"
    LIST = "list"
    UNLIST = "unlist"
    BUY = "buy"


@dataclass(frozen=True)
class Operation:
    """A single user intent, built per action and discarded after submission."""

    kind: ClassVar[OperationKind]
    method: ClassVar[str]

    def args(self) -> Tuple[Any, ...]:
        """Positional arguments of the contract call."""
        return ()

    @property
    def is_pull(self) -> bool:
        return self.kind in (OperationKind.PULL, OperationKind.MULTI_PULL)

    def describe(self) -> str:
        return self.kind.value


@dataclass(frozen=True)
class Pull(Operation):
    kind: ClassVar[OperationKind] = OperationKind.PULL
    method: ClassVar[str] = "pullGacha"


@dataclass(frozen=True)
class MultiPull(Operation):
    kind: ClassVar[OperationKind] = OperationKind.MULTI_PULL
    method: ClassVar[str] = "multiPullGacha"


@dataclass(frozen=True)
class Mint(Operation):
    """Mint a card from an already pinned descriptor.

    ``rarity`` is 1-based; the contract takes the 0-based tier.
    """

    token_uri: str
    rarity: int

    kind: ClassVar[OperationKind] = OperationKind.MINT
    method: ClassVar[str] = "mintCard"

    def __post_init__(self):
        if not self.token_uri:
            raise ValueError("token_uri is required")
        if self.rarity < 1:
            raise ValueError(f"rarity must be >= 1, got {self.rarity}")

    def args(self) -> Tuple[Any, ...]:
        return (self.token_uri, self.rarity - 1)


@dataclass(frozen=True)
class ListItem(Operation):
    item_id: int
    price: EtherAmount

    kind: ClassVar[OperationKind] = OperationKind.LIST
    method: ClassVar[str] = "listForSale"

    def __post_init__(self):
        price = parse_ether(self.price)
        if price <= 0:
            raise ValueError("Listing price must be positive")
        object.__setattr__(self, "price", price)

    @property
    def price_wei(self) -> int:
        return ether_to_wei(self.price)

    def args(self) -> Tuple[Any, ...]:
        return (self.item_id, self.price_wei)

    def describe(self) -> str:
        return f"list #{self.item_id} for {self.price} ETH"


@dataclass(frozen=True)
class UnlistItem(Operation):
    item_id: int

    kind: ClassVar[OperationKind] = OperationKind.UNLIST
    method: ClassVar[str] = "cancelListing"

    def args(self) -> Tuple[Any, ...]:
        return (self.item_id,)

    def describe(self) -> str:
        return f"unlist #{self.item_id}"


@dataclass(frozen=True)
class Buy(Operation):
    item_id: int
    price: EtherAmount

    kind: ClassVar[OperationKind] = OperationKind.BUY
    method: ClassVar[str] = "buyListed"

    def __post_init__(self):
        object.__setattr__(self, "price", parse_ether(self.price))

    @property
    def price_wei(self) -> int:
        return ether_to_wei(self.price)

    def args(self) -> Tuple[Any, ...]:
        return (self.item_id,)

    def describe(self) -> str:
        return f"buy #{self.item_id} for {self.price} ETH"


@dataclass
class TxParams:
    """Submission parameters for a mutating call."""
    from_address: str
    value: int
    gas: int
    gas_price: int
    nonce: int

    def to_dict(self) -> Dict[str, str]:
        return {
            "from": self.from_address,
            "value": hex(self.value),
            "gas": hex(self.gas),
            "gasPrice": hex(self.gas_price),
            "nonce": hex(self.nonce),
        }


@dataclass
class Receipt:
    """Result of a confirmed submission."""
    tx_hash: str
    success: bool = True
    token_ids: List[int] = field(default_factory=list)   # GachaPulled payload, in order
    block_number: Optional[int] = None
    gas_used: Optional[int] = None
    nonce: Optional[int] = None
    events: Dict[str, List[Dict[str, Any]]] = field(default_factory=dict)


@dataclass(frozen=True)
class RawIdentifier:
    """On-chain view of a token before metadata resolution."""
    token_id: int
    rarity: int                 # 0-indexed contract tier
    token_uri: str


class ItemKind(str, Enum):
    CHARACTER = "character"
    ITEM = "item"


@dataclass(frozen=True)
class CharacterTraits:
    element: str
    weapon: str
    faction: str


@dataclass(frozen=True)
class ItemTraits:
    category: str


@dataclass(frozen=True)
class Listing:
    active: bool
    price: str                  # ether decimal string
    seller: str

    @property
    def price_decimal(self) -> Decimal:
        return Decimal(self.price)


@dataclass
class Item:
    """A token merged with its off-chain descriptor."""
    id: int
    name: str
    rarity: int                 # 1-based
    image: str
    kind: ItemKind
    traits: Union[CharacterTraits, ItemTraits]
    description: str = ""
    listing: Optional[Listing] = None

    @property
    def is_character(self) -> bool:
        return self.kind == ItemKind.CHARACTER

    @property
    def is_listed(self) -> bool:
        return bool(self.listing and self.listing.active)

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "id": self.id,
            "name": self.name,
            "rarity": self.rarity,
            "image": self.image,
            "kind": self.kind.value,
        }
        if isinstance(self.traits, CharacterTraits):
            data.update(
                element=self.traits.element,
                weapon=self.traits.weapon,
                faction=self.traits.faction,
            )
        else:
            data["category"] = self.traits.category
        if self.listing:
            data.update(
                isListed=self.listing.active,
                price=self.listing.price,
                seller=self.listing.seller,
            )
        return data
