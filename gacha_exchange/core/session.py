"""
Exchange session.

One connected wallet account plus everything needed to act for it: the
orchestrator for writes, the reader for views, the sequencer for pulls and
the view state the UI renders from.
"""

import logging
from dataclasses import dataclass
from typing import Awaitable, Callable, List, Optional, TypeVar

import httpx

from ..cache import ContentCache
from ..config import settings
from ..logging_config import bind_account
from ..providers.ipfs import IpfsGatewayProvider
from .chain.gateway import ChainGateway
from .chain.jsonrpc import JsonRpcChainGateway
from .collection.reader import CollectionReader, SortKey
from .collection.store import ViewState
from .errors import ExecutionError
from .execution.orchestrator import TransactionOrchestrator
from .metadata.resolver import MetadataResolver
from .models import Buy, Item, ListItem, Listing, Mint, Receipt, UnlistItem
from .reveal.sequencer import ResultSequencer, RevealPresenter
from .units import EtherAmount, format_ether


logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass
class Notification:
    """User-facing outcome of an action."""
    level: str                          # "success" | "error"
    message: str
    error: Optional[ExecutionError] = None

    @property
    def is_error(self) -> bool:
        return self.level == "error"


Notifier = Callable[[Notification], None]


class ExchangeSession:
    """Account-scoped facade over the exchange client."""

    def __init__(
        self,
        account: str,
        gateway: ChainGateway,
        resolver: MetadataResolver,
        orchestrator: Optional[TransactionOrchestrator] = None,
        reader: Optional[CollectionReader] = None,
        view: Optional[ViewState] = None,
        presenter: Optional[RevealPresenter] = None,
        notify: Optional[Notifier] = None,
    ):
        self.gateway = gateway
        self.resolver = resolver
        self.orchestrator = orchestrator or TransactionOrchestrator(gateway)
        self.reader = reader or CollectionReader(gateway, resolver)
        self.view = view or ViewState()
        self.sequencer = ResultSequencer(
            self.orchestrator,
            self.reader,
            self.resolver,
            self.view,
            presenter=presenter,
        )
        self._notify = notify
        self.account = account
        bind_account(account)

    def _emit(self, notification: Notification) -> None:
        if self._notify is not None:
            self._notify(notification)

    async def _run(self, action: str, work: Callable[[], Awaitable[T]]) -> T:
        """Run ``work``, logging and notifying both outcomes. Failures re-raise."""
        try:
            result = await work()
        except ExecutionError as e:
            logger.error(f"{action} failed: {e.message} (category={e.context.category.value})")
            message = f"{action} failed: {e.message}"
            if e.context.suggested_action:
                message += f". {e.context.suggested_action}"
            self._emit(Notification(level="error", message=message, error=e))
            raise
        except ValueError as e:
            logger.error(f"{action} rejected: {e}")
            self._emit(Notification(level="error", message=f"{action} failed: {e}"))
            raise
        return result

    # =========================================================================
    # Pulls
    # =========================================================================

    async def pull(self) -> List[Item]:
        items = await self._run("Pull", lambda: self.sequencer.pull(self.account, multi=False))
        self._emit(Notification(level="success", message=f"Pulled {items[0].name}"))
        return items

    async def multi_pull(self) -> List[Item]:
        items = await self._run("Multi-pull", lambda: self.sequencer.pull(self.account, multi=True))
        self._emit(Notification(level="success", message=f"Pulled {len(items)} items"))
        return items

    # =========================================================================
    # Contract writes
    # =========================================================================

    async def mint(self, token_uri: str, rarity: int) -> Receipt:
        """Mint a card from a pinned descriptor URI (owner only)."""

        async def work() -> Receipt:
            return await self.orchestrator.execute(Mint(token_uri=token_uri, rarity=rarity), self.account)

        receipt = await self._run("Mint", work)
        self._emit(Notification(level="success", message=f"Minted card: {receipt.tx_hash}"))
        return receipt

    async def list_item(self, item_id: int, price: EtherAmount) -> Receipt:
        """Offer an owned item for sale at ``price`` ether."""

        async def work() -> Receipt:
            operation = ListItem(item_id=item_id, price=price)
            receipt = await self.orchestrator.execute(operation, self.account)
            self.view.mark_listed(
                item_id,
                Listing(active=True, price=format_ether(operation.price_wei), seller=self.account),
            )
            return receipt

        receipt = await self._run("Listing", work)
        self._emit(Notification(level="success", message=f"Item #{item_id} listed for {price} ETH"))
        return receipt

    async def unlist_item(self, item_id: int) -> Receipt:

        async def work() -> Receipt:
            receipt = await self.orchestrator.execute(UnlistItem(item_id=item_id), self.account)
            self.view.mark_unlisted(item_id)
            return receipt

        receipt = await self._run("Unlisting", work)
        self._emit(Notification(level="success", message=f"Item #{item_id} unlisted"))
        return receipt

    async def buy(self, item_id: int, price: Optional[EtherAmount] = None) -> Optional[Item]:
        """
        Buy a listed item.

        Without an explicit price the listing price is taken from the
        marketplace view, or read from the contract when the view lacks it.
        Returns the item as it now sits in the collection, if it was known.
        """

        async def work() -> Optional[Item]:
            amount = price if price is not None else await self._listing_price(item_id)
            await self.orchestrator.execute(Buy(item_id=item_id, price=amount), self.account)
            return self.view.transfer_purchase(item_id)

        item = await self._run("Purchase", work)
        self._emit(Notification(level="success", message=f"Purchased item #{item_id}"))
        return item

    async def _listing_price(self, item_id: int) -> str:
        listed = self.view.get_listing(item_id)
        if listed is not None and listed.listing is not None:
            return listed.listing.price
        listing = await self.reader.listing(item_id)
        if listing is None or not listing.active:
            raise ValueError(f"Item #{item_id} is not listed")
        return listing.price

    # =========================================================================
    # Views
    # =========================================================================

    async def refresh_collection(self) -> List[Item]:
        items = await self._run("Loading collection", lambda: self.reader.owned_items(self.account))
        self.view.replace_collection(items)
        return items

    async def refresh_marketplace(self, sort_by: Optional[SortKey] = None) -> List[Item]:
        items = await self._run("Loading marketplace", lambda: self.reader.active_listings(sort_by=sort_by))
        self.view.replace_marketplace(items)
        return items

    def switch_account(self, account: str) -> None:
        """Rebind to another wallet account; nothing from the old one survives."""
        logger.info(f"Switching account to {account}")
        self.sequencer.reset()
        self.orchestrator.nonces.clear()
        self.view.clear()
        self.account = account
        bind_account(account)

    async def aclose(self) -> None:
        await self.gateway.aclose()
        await self.resolver.provider.aclose()


def create_session(
    account: str,
    presenter: Optional[RevealPresenter] = None,
    notify: Optional[Notifier] = None,
    rpc_url: Optional[str] = None,
    contract_address: Optional[str] = None,
) -> ExchangeSession:
    """Build a session against the configured JSON-RPC node and IPFS gateway."""
    gateway = JsonRpcChainGateway(
        rpc_url=rpc_url,
        contract_address=contract_address,
        client=httpx.AsyncClient(timeout=settings.request_timeout_seconds),
    )
    resolver = MetadataResolver(
        IpfsGatewayProvider(),
        cache=ContentCache(max_size=settings.metadata_cache_size),
    )
    return ExchangeSession(
        account,
        gateway,
        resolver,
        presenter=presenter,
        notify=notify,
    )
