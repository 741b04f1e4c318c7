"""
Transaction orchestration for contract operations.

Handles the full lifecycle of one logical operation:
- Fee resolution
- Pre-flight checks
- Gas estimation with a safety margin
- Nonce management
- Submission and confirmation
- Event decoding
- Nonce resynchronization on failure
"""

import asyncio
import logging
from decimal import ROUND_FLOOR, Decimal
from typing import Dict, Optional

from ...config import settings
from ..chain.gateway import ChainGateway
from ..errors import ExecutionError, MaxSupplyReachedError, TransactionRevertedError
from ..models import Buy, Operation, OperationKind, Receipt, TxParams
from ..units import ether_to_wei
from .nonce_sequencer import NonceSequencer


logger = logging.getLogger(__name__)


PRICE_CONSTANTS: Dict[OperationKind, str] = {
    OperationKind.PULL: "PULL_PRICE",
    OperationKind.MULTI_PULL: "MULTI_PULL_PRICE",
}


class TransactionOrchestrator:
    """
    Executes contract operations for an account.

    Responsibilities:
    - Resolve the value each operation must attach
    - Estimate gas and apply the per-operation margin
    - Acquire nonces via NonceSequencer
    - Submit through the ChainGateway and decode the result
    - Resync the account's nonce before any failure propagates
    """

    def __init__(
        self,
        gateway: ChainGateway,
        nonce_sequencer: Optional[NonceSequencer] = None,
        pull_gas_margin: Optional[Decimal] = None,
        listing_gas_margin: Optional[Decimal] = None,
        mint_fee_wei: Optional[int] = None,
    ):
        self.gateway = gateway
        self.nonces = nonce_sequencer or NonceSequencer(gateway)
        pull_margin = Decimal(pull_gas_margin if pull_gas_margin is not None else settings.pull_gas_margin)
        listing_margin = Decimal(listing_gas_margin if listing_gas_margin is not None else settings.listing_gas_margin)
        self.gas_margins: Dict[OperationKind, Decimal] = {
            OperationKind.PULL: pull_margin,
            OperationKind.MULTI_PULL: pull_margin,
            OperationKind.BUY: pull_margin,
            OperationKind.LIST: listing_margin,
            OperationKind.UNLIST: listing_margin,
            OperationKind.MINT: listing_margin,
        }
        self.mint_fee_wei = mint_fee_wei if mint_fee_wei is not None else ether_to_wei(settings.mint_fee_ether)

    async def resolve_fee(self, operation: Operation) -> int:
        """Value in wei the operation must attach."""
        constant = PRICE_CONSTANTS.get(operation.kind)
        if constant:
            return await self.gateway.read_constant(constant)
        if operation.kind == OperationKind.MINT:
            return self.mint_fee_wei
        if isinstance(operation, Buy):
            return operation.price_wei
        return 0

    def apply_margin(self, operation: Operation, gas_estimate: int) -> int:
        margin = self.gas_margins[operation.kind]
        return int((Decimal(gas_estimate) * margin).to_integral_value(rounding=ROUND_FLOOR))

    async def check_supply(self) -> None:
        """Refuse to mint when the collection is full."""
        total_supply = int(await self.gateway.call("totalSupply"))
        max_supply = await self.gateway.read_constant("MAX_SUPPLY")
        if total_supply >= max_supply:
            raise MaxSupplyReachedError(total_supply, max_supply)

    async def execute(self, operation: Operation, account: str) -> Receipt:
        """
        Execute one operation and wait for its receipt.

        Args:
            operation: The operation to submit
            account: Sender address

        Returns:
            Receipt with decoded token ids for pulls

        Raises:
            ExecutionError: typed failure; the account's nonce has already
                been resynchronized when this propagates
        """
        nonce: Optional[int] = None
        try:
            if operation.kind == OperationKind.MINT:
                await self.check_supply()

            value = await self.resolve_fee(operation)
            gas_estimate = await self.gateway.estimate_gas(operation, account, value)
            gas_limit = self.apply_margin(operation, gas_estimate)
            gas_price = await self.gateway.get_gas_price()

            nonce = await self.nonces.next(account)
            params = TxParams(
                from_address=account,
                value=value,
                gas=gas_limit,
                gas_price=gas_price,
                nonce=nonce,
            )
            logger.info(
                f"Submitting {operation.describe()}: nonce={nonce}, gas={gas_limit}, value={value}"
            )

            receipt = await self.gateway.send(operation, params)
            receipt.nonce = nonce

            if operation.is_pull and not receipt.token_ids:
                raise TransactionRevertedError(
                    "Pull confirmed without a GachaPulled event",
                    tx_hash=receipt.tx_hash,
                )

        except asyncio.CancelledError:
            # The transaction may already be broadcast; never trust the counter again.
            if nonce is not None:
                self.nonces.invalidate(account)
            raise
        except ExecutionError as e:
            logger.error(f"{operation.describe()} failed: {e.message}")
            await self._recover_nonce(account, nonce)
            raise
        except Exception:
            logger.exception(f"{operation.describe()} failed unexpectedly")
            await self._recover_nonce(account, nonce)
            raise

        await self.nonces.confirm(account, nonce)
        logger.info(f"{operation.describe()} confirmed: {receipt.tx_hash}")
        return receipt

    async def _recover_nonce(self, account: str, nonce: Optional[int]) -> None:
        if nonce is not None:
            await self.nonces.release(account, nonce)
        try:
            await self.nonces.resync(account)
        except ExecutionError as e:
            logger.warning(f"Nonce resync failed, marking state stale: {e.message}")
            self.nonces.invalidate(account)
