"""
Tests for the transaction orchestrator.
"""

import asyncio
from decimal import Decimal

import pytest
from unittest.mock import AsyncMock

from gacha_exchange.core.errors import (
    InsufficientFundsError,
    MaxSupplyReachedError,
    NetworkError,
    TransactionRevertedError,
    UserRejectedError,
)
from gacha_exchange.core.execution import TransactionOrchestrator
from gacha_exchange.core.models import Buy, ListItem, Mint, MultiPull, Pull, UnlistItem


ACCOUNT = "0x1111111111111111111111111111111111111111"


@pytest.fixture
def orchestrator(gateway) -> TransactionOrchestrator:
    return TransactionOrchestrator(
        gateway,
        pull_gas_margin=Decimal("1.2"),
        listing_gas_margin=Decimal("1.1"),
        mint_fee_wei=10**15,
    )


# =============================================================================
# Fees and gas
# =============================================================================

class TestFeesAndGas:
    """Tests for value and gas limit resolution."""

    @pytest.mark.asyncio
    async def test_pull_attaches_contract_price(self, gateway, orchestrator):
        assert await orchestrator.resolve_fee(Pull()) == gateway.constants["PULL_PRICE"]
        assert await orchestrator.resolve_fee(MultiPull()) == gateway.constants["MULTI_PULL_PRICE"]

    @pytest.mark.asyncio
    async def test_buy_attaches_listing_price(self, orchestrator):
        assert await orchestrator.resolve_fee(Buy(item_id=3, price="0.05")) == 5 * 10**16

    @pytest.mark.asyncio
    async def test_mint_attaches_mint_fee(self, orchestrator):
        assert await orchestrator.resolve_fee(Mint(token_uri="ipfs://cid", rarity=1)) == 10**15

    @pytest.mark.asyncio
    async def test_listing_attaches_nothing(self, orchestrator):
        assert await orchestrator.resolve_fee(ListItem(item_id=1, price="1")) == 0
        assert await orchestrator.resolve_fee(UnlistItem(item_id=1)) == 0

    def test_margins_are_floored(self, orchestrator):
        assert orchestrator.apply_margin(Pull(), 100_001) == 120_001
        assert orchestrator.apply_margin(Pull(), 7) == 8              # 8.4
        assert orchestrator.apply_margin(UnlistItem(item_id=1), 7) == 7   # 7.7
        assert orchestrator.apply_margin(Buy(item_id=1, price="1"), 10) == 12

    @pytest.mark.asyncio
    async def test_submitted_params(self, gateway, orchestrator):
        gateway.pull_results = [[42]]

        await orchestrator.execute(Pull(), ACCOUNT)

        _, params = gateway.sent[0]
        assert params.from_address == ACCOUNT
        assert params.value == gateway.constants["PULL_PRICE"]
        assert params.gas == 120_000
        assert params.gas_price == gateway.gas_price
        assert params.nonce == 0


# =============================================================================
# Execution
# =============================================================================

class TestExecute:
    """Tests for TransactionOrchestrator.execute."""

    @pytest.mark.asyncio
    async def test_pull_returns_emitted_token_ids(self, gateway, orchestrator):
        gateway.pull_results = [[5, 6, 7]]

        receipt = await orchestrator.execute(MultiPull(), ACCOUNT)

        assert receipt.token_ids == [5, 6, 7]
        assert receipt.nonce == 0

    @pytest.mark.asyncio
    async def test_pull_without_event_is_reverted(self, gateway, orchestrator):
        with pytest.raises(TransactionRevertedError):
            await orchestrator.execute(Pull(), ACCOUNT)

    @pytest.mark.asyncio
    async def test_concurrent_operations_get_distinct_increasing_nonces(self, gateway, orchestrator):
        gateway.chain_nonce = 2
        gateway.send_delay = 0.01
        gateway.pull_results = [[i] for i in range(5)]

        await asyncio.gather(*(orchestrator.execute(Pull(), ACCOUNT) for _ in range(5)))

        submitted = [params.nonce for _, params in gateway.sent]
        assert submitted == [2, 3, 4, 5, 6]

    @pytest.mark.asyncio
    async def test_mint_refused_when_supply_exhausted(self, gateway, orchestrator):
        gateway.constants["MAX_SUPPLY"] = 2
        gateway.add_token(1, "ipfs://a", 0)
        gateway.add_token(2, "ipfs://b", 0)

        with pytest.raises(MaxSupplyReachedError) as exc_info:
            await orchestrator.execute(Mint(token_uri="ipfs://c", rarity=3), ACCOUNT)

        assert exc_info.value.total_supply == 2
        assert gateway.sent == []
        assert gateway.estimates == []

    @pytest.mark.asyncio
    async def test_mint_sends_zero_based_rarity(self, gateway, orchestrator):
        await orchestrator.execute(Mint(token_uri="ipfs://c", rarity=3), ACCOUNT)

        operation, _ = gateway.sent[0]
        assert operation.args() == ("ipfs://c", 2)


# =============================================================================
# Failure recovery
# =============================================================================

class TestFailureRecovery:
    """A failed submission must leave the nonce counter usable."""

    @pytest.mark.asyncio
    async def test_rejected_send_resyncs_before_propagating(self, gateway, orchestrator):
        gateway.chain_nonce = 4
        gateway.send_errors = [UserRejectedError()]

        with pytest.raises(UserRejectedError):
            await orchestrator.execute(UnlistItem(item_id=1), ACCOUNT)

        state = orchestrator.nonces.get_state(ACCOUNT)
        assert state.pending_nonce >= gateway.chain_nonce
        assert state.reserved_nonces == set()

        await orchestrator.execute(UnlistItem(item_id=1), ACCOUNT)
        assert [p.nonce for _, p in gateway.sent] == [4, 4]

    @pytest.mark.asyncio
    async def test_failure_does_not_disturb_in_flight_sibling(self, gateway, orchestrator):
        gateway.send_delay = 0.01
        gateway.send_errors = [None, InsufficientFundsError("insufficient funds")]
        gateway.pull_results = [[1]]

        results = await asyncio.gather(
            orchestrator.execute(Pull(), ACCOUNT),
            orchestrator.execute(Pull(), ACCOUNT),
            return_exceptions=True,
        )

        assert results[0].token_ids == [1]
        assert isinstance(results[1], InsufficientFundsError)
        next_nonce = await orchestrator.nonces.next(ACCOUNT)
        assert next_nonce >= gateway.chain_nonce

    @pytest.mark.asyncio
    async def test_failed_resync_marks_state_stale(self, gateway, orchestrator):
        gateway.send_errors = [TransactionRevertedError("execution reverted")]
        await orchestrator.nonces.next(ACCOUNT)
        gateway.get_confirmed_nonce = AsyncMock(side_effect=NetworkError("node down"))

        with pytest.raises(TransactionRevertedError):
            await orchestrator.execute(ListItem(item_id=1, price="0.5"), ACCOUNT)

        assert orchestrator.nonces.is_stale(ACCOUNT)

    @pytest.mark.asyncio
    async def test_cancellation_after_acquire_invalidates(self, gateway, orchestrator):
        gateway.send_delay = 10

        task = asyncio.create_task(orchestrator.execute(UnlistItem(item_id=1), ACCOUNT))
        while not gateway.sent:
            await asyncio.sleep(0)
        task.cancel()

        with pytest.raises(asyncio.CancelledError):
            await task
        assert orchestrator.nonces.is_stale(ACCOUNT)
