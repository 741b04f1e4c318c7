"""
Nonce sequencing for concurrent transactions.

Hands out nonces per account so that operations submitted concurrently for
the same account never share one, and resynchronizes from the chain after
a failed submission.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Dict, Optional, Set

from ..chain.gateway import ChainGateway


logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class NonceState:
    """Tracks nonce state for one account."""
    account: str
    confirmed_nonce: int                        # Last count reported by the chain
    pending_nonce: int                          # Next candidate for use
    reserved_nonces: Set[int] = field(default_factory=set)
    last_updated: datetime = field(default_factory=_utcnow)


class NonceSequencer:
    """
    Per-account optimistic nonce counter.

    - Seeded from the chain's transaction count on first use
    - ``next`` reserves and returns a nonce under a per-account lock
    - Nonces still reserved by in-flight operations are never handed out again
    - ``resync`` re-reads the chain after a failure
    """

    def __init__(self, gateway: ChainGateway):
        self.gateway = gateway
        self._states: Dict[str, NonceState] = {}
        self._locks: Dict[str, asyncio.Lock] = {}
        self._stale: Set[str] = set()

    def _get_key(self, account: str) -> str:
        return account.lower()

    def _get_lock(self, key: str) -> asyncio.Lock:
        if key not in self._locks:
            self._locks[key] = asyncio.Lock()
        return self._locks[key]

    def _apply_chain_count(self, key: str, on_chain_nonce: int) -> NonceState:
        state = self._states.get(key)
        if state is None:
            state = NonceState(
                account=key,
                confirmed_nonce=on_chain_nonce,
                pending_nonce=on_chain_nonce,
            )
            self._states[key] = state
            return state

        state.confirmed_nonce = on_chain_nonce
        state.reserved_nonces = {n for n in state.reserved_nonces if n >= on_chain_nonce}
        # Trust the chain; reserved nonces are skipped at allocation time.
        state.pending_nonce = on_chain_nonce
        state.last_updated = _utcnow()
        return state

    async def next(self, account: str) -> int:
        """Reserve and return the next nonce for ``account``."""
        key = self._get_key(account)
        lock = self._get_lock(key)

        async with lock:
            state = self._states.get(key)
            if state is None or key in self._stale:
                on_chain_nonce = await self.gateway.get_confirmed_nonce(account)
                state = self._apply_chain_count(key, on_chain_nonce)
                self._stale.discard(key)

            nonce = state.pending_nonce
            while nonce in state.reserved_nonces:
                nonce += 1

            state.reserved_nonces.add(nonce)
            state.pending_nonce = nonce + 1
            state.last_updated = _utcnow()

            logger.debug(f"Reserved nonce {nonce} for {key}")
            return nonce

    async def confirm(self, account: str, nonce: int) -> None:
        """Settle a nonce whose transaction was mined."""
        key = self._get_key(account)
        async with self._get_lock(key):
            state = self._states.get(key)
            if state is None:
                return
            state.reserved_nonces.discard(nonce)
            if nonce >= state.confirmed_nonce:
                state.confirmed_nonce = nonce + 1
            if state.pending_nonce < state.confirmed_nonce:
                state.pending_nonce = state.confirmed_nonce

    async def release(self, account: str, nonce: int) -> None:
        """Drop the reservation of a nonce whose submission failed."""
        key = self._get_key(account)
        async with self._get_lock(key):
            state = self._states.get(key)
            if state is not None:
                state.reserved_nonces.discard(nonce)

    async def resync(self, account: str) -> int:
        """
        Re-read the account's transaction count from the chain.

        Returns the on-chain count.
        """
        key = self._get_key(account)
        async with self._get_lock(key):
            on_chain_nonce = await self.gateway.get_confirmed_nonce(account)
            self._apply_chain_count(key, on_chain_nonce)
            self._stale.discard(key)
            logger.info(f"Resynced nonce for {key}: chain count {on_chain_nonce}")
            return on_chain_nonce

    def invalidate(self, account: str) -> None:
        """
        Mark cached state stale without touching the network.

        The next ``next`` call re-seeds from the chain. Reservations of other
        in-flight operations are kept.
        """
        key = self._get_key(account)
        if key in self._states:
            self._stale.add(key)

    def is_stale(self, account: str) -> bool:
        return self._get_key(account) in self._stale

    def get_state(self, account: str) -> Optional[NonceState]:
        return self._states.get(self._get_key(account))

    def clear(self) -> None:
        """Drop all cached state (account switch)."""
        self._states.clear()
        self._stale.clear()
