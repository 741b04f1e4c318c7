"""
Transaction Execution Layer

- TransactionOrchestrator: submit -> confirm -> decode for one operation
- NonceSequencer: per-account nonce allocation and resync

Usage:
    from gacha_exchange.core.execution import TransactionOrchestrator

    orchestrator = TransactionOrchestrator(gateway)
    receipt = await orchestrator.execute(Pull(), account)
"""

from .nonce_sequencer import (
    NonceSequencer,
    NonceState,
)

from .orchestrator import (
    TransactionOrchestrator,
    PRICE_CONSTANTS,
)

__all__ = [
    "NonceSequencer",
    "NonceState",
    "TransactionOrchestrator",
    "PRICE_CONSTANTS",
]
