from abc import ABC, abstractmethod
from typing import Any

from ..models import Operation, Receipt, TxParams


class ChainGateway(ABC):
    """
    Wallet / contract capability consumed by the orchestrator.

    Implementations surface UserRejectedError, InsufficientFundsError,
    TransactionRevertedError and NetworkError from ``send`` and never retry
    on their own.
    """

    @abstractmethod
    async def estimate_gas(self, operation: Operation, sender: str, value: int) -> int:
        """Gas units the operation is expected to consume"""
        pass

    @abstractmethod
    async def read_constant(self, name: str) -> int:
        """Read an integer contract constant (PULL_PRICE, MAX_SUPPLY, ...)"""
        pass

    @abstractmethod
    async def call(self, method: str, *args: Any) -> Any:
        """Synchronous read-only contract call"""
        pass

    @abstractmethod
    async def send(self, operation: Operation, params: TxParams) -> Receipt:
        """Submit a mutating call and wait for its receipt"""
        pass

    @abstractmethod
    async def get_confirmed_nonce(self, account: str) -> int:
        """Transaction count of the account as reported by the chain"""
        pass

    @abstractmethod
    async def get_gas_price(self) -> int:
        """Current gas price in wei"""
        pass

    async def aclose(self) -> None:
        return None
