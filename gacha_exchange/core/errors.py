"""
Error Classification

Typed failures raised by the exchange client. Every failure below the
orchestrator is converted into one of these before it reaches a caller.
Errors carry a category and whether retrying the whole operation can help.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Optional


class ErrorCategory(str, Enum):
    """Categories of errors surfaced to callers."""

    USER_REJECTED = "user_rejected"           # Wallet declined signing
    INSUFFICIENT_FUNDS = "insufficient_funds"
    GAS_ESTIMATION = "gas_estimation"
    NETWORK = "network"
    TIMEOUT = "timeout"
    TRANSACTION_REVERTED = "transaction_reverted"
    INVALID_METADATA = "invalid_metadata"
    MAX_SUPPLY = "max_supply"
    INVALID_STATE = "invalid_state"
    UNKNOWN = "unknown"


@dataclass
class ErrorContext:
    """Additional context about an error."""

    category: ErrorCategory = ErrorCategory.UNKNOWN
    recoverable: bool = False
    suggested_action: Optional[str] = None
    tx_hash: Optional[str] = None
    token_id: Optional[int] = None
    details: Dict[str, Any] = field(default_factory=dict)


class ExecutionError(Exception):
    """Base class for every typed failure."""

    category: ErrorCategory = ErrorCategory.UNKNOWN
    recoverable: bool = False

    def __init__(
        self,
        message: str,
        context: Optional[ErrorContext] = None,
    ):
        super().__init__(message)
        self.message = message
        self.context = context or ErrorContext(
            category=self.category,
            recoverable=self.recoverable,
        )


class UserRejectedError(ExecutionError):
    """The wallet declined to sign. Terminal, never retried."""

    category = ErrorCategory.USER_REJECTED

    def __init__(self, message: str = "Transaction rejected by user"):
        super().__init__(
            message,
            context=ErrorContext(
                category=self.category,
                recoverable=False,
                suggested_action="Approve the request in the wallet to continue",
            ),
        )


class InsufficientFundsError(ExecutionError):
    """Wallet cannot cover value plus gas."""

    category = ErrorCategory.INSUFFICIENT_FUNDS

    def __init__(
        self,
        message: str = "Insufficient funds",
        required_wei: Optional[int] = None,
    ):
        super().__init__(
            message,
            context=ErrorContext(
                category=self.category,
                recoverable=False,
                suggested_action="Add funds to wallet",
                details={"required_wei": required_wei} if required_wei is not None else {},
            ),
        )


class GasEstimationError(ExecutionError):
    """Gas estimation failed; the transaction would most likely revert."""

    category = ErrorCategory.GAS_ESTIMATION

    def __init__(self, message: str, revert_reason: Optional[str] = None):
        super().__init__(
            message,
            context=ErrorContext(
                category=self.category,
                recoverable=False,
                suggested_action="Check the contract conditions for this call",
                details={"revert_reason": revert_reason} if revert_reason else {},
            ),
        )
        self.revert_reason = revert_reason


class NetworkError(ExecutionError):
    """Transport failure. Retry the whole operation from fee estimation."""

    category = ErrorCategory.NETWORK
    recoverable = True

    def __init__(self, message: str = "Network error", endpoint: Optional[str] = None):
        super().__init__(
            message,
            context=ErrorContext(
                category=self.category,
                recoverable=True,
                suggested_action="Check network connectivity and retry",
                details={"endpoint": endpoint} if endpoint else {},
            ),
        )


class TransactionTimeoutError(ExecutionError):
    """Receipt did not arrive within the confirmation timeout."""

    category = ErrorCategory.TIMEOUT
    recoverable = True

    def __init__(self, message: str, tx_hash: Optional[str] = None):
        super().__init__(
            message,
            context=ErrorContext(
                category=self.category,
                recoverable=True,
                tx_hash=tx_hash,
                suggested_action="Check the transaction in a block explorer before retrying",
            ),
        )
        self.tx_hash = tx_hash


class TransactionRevertedError(ExecutionError):
    """Transaction reverted on-chain or was refused by the node."""

    category = ErrorCategory.TRANSACTION_REVERTED

    def __init__(
        self,
        message: str = "Transaction reverted",
        tx_hash: Optional[str] = None,
        reason: Optional[str] = None,
    ):
        super().__init__(
            message,
            context=ErrorContext(
                category=self.category,
                recoverable=False,
                tx_hash=tx_hash,
                suggested_action="Review transaction parameters",
                details={"revert_reason": reason} if reason else {},
            ),
        )
        self.tx_hash = tx_hash
        self.reason = reason


class InvalidMetadataError(ExecutionError):
    """Descriptor document is missing or malformed."""

    category = ErrorCategory.INVALID_METADATA

    def __init__(self, message: str, token_id: Optional[int] = None, cid: Optional[str] = None):
        super().__init__(
            message,
            context=ErrorContext(
                category=self.category,
                recoverable=False,
                token_id=token_id,
                details={"cid": cid} if cid else {},
            ),
        )
        self.token_id = token_id


class MaxSupplyReachedError(ExecutionError):
    """Pre-flight supply check failed; nothing was submitted."""

    category = ErrorCategory.MAX_SUPPLY

    def __init__(self, total_supply: int, max_supply: int):
        super().__init__(
            f"Max supply reached ({total_supply}/{max_supply}). Cannot mint new token.",
            context=ErrorContext(
                category=self.category,
                recoverable=False,
                details={"total_supply": total_supply, "max_supply": max_supply},
            ),
        )
        self.total_supply = total_supply
        self.max_supply = max_supply


class InvalidTransitionError(ExecutionError):
    """Reveal state machine was asked for a transition it does not allow."""

    category = ErrorCategory.INVALID_STATE

    def __init__(self, from_state: Any, to_state: Any, message: Optional[str] = None):
        super().__init__(
            message or f"Invalid transition from {from_state} to {to_state}",
        )
        self.from_state = from_state
        self.to_state = to_state


def classify_error(error: Exception) -> ErrorContext:
    """
    Classify an exception and return its error context.

    Wallet and node errors arrive as free-form messages; this maps them onto
    the categories above by message pattern.
    """
    if isinstance(error, ExecutionError):
        return error.context

    message = str(error).lower()

    rejected_patterns = ["user rejected", "user denied", "rejected by user", "user cancelled"]
    if any(p in message for p in rejected_patterns):
        return ErrorContext(category=ErrorCategory.USER_REJECTED, recoverable=False)

    funds_patterns = [
        "insufficient funds",
        "insufficient balance",
        "exceeds balance",
        "not enough",
    ]
    if any(p in message for p in funds_patterns):
        return ErrorContext(
            category=ErrorCategory.INSUFFICIENT_FUNDS,
            recoverable=False,
            suggested_action="Add funds to wallet",
        )

    revert_patterns = ["execution reverted", "revert", "out of gas"]
    if any(p in message for p in revert_patterns):
        return ErrorContext(
            category=ErrorCategory.TRANSACTION_REVERTED,
            recoverable=False,
            suggested_action="Review transaction parameters",
            details={"revert_reason": extract_revert_reason(str(error))},
        )

    timeout_patterns = ["timeout", "timed out"]
    if any(p in message for p in timeout_patterns):
        return ErrorContext(category=ErrorCategory.TIMEOUT, recoverable=True)

    network_patterns = ["connection", "network", "unreachable", "refused", "dns", "socket"]
    if any(p in message for p in network_patterns):
        return ErrorContext(
            category=ErrorCategory.NETWORK,
            recoverable=True,
            suggested_action="Check network connectivity",
        )

    return ErrorContext(category=ErrorCategory.UNKNOWN, recoverable=False)


def extract_revert_reason(message: str) -> Optional[str]:
    """Pull the reason string out of an 'execution reverted: <reason>' message."""
    marker = "execution reverted"
    lowered = message.lower()
    idx = lowered.find(marker)
    if idx == -1:
        return None
    reason = message[idx + len(marker):].lstrip(": ").strip()
    return reason or None
