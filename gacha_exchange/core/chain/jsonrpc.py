"""
JSON-RPC ChainGateway.

Talks to a wallet or node over HTTP JSON-RPC. Submission uses
``eth_sendTransaction`` so signing stays with the wallet; confirmation is
observed by polling ``eth_getTransactionReceipt``.
"""

import asyncio
import logging
import time
from typing import Any, Dict, List, Optional

import httpx

from ...config import settings
from ..errors import (
    ErrorCategory,
    ExecutionError,
    GasEstimationError,
    InsufficientFundsError,
    NetworkError,
    TransactionRevertedError,
    TransactionTimeoutError,
    UserRejectedError,
    classify_error,
    extract_revert_reason,
)
from ..models import Operation, Receipt, TxParams
from .abi import decode_logs, decode_result, decode_revert_data, encode_call, pulled_token_ids
from .gateway import ChainGateway


logger = logging.getLogger(__name__)

# EIP-1193 "User Rejected Request"
USER_REJECTED_CODE = 4001


class RpcError(Exception):
    """Error object returned by the JSON-RPC endpoint."""

    def __init__(self, code: Optional[int], message: str, data: Any = None):
        super().__init__(message)
        self.code = code
        self.message = message
        self.data = data

    @property
    def revert_reason(self) -> Optional[str]:
        data = self.data
        if isinstance(data, dict):
            data = data.get("data") or data.get("message")
        return decode_revert_data(data) or extract_revert_reason(self.message)


def _to_int(value: Any) -> int:
    if isinstance(value, int):
        return value
    return int(value, 16)


class JsonRpcChainGateway(ChainGateway):
    """ChainGateway bound to one contract over HTTP JSON-RPC."""

    def __init__(
        self,
        rpc_url: Optional[str] = None,
        contract_address: Optional[str] = None,
        client: Optional[httpx.AsyncClient] = None,
        poll_interval_seconds: Optional[float] = None,
        confirmation_timeout_seconds: Optional[float] = None,
        nonce_block_tag: Optional[str] = None,
    ):
        self.rpc_url = rpc_url or settings.rpc_url
        self.contract_address = (contract_address or settings.contract_address).lower()
        if not self.contract_address:
            raise ValueError("No contract address configured")
        self.poll_interval = poll_interval_seconds if poll_interval_seconds is not None else settings.receipt_poll_interval_seconds
        self.confirmation_timeout = confirmation_timeout_seconds or settings.confirmation_timeout_seconds
        self.nonce_block_tag = nonce_block_tag or settings.nonce_block_tag
        self._client = client or httpx.AsyncClient(timeout=settings.request_timeout_seconds)
        self._request_id = 0

    async def _rpc_call(self, method: str, params: List[Any]) -> Any:
        """Make an RPC call; transport failures become NetworkError."""
        self._request_id += 1
        payload = {
            "jsonrpc": "2.0",
            "method": method,
            "params": params,
            "id": self._request_id,
        }

        try:
            response = await self._client.post(self.rpc_url, json=payload)
            response.raise_for_status()
            result = response.json()
        except httpx.HTTPError as e:
            raise NetworkError(f"RPC {method} failed: {e}", endpoint=self.rpc_url) from e
        except ValueError as e:
            raise NetworkError(f"RPC {method} returned invalid JSON", endpoint=self.rpc_url) from e

        if "error" in result:
            error = result["error"] or {}
            raise RpcError(error.get("code"), error.get("message", "RPC error"), error.get("data"))

        return result.get("result")

    def _tx_object(self, operation: Operation, sender: str, value: int) -> Dict[str, str]:
        return {
            "from": sender,
            "to": self.contract_address,
            "data": encode_call(operation.method, operation.args()),
            "value": hex(value),
        }

    def _submission_error(self, error: RpcError) -> ExecutionError:
        """Map a JSON-RPC error from eth_sendTransaction onto the failure taxonomy."""
        if error.code == USER_REJECTED_CODE:
            return UserRejectedError(error.message)

        context = classify_error(error)
        if context.category == ErrorCategory.USER_REJECTED:
            return UserRejectedError(error.message)
        if context.category == ErrorCategory.INSUFFICIENT_FUNDS:
            return InsufficientFundsError(error.message)
        if context.category == ErrorCategory.NETWORK:
            return NetworkError(error.message, endpoint=self.rpc_url)
        return TransactionRevertedError(error.message, reason=error.revert_reason)

    async def estimate_gas(self, operation: Operation, sender: str, value: int) -> int:
        try:
            gas_hex = await self._rpc_call("eth_estimateGas", [self._tx_object(operation, sender, value)])
        except RpcError as e:
            context = classify_error(e)
            if context.category == ErrorCategory.INSUFFICIENT_FUNDS:
                raise InsufficientFundsError(e.message, required_wei=value) from e
            raise GasEstimationError(
                f"Failed to estimate gas for {operation.method}: {e.message}",
                revert_reason=e.revert_reason,
            ) from e
        return _to_int(gas_hex)

    async def call(self, method: str, *args: Any) -> Any:
        call_obj = {"to": self.contract_address, "data": encode_call(method, args)}
        try:
            data = await self._rpc_call("eth_call", [call_obj, "latest"])
        except RpcError as e:
            raise TransactionRevertedError(
                f"Call {method} failed: {e.message}",
                reason=e.revert_reason,
            ) from e
        return decode_result(method, data)

    async def read_constant(self, name: str) -> int:
        return int(await self.call(name))

    async def get_confirmed_nonce(self, account: str) -> int:
        try:
            count = await self._rpc_call("eth_getTransactionCount", [account, self.nonce_block_tag])
        except RpcError as e:
            raise NetworkError(f"Failed to read transaction count: {e.message}", endpoint=self.rpc_url) from e
        return _to_int(count)

    async def get_gas_price(self) -> int:
        try:
            price = await self._rpc_call("eth_gasPrice", [])
        except RpcError as e:
            raise NetworkError(f"Failed to read gas price: {e.message}", endpoint=self.rpc_url) from e
        return _to_int(price)

    async def send(self, operation: Operation, params: TxParams) -> Receipt:
        tx = self._tx_object(operation, params.from_address, params.value)
        tx.update(params.to_dict())

        try:
            tx_hash = await self._rpc_call("eth_sendTransaction", [tx])
        except RpcError as e:
            raise self._submission_error(e) from e

        logger.info(f"Transaction submitted: {tx_hash} ({operation.method}, nonce={params.nonce})")
        receipt = await self._wait_for_receipt(tx_hash)
        receipt.nonce = params.nonce
        return receipt

    async def _wait_for_receipt(self, tx_hash: str) -> Receipt:
        """Poll until the receipt is available or the timeout elapses."""
        deadline = time.monotonic() + self.confirmation_timeout

        while True:
            try:
                raw = await self._rpc_call("eth_getTransactionReceipt", [tx_hash])
            except (NetworkError, RpcError) as e:
                logger.warning(f"Error checking transaction status: {e}")
                raw = None

            if raw:
                return self._parse_receipt(tx_hash, raw)

            if time.monotonic() >= deadline:
                raise TransactionTimeoutError(
                    f"Confirmation timeout after {self.confirmation_timeout}s",
                    tx_hash=tx_hash,
                )
            await asyncio.sleep(self.poll_interval)

    def _parse_receipt(self, tx_hash: str, raw: Dict[str, Any]) -> Receipt:
        status = _to_int(raw.get("status", "0x1"))
        if status == 0:
            raise TransactionRevertedError("Transaction reverted", tx_hash=tx_hash)

        events = decode_logs(raw.get("logs") or [], self.contract_address)
        block_number = raw.get("blockNumber")
        gas_used = raw.get("gasUsed")
        logger.info(f"Transaction confirmed: {tx_hash} (block {block_number})")

        return Receipt(
            tx_hash=tx_hash,
            success=True,
            token_ids=pulled_token_ids(events),
            block_number=_to_int(block_number) if block_number is not None else None,
            gas_used=_to_int(gas_used) if gas_used is not None else None,
            events=events,
        )

    async def aclose(self) -> None:
        """Close HTTP client."""
        await self._client.aclose()
