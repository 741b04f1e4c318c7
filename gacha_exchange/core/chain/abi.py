"""
Contract ABI codec for the collectible contract.

Builds calldata for contract calls, decodes return data and decodes the
events the client cares about.
"""

from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Sequence, Tuple

from eth_abi import decode, encode
from eth_abi.exceptions import DecodingError
from eth_utils import keccak


# Error(string) selector used by require()/revert("...")
REVERT_ERROR_SELECTOR = "0x08c379a0"


@dataclass(frozen=True)
class ContractFunction:
    name: str
    inputs: Tuple[str, ...] = ()
    outputs: Tuple[str, ...] = ()

    @property
    def signature(self) -> str:
        return f"{self.name}({','.join(self.inputs)})"

    @property
    def selector(self) -> str:
        return _selector_from_signature(self.signature)


@dataclass(frozen=True)
class ContractEvent:
    name: str
    inputs: Tuple[str, ...]                 # full signature types, indexed included
    data_fields: Tuple[Tuple[str, str], ...]  # (field, type) of non-indexed inputs

    @property
    def signature(self) -> str:
        return f"{self.name}({','.join(self.inputs)})"

    @property
    def topic(self) -> str:
        return "0x" + keccak(text=self.signature).hex()


FUNCTIONS: Dict[str, ContractFunction] = {
    f.name: f
    for f in (
        # Mutating
        ContractFunction("pullGacha"),
        ContractFunction("multiPullGacha"),
        ContractFunction("mintCard", ("string", "uint8")),
        ContractFunction("listForSale", ("uint256", "uint256")),
        ContractFunction("cancelListing", ("uint256",)),
        ContractFunction("buyListed", ("uint256",)),
        # Reads
        ContractFunction("getRarity", ("uint256",), ("uint8",)),
        ContractFunction("tokenURI", ("uint256",), ("string",)),
        ContractFunction("getTokensOfOwner", ("address",), ("uint256[]",)),
        # Listing struct: (seller, price, active)
        ContractFunction("getTokenListing", ("uint256",), ("address", "uint256", "bool")),
        ContractFunction("isTokenListed", ("uint256",), ("bool",)),
        ContractFunction("totalSupply", (), ("uint256",)),
        ContractFunction("MAX_SUPPLY", (), ("uint256",)),
        ContractFunction("PULL_PRICE", (), ("uint256",)),
        ContractFunction("MULTI_PULL_PRICE", (), ("uint256",)),
    )
}

GACHA_PULLED = ContractEvent(
    name="GachaPulled",
    inputs=("address", "uint256[]"),
    data_fields=(("tokenIds", "uint256[]"),),
)

EVENTS: Dict[str, ContractEvent] = {GACHA_PULLED.topic: GACHA_PULLED}


def _strip_0x(value: str) -> str:
    return value[2:] if value.startswith("0x") else value


def _selector_from_signature(signature: str) -> str:
    selector = keccak(text=signature)[:4].hex()
    return f"0x{selector}"


def get_function(method: str) -> ContractFunction:
    try:
        return FUNCTIONS[method]
    except KeyError as exc:
        raise KeyError(f"Unknown contract method {method}") from exc


def encode_call(method: str, args: Sequence[Any] = ()) -> str:
    """Build calldata (selector + ABI-encoded args) for a contract method."""
    function = get_function(method)
    if len(args) != len(function.inputs):
        raise ValueError(
            f"{function.signature} expects {len(function.inputs)} argument(s), got {len(args)}"
        )
    if not function.inputs:
        return function.selector
    return function.selector + encode(list(function.inputs), list(args)).hex()


def decode_result(method: str, data: str) -> Any:
    """Decode eth_call return data; a single output is unwrapped."""
    function = get_function(method)
    raw = bytes.fromhex(_strip_0x(data or ""))
    values = decode(list(function.outputs), raw)
    values = tuple(list(v) if isinstance(v, tuple) else v for v in values)
    if len(values) == 1:
        return values[0]
    return values


def decode_revert_data(data: Optional[str]) -> Optional[str]:
    """Decode Error(string) revert data into its reason."""
    if not data or not isinstance(data, str):
        return None
    if not data.startswith(REVERT_ERROR_SELECTOR):
        return None
    try:
        (reason,) = decode(["string"], bytes.fromhex(data[len(REVERT_ERROR_SELECTOR):]))
    except (DecodingError, ValueError):
        return None
    return reason


def decode_logs(logs: List[Dict[str, Any]], contract_address: Optional[str] = None) -> Dict[str, List[Dict[str, Any]]]:
    """
    Decode known contract events from receipt logs.

    Returns event name -> list of decoded payloads, in log order.
    """
    decoded: Dict[str, List[Dict[str, Any]]] = {}
    for log in logs:
        topics = log.get("topics") or []
        if not topics:
            continue
        if contract_address and log.get("address", "").lower() != contract_address.lower():
            continue

        event = EVENTS.get(topics[0].lower())
        if event is None:
            continue

        types = [t for _, t in event.data_fields]
        values = decode(types, bytes.fromhex(_strip_0x(log.get("data", "0x"))))
        payload = {
            name: list(value) if isinstance(value, tuple) else value
            for (name, _), value in zip(event.data_fields, values)
        }
        if len(topics) > 1:
            payload["user"] = "0x" + _strip_0x(topics[1])[-40:]
        decoded.setdefault(event.name, []).append(payload)
    return decoded


def pulled_token_ids(events: Dict[str, List[Dict[str, Any]]]) -> List[int]:
    """Token ids of the GachaPulled event, in emitted order."""
    token_ids: List[int] = []
    for payload in events.get(GACHA_PULLED.name, []):
        token_ids.extend(int(t) for t in payload.get("tokenIds", []))
    return token_ids
