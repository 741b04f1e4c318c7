"""
Tests for the contract ABI codec.
"""

import pytest
from eth_abi import encode
from eth_utils import keccak

from gacha_exchange.core.chain.abi import (
    FUNCTIONS,
    GACHA_PULLED,
    decode_logs,
    decode_result,
    decode_revert_data,
    encode_call,
    pulled_token_ids,
)


CONTRACT = "0x5fbdb2315678afecb367f032d93f642f64180aa3"
USER = "0x1111111111111111111111111111111111111111"


def selector(signature: str) -> str:
    return "0x" + keccak(text=signature)[:4].hex()


class TestCalldata:
    """Tests for call encoding."""

    def test_no_argument_call_is_selector_only(self):
        assert encode_call("pullGacha") == selector("pullGacha()")

    def test_arguments_follow_selector(self):
        data = encode_call("listForSale", (7, 5 * 10**16))

        assert data.startswith(selector("listForSale(uint256,uint256)"))
        assert data[10:] == encode(["uint256", "uint256"], [7, 5 * 10**16]).hex()

    def test_mint_signature(self):
        assert FUNCTIONS["mintCard"].signature == "mintCard(string,uint8)"

    def test_argument_count_checked(self):
        with pytest.raises(ValueError):
            encode_call("buyListed", ())

    def test_unknown_method(self):
        with pytest.raises(KeyError):
            encode_call("selfDestruct")


class TestDecoding:
    """Tests for return data and revert decoding."""

    def test_single_output_unwrapped(self):
        data = "0x" + encode(["string"], ["ipfs://abc"]).hex()
        assert decode_result("tokenURI", data) == "ipfs://abc"

    def test_array_output_is_list(self):
        data = "0x" + encode(["uint256[]"], [[1, 2, 3]]).hex()
        assert decode_result("getTokensOfOwner", data) == [1, 2, 3]

    def test_listing_tuple(self):
        data = "0x" + encode(["address", "uint256", "bool"], [USER, 10**18, True]).hex()
        seller, price, active = decode_result("getTokenListing", data)

        assert seller.lower() == USER
        assert price == 10**18
        assert active is True

    def test_revert_reason(self):
        data = "0x08c379a0" + encode(["string"], ["Token not listed"]).hex()
        assert decode_revert_data(data) == "Token not listed"

    def test_revert_without_reason(self):
        assert decode_revert_data("0x") is None
        assert decode_revert_data(None) is None


class TestEventDecoding:
    """Tests for GachaPulled decoding."""

    def _pulled_log(self, token_ids, address=CONTRACT):
        return {
            "address": address,
            "topics": [GACHA_PULLED.topic, "0x" + "0" * 24 + USER[2:]],
            "data": "0x" + encode(["uint256[]"], [token_ids]).hex(),
        }

    def test_topic_is_signature_hash(self):
        assert GACHA_PULLED.topic == "0x" + keccak(text="GachaPulled(address,uint256[])").hex()

    def test_decodes_token_ids_in_order(self):
        events = decode_logs([self._pulled_log([9, 3, 7])], CONTRACT)

        assert events["GachaPulled"][0]["user"] == USER
        assert pulled_token_ids(events) == [9, 3, 7]

    def test_ignores_other_contracts_and_unknown_topics(self):
        logs = [
            self._pulled_log([1], address="0x" + "9" * 40),
            {"address": CONTRACT, "topics": ["0x" + "ab" * 32], "data": "0x"},
            {"address": CONTRACT, "topics": [], "data": "0x"},
        ]
        assert pulled_token_ids(decode_logs(logs, CONTRACT)) == []
