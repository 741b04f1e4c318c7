from decimal import Decimal
from pathlib import Path
from typing import Any

from pydantic import AliasChoices, Field
from pydantic_settings import BaseSettings, SettingsConfigDict


BASE_DIR = Path(__file__).resolve().parents[1]


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=BASE_DIR / ".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore"
    )

    def model_post_init(self, __context: Any) -> None:
        """Normalize the gateway URL so content identifiers can be appended."""

        super().model_post_init(__context)

        if self.ipfs_gateway_url and not self.ipfs_gateway_url.endswith("/"):
            object.__setattr__(self, "ipfs_gateway_url", self.ipfs_gateway_url + "/")

    log_level: str = Field(default="INFO", description="Logging level")
    log_format: str = Field(default="auto", description="json | console | auto (console at DEBUG)")

    # Chain
    rpc_url: str = Field(
        default="http://localhost:8545",
        description="JSON-RPC endpoint of the wallet / node",
        validation_alias=AliasChoices("rpc_url", "network_url", "RPC_URL", "NETWORK_URL"),
    )
    chain_id: int = Field(default=31337, description="Chain ID the contract is deployed on")
    contract_address: str = Field(
        default="",
        description="Address of the collectible contract",
        validation_alias=AliasChoices("contract_address", "CONTRACT_ADDRESS", "VITE_CONTRACT_ADDRESS"),
    )
    nonce_block_tag: str = Field(
        default="pending",
        description="Block tag used when reading the account transaction count",
    )

    # Metadata
    ipfs_gateway_url: str = Field(
        default="https://gateway.pinata.cloud/ipfs/",
        description="Gateway used to resolve content-addressed URIs",
    )
    ipfs_uri_prefix: str = Field(default="ipfs://", description="Content-addressed URI scheme prefix")
    metadata_cache_size: int = Field(default=1000, ge=1, description="Maximum cached descriptors")

    # Rate Limiting
    max_concurrent_requests: int = Field(default=10, ge=1, description="Max concurrent contract reads")

    # Timeouts
    request_timeout_seconds: float = Field(default=30.0, description="HTTP request timeout")
    confirmation_timeout_seconds: float = Field(default=300.0, description="Receipt wait timeout")
    receipt_poll_interval_seconds: float = Field(default=2.0, description="Receipt polling interval")

    # Execution
    pull_gas_margin: Decimal = Field(
        default=Decimal("1.2"),
        description="Gas estimate multiplier for pulls and purchases",
    )
    listing_gas_margin: Decimal = Field(
        default=Decimal("1.1"),
        description="Gas estimate multiplier for list, unlist and mint",
    )
    mint_fee_ether: Decimal = Field(default=Decimal("0.001"), description="Fee attached to mintCard")

    # Reveal
    animation_base_path: str = Field(
        default="images/gacha",
        description="Directory holding the reveal animation assets",
    )


# Global settings instance
settings = Settings()
