"""Named network profiles for supported EVM networks."""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Optional

from agent_payment.errors import InvalidConfigError

if TYPE_CHECKING:
    from agent_payment.config import PaymentSettings


@dataclass(frozen=True)
class NetworkProfile:
    """A bundle of network settings plus an optional default payment token."""

    name: str
    chain_id: int
    rpc_url: str
    default_token: Optional[str] = None
    default_token_symbol: Optional[str] = None
    default_token_decimals: Optional[int] = None


NETWORK_PROFILES: dict[str, NetworkProfile] = {
    "base-sepolia": NetworkProfile(
        name="base-sepolia",
        chain_id=84532,
        rpc_url="https://sepolia.base.org",
        default_token="0x036CbD53842c5426634e7929541eC2318f3dCF7e",
        default_token_symbol="USDC",
        default_token_decimals=6,
    ),
    "base-mainnet": NetworkProfile(
        name="base-mainnet",
        chain_id=8453,
        rpc_url="https://mainnet.base.org",
        default_token="0x833589fCD6eDb6E08f4c7C32D4f71b54bdA02913",
        default_token_symbol="USDC",
        default_token_decimals=6,
    ),
    "ethereum-sepolia": NetworkProfile(
        name="ethereum-sepolia",
        chain_id=11155111,
        rpc_url="https://rpc.sepolia.org",
    ),
    "ethereum-mainnet": NetworkProfile(
        name="ethereum-mainnet",
        chain_id=1,
        rpc_url="https://eth.llamarpc.com",
        default_token="0xA0b86991c6218b36c1d19D4a2e9Eb0cE3606eB48",
        default_token_symbol="USDC",
        default_token_decimals=6,
    ),
}


def get_profile(name: str) -> NetworkProfile:
    """Get a profile by name. Raises ``InvalidConfigError`` if not found."""
    if name not in NETWORK_PROFILES:
        raise InvalidConfigError(
            f"Unknown network profile '{name}'. Available: {list_profile_names()}"
        )
    return NETWORK_PROFILES[name]


def list_profile_names() -> list[str]:
    """Return the names of all network profiles."""
    return list(NETWORK_PROFILES.keys())


def apply_network_profile(config: PaymentSettings, name: str) -> NetworkProfile:
    """Copy a profile's fields onto *config*.

    Network fields are always overwritten. Payment defaults are only
    written where the profile defines them, so a profile without a token
    keeps whatever token was configured before.
    """
    profile = get_profile(name)

    config.network.name = profile.name
    config.network.chain_id = profile.chain_id
    config.network.rpc_url = profile.rpc_url

    if profile.default_token is not None:
        config.payment.default_token = profile.default_token
    if profile.default_token_symbol is not None:
        config.payment.default_token_symbol = profile.default_token_symbol
    if profile.default_token_decimals is not None:
        config.payment.default_token_decimals = profile.default_token_decimals

    return profile
