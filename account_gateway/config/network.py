"""
Network configuration for the account gateway.

Chain table with the dispatcher (entry point) address that is authoritative
on each chain. Local development chains have no fixed dispatcher; the
registry provisions one on first use.
"""

import os
from typing import Any


# =============================================================================
# CHAIN CONFIGURATIONS
# =============================================================================

# Canonical entry point deployment, same address on every supported chain.
ENTRY_POINT_ADDRESS = "0x0000000071727De22E5E9d8BAf0edAc6f37da032"

CHAINS: dict[str, dict[str, Any]] = {
    "ethereum": {
        "chain_id": 1,
        "name": "Ethereum Mainnet",
        "currency": "ETH",
        "rpc_urls": [
            "https://ethereum-rpc.publicnode.com",
            "https://rpc.ankr.com/eth",
        ],
        "dispatcher": ENTRY_POINT_ADDRESS,
        "local": False,
    },
    "gnosis": {
        "chain_id": 100,
        "name": "Gnosis Chain",
        "currency": "xDAI",
        "rpc_urls": [
            "https://rpc.gnosischain.com",
            "https://rpc.ankr.com/gnosis",
        ],
        "dispatcher": ENTRY_POINT_ADDRESS,
        "local": False,
    },
    "base": {
        "chain_id": 8453,
        "name": "Base",
        "currency": "ETH",
        "rpc_urls": [
            "https://mainnet.base.org",
            "https://base.publicnode.com",
        ],
        "dispatcher": ENTRY_POINT_ADDRESS,
        "local": False,
    },
    "sepolia": {
        "chain_id": 11155111,
        "name": "Sepolia",
        "currency": "ETH",
        "rpc_urls": [
            "https://ethereum-sepolia-rpc.publicnode.com",
        ],
        "dispatcher": ENTRY_POINT_ADDRESS,
        "local": False,
    },
    "anvil": {
        "chain_id": 31337,
        "name": "Anvil (local)",
        "currency": "ETH",
        "rpc_urls": ["http://127.0.0.1:8545"],
        "dispatcher": None,  # provisioned on first use
        "local": True,
    },
    "ganache": {
        "chain_id": 1337,
        "name": "Ganache (local)",
        "currency": "ETH",
        "rpc_urls": ["http://127.0.0.1:7545"],
        "dispatcher": None,
        "local": True,
    },
}

# Chain ID to name mapping
CHAIN_ID_TO_NAME: dict[int, str] = {
    config["chain_id"]: name for name, config in CHAINS.items()
}


# =============================================================================
# HELPER FUNCTIONS
# =============================================================================

def get_chain_config(chain: str | int | None = None) -> dict[str, Any]:
    """Get configuration for a specific chain.

    Args:
        chain: Chain name (e.g., 'gnosis', 'anvil') or chain ID.
               If None, uses CHAIN environment variable or defaults to 'anvil'.

    Returns:
        Chain configuration dictionary.

    Raises:
        ValueError: If chain is not supported.
    """
    if chain is None:
        chain = os.getenv("CHAIN", "anvil")

    if isinstance(chain, int):
        name = CHAIN_ID_TO_NAME.get(chain)
        if name is None:
            raise ValueError(f"Unsupported chain ID: {chain}")
        chain = name

    chain = chain.lower()
    if chain not in CHAINS:
        raise ValueError(f"Unsupported chain: {chain}. Supported: {list(CHAINS.keys())}")

    return CHAINS[chain]


def get_chain_id(chain: str | None = None) -> int:
    """Get the chain ID for a chain name."""
    config = get_chain_config(chain)
    return config["chain_id"]


def get_rpc_url(chain: str | int | None = None) -> str:
    """Get the primary RPC URL for a chain.

    Uses RPC_URL environment variable if set, otherwise returns first default.
    """
    env_rpc = os.getenv("RPC_URL")
    if env_rpc:
        return env_rpc

    config = get_chain_config(chain)
    return config["rpc_urls"][0]


def is_local_chain(chain: str | int) -> bool:
    return bool(get_chain_config(chain)["local"])
