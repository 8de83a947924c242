"""
Dispatcher registry.

Answers "which dispatcher is authoritative on this chain?". Production
chains resolve from the chain table. Local chains have no fixed dispatcher:
the first lookup deploys a ``LocalDispatcher`` on the registered
``LocalChain`` and every later lookup returns the cached address.
"""

from __future__ import annotations

import logging
from typing import Any

from eth_typing import ChecksumAddress
from eth_utils import to_checksum_address

from account_gateway.config.network import CHAINS
from account_gateway.errors import UnsupportedChainError
from account_gateway.executor.dispatcher import LocalDispatcher
from account_gateway.executor.local_chain import LocalChain

logger = logging.getLogger(__name__)

# Anvil default account #0, used as deployer for provisioned dispatchers
DEFAULT_DEPLOYER = "0xf39Fd6e51aad88F6F4ce6aB8827279cffFb92266"


class DispatcherRegistry:
    """
    Resolves the dispatcher address for a chain id.

    Args:
        chains: Chain table (defaults to ``network.CHAINS``)
        local_chains: Local environments to provision dispatchers on
        deployer: Address that deploys provisioned dispatchers
    """

    def __init__(
        self,
        chains: dict[str, dict[str, Any]] | None = None,
        local_chains: list[LocalChain] | None = None,
        deployer: str = DEFAULT_DEPLOYER,
    ):
        self.deployer = to_checksum_address(deployer)
        self._chains: dict[int, dict[str, Any]] = {
            cfg["chain_id"]: cfg for cfg in (chains if chains is not None else CHAINS).values()
        }
        self._local_chains: dict[int, LocalChain] = {}
        self._provisioned: dict[int, ChecksumAddress] = {}
        for chain in local_chains or []:
            self.register_local_chain(chain)

    def register_local_chain(self, chain: LocalChain) -> None:
        cfg = self._chains.get(chain.chain_id)
        if cfg is not None and not cfg.get("local"):
            raise UnsupportedChainError(f"Chain {chain.chain_id} ({cfg['name']}) is not a local chain")
        if chain.chain_id in self._local_chains and self._local_chains[chain.chain_id] is not chain:
            raise UnsupportedChainError(f"A local environment is already registered for chain {chain.chain_id}")
        self._local_chains[chain.chain_id] = chain

    def is_provisioned(self, chain_id: int) -> bool:
        return chain_id in self._provisioned

    def resolve_dispatcher(self, chain_id: int) -> ChecksumAddress:
        """
        Return the dispatcher address for ``chain_id``.

        Raises:
            UnsupportedChainError: If the chain is unknown, or local with no
                registered environment
        """
        cfg = self._chains.get(chain_id)
        local_chain = self._local_chains.get(chain_id)

        if cfg is not None and not cfg.get("local"):
            if not cfg.get("dispatcher"):
                raise UnsupportedChainError(f"No dispatcher configured for chain {chain_id}")
            return to_checksum_address(cfg["dispatcher"])

        if local_chain is None:
            raise UnsupportedChainError(f"Unsupported chain ID: {chain_id}")

        if chain_id not in self._provisioned:
            self._provisioned[chain_id] = self._provision(local_chain)
        return self._provisioned[chain_id]

    def _provision(self, chain: LocalChain) -> ChecksumAddress:
        address = chain.deploy(self.deployer, LocalDispatcher)
        logger.info(f"Provisioned local dispatcher {address} on chain {chain.chain_id}")
        return address
