"""
Account deployment.

``AccountFactory`` deploys smart accounts at deterministic addresses so an
operation can name its account before it exists and carry the factory call
in ``deployment_code``. ``create_account`` is the direct path: it asks the
registry which dispatcher serves the chain and deploys an account bound to it.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from eth_abi import encode
from eth_typing import ChecksumAddress
from eth_utils import keccak, to_checksum_address

from account_gateway.config.abis import ACCOUNT_FACTORY_ABI
from account_gateway.executor.local_chain import Contract, LocalChain, Message
from account_gateway.executor.smart_account import SmartAccount
from account_gateway.helpers.calldata import encode_function_call

if TYPE_CHECKING:
    from account_gateway.config.registry import DispatcherRegistry

logger = logging.getLogger(__name__)

ACCOUNT_CODE_TAG = b"SmartAccount"


def account_init_code_hash(owner: str, dispatcher: str) -> bytes:
    return keccak(ACCOUNT_CODE_TAG + encode(["address", "address"], [owner, dispatcher]))


class AccountFactory(Contract):
    """Deploys accounts bound to one dispatcher, one per (owner, salt)."""

    ABI = ACCOUNT_FACTORY_ABI
    METHODS = {
        "createAccount": "create_account",
        "getAddress": "get_address",
        "getDispatcherAddress": "get_dispatcher_address",
    }

    def __init__(self, chain: LocalChain, address: ChecksumAddress, dispatcher: str):
        super().__init__(chain, address)
        self._dispatcher = to_checksum_address(dispatcher)

    def get_dispatcher_address(self, msg: Message | None = None) -> ChecksumAddress:
        return self._dispatcher

    def get_address(self, msg: Message | None, owner: str, salt: int) -> ChecksumAddress:
        """Counterfactual address of the account for ``owner`` and ``salt``."""
        return self.chain.compute_deterministic_address(
            self.address,
            salt.to_bytes(32, "big"),
            account_init_code_hash(owner, self._dispatcher),
        )

    def create_account(self, msg: Message, owner: str, salt: int) -> ChecksumAddress:
        """Deploy the account, or return it unchanged if it already exists."""
        address = self.get_address(msg, owner, salt)
        if self.chain.is_contract(address):
            return address

        owner = to_checksum_address(owner)
        dispatcher = self._dispatcher
        self.chain.deploy_deterministic(
            self.address,
            salt.to_bytes(32, "big"),
            account_init_code_hash(owner, dispatcher),
            lambda chain, addr: SmartAccount(chain, addr, owner, dispatcher),
        )
        logger.info(f"Factory {self.address}: created account {address} for owner {owner}")
        return address


def deployment_code(factory: str, owner: str, salt: int = 0) -> bytes:
    """``deployment_code`` for an operation whose account does not exist yet."""
    call = encode_function_call(ACCOUNT_FACTORY_ABI, "createAccount", [to_checksum_address(owner), salt])
    return bytes.fromhex(to_checksum_address(factory)[2:]) + call


def deploy_factory(chain: LocalChain, deployer: str, dispatcher: str) -> ChecksumAddress:
    return chain.deploy(deployer, lambda c, addr: AccountFactory(c, addr, dispatcher))


def create_account(
    chain: LocalChain,
    registry: "DispatcherRegistry",
    owner: str,
    deployer: str | None = None,
) -> ChecksumAddress:
    """
    Deploy an account for ``owner`` bound to the chain's dispatcher.

    The dispatcher is resolved once, here; the account never asks the
    registry again.

    Args:
        chain: Chain to deploy on
        registry: Resolves the dispatcher for ``chain.chain_id``
        owner: Account owner
        deployer: Deploying address (defaults to the owner)

    Returns:
        Address of the new account

    Raises:
        UnsupportedChainError: If the registry has no dispatcher for the chain
    """
    dispatcher = registry.resolve_dispatcher(chain.chain_id)
    owner = to_checksum_address(owner)
    address = chain.deploy(deployer or owner, lambda c, addr: SmartAccount(c, addr, owner, dispatcher))
    logger.info(f"Created account {address} for owner {owner} (dispatcher {dispatcher}, chain {chain.chain_id})")
    return address
