"""Shared fixtures: a local chain with a provisioned dispatcher, an account and a test token."""

import pytest
from eth_account import Account
from eth_utils import to_checksum_address

from account_gateway.config.abis import SMART_ACCOUNT_ABI
from account_gateway.config.registry import DispatcherRegistry
from account_gateway.errors import ExecutionReverted
from account_gateway.executor.account_factory import create_account
from account_gateway.executor.local_chain import Contract, LocalChain, Message
from account_gateway.helpers.calldata import encode_function_call
from account_gateway.helpers.operation import Operation
from account_gateway.helpers.operation_hash import BindingContext

# Anvil default keys
OWNER_KEY = "0x59c6995e998f97a5a0044966f0945389dc9e86dae88c7a8412f4603b6b78690d"
STRANGER_KEY = "0x5de4111afa1a4b94908f83103eb1f1706367c2e68ca870fc3fb9a804cdab365a"
BUNDLER_KEY = "0x7c852118294e51e653712a81e05800f419141751be58f605c371e15141b007a6"

ONE_ETH = 10**18

MINTABLE_TOKEN_ABI = [
    {"inputs": [{"name": "to", "type": "address"}, {"name": "amount", "type": "uint256"}], "name": "mint", "outputs": [], "stateMutability": "nonpayable", "type": "function"},
    {"inputs": [{"name": "owner", "type": "address"}], "name": "balanceOf", "outputs": [{"name": "", "type": "uint256"}], "stateMutability": "view", "type": "function"},
    {"inputs": [{"name": "reason", "type": "bytes"}], "name": "fail", "outputs": [], "stateMutability": "nonpayable", "type": "function"},
]


class MintableToken(Contract):
    """Token anyone can mint; ``fail`` reverts with the given raw payload."""

    ABI = MINTABLE_TOKEN_ABI
    METHODS = {"mint": "mint", "balanceOf": "balance_of", "fail": "fail"}

    def __init__(self, chain, address):
        super().__init__(chain, address)
        self.storage["balances"] = {}

    def mint(self, msg, to, amount):
        balances = self.storage["balances"]
        to = to_checksum_address(to)
        balances[to] = balances.get(to, 0) + amount

    def balance_of(self, msg, owner):
        return self.storage["balances"].get(to_checksum_address(owner), 0)

    def fail(self, msg, reason):
        raise ExecutionReverted(reason)


def mint_call(to, amount):
    return encode_function_call(MINTABLE_TOKEN_ABI, "mint", [to, amount])


def fail_call(reason):
    return encode_function_call(MINTABLE_TOKEN_ABI, "fail", [reason])


def execute_call(target, value, data):
    return encode_function_call(SMART_ACCOUNT_ABI, "execute", [target, value, data])


@pytest.fixture
def owner():
    return Account.from_key(OWNER_KEY)


@pytest.fixture
def stranger():
    return Account.from_key(STRANGER_KEY)


@pytest.fixture
def bundler():
    return Account.from_key(BUNDLER_KEY)


@pytest.fixture
def chain():
    return LocalChain()


@pytest.fixture
def registry(chain):
    return DispatcherRegistry(local_chains=[chain])


@pytest.fixture
def dispatcher_address(registry, chain):
    return registry.resolve_dispatcher(chain.chain_id)


@pytest.fixture
def dispatcher(chain, dispatcher_address):
    return chain.get_contract(dispatcher_address)


@pytest.fixture
def account(chain, registry, owner, dispatcher_address):
    address = create_account(chain, registry, owner.address)
    return chain.get_contract(address)


@pytest.fixture
def token(chain, owner):
    address = chain.deploy(owner.address, MintableToken)
    return chain.get_contract(address)


@pytest.fixture
def dispatcher_msg(dispatcher_address):
    return Message(dispatcher_address)


@pytest.fixture
def context(account, dispatcher_address, chain):
    return BindingContext(account=account.address, dispatcher=dispatcher_address, chain_id=chain.chain_id)


@pytest.fixture
def mint_operation(account, token):
    """Operation asking the account to mint 1000 tokens to itself."""
    return Operation(
        sender=account.address,
        nonce=0,
        action_data=execute_call(token.address, 0, mint_call(account.address, 1000)),
    )
