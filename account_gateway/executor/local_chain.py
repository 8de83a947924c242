"""
Local execution environment.

An in-memory, single-threaded stand-in for the chain the gateway runs on.
It owns native balances and deployed contracts, routes calldata to contract
methods by 4-byte selector, and runs every call as an atomic frame: if a
frame raises ``ExecutionReverted`` all balance, storage, deployment and log
changes made inside it are rolled back before the revert propagates.

Contracts are Python objects. Each subclass of ``Contract`` declares its ABI
and maps ABI function names to methods; methods receive a ``Message`` (the
caller and attached value) followed by the decoded arguments.
"""

from __future__ import annotations

import copy
import logging
from dataclasses import dataclass, field
from typing import Any, Callable

import rlp
from eth_abi import decode, encode
from eth_abi.exceptions import DecodingError, EncodingError
from eth_typing import ChecksumAddress
from eth_utils import keccak, to_canonical_address, to_checksum_address

from account_gateway.errors import ExecutionReverted, encode_revert_reason
from account_gateway.helpers.calldata import function_selector, input_types, output_types

logger = logging.getLogger(__name__)

LOCAL_CHAIN_ID = 31337
ZERO_ADDRESS: ChecksumAddress = to_checksum_address("0x" + "00" * 20)


@dataclass(frozen=True)
class Message:
    """Call context: who is calling and how much native value is attached."""

    sender: ChecksumAddress
    value: int = 0

    def __post_init__(self) -> None:
        object.__setattr__(self, "sender", to_checksum_address(self.sender))


@dataclass(frozen=True)
class CallResult:
    success: bool
    return_data: bytes = b""


@dataclass(frozen=True)
class LogEntry:
    address: ChecksumAddress
    event: str
    args: dict[str, Any] = field(default_factory=dict)


class Contract:
    """
    Base class for contracts deployed on a ``LocalChain``.

    Subclasses set ``ABI`` and ``METHODS`` (ABI function name -> method
    name). Persistent state lives in ``self.storage`` so the chain can
    snapshot and restore it; anything set outside ``storage`` is treated as
    immutable after construction.
    """

    ABI: list[dict[str, Any]] = []
    METHODS: dict[str, str] = {}

    _dispatch: dict[bytes, tuple[str, list[str], list[str]]] = {}

    def __init_subclass__(cls, **kwargs: Any) -> None:
        super().__init_subclass__(**kwargs)
        cls._dispatch = {}
        for fn_abi in cls.ABI:
            if fn_abi.get("type") != "function" or fn_abi["name"] not in cls.METHODS:
                continue
            cls._dispatch[function_selector(fn_abi)] = (
                cls.METHODS[fn_abi["name"]],
                input_types(fn_abi),
                output_types(fn_abi),
            )

    def __init__(self, chain: "LocalChain", address: ChecksumAddress):
        self.chain = chain
        self.address = address
        self.storage: dict[str, Any] = {}

    def receive(self, msg: Message) -> None:
        """Plain value transfer with empty calldata. Contracts without it reject value."""
        raise ExecutionReverted(b"")

    def emit(self, event: str, **args: Any) -> None:
        self.chain.logs.append(LogEntry(self.address, event, args))

    def handle_call(self, msg: Message, data: bytes) -> bytes:
        if not data:
            self.receive(msg)
            return b""

        entry = self._dispatch.get(data[:4])
        if entry is None:
            raise ExecutionReverted(b"")
        method_name, in_types, out_types = entry

        try:
            args = decode(in_types, data[4:])
        except DecodingError:
            raise ExecutionReverted(b"")

        result = getattr(self, method_name)(msg, *args)
        if not out_types:
            return b""
        if not isinstance(result, tuple):
            result = (result,)
        return encode(out_types, list(result))


class LocalChain:
    """In-memory ledger of balances and contracts for one chain id."""

    def __init__(self, chain_id: int = LOCAL_CHAIN_ID):
        self.chain_id = chain_id
        self.logs: list[LogEntry] = []
        self._balances: dict[ChecksumAddress, int] = {}
        self._contracts: dict[ChecksumAddress, Contract] = {}
        self._nonces: dict[ChecksumAddress, int] = {}

    # ------------------------------------------------------------------ #
    # State access                                                       #
    # ------------------------------------------------------------------ #

    def get_balance(self, address: str) -> int:
        return self._balances.get(to_checksum_address(address), 0)

    def set_balance(self, address: str, amount: int) -> None:
        """Faucet: overwrite the native balance of ``address``."""
        if amount < 0:
            raise ValueError(f"balance cannot be negative: {amount}")
        self._balances[to_checksum_address(address)] = amount

    def get_contract(self, address: str) -> Contract | None:
        return self._contracts.get(to_checksum_address(address))

    def is_contract(self, address: str) -> bool:
        return to_checksum_address(address) in self._contracts

    def events(self, event: str, address: str | None = None) -> list[LogEntry]:
        """Logs named ``event``, optionally only those emitted by ``address``."""
        wanted = to_checksum_address(address) if address else None
        return [log for log in self.logs if log.event == event and (wanted is None or log.address == wanted)]

    # ------------------------------------------------------------------ #
    # Deployment                                                         #
    # ------------------------------------------------------------------ #

    def compute_address(self, deployer: str, nonce: int) -> ChecksumAddress:
        """CREATE address: keccak(rlp([deployer, nonce]))[12:]."""
        encoded = rlp.encode([to_canonical_address(deployer), nonce])
        return to_checksum_address(keccak(encoded)[12:])

    def compute_deterministic_address(self, deployer: str, salt: bytes, init_code_hash: bytes) -> ChecksumAddress:
        """CREATE2 address: keccak(0xff ++ deployer ++ salt ++ keccak(init_code))[12:]."""
        data = b"\xff" + to_canonical_address(deployer) + salt + init_code_hash
        return to_checksum_address(keccak(data)[12:])

    def deploy(self, deployer: str, factory: Callable[["LocalChain", ChecksumAddress], Contract]) -> ChecksumAddress:
        """
        Deploy a contract at the next CREATE address of ``deployer``.

        Args:
            deployer: Deploying account
            factory: Called with (chain, address), returns the contract instance

        Returns:
            Address of the new contract
        """
        deployer = to_checksum_address(deployer)
        nonce = self._nonces.get(deployer, 0)
        address = self.compute_address(deployer, nonce)
        self._nonces[deployer] = nonce + 1
        return self._install(address, factory)

    def deploy_deterministic(
        self,
        deployer: str,
        salt: bytes,
        init_code_hash: bytes,
        factory: Callable[["LocalChain", ChecksumAddress], Contract],
    ) -> ChecksumAddress:
        address = self.compute_deterministic_address(deployer, salt, init_code_hash)
        return self._install(address, factory)

    def _install(self, address: ChecksumAddress, factory: Callable[["LocalChain", ChecksumAddress], Contract]) -> ChecksumAddress:
        if address in self._contracts:
            raise ExecutionReverted(encode_revert_reason("contract already deployed"))
        self._contracts[address] = factory(self, address)
        logger.debug(f"Deployed {type(self._contracts[address]).__name__} at {address}")
        return address

    # ------------------------------------------------------------------ #
    # Calls                                                              #
    # ------------------------------------------------------------------ #

    def call(self, sender: str, target: str, value: int = 0, data: bytes = b"") -> bytes:
        """
        Run one atomic call frame.

        Transfers ``value`` from ``sender`` to ``target``, then runs the
        target's code if it is a contract.

        Returns:
            The callee's return data

        Raises:
            ExecutionReverted: If the frame reverted; its state changes are undone
        """
        return self.atomic(self._execute, to_checksum_address(sender), to_checksum_address(target), value, bytes(data))

    def atomic(self, fn: Callable[..., Any], *args: Any) -> Any:
        """
        Run ``fn(*args)`` as one unit of work.

        Raises:
            ExecutionReverted: If ``fn`` reverted; every change it made is undone

        Any other exception also undoes the changes before it propagates.
        """
        snapshot = self._snapshot()
        try:
            return fn(*args)
        except ExecutionReverted:
            self._restore(snapshot)
            raise
        except (DecodingError, EncodingError) as e:
            # bad return values from contract code
            self._restore(snapshot)
            raise ExecutionReverted(b"", f"execution failed: {e}") from e
        except Exception:
            self._restore(snapshot)
            raise

    def try_call(self, sender: str, target: str, value: int = 0, data: bytes = b"") -> CallResult:
        """Low-level call: never raises on revert, reports success and raw return data."""
        try:
            return CallResult(True, self.call(sender, target, value, data))
        except ExecutionReverted as e:
            return CallResult(False, e.data)

    def _execute(self, sender: ChecksumAddress, target: ChecksumAddress, value: int, data: bytes) -> bytes:
        if value < 0:
            raise ExecutionReverted(b"")
        if value:
            available = self._balances.get(sender, 0)
            if available < value:
                raise ExecutionReverted(b"", f"insufficient balance: {sender} has {available}, needs {value}")
            self._balances[sender] = available - value
            self._balances[target] = self._balances.get(target, 0) + value

        contract = self._contracts.get(target)
        if contract is None:
            return b""
        return contract.handle_call(Message(sender, value), data)

    def _snapshot(self) -> tuple:
        return (
            dict(self._balances),
            dict(self._contracts),
            {addr: copy.deepcopy(c.storage) for addr, c in self._contracts.items()},
            dict(self._nonces),
            len(self.logs),
        )

    def _restore(self, snapshot: tuple) -> None:
        balances, contracts, storages, nonces, log_count = snapshot
        self._balances = balances
        self._contracts = contracts
        for addr, storage in storages.items():
            contracts[addr].storage = storage
        self._nonces = nonces
        del self.logs[log_count:]
