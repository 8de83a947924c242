"""
Operation data model.

An ``Operation`` is the canonical description of one intended action plus
its authorization material. It travels as the nine-field ABI tuple

    (sender, nonce, initCode, callData, accountGasLimits,
     preVerificationGas, gasFees, paymasterAndData, signature)

where ``accountGasLimits`` packs (verification_gas_limit, execution_gas_limit)
and ``gasFees`` packs (base_fee, priority_fee) into one bytes32 each, first
value in the high 128 bits.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from typing import Any

from eth_abi import decode, encode
from eth_typing import ChecksumAddress
from eth_utils import is_address, to_checksum_address

from account_gateway.config.abis import OPERATION_TUPLE_TYPE

UINT128_MAX: int = (1 << 128) - 1
UINT256_MAX: int = (1 << 256) - 1

DEFAULT_VERIFICATION_GAS_LIMIT = 150_000
DEFAULT_EXECUTION_GAS_LIMIT = 500_000
DEFAULT_PRE_VERIFICATION_GAS = 50_000


def pack_uint128_pair(high: int, low: int) -> bytes:
    """Pack two uint128 values into a bytes32, ``high`` in the upper half."""
    for v in (high, low):
        if not 0 <= v <= UINT128_MAX:
            raise ValueError(f"value out of uint128 range: {v}")
    return ((high << 128) | low).to_bytes(32, "big")


def unpack_uint128_pair(packed: bytes) -> tuple[int, int]:
    if len(packed) != 32:
        raise ValueError(f"packed pair must be 32 bytes, got {len(packed)}")
    word = int.from_bytes(packed, "big")
    return word >> 128, word & UINT128_MAX


def _to_bytes(value: str | bytes | bytearray | None) -> bytes:
    if value is None:
        return b""
    if isinstance(value, str):
        return bytes.fromhex(value[2:] if value.startswith("0x") else value)
    return bytes(value)


def _hex(data: bytes) -> str:
    return "0x" + data.hex()


@dataclass(frozen=True)
class Operation:
    """One intended action, immutable once built. Use ``with_signature`` to attach a signature."""

    sender: ChecksumAddress
    nonce: int = 0
    deployment_code: bytes = b""
    action_data: bytes = b""
    verification_gas_limit: int = DEFAULT_VERIFICATION_GAS_LIMIT
    execution_gas_limit: int = DEFAULT_EXECUTION_GAS_LIMIT
    pre_verification_gas: int = DEFAULT_PRE_VERIFICATION_GAS
    base_fee: int = 0
    priority_fee: int = 0
    sponsor_data: bytes = b""
    signature: bytes = b""

    def __post_init__(self) -> None:
        if not is_address(self.sender):
            raise ValueError(f"sender is not a valid address: {self.sender!r}")
        object.__setattr__(self, "sender", to_checksum_address(self.sender))
        for name in ("deployment_code", "action_data", "sponsor_data", "signature"):
            object.__setattr__(self, name, _to_bytes(getattr(self, name)))
        for name in ("nonce", "pre_verification_gas"):
            if not 0 <= getattr(self, name) <= UINT256_MAX:
                raise ValueError(f"{name} out of uint256 range: {getattr(self, name)}")
        for name in ("verification_gas_limit", "execution_gas_limit", "base_fee", "priority_fee"):
            if not 0 <= getattr(self, name) <= UINT128_MAX:
                raise ValueError(f"{name} out of uint128 range: {getattr(self, name)}")

    # ------------------------------------------------------------------ #
    # Packed fields                                                      #
    # ------------------------------------------------------------------ #

    @property
    def account_gas_limits(self) -> bytes:
        return pack_uint128_pair(self.verification_gas_limit, self.execution_gas_limit)

    @property
    def gas_fees(self) -> bytes:
        return pack_uint128_pair(self.base_fee, self.priority_fee)

    @property
    def required_gas(self) -> int:
        return self.verification_gas_limit + self.execution_gas_limit + self.pre_verification_gas

    @property
    def required_prefund(self) -> int:
        """Most the dispatcher may charge for this operation, in wei."""
        return self.required_gas * (self.base_fee + self.priority_fee)

    @property
    def factory(self) -> ChecksumAddress | None:
        """Factory address at the head of ``deployment_code``, if any."""
        if len(self.deployment_code) < 20:
            return None
        return to_checksum_address(self.deployment_code[:20])

    def with_signature(self, signature: bytes | str) -> "Operation":
        return replace(self, signature=_to_bytes(signature))

    # ------------------------------------------------------------------ #
    # Wire format                                                        #
    # ------------------------------------------------------------------ #

    def to_tuple(self) -> tuple:
        return (
            self.sender,
            self.nonce,
            self.deployment_code,
            self.action_data,
            self.account_gas_limits,
            self.pre_verification_gas,
            self.gas_fees,
            self.sponsor_data,
            self.signature,
        )

    @classmethod
    def from_tuple(cls, values: tuple | list) -> "Operation":
        if len(values) != 9:
            raise ValueError(f"operation tuple must have 9 fields, got {len(values)}")
        (sender, nonce, init_code, call_data, gas_limits,
         pre_verification_gas, gas_fees, sponsor_data, signature) = values
        verification_gas_limit, execution_gas_limit = unpack_uint128_pair(bytes(gas_limits))
        base_fee, priority_fee = unpack_uint128_pair(bytes(gas_fees))
        return cls(
            sender=sender,
            nonce=nonce,
            deployment_code=init_code,
            action_data=call_data,
            verification_gas_limit=verification_gas_limit,
            execution_gas_limit=execution_gas_limit,
            pre_verification_gas=pre_verification_gas,
            base_fee=base_fee,
            priority_fee=priority_fee,
            sponsor_data=sponsor_data,
            signature=signature,
        )

    def encode(self) -> bytes:
        """ABI-encode the operation as a single tuple."""
        return encode([OPERATION_TUPLE_TYPE], [self.to_tuple()])

    @classmethod
    def decode(cls, data: bytes) -> "Operation":
        (values,) = decode([OPERATION_TUPLE_TYPE], data)
        return cls.from_tuple(values)

    def to_rpc(self) -> dict[str, Any]:
        """JSON-friendly dict with hex quantities, keyed the way bundler RPCs expect."""
        return {
            "sender": self.sender,
            "nonce": hex(self.nonce),
            "initCode": _hex(self.deployment_code),
            "callData": _hex(self.action_data),
            "verificationGasLimit": hex(self.verification_gas_limit),
            "callGasLimit": hex(self.execution_gas_limit),
            "preVerificationGas": hex(self.pre_verification_gas),
            "maxFeePerGas": hex(self.base_fee),
            "maxPriorityFeePerGas": hex(self.priority_fee),
            "paymasterAndData": _hex(self.sponsor_data),
            "signature": _hex(self.signature),
        }

    @classmethod
    def from_rpc(cls, data: dict[str, Any]) -> "Operation":
        def quantity(key: str, default: int = 0) -> int:
            value = data.get(key)
            if value is None:
                return default
            return int(value, 16) if isinstance(value, str) else int(value)

        return cls(
            sender=data["sender"],
            nonce=quantity("nonce"),
            deployment_code=_to_bytes(data.get("initCode")),
            action_data=_to_bytes(data.get("callData")),
            verification_gas_limit=quantity("verificationGasLimit", DEFAULT_VERIFICATION_GAS_LIMIT),
            execution_gas_limit=quantity("callGasLimit", DEFAULT_EXECUTION_GAS_LIMIT),
            pre_verification_gas=quantity("preVerificationGas", DEFAULT_PRE_VERIFICATION_GAS),
            base_fee=quantity("maxFeePerGas"),
            priority_fee=quantity("maxPriorityFeePerGas"),
            sponsor_data=_to_bytes(data.get("paymasterAndData")),
            signature=_to_bytes(data.get("signature")),
        )
