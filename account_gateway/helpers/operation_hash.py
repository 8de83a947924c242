"""
Canonical operation hashing.

The digest binds an operation to the account it acts on, the dispatcher
allowed to relay it and the chain it runs on:

    inner  = keccak(abi.encode(sender, nonce, keccak(initCode), keccak(callData),
                               accountGasLimits, preVerificationGas, gasFees,
                               keccak(paymasterAndData)))
    digest = keccak(abi.encode(inner, account, dispatcher, chainId))

The signature is never part of the hashed data. Before signing, the digest
is wrapped in the EIP-191 personal-message prefix so it cannot be replayed
as any other kind of signed payload.
"""

from __future__ import annotations

from dataclasses import dataclass

from eth_abi import encode
from eth_typing import ChecksumAddress
from eth_utils import keccak, to_checksum_address

from account_gateway.helpers.operation import Operation

SIGNED_MESSAGE_PREFIX = b"\x19Ethereum Signed Message:\n32"


@dataclass(frozen=True)
class BindingContext:
    """Where an operation is valid: account, dispatcher and chain."""

    account: ChecksumAddress
    dispatcher: ChecksumAddress
    chain_id: int

    def __post_init__(self) -> None:
        object.__setattr__(self, "account", to_checksum_address(self.account))
        object.__setattr__(self, "dispatcher", to_checksum_address(self.dispatcher))
        if self.chain_id < 0:
            raise ValueError(f"chain id must be non-negative, got {self.chain_id}")

    @classmethod
    def for_operation(cls, operation: Operation, dispatcher: str, chain_id: int) -> "BindingContext":
        """Context whose account is the operation's own sender."""
        return cls(account=operation.sender, dispatcher=dispatcher, chain_id=chain_id)


def pack_operation(operation: Operation) -> bytes:
    """ABI-encode every field except the signature, dynamic fields by hash."""
    return encode(
        ["address", "uint256", "bytes32", "bytes32", "bytes32", "uint256", "bytes32", "bytes32"],
        [
            operation.sender,
            operation.nonce,
            keccak(operation.deployment_code),
            keccak(operation.action_data),
            operation.account_gas_limits,
            operation.pre_verification_gas,
            operation.gas_fees,
            keccak(operation.sponsor_data),
        ],
    )


def operation_hash(operation: Operation, context: BindingContext) -> bytes:
    """Return the 32-byte digest of ``operation`` bound to ``context``."""
    inner = keccak(pack_operation(operation))
    return keccak(
        encode(
            ["bytes32", "address", "address", "uint256"],
            [inner, context.account, context.dispatcher, context.chain_id],
        )
    )


def _require_digest(digest: bytes) -> bytes:
    digest = bytes(digest)
    if len(digest) != 32:
        raise ValueError(f"digest must be 32 bytes, got {len(digest)}")
    return digest


def to_signing_message(digest: bytes) -> bytes:
    """The bytes actually signed: EIP-191 prefix followed by the digest."""
    return SIGNED_MESSAGE_PREFIX + _require_digest(digest)


def signing_message_hash(digest: bytes) -> bytes:
    return keccak(to_signing_message(digest))
