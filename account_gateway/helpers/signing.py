"""
Operation signing and signer recovery.

Signatures are 65 bytes on the wire, ``r || s || v`` with ``v`` in {27, 28},
made over the EIP-191 signing message of an operation digest.
"""

from __future__ import annotations

import logging

from eth_account import Account
from eth_account.messages import encode_defunct
from eth_keys.exceptions import BadSignature, ValidationError
from eth_typing import ChecksumAddress
from eth_utils import to_checksum_address

from account_gateway.errors import SignatureRecoveryError
from account_gateway.helpers.operation import Operation
from account_gateway.helpers.operation_hash import BindingContext, operation_hash

logger = logging.getLogger(__name__)

SIGNATURE_LENGTH = 65
SECP256K1_N = 0xFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFEBAAEDCE6AF48A03BBFD25E8CD0364141
SECP256K1_HALF_N = SECP256K1_N // 2


def join_signature(r: int, s: int, v: int) -> bytes:
    return r.to_bytes(32, "big") + s.to_bytes(32, "big") + bytes([v])


def split_signature(signature: bytes) -> tuple[int, int, int]:
    """
    Split a wire signature into ``(r, s, v)``.

    Raises:
        SignatureRecoveryError: If the signature is not 65 bytes
    """
    if len(signature) != SIGNATURE_LENGTH:
        raise SignatureRecoveryError(
            f"signature must be {SIGNATURE_LENGTH} bytes, got {len(signature)}"
        )
    r = int.from_bytes(signature[:32], "big")
    s = int.from_bytes(signature[32:64], "big")
    return r, s, signature[64]


def sign_digest(digest: bytes, private_key: str | bytes) -> bytes:
    """Sign the EIP-191 message of ``digest`` and return the 65-byte signature."""
    signed = Account.sign_message(encode_defunct(primitive=bytes(digest)), private_key)
    return join_signature(signed.r, signed.s, signed.v)


def sign_operation(operation: Operation, context: BindingContext, private_key: str | bytes) -> Operation:
    """
    Hash ``operation`` under ``context`` and return a signed copy.

    Args:
        operation: Operation to sign (any existing signature is replaced)
        context: Account, dispatcher and chain the signature is valid for
        private_key: Signer key

    Returns:
        The operation with its ``signature`` populated
    """
    digest = operation_hash(operation, context)
    signature = sign_digest(digest, private_key)
    logger.debug(f"Signed operation {digest.hex()} for {context.account} on chain {context.chain_id}")
    return operation.with_signature(signature)


def recover_signer(digest: bytes, signature: bytes) -> ChecksumAddress:
    """
    Recover the address that signed ``digest``.

    Only canonical signatures are accepted: ``v`` must be 27 or 28, ``r`` and
    ``s`` must be in range and ``s`` must be in the lower half of the curve
    order.

    Raises:
        SignatureRecoveryError: If the signature is malformed or unrecoverable
    """
    r, s, v = split_signature(bytes(signature))
    if v not in (27, 28):
        raise SignatureRecoveryError(f"invalid recovery id: {v}")
    if not 0 < r < SECP256K1_N:
        raise SignatureRecoveryError("signature r out of range")
    if not 0 < s <= SECP256K1_HALF_N:
        raise SignatureRecoveryError("signature s out of range or malleable")
    try:
        recovered = Account.recover_message(encode_defunct(primitive=bytes(digest)), signature=bytes(signature))
    except (BadSignature, ValidationError, ValueError) as e:
        raise SignatureRecoveryError(f"signer recovery failed: {e}") from e
    return to_checksum_address(recovered)
