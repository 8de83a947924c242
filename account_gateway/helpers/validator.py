"""
Operation signature validation.

``validate_signature`` is a pure check: it recovers the signer of an
operation digest and compares it with the owner. Every failure, from a
truncated signature to a valid signature by the wrong key, is an ordinary
``REJECTED`` result; nothing is raised to the caller.
"""

from __future__ import annotations

import logging
from enum import IntEnum

from eth_utils import to_checksum_address

from account_gateway.errors import SignatureRecoveryError
from account_gateway.helpers.operation import Operation
from account_gateway.helpers.signing import recover_signer

logger = logging.getLogger(__name__)


class ValidationResult(IntEnum):
    """Outcome of signature validation, valued as its wire sentinel."""

    AUTHORIZED = 0
    REJECTED = 1

    @property
    def authorized(self) -> bool:
        return self is ValidationResult.AUTHORIZED


def validate_signature(operation: Operation, digest: bytes, owner: str) -> ValidationResult:
    """
    Check that ``operation.signature`` was made over ``digest`` by ``owner``.

    Args:
        operation: Operation carrying the signature
        digest: Operation digest the signature must cover
        owner: The only identity whose signature is accepted

    Returns:
        ``AUTHORIZED`` on an exact identity match, ``REJECTED`` otherwise
    """
    try:
        signer = recover_signer(digest, operation.signature)
    except SignatureRecoveryError as e:
        logger.debug(f"Rejected operation from {operation.sender}: {e}")
        return ValidationResult.REJECTED

    if signer != to_checksum_address(owner):
        logger.debug(f"Rejected operation from {operation.sender}: signer {signer} is not owner {owner}")
        return ValidationResult.REJECTED

    return ValidationResult.AUTHORIZED
