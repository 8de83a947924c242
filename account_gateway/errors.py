"""
Error taxonomy for the account gateway.

Guard failures and downstream call failures travel as revert payloads, the
same way a contract reports them: the 4-byte selector of the error
signature followed by the ABI-encoded arguments. ``ExecutionReverted`` is
the carrier; the local chain rolls back a frame whenever one escapes it.
"""

from __future__ import annotations

from eth_abi import encode
from eth_utils import keccak


def error_selector(signature: str) -> bytes:
    """Return the 4-byte selector of an error signature like ``NotDispatcher()``."""
    return keccak(text=signature)[:4]


def encode_error(signature: str, types: list[str] | None = None, args: list | None = None) -> bytes:
    """Build a revert payload: selector followed by the ABI-encoded arguments."""
    payload = error_selector(signature)
    if types:
        payload += encode(types, args or [])
    return payload


def encode_revert_reason(reason: str) -> bytes:
    """Payload of a plain string revert, ``Error(string)``."""
    return encode_error("Error(string)", ["string"], [reason])


class GatewayError(Exception):
    """Base exception for account gateway errors."""
    pass


class ExecutionReverted(GatewayError):
    """A call frame reverted with the given raw payload."""

    def __init__(self, data: bytes = b"", message: str | None = None):
        self.data = bytes(data)
        super().__init__(message or f"execution reverted: 0x{self.data.hex()}")


class NotAuthorizedCaller(ExecutionReverted):
    """Caller of ``execute`` is neither the dispatcher nor the owner."""

    SIGNATURE = "NotAuthorizedCaller()"

    def __init__(self, caller: str | None = None):
        self.caller = caller
        super().__init__(encode_error(self.SIGNATURE), f"caller {caller} is not the dispatcher or owner")


class NotDispatcher(ExecutionReverted):
    """Caller of ``validateUserOp`` is not the registered dispatcher."""

    SIGNATURE = "NotDispatcher()"

    def __init__(self, caller: str | None = None):
        self.caller = caller
        super().__init__(encode_error(self.SIGNATURE), f"caller {caller} is not the dispatcher")


class NotOwner(ExecutionReverted):
    """Caller of an owner-only entry point is not the owner."""

    SIGNATURE = "NotOwner()"

    def __init__(self, caller: str | None = None):
        self.caller = caller
        super().__init__(encode_error(self.SIGNATURE), f"caller {caller} is not the owner")


class TargetCallFailed(ExecutionReverted):
    """
    The target of ``execute`` reverted.

    ``reason`` is the callee's revert payload, untouched.
    """

    SIGNATURE = "TargetCallFailed(bytes)"

    def __init__(self, reason: bytes):
        self.reason = bytes(reason)
        super().__init__(
            encode_error(self.SIGNATURE, ["bytes"], [self.reason]),
            f"target call failed: 0x{self.reason.hex()}",
        )


class FailedOp(ExecutionReverted):
    """The dispatcher refused an operation during its validation loop."""

    SIGNATURE = "FailedOp(uint256,string)"

    def __init__(self, op_index: int, reason: str):
        self.op_index = op_index
        self.reason = reason
        super().__init__(
            encode_error(self.SIGNATURE, ["uint256", "string"], [op_index, reason]),
            f"FailedOp({op_index}, {reason!r})",
        )


class SignatureRecoveryError(GatewayError):
    """A signature could not be parsed or no signer could be recovered from it."""
    pass


class UnsupportedChainError(GatewayError, ValueError):
    """No dispatcher is known, or can be provisioned, for a chain."""
    pass
