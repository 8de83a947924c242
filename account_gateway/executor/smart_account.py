"""
Smart account: the execution gateway.

Two guarded entry points:

  • ``execute``             dispatcher or owner; one low-level call to a target.
  • ``validate_operation``  dispatcher only; signature check plus the prefund
                            handshake. Exposed on the wire as ``validateUserOp``.

The dispatcher address is fixed at construction. The owner is the only other
trusted identity and can hand ownership over with ``transfer_ownership``.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from eth_typing import ChecksumAddress
from eth_utils import to_checksum_address

from account_gateway.config.abis import SMART_ACCOUNT_ABI
from account_gateway.errors import (
    ExecutionReverted,
    NotAuthorizedCaller,
    NotDispatcher,
    NotOwner,
    TargetCallFailed,
    encode_revert_reason,
)
from account_gateway.executor.local_chain import ZERO_ADDRESS, Contract, LocalChain, Message
from account_gateway.helpers.operation import Operation
from account_gateway.helpers.validator import ValidationResult, validate_signature

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ValidationOutcome:
    """
    What ``validate_operation`` did.

    ``prefund_paid`` is None when no prefund was requested, otherwise whether
    the transfer to the dispatcher went through.
    """

    result: ValidationResult
    prefund_requested: int = 0
    prefund_paid: bool | None = None

    @property
    def code(self) -> int:
        return int(self.result)


class SmartAccount(Contract):
    """Account that runs calls for its owner, directly or through the dispatcher."""

    ABI = SMART_ACCOUNT_ABI
    METHODS = {
        "execute": "execute",
        "validateUserOp": "validate_user_op",
        "getDispatcherAddress": "get_dispatcher_address",
        "owner": "get_owner",
        "transferOwnership": "transfer_ownership",
    }

    def __init__(self, chain: LocalChain, address: ChecksumAddress, owner: str, dispatcher: str):
        super().__init__(chain, address)
        self._dispatcher = to_checksum_address(dispatcher)
        self.storage["owner"] = to_checksum_address(owner)

    @property
    def owner(self) -> ChecksumAddress:
        return self.storage["owner"]

    @property
    def dispatcher(self) -> ChecksumAddress:
        return self._dispatcher

    # ------------------------------------------------------------------ #
    # Guards                                                             #
    # ------------------------------------------------------------------ #

    def _require_dispatcher(self, msg: Message) -> None:
        if msg.sender != self._dispatcher:
            logger.warning(f"Account {self.address}: validateUserOp from non-dispatcher {msg.sender}")
            raise NotDispatcher(msg.sender)

    def _require_dispatcher_or_owner(self, msg: Message) -> None:
        if msg.sender != self._dispatcher and msg.sender != self.owner:
            logger.warning(f"Account {self.address}: execute from unauthorized caller {msg.sender}")
            raise NotAuthorizedCaller(msg.sender)

    def _require_owner(self, msg: Message) -> None:
        if msg.sender != self.owner:
            raise NotOwner(msg.sender)

    # ------------------------------------------------------------------ #
    # Entry points                                                       #
    # ------------------------------------------------------------------ #

    def receive(self, msg: Message) -> None:
        pass

    def execute(self, msg: Message, target: str, value: int, action_data: bytes) -> None:
        """
        Call ``target`` with ``value`` and ``action_data``.

        Raises:
            NotAuthorizedCaller: Caller is neither dispatcher nor owner
            TargetCallFailed: Target reverted; carries its payload verbatim
        """
        self._require_dispatcher_or_owner(msg)
        result = self.chain.try_call(self.address, target, value, action_data)
        if not result.success:
            logger.info(f"Account {self.address}: call to {target} reverted (0x{result.return_data.hex()})")
            raise TargetCallFailed(result.return_data)

    def validate(self, operation: Operation, digest: bytes) -> ValidationResult:
        """Pure signature check against the current owner."""
        return validate_signature(operation, digest, self.owner)

    def validate_operation(
        self,
        msg: Message,
        operation: Operation,
        digest: bytes,
        required_prefund: int,
    ) -> ValidationOutcome:
        """
        Validate ``operation`` for the dispatcher and settle the prefund.

        A rejected signature still pays the prefund: the dispatcher has spent
        gas getting here either way. A failed prefund transfer does not abort
        the call; it is reported in the outcome and in a ``PrefundSettled``
        event, and the dispatcher checks its own deposit afterwards.

        Raises:
            NotDispatcher: Caller is not the dispatcher
        """
        self._require_dispatcher(msg)
        result = self.validate(operation, digest)
        if result is ValidationResult.REJECTED:
            logger.info(f"Account {self.address}: rejected operation 0x{bytes(digest).hex()}")

        prefund_paid = None
        if required_prefund:
            prefund_paid = self._pay_prefund(msg.sender, required_prefund)

        return ValidationOutcome(result, required_prefund, prefund_paid)

    def validate_user_op(self, msg: Message, operation: tuple, digest: bytes, required_prefund: int) -> int:
        outcome = self.validate_operation(msg, Operation.from_tuple(operation), digest, required_prefund)
        return outcome.code

    def _pay_prefund(self, dispatcher: ChecksumAddress, amount: int) -> bool:
        result = self.chain.try_call(self.address, dispatcher, amount, b"")
        if not result.success:
            logger.warning(f"Account {self.address}: prefund of {amount} wei to {dispatcher} failed")
        self.emit("PrefundSettled", dispatcher=dispatcher, amount=amount, success=result.success)
        return result.success

    def get_dispatcher_address(self, msg: Message | None = None) -> ChecksumAddress:
        return self._dispatcher

    def get_owner(self, msg: Message | None = None) -> ChecksumAddress:
        return self.owner

    def transfer_ownership(self, msg: Message, new_owner: str) -> None:
        """
        Hand the account to ``new_owner``.

        Raises:
            NotOwner: Caller is not the current owner
            ExecutionReverted: ``new_owner`` is the zero address
        """
        self._require_owner(msg)
        new_owner = to_checksum_address(new_owner)
        if new_owner == ZERO_ADDRESS:
            raise ExecutionReverted(encode_revert_reason("new owner is the zero address"))
        previous = self.owner
        self.storage["owner"] = new_owner
        self.emit("OwnershipTransferred", previousOwner=previous, newOwner=new_owner)
        logger.info(f"Account {self.address}: ownership transferred from {previous} to {new_owner}")
