"""
Local dispatcher.

A minimal entry point for local chains, the one the registry provisions on
first use. ``handle_ops`` runs a batch in two loops:

  1. Validation: deploy the account from ``deployment_code`` if needed, hash
     the operation, call the account's ``validateUserOp`` with the funds the
     account still owes, then check the deposit covers the prefund and the
     result is ``AUTHORIZED``. Any failure raises ``FailedOp`` and the whole
     batch is rolled back.
  2. Execution: call each account with its ``action_data``. A reverting call
     is recorded in the receipt; it does not stop the batch.

Collected prefunds go to the beneficiary. There is no gas metering, so the
charged cost is the full prefund. Nonces are hashed but not tracked.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from eth_abi import decode
from eth_abi.exceptions import DecodingError
from eth_typing import ChecksumAddress
from eth_utils import to_checksum_address

from account_gateway.config.abis import DISPATCHER_ABI, SMART_ACCOUNT_ABI
from account_gateway.errors import ExecutionReverted, FailedOp, encode_revert_reason
from account_gateway.executor.local_chain import Contract, LocalChain, Message
from account_gateway.helpers.calldata import encode_function_call
from account_gateway.helpers.operation import Operation
from account_gateway.helpers.operation_hash import BindingContext, operation_hash
from account_gateway.helpers.validator import ValidationResult

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class OperationReceipt:
    """Result of one executed operation."""

    op_hash: bytes
    sender: ChecksumAddress
    nonce: int
    success: bool
    actual_cost: int
    revert_reason: bytes = b""


class LocalDispatcher(Contract):
    """Entry point that validates and executes operations for accounts on one chain."""

    ABI = DISPATCHER_ABI
    METHODS = {
        "handleOps": "handle_ops_abi",
        "getUserOpHash": "get_user_op_hash",
        "depositTo": "deposit_to",
        "balanceOf": "balance_of",
    }

    def __init__(self, chain: LocalChain, address: ChecksumAddress):
        super().__init__(chain, address)
        self.storage["deposits"] = {}

    # ------------------------------------------------------------------ #
    # Deposits                                                           #
    # ------------------------------------------------------------------ #

    def _credit(self, account: ChecksumAddress, amount: int) -> None:
        deposits = self.storage["deposits"]
        deposits[account] = deposits.get(account, 0) + amount
        self.emit("Deposited", account=account, totalDeposit=deposits[account])

    def receive(self, msg: Message) -> None:
        self._credit(msg.sender, msg.value)

    def deposit_to(self, msg: Message, account: str) -> None:
        self._credit(to_checksum_address(account), msg.value)

    def balance_of(self, msg: Message | None, account: str) -> int:
        return self.storage["deposits"].get(to_checksum_address(account), 0)

    # ------------------------------------------------------------------ #
    # Hashing                                                            #
    # ------------------------------------------------------------------ #

    def binding_context(self, operation: Operation) -> BindingContext:
        return BindingContext.for_operation(operation, self.address, self.chain.chain_id)

    def get_operation_hash(self, operation: Operation) -> bytes:
        return operation_hash(operation, self.binding_context(operation))

    def get_user_op_hash(self, msg: Message | None, operation: tuple) -> bytes:
        return self.get_operation_hash(Operation.from_tuple(operation))

    # ------------------------------------------------------------------ #
    # Batch processing                                                   #
    # ------------------------------------------------------------------ #

    def handle_ops_abi(self, msg: Message, operations: list[tuple], beneficiary: str) -> None:
        self.handle_ops(msg, [Operation.from_tuple(op) for op in operations], beneficiary)

    def handle_ops(self, msg: Message, operations: list[Operation], beneficiary: str) -> list[OperationReceipt]:
        """
        Validate then execute ``operations``, paying ``beneficiary``.

        Call through ``submit`` (or ``LocalChain.call``) for batch atomicity;
        a bare call leaves partial state behind when validation fails.

        Raises:
            FailedOp: An operation failed validation
        """
        prepared = [(index, op, self._validate_operation(index, op)) for index, op in enumerate(operations)]

        receipts = [self._execute_operation(op, op_hash, prefund) for _, op, (op_hash, prefund) in prepared]

        collected = sum(receipt.actual_cost for receipt in receipts)
        if collected:
            result = self.chain.try_call(self.address, beneficiary, collected, b"")
            if not result.success:
                raise ExecutionReverted(encode_revert_reason("AA91 failed send to beneficiary"))
        logger.info(f"Dispatcher {self.address}: handled {len(receipts)} operation(s), collected {collected} wei")
        return receipts

    def submit(self, bundler: str, operations: list[Operation], beneficiary: str | None = None) -> list[OperationReceipt]:
        """Run ``handle_ops`` for ``bundler`` as one atomic unit of work."""
        msg = Message(bundler)
        return self.chain.atomic(self.handle_ops, msg, operations, beneficiary or msg.sender)

    def _deploy_account(self, index: int, operation: Operation) -> None:
        if self.chain.is_contract(operation.sender):
            raise FailedOp(index, "AA10 sender already constructed")
        factory = operation.factory
        if factory is None:
            raise FailedOp(index, "AA13 initCode failed or OOG")

        result = self.chain.try_call(self.address, factory, 0, operation.deployment_code[20:])
        if not result.success:
            raise FailedOp(index, "AA13 initCode failed or OOG")
        try:
            (created,) = decode(["address"], result.return_data)
        except DecodingError:
            raise FailedOp(index, "AA13 initCode failed or OOG")
        if not self.chain.is_contract(operation.sender):
            raise FailedOp(index, "AA15 initCode must create sender")
        if to_checksum_address(created) != operation.sender:
            raise FailedOp(index, "AA14 initCode must return sender")

    def _validate_operation(self, index: int, operation: Operation) -> tuple[bytes, int]:
        if operation.deployment_code:
            self._deploy_account(index, operation)
        elif not self.chain.is_contract(operation.sender):
            raise FailedOp(index, "AA20 account not deployed")

        op_hash = self.get_operation_hash(operation)
        required_prefund = operation.required_prefund
        deposit = self.balance_of(None, operation.sender)
        missing_funds = max(0, required_prefund - deposit)

        calldata = encode_function_call(
            SMART_ACCOUNT_ABI, "validateUserOp", [operation.to_tuple(), op_hash, missing_funds]
        )
        try:
            returned = self.chain.call(self.address, operation.sender, 0, calldata)
            (code,) = decode(["uint256"], returned)
        except ExecutionReverted as e:
            logger.warning(f"Dispatcher {self.address}: validateUserOp reverted for op {index}: 0x{e.data.hex()}")
            raise FailedOp(index, "AA23 reverted") from e
        except DecodingError as e:
            raise FailedOp(index, "AA23 reverted") from e

        deposits = self.storage["deposits"]
        if deposits.get(operation.sender, 0) < required_prefund:
            raise FailedOp(index, "AA21 didn't pay prefund")
        deposits[operation.sender] = deposits.get(operation.sender, 0) - required_prefund

        if code != ValidationResult.AUTHORIZED:
            raise FailedOp(index, "AA24 signature error")
        return op_hash, required_prefund

    def _execute_operation(self, operation: Operation, op_hash: bytes, prefund: int) -> OperationReceipt:
        result = self.chain.try_call(self.address, operation.sender, 0, operation.action_data)
        if not result.success:
            logger.info(f"Dispatcher {self.address}: operation 0x{op_hash.hex()} reverted")
            self.emit(
                "UserOperationRevertReason",
                userOpHash=op_hash,
                sender=operation.sender,
                nonce=operation.nonce,
                revertReason=result.return_data,
            )
        self.emit(
            "UserOperationEvent",
            userOpHash=op_hash,
            sender=operation.sender,
            nonce=operation.nonce,
            success=result.success,
            actualGasCost=prefund,
        )
        return OperationReceipt(
            op_hash=op_hash,
            sender=operation.sender,
            nonce=operation.nonce,
            success=result.success,
            actual_cost=prefund,
            revert_reason=b"" if result.success else result.return_data,
        )
