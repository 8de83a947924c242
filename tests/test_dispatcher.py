"""Tests for the local dispatcher: batch validation, execution, deposits and deployment."""

import dataclasses

import pytest
from eth_abi import decode

from account_gateway.config.abis import DISPATCHER_ABI
from account_gateway.errors import ExecutionReverted, FailedOp, TargetCallFailed, encode_revert_reason
from account_gateway.executor.account_factory import deploy_factory, deployment_code
from account_gateway.executor.smart_account import SmartAccount
from account_gateway.helpers.calldata import decode_function_result, encode_function_call
from account_gateway.helpers.operation import Operation
from account_gateway.helpers.operation_hash import BindingContext, operation_hash
from account_gateway.helpers.signing import sign_operation

from conftest import ONE_ETH, execute_call, fail_call, mint_call

GAS = 150_000 + 500_000 + 50_000


@pytest.fixture
def signed_mint(mint_operation, context, owner):
    return sign_operation(mint_operation, context, owner.key)


@pytest.fixture
def paid_mint(mint_operation, context, owner):
    """Mint operation that costs GAS wei at one wei per gas."""
    return sign_operation(dataclasses.replace(mint_operation, base_fee=1), context, owner.key)


class TestHandleOps:

    def test_authorized_operation_executes(self, chain, dispatcher, token, account, signed_mint, bundler):
        (receipt,) = dispatcher.submit(bundler.address, [signed_mint])
        assert receipt.success
        assert receipt.sender == account.address
        assert receipt.actual_cost == 0
        assert token.balance_of(None, account.address) == 1000

        (event,) = chain.events("UserOperationEvent", dispatcher.address)
        assert event.args["success"] is True
        assert event.args["userOpHash"] == receipt.op_hash

    def test_receipt_hash_matches_binding(self, dispatcher, signed_mint, context, bundler):
        (receipt,) = dispatcher.submit(bundler.address, [signed_mint])
        assert receipt.op_hash == operation_hash(signed_mint, context)

    def test_stranger_signature_fails_batch(self, chain, dispatcher, token, account, mint_operation, context, stranger, bundler):
        forged = sign_operation(mint_operation, context, stranger.key)
        with pytest.raises(FailedOp) as exc:
            dispatcher.submit(bundler.address, [forged])
        assert exc.value.op_index == 0
        assert exc.value.reason == "AA24 signature error"
        assert token.balance_of(None, account.address) == 0

    def test_one_bad_operation_rolls_back_whole_batch(self, chain, dispatcher, token, account, signed_mint, mint_operation, context, stranger, bundler):
        forged = sign_operation(mint_operation, context, stranger.key)
        with pytest.raises(FailedOp) as exc:
            dispatcher.submit(bundler.address, [signed_mint, forged])
        assert exc.value.op_index == 1
        assert token.balance_of(None, account.address) == 0
        assert chain.events("UserOperationEvent") == []

    def test_execution_failure_recorded_not_raised(self, chain, dispatcher, token, account, context, owner, signed_mint, bundler):
        failing = sign_operation(
            Operation(sender=account.address, action_data=execute_call(token.address, 0, fail_call(b"boom"))),
            context,
            owner.key,
        )
        failed, ok = dispatcher.submit(bundler.address, [failing, signed_mint])

        assert not failed.success
        assert failed.revert_reason == TargetCallFailed(b"boom").data
        assert ok.success
        assert token.balance_of(None, account.address) == 1000

        (reason,) = chain.events("UserOperationRevertReason")
        assert reason.args["revertReason"] == failed.revert_reason

    def test_zero_prefund_without_deposit(self, chain, dispatcher, token, account, signed_mint, bundler):
        assert signed_mint.required_prefund == 0
        assert dispatcher.balance_of(None, account.address) == 0

        (receipt,) = dispatcher.submit(bundler.address, [signed_mint])
        assert receipt.success
        assert dispatcher.balance_of(None, account.address) == 0
        assert chain.events("PrefundSettled") == []
        assert token.balance_of(None, account.address) == 1000

    def test_nonce_not_tracked(self, dispatcher, token, account, signed_mint, bundler):
        dispatcher.submit(bundler.address, [signed_mint])
        dispatcher.submit(bundler.address, [signed_mint])
        assert token.balance_of(None, account.address) == 2000

    def test_undeployed_sender_rejected(self, dispatcher, stranger, bundler):
        op = Operation(sender=stranger.address)
        with pytest.raises(FailedOp) as exc:
            dispatcher.submit(bundler.address, [op])
        assert exc.value.reason == "AA20 account not deployed"

    def test_account_bound_elsewhere_rejected(self, chain, dispatcher, owner, stranger, bundler):
        foreign = chain.deploy(owner.address, lambda c, addr: SmartAccount(c, addr, owner.address, stranger.address))
        op = Operation(sender=foreign)
        ctx = BindingContext.for_operation(op, dispatcher.address, chain.chain_id)
        with pytest.raises(FailedOp) as exc:
            dispatcher.submit(bundler.address, [sign_operation(op, ctx, owner.key)])
        assert exc.value.reason == "AA23 reverted"

    def test_handle_ops_abi(self, chain, dispatcher, token, account, signed_mint, bundler):
        calldata = encode_function_call(DISPATCHER_ABI, "handleOps", [[signed_mint.to_tuple()], bundler.address])
        chain.call(bundler.address, dispatcher.address, 0, calldata)
        assert token.balance_of(None, account.address) == 1000

    def test_failed_op_payload(self, chain, dispatcher, mint_operation, context, stranger, bundler):
        forged = sign_operation(mint_operation, context, stranger.key)
        calldata = encode_function_call(DISPATCHER_ABI, "handleOps", [[forged.to_tuple()], bundler.address])
        with pytest.raises(ExecutionReverted) as exc:
            chain.call(bundler.address, dispatcher.address, 0, calldata)
        assert exc.value.data == FailedOp(0, "AA24 signature error").data


class TestPrefund:

    def test_account_pays_missing_funds(self, chain, dispatcher, account, paid_mint, bundler):
        chain.set_balance(account.address, ONE_ETH)
        (receipt,) = dispatcher.submit(bundler.address, [paid_mint])

        assert receipt.actual_cost == GAS
        assert chain.get_balance(account.address) == ONE_ETH - GAS
        assert chain.get_balance(bundler.address) == GAS
        assert dispatcher.balance_of(None, account.address) == 0

    def test_existing_deposit_covers_prefund(self, chain, dispatcher, account, paid_mint, owner, bundler):
        chain.set_balance(owner.address, ONE_ETH)
        deposit = encode_function_call(DISPATCHER_ABI, "depositTo", [account.address])
        chain.call(owner.address, dispatcher.address, GAS * 2, deposit)

        dispatcher.submit(bundler.address, [paid_mint])
        assert chain.get_balance(account.address) == 0
        assert dispatcher.balance_of(None, account.address) == GAS
        assert chain.events("PrefundSettled") == []

    def test_unpaid_prefund_fails(self, chain, dispatcher, account, paid_mint, bundler):
        with pytest.raises(FailedOp) as exc:
            dispatcher.submit(bundler.address, [paid_mint])
        assert exc.value.reason == "AA21 didn't pay prefund"
        assert chain.events("PrefundSettled") == []

    def test_custom_beneficiary(self, chain, dispatcher, account, paid_mint, bundler, stranger):
        chain.set_balance(account.address, ONE_ETH)
        dispatcher.submit(bundler.address, [paid_mint], beneficiary=stranger.address)
        assert chain.get_balance(stranger.address) == GAS
        assert chain.get_balance(bundler.address) == 0

    def test_beneficiary_that_rejects_value(self, chain, dispatcher, account, token, paid_mint, bundler):
        chain.set_balance(account.address, ONE_ETH)
        with pytest.raises(ExecutionReverted) as exc:
            dispatcher.submit(bundler.address, [paid_mint], beneficiary=token.address)
        assert exc.value.data == encode_revert_reason("AA91 failed send to beneficiary")
        assert chain.get_balance(account.address) == ONE_ETH


class TestDeposits:

    def test_plain_transfer_credits_sender(self, chain, dispatcher, owner):
        chain.set_balance(owner.address, 100)
        chain.call(owner.address, dispatcher.address, 60)
        assert dispatcher.balance_of(None, owner.address) == 60

        (event,) = chain.events("Deposited")
        assert event.args == {"account": owner.address, "totalDeposit": 60}

    def test_balance_of_abi(self, chain, dispatcher, account, owner):
        chain.set_balance(owner.address, 100)
        chain.call(owner.address, dispatcher.address, 25, encode_function_call(DISPATCHER_ABI, "depositTo", [account.address]))
        returned = chain.call(owner.address, dispatcher.address, 0, encode_function_call(DISPATCHER_ABI, "balanceOf", [account.address]))
        assert decode_function_result(DISPATCHER_ABI, "balanceOf", returned) == (25,)


class TestHashing:

    def test_get_user_op_hash(self, chain, dispatcher, signed_mint, context, bundler):
        calldata = encode_function_call(DISPATCHER_ABI, "getUserOpHash", [signed_mint.to_tuple()])
        returned = chain.call(bundler.address, dispatcher.address, 0, calldata)
        assert decode(["bytes32"], returned) == (operation_hash(signed_mint, context),)

    def test_binding_context(self, dispatcher, signed_mint, context):
        assert dispatcher.binding_context(signed_mint) == context


class TestDeploymentCode:

    @pytest.fixture
    def factory(self, chain, dispatcher_address, owner):
        return chain.get_contract(deploy_factory(chain, owner.address, dispatcher_address))

    def test_counterfactual_account_deployed_and_run(self, chain, dispatcher, factory, token, owner, bundler):
        sender = factory.get_address(None, owner.address, 0)
        assert not chain.is_contract(sender)

        op = Operation(
            sender=sender,
            deployment_code=deployment_code(factory.address, owner.address, 0),
            action_data=execute_call(token.address, 0, mint_call(sender, 5)),
        )
        signed = sign_operation(op, BindingContext.for_operation(op, dispatcher.address, chain.chain_id), owner.key)
        (receipt,) = dispatcher.submit(bundler.address, [signed])

        assert receipt.success
        account = chain.get_contract(sender)
        assert account.owner == owner.address
        assert account.dispatcher == dispatcher.address
        assert token.balance_of(None, sender) == 5

    def test_crash_after_deployment_rolls_back_batch(self, monkeypatch, chain, dispatcher, factory, token, owner, bundler):
        sender = factory.get_address(None, owner.address, 0)
        op = Operation(
            sender=sender,
            deployment_code=deployment_code(factory.address, owner.address, 0),
            action_data=execute_call(token.address, 0, mint_call(sender, 5)),
        )
        signed = sign_operation(op, BindingContext.for_operation(op, dispatcher.address, chain.chain_id), owner.key)

        def crash(*args):
            raise RuntimeError("executor crashed")

        monkeypatch.setattr(dispatcher, "_execute_operation", crash)
        with pytest.raises(RuntimeError):
            dispatcher.submit(bundler.address, [signed])
        assert not chain.is_contract(sender)
        assert token.balance_of(None, sender) == 0

    def test_factory_create_is_idempotent(self, factory, owner):
        first = factory.create_account(None, owner.address, 3)
        assert factory.create_account(None, owner.address, 3) == first

    def test_deployment_code_for_existing_account(self, dispatcher, factory, account, owner, bundler):
        op = Operation(sender=account.address, deployment_code=deployment_code(factory.address, owner.address, 0))
        with pytest.raises(FailedOp) as exc:
            dispatcher.submit(bundler.address, [op])
        assert exc.value.reason == "AA10 sender already constructed"

    def test_deployment_code_creating_other_address(self, chain, dispatcher, factory, owner, bundler):
        op = Operation(
            sender=factory.get_address(None, owner.address, 1),
            deployment_code=deployment_code(factory.address, owner.address, 0),
        )
        with pytest.raises(FailedOp) as exc:
            dispatcher.submit(bundler.address, [op])
        assert exc.value.reason == "AA15 initCode must create sender"
        # the factory call is rolled back with the batch
        assert not chain.is_contract(factory.get_address(None, owner.address, 0))

    def test_deployment_code_without_factory_code(self, dispatcher, stranger, owner, bundler):
        op = Operation(sender=owner.address, deployment_code=deployment_code(stranger.address, owner.address, 0))
        with pytest.raises(FailedOp) as exc:
            dispatcher.submit(bundler.address, [op])
        assert exc.value.reason == "AA13 initCode failed or OOG"

    def test_factory_reports_dispatcher(self, factory, dispatcher_address):
        assert factory.get_dispatcher_address() == dispatcher_address
