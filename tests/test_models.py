import pytest

from erc4337_client.exceptions import ValidationException
from erc4337_client.user_operation.models import GasEstimate, \
    SponsorUserOperationResult, UserOperationByHash, UserOperationGasPrice, \
    UserOperationReceipt, UserOperationStatus, UserOperationStatusType
from erc4337_client.user_operation.v6.user_operation_v6 import UserOperationV6
from erc4337_client.user_operation.v7.user_operation_v7 import UserOperationV7

from utils import BUNDLER_ADDRESS, PAYMASTER_ADDRESS, TRANSACTION_HASH, \
    USER_OPERATION_HASH, gas_estimate_json, receipt_json, \
    user_operation_v6_json, user_operation_v7_json


def test_gas_estimate():
    gas_estimate = GasEstimate.from_json(gas_estimate_json(
        paymasterVerificationGasLimit="0x100",
        paymasterPostOpGasLimit="0x0",
    ))

    assert gas_estimate.call_gas_limit == 0x5208
    assert gas_estimate.verification_gas_limit == 0x186a0
    assert gas_estimate.pre_verification_gas == 0xc350
    assert gas_estimate.paymaster_verification_gas_limit == 0x100
    assert gas_estimate.paymaster_post_op_gas_limit == 0


def test_gas_estimate_missing_limits_are_zero():
    gas_estimate = GasEstimate.from_json({"preVerificationGas": "0x10"})

    assert gas_estimate.pre_verification_gas == 0x10
    assert gas_estimate.call_gas_limit == 0
    assert gas_estimate.verification_gas_limit == 0
    assert gas_estimate.paymaster_verification_gas_limit is None


def test_gas_estimate_invalid_value():
    with pytest.raises(ValidationException):
        GasEstimate.from_json(gas_estimate_json(call_gas_limit="12"))


def test_user_operation_receipt():
    receipt = UserOperationReceipt.from_json(receipt_json())

    assert receipt.user_operation_hash == USER_OPERATION_HASH
    assert receipt.success is True
    assert receipt.actual_gas_cost == 0x33450
    assert receipt.paymaster is None
    assert len(receipt.logs) == 1
    assert receipt.logs[0].log_index == 1
    assert receipt.receipt.transaction_hash == TRANSACTION_HASH
    assert receipt.receipt._from == BUNDLER_ADDRESS
    assert receipt.receipt.block_number == 0x10
    assert receipt.receipt.status == 1
    assert receipt.receipt.effective_gas_price == 0xa


def test_user_operation_by_hash():
    by_hash_v6 = UserOperationByHash.from_json({
        "userOperation": user_operation_v6_json(),
        "entryPoint": "0x5FF137D4b0FDCD49DcA30c7CF57E578a026d2789",
        "transactionHash": TRANSACTION_HASH,
        "blockHash": None,
        "blockNumber": "0x10",
    })
    by_hash_v7 = UserOperationByHash.from_json({
        "userOperation": user_operation_v7_json(),
        "entryPoint": "0x0000000071727De22E5E9d8BAf0edAc6f37da032",
        "transactionHash": None,
        "blockHash": None,
        "blockNumber": None,
    })

    assert isinstance(by_hash_v6.user_operation, UserOperationV6)
    assert by_hash_v6.block_number == 0x10
    assert isinstance(by_hash_v7.user_operation, UserOperationV7)
    assert by_hash_v7.transaction_hash is None
    assert by_hash_v7.block_number is None


def test_user_operation_gas_price():
    quote = {"maxFeePerGas": "0x10", "maxPriorityFeePerGas": "0x1"}
    gas_price = UserOperationGasPrice.from_json({
        "slow": quote,
        "standard": quote,
        "fast": {"maxFeePerGas": "0x20", "maxPriorityFeePerGas": "0x2"},
    })

    assert gas_price.fast.max_fee_per_gas == 0x20
    assert gas_price.slow.max_priority_fee_per_gas == 1


def test_user_operation_status():
    status = UserOperationStatus.from_json(
        {"status": "included", "transactionHash": TRANSACTION_HASH})

    assert status.status == UserOperationStatusType.Included
    assert status.transaction_hash == TRANSACTION_HASH


def test_sponsor_user_operation_result():
    result = SponsorUserOperationResult.from_json({
        "paymaster": PAYMASTER_ADDRESS,
        "paymasterData": "0x01",
        "paymasterVerificationGasLimit": "0x100",
        "paymasterPostOpGasLimit": "0x10",
        "callGasLimit": "0x1",
        "verificationGasLimit": "0x2",
        "preVerificationGas": "0x3",
    })
    stub = SponsorUserOperationResult.from_json(
        {"paymasterAndData": "0x" + PAYMASTER_ADDRESS[2:], "isFinal": True})

    assert result.paymaster == PAYMASTER_ADDRESS
    assert result.paymaster_data == b"\x01"
    assert result.has_gas_limits()
    assert result.is_final is False
    assert stub.paymaster_and_data == bytes.fromhex(PAYMASTER_ADDRESS[2:])
    assert stub.is_final is True
    assert not stub.has_gas_limits()
