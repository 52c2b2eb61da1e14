from dataclasses import dataclass
from enum import Enum
from typing import Any

from erc4337_client.typing import Address, TransactionHash, UserOperationHash
from .user_operation import \
    verify_and_get_address, verify_and_get_bytes, verify_and_get_uint
from .v6.user_operation_v6 import UserOperationV6
from .v7.user_operation_v7 import UserOperationV7


def _uint_or_none(field_name: str, value: str | int | None) -> int | None:
    return None if value is None else verify_and_get_uint(field_name, value)


@dataclass
class GasPriceQuote:
    max_fee_per_gas: int
    max_priority_fee_per_gas: int

    @classmethod
    def from_json(cls, quote_json: dict[str, Any]) -> "GasPriceQuote":
        return cls(
            max_fee_per_gas=verify_and_get_uint(
                "maxFeePerGas", quote_json.get("maxFeePerGas")),
            max_priority_fee_per_gas=verify_and_get_uint(
                "maxPriorityFeePerGas", quote_json.get("maxPriorityFeePerGas")),
        )


@dataclass
class UserOperationGasPrice:
    slow: GasPriceQuote
    standard: GasPriceQuote
    fast: GasPriceQuote

    @classmethod
    def from_json(cls, gas_price_json: dict[str, Any]) -> "UserOperationGasPrice":
        return cls(
            slow=GasPriceQuote.from_json(gas_price_json["slow"]),
            standard=GasPriceQuote.from_json(gas_price_json["standard"]),
            fast=GasPriceQuote.from_json(gas_price_json["fast"]),
        )


@dataclass
class GasEstimate:
    pre_verification_gas: int
    verification_gas_limit: int
    call_gas_limit: int
    paymaster_verification_gas_limit: int | None = None
    paymaster_post_op_gas_limit: int | None = None

    @classmethod
    def from_json(cls, estimate_json: dict[str, Any]) -> "GasEstimate":
        # missing limits in a bundler reply count as zero
        return cls(
            pre_verification_gas=verify_and_get_uint(
                "preVerificationGas",
                estimate_json.get("preVerificationGas") or 0),
            verification_gas_limit=verify_and_get_uint(
                "verificationGasLimit",
                estimate_json.get("verificationGasLimit") or 0),
            call_gas_limit=verify_and_get_uint(
                "callGasLimit", estimate_json.get("callGasLimit") or 0),
            paymaster_verification_gas_limit=_uint_or_none(
                "paymasterVerificationGasLimit",
                estimate_json.get("paymasterVerificationGasLimit")),
            paymaster_post_op_gas_limit=_uint_or_none(
                "paymasterPostOpGasLimit",
                estimate_json.get("paymasterPostOpGasLimit")),
        )


@dataclass
class Log:
    removed: bool
    log_index: int
    transaction_index: int
    transaction_hash: TransactionHash
    block_hash: str
    block_number: int
    address: Address
    data: str
    topics: list[str]

    @classmethod
    def from_json(cls, log_json: dict[str, Any]) -> "Log":
        return cls(
            removed=bool(log_json.get("removed", False)),
            log_index=verify_and_get_uint("logIndex", log_json["logIndex"]),
            transaction_index=verify_and_get_uint(
                "transactionIndex", log_json["transactionIndex"]),
            transaction_hash=TransactionHash(log_json["transactionHash"]),
            block_hash=log_json["blockHash"],
            block_number=verify_and_get_uint(
                "blockNumber", log_json["blockNumber"]),
            address=Address(log_json["address"]),
            data=log_json["data"],
            topics=list(log_json["topics"]),
        )


@dataclass
class TransactionReceipt:
    transaction_hash: TransactionHash
    transaction_index: int
    block_hash: str
    block_number: int
    _from: Address
    to: Address | None
    cumulative_gas_used: int
    gas_used: int
    contract_address: Address | None
    logs: list[Log]
    logs_bloom: str
    status: int
    effective_gas_price: int | None

    @classmethod
    def from_json(cls, receipt_json: dict[str, Any]) -> "TransactionReceipt":
        return cls(
            transaction_hash=TransactionHash(receipt_json["transactionHash"]),
            transaction_index=verify_and_get_uint(
                "transactionIndex", receipt_json["transactionIndex"]),
            block_hash=receipt_json["blockHash"],
            block_number=verify_and_get_uint(
                "blockNumber", receipt_json["blockNumber"]),
            _from=Address(receipt_json["from"]),
            to=receipt_json.get("to"),
            cumulative_gas_used=verify_and_get_uint(
                "cumulativeGasUsed", receipt_json["cumulativeGasUsed"]),
            gas_used=verify_and_get_uint("gasUsed", receipt_json["gasUsed"]),
            contract_address=receipt_json.get("contractAddress"),
            logs=[Log.from_json(log) for log in receipt_json.get("logs", [])],
            logs_bloom=receipt_json.get("logsBloom", "0x"),
            status=verify_and_get_uint("status", receipt_json["status"]),
            effective_gas_price=_uint_or_none(
                "effectiveGasPrice", receipt_json.get("effectiveGasPrice")),
        )


@dataclass
class UserOperationReceipt:
    user_operation_hash: UserOperationHash
    entrypoint: Address
    sender: Address
    nonce: int
    paymaster: Address | None
    actual_gas_used: int
    actual_gas_cost: int
    success: bool
    reason: str | None
    logs: list[Log]
    receipt: TransactionReceipt

    @classmethod
    def from_json(
        cls, receipt_json: dict[str, Any]
    ) -> "UserOperationReceipt":
        return cls(
            user_operation_hash=UserOperationHash(receipt_json["userOpHash"]),
            entrypoint=Address(receipt_json["entryPoint"]),
            sender=Address(receipt_json["sender"]),
            nonce=verify_and_get_uint("nonce", receipt_json["nonce"]),
            paymaster=receipt_json.get("paymaster"),
            actual_gas_used=verify_and_get_uint(
                "actualGasUsed", receipt_json["actualGasUsed"]),
            actual_gas_cost=verify_and_get_uint(
                "actualGasCost", receipt_json["actualGasCost"]),
            success=bool(receipt_json["success"]),
            reason=receipt_json.get("reason"),
            logs=[Log.from_json(log) for log in receipt_json.get("logs", [])],
            receipt=TransactionReceipt.from_json(receipt_json["receipt"]),
        )


@dataclass
class UserOperationByHash:
    user_operation: UserOperationV6 | UserOperationV7
    entrypoint: Address
    transaction_hash: TransactionHash | None
    block_hash: str | None
    block_number: int | None

    @classmethod
    def from_json(cls, result_json: dict[str, Any]) -> "UserOperationByHash":
        user_operation_json = result_json["userOperation"]
        user_operation: UserOperationV6 | UserOperationV7
        if "initCode" in user_operation_json:
            user_operation = UserOperationV6.from_json(user_operation_json)
        else:
            user_operation = UserOperationV7.from_json(user_operation_json)
        return cls(
            user_operation=user_operation,
            entrypoint=Address(result_json["entryPoint"]),
            transaction_hash=result_json.get("transactionHash"),
            block_hash=result_json.get("blockHash"),
            block_number=_uint_or_none(
                "blockNumber", result_json.get("blockNumber")),
        )


class UserOperationStatusType(Enum):
    NotFound = "not_found"
    NotSubmitted = "not_submitted"
    Submitted = "submitted"
    Rejected = "rejected"
    Reverted = "reverted"
    Included = "included"
    Failed = "failed"


@dataclass
class UserOperationStatus:
    status: UserOperationStatusType
    transaction_hash: TransactionHash | None

    @classmethod
    def from_json(cls, status_json: dict[str, Any]) -> "UserOperationStatus":
        return cls(
            status=UserOperationStatusType(status_json["status"]),
            transaction_hash=status_json.get("transactionHash"),
        )


@dataclass
class TokenQuote:
    paymaster: Address
    token: Address
    post_op_gas: int
    exchange_rate: int

    @classmethod
    def from_json(cls, quote_json: dict[str, Any]) -> "TokenQuote":
        return cls(
            paymaster=Address(quote_json["paymaster"]),
            token=Address(quote_json["token"]),
            post_op_gas=verify_and_get_uint(
                "postOpGas", quote_json["postOpGas"]),
            exchange_rate=verify_and_get_uint(
                "exchangeRate", quote_json["exchangeRate"]),
        )


@dataclass
class SponsorUserOperationResult:
    call_gas_limit: int | None = None
    verification_gas_limit: int | None = None
    pre_verification_gas: int | None = None
    paymaster_and_data: bytes | None = None
    paymaster: Address | None = None
    paymaster_verification_gas_limit: int | None = None
    paymaster_post_op_gas_limit: int | None = None
    paymaster_data: bytes | None = None
    max_fee_per_gas: int | None = None
    max_priority_fee_per_gas: int | None = None
    # erc-7677 stub data that can be submitted as is
    is_final: bool = False

    def has_gas_limits(self) -> bool:
        return (
            self.call_gas_limit is not None and
            self.verification_gas_limit is not None and
            self.pre_verification_gas is not None
        )

    @classmethod
    def from_json(
        cls, result_json: dict[str, Any]
    ) -> "SponsorUserOperationResult":
        paymaster_and_data = result_json.get("paymasterAndData")
        paymaster_data = result_json.get("paymasterData")
        return cls(
            call_gas_limit=_uint_or_none(
                "callGasLimit", result_json.get("callGasLimit")),
            verification_gas_limit=_uint_or_none(
                "verificationGasLimit",
                result_json.get("verificationGasLimit")),
            pre_verification_gas=_uint_or_none(
                "preVerificationGas", result_json.get("preVerificationGas")),
            paymaster_and_data=None if paymaster_and_data is None
            else verify_and_get_bytes("paymasterAndData", paymaster_and_data),
            paymaster=None if result_json.get("paymaster") is None
            else verify_and_get_address(
                "paymaster", result_json["paymaster"]),
            paymaster_verification_gas_limit=_uint_or_none(
                "paymasterVerificationGasLimit",
                result_json.get("paymasterVerificationGasLimit")),
            paymaster_post_op_gas_limit=_uint_or_none(
                "paymasterPostOpGasLimit",
                result_json.get("paymasterPostOpGasLimit")),
            paymaster_data=None if paymaster_data is None
            else verify_and_get_bytes("paymasterData", paymaster_data),
            max_fee_per_gas=_uint_or_none(
                "maxFeePerGas", result_json.get("maxFeePerGas")),
            max_priority_fee_per_gas=_uint_or_none(
                "maxPriorityFeePerGas",
                result_json.get("maxPriorityFeePerGas")),
            is_final=bool(result_json.get("isFinal", False)),
        )
