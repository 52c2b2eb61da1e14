from dataclasses import dataclass
from typing import Any, ClassVar

from eth_abi import encode
from eth_utils import keccak, to_checksum_address

from erc4337_client.entrypoint import EntryPointVersion
from erc4337_client.exceptions import \
    ValidationException, ValidationExceptionCode
from erc4337_client.typing import Address
from ..user_operation import \
    verify_and_get_uint, verify_and_get_bytes, verify_and_get_address, \
    verify_and_get_uint128_bytes, hex_or_none, bytes_hex_or_none
from ..user_operation import UserOperation


@dataclass
class UserOperationV7(UserOperation):
    entrypoint_version: ClassVar[EntryPointVersion] = EntryPointVersion.V07
    optional_fields: ClassVar[tuple[str, ...]] = (
        "factory",
        "factory_data",
        "paymaster",
        "paymaster_verification_gas_limit",
        "paymaster_post_op_gas_limit",
        "paymaster_data",
    )

    sender_address: Address | None = None
    nonce: int | None = None
    factory: Address | None = None
    factory_data: bytes | None = None
    call_data: bytes | None = None
    call_gas_limit: int | None = None
    verification_gas_limit: int | None = None
    pre_verification_gas: int | None = None
    max_fee_per_gas: int | None = None
    max_priority_fee_per_gas: int | None = None
    paymaster: Address | None = None
    paymaster_verification_gas_limit: int | None = None
    paymaster_post_op_gas_limit: int | None = None
    paymaster_data: bytes | None = None
    signature: bytes | None = None

    def __post_init__(self):
        # same shape as an unpacked PackedUserOperation
        if self.factory is not None:
            self.factory = Address(to_checksum_address(self.factory))
            if self.factory_data is None:
                self.factory_data = bytes(0)
        if self.paymaster is not None:
            self.paymaster = Address(to_checksum_address(self.paymaster))
            if self.paymaster_data is None:
                self.paymaster_data = bytes(0)

    @classmethod
    def from_json(
        cls, json_request_dict: dict[str, Any]
    ) -> "UserOperationV7":
        json_request_dict = dict(json_request_dict)
        cls.verify_fields_exist_and_fill_optional(json_request_dict)
        if len(json_request_dict) != 15:
            raise ValidationException(
                ValidationExceptionCode.InvalidFields,
                "Invalid UserOperation",
            )

        factory = json_request_dict["factory"]
        factory_data = json_request_dict["factoryData"]
        if factory is not None:
            factory = verify_and_get_address("factory", factory)
            factory_data = b"" if factory_data is None else \
                verify_and_get_bytes("factoryData", factory_data)
        elif factory_data is not None:
            raise ValidationException(
                ValidationExceptionCode.InvalidFields,
                'Invalid UserOperation, '
                '"factoryData" has to be null if "factory" is null',
            )

        paymaster = json_request_dict["paymaster"]
        paymaster_verification_gas_limit = json_request_dict[
                "paymasterVerificationGasLimit"]
        paymaster_post_op_gas_limit = json_request_dict["paymasterPostOpGasLimit"]
        paymaster_data = json_request_dict["paymasterData"]
        if paymaster is not None:
            paymaster = verify_and_get_address("paymaster", paymaster)
            paymaster_verification_gas_limit = verify_and_get_uint(
                "paymasterVerificationGasLimit", paymaster_verification_gas_limit
            )
            paymaster_post_op_gas_limit = verify_and_get_uint(
               "paymasterPostOpGasLimit", paymaster_post_op_gas_limit
            )
            paymaster_data = b"" if paymaster_data is None else \
                verify_and_get_bytes("paymasterData", paymaster_data)
        elif (
            paymaster_verification_gas_limit is not None or
            paymaster_post_op_gas_limit is not None or
            paymaster_data is not None
        ):
            raise ValidationException(
                ValidationExceptionCode.InvalidFields,
                "Invalid UserOperation, "
                '"paymasterVerificationGasLimit", "paymasterPostOpGasLimit" '
                'and "paymasterData" have to be null if "paymaster" is null',
            )

        return cls(
            sender_address=verify_and_get_address(
                "sender", json_request_dict["sender"]),
            nonce=verify_and_get_uint(
                "nonce", json_request_dict["nonce"]),
            factory=factory,
            factory_data=factory_data,
            call_data=verify_and_get_bytes(
                "callData", json_request_dict["callData"]),
            call_gas_limit=verify_and_get_uint(
                "callGasLimit", json_request_dict["callGasLimit"]),
            verification_gas_limit=verify_and_get_uint(
                "verificationGasLimit",
                json_request_dict["verificationGasLimit"]
            ),
            pre_verification_gas=verify_and_get_uint(
                "preVerificationGas", json_request_dict["preVerificationGas"]
            ),
            max_fee_per_gas=verify_and_get_uint(
                "maxFeePerGas", json_request_dict["maxFeePerGas"]),
            max_priority_fee_per_gas=verify_and_get_uint(
                "maxPriorityFeePerGas",
                json_request_dict["maxPriorityFeePerGas"]
            ),
            paymaster=paymaster,
            paymaster_verification_gas_limit=paymaster_verification_gas_limit,
            paymaster_post_op_gas_limit=paymaster_post_op_gas_limit,
            paymaster_data=paymaster_data,
            signature=verify_and_get_bytes(
                "signature", json_request_dict["signature"]),
        )

    @staticmethod
    def verify_fields_exist_and_fill_optional(
        json_request_dict: dict[str, Any]
    ) -> None:
        required_fields_list = [
            "sender",
            "nonce",
            "callData",
            "callGasLimit",
            "verificationGasLimit",
            "preVerificationGas",
            "maxFeePerGas",
            "maxPriorityFeePerGas",
            "signature",
        ]

        for field in required_fields_list:
            if field not in json_request_dict:
                raise ValidationException(
                    ValidationExceptionCode.InvalidFields,
                    f"UserOperation missing {field} field",
                )

        optional_fields_list = [
            "factory",
            "factoryData",
            "paymaster",
            "paymasterVerificationGasLimit",
            "paymasterPostOpGasLimit",
            "paymasterData",
        ]

        for field in optional_fields_list:
            if field not in json_request_dict:
                json_request_dict[field] = None

    def verify_complete(self) -> None:
        super().verify_complete()
        if self.paymaster is not None:
            if (
                self.paymaster_verification_gas_limit is None or
                self.paymaster_post_op_gas_limit is None
            ):
                raise ValidationException(
                    ValidationExceptionCode.InvalidFields,
                    "UserOperation is missing the paymaster gas limits",
                )
        elif (
            self.paymaster_verification_gas_limit is not None or
            self.paymaster_post_op_gas_limit is not None or
            self.paymaster_data is not None
        ):
            raise ValidationException(
                ValidationExceptionCode.InvalidFields,
                "UserOperation has paymaster fields without a paymaster",
            )
        if self.factory is None and self.factory_data is not None:
            raise ValidationException(
                ValidationExceptionCode.InvalidFields,
                "UserOperation has factoryData without a factory",
            )

    def get_user_operation_json(self) -> dict[str, Address | str | None]:
        user_operation_json = {
            "sender": self.sender_address,
            "nonce": hex_or_none(self.nonce),
            "factory": self.factory,
            "factoryData":
            None if self.factory is None
            else "0x" + (self.factory_data or b"").hex(),
            "callData": bytes_hex_or_none(self.call_data),
            "callGasLimit": hex_or_none(self.call_gas_limit),
            "verificationGasLimit": hex_or_none(self.verification_gas_limit),
            "preVerificationGas": hex_or_none(self.pre_verification_gas),
            "maxFeePerGas": hex_or_none(self.max_fee_per_gas),
            "maxPriorityFeePerGas": hex_or_none(self.max_priority_fee_per_gas),
            "paymaster": self.paymaster,
            "paymasterVerificationGasLimit":
            hex_or_none(self.paymaster_verification_gas_limit),
            "paymasterPostOpGasLimit":
            hex_or_none(self.paymaster_post_op_gas_limit),
            "paymasterData":
            None if self.paymaster is None
            else "0x" + (self.paymaster_data or b"").hex(),
            "signature": bytes_hex_or_none(self.signature),
        }
        # bundlers reject explicit nulls for the optional v0.7 fields
        return {
            key: value for key, value in user_operation_json.items()
            if value is not None
        }

    def to_list(self) -> list[Address | int | bytes]:
        return get_packed_user_operation(self).to_list()

    def has_paymaster(self) -> bool:
        return self.paymaster is not None

    def get_required_prefund(self) -> int:
        self.verify_complete()
        verification_gas = (
            self.verification_gas_limit +  # type: ignore
            (self.paymaster_post_op_gas_limit or 0) +
            (self.paymaster_verification_gas_limit or 0)
        )
        multiplier = 3 if self.has_paymaster() else 1
        gas = (
            self.call_gas_limit +  # type: ignore
            verification_gas * multiplier +
            self.pre_verification_gas  # type: ignore
        )
        return gas * self.max_fee_per_gas  # type: ignore

    def get_factory_address(self) -> Address | None:
        return self.factory

    def get_paymaster_address(self) -> Address | None:
        return self.paymaster


@dataclass
class PackedUserOperation:
    sender_address: Address
    nonce: int
    init_code: bytes
    call_data: bytes
    account_gas_limits: bytes
    pre_verification_gas: int
    gas_fees: bytes
    paymaster_and_data: bytes
    signature: bytes

    def to_list(self) -> list[Address | int | bytes]:
        return [
            self.sender_address,
            self.nonce,
            self.init_code,
            self.call_data,
            self.account_gas_limits,
            self.pre_verification_gas,
            self.gas_fees,
            self.paymaster_and_data,
            self.signature,
        ]

    def get_user_operation_json(self) -> dict[str, Address | str]:
        return {
            "sender": self.sender_address,
            "nonce": hex(self.nonce),
            "initCode": "0x" + self.init_code.hex(),
            "callData": "0x" + self.call_data.hex(),
            "accountGasLimits": "0x" + self.account_gas_limits.hex(),
            "preVerificationGas": hex(self.pre_verification_gas),
            "gasFees": "0x" + self.gas_fees.hex(),
            "paymasterAndData": "0x" + self.paymaster_and_data.hex(),
            "signature": "0x" + self.signature.hex(),
        }


def get_init_code(user_operation: UserOperationV7) -> bytes:
    if user_operation.factory is None:
        return bytes(0)
    return (
        bytes.fromhex(user_operation.factory[2:]) +
        (user_operation.factory_data or bytes(0))
    )


def unpack_init_code(
    init_code: bytes
) -> tuple[Address | None, bytes | None]:
    if len(init_code) == 0:
        return None, None
    return Address(to_checksum_address(init_code[:20])), init_code[20:]


def get_account_gas_limits(user_operation: UserOperationV7) -> bytes:
    return (
        verify_and_get_uint128_bytes(
            "verificationGasLimit",
            user_operation.verification_gas_limit  # type: ignore
        ) +
        verify_and_get_uint128_bytes(
            "callGasLimit", user_operation.call_gas_limit)  # type: ignore
    )


def unpack_account_gas_limits(account_gas_limits: bytes) -> tuple[int, int]:
    verification_gas_limit = int.from_bytes(account_gas_limits[:16])
    call_gas_limit = int.from_bytes(account_gas_limits[16:32])
    return verification_gas_limit, call_gas_limit


def get_gas_fees(user_operation: UserOperationV7) -> bytes:
    return (
        verify_and_get_uint128_bytes(
            "maxPriorityFeePerGas",
            user_operation.max_priority_fee_per_gas  # type: ignore
        ) +
        verify_and_get_uint128_bytes(
            "maxFeePerGas", user_operation.max_fee_per_gas)  # type: ignore
    )


def unpack_gas_fees(gas_fees: bytes) -> tuple[int, int]:
    max_priority_fee_per_gas = int.from_bytes(gas_fees[:16])
    max_fee_per_gas = int.from_bytes(gas_fees[16:32])
    return max_priority_fee_per_gas, max_fee_per_gas


def get_paymaster_and_data(user_operation: UserOperationV7) -> bytes:
    if user_operation.paymaster is None:
        return bytes(0)
    return (
        bytes.fromhex(user_operation.paymaster[2:]) +
        verify_and_get_uint128_bytes(
            "paymasterVerificationGasLimit",
            user_operation.paymaster_verification_gas_limit or 0
        ) +
        verify_and_get_uint128_bytes(
            "paymasterPostOpGasLimit",
            user_operation.paymaster_post_op_gas_limit or 0
        ) +
        (user_operation.paymaster_data or bytes(0))
    )


def unpack_paymaster_and_data(
    paymaster_and_data: bytes
) -> tuple[Address | None, int | None, int | None, bytes | None]:
    if len(paymaster_and_data) == 0:
        return None, None, None, None
    if len(paymaster_and_data) < 52:
        raise ValidationException(
            ValidationExceptionCode.InvalidFields,
            "paymasterAndData has to be empty or at least 52 bytes long",
        )
    return (
        Address(to_checksum_address(paymaster_and_data[:20])),
        int.from_bytes(paymaster_and_data[20:36]),
        int.from_bytes(paymaster_and_data[36:52]),
        paymaster_and_data[52:],
    )


def get_packed_user_operation(
    user_operation: UserOperationV7
) -> PackedUserOperation:
    user_operation.verify_complete()
    return PackedUserOperation(
        sender_address=user_operation.sender_address,  # type: ignore
        nonce=user_operation.nonce,  # type: ignore
        init_code=get_init_code(user_operation),
        call_data=user_operation.call_data,  # type: ignore
        account_gas_limits=get_account_gas_limits(user_operation),
        pre_verification_gas=user_operation.pre_verification_gas,  # type: ignore
        gas_fees=get_gas_fees(user_operation),
        paymaster_and_data=get_paymaster_and_data(user_operation),
        signature=user_operation.signature,  # type: ignore
    )


def unpack_user_operation(
    packed_user_operation: PackedUserOperation
) -> UserOperationV7:
    factory, factory_data = unpack_init_code(packed_user_operation.init_code)
    verification_gas_limit, call_gas_limit = unpack_account_gas_limits(
        packed_user_operation.account_gas_limits)
    max_priority_fee_per_gas, max_fee_per_gas = unpack_gas_fees(
        packed_user_operation.gas_fees)
    (
        paymaster,
        paymaster_verification_gas_limit,
        paymaster_post_op_gas_limit,
        paymaster_data,
    ) = unpack_paymaster_and_data(packed_user_operation.paymaster_and_data)

    return UserOperationV7(
        sender_address=packed_user_operation.sender_address,
        nonce=packed_user_operation.nonce,
        factory=factory,
        factory_data=factory_data,
        call_data=packed_user_operation.call_data,
        call_gas_limit=call_gas_limit,
        verification_gas_limit=verification_gas_limit,
        pre_verification_gas=packed_user_operation.pre_verification_gas,
        max_fee_per_gas=max_fee_per_gas,
        max_priority_fee_per_gas=max_priority_fee_per_gas,
        paymaster=paymaster,
        paymaster_verification_gas_limit=paymaster_verification_gas_limit,
        paymaster_post_op_gas_limit=paymaster_post_op_gas_limit,
        paymaster_data=paymaster_data,
        signature=packed_user_operation.signature,
    )


def get_user_operation_hash(
    user_operation_list: list, entrypoint_addr: str, chain_id: int
) -> str:
    packed_user_operation = keccak(
        pack_user_operation(user_operation_list)
    )

    encoded_user_operation_hash = encode(
        ["(bytes32,address,uint256)"],
        [[packed_user_operation, entrypoint_addr, chain_id]],
    )
    user_operation_hash = "0x" + keccak(encoded_user_operation_hash).hex()
    return user_operation_hash


def pack_user_operation(user_operation_list: list) -> bytes:
    user_operation_list = list(user_operation_list)
    user_operation_list[2] = keccak(user_operation_list[2])  # initCode
    user_operation_list[3] = keccak(user_operation_list[3])  # callData
    user_operation_list[7] = keccak(user_operation_list[7])  # paymasterAndData

    user_operation_list_without_signature = user_operation_list[:-1]

    packed_user_operation = encode(
        [
            "address",
            "uint256",
            "bytes32",
            "bytes32",
            "bytes32",
            "uint256",
            "bytes32",
            "bytes32",
        ],
        user_operation_list_without_signature,
    )
    return packed_user_operation
