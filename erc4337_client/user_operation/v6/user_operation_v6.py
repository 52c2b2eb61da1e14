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
    hex_or_none, bytes_hex_or_none
from ..user_operation import UserOperation


@dataclass
class UserOperationV6(UserOperation):
    entrypoint_version: ClassVar[EntryPointVersion] = EntryPointVersion.V06

    sender_address: Address | None = None
    nonce: int | None = None
    init_code: bytes | None = None
    call_data: bytes | None = None
    call_gas_limit: int | None = None
    verification_gas_limit: int | None = None
    pre_verification_gas: int | None = None
    max_fee_per_gas: int | None = None
    max_priority_fee_per_gas: int | None = None
    paymaster_and_data: bytes | None = None
    signature: bytes | None = None

    @classmethod
    def from_json(
        cls, json_request_dict: dict[str, Any]
    ) -> "UserOperationV6":
        cls.verify_fields_exist(json_request_dict)
        if len(json_request_dict) != 11:
            raise ValidationException(
                ValidationExceptionCode.InvalidFields,
                "Invalid UserOperation",
            )

        return cls(
            sender_address=verify_and_get_address(
                "sender", json_request_dict["sender"]),
            nonce=verify_and_get_uint(
                "nonce", json_request_dict["nonce"]),
            init_code=verify_and_get_bytes(
                "initCode", json_request_dict["initCode"]),
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
            paymaster_and_data=verify_and_get_bytes(
                "paymasterAndData", json_request_dict["paymasterAndData"]
            ),
            signature=verify_and_get_bytes(
                "signature", json_request_dict["signature"]),
        )

    @staticmethod
    def verify_fields_exist(
            json_request_dict: dict[str, Any]
    ) -> None:
        field_list = [
            "sender",
            "nonce",
            "initCode",
            "callData",
            "callGasLimit",
            "verificationGasLimit",
            "preVerificationGas",
            "maxFeePerGas",
            "maxPriorityFeePerGas",
            "paymasterAndData",
            "signature",
        ]

        for field in field_list:
            if field not in json_request_dict:
                raise ValidationException(
                    ValidationExceptionCode.InvalidFields,
                    f"UserOperation missing {field} field",
                )

    def get_user_operation_json(self) -> dict[str, Address | str | None]:
        user_operation_json = {
            "sender": self.sender_address,
            "nonce": hex_or_none(self.nonce),
            "initCode": bytes_hex_or_none(self.init_code),
            "callData": bytes_hex_or_none(self.call_data),
            "callGasLimit": hex_or_none(self.call_gas_limit),
            "verificationGasLimit": hex_or_none(self.verification_gas_limit),
            "preVerificationGas": hex_or_none(self.pre_verification_gas),
            "maxFeePerGas": hex_or_none(self.max_fee_per_gas),
            "maxPriorityFeePerGas": hex_or_none(self.max_priority_fee_per_gas),
            "paymasterAndData": bytes_hex_or_none(self.paymaster_and_data),
            "signature": bytes_hex_or_none(self.signature),
        }
        return {
            key: value for key, value in user_operation_json.items()
            if value is not None
        }

    def to_list(self) -> list[Address | int | bytes]:
        self.verify_complete()
        return [
            self.sender_address,  # type: ignore
            self.nonce,  # type: ignore
            self.init_code,  # type: ignore
            self.call_data,  # type: ignore
            self.call_gas_limit,  # type: ignore
            self.verification_gas_limit,  # type: ignore
            self.pre_verification_gas,  # type: ignore
            self.max_fee_per_gas,  # type: ignore
            self.max_priority_fee_per_gas,  # type: ignore
            self.paymaster_and_data,  # type: ignore
            self.signature,  # type: ignore
        ]

    def has_paymaster(self) -> bool:
        return (
            self.paymaster_and_data is not None and
            len(self.paymaster_and_data) > 0
        )

    def get_required_prefund(self) -> int:
        self.verify_complete()
        multiplier = 3 if self.has_paymaster() else 1
        gas = (
            self.call_gas_limit +  # type: ignore
            self.verification_gas_limit * multiplier +  # type: ignore
            self.pre_verification_gas  # type: ignore
        )
        return gas * self.max_fee_per_gas  # type: ignore

    def get_factory_address(self) -> Address | None:
        if self.init_code is not None and len(self.init_code) >= 20:
            return Address(to_checksum_address(self.init_code[:20]))
        return None

    def get_paymaster_address(self) -> Address | None:
        if (
            self.paymaster_and_data is not None and
            len(self.paymaster_and_data) >= 20
        ):
            return Address(to_checksum_address(self.paymaster_and_data[:20]))
        return None


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
    user_operation_list[9] = keccak(user_operation_list[9])  # paymasterAndData
    user_operation_list_without_signature = user_operation_list[:-1]

    packed_user_operation = encode(
        [
            "address",
            "uint256",
            "bytes32",
            "bytes32",
            "uint256",
            "uint256",
            "uint256",
            "uint256",
            "uint256",
            "bytes32",
        ],
        user_operation_list_without_signature,
    )
    return packed_user_operation
