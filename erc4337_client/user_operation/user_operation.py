from abc import ABC, abstractmethod
from dataclasses import fields, replace
import re
from typing import Any, ClassVar

from eth_utils import to_checksum_address

from erc4337_client.entrypoint import EntryPointVersion
from erc4337_client.exceptions import \
        ValidationException, ValidationExceptionCode
from erc4337_client.typing import Address


class UserOperation(ABC):
    entrypoint_version: ClassVar[EntryPointVersion]
    # fields that may stay None in a finalized operation
    optional_fields: ClassVar[tuple[str, ...]] = ()

    sender_address: Address | None
    nonce: int | None
    call_data: bytes | None
    call_gas_limit: int | None
    verification_gas_limit: int | None
    pre_verification_gas: int | None
    max_fee_per_gas: int | None
    max_priority_fee_per_gas: int | None
    signature: bytes | None

    @abstractmethod
    def get_user_operation_json(self) -> dict[str, Address | str | None]:
        pass

    @abstractmethod
    def to_list(self) -> list[Address | int | bytes]:
        pass

    @abstractmethod
    def get_required_prefund(self) -> int:
        pass

    @abstractmethod
    def has_paymaster(self) -> bool:
        pass

    def get_missing_fields(self) -> list[str]:
        return [
            field.name for field in fields(self)  # type: ignore
            if getattr(self, field.name) is None and
            field.name not in self.optional_fields
        ]

    def verify_complete(self) -> None:
        missing_fields = self.get_missing_fields()
        if len(missing_fields) > 0:
            raise ValidationException(
                ValidationExceptionCode.InvalidFields,
                "UserOperation is missing the fields: " +
                ", ".join(missing_fields),
            )

    def copy(self, **changes: Any):
        return replace(self, **changes)  # type: ignore


def verify_and_get_address(field_name: str, value: Address | None) -> Address:
    address_pattern = "^0x[0-9a-fA-F]{40}$"
    if isinstance(value, str) and re.match(address_pattern, value) is not None:
        return Address(to_checksum_address(value))
    else:
        raise ValidationException(
            ValidationExceptionCode.InvalidFields,
            f"Invalid address value : {value} in field {field_name}",
        )


def verify_and_get_uint(field_name: str, value: str | int | None) -> int:
    if value is None:
        raise ValidationException(
            ValidationExceptionCode.InvalidFields,
            f"Invalid uint hex value in field {field_name}",
        )

    if isinstance(value, int) and not isinstance(value, bool) and value >= 0:
        return value
    elif value == "0x":
        return 0
    elif isinstance(value, str) and value[:2] == "0x":
        try:
            return int(value, 16)
        except ValueError:
            raise ValidationException(
                ValidationExceptionCode.InvalidFields,
                f"Invalid uint hex value : {value} in field {field_name}",
            )
    else:
        raise ValidationException(
            ValidationExceptionCode.InvalidFields,
            f"Invalid uint hex value : {value} in field {field_name}",
        )


def verify_and_get_bytes(field_name: str, value: str | None) -> bytes:
    if value is None:
        raise ValidationException(
            ValidationExceptionCode.InvalidFields,
            f"Invalid bytes hex value in field {field_name}",
        )

    if isinstance(value, str) and value[:2] == "0x":
        try:
            return bytes.fromhex(value[2:])
        except ValueError:
            raise ValidationException(
                ValidationExceptionCode.InvalidFields,
                f"Invalid bytes hex value : {value} in field {field_name}",
            )
    else:
        raise ValidationException(
            ValidationExceptionCode.InvalidFields,
            f"Invalid bytes hex value : {value} in field {field_name}",
        )


def verify_and_get_uint128_bytes(field_name: str, value: int) -> bytes:
    try:
        return value.to_bytes(16)
    except OverflowError:
        raise ValidationException(
            ValidationExceptionCode.InvalidFields,
            f"Value {hex(value)} in field {field_name} does not fit in 128 bits",
        )


def is_user_operation_hash(user_operation_hash: str) -> bool:
    hash_pattern = "^0x[0-9a-fA-F]{64}$"
    return (
        isinstance(user_operation_hash, str)
        and re.match(hash_pattern, user_operation_hash) is not None
    )


def hex_or_none(value: int | None) -> str | None:
    return None if value is None else hex(value)


def bytes_hex_or_none(value: bytes | None) -> str | None:
    return None if value is None else "0x" + value.hex()
