from typing import Any

from eth_abi import encode
from eth_utils import function_signature_to_4byte_selector, to_checksum_address

from erc4337_client.exceptions import \
    ValidationException, ValidationExceptionCode
from erc4337_client.typing import Address

MAX_UINT16 = 2**16 - 1
MAX_UINT192 = 2**192 - 1
MAX_UINT64 = 2**64 - 1


def encode_function_call(
    function_signature: str, types: list[str], args: list[Any]
) -> bytes:
    return (
        function_signature_to_4byte_selector(function_signature) +
        encode(types, args)
    )


def encode_nonce(key: int, sequence: int) -> int:
    if key < 0 or key > MAX_UINT192:
        raise ValidationException(
            ValidationExceptionCode.InvalidFields,
            f"Nonce key {key} does not fit in 192 bits",
        )
    if sequence < 0 or sequence > MAX_UINT64:
        raise ValidationException(
            ValidationExceptionCode.InvalidFields,
            f"Nonce sequence {sequence} does not fit in 64 bits",
        )
    return (key << 64) | sequence


def decode_nonce(nonce: int) -> tuple[int, int]:
    return nonce >> 64, nonce & MAX_UINT64


def get_address_from_init_code_or_paymaster_and_data(
    data: bytes | str | None
) -> Address | None:
    if data is None:
        return None
    if isinstance(data, str):
        data = bytes.fromhex(data[2:] if data[:2] == "0x" else data)
    if len(data) < 20:
        return None
    return Address(to_checksum_address(data[:20]))


def deep_hexlify(obj: Any) -> Any:
    """
    Convert a nested structure of ints and bytes to its json-rpc wire form.
    """
    if isinstance(obj, bool) or obj is None:
        return obj
    if isinstance(obj, int):
        return hex(obj)
    if isinstance(obj, (bytes, bytearray)):
        return "0x" + bytes(obj).hex()
    if isinstance(obj, dict):
        return {key: deep_hexlify(value) for key, value in obj.items()}
    if isinstance(obj, (list, tuple)):
        return [deep_hexlify(value) for value in obj]
    return obj
