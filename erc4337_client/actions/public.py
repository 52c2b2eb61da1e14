from typing import Any

from eth_abi import decode
from eth_utils import to_checksum_address

from erc4337_client.entrypoint import EntryPoint, to_entrypoint
from erc4337_client.exceptions import \
    RpcErrorCode, RpcException, ValidationException, ValidationExceptionCode
from erc4337_client.rpc.public_client import PublicClient
from erc4337_client.typing import Address
from erc4337_client.utils.encode import MAX_UINT192, encode_function_call

SENDER_ADDRESS_RESULT_SELECTOR = "0x6ca7b806"


def _find_revert_data(error_data: Any) -> str | None:
    # nodes nest the revert data differently, e.g. {"data": "0x..."}
    # or "Reverted 0x..."
    if isinstance(error_data, str):
        for word in error_data.split(" "):
            if word[:10].lower() == SENDER_ADDRESS_RESULT_SELECTOR:
                return word
        return None
    if isinstance(error_data, dict):
        for value in error_data.values():
            revert_data = _find_revert_data(value)
            if revert_data is not None:
                return revert_data
    return None


def decode_sender_address_result(revert_data: str) -> Address:
    (sender_address,) = decode(["address"], bytes.fromhex(revert_data[10:]))
    return Address(to_checksum_address(sender_address))


async def get_sender_address(
    public_client: PublicClient,
    entrypoint: EntryPoint | Address | str,
    init_code: bytes | None = None,
    factory: Address | None = None,
    factory_data: bytes | None = None,
) -> Address:
    """
    Counterfactual account address, taken from the SenderAddressResult
    revert of EntryPoint.getSenderAddress(initCode).
    """
    if init_code is None:
        if factory is None:
            raise ValidationException(
                ValidationExceptionCode.InvalidFields,
                "Either initCode or factory and factoryData must be provided",
            )
        init_code = bytes.fromhex(factory[2:]) + (factory_data or bytes(0))

    entrypoint = to_entrypoint(entrypoint)
    call_data = encode_function_call(
        "getSenderAddress(bytes)", ["bytes"], [init_code])
    try:
        await public_client.call(entrypoint.address, call_data)
    except RpcException as excp:
        revert_data = _find_revert_data(excp.data)
        if revert_data is None:
            revert_data = _find_revert_data(excp.message)
        if revert_data is not None:
            return decode_sender_address_result(revert_data)
        raise

    raise RpcException(
        RpcErrorCode.InternalError.value,
        "getSenderAddress did not revert with SenderAddressResult",
    )


async def get_account_nonce(
    public_client: PublicClient,
    sender_address: Address,
    entrypoint: EntryPoint | Address | str,
    key: int = 0,
) -> int:
    if key < 0 or key > MAX_UINT192:
        raise ValidationException(
            ValidationExceptionCode.InvalidFields,
            f"Nonce key {key} does not fit in 192 bits",
        )
    entrypoint = to_entrypoint(entrypoint)
    call_data = encode_function_call(
        "getNonce(address,uint192)",
        ["address", "uint192"],
        [sender_address, key],
    )
    result = await public_client.call(entrypoint.address, call_data)
    (nonce,) = decode(["uint256"], result)
    return nonce


async def is_deployed(public_client: PublicClient, address: Address) -> bool:
    code = await public_client.get_code(address)
    return len(code) > 0
