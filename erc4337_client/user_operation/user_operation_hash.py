from erc4337_client.entrypoint import \
    EntryPoint, EntryPointVersion, get_matching_entrypoint
from erc4337_client.typing import Address, UserOperationHash
from .user_operation import UserOperation
from .v6 import user_operation_v6
from .v7 import user_operation_v7


def get_user_operation_hash(
    user_operation: UserOperation,
    entrypoint: EntryPoint | Address | str,
    chain_id: int,
) -> UserOperationHash:
    """
    keccak256(abi.encode(keccak256(pack(userOp)), entryPoint, chainId))

    The signature is not part of the hash, so an operation that was not
    signed yet hashes the same as its signed counterpart.
    """
    entrypoint = get_matching_entrypoint(entrypoint, user_operation)

    if user_operation.signature is None:
        user_operation = user_operation.copy(signature=bytes(0))

    if entrypoint.version == EntryPointVersion.V06:
        user_operation_hash = user_operation_v6.get_user_operation_hash(
            user_operation.to_list(), entrypoint.address, chain_id)
    else:
        user_operation_hash = user_operation_v7.get_user_operation_hash(
            user_operation.to_list(), entrypoint.address, chain_id)
    return UserOperationHash(user_operation_hash)
