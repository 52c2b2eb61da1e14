import asyncio
import inspect
import logging
from typing import Any

from erc4337_client.accounts.smart_account import Call, SmartAccount
from erc4337_client.entrypoint import EntryPointVersion, get_matching_entrypoint
from erc4337_client.exceptions import \
    ValidationException, ValidationExceptionCode
from erc4337_client.gas.gas_manager import GasManager
from erc4337_client.paymaster.middleware import \
    HooksMiddleware, TransformMiddleware, apply_sponsorship, resolve_middleware
from erc4337_client.rpc.bundler_client import BundlerClient
from erc4337_client.user_operation.user_operation import UserOperation

GAS_LIMIT_FIELDS = (
    "call_gas_limit",
    "verification_gas_limit",
    "pre_verification_gas",
)


async def _resolve(value: Any) -> Any:
    return value


def _to_user_operation(
    account: SmartAccount,
    partial_user_operation: UserOperation | dict[str, Any] | None,
) -> UserOperation:
    if partial_user_operation is None:
        return account.new_user_operation()
    if isinstance(partial_user_operation, dict):
        return account.new_user_operation(**partial_user_operation)
    get_matching_entrypoint(account.entrypoint, partial_user_operation)
    return partial_user_operation


async def _resolve_init_fields(
    account: SmartAccount, user_operation: UserOperation
) -> dict[str, Any]:
    if user_operation.entrypoint_version == EntryPointVersion.V06:
        if getattr(user_operation, "init_code") is not None:
            return {}
    elif (
        getattr(user_operation, "factory") is not None or
        getattr(user_operation, "factory_data") is not None
    ):
        return {}
    return await account.get_init_fields()


async def _resolve_call_data(
    account: SmartAccount,
    user_operation: UserOperation,
    calls: list[Call] | None,
) -> bytes:
    if user_operation.call_data is not None:
        return user_operation.call_data
    if calls is None:
        raise ValidationException(
            ValidationExceptionCode.InvalidFields,
            "Either callData or calls must be provided",
        )
    return account.encode_calls(calls)


async def prepare_user_operation(
    account: SmartAccount,
    bundler_client: BundlerClient,
    partial_user_operation: UserOperation | dict[str, Any] | None = None,
    calls: list[Call] | None = None,
    middleware: Any = None,
    state_overrides: dict[str, Any] | None = None,
    gas_manager: GasManager | None = None,
) -> UserOperation:
    """
    Fill in a partial user operation until it is ready to be signed.

    Caller supplied values are kept. Missing account fields are resolved
    concurrently, then fees, sponsorship and gas limits are filled in as
    the middleware dictates. A transform middleware returns the final
    operation itself. The result is always complete.
    """
    user_operation = _to_user_operation(account, partial_user_operation)
    entrypoint = account.entrypoint

    sender_address, nonce, init_fields, call_data = await asyncio.gather(
        _resolve(user_operation.sender_address)
        if user_operation.sender_address is not None
        else account.get_address(),
        _resolve(user_operation.nonce)
        if user_operation.nonce is not None
        else account.get_nonce(),
        _resolve_init_fields(account, user_operation),
        _resolve_call_data(account, user_operation, calls),
    )
    user_operation = user_operation.copy(
        sender_address=sender_address,
        nonce=nonce,
        call_data=call_data,
        **init_fields,
    )
    if user_operation.entrypoint_version == EntryPointVersion.V06 and \
            getattr(user_operation, "paymaster_and_data") is None:
        user_operation = user_operation.copy(paymaster_and_data=bytes(0))

    if user_operation.signature is None or len(user_operation.signature) == 0:
        user_operation = user_operation.copy(
            signature=account.get_stub_signature())

    resolved_middleware = resolve_middleware(middleware)
    if isinstance(resolved_middleware, TransformMiddleware):
        transformed = resolved_middleware.transform(user_operation, entrypoint)
        if inspect.isawaitable(transformed):
            transformed = await transformed
        transformed.verify_complete()
        return transformed

    hooks = resolved_middleware or HooksMiddleware()

    if (
        not user_operation.max_fee_per_gas or
        not user_operation.max_priority_fee_per_gas
    ):
        if hooks.gas_price is not None:
            gas_price = await hooks.gas_price()
        else:
            if gas_manager is None:
                gas_manager = GasManager(account.public_client)
            gas_price = await gas_manager.estimate_fees_per_gas()
        user_operation = user_operation.copy(
            max_fee_per_gas=user_operation.max_fee_per_gas
            or gas_price.max_fee_per_gas,
            max_priority_fee_per_gas=user_operation.max_priority_fee_per_gas
            or gas_price.max_priority_fee_per_gas,
        )

    user_operation = user_operation.copy(**{
        field_name: getattr(user_operation, field_name) or 0
        for field_name in GAS_LIMIT_FIELDS
    })

    sponsored_gas_limits = False
    if hooks.sponsor_user_operation is not None:
        sponsor_result = await hooks.sponsor_user_operation(
            user_operation, entrypoint)
        user_operation = apply_sponsorship(user_operation, sponsor_result)
        sponsored_gas_limits = sponsor_result.has_gas_limits()

    if not sponsored_gas_limits and _needs_gas_estimation(user_operation):
        gas_estimate = await bundler_client.estimate_user_operation_gas(
            user_operation, entrypoint, state_overrides)
        changes = {
            field_name: getattr(user_operation, field_name) or
            getattr(gas_estimate, field_name)
            for field_name in GAS_LIMIT_FIELDS
        }
        if getattr(user_operation, "paymaster", None) is not None:
            for field_name in (
                "paymaster_verification_gas_limit",
                "paymaster_post_op_gas_limit",
            ):
                changes[field_name] = getattr(user_operation, field_name) or \
                    getattr(gas_estimate, field_name) or 0
        user_operation = user_operation.copy(**changes)

    user_operation.verify_complete()
    logging.debug(
        f"Prepared UserOperation {user_operation.get_user_operation_json()}")
    return user_operation


def _needs_gas_estimation(user_operation: UserOperation) -> bool:
    if any(
        not getattr(user_operation, field_name)
        for field_name in GAS_LIMIT_FIELDS
    ):
        return True
    return (
        getattr(user_operation, "paymaster", None) is not None and (
            getattr(user_operation, "paymaster_verification_gas_limit") is None
            or getattr(user_operation, "paymaster_post_op_gas_limit") is None
        )
    )
