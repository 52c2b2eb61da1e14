from dataclasses import dataclass
import logging
from typing import Any, Awaitable, Callable

from erc4337_client.entrypoint import EntryPoint, EntryPointVersion
from erc4337_client.exceptions import \
    ConfigurationException, ConfigurationExceptionCode
from erc4337_client.gas.gas_manager import \
    apply_gas_limits, get_gas_limits, merge_gas_limits
from erc4337_client.rpc.bundler_client import BundlerClient
from erc4337_client.rpc.paymaster_client import PaymasterClient
from erc4337_client.rpc.pimlico import \
    PimlicoBundlerClient, PimlicoPaymasterClient
from erc4337_client.user_operation.models import \
    GasPriceQuote, SponsorUserOperationResult
from erc4337_client.user_operation.user_operation import UserOperation

TransformFunction = Callable[
    [UserOperation, EntryPoint], UserOperation | Awaitable[UserOperation]]
GasPriceFunction = Callable[[], Awaitable[GasPriceQuote]]
SponsorUserOperationFunction = Callable[
    [UserOperation, EntryPoint], Awaitable[SponsorUserOperationResult]]


@dataclass
class TransformMiddleware:
    """Takes over the rest of the preparation and returns the final op."""
    transform: TransformFunction


@dataclass
class HooksMiddleware:
    gas_price: GasPriceFunction | None = None
    sponsor_user_operation: SponsorUserOperationFunction | None = None


SponsorshipMiddleware = TransformMiddleware | HooksMiddleware


def resolve_middleware(middleware: Any) -> SponsorshipMiddleware | None:
    if middleware is None:
        return None
    if isinstance(middleware, (TransformMiddleware, HooksMiddleware)):
        return middleware
    if isinstance(middleware, dict):
        unknown_keys = set(middleware) - {"gas_price", "sponsor_user_operation"}
        if len(unknown_keys) > 0:
            raise ConfigurationException(
                ConfigurationExceptionCode.InvalidMiddleware,
                f"Unknown middleware hooks: {', '.join(sorted(unknown_keys))}",
            )
        return HooksMiddleware(**middleware)
    if callable(middleware):
        return TransformMiddleware(middleware)
    raise ConfigurationException(
        ConfigurationExceptionCode.InvalidMiddleware,
        f"Invalid sponsorship middleware: {middleware}",
    )


def apply_sponsorship(
    user_operation: UserOperation,
    sponsor_result: SponsorUserOperationResult,
):
    changes: dict[str, Any] = {}
    if user_operation.entrypoint_version == EntryPointVersion.V06:
        if sponsor_result.paymaster_and_data is not None:
            changes["paymaster_and_data"] = sponsor_result.paymaster_and_data
    elif sponsor_result.paymaster is not None:
        changes["paymaster"] = sponsor_result.paymaster
        changes["paymaster_data"] = sponsor_result.paymaster_data or bytes(0)
        changes["paymaster_verification_gas_limit"] = (
            sponsor_result.paymaster_verification_gas_limit
            if sponsor_result.paymaster_verification_gas_limit is not None
            else getattr(user_operation, "paymaster_verification_gas_limit")
        )
        changes["paymaster_post_op_gas_limit"] = (
            sponsor_result.paymaster_post_op_gas_limit
            if sponsor_result.paymaster_post_op_gas_limit is not None
            else getattr(user_operation, "paymaster_post_op_gas_limit")
        )

    for field_name in (
        "call_gas_limit",
        "verification_gas_limit",
        "pre_verification_gas",
        "max_fee_per_gas",
        "max_priority_fee_per_gas",
    ):
        value = getattr(sponsor_result, field_name)
        if value is not None:
            changes[field_name] = value
    return user_operation.copy(**changes)


def pimlico_paymaster_middleware(
    paymaster_client: PimlicoPaymasterClient,
    bundler_client: PimlicoBundlerClient | None = None,
    sponsorship_policy_id: str | None = None,
) -> HooksMiddleware:
    """
    Sponsor through pm_sponsorUserOperation, pricing with the bundler's
    fast gas price quote when a pimlico bundler is given.
    """
    async def sponsor_user_operation(
        user_operation: UserOperation, entrypoint: EntryPoint
    ) -> SponsorUserOperationResult:
        return await paymaster_client.sponsor_user_operation(
            user_operation, entrypoint, sponsorship_policy_id)

    if bundler_client is None:
        return HooksMiddleware(sponsor_user_operation=sponsor_user_operation)

    async def gas_price() -> GasPriceQuote:
        return (await bundler_client.get_user_operation_gas_price()).fast

    return HooksMiddleware(
        gas_price=gas_price,
        sponsor_user_operation=sponsor_user_operation,
    )


def erc7677_paymaster_middleware(
    paymaster_client: PaymasterClient,
    bundler_client: BundlerClient,
    chain_id: int,
    context: dict[str, Any] | None = None,
    state_overrides: dict[str, Any] | None = None,
) -> HooksMiddleware:
    """
    Sponsor through an ERC-7677 paymaster service.

    The stub data is used to estimate gas, the estimate is merged into the
    current limits and the final paymaster data is requested for the
    resulting operation, unless the stub data is already final.
    """
    async def sponsor_user_operation(
        user_operation: UserOperation, entrypoint: EntryPoint
    ) -> SponsorUserOperationResult:
        stub = await paymaster_client.get_paymaster_stub_data(
            user_operation, entrypoint, chain_id, context)
        stubbed_user_operation = apply_sponsorship(user_operation, stub)

        gas_estimate = await bundler_client.estimate_user_operation_gas(
            stubbed_user_operation, entrypoint, state_overrides)
        gas_limits = merge_gas_limits(
            gas_estimate, get_gas_limits(stubbed_user_operation))
        estimated_user_operation = apply_gas_limits(
            stubbed_user_operation, gas_limits)

        if stub.is_final:
            sponsor_result = stub
        else:
            logging.debug("Requesting final paymaster data")
            sponsor_result = await paymaster_client.get_paymaster_data(
                estimated_user_operation, entrypoint, chain_id, context)

        final_user_operation = apply_sponsorship(
            estimated_user_operation, sponsor_result)
        return SponsorUserOperationResult(
            call_gas_limit=final_user_operation.call_gas_limit,
            verification_gas_limit=final_user_operation.verification_gas_limit,
            pre_verification_gas=final_user_operation.pre_verification_gas,
            paymaster_and_data=getattr(
                final_user_operation, "paymaster_and_data", None),
            paymaster=getattr(final_user_operation, "paymaster", None),
            paymaster_verification_gas_limit=getattr(
                final_user_operation, "paymaster_verification_gas_limit", None),
            paymaster_post_op_gas_limit=getattr(
                final_user_operation, "paymaster_post_op_gas_limit", None),
            paymaster_data=getattr(
                final_user_operation, "paymaster_data", None),
        )

    return HooksMiddleware(sponsor_user_operation=sponsor_user_operation)
