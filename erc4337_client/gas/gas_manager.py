import asyncio
import logging

from erc4337_client.rpc.public_client import PublicClient
from erc4337_client.user_operation.models import GasEstimate, GasPriceQuote
from erc4337_client.user_operation.user_operation import UserOperation


def apply_percentage(value: int, percentage: int) -> int:
    # rounds up
    return -(-value * percentage // 100)


class GasManager:
    public_client: PublicClient
    is_legacy_mode: bool
    max_fee_per_gas_percentage_multiplier: int
    max_priority_fee_per_gas_percentage_multiplier: int

    def __init__(
        self,
        public_client: PublicClient,
        is_legacy_mode: bool = False,
        max_fee_per_gas_percentage_multiplier: int = 120,
        max_priority_fee_per_gas_percentage_multiplier: int = 100,
    ):
        self.public_client = public_client
        self.is_legacy_mode = is_legacy_mode
        self.max_fee_per_gas_percentage_multiplier = (
            max_fee_per_gas_percentage_multiplier)
        self.max_priority_fee_per_gas_percentage_multiplier = (
            max_priority_fee_per_gas_percentage_multiplier)

    async def estimate_fees_per_gas(self) -> GasPriceQuote:
        if self.is_legacy_mode:
            gas_price = apply_percentage(
                await self.public_client.gas_price(),
                self.max_fee_per_gas_percentage_multiplier,
            )
            return GasPriceQuote(gas_price, gas_price)

        base_fee_per_gas, max_priority_fee_per_gas = await asyncio.gather(
            self.public_client.get_base_fee_per_gas(),
            self.public_client.max_priority_fee_per_gas(),
        )
        max_priority_fee_per_gas = apply_percentage(
            max_priority_fee_per_gas,
            self.max_priority_fee_per_gas_percentage_multiplier,
        )
        max_fee_per_gas = apply_percentage(
            base_fee_per_gas, self.max_fee_per_gas_percentage_multiplier
        ) + max_priority_fee_per_gas

        logging.debug(
            f"estimated fees: maxFeePerGas {hex(max_fee_per_gas)} "
            f"maxPriorityFeePerGas {hex(max_priority_fee_per_gas)}"
        )
        return GasPriceQuote(max_fee_per_gas, max_priority_fee_per_gas)


def get_gas_limits(user_operation: UserOperation) -> GasEstimate:
    return GasEstimate(
        pre_verification_gas=user_operation.pre_verification_gas or 0,
        verification_gas_limit=user_operation.verification_gas_limit or 0,
        call_gas_limit=user_operation.call_gas_limit or 0,
        paymaster_verification_gas_limit=getattr(
            user_operation, "paymaster_verification_gas_limit", None),
        paymaster_post_op_gas_limit=getattr(
            user_operation, "paymaster_post_op_gas_limit", None),
    )


def merge_gas_limits(fresh: GasEstimate, previous: GasEstimate) -> GasEstimate:
    """
    Merge a re-estimation into earlier limits without ever lowering them.
    """
    return GasEstimate(
        pre_verification_gas=max(
            fresh.pre_verification_gas, previous.pre_verification_gas),
        verification_gas_limit=max(
            fresh.verification_gas_limit, previous.verification_gas_limit),
        call_gas_limit=max(fresh.call_gas_limit, previous.call_gas_limit),
        paymaster_verification_gas_limit=(
            fresh.paymaster_verification_gas_limit
            if fresh.paymaster_verification_gas_limit is not None
            else previous.paymaster_verification_gas_limit
        ),
        paymaster_post_op_gas_limit=(
            fresh.paymaster_post_op_gas_limit
            if fresh.paymaster_post_op_gas_limit is not None
            else previous.paymaster_post_op_gas_limit
        ),
    )


def apply_gas_limits(
    user_operation: UserOperation, gas_limits: GasEstimate
):
    changes = {
        "pre_verification_gas": gas_limits.pre_verification_gas,
        "verification_gas_limit": gas_limits.verification_gas_limit,
        "call_gas_limit": gas_limits.call_gas_limit,
    }
    if getattr(user_operation, "paymaster", None) is not None:
        if gas_limits.paymaster_verification_gas_limit is not None:
            changes["paymaster_verification_gas_limit"] = (
                gas_limits.paymaster_verification_gas_limit)
        if gas_limits.paymaster_post_op_gas_limit is not None:
            changes["paymaster_post_op_gas_limit"] = (
                gas_limits.paymaster_post_op_gas_limit)
    return user_operation.copy(**changes)
