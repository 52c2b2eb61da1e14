from typing import Any

from erc4337_client.entrypoint import EntryPoint, get_matching_entrypoint
from erc4337_client.typing import Address
from erc4337_client.user_operation.models import SponsorUserOperationResult
from erc4337_client.user_operation.user_operation import UserOperation
from erc4337_client.utils.eth_client_utils import Transport


class PaymasterClient:
    """ERC-7677 paymaster web service."""
    transport: Transport

    def __init__(self, transport: Transport):
        self.transport = transport

    async def get_paymaster_stub_data(
        self,
        user_operation: UserOperation,
        entrypoint: EntryPoint | Address | str,
        chain_id: int,
        context: dict[str, Any] | None = None,
    ) -> SponsorUserOperationResult:
        return await self._request(
            "pm_getPaymasterStubData",
            user_operation, entrypoint, chain_id, context,
        )

    async def get_paymaster_data(
        self,
        user_operation: UserOperation,
        entrypoint: EntryPoint | Address | str,
        chain_id: int,
        context: dict[str, Any] | None = None,
    ) -> SponsorUserOperationResult:
        return await self._request(
            "pm_getPaymasterData",
            user_operation, entrypoint, chain_id, context,
        )

    async def _request(
        self,
        method: str,
        user_operation: UserOperation,
        entrypoint: EntryPoint | Address | str,
        chain_id: int,
        context: dict[str, Any] | None,
    ) -> SponsorUserOperationResult:
        entrypoint = get_matching_entrypoint(entrypoint, user_operation)
        params: list[Any] = [
            user_operation.get_user_operation_json(),
            entrypoint.address,
            hex(chain_id),
        ]
        if context is not None:
            params.append(context)
        result = await self.transport.request(method, params)
        return SponsorUserOperationResult.from_json(result)
