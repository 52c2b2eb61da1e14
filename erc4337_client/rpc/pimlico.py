from typing import Any

from erc4337_client.entrypoint import EntryPoint, get_matching_entrypoint, \
    to_entrypoint
from erc4337_client.typing import Address
from erc4337_client.user_operation.models import \
    SponsorUserOperationResult, TokenQuote, UserOperationGasPrice, \
    UserOperationStatus
from erc4337_client.user_operation.user_operation import UserOperation
from erc4337_client.utils.eth_client_utils import Transport
from .bundler_client import BundlerClient, verify_user_operation_hash


class PimlicoBundlerClient(BundlerClient):
    """Bundler client with the pimlico_* extensions."""

    async def get_user_operation_gas_price(self) -> UserOperationGasPrice:
        result = await self.transport.request(
            "pimlico_getUserOperationGasPrice")
        return UserOperationGasPrice.from_json(result)

    async def get_user_operation_status(
        self, user_operation_hash: str
    ) -> UserOperationStatus:
        verify_user_operation_hash(user_operation_hash)
        result = await self.transport.request(
            "pimlico_getUserOperationStatus", [user_operation_hash])
        return UserOperationStatus.from_json(result)


class PimlicoPaymasterClient:
    transport: Transport

    def __init__(self, transport: Transport):
        self.transport = transport

    async def sponsor_user_operation(
        self,
        user_operation: UserOperation,
        entrypoint: EntryPoint | Address | str,
        sponsorship_policy_id: str | None = None,
    ) -> SponsorUserOperationResult:
        entrypoint = get_matching_entrypoint(entrypoint, user_operation)
        params: list[Any] = [
            user_operation.get_user_operation_json(),
            entrypoint.address,
        ]
        if sponsorship_policy_id is not None:
            params.append({"sponsorshipPolicyId": sponsorship_policy_id})

        result = await self.transport.request("pm_sponsorUserOperation", params)
        return SponsorUserOperationResult.from_json(result)

    async def validate_sponsorship_policies(
        self,
        user_operation: UserOperation,
        entrypoint: EntryPoint | Address | str,
        sponsorship_policy_ids: list[str],
    ) -> list[dict[str, Any]]:
        entrypoint = get_matching_entrypoint(entrypoint, user_operation)
        return await self.transport.request(
            "pm_validateSponsorshipPolicies",
            [
                user_operation.get_user_operation_json(),
                entrypoint.address,
                sponsorship_policy_ids,
            ],
        )

    async def get_token_quotes(
        self,
        tokens: list[Address],
        entrypoint: EntryPoint | Address | str,
        chain_id: int,
    ) -> list[TokenQuote]:
        entrypoint = to_entrypoint(entrypoint)
        result = await self.transport.request(
            "pimlico_getTokenQuotes",
            [{"tokens": tokens}, entrypoint.address, hex(chain_id)],
        )
        return [TokenQuote.from_json(quote) for quote in result["quotes"]]
