from typing import Any

from erc4337_client.typing import Address
from erc4337_client.user_operation.user_operation import verify_and_get_uint
from erc4337_client.utils.eth_client_utils import Transport


class PublicClient:
    """Read-only access to an ethereum node."""
    transport: Transport

    def __init__(self, transport: Transport):
        self.transport = transport

    async def chain_id(self) -> int:
        result = await self.transport.request("eth_chainId")
        return verify_and_get_uint("chainId", result)

    async def call(
        self,
        to: Address,
        data: bytes,
        block_tag: str = "latest",
        state_overrides: dict[str, Any] | None = None,
    ) -> bytes:
        params: list[Any] = [
            {"to": to, "data": "0x" + data.hex()},
            block_tag,
        ]
        if state_overrides is not None:
            params.append(state_overrides)
        result = await self.transport.request("eth_call", params)
        return bytes.fromhex(result[2:])

    async def get_code(self, address: Address, block_tag: str = "latest") -> bytes:
        result = await self.transport.request(
            "eth_getCode", [address, block_tag])
        return bytes.fromhex(result[2:])

    async def gas_price(self) -> int:
        result = await self.transport.request("eth_gasPrice")
        return verify_and_get_uint("gasPrice", result)

    async def max_priority_fee_per_gas(self) -> int:
        result = await self.transport.request("eth_maxPriorityFeePerGas")
        return verify_and_get_uint("maxPriorityFeePerGas", result)

    async def get_block(self, block_tag: str = "latest") -> dict[str, Any]:
        return await self.transport.request(
            "eth_getBlockByNumber", [block_tag, False])

    async def get_base_fee_per_gas(self, block_tag: str = "latest") -> int:
        block = await self.get_block(block_tag)
        if "baseFeePerGas" in block and block["baseFeePerGas"] is not None:
            return int(block["baseFeePerGas"], 16)
        else:  # for block requested before the EIP-1559 upgrade
            return 0
