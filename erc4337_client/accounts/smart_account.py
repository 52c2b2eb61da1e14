from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any

from erc4337_client.actions.public import \
    get_account_nonce, get_sender_address, is_deployed
from erc4337_client.entrypoint import EntryPoint, EntryPointVersion
from erc4337_client.rpc.public_client import PublicClient
from erc4337_client.typing import Address
from erc4337_client.user_operation.user_operation import UserOperation
from erc4337_client.user_operation.user_operation_hash import \
    get_user_operation_hash
from erc4337_client.user_operation.v6.user_operation_v6 import UserOperationV6
from erc4337_client.user_operation.v7.user_operation_v7 import UserOperationV7
from .owner import Owner

# ecdsa signature shaped blob that recovers to an address, used for estimation
DUMMY_ECDSA_SIGNATURE = bytes.fromhex(
    "fffffffffffffffffffffffffffffff0000000000000000000000000000000007"
    "aaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaa1c"
)


@dataclass
class Call:
    to: Address
    value: int = 0
    data: bytes = bytes(0)


class SmartAccount(ABC):
    public_client: PublicClient
    entrypoint: EntryPoint
    owner: Owner
    address: Address | None
    nonce_key: int

    def __init__(
        self,
        public_client: PublicClient,
        entrypoint: EntryPoint,
        owner: Owner,
        address: Address | None = None,
        nonce_key: int = 0,
    ):
        self.public_client = public_client
        self.entrypoint = entrypoint
        self.owner = owner
        self.address = address
        self.nonce_key = nonce_key

    @abstractmethod
    def get_factory_args(self) -> tuple[Address, bytes]:
        pass

    @abstractmethod
    def encode_calls(self, calls: list[Call]) -> bytes:
        pass

    @abstractmethod
    def get_stub_signature(self) -> bytes:
        pass

    def frame_signature(self, signature: bytes) -> bytes:
        return signature

    def get_nonce_key(self) -> int:
        return self.nonce_key

    def new_user_operation(self, **fields: Any) -> UserOperation:
        if self.entrypoint.version == EntryPointVersion.V06:
            return UserOperationV6(**fields)
        return UserOperationV7(**fields)

    async def get_address(self) -> Address:
        if self.address is None:
            factory, factory_data = self.get_factory_args()
            self.address = await get_sender_address(
                self.public_client,
                self.entrypoint,
                factory=factory,
                factory_data=factory_data,
            )
        return self.address

    async def get_nonce(self) -> int:
        return await get_account_nonce(
            self.public_client,
            await self.get_address(),
            self.entrypoint,
            self.get_nonce_key(),
        )

    async def is_deployed(self) -> bool:
        return await is_deployed(self.public_client, await self.get_address())

    async def get_init_fields(self) -> dict[str, Any]:
        """initCode for v0.6 or factory fields for v0.7, empty once deployed"""
        deployed = await self.is_deployed()
        if self.entrypoint.version == EntryPointVersion.V06:
            if deployed:
                return {"init_code": bytes(0)}
            factory, factory_data = self.get_factory_args()
            return {"init_code": bytes.fromhex(factory[2:]) + factory_data}
        if deployed:
            return {}
        factory, factory_data = self.get_factory_args()
        return {"factory": factory, "factory_data": factory_data}

    async def sign_user_operation(
        self, user_operation: UserOperation, chain_id: int
    ) -> bytes:
        if user_operation.signature is None:
            user_operation = user_operation.copy(signature=bytes(0))
        user_operation.verify_complete()
        user_operation_hash = get_user_operation_hash(
            user_operation, self.entrypoint, chain_id)
        signature = await self.owner.sign_user_operation_hash(
            user_operation_hash)
        return self.frame_signature(signature)
