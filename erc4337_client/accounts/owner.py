from abc import ABC, abstractmethod
from typing import Awaitable, Callable

from eth_abi import encode
from eth_account import Account, messages
from eth_utils import keccak

from erc4337_client.typing import Address


class Owner(ABC):
    @abstractmethod
    async def sign_user_operation_hash(self, user_operation_hash: str) -> bytes:
        pass

    @abstractmethod
    def get_validator_data(self) -> bytes:
        """What a validator module stores to recognise this owner."""
        pass


class LocalOwner(Owner):
    address: Address
    private_key: str

    def __init__(self, private_key: str):
        account = Account.from_key(private_key)
        self.address = Address(account.address)
        self.private_key = private_key

    async def sign_user_operation_hash(self, user_operation_hash: str) -> bytes:
        # eip-191 personal message over the raw 32 bytes of the hash
        message = messages.encode_defunct(
            primitive=bytes.fromhex(user_operation_hash[2:]))
        signed_message = Account.sign_message(
            message, private_key=self.private_key)
        return bytes(signed_message.signature)

    def get_validator_data(self) -> bytes:
        return bytes.fromhex(self.address[2:])


class WebAuthnOwner(Owner):
    """
    A passkey. Signing is delegated to the authenticator through sign,
    which receives the hash and returns the abi encoded assertion.
    """
    public_key_x: int
    public_key_y: int
    credential_id: bytes
    sign: Callable[[str], Awaitable[bytes]]

    def __init__(
        self,
        public_key_x: int,
        public_key_y: int,
        credential_id: bytes,
        sign: Callable[[str], Awaitable[bytes]],
    ):
        self.public_key_x = public_key_x
        self.public_key_y = public_key_y
        self.credential_id = credential_id
        self.sign = sign

    async def sign_user_operation_hash(self, user_operation_hash: str) -> bytes:
        return await self.sign(user_operation_hash)

    def get_validator_data(self) -> bytes:
        return encode(
            ["(uint256,uint256)", "bytes32"],
            [
                (self.public_key_x, self.public_key_y),
                keccak(self.credential_id),
            ],
        )
