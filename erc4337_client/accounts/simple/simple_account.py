from erc4337_client.entrypoint import EntryPoint, EntryPointVersion
from erc4337_client.exceptions import \
    ValidationException, ValidationExceptionCode
from erc4337_client.rpc.public_client import PublicClient
from erc4337_client.typing import Address
from erc4337_client.utils.encode import encode_function_call
from ..owner import LocalOwner
from ..smart_account import Call, DUMMY_ECDSA_SIGNATURE, SmartAccount

SIMPLE_ACCOUNT_FACTORY_V06 = Address(
    "0x9406Cc6185a346906296840746125a0E44976454")
SIMPLE_ACCOUNT_FACTORY_V07 = Address(
    "0x91E60e0613810449d098b0b5Ec8b51A0FE8c8985")


class SimpleAccount(SmartAccount):
    owner: LocalOwner
    factory_address: Address
    index: int

    def __init__(
        self,
        public_client: PublicClient,
        entrypoint: EntryPoint,
        owner: LocalOwner,
        index: int = 0,
        factory_address: Address | None = None,
        address: Address | None = None,
        nonce_key: int = 0,
    ):
        super().__init__(public_client, entrypoint, owner, address, nonce_key)
        self.index = index
        if factory_address is not None:
            self.factory_address = factory_address
        elif entrypoint.version == EntryPointVersion.V06:
            self.factory_address = SIMPLE_ACCOUNT_FACTORY_V06
        else:
            self.factory_address = SIMPLE_ACCOUNT_FACTORY_V07

    def get_factory_args(self) -> tuple[Address, bytes]:
        factory_data = encode_function_call(
            "createAccount(address,uint256)",
            ["address", "uint256"],
            [self.owner.address, self.index],
        )
        return self.factory_address, factory_data

    def encode_calls(self, calls: list[Call]) -> bytes:
        if len(calls) == 0:
            raise ValidationException(
                ValidationExceptionCode.InvalidFields,
                "At least one call is required",
            )
        if len(calls) == 1:
            call = calls[0]
            return encode_function_call(
                "execute(address,uint256,bytes)",
                ["address", "uint256", "bytes"],
                [call.to, call.value, call.data],
            )

        if self.entrypoint.version == EntryPointVersion.V06:
            if any(call.value != 0 for call in calls):
                raise ValidationException(
                    ValidationExceptionCode.InvalidFields,
                    "SimpleAccount v0.6 can't transfer value in a batch",
                )
            return encode_function_call(
                "executeBatch(address[],bytes[])",
                ["address[]", "bytes[]"],
                [[call.to for call in calls], [call.data for call in calls]],
            )
        return encode_function_call(
            "executeBatch(address[],uint256[],bytes[])",
            ["address[]", "uint256[]", "bytes[]"],
            [
                [call.to for call in calls],
                [call.value for call in calls],
                [call.data for call in calls],
            ],
        )

    def get_stub_signature(self) -> bytes:
        return DUMMY_ECDSA_SIGNATURE
