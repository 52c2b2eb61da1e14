from dataclasses import dataclass

from eth_abi import encode

from erc4337_client.entrypoint import EntryPoint, EntryPointVersion
from erc4337_client.exceptions import \
    ConfigurationException, ConfigurationExceptionCode, \
    ValidationException, ValidationExceptionCode
from erc4337_client.rpc.public_client import PublicClient
from erc4337_client.typing import Address, ZERO_ADDRESS
from erc4337_client.utils.encode import MAX_UINT16, encode_function_call
from ..owner import Owner, WebAuthnOwner
from ..smart_account import Call, DUMMY_ECDSA_SIGNATURE, SmartAccount

KERNEL_V2_VERSIONS = ("0.2.1", "0.2.2", "0.2.3", "0.2.4")
KERNEL_V3_VERSIONS = ("0.3.0-beta", "0.3.1")

# kernel v2 signatures are prefixed with the validation mode
ROOT_MODE_KERNEL_V2 = bytes.fromhex("00000000")

VALIDATOR_MODE_DEFAULT = bytes.fromhex("00")
VALIDATOR_TYPE_ROOT = bytes.fromhex("00")
VALIDATOR_TYPE_VALIDATOR = bytes.fromhex("01")

CALL_TYPE_SINGLE = bytes.fromhex("00")
CALL_TYPE_BATCH = bytes.fromhex("01")
EXEC_TYPE_DEFAULT = bytes.fromhex("00")

WEB_AUTHN_VALIDATOR = Address("0xbA45a2BFb8De3D24cA9D7F1B551E14dFF5d690Fd")

WEB_AUTHN_STUB_SIGNATURE = encode(
    ["bytes", "string", "uint256", "uint256", "uint256", "bool"],
    [
        bytes.fromhex(
            "49960de5880e8c687434170f6476605b8fe4aeb9a28632c7995cf3ba831d9763"
            "1d00000000"
        ),
        '{"type":"webauthn.get","challenge":'
        '"tbxXNFS9X_4Byr1cMwqKrIGB-_30a0QhZ6y7ucM0BOE",'
        '"origin":"http://localhost:3000","crossOrigin":false, '
        '"other_keys_can_be_added_here":"do not compare clientDataJSON '
        'against a template. See https://goo.gl/yabPex"}',
        1,
        44941127272049826721201904734628716258498742255959991581049806490182030242267,
        9910254599581058084911561569808925251374718953855182016200087235935345969636,
        False,
    ],
)


@dataclass(frozen=True)
class KernelAddresses:
    ecdsa_validator: Address
    account_logic: Address
    factory: Address
    meta_factory: Address | None = None
    web_authn_validator: Address | None = None


KERNEL_VERSION_TO_ADDRESSES: dict[str, KernelAddresses] = {
    "0.2.1": KernelAddresses(
        ecdsa_validator=Address("0xd9AB5096a832b9ce79914329DAEE236f8Eea0390"),
        account_logic=Address("0xf048AD83CB2dfd6037A43902a2A5Be04e53cd2Eb"),
        factory=Address("0x5de4839a76cf55d0c90e2061ef4386d962E15ae3"),
    ),
    "0.2.2": KernelAddresses(
        ecdsa_validator=Address("0xd9AB5096a832b9ce79914329DAEE236f8Eea0390"),
        account_logic=Address("0x0DA6a956B9488eD4dd761E59f52FDc6c8068E6B5"),
        factory=Address("0x5de4839a76cf55d0c90e2061ef4386d962E15ae3"),
    ),
    "0.2.3": KernelAddresses(
        ecdsa_validator=Address("0xd9AB5096a832b9ce79914329DAEE236f8Eea0390"),
        account_logic=Address("0xD3F582F6B4814E989Ee8E96bc3175320B5A540ab"),
        factory=Address("0x5de4839a76cf55d0c90e2061ef4386d962E15ae3"),
    ),
    "0.2.4": KernelAddresses(
        ecdsa_validator=Address("0xd9AB5096a832b9ce79914329DAEE236f8Eea0390"),
        account_logic=Address("0xd3082872F8B06073A021b4602e022d5A070d7cfC"),
        factory=Address("0x5de4839a76cf55d0c90e2061ef4386d962E15ae3"),
    ),
    "0.3.0-beta": KernelAddresses(
        ecdsa_validator=Address("0x8104e3Ad430EA6d354d013A6789fDFc71E671c43"),
        account_logic=Address("0x94F097E1ebEB4ecA3AAE54cabb08905B239A7D27"),
        factory=Address("0x6723b44Abeec4E71eBE3232BD5B455805baDD22f"),
        meta_factory=Address("0xd703aaE79538628d27099B8c4f621bE4CCd142d5"),
        web_authn_validator=WEB_AUTHN_VALIDATOR,
    ),
    "0.3.1": KernelAddresses(
        ecdsa_validator=Address("0x845ADb2C711129d4f3966735eD98a9F09fC4cE57"),
        account_logic=Address("0xBAC849bB641841b44E965fB01A4Bf5F074f84b4D"),
        factory=Address("0xaac5D4240AF87249B3f71BC8E4A2cae074A3E419"),
        meta_factory=Address("0xd703aaE79538628d27099B8c4f621bE4CCd142d5"),
        web_authn_validator=WEB_AUTHN_VALIDATOR,
    ),
}


def get_root_identifier(validator_address: Address) -> bytes:
    return VALIDATOR_TYPE_VALIDATOR + bytes.fromhex(validator_address[2:])


def get_nonce_key_with_encoding(
    kernel_version: str, validator_address: Address, nonce_key: int = 0
) -> int:
    if kernel_version in KERNEL_V2_VERSIONS:
        return nonce_key

    if nonce_key < 0 or nonce_key > MAX_UINT16:
        raise ValidationException(
            ValidationExceptionCode.InvalidFields,
            "nonce key must be equal or less than 2 bytes(maxUint16) "
            f"for Kernel version {kernel_version}",
        )
    encoding = (
        VALIDATOR_MODE_DEFAULT +
        VALIDATOR_TYPE_ROOT +
        bytes.fromhex(validator_address[2:]) +
        nonce_key.to_bytes(2)
    )
    return int.from_bytes(encoding)


def get_exec_mode(call_type: bytes, exec_type: bytes = EXEC_TYPE_DEFAULT) -> bytes:
    # callType(1) execType(1) unused(4) modeSelector(4) modePayload(22)
    return call_type + exec_type + bytes(30)


class KernelAccount(SmartAccount):
    kernel_version: str
    index: int
    validator_address: Address
    account_logic_address: Address
    factory_address: Address
    meta_factory_address: Address | None
    use_meta_factory: bool

    def __init__(
        self,
        public_client: PublicClient,
        entrypoint: EntryPoint,
        owner: Owner,
        kernel_version: str | None = None,
        index: int = 0,
        validator_address: Address | None = None,
        account_logic_address: Address | None = None,
        factory_address: Address | None = None,
        meta_factory_address: Address | None = None,
        use_meta_factory: bool = True,
        address: Address | None = None,
        nonce_key: int = 0,
    ):
        super().__init__(public_client, entrypoint, owner, address, nonce_key)
        if kernel_version is None:
            kernel_version = "0.2.2" \
                if entrypoint.version == EntryPointVersion.V06 else "0.3.0-beta"
        supported_versions = KERNEL_V2_VERSIONS \
            if entrypoint.version == EntryPointVersion.V06 \
            else KERNEL_V3_VERSIONS
        if kernel_version not in supported_versions:
            raise ConfigurationException(
                ConfigurationExceptionCode.InvalidAccountVersion,
                f"Kernel version {kernel_version} is not supported "
                f"on entrypoint v{entrypoint.version}",
            )
        self.kernel_version = kernel_version
        self.index = index

        addresses = KERNEL_VERSION_TO_ADDRESSES[kernel_version]
        is_web_authn = isinstance(owner, WebAuthnOwner)
        if validator_address is None:
            validator_address = addresses.web_authn_validator \
                if is_web_authn else addresses.ecdsa_validator
        if validator_address is None:
            raise ConfigurationException(
                ConfigurationExceptionCode.InvalidAccountVersion,
                f"Kernel version {kernel_version} has no webauthn validator",
            )
        self.validator_address = validator_address
        self.account_logic_address = account_logic_address \
            or addresses.account_logic
        self.factory_address = factory_address or addresses.factory
        self.meta_factory_address = meta_factory_address \
            or addresses.meta_factory
        self.use_meta_factory = (
            use_meta_factory and self.meta_factory_address is not None)

    def is_kernel_v2(self) -> bool:
        return self.kernel_version in KERNEL_V2_VERSIONS

    def get_nonce_key(self) -> int:
        return get_nonce_key_with_encoding(
            self.kernel_version, self.validator_address, self.nonce_key)

    def get_initialization_data(self) -> bytes:
        validator_data = self.owner.get_validator_data()
        if self.is_kernel_v2():
            return encode_function_call(
                "initialize(address,bytes)",
                ["address", "bytes"],
                [self.validator_address, validator_data],
            )
        root_identifier = get_root_identifier(self.validator_address)
        if self.kernel_version == "0.3.0-beta":
            return encode_function_call(
                "initialize(bytes21,address,bytes,bytes)",
                ["bytes21", "address", "bytes", "bytes"],
                [root_identifier, ZERO_ADDRESS, validator_data, bytes(0)],
            )
        return encode_function_call(
            "initialize(bytes21,address,bytes,bytes,bytes[])",
            ["bytes21", "address", "bytes", "bytes", "bytes[]"],
            [root_identifier, ZERO_ADDRESS, validator_data, bytes(0), []],
        )

    def get_factory_args(self) -> tuple[Address, bytes]:
        initialization_data = self.get_initialization_data()
        if self.is_kernel_v2():
            return self.factory_address, encode_function_call(
                "createAccount(address,bytes,uint256)",
                ["address", "bytes", "uint256"],
                [self.account_logic_address, initialization_data, self.index],
            )

        salt = self.index.to_bytes(32)
        if not self.use_meta_factory:
            return self.factory_address, encode_function_call(
                "createAccount(bytes,bytes32)",
                ["bytes", "bytes32"],
                [initialization_data, salt],
            )
        return self.meta_factory_address, encode_function_call(  # type: ignore
            "deployWithFactory(address,bytes,bytes32)",
            ["address", "bytes", "bytes32"],
            [self.factory_address, initialization_data, salt],
        )

    def encode_calls(self, calls: list[Call]) -> bytes:
        if len(calls) == 0:
            raise ValidationException(
                ValidationExceptionCode.InvalidFields,
                "At least one call is required",
            )
        if self.is_kernel_v2():
            if len(calls) == 1:
                call = calls[0]
                return encode_function_call(
                    "execute(address,uint256,bytes,uint8)",
                    ["address", "uint256", "bytes", "uint8"],
                    [call.to, call.value, call.data, 0],
                )
            return encode_function_call(
                "executeBatch((address,uint256,bytes)[])",
                ["(address,uint256,bytes)[]"],
                [[(call.to, call.value, call.data) for call in calls]],
            )

        if len(calls) == 1:
            call = calls[0]
            execution_calldata = (
                bytes.fromhex(call.to[2:]) +
                call.value.to_bytes(32) +
                call.data
            )
            exec_mode = get_exec_mode(CALL_TYPE_SINGLE)
        else:
            execution_calldata = encode(
                ["(address,uint256,bytes)[]"],
                [[(call.to, call.value, call.data) for call in calls]],
            )
            exec_mode = get_exec_mode(CALL_TYPE_BATCH)
        return encode_function_call(
            "execute(bytes32,bytes)",
            ["bytes32", "bytes"],
            [exec_mode, execution_calldata],
        )

    def get_stub_signature(self) -> bytes:
        if self.is_kernel_v2():
            return ROOT_MODE_KERNEL_V2 + DUMMY_ECDSA_SIGNATURE
        if isinstance(self.owner, WebAuthnOwner):
            return WEB_AUTHN_STUB_SIGNATURE
        return DUMMY_ECDSA_SIGNATURE

    def frame_signature(self, signature: bytes) -> bytes:
        # v2 always signs in sudo mode
        if self.is_kernel_v2():
            return ROOT_MODE_KERNEL_V2 + signature
        return signature
