from dataclasses import dataclass
from enum import Enum

from eth_utils import to_checksum_address

from erc4337_client.exceptions import \
    ConfigurationException, ConfigurationExceptionCode
from erc4337_client.typing import Address

ENTRYPOINT_ADDRESS_V06 = Address("0x5FF137D4b0FDCD49DcA30c7CF57E578a026d2789")
ENTRYPOINT_ADDRESS_V07 = Address("0x0000000071727De22E5E9d8BAf0edAc6f37da032")


class EntryPointVersion(Enum):
    V06 = "0.6"
    V07 = "0.7"

    def __str__(self):
        return self.value


KNOWN_ENTRYPOINTS: dict[str, EntryPointVersion] = {
    ENTRYPOINT_ADDRESS_V06.lower(): EntryPointVersion.V06,
    ENTRYPOINT_ADDRESS_V07.lower(): EntryPointVersion.V07,
}


@dataclass(frozen=True)
class EntryPoint:
    address: Address
    version: EntryPointVersion


ENTRYPOINT_V06 = EntryPoint(ENTRYPOINT_ADDRESS_V06, EntryPointVersion.V06)
ENTRYPOINT_V07 = EntryPoint(ENTRYPOINT_ADDRESS_V07, EntryPointVersion.V07)


def get_entrypoint_version(
    entrypoint: EntryPoint | Address | str
) -> EntryPointVersion:
    """
    Resolve the protocol generation of an entrypoint.

    A custom deployment has to be passed as an EntryPoint with an explicit
    version, a bare address is only resolved against the known deployments.
    """
    if isinstance(entrypoint, EntryPoint):
        return entrypoint.version
    if isinstance(entrypoint, str):
        if entrypoint in ("0.6", "0.7"):
            return EntryPointVersion(entrypoint)
        version = KNOWN_ENTRYPOINTS.get(entrypoint.lower())
        if version is not None:
            return version
    raise ConfigurationException(
        ConfigurationExceptionCode.UnknownEntryPoint,
        f"Unknown entrypoint {entrypoint}, "
        "pass an EntryPoint with an explicit version for custom deployments",
    )


def to_entrypoint(
    entrypoint: EntryPoint | Address | str | None = None
) -> EntryPoint:
    if entrypoint is None:
        return ENTRYPOINT_V07
    if isinstance(entrypoint, EntryPoint):
        return entrypoint
    version = get_entrypoint_version(entrypoint)
    if entrypoint in ("0.6", "0.7"):
        return ENTRYPOINT_V06 if version == EntryPointVersion.V06 \
            else ENTRYPOINT_V07
    return EntryPoint(Address(to_checksum_address(entrypoint)), version)


def is_user_operation_version06(entrypoint, user_operation) -> bool:
    return (
        get_entrypoint_version(entrypoint) == EntryPointVersion.V06 and
        user_operation.entrypoint_version == EntryPointVersion.V06
    )


def is_user_operation_version07(entrypoint, user_operation) -> bool:
    return (
        get_entrypoint_version(entrypoint) == EntryPointVersion.V07 and
        user_operation.entrypoint_version == EntryPointVersion.V07
    )


def get_matching_entrypoint(entrypoint, user_operation) -> EntryPoint:
    entrypoint = to_entrypoint(entrypoint)
    if entrypoint.version != user_operation.entrypoint_version:
        raise ConfigurationException(
            ConfigurationExceptionCode.UnsupportedEntryPointVersion,
            f"UserOperation v{user_operation.entrypoint_version} "
            f"doesn't match entrypoint v{entrypoint.version}",
        )
    return entrypoint
