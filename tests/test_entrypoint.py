import pytest

from erc4337_client.entrypoint import ENTRYPOINT_ADDRESS_V06, \
    ENTRYPOINT_ADDRESS_V07, ENTRYPOINT_V06, ENTRYPOINT_V07, EntryPoint, \
    EntryPointVersion, get_entrypoint_version, is_user_operation_version06, \
    is_user_operation_version07, to_entrypoint
from erc4337_client.exceptions import ConfigurationException, \
    ConfigurationExceptionCode

from utils import user_operation_v6, user_operation_v7

CUSTOM_ENTRYPOINT = "0x6666666666666666666666666666666666666666"


@pytest.mark.parametrize(
    "entrypoint, version",
    [
        (ENTRYPOINT_ADDRESS_V06, EntryPointVersion.V06),
        (ENTRYPOINT_ADDRESS_V06.lower(), EntryPointVersion.V06),
        (ENTRYPOINT_ADDRESS_V07, EntryPointVersion.V07),
        ("0.6", EntryPointVersion.V06),
        ("0.7", EntryPointVersion.V07),
        (EntryPoint(CUSTOM_ENTRYPOINT, EntryPointVersion.V06),
         EntryPointVersion.V06),
    ],
)
def test_get_entrypoint_version(entrypoint, version):
    assert get_entrypoint_version(entrypoint) == version


def test_unknown_entrypoint():
    with pytest.raises(ConfigurationException) as excinfo:
        get_entrypoint_version(CUSTOM_ENTRYPOINT)
    assert excinfo.value.exception_code == \
        ConfigurationExceptionCode.UnknownEntryPoint


def test_to_entrypoint():
    assert to_entrypoint() == ENTRYPOINT_V07
    assert to_entrypoint("0.6") == ENTRYPOINT_V06
    assert to_entrypoint(ENTRYPOINT_ADDRESS_V06.lower()) == ENTRYPOINT_V06
    custom = EntryPoint(CUSTOM_ENTRYPOINT, EntryPointVersion.V07)
    assert to_entrypoint(custom) is custom


def test_user_operation_version():
    assert is_user_operation_version06(ENTRYPOINT_V06, user_operation_v6())
    assert not is_user_operation_version06(ENTRYPOINT_V07, user_operation_v6())
    assert is_user_operation_version07(
        ENTRYPOINT_ADDRESS_V07, user_operation_v7())
    assert not is_user_operation_version07(ENTRYPOINT_V07, user_operation_v6())
