import pytest
from eth_abi import encode
from eth_utils import keccak

from erc4337_client.entrypoint import ENTRYPOINT_ADDRESS_V06, \
    ENTRYPOINT_ADDRESS_V07, ENTRYPOINT_V06, ENTRYPOINT_V07, EntryPoint, \
    EntryPointVersion
from erc4337_client.exceptions import ConfigurationException, \
    ConfigurationExceptionCode
from erc4337_client.user_operation.user_operation import is_user_operation_hash
from erc4337_client.user_operation.user_operation_hash import \
    get_user_operation_hash

from utils import FACTORY_ADDRESS, PAYMASTER_ADDRESS, SENDER_ADDRESS, \
    user_operation_v6 as make_v6, user_operation_v7 as make_v7


def expected_hash(
    types: list[str], values: list, entrypoint: str, chain_id: int
) -> str:
    return "0x" + keccak(encode(
        ["bytes32", "address", "uint256"],
        [keccak(encode(types, values)), entrypoint, chain_id],
    )).hex()


def test_hash_v6():
    init_code = bytes.fromhex(FACTORY_ADDRESS[2:] + "0102")
    paymaster_and_data = bytes.fromhex(PAYMASTER_ADDRESS[2:] + "03")
    user_operation = make_v6(
        init_code=init_code,
        paymaster_and_data=paymaster_and_data,
        signature=b"\x01" * 65,
    )

    user_operation_hash = get_user_operation_hash(
        user_operation, ENTRYPOINT_V06, 1)

    assert is_user_operation_hash(user_operation_hash)
    assert user_operation_hash == expected_hash(
        [
            "address", "uint256", "bytes32", "bytes32", "uint256",
            "uint256", "uint256", "uint256", "uint256", "bytes32",
        ],
        [
            SENDER_ADDRESS,
            1,
            keccak(init_code),
            keccak(bytes.fromhex("b61d27f6")),
            0x5208,
            0x186a0,
            0xc350,
            0x3b9aca00,
            0x3b9aca00,
            keccak(paymaster_and_data),
        ],
        ENTRYPOINT_ADDRESS_V06,
        1,
    )


def test_hash_v7():
    user_operation = make_v7(
        factory=FACTORY_ADDRESS,
        factory_data=b"\x01\x02",
        call_gas_limit=2000,
        verification_gas_limit=1000,
        max_fee_per_gas=2000,
        max_priority_fee_per_gas=1000,
        paymaster=PAYMASTER_ADDRESS,
        paymaster_verification_gas_limit=1000,
        paymaster_post_op_gas_limit=2000,
        paymaster_data=bytes.fromhex("abcdef"),
    )
    gas_word = bytes.fromhex(
        "000000000000000000000000000003e8000000000000000000000000000007d0")

    user_operation_hash = get_user_operation_hash(
        user_operation, ENTRYPOINT_V07, 137)

    assert user_operation_hash == expected_hash(
        [
            "address", "uint256", "bytes32", "bytes32", "bytes32",
            "uint256", "bytes32", "bytes32",
        ],
        [
            SENDER_ADDRESS,
            1,
            keccak(bytes.fromhex(FACTORY_ADDRESS[2:] + "0102")),
            keccak(bytes.fromhex("b61d27f6")),
            gas_word,
            0xc350,
            gas_word,
            keccak(
                bytes.fromhex(PAYMASTER_ADDRESS[2:]) + gas_word +
                bytes.fromhex("abcdef")
            ),
        ],
        ENTRYPOINT_ADDRESS_V07,
        137,
    )


@pytest.mark.parametrize(
    "make_user_operation, entrypoint",
    [(make_v6, ENTRYPOINT_V06), (make_v7, ENTRYPOINT_V07)],
)
def test_hash_is_deterministic(make_user_operation, entrypoint):
    assert get_user_operation_hash(make_user_operation(), entrypoint, 1) == \
        get_user_operation_hash(make_user_operation(), entrypoint, 1)


@pytest.mark.parametrize(
    "make_user_operation, entrypoint",
    [(make_v6, ENTRYPOINT_V06), (make_v7, ENTRYPOINT_V07)],
)
def test_hash_ignores_signature(make_user_operation, entrypoint):
    unsigned = make_user_operation(signature=None)
    signed = make_user_operation(signature=b"\x01" * 65)

    assert get_user_operation_hash(unsigned, entrypoint, 1) == \
        get_user_operation_hash(signed, entrypoint, 1)


@pytest.mark.parametrize(
    "make_user_operation, entrypoint",
    [(make_v6, ENTRYPOINT_V06), (make_v7, ENTRYPOINT_V07)],
)
def test_hash_depends_on_chain_entrypoint_and_fields(
    make_user_operation, entrypoint
):
    user_operation_hash = get_user_operation_hash(
        make_user_operation(), entrypoint, 1)
    other_entrypoint = EntryPoint(
        "0x6666666666666666666666666666666666666666", entrypoint.version)

    assert get_user_operation_hash(
        make_user_operation(), entrypoint, 137) != user_operation_hash
    assert get_user_operation_hash(
        make_user_operation(), other_entrypoint, 1) != user_operation_hash
    assert get_user_operation_hash(
        make_user_operation(nonce=2), entrypoint, 1) != user_operation_hash
    assert get_user_operation_hash(
        make_user_operation(call_data=b"\x00"), entrypoint, 1
    ) != user_operation_hash


def test_hash_accepts_known_entrypoint_address():
    assert get_user_operation_hash(make_v7(), ENTRYPOINT_ADDRESS_V07, 1) == \
        get_user_operation_hash(make_v7(), ENTRYPOINT_V07, 1)


def test_hash_version_mismatch():
    with pytest.raises(ConfigurationException) as excinfo:
        get_user_operation_hash(make_v6(), ENTRYPOINT_V07, 1)
    assert excinfo.value.exception_code == \
        ConfigurationExceptionCode.UnsupportedEntryPointVersion

    with pytest.raises(ConfigurationException):
        get_user_operation_hash(
            make_v7(),
            EntryPoint(ENTRYPOINT_ADDRESS_V07, EntryPointVersion.V06),
            1,
        )
