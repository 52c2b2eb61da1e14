import pytest
from eth_utils import keccak

from erc4337_client.exceptions import ValidationException
from erc4337_client.user_operation.v6.user_operation_v6 import \
    UserOperationV6, pack_user_operation

from utils import FACTORY_ADDRESS, PAYMASTER_ADDRESS, SENDER_ADDRESS, \
    user_operation_v6, user_operation_v6_json


def test_from_json():
    user_operation = UserOperationV6.from_json(user_operation_v6_json())

    assert user_operation.sender_address == SENDER_ADDRESS
    assert user_operation.nonce == 1
    assert user_operation.init_code == b""
    assert user_operation.call_data == bytes.fromhex("b61d27f6")
    assert user_operation.call_gas_limit == 0x5208
    assert user_operation.paymaster_and_data == b""
    assert user_operation.get_user_operation_json() == user_operation_v6_json()


def test_from_json_missing_field():
    user_operation_json = user_operation_v6_json()
    del user_operation_json["initCode"]

    with pytest.raises(ValidationException) as excinfo:
        UserOperationV6.from_json(user_operation_json)
    assert "initCode" in excinfo.value.message


def test_from_json_unknown_field():
    user_operation_json = user_operation_v6_json()
    user_operation_json["factory"] = FACTORY_ADDRESS

    with pytest.raises(ValidationException):
        UserOperationV6.from_json(user_operation_json)


@pytest.mark.parametrize(
    "field, value",
    [
        ("sender", "0x1234"),
        ("nonce", "12"),
        ("nonce", "0xzz"),
        ("callData", "b61d27f6"),
        ("signature", "0x123"),
    ],
)
def test_from_json_invalid_value(field, value):
    user_operation_json = user_operation_v6_json()
    user_operation_json[field] = value

    with pytest.raises(ValidationException):
        UserOperationV6.from_json(user_operation_json)


def test_json_omits_unset_fields():
    user_operation = UserOperationV6(sender_address=SENDER_ADDRESS, nonce=0)

    assert user_operation.get_user_operation_json() == {
        "sender": SENDER_ADDRESS,
        "nonce": "0x0",
    }


def test_incomplete_user_operation():
    user_operation = user_operation_v6(call_gas_limit=None, signature=None)

    assert user_operation.get_missing_fields() == [
        "call_gas_limit", "signature"]
    with pytest.raises(ValidationException):
        user_operation.to_list()


def test_pack_for_signature():
    user_operation = user_operation_v6()
    user_operation_list = user_operation.to_list()

    packed = pack_user_operation(user_operation_list)

    # ten static words, no signature
    assert len(packed) == 10 * 32
    assert packed[2 * 32:3 * 32] == keccak(b"")
    assert packed[3 * 32:4 * 32] == keccak(bytes.fromhex("b61d27f6"))
    # the list passed in is left untouched
    assert user_operation_list[3] == bytes.fromhex("b61d27f6")


def test_pack_for_signature_ignores_signature():
    unsigned = pack_user_operation(user_operation_v6().to_list())
    signed = pack_user_operation(
        user_operation_v6(signature=b"\x01" * 65).to_list())

    assert unsigned == signed


def test_required_prefund():
    user_operation = user_operation_v6(
        call_gas_limit=100,
        verification_gas_limit=200,
        pre_verification_gas=50,
        max_fee_per_gas=10,
    )
    sponsored = user_operation.copy(
        paymaster_and_data=bytes.fromhex(PAYMASTER_ADDRESS[2:]))

    assert user_operation.get_required_prefund() == (100 + 200 + 50) * 10
    assert sponsored.get_required_prefund() == (100 + 200 * 3 + 50) * 10


def test_factory_and_paymaster_address():
    user_operation = user_operation_v6(
        init_code=bytes.fromhex(FACTORY_ADDRESS[2:]) + b"\x01\x02",
        paymaster_and_data=bytes.fromhex(PAYMASTER_ADDRESS[2:]),
    )

    assert user_operation.get_factory_address() == FACTORY_ADDRESS
    assert user_operation.get_paymaster_address() == PAYMASTER_ADDRESS
    assert user_operation_v6().get_factory_address() is None
    assert not user_operation_v6().has_paymaster()
