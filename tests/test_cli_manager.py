import json

import pytest
from eth_account import Account

from erc4337_client.cli_manager import AccountType, Command, parse_args
from erc4337_client.entrypoint import ENTRYPOINT_V06, ENTRYPOINT_V07, \
    EntryPointVersion

from utils import OWNER_ADDRESS, OWNER_PRIVATE_KEY, USER_OPERATION_HASH, \
    user_operation_v7_json

CUSTOM_ENTRYPOINT = "0x6666666666666666666666666666666666666666"


def test_defaults(monkeypatch):
    monkeypatch.delenv("ERC4337_BUNDLER_URL", raising=False)
    monkeypatch.delenv("ERC4337_ENTRYPOINT", raising=False)

    init_data = parse_args(["chain-id"])

    assert init_data.command == Command.chain_id
    assert init_data.bundler_url == "http://0.0.0.0:3000/rpc"
    assert init_data.entrypoint == ENTRYPOINT_V07
    assert init_data.account_type == AccountType.simple
    assert init_data.polling_interval == 1
    assert init_data.timeout is None
    assert init_data.owner_private_key is None


def test_environment_variables(monkeypatch):
    monkeypatch.setenv("ERC4337_BUNDLER_URL", "http://bundler:4337")
    monkeypatch.setenv("ERC4337_ENTRYPOINT", ENTRYPOINT_V06.address.lower())
    monkeypatch.setenv("ERC4337_TIMEOUT", "30")

    init_data = parse_args(["supported-entrypoints"])

    assert init_data.bundler_url == "http://bundler:4337"
    assert init_data.entrypoint == ENTRYPOINT_V06
    assert init_data.timeout == 30


def test_receipt():
    init_data = parse_args([
        "receipt", USER_OPERATION_HASH,
        "--wait",
        "--polling_interval", "0.5",
        "--timeout", "10",
    ])

    assert init_data.command == Command.receipt
    assert init_data.user_operation_hash == USER_OPERATION_HASH
    assert init_data.wait is True
    assert init_data.polling_interval == 0.5
    assert init_data.timeout == 10


@pytest.mark.parametrize(
    "cmd_args",
    [
        ["receipt"],
        ["status"],
        ["hash"],
        ["account-address", "--owner_secret"],
        ["unknown-command"],
        ["chain-id", "--entrypoint", "0x1234"],
        ["chain-id", "--timeout", "0"],
        ["chain-id", "--entrypoint_version", "0.8"],
    ],
)
def test_invalid_arguments(cmd_args, monkeypatch):
    monkeypatch.delenv("ERC4337_OWNER_SECRET", raising=False)
    monkeypatch.delenv("ERC4337_KEYSTORE_FILE_PATH", raising=False)

    with pytest.raises(SystemExit):
        parse_args(cmd_args)


def test_unknown_entrypoint():
    with pytest.raises(SystemExit):
        parse_args(["chain-id", "--entrypoint", CUSTOM_ENTRYPOINT])


def test_custom_entrypoint():
    init_data = parse_args([
        "chain-id",
        "--entrypoint", CUSTOM_ENTRYPOINT,
        "--entrypoint_version", "0.6",
    ])

    assert init_data.entrypoint.address == CUSTOM_ENTRYPOINT
    assert init_data.entrypoint.version == EntryPointVersion.V06


def test_owner_secret():
    init_data = parse_args([
        "account-address",
        "--owner_secret", OWNER_PRIVATE_KEY,
        "--account_type", "kernel",
        "--account_index", "2",
    ])

    assert init_data.owner_address == OWNER_ADDRESS
    assert init_data.owner_private_key == OWNER_PRIVATE_KEY
    assert init_data.account_type == AccountType.kernel
    assert init_data.account_index == 2


def test_user_operation_from_file(tmp_path):
    user_operation_file = tmp_path / "user_operation.json"
    user_operation_file.write_text(json.dumps(user_operation_v7_json()))

    init_data = parse_args([
        "hash", "--user_operation", f"@{user_operation_file}",
        "--chain_id", "1",
    ])

    assert json.loads(init_data.user_operation_json) == \
        user_operation_v7_json()
    assert init_data.chain_id == 1


def test_owner_keystore(tmp_path):
    keystore_file = tmp_path / "keystore.json"
    keystore_file.write_text(json.dumps(Account.encrypt(
        OWNER_PRIVATE_KEY, "pass", kdf="pbkdf2", iterations=2)))

    init_data = parse_args([
        "account-address",
        "--keystore_file_path", str(keystore_file),
        "--keystore_file_password", "pass",
    ])

    assert init_data.owner_private_key == OWNER_PRIVATE_KEY
    assert init_data.owner_address == OWNER_ADDRESS
