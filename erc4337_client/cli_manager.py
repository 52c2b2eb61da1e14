import os
from enum import Enum
import logging
import re
import sys
from argparse import ArgumentParser, Namespace, ArgumentTypeError
from dataclasses import dataclass
from importlib.metadata import PackageNotFoundError, version

from eth_utils import to_checksum_address

from .entrypoint import ENTRYPOINT_ADDRESS_V07, EntryPoint, EntryPointVersion, \
    get_entrypoint_version
from .exceptions import ConfigurationException
from .typing import Address
from .utils.import_key import \
    import_owner_private_key, public_address_from_private_key

try:
    __version__ = version("erc4337-client")
except PackageNotFoundError:
    __version__ = "unknown"


class Command(Enum):
    chain_id = "chain-id"
    supported_entrypoints = "supported-entrypoints"
    gas_price = "gas-price"
    user_operation = "user-operation"
    receipt = "receipt"
    status = "status"
    hash = "hash"
    account_address = "account-address"

    def __str__(self):
        return self.value


class AccountType(Enum):
    simple = "simple"
    kernel = "kernel"

    def __str__(self):
        return self.value


@dataclass()
class InitData:
    command: Command
    bundler_url: str
    ethereum_node_url: str
    entrypoint: EntryPoint
    chain_id: int | None
    owner_private_key: str | None
    owner_address: Address | None
    account_type: AccountType
    account_index: int
    kernel_version: str | None
    user_operation_hash: str | None
    user_operation_json: str | None
    wait: bool
    polling_interval: float
    timeout: float | None
    is_metrics: bool
    metrics_port: int
    client_version: str


def address(ep: str):
    address_pattern = "^0x[0-9a-fA-F]{40}$"
    if not isinstance(ep, str) or re.match(address_pattern, ep) is None:
        raise ArgumentTypeError(f"Wrong address format : {ep}")
    return ep


def unsigned_int(value):
    ivalue = int(value)
    if ivalue < 0:
        raise ArgumentTypeError(
                "%s is an invalid unsigned int value" % value)
    return ivalue


def positive_float(value):
    fvalue = float(value)
    if fvalue <= 0:
        raise ArgumentTypeError(
                "%s is an invalid positive value" % value)
    return fvalue


def entrypoint_version(value: str):
    if value not in ("0.6", "0.7"):
        raise ArgumentTypeError(f"Wrong entrypoint version : {value}")
    return EntryPointVersion(value)


def _get_env_or_default(env_var, default, value_type):
    """
    Helper function to get the value from an environment variable or return the default value.
    """
    value = os.getenv(env_var, None)
    if value is not None:
        return value_type(value)
    return default


def initialize_argument_parser() -> ArgumentParser:
    parser = ArgumentParser(
        prog="erc4337-client",
        description="ERC-4337 user operation client",
    )

    parser.add_argument(
        "command",
        type=Command,
        choices=list(Command),
        help="what to query or compute",
    )

    parser.add_argument(
        "user_operation_hash",
        type=str,
        nargs="?",
        default=None,
        help="user operation hash for user-operation, receipt and status",
    )

    parser.add_argument(
        "--bundler_url",
        type=str,
        help="Bundler JSON-RPC Url - defaults to http://0.0.0.0:3000/rpc",
        nargs="?",
        const="http://0.0.0.0:3000/rpc",
        default=_get_env_or_default(
            "ERC4337_BUNDLER_URL", "http://0.0.0.0:3000/rpc", str),
    )

    parser.add_argument(
        "--ethereum_node_url",
        type=str,
        help="Eth Client JSON-RPC Url - defaults to http://0.0.0.0:8545",
        nargs="?",
        const="http://0.0.0.0:8545",
        default=_get_env_or_default(
            "ERC4337_ETHEREUM_NODE_URL", "http://0.0.0.0:8545", str),
    )

    parser.add_argument(
        "--entrypoint",
        type=address,
        help=f"EntryPoint address - defaults to {ENTRYPOINT_ADDRESS_V07}",
        nargs="?",
        const=ENTRYPOINT_ADDRESS_V07,
        default=_get_env_or_default(
            "ERC4337_ENTRYPOINT", ENTRYPOINT_ADDRESS_V07, address),
    )

    parser.add_argument(
        "--entrypoint_version",
        type=entrypoint_version,
        help="EntryPoint version, required for custom entrypoint deployments",
        nargs="?",
        default=_get_env_or_default(
            "ERC4337_ENTRYPOINT_VERSION", None, entrypoint_version),
    )

    parser.add_argument(
        "--chain_id",
        type=unsigned_int,
        help="chain id - defaults to the bundler's chain id",
        nargs="?",
        default=_get_env_or_default("ERC4337_CHAIN_ID", None, unsigned_int),
    )

    group = parser.add_mutually_exclusive_group(required=False)

    group.add_argument(
        "--owner_secret",
        type=str,
        help="Account owner private key",
        nargs="?",
        default=_get_env_or_default("ERC4337_OWNER_SECRET", None, str),
    )

    group.add_argument(
        "--keystore_file_path",
        type=str,
        help="Account owner keystore file path",
        nargs="?",
        default=_get_env_or_default("ERC4337_KEYSTORE_FILE_PATH", None, str),
    )

    parser.add_argument(
        "--keystore_file_password",
        type=str,
        help="Account owner keystore file password - defaults to no password",
        nargs="?",
        const="",
        default=_get_env_or_default(
            "ERC4337_KEYSTORE_FILE_PASSWORD", "", str),
    )

    parser.add_argument(
        "--account_type",
        type=AccountType,
        choices=list(AccountType),
        help="smart account implementation - defaults to simple",
        nargs="?",
        const=AccountType.simple,
        default=_get_env_or_default(
            "ERC4337_ACCOUNT_TYPE", AccountType.simple, AccountType),
    )

    parser.add_argument(
        "--account_index",
        type=unsigned_int,
        help="smart account salt - defaults to 0",
        nargs="?",
        const=0,
        default=_get_env_or_default("ERC4337_ACCOUNT_INDEX", 0, unsigned_int),
    )

    parser.add_argument(
        "--kernel_version",
        type=str,
        help="kernel account version - defaults to the entrypoint's default",
        nargs="?",
        default=_get_env_or_default("ERC4337_KERNEL_VERSION", None, str),
    )

    parser.add_argument(
        "--user_operation",
        type=str,
        help="user operation json, or @path to a json file, for hash",
        nargs="?",
        default=None,
    )

    parser.add_argument(
        "--wait",
        help="wait for the receipt instead of returning null",
        nargs="?",
        const=True,
        default=False,
    )

    parser.add_argument(
        "--polling_interval",
        type=positive_float,
        help="receipt polling interval in seconds - defaults to 1",
        nargs="?",
        const=1,
        default=_get_env_or_default(
            "ERC4337_POLLING_INTERVAL", 1, positive_float),
    )

    parser.add_argument(
        "--timeout",
        type=positive_float,
        help="receipt timeout in seconds - defaults to no timeout",
        nargs="?",
        default=_get_env_or_default("ERC4337_TIMEOUT", None, positive_float),
    )

    parser.add_argument(
        "--verbose",
        help="show debug log",
        nargs="?",
        const=True,
        default=_get_env_or_default(
            "ERC4337_VERBOSE", False, lambda v: v.lower() == "true"),
    )

    parser.add_argument(
        "--metrics",
        help="expose prometheus metrics",
        nargs="?",
        const=True,
        default=_get_env_or_default(
            "ERC4337_METRICS", False, lambda v: v.lower() == "true"),
    )

    parser.add_argument(
        "--metrics_port",
        type=unsigned_int,
        help="prometheus metrics port - defaults to 8000",
        nargs="?",
        const=8000,
        default=_get_env_or_default(
            "ERC4337_METRICS_PORT", 8000, unsigned_int),
    )

    return parser


def parse_args(cmd_args: list[str]) -> InitData:
    argument_parser: ArgumentParser = initialize_argument_parser()
    args = argument_parser.parse_args(cmd_args)
    if args.command in (Command.user_operation, Command.receipt, Command.status) \
            and args.user_operation_hash is None:
        argument_parser.error(
            f"{args.command} requires a user operation hash")
    if args.command == Command.hash and args.user_operation is None:
        argument_parser.error("hash requires --user_operation")
    if args.command == Command.account_address and \
            not args.owner_secret and not args.keystore_file_path:
        argument_parser.error(
            "You must specify either --owner_secret or --keystore_file_path, "
            "or set ERC4337_OWNER_SECRET or ERC4337_KEYSTORE_FILE_PATH "
            "environment variables.")
    return get_init_data(args)


def init_logging(args: Namespace):
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(asctime)s.%(msecs)03d %(levelname)s %(message)s",
        datefmt="%b %d %H:%M:%S",
    )


def init_owner_address_and_secret(
    args: Namespace
) -> tuple[Address | None, str | None]:
    if args.keystore_file_path is not None:
        owner_pk = import_owner_private_key(
            args.keystore_file_password, args.keystore_file_path
        )
    elif args.owner_secret is not None:
        owner_pk = args.owner_secret
    else:
        return None, None
    return Address(public_address_from_private_key(owner_pk)), owner_pk


def read_user_operation_json(value: str | None) -> str | None:
    if value is not None and value[:1] == "@":
        with open(value[1:]) as user_operation_file:
            return user_operation_file.read()
    return value


def get_init_data(args: Namespace) -> InitData:
    init_logging(args)

    if args.entrypoint_version is None:
        try:
            version = get_entrypoint_version(args.entrypoint)
        except ConfigurationException as excp:
            logging.critical(excp.message)
            sys.exit(1)
    else:
        version = args.entrypoint_version
    owner_address, owner_pk = init_owner_address_and_secret(args)

    return InitData(
        command=args.command,
        bundler_url=args.bundler_url,
        ethereum_node_url=args.ethereum_node_url,
        entrypoint=EntryPoint(
            Address(to_checksum_address(args.entrypoint)), version),
        chain_id=args.chain_id,
        owner_private_key=owner_pk,
        owner_address=owner_address,
        account_type=args.account_type,
        account_index=args.account_index,
        kernel_version=args.kernel_version,
        user_operation_hash=args.user_operation_hash,
        user_operation_json=read_user_operation_json(args.user_operation),
        wait=args.wait,
        polling_interval=args.polling_interval,
        timeout=args.timeout,
        is_metrics=args.metrics,
        metrics_port=args.metrics_port,
        client_version=__version__,
    )
