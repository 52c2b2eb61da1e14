import asyncio
from dataclasses import asdict
import json
import logging
import sys
from typing import Any

import uvloop

from .accounts.kernel.kernel_account import KernelAccount
from .accounts.owner import LocalOwner
from .accounts.simple.simple_account import SimpleAccount
from .accounts.smart_account import SmartAccount
from .cli_manager import AccountType, Command, InitData, parse_args
from .exceptions import ConfigurationException, RpcException, \
    ValidationException, \
    WaitForUserOperationReceiptTimeoutException
from .metrics.metrics import run_metrics_server
from .rpc.pimlico import PimlicoBundlerClient
from .rpc.public_client import PublicClient
from .user_operation.user_operation_hash import get_user_operation_hash
from .user_operation.v6.user_operation_v6 import UserOperationV6
from .user_operation.v7.user_operation_v7 import UserOperationV7
from .entrypoint import EntryPointVersion
from .utils.encode import deep_hexlify
from .utils.eth_client_utils import HttpTransport


def get_account(init_data: InitData, public_client: PublicClient) -> SmartAccount:
    owner = LocalOwner(init_data.owner_private_key)  # type: ignore
    if init_data.account_type == AccountType.kernel:
        return KernelAccount(
            public_client,
            init_data.entrypoint,
            owner,
            kernel_version=init_data.kernel_version,
            index=init_data.account_index,
        )
    return SimpleAccount(
        public_client,
        init_data.entrypoint,
        owner,
        index=init_data.account_index,
    )


async def execute_command(init_data: InitData) -> Any:
    bundler_client = PimlicoBundlerClient(
        HttpTransport(init_data.bundler_url), init_data.polling_interval)
    match init_data.command:
        case Command.chain_id:
            return await bundler_client.chain_id()
        case Command.supported_entrypoints:
            return await bundler_client.supported_entrypoints()
        case Command.gas_price:
            return asdict(await bundler_client.get_user_operation_gas_price())
        case Command.user_operation:
            user_operation_by_hash = \
                await bundler_client.get_user_operation_by_hash(
                    init_data.user_operation_hash)  # type: ignore
            if user_operation_by_hash is None:
                return None
            return {
                "userOperation": user_operation_by_hash.user_operation
                .get_user_operation_json(),
                "entryPoint": user_operation_by_hash.entrypoint,
                "transactionHash": user_operation_by_hash.transaction_hash,
                "blockHash": user_operation_by_hash.block_hash,
                "blockNumber": user_operation_by_hash.block_number,
            }
        case Command.receipt:
            if init_data.wait:
                receipt = await bundler_client.wait_for_user_operation_receipt(
                    init_data.user_operation_hash,  # type: ignore
                    init_data.polling_interval,
                    init_data.timeout,
                )
            else:
                receipt = await bundler_client.get_user_operation_receipt(
                    init_data.user_operation_hash)  # type: ignore
            return None if receipt is None else asdict(receipt)
        case Command.status:
            status = await bundler_client.get_user_operation_status(
                init_data.user_operation_hash)  # type: ignore
            return {
                "status": status.status.value,
                "transactionHash": status.transaction_hash,
            }
        case Command.hash:
            chain_id = init_data.chain_id
            if chain_id is None:
                chain_id = await bundler_client.chain_id()
            user_operation_json = json.loads(
                init_data.user_operation_json)  # type: ignore
            if init_data.entrypoint.version == EntryPointVersion.V06:
                user_operation = UserOperationV6.from_json(user_operation_json)
            else:
                user_operation = UserOperationV7.from_json(user_operation_json)
            return get_user_operation_hash(
                user_operation, init_data.entrypoint, chain_id)
        case Command.account_address:
            public_client = PublicClient(
                HttpTransport(init_data.ethereum_node_url))
            return await get_account(init_data, public_client).get_address()


async def main(cmd_args=sys.argv[1:]) -> None:
    init_data = parse_args(cmd_args)
    if init_data.is_metrics:
        run_metrics_server(port=init_data.metrics_port)

    try:
        result = await execute_command(init_data)
    except (
        ConfigurationException,
        RpcException,
        ValidationException,
        WaitForUserOperationReceiptTimeoutException,
    ) as excp:
        logging.critical(str(excp))
        sys.exit(1)
    print(json.dumps(deep_hexlify(result), indent=2))


def run() -> None:
    asyncio.set_event_loop_policy(uvloop.EventLoopPolicy())
    asyncio.run(main())


if __name__ == "__main__":
    run()
