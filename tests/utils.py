import inspect
from typing import Any

from eth_abi import encode
from eth_utils import function_signature_to_4byte_selector

from erc4337_client.entrypoint import ENTRYPOINT_ADDRESS_V07
from erc4337_client.exceptions import RpcException
from erc4337_client.user_operation.v6.user_operation_v6 import UserOperationV6
from erc4337_client.user_operation.v7.user_operation_v7 import UserOperationV7
from erc4337_client.utils.eth_client_utils import Transport

# hardhat's first development account
OWNER_PRIVATE_KEY = \
    "0xac0974bec39a17e36ba4a6b4d238ff944bacb478cbed5efcae784d7bf4f2ff80"
OWNER_ADDRESS = "0xf39Fd6e51aad88F6F4ce6aB8827279cffFb92266"

# digit only addresses checksum to themselves
SENDER_ADDRESS = "0x1111111111111111111111111111111111111111"
FACTORY_ADDRESS = "0x2222222222222222222222222222222222222222"
PAYMASTER_ADDRESS = "0x3333333333333333333333333333333333333333"
TARGET_ADDRESS = "0x4444444444444444444444444444444444444444"
BUNDLER_ADDRESS = "0x5555555555555555555555555555555555555555"

USER_OPERATION_HASH = "0x" + "ab" * 32
TRANSACTION_HASH = "0x" + "cd" * 32
BLOCK_HASH = "0x" + "ef" * 32

GET_SENDER_ADDRESS_SELECTOR = \
    "0x" + function_signature_to_4byte_selector("getSenderAddress(bytes)").hex()
GET_NONCE_SELECTOR = \
    "0x" + function_signature_to_4byte_selector("getNonce(address,uint192)").hex()


class FakeTransport(Transport):
    """
    Answers json-rpc methods from a table. A handler is either a result or
    a callable taking the params, which may raise or be async.
    """
    handlers: dict[str, Any]
    calls: list[tuple[str, list | None]]

    def __init__(self, handlers: dict[str, Any] | None = None, uid="fake"):
        self.uid = uid
        self.handlers = dict(handlers or {})
        self.calls = []

    async def request(self, method: str, params: list | None = None) -> Any:
        self.calls.append((method, params))
        if method not in self.handlers:
            raise AssertionError(f"unexpected json-rpc call {method}")
        handler = self.handlers[method]
        if callable(handler):
            result = handler(params)
            if inspect.isawaitable(result):
                result = await result
            return result
        return handler

    def count(self, method: str) -> int:
        return len([call for call in self.calls if call[0] == method])

    def params(self, method: str) -> list[list | None]:
        return [params for name, params in self.calls if name == method]


def node_handlers(
    sender_address=SENDER_ADDRESS,
    nonce=0,
    code="0x",
    base_fee_per_gas="0x64",
    max_priority_fee_per_gas="0xa",
    gas_price="0x64",
) -> dict[str, Any]:
    def eth_call(params):
        data = params[0]["data"]
        if data.startswith(GET_SENDER_ADDRESS_SELECTOR):
            raise RpcException(
                3,
                "execution reverted",
                "0x6ca7b806" + encode(["address"], [sender_address]).hex(),
            )
        if data.startswith(GET_NONCE_SELECTOR):
            return "0x" + encode(["uint256"], [nonce]).hex()
        raise AssertionError(f"unexpected eth_call {data}")

    return {
        "eth_chainId": "0x539",
        "eth_call": eth_call,
        "eth_getCode": code,
        "eth_getBlockByNumber": {
            "number": "0x10", "baseFeePerGas": base_fee_per_gas},
        "eth_maxPriorityFeePerGas": max_priority_fee_per_gas,
        "eth_gasPrice": gas_price,
    }


def gas_estimate_json(
    call_gas_limit="0x5208",
    verification_gas_limit="0x186a0",
    pre_verification_gas="0xc350",
    **extra,
) -> dict[str, Any]:
    return {
        "callGasLimit": call_gas_limit,
        "verificationGasLimit": verification_gas_limit,
        "preVerificationGas": pre_verification_gas,
        **extra,
    }


def receipt_json(
    user_operation_hash=USER_OPERATION_HASH,
    transaction_hash=TRANSACTION_HASH,
    entrypoint=ENTRYPOINT_ADDRESS_V07,
) -> dict[str, Any]:
    log = {
        "removed": False,
        "logIndex": "0x1",
        "transactionIndex": "0x0",
        "transactionHash": transaction_hash,
        "blockHash": BLOCK_HASH,
        "blockNumber": "0x10",
        "address": entrypoint,
        "data": "0x",
        "topics": ["0x" + "01" * 32],
    }
    return {
        "userOpHash": user_operation_hash,
        "entryPoint": entrypoint,
        "sender": SENDER_ADDRESS,
        "nonce": "0x0",
        "paymaster": None,
        "actualGasUsed": "0x5208",
        "actualGasCost": "0x33450",
        "success": True,
        "logs": [log],
        "receipt": {
            "transactionHash": transaction_hash,
            "transactionIndex": "0x0",
            "blockHash": BLOCK_HASH,
            "blockNumber": "0x10",
            "from": BUNDLER_ADDRESS,
            "to": entrypoint,
            "cumulativeGasUsed": "0x5208",
            "gasUsed": "0x5208",
            "contractAddress": None,
            "logs": [log],
            "logsBloom": "0x",
            "status": "0x1",
            "effectiveGasPrice": "0xa",
        },
    }


def user_operation_v6(**changes) -> UserOperationV6:
    return UserOperationV6(
        sender_address=SENDER_ADDRESS,
        nonce=1,
        init_code=bytes(0),
        call_data=bytes.fromhex("b61d27f6"),
        call_gas_limit=0x5208,
        verification_gas_limit=0x186a0,
        pre_verification_gas=0xc350,
        max_fee_per_gas=0x3b9aca00,
        max_priority_fee_per_gas=0x3b9aca00,
        paymaster_and_data=bytes(0),
        signature=bytes(0),
    ).copy(**changes)


def user_operation_v7(**changes) -> UserOperationV7:
    return UserOperationV7(
        sender_address=SENDER_ADDRESS,
        nonce=1,
        call_data=bytes.fromhex("b61d27f6"),
        call_gas_limit=0x5208,
        verification_gas_limit=0x186a0,
        pre_verification_gas=0xc350,
        max_fee_per_gas=0x3b9aca00,
        max_priority_fee_per_gas=0x3b9aca00,
        signature=bytes(0),
    ).copy(**changes)


def user_operation_v6_json() -> dict[str, Any]:
    return {
        "sender": SENDER_ADDRESS,
        "nonce": "0x1",
        "initCode": "0x",
        "callData": "0xb61d27f6",
        "callGasLimit": "0x5208",
        "verificationGasLimit": "0x186a0",
        "preVerificationGas": "0xc350",
        "maxFeePerGas": "0x3b9aca00",
        "maxPriorityFeePerGas": "0x3b9aca00",
        "paymasterAndData": "0x",
        "signature": "0x",
    }


def user_operation_v7_json() -> dict[str, Any]:
    return {
        "sender": SENDER_ADDRESS,
        "nonce": "0x1",
        "callData": "0xb61d27f6",
        "callGasLimit": "0x5208",
        "verificationGasLimit": "0x186a0",
        "preVerificationGas": "0xc350",
        "maxFeePerGas": "0x3b9aca00",
        "maxPriorityFeePerGas": "0x3b9aca00",
        "signature": "0x",
    }


def receipt_after_polls(polls: int):
    """Receipt handler answering null for the first polls calls."""
    state = {"calls": 0}

    def handler(params):
        state["calls"] += 1
        if state["calls"] <= polls:
            return None
        return receipt_json(params[0])
    return handler
