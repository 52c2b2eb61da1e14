import asyncio
import logging
from typing import Any

from erc4337_client.entrypoint import EntryPoint, get_matching_entrypoint
from erc4337_client.exceptions import \
    ValidationException, ValidationExceptionCode, \
    WaitForUserOperationReceiptTimeoutException
from erc4337_client.typing import Address, UserOperationHash
from erc4337_client.user_operation.models import \
    GasEstimate, UserOperationByHash, UserOperationReceipt
from erc4337_client.user_operation.user_operation import \
    UserOperation, is_user_operation_hash, verify_and_get_uint
from erc4337_client.utils.eth_client_utils import Transport
from erc4337_client.utils.observe import get_observer_key, observe


class BundlerClient:
    transport: Transport
    polling_interval: float

    def __init__(self, transport: Transport, polling_interval: float = 1):
        self.transport = transport
        self.polling_interval = polling_interval

    @property
    def uid(self) -> str:
        return self.transport.uid

    async def chain_id(self) -> int:
        result = await self.transport.request("eth_chainId")
        return verify_and_get_uint("chainId", result)

    async def supported_entrypoints(self) -> list[Address]:
        result = await self.transport.request("eth_supportedEntryPoints")
        return [Address(entrypoint) for entrypoint in result]

    async def estimate_user_operation_gas(
        self,
        user_operation: UserOperation,
        entrypoint: EntryPoint | Address | str,
        state_overrides: dict[str, Any] | None = None,
    ) -> GasEstimate:
        entrypoint = get_matching_entrypoint(entrypoint, user_operation)
        params: list[Any] = [
            user_operation.get_user_operation_json(),
            entrypoint.address,
        ]
        if state_overrides is not None:
            params.append(state_overrides)

        result = await self.transport.request(
            "eth_estimateUserOperationGas", params)
        return GasEstimate.from_json(result)

    async def send_user_operation(
        self,
        user_operation: UserOperation,
        entrypoint: EntryPoint | Address | str,
    ) -> UserOperationHash:
        entrypoint = get_matching_entrypoint(entrypoint, user_operation)
        user_operation.verify_complete()

        result = await self.transport.request(
            "eth_sendUserOperation",
            [user_operation.get_user_operation_json(), entrypoint.address],
        )
        if not is_user_operation_hash(result):
            raise ValidationException(
                ValidationExceptionCode.InvalidFields,
                f"Invalid user operation hash returned by bundler: {result}",
            )
        logging.info(
            f"UserOperation sent by {user_operation.sender_address} "
            f"with hash {result}"
        )
        return UserOperationHash(result)

    async def get_user_operation_by_hash(
        self, user_operation_hash: str
    ) -> UserOperationByHash | None:
        verify_user_operation_hash(user_operation_hash)
        result = await self.transport.request(
            "eth_getUserOperationByHash", [user_operation_hash])
        if result is None:
            return None
        return UserOperationByHash.from_json(result)

    async def get_user_operation_receipt(
        self, user_operation_hash: str
    ) -> UserOperationReceipt | None:
        verify_user_operation_hash(user_operation_hash)
        result = await self.transport.request(
            "eth_getUserOperationReceipt", [user_operation_hash])
        if result is None:
            return None
        return UserOperationReceipt.from_json(result)

    def wait_for_user_operation_receipt(
        self,
        user_operation_hash: str,
        polling_interval: float | None = None,
        timeout: float | None = None,
    ):
        """
        Poll eth_getUserOperationReceipt until the receipt is available.

        Concurrent waiters for the same hash on the same bundler share one
        polling loop and receive the same receipt object. When any waiter's
        timeout elapses every waiter gets a
        WaitForUserOperationReceiptTimeoutException and the loop stops. The
        loop also stops once no waiter is left. Bundler errors are raised as
        soon as they happen.
        """
        verify_user_operation_hash(user_operation_hash)
        if polling_interval is None:
            polling_interval = self.polling_interval
        observer_key = get_observer_key(
            "wait_for_user_operation_receipt", self.uid, user_operation_hash)

        async def poll() -> UserOperationReceipt:
            while True:
                receipt = await self.get_user_operation_receipt(
                    user_operation_hash)
                if receipt is not None:
                    return receipt
                await asyncio.sleep(polling_interval)  # type: ignore

        def timed_out() -> WaitForUserOperationReceiptTimeoutException:
            logging.warning(
                "Timed out waiting for receipt of user operation "
                f"{user_operation_hash}"
            )
            return WaitForUserOperationReceiptTimeoutException(
                user_operation_hash)

        return observe(observer_key, poll, timeout, timed_out)


def verify_user_operation_hash(user_operation_hash: str) -> None:
    if not is_user_operation_hash(user_operation_hash):
        raise ValidationException(
            ValidationExceptionCode.InvalidFields,
            f"Invalid user operation hash : {user_operation_hash}",
        )
