import logging
from typing import Any

from erc4337_client.accounts.smart_account import Call, SmartAccount
from erc4337_client.exceptions import \
    ConfigurationException, ConfigurationExceptionCode
from erc4337_client.gas.gas_manager import GasManager
from erc4337_client.rpc.bundler_client import BundlerClient
from erc4337_client.typing import TransactionHash, UserOperationHash
from erc4337_client.user_operation.user_operation import UserOperation
from .prepare_user_operation import prepare_user_operation


class SmartAccountClient:
    """Prepares, signs and submits user operations for one account."""
    account: SmartAccount
    bundler_client: BundlerClient
    middleware: Any
    gas_manager: GasManager | None
    _chain_id: int | None

    def __init__(
        self,
        account: SmartAccount | None,
        bundler_client: BundlerClient | None,
        middleware: Any = None,
        gas_manager: GasManager | None = None,
        chain_id: int | None = None,
    ):
        if account is None:
            raise ConfigurationException(
                ConfigurationExceptionCode.AccountNotFound,
                "A smart account is required",
            )
        if bundler_client is None:
            raise ConfigurationException(
                ConfigurationExceptionCode.ClientNotFound,
                "A bundler client is required",
            )
        self.account = account
        self.bundler_client = bundler_client
        self.middleware = middleware
        self.gas_manager = gas_manager
        self._chain_id = chain_id

    async def get_chain_id(self) -> int:
        if self._chain_id is None:
            self._chain_id = await self.bundler_client.chain_id()
        return self._chain_id

    async def prepare_user_operation(
        self,
        partial_user_operation: UserOperation | dict[str, Any] | None = None,
        calls: list[Call] | None = None,
        state_overrides: dict[str, Any] | None = None,
    ) -> UserOperation:
        return await prepare_user_operation(
            self.account,
            self.bundler_client,
            partial_user_operation,
            calls=calls,
            middleware=self.middleware,
            state_overrides=state_overrides,
            gas_manager=self.gas_manager,
        )

    async def sign_user_operation(
        self, user_operation: UserOperation
    ) -> UserOperation:
        signature = await self.account.sign_user_operation(
            user_operation, await self.get_chain_id())
        return user_operation.copy(signature=signature)

    async def send_user_operation(
        self,
        partial_user_operation: UserOperation | dict[str, Any] | None = None,
        calls: list[Call] | None = None,
        state_overrides: dict[str, Any] | None = None,
    ) -> UserOperationHash:
        user_operation = await self.prepare_user_operation(
            partial_user_operation, calls, state_overrides)
        signed_user_operation = await self.sign_user_operation(user_operation)
        return await self.bundler_client.send_user_operation(
            signed_user_operation, self.account.entrypoint)

    async def send_transactions(
        self,
        calls: list[Call],
        polling_interval: float | None = None,
        timeout: float | None = None,
    ) -> TransactionHash:
        """Send the calls as one user operation and wait for its inclusion."""
        user_operation_hash = await self.send_user_operation(calls=calls)
        receipt = await self.bundler_client.wait_for_user_operation_receipt(
            user_operation_hash, polling_interval, timeout)
        logging.info(
            f"UserOperation {user_operation_hash} included in transaction "
            f"{receipt.receipt.transaction_hash}"
        )
        return receipt.receipt.transaction_hash

    async def send_transaction(
        self,
        call: Call,
        polling_interval: float | None = None,
        timeout: float | None = None,
    ) -> TransactionHash:
        return await self.send_transactions(
            [call], polling_interval, timeout)
