import asyncio
from abc import ABC, abstractmethod
import json
import logging
from typing import Any
import uuid

from aiohttp import ClientError, ClientSession, ClientTimeout

from erc4337_client.exceptions import \
    RpcErrorCode, RpcException, classify_bundler_error
from erc4337_client.metrics.metrics import REQUEST_TIME


class Transport(ABC):
    """A json-rpc endpoint. uid identifies the backend in shared state."""
    uid: str

    @abstractmethod
    async def request(self, method: str, params: list | None = None) -> Any:
        pass


def get_result_or_raise(json_result: Any) -> Any:
    if not isinstance(json_result, dict):
        raise RpcException(
            RpcErrorCode.InternalError.value,
            f"Invalid json-rpc response: {json_result}",
        )
    if "error" in json_result and json_result["error"] is not None:
        error = json_result["error"]
        if not isinstance(error, dict):
            raise RpcException(RpcErrorCode.InternalError.value, str(error))
        raise classify_bundler_error(
            RpcException(
                error.get("code", RpcErrorCode.InternalError.value),
                str(error.get("message", "")),
                error.get("data"),
            )
        )
    if "result" not in json_result:
        raise RpcException(
            RpcErrorCode.InternalError.value,
            f"Invalid json-rpc response: {json_result}",
        )
    return json_result["result"]


class HttpTransport(Transport):
    url: str
    headers: dict[str, str]
    retry_count: int
    retry_delay: float
    timeout: float
    _request_id: int

    def __init__(
        self,
        url: str,
        headers: dict[str, str] | None = None,
        retry_count: int = 0,
        retry_delay: float = 1,
        timeout: float = 30,
    ):
        self.url = url
        self.headers = {
            "content-type": "application/json",
            "connection": "keep-alive"
        }
        if headers is not None:
            self.headers.update(headers)
        self.retry_count = retry_count
        self.retry_delay = retry_delay
        self.timeout = timeout
        self.uid = uuid.uuid4().hex
        self._request_id = 0

    async def request(self, method: str, params: list | None = None) -> Any:
        self._request_id += 1
        json_request = {
            "jsonrpc": "2.0",
            "id": self._request_id,
            "method": method,
            "params": params if params is not None else [],
        }
        logging.debug(f"rpc request to {self.url}: {json.dumps(json_request)}")
        with REQUEST_TIME.labels(method).time():
            json_result = await self._post(json_request)
        logging.debug(f"rpc response from {self.url}: {json_result}")
        return get_result_or_raise(json_result)

    async def _post(self, json_request: dict[str, Any]) -> Any:
        # only transport failures are retried, json-rpc errors are final
        for attempt in range(self.retry_count + 1):
            try:
                async with ClientSession(
                    timeout=ClientTimeout(total=self.timeout)
                ) as session:
                    async with session.post(
                        self.url,
                        json=json_request,
                        headers=self.headers
                    ) as response:
                        resp = await response.read()
                        return json.loads(resp)
            except json.decoder.JSONDecodeError:
                logging.error(
                    f"Invalid json response from {self.url} "
                    f"for {json_request['method']}"
                )
                raise RpcException(
                    RpcErrorCode.InternalError.value,
                    "Invalid json response",
                )
            except (ClientError, asyncio.TimeoutError) as excp:
                logging.error(
                    f"Attempt No. {attempt + 1} to call {self.url} failed. "
                    f"error: {str(excp)}"
                )
                if attempt == self.retry_count:
                    raise RpcException(
                        RpcErrorCode.InternalError.value,
                        f"Failed rpc request to {self.url}: {str(excp)}",
                    ) from excp
                await asyncio.sleep(self.retry_delay)
