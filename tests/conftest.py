import pytest
import pytest_asyncio
from aiohttp import web
from aiohttp.test_utils import TestServer

from erc4337_client.utils.observe import observers


@pytest.fixture(autouse=True)
def clear_observers():
    observers.clear()
    yield
    observers.clear()


@pytest_asyncio.fixture
async def rpc_server():
    """
    A json-rpc endpoint. Tests register a handler per method in
    server.app["handlers"], returning the aiohttp response to send.
    """
    async def handle(request: web.Request) -> web.StreamResponse:
        json_request = await request.json()
        request.app["requests"].append(json_request)
        handler = request.app["handlers"][json_request["method"]]
        return handler(json_request)

    app = web.Application()
    app["handlers"] = {}
    app["requests"] = []
    app.router.add_post("/rpc", handle)

    server = TestServer(app)
    await server.start_server()
    yield server
    await server.close()
