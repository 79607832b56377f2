import asyncio
import unittest

from aiohttp import web
from aiohttp.test_utils import TestServer

from remote_loader.errors import HttpTransportError
from remote_loader.host.http import AiohttpClient


class AiohttpClientTests(unittest.IsolatedAsyncioTestCase):
    async def asyncSetUp(self) -> None:
        app = web.Application()
        app.router.add_get("/script.py", self._script)
        app.router.add_get("/slow.py", self._slow)
        self.server = TestServer(app)
        await self.server.start_server()

    async def asyncTearDown(self) -> None:
        await self.server.close()

    async def _script(self, request: web.Request) -> web.Response:
        return web.Response(text=f"pragma = {request.headers.get('Pragma')!r}\nquery = {request.query_string!r}\n")

    async def _slow(self, request: web.Request) -> web.Response:
        await asyncio.sleep(1)
        return web.Response(text="late = True")

    async def test_get_returns_status_and_body(self) -> None:
        url = str(self.server.make_url("/script.py")) + "?t=1&r=abc"
        async with AiohttpClient() as http:
            response = await http.get(url, headers={"Pragma": "no-cache"}, timeout_seconds=5)

        self.assertEqual(response.status, 200)
        self.assertEqual(response.text, "pragma = 'no-cache'\nquery = 't=1&r=abc'\n")

    async def test_error_status_is_returned_not_raised(self) -> None:
        async with AiohttpClient() as http:
            response = await http.get(str(self.server.make_url("/missing.py")), timeout_seconds=5)
        self.assertEqual(response.status, 404)

    async def test_timeout_raises_timeout_error(self) -> None:
        async with AiohttpClient() as http:
            with self.assertRaises(asyncio.TimeoutError):
                await http.get(str(self.server.make_url("/slow.py")), timeout_seconds=0.2)

    async def test_connection_failure_raises_transport_error(self) -> None:
        url = str(self.server.make_url("/script.py"))
        await self.server.close()
        with self.assertRaises(HttpTransportError):
            await AiohttpClient().get(url, timeout_seconds=2)


if __name__ == "__main__":
    unittest.main()
