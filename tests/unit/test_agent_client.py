"""Unit tests for the storage agent HTTP client."""

import asyncio
import socket
import pytest
from aiohttp import web
from aiohttp.test_utils import TestServer
from pvpool.types.models import PodState
from pvpool.web import AgentError, AgentProtocolError, AgentUnreachable, StorageAgentClient


def free_port() -> int:
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as sock:
        sock.bind(("127.0.0.1", 0))
        return sock.getsockname()[1]


def agent_app(status_handler=None, decommission_handler=None) -> web.Application:
    async def default_status(request):
        return web.json_response(
            {"name": "agent-0", "total": 1000, "used": 250, "state": "Ready"}
        )

    async def default_decommission(request):
        return web.Response(status=200)

    app = web.Application()
    app.router.add_get("/status", status_handler or default_status)
    app.router.add_put(
        "/manage-agent/decommission", decommission_handler or default_decommission
    )
    return app


async def garbled_server(reader, writer):
    """Answer any request with bytes that are not an HTTP response."""
    await reader.readuntil(b"\r\n\r\n")
    writer.write(b"NOT-HTTP garbage\r\n\r\n")
    await writer.drain()
    writer.close()


class TestGetStatus:
    """Tests for StorageAgentClient.get_status()."""

    @pytest.mark.asyncio
    async def test_status(self):
        async with TestServer(agent_app()) as server:
            async with StorageAgentClient() as client:
                status = await client.get_status(str(server.make_url("/")))
        assert status.total == 1000
        assert status.used == 250
        assert status.state == PodState.READY

    @pytest.mark.asyncio
    async def test_unknown_state(self):
        async def handler(request):
            return web.json_response({"total": 1, "used": 0, "state": "Rebooting"})

        async with TestServer(agent_app(status_handler=handler)) as server:
            async with StorageAgentClient() as client:
                status = await client.get_status(str(server.make_url("/")))
        assert status.state == PodState.UNKNOWN

    @pytest.mark.asyncio
    async def test_non_200(self):
        async def handler(request):
            return web.json_response({"error": "busy"}, status=503)

        async with TestServer(agent_app(status_handler=handler)) as server:
            async with StorageAgentClient() as client:
                with pytest.raises(AgentProtocolError):
                    await client.get_status(str(server.make_url("/")))

    @pytest.mark.asyncio
    async def test_body_not_json(self):
        async def handler(request):
            return web.Response(text="<html>oops</html>")

        async with TestServer(agent_app(status_handler=handler)) as server:
            async with StorageAgentClient() as client:
                with pytest.raises(AgentProtocolError):
                    await client.get_status(str(server.make_url("/")))

    @pytest.mark.asyncio
    async def test_body_missing_fields(self):
        async def handler(request):
            return web.json_response({"state": "Ready"})

        async with TestServer(agent_app(status_handler=handler)) as server:
            async with StorageAgentClient() as client:
                with pytest.raises(AgentProtocolError):
                    await client.get_status(str(server.make_url("/")))

    @pytest.mark.asyncio
    async def test_timeout(self):
        async def handler(request):
            await asyncio.sleep(1)
            return web.json_response({"total": 1, "used": 0, "state": "Ready"})

        async with TestServer(agent_app(status_handler=handler)) as server:
            async with StorageAgentClient(timeout=0.1) as client:
                with pytest.raises(AgentUnreachable):
                    await client.get_status(str(server.make_url("/")))

    @pytest.mark.asyncio
    async def test_connection_refused(self):
        async with StorageAgentClient() as client:
            with pytest.raises(AgentUnreachable):
                await client.get_status(f"http://127.0.0.1:{free_port()}")

    @pytest.mark.asyncio
    async def test_schema_class_rejected(self):
        from pvpool.types.schemas import StorageAgentStatusSchema

        async with StorageAgentClient() as client:
            with pytest.raises(ValueError):
                await client.get("http://127.0.0.1", schema=StorageAgentStatusSchema)


class TestDecommission:
    """Tests for StorageAgentClient.decommission()."""

    @pytest.mark.asyncio
    async def test_decommission(self):
        calls = []

        async def handler(request):
            calls.append(request.method)
            return web.Response(status=200)

        async with TestServer(agent_app(decommission_handler=handler)) as server:
            async with StorageAgentClient() as client:
                await client.decommission(str(server.make_url("/")))
        assert calls == ["PUT"]

    @pytest.mark.asyncio
    @pytest.mark.parametrize("status", [204, 404, 500])
    async def test_any_response_counts_as_issued(self, status):
        async def handler(request):
            return web.Response(status=status)

        async with TestServer(agent_app(decommission_handler=handler)) as server:
            async with StorageAgentClient() as client:
                await client.decommission(str(server.make_url("/")))

    @pytest.mark.asyncio
    async def test_connection_refused(self):
        async with StorageAgentClient() as client:
            with pytest.raises(AgentUnreachable):
                await client.decommission(f"http://127.0.0.1:{free_port()}")

    @pytest.mark.asyncio
    async def test_malformed_response(self):
        server = await asyncio.start_server(garbled_server, "127.0.0.1", 0)
        port = server.sockets[0].getsockname()[1]
        try:
            async with StorageAgentClient() as client:
                with pytest.raises(AgentError):
                    await client.decommission(f"http://127.0.0.1:{port}")
        finally:
            server.close()
            await server.wait_closed()
