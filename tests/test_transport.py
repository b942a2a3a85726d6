from __future__ import annotations

import aiohttp
import pytest
from aiohttp import test_utils, web
from conftest import description_xml

from pycctv._constants import USER_AGENT
from pycctv._transport import DescriptionTransport
from pycctv.exceptions import CctvTransportError


def _app(seen_agents: list[str]) -> web.Application:
    async def _description(request: web.Request) -> web.Response:
        seen_agents.append(request.headers.get("User-Agent", ""))
        return web.Response(text=description_xml("uuid:cam-1"), content_type="text/xml")

    app = web.Application()
    app.router.add_get("/description.xml", _description)
    return app


@pytest.mark.asyncio
async def test_fetch_returns_document_text() -> None:
    seen_agents: list[str] = []
    async with test_utils.TestServer(_app(seen_agents)) as server, aiohttp.ClientSession() as session:
        transport = DescriptionTransport(session, timeout=5.0)

        text = await transport.fetch_description(str(server.make_url("/description.xml")))

    assert "<UDN>uuid:cam-1</UDN>" in text
    assert seen_agents == [USER_AGENT]


@pytest.mark.asyncio
async def test_non_200_raises_transport_error() -> None:
    async with test_utils.TestServer(_app([])) as server, aiohttp.ClientSession() as session:
        transport = DescriptionTransport(session, timeout=5.0)
        location = str(server.make_url("/missing.xml"))

        with pytest.raises(CctvTransportError) as excinfo:
            await transport.fetch_description(location)

    assert excinfo.value.status_code == 404
    assert excinfo.value.location == location


@pytest.mark.asyncio
async def test_connection_failure_raises_transport_error() -> None:
    async with test_utils.TestServer(_app([])) as server:
        location = str(server.make_url("/description.xml"))

    async with aiohttp.ClientSession() as session:
        transport = DescriptionTransport(session, timeout=5.0)
        with pytest.raises(CctvTransportError) as excinfo:
            await transport.fetch_description(location)

    assert excinfo.value.status_code is None
