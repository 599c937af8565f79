"""Shared fixtures: in-process target stubs built on httpx.MockTransport."""

import httpx
import pytest

from apiprobe.config import ScanOptions
from apiprobe.http import HttpProbeClient
from apiprobe.probes import ProbeSession
from apiprobe.scheduler import RequestGovernor


class RecordingTransport(httpx.MockTransport):
    """MockTransport that keeps every request it served."""

    def __init__(self, handler):
        self.requests = []

        def _record(request: httpx.Request) -> httpx.Response:
            self.requests.append(request)
            return handler(request)

        super().__init__(_record)


@pytest.fixture
def make_transport():
    return RecordingTransport


@pytest.fixture
async def make_session():
    clients = []

    def _make(handler, **option_overrides):
        options = ScanOptions(**option_overrides)
        transport = RecordingTransport(handler)
        client = HttpProbeClient(
            timeout=options.timeout,
            governor=RequestGovernor(options.parallel, options.request_delay),
            transport=transport,
        )
        clients.append(client)
        return ProbeSession(client=client, options=options), transport

    yield _make

    for client in clients:
        await client.close()


@pytest.fixture
def ok_handler():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json={"id": 1, "name": "alice"})

    return handler
