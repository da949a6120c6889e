"""Shared test fixtures for the found.as client."""

from __future__ import annotations

import html
from typing import TYPE_CHECKING

import httpx
import pytest

from foundas.config import Settings
from foundas.services.transport_service import SingleFlightTransport
from tests.fake_server import FakeFoundServer

if TYPE_CHECKING:
    from collections.abc import AsyncGenerator

TEST_BASE_URL = "https://found.test"


def stub_render(markdown: str) -> str:
    """Stand-in for pandoc: one paragraph, escaped."""
    return f"<p>{html.escape(markdown.strip())}</p>"


@pytest.fixture
def test_settings() -> Settings:
    return Settings(_env_file=None, server_url=TEST_BASE_URL, debounce_seconds=0.01)


@pytest.fixture
def fake_server() -> FakeFoundServer:
    return FakeFoundServer()


@pytest.fixture
async def transport(fake_server: FakeFoundServer) -> AsyncGenerator[SingleFlightTransport, None]:
    client = httpx.AsyncClient(
        transport=httpx.MockTransport(fake_server.handle),
        base_url=TEST_BASE_URL,
    )
    async with SingleFlightTransport(client, "/api") as single_flight:
        yield single_flight
