"""In-memory backend honouring the found.as wire contract, for tests."""

from __future__ import annotations

import asyncio
import time
from dataclasses import dataclass, field
from typing import Any

import cbor2
import httpx
from cryptography.exceptions import InvalidSignature
from cryptography.hazmat.primitives.asymmetric.ed25519 import Ed25519PublicKey

from foundas.services.envelope_service import OpCode
from foundas.services.identity_service import SIGNATURE_LENGTH

FRESHNESS_WINDOW_SECONDS = 300


@dataclass
class StoredPath:
    owner: bytes
    private: bytes
    public: bytes


@dataclass
class FakeFoundServer:
    """Verifies signed envelopes and stores records per path."""

    freshness_window: float = FRESHNESS_WINDOW_SECONDS
    paths: dict[str, StoredPath] = field(default_factory=dict)
    requests: list[tuple[OpCode, str]] = field(default_factory=list)
    arrivals: int = 0
    _holds: list[asyncio.Event] = field(default_factory=list)
    _failures: list[httpx.Response | Exception] = field(default_factory=list)

    def hold_next(self) -> asyncio.Event:
        """Park the next request until the returned event is set."""
        event = asyncio.Event()
        self._holds.append(event)
        return event

    def fail_next(self, failure: httpx.Response | Exception) -> None:
        """Answer the next request with *failure* (a response or a raised error)."""
        self._failures.append(failure)

    def published(self, path: str) -> dict[str, Any]:
        return cbor2.loads(self.paths[path].public)

    def reads(self) -> list[str]:
        return [path for op, path in self.requests if op is OpCode.READ]

    async def wait_for_arrivals(self, count: int) -> None:
        """Yield until *count* requests have reached the server."""
        while self.arrivals < count:
            await asyncio.sleep(0)

    async def handle(self, request: httpx.Request) -> httpx.Response:
        self.arrivals += 1
        hold = self._holds.pop(0) if self._holds else None
        if hold is not None:
            await hold.wait()
        if self._failures:
            failure = self._failures.pop(0)
            if isinstance(failure, Exception):
                raise failure
            return failure
        return self._process(request.content)

    def _process(self, body: bytes) -> httpx.Response:
        op_code, public_key, signed = cbor2.loads(body)
        signature, message = signed[:SIGNATURE_LENGTH], signed[SIGNATURE_LENGTH:]
        try:
            Ed25519PublicKey.from_public_bytes(public_key).verify(signature, message)
        except (InvalidSignature, ValueError):
            return httpx.Response(400, text="bad signature")
        timestamp, path, *fields = cbor2.loads(message)
        if abs(time.time() - timestamp) > self.freshness_window:
            return httpx.Response(400, text="stale request")

        op = OpCode(op_code)
        self.requests.append((op, path))
        stored = self.paths.get(path)
        if op is OpCode.READ:
            if stored is None:
                return httpx.Response(404, text="not found")
            if stored.owner != public_key:
                return httpx.Response(403, text="forbidden")
            return httpx.Response(200, content=stored.private)
        if op is OpCode.WRITE:
            if stored is not None and stored.owner != public_key:
                return httpx.Response(403, text="forbidden")
            private, public = fields
            self.paths[path] = StoredPath(owner=public_key, private=private, public=public)
            return httpx.Response(200, content=b"")
        if stored is None:
            return httpx.Response(404, text="not found")
        if stored.owner != public_key:
            return httpx.Response(403, text="forbidden")
        (stored.owner,) = fields
        return httpx.Response(200, content=b"")
