# pylint: disable=missing-module-docstring,missing-function-docstring

import asyncio

import pytest

from adapters.transport.base import (
    Transport,
    TransportConnectError,
    TransportIoError,
    TransportListener,
)


class FakeTransport(Transport):
    """
    In-memory transport.

    connect() succeeds unless connect_error is set; it blocks while gate is
    set and not yet released. Inbound bytes are injected with emit().
    """

    def __init__(self) -> None:
        self.listener: TransportListener | None = None
        self.connect_error: str | None = None
        self.fail_writes = False
        self.gate: asyncio.Event | None = None
        self.identities: list[str] = []
        self.writes: list[bytes] = []
        self.close_calls = 0
        self.is_open = False

    def attach(self, listener: TransportListener) -> None:
        self.listener = listener

    def detach(self) -> None:
        self.listener = None

    async def connect(self, identity: str) -> None:
        self.identities.append(identity)
        if self.gate is not None:
            await self.gate.wait()
        if self.connect_error is not None:
            raise TransportConnectError(self.connect_error)
        self.is_open = True

    def write(self, data: bytes) -> None:
        if self.fail_writes or not self.is_open:
            raise TransportIoError("write failed")
        self.writes.append(data)

    def close(self) -> None:
        self.close_calls += 1
        self.is_open = False

    # Test helpers

    def emit(self, chunk: bytes) -> None:
        assert self.listener is not None
        self.listener.on_bytes(chunk)

    def fail_read(self, reason: str) -> None:
        assert self.listener is not None
        self.listener.on_io_error(reason)


async def settle(rounds: int = 10) -> None:
    """Let scheduled callbacks and tasks run."""
    for _ in range(rounds):
        await asyncio.sleep(0)


@pytest.fixture
def transport() -> FakeTransport:
    return FakeTransport()
