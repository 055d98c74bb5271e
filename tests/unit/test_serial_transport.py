# pylint: disable=missing-module-docstring,missing-function-docstring

import asyncio
import threading
from typing import Any

import pytest
import serial

from adapters.transport.base import TransportIoError
from adapters.transport.serial_transport import SerialTransport


class StalledPort:
    """
    Serial handle whose write() waits until `release` is set.

    read() returns nothing until closed, like an idle link with a timeout.
    """

    def __init__(self) -> None:
        self.is_open = True
        self.in_waiting = 0
        self.release = threading.Event()
        self.flushed = threading.Event()
        self.fail_writes = False
        self.written: list[bytes] = []

    def read(self, _size: int) -> bytes:
        self.release.wait(0.01)
        return b""

    def write(self, data: bytes) -> int:
        self.release.wait(5)
        if self.fail_writes:
            raise serial.SerialTimeoutException("Write timeout")
        self.written.append(data)
        return len(data)

    def flush(self) -> None:
        self.flushed.set()

    def close(self) -> None:
        self.is_open = False
        self.release.set()


class RecordingListener:
    def __init__(self) -> None:
        self.chunks: list[bytes] = []
        self.errors: list[str] = []
        self.failed = threading.Event()

    def on_bytes(self, chunk: bytes) -> None:
        self.chunks.append(chunk)

    def on_io_error(self, reason: str) -> None:
        self.errors.append(reason)
        self.failed.set()


@pytest.fixture
def port(monkeypatch: pytest.MonkeyPatch) -> StalledPort:
    stalled = StalledPort()

    def serial_for_url(_url: str, **_kwargs: Any) -> StalledPort:
        return stalled

    monkeypatch.setattr(serial, "serial_for_url", serial_for_url)
    return stalled


def open_transport(listener: RecordingListener) -> SerialTransport:
    transport = SerialTransport()
    transport.attach(listener)
    asyncio.run(transport.connect("stalled://"))
    return transport


def test_write_returns_while_the_port_is_busy(port: StalledPort) -> None:
    transport = open_transport(RecordingListener())

    transport.write(b"AT\r\n")
    transport.write(b"ATI\r\n")
    assert port.written == []

    port.release.set()
    assert port.flushed.wait(1)
    transport.close()

    assert port.written[0] == b"AT\r\n"


def test_failed_write_is_reported_to_the_listener(port: StalledPort) -> None:
    listener = RecordingListener()
    transport = open_transport(listener)
    port.fail_writes = True
    port.release.set()

    transport.write(b"x")

    assert listener.failed.wait(1)
    assert listener.errors == ["Write timeout"]
    transport.close()


def test_write_after_close_fails_fast(port: StalledPort) -> None:
    transport = open_transport(RecordingListener())

    transport.close()
    transport.close()

    assert port.is_open is False
    with pytest.raises(TransportIoError):
        transport.write(b"x")


def test_close_with_a_stalled_write_does_not_report_an_error(port: StalledPort) -> None:
    listener = RecordingListener()
    transport = open_transport(listener)

    transport.write(b"x")
    transport.detach()
    transport.close()

    assert listener.errors == []
