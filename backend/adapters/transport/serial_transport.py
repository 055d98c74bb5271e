"""
Serial transport (pyserial).

Bluetooth SPP links appear on Linux as RFCOMM serial devices (/dev/rfcommN,
bound with `rfcomm bind`), so a plain serial port is the transport. Any
pyserial URL works as identity as well: `loop://` for a local echo,
`socket://host:port` for a TCP bridge.

Threading:
- connect() opens the port in a worker thread (asyncio.to_thread)
- one daemon reader thread per open link delivers chunks to the listener
- one daemon writer thread per open link drains the outbox; write() only
  enqueues, and a failed write reaches the listener as on_io_error
- close() signals both threads and returns without joining them
"""

from __future__ import annotations

import asyncio
import queue
import threading
import time

import serial

from adapters.transport.base import (
    Transport,
    TransportConnectError,
    TransportIoError,
    TransportListener,
)
from observability.logger import log_event
from spec import (
    SERIAL_DEFAULT_BAUDRATE,
    SERIAL_READ_TIMEOUT_S,
    SERIAL_WRITE_TIMEOUT_S,
)


def _now_ms() -> int:
    return time.time_ns() // 1_000_000


def _close_abandoned_port(opening: asyncio.Future[serial.SerialBase]) -> None:
    if opening.cancelled() or opening.exception() is not None:
        return
    opening.result().close()


class SerialTransport(Transport):
    """
    pyserial-backed transport.

    Design:
    - One serial handle, one reader and one writer thread per connect()
    - close() stops both threads and releases the port; safe to repeat
    - Listener swaps are guarded by a lock so neither thread delivers to a
      detached listener
    """

    def __init__(self, *, baudrate: int = SERIAL_DEFAULT_BAUDRATE) -> None:
        self._baudrate = baudrate
        self._lock = threading.Lock()
        self._listener: TransportListener | None = None
        self._ser: serial.SerialBase | None = None
        self._outbox: queue.Queue[bytes | None] | None = None
        self._stop = threading.Event()

    # ------------------------------------------------------------------
    # Listener lifecycle
    # ------------------------------------------------------------------

    def attach(self, listener: TransportListener) -> None:
        with self._lock:
            self._listener = listener

    def detach(self) -> None:
        with self._lock:
            self._listener = None

    # ------------------------------------------------------------------
    # Link lifecycle
    # ------------------------------------------------------------------

    async def connect(self, identity: str) -> None:
        opening = asyncio.ensure_future(asyncio.to_thread(self._open, identity))
        try:
            ser = await asyncio.shield(opening)
        except asyncio.CancelledError:
            # The worker thread cannot be interrupted; release its port when it finishes
            opening.add_done_callback(_close_abandoned_port)
            raise
        except (serial.SerialException, ValueError, OSError) as e:
            raise TransportConnectError(str(e)) from e

        outbox: queue.Queue[bytes | None] = queue.Queue()
        stop = threading.Event()
        with self._lock:
            self._ser = ser
            self._outbox = outbox
            self._stop = stop

        threading.Thread(
            target=self._read_loop,
            args=(ser, stop),
            name=f"serial-reader:{identity}",
            daemon=True,
        ).start()
        threading.Thread(
            target=self._write_loop,
            args=(ser, outbox, stop),
            name=f"serial-writer:{identity}",
            daemon=True,
        ).start()

        log_event({
            "ts_ms": _now_ms(),
            "event_type": "SERIAL_OPENED",
            "identity": identity,
            "baudrate": self._baudrate,
        })

    def _open(self, identity: str) -> serial.SerialBase:
        return serial.serial_for_url(
            identity,
            baudrate=self._baudrate,
            timeout=SERIAL_READ_TIMEOUT_S,
            write_timeout=SERIAL_WRITE_TIMEOUT_S,
        )

    def write(self, data: bytes) -> None:
        with self._lock:
            ser = self._ser
            outbox = self._outbox

        if ser is None or outbox is None or not ser.is_open:
            raise TransportIoError("port not open")

        outbox.put(data)

    def close(self) -> None:
        with self._lock:
            ser, self._ser = self._ser, None
            outbox, self._outbox = self._outbox, None
            self._stop.set()

        if outbox is not None:
            outbox.put(None)

        if ser is not None:
            try:
                ser.close()
            except (serial.SerialException, OSError) as e:
                log_event({
                    "ts_ms": _now_ms(),
                    "event_type": "SERIAL_CLOSE_ERROR",
                    "error": str(e),
                })

    # ------------------------------------------------------------------
    # Worker threads
    # ------------------------------------------------------------------

    def _read_loop(self, ser: serial.SerialBase, stop: threading.Event) -> None:
        while not stop.is_set():
            try:
                data = ser.read(ser.in_waiting or 1)
            except (serial.SerialException, OSError, TypeError) as e:
                # close() from another thread also lands here; not an error then
                if not stop.is_set():
                    self._deliver_error(str(e))
                return

            if data:
                self._deliver_bytes(bytes(data))

    def _write_loop(
        self,
        ser: serial.SerialBase,
        outbox: queue.Queue[bytes | None],
        stop: threading.Event,
    ) -> None:
        while True:
            data = outbox.get()
            if data is None or stop.is_set():
                return

            try:
                ser.write(data)
                ser.flush()
            except (serial.SerialException, OSError) as e:
                if not stop.is_set():
                    self._deliver_error(str(e))
                return

    def _deliver_bytes(self, chunk: bytes) -> None:
        with self._lock:
            listener = self._listener
        if listener is not None:
            listener.on_bytes(chunk)

    def _deliver_error(self, reason: str) -> None:
        with self._lock:
            listener = self._listener
        if listener is not None:
            listener.on_io_error(reason)
