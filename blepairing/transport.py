"""Byte-stream transports between an HCI host and a Bluetooth controller."""

from __future__ import annotations

import threading
import time
from abc import ABC, abstractmethod
from typing import Callable, Optional, Protocol

DEFAULT_UART_BAUDRATE = 912600
SLOW_UART_BAUDRATE = 119600
RX_BUFFER_SIZE = 256
STREAM_BUFFER_SIZE = 258
MAX_OUTGOING_CHUNK = 256
_POLL_INTERVAL = 0.001


def _poll_until(predicate: Callable[[], bool], timeout: float) -> bool:
    """Poll ``predicate`` until it holds or ``timeout`` milliseconds have passed."""
    start = time.monotonic()
    while (time.monotonic() - start) * 1000 < timeout:
        if predicate():
            return True
        time.sleep(_POLL_INTERVAL)
    return predicate()


class HCITransport(ABC):
    """A transport carrying HCI packets to the controller and bytes back."""

    @abstractmethod
    def begin(self) -> bool:
        """Start the transport; return whether it came up."""

    @abstractmethod
    def end(self) -> None:
        """Stop the transport."""

    @abstractmethod
    def wait(self, timeout) -> bool:
        """Wait up to ``timeout`` milliseconds for received data; return whether any is ready."""

    @abstractmethod
    def available(self) -> int:
        """Number of received bytes ready to be read."""

    @abstractmethod
    def peek(self) -> Optional[int]:
        """The next received byte without consuming it, or None."""

    @abstractmethod
    def read(self) -> Optional[int]:
        """Consume and return the next received byte, or None."""

    @abstractmethod
    def write(self, data) -> int:
        """Send a packet; return the number of bytes accepted."""

    def __enter__(self):
        if not self.begin():
            raise ConnectionError(f"{type(self).__name__} failed to start")
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.end()


class SerialPort(Protocol):
    """The part of a serial port interface the UART transport relies on."""

    baudrate: int
    is_open: bool
    in_waiting: int

    def open(self) -> None: ...

    def close(self) -> None: ...

    def read(self, size: int = 1) -> bytes: ...

    def write(self, data: bytes) -> Optional[int]: ...

    def flush(self) -> None: ...


class UartTransport(HCITransport):
    """HCI over a serial line to an external controller."""

    def __init__(self, port: SerialPort, baudrate: int = DEFAULT_UART_BAUDRATE) -> None:
        self.port = port
        self.baudrate = baudrate
        self._peeked = b""

    def begin(self) -> bool:
        self.port.baudrate = self.baudrate
        if not self.port.is_open:
            self.port.open()
        return True

    def end(self) -> None:
        self.port.close()
        self._peeked = b""

    def wait(self, timeout) -> bool:
        return _poll_until(lambda: self.available() > 0, timeout)

    def available(self) -> int:
        return len(self._peeked) + self.port.in_waiting

    def peek(self) -> Optional[int]:
        if not self._peeked and self.port.in_waiting:
            self._peeked = self.port.read(1)
        return self._peeked[0] if self._peeked else None

    def read(self) -> Optional[int]:
        if self._peeked:
            value, self._peeked = self._peeked[0], b""
            return value
        if not self.port.in_waiting:
            return None
        chunk = self.port.read(1)
        return chunk[0] if chunk else None

    def write(self, data) -> int:
        data = bytes(data)
        result = self.port.write(data)
        self.port.flush()
        return len(data) if result is None else result


class HCIDriver(Protocol):
    """A controller driver that takes typed packets and pushes received bytes back."""

    def initialize(self) -> Optional[bool]: ...

    def terminate(self) -> None: ...

    def write(self, packet_type: int, payload: bytes) -> int: ...


class BufferedTransport(HCITransport):
    """HCI through an in-process driver, with received bytes kept in a bounded buffer.

    The driver delivers bytes by calling :meth:`handle_rx_data`; a chunk that does
    not fit in the remaining space is dropped whole.
    """

    def __init__(self, driver: HCIDriver, capacity: int = RX_BUFFER_SIZE) -> None:
        self.driver = driver
        self.capacity = capacity
        self._rx = bytearray()
        self._lock = threading.Lock()
        self._rx_event = threading.Event()
        self._begun = False

    @property
    def begun(self) -> bool:
        return self._begun

    def begin(self) -> bool:
        with self._lock:
            self._rx.clear()
        if self.driver.initialize() is False:
            return False
        self._begun = True
        return True

    def end(self) -> None:
        self.driver.terminate()
        self._begun = False

    def wait(self, timeout) -> bool:
        if self.available():
            return True
        self._rx_event.wait(timeout / 1000)
        self._rx_event.clear()
        return self.available() > 0

    def available(self) -> int:
        with self._lock:
            return len(self._rx)

    def peek(self) -> Optional[int]:
        with self._lock:
            return self._rx[0] if self._rx else None

    def read(self) -> Optional[int]:
        with self._lock:
            if not self._rx:
                return None
            value = self._rx[0]
            del self._rx[0]
            return value

    def write(self, data) -> int:
        if not self._begun:
            return 0
        data = bytes(data)
        if not data:
            raise ValueError("an HCI packet needs at least its type byte")
        if len(data) - 1 > 0xFF:
            raise ValueError(f"packet payload too long: {len(data) - 1} bytes")
        return self.driver.write(data[0], data[1:])

    def handle_rx_data(self, data) -> bool:
        """Store bytes from the driver; return False if they were dropped for lack of room."""
        data = bytes(data)
        with self._lock:
            if self.capacity - len(self._rx) < len(data):
                return False
            self._rx.extend(data)
        self._rx_event.set()
        return True


class _StreamBuffer:
    """A bounded byte stream whose writers block while it is full and readers while empty."""

    def __init__(self, capacity: int) -> None:
        self.capacity = capacity
        self._buffer = bytearray()
        self._cond = threading.Condition()

    def __len__(self) -> int:
        with self._cond:
            return len(self._buffer)

    def send(self, data: bytes) -> int:
        view = memoryview(bytes(data))
        sent = 0
        with self._cond:
            while sent < len(view):
                self._cond.wait_for(lambda: len(self._buffer) < self.capacity)
                room = self.capacity - len(self._buffer)
                chunk = view[sent:sent + room]
                self._buffer.extend(chunk)
                sent += len(chunk)
                self._cond.notify_all()
        return sent

    def receive(self, max_len: int) -> bytes:
        with self._cond:
            self._cond.wait_for(lambda: len(self._buffer) > 0)
            chunk = bytes(self._buffer[:max_len])
            del self._buffer[:max_len]
            self._cond.notify_all()
            return chunk


class VirtualTransport(HCITransport):
    """HCI to a controller living in the same process, through two blocking stream buffers.

    The controller side feeds received packets with :meth:`deliver` and collects
    the host's packets with :meth:`take_outgoing`.
    """

    def __init__(self, buffer_size: int = STREAM_BUFFER_SIZE) -> None:
        self.buffer_size = buffer_size
        self._received: Optional[_StreamBuffer] = None
        self._outgoing: Optional[_StreamBuffer] = None

    def _buffers(self) -> tuple[_StreamBuffer, _StreamBuffer]:
        if self._received is None or self._outgoing is None:
            raise RuntimeError("transport not started")
        return self._received, self._outgoing

    def begin(self) -> bool:
        self._received = _StreamBuffer(self.buffer_size)
        self._outgoing = _StreamBuffer(self.buffer_size)
        return True

    def end(self) -> None:
        self._received = None
        self._outgoing = None

    def wait(self, timeout) -> bool:
        self._buffers()
        return _poll_until(lambda: self.available() > 0, timeout)

    def available(self) -> int:
        received, _ = self._buffers()
        return len(received)

    def peek(self) -> Optional[int]:
        """Peeking is not supported by this transport; always None."""
        return None

    def read(self) -> Optional[int]:
        """Block until a byte has been received and return it."""
        received, _ = self._buffers()
        chunk = received.receive(1)
        return chunk[0] if chunk else None

    def write(self, data) -> int:
        """Queue a packet for the controller, blocking while the buffer is full."""
        _, outgoing = self._buffers()
        return outgoing.send(bytes(data))

    def deliver(self, data) -> int:
        """Controller side: queue received bytes for the host, blocking while full."""
        received, _ = self._buffers()
        return received.send(bytes(data))

    def take_outgoing(self) -> bytes:
        """Controller side: block until the host has written, then take up to 256 bytes."""
        _, outgoing = self._buffers()
        return outgoing.receive(MAX_OUTGOING_CHUNK)