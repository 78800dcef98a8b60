"""RTP packets with a fixed 12-byte header."""

from __future__ import annotations

import struct

DEFAULT_CAPACITY = 1500
FIXED_HEADER_SIZE = 12
RTP_VERSION = 2


class RtpPacket:
    """An RTP packet stored in a buffer of fixed capacity."""

    def __init__(self, capacity: int = DEFAULT_CAPACITY) -> None:
        if capacity < FIXED_HEADER_SIZE:
            raise ValueError("capacity is smaller than the RTP header")
        self._buffer = bytearray(capacity)
        self.clear()

    def clear(self) -> None:
        """Reset the packet to an empty one with only the version set."""
        self._marker = False
        self._payload_type = 0
        self._sequence_number = 0
        self._timestamp = 0
        self._ssrc = 0
        self._payload_offset = FIXED_HEADER_SIZE
        self._payload_size = 0
        self._padding_size = 0
        self._buffer[:FIXED_HEADER_SIZE] = bytes(FIXED_HEADER_SIZE)
        self._buffer[0] = RTP_VERSION << 6

    @property
    def marker(self) -> bool:
        return self._marker

    @marker.setter
    def marker(self, value: bool) -> None:
        self._marker = bool(value)
        if self._marker:
            self._buffer[1] |= 0x80
        else:
            self._buffer[1] &= 0x7F

    @property
    def payload_type(self) -> int:
        return self._payload_type

    @payload_type.setter
    def payload_type(self, value: int) -> None:
        self._payload_type = value & 0x7F
        self._buffer[1] = (self._buffer[1] & 0x80) | self._payload_type

    @property
    def sequence_number(self) -> int:
        return self._sequence_number

    @sequence_number.setter
    def sequence_number(self, value: int) -> None:
        self._sequence_number = value & 0xFFFF
        struct.pack_into(">H", self._buffer, 2, self._sequence_number)

    @property
    def timestamp(self) -> int:
        return self._timestamp

    @timestamp.setter
    def timestamp(self, value: int) -> None:
        self._timestamp = value & 0xFFFFFFFF
        struct.pack_into(">I", self._buffer, 4, self._timestamp)

    @property
    def ssrc(self) -> int:
        return self._ssrc

    @ssrc.setter
    def ssrc(self, value: int) -> None:
        self._ssrc = value & 0xFFFFFFFF
        struct.pack_into(">I", self._buffer, 8, self._ssrc)

    @property
    def payload(self) -> bytes:
        start = self._payload_offset
        return bytes(self._buffer[start:start + self._payload_size])

    @property
    def data(self) -> bytes:
        """The serialised packet."""
        return bytes(self._buffer[:self.size])

    @property
    def size(self) -> int:
        return self._payload_offset + self._payload_size + self._padding_size

    @property
    def capacity(self) -> int:
        return len(self._buffer)

    @property
    def free_capacity(self) -> int:
        return self.capacity - self.size

    @property
    def header_size(self) -> int:
        return self._payload_offset

    @property
    def payload_size(self) -> int:
        return self._payload_size

    @property
    def padding_size(self) -> int:
        return self._padding_size

    def set_payload_size(self, size: int) -> memoryview:
        """Resize the payload and return a writable view of it."""
        if size < 0 or self._payload_offset + size > self.capacity:
            raise ValueError("not enough space in buffer for payload")
        self._payload_size = size
        start = self._payload_offset
        return memoryview(self._buffer)[start:start + size]

    def allocate_payload(self, size: int) -> memoryview:
        """Reserve a zeroed payload of ``size`` bytes and return a view of it."""
        self.set_payload_size(0)
        view = self.set_payload_size(size)
        view[:] = bytes(size)
        return view

    def set_payload(self, payload: bytes) -> None:
        """Replace the payload with ``payload``."""
        data = bytes(payload)
        view = self.allocate_payload(len(data))
        view[:] = data


class RtpPacketToSend(RtpPacket):
    """An outgoing RTP packet."""