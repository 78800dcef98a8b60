"""Base class and header writer for RTCP packets."""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Callable

PacketReadyCallback = Callable[[bytes], None]

HEADER_SIZE = 4
_VERSION_BITS = 2 << 6


def create_header(
    count_or_fmt: int, packet_type: int, block_length: int, padding: bool = False
) -> bytes:
    """The 4-byte RTCP common header; ``block_length`` is in 32-bit words minus one."""
    first = _VERSION_BITS | (0x20 if padding else 0) | (count_or_fmt & 0x1F)
    return bytes((first, packet_type & 0xFF)) + (block_length & 0xFFFF).to_bytes(2, "big")


class RtcpPacket(ABC):
    """An RTCP packet that can be appended to a compound packet buffer."""

    def __init__(self, sender_ssrc: int = 0) -> None:
        self.sender_ssrc = sender_ssrc

    @abstractmethod
    def block_length(self) -> int:
        """Size of the serialised packet in bytes, header included."""

    @abstractmethod
    def create(
        self, buffer: bytearray, max_length: int, callback: PacketReadyCallback
    ) -> bool:
        """Append this packet to ``buffer``, flushing through ``callback`` when full."""

    def on_buffer_full(self, buffer: bytearray, callback: PacketReadyCallback) -> bool:
        """Hand the compound packet built so far to ``callback`` and start a new one.

        Returns False when the buffer is empty: the packet cannot fit at all.
        """
        if not buffer:
            return False
        callback(bytes(buffer))
        buffer.clear()
        return True

    def header_length(self) -> int:
        """The length field of the header: 32-bit words after the header."""
        return (self.block_length() - HEADER_SIZE) // 4