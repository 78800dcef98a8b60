"""Generic NACK feedback messages (RFC 4585, section 6.2.1)."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, List

from rtcstream.rtcp.common_header import CommonHeader, RtcpParseError
from rtcstream.rtcp.packet import HEADER_SIZE, PacketReadyCallback, create_header
from rtcstream.rtcp.rtpfb import COMMON_FEEDBACK_LENGTH, Rtpfb

NACK_ITEM_LENGTH = 4


@dataclass(frozen=True)
class _PackedNack:
    first_pid: int
    bitmask: int


def _pack(packet_ids: List[int]) -> List[_PackedNack]:
    packed: List[_PackedNack] = []
    pos = 0
    while pos < len(packet_ids):
        first = packet_ids[pos]
        bitmask = 0
        pos += 1
        while pos < len(packet_ids):
            shift = (packet_ids[pos] - first - 1) & 0xFFFF
            if shift > 15:
                break
            bitmask |= 1 << shift
            pos += 1
        packed.append(_PackedNack(first, bitmask))
    return packed


def _unpack(packed: Iterable[_PackedNack]) -> List[int]:
    ids: List[int] = []
    for item in packed:
        ids.append(item.first_pid)
        ids.extend(
            (item.first_pid + 1 + bit) & 0xFFFF
            for bit in range(16)
            if item.bitmask >> bit & 1
        )
    return ids


class Nack(Rtpfb):
    """A request to retransmit lost RTP packets."""

    FEEDBACK_MESSAGE_TYPE = 1

    def __init__(
        self, sender_ssrc: int = 0, media_ssrc: int = 0, packet_ids: Iterable[int] = ()
    ) -> None:
        super().__init__(sender_ssrc, media_ssrc)
        self._packet_ids = [pid & 0xFFFF for pid in packet_ids]
        self._packed = _pack(self._packet_ids)

    @property
    def packet_ids(self) -> List[int]:
        return list(self._packet_ids)

    def parse(self, header: CommonHeader) -> None:
        """Read a NACK from a parsed RTCP packet."""
        if header.payload_size < COMMON_FEEDBACK_LENGTH + NACK_ITEM_LENGTH:
            raise RtcpParseError(
                f"payload length {header.payload_size} is too small for nack"
            )
        payload = header.payload
        self.parse_common_feedback(payload)

        item_count = (header.payload_size - COMMON_FEEDBACK_LENGTH) // NACK_ITEM_LENGTH
        self._packed = []
        for index in range(item_count):
            start = COMMON_FEEDBACK_LENGTH + index * NACK_ITEM_LENGTH
            self._packed.append(
                _PackedNack(
                    int.from_bytes(payload[start:start + 2], "big"),
                    int.from_bytes(payload[start + 2:start + 4], "big"),
                )
            )
        self._packet_ids = _unpack(self._packed)

    def block_length(self) -> int:
        return HEADER_SIZE + COMMON_FEEDBACK_LENGTH + len(self._packed) * NACK_ITEM_LENGTH

    def create(
        self, buffer: bytearray, max_length: int, callback: PacketReadyCallback
    ) -> bool:
        if not self._packed:
            return False
        while len(buffer) + self.block_length() > max_length:
            if not self.on_buffer_full(buffer, callback):
                return False

        buffer += create_header(
            self.FEEDBACK_MESSAGE_TYPE, self.PACKET_TYPE, self.header_length()
        )
        buffer += self._common_feedback_bytes()
        for item in self._packed:
            buffer += item.first_pid.to_bytes(2, "big") + item.bitmask.to_bytes(2, "big")
        return True