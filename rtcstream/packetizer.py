"""Splitting encoded video frames into RTP payloads (H.264, RFC 6184)."""

from __future__ import annotations

import dataclasses
from abc import ABC, abstractmethod
from collections import deque
from dataclasses import dataclass, field
from enum import Enum, IntEnum
from typing import Deque, List, Sequence

from rtcstream.rtp_packet import RtpPacket

_NALU_SHORT_START_SEQUENCE_SIZE = 3
_FU_A_HEADER_SIZE = 2
_NALU_HEADER_SIZE = 1
_LENGTH_FIELD_SIZE = 2

_F_BIT = 0x80
_NRI_MASK = 0x60
_TYPE_MASK = 0x1F

_S_BIT = 0x80
_E_BIT = 0x40


class VideoCodecType(Enum):
    GENERIC = "generic"
    VP8 = "VP8"
    VP9 = "VP9"
    AV1 = "AV1"
    H264 = "H264"


class NaluType(IntEnum):
    SLICE = 1
    IDR = 5
    SEI = 6
    SPS = 7
    PPS = 8
    STAP_A = 24
    FU_A = 28


@dataclass
class NaluIndex:
    """Where a NAL unit sits in an Annex B byte stream."""

    start_offset: int
    payload_start_offset: int
    payload_size: int = 0


@dataclass
class PayloadLimits:
    """Payload capacity of an RTP packet and the room kept back in some of them."""

    max_payload_len: int = 1200
    single_packet_reduction_len: int = 0
    first_packet_reduction_len: int = 0
    last_packet_reduction_len: int = 0


@dataclass
class PacketizerConfig:
    limits: PayloadLimits = field(default_factory=PayloadLimits)


def split_about_equal(payload_size: int, limits: PayloadLimits) -> List[int]:
    """Split ``payload_size`` bytes into packets of nearly equal size.

    Returns an empty list when the limits leave no room for payload.
    """
    if limits.max_payload_len >= payload_size + limits.single_packet_reduction_len:
        return [payload_size]

    if (
        limits.max_payload_len - limits.first_packet_reduction_len < 1
        or limits.max_payload_len - limits.last_packet_reduction_len < 1
    ):
        return []

    total_bytes = (
        payload_size
        + limits.first_packet_reduction_len
        + limits.last_packet_reduction_len
    )
    num_packets_left = -(-total_bytes // limits.max_payload_len)
    if num_packets_left == 1:
        num_packets_left = 2

    bytes_per_packet = total_bytes // num_packets_left
    num_larger_packets = total_bytes % num_packets_left

    result: List[int] = []
    remain_data = payload_size
    first_packet = True
    while remain_data > 0:
        # The last ``num_larger_packets`` packets carry one byte more.
        if num_packets_left == num_larger_packets:
            bytes_per_packet += 1
        current = bytes_per_packet

        if first_packet:
            if current - limits.first_packet_reduction_len > 1:
                current -= limits.first_packet_reduction_len
            else:
                current = 1

        current = min(current, remain_data)

        # Leave something for the last packet.
        if num_packets_left == 2 and current == remain_data:
            current -= 1

        remain_data -= current
        num_packets_left -= 1
        result.append(current)
        first_packet = False

    return result


def find_nalu_indices(buffer: bytes) -> List[NaluIndex]:
    """Locate the NAL units of an Annex B stream (3- or 4-byte start codes)."""
    data = bytes(buffer)
    sequences: List[NaluIndex] = []
    if len(data) < _NALU_SHORT_START_SEQUENCE_SIZE:
        return sequences

    end = len(data) - _NALU_SHORT_START_SEQUENCE_SIZE
    i = 0
    while i < end:
        third = data[i + 2]
        if third > 1:
            i += 3
        elif third == 1:
            if data[i] == 0 and data[i + 1] == 0:
                index = NaluIndex(i, i + 3)
                if index.start_offset > 0 and data[index.start_offset - 1] == 0:
                    index.start_offset -= 1
                if sequences:
                    previous = sequences[-1]
                    previous.payload_size = index.start_offset - previous.payload_start_offset
                sequences.append(index)
            i += 3
        else:
            i += 1

    if sequences:
        last = sequences[-1]
        last.payload_size = len(data) - last.payload_start_offset

    return sequences


class RtpPacketizer(ABC):
    """Turns one encoded frame into a sequence of RTP payloads."""

    @abstractmethod
    def num_packets(self) -> int:
        """Packets still to be produced."""

    @abstractmethod
    def next_packet(self, rtp_packet: RtpPacket) -> bool:
        """Fill ``rtp_packet`` with the next payload; False when none is left."""


@dataclass
class _PacketUnit:
    source_fragment: bytes
    first_fragment: bool
    last_fragment: bool
    aggregated: bool
    header: int


class RtpPacketizerH264(RtpPacketizer):
    """H.264 packetizer using single NAL unit, STAP-A and FU-A packets."""

    def __init__(self, payload: bytes, config: PacketizerConfig | None = None) -> None:
        self._config = config if config is not None else PacketizerConfig()
        data = bytes(payload)
        self._input_fragments: List[bytes] = [
            data[nalu.payload_start_offset:nalu.payload_start_offset + nalu.payload_size]
            for nalu in find_nalu_indices(data)
        ]
        self._packets: Deque[_PacketUnit] = deque()
        self._num_packets_left = 0

        if not self._generate_packets():
            self._num_packets_left = 0
            self._packets.clear()

    def num_packets(self) -> int:
        return self._num_packets_left

    def next_packet(self, rtp_packet: RtpPacket) -> bool:
        if not self._packets:
            return False

        packet = self._packets[0]
        if packet.first_fragment and packet.last_fragment:
            rtp_packet.set_payload(packet.source_fragment)
            self._packets.popleft()
        elif packet.aggregated:
            self._next_aggregated_packet(rtp_packet)
        else:
            self._next_fragment_packet(rtp_packet)

        self._num_packets_left -= 1
        rtp_packet.marker = not self._packets
        return True

    @staticmethod
    def _header_of(fragment: bytes) -> int:
        return fragment[0] if fragment else 0

    def _generate_packets(self) -> bool:
        limits = self._config.limits
        count = len(self._input_fragments)
        i = 0
        while i < count:
            fragment_len = len(self._input_fragments[i])
            capacity = limits.max_payload_len
            if count == 1:
                capacity -= limits.single_packet_reduction_len
            elif i == 0:
                capacity -= limits.first_packet_reduction_len
            elif i + 1 == count:
                capacity -= limits.last_packet_reduction_len

            if fragment_len > capacity:
                if not self._packetize_fu_a(i):
                    return False
                i += 1
            else:
                i = self._packetize_stap_a(i)
        return True

    def _packetize_fu_a(self, fragment_index: int) -> bool:
        fragment = self._input_fragments[fragment_index]
        count = len(self._input_fragments)
        limits = dataclasses.replace(self._config.limits)
        limits.max_payload_len -= _FU_A_HEADER_SIZE

        if count != 1:
            if fragment_index == count - 1:
                limits.single_packet_reduction_len = limits.last_packet_reduction_len
            elif fragment_index == 0:
                limits.single_packet_reduction_len = limits.first_packet_reduction_len
            else:
                limits.single_packet_reduction_len = 0

        if fragment_index != 0:
            limits.first_packet_reduction_len = 0
        if fragment_index != count - 1:
            limits.last_packet_reduction_len = 0

        payload_sizes = split_about_equal(len(fragment) - _NALU_HEADER_SIZE, limits)
        if not payload_sizes:
            return False

        header = self._header_of(fragment)
        offset = _NALU_HEADER_SIZE
        last = len(payload_sizes) - 1
        for i, length in enumerate(payload_sizes):
            self._packets.append(
                _PacketUnit(fragment[offset:offset + length], i == 0, i == last, False, header)
            )
            offset += length

        self._num_packets_left += len(payload_sizes)
        return True

    def _packetize_stap_a(self, fragment_index: int) -> int:
        limits = self._config.limits
        count = len(self._input_fragments)
        payload_size_left = limits.max_payload_len
        if count == 1:
            payload_size_left -= limits.single_packet_reduction_len
        elif fragment_index == 0:
            payload_size_left -= limits.first_packet_reduction_len

        aggregated_fragments = 0
        fragment_header_length = 0
        fragment = self._input_fragments[fragment_index]
        self._num_packets_left += 1

        def payload_size_needed() -> int:
            size = len(fragment) + fragment_header_length
            if count != 1 and fragment_index == count - 1:
                size += limits.last_packet_reduction_len
            return size

        while payload_size_left >= payload_size_needed():
            self._packets.append(
                _PacketUnit(
                    fragment, aggregated_fragments == 0, False, True, self._header_of(fragment)
                )
            )
            payload_size_left -= len(fragment) + fragment_header_length

            fragment_header_length = _LENGTH_FIELD_SIZE
            if aggregated_fragments == 0:
                fragment_header_length += _NALU_HEADER_SIZE + _LENGTH_FIELD_SIZE
            aggregated_fragments += 1

            fragment_index += 1
            if fragment_index == count:
                break
            fragment = self._input_fragments[fragment_index]

        self._packets[-1].last_fragment = True
        return fragment_index

    def _next_aggregated_packet(self, rtp_packet: RtpPacket) -> None:
        packet = self._packets[0]
        payload = bytearray([(packet.header & (_F_BIT | _NRI_MASK)) | NaluType.STAP_A])
        while packet.aggregated:
            fragment = packet.source_fragment
            payload += len(fragment).to_bytes(_LENGTH_FIELD_SIZE, "big")
            payload += fragment
            self._packets.popleft()
            if packet.last_fragment or not self._packets:
                break
            packet = self._packets[0]
        rtp_packet.set_payload(bytes(payload))

    def _next_fragment_packet(self, rtp_packet: RtpPacket) -> None:
        packet = self._packets.popleft()
        fu_indicator = (packet.header & (_F_BIT | _NRI_MASK)) | NaluType.FU_A
        fu_header = packet.header & _TYPE_MASK
        if packet.first_fragment:
            fu_header |= _S_BIT
        if packet.last_fragment:
            fu_header |= _E_BIT
        rtp_packet.set_payload(bytes((fu_indicator, fu_header)) + packet.source_fragment)


def create_packetizer(
    codec: VideoCodecType, payload: bytes, config: PacketizerConfig | None = None
) -> RtpPacketizer:
    """A packetizer for ``codec``; only H.264 is supported."""
    if codec is VideoCodecType.H264:
        return RtpPacketizerH264(payload, config)
    raise ValueError(f"no packetizer for codec {codec}")