"""Shared RTP/RTCP definitions and packet counters."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import IntFlag

from rtcstream.rtp_packet import RtpPacket

IP_PACKET_SIZE = 1500


class RtcpPacketType(IntFlag):
    REPORT = 0x0001
    SR = 0x0002
    RR = 0x0004


@dataclass
class RtpPacketCounter:
    """Byte and packet totals for a stream of RTP packets."""

    header_bytes: int = 0
    payload_bytes: int = 0
    padding_bytes: int = 0
    packets: int = 0

    @classmethod
    def from_packet(cls, packet: RtpPacket) -> RtpPacketCounter:
        return cls(
            header_bytes=packet.header_size,
            payload_bytes=packet.payload_size,
            padding_bytes=packet.padding_size,
            packets=1,
        )

    def add(self, other: RtpPacketCounter) -> None:
        self.header_bytes += other.header_bytes
        self.payload_bytes += other.payload_bytes
        self.padding_bytes += other.padding_bytes
        self.packets += other.packets

    def subtract(self, other: RtpPacketCounter) -> None:
        self.header_bytes -= other.header_bytes
        self.payload_bytes -= other.payload_bytes
        self.padding_bytes -= other.padding_bytes
        self.packets -= other.packets

    def add_packet(self, packet: RtpPacket) -> None:
        self.header_bytes += packet.header_size
        self.payload_bytes += packet.payload_size
        self.padding_bytes += packet.padding_size
        self.packets += 1


@dataclass
class StreamDataCounter:
    """Counters for transmitted and retransmitted packets of one stream."""

    transmitted: RtpPacketCounter = field(default_factory=RtpPacketCounter)
    retransmitted: RtpPacketCounter = field(default_factory=RtpPacketCounter)