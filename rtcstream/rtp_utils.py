"""Classification of RTP/RTCP packets and compact NTP helpers."""

from __future__ import annotations

from enum import Enum

from rtcstream.timing import NtpTime

_MIN_RTP_PACKET_LENGTH = 12
_MIN_RTCP_PACKET_LENGTH = 4
_RTP_VERSION = 2


class RtpPacketType(Enum):
    RTP = 0
    RTCP = 1
    UNKNOWN = 2


def _has_correct_version(packet: bytes) -> bool:
    return (packet[0] >> 6) == _RTP_VERSION


def _payload_type_is_reserved_for_rtcp(pt: int) -> bool:
    return 64 <= pt < 96


def is_rtcp_packet(packet: bytes) -> bool:
    """Whether ``packet`` looks like an RTCP packet."""
    return (
        len(packet) > _MIN_RTCP_PACKET_LENGTH
        and _has_correct_version(packet)
        and _payload_type_is_reserved_for_rtcp(packet[1] & 0x7F)
    )


def is_rtp_packet(packet: bytes) -> bool:
    """Whether ``packet`` looks like an RTP packet."""
    return (
        len(packet) > _MIN_RTP_PACKET_LENGTH
        and _has_correct_version(packet)
        and not _payload_type_is_reserved_for_rtcp(packet[1] & 0x7F)
    )


def infer_rtp_packet_type(packet: bytes) -> RtpPacketType:
    """Tell RTCP, RTP and unrecognised packets apart."""
    if is_rtcp_packet(packet):
        return RtpPacketType.RTCP
    if is_rtp_packet(packet):
        return RtpPacketType.RTP
    return RtpPacketType.UNKNOWN


def compact_ntp(ntp_time: NtpTime) -> int:
    """The middle 32 bits of an NTP timestamp."""
    return ((ntp_time.seconds << 16) | (ntp_time.fractions >> 16)) & 0xFFFFFFFF


def compact_ntp_rtt_to_ms(compact_ntp_interval: int) -> int:
    """Convert a compact NTP interval to milliseconds, at least 1."""
    if compact_ntp_interval > 0x80000000:
        return 1
    divisor = 1 << 16
    ms = (compact_ntp_interval * 1000 + divisor // 2) // divisor
    return max(ms, 1)