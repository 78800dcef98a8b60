"""RTCP report blocks (RFC 3550)."""

from __future__ import annotations

from dataclasses import dataclass

from rtcstream.rtcp.common_header import RtcpParseError


@dataclass(frozen=True)
class ReportBlock:
    """Reception statistics about one source."""

    LENGTH = 24

    source_ssrc: int = 0
    fraction_lost: int = 0
    packets_lost: int = 0
    extended_highest_sequence_number: int = 0
    jitter: int = 0
    last_sr: int = 0
    delay_since_last_sr: int = 0

    @classmethod
    def parse(cls, buffer: bytes) -> ReportBlock:
        """Parse a 24-byte report block from the start of ``buffer``."""
        data = bytes(buffer)
        if len(data) < cls.LENGTH:
            raise RtcpParseError(f"report block needs {cls.LENGTH} bytes, got {len(data)}")

        def u32(offset: int) -> int:
            return int.from_bytes(data[offset:offset + 4], "big")

        return cls(
            source_ssrc=u32(0),
            fraction_lost=data[4],
            packets_lost=int.from_bytes(data[5:8], "big", signed=True),
            extended_highest_sequence_number=u32(8),
            jitter=u32(12),
            last_sr=u32(16),
            delay_since_last_sr=u32(20),
        )