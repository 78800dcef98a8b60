"""Parsing of the header shared by all RTCP packets."""

from __future__ import annotations

from dataclasses import dataclass

HEADER_SIZE_BYTES = 4
_RTP_VERSION = 2


class RtcpParseError(ValueError):
    """An RTCP packet could not be parsed."""


@dataclass(frozen=True)
class CommonHeader:
    """One RTCP packet inside a compound packet."""

    count_or_fmt: int
    packet_type: int
    payload: bytes
    padding_size: int = 0

    @classmethod
    def parse(cls, buffer: bytes) -> CommonHeader:
        """Parse the RTCP packet at the start of ``buffer``."""
        data = bytes(buffer)
        if len(data) < HEADER_SIZE_BYTES:
            raise RtcpParseError(
                f"invalid rtcp packet, buffer is not enough, len: {len(data)}"
            )

        version = data[0] >> 6
        if version != _RTP_VERSION:
            raise RtcpParseError(f"invalid rtcp packet, version is not {_RTP_VERSION}")

        has_padding = bool(data[0] & 0x20)
        count_or_fmt = data[0] & 0x1F
        packet_type = data[1]
        payload_size = int.from_bytes(data[2:4], "big") * 4

        if len(data) < payload_size + HEADER_SIZE_BYTES:
            raise RtcpParseError(
                f"invalid rtcp packet, buffer is not enough, payload_size: {payload_size}"
            )

        body = data[HEADER_SIZE_BYTES:HEADER_SIZE_BYTES + payload_size]
        padding_size = 0
        if has_padding:
            if payload_size == 0:
                raise RtcpParseError(
                    "invalid rtcp packet, has padding, but payload_size is 0"
                )
            padding_size = body[-1]
            if padding_size == 0:
                raise RtcpParseError(
                    "invalid rtcp packet, has padding, but padding_size is 0"
                )
            if padding_size > payload_size:
                raise RtcpParseError("invalid rtcp packet, padding exceeds payload")
            body = body[:payload_size - padding_size]

        return cls(count_or_fmt, packet_type, body, padding_size)

    @property
    def count(self) -> int:
        return self.count_or_fmt

    @property
    def fmt(self) -> int:
        return self.count_or_fmt

    @property
    def payload_size(self) -> int:
        return len(self.payload)

    @property
    def packet_size(self) -> int:
        """Bytes taken by this packet; the next packet of a compound starts here."""
        return HEADER_SIZE_BYTES + len(self.payload) + self.padding_size