"""Transport-layer RTCP feedback messages (RFC 4585)."""

from __future__ import annotations

from rtcstream.rtcp.common_header import RtcpParseError
from rtcstream.rtcp.packet import RtcpPacket

COMMON_FEEDBACK_LENGTH = 8


class Rtpfb(RtcpPacket):
    """Base of the transport-layer feedback packets (packet type 205)."""

    PACKET_TYPE = 205

    def __init__(self, sender_ssrc: int = 0, media_ssrc: int = 0) -> None:
        super().__init__(sender_ssrc)
        self.media_ssrc = media_ssrc

    def parse_common_feedback(self, payload: bytes) -> None:
        """Read the sender and media source SSRCs from the feedback payload."""
        data = bytes(payload)
        if len(data) < COMMON_FEEDBACK_LENGTH:
            raise RtcpParseError(
                f"feedback payload needs {COMMON_FEEDBACK_LENGTH} bytes, got {len(data)}"
            )
        self.sender_ssrc = int.from_bytes(data[0:4], "big")
        self.media_ssrc = int.from_bytes(data[4:8], "big")

    def _common_feedback_bytes(self) -> bytes:
        return (self.sender_ssrc & 0xFFFFFFFF).to_bytes(4, "big") + (
            self.media_ssrc & 0xFFFFFFFF
        ).to_bytes(4, "big")