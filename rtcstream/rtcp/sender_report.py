"""RTCP sender reports (RFC 3550, packet type 200)."""

from __future__ import annotations

import struct
from typing import Iterable, List, Optional

from rtcstream.rtcp.packet import HEADER_SIZE, PacketReadyCallback, RtcpPacket, create_header
from rtcstream.rtcp.receiver_report import MAX_REPORT_BLOCKS, _report_block_bytes
from rtcstream.rtcp.report_block import ReportBlock
from rtcstream.timing import NtpTime

SENDER_BASE_LENGTH = 24


class SenderReport(RtcpPacket):
    """Transmission statistics from a participant that sends media."""

    PACKET_TYPE = 200

    def __init__(
        self,
        sender_ssrc: int = 0,
        ntp_time: Optional[NtpTime] = None,
        rtp_timestamp: int = 0,
        send_packet_count: int = 0,
        send_packet_octet: int = 0,
        report_blocks: Iterable[ReportBlock] = (),
    ) -> None:
        super().__init__(sender_ssrc)
        self.ntp_time = ntp_time if ntp_time is not None else NtpTime()
        self.rtp_timestamp = rtp_timestamp
        self.send_packet_count = send_packet_count
        self.send_packet_octet = send_packet_octet
        self._report_blocks = list(report_blocks)
        if len(self._report_blocks) > MAX_REPORT_BLOCKS:
            raise ValueError(f"at most {MAX_REPORT_BLOCKS} report blocks fit in one report")

    @property
    def report_blocks(self) -> List[ReportBlock]:
        return list(self._report_blocks)

    def block_length(self) -> int:
        return HEADER_SIZE + SENDER_BASE_LENGTH + len(self._report_blocks) * ReportBlock.LENGTH

    def create(
        self, buffer: bytearray, max_length: int, callback: PacketReadyCallback
    ) -> bool:
        while len(buffer) + self.block_length() > max_length:
            # An empty buffer that is still too small means the packet never fits.
            if not self.on_buffer_full(buffer, callback):
                return False

        buffer += create_header(len(self._report_blocks), self.PACKET_TYPE, self.header_length())
        buffer += struct.pack(
            ">IIIIII",
            self.sender_ssrc & 0xFFFFFFFF,
            self.ntp_time.seconds & 0xFFFFFFFF,
            self.ntp_time.fractions & 0xFFFFFFFF,
            self.rtp_timestamp & 0xFFFFFFFF,
            self.send_packet_count & 0xFFFFFFFF,
            self.send_packet_octet & 0xFFFFFFFF,
        )
        for block in self._report_blocks:
            buffer += _report_block_bytes(block)
        return True