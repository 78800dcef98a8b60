"""RTCP receiver reports (RFC 3550, packet type 201)."""

from __future__ import annotations

from typing import Iterable, List

from rtcstream.rtcp.common_header import CommonHeader, RtcpParseError
from rtcstream.rtcp.packet import HEADER_SIZE, PacketReadyCallback, RtcpPacket, create_header
from rtcstream.rtcp.report_block import ReportBlock

RR_BASE_LENGTH = 4
MAX_REPORT_BLOCKS = 31


def _report_block_bytes(block: ReportBlock) -> bytes:
    return b"".join(
        (
            (block.source_ssrc & 0xFFFFFFFF).to_bytes(4, "big"),
            bytes((block.fraction_lost & 0xFF,)),
            block.packets_lost.to_bytes(3, "big", signed=True),
            (block.extended_highest_sequence_number & 0xFFFFFFFF).to_bytes(4, "big"),
            (block.jitter & 0xFFFFFFFF).to_bytes(4, "big"),
            (block.last_sr & 0xFFFFFFFF).to_bytes(4, "big"),
            (block.delay_since_last_sr & 0xFFFFFFFF).to_bytes(4, "big"),
        )
    )


class ReceiverReport(RtcpPacket):
    """Reception statistics sent by a participant that is not sending media."""

    PACKET_TYPE = 201

    def __init__(self, sender_ssrc: int = 0, report_blocks: Iterable[ReportBlock] = ()) -> None:
        super().__init__(sender_ssrc)
        self._report_blocks = list(report_blocks)
        if len(self._report_blocks) > MAX_REPORT_BLOCKS:
            raise ValueError(f"at most {MAX_REPORT_BLOCKS} report blocks fit in one report")

    @property
    def report_blocks(self) -> List[ReportBlock]:
        return list(self._report_blocks)

    def parse(self, header: CommonHeader) -> None:
        """Read a receiver report from a parsed RTCP packet."""
        report_count = header.count
        needed = RR_BASE_LENGTH + report_count * ReportBlock.LENGTH
        if header.payload_size < needed:
            raise RtcpParseError(
                f"rr payload_size is not enough, payload_size: {header.payload_size}, "
                f"report_count: {report_count}"
            )
        payload = header.payload
        self.sender_ssrc = int.from_bytes(payload[0:4], "big")
        self._report_blocks = [
            ReportBlock.parse(payload[start:start + ReportBlock.LENGTH])
            for start in range(RR_BASE_LENGTH, needed, ReportBlock.LENGTH)
        ]

    def block_length(self) -> int:
        return HEADER_SIZE + RR_BASE_LENGTH + len(self._report_blocks) * ReportBlock.LENGTH

    def create(
        self, buffer: bytearray, max_length: int, callback: PacketReadyCallback
    ) -> bool:
        while len(buffer) + self.block_length() > max_length:
            if not self.on_buffer_full(buffer, callback):
                return False

        buffer += create_header(len(self._report_blocks), self.PACKET_TYPE, self.header_length())
        buffer += (self.sender_ssrc & 0xFFFFFFFF).to_bytes(4, "big")
        for block in self._report_blocks:
            buffer += _report_block_bytes(block)
        return True