import struct

import pytest

from rtcstream.rtcp.common_header import CommonHeader
from rtcstream.rtcp.packet import HEADER_SIZE
from rtcstream.rtcp.report_block import ReportBlock
from rtcstream.rtcp.sender_report import SENDER_BASE_LENGTH, SenderReport
from rtcstream.timing import NtpTime


def _report() -> SenderReport:
    return SenderReport(
        sender_ssrc=0x01020304,
        ntp_time=NtpTime(0xAABBCCDD, 0x11223344),
        rtp_timestamp=123456,
        send_packet_count=42,
        send_packet_octet=9999,
    )


def test_block_length_without_report_blocks():
    assert _report().block_length() == HEADER_SIZE + SENDER_BASE_LENGTH


def test_block_length_counts_report_blocks():
    sr = SenderReport(report_blocks=[ReportBlock(source_ssrc=1), ReportBlock(source_ssrc=2)])
    assert sr.block_length() == HEADER_SIZE + SENDER_BASE_LENGTH + 2 * ReportBlock.LENGTH


def test_create_round_trip_through_common_header():
    sr = _report()
    buffer = bytearray()
    flushed = []
    assert sr.create(buffer, 1500, flushed.append) is True
    assert flushed == []
    assert len(buffer) == sr.block_length()

    header = CommonHeader.parse(bytes(buffer))
    assert header.packet_type == SenderReport.PACKET_TYPE
    assert header.count == 0
    assert header.packet_size == len(buffer)
    assert struct.unpack(">IIIIII", header.payload) == (
        0x01020304,
        0xAABBCCDD,
        0x11223344,
        123456,
        42,
        9999,
    )


def test_header_bytes():
    buffer = bytearray()
    sr = _report()
    sr.create(buffer, 1500, lambda data: None)
    assert buffer[0] == 0x80
    assert buffer[1] == 200
    assert int.from_bytes(buffer[2:4], "big") == sr.header_length()


def test_report_blocks_are_written():
    block = ReportBlock(source_ssrc=0x55, fraction_lost=4, packets_lost=-2, jitter=17)
    sr = SenderReport(sender_ssrc=7, report_blocks=[block])
    buffer = bytearray()
    assert sr.create(buffer, 1500, lambda data: None)
    header = CommonHeader.parse(bytes(buffer))
    assert header.count == 1
    parsed = ReportBlock.parse(header.payload[SENDER_BASE_LENGTH:])
    assert parsed == block


def test_full_buffer_is_flushed_first():
    buffer = bytearray(b"x" * 10)
    flushed = []
    sr = _report()
    assert sr.create(buffer, sr.block_length() + 5, flushed.append) is True
    assert flushed == [b"x" * 10]
    assert len(buffer) == sr.block_length()


def test_too_small_for_an_empty_buffer():
    buffer = bytearray()
    flushed = []
    sr = _report()
    assert sr.create(buffer, sr.block_length() - 1, flushed.append) is False
    assert buffer == bytearray()
    assert flushed == []


def test_too_many_report_blocks():
    with pytest.raises(ValueError):
        SenderReport(report_blocks=[ReportBlock()] * 32)