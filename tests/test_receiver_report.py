import pytest

from rtcstream.rtcp.common_header import CommonHeader, RtcpParseError
from rtcstream.rtcp.receiver_report import ReceiverReport
from rtcstream.rtcp.report_block import ReportBlock


def _serialize(report, max_length=1500):
    buffer = bytearray()
    assert report.create(buffer, max_length, lambda data: None) is True
    return bytes(buffer)


def test_empty_report_wire_format():
    data = _serialize(ReceiverReport(sender_ssrc=0x12345678))
    assert data == b"\x80\xc9\x00\x01\x12\x34\x56\x78"


def test_block_length_matches_serialised_size():
    block = ReportBlock(source_ssrc=1)
    report = ReceiverReport(7, [block, block])
    data = _serialize(report)
    assert report.block_length() == len(data)
    assert report.block_length() == 8 + 2 * ReportBlock.LENGTH


def test_round_trip():
    blocks = [
        ReportBlock(
            source_ssrc=0xCAFEBABE,
            fraction_lost=25,
            packets_lost=-3,
            extended_highest_sequence_number=70000,
            jitter=120,
            last_sr=0x11112222,
            delay_since_last_sr=65536,
        ),
        ReportBlock(source_ssrc=99, packets_lost=4096),
    ]
    data = _serialize(ReceiverReport(sender_ssrc=0xFEEDF00D, report_blocks=blocks))
    header = CommonHeader.parse(data)
    assert header.packet_type == ReceiverReport.PACKET_TYPE
    assert header.count == 2
    parsed = ReceiverReport()
    parsed.parse(header)
    assert parsed.sender_ssrc == 0xFEEDF00D
    assert parsed.report_blocks == blocks


def test_parse_rejects_missing_blocks():
    header = CommonHeader.parse(b"\x81\xc9\x00\x01\x00\x00\x00\x01")
    with pytest.raises(RtcpParseError):
        ReceiverReport().parse(header)


def test_too_many_blocks():
    with pytest.raises(ValueError):
        ReceiverReport(1, [ReportBlock()] * 32)


def test_create_does_not_fit_empty_buffer():
    buffer = bytearray()
    assert ReceiverReport(1).create(buffer, 4, lambda data: None) is False
    assert buffer == bytearray()


def test_create_flushes_previous_packets():
    flushed = []
    previous = _serialize(ReceiverReport(1))
    buffer = bytearray(previous)
    report = ReceiverReport(2, [ReportBlock(source_ssrc=3)])
    assert report.create(buffer, report.block_length(), flushed.append) is True
    assert flushed == [previous]
    assert len(buffer) == report.block_length()