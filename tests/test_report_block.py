import struct

import pytest

from rtcstream.rtcp.common_header import RtcpParseError
from rtcstream.rtcp.report_block import ReportBlock


def _block(ssrc, fraction, lost_bytes, ext_seq, jitter, lsr, dlsr):
    return (
        struct.pack(">IB", ssrc, fraction)
        + lost_bytes
        + struct.pack(">IIII", ext_seq, jitter, lsr, dlsr)
    )


def test_parse_fields():
    data = _block(0x11223344, 25, (300).to_bytes(3, "big"), 70000, 12, 0xABCD0000, 65536)
    block = ReportBlock.parse(data)
    assert block == ReportBlock(
        source_ssrc=0x11223344,
        fraction_lost=25,
        packets_lost=300,
        extended_highest_sequence_number=70000,
        jitter=12,
        last_sr=0xABCD0000,
        delay_since_last_sr=65536,
    )


def test_packets_lost_is_signed_24_bit():
    data = _block(1, 0, b"\xff\xff\xff", 0, 0, 0, 0)
    assert ReportBlock.parse(data).packets_lost == -1


def test_extra_bytes_are_ignored():
    data = _block(5, 1, (2).to_bytes(3, "big"), 3, 4, 5, 6)
    assert ReportBlock.parse(data + b"trailing") == ReportBlock.parse(data)


def test_exactly_one_block_length_parses():
    block = ReportBlock.parse(bytes(24))
    assert block.source_ssrc == 0
    assert block.packets_lost == 0
    assert block.delay_since_last_sr == 0


def test_short_buffer_raises():
    with pytest.raises(RtcpParseError):
        ReportBlock.parse(bytes(23))