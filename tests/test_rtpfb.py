import pytest

from rtcstream.rtcp.common_header import RtcpParseError
from rtcstream.rtcp.rtpfb import Rtpfb


class _Feedback(Rtpfb):
    def block_length(self):
        return 12

    def create(self, buffer, max_length, callback):
        buffer += self._common_feedback_bytes()
        return True


def test_parse_common_feedback():
    feedback = _Feedback()
    Rtpfb.parse_common_feedback(feedback, b"\x11\x22\x33\x44\x55\x66\x77\x88\x00")
    assert feedback.sender_ssrc == 0x11223344
    assert feedback.media_ssrc == 0x55667788


def test_common_feedback_round_trip():
    source = _Feedback(sender_ssrc=0xDEADBEEF, media_ssrc=42)
    buffer = bytearray()
    assert source.create(buffer, 1500, lambda data: None) is True
    parsed = _Feedback()
    Rtpfb.parse_common_feedback(parsed, bytes(buffer))
    assert (parsed.sender_ssrc, parsed.media_ssrc) == (0xDEADBEEF, 42)


def test_short_payload_is_rejected():
    with pytest.raises(RtcpParseError):
        Rtpfb.parse_common_feedback(_Feedback(), b"\x00\x01\x02")