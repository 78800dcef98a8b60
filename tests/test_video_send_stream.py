import pytest

from rtcstream.rtcp.common_header import CommonHeader
from rtcstream.rtcp.nack import Nack
from rtcstream.rtcp.sender_report import SenderReport
from rtcstream.rtp_packet import RtpPacketToSend
from rtcstream.rtp_rtcp_interface import MediaType, RtcpMode, RtpRtcpModuleObserver
from rtcstream.timing import SimulatedClock
from rtcstream.video_send_stream import (
    RtpConfig,
    RtxConfig,
    VideoSendStream,
    VideoSendStreamConfig,
    create_rtp_rtcp_module,
)

MEDIA_SSRC = 0x0A0B0C0D
RTX_SSRC = 0x01020304
REMOTE_SSRC = 0x55667788
START_US = 1_000_000


class RecordingObserver(RtpRtcpModuleObserver):
    def __init__(self):
        self.rtcp = []
        self.network = []
        self.nacks = []

    def on_local_rtcp_packet(self, media_type, data):
        self.rtcp.append((media_type, bytes(data)))

    def on_network_info(self, rtt_ms, packets_lost, fraction_lost, jitter):
        self.network.append((rtt_ms, packets_lost, fraction_lost, jitter))

    def on_nack_received(self, media_type, nack_list):
        self.nacks.append((media_type, list(nack_list)))


class RecordingScheduler:
    def __init__(self):
        self.tasks = []

    def __call__(self, delay_ms, task):
        self.tasks.append((delay_ms, task))


def make_config(observer):
    return VideoSendStreamConfig(
        rtp=RtpConfig(
            ssrc=MEDIA_SSRC,
            payload_type=107,
            rtx=RtxConfig(ssrc=RTX_SSRC, payload_type=99),
        ),
        rtp_rtcp_module_observer=observer,
    )


def make_media_packet(seq, payload, marker=True, timestamp=123456):
    packet = RtpPacketToSend()
    packet.payload_type = 107
    packet.ssrc = MEDIA_SSRC
    packet.sequence_number = seq
    packet.timestamp = timestamp
    packet.marker = marker
    packet.set_payload(payload)
    return packet


def test_rtx_packet_wraps_original():
    stream = VideoSendStream(SimulatedClock(START_US), make_config(RecordingObserver()))
    original = make_media_packet(1234, b"abc")
    rtx = stream.build_rtx_packet(original)
    assert rtx.ssrc == RTX_SSRC
    assert rtx.payload_type == 99
    assert rtx.sequence_number == 1000
    assert rtx.marker is True
    assert rtx.timestamp == original.timestamp
    assert rtx.payload == (1234).to_bytes(2, "big") + b"abc"


def test_rtx_sequence_numbers_increase():
    stream = VideoSendStream(SimulatedClock(START_US), make_config(RecordingObserver()))
    first = stream.build_rtx_packet(make_media_packet(1, b"x"))
    second = stream.build_rtx_packet(make_media_packet(2, b"y", marker=False))
    assert second.sequence_number == first.sequence_number + 1
    assert second.marker is False


def test_rtx_packet_too_large_raises():
    stream = VideoSendStream(SimulatedClock(START_US), make_config(RecordingObserver()))
    original = make_media_packet(7, bytes(1488))
    with pytest.raises(ValueError):
        stream.build_rtx_packet(original)


def test_deliver_rtcp_nack_reaches_observer():
    observer = RecordingObserver()
    stream = VideoSendStream(SimulatedClock(START_US), make_config(observer))
    buffer = bytearray()
    assert Nack(REMOTE_SSRC, MEDIA_SSRC, [100, 101, 110]).create(buffer, 1500, lambda d: None)
    stream.deliver_rtcp(bytes(buffer))
    assert observer.nacks == [(MediaType.VIDEO, [100, 101, 110])]


def test_stream_sends_sender_report_with_stats():
    clock = SimulatedClock(START_US)
    observer = RecordingObserver()
    stream = VideoSendStream(clock, make_config(observer))
    packet = make_media_packet(10, bytes(80))
    stream.update_rtp_stats(packet, False, False)
    stream.update_rtp_stats(stream.build_rtx_packet(packet), True, True)
    clock.advance_ms(450)
    stream.on_sending_rtp_frame(180000, clock.now_ms(), True)

    assert len(observer.rtcp) == 1
    media_type, data = observer.rtcp[0]
    assert media_type is MediaType.VIDEO
    header = CommonHeader.parse(data)
    assert header.packet_type == SenderReport.PACKET_TYPE
    payload = header.payload
    assert int.from_bytes(payload[0:4], "big") == MEDIA_SSRC
    assert int.from_bytes(payload[12:16], "big") == 180000
    assert int.from_bytes(payload[16:20], "big") == 2
    assert int.from_bytes(payload[20:24], "big") == 80 + 82


def test_stream_schedules_rtcp_through_scheduler():
    scheduler = RecordingScheduler()
    config = make_config(RecordingObserver())
    VideoSendStream(SimulatedClock(START_US), config, scheduler)
    assert len(scheduler.tasks) == 1
    assert 0 < scheduler.tasks[0][0] < config.rtcp_report_interval_ms


def test_create_rtp_rtcp_module_uses_media_ssrc():
    clock = SimulatedClock(START_US)
    observer = RecordingObserver()
    module = create_rtp_rtcp_module(clock, make_config(observer), None)
    module.set_rtcp_status(RtcpMode.COMPOUND)
    module.set_sending_status(True)
    module.update_rtp_stats(make_media_packet(3, bytes(20)), False, False)
    assert module.feedback_state.packets_sent == 1
    clock.advance_ms(450)
    module.on_sending_rtp_frame(9000, clock.now_ms(), True)
    header = CommonHeader.parse(observer.rtcp[0][1])
    assert int.from_bytes(header.payload[0:4], "big") == MEDIA_SSRC


def test_create_rtp_rtcp_module_requires_clock():
    with pytest.raises(ValueError):
        create_rtp_rtcp_module(None, make_config(None), None)