"""Outgoing video stream: RTP statistics, RTCP and retransmission packets."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Optional

from rtcstream.rtp_packet import RtpPacket, RtpPacketToSend
from rtcstream.rtp_rtcp_impl import ModuleRtpRtcpImpl, Scheduler
from rtcstream.rtp_rtcp_interface import RtcpMode, RtpRtcpConfig, RtpRtcpModuleObserver
from rtcstream.timing import Clock

_RTX_HEADER_SIZE = 2
_INITIAL_RTX_SEQUENCE_NUMBER = 1000


@dataclass
class RtxConfig:
    """Retransmission stream settings."""

    ssrc: int = 0
    payload_type: int = -1


@dataclass
class RtpConfig:
    """Media stream settings."""

    ssrc: int = 0
    payload_type: int = -1
    clock_rate: int = 90000
    rtx: RtxConfig = field(default_factory=RtxConfig)


@dataclass
class VideoSendStreamConfig:
    rtp: RtpConfig = field(default_factory=RtpConfig)
    rtcp_report_interval_ms: int = 1000
    rtp_rtcp_module_observer: Optional[RtpRtcpModuleObserver] = None


def create_rtp_rtcp_module(
    clock: Clock, config: VideoSendStreamConfig, scheduler: Optional[Scheduler] = None
) -> ModuleRtpRtcpImpl:
    """An RTP/RTCP module set up for sending the video stream in ``config``."""
    rtp_rtcp_config = RtpRtcpConfig(
        audio=False,
        receiver_only=False,
        clock=clock,
        local_media_ssrc=config.rtp.ssrc,
        payload_type=config.rtp.payload_type,
        rtcp_report_interval_ms=config.rtcp_report_interval_ms,
        clock_rate=config.rtp.clock_rate,
        rtp_rtcp_module_observer=config.rtp_rtcp_module_observer,
    )
    return ModuleRtpRtcpImpl(rtp_rtcp_config, scheduler)


class VideoSendStream:
    """Sends one video stream with compound RTCP and RTX retransmission."""

    def __init__(
        self,
        clock: Clock,
        config: VideoSendStreamConfig,
        scheduler: Optional[Scheduler] = None,
    ) -> None:
        self._config = config
        self._rtp_rtcp = create_rtp_rtcp_module(clock, config, scheduler)
        self._rtp_rtcp.set_rtcp_status(RtcpMode.COMPOUND)
        self._rtp_rtcp.set_sending_status(True)
        self._rtx_seq = _INITIAL_RTX_SEQUENCE_NUMBER

    def update_rtp_stats(self, packet: RtpPacket, is_rtx: bool, is_retransmit: bool) -> None:
        self._rtp_rtcp.update_rtp_stats(packet, is_rtx, is_retransmit)

    def on_sending_rtp_frame(
        self, rtp_timestamp: int, capture_time_ms: int, forced_report: bool
    ) -> None:
        self._rtp_rtcp.on_sending_rtp_frame(rtp_timestamp, capture_time_ms, forced_report)

    def deliver_rtcp(self, packet: bytes) -> None:
        """Hand an RTCP packet from the remote side to the stream."""
        self._rtp_rtcp.incoming_rtcp_packet(packet)

    def build_rtx_packet(self, packet: RtpPacket) -> RtpPacketToSend:
        """Wrap ``packet`` for retransmission on the RTX stream (RFC 4588).

        Raises ValueError when the wrapped payload does not fit in a packet.
        """
        rtx = self._config.rtp.rtx
        rtx_packet = RtpPacketToSend()
        rtx_packet.payload_type = rtx.payload_type
        rtx_packet.ssrc = rtx.ssrc
        rtx_packet.sequence_number = self._rtx_seq
        self._rtx_seq = (self._rtx_seq + 1) & 0xFFFF
        rtx_packet.marker = packet.marker
        rtx_packet.timestamp = packet.timestamp

        original_seq = packet.sequence_number.to_bytes(_RTX_HEADER_SIZE, "big")
        rtx_packet.set_payload(original_seq + packet.payload)
        return rtx_packet