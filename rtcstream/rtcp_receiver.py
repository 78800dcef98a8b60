"""Handling of RTCP packets received from the remote side."""

from __future__ import annotations

import logging
from typing import List, Optional

from rtcstream.rtcp.common_header import CommonHeader, RtcpParseError
from rtcstream.rtcp.nack import Nack
from rtcstream.rtcp.receiver_report import ReceiverReport
from rtcstream.rtcp.report_block import ReportBlock
from rtcstream.rtcp.rtpfb import Rtpfb
from rtcstream.rtp_rtcp_interface import MediaType, RtpRtcpConfig
from rtcstream.rtp_utils import compact_ntp, compact_ntp_rtt_to_ms

logger = logging.getLogger(__name__)


class RtcpReceiver:
    """Parses compound RTCP packets and reports what they say to an observer."""

    def __init__(self, config: RtpRtcpConfig) -> None:
        if config.clock is None:
            raise ValueError("the RTCP receiver needs a clock")
        self._clock = config.clock
        self._audio = config.audio
        self._observer = config.rtp_rtcp_module_observer
        self._num_skipped_packets = 0
        self._registered_ssrcs: List[int] = [config.local_media_ssrc]
        self._last_received_rb_us: Optional[int] = None

    @property
    def num_skipped_packets(self) -> int:
        return self._num_skipped_packets

    @property
    def _media_type(self) -> MediaType:
        return MediaType.AUDIO if self._audio else MediaType.VIDEO

    def incoming_rtcp_packet(self, packet: bytes) -> None:
        """Handle one compound RTCP packet."""
        data = bytes(packet)
        if not data:
            logger.warning("rtcp packet is empty")
            return
        self._parse_compound_packet(data)

    def _parse_compound_packet(self, data: bytes) -> None:
        offset = 0
        while offset < len(data):
            try:
                block = CommonHeader.parse(data[offset:])
            except RtcpParseError as exc:
                if offset == 0:
                    logger.warning("parse rtcp packet failed: %s", exc)
                    return
                self._num_skipped_packets += 1
                break

            if block.packet_type == ReceiverReport.PACKET_TYPE:
                self._handle_receiver_report(block)
            elif block.packet_type == Rtpfb.PACKET_TYPE:
                if block.fmt == Nack.FEEDBACK_MESSAGE_TYPE:
                    self._handle_nack(block)
                else:
                    self._num_skipped_packets += 1
            else:
                logger.warning("rtcp packet not handled, packet_type: %d", block.packet_type)

            offset += block.packet_size

    def _handle_receiver_report(self, block: CommonHeader) -> None:
        report = ReceiverReport()
        try:
            report.parse(block)
        except RtcpParseError:
            self._num_skipped_packets += 1
            return
        for report_block in report.report_blocks:
            self._handle_report_block(report_block, report.sender_ssrc)

    def _handle_report_block(self, report_block: ReportBlock, remote_ssrc: int) -> None:
        if report_block.source_ssrc not in self._registered_ssrcs:
            return

        self._last_received_rb_us = self._clock.now_us()

        send_ntp_time = report_block.last_sr
        if send_ntp_time == 0:
            return
        receive_ntp_time = compact_ntp(self._clock.to_ntp(self._last_received_rb_us))
        rtt_ntp = (receive_ntp_time - send_ntp_time - report_block.delay_since_last_sr) & 0xFFFFFFFF
        rtt_ms = compact_ntp_rtt_to_ms(rtt_ntp)

        if self._observer is not None:
            self._observer.on_network_info(
                rtt_ms,
                report_block.packets_lost,
                report_block.fraction_lost,
                report_block.jitter,
            )

    def _handle_nack(self, block: CommonHeader) -> None:
        nack = Nack()
        try:
            nack.parse(block)
        except RtcpParseError:
            self._num_skipped_packets += 1
            return
        if self._observer is not None:
            self._observer.on_nack_received(self._media_type, nack.packet_ids)