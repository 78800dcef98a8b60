"""Scheduling and building of outgoing RTCP reports."""

from __future__ import annotations

import logging
import random
from dataclasses import dataclass
from typing import Callable, Dict, Optional

from rtcstream.rtcp.packet import PacketReadyCallback
from rtcstream.rtcp.sender_report import SenderReport
from rtcstream.rtp_rtcp_defines import IP_PACKET_SIZE, RtcpPacketType
from rtcstream.rtp_rtcp_interface import MediaType, RtcpMode, RtpRtcpConfig

logger = logging.getLogger(__name__)

_DEFAULT_AUDIO_RTCP_INTERVAL_MS = 5000
_DEFAULT_VIDEO_RTCP_INTERVAL_MS = 1000
_RTCP_BEFORE_KEY_FRAME_MS = 100
_IPV4_UDP_OVERHEAD = 28


@dataclass
class FeedbackState:
    """What the RTP side has sent, for the sender report."""

    packets_sent: int = 0
    media_bytes_sent: int = 0


@dataclass(frozen=True)
class _RtcpContext:
    feedback_state: FeedbackState
    now_us: int


class _PacketSender:
    """Collects RTCP packets into compound packets of bounded size."""

    def __init__(self, callback: PacketReadyCallback, max_packet_size: int) -> None:
        self._callback = callback
        self._max_packet_size = max_packet_size
        self._buffer = bytearray()

    def append(self, packet: SenderReport) -> None:
        packet.create(self._buffer, self._max_packet_size, self._callback)

    def send(self) -> None:
        if self._buffer:
            self._callback(bytes(self._buffer))
            self._buffer.clear()


class RtcpSender:
    """Decides when RTCP reports are due and builds them.

    ``schedule_next_rtcp_send`` is called with the delay in milliseconds
    until the next report should be considered.
    """

    def __init__(
        self,
        config: RtpRtcpConfig,
        schedule_next_rtcp_send: Optional[Callable[[int], None]] = None,
    ) -> None:
        if config.clock is None:
            raise ValueError("the RTCP sender needs a clock")
        self._audio = config.audio
        self._clock = config.clock
        self._ssrc = config.local_media_ssrc
        self._clock_rate = config.clock_rate
        self._max_packet_size = IP_PACKET_SIZE - _IPV4_UDP_OVERHEAD
        self._observer = config.rtp_rtcp_module_observer
        self._schedule_next_rtcp_send = schedule_next_rtcp_send
        self._mode = RtcpMode.OFF
        default_interval = (
            _DEFAULT_AUDIO_RTCP_INTERVAL_MS if config.audio else _DEFAULT_VIDEO_RTCP_INTERVAL_MS
        )
        self._report_interval_ms = (
            config.rtcp_report_interval_ms
            if config.rtcp_report_interval_ms > 0
            else default_interval
        )
        # Report type -> whether the flag is dropped once it has been used.
        self._report_flags: Dict[int, bool] = {}
        self._sending = False
        self._random = random.Random(self._clock.now_ms())
        self._builders: Dict[int, Callable[[_RtcpContext, _PacketSender], None]] = {
            RtcpPacketType.SR: self._build_sr,
        }
        self._last_rtp_timestamp = 0
        self._last_frame_capture_time_ms: Optional[int] = None
        self._next_time_to_send_rtcp_us: Optional[int] = None

    @property
    def mode(self) -> RtcpMode:
        return self._mode

    @property
    def sending(self) -> bool:
        return self._sending

    def set_rtcp_status(self, mode: RtcpMode) -> None:
        """Switch RTCP mode; turning RTCP off is not allowed and is ignored."""
        if mode is RtcpMode.OFF:
            return
        if self._mode is RtcpMode.OFF:
            self._set_next_rtcp_send_evaluation_duration(self._report_interval_ms // 2)
        self._mode = mode

    def set_sending_status(self, sending: bool) -> None:
        self._sending = sending

    def set_last_rtp_timestamp(
        self, rtp_timestamp: int, last_frame_capture_time_ms: Optional[int] = None
    ) -> None:
        """Record the latest RTP timestamp and when its frame was captured."""
        self._last_rtp_timestamp = rtp_timestamp
        if last_frame_capture_time_ms is not None:
            self._last_frame_capture_time_ms = last_frame_capture_time_ms
        else:
            self._last_frame_capture_time_ms = self._clock.now_ms()

    def time_to_send_rtcp_packet(self, send_before_keyframe: bool = False) -> bool:
        """Whether the next report is due; False while RTCP has not been enabled."""
        if self._next_time_to_send_rtcp_us is None:
            return False
        now_us = self._clock.now_us()
        if not self._audio and send_before_keyframe:
            now_us += _RTCP_BEFORE_KEY_FRAME_MS * 1000
        return now_us >= self._next_time_to_send_rtcp_us

    def send_rtcp(self, feedback_state: FeedbackState, packet_type: int) -> bool:
        """Build and hand out a compound RTCP packet.

        Returns False when the packet cannot be sent yet because no RTP
        has gone out and compound mode requires a sender report.
        """
        media_type = MediaType.AUDIO if self._audio else MediaType.VIDEO

        def callback(data: bytes) -> None:
            if self._observer is not None:
                self._observer.on_local_rtcp_packet(media_type, data)

        sender = _PacketSender(callback, self._max_packet_size)
        result = self._compute_compound_rtcp_packet(feedback_state, packet_type, sender)
        sender.send()
        return result

    def _set_next_rtcp_send_evaluation_duration(self, duration_ms: int) -> None:
        self._next_time_to_send_rtcp_us = self._clock.now_us() + duration_ms * 1000
        if self._schedule_next_rtcp_send is not None:
            self._schedule_next_rtcp_send(duration_ms)

    def _compute_compound_rtcp_packet(
        self, feedback_state: FeedbackState, packet_type: int, sender: _PacketSender
    ) -> bool:
        self._set_flag(packet_type)

        if self._last_frame_capture_time_ms is None:
            # No RTP sent yet, so no sender report can be built.
            send_sr = self._consume_flag(RtcpPacketType.SR)
            send_report = self._consume_flag(RtcpPacketType.REPORT)
            if (send_sr or send_report) and self._all_volatile_flags_consumed():
                return True
            if self._sending and self._mode is RtcpMode.COMPOUND:
                return False

        context = _RtcpContext(feedback_state, self._clock.now_us())
        self._prepare_report()

        for flag_type, is_volatile in sorted(self._report_flags.items()):
            if is_volatile:
                del self._report_flags[flag_type]
            builder = self._builders.get(flag_type)
            if builder is None:
                logger.warning("could not find builder for rtcp_packet_type: %d", flag_type)
            else:
                builder(context, sender)

        return True

    def _set_flag(self, flag_type: int) -> None:
        self._report_flags.setdefault(int(flag_type), True)

    def _consume_flag(self, flag_type: int, forced: bool = False) -> bool:
        key = int(flag_type)
        if key not in self._report_flags:
            return False
        if self._report_flags[key] or forced:
            del self._report_flags[key]
        return True

    def _all_volatile_flags_consumed(self) -> bool:
        return not any(self._report_flags.values())

    def _prepare_report(self) -> None:
        self._consume_flag(RtcpPacketType.REPORT)
        self._set_flag(RtcpPacketType.SR if self._sending else RtcpPacketType.RR)

        minimal_interval_ms = self._report_interval_ms
        time_to_next_ms = self._random.randint(
            minimal_interval_ms // 2, minimal_interval_ms * 3 // 2
        )
        self._set_next_rtcp_send_evaluation_duration(time_to_next_ms)

    def _build_sr(self, context: _RtcpContext, sender: _PacketSender) -> None:
        # Extrapolate the RTP timestamp from the last frame to now.
        assert self._last_frame_capture_time_ms is not None
        elapsed_ms = (context.now_us + 500) // 1000 - self._last_frame_capture_time_ms
        rtp_timestamp = (
            self._last_rtp_timestamp + elapsed_ms * (self._clock_rate // 1000)
        ) & 0xFFFFFFFF

        report = SenderReport(
            sender_ssrc=self._ssrc,
            ntp_time=self._clock.to_ntp(context.now_us),
            rtp_timestamp=rtp_timestamp,
            send_packet_count=context.feedback_state.packets_sent,
            send_packet_octet=context.feedback_state.media_bytes_sent,
        )
        sender.append(report)