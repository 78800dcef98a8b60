"""RTP/RTCP module tying packet statistics to the RTCP sender and receiver."""

from __future__ import annotations

from typing import Callable, Optional

from rtcstream.rtcp_receiver import RtcpReceiver
from rtcstream.rtcp_sender import FeedbackState, RtcpSender
from rtcstream.rtp_packet import RtpPacket
from rtcstream.rtp_rtcp_defines import RtcpPacketType, RtpPacketCounter, StreamDataCounter
from rtcstream.rtp_rtcp_interface import RtcpMode, RtpRtcpConfig

Task = Callable[[], None]
Scheduler = Callable[[int, Task], None]
"""Runs a task after the given number of milliseconds."""


def _delay_ms_for(duration_us: int) -> int:
    """Round a delay in microseconds up to whole milliseconds."""
    return -(-duration_us // 1000)


class ModuleRtpRtcpImpl:
    """Keeps RTP send statistics and drives RTCP reporting for one stream.

    ``scheduler`` is used to run delayed RTCP checks; without one, reports
    are only considered when a frame is sent.
    """

    def __init__(self, config: RtpRtcpConfig, scheduler: Optional[Scheduler] = None) -> None:
        self._config = config
        self._scheduler = scheduler
        self._rtp_stats = StreamDataCounter()
        self._rtx_rtp_stats = StreamDataCounter()
        self._rtcp_sender = RtcpSender(config, self._schedule_next_rtcp_send)
        self._rtcp_receiver = RtcpReceiver(config)

    def update_rtp_stats(self, packet: RtpPacket, is_rtx: bool, is_retransmit: bool) -> None:
        """Count a sent packet in the media or RTX statistics."""
        stream_counter = self._rtx_rtp_stats if is_rtx else self._rtp_stats
        counter = RtpPacketCounter.from_packet(packet)
        if is_retransmit:
            stream_counter.retransmitted.add(counter)
        stream_counter.transmitted.add(counter)

    def set_rtcp_status(self, mode: RtcpMode) -> None:
        self._rtcp_sender.set_rtcp_status(mode)

    def set_sending_status(self, sending: bool) -> None:
        self._rtcp_sender.set_sending_status(sending)

    def on_sending_rtp_frame(
        self, rtp_timestamp: int, capture_time_ms: int, forced_report: bool
    ) -> None:
        """Note a frame going out and send a report if one is due."""
        capture_time = capture_time_ms if capture_time_ms > 0 else None
        self._rtcp_sender.set_last_rtp_timestamp(rtp_timestamp, capture_time)

        if self._rtcp_sender.time_to_send_rtcp_packet(forced_report):
            self._rtcp_sender.send_rtcp(self.feedback_state, RtcpPacketType.REPORT)

    def incoming_rtcp_packet(self, packet: bytes) -> None:
        """Handle a compound RTCP packet from the remote side."""
        self._rtcp_receiver.incoming_rtcp_packet(packet)

    @property
    def feedback_state(self) -> FeedbackState:
        """Totals of what has been sent, for sender reports."""
        state = FeedbackState()
        if not self._config.receiver_only:
            state.packets_sent = (
                self._rtp_stats.transmitted.packets + self._rtx_rtp_stats.transmitted.packets
            )
            state.media_bytes_sent = (
                self._rtp_stats.transmitted.payload_bytes
                + self._rtx_rtp_stats.transmitted.payload_bytes
            )
        return state

    def _now_us(self) -> int:
        clock = self._config.clock
        assert clock is not None
        return clock.now_us()

    def _schedule_next_rtcp_send(self, duration_ms: int) -> None:
        if duration_ms == 0:
            self._maybe_send_rtcp()
            return
        execute_time_us = self._now_us() + duration_ms * 1000
        self._schedule_maybe_send_rtcp_at_or_after(execute_time_us, duration_ms * 1000)

    def _maybe_send_rtcp(self) -> None:
        if self._rtcp_sender.time_to_send_rtcp_packet():
            self._rtcp_sender.send_rtcp(self.feedback_state, RtcpPacketType.REPORT)

    def _schedule_maybe_send_rtcp_at_or_after(
        self, execute_time_us: int, duration_us: int
    ) -> None:
        if self._scheduler is None:
            return

        def task() -> None:
            now_us = self._now_us()
            if now_us >= execute_time_us:
                self._maybe_send_rtcp()
                return
            self._schedule_maybe_send_rtcp_at_or_after(execute_time_us, execute_time_us - now_us)

        self._scheduler(_delay_ms_for(duration_us), task)