"""Configuration and observer interface for the RTP/RTCP module."""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum
from typing import Optional, Sequence

from rtcstream.timing import Clock


class MediaType(Enum):
    AUDIO = "audio"
    VIDEO = "video"


class RtcpMode(Enum):
    OFF = 0
    COMPOUND = 1
    REDUCED_SIZE = 2


class RtpRtcpModuleObserver(ABC):
    """Receives what the RTP/RTCP module produces or learns."""

    @abstractmethod
    def on_local_rtcp_packet(self, media_type: MediaType, data: bytes) -> None:
        """A compound RTCP packet is ready to be sent."""

    @abstractmethod
    def on_network_info(
        self, rtt_ms: int, packets_lost: int, fraction_lost: int, jitter: int
    ) -> None:
        """Statistics from a received report block."""

    @abstractmethod
    def on_nack_received(self, media_type: MediaType, nack_list: Sequence[int]) -> None:
        """The remote side asked for these sequence numbers again."""


@dataclass
class RtpRtcpConfig:
    """Settings for one RTP/RTCP module."""

    audio: bool = False
    receiver_only: bool = False
    clock: Optional[Clock] = None
    local_media_ssrc: int = 0
    payload_type: int = -1
    clock_rate: int = 0
    rtcp_report_interval_ms: int = 0
    rtp_rtcp_module_observer: Optional[RtpRtcpModuleObserver] = None