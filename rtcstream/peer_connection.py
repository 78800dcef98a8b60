"""A send-only peer connection: SDP answer, ICE state and video over RTP."""

from __future__ import annotations

import logging
import re
import secrets
import string
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, List, Optional, Protocol

from rtcstream.codec_info import SsrcGroup, StreamParams
from rtcstream.packetizer import PacketizerConfig, VideoCodecType, create_packetizer
from rtcstream.rtp_packet import RtpPacketToSend
from rtcstream.rtp_rtcp_impl import Scheduler
from rtcstream.rtp_rtcp_interface import MediaType, RtpRtcpModuleObserver
from rtcstream.rtp_utils import RtpPacketType, infer_rtp_packet_type
from rtcstream.session_description import (
    AudioContentDescription,
    Candidate,
    ContentGroup,
    IceParameters,
    MediaContentDescription,
    RtpDirection,
    SdpType,
    SessionDescription,
    TransportDescription,
    VideoContentDescription,
)
from rtcstream.timing import Clock, SystemClock
from rtcstream.video_send_stream import (
    RtpConfig,
    RtxConfig,
    VideoSendStream,
    VideoSendStreamConfig,
)

logger = logging.getLogger(__name__)

RTC_PACKET_CACHE_SIZE = 2048
_RTP_COMPONENT = 1
_INITIAL_VIDEO_SEQUENCE_NUMBER = 1000
_VIDEO_MS_TO_RTP = 90  # 90 kHz video clock
# Every packet goes out on the first (bundled) transport.
_SEND_TRANSPORT = "audio"

_RANDOM_ALPHABET = string.ascii_letters + string.digits + "+/"
_ICE_UFRAG_LENGTH = 4
_ICE_PWD_LENGTH = 24
_RANDOM_STRING_LENGTH = 16


class PeerConnectionState(Enum):
    NEW = "new"
    CONNECTING = "connecting"
    CONNECTED = "connected"
    DISCONNECTED = "disconnected"
    FAILED = "failed"
    CLOSED = "closed"


class IceTransportState(Enum):
    NEW = "new"
    CHECKING = "checking"
    CONNECTED = "connected"
    COMPLETED = "completed"
    DISCONNECTED = "disconnected"
    FAILED = "failed"
    CLOSED = "closed"


_ICE_TO_PC_STATE = {
    IceTransportState.NEW: PeerConnectionState.NEW,
    IceTransportState.CHECKING: PeerConnectionState.CONNECTING,
    IceTransportState.CONNECTED: PeerConnectionState.CONNECTED,
    IceTransportState.COMPLETED: PeerConnectionState.CONNECTED,
    IceTransportState.DISCONNECTED: PeerConnectionState.DISCONNECTED,
    IceTransportState.FAILED: PeerConnectionState.FAILED,
    IceTransportState.CLOSED: PeerConnectionState.CLOSED,
}


class SdpParseError(ValueError):
    """The remote session description could not be understood."""


class _IceAgent(Protocol):
    def create_ice_transport(self, mid: str, component: int) -> Any: ...

    def set_remote_ice_params(self, mid: str, component: int, params: IceParameters) -> Any: ...

    def add_remote_candidate(self, mid: str, component: int, candidate: Candidate) -> Any: ...

    def set_ice_params(self, mid: str, component: int, params: IceParameters) -> Any: ...

    def gathering_candidate(self) -> Any: ...

    def send_packet(self, transport_name: str, component: int, data: bytes) -> Any: ...


@dataclass
class RTCOfferAnswerOptions:
    send_audio: bool = True
    send_video: bool = True
    recv_audio: bool = True
    recv_video: bool = True
    use_rtp_mux: bool = True
    use_rtcp_mux: bool = True


@dataclass
class EncodedFrame:
    """An encoded H.264 frame in Annex B form.

    ``ts`` is the frame time in milliseconds; ``idr`` marks a key frame.
    """

    data: bytes
    ts: int = 0
    capture_time_ms: int = 0
    idr: bool = False


def _random_string(length: int) -> str:
    return "".join(secrets.choice(_RANDOM_ALPHABET) for _ in range(length))


def _random_id() -> int:
    return secrets.randbits(32)


def _tokenize(text: str, delimiter: str) -> List[str]:
    return [token for token in text.split(delimiter) if token]


def _atoi(text: str) -> int:
    match = re.match(r"\s*([+-]?\d+)", text)
    return int(match.group(1)) if match else 0


def _get_attribute(line: str) -> str:
    """The value of an ``a=name:value`` line, or an empty string."""
    fields = _tokenize(line, ":")
    if len(fields) != 2:
        logger.warning("get attribute failed: %s", line)
        return ""
    return fields[1]


def _parse_candidate(content: MediaContentDescription, line: str) -> None:
    if "a=candidate:" not in line:
        return
    value = _get_attribute(line)
    if not value:
        raise SdpParseError(f"parse candidate failed: {line}")
    fields = _tokenize(value, " ")
    if len(fields) < 8:
        raise SdpParseError(f"parse candidate failed: {line}")
    content.add_candidate(
        Candidate(
            foundation=fields[0],
            component=_atoi(fields[1]),
            protocol=fields[2],
            priority=_atoi(fields[3]),
            address=fields[4],
            port=_atoi(fields[5]),
            type=fields[7],
        )
    )


def _parse_transport_info(td: TransportDescription, line: str) -> None:
    if "a=ice-ufrag" in line:
        td.ice_ufrag = _get_attribute(line)
        if not td.ice_ufrag:
            raise SdpParseError(f"parse transport info failed: {line}")
    elif "a=ice-pwd" in line:
        td.ice_pwd = _get_attribute(line)
        if not td.ice_pwd:
            raise SdpParseError(f"parse transport info failed: {line}")


def _direction(send: bool, recv: bool) -> RtpDirection:
    if send and recv:
        return RtpDirection.SEND_RECV
    if send:
        return RtpDirection.SEND_ONLY
    if recv:
        return RtpDirection.RECV_ONLY
    return RtpDirection.INACTIVE


def _transport_mids(desc: SessionDescription) -> List[str]:
    """Media sections that need their own transport; bundled ones share the first."""
    first_bundle = desc.get_first_bundle_id()
    return [
        content.mid
        for content in desc.contents
        if not (desc.is_bundle(content.mid) and content.mid != first_bundle)
    ]


ConnectionStateListener = Callable[["PeerConnection", PeerConnectionState], None]
NetworkInfoListener = Callable[["PeerConnection", int, int, int, int], None]


class PeerConnection(RtpRtcpModuleObserver):
    """Answers a remote offer and pushes H.264 video to the remote peer.

    ``ice_agent`` carries the packets and is told about ICE parameters and
    candidates; ICE state changes and received packets are reported back
    through :meth:`on_ice_state` and :meth:`on_packet_received`.
    """

    def __init__(
        self,
        ice_agent: Optional[_IceAgent] = None,
        clock: Optional[Clock] = None,
        scheduler: Optional[Scheduler] = None,
    ) -> None:
        self._ice_agent = ice_agent
        self._clock = clock if clock is not None else SystemClock()
        self._scheduler = scheduler
        self.remote_description: Optional[SessionDescription] = None
        self.local_description: Optional[SessionDescription] = None
        self.connection_state_listeners: List[ConnectionStateListener] = []
        self.network_info_listeners: List[NetworkInfoListener] = []
        self._local_audio_ssrc = 0
        self._local_video_ssrc = 0
        self._local_video_rtx_ssrc = 0
        self._video_pt = 0
        self._video_rtx_pt = 0
        self._video_seq = _INITIAL_VIDEO_SEQUENCE_NUMBER
        self._pc_state = PeerConnectionState.NEW
        self._video_send_stream: Optional[VideoSendStream] = None
        self._video_cache: List[Optional[RtpPacketToSend]] = [None] * RTC_PACKET_CACHE_SIZE

    @property
    def state(self) -> PeerConnectionState:
        return self._pc_state

    def set_remote_sdp(self, sdp: str) -> None:
        """Take the remote offer; raises SdpParseError on malformed input."""
        fields = _tokenize(sdp, "\n")
        if not fields:
            raise SdpParseError(f"invalid sdp: {sdp!r}")
        is_rn = "\r\n" in sdp

        desc = SessionDescription(SdpType.OFFER)
        audio_content = AudioContentDescription()
        video_content = VideoContentDescription()
        audio_td = TransportDescription()
        video_td = TransportDescription()
        mid = ""

        for field in fields:
            if is_rn:
                field = field[:-1]

            if "a=group:BUNDLE" in field:
                items = _tokenize(field, " ")
                if len(items) > 1:
                    bundle = ContentGroup("BUNDLE")
                    for name in items[1:]:
                        bundle.add_content_name(name)
                    desc.add_group(bundle)
            elif field[:1] in ("m", "="):
                items = _tokenize(field, " ")
                if len(items) <= 2:
                    raise SdpParseError(f"parse m= failed: {field}")
                mid = items[0][2:]
                if mid == "audio":
                    desc.add_content(audio_content)
                    audio_td.mid = mid
                elif mid == "video":
                    desc.add_content(video_content)
                    video_td.mid = mid

            if mid == "audio":
                _parse_candidate(audio_content, field)
                _parse_transport_info(audio_td, field)
            elif mid == "video":
                _parse_candidate(video_content, field)
                _parse_transport_info(video_td, field)

        desc.add_transport_info(audio_td)
        desc.add_transport_info(video_td)

        video_codecs = video_content.codecs
        if video_codecs:
            self._video_pt = video_codecs[0].id
        if len(video_codecs) > 1:
            self._video_rtx_pt = video_codecs[1].id

        self.remote_description = desc
        self._apply_remote_description(desc)

    def create_answer(self, options: RTCOfferAnswerOptions, stream_id: str) -> str:
        """Build the local answer and return it in SDP form."""
        desc = SessionDescription(SdpType.ANSWER)
        ice_params = IceParameters(
            _random_string(_ICE_UFRAG_LENGTH), _random_string(_ICE_PWD_LENGTH)
        )
        cname = _random_string(_RANDOM_STRING_LENGTH)

        if options.send_audio or options.recv_audio:
            audio_content = AudioContentDescription()
            audio_content.direction = _direction(options.send_audio, options.recv_audio)
            audio_content.rtcp_mux = options.use_rtcp_mux
            desc.add_content(audio_content)
            desc.add_ice_transport_info(audio_content.mid, ice_params)

            if options.send_audio:
                self._local_audio_ssrc = _random_id()
                audio_content.add_stream(
                    StreamParams(
                        id=_random_string(_RANDOM_STRING_LENGTH),
                        stream_id=stream_id,
                        cname=cname,
                        ssrcs=[self._local_audio_ssrc],
                    )
                )

        if options.send_video or options.recv_video:
            video_content = VideoContentDescription()
            video_content.direction = _direction(options.send_video, options.recv_video)
            video_content.rtcp_mux = options.use_rtcp_mux
            desc.add_content(video_content)
            desc.add_ice_transport_info(video_content.mid, ice_params)

            if options.send_video:
                track_id = _random_string(_RANDOM_STRING_LENGTH)
                self._local_video_ssrc = _random_id()
                self._local_video_rtx_ssrc = _random_id()
                ssrcs = [self._local_video_ssrc, self._local_video_rtx_ssrc]
                video_content.add_stream(
                    StreamParams(
                        id=track_id,
                        stream_id=stream_id,
                        cname=cname,
                        ssrcs=list(ssrcs),
                        ssrc_groups=[SsrcGroup("FID", list(ssrcs))],
                    )
                )
                video_content.add_stream(
                    StreamParams(
                        id=track_id,
                        stream_id=stream_id,
                        cname=cname,
                        ssrcs=[self._local_video_rtx_ssrc],
                    )
                )
                self._create_video_send_stream(video_content)

        if options.use_rtp_mux:
            bundle = ContentGroup("BUNDLE")
            for content in desc.contents:
                bundle.add_content_name(content.mid)
            if bundle.content_names:
                desc.add_group(bundle)

        self.local_description = desc
        self._apply_local_description(desc)
        return desc.to_string()

    def send_encoded_image(self, frame: EncodedFrame) -> bool:
        """Packetize ``frame`` and send it; frames are dropped until connected."""
        if self._pc_state is not PeerConnectionState.CONNECTED:
            return True

        rtp_timestamp = (frame.ts * _VIDEO_MS_TO_RTP) & 0xFFFFFFFF
        if self._video_send_stream is not None:
            self._video_send_stream.on_sending_rtp_frame(
                rtp_timestamp, frame.capture_time_ms, frame.idr
            )

        packetizer = create_packetizer(VideoCodecType.H264, frame.data, PacketizerConfig())
        while True:
            packet = RtpPacketToSend()
            packet.payload_type = self._video_pt
            packet.timestamp = rtp_timestamp
            packet.ssrc = self._local_video_ssrc
            if not packetizer.next_packet(packet):
                break

            packet.sequence_number = self._video_seq
            self._video_seq = (self._video_seq + 1) & 0xFFFF

            if self._video_send_stream is not None:
                self._video_send_stream.update_rtp_stats(packet, False, False)

            self._add_video_cache(packet)
            self._send_packet(packet.data)

        return True

    def on_local_rtcp_packet(self, media_type: MediaType, data: bytes) -> None:
        """Send a compound RTCP packet built locally."""
        if self._pc_state is not PeerConnectionState.CONNECTED:
            return
        self._send_packet(bytes(data))

    def on_network_info(
        self, rtt_ms: int, packets_lost: int, fraction_lost: int, jitter: int
    ) -> None:
        for listener in list(self.network_info_listeners):
            listener(self, rtt_ms, packets_lost, fraction_lost, jitter)

    def on_nack_received(self, media_type: MediaType, nack_list: List[int]) -> None:
        """Retransmit the requested packets that are still cached, over RTX."""
        for nack_id in nack_list:
            packet = self._find_video_cache(nack_id)
            if packet is None or self._video_send_stream is None:
                continue
            rtx_packet = self._video_send_stream.build_rtx_packet(packet)
            self._send_packet(rtx_packet.data)

    def on_ice_state(self, ice_state: IceTransportState) -> None:
        """Follow a change of the ICE transport state."""
        pc_state = _ICE_TO_PC_STATE.get(ice_state, PeerConnectionState.NEW)
        if pc_state is self._pc_state:
            return
        logger.info(
            "peerconnection state change, from %s=>%s", self._pc_state.value, pc_state.value
        )
        self._pc_state = pc_state
        for listener in list(self.connection_state_listeners):
            listener(self, pc_state)

    def on_packet_received(self, data: bytes) -> RtpPacketType:
        """Handle a packet from the network and return what kind it was."""
        packet = bytes(data)
        packet_type = infer_rtp_packet_type(packet)
        if packet_type is RtpPacketType.RTCP and self._video_send_stream is not None:
            self._video_send_stream.deliver_rtcp(packet)
        return packet_type

    def _send_packet(self, data: bytes) -> None:
        if self._ice_agent is not None:
            self._ice_agent.send_packet(_SEND_TRANSPORT, _RTP_COMPONENT, data)

    def _apply_remote_description(self, desc: SessionDescription) -> None:
        if self._ice_agent is None:
            return
        contents = {content.mid: content for content in desc.contents}
        for mid in _transport_mids(desc):
            self._ice_agent.create_ice_transport(mid, _RTP_COMPONENT)
            td = desc.get_transport_info(mid)
            if td is not None:
                self._ice_agent.set_remote_ice_params(
                    mid, _RTP_COMPONENT, IceParameters(td.ice_ufrag, td.ice_pwd)
                )
            for candidate in contents[mid].candidates:
                self._ice_agent.add_remote_candidate(mid, _RTP_COMPONENT, candidate)

    def _apply_local_description(self, desc: SessionDescription) -> None:
        if self._ice_agent is None:
            return
        for mid in _transport_mids(desc):
            td = desc.get_transport_info(mid)
            if td is not None:
                self._ice_agent.set_ice_params(
                    mid, _RTP_COMPONENT, IceParameters(td.ice_ufrag, td.ice_pwd)
                )
        self._ice_agent.gathering_candidate()

    def _create_video_send_stream(self, video_content: VideoContentDescription) -> None:
        # Only one outgoing video stream is supported.
        if not video_content.streams:
            return
        stream = video_content.streams[0]
        if not stream.ssrcs:
            return
        rtx = RtxConfig()
        if len(stream.ssrcs) > 1:
            rtx = RtxConfig(ssrc=stream.ssrcs[1], payload_type=self._video_rtx_pt)
        config = VideoSendStreamConfig(
            rtp=RtpConfig(ssrc=stream.ssrcs[0], payload_type=self._video_pt, rtx=rtx),
            rtp_rtcp_module_observer=self,
        )
        self._video_send_stream = VideoSendStream(self._clock, config, self._scheduler)

    def _add_video_cache(self, packet: RtpPacketToSend) -> None:
        seq = packet.sequence_number
        index = seq % RTC_PACKET_CACHE_SIZE
        cached = self._video_cache[index]
        if cached is not None and cached.sequence_number == seq:
            return
        self._video_cache[index] = packet

    def _find_video_cache(self, seq: int) -> Optional[RtpPacketToSend]:
        cached = self._video_cache[seq % RTC_PACKET_CACHE_SIZE]
        if cached is not None and cached.sequence_number == seq:
            return cached
        return None