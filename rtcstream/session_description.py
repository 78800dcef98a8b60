"""Session descriptions and their SDP form."""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional

from rtcstream.codec_info import (
    AudioCodecInfo,
    CodecInfo,
    FeedbackParam,
    StreamParams,
    VideoCodecInfo,
)
from rtcstream.rtp_rtcp_interface import MediaType

MEDIA_PROTOCOL_DTLS_SAVPF = "UDP/TLS/RTP/SAVPF"
MEDIA_PROTOCOL_SAVPF = "RTP/SAVPF"

_CRLF = "\r\n"


class SdpType(Enum):
    OFFER = "offer"
    ANSWER = "answer"


class RtpDirection(Enum):
    SEND_RECV = "sendrecv"
    SEND_ONLY = "sendonly"
    RECV_ONLY = "recvonly"
    INACTIVE = "inactive"


@dataclass
class Candidate:
    """A remote ICE candidate taken from an ``a=candidate`` line."""

    foundation: str = ""
    component: int = 0
    protocol: str = ""
    priority: int = 0
    address: str = ""
    port: int = 0
    type: str = ""


@dataclass(frozen=True)
class IceParameters:
    """ICE username fragment and password."""

    ice_ufrag: str = ""
    ice_pwd: str = ""


class ContentGroup:
    """A named group of media sections, such as BUNDLE."""

    def __init__(self, semantics: str) -> None:
        self.semantics = semantics
        self._content_names: List[str] = []

    @property
    def content_names(self) -> List[str]:
        return list(self._content_names)

    def add_content_name(self, content_name: str) -> None:
        """Add ``content_name`` unless the group already has it."""
        if not self.has_content_name(content_name):
            self._content_names.append(content_name)

    def has_content_name(self, content_name: str) -> bool:
        return content_name in self._content_names


@dataclass
class TransportDescription:
    """ICE credentials of one media section."""

    mid: str = ""
    ice_ufrag: str = ""
    ice_pwd: str = ""


class MediaContentDescription(ABC):
    """One media section: codecs, candidates, direction and streams."""

    def __init__(self) -> None:
        self.codecs: List[CodecInfo] = []
        self.candidates: List[Candidate] = []
        self.direction = RtpDirection.INACTIVE
        self.rtcp_mux = True
        self.streams: List[StreamParams] = []

    @property
    @abstractmethod
    def type(self) -> MediaType:
        """The kind of media in this section."""

    @property
    @abstractmethod
    def mid(self) -> str:
        """The media section identifier."""

    def add_candidate(self, candidate: Candidate) -> None:
        self.candidates.append(candidate)

    def add_stream(self, stream: StreamParams) -> None:
        self.streams.append(stream)


class AudioContentDescription(MediaContentDescription):
    """An audio section offering Opus."""

    def __init__(self) -> None:
        super().__init__()
        self.codecs.append(
            AudioCodecInfo(
                id=111,
                name="opus",
                clockrate=48000,
                channels=2,
                feedback_param=[FeedbackParam("transport-cc")],
                codec_param={"minptime": "10", "useinbandfec": "1"},
            )
        )

    @property
    def type(self) -> MediaType:
        return MediaType.AUDIO

    @property
    def mid(self) -> str:
        return "audio"


class VideoContentDescription(MediaContentDescription):
    """A video section offering H.264 with RTX retransmission."""

    def __init__(self) -> None:
        super().__init__()
        codec = VideoCodecInfo(
            id=107,
            name="H264",
            clockrate=90000,
            feedback_param=[
                FeedbackParam("goog-remb"),
                FeedbackParam("transport-cc"),
                FeedbackParam("ccm", "fir"),
                FeedbackParam("nack"),
                FeedbackParam("nack", "pli"),
            ],
            codec_param={
                "level-asymmetry-allowed": "1",
                "packetization-mode": "1",
                "profile-level-id": "42e01f",
            },
        )
        rtx = VideoCodecInfo(
            id=99,
            name="rtx",
            clockrate=90000,
            codec_param={"apt": str(codec.id)},
        )
        self.codecs.extend((codec, rtx))

    @property
    def type(self) -> MediaType:
        return MediaType.VIDEO

    @property
    def mid(self) -> str:
        return "video"


def _rtpmap_lines(content: MediaContentDescription) -> List[str]:
    lines: List[str] = []
    for codec in content.codecs:
        rtpmap = f"a=rtpmap:{codec.id} {codec.name}/{codec.clockrate}"
        if content.type is MediaType.AUDIO:
            audio_codec = codec.as_audio()
            if audio_codec is not None:
                rtpmap += f"/{audio_codec.channels}"
        lines.append(rtpmap)

        for param in codec.feedback_param:
            line = f"a=rtcp-fb:{codec.id} {param.id}"
            if param.param:
                line += f" {param.param}"
            lines.append(line)

        if codec.codec_param:
            params = ";".join(
                f"{key}={value}" for key, value in sorted(codec.codec_param.items())
            )
            lines.append(f"a=fmtp:{codec.id} {params}")
    return lines


def _ssrc_lines(content: MediaContentDescription) -> List[str]:
    lines: List[str] = []
    for stream in content.streams:
        for group in stream.ssrc_groups:
            if not group.ssrcs:
                continue
            lines.append("a=ssrc-group:FID" + "".join(f" {ssrc}" for ssrc in group.ssrcs))
        for ssrc in stream.ssrcs:
            lines.append(f"a=ssrc:{ssrc} cname:{stream.cname}")
            lines.append(f"a=ssrc:{ssrc} msid:{stream.stream_id} {stream.id}")
    return lines


class SessionDescription:
    """A whole session: media sections, groups and transport information."""

    def __init__(self, sdp_type: SdpType) -> None:
        self.sdp_type = sdp_type
        self.contents: List[MediaContentDescription] = []
        self.content_groups: List[ContentGroup] = []
        self.transport_info: List[TransportDescription] = []

    def add_content(self, content: MediaContentDescription) -> None:
        self.contents.append(content)

    def add_group(self, group: ContentGroup) -> None:
        self.content_groups.append(group)

    def get_group_by_name(self, name: str) -> Optional[ContentGroup]:
        """The first group with these semantics, or None."""
        return next((g for g in self.content_groups if g.semantics == name), None)

    def get_transport_info(self, transport_name: str) -> Optional[TransportDescription]:
        """The transport description for a media section, or None."""
        return next((td for td in self.transport_info if td.mid == transport_name), None)

    def add_transport_info(self, td: TransportDescription) -> None:
        self.transport_info.append(td)

    def add_ice_transport_info(self, mid: str, ice_params: IceParameters) -> None:
        """Add a transport description for ``mid`` with the given ICE credentials."""
        self.transport_info.append(
            TransportDescription(mid, ice_params.ice_ufrag, ice_params.ice_pwd)
        )

    def is_bundle(self, mid: str) -> bool:
        """Whether ``mid`` belongs to the BUNDLE group."""
        group = self.get_group_by_name("BUNDLE")
        return group is not None and group.has_content_name(mid)

    def get_first_bundle_id(self) -> str:
        """The first media section of the BUNDLE group, or an empty string."""
        group = self.get_group_by_name("BUNDLE")
        if group is None or not group.content_names:
            return ""
        return group.content_names[0]

    def to_string(self) -> str:
        """The description in SDP form (RFC 4566), lines ending in CRLF."""
        lines = ["v=0", "o=- 0 2 IN IP4 127.0.0.1", "s=-", "t=0 0"]

        bundle = self.get_group_by_name("BUNDLE")
        if bundle is not None and bundle.content_names:
            lines.append("a=group:BUNDLE" + "".join(f" {n}" for n in bundle.content_names))

        lines.append("a=msid-semantic: WMS")

        for content in self.contents:
            fmt = "".join(f" {codec.id}" for codec in content.codecs)
            lines.append(f"m={content.mid} 9 {MEDIA_PROTOCOL_SAVPF}{fmt}")
            lines.append("c=IN IP4 0.0.0.0")
            lines.append("a=rtcp:9 IN IP4 0.0.0.0")

            td = self.get_transport_info(content.mid)
            if td is not None:
                lines.append(f"a=ice-ufrag:{td.ice_ufrag}")
                lines.append(f"a=ice-pwd:{td.ice_pwd}")

            lines.append(f"a=mid:{content.mid}")
            lines.append(f"a={content.direction.value}")
            if content.rtcp_mux:
                lines.append("a=rtcp-mux")

            lines.extend(_rtpmap_lines(content))
            lines.extend(_ssrc_lines(content))

        return "".join(line + _CRLF for line in lines)

    def __str__(self) -> str:
        return self.to_string()