"""Codec descriptions and stream parameters used in session descriptions."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, List, Optional


@dataclass(frozen=True)
class FeedbackParam:
    """An RTCP feedback mechanism a codec supports (``a=rtcp-fb``)."""

    id: str
    param: str = ""


@dataclass
class CodecInfo:
    """A payload type with its name, clock rate, feedback and format parameters."""

    id: int = 0
    name: str = ""
    clockrate: int = 0
    feedback_param: List[FeedbackParam] = field(default_factory=list)
    codec_param: Dict[str, str] = field(default_factory=dict)

    def as_audio(self) -> Optional[AudioCodecInfo]:
        """This codec as an audio codec, or None if it is not one."""
        return None

    def as_video(self) -> Optional[VideoCodecInfo]:
        """This codec as a video codec, or None if it is not one."""
        return None


@dataclass
class AudioCodecInfo(CodecInfo):
    """An audio codec; adds the channel count."""

    channels: int = 0

    def as_audio(self) -> AudioCodecInfo:
        return self


@dataclass
class VideoCodecInfo(CodecInfo):
    """A video codec."""

    def as_video(self) -> VideoCodecInfo:
        return self


@dataclass
class SsrcGroup:
    """SSRCs that belong together, such as a media stream and its RTX stream."""

    semantics: str = ""
    ssrcs: List[int] = field(default_factory=list)


@dataclass
class StreamParams:
    """A sent media stream: its ids, CNAME, SSRCs and SSRC groups."""

    id: str = ""
    stream_id: str = ""
    cname: str = ""
    ssrcs: List[int] = field(default_factory=list)
    ssrc_groups: List[SsrcGroup] = field(default_factory=list)