import pytest

from rtcstream.codec_info import SsrcGroup, StreamParams
from rtcstream.rtp_rtcp_interface import MediaType
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


def _bundled_session():
    desc = SessionDescription(SdpType.ANSWER)
    desc.add_content(AudioContentDescription())
    desc.add_content(VideoContentDescription())
    group = ContentGroup("BUNDLE")
    group.add_content_name("audio")
    group.add_content_name("video")
    desc.add_group(group)
    return desc


def test_content_group_ignores_duplicates():
    group = ContentGroup("BUNDLE")
    group.add_content_name("audio")
    group.add_content_name("audio")
    group.add_content_name("video")
    assert group.content_names == ["audio", "video"]
    assert group.has_content_name("video")
    assert not group.has_content_name("data")


def test_media_content_description_is_abstract():
    with pytest.raises(TypeError):
        MediaContentDescription()


def test_audio_content_defaults():
    content = AudioContentDescription()
    assert content.mid == "audio"
    assert content.type is MediaType.AUDIO
    assert content.direction is RtpDirection.INACTIVE
    assert content.rtcp_mux is True
    assert [c.id for c in content.codecs] == [111]
    assert content.codecs[0].as_audio().channels == 2


def test_video_content_has_rtx_pointing_at_h264():
    content = VideoContentDescription()
    assert content.type is MediaType.VIDEO
    h264, rtx = content.codecs
    assert (h264.id, h264.name) == (107, "H264")
    assert rtx.codec_param["apt"] == str(h264.id)


def test_candidates_and_streams_are_appended():
    content = VideoContentDescription()
    content.add_candidate(Candidate("1", 1, "udp", 100, "192.0.2.1", 5000, "host"))
    content.add_stream(StreamParams(ssrcs=[7]))
    assert content.candidates[0].port == 5000
    assert content.streams[0].ssrcs == [7]


def test_bundle_queries():
    desc = _bundled_session()
    assert desc.is_bundle("audio")
    assert not desc.is_bundle("data")
    assert desc.get_first_bundle_id() == "audio"
    assert desc.get_group_by_name("LS") is None


def test_no_bundle_group():
    desc = SessionDescription(SdpType.OFFER)
    assert not desc.is_bundle("audio")
    assert desc.get_first_bundle_id() == ""


def test_transport_info_lookup():
    desc = SessionDescription(SdpType.OFFER)
    ice_pwd = "password"
    desc.add_transport_info(TransportDescription("audio", "ufragA", ice_pwd))
    desc.add_ice_transport_info("video", IceParameters("ufragV", ice_pwd))
    video = desc.get_transport_info("video")
    assert video.ice_ufrag == "ufragV"
    assert video.ice_pwd == ice_pwd
    assert desc.get_transport_info("data") is None


def test_to_string_session_header_and_bundle():
    sdp = _bundled_session().to_string()
    assert sdp.startswith("v=0\r\no=- 0 2 IN IP4 127.0.0.1\r\ns=-\r\nt=0 0\r\n")
    assert "a=group:BUNDLE audio video\r\n" in sdp
    assert "a=msid-semantic: WMS\r\n" in sdp
    assert sdp.endswith("\r\n")


def test_to_string_media_sections():
    sdp = _bundled_session().to_string()
    assert "m=audio 9 RTP/SAVPF 111\r\n" in sdp
    assert "m=video 9 RTP/SAVPF 107 99\r\n" in sdp
    assert "a=rtpmap:111 opus/48000/2\r\n" in sdp
    assert "a=rtpmap:107 H264/90000\r\n" in sdp
    assert "a=rtcp-fb:107 ccm fir\r\n" in sdp
    assert "a=rtcp-fb:107 nack pli\r\n" in sdp
    assert "a=fmtp:111 minptime=10;useinbandfec=1\r\n" in sdp
    assert (
        "a=fmtp:107 level-asymmetry-allowed=1;packetization-mode=1;"
        "profile-level-id=42e01f\r\n" in sdp
    )
    assert "a=fmtp:99 apt=107\r\n" in sdp
    assert sdp.index("m=audio") < sdp.index("m=video")


def test_to_string_direction_mux_and_ice():
    desc = SessionDescription(SdpType.ANSWER)
    content = VideoContentDescription()
    content.direction = RtpDirection.SEND_ONLY
    content.rtcp_mux = False
    desc.add_content(content)
    ice_pwd = "password"
    desc.add_ice_transport_info("video", IceParameters("ufragV", ice_pwd))
    sdp = desc.to_string()
    assert "a=sendonly\r\n" in sdp
    assert "a=rtcp-mux" not in sdp
    assert "a=ice-ufrag:ufragV\r\n" in sdp
    assert f"a=ice-pwd:{ice_pwd}\r\n" in sdp
    assert "a=mid:video\r\n" in sdp
    assert "a=group:BUNDLE" not in sdp


def test_to_string_ssrc_lines():
    desc = SessionDescription(SdpType.ANSWER)
    content = VideoContentDescription()
    content.add_stream(
        StreamParams(
            id="track",
            stream_id="stream",
            cname="cname",
            ssrcs=[11, 22],
            ssrc_groups=[SsrcGroup("FID", [11, 22]), SsrcGroup("FID", [])],
        )
    )
    desc.add_content(content)
    sdp = desc.to_string()
    assert sdp.count("a=ssrc-group:") == 1
    assert "a=ssrc-group:FID 11 22\r\n" in sdp
    assert "a=ssrc:11 cname:cname\r\n" in sdp
    assert "a=ssrc:22 msid:stream track\r\n" in sdp


def test_str_matches_to_string():
    desc = _bundled_session()
    assert str(desc) == desc.to_string()