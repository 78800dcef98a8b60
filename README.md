# rtcstream

`rtcstream` is the media-transport side of a real-time video publisher. It answers a remote SDP offer, packetizes encoded H.264 frames into RTP, sends RTCP sender reports, reads receiver reports and NACKs, and resends lost packets over RTX. It uses only the standard library.

## What is in it

- `rtcstream.timing`: `NtpTime`, the abstract `Clock`, `SystemClock` (wall-clock time) and `SimulatedClock` (only moves when `advance_ms` is called). `Clock.to_ntp` converts microseconds to NTP time.
- `rtcstream.rtp_utils`: `infer_rtp_packet_type`, `is_rtp_packet` and `is_rtcp_packet`, which classify raw datagrams. Also `compact_ntp` and `compact_ntp_rtt_to_ms`.
- `rtcstream.rtp_packet`: `RtpPacket` and `RtpPacketToSend`, packets with a fixed 12-byte header. Header fields are properties: `marker`, `payload_type`, `sequence_number`, `timestamp` and `ssrc`. Use `set_payload` or `allocate_payload` to fill the payload and `data` to get the serialised bytes.
- `rtcstream.packetizer`: `find_nalu_indices` locates NAL units in an Annex B stream, and `split_about_equal` divides a payload into near-equal parts. `RtpPacketizerH264` emits single-NAL, STAP-A and FU-A payloads. `create_packetizer` supports `VideoCodecType.H264` only and raises `ValueError` for any other codec.
- `rtcstream.rtcp`: the RTCP wire formats.
  - `common_header.CommonHeader.parse` raises `RtcpParseError` on bad input.
  - `report_block.ReportBlock`.
  - `receiver_report.ReceiverReport` parses and creates receiver reports.
  - `nack.Nack` parses and creates generic NACKs.
  - `sender_report.SenderReport` creates sender reports.
  - The base classes are `packet.RtcpPacket` and `rtpfb.Rtpfb`.
- `rtcstream.rtp_rtcp_defines`: `RtpPacketCounter` and `StreamDataCounter`.
- `rtcstream.rtp_rtcp_interface`: `RtpRtcpConfig`, `MediaType` and `RtcpMode`, plus the `RtpRtcpModuleObserver` interface. The observer receives outgoing RTCP, network statistics and NACK lists.
- `rtcstream.rtcp_sender.RtcpSender`: decides when a report is due and builds compound packets. The only packet type it builds is the sender report.
- `rtcstream.rtcp_receiver.RtcpReceiver`:
  - Receiver reports are turned into RTT, loss and jitter figures and passed to the observer.
  - NACK lists are passed to the observer.
  - Other RTCP packet types are logged and ignored.
- `rtcstream.rtp_rtcp_impl.ModuleRtpRtcpImpl`: keeps send statistics and drives the RTCP sender and receiver.
- `rtcstream.video_send_stream.VideoSendStream`: one outgoing video stream. It uses compound RTCP, and `build_rtx_packet` builds RFC 4588 retransmissions.
- `rtcstream.codec_info` and `rtcstream.session_description`: codecs, stream parameters and `SessionDescription`. `SessionDescription.to_string` renders SDP text. The audio section offers Opus (111); the video section offers H.264 (107) with RTX (99).
- `rtcstream.peer_connection.PeerConnection`:
  - `set_remote_sdp` parses a remote offer and raises `SdpParseError` when the offer is malformed.
  - `create_answer` writes the answer.
  - `send_encoded_image` packetizes `EncodedFrame`s.
  - `on_nack_received` resends cached packets over RTX.

## Installation

```
pip install .
```

## Packetizing an H.264 frame

```python
from rtcstream.packetizer import PacketizerConfig, RtpPacketizerH264
from rtcstream.rtp_packet import RtpPacketToSend

packetizer = RtpPacketizerH264(annexb_frame, PacketizerConfig())
seq = 1000
while True:
    packet = RtpPacketToSend()
    packet.payload_type = 107
    packet.timestamp = 90_000
    packet.ssrc = 0x1234
    if not packetizer.next_packet(packet):
        break
    packet.sequence_number = seq
    seq += 1
    send(packet.data)
```

The last packet of a frame has its marker bit set.

## Parsing RTCP

```python
from rtcstream.rtcp.common_header import CommonHeader
from rtcstream.rtcp.nack import Nack

header = CommonHeader.parse(datagram)
nack = Nack()
nack.parse(header)
print(nack.packet_ids)
```

`CommonHeader.packet_size` gives the offset at which the next packet of a compound packet starts.

## Answering an offer and sending video

`PeerConnection` does not open sockets or run ICE itself. Pass it an ICE agent object with these methods:

- `create_ice_transport(mid, component)`
- `set_remote_ice_params(mid, component, params)`
- `add_remote_candidate(mid, component, candidate)`
- `set_ice_params(mid, component, params)`
- `gathering_candidate()`
- `send_packet(transport_name, component, data)`

Report back to the connection yourself:

- ICE state changes go to `on_ice_state` as `IceTransportState` values.
- Received datagrams go to `on_packet_received`. RTCP packets are passed on to the video send stream.

```python
from rtcstream.peer_connection import (
    EncodedFrame, IceTransportState, PeerConnection, RTCOfferAnswerOptions,
)

pc = PeerConnection(ice_agent=agent)
pc.connection_state_listeners.append(lambda conn, state: print(state))
pc.set_remote_sdp(offer_text)
answer = pc.create_answer(
    RTCOfferAnswerOptions(recv_audio=False, recv_video=False), "stream"
)

pc.on_ice_state(IceTransportState.CONNECTED)
pc.send_encoded_image(EncodedFrame(data=annexb_frame, ts=40, capture_time_ms=40, idr=True))
```

Frames are dropped until the state is `PeerConnectionState.CONNECTED`. All RTP and RTCP go out on the first bundled transport, `"audio"`, component 1. The last 2048 sent video packets are kept so that NACKed sequence numbers can be resent. Listeners in `network_info_listeners` receive the RTT, loss and jitter figures taken from receiver reports.

Without an ICE agent, the connection still parses offers and writes answers, but it sends nothing.

## Time and scheduling

Every timed component takes a `Clock`. Use `SystemClock` in production. In tests, use `SimulatedClock` and advance it by hand.

Periodic RTCP checks are run through an optional scheduler: a callable `scheduler(delay_ms, task)` that runs `task` after `delay_ms` milliseconds. `PeerConnection`, `VideoSendStream` and `ModuleRtpRtcpImpl` all accept one. Without a scheduler, a report is only considered when a frame is sent.

## What it does not do

- **Network and ICE:** no socket handling, ICE connectivity checks or candidate gathering. These belong to the agent you supply.
- **Encryption:** no DTLS or SRTP.
- **Capture and encoding:** no camera capture, video encoding or rendering. You supply encoded H.264 frames.
- **Audio:** an audio section is offered in the answer and an SSRC is allocated for it, but no audio packets are sent.
- **Receiving media:** incoming RTP is classified but not processed.
- **Command line:** there is no command-line program.

## Tests

```
pip install .[test]
pytest
```