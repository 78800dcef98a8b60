"""RTP/RTCP transport, H.264 packetization, SDP answers and RTX retransmission for video publishing."""

__version__ = "0.1.0"