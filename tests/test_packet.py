from rtcstream.rtcp.packet import HEADER_SIZE, RtcpPacket, create_header


class _Dummy(RtcpPacket):
    def __init__(self, body: bytes):
        super().__init__()
        self.body = body

    def block_length(self):
        return HEADER_SIZE + len(self.body)

    def create(self, buffer, max_length, callback):
        while len(buffer) + self.block_length() > max_length:
            if not self.on_buffer_full(buffer, callback):
                return False
        buffer += create_header(0, 204, self.header_length()) + self.body
        return True


def test_header_bytes():
    assert create_header(3, 200, 6) == bytes([0x83, 200, 0, 6])


def test_header_padding_bit():
    header = create_header(1, 201, 7, padding=True)
    assert header[0] & 0x20
    assert header[0] >> 6 == 2
    assert header[0] & 0x1F == 1


def test_header_length_counts_words_after_header():
    packet = _Dummy(bytes(24))
    assert RtcpPacket.header_length(packet) == 6


def test_on_buffer_full_with_empty_buffer():
    calls = []
    assert RtcpPacket.on_buffer_full(_Dummy(b""), bytearray(), calls.append) is False
    assert calls == []


def test_on_buffer_full_flushes_and_clears():
    calls = []
    buffer = bytearray(b"\x01\x02")
    assert RtcpPacket.on_buffer_full(_Dummy(b""), buffer, calls.append) is True
    assert calls == [b"\x01\x02"]
    assert buffer == bytearray()


def test_compound_packet_is_flushed_when_full():
    calls = []
    buffer = bytearray()
    packet = _Dummy(bytes(4))
    for _ in range(3):
        assert packet.create(buffer, 16, calls.append)
    single = create_header(0, 204, 1) + bytes(4)
    assert [bytes(call) for call in calls] == [single * 2]
    assert bytes(buffer) == single


def test_packet_larger_than_limit_fails():
    buffer = bytearray()
    assert _Dummy(bytes(40)).create(buffer, 16, lambda data: None) is False
    assert buffer == bytearray()
    assert RtcpPacket.on_buffer_full(_Dummy(bytes(40)), buffer, lambda data: None) is False