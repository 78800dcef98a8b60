import time

import pytest

from rtcstream.timing import (
    NTP_EPOCH_OFFSET,
    Clock,
    NtpTime,
    SimulatedClock,
    SystemClock,
)


def test_ntp_time_value_combines_parts():
    assert NtpTime(1, 2).value == (1 << 32) | 2


def test_simulated_clock_starts_where_told():
    clock = SimulatedClock(start_us=1_234_567)
    assert clock.now_us() == 1_234_567
    assert clock.now_ms() == 1_234_567 // 1000


def test_simulated_clock_advance():
    start = 2_000_000
    clock = SimulatedClock(start_us=start)
    clock.advance_ms(5)
    assert clock.now_us() == start + 5 * 1000
    assert clock.now_ms() == clock.now_us() // 1000


def test_simulated_clock_rejects_negative_advance():
    clock = SimulatedClock()
    with pytest.raises(ValueError):
        clock.advance_ms(-1)


def test_to_ntp_epoch():
    ntp = SimulatedClock().to_ntp(0)
    assert ntp.seconds == NTP_EPOCH_OFFSET
    assert ntp.fractions == 0


def test_to_ntp_half_second():
    ntp = SimulatedClock().to_ntp(500_000)
    assert ntp.seconds == NTP_EPOCH_OFFSET
    assert ntp.fractions == 1 << 31


def test_to_ntp_is_monotonic():
    clock = SimulatedClock()
    values = [clock.to_ntp(us).value for us in (0, 1, 999_999, 1_000_000, 7_654_321)]
    assert values == sorted(values)
    assert len(set(values)) == len(values)


def test_system_clock_tracks_wall_time():
    clock = SystemClock()
    before = time.time_ns() // 1000
    now = clock.now_us()
    after = time.time_ns() // 1000
    assert before <= now <= after


def test_clock_is_abstract():
    with pytest.raises(TypeError):
        Clock()