"""Clocks and NTP timestamps used by the RTP/RTCP stack."""

from __future__ import annotations

import time
from abc import ABC, abstractmethod
from dataclasses import dataclass

NTP_EPOCH_OFFSET = 2_208_988_800
"""Seconds between the NTP epoch (1900) and the Unix epoch (1970)."""

_US_PER_SECOND = 1_000_000
_NTP_FRACTIONS_PER_SECOND = 1 << 32


@dataclass(frozen=True)
class NtpTime:
    """A 64-bit NTP timestamp split into whole seconds and 1/2^32 fractions."""

    seconds: int = 0
    fractions: int = 0

    @property
    def value(self) -> int:
        """The timestamp as a single 64-bit integer."""
        return ((self.seconds & 0xFFFFFFFF) << 32) | (self.fractions & 0xFFFFFFFF)


class Clock(ABC):
    """A source of time in microseconds."""

    @abstractmethod
    def now_us(self) -> int:
        """Current time in microseconds."""

    def now_ms(self) -> int:
        """Current time in milliseconds."""
        return self.now_us() // 1000

    def to_ntp(self, timestamp_us: int) -> NtpTime:
        """Convert a timestamp of this clock (microseconds) to NTP time."""
        seconds, remainder = divmod(timestamp_us, _US_PER_SECOND)
        fractions = (
            remainder * _NTP_FRACTIONS_PER_SECOND + _US_PER_SECOND // 2
        ) // _US_PER_SECOND
        return NtpTime((seconds + NTP_EPOCH_OFFSET) & 0xFFFFFFFF, fractions)


class SystemClock(Clock):
    """Wall-clock time since the Unix epoch."""

    def now_us(self) -> int:
        return time.time_ns() // 1000


class SimulatedClock(Clock):
    """A clock that only moves when told to."""

    def __init__(self, start_us: int = 0) -> None:
        self._now_us = start_us

    def now_us(self) -> int:
        return self._now_us

    def advance_ms(self, ms: int) -> None:
        """Move the clock forward by ``ms`` milliseconds."""
        if ms < 0:
            raise ValueError("a clock cannot move backwards")
        self._now_us += ms * 1000