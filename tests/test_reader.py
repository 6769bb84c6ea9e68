"""
Tests for the Pattern Reader
============================

- SlidingWindow circular buffer behaviour
- IdleBudget accounting
- read_until(): earliest match, echo, idle timeout, closed stream
- read_exact() and drain()
"""

import pytest

from serpico.comms.reader import IdleBudget, PatternReader, SlidingWindow
from serpico.errors import CommsError, ConnectionError, TimeoutError


# =============================================================================
# SlidingWindow Tests
# =============================================================================

class TestSlidingWindow:
    """Tests for the fixed-size circular buffer."""

    def test_window_size(self):
        assert len(SlidingWindow(4)) == 4

    def test_window_rejects_zero_size(self):
        with pytest.raises(ValueError):
            SlidingWindow(0)

    def test_match_after_exact_bytes(self):
        window = SlidingWindow(3)
        for byte in b"abc":
            window.push(byte)
        assert window.matches(b"abc")

    def test_match_follows_rotation(self):
        window = SlidingWindow(3)
        for byte in b"xxabc":
            window.push(byte)
        assert window.matches(b"abc")
        assert window.contents() == b"abc"

    def test_no_match_before_full(self):
        """Placeholders never complete a terminator."""
        window = SlidingWindow(2)
        window.push(0x04)
        assert not window.matches(b"\x00\x04")

    def test_no_match_on_length_mismatch(self):
        window = SlidingWindow(2)
        window.push(0x41)
        window.push(0x42)
        assert not window.matches(b"B")

    def test_contents_seeded_with_placeholders(self):
        assert SlidingWindow(3).contents() == b"\x00\x00\x00"


# =============================================================================
# IdleBudget Tests
# =============================================================================

class TestIdleBudget:
    """Tests for idle interval accounting."""

    def test_unbounded_budget_never_exhausts(self):
        budget = IdleBudget()
        for _ in range(1000):
            assert budget.tick()
        assert not budget.exhausted
        assert budget.elapsed == 1000

    def test_limited_budget(self):
        budget = IdleBudget(limit=2)
        assert budget.tick()
        assert budget.tick()
        assert not budget.exhausted
        assert not budget.tick()
        assert budget.exhausted

    def test_zero_budget_fails_first_tick(self):
        assert not IdleBudget(limit=0).tick()


# =============================================================================
# read_until Tests
# =============================================================================

class TestReadUntil:
    """Tests for terminator scanning."""

    def test_returns_bytes_through_terminator(self, make_transport, no_sleep):
        transport = make_transport([b"hello>world"])
        reader = PatternReader(transport, poll_interval=0)
        assert reader.read_until(b">") == b"hello>"

    def test_never_reads_past_match(self, make_transport, no_sleep):
        transport = make_transport([b"soft reboot\r\nXYZ"])
        reader = PatternReader(transport, poll_interval=0)
        reader.read_until(b"soft reboot\r\n")
        assert transport.unread == b"XYZ"

    def test_earliest_match_wins(self, make_transport, no_sleep):
        transport = make_transport([b"ab\x04cd\x04"])
        reader = PatternReader(transport, poll_interval=0)
        assert reader.read_until(b"\x04") == b"ab\x04"
        assert transport.unread == b"cd\x04"

    def test_reads_one_byte_at_a_time(self, make_transport, no_sleep):
        transport = make_transport([b"OK>"])
        reader = PatternReader(transport, poll_interval=0)
        reader.read_until(b">")
        assert [data for _, data in transport.trace] == [b"O", b"K", b">"]

    def test_multibyte_terminator_split_across_reads(self, make_transport, no_sleep):
        transport = make_transport([b"raw RE", None, b"PL; CTRL-B to exit\r\n"])
        reader = PatternReader(transport, poll_interval=0)
        result = reader.read_until(b"raw REPL; CTRL-B to exit\r\n")
        assert result == b"raw REPL; CTRL-B to exit\r\n"

    def test_fewer_bytes_than_terminator_never_match(self, make_transport, no_sleep):
        transport = make_transport([b"\x04"])
        reader = PatternReader(transport, poll_interval=0)
        with pytest.raises(ConnectionError):
            reader.read_until(b"\x00\x04")

    def test_empty_terminator_rejected(self, make_transport):
        reader = PatternReader(make_transport([b"x"]))
        with pytest.raises(ValueError):
            reader.read_until(b"")

    def test_echo_forwards_every_byte(self, make_transport, no_sleep):
        seen = []
        transport = make_transport([b"hi\r\n\x04"])
        reader = PatternReader(transport, poll_interval=0, observer=seen.append)
        reader.read_until(b"\x04", echo=True)
        assert seen == [b"h", b"i", b"\r", b"\n", b"\x04"]

    def test_no_echo_without_flag(self, make_transport, no_sleep):
        seen = []
        transport = make_transport([b"hi\x04"])
        reader = PatternReader(transport, poll_interval=0, observer=seen.append)
        reader.read_until(b"\x04")
        assert seen == []

    def test_observer_override(self, make_transport, no_sleep):
        default, override = [], []
        transport = make_transport([b"e\x04"])
        reader = PatternReader(transport, poll_interval=0, observer=default.append)
        reader.read_until(b"\x04", echo=True, observer=override.append)
        assert default == []
        assert b"".join(override) == b"e\x04"

    def test_timeouts_are_not_fatal(self, make_transport, no_sleep):
        transport = make_transport([None, None, b"a", None, b">"])
        reader = PatternReader(transport, poll_interval=0.01)
        assert reader.read_until(b">") == b"a>"
        assert no_sleep == [0.01, 0.01, 0.01]

    def test_idle_timeout_exceeded(self, make_transport, no_sleep):
        transport = make_transport([b"partial"], eof=False)
        reader = PatternReader(transport, idle_timeout=3, poll_interval=0.01)
        with pytest.raises(TimeoutError):
            reader.read_until(b">")
        assert len(no_sleep) == 3

    def test_idle_budget_is_cumulative_within_call(self, make_transport, no_sleep):
        transport = make_transport([None, b"a", None, b"b", None, b">"])
        reader = PatternReader(transport, idle_timeout=2, poll_interval=0)
        with pytest.raises(TimeoutError):
            reader.read_until(b">")

    def test_idle_budget_resets_between_calls(self, make_transport, no_sleep):
        transport = make_transport([None, b">", None, b">"])
        reader = PatternReader(transport, idle_timeout=1, poll_interval=0)
        reader.read_until(b">")
        reader.read_until(b">")

    def test_closed_stream(self, make_transport, no_sleep):
        transport = make_transport([b"abc"])
        reader = PatternReader(transport, poll_interval=0)
        with pytest.raises(ConnectionError, match="closed"):
            reader.read_until(b">")

    def test_timeout_is_comms_error(self, make_transport, no_sleep):
        reader = PatternReader(make_transport(eof=False), idle_timeout=0)
        with pytest.raises(CommsError):
            reader.read_until(b">")


# =============================================================================
# read_exact / drain Tests
# =============================================================================

class TestReadExact:
    """Tests for exact-length reads."""

    def test_read_exact(self, make_transport, no_sleep):
        transport = make_transport([b"R\x01\x00\x01rest"])
        reader = PatternReader(transport, poll_interval=0)
        assert reader.read_exact(2) == b"R\x01"
        assert reader.read_exact(2) == b"\x00\x01"
        assert transport.unread == b"rest"

    def test_read_exact_across_timeouts(self, make_transport, no_sleep):
        transport = make_transport([b"R", None, None, b"\x01"])
        reader = PatternReader(transport, idle_timeout=5, poll_interval=0)
        assert reader.read_exact(2) == b"R\x01"

    def test_read_exact_timeout(self, make_transport, no_sleep):
        transport = make_transport([b"R"], eof=False)
        reader = PatternReader(transport, idle_timeout=2, poll_interval=0)
        with pytest.raises(TimeoutError):
            reader.read_exact(2)

    def test_read_exact_closed(self, make_transport, no_sleep):
        reader = PatternReader(make_transport([b"R"]), poll_interval=0)
        with pytest.raises(ConnectionError):
            reader.read_exact(2)


class TestDrain:
    """Tests for discarding stale input."""

    def test_drain_until_timeout(self, make_transport):
        transport = make_transport([b"x" * 40, None, b"kept"])
        reader = PatternReader(transport)
        assert reader.drain() == 40
        assert transport.unread == b"kept"

    def test_drain_nothing_pending(self, make_transport):
        reader = PatternReader(make_transport([None]))
        assert reader.drain() == 0

    def test_drain_closed_stream(self, make_transport):
        reader = PatternReader(make_transport([b"junk"]))
        with pytest.raises(ConnectionError):
            reader.drain()
