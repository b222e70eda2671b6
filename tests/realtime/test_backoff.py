"""Tests for reconnect backoff."""
import pytest

from src.realtime.backoff import Backoff, full_jitter_delay


class TestFullJitter:
    def test_upper_bound_doubles(self) -> None:
        top = lambda: 1.0  # noqa: E731
        assert [full_jitter_delay(n, base=1.0, cap=30.0, rng=top) for n in range(6)] == [1, 2, 4, 8, 16, 30]

    def test_zero_draw(self) -> None:
        assert full_jitter_delay(5, rng=lambda: 0.0) == 0.0

    def test_negative_attempt_treated_as_first(self) -> None:
        assert full_jitter_delay(-3, base=2.0, rng=lambda: 1.0) == 2.0

    def test_random_draw_stays_in_range(self) -> None:
        for attempt in range(10):
            assert 0 <= full_jitter_delay(attempt, base=0.5, cap=8.0) <= 8.0


class TestBackoff:
    def test_attempts_grow_and_reset(self) -> None:
        b = Backoff(base=1.0, cap=10.0, rng=lambda: 0.5)
        assert [b.next_delay() for _ in range(4)] == [0.5, 1.0, 2.0, 4.0]
        assert b.attempt == 4
        b.reset()
        assert b.attempt == 0
        assert b.next_delay() == 0.5

    def test_capped(self) -> None:
        b = Backoff(base=1.0, cap=3.0, rng=lambda: 1.0)
        assert [b.next_delay() for _ in range(4)] == [1.0, 2.0, 3.0, 3.0]

    @pytest.mark.parametrize("base,cap", [(0, 1), (-1, 1), (5, 1)])
    def test_invalid_arguments(self, base, cap) -> None:
        with pytest.raises(ValueError):
            Backoff(base, cap)
