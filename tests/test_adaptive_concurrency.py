"""
Unit tests for the adaptive concurrency manager.

A fake clock drives the cooldown so every adjustment is deterministic.
"""
import threading

import pytest

from leaderboard.performance import AdaptiveConcurrencyManager


class FakeClock:
    def __init__(self, start: float = 0.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


SLOW = 1.5    # above the 1.0s decrease threshold
FAST = 0.1    # below half the 0.5s adjust threshold
STEADY = 0.3  # between the two: no change


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def manager(clock):
    return AdaptiveConcurrencyManager(
        initial_limit=5,
        min_limit=2,
        max_limit=20,
        window_size=10,
        min_window_size=10,
        adjustment_threshold=0.5,
        decrease_threshold=1.0,
        adjustment_cooldown=5.0,
        max_successive_increases=3,
        p95_ratio=0.8,
        clock=clock,
    )


def fill(manager, seconds, count=10):
    for _ in range(count):
        manager.record_response_time(seconds)


# =============================================================================
# Evaluation gating
# =============================================================================

def test_no_adjustment_before_cooldown(manager):
    fill(manager, SLOW, 30)
    assert manager.get_current_limit() == 5


def test_no_adjustment_until_window_is_filled(manager, clock):
    clock.advance(10)
    fill(manager, SLOW, 9)
    assert manager.get_current_limit() == 5

    manager.record_response_time(SLOW)
    assert manager.get_current_limit() == 4


def test_window_is_bounded(manager):
    fill(manager, FAST, 25)
    assert manager.get_stats().window_size == 10


# =============================================================================
# Ratchet down
# =============================================================================

def test_ratchets_down_to_min_limit(manager, clock):
    fill(manager, SLOW)

    expected = [4, 3, 2, 2]
    for limit in expected:
        clock.advance(6)
        manager.record_response_time(SLOW)
        assert manager.get_current_limit() == limit
        assert manager.get_stats().successive_increases == 0

    stats = manager.get_stats()
    assert stats.successive_decreases == 3
    assert stats.current_limit == stats.min_limit


def test_high_average_alone_triggers_decrease(manager, clock):
    # avg 0.6 > 0.5, p95 ~ 0.48 < 1.0
    fill(manager, 0.6)
    clock.advance(6)
    manager.record_response_time(0.6)
    assert manager.get_current_limit() == 4


def test_single_outlier_triggers_decrease_through_p95_estimate(manager, clock):
    # avg ~0.29 is fine, but max 2.0 * 0.8 = 1.6 > 1.0
    fill(manager, FAST, 9)
    clock.advance(6)
    manager.record_response_time(2.0)

    stats = manager.get_stats()
    assert stats.current_limit == 4
    assert stats.p95_response == pytest.approx(1.6)


# =============================================================================
# Ratchet up
# =============================================================================

def test_ratchets_up_one_step_per_adjustment_until_cap(manager, clock):
    fill(manager, FAST)

    for limit in (6, 7, 8):
        clock.advance(6)
        manager.record_response_time(FAST)
        assert manager.get_current_limit() == limit

    for _ in range(3):
        clock.advance(6)
        fill(manager, FAST)
        assert manager.get_current_limit() == 8

    assert manager.get_stats().successive_increases == 3


def test_increase_capped_at_max_limit(clock):
    manager = AdaptiveConcurrencyManager(
        initial_limit=4,
        min_limit=2,
        max_limit=5,
        window_size=10,
        min_window_size=10,
        clock=clock,
    )
    fill(manager, FAST)
    for _ in range(3):
        clock.advance(6)
        manager.record_response_time(FAST)

    assert manager.get_current_limit() == 5


def test_steady_latency_changes_nothing(manager, clock):
    fill(manager, STEADY)
    clock.advance(6)
    fill(manager, STEADY)

    stats = manager.get_stats()
    assert stats.current_limit == 5
    assert stats.successive_increases == 0
    assert stats.successive_decreases == 0


def test_recovery_waits_one_fast_evaluation_after_decrease(manager, clock):
    fill(manager, SLOW)
    clock.advance(6)
    manager.record_response_time(SLOW)
    assert manager.get_current_limit() == 4

    # Replace the window with fast samples inside the cooldown
    fill(manager, FAST)
    assert manager.get_current_limit() == 4

    clock.advance(6)
    manager.record_response_time(FAST)
    # First fast evaluation only clears the decrease streak
    assert manager.get_current_limit() == 4
    assert manager.get_stats().successive_decreases == 0

    manager.record_response_time(FAST)
    assert manager.get_current_limit() == 5


# =============================================================================
# Construction / stats / threads
# =============================================================================

@pytest.mark.parametrize(
    "kwargs",
    [
        {"min_limit": 0},
        {"min_limit": 10, "max_limit": 5},
        {"initial_limit": 50},
        {"min_window_size": 100},
    ],
)
def test_invalid_configuration_rejected(kwargs):
    with pytest.raises(ValueError):
        AdaptiveConcurrencyManager(**kwargs)


def test_stats_snapshot(manager):
    fill(manager, 0.2, 4)
    data = manager.get_stats().to_dict()

    assert data["current_limit"] == 5
    assert data["window_size"] == 4
    assert data["average_response_ms"] == pytest.approx(200.0)
    assert data["p95_response_ms"] == pytest.approx(160.0)


def test_concurrent_reporters(manager):
    threads = [
        threading.Thread(target=fill, args=(manager, FAST, 100))
        for _ in range(8)
    ]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    stats = manager.get_stats()
    assert stats.window_size == 10
    assert stats.min_limit <= stats.current_limit <= stats.max_limit
