"""
Tests for balena_release_update.update.poller module.

Tests readiness polling including:
- Returning the first ready result
- Deadline handling (past, mid-sleep, mid-resolve, default)
- Tolerated and fatal resolve failures

All tests use a fake clock; no real time passes.
"""

from __future__ import annotations

from datetime import timedelta

import pytest

from balena_release_update.exceptions import (
    ReadinessTimeoutError,
    TransientPlatformError,
    ValidationError,
)
from balena_release_update.status import UpdateStatus
from balena_release_update.update.poller import (
    DEFAULT_WAIT,
    POLL_INTERVAL,
    wait_for_readiness,
)

from .conftest import NOW


def test_poll_interval_is_twenty_seconds():
    """Test the documented polling cadence and default wait."""
    assert POLL_INTERVAL == timedelta(seconds=20)
    assert DEFAULT_WAIT == timedelta(hours=24)


def test_deadline_in_past_times_out_without_resolving(single_service_client, clock):
    """Test that an already expired deadline fails immediately."""
    with pytest.raises(ReadinessTimeoutError):
        wait_for_readiness(
            single_service_client,
            10,
            20,
            deadline=NOW - timedelta(milliseconds=1),
            clock=clock,
            sleep=clock.sleep,
        )

    assert single_service_client.calls == []
    assert clock.sleeps == []


def test_timeout_is_builtin_timeout_error(single_service_client, clock):
    """Test that callers can catch the builtin TimeoutError."""
    with pytest.raises(TimeoutError):
        wait_for_readiness(
            single_service_client, 10, 20, deadline=NOW, clock=clock, sleep=clock.sleep
        )


def test_returns_first_ready_result(single_service_client, clock):
    """Test that polling stops as soon as the update is ready."""

    def sleep(seconds):
        clock.sleep(seconds)
        if len(clock.sleeps) == 2:
            single_service_client.add_delta(1, 100, 200, size=484575)

    update = wait_for_readiness(
        single_service_client, 10, 20, clock=clock, sleep=sleep
    )

    assert update.overall_status is UpdateStatus.READY
    assert update.estimated_total_payload_size == 484575
    assert clock.sleeps == [20.0, 20.0]
    assert len(single_service_client.calls_to("get_release")) == 4


def test_sleeps_before_first_resolve(single_service_client, clock):
    """Test that even an already ready update is re-resolved after a sleep."""
    single_service_client.add_delta(1, 100, 200)

    wait_for_readiness(single_service_client, 10, 20, clock=clock, sleep=clock.sleep)

    assert clock.sleeps == [20.0]


def test_times_out_when_never_ready(single_service_client, clock):
    """Test that the last sleep is cut short at the deadline."""
    with pytest.raises(ReadinessTimeoutError, match="2 poll"):
        wait_for_readiness(
            single_service_client,
            10,
            20,
            deadline=NOW + timedelta(seconds=50),
            clock=clock,
            sleep=clock.sleep,
        )

    assert clock.sleeps == [20.0, 20.0, 10.0]
    assert len(single_service_client.calls_to("get_release")) == 4


def test_default_deadline_is_one_day(single_service_client, clock):
    """Test that without a deadline the wait gives up after DEFAULT_WAIT."""
    with pytest.raises(ReadinessTimeoutError):
        wait_for_readiness(
            single_service_client,
            10,
            20,
            interval=timedelta(hours=1),
            clock=clock,
            sleep=clock.sleep,
        )

    assert clock.now - NOW == DEFAULT_WAIT
    assert len(clock.sleeps) == 24


def test_ready_result_after_deadline_is_discarded(single_service_client, clock):
    """Test that a resolve overrunning the deadline still times out."""
    single_service_client.add_delta(1, 100, 200)
    original_get_release = single_service_client.get_release

    def slow_get_release(identifier):
        clock.advance(15)
        return original_get_release(identifier)

    single_service_client.get_release = slow_get_release

    with pytest.raises(ReadinessTimeoutError):
        wait_for_readiness(
            single_service_client,
            10,
            20,
            deadline=NOW + timedelta(seconds=25),
            clock=clock,
            sleep=clock.sleep,
        )


def test_not_found_is_retried(client, clock):
    """Test that a release that is not built yet is polled again."""
    client.add_image(100)
    client.add_image(200)
    client.add_release(10, "aaaaaaaa", 1, {"main": 100})

    def sleep(seconds):
        clock.sleep(seconds)
        if len(clock.sleeps) == 2:
            client.add_release(20, "bbbbbbbb", 1, {"main": 200})
            client.add_delta(1, 100, 200)

    update = wait_for_readiness(client, 10, 20, clock=clock, sleep=sleep)

    assert update.is_ready
    assert len(clock.sleeps) == 2


def test_transient_error_is_retried(single_service_client, clock, monkeypatch):
    """Test that a failed platform call is retried on the next cycle."""
    single_service_client.add_delta(1, 100, 200)
    find_delta = single_service_client.find_delta
    failures = []

    def flaky_find_delta(*args):
        if not failures:
            failures.append(args)
            raise TransientPlatformError("bad gateway", status_code=502)
        return find_delta(*args)

    monkeypatch.setattr(single_service_client, "find_delta", flaky_find_delta)

    update = wait_for_readiness(
        single_service_client, 10, 20, clock=clock, sleep=clock.sleep
    )

    assert update.is_ready
    assert len(failures) == 1
    assert clock.sleeps == [20.0, 20.0]


def test_validation_error_propagates(client, clock):
    """Test that a release pair that can never resolve is not retried."""
    client.add_release(10, "aaaaaaaa", 1, {})
    client.add_release(20, "bbbbbbbb", 2, {})

    with pytest.raises(ValidationError):
        wait_for_readiness(client, 10, 20, clock=clock, sleep=clock.sleep)

    assert clock.sleeps == [20.0]
