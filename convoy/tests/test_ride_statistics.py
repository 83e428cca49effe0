"""
Statistics engine tests.
"""

from datetime import datetime, timedelta, timezone

import pytest

from convoy.app.domain.tracking.statistics import (
    AggregateRideStats, PathSample, RideStats, aggregate, compute_stats, round2
)

T0 = datetime(2024, 6, 1, 8, 0, 0, tzinfo=timezone.utc)


def sample(seconds: float, lat: float, lon: float = 0.0, speed: float = None) -> PathSample:
    return PathSample(
        timestamp=T0 + timedelta(seconds=seconds),
        coordinates=(lon, lat),
        speed=speed,
    )


def test_empty_and_single_sample_paths_are_zero():
    assert compute_stats([]) == RideStats()
    assert compute_stats([sample(0, 0.0)]) == RideStats()


def test_two_points_ten_seconds_apart():
    stats = compute_stats([sample(0, 0.0), sample(10, 0.0001)])

    assert stats.total_distance == 11.12
    assert stats.average_speed == 1.11
    assert stats.max_speed == 1.11
    assert stats.total_duration == 10.0


def test_reported_speed_takes_precedence():
    stats = compute_stats([
        sample(0, 0.0),
        sample(10, 0.0001, speed=4.0),
        sample(20, 0.0002, speed=6.0),
    ])

    assert stats.average_speed == 5.0
    assert stats.max_speed == 6.0
    assert stats.total_distance == 22.24


def test_reported_zero_speed_counts():
    stats = compute_stats([
        sample(0, 0.0),
        sample(10, 0.0, speed=0.0),
        sample(20, 0.0, speed=4.0),
    ])
    assert stats.average_speed == 2.0


def test_duplicate_timestamps_are_skipped():
    stats = compute_stats([
        sample(0, 0.0),
        sample(0, 0.0005),
        sample(10, 0.0006),
    ])

    # Only the second-to-third pair counts
    assert stats.total_distance == 11.12
    assert stats.total_duration == 10.0


def test_out_of_order_input_is_sorted():
    ordered = [sample(0, 0.0), sample(10, 0.0001), sample(20, 0.0003)]
    shuffled = [ordered[2], ordered[0], ordered[1]]

    assert compute_stats(shuffled) == compute_stats(ordered)


def test_derived_zero_speeds_are_excluded_from_average():
    stats = compute_stats([
        sample(0, 0.0),
        sample(10, 0.0),  # standing still
        sample(20, 0.0001),
    ])

    assert stats.average_speed == 1.11
    assert stats.total_duration == 20.0


def test_jitter_adds_distance_but_no_speed():
    # about half a metre in five seconds
    stats = compute_stats([sample(0, 0.0), sample(5, 0.0000045)])

    assert stats.total_distance == 0.5
    assert stats.average_speed == 0
    assert stats.max_speed == 0
    assert stats.total_duration == 5.0


def test_sub_second_interval_adds_distance_but_no_speed():
    stats = compute_stats([sample(0, 0.0), sample(0.5, 0.0001)])

    assert stats.total_distance == 11.12
    assert stats.average_speed == 0.0
    assert stats.max_speed == 0.0
    assert stats.total_duration == 0.5


def test_entries_with_broken_coordinates_are_skipped():
    broken = PathSample(timestamp=T0 + timedelta(seconds=5), coordinates=None)
    stats = compute_stats([sample(0, 0.0), broken, sample(10, 0.0001)])

    assert stats.total_distance == 0.0
    assert stats.total_duration == 10.0


def test_stats_document_uses_camel_case():
    document = compute_stats([sample(0, 0.0), sample(10, 0.0001)]).to_document()

    assert document == {
        "totalDistance": 11.12,
        "averageSpeed": 1.11,
        "maxSpeed": 1.11,
        "totalDuration": 10.0,
    }
    assert RideStats.model_validate(document).total_distance == 11.12


def test_round2_rounds_half_up():
    assert round2(0.125) == 0.13
    assert round2(1.234) == 1.23
    assert round2(0) == 0


def test_aggregate_empty_is_zero():
    assert aggregate([]) == AggregateRideStats()


def test_aggregate_across_participants():
    result = aggregate([
        RideStats(total_distance=1000, average_speed=5, max_speed=8, total_duration=600),
        RideStats(),
        RideStats(total_distance=500, average_speed=4, max_speed=10, total_duration=900),
    ])

    assert result.total_distance == 1000
    assert result.average_speed == 3.0
    assert result.max_speed == 10
    assert result.total_duration == 900
    assert result.completion_rate == 66.67
    assert result.average_participant_distance == 750


def test_aggregate_nobody_moved():
    result = aggregate([RideStats(), RideStats()])

    assert result.completion_rate == 0
    assert result.average_participant_distance == 0


@pytest.mark.parametrize("count", [1, 4])
def test_aggregate_everyone_moved(count):
    result = aggregate([RideStats(total_distance=10)] * count)
    assert result.completion_rate == 100
