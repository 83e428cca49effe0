"""
Ride Statistics Engine.

Derives motion statistics from a tracking path and rolls participants'
statistics up into a ride-level summary. Both functions are pure: the
output depends only on the input sequence, so recomputing after every
sample can never drift from the stored path.
"""

import math
from datetime import datetime, timedelta, timezone
from typing import Iterable, List, Optional, Sequence, Tuple

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel

from convoy.app.domain.tracking import geodesy
from convoy.app.models.identifiers import as_utc

_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)

# Derived speed needs at least this much time between samples
MIN_SPEED_INTERVAL_MS = 1000


class PathSample(BaseModel):
    """
    One point of a tracking path.

    `coordinates` is (longitude, latitude), GeoJSON order.
    """
    model_config = ConfigDict(frozen=True)

    timestamp: datetime
    coordinates: Optional[Tuple[float, float]] = None
    speed: Optional[float] = None
    heading: Optional[float] = None


class RideStats(BaseModel):
    """Per-participant statistics. Distances in meters, speeds in m/s, duration in seconds."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)

    total_distance: float = 0.0
    average_speed: float = 0.0
    max_speed: float = 0.0
    total_duration: float = 0.0

    def to_document(self) -> dict:
        return self.model_dump(by_alias=True)


class AggregateRideStats(RideStats):
    """Ride-level statistics across participants."""
    completion_rate: float = 0.0
    average_participant_distance: float = 0.0


def round2(value: float) -> float:
    """Round half up to two decimals."""
    return math.floor(value * 100 + 0.5) / 100


def _epoch_millis(value: datetime) -> int:
    return (as_utc(value) - _EPOCH) // timedelta(milliseconds=1)


def _lat_lon(sample) -> Optional[geodesy.LatLon]:
    """(lat, lon) of a sample, or None when its coordinates are unusable."""
    coords = getattr(sample, "coordinates", None)
    if coords is None:
        return None
    try:
        longitude, latitude = coords
        latitude = float(latitude)
        longitude = float(longitude)
    except (TypeError, ValueError):
        return None
    if not (math.isfinite(latitude) and math.isfinite(longitude)):
        return None
    return (latitude, longitude)


def _timestamped(path: Iterable) -> List[Tuple[int, object]]:
    entries = []
    for sample in path:
        timestamp = getattr(sample, "timestamp", None)
        if isinstance(timestamp, datetime):
            entries.append((_epoch_millis(timestamp), sample))
    return entries


def compute_stats(path: Sequence) -> RideStats:
    """
    Compute statistics for one participant's path.

    Algorithm:
    1. Stable sort by timestamp.
    2. For each consecutive pair with distinct timestamps:
       - add the Haversine distance to the total
       - use the device-reported speed of the later sample when present
       - otherwise derive speed when the samples are at least 1s apart,
         ignoring derived zeros (jitter at rest)
    3. Duration is the span between first and last sample, stops included,
       so average speed is an average *moving* speed.
    4. Round everything to 2 decimals.

    Entries missing a timestamp or with broken coordinates are skipped
    rather than raising.

    Args:
        path: Samples exposing `timestamp`, `coordinates` (lon, lat) and `speed`

    Returns:
        RideStats, all zero for fewer than two samples
    """
    entries = _timestamped(path or [])
    if len(entries) < 2:
        return RideStats()

    entries.sort(key=lambda entry: entry[0])

    total_distance = 0.0
    total_speed = 0.0
    speed_count = 0
    max_speed = 0.0

    for (prev_ms, prev), (curr_ms, curr) in zip(entries, entries[1:]):
        # Retransmitted samples share a timestamp
        if curr_ms == prev_ms:
            continue

        prev_point = _lat_lon(prev)
        curr_point = _lat_lon(curr)

        if prev_point and curr_point:
            total_distance += geodesy.distance(prev_point, curr_point)

        reported = getattr(curr, "speed", None)
        if isinstance(reported, (int, float)) and not isinstance(reported, bool):
            total_speed += reported
            speed_count += 1
            max_speed = max(max_speed, reported)
        elif prev_point and curr_point:
            dt_ms = curr_ms - prev_ms
            if dt_ms >= MIN_SPEED_INTERVAL_MS:
                derived = geodesy.speed(prev_point, curr_point, dt_ms)
                if derived > 0:
                    total_speed += derived
                    speed_count += 1
                    max_speed = max(max_speed, derived)

    total_duration = (entries[-1][0] - entries[0][0]) / 1000

    return RideStats(
        total_distance=round2(total_distance),
        average_speed=round2(total_speed / speed_count) if speed_count > 0 else 0.0,
        max_speed=round2(max_speed),
        total_duration=round2(total_duration),
    )


def aggregate(participant_stats: Sequence[RideStats]) -> AggregateRideStats:
    """
    Roll per-participant statistics up into ride-level statistics.

    - total distance / max speed / duration: maximum across participants
    - average speed: unweighted mean of participants' averages
    - completion rate: share of participants who covered any distance, in %
    - average participant distance: mean over those who moved

    Returns:
        AggregateRideStats, all zero for an empty input
    """
    if not participant_stats:
        return AggregateRideStats()

    count = len(participant_stats)
    movers = [s for s in participant_stats if s.total_distance > 0]

    return AggregateRideStats(
        total_distance=round2(max(s.total_distance for s in participant_stats)),
        average_speed=round2(sum(s.average_speed for s in participant_stats) / count),
        max_speed=round2(max(s.max_speed for s in participant_stats)),
        total_duration=round2(max(s.total_duration for s in participant_stats)),
        completion_rate=round2(len(movers) / count * 100),
        average_participant_distance=round2(
            sum(s.total_distance for s in movers) / len(movers) if movers else 0.0
        ),
    )
