"""
Ride tracking schemas.

Mobile clients speak camelCase; every schema here aliases its fields
accordingly and accepts snake_case on input too.
"""

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel
from datetime import datetime
from typing import Any, Dict, List, Optional

from convoy.app.models.enums import TrackingStatus


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class LocationUpdate(CamelModel):
    """
    A location sample from the app.

    Fields are deliberately loose: range and type checks belong to the
    ingestion pipeline so both entry points reject bad input identically.
    """
    latitude: Optional[Any] = None
    longitude: Optional[Any] = None
    timestamp: Optional[Any] = None  # ISO-8601 or epoch ms, server time when absent
    speed: Optional[Any] = None  # m/s
    heading: Optional[Any] = None  # degrees
    user_id: Optional[str] = None  # must match the session user when sent


class TrackingStatusUpdate(CamelModel):
    status: TrackingStatus


class Position(CamelModel):
    """GeoJSON-style point, coordinates are [longitude, latitude]."""
    type: str = "Point"
    coordinates: List[float]
    timestamp: Optional[datetime] = None


class StatsOut(CamelModel):
    total_distance: float = 0.0
    average_speed: float = 0.0
    max_speed: float = 0.0
    total_duration: float = 0.0


class PointGeometry(CamelModel):
    type: str = "Point"
    coordinates: List[float]  # [longitude, latitude]


class PathPoint(CamelModel):
    timestamp: datetime
    coordinates: PointGeometry
    speed: Optional[float] = None
    heading: Optional[float] = None


class LocationAccepted(CamelModel):
    """Response after recording a location."""
    ride_id: str
    user_id: str
    coordinates: List[float]
    timestamp: datetime
    tracking_status: TrackingStatus
    total_points: int
    calculated_stats: StatsOut


class TrackingRecordOut(CamelModel):
    """A participant's full tracking record."""
    id: str
    ride_id: str
    user_id: str
    tracking_status: TrackingStatus
    start_time: datetime
    end_time: Optional[datetime] = None
    last_known_position: Optional[Position] = None
    calculated_stats: StatsOut
    total_points: int
    path: List[PathPoint] = []


class TrackingSummaryOut(CamelModel):
    """Organizer view of one participant, without the path."""
    user_id: str
    tracking_status: TrackingStatus
    start_time: datetime
    end_time: Optional[datetime] = None
    last_known_position: Optional[Position] = None
    calculated_stats: StatsOut
    total_points: int


class RideTrackingOverview(CamelModel):
    ride_id: str
    participants: List[TrackingSummaryOut]
    total_participants: int


def stats_out(document: Optional[Dict[str, Any]]) -> StatsOut:
    return StatsOut.model_validate(document or {})


def _position(record) -> Optional[Position]:
    position = record.last_known_position
    return Position(**position) if position else None


def record_summary(record) -> TrackingSummaryOut:
    return TrackingSummaryOut(
        user_id=record.user_id,
        tracking_status=record.tracking_status,
        start_time=record.start_time,
        end_time=record.end_time,
        last_known_position=_position(record),
        calculated_stats=stats_out(record.calculated_stats),
        total_points=len(record.samples),
    )


def record_detail(record) -> TrackingRecordOut:
    return TrackingRecordOut(
        id=record.id,
        ride_id=record.ride_id,
        user_id=record.user_id,
        tracking_status=record.tracking_status,
        start_time=record.start_time,
        end_time=record.end_time,
        last_known_position=_position(record),
        calculated_stats=stats_out(record.calculated_stats),
        total_points=len(record.samples),
        path=[
            PathPoint(
                timestamp=sample.timestamp,
                coordinates=PointGeometry(coordinates=list(sample.coordinates)),
                speed=sample.speed,
                heading=sample.heading,
            )
            for sample in record.samples
        ],
    )
