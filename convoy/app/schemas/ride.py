"""
Ride lifecycle and statistics schemas.
"""

from datetime import datetime
from typing import Dict, Optional

from convoy.app.models.enums import RideStatus
from convoy.app.schemas.tracking import CamelModel, StatsOut


class RideStatusOut(CamelModel):
    """Response after a lifecycle transition."""
    id: str
    name: str
    status: RideStatus
    start_time: datetime
    end_time: Optional[datetime] = None


class AggregateStatsOut(StatsOut):
    completion_rate: float = 0.0
    average_participant_distance: float = 0.0


class RideCompleteOut(RideStatusOut):
    ride_stats: AggregateStatsOut


class RideStatsOut(CamelModel):
    ride_id: str
    status: RideStatus
    ride_stats: AggregateStatsOut
    participants: Dict[str, StatsOut]
