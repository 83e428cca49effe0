"""
Ride Tracking database models.

One TrackingRecord per (ride, user) pair holds the session state and the
derived statistics; its GPS breadcrumb trail lives in TrackingSample rows,
kept in arrival order.
"""

from sqlalchemy import (
    Column, Integer, String, Float, ForeignKey, DateTime, Enum, JSON, UniqueConstraint
)
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from convoy.app.db.session import Base
from convoy.app.models.enums import TrackingStatus
from convoy.app.models.identifiers import new_object_id


EMPTY_STATS = {
    "totalDistance": 0.0,
    "averageSpeed": 0.0,
    "maxSpeed": 0.0,
    "totalDuration": 0.0,
}


class TrackingRecord(Base):
    """
    Tracking record for one participant of one ride.

    Created implicitly on the first accepted sample. Never deleted here.
    """
    __tablename__ = "ride_trackings"

    id = Column(String(24), primary_key=True, default=new_object_id)

    # References
    ride_id = Column(String(24), ForeignKey('rides.id'), nullable=False, index=True)
    user_id = Column(String(24), ForeignKey('users.id'), nullable=False, index=True)

    tracking_status = Column(
        Enum(TrackingStatus, values_callable=lambda e: [m.value for m in e]),
        default=TrackingStatus.ACTIVE,
        nullable=False
    )

    # Session bounds
    start_time = Column(DateTime(timezone=True), nullable=False)
    end_time = Column(DateTime(timezone=True), nullable=True)

    # Last known position, [longitude, latitude] at the API boundary
    last_longitude = Column(Float, nullable=True)
    last_latitude = Column(Float, nullable=True)
    last_position_at = Column(DateTime(timezone=True), nullable=True)

    # Derived from samples, never edited by hand
    calculated_stats = Column(JSON, nullable=False, default=lambda: dict(EMPTY_STATS))

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)

    samples = relationship(
        "TrackingSample",
        order_by="TrackingSample.id",
        lazy="selectin",
        cascade="all, delete-orphan",
    )

    __table_args__ = (
        UniqueConstraint('ride_id', 'user_id', name='uq_ride_trackings_ride_user'),
    )

    @property
    def last_known_position(self):
        if self.last_longitude is None or self.last_latitude is None:
            return None
        return {
            "type": "Point",
            "coordinates": [self.last_longitude, self.last_latitude],
            "timestamp": self.last_position_at,
        }

    def __repr__(self):
        return f"<TrackingRecord(ride_id={self.ride_id}, user_id={self.user_id}, status='{self.tracking_status.value}')>"


class TrackingSample(Base):
    """
    A single GPS sample in a tracking path.

    Append-only; the autoincrement id preserves arrival order.
    """
    __tablename__ = "ride_tracking_samples"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    tracking_id = Column(String(24), ForeignKey('ride_trackings.id'), nullable=False, index=True)

    # GPS data
    timestamp = Column(DateTime(timezone=True), nullable=False)
    longitude = Column(Float, nullable=False)
    latitude = Column(Float, nullable=False)
    speed = Column(Float, nullable=True)  # m/s, device reported
    heading = Column(Float, nullable=True)  # degrees 0-360

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    @property
    def coordinates(self):
        return (self.longitude, self.latitude)

    def __repr__(self):
        return f"<TrackingSample(tracking_id={self.tracking_id}, lng={self.longitude}, lat={self.latitude})>"
