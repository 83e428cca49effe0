"""
Ride and RideParticipant database models.

Rides are created and joined through the ride management service; this
service reads their status and membership to gate tracking, and writes
the statistics fields when a ride completes.
"""

from sqlalchemy import Column, String, Boolean, ForeignKey, DateTime, Enum, JSON, UniqueConstraint
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from convoy.app.db.session import Base
from convoy.app.models.enums import RideStatus, ParticipantRole
from convoy.app.models.identifiers import new_object_id


class Ride(Base):
    """
    Ride model.

    A group ride owned by one user. Status moves
    planned -> active -> completed, or planned -> cancelled.
    """
    __tablename__ = "rides"

    id = Column(String(24), primary_key=True, default=new_object_id)
    name = Column(String(100), nullable=False)

    owner_id = Column(String(24), ForeignKey('users.id'), nullable=False, index=True)

    status = Column(
        Enum(RideStatus, values_callable=lambda e: [m.value for m in e]),
        default=RideStatus.PLANNED,
        nullable=False,
        index=True
    )

    start_time = Column(DateTime(timezone=True), nullable=False)
    end_time = Column(DateTime(timezone=True), nullable=True)

    # Aggregate statistics, written once when the ride completes
    ride_stats = Column(JSON, nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)

    participants = relationship(
        "RideParticipant",
        back_populates="ride",
        lazy="selectin",
        cascade="all, delete-orphan",
    )

    def is_owner(self, user_id: str) -> bool:
        return self.owner_id == user_id

    def is_approved_participant(self, user_id: str) -> bool:
        return any(p.user_id == user_id and p.is_approved for p in self.participants)

    def can_track(self, user_id: str) -> bool:
        """Owner or approved participant."""
        return self.is_owner(user_id) or self.is_approved_participant(user_id)

    def approved_user_ids(self) -> list[str]:
        """Owner plus approved participants, without duplicates, in join order."""
        user_ids = [self.owner_id]
        for participant in self.participants:
            if participant.is_approved and participant.user_id not in user_ids:
                user_ids.append(participant.user_id)
        return user_ids

    def __repr__(self):
        return f"<Ride(id={self.id}, name='{self.name}', status='{self.status.value}')>"


class RideParticipant(Base):
    """Membership of a user in a ride."""
    __tablename__ = "ride_participants"

    id = Column(String(24), primary_key=True, default=new_object_id)
    ride_id = Column(String(24), ForeignKey('rides.id'), nullable=False, index=True)
    user_id = Column(String(24), ForeignKey('users.id'), nullable=False, index=True)

    role = Column(
        Enum(ParticipantRole, values_callable=lambda e: [m.value for m in e]),
        default=ParticipantRole.MEMBER,
        nullable=False
    )
    is_approved = Column(Boolean, default=False, nullable=False)
    joined_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    # Per-participant statistics copied from tracking at completion
    ride_stats = Column(JSON, nullable=True)

    ride = relationship("Ride", back_populates="participants")

    __table_args__ = (
        UniqueConstraint('ride_id', 'user_id', name='uq_ride_participants_ride_user'),
    )

    def __repr__(self):
        return f"<RideParticipant(ride_id={self.ride_id}, user_id={self.user_id}, approved={self.is_approved})>"
