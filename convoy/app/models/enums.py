"""
Ride and tracking enumerations.

Defines the lifecycle states shared by rides, participants and
per-user tracking records.
"""

import enum


class RideStatus(str, enum.Enum):
    """
    Ride lifecycle status.

    States:
        PLANNED: Created, waiting for the owner to start it (default)
        ACTIVE: Underway, location samples are accepted
        COMPLETED: Finished, statistics rolled up
        CANCELLED: Called off before it started
    """
    PLANNED = "planned"
    ACTIVE = "active"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class ParticipantRole(str, enum.Enum):
    """Role of a user inside a ride."""
    MEMBER = "member"
    MODERATOR = "moderator"
    OWNER = "owner"


class TrackingStatus(str, enum.Enum):
    """Per-(ride, user) tracking session status."""
    ACTIVE = "active"  # Samples accepted
    PAUSED = "paused"  # Temporarily not recording
    COMPLETED = "completed"  # Ride finished (terminal)
    STOPPED = "stopped"  # User stopped tracking (terminal)

    @property
    def is_terminal(self) -> bool:
        return self in (TrackingStatus.COMPLETED, TrackingStatus.STOPPED)
