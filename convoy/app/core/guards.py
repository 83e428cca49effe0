"""
Ride access guards.

Riders have no global roles; what a user may see or do depends on their
relationship to the ride: owner, approved participant, or neither.
"""

from fastapi import Depends

from convoy.app.core.dependencies import get_current_user
from convoy.app.core.exceptions import InsufficientPermissionsError, UnauthorizedRideAccessError
from convoy.app.models.ride import Ride


def current_user_id(current_user: dict = Depends(get_current_user)) -> str:
    """
    Dependency yielding just the authenticated user's id.

    Usage:
        @router.get("/rides/{ride_id}/tracking")
        async def my_tracking(user_id: str = Depends(current_user_id)):
            ...
    """
    return current_user["user_id"]


class RideAccessGuard:
    """
    Relationship-based access checks for a loaded ride.

    Usage:
        ride_guard = RideAccessGuard()

        ride = await load_ride(db, ride_id)
        ride_guard.require_owner(ride, user_id, action="complete this ride")
    """

    def require_member(self, ride: Ride, user_id: str):
        """
        Owner or approved participant.

        Raises:
            UnauthorizedRideAccessError
        """
        if not ride.can_track(user_id):
            raise UnauthorizedRideAccessError()

    def require_owner(self, ride: Ride, user_id: str, action: str = "perform this action"):
        """
        Raises:
            InsufficientPermissionsError: user is not the ride owner
        """
        if not ride.is_owner(user_id):
            raise InsufficientPermissionsError(
                message=f"Only the ride owner can {action}",
                details={"ride_id": ride.id}
            )

    def require_owner_or_self(self, ride: Ride, user_id: str, target_user_id: str):
        """
        The owner may read anyone's data on the ride; other members only their own.

        Raises:
            UnauthorizedRideAccessError / InsufficientPermissionsError
        """
        if ride.is_owner(user_id):
            return
        self.require_member(ride, user_id)
        if user_id != target_user_id:
            raise InsufficientPermissionsError(
                message="You can only view your own tracking data",
                details={"ride_id": ride.id}
            )


ride_guard = RideAccessGuard()
