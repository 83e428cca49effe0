"""
Ingestion gateway tests: validation rules and their order.
"""

from datetime import datetime, timezone

import pytest
from sqlalchemy import select

from convoy.app.core.exceptions import (
    InvalidCoordinatesError, InvalidIdFormatError, InvalidTimestampError,
    RideNotActiveError, RideNotFoundError, UnauthorizedRideAccessError
)
from convoy.app.models.enums import RideStatus, TrackingStatus
from convoy.app.models.identifiers import new_object_id
from convoy.app.models.ride import RideParticipant
from convoy.app.services.ingestion import (
    IngestionGateway, parse_timestamp, validate_coordinates, validate_identifiers, validate_motion
)


def test_valid_identifiers():
    validate_identifiers("64b7f0c2a1e4d3b2c1a0f9e8", "64B7F0C2A1E4D3B2C1A0F9E9")


@pytest.mark.parametrize("bad", [
    "", "xyz", "64b7f0c2a1e4d3b2c1a0f9e", "64b7f0c2a1e4d3b2c1a0f9eg",
    "64b7f0c2a1e4d3b2c1a0f9e8\n", " 64b7f0c2a1e4d3b2c1a0f9e8", None, 42,
])
def test_malformed_ride_id(bad):
    with pytest.raises(InvalidIdFormatError) as exc_info:
        validate_identifiers(bad, new_object_id())
    assert exc_info.value.error_code == "ERR_TRACK_ID"


def test_malformed_user_id():
    with pytest.raises(InvalidIdFormatError) as exc_info:
        validate_identifiers(new_object_id(), "not-a-user")
    assert exc_info.value.details["field"] == "user ID"


def test_coordinates_are_returned_lon_lat():
    assert validate_coordinates(45.5, -122.6) == (-122.6, 45.5)


@pytest.mark.parametrize("lat,lon", [
    (None, 10),
    (10, None),
    ("45.5", 10),
    (True, 10),
    (float("nan"), 10),
    (float("inf"), 10),
    (90.0001, 0),
    (-90.0001, 0),
    (0, 180.0001),
    (0, -180.0001),
])
def test_invalid_coordinates(lat, lon):
    with pytest.raises(InvalidCoordinatesError):
        validate_coordinates(lat, lon)


@pytest.mark.parametrize("lat,lon", [(90, 180), (-90, -180), (0, 0)])
def test_boundary_coordinates_are_accepted(lat, lon):
    assert validate_coordinates(lat, lon) == (float(lon), float(lat))


def test_motion_readings():
    assert validate_motion(None, None) == (None, None)
    assert validate_motion(3, 359.5) == (3.0, 359.5)
    for speed, heading in [(-1, None), ("fast", None), (None, 361), (None, -0.1)]:
        with pytest.raises(InvalidCoordinatesError):
            validate_motion(speed, heading)


def test_parse_timestamp_formats():
    expected = datetime(2024, 6, 1, 8, 0, 0, tzinfo=timezone.utc)

    assert parse_timestamp("2024-06-01T08:00:00Z") == expected
    assert parse_timestamp("2024-06-01T08:00:00+00:00") == expected
    assert parse_timestamp("2024-06-01T08:00:00") == expected
    assert parse_timestamp(1717228800000) == expected
    assert parse_timestamp(expected) == expected


def test_parse_timestamp_defaults_to_now():
    before = datetime.now(timezone.utc)
    parsed = parse_timestamp(None)
    assert before <= parsed <= datetime.now(timezone.utc)


@pytest.mark.parametrize("bad", ["yesterday", "", [2024], {"t": 1}, True])
def test_unparseable_timestamps(bad):
    with pytest.raises(InvalidTimestampError):
        parse_timestamp(bad)


# Gateway pipeline against the database

@pytest.fixture
async def riders(make_user):
    return {
        "owner": await make_user("owner"),
        "member": await make_user("member"),
        "pending": await make_user("pending"),
        "outsider": await make_user("outsider"),
    }


async def test_owner_and_approved_member_can_submit(db_session, make_ride, riders):
    ride = await make_ride(riders["owner"], members=[riders["member"]])
    ride_id = ride.id
    gateway = IngestionGateway(db_session)

    for key in ("owner", "member"):
        record = await gateway.submit_location(ride_id, riders[key].id, 45.0, 7.0)
        assert record.tracking_status == TrackingStatus.ACTIVE
        assert record.last_known_position["coordinates"] == [7.0, 45.0]


async def test_pending_participant_and_outsider_are_rejected(db_session, make_ride, riders):
    ride = await make_ride(riders["owner"], members=[riders["member"]], pending=[riders["pending"]])
    ride_id = ride.id
    gateway = IngestionGateway(db_session)

    for key in ("pending", "outsider"):
        with pytest.raises(UnauthorizedRideAccessError):
            await gateway.submit_location(ride_id, riders[key].id, 45.0, 7.0)


async def test_pending_participant_can_submit_once_approved(db_session, make_ride, riders):
    ride = await make_ride(riders["owner"], pending=[riders["pending"]])
    ride_id = ride.id
    pending_id = riders["pending"].id
    gateway = IngestionGateway(db_session)

    with pytest.raises(UnauthorizedRideAccessError):
        await gateway.submit_location(ride_id, pending_id, 45.0, 7.0)

    participant = (await db_session.execute(
        select(RideParticipant).where(
            RideParticipant.ride_id == ride_id, RideParticipant.user_id == pending_id
        )
    )).scalar_one()
    participant.is_approved = True
    await db_session.commit()

    record = await gateway.submit_location(ride_id, pending_id, 45.0, 7.0)
    assert record.user_id == pending_id
    assert record.tracking_status == TrackingStatus.ACTIVE


async def test_unknown_ride(db_session, riders):
    with pytest.raises(RideNotFoundError):
        await IngestionGateway(db_session).submit_location(new_object_id(), riders["owner"].id, 45.0, 7.0)


@pytest.mark.parametrize("ride_status", [RideStatus.PLANNED, RideStatus.COMPLETED, RideStatus.CANCELLED])
async def test_inactive_ride(db_session, make_ride, riders, ride_status):
    ride = await make_ride(riders["owner"], status=ride_status)

    with pytest.raises(RideNotActiveError) as exc_info:
        await IngestionGateway(db_session).submit_location(ride.id, riders["owner"].id, 45.0, 7.0)
    assert exc_info.value.error_code == "ERR_RIDE_STATE"


async def test_coordinates_are_checked_before_the_ride(db_session, riders):
    # Unknown ride, but the bad coordinates are reported first
    with pytest.raises(InvalidCoordinatesError):
        await IngestionGateway(db_session).submit_location(new_object_id(), riders["owner"].id, 91, 0)


async def test_ride_state_is_checked_before_membership(db_session, make_ride, riders):
    ride = await make_ride(riders["owner"], status=RideStatus.PLANNED)

    with pytest.raises(RideNotActiveError):
        await IngestionGateway(db_session).submit_location(ride.id, riders["outsider"].id, 45.0, 7.0)


async def test_stop_tracking_completes_record(db_session, make_ride, riders):
    ride = await make_ride(riders["owner"], members=[riders["member"]])
    ride_id, member_id = ride.id, riders["member"].id
    gateway = IngestionGateway(db_session)

    await gateway.submit_location(ride_id, member_id, 45.0, 7.0)
    record = await gateway.stop_tracking(ride_id, member_id)

    assert record.tracking_status == TrackingStatus.COMPLETED
    assert record.end_time is not None
