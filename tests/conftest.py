"""
Shared fixtures: backend objects, a mocked gateway and logged-in test clients.
"""

from datetime import datetime
from decimal import Decimal
from unittest.mock import MagicMock, patch

import pytest

from apps.gateway.client import BusBookingAPI
from apps.gateway.schemas import (
    Booking, BookingStatus, Bus, Seat, SeatCounts, SeatStatus, SeatType,
    User, UserPriorityInfo, UserRole,
)
from apps.users.auth import SESSION_USER_KEY


def make_seat(seat_id, seat_number, seat_type=SeatType.REGULAR, status=SeatStatus.AVAILABLE, bus_id=3):
    return Seat(id=seat_id, bus_id=bus_id, seat_number=seat_number, seat_type=seat_type, status=status)


def make_booking(booking_id, status=BookingStatus.CONFIRMED, user_id=7, bus_id=3, seat_number='R01'):
    return Booking(
        id=booking_id,
        user_id=user_id,
        bus_id=bus_id,
        booking_date=datetime(2025, 6, 1, 10, 30),
        seat_number=seat_number,
        amount=Decimal('500'),
        status=status,
    )


def login(client, user: User):
    """Put a backend user into the test client's session."""
    session = client.session
    session[SESSION_USER_KEY] = user.model_dump(mode='json', by_alias=True)
    session.save()
    return client


@pytest.fixture
def regular_user():
    return User(id=7, name='Asha', email='asha@example.com', role=UserRole.USER)


@pytest.fixture
def admin_user():
    return User(id=1, name='Admin', email='admin@example.com', role=UserRole.ADMIN)


@pytest.fixture
def bus():
    return Bus(
        id=3,
        name='City Express',
        route='Pune - Mumbai',
        departure_date='01-06-2025',
        departure_time='08:00',
        arrival_time='11:30',
        total_seats=12,
        available_seats=10,
        price=Decimal('500'),
    )


@pytest.fixture
def seats():
    """Twelve seats: R01-R08 regular, E09-E10 elder, P11-P12 pregnant; R02 is booked."""
    result = [make_seat(i, f'R{i:02d}') for i in range(1, 9)]
    result[1] = make_seat(2, 'R02', status=SeatStatus.BOOKED)
    result += [make_seat(i, f'E{i:02d}', SeatType.ELDER) for i in (9, 10)]
    result += [make_seat(i, f'P{i:02d}', SeatType.PREGNANT) for i in (11, 12)]
    return result


@pytest.fixture
def api(bus, seats, regular_user, admin_user):
    """A gateway double with a healthy backend; every view gets this instance."""
    mock = MagicMock(spec=BusBookingAPI)
    mock.clone.return_value = mock
    mock.list_buses.return_value = [bus]
    mock.get_bus.return_value = bus
    mock.list_users.return_value = [admin_user, regular_user]
    mock.list_seats.return_value = seats
    mock.get_seat_counts.return_value = SeatCounts(REGULAR=8, ELDER=2, PREGNANT=2)
    mock.get_user_priority.return_value = UserPriorityInfo()
    mock.list_bookings.return_value = []
    mock.list_user_bookings.return_value = []
    with patch.object(BusBookingAPI, 'from_request', return_value=mock):
        yield mock


@pytest.fixture
def user_client(client, regular_user):
    return login(client, regular_user)


@pytest.fixture
def admin_client(client, admin_user):
    return login(client, admin_user)
