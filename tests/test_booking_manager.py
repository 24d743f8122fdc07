"""
Tests for booking list filtering, cancellation and transfer.
"""

from unittest.mock import MagicMock

import pytest

from apps.bookings.utils import ALL_STATUSES, SNAPSHOT_SESSION_KEY, BookingManager
from apps.gateway.client import BusBookingAPI
from apps.gateway.exceptions import HttpError
from apps.gateway.schemas import BookingStatus

from .conftest import make_booking


@pytest.fixture
def bookings():
    return [
        make_booking(40, BookingStatus.CONFIRMED),
        make_booking(41, BookingStatus.PENDING),
        make_booking(42, BookingStatus.CONFIRMED),
        make_booking(43, BookingStatus.CANCELLED),
    ]


@pytest.fixture
def backend():
    return MagicMock(spec=BusBookingAPI)


class TestFetchAndFilter:
    """Test which bookings are listed."""

    def test_admin_sees_all_bookings(self, backend, admin_user):
        """Test admins list every booking."""
        BookingManager.fetch_bookings(backend, admin_user)
        backend.list_bookings.assert_called_once_with()
        backend.list_user_bookings.assert_not_called()

    def test_user_sees_own_bookings(self, backend, regular_user):
        """Test users list only their own bookings."""
        BookingManager.fetch_bookings(backend, regular_user)
        backend.list_user_bookings.assert_called_once_with(7)

    def test_filter_keeps_order(self, bookings):
        """Test filtering by CONFIRMED keeps matching bookings in order."""
        result = BookingManager.filter_by_status(bookings, 'CONFIRMED')
        assert [booking.id for booking in result] == [40, 42]

    def test_filter_all(self, bookings):
        """Test the 'all' filter returns everything."""
        assert BookingManager.filter_by_status(bookings, ALL_STATUSES) == bookings

    def test_status_counts(self, bookings):
        """Test counts per status include statuses with no bookings."""
        assert BookingManager.status_counts(bookings) == {
            'PENDING': 1, 'CONFIRMED': 2, 'CANCELLED': 1, 'COMPLETED': 0,
        }


class TestCancel:
    """Test cancelling and deleting bookings."""

    def test_cancel_patches_only_that_booking(self, backend, bookings):
        """Test cancelling 42 marks it CANCELLED and leaves the rest alone."""
        result = BookingManager.cancel_booking(backend, bookings, 42)

        backend.cancel_booking.assert_called_once_with(42)
        assert [booking.status for booking in result] == [
            BookingStatus.CONFIRMED,
            BookingStatus.PENDING,
            BookingStatus.CANCELLED,
            BookingStatus.CANCELLED,
        ]
        assert bookings[2].status == BookingStatus.CONFIRMED

    def test_failed_cancel_changes_nothing(self, backend, bookings):
        """Test a backend failure propagates and no booking is patched."""
        backend.cancel_booking.side_effect = HttpError(500, 'boom')

        with pytest.raises(HttpError):
            BookingManager.cancel_booking(backend, bookings, 42)
        assert bookings[2].status == BookingStatus.CONFIRMED

    def test_delete_removes_booking(self, backend, bookings):
        """Test deleting drops the booking from the list."""
        result = BookingManager.delete_booking(backend, bookings, 41)

        backend.delete_booking.assert_called_once_with(41)
        assert [booking.id for booking in result] == [40, 42, 43]


class TestTransfer:
    """Test seat transfer."""

    def test_candidates_are_confirmed_bookings(self, bookings):
        """Test only confirmed bookings can be transferred."""
        assert [b.id for b in BookingManager.transfer_candidates(bookings)] == [40, 42]

    def test_transfer_not_supported(self):
        """Test transfer reports it is not implemented by the backend."""
        assert BookingManager.submit_transfer(40, 'friend@example.com') is NotImplemented


class TestSnapshot:
    """Test the booking list kept in the session."""

    def test_snapshot_survives_session(self, bookings):
        """Test a saved list loads back unchanged."""
        session = {}
        BookingManager.save_snapshot(session, bookings)
        assert BookingManager.load_snapshot(session) == bookings

    def test_missing_snapshot(self):
        """Test no snapshot yields None so the list is fetched."""
        assert BookingManager.load_snapshot({}) is None

    def test_corrupt_snapshot_discarded(self):
        """Test a malformed snapshot is dropped."""
        session = {SNAPSHOT_SESSION_KEY: [{'id': 'not a booking'}]}
        assert BookingManager.load_snapshot(session) is None
        assert SNAPSHOT_SESSION_KEY not in session
