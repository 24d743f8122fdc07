"""
Utilities for booking list operations.
"""

import logging
from typing import Dict, Iterable, List, Optional

from apps.gateway.exceptions import DecodeError
from apps.gateway.schemas import Booking, BookingStatus, User, decode_list

logger = logging.getLogger(__name__)

SNAPSHOT_SESSION_KEY = 'booking_snapshot'
ALL_STATUSES = 'all'


class BookingManager:
    """List, filter, cancel and transfer bookings already held by the backend."""

    @staticmethod
    def fetch_bookings(api, user: User) -> List[Booking]:
        """Admins see every booking; everyone else sees their own."""
        if user.is_admin:
            return api.list_bookings()
        return api.list_user_bookings(user.id)

    @staticmethod
    def filter_by_status(bookings: Iterable[Booking], status: Optional[str]) -> List[Booking]:
        """Keep bookings with the given status, in their original order."""
        if not status or status == ALL_STATUSES:
            return list(bookings)
        status = BookingStatus(status)
        return [booking for booking in bookings if booking.status == status]

    @staticmethod
    def mark_cancelled(bookings: Iterable[Booking], booking_id: int) -> List[Booking]:
        """Patch one booking to CANCELLED; every other booking is returned as is."""
        return [
            booking.model_copy(update={'status': BookingStatus.CANCELLED})
            if booking.id == booking_id else booking
            for booking in bookings
        ]

    @staticmethod
    def remove(bookings: Iterable[Booking], booking_id: int) -> List[Booking]:
        return [booking for booking in bookings if booking.id != booking_id]

    @staticmethod
    def cancel_booking(api, bookings: Iterable[Booking], booking_id: int) -> List[Booking]:
        """
        Cancel a booking with the backend and patch the local list.
        GatewayError propagates and the list is left untouched.
        """
        api.cancel_booking(booking_id)
        logger.info(f"Booking {booking_id} cancelled")
        return BookingManager.mark_cancelled(bookings, booking_id)

    @staticmethod
    def delete_booking(api, bookings: Iterable[Booking], booking_id: int) -> List[Booking]:
        api.delete_booking(booking_id)
        logger.info(f"Booking {booking_id} deleted")
        return BookingManager.remove(bookings, booking_id)

    @staticmethod
    def transfer_candidates(bookings: Iterable[Booking]) -> List[Booking]:
        return [booking for booking in bookings if booking.status == BookingStatus.CONFIRMED]

    @staticmethod
    def submit_transfer(booking_id: int, recipient_email: str):
        """
        Hand a confirmed seat over to another user.
        The backend has no transfer endpoint yet, so nothing is sent.
        """
        logger.info(f"Transfer of booking {booking_id} to {recipient_email} requested; not supported by backend")
        return NotImplemented

    # ------------------------------------------------------------------
    # Session snapshot of the list shown on the bookings page

    @staticmethod
    def save_snapshot(session, bookings: Iterable[Booking]):
        session[SNAPSHOT_SESSION_KEY] = [
            booking.model_dump(mode='json', by_alias=True) for booking in bookings
        ]

    @staticmethod
    def load_snapshot(session) -> Optional[List[Booking]]:
        data = session.get(SNAPSHOT_SESSION_KEY)
        if data is None:
            return None
        try:
            return decode_list(Booking, data)
        except DecodeError:
            logger.warning("Discarding malformed booking snapshot")
            session.pop(SNAPSHOT_SESSION_KEY, None)
            return None

    @staticmethod
    def status_counts(bookings: Iterable[Booking]) -> Dict[str, int]:
        counts = {status.value: 0 for status in BookingStatus}
        for booking in bookings:
            counts[booking.status.value] += 1
        return counts
