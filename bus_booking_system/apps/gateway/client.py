"""
HTTP client for the bus booking backend.

One method per backend resource/action. Methods shape the request, issue a
single attempt and decode the answer; they never retry and never cache.
"""

import logging
from typing import Any, Dict, List, Optional

import requests
from django.conf import settings

from .exceptions import DecodeError, HttpError, NetworkError
from .schemas import (
    Booking, BookingPayload, Bus, BusInput, Seat, SeatCounts, SeatStatus,
    SeatType, User, UserInput, UserPriorityInfo, decode, decode_list,
)

logger = logging.getLogger(__name__)

# Django session key holding the backend's cookie jar.
COOKIE_SESSION_KEY = 'api_cookies'


class BusBookingAPI:
    """Typed wrapper around the backend REST API."""

    def __init__(
        self,
        base_url: Optional[str] = None,
        timeout: Optional[float] = None,
        session: Optional[requests.Session] = None,
        cookies: Optional[Dict[str, str]] = None,
    ):
        config = settings.BUS_BOOKING_API
        self.base_url = (base_url or config['BASE_URL']).rstrip('/')
        self.timeout = timeout or config['TIMEOUT']
        self.session = session or requests.Session()
        self.session.headers.update({
            'Content-Type': 'application/json',
            'Accept': 'application/json',
        })
        if cookies:
            self.session.cookies.update(cookies)

    @classmethod
    def from_request(cls, request) -> 'BusBookingAPI':
        """Build a client carrying the backend cookies stored in the user's session."""
        return cls(cookies=request.session.get(COOKIE_SESSION_KEY))

    def export_cookies(self) -> Dict[str, str]:
        return requests.utils.dict_from_cookiejar(self.session.cookies)

    def clone(self) -> 'BusBookingAPI':
        """
        A client for another thread: same backend and timeout, its own
        requests.Session, and a copy of this client's cookies.
        """
        return BusBookingAPI(
            base_url=self.base_url,
            timeout=self.timeout,
            cookies=self.export_cookies(),
        )

    # ------------------------------------------------------------------
    # Transport

    def _request(
        self,
        method: str,
        path: str,
        params: Optional[Dict[str, Any]] = None,
        json: Optional[Dict[str, Any]] = None,
    ) -> requests.Response:
        url = f"{self.base_url}{path}"
        logger.debug(f"{method} {url} params={params}")
        try:
            response = self.session.request(
                method, url, params=params, json=json, timeout=self.timeout
            )
        except requests.exceptions.RequestException as e:
            logger.warning(f"Backend unreachable for {method} {path}: {e}")
            raise NetworkError(str(e)) from e

        if response.status_code >= 400:
            logger.warning(f"{method} {path} failed with {response.status_code}: {response.text[:200]}")
            raise HttpError(response.status_code, response.text)
        return response

    def _json(self, method: str, path: str, **kwargs) -> Any:
        response = self._request(method, path, **kwargs)
        try:
            return response.json()
        except ValueError as e:
            logger.error(f"Malformed JSON from {method} {path}")
            raise DecodeError(f"{method} {path}: response is not valid JSON") from e

    def _text(self, method: str, path: str, **kwargs) -> str:
        return self._request(method, path, **kwargs).text

    # ------------------------------------------------------------------
    # Buses

    def list_buses(self) -> List[Bus]:
        return decode_list(Bus, self._json('GET', '/bus'))

    def get_bus(self, bus_id: int) -> Bus:
        return decode(Bus, self._json('GET', f'/bus/{bus_id}'))

    def search_buses(
        self,
        name: Optional[str] = None,
        route: Optional[str] = None,
        departure: Optional[str] = None,
        arrival: Optional[str] = None,
    ) -> List[Bus]:
        params = {
            key: value for key, value in {
                'name': name,
                'route': route,
                'departure': departure,
                'arrival': arrival,
            }.items() if value
        }
        return decode_list(Bus, self._json('GET', '/bus/search', params=params))

    def create_bus(self, data: BusInput) -> Bus:
        return decode(Bus, self._json('POST', '/bus', json=data.to_payload()))

    def update_bus(self, bus_id: int, data: BusInput) -> Bus:
        return decode(Bus, self._json('PUT', f'/bus/{bus_id}', json=data.to_payload()))

    def delete_bus(self, bus_id: int) -> str:
        return self._text('DELETE', f'/bus/{bus_id}')

    # ------------------------------------------------------------------
    # Bookings

    def list_bookings(self) -> List[Booking]:
        return decode_list(Booking, self._json('GET', '/booking'))

    def list_user_bookings(self, user_id: int) -> List[Booking]:
        return decode_list(Booking, self._json('GET', f'/booking/user/{user_id}'))

    def create_booking(self, payload: BookingPayload) -> Booking:
        return decode(Booking, self._json('POST', '/booking', json=payload.to_payload()))

    def delete_booking(self, booking_id: int) -> str:
        return self._text('DELETE', f'/booking/{booking_id}')

    def cancel_booking(self, booking_id: int) -> str:
        return self._text('PUT', f'/booking/{booking_id}/cancel')

    # ------------------------------------------------------------------
    # Users

    def list_users(self) -> List[User]:
        return decode_list(User, self._json('GET', '/users'))

    def create_user(self, data: UserInput) -> User:
        return decode(User, self._json('POST', '/users', json=data.to_payload()))

    def delete_user(self, user_id: int) -> str:
        return self._text('DELETE', f'/users/{user_id}')

    def get_user_priority(self, user_id: int) -> UserPriorityInfo:
        return decode(UserPriorityInfo, self._json('GET', f'/users/{user_id}/priority'))

    def login(self, email: str, password: str) -> User:
        payload = self._json('POST', '/users/login', json={'email': email, 'password': password})
        return decode(User, payload)

    # ------------------------------------------------------------------
    # Seats

    def list_seats(self, bus_id: int) -> List[Seat]:
        return decode_list(Seat, self._json('GET', f'/seat/bus/{bus_id}'))

    def list_available_seats(self, bus_id: int) -> List[Seat]:
        return decode_list(Seat, self._json('GET', f'/seat/bus/{bus_id}/available'))

    def list_available_seats_by_type(self, bus_id: int, seat_type: SeatType) -> List[Seat]:
        seat_type = SeatType(seat_type)
        return decode_list(
            Seat, self._json('GET', f'/seat/bus/{bus_id}/available/{seat_type.value}')
        )

    def get_seat_counts(self, bus_id: int) -> SeatCounts:
        return decode(SeatCounts, self._json('GET', f'/seat/bus/{bus_id}/count'))

    def update_seat_status(self, seat_id: int, status: SeatStatus) -> Seat:
        status = SeatStatus(status)
        payload = self._json('PUT', f'/seat/{seat_id}/status', params={'status': status.value})
        return decode(Seat, payload)
