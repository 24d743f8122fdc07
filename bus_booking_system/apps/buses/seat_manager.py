"""
Seat layout rendering and seat-type eligibility for bus bookings.
"""

from dataclasses import dataclass, field
from typing import Dict, Iterator, List, Optional, Sequence, Tuple
import logging

from django.core.exceptions import ValidationError
from django.utils.translation import gettext_lazy as _

from apps.gateway.schemas import Seat, SeatStatus, SeatType, UserPriorityInfo, UserRole

logger = logging.getLogger(__name__)

SEATS_PER_ROW = 4
DEFAULT_TOTAL_SEATS = 40


class BookingValidationError(ValidationError):
    """A booking choice the current user may not submit."""


class SeatDisplayState:
    SELECTED = 'selected'
    OCCUPIED = 'occupied'
    PRIORITY = 'priority'
    AVAILABLE = 'available'


@dataclass(frozen=True)
class SeatCell:
    """A seat as drawn on the seat map."""
    seat_id: int
    seat_number: str
    seat_type: SeatType
    status: SeatStatus
    display_state: str
    selectable: bool

    @property
    def title(self) -> str:
        return f"Seat {self.seat_number} - {self.seat_type.value} - {self.status.value}"

    def to_dict(self) -> Dict:
        return {
            'id': self.seat_id,
            'seat_number': self.seat_number,
            'seat_type': self.seat_type.value,
            'status': self.status.value,
            'display_state': self.display_state,
            'selectable': self.selectable,
        }


def seat_sort_key(seat_number: str) -> Tuple[int, int, str]:
    """
    Order seats by the integer after the leading letter ("R05" -> 5).
    Seat numbers without a numeric suffix sort after all numbered seats.
    """
    try:
        return 0, int(seat_number[1:]), seat_number
    except ValueError:
        logger.debug(f"Seat number {seat_number!r} has no numeric suffix")
        return 1, 0, seat_number


@dataclass(frozen=True)
class SeatLayout:
    """
    Seat map for one bus. Rows are derived from the inputs each time the
    layout is iterated; nothing is cached between iterations.
    """
    seats: Tuple[Seat, ...]
    selected_seat_number: Optional[str]
    selected_seat_type: SeatType
    total_seats: int = DEFAULT_TOTAL_SEATS
    seats_per_row: int = field(default=SEATS_PER_ROW)

    def _cell(self, seat: Seat) -> SeatCell:
        if self.selected_seat_number and seat.seat_number == self.selected_seat_number:
            state = SeatDisplayState.SELECTED
        elif seat.status == SeatStatus.BOOKED:
            state = SeatDisplayState.OCCUPIED
        elif seat.seat_type != SeatType.REGULAR:
            state = SeatDisplayState.PRIORITY
        else:
            state = SeatDisplayState.AVAILABLE

        return SeatCell(
            seat_id=seat.id,
            seat_number=seat.seat_number,
            seat_type=seat.seat_type,
            status=seat.status,
            display_state=state,
            selectable=(
                seat.status == SeatStatus.AVAILABLE
                and seat.seat_type == self.selected_seat_type
            ),
        )

    def __iter__(self) -> Iterator[List[SeatCell]]:
        ordered = sorted(self.seats, key=lambda seat: seat_sort_key(seat.seat_number))
        for start in range(0, len(ordered), self.seats_per_row):
            yield [self._cell(seat) for seat in ordered[start:start + self.seats_per_row]]

    @property
    def rows(self) -> List[List[SeatCell]]:
        return list(self)

    def cells(self) -> Iterator[SeatCell]:
        for row in self:
            yield from row

    def cell(self, seat_number: str) -> Optional[SeatCell]:
        for cell in self.cells():
            if cell.seat_number == seat_number:
                return cell
        return None

    def is_selectable(self, seat_number: Optional[str]) -> bool:
        cell = self.cell(seat_number) if seat_number else None
        return bool(cell and cell.selectable)

    def select(self, seat_number: str) -> Optional[str]:
        """Return the new selection; clicking a non-selectable seat keeps the old one."""
        if self.is_selectable(seat_number):
            return seat_number
        return self.selected_seat_number

    def to_dict(self) -> Dict:
        return {
            'total_seats': self.total_seats,
            'seats_per_row': self.seats_per_row,
            'selected_seat_number': self.selected_seat_number,
            'selected_seat_type': self.selected_seat_type.value,
            'rows': [[cell.to_dict() for cell in row] for row in self],
        }


class SeatLayoutRenderer:
    """Build seat maps from the flat seat list returned by the backend."""

    @staticmethod
    def render(
        seats: Sequence[Seat],
        selected_seat_number: Optional[str] = None,
        selected_seat_type: SeatType = SeatType.REGULAR,
        total_seats: Optional[int] = None,
    ) -> SeatLayout:
        return SeatLayout(
            seats=tuple(seats),
            selected_seat_number=selected_seat_number or None,
            selected_seat_type=SeatType(selected_seat_type),
            total_seats=total_seats or DEFAULT_TOTAL_SEATS,
        )


class SeatEligibilityResolver:
    """
    Decide which seat types a user may pick.

    Admins may pick every type for any user. Everyone else may always pick
    REGULAR, ELDER only when elderly-priority eligible and PREGNANT only when
    pregnant-priority eligible. Without priority info only REGULAR is open
    and there is no recommendation.
    """

    PREGNANT_ELIGIBLE_MESSAGE = _('You are eligible for pregnant priority seating.')
    ELDERLY_ELIGIBLE_MESSAGE = _('You are eligible for elderly priority seating.')
    PREGNANT_NOT_ELIGIBLE_MESSAGE = _(
        'You are not eligible for pregnant priority seating. Please select a different seat type.'
    )
    ELDERLY_NOT_ELIGIBLE_MESSAGE = _(
        'You are not eligible for elderly priority seating. Please select a different seat type.'
    )

    def __init__(self, priority: Optional[UserPriorityInfo], role: UserRole = UserRole.USER):
        self.priority = priority
        self.role = UserRole(role)

    @property
    def is_admin(self) -> bool:
        return self.role == UserRole.ADMIN

    def is_eligible(self, seat_type: SeatType) -> bool:
        """Priority eligibility of the user, ignoring the admin override."""
        seat_type = SeatType(seat_type)
        if seat_type == SeatType.REGULAR:
            return True
        if self.priority is None:
            return False
        if seat_type == SeatType.ELDER:
            return self.priority.elderly_priority_eligible
        return self.priority.pregnant_priority_eligible

    def is_selectable(self, seat_type: SeatType) -> bool:
        return self.is_admin or self.is_eligible(seat_type)

    def selectable_types(self) -> List[SeatType]:
        return [seat_type for seat_type in SeatType if self.is_selectable(seat_type)]

    def recommended_seat_type(self) -> Optional[SeatType]:
        if self.priority is None:
            return None
        return self.priority.recommended_seat_type

    def initial_seat_type(self) -> SeatType:
        return self.recommended_seat_type() or SeatType.REGULAR

    def priority_message(self) -> str:
        if self.recommended_seat_type() is None:
            return ''
        if self.priority.pregnant_priority_eligible:
            return str(self.PREGNANT_ELIGIBLE_MESSAGE)
        if self.priority.elderly_priority_eligible:
            return str(self.ELDERLY_ELIGIBLE_MESSAGE)
        return ''

    def validate(self, seat_type: SeatType):
        """Raise BookingValidationError when the seat type may not be booked."""
        seat_type = SeatType(seat_type)
        if self.is_selectable(seat_type):
            return
        if seat_type == SeatType.PREGNANT:
            raise BookingValidationError(self.PREGNANT_NOT_ELIGIBLE_MESSAGE, code='not_eligible')
        raise BookingValidationError(self.ELDERLY_NOT_ELIGIBLE_MESSAGE, code='not_eligible')
