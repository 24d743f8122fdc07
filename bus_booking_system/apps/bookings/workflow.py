"""
Booking creation workflow.

The flow runs INITIALIZING -> SELECTING -> SUBMITTING_PENDING ->
AWAITING_PAYMENT -> SUBMITTING_CONFIRMED -> DONE, and can drop into ERRORED
from any non-terminal step. Every step takes a state object and returns a new
one; states are never mutated in place. Between HTTP requests the selection
state and the draft live in the Django session.
"""

from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field, replace
from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Dict, Optional, Tuple
import logging
import uuid

from django.utils.translation import gettext_lazy as _

from apps.buses.seat_manager import (
    BookingValidationError, SeatEligibilityResolver, SeatLayout, SeatLayoutRenderer,
)
from apps.gateway.exceptions import GatewayError, PartialLoadError
from apps.gateway.schemas import (
    Booking, BookingPayload, BookingStatus, Bus, Seat, SeatCounts, SeatType,
    User, UserPriorityInfo, decode, decode_list,
)

logger = logging.getLogger(__name__)

WORKFLOW_SESSION_KEY = 'booking_workflow'
DRAFT_SESSION_KEY = 'pending_booking'


class WorkflowStep(str, Enum):
    INITIALIZING = "INITIALIZING"
    SELECTING = "SELECTING"
    SUBMITTING_PENDING = "SUBMITTING_PENDING"
    AWAITING_PAYMENT = "AWAITING_PAYMENT"
    SUBMITTING_CONFIRMED = "SUBMITTING_CONFIRMED"
    DONE = "DONE"
    ERRORED = "ERRORED"


@dataclass(frozen=True)
class SeatFetch:
    """Result of loading one bus's seats, tagged with the generation that asked for it."""
    generation: int
    bus_id: int
    seats: Tuple[Seat, ...] = ()
    counts: SeatCounts = field(default_factory=SeatCounts)
    error: Optional[PartialLoadError] = None


@dataclass(frozen=True)
class SelectionState:
    """Everything the seat-selection page shows, for one user in one flow."""
    acting_user: User
    step: WorkflowStep = WorkflowStep.INITIALIZING
    buses: Tuple[Bus, ...] = ()
    users: Tuple[User, ...] = ()
    bus_id: Optional[int] = None
    bus_preselected: bool = False
    user_id: Optional[int] = None
    priority: Optional[UserPriorityInfo] = None
    seat_type: SeatType = SeatType.REGULAR
    seat_number: Optional[str] = None
    seats: Tuple[Seat, ...] = ()
    seat_counts: SeatCounts = field(default_factory=SeatCounts)
    seat_generation: int = 0
    priority_message: str = ''
    partial_errors: Tuple[str, ...] = ()
    error: str = ''

    @property
    def selected_bus(self) -> Optional[Bus]:
        for bus in self.buses:
            if bus.id == self.bus_id:
                return bus
        return None

    @property
    def resolver(self) -> SeatEligibilityResolver:
        return SeatEligibilityResolver(self.priority, self.acting_user.role)

    @property
    def layout(self) -> SeatLayout:
        bus = self.selected_bus
        return SeatLayoutRenderer.render(
            self.seats,
            selected_seat_number=self.seat_number,
            selected_seat_type=self.seat_type,
            total_seats=bus.total_seats if bus else None,
        )

    @property
    def can_submit(self) -> bool:
        return self.step == WorkflowStep.SELECTING and bool(self.seat_number)

    def to_session(self) -> Dict:
        return {
            'acting_user': self.acting_user.model_dump(mode='json', by_alias=True),
            'step': self.step.value,
            'buses': [bus.model_dump(mode='json', by_alias=True) for bus in self.buses],
            'users': [user.model_dump(mode='json', by_alias=True) for user in self.users],
            'bus_id': self.bus_id,
            'bus_preselected': self.bus_preselected,
            'user_id': self.user_id,
            'priority': self.priority.model_dump(mode='json', by_alias=True) if self.priority else None,
            'seat_type': self.seat_type.value,
            'seat_number': self.seat_number,
            'seats': [seat.model_dump(mode='json', by_alias=True) for seat in self.seats],
            'seat_counts': self.seat_counts.model_dump(),
            'seat_generation': self.seat_generation,
            'priority_message': self.priority_message,
            'partial_errors': list(self.partial_errors),
            'error': self.error,
        }

    @classmethod
    def from_session(cls, data: Dict) -> 'SelectionState':
        """Rebuild a state saved by to_session; raises DecodeError on a corrupt entry."""
        priority = data.get('priority')
        return cls(
            acting_user=decode(User, data['acting_user']),
            step=WorkflowStep(data['step']),
            buses=tuple(decode_list(Bus, data.get('buses', []))),
            users=tuple(decode_list(User, data.get('users', []))),
            bus_id=data.get('bus_id'),
            bus_preselected=data.get('bus_preselected', False),
            user_id=data.get('user_id'),
            priority=decode(UserPriorityInfo, priority) if priority else None,
            seat_type=SeatType(data.get('seat_type', SeatType.REGULAR.value)),
            seat_number=data.get('seat_number'),
            seats=tuple(decode_list(Seat, data.get('seats', []))),
            seat_counts=decode(SeatCounts, data.get('seat_counts', {})),
            seat_generation=data.get('seat_generation', 0),
            priority_message=data.get('priority_message', ''),
            partial_errors=tuple(data.get('partial_errors', ())),
            error=data.get('error', ''),
        )


@dataclass(frozen=True)
class BookingDraft:
    """A booking assembled on the selection page, not yet sent to the backend."""
    user_id: int
    bus_id: int
    booking_date: datetime
    seat_number: str
    amount: Decimal
    status: BookingStatus = BookingStatus.PENDING
    bus_name: str = ''
    bus_route: str = ''
    draft_id: str = field(default_factory=lambda: uuid.uuid4().hex)

    def to_payload(self) -> BookingPayload:
        return BookingPayload(
            user_id=self.user_id,
            bus_id=self.bus_id,
            booking_date=self.booking_date,
            seat_number=self.seat_number,
            amount=self.amount,
            status=self.status,
        )

    def confirmed(self) -> 'BookingDraft':
        return replace(self, status=BookingStatus.CONFIRMED)

    def to_session(self) -> Dict:
        return {
            'draft_id': self.draft_id,
            'user_id': self.user_id,
            'bus_id': self.bus_id,
            'booking_date': self.booking_date.isoformat(),
            'seat_number': self.seat_number,
            'amount': str(self.amount),
            'status': self.status.value,
            'bus_name': self.bus_name,
            'bus_route': self.bus_route,
        }

    @classmethod
    def from_session(cls, data: Dict) -> 'BookingDraft':
        return cls(
            draft_id=data['draft_id'],
            user_id=int(data['user_id']),
            bus_id=int(data['bus_id']),
            booking_date=datetime.fromisoformat(data['booking_date']),
            seat_number=data['seat_number'],
            amount=Decimal(data['amount']),
            status=BookingStatus(data['status']),
            bus_name=data.get('bus_name', ''),
            bus_route=data.get('bus_route', ''),
        )


class BookingWorkflow:
    """Drive one user through seat selection and payment confirmation."""

    max_workers = 4

    def __init__(self, api, acting_user: User):
        self.api = api
        self.acting_user = acting_user

    # ------------------------------------------------------------------
    # Loading

    def _fetch_seats(self, bus_id: int, generation: int) -> SeatFetch:
        try:
            with ThreadPoolExecutor(max_workers=2) as pool:
                seats_future = pool.submit(self.api.clone().list_seats, bus_id)
                counts_future = pool.submit(self.api.clone().get_seat_counts, bus_id)
                seats = seats_future.result()
                counts = counts_future.result()
        except GatewayError as e:
            logger.warning(f"Seat information for bus {bus_id} failed to load: {e}")
            return SeatFetch(
                generation=generation,
                bus_id=bus_id,
                error=PartialLoadError('seat information', e),
            )
        return SeatFetch(generation=generation, bus_id=bus_id, seats=tuple(seats), counts=counts)

    def _fetch_priority(self, user_id: int, api=None):
        """Return (priority, error); a failure only degrades the page."""
        api = api or self.api
        try:
            return api.get_user_priority(user_id), None
        except GatewayError as e:
            logger.warning(f"Priority info for user {user_id} failed to load: {e}")
            return None, PartialLoadError('priority information', e)

    @staticmethod
    def begin_seat_fetch(state: SelectionState) -> SelectionState:
        """Start a new seat load; any result from an older generation becomes stale."""
        return replace(state, seat_generation=state.seat_generation + 1)

    @staticmethod
    def apply_seat_fetch(state: SelectionState, fetch: SeatFetch) -> SelectionState:
        """Install a seat load result unless a newer load has started since."""
        if fetch.generation != state.seat_generation or fetch.bus_id != state.bus_id:
            logger.debug(
                f"Discarding stale seat data for bus {fetch.bus_id} "
                f"(generation {fetch.generation}, current {state.seat_generation})"
            )
            return state
        partial_errors = state.partial_errors
        if fetch.error is not None:
            partial_errors = partial_errors + (fetch.error.user_message(),)
        return replace(
            state,
            seats=fetch.seats,
            seat_counts=fetch.counts,
            partial_errors=partial_errors,
        )

    @staticmethod
    def _apply_priority(state: SelectionState, priority: Optional[UserPriorityInfo]) -> SelectionState:
        resolver = SeatEligibilityResolver(priority, state.acting_user.role)
        seat_type = state.seat_type
        seat_number = state.seat_number
        recommended = resolver.recommended_seat_type()
        if recommended is not None and recommended != seat_type:
            seat_type = recommended
            seat_number = None
        return replace(
            state,
            priority=priority,
            seat_type=seat_type,
            seat_number=seat_number,
            priority_message=resolver.priority_message(),
        )

    def initialize(self, bus_id: Optional[int] = None, user_id: Optional[int] = None) -> SelectionState:
        """
        Load everything the selection page needs.
        Bus and user list failures are fatal for the attempt; seat and
        priority failures are recorded and the flow continues.
        """
        state = SelectionState(
            acting_user=self.acting_user,
            bus_id=bus_id,
            bus_preselected=bus_id is not None,
            user_id=user_id or self.acting_user.id,
        )
        if bus_id is not None:
            state = self.begin_seat_fetch(state)

        # Each worker gets its own client; a requests.Session is never shared across threads.
        with ThreadPoolExecutor(max_workers=self.max_workers) as pool:
            buses_future = pool.submit(self.api.clone().list_buses)
            users_future = pool.submit(self.api.clone().list_users) if self.acting_user.is_admin else None
            seats_future = (
                pool.submit(self._fetch_seats, bus_id, state.seat_generation)
                if bus_id is not None else None
            )
            priority_future = (
                pool.submit(self._fetch_priority, state.user_id, self.api.clone())
                if state.user_id is not None else None
            )

            try:
                buses = tuple(buses_future.result())
                users = tuple(users_future.result()) if users_future else ()
            except GatewayError as e:
                logger.error(f"Booking flow failed to initialize: {e}")
                return replace(state, step=WorkflowStep.ERRORED, error=e.user_message())

            seat_fetch = seats_future.result() if seats_future else None
            priority, priority_error = priority_future.result() if priority_future else (None, None)

        state = replace(state, buses=buses, users=users, step=WorkflowStep.SELECTING)

        if bus_id is not None and state.selected_bus is None:
            logger.warning(f"Preselected bus {bus_id} is not in the bus list")
            state = replace(
                state,
                bus_id=None,
                bus_preselected=False,
                partial_errors=state.partial_errors + (str(_('The selected bus is no longer available.')),),
            )
        elif seat_fetch is not None:
            state = self.apply_seat_fetch(state, seat_fetch)

        if priority_error is not None:
            state = replace(state, partial_errors=state.partial_errors + (priority_error.user_message(),))
        return self._apply_priority(state, priority)

    # ------------------------------------------------------------------
    # Selecting

    def _reload_seats(self, state: SelectionState, store=None) -> SelectionState:
        """
        Load seats for the state's bus under a new generation.

        With a store (anything with load() and save(state)), the new
        generation is saved before the backend is asked, and the answer is
        applied to whatever state the store holds when it arrives. If a newer
        request saved another selection in the meantime, that selection is
        kept and this answer is dropped.
        """
        state = self.begin_seat_fetch(state)
        if state.bus_id is None:
            return replace(state, seats=(), seat_counts=SeatCounts())
        if store is not None:
            store.save(state)
        fetch = self._fetch_seats(state.bus_id, state.seat_generation)
        latest = store.load() if store is not None else None
        return self.apply_seat_fetch(latest or state, fetch)

    def select_bus(self, state: SelectionState, bus_id: Optional[int], store=None) -> SelectionState:
        """Switch buses: clears the seat and reloads the seat data."""
        if state.bus_preselected and bus_id != state.bus_id:
            return state
        state = replace(state, bus_id=bus_id, seat_number=None)
        return self._reload_seats(state, store)

    def select_seat_type(self, state: SelectionState, seat_type: SeatType, store=None) -> SelectionState:
        """
        Switch seat types: clears the seat and reloads the seat data.
        Eligibility is enforced by submit(), not here.
        """
        state = replace(state, seat_type=SeatType(seat_type), seat_number=None)
        return self._reload_seats(state, store)

    def select_user(self, state: SelectionState, user_id: int) -> SelectionState:
        """Admins book on behalf of another user; that user's priority info applies."""
        if not self.acting_user.is_admin:
            return state
        state = replace(state, user_id=user_id)
        priority, error = self._fetch_priority(user_id)
        if error is not None:
            state = replace(state, partial_errors=state.partial_errors + (error.user_message(),))
        return self._apply_priority(state, priority)

    @staticmethod
    def select_seat(state: SelectionState, seat_number: str) -> SelectionState:
        return replace(state, seat_number=state.layout.select(seat_number))

    # ------------------------------------------------------------------
    # Submitting

    def submit(self, state: SelectionState, booking_date: datetime) -> Tuple[SelectionState, BookingDraft]:
        """
        Validate the selection and build the draft for the payment step.
        Raises BookingValidationError; no request is sent to the backend.
        """
        if state.step != WorkflowStep.SELECTING:
            raise BookingValidationError(_('This booking can no longer be changed. Please start again.'), code='invalid_step')
        bus = state.selected_bus
        if bus is None:
            raise BookingValidationError(_('Please select a bus.'), code='required')
        if state.user_id is None:
            raise BookingValidationError(_('Please select a user.'), code='required')
        if not state.seat_number:
            raise BookingValidationError(_('Please select a seat.'), code='required')

        state = replace(state, step=WorkflowStep.SUBMITTING_PENDING)
        # Checked again here because the page may be stale.
        state.resolver.validate(state.seat_type)
        if not state.layout.is_selectable(state.seat_number):
            raise BookingValidationError(
                _('Seat %(seat)s cannot be booked as a %(seat_type)s seat.'),
                code='seat_unavailable',
                params={'seat': state.seat_number, 'seat_type': state.seat_type.value},
            )

        draft = BookingDraft(
            user_id=state.user_id,
            bus_id=bus.id,
            booking_date=booking_date,
            seat_number=state.seat_number,
            amount=bus.price,
            status=BookingStatus.PENDING,
            bus_name=bus.name,
            bus_route=bus.route,
        )
        logger.info(f"Draft {draft.draft_id}: user {draft.user_id}, bus {draft.bus_id}, seat {draft.seat_number}")
        return replace(state, step=WorkflowStep.AWAITING_PAYMENT), draft

    def confirm_payment(self, draft: BookingDraft) -> Booking:
        """Send the draft to the backend as a CONFIRMED booking."""
        payload = draft.confirmed().to_payload()
        booking = self.api.create_booking(payload)
        logger.info(f"Booking {booking.id} confirmed from draft {draft.draft_id}")
        return booking
