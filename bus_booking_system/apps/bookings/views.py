"""
Views for Bookings operations.
"""

import logging
from dataclasses import replace
from importlib import import_module
from urllib.parse import urlencode

from django.conf import settings
from django.contrib import messages
from django.shortcuts import redirect, render
from django.urls import reverse
from django.utils.translation import gettext_lazy as _
from django.views import View
from django.views.decorators.http import require_http_methods
from django.views.generic import TemplateView

from apps.buses.seat_manager import BookingValidationError
from apps.gateway.client import BusBookingAPI
from apps.gateway.exceptions import DecodeError, GatewayError
from apps.gateway.schemas import BookingStatus, SeatType
from apps.users.auth import BackendLoginRequiredMixin, backend_admin_required, backend_login_required

from .forms import (
    BookingFilterForm, BookingForm, CancelBookingForm, SelectionActionForm, TransferSeatForm,
)
from .utils import ALL_STATUSES, BookingManager
from .workflow import (
    DRAFT_SESSION_KEY, WORKFLOW_SESSION_KEY, BookingWorkflow, SelectionState, WorkflowStep,
)

logger = logging.getLogger(__name__)


def _bus_lookup(api):
    """Map bus id to bus for display; an unavailable bus list only loses names."""
    try:
        return {bus.id: bus for bus in api.list_buses()}
    except GatewayError as e:
        logger.warning(f"Bus names unavailable for booking list: {e}")
        return {}


def _int_param(value):
    try:
        return int(value) if value else None
    except (TypeError, ValueError):
        return None


class AddBookingView(BackendLoginRequiredMixin, View):
    """Entry point of the booking flow: load fresh data and show seat selection."""

    def get(self, request):
        api = BusBookingAPI.from_request(request)
        workflow = BookingWorkflow(api, self.current_user)
        user_id = _int_param(request.GET.get('user_id')) if self.current_user.is_admin else None
        state = workflow.initialize(
            bus_id=_int_param(request.GET.get('bus_id')),
            user_id=user_id,
        )
        request.session[WORKFLOW_SESSION_KEY] = state.to_session()
        request.session.pop(DRAFT_SESSION_KEY, None)

        if state.step == WorkflowStep.ERRORED:
            messages.error(request, _('Failed to load buses and users.'))
        return redirect('bookings:booking_select')


def _decode_state(data, user):
    if not data:
        return None
    try:
        state = SelectionState.from_session(data)
    except (DecodeError, KeyError, ValueError):
        logger.warning("Discarding unreadable booking workflow state")
        return None
    if state.acting_user.id != user.id:
        return None
    return state


class SessionSelectionStore:
    """
    Selection state as saved in the session backend, shared by every
    request of the same browser session.

    load() reads the backend afresh instead of this request's copy, so a
    request that outlives a newer one sees what the newer one saved.
    """

    def __init__(self, request, user):
        self.request = request
        self.user = user

    def load(self):
        session_key = self.request.session.session_key
        if session_key is None:
            return None
        saved = import_module(settings.SESSION_ENGINE).SessionStore(session_key)
        return _decode_state(saved.get(WORKFLOW_SESSION_KEY), self.user)

    def save(self, state):
        self.request.session[WORKFLOW_SESSION_KEY] = state.to_session()
        self.request.session.save()


class BookingSelectView(BackendLoginRequiredMixin, View):
    """Seat selection step; every change is applied to the state kept in the session."""
    template_name = 'bookings/booking_form.html'

    def _load_state(self, request):
        data = request.session.get(WORKFLOW_SESSION_KEY)
        state = _decode_state(data, self.current_user)
        if data and state is None:
            request.session.pop(WORKFLOW_SESSION_KEY, None)
        return state

    def _save_state(self, request, state):
        request.session[WORKFLOW_SESSION_KEY] = state.to_session()

    def _render(self, request, state, form=None):
        resolver = state.resolver
        seat_types = [
            {
                'value': seat_type.value,
                'selected': seat_type == state.seat_type,
                'selectable': resolver.is_selectable(seat_type),
                'eligible': resolver.is_eligible(seat_type),
                'count': state.seat_counts.for_type(seat_type),
            }
            for seat_type in SeatType
        ]
        context = {
            'state': state,
            'bus': state.selected_bus,
            'layout': state.layout,
            'seat_types': seat_types,
            'form': form or BookingForm(),
            'errored': state.step == WorkflowStep.ERRORED,
        }
        return render(request, self.template_name, context)

    def get(self, request):
        state = self._load_state(request)
        if state is None:
            return redirect('bookings:add_booking')
        for warning in state.partial_errors:
            messages.warning(request, warning)
        if state.partial_errors:
            state = replace(state, partial_errors=())
            self._save_state(request, state)
        return self._render(request, state)

    def post(self, request):
        state = self._load_state(request)
        if state is None or state.step != WorkflowStep.SELECTING:
            messages.error(request, _('Your booking session has expired. Please start again.'))
            return redirect('bookings:add_booking')

        workflow = BookingWorkflow(BusBookingAPI.from_request(request), self.current_user)

        if 'submit' in request.POST:
            return self._submit(request, workflow, state)

        action_form = SelectionActionForm(request.POST)
        if not action_form.is_valid():
            for errors in action_form.errors.values():
                for error in errors:
                    messages.error(request, error)
            return redirect('bookings:booking_select')

        action = action_form.cleaned_data['action']
        value = action_form.cleaned_data['value']
        store = SessionSelectionStore(request, self.current_user)
        if action == SelectionActionForm.SELECT_BUS:
            state = workflow.select_bus(state, value, store)
        elif action == SelectionActionForm.SELECT_SEAT_TYPE:
            state = workflow.select_seat_type(state, value, store)
        elif action == SelectionActionForm.SELECT_USER:
            state = workflow.select_user(state, value)
        elif action == SelectionActionForm.SELECT_SEAT:
            state = workflow.select_seat(state, value)

        self._save_state(request, state)
        return redirect('bookings:booking_select')

    def _submit(self, request, workflow, state):
        form = BookingForm(request.POST)
        if not form.is_valid():
            messages.error(request, _('Please correct the errors below.'))
            return self._render(request, state, form)

        try:
            state, draft = workflow.submit(state, form.cleaned_data['booking_date'])
        except BookingValidationError as e:
            for message in e.messages:
                messages.error(request, message)
            return self._render(request, state, form)

        self._save_state(request, state)
        request.session[DRAFT_SESSION_KEY] = draft.to_session()
        return redirect('payments:confirm_payment')


class BookingListView(BackendLoginRequiredMixin, TemplateView):
    """
    Bookings of the current user (all bookings for admins).
    Arriving without a status filter loads a fresh list; changing the filter
    reuses the list already loaded.
    """
    template_name = 'bookings/booking_list.html'

    def get_context_data(self, **kwargs):
        context = super().get_context_data(**kwargs)
        request = self.request
        api = BusBookingAPI.from_request(request)
        filter_form = BookingFilterForm(request.GET or None)
        status = filter_form.selected_status() if 'status' in request.GET else ALL_STATUSES

        bookings = None
        if 'status' in request.GET:
            bookings = BookingManager.load_snapshot(request.session)
        if bookings is None:
            try:
                bookings = BookingManager.fetch_bookings(api, self.current_user)
            except GatewayError as e:
                messages.error(request, _('Failed to fetch bookings. Please try again later.'))
                logger.error(f"Booking list failed to load: {e}")
                bookings = []
            BookingManager.save_snapshot(request.session, bookings)

        context.update({
            'filter_form': filter_form,
            'status': status,
            'statuses': [ALL_STATUSES] + [s.value for s in BookingStatus],
            'bookings': BookingManager.filter_by_status(bookings, status),
            'status_counts': BookingManager.status_counts(bookings),
            'buses': _bus_lookup(api) if bookings else {},
        })
        return context


def _list_url(status):
    return f"{reverse('bookings:booking_list')}?{urlencode({'status': status or ALL_STATUSES})}"


@backend_login_required
@require_http_methods(["GET", "POST"])
def cancel_booking_view(request, booking_id):
    """Ask for confirmation, cancel, and patch the loaded list in place."""
    bookings = BookingManager.load_snapshot(request.session) or []
    booking = next((b for b in bookings if b.id == booking_id), None)
    status = request.GET.get('status') or request.POST.get('status') or ALL_STATUSES

    if booking is None:
        messages.error(request, _('Booking not found.'))
        return redirect(_list_url(status))

    if request.method == 'POST':
        form = CancelBookingForm(request.POST)
        if form.is_valid():
            try:
                bookings = BookingManager.cancel_booking(
                    BusBookingAPI.from_request(request), bookings, booking_id
                )
            except GatewayError as e:
                logger.error(f"Cancelling booking {booking_id} failed: {e}")
                messages.error(request, _('Failed to cancel booking. Please try again.'))
            else:
                BookingManager.save_snapshot(request.session, bookings)
                messages.success(request, _('Booking cancelled successfully.'))
            return redirect(_list_url(form.cleaned_data.get('status') or status))
    else:
        form = CancelBookingForm(initial={'status': status})

    return render(request, 'bookings/cancel_booking.html', {'form': form, 'booking': booking})


@backend_admin_required
@require_http_methods(["POST"])
def delete_booking_view(request, booking_id):
    """Delete a booking (admin only) and drop it from the loaded list."""
    bookings = BookingManager.load_snapshot(request.session) or []
    status = request.POST.get('status') or ALL_STATUSES
    try:
        bookings = BookingManager.delete_booking(
            BusBookingAPI.from_request(request), bookings, booking_id
        )
    except GatewayError as e:
        messages.error(request, e.user_message())
    else:
        BookingManager.save_snapshot(request.session, bookings)
        messages.success(request, _('Booking deleted.'))
    return redirect(_list_url(status))


class TransferSeatView(BackendLoginRequiredMixin, View):
    """Transfer one of your confirmed seats to another user, identified by email."""
    template_name = 'bookings/transfer_seat.html'

    def _candidates(self, request, api):
        try:
            bookings = api.list_user_bookings(self.current_user.id)
        except GatewayError as e:
            logger.error(f"Transfer candidates failed to load: {e}")
            messages.error(request, _('Failed to fetch bookings. Please try again later.'))
            return []
        return BookingManager.transfer_candidates(bookings)

    def _render(self, request, api, form, candidates):
        return render(request, self.template_name, {
            'form': form,
            'bookings': candidates,
            'buses': _bus_lookup(api) if candidates else {},
        })

    def get(self, request):
        api = BusBookingAPI.from_request(request)
        candidates = self._candidates(request, api)
        form = TransferSeatForm(bookings=candidates, owner_email=self.current_user.email)
        return self._render(request, api, form, candidates)

    def post(self, request):
        api = BusBookingAPI.from_request(request)
        candidates = self._candidates(request, api)
        form = TransferSeatForm(
            request.POST, bookings=candidates, owner_email=self.current_user.email
        )
        if not form.is_valid():
            messages.error(request, _('Please select a booking and enter recipient email.'))
            return self._render(request, api, form, candidates)

        result = BookingManager.submit_transfer(
            form.cleaned_data['booking_id'], form.cleaned_data['recipient_email']
        )
        if result is NotImplemented:
            messages.warning(request, _('Seat transfer is not available yet. Your booking has not been changed.'))
        else:
            messages.success(request, _('Seat transferred successfully.'))
            return redirect('bookings:booking_list')
        return self._render(request, api, form, candidates)
