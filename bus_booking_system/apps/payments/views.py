"""
Views for Payment operations.
"""

import logging

from django.conf import settings
from django.contrib import messages
from django.shortcuts import redirect, render
from django.utils.translation import gettext_lazy as _
from django.views import View

from apps.bookings.workflow import (
    DRAFT_SESSION_KEY, WORKFLOW_SESSION_KEY, BookingDraft, BookingWorkflow,
)
from apps.gateway.client import BusBookingAPI
from apps.gateway.exceptions import GatewayError
from apps.users.auth import backend_login_required, BackendLoginRequiredMixin

from .forms import PaymentConfirmForm

logger = logging.getLogger(__name__)

PAYMENT_IN_FLIGHT_KEY = 'payment_in_flight'
COMPLETED_BOOKING_KEY = 'completed_booking'


def _pending_draft(request):
    data = request.session.get(DRAFT_SESSION_KEY)
    if not data:
        return None
    try:
        return BookingDraft.from_session(data)
    except (KeyError, ValueError, ArithmeticError):
        logger.warning("Discarding unreadable pending booking")
        request.session.pop(DRAFT_SESSION_KEY, None)
        return None


class ConfirmPaymentView(BackendLoginRequiredMixin, View):
    """Booking summary awaiting payment; confirming creates the CONFIRMED booking."""
    template_name = 'payments/confirm_payment.html'

    def _render(self, request, draft, form):
        return render(request, self.template_name, {
            'draft': draft,
            'form': form,
            'in_flight': request.session.get(PAYMENT_IN_FLIGHT_KEY) == draft.draft_id,
        })

    def get(self, request):
        draft = _pending_draft(request)
        if draft is None:
            return redirect('buses:bus_list')
        return self._render(request, draft, PaymentConfirmForm(draft=draft))

    def post(self, request):
        draft = _pending_draft(request)
        if draft is None:
            return redirect('buses:bus_list')

        form = PaymentConfirmForm(request.POST, draft=draft)
        if not form.is_valid():
            messages.error(request, _('This booking is no longer awaiting payment.'))
            return redirect('buses:bus_list')

        if request.session.get(PAYMENT_IN_FLIGHT_KEY) == draft.draft_id:
            messages.warning(request, _('Your payment is already being processed.'))
            return self._render(request, draft, form)

        # Persist the marker now so a second submit in another request sees it.
        request.session[PAYMENT_IN_FLIGHT_KEY] = draft.draft_id
        request.session.save()

        workflow = BookingWorkflow(BusBookingAPI.from_request(request), self.current_user)
        booking = None
        try:
            booking = workflow.confirm_payment(draft)
        except GatewayError as e:
            logger.error(f"Payment confirmation for draft {draft.draft_id} failed: {e}")
        finally:
            # Saved here as well: an unexpected error ends in a 500, and the
            # session middleware does not save on those.
            request.session.pop(PAYMENT_IN_FLIGHT_KEY, None)
            request.session.save()

        if booking is None:
            messages.error(request, _('Failed to confirm payment. Please try again.'))
            return self._render(request, draft, form)

        request.session.pop(DRAFT_SESSION_KEY, None)
        request.session.pop(WORKFLOW_SESSION_KEY, None)
        request.session[COMPLETED_BOOKING_KEY] = {
            'id': booking.id,
            'seat_number': booking.seat_number,
            'bus_name': draft.bus_name,
        }
        return redirect('payments:payment_success')


@backend_login_required
def payment_success_view(request):
    """Success notice shown briefly before moving on to the booking list."""
    completed = request.session.pop(COMPLETED_BOOKING_KEY, None)
    if completed is None:
        return redirect('bookings:booking_list')
    return render(request, 'payments/payment_success.html', {
        'booking': completed,
        'redirect_seconds': settings.BOOKING_SUCCESS_REDIRECT_SECONDS,
    })
