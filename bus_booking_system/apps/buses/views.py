"""
Views for Bus operations.
"""

import logging

from django.contrib import messages
from django.http import JsonResponse
from django.shortcuts import redirect, render
from django.utils.translation import gettext_lazy as _
from django.views import View
from django.views.decorators.http import require_http_methods
from django.views.generic import TemplateView

from apps.gateway.client import BusBookingAPI
from apps.gateway.exceptions import GatewayError, HttpError
from apps.gateway.schemas import SeatCounts, SeatType
from apps.users.auth import BackendAdminRequiredMixin, BackendLoginRequiredMixin, backend_admin_required, backend_login_required

from .forms import BusForm, BusSearchForm, SeatStatusForm
from .seat_manager import SeatLayoutRenderer

logger = logging.getLogger(__name__)


def _seat_type_param(value):
    try:
        return SeatType(value) if value else SeatType.REGULAR
    except ValueError:
        return SeatType.REGULAR


class BusListView(BackendLoginRequiredMixin, TemplateView):
    """Search and list buses."""
    template_name = 'buses/bus_list.html'

    def get_context_data(self, **kwargs):
        context = super().get_context_data(**kwargs)
        search_form = BusSearchForm(self.request.GET or None)
        params = search_form.search_params()
        api = BusBookingAPI.from_request(self.request)

        try:
            buses = api.search_buses(**params) if params else api.list_buses()
        except GatewayError as e:
            logger.error(f"Bus list failed to load (search={params}): {e}")
            messages.error(self.request, _('Failed to load buses.'))
            buses = []

        context.update({
            'search_form': search_form,
            'buses': buses,
            'searching': bool(params),
        })
        return context


class BusDetailView(BackendLoginRequiredMixin, TemplateView):
    """Bus details with its seat distribution and seat map."""
    template_name = 'buses/bus_detail.html'

    def get(self, request, bus_id):
        api = BusBookingAPI.from_request(request)
        try:
            bus = api.get_bus(bus_id)
        except GatewayError as e:
            logger.error(f"Bus {bus_id} failed to load: {e}")
            messages.error(request, e.user_message())
            return redirect('buses:bus_list')

        seat_type = _seat_type_param(request.GET.get('seat_type'))
        try:
            seats = api.list_seats(bus_id)
            counts = api.get_seat_counts(bus_id)
        except GatewayError as e:
            logger.warning(f"Seat information for bus {bus_id} failed to load: {e}")
            messages.warning(request, _('Failed to load seat information.'))
            seats, counts = [], SeatCounts()

        layout = SeatLayoutRenderer.render(
            seats, selected_seat_type=seat_type, total_seats=bus.total_seats
        )
        context = self.get_context_data(
            bus=bus,
            layout=layout,
            seat_counts=counts,
            seat_type=seat_type,
            seat_types=[t.value for t in SeatType],
            seat_status_form=SeatStatusForm(),
        )
        return self.render_to_response(context)


class BusCreateView(BackendAdminRequiredMixin, View):
    """Create a new bus (admin only)."""
    template_name = 'buses/bus_form.html'

    def get(self, request):
        return render(request, self.template_name, {'form': BusForm(), 'bus': None})

    def post(self, request):
        form = BusForm(request.POST)
        if form.is_valid():
            api = BusBookingAPI.from_request(request)
            try:
                bus = api.create_bus(form.to_input())
            except GatewayError as e:
                logger.error(f"Bus creation failed: {e}")
                messages.error(request, e.user_message())
            else:
                logger.info(f"Bus {bus.id} created by user {self.current_user.id}")
                messages.success(request, _('Bus %(name)s created successfully.') % {'name': bus.name})
                return redirect('buses:bus_detail', bus_id=bus.id)
        return render(request, self.template_name, {'form': form, 'bus': None})


class BusUpdateView(BackendAdminRequiredMixin, View):
    """Update an existing bus (admin only)."""
    template_name = 'buses/bus_form.html'

    def get(self, request, bus_id):
        api = BusBookingAPI.from_request(request)
        try:
            bus = api.get_bus(bus_id)
        except GatewayError as e:
            messages.error(request, e.user_message())
            return redirect('buses:bus_list')
        form = BusForm(initial=BusForm.initial_from_bus(bus))
        return render(request, self.template_name, {'form': form, 'bus': bus})

    def post(self, request, bus_id):
        form = BusForm(request.POST)
        if form.is_valid():
            api = BusBookingAPI.from_request(request)
            try:
                bus = api.update_bus(bus_id, form.to_input())
            except GatewayError as e:
                logger.error(f"Bus {bus_id} update failed: {e}")
                messages.error(request, e.user_message())
            else:
                messages.success(request, _('Bus updated successfully.'))
                return redirect('buses:bus_detail', bus_id=bus.id)
        return render(request, self.template_name, {'form': form, 'bus': {'id': bus_id}})


@backend_admin_required
@require_http_methods(["POST"])
def bus_delete_view(request, bus_id):
    """Delete a bus (admin only)."""
    api = BusBookingAPI.from_request(request)
    try:
        api.delete_bus(bus_id)
    except GatewayError as e:
        logger.error(f"Bus {bus_id} deletion failed: {e}")
        messages.error(request, e.user_message())
        return redirect('buses:bus_detail', bus_id=bus_id)

    logger.info(f"Bus {bus_id} deleted")
    messages.success(request, _('Bus deleted successfully.'))
    return redirect('buses:bus_list')


@backend_admin_required
@require_http_methods(["POST"])
def seat_status_update_view(request, bus_id, seat_id):
    """Override one seat's status (admin only)."""
    form = SeatStatusForm(request.POST)
    if not form.is_valid():
        messages.error(request, _('Invalid seat status.'))
        return redirect('buses:bus_detail', bus_id=bus_id)

    api = BusBookingAPI.from_request(request)
    try:
        seat = api.update_seat_status(seat_id, form.cleaned_data['status'])
    except GatewayError as e:
        logger.error(f"Seat {seat_id} status update failed: {e}")
        messages.error(request, e.user_message())
    else:
        messages.success(request, _('Seat %(seat)s is now %(status)s.') % {
            'seat': seat.seat_number, 'status': seat.status.value,
        })
    return redirect('buses:bus_detail', bus_id=bus_id)


@backend_login_required
@require_http_methods(["GET"])
def seat_layout_api(request, bus_id):
    """
    API endpoint returning the seat map of a bus as JSON.
    The caller's generation number is echoed back so it can drop stale answers.
    """
    generation = request.GET.get('generation')
    seat_type = _seat_type_param(request.GET.get('seat_type'))
    api = BusBookingAPI.from_request(request)

    try:
        seats = api.list_seats(bus_id)
    except HttpError as e:
        status = 404 if e.status == 404 else 502
        return JsonResponse(
            {'success': False, 'error': e.user_message(), 'generation': generation},
            status=status,
        )
    except GatewayError as e:
        logger.warning(f"Seat layout for bus {bus_id} failed to load: {e}")
        return JsonResponse(
            {'success': False, 'error': e.user_message(), 'generation': generation},
            status=502,
        )

    layout = SeatLayoutRenderer.render(
        seats,
        selected_seat_number=request.GET.get('seat'),
        selected_seat_type=seat_type,
    )
    return JsonResponse({
        'success': True,
        'bus_id': bus_id,
        'generation': generation,
        'layout': layout.to_dict(),
    })
