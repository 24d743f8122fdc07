"""
Views for user login and user administration.
"""

import logging

from django.contrib import messages
from django.shortcuts import redirect, render
from django.utils.http import url_has_allowed_host_and_scheme
from django.utils.translation import gettext_lazy as _
from django.views.decorators.http import require_http_methods
from django.views.generic import TemplateView

from apps.gateway.client import BusBookingAPI
from apps.gateway.exceptions import GatewayError, HttpError

from .auth import BackendAdminRequiredMixin, backend_admin_required, clear_user, current_user, store_user
from .forms import LoginForm, UserCreateForm

logger = logging.getLogger(__name__)


@require_http_methods(["GET", "POST"])
def login_view(request):
    """Authenticate against the backend and remember the user in the session."""
    if current_user(request) is not None:
        return redirect('buses:bus_list')

    if request.method == 'POST':
        form = LoginForm(request.POST)
        if form.is_valid():
            api = BusBookingAPI()
            try:
                user = api.login(form.cleaned_data['email'], form.cleaned_data['password'])
            except HttpError as e:
                if e.is_client_error:
                    messages.error(request, _('Invalid email or password.'))
                else:
                    messages.error(request, e.user_message())
            except GatewayError as e:
                messages.error(request, e.user_message())
            else:
                store_user(request, user, api.export_cookies())
                logger.info(f"User {user.id} logged in as {user.role.value}")
                messages.success(request, _('Logged in successfully!'))

                next_url = request.GET.get('next', '')
                if next_url and url_has_allowed_host_and_scheme(next_url, allowed_hosts={request.get_host()}):
                    return redirect(next_url)
                return redirect('buses:bus_list')
    else:
        form = LoginForm()

    return render(request, 'users/login.html', {'form': form})


@require_http_methods(["POST"])
def logout_view(request):
    """Forget the logged-in user."""
    clear_user(request)
    messages.success(request, _('Logged out successfully!'))
    return redirect('users:login')


class UserListView(BackendAdminRequiredMixin, TemplateView):
    """List all users (admin only)."""
    template_name = 'users/user_list.html'

    def get_context_data(self, **kwargs):
        context = super().get_context_data(**kwargs)
        users = []
        try:
            users = BusBookingAPI.from_request(self.request).list_users()
        except GatewayError as e:
            messages.error(self.request, e.user_message())
        context['users'] = users
        context['create_form'] = UserCreateForm()
        return context


@backend_admin_required
@require_http_methods(["GET", "POST"])
def user_create_view(request):
    """Register a new user with the backend (admin only)."""
    if request.method == 'POST':
        form = UserCreateForm(request.POST)
        if form.is_valid():
            try:
                user = BusBookingAPI.from_request(request).create_user(form.to_input())
            except GatewayError as e:
                messages.error(request, e.user_message())
            else:
                messages.success(request, _('User %(name)s created.') % {'name': user.name})
                return redirect('users:user_list')
    else:
        form = UserCreateForm()

    return render(request, 'users/user_form.html', {'form': form})


@backend_admin_required
@require_http_methods(["POST"])
def user_delete_view(request, user_id):
    """Delete a user (admin only)."""
    try:
        BusBookingAPI.from_request(request).delete_user(user_id)
    except GatewayError as e:
        messages.error(request, e.user_message())
    else:
        logger.info(f"User {user_id} deleted by admin {current_user(request).id}")
        messages.success(request, _('User deleted.'))
    return redirect('users:user_list')
