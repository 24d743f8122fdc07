"""
Session-backed identity for users authenticated by the booking backend.

The backend validates credentials; the frontend only remembers who logged in
(and the backend's cookies) in the Django session.
"""

from functools import wraps
from typing import Optional
from urllib.parse import urlencode
import logging

from django.contrib import messages
from django.shortcuts import redirect
from django.urls import reverse
from django.utils.translation import gettext_lazy as _

from apps.gateway.client import COOKIE_SESSION_KEY
from apps.gateway.exceptions import DecodeError
from apps.gateway.schemas import User, decode

logger = logging.getLogger(__name__)

SESSION_USER_KEY = 'current_user'


def current_user(request) -> Optional[User]:
    """Return the logged-in user, or None for an anonymous visitor."""
    data = request.session.get(SESSION_USER_KEY)
    if not data:
        return None
    try:
        return decode(User, data)
    except DecodeError:
        logger.warning("Discarding malformed user stored in session")
        request.session.pop(SESSION_USER_KEY, None)
        return None


def store_user(request, user: User, cookies: Optional[dict] = None):
    request.session.cycle_key()
    request.session[SESSION_USER_KEY] = user.model_dump(mode='json', by_alias=True)
    request.session[COOKIE_SESSION_KEY] = cookies or {}


def clear_user(request):
    request.session.flush()


def _login_redirect(request):
    query = urlencode({'next': request.get_full_path()})
    return redirect(f"{reverse('users:login')}?{query}")


def backend_login_required(view_func):
    """Redirect anonymous visitors to the login page."""
    @wraps(view_func)
    def wrapper(request, *args, **kwargs):
        if current_user(request) is None:
            return _login_redirect(request)
        return view_func(request, *args, **kwargs)
    return wrapper


def backend_admin_required(view_func):
    """Allow only ADMIN users through; others are sent back to the bus list."""
    @wraps(view_func)
    def wrapper(request, *args, **kwargs):
        user = current_user(request)
        if user is None:
            return _login_redirect(request)
        if not user.is_admin:
            messages.error(request, _('This page is restricted to administrators.'))
            return redirect('buses:bus_list')
        return view_func(request, *args, **kwargs)
    return wrapper


class BackendLoginRequiredMixin:
    """Class-based view counterpart of backend_login_required."""

    def dispatch(self, request, *args, **kwargs):
        self.current_user = current_user(request)
        if self.current_user is None:
            return _login_redirect(request)
        return super().dispatch(request, *args, **kwargs)


class BackendAdminRequiredMixin(BackendLoginRequiredMixin):

    def dispatch(self, request, *args, **kwargs):
        user = current_user(request)
        if user is not None and not user.is_admin:
            messages.error(request, _('This page is restricted to administrators.'))
            return redirect('buses:bus_list')
        return super().dispatch(request, *args, **kwargs)


def current_user_context(request):
    """Template context processor exposing the logged-in user."""
    return {'current_user': current_user(request)}
