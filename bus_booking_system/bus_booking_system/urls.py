"""
URL configuration for bus_booking_system project.
"""

from django.conf import settings
from django.urls import include, path
from django.views.generic import RedirectView

urlpatterns = [
    # Home page
    path('', RedirectView.as_view(pattern_name='buses:bus_list', permanent=False), name='home'),

    path('users/', include('apps.users.urls')),
    path('buses/', include('apps.buses.urls')),

    # Booking & Payment
    path('bookings/', include('apps.bookings.urls')),
    path('payments/', include('apps.payments.urls')),
]

if settings.DEBUG:
    # Debug toolbar
    import debug_toolbar
    urlpatterns = [
        path('__debug__/', include(debug_toolbar.urls)),
    ] + urlpatterns
