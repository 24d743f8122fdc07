"""
URL configuration for bookings app.
"""

from django.urls import path
from . import views

app_name = 'bookings'

urlpatterns = [
    path('', views.BookingListView.as_view(), name='booking_list'),

    # Booking flow
    path('add/', views.AddBookingView.as_view(), name='add_booking'),
    path('add/select/', views.BookingSelectView.as_view(), name='booking_select'),

    # Booking actions
    path('<int:booking_id>/cancel/', views.cancel_booking_view, name='cancel_booking'),
    path('<int:booking_id>/delete/', views.delete_booking_view, name='delete_booking'),
    path('transfer/', views.TransferSeatView.as_view(), name='transfer_seat'),
]
