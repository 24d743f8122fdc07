"""
URL configuration for payments app.
"""

from django.urls import path
from . import views

app_name = 'payments'

urlpatterns = [
    path('confirm/', views.ConfirmPaymentView.as_view(), name='confirm_payment'),
    path('success/', views.payment_success_view, name='payment_success'),
]
