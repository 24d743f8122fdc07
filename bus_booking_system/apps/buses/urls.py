"""
URL configuration for buses app.
"""

from django.urls import path
from . import views

app_name = 'buses'

urlpatterns = [
    path('', views.BusListView.as_view(), name='bus_list'),
    path('<int:bus_id>/', views.BusDetailView.as_view(), name='bus_detail'),

    # API endpoints
    path('<int:bus_id>/seats/layout/', views.seat_layout_api, name='seat_layout_api'),

    # Admin views
    path('create/', views.BusCreateView.as_view(), name='bus_create'),
    path('<int:bus_id>/edit/', views.BusUpdateView.as_view(), name='bus_update'),
    path('<int:bus_id>/delete/', views.bus_delete_view, name='bus_delete'),
    path('<int:bus_id>/seats/<int:seat_id>/status/', views.seat_status_update_view, name='seat_status_update'),
]
