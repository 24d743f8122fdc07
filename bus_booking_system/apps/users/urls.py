"""
URL configuration for users app.
"""

from django.urls import path
from . import views

app_name = 'users'

urlpatterns = [
    # Authentication
    path('login/', views.login_view, name='login'),
    path('logout/', views.logout_view, name='logout'),

    # Admin only
    path('list/', views.UserListView.as_view(), name='user_list'),
    path('create/', views.user_create_view, name='user_create'),
    path('<int:user_id>/delete/', views.user_delete_view, name='user_delete'),
]
