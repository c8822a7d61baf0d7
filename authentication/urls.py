"""
Authentication routes, included by the project URLconf under /api/.
"""

from django.urls import path
from rest_framework_simplejwt.views import TokenRefreshView, TokenVerifyView

from . import views

urlpatterns = [
    path("auth/register/", views.register_user, name="auth-register"),
    path("auth/login/", views.login_user, name="auth-login"),
    path("auth/me/", views.me, name="auth-me"),
    path("auth/token/refresh/", TokenRefreshView.as_view(), name="token-refresh"),
    path("auth/token/verify/", TokenVerifyView.as_view(), name="token-verify"),
    # Admin only
    path("auth/users/", views.list_users, name="auth-users"),
    path("auth/roles/assign/", views.assign_roles, name="auth-assign-roles"),
    path("auth/roles/", views.roles, name="auth-roles"),
    path("auth/customers/", views.list_customers, name="auth-customers"),
    path("auth/customers/<int:pk>/", views.customer_detail, name="auth-customer-detail"),
    path("auth/customers/<int:pk>/status/", views.update_customer_status, name="auth-customer-status"),
]
