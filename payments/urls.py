from django.urls import path

from . import views

urlpatterns = [
    path("payments/phonepe/initiate/", views.initiate_payment, name="phonepe-initiate"),
    path("payments/phonepe/status/", views.payment_status, name="phonepe-status"),
    path("payments/phonepe/callback/", views.payment_callback, name="phonepe-callback"),
]
