from django.urls import path
from . import views

urlpatterns = [
    path('bookings', views.bookings_collection, name='bookings'),
    path('bookings/webhook/paystack', views.paystack_webhook, name='paystack_webhook'),
    path('bookings/<str:booking_id>/verify', views.verify_booking, name='verify_booking'),
    path('bookings/<str:booking_id>', views.booking_detail, name='booking_detail'),
]
