"""
URL configuration for deliveries app.
"""
from django.urls import path
from deliveries.views import (
    QueueStatsView,
    ReplayDeliveryView,
    RunDeliveriesView,
    SendTestWebhookView,
    SignatureValidationView,
)

urlpatterns = [
    path('deliveries/stats/', QueueStatsView.as_view(), name='delivery-stats'),
    path('deliveries/run/', RunDeliveriesView.as_view(), name='delivery-run'),
    path('deliveries/<uuid:delivery_id>/replay/', ReplayDeliveryView.as_view(), name='delivery-replay'),
    path('test/', SendTestWebhookView.as_view(), name='webhook-test'),
    path('signature/validate/', SignatureValidationView.as_view(), name='signature-validate'),
]
