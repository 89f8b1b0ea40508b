from django.urls import path, include
from rest_framework.routers import DefaultRouter
from . import views

app_name = 'funding'

router = DefaultRouter()
router.register(r'payment-methods', views.PaymentMethodViewSet, basename='payment-method')

urlpatterns = [
    # GET    /api/funding/payment-methods/                   - List saved methods
    # POST   /api/funding/payment-methods/                   - Save a method
    # GET    /api/funding/payment-methods/{id}/              - Method details
    # DELETE /api/funding/payment-methods/{id}/              - Delete a method
    # POST   /api/funding/payment-methods/{id}/set_default/  - Make default
    path('', include(router.urls)),
]
