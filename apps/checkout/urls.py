from django.urls import path, include
from rest_framework.routers import DefaultRouter
from . import views

app_name = 'checkout'

router = DefaultRouter()
router.register(r'attempts', views.CheckoutAttemptViewSet, basename='attempt')

urlpatterns = [
    # POST /api/checkout/quote/                  - Allocation summary (anonymous)
    # POST /api/checkout/sources/adjust/         - Select / deselect / change amount type
    # POST /api/checkout/sources/split-evenly/   - Pay Equal
    path('quote/', views.quote, name='quote'),
    path('sources/adjust/', views.adjust_sources, name='adjust-sources'),
    path('sources/split-evenly/', views.split_sources_evenly, name='split-evenly'),

    # GET  /api/checkout/attempts/                 - List attempts
    # POST /api/checkout/attempts/                 - Open an attempt
    # GET  /api/checkout/attempts/{id}/            - Attempt details
    # POST /api/checkout/attempts/{id}/validate/   - Validate and snapshot
    # POST /api/checkout/attempts/{id}/submit/     - Charge and issue card
    # POST /api/checkout/attempts/{id}/reopen/     - Failed -> collecting
    path('', include(router.urls)),
]
