from django.urls import include, path
from rest_framework.routers import DefaultRouter

from marketplace.disputes.api.views.dispute_views import DisputeViewSet
from marketplace.ordering.api.views.order_views import OrderViewSet

# Create the main router
router = DefaultRouter()
router.register(r"orders", OrderViewSet, basename="order")
router.register(r"disputes", DisputeViewSet, basename="dispute")

app_name = "marketplace"

urlpatterns = [
    path("", include(router.urls)),
]
