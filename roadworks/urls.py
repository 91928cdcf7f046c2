"""URL configuration for the road assignment API."""

from django.urls import include, path
from rest_framework import routers

from . import views


router = routers.DefaultRouter()
router.register(r"wards", views.WardViewSet)
router.register(r"contractors", views.ContractorViewSet)
router.register(r"assignments", views.AssignmentViewSet)


urlpatterns = [
    path("api/roads/snap/", views.snap_road, name="snap_road"),
    path("api/conflicts/", views.check_conflicts, name="check_conflicts"),
    path("api/", include(router.urls)),
]
