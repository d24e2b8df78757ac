"""
URL mappings for the pdrs app.
"""

from django.urls import path, include

from rest_framework.routers import DefaultRouter

from pdrs import views

router = DefaultRouter()
router.register("pdrs", views.PDRViewSet)
router.register("goals", views.GoalViewSet)
router.register("behaviors", views.BehaviorViewSet)
router.register("company-values", views.CompanyValueViewSet)
router.register("activity", views.ActivityViewSet, basename="activity")

app_name = "pdrs"

urlpatterns = [
    path("", include(router.urls)),
]
