"""URL configuration for tariff_engine project."""

from django.urls import include, path

from billing import views

urlpatterns = [
    path("health", views.health, name="health"),
    path("api/", include("billing.urls")),
]
