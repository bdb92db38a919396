from django.urls import path

from billing import views

app_name = "billing"

urlpatterns = [
    path(
        "<str:provider>/calculate/type-<int:tier>",
        views.calculate_by_type,
        name="calculate_by_type",
    ),
    path("calculate/<str:plan_code>", views.calculate_by_plan, name="calculate_by_plan"),
    path("tariff-plans", views.tariff_plans, name="tariff_plans"),
    path("tariff-plans/<str:plan_code>", views.tariff_plan_detail, name="tariff_plan_detail"),
]
