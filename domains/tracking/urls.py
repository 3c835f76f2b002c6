from django.urls import path

from .views import CarrierListAPI, StatusAPI, WhereIsAPI

app_name = "tracking"

urlpatterns = [
    path("carriers/", CarrierListAPI.as_view(), name="carrier-list"),
    path("whereis/<str:tracking_id>/", WhereIsAPI.as_view(), name="whereis"),
    path("status/<str:tracking_id>/", StatusAPI.as_view(), name="status"),
]
