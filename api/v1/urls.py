# api/v1/urls.py
from django.urls import include, path

urlpatterns = [
    # --- Tracking ---
    path("", include(("domains.tracking.urls", "tracking"))),
]
