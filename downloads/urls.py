# downloads/urls.py

from __future__ import annotations

from django.urls import path

from . import views

app_name = "downloads"

urlpatterns = [
    path("<str:product_id>/", views.download_product, name="product"),
]
