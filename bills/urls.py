# bills/urls.py
from django.urls import path
from .api import (
    BillUploadView,
    BillListView,
    BillDetailView,
    BillDownloadView,
    BillStatsView,
)

app_name = "bills"

urlpatterns = [
    path("bills", BillListView.as_view(), name="bill-list"),
    path("bills/upload", BillUploadView.as_view(), name="bill-upload"),
    path("bills/stats/<str:user_id>", BillStatsView.as_view(), name="bill-stats"),
    path("bills/<int:bill_id>", BillDetailView.as_view(), name="bill-detail"),
    path("bills/<int:bill_id>/download", BillDownloadView.as_view(), name="bill-download"),
]
