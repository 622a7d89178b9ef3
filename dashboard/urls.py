# dashboard/urls.py
from django.urls import path
from . import views

app_name = "dashboard"

urlpatterns = [
    path("", views.bill_list, name="bill-list"),
    path("bills/<int:bill_id>", views.bill_detail, name="bill-detail"),
    path("bills/<int:bill_id>/download", views.bill_download, name="bill-download"),
    path("bills/<int:bill_id>/delete", views.bill_delete, name="bill-delete"),
    path("upload", views.upload, name="upload"),
    path("signin", views.signin, name="signin"),
    path("signout", views.signout, name="signout"),
]
