from django.urls import path
from .views import DownloadView, EnhanceView, HealthView, HistoryView, JobDetailView

urlpatterns = [
    path("health/", HealthView.as_view(), name="health"),
    path("enhance/", EnhanceView.as_view(), name="enhance"),
    path("download/<str:filename>/", DownloadView.as_view(), name="download_artifact"),
    path("history/", HistoryView.as_view(), name="history"),
    path("history/<str:job_id>/", JobDetailView.as_view(), name="job_detail"),
]
