import logging

from django.conf import settings
from django.http import FileResponse
from rest_framework import status, views
from rest_framework.permissions import AllowAny
from rest_framework.response import Response

from .errors import ArtifactNotFound, InvalidReference, ServiceBusy, StorageFailure
from .pipeline import PipelineState
from .serializers import EnhanceRequestSerializer, EnhancementJobSerializer
from .services import get_pipeline

logger = logging.getLogger(__name__)


class HealthView(views.APIView):
    permission_classes = [AllowAny]
    authentication_classes = []

    def get(self, request):
        return Response({"status": "ok", "service": settings.SERVICE_NAME, "version": settings.SERVICE_VERSION})


class EnhanceView(views.APIView):
    """
    Accepts a video upload plus a quality tier and enhancement toggles,
    runs the enhancement pipeline synchronously, and returns the recorded job.
    """
    permission_classes = [AllowAny]
    authentication_classes = []

    def post(self, request):
        ser = EnhanceRequestSerializer(data=request.data)
        if not ser.is_valid():
            if "video" in ser.errors:
                return Response({"error": ser.errors["video"][0], "detail": ser.errors}, status=400)
            return Response({"error": "Invalid request", "detail": ser.errors}, status=400)

        data = ser.validated_data
        outcome = get_pipeline().run(data["video"], data["quality"], data["enhancements"])

        if outcome.state == PipelineState.RECORDED:
            body = EnhancementJobSerializer(outcome.job).data
            return Response({"success": True, "enhancement": body}, status=status.HTTP_201_CREATED)
        if isinstance(outcome.error, ServiceBusy):
            return Response({"error": outcome.reason}, status=status.HTTP_503_SERVICE_UNAVAILABLE)
        if outcome.state == PipelineState.REJECTED:
            return Response({"error": outcome.reason}, status=status.HTTP_400_BAD_REQUEST)
        return Response({"error": "Enhancement failed, please retry"}, status=status.HTTP_500_INTERNAL_SERVER_ERROR)


class DownloadView(views.APIView):
    permission_classes = [AllowAny]
    authentication_classes = []

    def get(self, request, filename):
        try:
            path = get_pipeline().store.resolve_output(filename)
        except InvalidReference:
            logger.warning("Refused download of %r", filename)
            return Response({"error": "Invalid file reference"}, status=400)
        except ArtifactNotFound:
            return Response({"error": "Not found"}, status=404)
        try:
            handle = open(path, "rb")
        except FileNotFoundError:
            # Purged between the lookup and the open
            return Response({"error": "Not found"}, status=404)
        return FileResponse(handle, as_attachment=True, filename=path.name, content_type="video/mp4")


class HistoryView(views.APIView):
    permission_classes = [AllowAny]
    authentication_classes = []

    def get(self, request):
        jobs = get_pipeline().ledger.list()
        return Response({"history": EnhancementJobSerializer(jobs, many=True).data})

    def delete(self, request):
        try:
            cleared = get_pipeline().ledger.clear()
        except StorageFailure:
            logger.error("Clearing history failed", exc_info=True)
            return Response(
                {"error": "Could not clear enhanced files, please retry"},
                status=status.HTTP_500_INTERNAL_SERVER_ERROR,
            )
        return Response({"success": True, "cleared": cleared})


class JobDetailView(views.APIView):
    permission_classes = [AllowAny]
    authentication_classes = []

    def get(self, request, job_id):
        job = get_pipeline().ledger.get(job_id)
        if job is None:
            return Response({"detail": "Not found"}, status=404)
        return Response(EnhancementJobSerializer(job).data)
