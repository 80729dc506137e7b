from django.conf import settings
from django.urls import reverse
from rest_framework import serializers

from .filters import parse_enhancements
from .utils import size_in_mb

# Container formats accepted at upload time
ALLOWED_VIDEO_TYPES = {
    "video/mp4",
    "video/quicktime",          # mov
    "video/x-msvideo",          # avi
    "video/avi",
    "video/x-matroska",         # mkv
    "video/x-flv",
    "video/webm",
    "video/x-ms-wmv",
    "video/3gpp",
}


class EnhancementListField(serializers.Field):
    """Accepts a JSON list string (multipart forms) or a real list (JSON bodies).

    Malformed values become an empty list rather than a validation error.
    """

    def to_internal_value(self, data):
        return list(parse_enhancements(data))

    def to_representation(self, value):
        return list(value)


class EnhanceRequestSerializer(serializers.Serializer):
    video = serializers.FileField()
    # Tier is checked by the pipeline so every rejection reason comes from one place
    quality = serializers.CharField(required=False, default="1080p")
    enhancements = EnhancementListField(required=False, default=list)

    def validate_video(self, value):
        content_type = getattr(value, "content_type", None)
        if content_type not in ALLOWED_VIDEO_TYPES:
            raise serializers.ValidationError(
                f"Unsupported file type {content_type!r}. Allowed: {sorted(ALLOWED_VIDEO_TYPES)}"
            )
        if value.size > settings.MAX_UPLOAD_BYTES:
            raise serializers.ValidationError(
                f"File exceeds the {size_in_mb(settings.MAX_UPLOAD_BYTES)} MB upload limit."
            )
        return value


class StatSerializer(serializers.Serializer):
    val = serializers.CharField(source="value")
    label = serializers.CharField()


class EnhancementJobSerializer(serializers.Serializer):
    id = serializers.CharField()
    name = serializers.CharField(source="source_name")
    size = serializers.SerializerMethodField()
    size_mb = serializers.FloatField(source="source_size_mb")
    quality = serializers.CharField(source="quality_tier")
    enhancements = serializers.ListField(child=serializers.CharField())
    status = serializers.CharField()
    report = serializers.CharField()
    stats = StatSerializer(many=True)
    output = serializers.CharField(source="output_artifact")
    download_url = serializers.SerializerMethodField()
    created_at = serializers.DateTimeField()

    def get_size(self, job):
        return f"{job.source_size_mb:.1f} MB"

    def get_download_url(self, job):
        return reverse("download_artifact", kwargs={"filename": job.output_artifact})
