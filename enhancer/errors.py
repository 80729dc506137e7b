class EnhancementError(Exception):
    """Base class for every failure the enhancement pipeline reports."""


class IntakeRejected(EnhancementError):
    """The request cannot be processed as submitted (missing file, bad tier, oversize)."""


class ServiceBusy(EnhancementError):
    """No transcode slot became free before the queue timeout."""


class TranscodeFailure(EnhancementError):
    """ffmpeg timed out, exited non-zero, or could not be started."""


class InvalidReference(EnhancementError):
    """An artifact name tried to escape the output directory."""


class ArtifactNotFound(EnhancementError):
    """No finished artifact exists under the requested name."""


class StorageFailure(EnhancementError):
    """The filesystem refused a read or write the pipeline cannot do without."""
