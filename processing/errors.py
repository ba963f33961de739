"""Exception hierarchy for the detection and removal pipeline."""

from models.errors import WatermarkPipelineError


class ExtractionError(WatermarkPipelineError):
    """Raised when still frames could not be extracted from a video."""
    pass


class ExtractionUnavailable(ExtractionError):
    """Raised when the extractor is missing or stops responding; later frames would fail the same way."""
    pass


class ProbeError(WatermarkPipelineError):
    """Raised when stream metadata could not be read from a video."""
    pass


class MissingCapability(WatermarkPipelineError):
    """Raised when a required collaborator (pixel reader, transcode binary) is unavailable."""
    pass


class TranscodeError(WatermarkPipelineError):
    """Raised when the filtered re-encode fails or times out."""
    pass


class QualityAssessmentError(WatermarkPipelineError):
    """Raised when the original and processed videos cannot be compared."""
    pass
