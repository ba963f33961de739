"""Root of the pipeline exception hierarchy."""


class WatermarkPipelineError(Exception):
    """Base exception for pipeline failures."""
    pass
