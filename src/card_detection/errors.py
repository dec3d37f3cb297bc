"""
Error Taxonomy for the Card Detection System.

Every failure of the detection pipeline is reported as one of the
subclasses below. Each one short-circuits the pipeline at the step
where it happens; nothing is retried.
"""


class DetectionError(Exception):
    """Base class for all detection pipeline failures."""


class ImageDecodeError(DetectionError):
    """Input bytes do not decode into a valid raster image."""


class ModelLoadError(DetectionError):
    """Model artifact is missing, unreadable, or in an unsupported format."""


class ModelBuildError(DetectionError):
    """Model was read but the inference session could not be constructed."""


class InferenceError(DetectionError):
    """The inference call itself failed."""


class InferenceTimeoutError(InferenceError):
    """The inference call did not finish within the configured timeout."""
