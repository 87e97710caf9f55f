"""
Error taxonomy for the recognition pipeline.

Only InitializationError ever reaches a caller; the others are raised by
backends and absorbed by the orchestrator or the classifier factory.
"""


class SignLensError(Exception):
    """Base class for all engine errors."""


class DetectorUnavailable(SignLensError):
    """A detector backend failed to initialize or to process a frame."""


class QuotaExceeded(DetectorUnavailable):
    """The remote detector call was refused by the quota gate."""


class ModelUnavailable(SignLensError):
    """The learned sign model could not be loaded."""


class InitializationError(SignLensError):
    """The pipeline has no usable detector or dictionary and cannot start."""
