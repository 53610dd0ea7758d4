"""
Error Taxonomy
==============
Typed errors raised by the scoring engine, the model store and the
corpus trainer.

Callers distinguish "could not extract features" (FeatureExtractionError)
from "could not score extracted features" (ScoringError); neither path
ever returns a fabricated score.
"""


class ThumbScoreError(Exception):
    """Base class for all thumbscore errors."""

    # Used by the HTTP layer to pick a status code
    status_code = 500


class InvalidInputError(ThumbScoreError):
    """A required VisionFeatures field is wholly absent (not merely empty)."""

    status_code = 400


class ModelUnavailableError(ThumbScoreError):
    """The scoring model or findings artifact is missing, corrupt or unusable."""

    status_code = 503


class FeatureExtractionError(ThumbScoreError):
    """Vision analysis failed, so no features could be extracted."""

    status_code = 502

    def __init__(self, message: str = "could not extract features"):
        super().__init__(message)


class ScoringError(ThumbScoreError):
    """Features were extracted but scoring them failed."""

    status_code = 500

    def __init__(self, message: str = "could not score extracted features"):
        super().__init__(message)


class SamplingError(ThumbScoreError):
    """Fetching video listings or thumbnail images failed."""

    status_code = 502
