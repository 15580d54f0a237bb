"""Python client for the Rewrite Assistant streaming API."""

from .api import ApiError, RewriterApiClient
from .phase import (
    ANALYSIS_ERROR_MESSAGE,
    Phase,
    PhaseController,
    PhaseTransitionError,
)
from .sse import aiter_frames, decode_line, iter_frames


__all__ = [
    "ANALYSIS_ERROR_MESSAGE",
    "ApiError",
    "Phase",
    "PhaseController",
    "PhaseTransitionError",
    "RewriterApiClient",
    "aiter_frames",
    "decode_line",
    "iter_frames",
]
