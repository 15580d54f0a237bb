"""Marker protocol for structured data embedded in streamed completions.

Version 1 wraps the analysis payload in a pair of text markers::

    Visible prose...
    ---ANALYSIS_DATA_START---
    {"textType": "email", ...}
    ---ANALYSIS_DATA_END---

Everything from the start marker through the end marker is machine data and
never shown to the user. The bare ``ANALYSIS_COMPLETE`` sentinel followed by
JSON is the legacy encoding; see ``extractor.extract_legacy_payload``.
"""

from __future__ import annotations

from dataclasses import dataclass


ANALYSIS_PROTOCOL_VERSION = 1

ANALYSIS_DATA_START = "---ANALYSIS_DATA_START---"
ANALYSIS_DATA_END = "---ANALYSIS_DATA_END---"

LEGACY_ANALYSIS_SENTINEL = "ANALYSIS_COMPLETE"


@dataclass(frozen=True, slots=True)
class MarkerSpec:
    """A start marker and its optional end marker.

    Without an end marker the block runs to the end of the transcript.
    """

    start: str
    end: str | None = None


ANALYSIS_DATA_MARKERS = MarkerSpec(ANALYSIS_DATA_START, ANALYSIS_DATA_END)
LEGACY_SENTINEL_MARKERS = MarkerSpec(LEGACY_ANALYSIS_SENTINEL)


def analysis_markers(*, accept_legacy: bool) -> tuple[MarkerSpec, ...]:
    """Markers hidden from the visible analysis stream."""
    if accept_legacy:
        return (ANALYSIS_DATA_MARKERS, LEGACY_SENTINEL_MARKERS)
    return (ANALYSIS_DATA_MARKERS,)
