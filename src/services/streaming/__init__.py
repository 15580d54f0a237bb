"""Streamed-completion marker protocol, suppression, extraction and reading."""

from services.streaming.exceptions import (
    MarkerExtractionError,
    StreamError,
    StreamTimeoutError,
)
from services.streaming.extractor import (
    extract_analysis_payload,
    parse_change_analysis,
    parse_rewrite_sections,
)
from services.streaming.protocol import (
    ANALYSIS_DATA_END,
    ANALYSIS_DATA_START,
    ANALYSIS_PROTOCOL_VERSION,
    LEGACY_ANALYSIS_SENTINEL,
    MarkerSpec,
    analysis_markers,
)
from services.streaming.reader import CompletionStreamReader
from services.streaming.suppressor import MarkerSuppressor


__all__ = [
    # Protocol
    "ANALYSIS_DATA_END",
    "ANALYSIS_DATA_START",
    "ANALYSIS_PROTOCOL_VERSION",
    "LEGACY_ANALYSIS_SENTINEL",
    "MarkerSpec",
    "analysis_markers",
    # Processing
    "CompletionStreamReader",
    "MarkerSuppressor",
    "extract_analysis_payload",
    "parse_change_analysis",
    "parse_rewrite_sections",
    # Errors
    "MarkerExtractionError",
    "StreamError",
    "StreamTimeoutError",
]
