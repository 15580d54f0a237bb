"""Incremental removal of marker blocks from streamed text."""

from __future__ import annotations

from collections.abc import Iterable

from services.streaming.protocol import MarkerSpec


# Shorter dangling prefixes ("-", "--") are ordinary prose
MIN_TRUNCATED_MARKER_CHARS = 3


def _pending_prefix_length(text: str, markers: Iterable[str]) -> int:
    """Length of the longest suffix of ``text`` that is a proper prefix of a marker."""
    best = 0
    for marker in markers:
        upto = min(len(marker) - 1, len(text))
        for n in range(upto, best, -1):
            if text.endswith(marker[:n]):
                best = n
                break
    return best


class MarkerSuppressor:
    """Filter that releases only text provably outside every marker block.

    ``feed`` returns the text that may be shown now. Outside a block at most
    ``len(longest marker) - 1`` characters are held back, plus any trailing
    whitespace (whitespace directly before a marker is dropped with it).
    Inside a paired block only the last ``len(end) - 1`` characters are kept
    while scanning for the end marker. A block without an end marker
    swallows the rest of the stream.
    """

    def __init__(self, markers: Iterable[MarkerSpec]):
        self._specs: tuple[MarkerSpec, ...] = tuple(markers)
        if not self._specs:
            raise ValueError("MarkerSuppressor requires at least one marker")
        self._starts = tuple(spec.start for spec in self._specs)
        self._held = ""
        self._active: MarkerSpec | None = None
        self._seen: list[str] = []

    @property
    def markers_seen(self) -> list[str]:
        """Markers encountered so far, in order of first appearance."""
        return list(self._seen)

    @property
    def inside_block(self) -> bool:
        return self._active is not None

    def _record(self, marker: str) -> None:
        if marker not in self._seen:
            self._seen.append(marker)

    def _find_start(self, text: str) -> tuple[int, MarkerSpec] | None:
        found: tuple[int, MarkerSpec] | None = None
        for spec in self._specs:
            idx = text.find(spec.start)
            if idx == -1:
                continue
            if found is None or idx < found[0]:
                found = (idx, spec)
        return found

    def feed(self, fragment: str) -> str:
        """Consume one fragment and return the newly visible text."""
        text = self._held + fragment
        self._held = ""
        visible: list[str] = []

        while text:
            if self._active is not None:
                end = self._active.end
                if end is None:
                    # Sentinel block: nothing after it is ever visible
                    return "".join(visible)
                idx = text.find(end)
                if idx == -1:
                    keep = len(end) - 1
                    self._held = text[-keep:] if keep else ""
                    break
                self._record(end)
                self._active = None
                text = text[idx + len(end) :]
                continue

            match = self._find_start(text)
            if match is not None:
                idx, spec = match
                visible.append(text[:idx].rstrip())
                self._record(spec.start)
                self._active = spec
                text = text[idx + len(spec.start) :]
                continue

            pending = _pending_prefix_length(text, self._starts)
            releasable = text[: len(text) - pending]
            stripped = releasable.rstrip()
            visible.append(stripped)
            self._held = text[len(stripped) :]
            break

        return "".join(visible)

    def flush(self) -> str:
        """Release what is still held at end of stream."""
        held = self._held
        self._held = ""
        if self._active is not None:
            # Unterminated block runs to the end of the transcript
            return ""
        pending = _pending_prefix_length(held, self._starts)
        if pending >= MIN_TRUNCATED_MARKER_CHARS:
            return ""
        return held
