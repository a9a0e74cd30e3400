"""
Candidate span extraction from raw scan text.

Whitespace, punctuation, control and non-ASCII characters separate runs of
ASCII letters and digits. Every maximal run whose length falls within the
configured bounds becomes a CandidateSpan. Runs split by a space or hyphen
(common when OCR breaks a VIN across a gap) are additionally joined when
the joined text is long enough to hold a VIN.
"""

import re
import logging
from typing import Dict, Iterator, List, Optional, Tuple

from ..config import ExtractionConfig
from ..core.vin_utils import VIN_LENGTH
from .results import CandidateSpan, RawScanText

logger = logging.getLogger(__name__)

_RUN_PATTERN = re.compile(r'[A-Za-z0-9]+')

# Separators that may be bridged when joining runs
_JOINABLE_GAP = re.compile(r'[ \-]+')


def _runs(text: str) -> List[Tuple[int, int]]:
    return [(m.start(), m.end()) for m in _RUN_PATTERN.finditer(text)]


def _joined_spans(
    text: str,
    runs: List[Tuple[int, int]],
    max_length: int,
) -> Iterator[Tuple[int, int, str]]:
    """Yield (start, end, joined_text) for consecutive runs bridged by gaps."""
    for i, (start, end) in enumerate(runs):
        joined = text[start:end]
        for next_start, next_end in runs[i + 1:]:
            if not _JOINABLE_GAP.fullmatch(text[end:next_start]):
                break
            joined += text[next_start:next_end]
            end = next_end
            if len(joined) > max_length:
                break
            if len(joined) >= VIN_LENGTH:
                yield start, end, joined


def extract_candidates(
    raw: RawScanText,
    config: Optional[ExtractionConfig] = None,
) -> Iterator[CandidateSpan]:
    """
    Lazily yield candidate spans of plausible VIN shape.

    Args:
        raw: Raw scan text with its source tag
        config: Span bounds (defaults: 9..20 characters)

    Yields:
        CandidateSpan in order of appearance; joined spans follow the
        plain runs. Identical content at overlapping offsets is emitted once.
    """
    config = config or ExtractionConfig()
    text = raw.text if isinstance(raw.text, str) else ''
    if not text:
        return

    runs = _runs(text)
    emitted: Dict[str, List[Tuple[int, int]]] = {}

    def _first_emission(start: int, end: int, content: str) -> bool:
        seen = emitted.setdefault(content.upper(), [])
        if any(start < s_end and s_start < end for s_start, s_end in seen):
            return False
        seen.append((start, end))
        return True

    for start, end in runs:
        if config.min_span_length <= end - start <= config.max_span_length:
            content = text[start:end]
            if _first_emission(start, end, content):
                yield CandidateSpan(text=content, start=start, end=end, source=raw.source)

    if not config.join_split_runs:
        return

    for start, end, content in _joined_spans(text, runs, config.max_span_length):
        if _first_emission(start, end, content):
            logger.debug(f"Joined split run at {start}:{end} -> '{content}'")
            yield CandidateSpan(text=content, start=start, end=end, source=raw.source)
