"""
Normalize candidate spans to 17 uppercase characters.

Spans longer than a VIN are trimmed. Scanned labels most often carry
trailing noise, so the window at offset 0 is tried first, then the window
at the end, then interior windows left to right. Among the windows, the
first one whose checksum already holds (after the mandatory I/O/Q fixes)
wins; otherwise the first window made only of VIN characters; otherwise
the first window that is correctable within the edit budget.
"""

import logging
from typing import Iterator, Optional, Union

from ..core.confusables import ConfusableMap, DEFAULT_CONFUSABLES
from ..core.vin_utils import VINConstants, VIN_LENGTH, VIN_VALID_CHARS, validate_checksum
from .results import (
    CandidateSpan,
    NormalizationReason,
    NormalizationRejection,
    NormalizedCandidate,
)

logger = logging.getLogger(__name__)

NormalizationOutcome = Union[NormalizedCandidate, NormalizationRejection]


def _window_offsets(length: int) -> Iterator[int]:
    last = length - VIN_LENGTH
    yield 0
    if last > 0:
        yield last
    yield from range(1, last)


def _forced_fixes(window: str, confusables: ConfusableMap) -> Optional[str]:
    """
    Apply the mandatory I/O/Q fixes; None if a character is uncorrectable.

    The check digit is left as read.
    """
    fixed = []
    for position, char in enumerate(window):
        if char in VIN_VALID_CHARS or position == VINConstants.CHECK_DIGIT_INDEX:
            fixed.append(char)
        elif confusables.is_correctable(char):
            fixed.append(confusables.forced_substitution(char))
        else:
            return None
    return ''.join(fixed)


def _fix_count(window: str) -> int:
    return sum(
        1 for position, char in enumerate(window)
        if char not in VIN_VALID_CHARS and position != VINConstants.CHECK_DIGIT_INDEX
    )


def normalize_candidate(
    span: CandidateSpan,
    max_edits: int = 2,
    confusables: Optional[ConfusableMap] = None,
    max_length: int = 20,
) -> NormalizationOutcome:
    """
    Produce at most one NormalizedCandidate for a span.

    Args:
        span: Candidate span from the extractor
        max_edits: Edit budget; windows needing more I/O/Q fixes are rejected
        confusables: Confusable map deciding which characters are correctable
        max_length: Longest span that may be trimmed down to a VIN

    Returns:
        NormalizedCandidate, or NormalizationRejection with the reason
    """
    confusables = confusables or DEFAULT_CONFUSABLES
    text = span.text.upper()

    if len(text) < VIN_LENGTH:
        return NormalizationRejection(span, NormalizationReason.TOO_SHORT)

    if len(text) > max_length:
        return NormalizationRejection(span, NormalizationReason.TOO_LONG)

    if len(text) == VIN_LENGTH:
        if _forced_fixes(text, confusables) is not None and _fix_count(text) <= max_edits:
            return NormalizedCandidate(text=text, span=span)
        return NormalizationRejection(span, NormalizationReason.INVALID_CHARACTER_SET)

    first_valid: Optional[int] = None
    first_correctable: Optional[int] = None

    for offset in _window_offsets(len(text)):
        window = text[offset:offset + VIN_LENGTH]
        fixed = _forced_fixes(window, confusables)
        if fixed is None or _fix_count(window) > max_edits:
            continue
        if validate_checksum(fixed):
            return _trimmed(text, offset, span)
        if first_valid is None and all(c in VIN_VALID_CHARS for c in window):
            first_valid = offset
        if first_correctable is None:
            first_correctable = offset

    chosen = first_valid if first_valid is not None else first_correctable
    if chosen is not None:
        return _trimmed(text, chosen, span)

    logger.debug(f"No correctable 17-character window in '{text}'")
    return NormalizationRejection(span, NormalizationReason.INVALID_CHARACTER_SET)


def _trimmed(text: str, offset: int, span: CandidateSpan) -> NormalizedCandidate:
    return NormalizedCandidate(
        text=text[offset:offset + VIN_LENGTH],
        span=span,
        trimmed_prefix=text[:offset],
        trimmed_suffix=text[offset + VIN_LENGTH:],
    )
