"""
Scan Pipeline Data Model
========================

Records passed between pipeline stages and the tagged outcome handed back
to the caller:

    RawScanText -> CandidateSpan -> NormalizedCandidate -> CorrectionVariant
        -> ValidationResult -> VINCandidateResult -> ScanOutcome

Outcomes are one of ``Accepted``, ``LowConfidence`` or ``Rejected``.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple, Union

from ..core.vin_utils import VINConstants


class ScanSource(str, Enum):
    """Where the decoded text came from."""
    OCR = "ocr"
    BARCODE = "barcode"

    @classmethod
    def parse(cls, value: Union[str, 'ScanSource']) -> 'ScanSource':
        if isinstance(value, cls):
            return value
        return cls(str(value).lower())


class PipelineState(str, Enum):
    """Orchestrator states, traversed strictly forward once per input."""
    IDLE = "idle"
    EXTRACTING = "extracting"
    NORMALIZING = "normalizing"
    CORRECTING = "correcting"
    VALIDATING = "validating"
    SCORING = "scoring"
    ACCEPTED = "accepted"
    LOW_CONFIDENCE = "low_confidence"
    REJECTED = "rejected"


class RejectionReason(str, Enum):
    NO_CANDIDATE_FOUND = "NoCandidateFound"
    ALL_CANDIDATES_INVALID_CHARSET = "AllCandidatesInvalidCharset"
    CHECKSUM_MISMATCH_EXHAUSTED = "ChecksumMismatchExhausted"
    SESSION_EXHAUSTED = "SessionExhausted"
    CANCELLED = "Cancelled"


class NormalizationReason(str, Enum):
    TOO_SHORT = "TooShort"
    TOO_LONG = "TooLong"
    INVALID_CHARACTER_SET = "InvalidCharacterSet"


# =============================================================================
# STAGE RECORDS
# =============================================================================

@dataclass(frozen=True)
class RawScanText:
    """Unmodified text from one OCR pass or barcode decode."""
    text: str
    source: ScanSource = ScanSource.OCR
    timestamp: Optional[Any] = None


@dataclass(frozen=True)
class CandidateSpan:
    """Substring of the raw text that may hold a VIN."""
    text: str
    start: int
    end: int
    source: ScanSource


@dataclass(frozen=True)
class NormalizedCandidate:
    """
    17 uppercase characters ready for correction.

    Out-of-alphabet letters (I, O, Q) may still be present; their positions
    are listed in ``invalid_positions`` and the corrector fixes them.
    """
    text: str
    span: CandidateSpan
    trimmed_prefix: str = ''
    trimmed_suffix: str = ''

    @property
    def invalid_positions(self) -> Tuple[int, ...]:
        return tuple(
            i for i, char in enumerate(self.text)
            if char not in VINConstants.VALID_CHARS
        )

    @property
    def is_charset_valid(self) -> bool:
        return not self.invalid_positions


@dataclass(frozen=True)
class NormalizationRejection:
    """Why a span could not become a 17-character candidate."""
    span: CandidateSpan
    reason: NormalizationReason


@dataclass(frozen=True)
class Edit:
    """One character substitution (0-based position)."""
    position: int
    original: str
    substituted: str

    def to_dict(self) -> Dict[str, Any]:
        return {
            'position': self.position + 1,
            'original': self.original,
            'substituted': self.substituted,
        }


@dataclass(frozen=True)
class CorrectionVariant:
    """A candidate string plus the substitutions that produced it."""
    text: str
    edits: Tuple[Edit, ...]
    candidate: NormalizedCandidate

    @property
    def edit_count(self) -> int:
        return len(self.edits)

    @property
    def edit_distance(self) -> int:
        """Substitutions plus characters trimmed off the raw span."""
        trimmed = len(self.candidate.trimmed_prefix) + len(self.candidate.trimmed_suffix)
        return self.edit_count + trimmed


@dataclass(frozen=True)
class ValidationResult:
    """Checksum outcome for one variant."""
    variant: CorrectionVariant
    valid: bool
    expected: Optional[str]
    found: Optional[str]

    @property
    def is_charset_valid(self) -> bool:
        return all(c in VINConstants.VALID_CHARS for c in self.variant.text)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'valid': self.valid,
            'expected': self.expected,
            'found': self.found,
        }


# =============================================================================
# OUTPUT
# =============================================================================

@dataclass(frozen=True)
class VINCandidateResult:
    """Final output unit of one pipeline run."""
    vin: str
    confidence: float
    source: ScanSource
    edit_distance: int
    validation: ValidationResult
    raw_span: str
    edits: Tuple[Edit, ...] = ()
    ambiguous: bool = False
    requires_confirmation: bool = False

    @property
    def checksum_valid(self) -> bool:
        return self.validation.valid

    @property
    def edited_positions(self) -> List[int]:
        """1-based positions that were substituted."""
        return [edit.position + 1 for edit in self.edits]

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            'vin': self.vin,
            'confidence': round(self.confidence, 4),
            'source': self.source.value,
            'edit_distance': self.edit_distance,
            'edits': [edit.to_dict() for edit in self.edits],
            'checksum_valid': self.validation.valid,
            'expected_check_digit': self.validation.expected,
            'found_check_digit': self.validation.found,
            'raw_span': self.raw_span,
            'ambiguous': self.ambiguous,
            'requires_confirmation': self.requires_confirmation,
        }


@dataclass(frozen=True)
class Accepted:
    """Best candidate met the confidence threshold."""
    result: VINCandidateResult
    candidates: Tuple[VINCandidateResult, ...] = ()

    status = PipelineState.ACCEPTED

    @property
    def vin(self) -> str:
        return self.result.vin

    def to_dict(self) -> Dict[str, Any]:
        return {
            'status': self.status.value,
            'result': self.result.to_dict(),
            'candidates': [c.to_dict() for c in self.candidates],
        }


@dataclass(frozen=True)
class LowConfidence:
    """Best candidate is below threshold; caller should ask for confirmation."""
    result: VINCandidateResult
    candidates: Tuple[VINCandidateResult, ...] = ()

    status = PipelineState.LOW_CONFIDENCE

    @property
    def vin(self) -> str:
        return self.result.vin

    def to_dict(self) -> Dict[str, Any]:
        return {
            'status': self.status.value,
            'result': self.result.to_dict(),
            'candidates': [c.to_dict() for c in self.candidates],
        }


@dataclass(frozen=True)
class Rejected:
    """
    No usable candidate.

    ``best_invalid`` carries the closest checksum-failing candidate for
    diagnostics; ``session_exhausted`` tells the caller to fall back to
    manual entry.
    """
    reason: RejectionReason
    best_invalid: Optional[VINCandidateResult] = None
    session_exhausted: bool = False
    detail: str = ''

    status = PipelineState.REJECTED

    @property
    def vin(self) -> Optional[str]:
        return None

    @property
    def is_cancelled(self) -> bool:
        return self.reason is RejectionReason.CANCELLED

    def to_dict(self) -> Dict[str, Any]:
        return {
            'status': self.status.value,
            'reason': self.reason.value,
            'detail': self.detail,
            'session_exhausted': self.session_exhausted,
            'best_invalid': self.best_invalid.to_dict() if self.best_invalid else None,
        }


ScanOutcome = Union[Accepted, LowConfidence, Rejected]


CANCELLED = Rejected(RejectionReason.CANCELLED, detail='superseded by a newer scan')


def is_success(outcome: ScanOutcome) -> bool:
    """True for Accepted and LowConfidence outcomes."""
    return isinstance(outcome, (Accepted, LowConfidence))
