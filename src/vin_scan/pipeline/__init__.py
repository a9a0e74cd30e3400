"""
VIN Scan Pipeline Module
========================

Extraction, normalization, correction, validation and scoring of VIN
candidates, plus the per-interaction scan session.
"""

from .consensus import ConsensusResult, FrameConsensus
from .corrector import VINCorrector, validate_variant
from .extractor import extract_candidates
from .feedback import ScanFeedback, build_feedback
from .normalizer import normalize_candidate
from .results import (
    CANCELLED,
    Accepted,
    CandidateSpan,
    CorrectionVariant,
    Edit,
    LowConfidence,
    NormalizationReason,
    NormalizationRejection,
    NormalizedCandidate,
    PipelineState,
    RawScanText,
    Rejected,
    RejectionReason,
    ScanOutcome,
    ScanSource,
    ValidationResult,
    VINCandidateResult,
    is_success,
)
from .scorer import ConfidenceScorer
from .session import CancellationToken, ScanSession
from .vin_pipeline import VINScanPipeline, scan_text

__all__ = [
    "VINScanPipeline",
    "scan_text",
    "ScanSession",
    "CancellationToken",
    "extract_candidates",
    "normalize_candidate",
    "VINCorrector",
    "validate_variant",
    "ConfidenceScorer",
    "FrameConsensus",
    "ConsensusResult",
    "ScanFeedback",
    "build_feedback",
    # Results
    "Accepted",
    "LowConfidence",
    "Rejected",
    "RejectionReason",
    "ScanOutcome",
    "CANCELLED",
    "is_success",
    "PipelineState",
    "ScanSource",
    "RawScanText",
    "CandidateSpan",
    "NormalizedCandidate",
    "NormalizationRejection",
    "NormalizationReason",
    "Edit",
    "CorrectionVariant",
    "ValidationResult",
    "VINCandidateResult",
]
