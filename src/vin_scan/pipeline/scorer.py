"""Confidence scoring for validated VIN candidates."""

import logging
from typing import Optional

from ..config import ScoringConfig
from .results import ScanSource, ValidationResult

logger = logging.getLogger(__name__)


class ConfidenceScorer:
    """
    Combines checksum outcome, source reliability and correction distance
    into a score in [0, 1].

    Scoring:
    - base 1.0 for a valid checksum, 0.4 for a charset-valid candidate whose
      checksum never held
    - +0.05 for barcode-sourced candidates
    - -0.12 for the first edit, each further edit costing half the previous one
    - -0.25 when several valid corrections remain equally plausible
    """

    def __init__(self, config: Optional[ScoringConfig] = None, min_confidence: float = 0.7):
        self.config = config or ScoringConfig()
        self.min_confidence = min_confidence

    def edit_penalty(self, edit_count: int) -> float:
        """Total penalty for `edit_count` substitutions (diminishing per edit)."""
        penalty = 0.0
        step = self.config.edit_penalty
        for _ in range(edit_count):
            penalty += step
            step *= self.config.edit_penalty_decay
        return penalty

    def score(
        self,
        validation: ValidationResult,
        source: ScanSource,
        ambiguous: bool = False,
    ) -> float:
        """Score one validated (or best-effort unvalidated) variant."""
        if validation.valid:
            score = self.config.valid_base
        elif validation.is_charset_valid:
            score = self.config.unverified_base
        else:
            return 0.0

        if source is ScanSource.BARCODE:
            score += self.config.barcode_bonus

        score -= self.edit_penalty(validation.variant.edit_count)

        if ambiguous:
            score -= self.config.ambiguity_penalty

        return max(0.0, min(1.0, score))

    def meets_threshold(self, score: float) -> bool:
        return score >= self.min_confidence
