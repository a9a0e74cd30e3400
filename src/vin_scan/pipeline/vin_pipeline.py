"""
VIN Scan Pipeline
=================

Turns one decoded text (an OCR pass or a barcode payload) into a validated
VIN with a confidence score.

Usage:
    from vin_scan.pipeline import VINScanPipeline, ScanSession

    pipeline = VINScanPipeline()
    session = pipeline.new_session()
    outcome = pipeline.process("VIN:1HGBH41JXMN109186", source="ocr", session=session)
    print(outcome.vin)
"""

import logging
import time
from contextlib import contextmanager
from functools import partial
from typing import Callable, Dict, List, Optional, Sequence, Union

from ..config import PipelineConfig
from ..core.confusables import ConfusableMap, DEFAULT_CONFUSABLES
from ..core.vin_utils import plausibility_score
from ..exceptions import ScanCancelled
from .corrector import CorrectionSearch, VINCorrector
from .extractor import extract_candidates
from .normalizer import normalize_candidate
from .results import (
    CANCELLED,
    Accepted,
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
)
from .scorer import ConfidenceScorer
from .session import CancellationToken, ScanSession

logger = logging.getLogger(__name__)

StateObserver = Callable[[PipelineState], None]


@contextmanager
def _timer():
    """Context manager for timing operations."""
    start = time.perf_counter()
    elapsed = {'ms': 0.0}
    yield elapsed
    elapsed['ms'] = (time.perf_counter() - start) * 1000


def _ignore_state(state: PipelineState):
    pass


def _guarded(on_state: Optional[StateObserver]) -> StateObserver:
    """Wrap a caller's observer so a failing callback is logged and the run goes on."""
    if on_state is None:
        return _ignore_state

    def notify(state: PipelineState):
        try:
            on_state(state)
        except Exception:
            logger.exception(f"State observer failed on {state.value}")

    return notify


class VINScanPipeline:
    """
    Extract, normalize, correct, validate and score VIN candidates.

    Each call to process() walks the states
    IDLE -> EXTRACTING -> NORMALIZING -> CORRECTING -> VALIDATING -> SCORING
    and ends in ACCEPTED, LOW_CONFIDENCE or REJECTED. Errors never escape;
    every failure path returns a Rejected outcome.

    Thread Safety: The pipeline itself holds no per-run state and can be
    shared. Per-interaction state lives in the ScanSession passed to
    process(); at most one run per session publishes a result.

    Example:
        pipeline = VINScanPipeline()
        outcome = pipeline.process("1HGBH41JXMN109186")
        print(outcome.status, outcome.vin)
    """

    def __init__(
        self,
        config: Optional[PipelineConfig] = None,
        confusables: Optional[ConfusableMap] = None,
    ):
        """
        Initialize the pipeline.

        Args:
            config: Pipeline configuration (defaults if None)
            confusables: Confusable character map (defaults if None)

        Raises:
            ConfigurationError: If the configuration is out of range
        """
        self.config = (config or PipelineConfig()).validate()
        self.confusables = confusables or DEFAULT_CONFUSABLES
        self.corrector = VINCorrector(
            max_edits=self.config.max_correction_edits,
            confusables=self.confusables,
        )
        self.scorer = ConfidenceScorer(self.config.scoring, self.config.min_confidence)

    def new_session(self) -> ScanSession:
        """Create a ScanSession using this pipeline's attempt and interval settings."""
        return ScanSession.from_config(self.config)

    def process(
        self,
        text: str,
        source: Union[str, ScanSource] = ScanSource.OCR,
        session: Optional[ScanSession] = None,
        timestamp: Optional[float] = None,
        on_state: Optional[StateObserver] = None,
    ) -> ScanOutcome:
        """
        Run the pipeline over one decoded text.

        Args:
            text: Raw OCR output or barcode payload
            source: 'ocr' or 'barcode'
            session: Owning scan session; tracks attempts and cancellation
            timestamp: Capture time, carried on the raw input
            on_state: Called with each state the run enters

        Returns:
            Accepted, LowConfidence or Rejected. A run superseded by a newer
            run on the same session returns the Cancelled rejection.
        """
        notify = _guarded(on_state)
        notify(PipelineState.IDLE)

        if session is not None and session.exhausted:
            logger.info(f"Session exhausted after {session.attempts} attempts, skipping scan")
            outcome = Rejected(
                RejectionReason.SESSION_EXHAUSTED,
                session_exhausted=True,
                detail='maximum scan attempts reached; use manual entry',
            )
            notify(outcome.status)
            notify(PipelineState.IDLE)
            return outcome

        raw = RawScanText(text=text, source=self._parse_source(source), timestamp=timestamp)
        token = session.begin_run() if session is not None else CancellationToken(0)

        with _timer() as elapsed:
            try:
                outcome = self._run(raw, token, notify)
            except ScanCancelled as e:
                logger.debug(f"{e.message}")
                outcome = CANCELLED
            except Exception as e:
                logger.exception(f"Scan failed: {e}")
                outcome = Rejected(RejectionReason.NO_CANDIDATE_FOUND, detail=str(e))

        if session is not None:
            outcome = session.publish(token, outcome)

        if isinstance(outcome, Rejected) and outcome.is_cancelled:
            logger.debug(f"Run {token.run_id} discarded after {elapsed['ms']:.1f}ms")
        else:
            detail = outcome.vin if outcome.vin else outcome.reason.value
            logger.info(
                f"Scan ({raw.source.value}) -> {outcome.status.value} {detail} "
                f"in {elapsed['ms']:.1f}ms"
            )
            notify(outcome.status)
        notify(PipelineState.IDLE)
        return outcome

    def process_batch(
        self,
        texts: Sequence[str],
        source: Union[str, ScanSource] = ScanSource.OCR,
    ) -> List[ScanOutcome]:
        """Process independent texts, each without a session."""
        return [self.process(text, source=source) for text in texts]

    @staticmethod
    def _parse_source(source: Union[str, ScanSource]) -> ScanSource:
        try:
            return ScanSource.parse(source)
        except ValueError:
            logger.warning(f"Unknown scan source '{source}', treating as OCR")
            return ScanSource.OCR

    # -------------------------------------------------------------------------
    # Stages
    # -------------------------------------------------------------------------

    def _run(
        self,
        raw: RawScanText,
        token: CancellationToken,
        notify: StateObserver,
    ) -> ScanOutcome:
        notify(PipelineState.EXTRACTING)
        spans = list(extract_candidates(raw, self.config.extraction))
        logger.debug(f"Extracted {len(spans)} span(s) from {raw.source.value} text")
        token.checkpoint('extracted')

        notify(PipelineState.NORMALIZING)
        candidates: List[NormalizedCandidate] = []
        rejections: List[NormalizationRejection] = []
        seen = set()
        for span in spans:
            token.checkpoint('normalizing')
            normalized = normalize_candidate(
                span,
                max_edits=self.config.max_correction_edits,
                confusables=self.confusables,
                max_length=self.config.extraction.max_span_length,
            )
            if isinstance(normalized, NormalizationRejection):
                logger.debug(f"Span '{span.text}' rejected: {normalized.reason.value}")
                rejections.append(normalized)
            elif normalized.text not in seen:
                seen.add(normalized.text)
                candidates.append(normalized)

        if not candidates:
            return self._reject_without_candidates(rejections)

        notify(PipelineState.CORRECTING)
        checkpoint = partial(token.checkpoint, 'correcting')
        searches = [self.corrector.search(c, checkpoint=checkpoint) for c in candidates]

        notify(PipelineState.VALIDATING)
        token.checkpoint('validated')
        winners = [search for search in searches if search.found]

        notify(PipelineState.SCORING)
        if not winners:
            return self._reject_unverified(searches)

        ranked = self._rank(
            self._build_result(validation, raw.source, self._is_ambiguous(search, validation))
            for search in winners
            for validation in search.valid
        )
        best = ranked[0]
        if self.scorer.meets_threshold(best.confidence):
            return Accepted(result=best, candidates=tuple(ranked))
        return LowConfidence(result=best, candidates=tuple(ranked))

    def _build_result(
        self,
        validation: ValidationResult,
        source: ScanSource,
        ambiguous: bool = False,
    ) -> VINCandidateResult:
        variant = validation.variant
        confidence = self.scorer.score(validation, source, ambiguous)
        return VINCandidateResult(
            vin=variant.text,
            confidence=confidence,
            source=source,
            edit_distance=variant.edit_distance,
            validation=validation,
            raw_span=variant.candidate.span.text,
            edits=variant.edits,
            ambiguous=ambiguous,
            requires_confirmation=not (validation.valid and self.scorer.meets_threshold(confidence)),
        )

    @staticmethod
    def _is_ambiguous(search: CorrectionSearch, validation: ValidationResult) -> bool:
        """A variant is ambiguous unless it is the single most plausible reading."""
        preferred = search.preferred
        return preferred is None or validation.variant.text != preferred.variant.text

    @staticmethod
    def _rank(results) -> List[VINCandidateResult]:
        """Keep the best-scoring result per VIN and order by score."""
        best: Dict[str, VINCandidateResult] = {}
        for result in results:
            current = best.get(result.vin)
            if current is None or result.confidence > current.confidence:
                best[result.vin] = result
        return sorted(
            best.values(),
            key=lambda r: (
                -r.confidence,
                -plausibility_score(r.vin),
                r.edit_distance,
                r.validation.variant.candidate.span.start,
            ),
        )

    # -------------------------------------------------------------------------
    # Rejections
    # -------------------------------------------------------------------------

    @staticmethod
    def _reject_without_candidates(rejections: List[NormalizationRejection]) -> Rejected:
        if any(r.reason is NormalizationReason.INVALID_CHARACTER_SET for r in rejections):
            return Rejected(
                RejectionReason.ALL_CANDIDATES_INVALID_CHARSET,
                detail=f"{len(rejections)} span(s) could not be corrected to the VIN alphabet",
            )
        return Rejected(
            RejectionReason.NO_CANDIDATE_FOUND,
            detail='no 17-character candidate in input' if rejections else 'no candidate spans',
        )

    def _reject_unverified(self, searches: List[CorrectionSearch]) -> ScanOutcome:
        """
        No variant of any candidate passed the checksum.

        The closest invalid variant is reported; it becomes a LowConfidence
        result only when unverified candidates are explicitly allowed.
        """
        invalid = [s.best_invalid for s in searches if s.best_invalid is not None]
        if not invalid:
            return Rejected(
                RejectionReason.ALL_CANDIDATES_INVALID_CHARSET,
                detail='no candidate fits the edit budget',
            )

        best = self._rank(
            self._build_result(validation, validation.variant.candidate.span.source)
            for validation in invalid
        )[0]

        if self.config.accept_unverified_checksum:
            if best.validation.is_charset_valid:
                return LowConfidence(result=best, candidates=(best,))
            return Rejected(
                RejectionReason.ALL_CANDIDATES_INVALID_CHARSET,
                best_invalid=best,
                detail='closest candidate still has out-of-alphabet characters',
            )

        return Rejected(
            RejectionReason.CHECKSUM_MISMATCH_EXHAUSTED,
            best_invalid=best,
            detail=(
                f"check digit '{best.validation.found}' does not match "
                f"expected '{best.validation.expected}'"
            ),
        )


def scan_text(
    text: str,
    source: Union[str, ScanSource] = ScanSource.OCR,
    config: Optional[PipelineConfig] = None,
) -> ScanOutcome:
    """
    Run a one-off scan without a session.

    Example:
        >>> scan_text("1HGBH41JXMN109186").vin
        '1HGBH41JXMN109186'
    """
    return VINScanPipeline(config).process(text, source=source)
