"""
Multi-frame consensus.

An auto-scan loop produces a result per camera frame. FrameConsensus keeps
the last few successful results of one session and reports the VIN the
frames agree on, how stable that agreement is, and which positions keep
flipping between readings.

Group score = 0.5 * fused confidence + 0.3 * frequency + 0.2 * recency,
where fused confidence is the mean frame confidence with older frames
decayed geometrically.
"""

import logging
import threading
import time
from collections import Counter, deque
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple, Union

import numpy as np

from ..core.confusables import ConfusableMap, DEFAULT_CONFUSABLES
from ..core.vin_utils import VIN_LENGTH
from .results import Accepted, LowConfidence, VINCandidateResult

logger = logging.getLogger(__name__)

FUSED_WEIGHT = 0.5
FREQUENCY_WEIGHT = 0.3
RECENCY_WEIGHT = 0.2

# Positions whose majority reading holds in fewer frames than this are flagged
POSITION_AGREEMENT_THRESHOLD = 0.8


@dataclass(frozen=True)
class ScanFrame:
    vin: str
    confidence: float
    timestamp: float


@dataclass
class ConsensusResult:
    """VIN agreed on by recent frames."""
    vin: str
    confidence: float
    stability: float
    frame_count: int
    problematic_positions: List[int] = field(default_factory=list)
    suggestions: Dict[int, Tuple[str, float]] = field(default_factory=dict)

    @property
    def is_stable(self) -> bool:
        return self.stability >= POSITION_AGREEMENT_THRESHOLD

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            'vin': self.vin,
            'confidence': round(self.confidence, 4),
            'stability': round(self.stability, 4),
            'frame_count': self.frame_count,
            'problematic_positions': list(self.problematic_positions),
            'suggestions': {
                str(pos): {'char': char, 'confidence': round(conf, 4)}
                for pos, (char, conf) in self.suggestions.items()
            },
        }


class FrameConsensus:
    """
    Rolling consensus over the most recent frames of one scan session.

    Thread Safety: frame additions and consensus reads are guarded by a lock.

    Example:
        consensus = FrameConsensus()
        for text in frames:
            consensus.add(pipeline.process(text, session=session))
        agreed = consensus.consensus()
    """

    def __init__(
        self,
        max_frames: int = 5,
        decay: float = 0.9,
        recency_window_s: float = 30.0,
        min_frames: int = 2,
        confusables: Optional[ConfusableMap] = None,
    ):
        self.max_frames = max_frames
        self.decay = decay
        self.recency_window_s = recency_window_s
        self.min_frames = min_frames
        self.confusables = confusables or DEFAULT_CONFUSABLES

        self._frames = deque(maxlen=max_frames)
        self._lock = threading.Lock()

    def __len__(self) -> int:
        with self._lock:
            return len(self._frames)

    def add(
        self,
        outcome: Union[Accepted, LowConfidence, VINCandidateResult, Any],
        timestamp: Optional[float] = None,
    ) -> bool:
        """
        Record a pipeline outcome. Rejections are ignored.

        Returns:
            True if a frame was recorded
        """
        if isinstance(outcome, (Accepted, LowConfidence)):
            outcome = outcome.result
        if not isinstance(outcome, VINCandidateResult):
            return False
        self.add_frame(outcome.vin, outcome.confidence, timestamp)
        return True

    def add_frame(self, vin: str, confidence: float, timestamp: Optional[float] = None):
        frame = ScanFrame(
            vin=vin,
            confidence=float(confidence),
            timestamp=time.time() if timestamp is None else timestamp,
        )
        with self._lock:
            self._frames.append(frame)

    def reset(self):
        with self._lock:
            self._frames.clear()

    def consensus(self, now: Optional[float] = None) -> Optional[ConsensusResult]:
        """
        Compute the consensus VIN over the retained frames.

        Args:
            now: Reference time for recency (defaults to time.time())

        Returns:
            ConsensusResult, or None with fewer than min_frames frames
        """
        with self._lock:
            frames = list(self._frames)
        if len(frames) < self.min_frames:
            return None

        now = time.time() if now is None else now
        n = len(frames)
        vins = np.array([f.vin for f in frames])
        confidences = np.array([f.confidence for f in frames])
        timestamps = np.array([f.timestamp for f in frames])

        # Newest frame has age 1 and weight 1.0
        ages = n - np.arange(n)
        weighted = confidences * np.power(self.decay, ages - 1)
        recency = 1.0 - (now - timestamps) / self.recency_window_s

        best_vin = None
        best_score = 0.0
        best_fused = 0.0
        groups = list(dict.fromkeys(f.vin for f in frames))
        for vin in groups:
            mask = vins == vin
            fused = float(weighted[mask].mean())
            frequency = float(mask.sum()) / n
            group_recency = max(0.0, float(recency[mask].mean()))
            score = (
                FUSED_WEIGHT * fused
                + FREQUENCY_WEIGHT * frequency
                + RECENCY_WEIGHT * group_recency
            )
            if score > best_score:
                best_vin, best_score, best_fused = vin, score, fused

        if best_vin is None:
            return None

        stability = float((vins == best_vin).sum()) / n
        result = ConsensusResult(
            vin=best_vin,
            confidence=best_fused,
            stability=stability,
            frame_count=n,
        )
        if stability < POSITION_AGREEMENT_THRESHOLD or len(groups) > 2:
            result.problematic_positions, result.suggestions = self._position_disagreements(frames)

        logger.debug(
            f"Consensus {best_vin}: {best_fused:.0%} fused confidence, "
            f"{stability:.0%} stability over {n} frames"
        )
        return result

    def _position_disagreements(
        self,
        frames: List[ScanFrame],
    ) -> Tuple[List[int], Dict[int, Tuple[str, float]]]:
        """Flag 1-based positions where frames disagree on the character."""
        positions = []
        suggestions = {}
        for index in range(VIN_LENGTH):
            counts = Counter(f.vin[index] for f in frames if len(f.vin) > index)
            if len(counts) < 2:
                continue
            char, count = counts.most_common(1)[0]
            agreement = count / len(frames)
            if agreement < POSITION_AGREEMENT_THRESHOLD or self._confusable_readings(counts):
                positions.append(index + 1)
                suggestions[index + 1] = (char, agreement)
        return positions, suggestions

    def _confusable_readings(self, counts: Counter) -> bool:
        chars = list(counts)
        return any(
            other in self.confusables.alternatives(char)
            for char in chars for other in chars if other != char
        )

    def stability_report(self) -> Dict[str, Any]:
        """
        Frame-to-frame stability summary.

        Returns:
            Dict with overall stability (share of the most common VIN),
            recent stability (last three frames) and trend
            ('improving', 'declining' or 'stable')
        """
        with self._lock:
            vins = [f.vin for f in self._frames]
        if len(vins) < 2:
            return {'overall': 0.0, 'recent': 0.0, 'trend': 'stable'}

        def _agreement(values: List[str]) -> float:
            return 1.0 / len(set(values))

        overall = Counter(vins).most_common(1)[0][1] / len(vins)
        recent = _agreement(vins[-3:])

        trend = 'stable'
        if len(vins) >= 4:
            half = len(vins) // 2
            first, second = _agreement(vins[:half]), _agreement(vins[half:])
            if second > first + 0.1:
                trend = 'improving'
            elif second < first - 0.1:
                trend = 'declining'

        return {'overall': overall, 'recent': recent, 'trend': trend}
