"""
Evaluation Metrics for the VIN Scan Pipeline
============================================

Measures how well the pipeline recovers labelled VINs from scan text.

Scan-Level Metrics:
    - Exact match accuracy
    - Accepted / low-confidence / rejected rates
    - Accuracy among accepted results (false accept rate)
    - Mean confidence of accepted results

Character-Level Metrics:
    - Character accuracy (position-aligned)
    - Character Error Rate (Levenshtein distance / reference length)
    - Per-position accuracy (VIN positions 1-17)
    - Most confused character pairs

Sample files (JSON or YAML) hold a list of records:
    - text: "VIN 1HGBH41JXMN1O9186"
      vin: "1HGBH41JXMN109186"
      source: ocr
"""

import json
import logging
import time
from collections import defaultdict
from dataclasses import asdict, dataclass, field
from pathlib import Path
from typing import Any, Dict, Iterable, List, Mapping, Optional, Tuple, Union

import numpy as np
import yaml

from ..core.vin_utils import levenshtein_distance
from ..exceptions import SampleLoadError
from ..pipeline.results import ScanOutcome, ScanSource

logger = logging.getLogger(__name__)


# =============================================================================
# METRIC RECORDS
# =============================================================================

@dataclass
class ScanLevelMetrics:
    """Whole-VIN (exact match) metrics."""
    total_samples: int = 0
    correct_samples: int = 0
    failed_samples: int = 0
    accuracy: float = 0.0

    accepted_rate: float = 0.0
    low_confidence_rate: float = 0.0
    rejected_rate: float = 0.0

    # Share of accepted results that are wrong
    false_accept_rate: float = 0.0
    mean_confidence: float = 0.0

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class CharacterLevelMetrics:
    """Character-level metrics."""
    total_characters: int = 0
    correct_characters: int = 0
    char_accuracy: float = 0.0
    char_error_rate: float = 0.0  # CER

    total_edit_distance: int = 0
    avg_edit_distance: float = 0.0

    # Per-position accuracy (VIN positions 1-17)
    position_accuracy: Dict[int, float] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class EvaluationMetrics:
    """Scan-level and character-level metrics for one evaluation run."""
    scan_level: ScanLevelMetrics = field(default_factory=ScanLevelMetrics)
    character_level: CharacterLevelMetrics = field(default_factory=CharacterLevelMetrics)
    evaluation_time_seconds: float = 0.0
    most_confused_pairs: List[Tuple[str, str, int]] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'scan_level': self.scan_level.to_dict(),
            'character_level': self.character_level.to_dict(),
            'evaluation_time_seconds': self.evaluation_time_seconds,
            'most_confused_pairs': [list(pair) for pair in self.most_confused_pairs],
        }

    def print_summary(self) -> None:
        """Print formatted evaluation summary."""
        scan = self.scan_level
        chars = self.character_level

        print("\n" + "=" * 70)
        print("EVALUATION METRICS SUMMARY")
        print("=" * 70)

        print("\nSCAN-LEVEL METRICS:")
        print("-" * 70)
        print(f"  Total Samples:           {scan.total_samples}")
        print(f"  Correct:                 {scan.correct_samples}")
        print(f"  Failed:                  {scan.failed_samples}")
        print(f"  Accuracy:                {scan.accuracy:.2%}")
        print(f"  Accepted:                {scan.accepted_rate:.2%}")
        print(f"  Low Confidence:          {scan.low_confidence_rate:.2%}")
        print(f"  Rejected:                {scan.rejected_rate:.2%}")
        print(f"  False Accept Rate:       {scan.false_accept_rate:.2%}")
        print(f"  Mean Confidence:         {scan.mean_confidence:.4f}")

        print("\nCHARACTER-LEVEL METRICS:")
        print("-" * 70)
        print(f"  Total Characters:        {chars.total_characters}")
        print(f"  Correct Characters:      {chars.correct_characters}")
        print(f"  Character Accuracy:      {chars.char_accuracy:.2%}")
        print(f"  Character Error Rate:    {chars.char_error_rate:.2%}")
        print(f"  Avg Edit Distance:       {chars.avg_edit_distance:.2f}")

        if chars.position_accuracy:
            print("\nPER-POSITION ACCURACY (VIN positions 1-17):")
            print("-" * 70)
            for pos in sorted(chars.position_accuracy):
                acc = chars.position_accuracy[pos]
                bar = "#" * int(acc * 20) + "." * (20 - int(acc * 20))
                print(f"  Position {pos:2d}: {bar} {acc:.1%}")

        if self.most_confused_pairs:
            print("\nMOST CONFUSED CHARACTER PAIRS:")
            print("-" * 70)
            for pred, true, count in self.most_confused_pairs[:10]:
                print(f"  '{pred}' <- '{true}': {count} times")

        print("\n" + "=" * 70)
        print(f"Evaluation Time: {self.evaluation_time_seconds:.2f} seconds")
        print("=" * 70)


# =============================================================================
# CALCULATOR
# =============================================================================

class EvaluationMetricsCalculator:
    """
    Accumulates pipeline predictions against ground truth.

    Usage:
        calculator = EvaluationMetricsCalculator()
        for outcome, truth in zip(outcomes, labels):
            calculator.add_outcome(outcome, truth)
        metrics = calculator.compute()
        metrics.print_summary()
    """

    def __init__(self):
        self.reset()

    def reset(self) -> None:
        """Reset calculator for new evaluation."""
        self.predictions: List[str] = []
        self.ground_truth: List[str] = []
        self.statuses: List[str] = []
        self.confidences: List[float] = []
        self.start_time: Optional[float] = None

    def add_sample(
        self,
        prediction: Optional[str],
        ground_truth: str,
        status: str = 'accepted',
        confidence: float = 0.0,
    ) -> None:
        """
        Add a single prediction.

        Args:
            prediction: Predicted VIN ('' or None when nothing was returned)
            ground_truth: Expected VIN
            status: 'accepted', 'low_confidence' or 'rejected'
            confidence: Pipeline confidence for the prediction
        """
        if self.start_time is None:
            self.start_time = time.time()
        self.predictions.append((prediction or '').upper().strip())
        self.ground_truth.append(ground_truth.upper().strip())
        self.statuses.append(status)
        self.confidences.append(float(confidence))

    def add_outcome(self, outcome: ScanOutcome, ground_truth: str) -> None:
        """Add a pipeline outcome; rejected outcomes count as empty predictions."""
        result = getattr(outcome, 'result', None)
        self.add_sample(
            prediction=result.vin if result is not None else '',
            ground_truth=ground_truth,
            status=outcome.status.value,
            confidence=result.confidence if result is not None else 0.0,
        )

    def compute(self) -> EvaluationMetrics:
        """Compute all evaluation metrics."""
        metrics = EvaluationMetrics()
        if not self.predictions:
            return metrics

        if self.start_time:
            metrics.evaluation_time_seconds = time.time() - self.start_time

        metrics.scan_level = self._compute_scan_level()
        metrics.character_level = self._compute_character_level()
        metrics.most_confused_pairs = self._compute_confusion_pairs()
        return metrics

    def _compute_scan_level(self) -> ScanLevelMetrics:
        total = len(self.predictions)
        correct = np.array([p == t for p, t in zip(self.predictions, self.ground_truth)])
        statuses = np.array(self.statuses)
        confidences = np.array(self.confidences)

        accepted = statuses == 'accepted'
        accepted_count = int(accepted.sum())

        return ScanLevelMetrics(
            total_samples=total,
            correct_samples=int(correct.sum()),
            failed_samples=total - int(correct.sum()),
            accuracy=float(correct.mean()),
            accepted_rate=float(accepted.mean()),
            low_confidence_rate=float((statuses == 'low_confidence').mean()),
            rejected_rate=float((statuses == 'rejected').mean()),
            false_accept_rate=(
                float((accepted & ~correct).sum()) / accepted_count if accepted_count else 0.0
            ),
            mean_confidence=float(confidences[accepted].mean()) if accepted_count else 0.0,
        )

    def _compute_character_level(self) -> CharacterLevelMetrics:
        total_chars = 0
        correct_chars = 0
        position_correct: Dict[int, int] = defaultdict(int)
        position_total: Dict[int, int] = defaultdict(int)

        distances = np.array([
            levenshtein_distance(p, t) for p, t in zip(self.predictions, self.ground_truth)
        ])

        for pred, true in zip(self.predictions, self.ground_truth):
            for i in range(max(len(pred), len(true))):
                position_total[i + 1] += 1
                total_chars += 1
                if i < len(pred) and i < len(true) and pred[i] == true[i]:
                    correct_chars += 1
                    position_correct[i + 1] += 1

        total_true_len = sum(len(t) for t in self.ground_truth)
        total_edit = int(distances.sum())

        return CharacterLevelMetrics(
            total_characters=total_chars,
            correct_characters=correct_chars,
            char_accuracy=correct_chars / total_chars if total_chars > 0 else 0.0,
            char_error_rate=total_edit / total_true_len if total_true_len > 0 else 1.0,
            total_edit_distance=total_edit,
            avg_edit_distance=float(distances.mean()),
            position_accuracy={
                pos: position_correct[pos] / position_total[pos]
                for pos in sorted(position_total)
            },
        )

    def _compute_confusion_pairs(self) -> List[Tuple[str, str, int]]:
        """Find most commonly confused (predicted, true) character pairs."""
        confusion: Dict[Tuple[str, str], int] = defaultdict(int)
        for pred, true in zip(self.predictions, self.ground_truth):
            for pred_char, true_char in zip(pred, true):
                if pred_char != true_char:
                    confusion[(pred_char, true_char)] += 1

        sorted_pairs = sorted(confusion.items(), key=lambda x: x[1], reverse=True)
        return [(p, t, c) for (p, t), c in sorted_pairs[:20]]


# =============================================================================
# UTILITY FUNCTIONS
# =============================================================================

def load_samples(path: Union[str, Path]) -> List[Dict[str, Any]]:
    """
    Load labelled samples from a JSON or YAML file.

    The file holds a list of {text, vin, source} records, either at the top
    level or under a 'samples' key. 'source' defaults to 'ocr'.

    Raises:
        SampleLoadError: If the file is missing or malformed
    """
    path = Path(path)
    if not path.exists():
        raise SampleLoadError(str(path), "file not found")

    try:
        with open(path, 'r') as f:
            if path.suffix.lower() in ('.yml', '.yaml'):
                data = yaml.safe_load(f)
            else:
                data = json.load(f)
    except (yaml.YAMLError, json.JSONDecodeError) as e:
        raise SampleLoadError(str(path), str(e)) from e

    if isinstance(data, Mapping):
        data = data.get('samples')
    if not isinstance(data, list):
        raise SampleLoadError(str(path), "expected a list of samples")

    samples = []
    for index, record in enumerate(data):
        if not isinstance(record, Mapping) or 'text' not in record or 'vin' not in record:
            raise SampleLoadError(str(path), f"sample {index} needs 'text' and 'vin'")
        samples.append({
            'text': str(record['text']),
            'vin': str(record['vin']),
            'source': str(record.get('source', ScanSource.OCR.value)),
        })

    logger.info(f"Loaded {len(samples)} samples from {path}")
    return samples


def evaluate_samples(
    pipeline,
    samples: Iterable[Mapping[str, Any]],
    print_summary: bool = False,
) -> EvaluationMetrics:
    """
    Run the pipeline over labelled samples and compute metrics.

    Args:
        pipeline: VINScanPipeline instance
        samples: Records with 'text', 'vin' and optional 'source'
        print_summary: Whether to print formatted summary

    Returns:
        EvaluationMetrics object with all computed metrics
    """
    calculator = EvaluationMetricsCalculator()
    for sample in samples:
        outcome = pipeline.process(sample['text'], source=sample.get('source', ScanSource.OCR))
        calculator.add_outcome(outcome, sample['vin'])

    metrics = calculator.compute()
    logger.info(
        f"Evaluated {metrics.scan_level.total_samples} samples: "
        f"{metrics.scan_level.accuracy:.2%} exact match"
    )
    if print_summary:
        metrics.print_summary()
    return metrics


def save_metrics_to_json(metrics: EvaluationMetrics, filepath: Union[str, Path]) -> None:
    """Save evaluation metrics to JSON file."""
    with open(filepath, 'w') as f:
        json.dump(metrics.to_dict(), f, indent=2)
