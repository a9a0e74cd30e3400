"""
VIN Scan Evaluation Module
==========================

Accuracy metrics for the scan pipeline over labelled samples.

Usage:
    from vin_scan.evaluation import evaluate_samples, load_samples

    metrics = evaluate_samples(VINScanPipeline(), load_samples("samples.yaml"))
    metrics.print_summary()
"""

from .metrics import (
    CharacterLevelMetrics,
    EvaluationMetrics,
    EvaluationMetricsCalculator,
    ScanLevelMetrics,
    evaluate_samples,
    load_samples,
    save_metrics_to_json,
)

__all__ = [
    "CharacterLevelMetrics",
    "EvaluationMetrics",
    "EvaluationMetricsCalculator",
    "ScanLevelMetrics",
    "evaluate_samples",
    "load_samples",
    "save_metrics_to_json",
]
