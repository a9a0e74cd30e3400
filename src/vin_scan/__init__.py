"""
VIN Scan
========

Recover Vehicle Identification Numbers from noisy OCR and barcode text.

Package Structure:
    vin_scan/
    ├── core/           # VIN constants, check digit, decoding, confusables
    ├── pipeline/       # Extraction, correction, scoring, sessions
    ├── evaluation/     # Accuracy metrics over labelled samples
    ├── config.py       # Pipeline configuration
    └── cli.py          # vin-scan command

Quick Start:
    from vin_scan import VINScanPipeline

    pipeline = VINScanPipeline()
    outcome = pipeline.process("VIN:1HGBH41JXMN109186 (see window sticker)")
    print(outcome.status, outcome.vin)

    # Validation
    from vin_scan.core import validate_vin
    result = validate_vin("1HGBH41JXMN109186")
    print(result.is_fully_valid)

Version: 1.0.0
"""

__version__ = "1.0.0"
__author__ = "VIN Scan Team"

from .config import PipelineConfig, setup_logging
from .core import (
    VINConstants,
    VIN_LENGTH,
    VIN_VALID_CHARS,
    VINValidationResult,
    calculate_check_digit,
    decode_vin,
    validate_check_digit,
    validate_checksum,
    validate_vin,
)
from .exceptions import ConfigurationError, PipelineError
from .pipeline import (
    Accepted,
    LowConfidence,
    Rejected,
    RejectionReason,
    ScanSession,
    VINCandidateResult,
    VINScanPipeline,
    scan_text,
)

__all__ = [
    "__version__",
    "__author__",
    # Core
    "VINConstants",
    "VIN_LENGTH",
    "VIN_VALID_CHARS",
    "VINValidationResult",
    "calculate_check_digit",
    "decode_vin",
    "validate_check_digit",
    "validate_checksum",
    "validate_vin",
    # Pipeline
    "VINScanPipeline",
    "ScanSession",
    "scan_text",
    "VINCandidateResult",
    "Accepted",
    "LowConfidence",
    "Rejected",
    "RejectionReason",
    # Config
    "PipelineConfig",
    "setup_logging",
    "ConfigurationError",
    "PipelineError",
]
