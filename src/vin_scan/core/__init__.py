"""
VIN Scan Core Module
====================

Core VIN utilities, constants, and validation logic.
Single Source of Truth for all VIN-related functionality.
"""

from .vin_utils import (
    # Constants
    VINConstants,
    VIN_LENGTH,
    VIN_VALID_CHARS,
    VIN_INVALID_CHARS,
    # Check digit
    CheckDigitResult,
    calculate_check_digit,
    validate_check_digit,
    validate_checksum,
    # Validation
    VINValidationResult,
    validate_vin,
    validate_vin_format,
    clean_manual_entry,
    validate_manual_entry,
    # Decoding
    decode_vin,
    get_region,
    get_manufacturer,
    plausibility_score,
    # Similarity
    levenshtein_distance,
)
from .confusables import (
    ConfusableMap,
    DEFAULT_CONFUSABLES,
    CONFUSION_PAIRS,
    INVALID_CHAR_RULES,
)

__all__ = [
    # Constants
    "VINConstants",
    "VIN_LENGTH",
    "VIN_VALID_CHARS",
    "VIN_INVALID_CHARS",
    # Check digit
    "CheckDigitResult",
    "calculate_check_digit",
    "validate_check_digit",
    "validate_checksum",
    # Validation
    "VINValidationResult",
    "validate_vin",
    "validate_vin_format",
    "clean_manual_entry",
    "validate_manual_entry",
    # Decoding
    "decode_vin",
    "get_region",
    "get_manufacturer",
    "plausibility_score",
    # Similarity
    "levenshtein_distance",
    # Confusables
    "ConfusableMap",
    "DEFAULT_CONFUSABLES",
    "CONFUSION_PAIRS",
    "INVALID_CHAR_RULES",
]
