"""
VIN Utilities - Single Source of Truth
======================================

VIN constants, check-digit computation, validation and structure decoding
shared by every stage of the scan pipeline.

Author: VIN Scan Project
Date: January 2026
"""

import re
import logging
from typing import Optional, Dict, List, Tuple, FrozenSet, Any
from dataclasses import dataclass

logger = logging.getLogger(__name__)


# =============================================================================
# VIN CONSTANTS
# =============================================================================

class VINConstants:
    """Immutable VIN specification constants per ISO 3779 / NHTSA."""

    LENGTH: int = 17

    # Valid characters (I, O, Q excluded to avoid confusion with 1, 0)
    VALID_CHARS: FrozenSet[str] = frozenset("0123456789ABCDEFGHJKLMNPRSTUVWXYZ")
    INVALID_CHARS: FrozenSet[str] = frozenset("IOQ")

    # Position indices (1-based as per VIN spec)
    CHECK_DIGIT_POSITION: int = 9
    YEAR_POSITION: int = 10
    PLANT_POSITION: int = 11
    SEQUENTIAL_START: int = 12
    SEQUENTIAL_END: int = 17

    # 0-based index of the check digit
    CHECK_DIGIT_INDEX: int = CHECK_DIGIT_POSITION - 1

    # Checksum weights by position (NHTSA standard)
    CHECKSUM_WEIGHTS: Tuple[int, ...] = (8, 7, 6, 5, 4, 3, 2, 10, 0, 9, 8, 7, 6, 5, 4, 3, 2)

    # Transliteration table: character to value mapping for checksum (ISO 3779)
    CHAR_VALUES: Dict[str, int] = {
        'A': 1, 'B': 2, 'C': 3, 'D': 4, 'E': 5, 'F': 6, 'G': 7, 'H': 8,
        'J': 1, 'K': 2, 'L': 3, 'M': 4, 'N': 5, 'P': 7, 'R': 9,
        'S': 2, 'T': 3, 'U': 4, 'V': 5, 'W': 6, 'X': 7, 'Y': 8, 'Z': 9,
        '0': 0, '1': 1, '2': 2, '3': 3, '4': 4, '5': 5, '6': 6, '7': 7, '8': 8, '9': 9
    }

    # Characters allowed in the check digit position
    CHECK_DIGIT_CHARS: FrozenSet[str] = frozenset("0123456789X")

    # Manufacturing region by first WMI character (ISO 3780)
    REGIONS: Tuple[Tuple[str, str], ...] = (
        ('ABCDEFGH', 'Africa'),
        ('JKLMNPR', 'Asia'),
        ('STUVWXYZ', 'Europe'),
        ('12345', 'North America'),
        ('67', 'Oceania'),
        ('890', 'South America'),
    )

    # Known World Manufacturer Identifiers (positions 1-3)
    WMI_MANUFACTURERS: Dict[str, str] = {
        # Europe
        'SAL': 'Land Rover', 'SAJ': 'Jaguar', 'SCC': 'Lotus',
        'VF1': 'Renault', 'VF3': 'Peugeot', 'VF7': 'Citroen',
        'WAU': 'Audi', 'WUA': 'Audi', 'WBA': 'BMW', 'WBS': 'BMW M', 'WBX': 'BMW',
        'WDB': 'Mercedes-Benz', 'WDD': 'Mercedes-Benz', 'WF0': 'Ford Germany',
        'WMW': 'MINI', 'WP0': 'Porsche', 'WP1': 'Porsche',
        'WVW': 'Volkswagen', 'WVG': 'Volkswagen',
        'YV1': 'Volvo', 'YS3': 'Saab',
        'ZAR': 'Alfa Romeo', 'ZFA': 'Fiat', 'ZFF': 'Ferrari', 'ZHW': 'Lamborghini',
        # North America
        '1C4': 'Chrysler', '1C6': 'Ram', '1D7': 'Dodge', '1J4': 'Jeep',
        '1FA': 'Ford', '1FM': 'Ford', '1FT': 'Ford', '1LN': 'Lincoln',
        '1FU': 'Freightliner', '1FV': 'Freightliner',
        '1G1': 'Chevrolet', '1GC': 'Chevrolet', '1GT': 'GMC', '1G6': 'Cadillac',
        '1HG': 'Honda', '1N4': 'Nissan', '1VW': 'Volkswagen',
        '2G1': 'Chevrolet', '2HG': 'Honda', '2HM': 'Hyundai', '2T1': 'Toyota',
        '3FA': 'Ford', '3G1': 'Chevrolet', '3HG': 'Honda', '3VW': 'Volkswagen',
        '4T1': 'Toyota', '4T3': 'Toyota', '4US': 'BMW',
        '5FN': 'Honda', '5NP': 'Hyundai', '5TD': 'Toyota', '5UX': 'BMW',
        '5YJ': 'Tesla', '5YM': 'BMW M',
        # Asia
        'JHM': 'Honda', 'JHL': 'Honda', 'JN1': 'Nissan', 'JM1': 'Mazda',
        'JF1': 'Subaru', 'JS1': 'Suzuki',
        'JT2': 'Toyota', 'JTD': 'Toyota', 'JTE': 'Toyota', 'JTG': 'Toyota',
        'JTK': 'Toyota', 'JTL': 'Toyota', 'JTM': 'Toyota', 'JTN': 'Toyota',
        'JTH': 'Lexus', 'JTJ': 'Lexus',
        'KM8': 'Hyundai', 'KMH': 'Hyundai', 'KNA': 'Kia', 'KND': 'Kia',
    }

    # Two-character prefixes whose third WMI character only selects a division
    WMI_PREFIX_MANUFACTURERS: Dict[str, str] = {
        '1F': 'Ford',
        '1G': 'General Motors',
    }

    COMMON_WMIS: FrozenSet[str] = frozenset(WMI_MANUFACTURERS)


VIN_LENGTH = VINConstants.LENGTH
VIN_VALID_CHARS = VINConstants.VALID_CHARS
VIN_INVALID_CHARS = VINConstants.INVALID_CHARS

_MANUAL_ENTRY_STRIP = re.compile(r'[^A-HJ-NPR-Z0-9]')


# =============================================================================
# CHECK DIGIT
# =============================================================================

@dataclass(frozen=True)
class CheckDigitResult:
    """Outcome of comparing the computed check digit to position 9."""
    valid: bool
    expected: Optional[str]
    found: Optional[str]

    def to_dict(self) -> Dict[str, Any]:
        return {
            'valid': self.valid,
            'expected': self.expected,
            'found': self.found,
        }


def calculate_check_digit(vin: str) -> Optional[str]:
    """
    Calculate the expected check digit for a VIN.

    The check digit (position 9) is calculated by:
    1. Assigning numeric values to each character
    2. Multiplying by position weights
    3. Summing and taking mod 11
    4. Result 10 becomes 'X'

    Args:
        vin: 17-character VIN (check digit position will be ignored)

    Returns:
        Expected check digit ('0'-'9' or 'X'), or None if calculation fails
    """
    if not isinstance(vin, str) or len(vin) != VIN_LENGTH:
        return None

    vin = vin.upper()

    total = 0
    for i, char in enumerate(vin):
        if i == VINConstants.CHECK_DIGIT_INDEX:
            continue
        value = VINConstants.CHAR_VALUES.get(char)
        if value is None:
            return None
        total += value * VINConstants.CHECKSUM_WEIGHTS[i]

    remainder = total % 11
    return 'X' if remainder == 10 else str(remainder)


def validate_check_digit(vin: str) -> CheckDigitResult:
    """
    Compare the computed check digit with the one found at position 9.

    Pure function: never raises. Malformed input (wrong length, characters
    outside the transliteration table) yields ``valid=False`` with
    ``expected=None``.
    """
    if not isinstance(vin, str):
        return CheckDigitResult(valid=False, expected=None, found=None)

    vin = vin.upper()
    found = vin[VINConstants.CHECK_DIGIT_INDEX] if len(vin) == VIN_LENGTH else None
    expected = calculate_check_digit(vin)

    return CheckDigitResult(
        valid=expected is not None and found == expected,
        expected=expected,
        found=found,
    )


def validate_checksum(vin: str) -> bool:
    """
    Validate VIN checksum at position 9.

    All other modules should call this function (or validate_check_digit)
    rather than implementing their own checksum logic.
    """
    return validate_check_digit(vin).valid


# =============================================================================
# VIN VALIDATION
# =============================================================================

@dataclass
class VINValidationResult:
    """Result of VIN validation."""
    vin: str
    is_valid_length: bool
    has_valid_chars: bool
    invalid_chars: List[str]
    checksum_valid: bool
    expected_check_digit: Optional[str]
    is_fully_valid: bool
    error: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            'vin': self.vin,
            'is_valid_length': self.is_valid_length,
            'has_valid_chars': self.has_valid_chars,
            'invalid_chars': self.invalid_chars,
            'checksum_valid': self.checksum_valid,
            'expected_check_digit': self.expected_check_digit,
            'is_fully_valid': self.is_fully_valid,
            'error': self.error,
        }


def validate_vin(vin: str) -> VINValidationResult:
    """
    Comprehensive VIN validation.

    Checks:
    1. Length (must be 17)
    2. Character validity (no I, O, Q)
    3. Checksum at position 9

    Args:
        vin: VIN string to validate

    Returns:
        VINValidationResult with all validation details
    """
    if not isinstance(vin, str):
        return VINValidationResult(
            vin='',
            is_valid_length=False,
            has_valid_chars=False,
            invalid_chars=[],
            checksum_valid=False,
            expected_check_digit=None,
            is_fully_valid=False,
            error=f'Expected string, got {type(vin).__name__}',
        )

    vin = vin.upper().strip()

    is_valid_length = len(vin) == VIN_LENGTH

    invalid_chars = [c for c in vin if c not in VIN_VALID_CHARS]
    has_valid_chars = len(vin) > 0 and len(invalid_chars) == 0

    checksum_valid = False
    expected_check_digit = None

    if is_valid_length and has_valid_chars:
        check = validate_check_digit(vin)
        expected_check_digit = check.expected
        checksum_valid = check.valid

    return VINValidationResult(
        vin=vin,
        is_valid_length=is_valid_length,
        has_valid_chars=has_valid_chars,
        invalid_chars=invalid_chars,
        checksum_valid=checksum_valid,
        expected_check_digit=expected_check_digit,
        is_fully_valid=is_valid_length and has_valid_chars and checksum_valid,
    )


def validate_vin_format(vin: str) -> bool:
    """
    Quick check if VIN has valid format (length and characters).

    Does NOT check checksum. Use validate_vin() for full validation.
    """
    if not isinstance(vin, str):
        return False
    vin = vin.upper().strip()
    if len(vin) != VIN_LENGTH:
        return False
    return all(c in VIN_VALID_CHARS for c in vin)


def clean_manual_entry(text: str) -> str:
    """Uppercase typed input and drop everything outside the VIN alphabet."""
    if not isinstance(text, str):
        return ''
    return _MANUAL_ENTRY_STRIP.sub('', text.upper())


def validate_manual_entry(text: str) -> VINValidationResult:
    """Validate a VIN typed by the user after cleaning it."""
    return validate_vin(clean_manual_entry(text))


# =============================================================================
# VIN DECODING
# =============================================================================

# Letter codes cycle every 30 years; digits cover 2001-2009.
# The modern interpretation (2010+) is reported for letters.
MODEL_YEAR_CODES_MODERN: Dict[str, int] = {
    '1': 2001, '2': 2002, '3': 2003, '4': 2004,
    '5': 2005, '6': 2006, '7': 2007, '8': 2008, '9': 2009,
    'A': 2010, 'B': 2011, 'C': 2012, 'D': 2013, 'E': 2014,
    'F': 2015, 'G': 2016, 'H': 2017, 'J': 2018, 'K': 2019,
    'L': 2020, 'M': 2021, 'N': 2022, 'P': 2023, 'R': 2024,
    'S': 2025, 'T': 2026, 'V': 2027, 'W': 2028, 'X': 2029,
    'Y': 2030,
}

MODEL_YEAR_CODES_LEGACY: Dict[str, int] = {
    code: year - 30 for code, year in MODEL_YEAR_CODES_MODERN.items() if code.isalpha()
}


def get_region(wmi_char: str) -> Optional[str]:
    """Return the manufacturing region for the first WMI character."""
    for chars, region in VINConstants.REGIONS:
        if wmi_char in chars:
            return region
    return None


def get_manufacturer(wmi: str) -> Optional[str]:
    """
    Look up the manufacturer for a WMI (or a full VIN).

    Exact three-character matches win over the two-character prefix table.
    """
    if not isinstance(wmi, str) or len(wmi) < 3:
        return None
    wmi = wmi[:3].upper()
    manufacturer = VINConstants.WMI_MANUFACTURERS.get(wmi)
    if manufacturer is None:
        manufacturer = VINConstants.WMI_PREFIX_MANUFACTURERS.get(wmi[:2])
    return manufacturer


def plausibility_score(vin: str) -> int:
    """
    Score how much a 17-character string looks like a real VIN.

    Used to choose between correction variants that all pass the checksum.

    Scoring:
    - +2 for each valid VIN character
    - +3 for each digit in sequential positions (12-17)
    - +10 for known WMI prefix
    - +3 for a usable model year code at position 10
    - -5 for each invalid character (I, O, Q)

    Args:
        vin: 17-character candidate

    Returns:
        Integer score (higher = more plausible)
    """
    score = 0
    score += sum(2 for c in vin if c in VIN_VALID_CHARS)

    if len(vin) >= VIN_LENGTH:
        score += sum(3 for c in vin[11:17] if c.isdigit())
        if vin[9] in MODEL_YEAR_CODES_MODERN:
            score += 3

    if get_manufacturer(vin) is not None:
        score += 10

    score -= sum(5 for c in vin if c in VIN_INVALID_CHARS)
    return score


def decode_vin(vin: str) -> Dict[str, Any]:
    """
    Decode VIN structure into its component parts.

    VIN Structure (ISO 3779):
    - Position 1-3: WMI (World Manufacturer Identifier)
    - Position 4-8: VDS (Vehicle Descriptor Section)
    - Position 9: Check digit
    - Position 10: Model year
    - Position 11: Plant code
    - Position 12-17: VIS Sequential number

    Note: Model year codes repeat every 30 years (A=1980/2010, B=1981/2011, etc.)
    This function returns the more recent interpretation (2010+) for letter codes.

    Args:
        vin: VIN string to decode

    Returns:
        Dict with decoded VIN components, or a dict with an 'error' key
    """
    if not isinstance(vin, str):
        return {'error': f'Expected string, got {type(vin).__name__}'}

    vin = vin.upper().strip()

    if len(vin) != VIN_LENGTH:
        return {'error': f'Invalid VIN length: {len(vin)} (expected {VIN_LENGTH})'}

    year_code = vin[9]
    model_year_modern = MODEL_YEAR_CODES_MODERN.get(year_code)
    model_year_legacy = MODEL_YEAR_CODES_LEGACY.get(year_code)

    if model_year_modern is not None:
        model_year: Any = model_year_modern
        if model_year_legacy:
            model_year_note = f"{model_year_modern} (or {model_year_legacy})"
        else:
            model_year_note = str(model_year_modern)
    else:
        model_year = f'Unknown ({year_code})'
        model_year_note = model_year

    return {
        'vin': vin,
        'wmi': vin[0:3],           # World Manufacturer Identifier
        'manufacturer': get_manufacturer(vin),
        'region': get_region(vin[0]),
        'vds': vin[3:9],           # Vehicle Descriptor Section
        'check_digit': vin[8],
        'checksum_valid': validate_checksum(vin),
        'model_year_code': year_code,
        'model_year': model_year,
        'model_year_display': model_year_note,
        'plant_code': vin[10],     # Assembly plant
        'sequential': vin[11:17],
        'vis': vin[9:17],          # Vehicle Identifier Section
    }


# =============================================================================
# STRING METRICS (Edit Distance)
# =============================================================================

def levenshtein_distance(s1: str, s2: str) -> int:
    """
    Calculate Levenshtein (edit) distance between two strings.

    Examples:
        >>> levenshtein_distance("kitten", "sitting")
        3
        >>> levenshtein_distance("ABC", "ABC")
        0
    """
    if len(s1) < len(s2):
        return levenshtein_distance(s2, s1)

    if len(s2) == 0:
        return len(s1)

    # Only keep two rows (current and previous)
    previous_row = list(range(len(s2) + 1))
    for i, c1 in enumerate(s1):
        current_row = [i + 1]
        for j, c2 in enumerate(s2):
            insertions = previous_row[j + 1] + 1
            deletions = current_row[j] + 1
            substitutions = previous_row[j] + (c1 != c2)
            current_row.append(min(insertions, deletions, substitutions))
        previous_row = current_row

    return previous_row[-1]
