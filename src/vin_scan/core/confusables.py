"""
OCR confusable characters for VIN correction.

Two tables drive correction:

- ``INVALID_CHAR_RULES``: letters that can never appear in a VIN (I, O, Q)
  and the single valid character each must have been. These substitutions
  are mandatory.
- ``CONFUSION_PAIRS``: valid characters that optical recognition commonly
  swaps with another valid character. These substitutions are optional and
  only tried when the checksum fails.

Every substitution target is a member of the VIN alphabet.
"""

from typing import Dict, Optional, Tuple

from .vin_utils import VIN_VALID_CHARS

# Invalid VIN characters -> only plausible valid reading
INVALID_CHAR_RULES: Dict[str, str] = {
    'I': '1',  # I looks like 1
    'O': '0',  # O looks like 0
    'Q': '0',  # Q looks like 0 (round shape)
}

# Valid characters commonly misread as one another on plates and labels
CONFUSION_PAIRS: Dict[str, Tuple[str, ...]] = {
    'S': ('5',), '5': ('S',),
    'B': ('8',), '8': ('B',),
    'Z': ('2',), '2': ('Z',),
    'G': ('6',), '6': ('G',),
}


class ConfusableMap:
    """
    Lookup over the confusable tables.

    A custom map may be supplied for plates with a known confusion profile;
    alternatives outside the VIN alphabet are dropped.
    """

    def __init__(
        self,
        confusion_pairs: Optional[Dict[str, Tuple[str, ...]]] = None,
        invalid_char_rules: Optional[Dict[str, str]] = None,
    ):
        pairs = CONFUSION_PAIRS if confusion_pairs is None else confusion_pairs
        rules = INVALID_CHAR_RULES if invalid_char_rules is None else invalid_char_rules

        self._pairs = {
            char.upper(): tuple(
                alt.upper() for alt in alts
                if alt.upper() in VIN_VALID_CHARS and alt.upper() != char.upper()
            )
            for char, alts in pairs.items()
        }
        self._rules = {
            char.upper(): target.upper()
            for char, target in rules.items()
            if target.upper() in VIN_VALID_CHARS
        }

    def is_correctable(self, char: str) -> bool:
        """True for out-of-alphabet characters with a mandatory fix."""
        return char in self._rules

    def forced_substitution(self, char: str) -> str:
        """Return the mandatory replacement for an out-of-alphabet character."""
        return self._rules[char]

    def alternatives(self, char: str) -> Tuple[str, ...]:
        """Optional valid alternatives for a valid character."""
        return self._pairs.get(char, ())

    def ambiguity(self, char: str) -> int:
        """Number of alternatives; lower means a more confident substitution."""
        return len(self.alternatives(char))


DEFAULT_CONFUSABLES = ConfusableMap()
