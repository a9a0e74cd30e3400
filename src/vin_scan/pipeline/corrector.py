"""
Confusable-character correction search.

Out-of-alphabet letters (I, O, Q) have exactly one valid reading and are
fixed in every variant. Valid characters with a known OCR confusion (S/5,
B/8, Z/2, G/6) are substituted combinatorially, breadth-first by edit count,
so variants with fewer edits are always evaluated first. The check digit
(position 9) is never substituted; it is only recomputed by the validator.
When one edit level yields several valid strings, the plausibility prior
from vin_utils picks between them.
"""

import logging
from dataclasses import dataclass, field
from itertools import combinations, product
from typing import Callable, Iterator, List, Optional

from ..core.confusables import ConfusableMap, DEFAULT_CONFUSABLES
from ..core.vin_utils import (
    VINConstants,
    VIN_VALID_CHARS,
    plausibility_score,
    validate_check_digit,
)
from .results import CorrectionVariant, Edit, NormalizedCandidate, ValidationResult

logger = logging.getLogger(__name__)

CHECK_DIGIT_INDEX = VINConstants.CHECK_DIGIT_INDEX


def validate_variant(variant: CorrectionVariant) -> ValidationResult:
    """Run the check-digit validator over a variant."""
    check = validate_check_digit(variant.text)
    return ValidationResult(
        variant=variant,
        valid=check.valid,
        expected=check.expected,
        found=check.found,
    )


@dataclass
class CorrectionSearch:
    """
    Outcome of searching one candidate.

    When several variants pass the checksum, the one that looks most like a
    real VIN (known WMI, numeric serial, usable model year) is preferred.
    The search is ambiguous only when that preference still ties.
    """
    candidate: NormalizedCandidate
    valid: List[ValidationResult] = field(default_factory=list)
    best_invalid: Optional[ValidationResult] = None
    evaluated: int = 0

    @property
    def found(self) -> bool:
        return bool(self.valid)

    @property
    def contested(self) -> bool:
        """More than one distinct valid string at the winning edit count."""
        return len({result.variant.text for result in self.valid}) > 1

    def ranked(self) -> List[ValidationResult]:
        """Valid variants, most plausible first; search order breaks ties."""
        return sorted(self.valid, key=lambda r: -plausibility_score(r.variant.text))

    @property
    def preferred(self) -> Optional[ValidationResult]:
        """The single most plausible valid variant, or None while the top ties."""
        ranked = self.ranked()
        if not ranked:
            return None
        top = plausibility_score(ranked[0].variant.text)
        leaders = {r.variant.text for r in ranked if plausibility_score(r.variant.text) == top}
        return ranked[0] if len(leaders) == 1 else None

    @property
    def ambiguous(self) -> bool:
        """Distinct valid strings remain that plausibility cannot separate."""
        return self.found and self.preferred is None


class VINCorrector:
    """
    Generates and evaluates correction variants within an edit budget.

    Thread Safety: This class holds no per-call state and is safe for
    concurrent use.
    """

    def __init__(self, max_edits: int = 2, confusables: Optional[ConfusableMap] = None):
        self.max_edits = max_edits
        self.confusables = confusables or DEFAULT_CONFUSABLES

    def forced_edits(self, candidate: NormalizedCandidate) -> List[Edit]:
        """Mandatory I/O/Q fixes outside the check digit position."""
        edits = []
        for position, char in enumerate(candidate.text):
            if position == CHECK_DIGIT_INDEX or char in VIN_VALID_CHARS:
                continue
            if self.confusables.is_correctable(char):
                edits.append(Edit(position, char, self.confusables.forced_substitution(char)))
        return edits

    def variants(self, candidate: NormalizedCandidate) -> Iterator[CorrectionVariant]:
        """
        Lazily yield variants in breadth-first order of edit count.

        The first variant yielded carries only the mandatory fixes. Positions
        with fewer alternatives are combined first.
        """
        forced = self.forced_edits(candidate)
        budget = self.max_edits - len(forced)
        if budget < 0:
            logger.debug(
                f"'{candidate.text}' needs {len(forced)} fixes, budget is {self.max_edits}"
            )
            return

        base = list(candidate.text)
        for edit in forced:
            base[edit.position] = edit.substituted
        forced_positions = {edit.position for edit in forced}

        optional_positions = sorted(
            (
                position for position, char in enumerate(base)
                if position != CHECK_DIGIT_INDEX
                and position not in forced_positions
                and self.confusables.alternatives(char)
            ),
            key=lambda position: (self.confusables.ambiguity(base[position]), position),
        )

        for level in range(budget + 1):
            for positions in combinations(optional_positions, level):
                choices = [self.confusables.alternatives(base[p]) for p in positions]
                for substitutes in product(*choices):
                    text = list(base)
                    edits = list(forced)
                    for position, substitute in zip(positions, substitutes):
                        edits.append(Edit(position, base[position], substitute))
                        text[position] = substitute
                    yield CorrectionVariant(
                        text=''.join(text),
                        edits=tuple(sorted(edits, key=lambda e: e.position)),
                        candidate=candidate,
                    )

    def search(
        self,
        candidate: NormalizedCandidate,
        checkpoint: Optional[Callable[[], None]] = None,
    ) -> CorrectionSearch:
        """
        Evaluate variants until the first edit level with a valid checksum
        has been fully explored.

        Args:
            candidate: Normalized candidate to correct
            checkpoint: Called before each variant; may raise to abort

        Returns:
            CorrectionSearch with every valid variant of the winning level,
            or the lowest-edit invalid variant when none validates
        """
        search = CorrectionSearch(candidate=candidate)
        winning_level: Optional[int] = None

        for variant in self.variants(candidate):
            if checkpoint is not None:
                checkpoint()
            if winning_level is not None and variant.edit_count > winning_level:
                break

            result = validate_variant(variant)
            search.evaluated += 1

            if result.valid:
                search.valid.append(result)
                winning_level = variant.edit_count
            elif search.best_invalid is None:
                search.best_invalid = result

        logger.debug(
            f"Searched '{candidate.text}': {search.evaluated} variants, "
            f"{len(search.valid)} valid"
        )
        return search
