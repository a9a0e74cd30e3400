"""
Test Suite for Confusable Correction and Scoring
================================================

Run with: pytest tests/test_correction.py -v
"""

import numpy as np
import pytest

from vin_scan.config import ScoringConfig
from vin_scan.core import VIN_VALID_CHARS, DEFAULT_CONFUSABLES, calculate_check_digit
from vin_scan.pipeline import (
    CandidateSpan,
    ConfidenceScorer,
    CorrectionVariant,
    NormalizedCandidate,
    ScanSource,
    VINCorrector,
    validate_variant,
)
from vin_scan.pipeline.corrector import CorrectionSearch


HONDA_VIN = "1HGBH41JXMN109186"


def _candidate(text):
    span = CandidateSpan(text=text, start=0, end=len(text), source=ScanSource.OCR)
    return NormalizedCandidate(text=text, span=span)


@pytest.fixture
def corrector():
    return VINCorrector(max_edits=2)


@pytest.fixture
def scorer():
    return ConfidenceScorer(ScoringConfig(), min_confidence=0.7)


# =============================================================================
# VARIANT GENERATION TESTS
# =============================================================================

class TestVariants:
    """Tests for VINCorrector.variants."""

    def test_first_variant_is_unchanged_valid_text(self, corrector):
        variants = corrector.variants(_candidate(HONDA_VIN))
        first = next(variants)
        assert first.text == HONDA_VIN
        assert first.edit_count == 0

    def test_breadth_first_order(self, corrector):
        """Edit counts never decrease along the variant sequence."""
        counts = [v.edit_count for v in corrector.variants(_candidate("5SB8Z2G65SB8Z2G65"))]
        assert counts == sorted(counts)
        assert max(counts) == 2

    def test_check_digit_never_substituted(self, corrector):
        """Position 9 is left as read in every variant."""
        candidate = _candidate("5SB8Z2G65SB8Z2G65")
        for variant in corrector.variants(candidate):
            assert variant.text[8] == '5'
            assert all(edit.position != 8 for edit in variant.edits)

    def test_mandatory_fixes_in_every_variant(self, corrector):
        """Out-of-alphabet letters are replaced in every variant and count as edits."""
        variants = list(corrector.variants(_candidate("1HGBH41JXMN1O9186")))
        assert all(v.text[12] == '0' for v in variants)
        assert variants[0].edit_count == 1
        assert variants[0].edits[0].original == 'O'

    def test_out_of_alphabet_check_digit_left_alone(self, corrector):
        variants = list(corrector.variants(_candidate("1HGBH41JOMN109186")))
        assert all(v.text[8] == 'O' for v in variants)

    def test_forced_edits_over_budget_yield_nothing(self):
        corrector = VINCorrector(max_edits=1)
        assert list(corrector.variants(_candidate("1HGBHO1JXMNO09186"))) == []

    def test_edit_budget_bound(self):
        for budget in range(4):
            corrector = VINCorrector(max_edits=budget)
            for variant in corrector.variants(_candidate("5SB8Z2G65SB8Z2G65")):
                assert variant.edit_count <= budget

    def test_all_substitutions_stay_in_alphabet(self, corrector):
        for variant in corrector.variants(_candidate("1HGBQ41JXMNI09186")):
            assert all(c in VIN_VALID_CHARS for c in variant.text[:8] + variant.text[9:])

    def test_ambiguity_ordering(self):
        """Positions with fewer alternatives are substituted first."""
        from vin_scan.core import ConfusableMap
        confusables = ConfusableMap(confusion_pairs={'S': ('5',), 'B': ('8', '3')})
        corrector = VINCorrector(max_edits=1, confusables=confusables)
        single = [v for v in corrector.variants(_candidate("B111S111411111111")) if v.edits]
        assert single[0].edits[0].position == 4


# =============================================================================
# SEARCH TESTS
# =============================================================================

class TestSearch:
    """Tests for VINCorrector.search."""

    def test_valid_vin_needs_no_edits(self, corrector):
        search = corrector.search(_candidate(HONDA_VIN))
        assert search.found
        assert [r.variant.text for r in search.valid] == [HONDA_VIN]
        assert search.valid[0].variant.edit_count == 0
        assert search.evaluated == 1

    def test_single_confusable_recovered(self, corrector):
        """B read as 8 is recovered with exactly one edit."""
        search = corrector.search(_candidate("1HG8H41JXMN109186"))
        assert search.found
        assert not search.ambiguous
        result = search.valid[0]
        assert result.variant.text == HONDA_VIN
        assert result.variant.edit_count == 1
        assert result.variant.edits[0].position == 3

    def test_out_of_alphabet_recovered(self, corrector):
        search = corrector.search(_candidate("1HGBH41JXMN1O9186"))
        assert search.valid[0].variant.text == HONDA_VIN
        assert search.valid[0].variant.edit_count == 1

    def test_ambiguous_tie_detected(self, corrector):
        """Two different single edits both satisfy the checksum."""
        search = corrector.search(_candidate("S111B111411111111"))
        assert search.ambiguous
        assert {r.variant.text for r in search.valid} == {
            "5111B111411111111",
            "S1118111411111111",
        }

    def test_unrecoverable_reports_best_invalid(self, corrector):
        """No variant within budget validates; the unedited reading is kept."""
        search = corrector.search(_candidate("1HGBH41J2MN109186"))
        assert not search.found
        assert search.best_invalid.variant.text == "1HGBH41J2MN109186"
        assert search.best_invalid.expected == 'X'
        assert search.best_invalid.found == '2'

    def test_checkpoint_called_per_variant(self, corrector):
        calls = []
        corrector.search(_candidate("1HGBH41J2MN109186"), checkpoint=lambda: calls.append(1))
        assert len(calls) == len(list(corrector.variants(_candidate("1HGBH41J2MN109186"))))

    def test_checkpoint_can_abort(self, corrector):
        class Stop(Exception):
            pass

        def stop():
            raise Stop()

        with pytest.raises(Stop):
            corrector.search(_candidate(HONDA_VIN), checkpoint=stop)

    def test_random_single_confusions_recovered(self, corrector):
        """Any single optional confusion in a random valid VIN is recovered within budget."""
        rng = np.random.default_rng(3)
        alphabet = sorted(VIN_VALID_CHARS)
        checked = 0
        while checked < 50:
            body = list(rng.choice(alphabet, size=17))
            body[8] = calculate_check_digit(''.join(body))
            vin = ''.join(body)
            positions = [i for i, c in enumerate(vin) if i != 8 and DEFAULT_CONFUSABLES.alternatives(c)]
            if not positions:
                continue
            position = int(rng.choice(positions))
            misread = list(vin)
            misread[position] = DEFAULT_CONFUSABLES.alternatives(vin[position])[0]
            search = corrector.search(_candidate(''.join(misread)))
            assert vin in {r.variant.text for r in search.valid}
            checked += 1


class TestValidateVariant:
    """Tests for validate_variant."""

    def test_reports_expected_and_found(self):
        candidate = _candidate("1HGBH41J2MN109186")
        result = validate_variant(CorrectionVariant(text=candidate.text, edits=(), candidate=candidate))
        assert result.valid is False
        assert result.expected == 'X'
        assert result.found == '2'
        assert result.is_charset_valid is True


# =============================================================================
# SCORING TESTS
# =============================================================================

def _validation(text, valid=True, edits=0):
    from vin_scan.pipeline import Edit, ValidationResult
    candidate = _candidate(text)
    variant = CorrectionVariant(
        text=text,
        edits=tuple(Edit(i, text[i], text[i]) for i in range(edits)),
        candidate=candidate,
    )
    return ValidationResult(variant=variant, valid=valid, expected=None, found=text[8])


class TestConfidenceScorer:
    """Tests for ConfidenceScorer."""

    def test_exact_ocr_match(self, scorer):
        assert scorer.score(_validation(HONDA_VIN), ScanSource.OCR) == pytest.approx(1.0)

    def test_barcode_bonus_clamped(self, scorer):
        assert scorer.score(_validation(HONDA_VIN), ScanSource.BARCODE) == pytest.approx(1.0)

    def test_single_edit(self, scorer):
        assert scorer.score(_validation(HONDA_VIN, edits=1), ScanSource.OCR) == pytest.approx(0.88)
        assert scorer.score(_validation(HONDA_VIN, edits=1), ScanSource.BARCODE) == pytest.approx(0.93)

    def test_diminishing_edit_penalty(self, scorer):
        """The second edit costs half as much as the first."""
        assert scorer.edit_penalty(0) == 0.0
        assert scorer.edit_penalty(1) == pytest.approx(0.12)
        assert scorer.edit_penalty(2) == pytest.approx(0.18)
        assert scorer.edit_penalty(3) == pytest.approx(0.21)

    def test_score_monotonic_in_edits(self, scorer):
        scores = [scorer.score(_validation(HONDA_VIN, edits=n), ScanSource.OCR) for n in range(5)]
        assert scores == sorted(scores, reverse=True)

    def test_ambiguity_penalty(self, scorer):
        score = scorer.score(_validation(HONDA_VIN, edits=1), ScanSource.OCR, ambiguous=True)
        assert score == pytest.approx(0.63)
        assert not scorer.meets_threshold(score)

    def test_unverified_base(self, scorer):
        score = scorer.score(_validation("1HGBH41J2MN109186", valid=False), ScanSource.OCR)
        assert score == pytest.approx(0.4)

    def test_invalid_charset_scores_zero(self, scorer):
        assert scorer.score(_validation("1HGBH41JOMN109186", valid=False), ScanSource.OCR) == 0.0

    def test_clamped_to_unit_interval(self):
        scorer = ConfidenceScorer(ScoringConfig(edit_penalty=2.0))
        assert scorer.score(_validation(HONDA_VIN, edits=1), ScanSource.OCR) == 0.0

    def test_threshold(self, scorer):
        assert scorer.meets_threshold(0.7)
        assert not scorer.meets_threshold(0.69)


class TestCorrectionSearch:
    """Tests for CorrectionSearch tie detection."""

    def test_same_text_twice_is_not_ambiguous(self):
        validation = _validation(HONDA_VIN)
        search = CorrectionSearch(candidate=validation.variant.candidate, valid=[validation, validation])
        assert not search.ambiguous

    def test_known_manufacturer_breaks_tie(self):
        """A known WMI outranks a reading whose prefix matches no manufacturer."""
        honda = _validation(HONDA_VIN)
        other = _validation("5HGBH41JXMN109186")
        search = CorrectionSearch(candidate=other.variant.candidate, valid=[other, honda])
        assert search.contested
        assert not search.ambiguous
        assert search.preferred is honda
        assert [r.variant.text for r in search.ranked()] == [HONDA_VIN, "5HGBH41JXMN109186"]

    def test_equal_plausibility_stays_ambiguous(self):
        first = _validation("5111B111411111111")
        second = _validation("S1118111411111111")
        search = CorrectionSearch(candidate=first.variant.candidate, valid=[first, second])
        assert search.preferred is None
        assert search.ambiguous

    def test_empty_search(self):
        search = CorrectionSearch(candidate=_candidate(HONDA_VIN))
        assert search.preferred is None
        assert not search.ambiguous
        assert not search.contested
