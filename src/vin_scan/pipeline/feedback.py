"""Caller-facing feedback for scan outcomes."""

from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Tuple

from ..core.vin_utils import VINConstants
from .results import Accepted, LowConfidence, RejectionReason, ScanOutcome


@dataclass(frozen=True)
class FeedbackAction:
    type: str  # 'accept' | 'retry' | 'manual'
    label: str


ACCEPT = FeedbackAction('accept', 'Accept')
ACCEPT_ANYWAY = FeedbackAction('accept', 'Accept Anyway')
RETRY = FeedbackAction('retry', 'Retry Scan')
MANUAL = FeedbackAction('manual', 'Manual Entry')

_REJECTION_MESSAGES = {
    RejectionReason.NO_CANDIDATE_FOUND: 'No VIN found in scan.',
    RejectionReason.ALL_CANDIDATES_INVALID_CHARSET: 'Scanned text is not a readable VIN.',
    RejectionReason.CHECKSUM_MISMATCH_EXHAUSTED: 'VIN check digit does not match.',
}

_SCAN_TIP = 'Try better lighting or closer distance.'


@dataclass(frozen=True)
class ScanFeedback:
    """Message, severity and suggested actions for one outcome."""
    message: str
    severity: str  # 'success' | 'warning' | 'error'
    actions: Tuple[FeedbackAction, ...]
    highlight_positions: Tuple[int, ...] = ()

    @property
    def action_types(self) -> List[str]:
        return [action.type for action in self.actions]

    def to_dict(self) -> Dict[str, Any]:
        return {
            'message': self.message,
            'severity': self.severity,
            'actions': [{'type': a.type, 'label': a.label} for a in self.actions],
            'highlight_positions': list(self.highlight_positions),
        }


def build_feedback(outcome: ScanOutcome) -> Optional[ScanFeedback]:
    """
    Map a pipeline outcome to user feedback.

    Corrected positions (1-based) are highlighted so the user can confirm
    them. Cancelled runs produce no feedback.

    Args:
        outcome: Result of VINScanPipeline.process()

    Returns:
        ScanFeedback, or None for a cancelled run
    """
    if isinstance(outcome, Accepted):
        result = outcome.result
        percent = round(result.confidence * 100)
        if not result.edits:
            return ScanFeedback(
                message=f"VIN scanned successfully ({percent}% confidence)",
                severity='success',
                actions=(ACCEPT,),
            )
        return ScanFeedback(
            message=f"VIN detected with good confidence ({percent}%); "
                    f"corrected {_describe_edits(result)}",
            severity='success',
            actions=(ACCEPT,),
            highlight_positions=tuple(result.edited_positions),
        )

    if isinstance(outcome, LowConfidence):
        result = outcome.result
        percent = round(result.confidence * 100)
        if result.ambiguous:
            hint = 'Several readings are possible.'
        elif not result.checksum_valid:
            hint = 'Check digit could not be verified.'
        else:
            hint = f"Suggestions: {_describe_edits(result)}" if result.edits else _SCAN_TIP
        return ScanFeedback(
            message=f"Low confidence scan ({percent}%). {hint}",
            severity='warning',
            actions=(RETRY, MANUAL, ACCEPT_ANYWAY),
            highlight_positions=tuple(result.edited_positions),
        )

    if outcome.is_cancelled:
        return None

    if outcome.session_exhausted or outcome.reason is RejectionReason.SESSION_EXHAUSTED:
        return ScanFeedback(
            message='Unable to read the VIN. Please enter it manually.',
            severity='error',
            actions=(MANUAL,),
        )

    highlight: Tuple[int, ...] = ()
    if outcome.reason is RejectionReason.CHECKSUM_MISMATCH_EXHAUSTED and outcome.best_invalid:
        highlight = (VINConstants.CHECK_DIGIT_POSITION,)

    return ScanFeedback(
        message=f"{_REJECTION_MESSAGES.get(outcome.reason, 'Scan failed.')} {_SCAN_TIP}",
        severity='error',
        actions=(RETRY, MANUAL),
        highlight_positions=highlight,
    )


def _describe_edits(result) -> str:
    return ', '.join(
        f"position {edit.position + 1}: {edit.original} -> {edit.substituted}"
        for edit in result.edits
    )
