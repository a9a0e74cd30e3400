"""
Scan session state.

One ScanSession lives for one scanning interaction. It holds the attempt
counter and the token of the run currently in flight. Starting a run
cancels the previous token, so at most one run per session can publish a
result (last-started-wins).
"""

import logging
import threading
import time
from typing import Optional

from ..exceptions import ScanCancelled
from .results import CANCELLED, Rejected, RejectionReason, ScanOutcome

logger = logging.getLogger(__name__)


class CancellationToken:
    """Cooperative cancellation flag for one pipeline run."""

    def __init__(self, run_id: int):
        self.run_id = run_id
        self._event = threading.Event()

    def cancel(self):
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def checkpoint(self, name: str = 'checkpoint'):
        """Raise ScanCancelled if this run has been superseded."""
        if self._event.is_set():
            raise ScanCancelled(self.run_id, name)


class ScanSession:
    """
    Attempt counter and cancellation state for one scanning interaction.

    Only the pipeline orchestrator mutates a session, and only through
    begin_run() and publish().

    Thread Safety: all mutations happen under an internal lock.
    """

    def __init__(self, max_attempts: int = 3, auto_scan_interval_ms: int = 2000):
        self.max_attempts = max_attempts
        self.auto_scan_interval_ms = auto_scan_interval_ms

        self._lock = threading.Lock()
        self._attempts = 0
        self._run_counter = 0
        self._active: Optional[CancellationToken] = None
        self._last_outcome: Optional[ScanOutcome] = None
        self._last_scan_started: Optional[float] = None

    @classmethod
    def from_config(cls, config) -> 'ScanSession':
        return cls(
            max_attempts=config.max_attempts_per_session,
            auto_scan_interval_ms=config.auto_scan_interval_ms,
        )

    @property
    def attempts(self) -> int:
        with self._lock:
            return self._attempts

    @property
    def exhausted(self) -> bool:
        with self._lock:
            return self._attempts >= self.max_attempts

    @property
    def last_outcome(self) -> Optional[ScanOutcome]:
        """Outcome of the most recent run that was allowed to publish."""
        with self._lock:
            return self._last_outcome

    def ready_for_scan(self, now: Optional[float] = None) -> bool:
        """
        Advisory throttle for callers driving an auto-scan loop.

        True when at least auto_scan_interval_ms has passed since the last
        run started.
        """
        now = time.monotonic() if now is None else now
        with self._lock:
            if self._last_scan_started is None:
                return True
            return (now - self._last_scan_started) * 1000 >= self.auto_scan_interval_ms

    def begin_run(self) -> CancellationToken:
        """Cancel the in-flight run (if any) and hand out a new token."""
        with self._lock:
            if self._active is not None and not self._active.cancelled:
                logger.debug(f"Run {self._active.run_id} superseded")
                self._active.cancel()
            self._run_counter += 1
            token = CancellationToken(self._run_counter)
            self._active = token
            self._last_scan_started = time.monotonic()
            return token

    def is_active(self, token: CancellationToken) -> bool:
        with self._lock:
            return token is self._active and not token.cancelled

    def publish(self, token: CancellationToken, outcome: ScanOutcome) -> ScanOutcome:
        """
        Commit a run's outcome if the run is still the active one.

        Rejections count against the attempt budget; the rejection that
        uses up the budget is returned flagged ``session_exhausted``.
        Superseded runs get the Cancelled sentinel and change nothing.
        """
        with self._lock:
            if token is not self._active or token.cancelled:
                return CANCELLED

            if isinstance(outcome, Rejected) and outcome.reason not in (
                RejectionReason.CANCELLED,
                RejectionReason.SESSION_EXHAUSTED,
            ):
                self._attempts += 1
                logger.info(f"Scan attempt {self._attempts}/{self.max_attempts} rejected: "
                            f"{outcome.reason.value}")
                if self._attempts >= self.max_attempts:
                    outcome = Rejected(
                        reason=outcome.reason,
                        best_invalid=outcome.best_invalid,
                        session_exhausted=True,
                        detail=outcome.detail,
                    )

            self._last_outcome = outcome
            self._active = None
            return outcome

    def cancel(self):
        """Cancel the in-flight run, e.g. when scanning stops."""
        with self._lock:
            if self._active is not None:
                self._active.cancel()
                self._active = None

    def reset(self):
        """Start over with a fresh attempt budget."""
        with self._lock:
            if self._active is not None:
                self._active.cancel()
            self._active = None
            self._attempts = 0
            self._last_outcome = None
            self._last_scan_started = None
