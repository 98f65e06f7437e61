"""
Session progress tracking for studycore.

The SessionProgress class is the single owner of one StudySession and the
only component that changes its counters. It provides:
- Session lifecycle (not-started -> in-progress -> completed, plus reset)
- Answer and timing tallies fed by rating events
- Viewed-segment tracking for progress bars
- Read-only snapshots for display
"""

import logging
import math
from datetime import datetime, timezone
from typing import Dict, Optional, Any
from uuid import UUID

from .config import get_settings
from .exceptions import InvariantViolationError, SessionStateError
from .models import SessionStatus, StudySession

logger = logging.getLogger(__name__)


class SessionProgress:
    """
    Accumulates statistics for a single study run.

    Invariant violations (more correct answers than cards studied, negative
    time) raise InvariantViolationError when ``strict`` is set and are
    clamped with a warning otherwise.
    """

    def __init__(
        self,
        session: Optional[StudySession] = None,
        strict: Optional[bool] = None,
    ):
        """
        Parameters:
            session (Optional[StudySession]): Existing session to continue; a fresh one is created when omitted.
            strict (Optional[bool]): Raise on invariant violations instead of clamping. Defaults to the
                ``strict_invariants`` setting.
        """
        self.strict = get_settings().strict_invariants if strict is None else strict
        self._session = session if session is not None else StudySession()
        self._check_counters()

    def _check_counters(self) -> None:
        """Clamp counters of a session restored without validation."""
        session = self._session
        if session.correct_answers > session.total_studied:
            self._violation(
                f"Session {session.session_id} has {session.correct_answers} "
                f"correct answers but only {session.total_studied} studied."
            )
            session.correct_answers = session.total_studied

    @property
    def session(self) -> StudySession:
        return self._session

    @property
    def session_id(self) -> UUID:
        return self._session.session_id

    @property
    def status(self) -> SessionStatus:
        return self._session.status

    def _ensure_mutable(self, operation: str) -> None:
        if self._session.is_completed:
            raise SessionStateError(
                f"Cannot {operation}: session {self.session_id} is completed. "
                "Reset it first."
            )

    def _violation(self, message: str) -> None:
        if self.strict:
            raise InvariantViolationError(message)
        logger.warning(f"{message} Clamping.")

    def checked_time(self, time_spent_seconds: float) -> float:
        """Validate a per-card time; negative or non-finite values are a violation and become 0.0."""
        if not math.isfinite(time_spent_seconds) or time_spent_seconds < 0:
            self._violation(
                f"Invalid time_spent_seconds {time_spent_seconds} in session "
                f"{self.session_id}."
            )
            return 0.0
        return float(time_spent_seconds)

    def record_answer(
        self,
        correct: bool,
        time_spent_seconds: float = 0.0,
        now: Optional[datetime] = None,
    ) -> StudySession:
        """
        Tally one answered card.

        Parameters:
            correct (bool): Whether the learner recalled the card.
            time_spent_seconds (float): Seconds spent on the card; added to the running total.
            now (Optional[datetime]): Timestamp of the answer; defaults to now (UTC).

        Returns:
            StudySession: A snapshot of the updated session.

        Raises:
            SessionStateError: If the session is already completed.
            InvariantViolationError: In strict mode, if the answer would break an invariant.
        """
        self._ensure_mutable("record an answer")
        elapsed = self.checked_time(time_spent_seconds)

        session = self._session
        if session.status == SessionStatus.NotStarted:
            session.status = SessionStatus.InProgress
            session.started_at = now or datetime.now(timezone.utc)
            logger.info(f"Study session {session.session_id} started.")

        session.total_studied += 1
        if correct:
            session.correct_answers += 1
        session.time_spent_seconds += elapsed

        logger.debug(
            f"Session {session.session_id}: {session.correct_answers}/"
            f"{session.total_studied} correct, {session.time_spent_seconds:.1f}s."
        )
        return self.snapshot()

    def mark_segment_viewed(self, segment_id: str) -> bool:
        """
        Record that a content segment was shown.

        Returns:
            bool: True if the segment was new, False if it had already been viewed.
        """
        self._ensure_mutable("mark a segment viewed")
        if segment_id in self._session.segments_viewed:
            return False
        self._session.segments_viewed.add(segment_id)
        return True

    def complete(self, now: Optional[datetime] = None) -> StudySession:
        """
        Mark the session completed. Completing twice is a no-op.
        """
        if not self._session.is_completed:
            self._session.status = SessionStatus.Completed
            self._session.completed_at = now or datetime.now(timezone.utc)
            logger.info(
                f"Study session {self.session_id} completed: "
                f"{self._session.correct_answers}/{self._session.total_studied} correct."
            )
        return self.snapshot()

    def reset(self) -> StudySession:
        """
        Discard the current session and start over with zeroed counters.

        Display preferences are not part of the session and are untouched.
        """
        logger.info(f"Study session {self.session_id} reset.")
        self._session = StudySession()
        return self.snapshot()

    def snapshot(self) -> StudySession:
        """Return a copy of the session that callers can keep without affecting it."""
        return self._session.model_copy(deep=True)

    def get_stats(self) -> Dict[str, Any]:
        """
        Summarize the session for progress display.

        Returns:
            dict: session_id, status, total_studied, correct_answers,
            accuracy_percentage, time_spent_seconds, average_time_per_card,
            cards_per_minute and segments_viewed (a count).
        """
        session = self._session
        return {
            "session_id": str(session.session_id),
            "status": session.status.value,
            "total_studied": session.total_studied,
            "correct_answers": session.correct_answers,
            "accuracy_percentage": session.accuracy_percentage,
            "time_spent_seconds": session.time_spent_seconds,
            "average_time_per_card": session.average_time_per_card,
            "cards_per_minute": session.cards_per_minute,
            "segments_viewed": len(session.segments_viewed),
        }
