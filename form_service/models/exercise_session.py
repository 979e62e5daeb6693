"""
POSEFIT Form Service - Real-time Exercise Session

Live-camera sessions: frames are scored on the shared worker pool at a
capped rate, the latest analysis is published to a small lock-protected
state cell whose feedback expires after a display window, and closed reps
are aggregated as they complete.

All timing goes through an injectable clock (seconds, monotonic).
"""

import logging
import threading
import time
from concurrent.futures import Future, wait
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional, Tuple

from core.config import settings
from core.threading import WorkerPool, get_analysis_pool
from .form_scorer import FormScorer, get_form_scorer
from .pose_types import ExerciseType, FrameAnalysis, PoseFrame, SessionSummary, WorkoutAnalysis
from .rep_aggregator import RepAggregator, get_rep_aggregator
from .rep_segmenter import Rep, RepSegmenter
from .session_summarizer import SessionSummarizer

logger = logging.getLogger(__name__)

Clock = Callable[[], float]


# ═══════════════════════════════════════════════════════════════════════════════
# LIVE FEEDBACK STATE
# ═══════════════════════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class FeedbackSnapshot:
    """Consistent view of the live feedback cell."""
    analysis: Optional[FrameAnalysis]
    updated_at: Optional[float]
    expires_at: Optional[float]
    update_count: int

    def to_dict(self) -> Dict[str, Any]:
        return {
            "analysis": self.analysis.to_dict() if self.analysis else None,
            "updated_at": self.updated_at,
            "expires_at": self.expires_at,
            "update_count": self.update_count,
        }


class LiveFeedbackState:
    """
    Latest analysis plus a time-based expiry for its feedback.

    Every update replaces the analysis and pushes the expiry out to
    now + display window. Readers always get a whole snapshot.
    """

    def __init__(self, display_seconds: Optional[float] = None):
        self.display_seconds = (
            settings.FEEDBACK_DISPLAY_SECONDS if display_seconds is None else display_seconds
        )
        self._lock = threading.Lock()
        self._analysis: Optional[FrameAnalysis] = None
        self._updated_at: Optional[float] = None
        self._expires_at: Optional[float] = None
        self._update_count = 0

    def update(self, analysis: FrameAnalysis, now: float):
        """Publish a new analysis and reset the expiry."""
        with self._lock:
            self._analysis = analysis
            self._updated_at = now
            self._expires_at = now + self.display_seconds
            self._update_count += 1

    def snapshot(self) -> FeedbackSnapshot:
        with self._lock:
            return FeedbackSnapshot(
                analysis=self._analysis,
                updated_at=self._updated_at,
                expires_at=self._expires_at,
                update_count=self._update_count,
            )

    def is_stale(self, now: float) -> bool:
        """True when nothing was published or the display window has passed."""
        with self._lock:
            return self._expires_at is None or now >= self._expires_at

    def stable_feedback(self, now: float) -> Tuple[str, ...]:
        """Feedback lines to display at `now`; empty once expired."""
        with self._lock:
            if self._analysis is None or self._expires_at is None or now >= self._expires_at:
                return ()
            return self._analysis.feedback

    def clear(self):
        with self._lock:
            self._analysis = None
            self._updated_at = None
            self._expires_at = None


# ═══════════════════════════════════════════════════════════════════════════════
# REAL-TIME SESSION HANDLER
# ═══════════════════════════════════════════════════════════════════════════════

@dataclass
class RealtimeStats:
    """Frame intake counters for one live session."""
    accepted: int = 0
    dropped_rate: int = 0
    dropped_busy: int = 0
    analyzed: int = 0
    insufficient: int = 0
    failed: int = 0

    @property
    def received(self) -> int:
        return self.accepted + self.dropped_rate + self.dropped_busy

    def to_dict(self) -> Dict[str, int]:
        return {
            "received": self.received,
            "accepted": self.accepted,
            "dropped_rate": self.dropped_rate,
            "dropped_busy": self.dropped_busy,
            "analyzed": self.analyzed,
            "insufficient": self.insufficient,
            "failed": self.failed,
        }


class RealtimeSessionHandler:
    """
    Scores a live frame feed for one exercise.

    Features:
    - Rate cap on accepted frames
    - Latest-wins dropping while an analysis is still running
    - Live feedback cell with display-window expiry
    - Incremental rep segmentation and aggregation
    - Session summary on finish()

    Usage:
        handler = RealtimeSessionHandler(ExerciseType.SQUAT)
        for frame in camera:
            handler.submit_frame(frame)
            show(handler.feedback.stable_feedback(time.monotonic()))
        summary = handler.finish()
    """

    def __init__(
        self,
        exercise: ExerciseType,
        scorer: Optional[FormScorer] = None,
        pool: Optional[WorkerPool] = None,
        aggregator: Optional[RepAggregator] = None,
        summarizer: Optional[SessionSummarizer] = None,
        feedback: Optional[LiveFeedbackState] = None,
        clock: Clock = time.monotonic,
        max_analyses_per_second: Optional[float] = None,
    ):
        self.exercise = exercise
        self.scorer = scorer or get_form_scorer()
        self.pool = pool or get_analysis_pool()
        self.aggregator = aggregator or get_rep_aggregator()
        self.summarizer = summarizer or SessionSummarizer()
        self.feedback = feedback or LiveFeedbackState()
        self.clock = clock

        rate = max_analyses_per_second or settings.REALTIME_MAX_ANALYSES_PER_SECOND
        self.min_interval = 1.0 / rate

        self.stats = RealtimeStats()
        self._segmenter = RepSegmenter(exercise)
        self._reps: List[WorkoutAnalysis] = []
        self._lock = threading.Lock()
        self._busy = False
        self._last_accepted_at: Optional[float] = None
        self._in_flight: Optional[Future] = None

        logger.info(f"🎥 Real-time {exercise.display_name} session started ({rate:g} analyses/s)")

    # ───────────────────────────────────────────────────────────────────────────
    # Intake
    # ───────────────────────────────────────────────────────────────────────────

    def submit_frame(
        self,
        frame: Optional[PoseFrame],
        fallback: Optional[PoseFrame] = None,
        now: Optional[float] = None
    ) -> Optional[Future]:
        """
        Offer a frame for analysis.

        Args:
            frame: Preferred pose (usually 3D)
            fallback: Pose tried when `frame` has insufficient joints (usually 2D)
            now: Arrival time; read from the clock when None

        Returns:
            Future of the analysis, or None when the frame was dropped
        """
        now = self.clock() if now is None else now

        with self._lock:
            if self._last_accepted_at is not None and now - self._last_accepted_at < self.min_interval:
                self.stats.dropped_rate += 1
                return None
            if self._busy:
                self.stats.dropped_busy += 1
                return None
            self._busy = True
            self._last_accepted_at = now
            self.stats.accepted += 1

        try:
            future = self.pool.submit_future(self._analyze, frame, fallback, now)
        except RuntimeError:
            with self._lock:
                self._busy = False
            raise

        with self._lock:
            self._in_flight = future
        return future

    def _analyze(self, frame: Optional[PoseFrame], fallback: Optional[PoseFrame], now: float) -> Optional[FrameAnalysis]:
        try:
            analysis = self.scorer.analyze_with_fallback(frame, fallback, self.exercise)
        except Exception:
            with self._lock:
                self.stats.failed += 1
                self._busy = False
            raise

        with self._lock:
            try:
                if analysis is None:
                    self.stats.insufficient += 1
                    return None

                self.stats.analyzed += 1
                rep = self._segmenter.feed(analysis)
                if rep is not None:
                    self._record_rep(rep)
                self.feedback.update(analysis, now)
            finally:
                self._busy = False

        return analysis

    def _record_rep(self, rep: Rep):
        workout = self.aggregator.aggregate(rep)
        if workout is None:
            return
        self._reps.append(workout)
        logger.info(
            f"✅ {self.exercise.display_name} rep {len(self._reps)} completed "
            f"(score {workout.score:.2f}, {rep.duration:.1f}s)"
        )

    # ───────────────────────────────────────────────────────────────────────────
    # Results
    # ───────────────────────────────────────────────────────────────────────────

    @property
    def completed_reps(self) -> List[WorkoutAnalysis]:
        with self._lock:
            return list(self._reps)

    @property
    def rep_count(self) -> int:
        with self._lock:
            return len(self._reps)

    def wait_idle(self, timeout: Optional[float] = None):
        """Block until the in-flight analysis (if any) has finished."""
        with self._lock:
            future = self._in_flight
        if future is not None:
            wait([future], timeout=timeout)

    def finish(self, timeout: Optional[float] = None) -> SessionSummary:
        """Flush the open rep (or hold) and summarize the session."""
        self.wait_idle(timeout)

        with self._lock:
            tail = self._segmenter.finish()
            if tail is not None:
                self._record_rep(tail)
            reps = list(self._reps)

        logger.info(f"🏁 Real-time session finished: {self.stats.to_dict()}")
        return self.summarizer.summarize(reps, self.exercise)

    def reset(self):
        """Start over with the same exercise."""
        self.wait_idle()
        with self._lock:
            self._segmenter.reset()
            self._reps = []
            self._last_accepted_at = None
            self._in_flight = None
            self.stats = RealtimeStats()
        self.feedback.clear()

    def get_status(self) -> Dict[str, Any]:
        """Current session status."""
        now = self.clock()
        return {
            "exercise": self.exercise.value,
            "rep_count": self.rep_count,
            "feedback": list(self.feedback.stable_feedback(now)),
            "stale": self.feedback.is_stale(now),
            "stats": self.stats.to_dict(),
        }
