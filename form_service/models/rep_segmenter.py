"""
POSEFIT Form Service - Rep Segmenter

Streaming state machine grouping frame analyses into repetitions.

A rep opens when the primary joint angle drops below the descend threshold
with a drop of more than the minimum delta since the previous frame, and
closes (inclusive) when it rises above the ascend threshold with a rise of
more than the minimum delta. Distinct thresholds plus delta gating keep
jitter from fragmenting one repetition. Static holds (plank) are never
split: the whole stream is one segment.
"""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Dict, Iterable, List, Optional, Tuple

from .pose_types import ExerciseType, FrameAnalysis

logger = logging.getLogger(__name__)


class SegmenterState(Enum):
    IDLE = "idle"
    IN_REP = "in_rep"


@dataclass(frozen=True)
class SegmentationThresholds:
    descend: float
    ascend: float
    min_descend_delta: float = 5.0
    min_ascend_delta: float = 10.0
    initial_metric: float = 180.0  # fully extended joint before the first frame


SEGMENTATION_THRESHOLDS: Dict[ExerciseType, SegmentationThresholds] = {
    ExerciseType.SQUAT: SegmentationThresholds(descend=130.0, ascend=160.0),
    ExerciseType.PUSH_UP: SegmentationThresholds(descend=150.0, ascend=160.0),
}


@dataclass(frozen=True)
class Rep:
    """Ordered, non-empty run of frame analyses forming one repetition."""
    exercise: ExerciseType
    frames: Tuple[FrameAnalysis, ...]
    complete: bool = True  # False when flushed at end of stream

    def __post_init__(self):
        object.__setattr__(self, "frames", tuple(self.frames))
        if not self.frames:
            raise ValueError("A rep needs at least one frame")

    @property
    def start_time(self) -> float:
        return self.frames[0].timestamp

    @property
    def end_time(self) -> float:
        return self.frames[-1].timestamp

    @property
    def duration(self) -> float:
        return self.end_time - self.start_time


class RepSegmenter:
    """
    Feed frame analyses in timestamp order; closed reps come back from feed().

    Usage:
        segmenter = RepSegmenter(ExerciseType.SQUAT)
        for analysis in analyses:
            rep = segmenter.feed(analysis)
            if rep:
                ...
        last = segmenter.finish()
    """

    def __init__(self, exercise: ExerciseType, thresholds: Optional[SegmentationThresholds] = None):
        self.exercise = exercise
        self.metric_name = exercise.primary_metric
        self.thresholds = thresholds or SEGMENTATION_THRESHOLDS.get(exercise)
        if self.metric_name is not None and self.thresholds is None:
            raise ValueError(f"No segmentation thresholds for {exercise.value}")
        self.reset()

    @property
    def is_static(self) -> bool:
        return self.metric_name is None

    @property
    def open_frame_count(self) -> int:
        return len(self._open)

    def reset(self):
        self.state = SegmenterState.IDLE
        self.previous_metric = self.thresholds.initial_metric if self.thresholds else None
        self._open: List[FrameAnalysis] = []

    def feed(self, analysis: FrameAnalysis) -> Optional[Rep]:
        """
        Consume one frame analysis.

        Returns:
            The rep closed by this frame, if any
        """
        if self.is_static:
            self._open.append(analysis)
            self.state = SegmenterState.IN_REP
            return None

        metric = analysis.metrics.get(self.metric_name)
        if metric is None:
            return None

        closed = None
        previous = self.previous_metric
        t = self.thresholds

        if self.state is SegmenterState.IDLE:
            if metric < t.descend and previous - metric > t.min_descend_delta:
                self.state = SegmenterState.IN_REP
                self._open = [analysis]
                logger.debug(f"⬇️ {self.exercise.value} rep opened at {analysis.timestamp:.2f}s ({metric:.1f}°)")
        else:
            self._open.append(analysis)
            if metric > t.ascend and metric - previous > t.min_ascend_delta:
                closed = Rep(self.exercise, self._open)
                self._open = []
                self.state = SegmenterState.IDLE
                logger.debug(f"⬆️ {self.exercise.value} rep closed at {analysis.timestamp:.2f}s ({metric:.1f}°)")

        self.previous_metric = metric
        return closed

    def finish(self) -> Optional[Rep]:
        """Flush the open rep (or the whole static hold) at end of stream."""
        if not self._open:
            return None
        rep = Rep(self.exercise, self._open, complete=self.is_static)
        self._open = []
        self.state = SegmenterState.IDLE
        return rep

    def segment(self, analyses: Iterable[FrameAnalysis]) -> List[Rep]:
        """Segment a complete, timestamp-ordered sequence from a fresh state."""
        self.reset()
        reps = []
        for analysis in analyses:
            rep = self.feed(analysis)
            if rep is not None:
                reps.append(rep)
        tail = self.finish()
        if tail is not None:
            reps.append(tail)
        return reps
