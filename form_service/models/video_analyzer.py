"""
POSEFIT Form Service - Offline Video Analyzer

Samples a recorded video at a fixed rate, scores every extracted pose on the
worker pool and summarizes the session. Frame extraction and pose detection
are supplied by the caller as `extract_pose(timestamp)`.
"""

import logging
from concurrent.futures import Future
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple, Union

import numpy as np

from core.config import settings
from core.threading import WorkerPool, get_analysis_pool
from shared.utils import log_execution_time
from .form_scorer import FormScorer, get_form_scorer
from .pose_types import ExerciseType, FrameAnalysis, PoseFrame, SessionSummary
from .rep_aggregator import RepAggregator, get_rep_aggregator
from .session_summarizer import SessionSummarizer, summarize_frame_analyses

logger = logging.getLogger(__name__)

ExtractedPose = Union[None, PoseFrame, Tuple[Optional[PoseFrame], Optional[PoseFrame]]]
PoseExtractor = Callable[[float], ExtractedPose]
ProgressCallback = Callable[[float], None]


@dataclass
class VideoAnalysisResult:
    """Frame analyses and summary for one recorded video."""
    summary: SessionSummary
    analyses: List[FrameAnalysis] = field(default_factory=list)
    sampled: int = 0
    skipped: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "summary": self.summary.to_dict(),
            "frames_sampled": self.sampled,
            "frames_analyzed": len(self.analyses),
            "frames_skipped": self.skipped,
        }


class VideoAnalyzer:
    """
    Batch analysis of a recorded exercise video.

    Usage:
        analyzer = VideoAnalyzer()
        result = analyzer.analyze(
            duration=12.4,
            extract_pose=detector.pose_at,
            exercise=ExerciseType.SQUAT,
            progress_callback=lambda p: print(f"{p:.0%}"),
        )
    """

    def __init__(
        self,
        scorer: Optional[FormScorer] = None,
        pool: Optional[WorkerPool] = None,
        aggregator: Optional[RepAggregator] = None,
        summarizer: Optional[SessionSummarizer] = None,
        frames_per_second: Optional[float] = None,
        extraction_share: Optional[float] = None,
    ):
        self.scorer = scorer or get_form_scorer()
        self.pool = pool or get_analysis_pool()
        self.aggregator = aggregator or get_rep_aggregator()
        self.summarizer = summarizer or SessionSummarizer()
        self.frames_per_second = frames_per_second or settings.BATCH_FRAMES_PER_SECOND
        self.extraction_share = (
            settings.EXTRACTION_PROGRESS_SHARE if extraction_share is None else extraction_share
        )

    def sample_timestamps(self, duration: float) -> List[float]:
        """Timestamps in [0, duration) spaced 1 / frames_per_second apart."""
        if duration <= 0:
            return []
        step = 1.0 / self.frames_per_second
        count = int(np.ceil(round(duration / step, 9)))
        return [round(i * step, 6) for i in range(count)]

    def _analyze_at(self, timestamp: float, extract_pose: PoseExtractor, exercise: ExerciseType) -> Optional[FrameAnalysis]:
        try:
            extracted = extract_pose(timestamp)
        except Exception as e:
            logger.warning(f"⚠️ Pose extraction failed at {timestamp:.2f}s: {e}")
            return None

        if extracted is None:
            logger.debug(f"No pose at {timestamp:.2f}s")
            return None

        if isinstance(extracted, PoseFrame):
            return self.scorer.score_frame(extracted, exercise)

        frame_3d, frame_2d = extracted
        return self.scorer.analyze_with_fallback(frame_3d, frame_2d, exercise)

    def analyze_frames(
        self,
        duration: float,
        extract_pose: PoseExtractor,
        exercise: ExerciseType,
        progress_callback: Optional[ProgressCallback] = None
    ) -> Tuple[List[FrameAnalysis], int]:
        """
        Score every sampled timestamp.

        Returns:
            (analyses sorted by timestamp, number of sampled timestamps)
        """
        timestamps = self.sample_timestamps(duration)
        futures: Sequence[Future] = self.pool.map_ordered(
            lambda t: self._analyze_at(t, extract_pose, exercise), timestamps
        )

        analyses = []
        total = len(futures)
        for index, (timestamp, future) in enumerate(zip(timestamps, futures), start=1):
            try:
                analysis = future.result()
            except Exception as e:
                logger.warning(f"⚠️ Scoring failed at {timestamp:.2f}s, frame skipped: {e}")
                analysis = None
            if analysis is not None:
                analyses.append(analysis)
            if progress_callback:
                progress_callback(self.extraction_share * index / total)

        if progress_callback and total == 0:
            progress_callback(self.extraction_share)

        analyses.sort(key=lambda analysis: analysis.timestamp)
        return analyses, total

    @log_execution_time
    def analyze(
        self,
        duration: float,
        extract_pose: PoseExtractor,
        exercise: ExerciseType,
        progress_callback: Optional[ProgressCallback] = None
    ) -> VideoAnalysisResult:
        """Analyze a whole video and summarize it."""
        logger.info(f"🎬 Analyzing {duration:.1f}s {exercise.display_name} video at {self.frames_per_second:g} fps")

        analyses, sampled = self.analyze_frames(duration, extract_pose, exercise, progress_callback)

        summary = summarize_frame_analyses(
            analyses,
            exercise,
            summarizer=self.summarizer,
            aggregator=self.aggregator,
        )

        if progress_callback:
            progress_callback(1.0)

        skipped = sampled - len(analyses)
        logger.info(
            f"✅ Video analysis complete: {len(analyses)}/{sampled} frames scored, "
            f"{summary.rep_count} rep(s)"
        )
        return VideoAnalysisResult(summary=summary, analyses=analyses, sampled=sampled, skipped=skipped)
