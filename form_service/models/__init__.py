"""
POSEFIT Form Service Models

Rule-based exercise form scoring, rep segmentation and session summaries.
"""

from shared.utils import configured_level, setup_logger

# Console output for every form_service.* module logger
setup_logger("form_service", configured_level())

from .pose_types import (
    JointName,
    JointPoint,
    PoseFrame,
    PoseDimension,
    ExerciseType,
    FrameAnalysis,
    WorkoutAnalysis,
    InsightRow,
    SessionSummary,
    SessionOutcome,
)

from .geometry import (
    DegenerateGeometryError,
    angle_between,
    alignment_angle,
    horizontal_offset,
    midpoint,
)

from .bands import Band, BandTable, band_table

from .form_scorer import (
    FormScorer,
    InsufficientDataError,
    RULE_SETS,
    get_form_scorer,
)

from .rep_segmenter import Rep, RepSegmenter, SegmenterState, SegmentationThresholds

from .rep_aggregator import RepAggregator, get_rep_aggregator

from .session_summarizer import SessionSummarizer, summarize_frame_analyses

from .exercise_session import (
    LiveFeedbackState,
    FeedbackSnapshot,
    RealtimeSessionHandler,
    RealtimeStats,
)

from .video_analyzer import VideoAnalyzer, VideoAnalysisResult

__all__ = [
    # Pose types
    "JointName",
    "JointPoint",
    "PoseFrame",
    "PoseDimension",
    "ExerciseType",
    "FrameAnalysis",
    "WorkoutAnalysis",
    "InsightRow",
    "SessionSummary",
    "SessionOutcome",
    # Geometry
    "DegenerateGeometryError",
    "angle_between",
    "alignment_angle",
    "horizontal_offset",
    "midpoint",
    # Bands
    "Band",
    "BandTable",
    "band_table",
    # Scoring
    "FormScorer",
    "InsufficientDataError",
    "RULE_SETS",
    "get_form_scorer",
    # Reps
    "Rep",
    "RepSegmenter",
    "SegmenterState",
    "SegmentationThresholds",
    "RepAggregator",
    "get_rep_aggregator",
    # Summary
    "SessionSummarizer",
    "summarize_frame_analyses",
    # Real-time
    "LiveFeedbackState",
    "FeedbackSnapshot",
    "RealtimeSessionHandler",
    "RealtimeStats",
    # Batch
    "VideoAnalyzer",
    "VideoAnalysisResult",
]
