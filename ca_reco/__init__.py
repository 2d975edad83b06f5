__all__ = [
    "Hit", "hits_from_frame", "hits_to_frame", "group_by_layer", "build_layer_trees",
    "Segment", "SegmentState", "SegmentNetwork",
    "Criterion", "CriteriaRegistry", "CRITERIA", "make_criterion",
    "SegmentBuilder", "CellularAutomaton", "AutomatonStatus", "RelaxationResult",
    "TrackExtractor", "TrackCandidate", "candidates_to_frame",
    "CAConfig", "load_config", "TrackFinder",
    "FitResult", "TrackFitter", "filter_by_fit", "chi2_probability",
    "compare_to_truth", "FeedbackResult",
    "CAError", "InvalidArity", "BadSegmentLength", "EmptyState",
    "CriteriaConfigError", "NonConvergence",
]

# Errors
from .errors import (
    CAError,
    InvalidArity,
    BadSegmentLength,
    EmptyState,
    CriteriaConfigError,
    NonConvergence,
)

# Hits & graph
from .hits import Hit, hits_from_frame, hits_to_frame, group_by_layer, build_layer_trees
from .segment import Segment, SegmentState
from .network import SegmentNetwork

# Criteria
from .criteria import Criterion, CriteriaRegistry, CRITERIA, make_criterion

# Pipeline stages
from .segment_builder import SegmentBuilder
from .automaton import CellularAutomaton, AutomatonStatus, RelaxationResult
from .extractor import TrackExtractor, TrackCandidate, candidates_to_frame
from .config import CAConfig, load_config
from .track_finder import TrackFinder

# External collaborators (interfaces)
from .fitting import FitResult, TrackFitter, filter_by_fit, chi2_probability
from .feedback import compare_to_truth, FeedbackResult
