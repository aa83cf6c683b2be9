"""Slip grading: leg matching, commit gating and score-based suggestions."""

from .commit import COMMIT_CONFIDENCE_FLOOR, apply_proposals, commit_blocked_reasons, merge_notes
from .grader import GradeReport, grade_extraction, grade_slip
from .matcher import LEG_MATCH_FLOOR, MatchOutcome, build_proposals, leg_score
from .suggest import GradeSuggester, GradeSuggestion, grade_from_final

__all__ = [
    "COMMIT_CONFIDENCE_FLOOR",
    "apply_proposals",
    "commit_blocked_reasons",
    "merge_notes",
    "GradeReport",
    "grade_extraction",
    "grade_slip",
    "LEG_MATCH_FLOOR",
    "MatchOutcome",
    "build_proposals",
    "leg_score",
    "GradeSuggester",
    "GradeSuggestion",
    "grade_from_final",
]
