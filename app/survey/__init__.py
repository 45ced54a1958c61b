"""
Health Survey Engine

Adaptive questionnaire wizard:
- Walks categories -> subcategories -> questions in display order
- Hides lifestyle pages that do not apply to the respondent's gender
- Narrows symptom pages to the main symptoms the respondent selected
- Refuses to advance past unanswered questions
- Formats the answers on the traversed path for the submission service

The engine fetches, persists and renders nothing itself; see client.py for
the survey service and admin.py for the HTTP surface.

Version: survey_engine_v1
"""

from .models import (
    Category,
    SubCategory,
    Question,
    Option,
    QuestionType,
    GenderEnum,
    SurveyTree,
    SubmissionItem,
    SubmissionRequest,
    SubmissionReceipt,
)
from .responses import ResponseStore
from .branching import BranchMarkers, DEFAULT_MARKERS, KOREAN_MARKERS, visible_tree
from .navigator import Cursor, NavigatorState, SurveyNavigator, Transition
from .submission import build_submission, format_responses
from .session import StepView, SurveySession

__all__ = [
    "Category",
    "SubCategory",
    "Question",
    "Option",
    "QuestionType",
    "GenderEnum",
    "SurveyTree",
    "SubmissionItem",
    "SubmissionRequest",
    "SubmissionReceipt",
    "ResponseStore",
    "BranchMarkers",
    "DEFAULT_MARKERS",
    "KOREAN_MARKERS",
    "visible_tree",
    "Cursor",
    "NavigatorState",
    "SurveyNavigator",
    "Transition",
    "build_submission",
    "format_responses",
    "StepView",
    "SurveySession",
]

__version__ = "survey_engine_v1"
