"""
Submission Formatter

Turns the response store into the payload expected by the submission
service. Only questions actually presented on the traversed path are
considered; unanswered or invalid answers are omitted rather than sent as
nulls, and an empty payload is refused before any external call.
"""

import logging
from typing import Iterable, List

from .errors import NothingToSubmitError
from .models import (
    Question,
    QuestionType,
    SubmissionItem,
    SubmissionRequest,
)
from .responses import ResponseStore, answer_is_valid

logger = logging.getLogger(__name__)


def format_answer(question: Question, value) -> SubmissionItem:
    """Wire item for one valid answer; caller checks validity first."""
    if question.type == QuestionType.TEXT:
        return SubmissionItem(
            question_id=question.id,
            response_type=question.type,
            response_text=value,
        )
    if question.type == QuestionType.SINGLE_CHOICE:
        selected = [value]
    else:
        # Option order, not set iteration order
        selected = [o.id for o in question.options if o.id in value]
    return SubmissionItem(
        question_id=question.id,
        response_type=question.type,
        selected_options=selected,
    )


def format_responses(store: ResponseStore, questions: Iterable[Question]) -> List[SubmissionItem]:
    """One item per answered question, in question order."""
    items = []
    seen = set()
    for question in questions:
        if question.id in seen:
            continue
        seen.add(question.id)
        value = store.get(question.id)
        if not answer_is_valid(question, value):
            continue
        items.append(format_answer(question, value))
    return items


def build_submission(store: ResponseStore, questions: Iterable[Question]) -> SubmissionRequest:
    """
    Payload for the submission service.

    Raises:
        NothingToSubmitError: no question on the path has a recorded answer
    """
    items = format_responses(store, questions)
    if not items:
        logger.info("Submission refused: nothing to submit")
        raise NothingToSubmitError("Nothing to submit")
    return SubmissionRequest(responses=items)
