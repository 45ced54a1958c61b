"""
Survey Session

One engine object per respondent session, owning the response store and
the navigator. The surrounding UI or API holds a reference to it; nothing
here is global.

Submission is the only asynchronous step. While it is outstanding the
session is frozen (SessionBusyError on any mutation). On success the store
is cleared and the navigator reaches COMPLETE; on failure the external
error propagates and the answers and cursor stay as they were, so the
respondent can retry.
"""

import logging
import uuid
from dataclasses import dataclass
from typing import Dict, List, Optional, Protocol, Tuple, Union

from .branching import DEFAULT_MARKERS, BranchMarkers
from .errors import SessionBusyError, SurveyStateError
from .models import (
    AnswerValue,
    Category,
    GenderEnum,
    Question,
    SubCategory,
    SubmissionReceipt,
    SubmissionRequest,
    SurveyTree,
)
from .navigator import Cursor, NavigatorState, SurveyNavigator, Transition
from .responses import ResponseStore
from .submission import build_submission

logger = logging.getLogger(__name__)


class SubmissionClient(Protocol):
    async def submit(self, request: SubmissionRequest) -> SubmissionReceipt:
        ...


@dataclass(frozen=True)
class StepView:
    """Snapshot of the current step for the UI (pure data)."""
    session_id: str
    state: NavigatorState
    category: Optional[Category]
    sub_category: Optional[SubCategory]
    questions: List[Question]
    answers: Dict[int, AnswerValue]
    cursor: Optional[Cursor]
    is_first_step: bool
    is_last_step: bool
    can_advance: bool
    progress: Tuple[int, int]


class SurveySession:
    def __init__(
        self,
        tree: SurveyTree,
        *,
        markers: BranchMarkers = DEFAULT_MARKERS,
        gender_on_file: Union[GenderEnum, str, None] = None,
        session_id: Optional[str] = None,
    ) -> None:
        self.session_id = session_id or str(uuid.uuid4())
        self.store = ResponseStore()
        self.navigator = SurveyNavigator(
            tree,
            self.store,
            markers=markers,
            gender_on_file=gender_on_file,
        )
        self._submitting = False
        self._receipt: Optional[SubmissionReceipt] = None

    @property
    def state(self) -> NavigatorState:
        return self.navigator.state

    @property
    def is_submitting(self) -> bool:
        return self._submitting

    @property
    def receipt(self) -> Optional[SubmissionReceipt]:
        return self._receipt

    def _check_mutable(self) -> None:
        if self._submitting:
            raise SessionBusyError("Submission in progress")
        if self.navigator.state == NavigatorState.COMPLETE:
            raise SurveyStateError("Survey already submitted")

    # ===== Answers =====

    def answer(self, question_id: int, value) -> None:
        self._check_mutable()
        self.store.set(question_id, value)

    def toggle_option(self, question_id: int, option_id: int) -> None:
        self._check_mutable()
        self.store.toggle(question_id, option_id)

    def clear_answer(self, question_id: int) -> None:
        self._check_mutable()
        self.store.discard(question_id)

    # ===== Navigation =====

    def start(self) -> StepView:
        self._check_mutable()
        self.navigator.start()
        return self.view()

    def advance(self) -> Transition:
        self._check_mutable()
        return self.navigator.advance()

    def retreat(self) -> Transition:
        self._check_mutable()
        return self.navigator.retreat()

    def view(self) -> StepView:
        nav = self.navigator
        if nav.state != NavigatorState.ACTIVE:
            return StepView(
                session_id=self.session_id,
                state=nav.state,
                category=None,
                sub_category=None,
                questions=[],
                answers=self.store.snapshot(),
                cursor=nav.cursor,
                is_first_step=False,
                is_last_step=False,
                can_advance=False,
                progress=(0, 0),
            )

        step = nav.current_step()
        position, total = nav.progress()
        return StepView(
            session_id=self.session_id,
            state=nav.state,
            category=step.category,
            sub_category=step.sub_category,
            questions=step.questions,
            answers={q.id: self.store[q.id] for q in step.questions if q.id in self.store},
            cursor=nav.cursor,
            is_first_step=position == 1,
            is_last_step=position == total,
            can_advance=not self._submitting and self.store.is_complete(step.questions),
            progress=(position, total),
        )

    # ===== Submission =====

    def build_submission(self) -> SubmissionRequest:
        """Payload for the questions shown so far; raises NothingToSubmitError if empty."""
        return build_submission(self.store, self.navigator.visited_questions())

    async def submit(self, client: SubmissionClient) -> SubmissionReceipt:
        """
        Finish the survey.

        Only valid at the last visible step with its questions answered;
        the same checks as advance() apply, so an incomplete step raises
        StepIncompleteError and a premature call raises SurveyStateError.
        """
        self._check_mutable()
        if not self.navigator.is_last_step:
            raise SurveyStateError("Not at the last step")
        # Raises StepIncompleteError without moving; at the last step it never moves
        self.navigator.advance()
        request = self.build_submission()

        self._submitting = True
        try:
            receipt = await client.submit(request)
        except Exception as e:
            logger.warning(f"Submission for session {self.session_id} failed, answers kept: {e}")
            raise
        finally:
            self._submitting = False

        self._receipt = receipt
        self.navigator.complete()
        self.store.clear()
        logger.info(f"Session {self.session_id} submitted {len(request.responses)} responses")
        return receipt

    def abandon(self) -> None:
        """Discard answers and position; the next start() begins afresh."""
        if self._submitting:
            raise SessionBusyError("Submission in progress")
        self.store.clear()
        self.navigator.reset()
        self._receipt = None
        logger.info(f"Session {self.session_id} abandoned")
