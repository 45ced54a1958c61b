"""
Survey Navigator

Two-dimensional cursor (category index, subcategory index) over the
*filtered* questionnaire.

States: UNINITIALIZED -> ACTIVE(c, s) -> COMPLETE

The filter is recomputed on every call, so indices are never trusted
across calls: the position is anchored on the current subcategory id and
the cursor is re-derived from the fresh view. If the anchored subcategory
has been filtered out in the meantime, the navigator moves on to the next
visible subcategory in full-tree order (or the previous one at the end).

Categories left with no visible subcategory are skipped.
"""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import List, Optional, Tuple, Union

from .branching import DEFAULT_MARKERS, BranchMarkers, visible_tree
from .errors import (
    StepIncompleteError,
    SurveyCompletedError,
    SurveyNotReadyError,
)
from .models import Category, GenderEnum, Question, SubCategory, SurveyTree
from .responses import ResponseStore

logger = logging.getLogger(__name__)


class NavigatorState(str, Enum):
    UNINITIALIZED = "uninitialized"
    ACTIVE = "active"
    COMPLETE = "complete"


class Transition(str, Enum):
    """Outcome of a navigation call."""
    MOVED = "moved"
    STAYED = "stayed"                    # retreat at the first step
    READY_TO_SUBMIT = "ready_to_submit"  # advance at the last step


@dataclass(frozen=True)
class Cursor:
    category_index: int
    sub_category_index: int


@dataclass(frozen=True)
class Step:
    """One visible subcategory and where it sits in the filtered view."""
    category: Category
    sub_category: SubCategory
    cursor: Cursor

    @property
    def questions(self) -> List[Question]:
        return list(self.sub_category.questions)


class SurveyNavigator:
    """Cursor state machine over a filtered survey tree."""

    def __init__(
        self,
        tree: SurveyTree,
        store: ResponseStore,
        *,
        markers: BranchMarkers = DEFAULT_MARKERS,
        gender_on_file: Union[GenderEnum, str, None] = None,
    ) -> None:
        self._tree = tree
        self._store = store
        self._markers = markers
        self._gender_on_file = gender_on_file
        self._full_order = {sid: i for i, sid in enumerate(tree.subcategory_ids())}

        self._state = NavigatorState.UNINITIALIZED
        self._anchor: Optional[int] = None
        self._cursor: Optional[Cursor] = None
        self._visited: List[int] = []

    # ===== Read access =====

    @property
    def state(self) -> NavigatorState:
        return self._state

    @property
    def cursor(self) -> Optional[Cursor]:
        """Last computed position; None until started."""
        return self._cursor

    @property
    def tree(self) -> SurveyTree:
        return self._tree

    def filtered_tree(self) -> SurveyTree:
        return visible_tree(
            self._tree,
            self._store,
            markers=self._markers,
            gender_on_file=self._gender_on_file,
        )

    def steps(self) -> List[Step]:
        """Visible subcategories in traversal order."""
        result = []
        category_index = 0
        for category in self.filtered_tree().categories:
            if not category.sub_categories:
                continue
            for sub_index, sub in enumerate(category.sub_categories):
                result.append(Step(category, sub, Cursor(category_index, sub_index)))
            category_index += 1
        return result

    def current_step(self) -> Step:
        """Current step against the fresh view, repositioning if it vanished."""
        self._require_active()
        _, step = self._locate(self.steps())
        return step

    @property
    def is_first_step(self) -> bool:
        self._require_active()
        index, _ = self._locate(self.steps())
        return index == 0

    @property
    def is_last_step(self) -> bool:
        self._require_active()
        steps = self.steps()
        index, _ = self._locate(steps)
        return index == len(steps) - 1

    def progress(self) -> Tuple[int, int]:
        """(1-based position, visible step count)."""
        self._require_active()
        steps = self.steps()
        index, _ = self._locate(steps)
        return index + 1, len(steps)

    def visited_questions(self) -> List[Question]:
        """Questions on every subcategory shown so far, in full-tree order."""
        visited = sorted(self._visited, key=lambda sid: self._full_order[sid])
        questions = []
        for sid in visited:
            sub = self._tree.find_subcategory(sid)
            if sub is not None:
                questions.extend(sub.questions)
        return questions

    # ===== Transitions =====

    def start(self) -> Step:
        """UNINITIALIZED -> ACTIVE(0, 0)."""
        if self._state == NavigatorState.COMPLETE:
            raise SurveyCompletedError("Survey already completed; reset to start over")
        if self._state == NavigatorState.ACTIVE:
            return self.current_step()
        if self._tree.is_empty:
            raise SurveyNotReadyError("Survey tree is empty")

        steps = self.steps()
        if not steps:
            raise SurveyNotReadyError("Survey tree has no visible subcategories")
        self._state = NavigatorState.ACTIVE
        self._move_to(steps[0])
        return steps[0]

    def advance(self) -> Transition:
        """
        Move forward one subcategory.

        Refused with StepIncompleteError (no state change) while the current
        subcategory has unanswered questions. At the last visible step the
        cursor stays put and READY_TO_SUBMIT is returned.
        """
        self._require_active()
        steps = self.steps()
        index, step = self._locate(steps)

        missing = self._store.missing(step.questions)
        if missing:
            logger.info(f"Advance refused on subcategory {step.sub_category.id}: unanswered {missing}")
            raise StepIncompleteError(
                f"Unanswered questions in '{step.sub_category.name}'",
                missing_question_ids=missing,
            )

        if index == len(steps) - 1:
            return Transition.READY_TO_SUBMIT

        self._move_to(steps[index + 1])
        return Transition.MOVED

    def retreat(self) -> Transition:
        """Move back one subcategory; the last one of the previous category when crossing."""
        self._require_active()
        steps = self.steps()
        index, _ = self._locate(steps)
        if index == 0:
            return Transition.STAYED
        self._move_to(steps[index - 1])
        return Transition.MOVED

    def complete(self) -> None:
        """ACTIVE -> COMPLETE, once per session."""
        self._require_active()
        self._state = NavigatorState.COMPLETE
        logger.info(f"Survey completed after {len(self._visited)} subcategories")

    def reset(self) -> None:
        self._state = NavigatorState.UNINITIALIZED
        self._anchor = None
        self._cursor = None
        self._visited = []

    # ===== Internals =====

    def _require_active(self) -> None:
        if self._state == NavigatorState.UNINITIALIZED:
            raise SurveyNotReadyError("Survey not started")
        if self._state == NavigatorState.COMPLETE:
            raise SurveyCompletedError("Survey already completed")

    def _move_to(self, step: Step) -> None:
        self._anchor = step.sub_category.id
        self._cursor = step.cursor
        if step.sub_category.id not in self._visited:
            self._visited.append(step.sub_category.id)

    def _locate(self, steps: List[Step]) -> Tuple[int, Step]:
        if not steps:
            raise SurveyNotReadyError("Survey tree has no visible subcategories")

        for index, step in enumerate(steps):
            if step.sub_category.id == self._anchor:
                self._cursor = step.cursor
                return index, step

        # Anchored subcategory was filtered out since the last move
        anchor_pos = self._full_order.get(self._anchor, -1)
        index = len(steps) - 1
        for i, step in enumerate(steps):
            if self._full_order[step.sub_category.id] > anchor_pos:
                index = i
                break
        step = steps[index]
        logger.info(
            f"Subcategory {self._anchor} no longer visible, repositioned to {step.sub_category.id}"
        )
        self._move_to(step)
        return index, step
