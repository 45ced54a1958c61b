"""
Response Store

Keyed accumulation of in-progress answers. The store knows nothing about
the tree or navigation: answers can be recorded for questions that are not
(yet) visible, and a re-answer always replaces the previous value.
"""

import logging
from collections.abc import Mapping
from typing import Dict, FrozenSet, Iterable, Iterator, List, Optional

from .models import AnswerValue, Question, QuestionType

logger = logging.getLogger(__name__)


def _normalize(value) -> AnswerValue:
    # bool is an int subclass; True is never a meaningful option id
    if isinstance(value, bool):
        raise TypeError("Boolean answers are not supported")
    if isinstance(value, (str, int)):
        return value
    if isinstance(value, (set, frozenset, list, tuple)):
        ids = []
        for item in value:
            if isinstance(item, bool) or not isinstance(item, int):
                raise TypeError(f"Option ids must be integers, got {item!r}")
            ids.append(item)
        return frozenset(ids)
    raise TypeError(f"Unsupported answer type: {type(value).__name__}")


def answer_is_valid(question: Question, value: Optional[AnswerValue]) -> bool:
    """
    True if `value` is a non-empty answer of the right shape for `question`.

    TEXT: non-blank string. SINGLE_CHOICE: one known option id.
    MULTIPLE_CHOICE: non-empty set of known option ids.
    """
    if value is None:
        return False
    if question.type == QuestionType.TEXT:
        return isinstance(value, str) and bool(value.strip())
    if question.type == QuestionType.SINGLE_CHOICE:
        return (
            isinstance(value, int)
            and not isinstance(value, bool)
            and value in question.option_ids()
        )
    if question.type == QuestionType.MULTIPLE_CHOICE:
        return (
            isinstance(value, frozenset)
            and bool(value)
            and value <= question.option_ids()
        )
    return False


class ResponseStore(Mapping):
    """
    Answers for the current session, keyed by question id.

    Reads go through the Mapping protocol (`store[qid]`, `store.get(qid)`,
    `len(store)`); writes only through `set`, `toggle`, `discard` and `clear`.
    """

    def __init__(self) -> None:
        self._answers: Dict[int, AnswerValue] = {}

    # ===== Mapping protocol =====

    def __getitem__(self, question_id: int) -> AnswerValue:
        return self._answers[question_id]

    def __iter__(self) -> Iterator[int]:
        return iter(self._answers)

    def __len__(self) -> int:
        return len(self._answers)

    def __repr__(self) -> str:
        return f"ResponseStore({self._answers!r})"

    # ===== Mutation =====

    def set(self, question_id: int, value) -> None:
        """Record an answer, replacing any earlier one for the question."""
        if value is None:
            raise TypeError("Use discard() to remove an answer")
        self._answers[question_id] = _normalize(value)

    def toggle(self, question_id: int, option_id: int) -> Optional[FrozenSet[int]]:
        """
        Checkbox semantics for multi-choice answers.

        Adds `option_id` if absent, removes it if present. Removing the last
        option leaves the question unanswered. Returns the new value.
        """
        current = self._answers.get(question_id)
        selected = set(current) if isinstance(current, frozenset) else set()
        if option_id in selected:
            selected.remove(option_id)
        else:
            selected.add(option_id)

        if not selected:
            self._answers.pop(question_id, None)
            return None
        value = frozenset(selected)
        self._answers[question_id] = value
        return value

    def discard(self, question_id: int) -> None:
        self._answers.pop(question_id, None)

    def clear(self) -> None:
        if self._answers:
            logger.debug(f"Clearing {len(self._answers)} recorded answers")
        self._answers.clear()

    # ===== Completeness =====

    def is_answered(self, question: Question) -> bool:
        return answer_is_valid(question, self._answers.get(question.id))

    def missing(self, questions: Iterable[Question]) -> List[int]:
        """Ids of questions without a valid, non-empty answer."""
        return [q.id for q in questions if not self.is_answered(q)]

    def is_complete(self, questions: Iterable[Question]) -> bool:
        return not self.missing(questions)

    def snapshot(self) -> Dict[int, AnswerValue]:
        return dict(self._answers)
