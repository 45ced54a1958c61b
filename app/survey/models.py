"""
Health Survey Engine - Models

Pydantic value objects for the questionnaire tree and the submission
payload:
- Category -> SubCategory -> Question -> Option (immutable, validated at load)
- SurveyTree: ordered categories plus lookups
- SubmissionItem / SubmissionRequest: wire payload for the submission service

Field aliases follow the camelCase names used by the survey service, so
`SurveyTree.from_payload(response.json())` works directly.

Version: survey_engine_v1
"""

from datetime import datetime
from enum import Enum
from typing import Any, Dict, FrozenSet, Iterable, List, Optional, Union

from pydantic import BaseModel, Field, field_validator, model_validator


SURVEY_ENGINE_VERSION = "survey_engine_v1"


class QuestionType(str, Enum):
    """Kinds of answer a question accepts."""
    TEXT = "TEXT"
    SINGLE_CHOICE = "SINGLE_CHOICE"
    MULTIPLE_CHOICE = "MULTIPLE_CHOICE"


class GenderEnum(str, Enum):
    MALE = "male"
    FEMALE = "female"


# Answer held in the response store:
#   TEXT -> str, SINGLE_CHOICE -> int, MULTIPLE_CHOICE -> frozenset of ints
AnswerValue = Union[str, int, FrozenSet[int]]


# =============================================================================
# QUESTION TREE
# =============================================================================

class Option(BaseModel):
    id: int
    text: str = Field(alias="optionText")

    class Config:
        frozen = True
        populate_by_name = True


class Question(BaseModel):
    """
    A single question.

    Choice questions must carry at least one option and TEXT questions none;
    malformed data from the catalog is rejected here, not in the wizard.
    """
    id: int
    text: str = Field(alias="questionText")
    type: QuestionType = Field(alias="questionType")
    options: List[Option] = Field(default_factory=list)

    class Config:
        frozen = True
        populate_by_name = True

    @model_validator(mode="after")
    def check_options(self) -> "Question":
        if self.type == QuestionType.TEXT and self.options:
            raise ValueError(f"TEXT question {self.id} must not have options")
        if self.type != QuestionType.TEXT and not self.options:
            raise ValueError(f"{self.type.value} question {self.id} needs at least one option")
        ids = [o.id for o in self.options]
        if len(ids) != len(set(ids)):
            raise ValueError(f"Question {self.id} has duplicate option ids")
        return self

    def option_ids(self) -> FrozenSet[int]:
        return frozenset(o.id for o in self.options)

    def option_by_id(self, option_id: int) -> Optional[Option]:
        for option in self.options:
            if option.id == option_id:
                return option
        return None


class SubCategory(BaseModel):
    id: int
    name: str
    questions: List[Question] = Field(default_factory=list)

    class Config:
        frozen = True
        populate_by_name = True


class Category(BaseModel):
    id: int
    name: str
    order: int = 0
    sub_categories: List[SubCategory] = Field(default_factory=list, alias="subCategories")

    class Config:
        frozen = True
        populate_by_name = True


class SurveyTree(BaseModel):
    """
    The full questionnaire, categories sorted by `order`.

    Ties keep the order the service delivered them in.
    """
    categories: List[Category] = Field(default_factory=list)

    class Config:
        frozen = True

    @field_validator("categories")
    @classmethod
    def sort_by_order(cls, v: List[Category]) -> List[Category]:
        return sorted(v, key=lambda c: c.order)

    @model_validator(mode="after")
    def check_unique_ids(self) -> "SurveyTree":
        seen_categories = set()
        seen_subcategories = set()
        seen_questions = set()
        for category in self.categories:
            if category.id in seen_categories:
                raise ValueError(f"Duplicate category id {category.id}")
            seen_categories.add(category.id)
            for sub in category.sub_categories:
                if sub.id in seen_subcategories:
                    raise ValueError(f"Duplicate subcategory id {sub.id}")
                seen_subcategories.add(sub.id)
                for question in sub.questions:
                    if question.id in seen_questions:
                        raise ValueError(f"Duplicate question id {question.id}")
                    seen_questions.add(question.id)
        return self

    @classmethod
    def from_payload(cls, categories: Iterable[Dict[str, Any]]) -> "SurveyTree":
        """Build a tree from the service's category list."""
        return cls(categories=[Category.model_validate(c) for c in categories])

    @property
    def is_empty(self) -> bool:
        return not any(c.sub_categories for c in self.categories)

    def all_questions(self) -> List[Question]:
        return [
            q
            for c in self.categories
            for s in c.sub_categories
            for q in s.questions
        ]

    def find_question(self, question_id: int) -> Optional[Question]:
        for question in self.all_questions():
            if question.id == question_id:
                return question
        return None

    def find_subcategory(self, subcategory_id: int) -> Optional[SubCategory]:
        for category in self.categories:
            for sub in category.sub_categories:
                if sub.id == subcategory_id:
                    return sub
        return None

    def subcategory_ids(self) -> List[int]:
        """All subcategory ids in display order."""
        return [s.id for c in self.categories for s in c.sub_categories]


# =============================================================================
# SUBMISSION PAYLOAD
# =============================================================================

class SubmissionItem(BaseModel):
    """
    One answered question on the wire.

    Exactly one of response_text / selected_options is populated.
    """
    question_id: int = Field(alias="questionId")
    response_type: QuestionType = Field(alias="responseType")
    response_text: Optional[str] = Field(default=None, alias="responseText")
    selected_options: Optional[List[int]] = Field(default=None, alias="selectedOptions")

    class Config:
        frozen = True
        populate_by_name = True

    @model_validator(mode="after")
    def check_exactly_one(self) -> "SubmissionItem":
        if (self.response_text is None) == (self.selected_options is None):
            raise ValueError(
                f"Question {self.question_id}: exactly one of responseText/selectedOptions must be set"
            )
        return self


class SubmissionRequest(BaseModel):
    """Body posted to the submission service."""
    responses: List[SubmissionItem]

    class Config:
        frozen = True

    def to_wire(self) -> Dict[str, Any]:
        return self.model_dump(by_alias=True, mode="json")


class SubmissionReceipt(BaseModel):
    """Acknowledgement returned by the submission service."""
    accepted: bool = True
    submitted_count: int = 0
    body: Dict[str, Any] = Field(default_factory=dict)
    submitted_at: datetime = Field(default_factory=datetime.utcnow)
