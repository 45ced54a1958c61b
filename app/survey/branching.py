"""
Branch Filter

Computes the visible part of the questionnaire from the full tree and the
answers recorded so far. Two fixed rules, each confined to one category:

1. Gender rule (lifestyle category): the women's-health subcategory is shown
   only to female respondents, men's-health only to male respondents.
2. Symptom rule (symptoms category): beyond the main/additional symptom
   pages, only subcategories whose name mentions a selected main symptom
   are shown.

Both rules locate their targets by well-known names (`BranchMarkers`).
Whenever a name is missing or a rule would hide everything, the rule is
skipped: the wizard must stay navigable.

`visible_tree` is pure and is recomputed on every navigation step.
"""

import logging
import re
from dataclasses import dataclass
from typing import Dict, List, Mapping, Optional, Tuple, Union

from .models import (
    AnswerValue,
    Category,
    GenderEnum,
    Question,
    QuestionType,
    SubCategory,
    SurveyTree,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class BranchMarkers:
    """Well-known category/subcategory names the branch rules look for."""
    # Category markers match by case-insensitive containment ("3. Lifestyle")
    lifestyle_category: str = "lifestyle"
    symptoms_category: str = "symptoms"
    # Subcategory markers match the whole (trimmed, lowercased) name
    womens_health: str = "women's health"
    mens_health: str = "men's health"
    main_symptoms: str = "main symptoms"
    additional_symptoms: str = "additional symptoms"
    # Gender question detection and answer labels
    gender_keywords: Tuple[str, ...] = ("gender", "sex")
    female_labels: Tuple[str, ...] = ("female", "woman", "women", "f")
    male_labels: Tuple[str, ...] = ("male", "man", "men", "m")


DEFAULT_MARKERS = BranchMarkers()

# Names used by the Korean storefront survey
KOREAN_MARKERS = BranchMarkers(
    lifestyle_category="생활 습관",
    symptoms_category="증상·불편",
    womens_health="여성건강",
    mens_health="남성건강",
    main_symptoms="주요 증상",
    additional_symptoms="추가 증상",
    gender_keywords=("성별",),
    female_labels=("여성", "여자"),
    male_labels=("남성", "남자"),
)

MARKER_PRESETS: Dict[str, BranchMarkers] = {
    "en": DEFAULT_MARKERS,
    "ko": KOREAN_MARKERS,
}


def markers_for_locale(locale: Optional[str]) -> BranchMarkers:
    """Preset for `locale`; unknown locales fall back to the English names."""
    key = (locale or "en").strip().lower()
    if key not in MARKER_PRESETS:
        logger.warning(f"Unknown marker locale '{locale}', using 'en'")
        return DEFAULT_MARKERS
    return MARKER_PRESETS[key]


def _norm(text: str) -> str:
    return (text or "").strip().lower()


# =============================================================================
# LOOKUPS
# =============================================================================

def find_category(tree: SurveyTree, marker: str) -> Optional[Category]:
    """First category whose name contains `marker` (case-insensitive)."""
    needle = _norm(marker)
    if not needle:
        return None
    for category in tree.categories:
        if needle in _norm(category.name):
            return category
    return None


def find_named_subcategory(category: Category, name: str) -> Optional[SubCategory]:
    needle = _norm(name)
    for sub in category.sub_categories:
        if _norm(sub.name) == needle:
            return sub
    return None


def parse_gender(
    value: Union[GenderEnum, str, None],
    markers: BranchMarkers = DEFAULT_MARKERS,
) -> Optional[GenderEnum]:
    """Map a gender label ("female", "여성", GenderEnum.MALE, ...) to GenderEnum."""
    if value is None:
        return None
    if isinstance(value, GenderEnum):
        return value
    label = _norm(str(value))
    if label == GenderEnum.FEMALE.value or label in {_norm(x) for x in markers.female_labels}:
        return GenderEnum.FEMALE
    if label == GenderEnum.MALE.value or label in {_norm(x) for x in markers.male_labels}:
        return GenderEnum.MALE
    return None


def _mentions_keyword(text: str, keyword: str) -> bool:
    # Hangul keywords take particles ("성별을"), so they match by containment
    if not keyword.isascii():
        return keyword in text
    return re.search(rf"\b{re.escape(keyword)}\b", text) is not None


def find_gender_question(tree: SurveyTree, markers: BranchMarkers) -> Optional[Question]:
    """
    The question asking for the respondent's gender.

    First SINGLE_CHOICE or TEXT question naming a gender keyword as a whole
    word; choice questions qualify only if one of their options reads as a
    gender, so "Are you sexually active?" style questions are passed over.
    """
    keywords = [_norm(k) for k in markers.gender_keywords if _norm(k)]
    for question in tree.all_questions():
        if question.type == QuestionType.MULTIPLE_CHOICE:
            continue
        text = _norm(question.text)
        if not any(_mentions_keyword(text, k) for k in keywords):
            continue
        if question.type == QuestionType.SINGLE_CHOICE and not any(
            parse_gender(o.text, markers) for o in question.options
        ):
            continue
        return question
    return None


def resolve_gender(
    tree: SurveyTree,
    answers: Mapping[int, AnswerValue],
    markers: BranchMarkers = DEFAULT_MARKERS,
    gender_on_file: Union[GenderEnum, str, None] = None,
) -> Optional[GenderEnum]:
    """
    Gender used by the lifestyle rule.

    An answer given in this session wins over the gender on file.
    """
    question = find_gender_question(tree, markers)
    if question is not None:
        value = answers.get(question.id)
        label = None
        if question.type == QuestionType.SINGLE_CHOICE and isinstance(value, int):
            option = question.option_by_id(value)
            label = option.text if option else None
        elif question.type == QuestionType.TEXT and isinstance(value, str):
            label = value
        gender = parse_gender(label, markers)
        if gender is not None:
            return gender
    return parse_gender(gender_on_file, markers)


def main_symptom_question(category: Category, markers: BranchMarkers) -> Optional[Question]:
    """The canonical multi-choice question on the main-symptoms page."""
    page = find_named_subcategory(category, markers.main_symptoms)
    if page is None or not page.questions:
        return None
    for question in page.questions:
        if question.type == QuestionType.MULTIPLE_CHOICE:
            return question
    return page.questions[0]


def selected_symptom_labels(
    category: Category,
    answers: Mapping[int, AnswerValue],
    markers: BranchMarkers = DEFAULT_MARKERS,
) -> List[str]:
    """Lowercased labels of the main symptoms chosen so far, in option order."""
    question = main_symptom_question(category, markers)
    if question is None:
        return []
    value = answers.get(question.id)
    if isinstance(value, frozenset):
        chosen = value
    elif isinstance(value, int) and not isinstance(value, bool):
        chosen = frozenset([value])
    else:
        return []
    return [_norm(o.text) for o in question.options if o.id in chosen and _norm(o.text)]


# =============================================================================
# RULES
# =============================================================================

def apply_gender_rule(
    category: Category,
    gender: Optional[GenderEnum],
    markers: BranchMarkers = DEFAULT_MARKERS,
) -> Category:
    if gender is None:
        return category

    womens = _norm(markers.womens_health)
    mens = _norm(markers.mens_health)

    kept = []
    for sub in category.sub_categories:
        name = _norm(sub.name)
        if name == womens:
            if gender == GenderEnum.FEMALE:
                kept.append(sub)
        elif name == mens:
            if gender == GenderEnum.MALE:
                kept.append(sub)
        else:
            kept.append(sub)

    if len(kept) == len(category.sub_categories):
        return category
    return category.model_copy(update={"sub_categories": kept})


def apply_symptom_rule(
    category: Category,
    answers: Mapping[int, AnswerValue],
    markers: BranchMarkers = DEFAULT_MARKERS,
) -> Category:
    labels = selected_symptom_labels(category, answers, markers)
    if not labels:
        return category

    pinned = {_norm(markers.main_symptoms), _norm(markers.additional_symptoms)}

    kept = []
    matched = 0
    for sub in category.sub_categories:
        name = _norm(sub.name)
        if name in pinned:
            kept.append(sub)
        elif any(label in name for label in labels):
            kept.append(sub)
            matched += 1

    # Nothing matched a selected symptom: show the whole category
    if matched == 0 or not kept:
        logger.debug(
            f"Symptom filter matched nothing in '{category.name}' for {labels}, showing all"
        )
        return category
    if len(kept) == len(category.sub_categories):
        return category
    return category.model_copy(update={"sub_categories": kept})


def visible_tree(
    tree: SurveyTree,
    answers: Mapping[int, AnswerValue],
    *,
    markers: BranchMarkers = DEFAULT_MARKERS,
    gender_on_file: Union[GenderEnum, str, None] = None,
) -> SurveyTree:
    """
    The subset of `tree` eligible for display given `answers`.

    Deterministic and side-effect free: the same inputs always give an
    equal tree. Categories are never removed here, only narrowed.
    """
    lifestyle = find_category(tree, markers.lifestyle_category)
    symptoms = find_category(tree, markers.symptoms_category)
    if lifestyle is None:
        logger.debug(f"No category matching '{markers.lifestyle_category}', gender rule disabled")
    if symptoms is None:
        logger.debug(f"No category matching '{markers.symptoms_category}', symptom rule disabled")

    gender = resolve_gender(tree, answers, markers, gender_on_file) if lifestyle else None

    categories = []
    changed = False
    for category in tree.categories:
        filtered = category
        if lifestyle is not None and category.id == lifestyle.id:
            filtered = apply_gender_rule(filtered, gender, markers)
        if symptoms is not None and category.id == symptoms.id:
            filtered = apply_symptom_rule(filtered, answers, markers)
        changed = changed or filtered is not category
        categories.append(filtered)

    if not changed:
        return tree
    return tree.model_copy(update={"categories": categories})
