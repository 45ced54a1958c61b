"""
Branch Filter Tests

Tests validate:
- Gender rule on the lifestyle category
- Symptom rule on the symptoms category, including fail-open
- Gender resolution (answer over on-file gender)
- Missing well-known names degrade to no filtering
- Determinism / idempotency
- Korean marker preset
"""

import pytest

from app.survey.branching import (
    DEFAULT_MARKERS,
    KOREAN_MARKERS,
    find_gender_question,
    markers_for_locale,
    parse_gender,
    resolve_gender,
    selected_symptom_labels,
    visible_tree,
)
from app.survey.models import GenderEnum, SurveyTree
from app.survey.responses import ResponseStore

from conftest import FATIGUE, FEMALE, HEADACHE, INSOMNIA, MALE


def sub_names(tree: SurveyTree, category_id: int):
    for category in tree.categories:
        if category.id == category_id:
            return [s.name for s in category.sub_categories]
    raise KeyError(category_id)


# ============================================================================
# Gender Rule
# ============================================================================

class TestGenderRule:

    def test_no_gender_shows_everything(self, tree):
        view = visible_tree(tree, ResponseStore())
        assert sub_names(view, 3) == ["Diet", "Women's Health", "Men's Health", "Exercise"]

    def test_female_sees_womens_health_only(self, tree):
        store = ResponseStore()
        store.set(101, FEMALE)
        view = visible_tree(tree, store)
        assert "Women's Health" in sub_names(view, 3)
        assert "Men's Health" not in sub_names(view, 3)
        assert sub_names(view, 3) == ["Diet", "Women's Health", "Exercise"]

    def test_male_sees_mens_health_only(self, tree):
        store = ResponseStore()
        store.set(101, MALE)
        view = visible_tree(tree, store)
        assert sub_names(view, 3) == ["Diet", "Men's Health", "Exercise"]

    def test_gender_on_file_used_without_answer(self, tree):
        view = visible_tree(tree, ResponseStore(), gender_on_file="female")
        assert sub_names(view, 3) == ["Diet", "Women's Health", "Exercise"]

    def test_answer_wins_over_gender_on_file(self, tree):
        store = ResponseStore()
        store.set(101, MALE)
        view = visible_tree(tree, store, gender_on_file=GenderEnum.FEMALE)
        assert sub_names(view, 3) == ["Diet", "Men's Health", "Exercise"]

    def test_other_categories_untouched(self, tree):
        store = ResponseStore()
        store.set(101, MALE)
        view = visible_tree(tree, store)
        assert sub_names(view, 1) == ["Profile"]
        assert len(sub_names(view, 2)) == 5


# ============================================================================
# Symptom Rule
# ============================================================================

class TestSymptomRule:

    def test_no_selection_shows_everything(self, tree):
        view = visible_tree(tree, ResponseStore())
        assert len(sub_names(view, 2)) == 5

    def test_headache_selected(self, tree):
        store = ResponseStore()
        store.set(200, [HEADACHE])
        view = visible_tree(tree, store)
        names = sub_names(view, 2)
        assert "Headache Relief" in names
        assert "Joint Care" not in names
        assert names == ["Main Symptoms", "Headache Relief", "Additional Symptoms"]

    def test_several_symptoms_keep_tree_order(self, tree):
        store = ResponseStore()
        store.set(200, [FATIGUE, HEADACHE])
        view = visible_tree(tree, store)
        assert sub_names(view, 2) == [
            "Main Symptoms", "Headache Relief", "Fatigue Management", "Additional Symptoms",
        ]

    def test_fail_open_when_nothing_matches(self, tree):
        store = ResponseStore()
        store.set(200, [INSOMNIA])
        view = visible_tree(tree, store)
        assert sub_names(view, 2) == [
            "Main Symptoms", "Headache Relief", "Fatigue Management", "Joint Care", "Additional Symptoms",
        ]

    def test_match_is_case_insensitive_substring(self, tree_payload):
        symptoms = next(c for c in tree_payload if c["id"] == 2)
        symptoms["subCategories"][2]["name"] = "CHRONIC FATIGUE SUPPORT"
        tree = SurveyTree.from_payload(tree_payload)
        store = ResponseStore()
        store.set(200, [FATIGUE])
        assert sub_names(visible_tree(tree, store), 2) == [
            "Main Symptoms", "CHRONIC FATIGUE SUPPORT", "Additional Symptoms",
        ]

    def test_selected_labels(self, tree):
        store = ResponseStore()
        store.set(200, [INSOMNIA, HEADACHE])
        assert selected_symptom_labels(tree.categories[1], store) == ["headache", "insomnia"]

    def test_unknown_option_ids_ignored(self, tree):
        store = ResponseStore()
        store.set(200, [424242])
        assert len(sub_names(visible_tree(tree, store), 2)) == 5


# ============================================================================
# Composition, Determinism, Configuration Errors
# ============================================================================

class TestVisibleTree:

    def test_rules_compose(self, tree):
        store = ResponseStore()
        store.set(101, FEMALE)
        store.set(200, [HEADACHE])
        view = visible_tree(tree, store)
        assert sub_names(view, 2) == ["Main Symptoms", "Headache Relief", "Additional Symptoms"]
        assert sub_names(view, 3) == ["Diet", "Women's Health", "Exercise"]

    def test_deterministic_and_idempotent(self, tree):
        store = ResponseStore()
        store.set(101, MALE)
        store.set(200, [FATIGUE])
        first = visible_tree(tree, store)
        second = visible_tree(tree, store)
        assert first == second
        assert visible_tree(first, store) == first

    def test_full_tree_not_mutated(self, tree):
        before = tree.model_dump()
        store = ResponseStore()
        store.set(101, MALE)
        store.set(200, [HEADACHE])
        visible_tree(tree, store)
        assert tree.model_dump() == before

    def test_unfiltered_returns_same_tree(self, tree):
        assert visible_tree(tree, ResponseStore()) is tree

    def test_missing_marker_names_disable_rules(self, tree_payload):
        for category in tree_payload:
            category["name"] = f"Section {category['id']}"
        tree = SurveyTree.from_payload(tree_payload)
        store = ResponseStore()
        store.set(101, MALE)
        store.set(200, [HEADACHE])
        assert visible_tree(tree, store) == tree

    def test_missing_main_symptoms_page_disables_symptom_rule(self, tree_payload):
        symptoms = next(c for c in tree_payload if c["id"] == 2)
        symptoms["subCategories"][0]["name"] = "Primary complaints"
        tree = SurveyTree.from_payload(tree_payload)
        store = ResponseStore()
        store.set(200, [HEADACHE])
        assert len(sub_names(visible_tree(tree, store), 2)) == 5


# ============================================================================
# Gender Parsing and Marker Presets
# ============================================================================

class TestGenderResolution:

    @pytest.mark.parametrize("raw,expected", [
        ("female", GenderEnum.FEMALE),
        (" Female ", GenderEnum.FEMALE),
        ("woman", GenderEnum.FEMALE),
        ("MALE", GenderEnum.MALE),
        (GenderEnum.MALE, GenderEnum.MALE),
        ("other", None),
        (None, None),
        ("", None),
    ])
    def test_parse_gender(self, raw, expected):
        assert parse_gender(raw) == expected

    def test_korean_labels(self):
        assert parse_gender("여성", KOREAN_MARKERS) == GenderEnum.FEMALE
        assert parse_gender("남성", KOREAN_MARKERS) == GenderEnum.MALE
        assert parse_gender("여성", DEFAULT_MARKERS) is None

    def test_text_gender_answer(self, tree_payload):
        profile = tree_payload[1]["subCategories"][0]
        profile["questions"][1] = {
            "id": 101, "questionText": "Your gender", "questionType": "TEXT", "options": [],
        }
        tree = SurveyTree.from_payload(tree_payload)
        store = ResponseStore()
        store.set(101, "female")
        assert resolve_gender(tree, store) == GenderEnum.FEMALE

    def test_unrecognized_answer_falls_back_to_file(self, tree_payload):
        profile = tree_payload[1]["subCategories"][0]
        profile["questions"][1] = {
            "id": 101, "questionText": "Your gender", "questionType": "TEXT", "options": [],
        }
        tree = SurveyTree.from_payload(tree_payload)
        store = ResponseStore()
        store.set(101, "prefer not to say")
        assert resolve_gender(tree, store, gender_on_file="male") == GenderEnum.MALE

    def test_decoy_question_before_gender_question(self, tree_payload):
        profile = tree_payload[1]["subCategories"][0]
        profile["questions"].insert(0, {
            "id": 99, "questionText": "Are you sexually active?", "questionType": "SINGLE_CHOICE",
            "options": [{"id": 9901, "optionText": "Yes"}, {"id": 9902, "optionText": "No"}],
        })
        tree = SurveyTree.from_payload(tree_payload)
        store = ResponseStore()
        store.set(99, 9901)
        store.set(101, FEMALE)

        assert find_gender_question(tree, DEFAULT_MARKERS).id == 101
        names = sub_names(visible_tree(tree, store), 3)
        assert "Men's Health" not in names
        assert "Women's Health" in names

    def test_keyword_question_without_gender_options_skipped(self, tree_payload):
        profile = tree_payload[1]["subCategories"][0]
        profile["questions"].insert(0, {
            "id": 99, "questionText": "Sex education received at school?", "questionType": "SINGLE_CHOICE",
            "options": [{"id": 9901, "optionText": "Yes"}, {"id": 9902, "optionText": "No"}],
        })
        tree = SurveyTree.from_payload(tree_payload)
        assert find_gender_question(tree, DEFAULT_MARKERS).id == 101

    def test_korean_keyword_with_particle(self):
        tree = TestKoreanSurvey().make_tree()
        assert find_gender_question(tree, KOREAN_MARKERS).id == 100

    def test_markers_for_locale(self):
        assert markers_for_locale("ko") is KOREAN_MARKERS
        assert markers_for_locale("EN") is DEFAULT_MARKERS
        assert markers_for_locale(None) is DEFAULT_MARKERS
        assert markers_for_locale("fr") is DEFAULT_MARKERS


class TestKoreanSurvey:

    def make_tree(self) -> SurveyTree:
        return SurveyTree.from_payload([
            {"id": 1, "name": "1. 기본 정보", "order": 1, "subCategories": [
                {"id": 10, "name": "기본", "questions": [
                    {"id": 100, "questionText": "성별을 선택하세요", "questionType": "SINGLE_CHOICE",
                     "options": [{"id": 1, "optionText": "여성"}, {"id": 2, "optionText": "남성"}]},
                ]},
            ]},
            {"id": 2, "name": "2. 증상·불편", "order": 2, "subCategories": [
                {"id": 20, "name": "주요 증상", "questions": [
                    {"id": 200, "questionText": "주요 증상을 선택하세요", "questionType": "MULTIPLE_CHOICE",
                     "options": [{"id": 11, "optionText": "두통"}, {"id": 12, "optionText": "피로"}]},
                ]},
                {"id": 21, "name": "두통 관리", "questions": []},
                {"id": 22, "name": "피로 관리", "questions": []},
                {"id": 23, "name": "추가 증상", "questions": []},
            ]},
            {"id": 3, "name": "3. 생활 습관", "order": 3, "subCategories": [
                {"id": 30, "name": "식습관", "questions": []},
                {"id": 31, "name": "여성건강", "questions": []},
                {"id": 32, "name": "남성건강", "questions": []},
            ]},
        ])

    def test_korean_markers_filter(self):
        tree = self.make_tree()
        store = ResponseStore()
        store.set(100, 2)
        store.set(200, [11])
        view = visible_tree(tree, store, markers=KOREAN_MARKERS)
        assert sub_names(view, 2) == ["주요 증상", "두통 관리", "추가 증상"]
        assert sub_names(view, 3) == ["식습관", "남성건강"]

    def test_english_markers_do_not_match_korean_tree(self):
        tree = self.make_tree()
        store = ResponseStore()
        store.set(100, 2)
        store.set(200, [11])
        assert visible_tree(tree, store) == tree
