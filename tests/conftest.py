"""
Shared survey fixtures.

The sample questionnaire mirrors the storefront survey:

1. Basic Information   Profile (name, gender)
2. Symptoms            Main Symptoms, Headache Relief, Fatigue Management,
                       Joint Care, Additional Symptoms
3. Lifestyle           Diet, Women's Health, Men's Health, Exercise
"""

import copy

import pytest

from app.survey.models import QuestionType, SurveyTree


SAMPLE_PAYLOAD = [
    {
        "id": 3,
        "name": "3. Lifestyle",
        "order": 3,
        "subCategories": [
            {"id": 30, "name": "Diet", "questions": [
                {"id": 300, "questionText": "How would you describe your diet?", "questionType": "SINGLE_CHOICE",
                 "options": [{"id": 3001, "optionText": "Balanced"}, {"id": 3002, "optionText": "Irregular"}]},
            ]},
            {"id": 31, "name": "Women's Health", "questions": [
                {"id": 310, "questionText": "Are you pregnant or planning to be?", "questionType": "SINGLE_CHOICE",
                 "options": [{"id": 3101, "optionText": "Yes"}, {"id": 3102, "optionText": "No"}]},
            ]},
            {"id": 32, "name": "Men's Health", "questions": [
                {"id": 320, "questionText": "Do you have prostate concerns?", "questionType": "SINGLE_CHOICE",
                 "options": [{"id": 3201, "optionText": "Yes"}, {"id": 3202, "optionText": "No"}]},
            ]},
            {"id": 33, "name": "Exercise", "questions": [
                {"id": 330, "questionText": "How do you usually exercise?", "questionType": "TEXT", "options": []},
            ]},
        ],
    },
    {
        "id": 1,
        "name": "1. Basic Information",
        "order": 1,
        "subCategories": [
            {"id": 10, "name": "Profile", "questions": [
                {"id": 100, "questionText": "What is your name?", "questionType": "TEXT", "options": []},
                {"id": 101, "questionText": "What is your gender?", "questionType": "SINGLE_CHOICE",
                 "options": [{"id": 1001, "optionText": "Female"}, {"id": 1002, "optionText": "Male"}]},
            ]},
        ],
    },
    {
        "id": 2,
        "name": "2. Symptoms",
        "order": 2,
        "subCategories": [
            {"id": 20, "name": "Main Symptoms", "questions": [
                {"id": 200, "questionText": "Which symptoms bother you most?", "questionType": "MULTIPLE_CHOICE",
                 "options": [
                     {"id": 2001, "optionText": "Headache"},
                     {"id": 2002, "optionText": "Fatigue"},
                     {"id": 2003, "optionText": "Insomnia"},
                 ]},
            ]},
            {"id": 21, "name": "Headache Relief", "questions": [
                {"id": 210, "questionText": "How often do headaches occur?", "questionType": "SINGLE_CHOICE",
                 "options": [{"id": 2101, "optionText": "Daily"}, {"id": 2102, "optionText": "Weekly"}]},
            ]},
            {"id": 22, "name": "Fatigue Management", "questions": [
                {"id": 220, "questionText": "Describe your fatigue", "questionType": "TEXT", "options": []},
            ]},
            {"id": 23, "name": "Joint Care", "questions": [
                {"id": 230, "questionText": "Do your joints ache?", "questionType": "SINGLE_CHOICE",
                 "options": [{"id": 2301, "optionText": "Yes"}, {"id": 2302, "optionText": "No"}]},
            ]},
            {"id": 24, "name": "Additional Symptoms", "questions": [
                {"id": 240, "questionText": "Anything else we should know?", "questionType": "TEXT", "options": []},
            ]},
        ],
    },
]

# Option ids used throughout the tests
FEMALE, MALE = 1001, 1002
HEADACHE, FATIGUE, INSOMNIA = 2001, 2002, 2003


def answer_questions(store, questions):
    """Give every question its first option (or a short text)."""
    for q in questions:
        if q.type == QuestionType.TEXT:
            store.set(q.id, "ok")
        elif q.type == QuestionType.SINGLE_CHOICE:
            store.set(q.id, q.options[0].id)
        else:
            store.set(q.id, {q.options[0].id})


@pytest.fixture
def tree_payload():
    return copy.deepcopy(SAMPLE_PAYLOAD)


@pytest.fixture
def tree(tree_payload):
    return SurveyTree.from_payload(tree_payload)
