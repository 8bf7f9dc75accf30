import os
import sys

import matplotlib
matplotlib.use("Agg")

import pandas as pd
import pytest

sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), '..')))

SUBJECTS = ['python', 'java', 'cooking', 'travel', 'music', 'finance', 'fitness', 'gardening', 'history', 'physics']
QUESTION_TEMPLATES = [
    "How do I learn {} quickly?",
    "What are the best resources to learn {}?",
    "How can I improve my {} skills?",
]
DUPLICATE_TEMPLATES = [
    "What is the fastest way to learn {}?",
    "Which resources help beginners learn {} quickly?",
]
UNRELATED_TEMPLATES = [
    "Why is {} so popular?",
    "Is {} expensive to start?",
]
NULL_QUESTION_ROWS = (5, 50)


def pytest_configure(config):
    config.addinivalue_line("markers", "slow: long running end-to-end tests")


def make_question_pairs(n_rows=100):
    """Deterministic question pairs: every third row (34 of 100) is a duplicate."""
    rows = []
    for i in range(n_rows):
        subject = SUBJECTS[i % len(SUBJECTS)]
        question1 = QUESTION_TEMPLATES[i % len(QUESTION_TEMPLATES)].format(subject)
        if i % 10 == 7:
            question1 = "  " + question1.replace(" ", "\t ", 1) + "!!  "
        is_duplicate = i % 3 == 0
        if is_duplicate:
            question2 = DUPLICATE_TEMPLATES[i % 2].format(subject)
        else:
            other = SUBJECTS[(i * 7 + 3) % len(SUBJECTS)]
            question2 = UNRELATED_TEMPLATES[i % 2].format(other)
        rows.append({'id': i, 'question1': question1, 'question2': question2, 'isDuplicate': is_duplicate})
    df = pd.DataFrame(rows)
    df['question2'] = df['question2'].astype(object)
    for i in NULL_QUESTION_ROWS:
        if i < n_rows:
            df.at[i, 'question2'] = None
    return df


@pytest.fixture
def question_pairs():
    return make_question_pairs()


@pytest.fixture
def negative_question_pairs():
    df = make_question_pairs(60)
    df['isDuplicate'] = False
    return df
