import random
from datetime import date

import pytest

from backend.core.analysis_agent import PerformanceAnalysisAgent
from backend.core.question_agent import QuestionAgent
from backend.core.quiz_session import QuizSession
from backend.core.storage import InMemoryStorage
from backend.models.schemas import AnalysisDraft, QuestionDraft, QuestionSettings

TODAY = date(2024, 5, 10)


def make_draft(question="What is 2 + 3?", answer="5", options=None, explanation="Add 2 and 3 to get 5."):
    return QuestionDraft(
        question=question,
        answer=answer,
        options=options or ["3", "4", "5", "6"],
        explanation=explanation,
    )


def make_analysis_draft(**overrides):
    fields = {
        "summary": "Solid algebra, shaky calculus.",
        "strengths": ["Easy Algebra"],
        "weaknesses": ["Hard Calculus"],
        "suggestions": ["Practice derivatives of products."],
        "suggested_next_type": "calculus",
        "suggested_next_difficulty": "medium",
    }
    fields.update(overrides)
    return AnalysisDraft(**fields)


class FakeLLM:
    """Stands in for GeminiLLMWrapper: queued responses first, then drafts from `default`."""

    def __init__(self, responses=None, default=None):
        self.responses = list(responses or [])
        self.default = default
        self.calls = []

    async def generate_structured(self, messages, schema, **kwargs):
        self.calls.append((messages, schema))
        if self.responses:
            return self.responses.pop(0)
        if self.default is not None:
            return self.default(schema)
        return None


def default_response(schema):
    if schema is QuestionDraft:
        return make_draft()
    return make_analysis_draft()


@pytest.fixture
def llm():
    return FakeLLM(default=default_response)


@pytest.fixture
def storage():
    return InMemoryStorage()


@pytest.fixture
def session(llm, storage):
    quiz_session = QuizSession(
        QuestionAgent(llm, rng=random.Random(7)),
        PerformanceAnalysisAgent(llm),
        storage,
        today=lambda: TODAY,
    )
    quiz_session.hydrate()
    return quiz_session


@pytest.fixture
def algebra_easy():
    return QuestionSettings(difficulty="easy", type="algebra")
