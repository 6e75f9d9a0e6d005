from pydantic import BaseModel, ConfigDict, Field
from typing import List, Optional, Dict, Any, Literal
from datetime import date, datetime, timezone

from backend.core.errors import SubmissionRejected

Difficulty = Literal["easy", "medium", "hard"]
QuestionType = Literal["algebra", "calculus", "geometry", "trigonometry"]
Feedback = Literal["idle", "correct", "incorrect"]


class QuestionSettings(BaseModel):
    """Settings a question is generated from. Equality is field-wise, optional fields included."""
    model_config = ConfigDict(frozen=True)

    difficulty: Difficulty = "easy"
    type: QuestionType = "algebra"
    student_class: Optional[str] = None
    exam_type: Optional[str] = None

    @classmethod
    def from_form(cls, form: "SettingsForm", none_value: str) -> "QuestionSettings":
        """Build settings from form values, turning the "None" sentinel into a real None"""
        def clean(value: Optional[str]) -> Optional[str]:
            if value is None or value == none_value or not value.strip():
                return None
            return value.strip()

        return cls(
            difficulty=form.difficulty,
            type=form.type,
            student_class=clean(form.student_class),
            exam_type=clean(form.exam_type),
        )


class QuestionDraft(BaseModel):
    """Structured output requested from the model for a single question"""
    question: str = Field(description="The math question.")
    answer: str = Field(
        description="The correct answer. The numerical value or simplified expression ONLY "
                    "(e.g. '5', 'x=2', 'sin(pi/4)'), no extra text."
    )
    options: List[str] = Field(
        min_length=4,
        max_length=4,
        description="Exactly 4 multiple-choice options. One of them MUST be the correct answer; "
                    "the others are plausible distractors.",
    )
    explanation: str = Field(description="A step-by-step explanation of how to arrive at the correct answer.")


class GeneratedQuestion(BaseModel):
    model_config = ConfigDict(frozen=True)

    question: str
    answer: str
    options: List[str] = Field(min_length=4, max_length=4)
    explanation: str


def utc_timestamp() -> str:
    return datetime.now(timezone.utc).isoformat()


class Attempt(BaseModel):
    """One displayed question plus the user's eventual answer"""
    settings: QuestionSettings
    question: GeneratedQuestion
    user_answer: Optional[str] = None
    is_correct: Optional[bool] = None
    timestamp: str = Field(default_factory=utc_timestamp)

    @property
    def is_answered(self) -> bool:
        return self.user_answer is not None

    @property
    def feedback(self) -> Feedback:
        if self.is_correct is None:
            return "idle"
        return "correct" if self.is_correct else "incorrect"

    def record_answer(self, user_answer: str, is_correct: bool) -> None:
        if self.is_answered:
            raise SubmissionRejected("This question has already been answered")
        self.user_answer = user_answer
        self.is_correct = is_correct


class UserProfile(BaseModel):
    last_active_date: Optional[date] = None
    streak: int = 0
    questions_answered: int = 0


class ActivityRecord(BaseModel):
    question: str
    difficulty: Difficulty
    type: QuestionType
    user_answer: Optional[str] = None
    correct_answer: str
    is_correct: bool
    timestamp: str


class AnalysisDraft(BaseModel):
    """Structured output requested from the model for a performance analysis"""
    summary: str = Field(description="A brief summary of the user's overall performance.")
    strengths: List[str] = Field(default_factory=list, description="Areas (types/difficulties) where the user performs well.")
    weaknesses: List[str] = Field(default_factory=list, description="Areas (types/difficulties) where the user struggles.")
    suggestions: List[str] = Field(default_factory=list, description="Actionable suggestions for improvement or next steps.")
    suggested_next_type: Optional[QuestionType] = Field(
        default=None, description="Suggested type for the next question based on performance."
    )
    suggested_next_difficulty: Optional[Difficulty] = Field(
        default=None, description="Suggested difficulty for the next question based on performance."
    )


class AnalysisResult(BaseModel):
    summary: str
    strengths: List[str] = []
    weaknesses: List[str] = []
    suggestions: List[str] = []
    suggested_next_type: Optional[QuestionType] = None
    suggested_next_difficulty: Optional[Difficulty] = None


# API models

class SettingsForm(BaseModel):
    """Settings as submitted by the UI form; optional fields may carry the "None" sentinel"""
    difficulty: Difficulty = "easy"
    type: QuestionType = "algebra"
    student_class: Optional[str] = None
    exam_type: Optional[str] = None


class AnswerRequest(BaseModel):
    user_answer: Optional[str] = None


class AnalysisRequest(BaseModel):
    desired_focus: Optional[str] = None


class AttemptView(BaseModel):
    """An attempt as shown to the user; answer and explanation stay hidden until answered"""
    index: int
    question: str
    options: List[str]
    settings: QuestionSettings
    timestamp: str
    user_answer: Optional[str] = None
    is_correct: Optional[bool] = None
    feedback: Feedback = "idle"
    answer: Optional[str] = None
    explanation: Optional[str] = None

    @classmethod
    def from_attempt(cls, index: int, attempt: Attempt) -> "AttemptView":
        revealed = attempt.is_answered
        return cls(
            index=index,
            question=attempt.question.question,
            options=list(attempt.question.options),
            settings=attempt.settings,
            timestamp=attempt.timestamp,
            user_answer=attempt.user_answer,
            is_correct=attempt.is_correct,
            feedback=attempt.feedback,
            answer=attempt.question.answer if revealed else None,
            explanation=attempt.question.explanation if revealed else None,
        )


class SessionView(BaseModel):
    current_attempt: Optional[AttemptView] = None
    history_length: int
    current_index: int
    is_viewing_history: bool
    can_generate_new: bool
    can_check_answer: bool
    is_loading: bool
    is_analyzing: bool
    feedback: Feedback
    settings: QuestionSettings
    profile: UserProfile
    analysis: Optional[AnalysisResult] = None
    notices: List[str] = []


class HealthResponse(BaseModel):
    status: str
    version: str
    details: Optional[Dict[str, Any]] = None
