import asyncio
import logging
from dataclasses import dataclass
from datetime import date
from typing import Callable, List, Optional

from pydantic import TypeAdapter, ValidationError as PydanticValidationError

from .analysis_agent import PerformanceAnalysisAgent
from .answers import answers_equivalent
from .errors import HydrationError, SubmissionRejected, ValidationError
from .question_agent import QuestionAgent
from .storage import KeyValueStorage
from .streak import decay_streak, register_answer
from backend.config import Config
from backend.models.schemas import (
    ActivityRecord,
    AnalysisResult,
    Attempt,
    Feedback,
    GeneratedQuestion,
    QuestionSettings,
    UserProfile,
)

logger = logging.getLogger(__name__)

_history_adapter = TypeAdapter(List[Attempt])


@dataclass
class PreloadedQuestion:
    settings: QuestionSettings
    question: GeneratedQuestion


class QuizSession:
    """
    Quiz state for one user: attempt history, history cursor, profile and preload cache.
    - Built at startup and hydrated once from storage
    - Mutated only through generate/submit/navigate/analyze
    - Flushes history and profile to storage after every change
    """

    def __init__(
        self,
        question_agent: QuestionAgent,
        analysis_agent: PerformanceAnalysisAgent,
        storage: KeyValueStorage,
        today: Callable[[], date] = date.today,
    ):
        self.question_agent = question_agent
        self.analysis_agent = analysis_agent
        self.storage = storage
        self.today = today

        self.history: List[Attempt] = []
        self.current_index: int = -1
        self.profile = UserProfile()
        self.settings = QuestionSettings()
        self.analysis: Optional[AnalysisResult] = None
        self.hydration_errors: List[str] = []

        self.is_loading = False
        self.is_analyzing = False
        self.is_hydrated = False

        self._is_preloading = False
        self._preloaded: Optional[PreloadedQuestion] = None
        self._preload_task: Optional[asyncio.Task] = None

    # --- Derived state ---

    @property
    def current_attempt(self) -> Optional[Attempt]:
        if 0 <= self.current_index < len(self.history):
            return self.history[self.current_index]
        return None

    @property
    def latest_attempt(self) -> Optional[Attempt]:
        return self.history[-1] if self.history else None

    @property
    def is_viewing_history(self) -> bool:
        return 0 <= self.current_index < len(self.history) - 1

    @property
    def feedback(self) -> Feedback:
        attempt = self.current_attempt
        return attempt.feedback if attempt else "idle"

    @property
    def can_generate_new(self) -> bool:
        return not self.is_loading and not self.is_viewing_history

    @property
    def can_check_answer(self) -> bool:
        attempt = self.current_attempt
        return (
            not self.is_loading
            and attempt is not None
            and not attempt.is_answered
            and not self.is_viewing_history
        )

    @property
    def is_preloading(self) -> bool:
        return self._is_preloading

    @property
    def preloaded(self) -> Optional[PreloadedQuestion]:
        return self._preloaded

    # --- Persistence ---

    def hydrate(self) -> None:
        """Load profile and history once. Bad data is logged and replaced by defaults."""
        self.hydration_errors = []
        stored_profile = self._load_profile()
        self.profile = decay_streak(stored_profile, self.today())
        self.history = self._load_history()
        self.current_index = len(self.history) - 1
        if self.latest_attempt:
            self.settings = self.latest_attempt.settings
        self.is_hydrated = True
        logger.info(
            f"Session hydrated: {len(self.history)} attempts, streak {self.profile.streak}"
        )
        if self.profile != stored_profile:
            self._persist()

    def _load_profile(self) -> UserProfile:
        try:
            raw = self.storage.get_item(Config.PROFILE_STORAGE_KEY)
            if raw is None:
                return UserProfile()
            try:
                return UserProfile.model_validate_json(raw)
            except PydanticValidationError as e:
                raise HydrationError(f"Stored user profile is malformed: {e}") from e
        except HydrationError as e:
            logger.warning(f"Falling back to a new profile: {e}")
            self.hydration_errors.append("Could not load your saved profile. Starting fresh.")
            return UserProfile()

    def _load_history(self) -> List[Attempt]:
        try:
            raw = self.storage.get_item(Config.HISTORY_STORAGE_KEY)
            if raw is None:
                return []
            try:
                return _history_adapter.validate_json(raw)
            except PydanticValidationError as e:
                raise HydrationError(f"Stored history is malformed: {e}") from e
        except HydrationError as e:
            logger.warning(f"Falling back to an empty history: {e}")
            self.hydration_errors.append("Could not load your question history. Starting fresh.")
            return []

    def _persist(self) -> None:
        if not self.is_hydrated:
            return
        saved_profile = self.storage.set_item(Config.PROFILE_STORAGE_KEY, self.profile.model_dump_json())
        saved_history = self.storage.set_item(
            Config.HISTORY_STORAGE_KEY, _history_adapter.dump_json(self.history).decode("utf-8")
        )
        if not (saved_profile and saved_history):
            logger.warning("Session state could not be fully saved")

    # --- Transitions ---

    def update_settings(self, settings: QuestionSettings) -> None:
        self.settings = settings
        if self._preloaded and self._preloaded.settings != settings:
            logger.info("Settings changed, discarding preloaded question")
            self._preloaded = None

    async def generate_question(self, settings: Optional[QuestionSettings] = None) -> Attempt:
        """
        Append a new attempt for `settings` and make it current.

        A finished preload for the same settings is consumed instead of calling the model.
        GenerationFailure propagates and leaves the session untouched.
        """
        settings = settings or self.settings
        self.update_settings(settings)
        self.analysis = None

        question = self._take_preloaded(settings)
        if question is None:
            self.is_loading = True
            try:
                question = await self.question_agent.generate(settings)
            finally:
                self.is_loading = False

        attempt = Attempt(settings=settings, question=question)
        self.history.append(attempt)
        self.current_index = len(self.history) - 1
        self._persist()
        return attempt

    def _take_preloaded(self, settings: QuestionSettings) -> Optional[GeneratedQuestion]:
        preloaded, self._preloaded = self._preloaded, None
        if preloaded and preloaded.settings == settings:
            logger.info("Using preloaded question")
            return preloaded.question
        return None

    async def submit_answer(self, user_answer: Optional[str]) -> Attempt:
        """Grade the current attempt once, update the profile and start preloading the next question."""
        if user_answer is None or not user_answer.strip():
            raise ValidationError("Please select an answer.")
        attempt = self.current_attempt
        if attempt is None:
            raise SubmissionRejected("There is no question to answer")
        if self.is_viewing_history:
            raise SubmissionRejected("Questions from history cannot be answered")

        is_correct = answers_equivalent(user_answer, attempt.question.answer)
        attempt.record_answer(user_answer, is_correct)
        self.profile = register_answer(self.profile, self.today())
        self._persist()
        logger.info(f"Answer recorded: {'correct' if is_correct else 'incorrect'}")

        self._start_preload()
        return attempt

    def go_previous(self) -> Optional[Attempt]:
        if self.current_index > 0:
            self.current_index -= 1
            self.analysis = None
        return self.current_attempt

    def go_next(self) -> Optional[Attempt]:
        if self.current_index < len(self.history) - 1:
            self.current_index += 1
            self.analysis = None
        return self.current_attempt

    def go_latest(self) -> Optional[Attempt]:
        if self.current_index != len(self.history) - 1:
            self.current_index = len(self.history) - 1
            self.analysis = None
        return self.current_attempt

    # --- Background preload ---

    def _start_preload(self) -> None:
        if self._is_preloading:
            return
        self._is_preloading = True
        self._preload_task = asyncio.create_task(self._preload(self.settings))

    async def _preload(self, settings: QuestionSettings) -> None:
        try:
            question = await self.question_agent.generate(settings)
        except Exception as e:
            logger.warning(f"Background preload failed: {e}")
            self._preloaded = None
            return
        finally:
            self._is_preloading = False

        if settings != self.settings:
            logger.info("Settings changed while preloading, discarding preloaded question")
            return
        self._preloaded = PreloadedQuestion(settings=settings, question=question)
        logger.info("Next question preloaded")

    async def wait_for_preload(self) -> None:
        if self._preload_task is not None:
            await self._preload_task

    # --- Analysis ---

    def activity_history(self) -> List[ActivityRecord]:
        return [
            ActivityRecord(
                question=attempt.question.question,
                difficulty=attempt.settings.difficulty,
                type=attempt.settings.type,
                user_answer=attempt.user_answer,
                correct_answer=attempt.question.answer,
                is_correct=bool(attempt.is_correct),
                timestamp=attempt.timestamp,
            )
            for attempt in self.history
            if attempt.is_answered
        ]

    async def analyze(self, desired_focus: Optional[str] = None) -> AnalysisResult:
        """Analyze answered attempts. AnalysisFailure propagates; the previous analysis is dropped."""
        self.analysis = None
        self.is_analyzing = True
        try:
            result = await self.analysis_agent.analyze(
                self.activity_history(), desired_focus or self.settings.type
            )
        finally:
            self.is_analyzing = False
        self.analysis = result
        return result

    async def apply_suggestion(self) -> Attempt:
        """Generate a question with the difficulty and type suggested by the last analysis."""
        if self.analysis is None:
            raise ValidationError("Analyze your performance before applying a suggestion.")
        settings = self.settings.model_copy(update={
            "difficulty": self.analysis.suggested_next_difficulty or self.settings.difficulty,
            "type": self.analysis.suggested_next_type or self.settings.type,
        })
        return await self.generate_question(settings)
