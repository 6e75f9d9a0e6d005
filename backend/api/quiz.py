from fastapi import APIRouter, HTTPException
from backend.config import Config
from backend.core.errors import AnalysisFailure, GenerationFailure, SubmissionRejected, ValidationError
from backend.core.quiz_session import QuizSession
from backend.models.schemas import (
    AnalysisRequest,
    AnswerRequest,
    AttemptView,
    QuestionSettings,
    SessionView,
    SettingsForm,
)
from typing import Any, Dict, List
import logging

logger = logging.getLogger(__name__)

router = APIRouter()

# Dependencies - would normally be injected
quiz_session: QuizSession = None

def set_dependencies(session: QuizSession):
    global quiz_session
    quiz_session = session


def build_session_view(session: QuizSession) -> SessionView:
    attempt = session.current_attempt
    return SessionView(
        current_attempt=AttemptView.from_attempt(session.current_index, attempt) if attempt else None,
        history_length=len(session.history),
        current_index=session.current_index,
        is_viewing_history=session.is_viewing_history,
        can_generate_new=session.can_generate_new,
        can_check_answer=session.can_check_answer,
        is_loading=session.is_loading,
        is_analyzing=session.is_analyzing,
        feedback=session.feedback,
        settings=session.settings,
        profile=session.profile,
        analysis=session.analysis,
        notices=list(session.hydration_errors),
    )


@router.get("/session", response_model=SessionView)
async def get_session():
    """
    Current quiz state.

    Returns the displayed attempt (answer and explanation hidden until answered),
    history position, UI flags, profile streak and the last analysis.
    """
    return build_session_view(quiz_session)


@router.get("/settings/options")
async def get_settings_options() -> Dict[str, List[Dict[str, Any]]]:
    return Config.get_form_options()


@router.put("/settings", response_model=SessionView)
async def update_settings(form: SettingsForm):
    quiz_session.update_settings(QuestionSettings.from_form(form, Config.NONE_VALUE))
    return build_session_view(quiz_session)


@router.post("/questions", response_model=SessionView)
async def generate_question(form: SettingsForm):
    """
    Generate a new question and make it the current attempt.

    Raises:
        HTTPException: 502 status code if the model fails to produce a question
    """
    settings = QuestionSettings.from_form(form, Config.NONE_VALUE)
    try:
        await quiz_session.generate_question(settings)
    except GenerationFailure as e:
        logger.error(f"Error generating question: {e}")
        raise HTTPException(status_code=502, detail="Failed to generate a new question. Please try again.")
    return build_session_view(quiz_session)


@router.post("/answers", response_model=SessionView)
async def submit_answer(request: AnswerRequest):
    """
    Check the answer for the current attempt.

    Raises:
        HTTPException: 422 if no answer was selected, 409 if the attempt cannot be answered
    """
    try:
        await quiz_session.submit_answer(request.user_answer)
    except ValidationError as e:
        raise HTTPException(status_code=422, detail=str(e))
    except SubmissionRejected as e:
        logger.info(f"Answer rejected: {e}")
        raise HTTPException(status_code=409, detail=str(e))
    return build_session_view(quiz_session)


@router.post("/history/previous", response_model=SessionView)
async def go_previous():
    quiz_session.go_previous()
    return build_session_view(quiz_session)


@router.post("/history/next", response_model=SessionView)
async def go_next():
    quiz_session.go_next()
    return build_session_view(quiz_session)


@router.post("/history/latest", response_model=SessionView)
async def go_latest():
    quiz_session.go_latest()
    return build_session_view(quiz_session)


@router.post("/analysis", response_model=SessionView)
async def analyze_performance(request: AnalysisRequest):
    """
    End the quest and analyze the answered questions.

    Raises:
        HTTPException: 502 status code if the model fails to produce an analysis
    """
    try:
        await quiz_session.analyze(request.desired_focus)
    except AnalysisFailure as e:
        logger.error(f"Error analyzing performance: {e}")
        raise HTTPException(status_code=502, detail="Could not analyze performance. Please try again later.")
    return build_session_view(quiz_session)


@router.post("/analysis/apply", response_model=SessionView)
async def apply_suggestion():
    """Generate the next question with the difficulty and type the analysis suggested."""
    try:
        await quiz_session.apply_suggestion()
    except ValidationError as e:
        raise HTTPException(status_code=422, detail=str(e))
    except GenerationFailure as e:
        logger.error(f"Error generating suggested question: {e}")
        raise HTTPException(status_code=502, detail="Failed to generate a new question. Please try again.")
    return build_session_view(quiz_session)
