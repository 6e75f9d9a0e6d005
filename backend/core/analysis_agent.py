import logging
from typing import List, Optional, TypedDict

from langchain_core.messages import HumanMessage, SystemMessage
from langgraph.graph import StateGraph, START, END

from .errors import AnalysisFailure
from .llm import GeminiLLMWrapper
from backend.config import Config
from backend.models.schemas import ActivityRecord, AnalysisDraft, AnalysisResult
from backend.prompts import analysis_prompts

logger = logging.getLogger(__name__)

NOT_ENOUGH_DATA_SUMMARY = "Not enough activity history to provide an analysis."
NOT_ENOUGH_DATA_SUGGESTION = "Try answering a few questions first!"


def shorten_suggestion(suggestion: str, max_length: int = Config.SUGGESTION_MAX_LENGTH) -> str:
    if len(suggestion) > max_length:
        return suggestion[:max_length - 3] + "..."
    return suggestion


def not_enough_data_result() -> AnalysisResult:
    return AnalysisResult(
        summary=NOT_ENOUGH_DATA_SUMMARY,
        strengths=[],
        weaknesses=[],
        suggestions=[NOT_ENOUGH_DATA_SUGGESTION],
    )


class AnalysisFlowState(TypedDict, total=False):
    history: List[ActivityRecord]
    desired_focus: Optional[str]
    draft: Optional[AnalysisDraft]
    result: Optional[AnalysisResult]


class PerformanceAnalysisAgent:
    """
    Summarizes a user's quiz history.
    - Short-circuits locally when there is nothing to analyze
    - Otherwise asks the model for strengths, weaknesses, suggestions and a next question
    """

    def __init__(self, llm: GeminiLLMWrapper):
        self.llm = llm
        self.flow = self._build_flow()

    def _build_flow(self):
        g = StateGraph(AnalysisFlowState)
        g.add_node("not_enough_data", self._not_enough_data)
        g.add_node("call_model", self._call_model)
        g.add_node("trim_suggestions", self._trim_suggestions)
        g.add_conditional_edges(
            START,
            self._route,
            {"empty": "not_enough_data", "analyze": "call_model"},
        )
        g.add_edge("not_enough_data", END)
        g.add_edge("call_model", "trim_suggestions")
        g.add_edge("trim_suggestions", END)
        return g.compile()

    async def analyze(self, history: List[ActivityRecord], desired_focus: Optional[str] = None) -> AnalysisResult:
        result = await self.flow.ainvoke({"history": list(history), "desired_focus": desired_focus})
        return result["result"]

    @staticmethod
    def _route(state: AnalysisFlowState) -> str:
        return "analyze" if state.get("history") else "empty"

    def _not_enough_data(self, state: AnalysisFlowState) -> dict:
        logger.info("No activity history to analyze, returning canned result")
        return {"result": not_enough_data_result()}

    async def _call_model(self, state: AnalysisFlowState) -> dict:
        prompt = self._build_prompt(state["history"], state.get("desired_focus"))
        draft = await self.llm.generate_structured(
            [
                SystemMessage(content=analysis_prompts.ANALYSIS_SYSTEM_MESSAGE),
                HumanMessage(content=prompt),
            ],
            AnalysisDraft,
        )
        if draft is None:
            raise AnalysisFailure("AI failed to generate a performance analysis.")
        return {"draft": draft}

    def _trim_suggestions(self, state: AnalysisFlowState) -> dict:
        draft = state["draft"]
        result = AnalysisResult(
            summary=draft.summary,
            strengths=draft.strengths,
            weaknesses=draft.weaknesses,
            suggestions=[shorten_suggestion(s) for s in draft.suggestions],
            suggested_next_type=draft.suggested_next_type,
            suggested_next_difficulty=draft.suggested_next_difficulty,
        )
        return {"result": result}

    @staticmethod
    def _build_prompt(history: List[ActivityRecord], desired_focus: Optional[str]) -> str:
        records = "\n".join(
            analysis_prompts.ACTIVITY_RECORD_TEMPLATE.format(
                question=record.question,
                difficulty=record.difficulty,
                type=record.type,
                user_answer=record.user_answer if record.user_answer is not None else "(no answer)",
                correct_answer=record.correct_answer,
                is_correct=record.is_correct,
                timestamp=record.timestamp,
            )
            for record in history
        )
        return analysis_prompts.ANALYSIS_TEMPLATE.format(
            activity_history=records,
            desired_focus=analysis_prompts.DESIRED_FOCUS_LINE.format(desired_focus=desired_focus) if desired_focus else "",
            focus_hint=" and the user's desired focus area" if desired_focus else "",
        )
