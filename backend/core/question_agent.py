import logging
import random
import re
from typing import List, Optional, TypedDict

from langchain_core.messages import HumanMessage, SystemMessage
from langgraph.graph import StateGraph, START, END

from .answers import answers_equivalent
from .errors import GenerationFailure
from .llm import GeminiLLMWrapper
from backend.models.schemas import GeneratedQuestion, QuestionDraft, QuestionSettings
from backend.prompts import question_prompts

logger = logging.getLogger(__name__)

# Leading junk may not swallow "(" or "-", trailing junk may not swallow ")"
_ANSWER_EDGE_JUNK = re.compile(r"^[^a-zA-Z0-9(-]+|[^a-zA-Z0-9)]+$")


def clean_answer(answer: str) -> str:
    return _ANSWER_EDGE_JUNK.sub("", answer.strip())


def ensure_answer_in_options(options: List[str], answer: str, rng: random.Random) -> List[str]:
    """
    Return options that contain something equivalent to `answer`.

    Options already holding the answer come back unchanged. Otherwise one randomly
    chosen option is overwritten with the answer and the list is reshuffled.
    """
    options = list(options)
    if any(answers_equivalent(option, answer) for option in options):
        return options

    logger.warning("Correct answer not found in generated options, replacing one option")
    index = rng.randrange(len(options))
    if options[index] == answer:
        index = (index + 1) % len(options)
    options[index] = answer
    rng.shuffle(options)
    return options


class QuestionFlowState(TypedDict, total=False):
    settings: QuestionSettings
    draft: Optional[QuestionDraft]
    question: Optional[GeneratedQuestion]


class QuestionAgent:
    """
    Generates multiple-choice math questions.
    - Prompts the model for a question, bare answer, 4 options and an explanation
    - Cleans the model output and guarantees the answer is selectable
    """

    def __init__(self, llm: GeminiLLMWrapper, rng: Optional[random.Random] = None):
        self.llm = llm
        self.rng = rng or random.Random()
        self.flow = self._build_flow()

    def _build_flow(self):
        g = StateGraph(QuestionFlowState)
        g.add_node("call_model", self._call_model)
        g.add_node("clean_output", self._clean_output)
        g.add_edge(START, "call_model")
        g.add_edge("call_model", "clean_output")
        g.add_edge("clean_output", END)
        return g.compile()

    async def generate(self, settings: QuestionSettings) -> GeneratedQuestion:
        """
        Input: settings (QuestionSettings)
        Output: GeneratedQuestion, or GenerationFailure when the model gives nothing usable
        """
        result = await self.flow.ainvoke({"settings": settings})
        return result["question"]

    async def _call_model(self, state: QuestionFlowState) -> dict:
        settings = state["settings"]
        draft = await self.llm.generate_structured(
            [
                SystemMessage(content=question_prompts.QUESTION_SYSTEM_MESSAGE),
                HumanMessage(content=self._build_prompt(settings)),
            ],
            QuestionDraft,
        )
        if draft is None:
            raise GenerationFailure("AI failed to generate a question.")
        return {"draft": draft}

    def _clean_output(self, state: QuestionFlowState) -> dict:
        draft = state["draft"]
        answer = clean_answer(draft.answer)
        options = ensure_answer_in_options([opt.strip() for opt in draft.options], answer, self.rng)
        question = GeneratedQuestion(
            question=draft.question.strip(),
            answer=answer,
            options=options,
            explanation=draft.explanation.strip(),
        )
        return {"question": question}

    @staticmethod
    def _build_prompt(settings: QuestionSettings) -> str:
        context = []
        if settings.student_class:
            context.append(question_prompts.STUDENT_CLASS_LINE.format(student_class=settings.student_class))
        if settings.exam_type:
            context.append(question_prompts.EXAM_TYPE_LINE.format(exam_type=settings.exam_type))
        return question_prompts.QUESTION_GENERATION_TEMPLATE.format(
            type=settings.type,
            difficulty=settings.difficulty,
            context="\n".join(context),
        )
