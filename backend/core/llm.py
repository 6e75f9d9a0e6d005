from langchain_google_genai import ChatGoogleGenerativeAI
from langchain_core.messages import BaseMessage
from pydantic import BaseModel
from typing import List, Optional, Type, TypeVar
import logging
from backend.config import Config

logger = logging.getLogger(__name__)

SchemaT = TypeVar("SchemaT", bound=BaseModel)


class GeminiLLMWrapper:
    def __init__(self):
        """Initialize with config values directly"""
        self.llm = ChatGoogleGenerativeAI(
            google_api_key=Config.GEMINI_API_KEY,
            model=Config.GEMINI_MODEL,
            temperature=Config.GEMINI_TEMPERATURE,
            max_output_tokens=Config.MAX_OUTPUT_TOKENS,
        )

    async def generate_structured(
        self,
        messages: List[BaseMessage],
        schema: Type[SchemaT],
        **kwargs
    ) -> Optional[SchemaT]:
        """
        Ask the model for output matching `schema`.

        Returns a validated instance, or None when the model fails or its output
        does not conform. Callers decide which failure that is.
        """
        try:
            structured_llm = self.llm.with_structured_output(schema)
            result = await structured_llm.ainvoke(messages, **kwargs)
        except Exception as e:
            logger.error(f"LLM structured generation error ({schema.__name__}): {e}")
            return None

        if result is None:
            logger.error(f"LLM returned no structured output for {schema.__name__}")
            return None
        if isinstance(result, dict):
            # some providers hand back the parsed tool call as a plain dict
            try:
                return schema.model_validate(result)
            except Exception as e:
                logger.error(f"LLM output did not match {schema.__name__}: {e}")
                return None
        return result
