"""Quiz generation through an LLM provider and validation of its output."""
from __future__ import annotations

import json
import logging
from typing import Any, Dict, List, Optional

import httpx
import openai
from pydantic import BaseModel, Field, StrictInt, StrictStr, ValidationError, model_validator

from errors import GenerationFailure, InvalidModelOutput, InvalidQuizShape

logger = logging.getLogger(__name__)

DEFAULT_MODEL = "gpt-5.2"
DEFAULT_TIMEOUT = 120.0
MIN_QUESTIONS = 5
MAX_QUESTIONS = 10

SYSTEM_PROMPT = "You generate study quizzes. You MUST return valid JSON only. No prose."

USER_PROMPT_TEMPLATE = (
    "Create a multiple-choice quiz from the content below.\n"
    "Rules:\n"
    "- Return ONLY valid JSON\n"
    "- 5–10 questions\n"
    "- Each question has: question, choices (3–5), answerIndex, explanation\n\n"
    "CONTENT:\n"
    "{content}"
)


# ---------------------------------------------------------------------------
# Data Models
# ---------------------------------------------------------------------------
class QuizQuestion(BaseModel):
    question: StrictStr
    choices: List[StrictStr] = Field(..., min_length=3, max_length=5)
    answerIndex: StrictInt = Field(..., ge=0, description="Zero-based index into choices")
    explanation: StrictStr

    @model_validator(mode="after")
    def _answer_within_choices(self) -> "QuizQuestion":
        if self.answerIndex >= len(self.choices):
            raise ValueError(f"answerIndex {self.answerIndex} is out of range for {len(self.choices)} choices")
        return self


# ---------------------------------------------------------------------------
# LLM helpers
# ---------------------------------------------------------------------------
def build_quiz_messages(content: str) -> List[Dict[str, str]]:
    """Role-tagged prompt asking for a strict-JSON quiz over ``content``."""
    return [
        {"role": "system", "content": SYSTEM_PROMPT},
        {"role": "user", "content": USER_PROMPT_TEMPLATE.replace("{content}", content)},
    ]


def create_openai_client(api_key: Optional[str], timeout: float = DEFAULT_TIMEOUT) -> Optional[openai.AsyncOpenAI]:
    """Build the provider client, or ``None`` when no credential is configured.

    Retries are disabled: a failed generation is reported, not repeated.
    """
    if not api_key:
        logger.warning("OPENAI_API_KEY is not set; quiz generation will fail until it is configured")
        return None
    return openai.AsyncOpenAI(
        api_key=api_key,
        timeout=httpx.Timeout(timeout, connect=10.0),
        max_retries=0,
    )


class QuizGenerator:
    """Sends the quiz prompt to a chat-completions client and returns the raw text.

    ``client`` is anything exposing ``chat.completions.create`` the way
    ``openai.AsyncOpenAI`` does.
    """

    def __init__(self, client: Any, model: str = DEFAULT_MODEL):
        self.client = client
        self.model = model

    async def generate(self, content: str) -> str:
        if self.client is None:
            raise GenerationFailure("OPENAI_API_KEY is not configured")

        messages = build_quiz_messages(content)
        try:
            response = await self.client.chat.completions.create(
                model=self.model,
                messages=messages,
            )
            raw = response.choices[0].message.content
        except Exception as e:
            logger.error(f"OpenAI API error ({self.model}): {e}")
            raise GenerationFailure(str(e) or None) from e

        return raw or ""


# ---------------------------------------------------------------------------
# Output validation
# ---------------------------------------------------------------------------
def _reject_constant(name: str) -> Any:
    raise ValueError(f"Non-standard JSON literal: {name}")


def validate_quiz_shape(quiz: Any) -> List[QuizQuestion]:
    """Check that a parsed quiz holds 5-10 well-formed questions.

    Accepts either a bare array of questions or an object with a
    ``questions`` array.
    """
    items = quiz.get("questions") if isinstance(quiz, dict) else quiz
    if not isinstance(items, list):
        raise InvalidQuizShape("Quiz must be a JSON array of questions or an object with a 'questions' array")

    if not MIN_QUESTIONS <= len(items) <= MAX_QUESTIONS:
        raise InvalidQuizShape(
            f"Quiz must have {MIN_QUESTIONS}-{MAX_QUESTIONS} questions, got {len(items)}"
        )

    questions = []
    for i, item in enumerate(items):
        try:
            questions.append(QuizQuestion.model_validate(item))
        except ValidationError as e:
            logger.error(f"Validation error for question {i + 1}: {e}")
            first = e.errors()[0]
            field = ".".join(str(part) for part in first["loc"]) or "question"
            raise InvalidQuizShape(f"Question {i + 1} is malformed ({field}): {first['msg']}") from e

    return questions


def parse_quiz(raw: Optional[str], strict_shape: bool = True) -> Any:
    """Strictly parse the model output; no fence stripping or repair."""
    try:
        quiz = json.loads(raw, parse_constant=_reject_constant)
    except (TypeError, ValueError) as e:
        logger.error(f"Quiz JSON decode error: {e}")
        raise InvalidModelOutput() from e

    if strict_shape:
        questions = validate_quiz_shape(quiz)
        logger.info(f"Successfully validated {len(questions)} quiz questions")
    return quiz
