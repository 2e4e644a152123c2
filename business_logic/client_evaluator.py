"""
The simulated client: answers questions, asks and grades review questions.
"""

import logging
from abc import ABC, abstractmethod
from typing import Any, Dict, Optional

from models.data_models import Brief, MonthResult, ScoreResult
from .ai_client import OpenAIChatClient, is_finite_number
from .challenge_scorer import enforce_bonus_policy
from .error_handler import ProviderFailure

# Set up logging
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)


class Evaluator(ABC):
    """Interface of the simulated client."""

    @abstractmethod
    async def ask(self, brief: Brief, question: str) -> str:
        """Answer a player question in character."""

    @abstractmethod
    async def generate_challenge_question(self, brief: Brief, result: Optional[MonthResult]) -> str:
        """Produce one tough quarterly review question."""

    @abstractmethod
    async def score_challenge(self, question: str, answer: str,
                              result: Optional[MonthResult]) -> ScoreResult:
        """Grade the player's answer to a review question."""


def parse_score_result(payload: Dict[str, Any], default_bonus: float) -> ScoreResult:
    """
    Validate a raw grading payload.

    Args:
        payload: Decoded JSON object with score, feedback and budgetBonus
        default_bonus: Bonus magnitude used when the grader proposed none

    Returns:
        ScoreResult whose bonus agrees with the score

    Raises:
        ProviderFailure: If a field is missing or invalid
    """
    score = payload.get('score')
    if isinstance(score, bool) or not isinstance(score, (int, float)):
        raise ProviderFailure(f"Score must be a number, got {score!r}")
    # NaN and infinity fail the range check before int() sees them
    if not 1 <= score <= 10 or score != int(score):
        raise ProviderFailure(f"Score must be a whole number from 1 to 10, got {score!r}")
    score = int(score)

    feedback = payload.get('feedback')
    if not isinstance(feedback, str) or not feedback.strip():
        raise ProviderFailure("Grading is missing feedback text")

    bonus = payload.get('budgetBonus', 0)
    if bonus is None:
        bonus = 0
    if not is_finite_number(bonus):
        raise ProviderFailure(f"budgetBonus must be a number, got {bonus!r}")

    return ScoreResult(
        score=score,
        feedback=feedback.strip(),
        budget_bonus=enforce_bonus_policy(score, bonus, default_bonus)
    )


def _result_summary(result: Optional[MonthResult]) -> str:
    if result is None:
        return "No results yet"
    total = result.total
    return f"Spend={total.spend:,.0f}, CPA={total.cpa:,.0f}, ROAS={total.roas:.2f}"


class AIClientEvaluator(Evaluator):
    """
    Plays the client with the OpenAI chat API.
    """

    def __init__(self, chat_client: OpenAIChatClient, challenge_bonus: float = 500000.0):
        self.chat_client = chat_client
        self.challenge_bonus = challenge_bonus

    def create_question_prompt(self, brief: Brief, question: str) -> str:
        # The best channel is given as context but must stay hidden
        return f"""You are the client "{brief.client_name}".
The user is your ad agency partner.
Context: Product={brief.product}, Budget={brief.budget:,.0f}, Audience={brief.audience}, BestChannel={brief.best_channel}
User asks: "{question}"
Answer in character, politely and briefly. Never reveal BestChannel directly."""

    def create_challenge_prompt(self, brief: Brief, result: Optional[MonthResult]) -> str:
        return f"""You are the client "{brief.client_name}". It is the end-of-quarter review (3 months have passed).
Recent monthly result: {_result_summary(result)}.
Target: CPA < {brief.target_cpa:,.0f}, ROAS > {brief.min_roas:.2f}.

Ask the user ONE tough question about the results or their strategy.
Examples:
- "Why is the CPA higher than target?"
- "Why did you put so much budget into one channel?"
- "We need better ROAS. What is your plan?"

Return ONLY the question."""

    def create_scoring_prompt(self, question: str, answer: str, result: Optional[MonthResult]) -> str:
        return f"""You are the client. You asked: "{question}"
User answered: "{answer}"

Evaluate the answer based on:
1. Logical consistency with marketing principles.
2. Professionalism.
3. Alignment with the results ({_result_summary(result)}).

Return a JSON object:
{{
    "score": number (1-10),
    "feedback": string (your reaction, strict but fair),
    "budgetBonus": number (if score >= 8, a bonus such as {self.challenge_bonus:,.0f}; if score <= 3, a negative amount; otherwise 0)
}}"""

    async def ask(self, brief: Brief, question: str) -> str:
        return await self.chat_client.complete_text(
            self.create_question_prompt(brief, question), "client question"
        )

    async def generate_challenge_question(self, brief: Brief, result: Optional[MonthResult]) -> str:
        question = await self.chat_client.complete_text(
            self.create_challenge_prompt(brief, result), "review question"
        )
        logger.info("Generated quarterly review question")
        return question

    async def score_challenge(self, question: str, answer: str,
                              result: Optional[MonthResult]) -> ScoreResult:
        payload = await self.chat_client.complete_json(
            self.create_scoring_prompt(question, answer, result), "review grading"
        )
        return parse_score_result(payload, self.challenge_bonus)
