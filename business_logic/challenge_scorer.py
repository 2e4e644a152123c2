"""
Applies graded quarterly review results to the game.

Grading happens remotely; this module only records the grade and moves
the budget, so it stays deterministic.
"""

import logging
from dataclasses import replace
from typing import Optional, Tuple

from models.data_models import Brief, Challenge
from .error_handler import DuplicateSubmission

# Set up logging
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)


HIGH_SCORE_THRESHOLD = 8
LOW_SCORE_THRESHOLD = 3


def enforce_bonus_policy(score: int, budget_bonus: float, default_bonus: float) -> float:
    """
    Make a proposed budget bonus agree with the score.

    A score of 8 or more earns a positive bonus, 3 or less a negative one,
    anything in between leaves the budget alone. When the grader proposed
    no amount for a high or low score, ``default_bonus`` is used.

    Args:
        score: Grade from 1 to 10
        budget_bonus: Amount proposed by the grader
        default_bonus: Magnitude used when the grader proposed nothing

    Returns:
        Signed bonus to apply to the budget
    """
    magnitude = abs(budget_bonus) if budget_bonus else abs(default_bonus)
    if score >= HIGH_SCORE_THRESHOLD:
        return magnitude
    if score <= LOW_SCORE_THRESHOLD:
        return -magnitude
    return 0


class ChallengeScorer:
    """
    Stores a challenge grade and applies its budget bonus.

    The bonus is trusted as given. Callers are expected to have run it
    through ``enforce_bonus_policy`` already.
    """

    def __init__(self, budget_floor: Optional[float] = 0.0):
        """
        Args:
            budget_floor: Lowest budget a penalty can leave; None allows negatives
        """
        self.budget_floor = budget_floor

    def apply_score_result(self, challenge: Challenge, score: int, feedback: str,
                           budget_bonus: float, brief: Brief) -> Tuple[Challenge, Brief]:
        """
        Record a grade on the challenge and adjust the brief's budget.

        Args:
            challenge: The challenge being graded
            score: Grade from 1 to 10
            feedback: Client reaction text
            budget_bonus: Signed amount to add to the budget
            brief: Current brief

        Returns:
            Tuple of (graded challenge, brief with updated budget)

        Raises:
            DuplicateSubmission: If the challenge was already graded
        """
        if challenge.is_scored:
            raise DuplicateSubmission(f"Challenge {challenge.challenge_id} has already been scored")

        scored = replace(challenge, score=score, feedback=feedback)

        if budget_bonus == 0:
            return scored, brief

        new_budget = brief.budget + budget_bonus
        if self.budget_floor is not None and new_budget < self.budget_floor:
            logger.info(f"Budget {new_budget:,.0f} clamped to floor {self.budget_floor:,.0f}")
            new_budget = self.budget_floor

        logger.info(f"Challenge scored {score}/10, budget {brief.budget:,.0f} -> {new_budget:,.0f}")
        return scored, brief.with_budget(new_budget)
