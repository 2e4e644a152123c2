"""
Shared fixtures for the game tests.
"""

import asyncio
import pytest

from business_logic.challenge_scorer import enforce_bonus_policy
from business_logic.error_handler import ProviderFailure
from business_logic.game_controller import AIServices, GameController
from business_logic.game_state import GameSession
from business_logic.outcome_engine import OutcomeEngine
from data.credential_store import InMemoryCredentialStore
from models.data_models import Brief, ScoreResult


class FixedRandom:
    """Random source that always returns the same value."""

    def __init__(self, value: float = 0.5):
        self.value = value

    def random(self) -> float:
        return self.value


class FakeBriefProvider:
    """Brief provider returning prepared briefs or failures in order."""

    def __init__(self, *outcomes):
        self.outcomes = list(outcomes)
        self.calls = 0

    async def generate(self):
        self.calls += 1
        outcome = self.outcomes.pop(0) if len(self.outcomes) > 1 else self.outcomes[0]
        if isinstance(outcome, Exception):
            raise outcome
        return outcome


class FakeEvaluator:
    """Evaluator whose answers can be held back until released."""

    def __init__(self, question="Why is CPA above target?", score=None, fail_question=False,
                 fail_score=False, fail_ask=False):
        self.question = question
        self.score = score or ScoreResult(score=9, feedback="Convincing plan.",
                                          budget_bonus=enforce_bonus_policy(9, 0, 500000))
        self.fail_question = fail_question
        self.fail_score = fail_score
        self.fail_ask = fail_ask
        self.gates = {}
        self.asked = []

    def hold(self, question: str) -> asyncio.Event:
        gate = asyncio.Event()
        self.gates[question] = gate
        return gate

    async def ask(self, brief, question):
        self.asked.append(question)
        if question in self.gates:
            await self.gates[question].wait()
        if self.fail_ask:
            raise ProviderFailure("client unavailable")
        return f"Answer to: {question}"

    async def generate_challenge_question(self, brief, result):
        if self.fail_question:
            raise ProviderFailure("no question")
        return self.question

    async def score_challenge(self, question, answer, result):
        if self.fail_score:
            raise ProviderFailure("grading failed")
        return self.score


async def no_sleep(delay):
    return None


@pytest.fixture
def sample_brief():
    """Create a sample brief for testing."""
    return Brief(
        client_name="Sakura Foods",
        product="Meal kit subscription",
        objective="Grow first-time subscriptions",
        product_details="Weekly meal kits with regional ingredients.",
        challenges="- Low awareness\n- High churn\n- Price sensitivity",
        budget=1000000,
        target_cpa=5000,
        min_roas=2.0,
        audience="Working parents aged 30-45",
        best_channel="google"
    )


@pytest.fixture
def session():
    return GameSession(engine=OutcomeEngine(rng=FixedRandom(0.5)))


@pytest.fixture
def planning_session(session, sample_brief):
    """Session that has accepted a brief and is in PLANNING."""
    token = session.begin_brief_request()
    session.complete_brief_request(token, sample_brief)
    session.accept_brief()
    return session


def play_month(session, google=100000):
    """Plan, run and finish one month directly on a session."""
    session.set_allocation("google", google)
    token = session.start_round()
    return session.complete_round(token)


@pytest.fixture
def make_controller(sample_brief):
    """Factory for controllers wired to fake services."""

    def factory(brief_provider=None, evaluator=None, store=None):
        services = AIServices(
            brief_provider=brief_provider or FakeBriefProvider(sample_brief),
            evaluator=evaluator or FakeEvaluator()
        )
        controller = GameController(
            session=GameSession(engine=OutcomeEngine(rng=FixedRandom(0.5))),
            credential_store=store or InMemoryCredentialStore(),
            services_factory=lambda key: services,
            sleep=no_sleep,
            simulation_delay=0
        )
        return controller

    return factory
