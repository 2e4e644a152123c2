"""
Game Controller - Orchestrates a game session.

This module connects the synchronous ``GameSession`` to the things it
waits on: the AI-backed brief provider and client evaluator, the stored
API key and the pacing delay of a running month. Each remote call is an
independent coroutine, so a question to the client can be outstanding
while the player keeps planning.
"""

import asyncio
import logging
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, List, Optional

from config.settings import config_manager
from data.credential_store import CredentialStore
from models.data_models import ModalName, MonthResult, QAExchange, ViewName
from .ai_client import OpenAIChatClient
from .brief_provider import AIBriefProvider, BriefProvider
from .client_evaluator import AIClientEvaluator, Evaluator
from .error_handler import error_handler, CredentialMissing, ErrorInfo
from .game_state import GameSession

# Set up logging
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)


@dataclass
class AIServices:
    """The remote collaborators of a game, built from one API key."""
    brief_provider: BriefProvider
    evaluator: Evaluator


def build_openai_services(api_key: str) -> AIServices:
    """Build the default OpenAI-backed services for an API key."""
    config = config_manager.load_config()
    chat_client = OpenAIChatClient(api_key)
    return AIServices(
        brief_provider=AIBriefProvider(chat_client, currency=config.currency),
        evaluator=AIClientEvaluator(chat_client, challenge_bonus=config.challenge_bonus)
    )


class GameController:
    """
    Main controller for the game workflow.

    Any failure of a remote call is handled here: the session is moved
    to its fallback view and a notification is queued for the UI. Rule
    violations (over budget, duplicate submissions, illegal views) are
    raised to the caller with the session unchanged.
    """

    def __init__(self, session: Optional[GameSession] = None, credential_store: Any = None,
                 services_factory: Callable[[str], AIServices] = build_openai_services,
                 sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
                 simulation_delay: Optional[float] = None):
        """
        Initialize the game controller.

        Args:
            session: Session to drive; a new one is created if omitted
            credential_store: Object with load/save/clear for the API key
            services_factory: Builds AI services from an API key
            sleep: Coroutine used for the month pacing delay
            simulation_delay: Seconds a month stays in RUNNING
        """
        config = config_manager.load_config()
        self.session = session or GameSession()
        self.credential_store = credential_store or CredentialStore(config.credential_file)
        self.services_factory = services_factory
        self.services: Optional[AIServices] = None
        self._sleep = sleep
        self.simulation_delay = (
            config_manager.get_simulation_delay() if simulation_delay is None else simulation_delay
        )
        self.notifications: List[Dict[str, Any]] = []

        logger.info("GameController initialized")

    @property
    def view_name(self) -> ViewName:
        return self.session.view_name

    def _report(self, error: Exception, context: str) -> ErrorInfo:
        error_info = error_handler.classify_error(error, context)
        error_handler.log_error(error_info, context)
        self.notifications.append(error_handler.create_user_notification(error_info))
        return error_info

    def pop_notifications(self) -> List[Dict[str, Any]]:
        """Return and clear queued user notifications."""
        notifications, self.notifications = self.notifications, []
        return notifications

    # ------------------------------------------------------------------
    # Credentials and briefs

    async def start(self) -> ViewName:
        """
        Start a game from the stored API key, if there is one.

        Returns:
            The view the session ends up in
        """
        key = self.credential_store.load() or config_manager.get_openai_api_key()
        if not key:
            logger.info("No API key stored, waiting for credentials")
            return self.view_name

        await self.submit_credentials(key, persist=False)
        return self.view_name

    async def submit_credentials(self, api_key: str, persist: bool = True) -> bool:
        """
        Accept an API key and generate the first brief.

        Returns:
            True if a brief was generated

        Raises:
            CredentialMissing: If the key is blank
            DuplicateSubmission: If a brief is already being generated
        """
        api_key = (api_key or "").strip()
        if not api_key:
            raise CredentialMissing("An API key is required")

        token = self.session.begin_brief_request()
        try:
            self.services = self.services_factory(api_key)
        except Exception as e:
            error_info = self._report(e, "AI client setup")
            self.session.fail_brief_request(token, error_info.user_message)
            raise

        loaded = await self._load_brief(token)
        if loaded and persist:
            # The key stays usable for this session even if it cannot be stored
            try:
                self.credential_store.save(api_key)
            except OSError as e:
                self._report(e, "Saving API key")
        return loaded

    async def reload_brief(self) -> bool:
        """Replace the current brief with a new one (BRIEF view only)."""
        if self.services is None:
            raise CredentialMissing("No API key configured")
        token = self.session.begin_brief_request()
        return await self._load_brief(token)

    async def _load_brief(self, token) -> bool:
        try:
            brief = await self.services.brief_provider.generate()
        except Exception as e:
            error_info = self._report(e, "Brief generation")
            self.session.fail_brief_request(token, error_info.user_message)
            return False
        return self.session.complete_brief_request(token, brief)

    def accept_brief(self):
        self.session.accept_brief()

    def clear_credentials(self):
        """Forget the API key and return to the credentials prompt."""
        self.credential_store.clear()
        self.services = None
        self.session.clear_credentials()

    # ------------------------------------------------------------------
    # Monthly rounds

    def set_allocation(self, channel: str, amount: float):
        self.session.set_allocation(channel, amount)

    async def run_round(self) -> Optional[MonthResult]:
        """
        Run one month: hold RUNNING for the pacing delay, then simulate.

        Returns:
            The month's result, or None if the game was reset meanwhile

        Raises:
            BudgetExceeded: If the allocation exceeds the budget
            DuplicateSubmission: If a month is already running
        """
        token = self.session.start_round()
        await self._sleep(self.simulation_delay)
        return self.session.complete_round(token)

    async def advance_month(self) -> ViewName:
        """Move on from RESULT, holding the quarterly review when due."""
        token = self.session.advance_month()
        if token is None:
            return self.view_name

        brief = self.session.brief
        try:
            question = await self.services.evaluator.generate_challenge_question(
                brief, self.session.last_result
            )
        except Exception as e:
            self._report(e, "Review question")
            self.session.fail_challenge_question(token)
        else:
            self.session.complete_challenge_question(token, question)
        return self.view_name

    # ------------------------------------------------------------------
    # Questions and reviews

    async def ask_question(self, question: str) -> QAExchange:
        """
        Ask the client a question.

        The exchange is logged immediately with a pending answer; the
        answer is attached to that same exchange when it arrives.
        """
        exchange = self.session.ask_question(question)
        brief = self.session.brief
        try:
            answer = await self.services.evaluator.ask(brief, exchange.question)
        except Exception as e:
            self._report(e, "Client question")
            self.session.fail_question(exchange.exchange_id)
        else:
            self.session.resolve_question(exchange.exchange_id, answer)
        return exchange

    async def submit_challenge_answer(self, answer: str) -> bool:
        """
        Submit an answer to the quarterly review for grading.

        Returns:
            True if the answer was graded

        Raises:
            DuplicateSubmission: If the review was already answered
        """
        token = self.session.begin_challenge_answer(answer)
        challenge = self.session.challenge
        try:
            score = await self.services.evaluator.score_challenge(
                challenge.question, challenge.answer, self.session.last_result
            )
        except Exception as e:
            self._report(e, "Review grading")
            self.session.fail_challenge_score(token)
            return False
        return self.session.complete_challenge_score(token, score)

    def continue_after_challenge(self):
        self.session.finish_challenge()

    # ------------------------------------------------------------------
    # Modals

    def open_modal(self, modal: ModalName):
        self.session.open_modal(modal)

    def close_modal(self):
        self.session.close_modal()
