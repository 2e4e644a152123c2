"""
Game session state and view transitions.

``GameSession`` owns every piece of mutable session data and is the only
place views change. All methods are synchronous: each one validates
first and mutates afterwards, so a rejected call leaves the session
exactly as it was. Work that has to wait (AI calls, the pacing delay of
a running month) is split into a ``begin``/``complete`` pair joined by a
``RequestToken``; completions carrying a token the session no longer
waits on are discarded.
"""

import itertools
import logging
from dataclasses import replace
from typing import Dict, List, Optional, Tuple

from models.data_models import (
    CHANNELS, FAILED_ANSWER, AwaitingCredentialsView, Brief, BriefView, Challenge,
    ChallengeView, GameDate, GameView, LoadingView, ModalName, MonthResult,
    PlanningView, QAExchange, RequestKind, RequestToken, ResultView, RunningView,
    ScoreResult, ViewName, empty_allocation
)
from .challenge_scorer import ChallengeScorer
from .error_handler import BudgetExceeded, DuplicateSubmission, InvalidTransition
from .outcome_engine import OutcomeEngine

# Set up logging
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)


QUARTER_LENGTH = 3
CHALLENGE_QUESTION_FAILED = "The client could not prepare a question for this review."

MODAL_VIEWS = (ViewName.PLANNING, ViewName.RUNNING, ViewName.RESULT)
QUESTION_VIEWS = (ViewName.PLANNING, ViewName.RESULT)


def is_quarter_end(history_length: int) -> bool:
    """Whether a quarterly review is due after this many simulated months."""
    return history_length > 0 and history_length % QUARTER_LENGTH == 0


class GameSession:
    """
    In-memory state of one game.

    Holds the brief, the current allocation, the month history, the
    question log, the calendar and the current view.
    """

    def __init__(self, engine: Optional[OutcomeEngine] = None,
                 scorer: Optional[ChallengeScorer] = None):
        self.engine = engine or OutcomeEngine()
        self.scorer = scorer or ChallengeScorer()

        self.view: GameView = AwaitingCredentialsView()
        self.modal = ModalName.NONE
        self.brief: Optional[Brief] = None
        self.allocation: Dict[str, float] = empty_allocation()
        self.last_result: Optional[MonthResult] = None
        self.date = GameDate()
        self.challenge: Optional[Challenge] = None

        self._history: List[MonthResult] = []
        self._qa_log: List[QAExchange] = []
        self._scoring_token: Optional[RequestToken] = None
        self._ids = itertools.count(1)

    # ------------------------------------------------------------------
    # Read-only views of session data

    @property
    def view_name(self) -> ViewName:
        return self.view.name

    @property
    def history(self) -> Tuple[MonthResult, ...]:
        return tuple(self._history)

    @property
    def qa_log(self) -> Tuple[QAExchange, ...]:
        return tuple(self._qa_log)

    @property
    def allocated_total(self) -> float:
        return sum(self.allocation.values())

    @property
    def remaining_budget(self) -> float:
        if self.brief is None:
            return 0
        return self.brief.budget - self.allocated_total

    @property
    def scoring_pending(self) -> bool:
        return self._scoring_token is not None

    # ------------------------------------------------------------------
    # Internal helpers

    def _new_token(self, kind: RequestKind) -> RequestToken:
        return RequestToken(kind=kind, request_id=next(self._ids))

    def _set_view(self, view: GameView):
        logger.info(f"View {self.view.name.value} -> {view.name.value}")
        self.view = view
        self.modal = ModalName.NONE

    def _require(self, action: str, *views: ViewName):
        if self.view.name not in views:
            raise InvalidTransition(action, self.view.name)

    def _is_waiting_on(self, token: RequestToken) -> bool:
        current = getattr(self.view, "token", None)
        if current != token:
            logger.warning(f"Discarding stale {token.kind.value} response #{token.request_id}")
            return False
        return True

    def _reset_game_data(self, reset_date: bool):
        self.allocation = empty_allocation()
        self.last_result = None
        self._history = []
        self._qa_log = []
        self.challenge = None
        self._scoring_token = None
        if reset_date:
            self.date = GameDate()

    # ------------------------------------------------------------------
    # Brief generation

    def begin_brief_request(self) -> RequestToken:
        """
        Enter LOADING to fetch a new brief.

        Allowed from AWAITING_CREDENTIALS (after credentials are submitted)
        and from BRIEF (requesting a different scenario).

        Raises:
            DuplicateSubmission: If a brief is already being generated
            InvalidTransition: From any other view
        """
        if isinstance(self.view, LoadingView) and self.view.token.kind == RequestKind.BRIEF:
            raise DuplicateSubmission("A brief is already being generated")
        self._require("request a brief", ViewName.AWAITING_CREDENTIALS, ViewName.BRIEF)

        token = self._new_token(RequestKind.BRIEF)
        self._set_view(LoadingView(token=token, origin=self.view.name))
        return token

    def complete_brief_request(self, token: RequestToken, brief: Brief) -> bool:
        """
        Install a freshly generated brief and reset the game.

        The calendar restarts only when the request came from credential
        submission; reloading from the BRIEF view keeps the date.

        Returns:
            False if the response was stale and discarded
        """
        if not self._is_waiting_on(token):
            return False

        self._reset_game_data(reset_date=self.view.origin == ViewName.AWAITING_CREDENTIALS)
        self.brief = brief
        logger.info(f"New brief for {brief.client_name} with budget {brief.budget:,.0f}")
        self._set_view(BriefView())
        return True

    def fail_brief_request(self, token: RequestToken, reason: str = "") -> bool:
        """Return to AWAITING_CREDENTIALS after a failed brief generation."""
        if not self._is_waiting_on(token):
            return False
        self._set_view(AwaitingCredentialsView(notice=reason or None))
        return True

    def accept_brief(self):
        """Take the job: BRIEF -> PLANNING."""
        self._require("accept the brief", ViewName.BRIEF)
        self._set_view(PlanningView())

    # ------------------------------------------------------------------
    # Planning and running a month

    def set_allocation(self, channel: str, amount: float):
        """
        Set the spend for one channel.

        Over-allocation is allowed while planning; it is rejected when the
        month is started.
        """
        self._require("change the allocation", ViewName.PLANNING)
        if channel not in CHANNELS:
            raise ValueError(f"Unknown channel: {channel}")
        if amount < 0:
            raise ValueError(f"Allocation must not be negative, got {amount}")
        self.allocation[channel] = amount

    def start_round(self) -> RequestToken:
        """
        PLANNING -> RUNNING.

        Raises:
            DuplicateSubmission: If a month is already running
            BudgetExceeded: If the allocation exceeds the budget
            InvalidTransition: From any other view
        """
        if self.view.name == ViewName.RUNNING:
            raise DuplicateSubmission("A month is already running")
        self._require("start a month", ViewName.PLANNING)

        allocated = self.allocated_total
        if allocated > self.brief.budget:
            raise BudgetExceeded(allocated, self.brief.budget)

        token = self._new_token(RequestKind.ROUND)
        self._set_view(RunningView(token=token))
        return token

    def complete_round(self, token: RequestToken) -> Optional[MonthResult]:
        """
        RUNNING -> RESULT: simulate the month and append it to the history.

        Returns:
            The new MonthResult, or None if the token was stale
        """
        if not self._is_waiting_on(token):
            return None

        try:
            result = self.engine.simulate(
                dict(self.allocation), self.brief.best_channel, self.date, budget=self.brief.budget
            )
        except Exception:
            logger.error("Simulation failed, returning to planning")
            self._set_view(PlanningView())
            raise

        self._history.append(result)
        self.last_result = result
        self._set_view(ResultView(result=result))
        return result

    def advance_month(self) -> Optional[RequestToken]:
        """
        Leave RESULT for the next month.

        Always moves the calendar forward and clears the allocation. At the
        end of a quarter the session enters LOADING for the review question
        and returns its token; otherwise it goes straight to PLANNING.
        """
        self._require("advance to the next month", ViewName.RESULT)

        self.date = self.date.next_month()
        self.allocation = empty_allocation()

        if is_quarter_end(len(self._history)):
            token = self._new_token(RequestKind.CHALLENGE_QUESTION)
            self._set_view(LoadingView(token=token, origin=ViewName.RESULT))
            return token

        self._set_view(PlanningView())
        return None

    # ------------------------------------------------------------------
    # Quarterly review

    def _open_challenge(self, question: str, question_failed: bool):
        self.challenge = Challenge(
            challenge_id=next(self._ids), question=question, question_failed=question_failed
        )
        self._scoring_token = None
        self._set_view(ChallengeView(challenge=self.challenge))

    def complete_challenge_question(self, token: RequestToken, question: str) -> bool:
        if not self._is_waiting_on(token):
            return False
        self._open_challenge(question, question_failed=False)
        return True

    def fail_challenge_question(self, token: RequestToken) -> bool:
        """Open the review with a placeholder question after a failed request."""
        if not self._is_waiting_on(token):
            return False
        self._open_challenge(CHALLENGE_QUESTION_FAILED, question_failed=True)
        return True

    def begin_challenge_answer(self, answer: str) -> RequestToken:
        """
        Submit an answer to the open challenge for grading.

        Raises:
            DuplicateSubmission: If the challenge is scored or being scored
            ValueError: If the answer is blank
        """
        self._require("answer the review", ViewName.CHALLENGE)
        if self.challenge.is_scored or self._scoring_token is not None:
            raise DuplicateSubmission("This review has already been answered")

        answer = answer.strip()
        if not answer:
            raise ValueError("Answer must not be empty")

        self._scoring_token = self._new_token(RequestKind.CHALLENGE_SCORE)
        self.challenge = replace(self.challenge, answer=answer)
        self.view = ChallengeView(challenge=self.challenge)
        return self._scoring_token

    def complete_challenge_score(self, token: RequestToken, result: ScoreResult) -> bool:
        """Record the grade and apply the budget bonus."""
        if token != self._scoring_token or self.view.name != ViewName.CHALLENGE:
            logger.warning(f"Discarding stale {token.kind.value} response #{token.request_id}")
            return False

        challenge, brief = self.scorer.apply_score_result(
            self.challenge, result.score, result.feedback, result.budget_bonus, self.brief
        )
        self._scoring_token = None
        self.challenge = challenge
        self.brief = brief
        self.view = ChallengeView(challenge=challenge)
        return True

    def fail_challenge_score(self, token: RequestToken) -> bool:
        """Reopen the challenge for another answer after grading failed."""
        if token != self._scoring_token or self.view.name != ViewName.CHALLENGE:
            logger.warning(f"Discarding stale {token.kind.value} failure #{token.request_id}")
            return False

        self._scoring_token = None
        self.challenge = replace(self.challenge, answer="")
        self.view = ChallengeView(challenge=self.challenge)
        return True

    def finish_challenge(self):
        """CHALLENGE -> PLANNING, once the review is graded."""
        self._require("leave the review", ViewName.CHALLENGE)
        if not self.challenge.is_scored:
            raise InvalidTransition("leave an unscored review", self.view.name)
        self._set_view(PlanningView())

    # ------------------------------------------------------------------
    # Questions to the client

    def ask_question(self, question: str) -> QAExchange:
        """Log a question with a pending answer."""
        self._require("ask the client a question", *QUESTION_VIEWS)
        question = question.strip()
        if not question:
            raise ValueError("Question must not be empty")

        exchange = QAExchange(exchange_id=next(self._ids), question=question)
        self._qa_log.append(exchange)
        return exchange

    def _find_exchange(self, exchange_id: int) -> Optional[QAExchange]:
        for exchange in self._qa_log:
            if exchange.exchange_id == exchange_id:
                return exchange
        return None

    def resolve_question(self, exchange_id: int, answer: str) -> bool:
        """
        Fill in the answer of a logged question.

        Returns:
            False if the exchange no longer exists (the log was reset)
        """
        exchange = self._find_exchange(exchange_id)
        if exchange is None:
            logger.warning(f"Discarding answer for unknown question #{exchange_id}")
            return False
        exchange.answer = answer
        exchange.answered = True
        return True

    def fail_question(self, exchange_id: int) -> bool:
        return self.resolve_question(exchange_id, FAILED_ANSWER)

    # ------------------------------------------------------------------
    # Modals and credentials

    def open_modal(self, modal: ModalName):
        if modal == ModalName.NONE:
            self.close_modal()
            return
        self._require(f"open the {modal.value} panel", *MODAL_VIEWS)
        self.modal = modal

    def close_modal(self):
        self.modal = ModalName.NONE

    def clear_credentials(self):
        """Escape to AWAITING_CREDENTIALS from any view, dropping the game."""
        self._reset_game_data(reset_date=True)
        self.brief = None
        self._set_view(AwaitingCredentialsView())
