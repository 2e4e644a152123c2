"""
Tests for the game session view machine.
"""

import pytest

from business_logic.error_handler import BudgetExceeded, DuplicateSubmission, InvalidTransition
from business_logic.game_state import CHALLENGE_QUESTION_FAILED, GameSession, is_quarter_end
from models.data_models import (
    FAILED_ANSWER, PENDING_ANSWER, ChallengeView, GameDate, ModalName, ScoreResult, ViewName,
    empty_allocation
)
from conftest import play_month


def _finish_review(session, score=ScoreResult(score=5, feedback="OK.", budget_bonus=0)):
    token = session.advance_month()
    session.complete_challenge_question(token, "Why?")
    scoring = session.begin_challenge_answer("Because.")
    session.complete_challenge_score(scoring, score)
    session.finish_challenge()


class TestBriefFlow:
    """Test cases for credentials and brief generation."""

    def test_starts_awaiting_credentials(self, session):
        assert session.view_name == ViewName.AWAITING_CREDENTIALS
        assert session.brief is None

    def test_brief_request_success(self, session, sample_brief):
        token = session.begin_brief_request()
        assert session.view_name == ViewName.LOADING

        assert session.complete_brief_request(token, sample_brief)
        assert session.view_name == ViewName.BRIEF
        assert session.brief == sample_brief
        assert session.date == GameDate(1, 1)
        assert session.history == ()

    def test_brief_request_failure_returns_to_credentials(self, session):
        token = session.begin_brief_request()

        assert session.fail_brief_request(token, "API error")
        assert session.view_name == ViewName.AWAITING_CREDENTIALS
        assert session.view.notice == "API error"

    def test_second_brief_request_is_rejected(self, session):
        session.begin_brief_request()
        with pytest.raises(DuplicateSubmission):
            session.begin_brief_request()

    def test_reload_replaces_brief(self, session, sample_brief):
        session.complete_brief_request(session.begin_brief_request(), sample_brief)
        other = sample_brief.with_budget(2000000)

        token = session.begin_brief_request()
        session.complete_brief_request(token, other)

        assert session.brief.budget == 2000000
        assert session.view_name == ViewName.BRIEF

    def test_stale_brief_is_discarded(self, session, sample_brief):
        token = session.begin_brief_request()
        session.clear_credentials()

        assert not session.complete_brief_request(token, sample_brief)
        assert session.brief is None
        assert session.view_name == ViewName.AWAITING_CREDENTIALS

    def test_brief_cannot_be_requested_while_planning(self, planning_session):
        with pytest.raises(InvalidTransition):
            planning_session.begin_brief_request()

    def test_accept_brief(self, session, sample_brief):
        session.complete_brief_request(session.begin_brief_request(), sample_brief)
        session.accept_brief()
        assert session.view_name == ViewName.PLANNING


class TestRounds:
    """Test cases for planning and running months."""

    def test_over_budget_round_is_rejected_without_change(self, planning_session):
        planning_session.set_allocation("google", 800000)
        planning_session.set_allocation("meta", 300000)
        allocation_before = dict(planning_session.allocation)

        with pytest.raises(BudgetExceeded):
            planning_session.start_round()

        assert planning_session.view_name == ViewName.PLANNING
        assert planning_session.allocation == allocation_before
        assert planning_session.history == ()

    def test_round_produces_result(self, planning_session):
        result = play_month(planning_session, google=200000)

        assert planning_session.view_name == ViewName.RESULT
        assert planning_session.last_result is result
        assert planning_session.history == (result,)
        assert planning_session.view.result is result

    def test_second_run_while_running_is_rejected(self, planning_session):
        planning_session.set_allocation("google", 1000)
        planning_session.start_round()

        with pytest.raises(DuplicateSubmission):
            planning_session.start_round()
        assert planning_session.view_name == ViewName.RUNNING

    def test_allocation_locked_outside_planning(self, planning_session):
        play_month(planning_session)
        with pytest.raises(InvalidTransition):
            planning_session.set_allocation("meta", 1000)

    def test_allocation_validation(self, planning_session):
        with pytest.raises(ValueError):
            planning_session.set_allocation("radio", 1000)
        with pytest.raises(ValueError):
            planning_session.set_allocation("google", -5)

    def test_remaining_budget(self, planning_session):
        planning_session.set_allocation("google", 250000)
        planning_session.set_allocation("meta", 150000)
        assert planning_session.allocated_total == 400000
        assert planning_session.remaining_budget == 600000

    def test_advance_resets_allocation_and_moves_date(self, planning_session):
        play_month(planning_session)
        assert planning_session.advance_month() is None

        assert planning_session.view_name == ViewName.PLANNING
        assert planning_session.date == GameDate(1, 2)
        assert planning_session.allocation == empty_allocation()

    def test_history_is_append_only_and_chronological(self, planning_session):
        results = []
        for _ in range(5):
            results.append(play_month(planning_session, google=100000))
            snapshot = planning_session.history
            token = planning_session.advance_month()
            if token is not None:
                planning_session.complete_challenge_question(token, "Why?")
                scoring = planning_session.begin_challenge_answer("Because.")
                planning_session.complete_challenge_score(
                    scoring, ScoreResult(score=5, feedback="OK.", budget_bonus=0)
                )
                planning_session.finish_challenge()
            assert planning_session.history[:len(snapshot)] == snapshot

        history = planning_session.history
        assert len(history) == 5
        assert list(history) == results
        assert [m.date.month for m in history] == [1, 2, 3, 4, 5]

    def test_stale_round_completion_is_ignored(self, planning_session):
        planning_session.set_allocation("google", 1000)
        token = planning_session.start_round()
        planning_session.clear_credentials()

        assert planning_session.complete_round(token) is None
        assert planning_session.history == ()

    def test_date_rolls_over_year(self, planning_session):
        planning_session.date = GameDate(1, 12)
        play_month(planning_session)
        planning_session.advance_month()
        assert planning_session.date == GameDate(2, 1)


class TestQuarterlyReview:
    """Test cases for the quarterly challenge."""

    @pytest.mark.parametrize("length, expected", [
        (0, False), (1, False), (2, False), (3, True), (4, False), (6, True), (9, True), (10, False)
    ])
    def test_quarter_end(self, length, expected):
        assert is_quarter_end(length) == expected

    def _play_months(self, session, count):
        for _ in range(count - 1):
            play_month(session)
            session.advance_month()
        play_month(session)

    def test_third_month_triggers_review(self, planning_session):
        self._play_months(planning_session, 3)
        token = planning_session.advance_month()

        assert token is not None
        assert planning_session.view_name == ViewName.LOADING
        assert planning_session.date == GameDate(1, 4)

        planning_session.complete_challenge_question(token, "Why is ROAS low?")
        assert planning_session.view_name == ViewName.CHALLENGE
        assert isinstance(planning_session.view, ChallengeView)
        assert planning_session.view.challenge.question == "Why is ROAS low?"

    def test_review_cannot_be_skipped_before_scoring(self, planning_session):
        self._play_months(planning_session, 3)
        token = planning_session.advance_month()
        planning_session.complete_challenge_question(token, "Why?")

        with pytest.raises(InvalidTransition):
            planning_session.finish_challenge()

    def test_high_score_raises_budget_and_returns_to_planning(self, planning_session):
        self._play_months(planning_session, 3)
        token = planning_session.advance_month()
        planning_session.complete_challenge_question(token, "Why?")

        scoring = planning_session.begin_challenge_answer("We rebalanced to search.")
        assert planning_session.complete_challenge_score(
            scoring, ScoreResult(score=9, feedback="Great.", budget_bonus=500000)
        )
        assert planning_session.brief.budget == 1500000
        assert planning_session.challenge.score == 9

        planning_session.finish_challenge()
        assert planning_session.view_name == ViewName.PLANNING
        assert planning_session.date == GameDate(1, 4)

    def test_second_answer_is_rejected(self, planning_session):
        self._play_months(planning_session, 3)
        planning_session.complete_challenge_question(planning_session.advance_month(), "Why?")
        planning_session.begin_challenge_answer("First answer.")

        with pytest.raises(DuplicateSubmission):
            planning_session.begin_challenge_answer("Second answer.")

    def test_answer_after_scoring_is_rejected(self, planning_session):
        self._play_months(planning_session, 3)
        planning_session.complete_challenge_question(planning_session.advance_month(), "Why?")
        token = planning_session.begin_challenge_answer("Answer.")
        planning_session.complete_challenge_score(token, ScoreResult(5, "OK.", 0))

        with pytest.raises(DuplicateSubmission):
            planning_session.begin_challenge_answer("Again.")
        assert not planning_session.complete_challenge_score(token, ScoreResult(9, "Great.", 500000))
        assert planning_session.brief.budget == 1000000

    def test_failed_grading_reopens_answer(self, planning_session):
        self._play_months(planning_session, 3)
        planning_session.complete_challenge_question(planning_session.advance_month(), "Why?")
        token = planning_session.begin_challenge_answer("Answer.")

        assert planning_session.fail_challenge_score(token)
        assert planning_session.challenge.answer == ""
        assert not planning_session.scoring_pending
        planning_session.begin_challenge_answer("Better answer.")

    def test_failed_question_uses_placeholder(self, planning_session):
        self._play_months(planning_session, 3)
        token = planning_session.advance_month()

        planning_session.fail_challenge_question(token)
        assert planning_session.view_name == ViewName.CHALLENGE
        assert planning_session.challenge.question == CHALLENGE_QUESTION_FAILED
        assert planning_session.challenge.question_failed

    def test_fourth_and_fifth_months_skip_review(self, planning_session):
        self._play_months(planning_session, 3)
        _finish_review(planning_session)

        play_month(planning_session)
        assert planning_session.advance_month() is None
        play_month(planning_session)
        assert planning_session.advance_month() is None
        play_month(planning_session)
        assert planning_session.advance_month() is not None


class TestQuestions:
    """Test cases for the client question log."""

    def test_question_is_logged_pending(self, planning_session):
        exchange = planning_session.ask_question("  What sells best?  ")

        assert exchange.question == "What sells best?"
        assert exchange.answer == PENDING_ANSWER
        assert planning_session.qa_log == (exchange,)

    def test_answers_match_their_questions(self, planning_session):
        first = planning_session.ask_question("First?")
        second = planning_session.ask_question("Second?")

        planning_session.resolve_question(second.exchange_id, "Answer two")
        planning_session.resolve_question(first.exchange_id, "Answer one")

        assert [e.answer for e in planning_session.qa_log] == ["Answer one", "Answer two"]

    def test_failed_answer_placeholder(self, planning_session):
        exchange = planning_session.ask_question("Anything?")
        planning_session.fail_question(exchange.exchange_id)
        assert exchange.answer == FAILED_ANSWER

    def test_questions_only_in_planning_and_result(self, session, sample_brief):
        with pytest.raises(InvalidTransition):
            session.ask_question("Hello?")
        session.complete_brief_request(session.begin_brief_request(), sample_brief)
        with pytest.raises(InvalidTransition):
            session.ask_question("Hello?")

    def test_answer_after_reset_is_discarded(self, planning_session):
        exchange = planning_session.ask_question("Anything?")
        planning_session.clear_credentials()

        assert not planning_session.resolve_question(exchange.exchange_id, "Late answer")
        assert planning_session.qa_log == ()

    def test_blank_question_rejected(self, planning_session):
        with pytest.raises(ValueError):
            planning_session.ask_question("   ")


class TestModalsAndReset:
    """Test cases for modal panels and credential clearing."""

    def test_modal_opens_in_planning(self, planning_session):
        planning_session.open_modal(ModalName.HISTORY)
        assert planning_session.modal == ModalName.HISTORY

    def test_modal_cleared_on_view_change(self, planning_session):
        planning_session.open_modal(ModalName.CHANNEL_INFO)
        play_month(planning_session)
        assert planning_session.modal == ModalName.NONE

    def test_modal_rejected_in_brief_view(self, session, sample_brief):
        session.complete_brief_request(session.begin_brief_request(), sample_brief)
        with pytest.raises(InvalidTransition):
            session.open_modal(ModalName.BRIEF_DETAIL)

    def test_clear_credentials_discards_game(self, planning_session):
        play_month(planning_session)
        planning_session.ask_question("Hi?")
        planning_session.clear_credentials()

        assert planning_session.view_name == ViewName.AWAITING_CREDENTIALS
        assert planning_session.brief is None
        assert planning_session.history == ()
        assert planning_session.qa_log == ()
        assert planning_session.challenge is None
        assert planning_session.date == GameDate(1, 1)

    def test_new_brief_after_reset_starts_clean(self, planning_session, sample_brief):
        play_month(planning_session)
        planning_session.clear_credentials()
        planning_session.complete_brief_request(planning_session.begin_brief_request(), sample_brief)

        assert planning_session.history == ()
        assert planning_session.last_result is None
        assert planning_session.allocation == empty_allocation()


def test_session_defaults():
    session = GameSession()
    assert session.remaining_budget == 0
    assert session.modal == ModalName.NONE
