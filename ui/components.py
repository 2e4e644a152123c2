"""
UI components for the AdSim game.
"""

import streamlit as st
from typing import Any, Awaitable, Callable
import logging

from business_logic.error_handler import GameError
from business_logic.game_controller import GameController
from business_logic.outcome_engine import CHANNEL_PROFILES
from business_logic.performance_report import (
    budget_utilisation, channel_breakdown_frame, history_frame, kpi_status, round_feedback
)
from models.data_models import CHANNELS, ModalName, ViewName

logger = logging.getLogger(__name__)


def format_money(value: float, currency: str = "JPY") -> str:
    return f"{value:,.0f} {currency}"


def format_percent(value: float) -> str:
    return f"{value * 100:.2f}%"


class GameScreen:
    """
    Renders the current view of a game and wires buttons to the controller.

    Args:
        controller: GameController driving the session
        run: Executes a coroutine to completion and returns its result
        currency: Currency label used for amounts
    """

    def __init__(self, controller: GameController, run: Callable[[Awaitable[Any]], Any],
                 currency: str = "JPY"):
        self.controller = controller
        self.run = run
        self.currency = currency

    @property
    def session(self):
        return self.controller.session

    def _money(self, value: float) -> str:
        return format_money(value, self.currency)

    def _act(self, action: Callable[[], Any]):
        """Run a UI action, showing rejected operations instead of crashing."""
        try:
            result = action()
            if hasattr(result, "__await__"):
                result = self.run(result)
            return result
        except (GameError, ValueError) as e:
            logger.info(f"Rejected UI action: {str(e)}")
            st.warning(str(e))
            return None

    def render(self):
        """Render notifications and the current view."""
        for notification in self.controller.pop_notifications():
            getattr(st, notification['type'], st.error)(f"**{notification['title']}**: {notification['message']}")

        view = self.session.view_name
        if view == ViewName.AWAITING_CREDENTIALS:
            self.render_credentials()
        elif view == ViewName.LOADING:
            self.render_loading()
        elif view == ViewName.BRIEF:
            self.render_header()
            self.render_brief()
        elif view == ViewName.CHALLENGE:
            self.render_header()
            self.render_challenge()
        else:
            self.render_header()
            self.render_modal()
            left, right = st.columns([3, 2])
            with left:
                self.render_dashboard()
                if view == ViewName.RESULT:
                    self.render_channel_breakdown()
            with right:
                self.render_action_panel()
                self.render_chat()

    def render_credentials(self):
        st.subheader("🔑 API Key")
        notice = getattr(self.session.view, "notice", None)
        if notice:
            st.error(notice)
        with st.form("credentials_form"):
            key = st.text_input("OpenAI API key", type="password", placeholder="sk-...")
            submitted = st.form_submit_button("Start")
        if submitted:
            self._act(lambda: self.controller.submit_credentials(key))
            st.rerun()

    def render_loading(self):
        st.info("⏳ The client is thinking...")

    def render_header(self):
        brief = self.session.brief
        date = self.session.date
        col1, col2, col3, col4, col5 = st.columns([2, 3, 1, 1, 1])
        col1.markdown(f"### AdSim  \n{date.label()}")
        col2.markdown(f"**Client**  \n{brief.client_name}")
        if col3.button("Brief", disabled=self.session.view_name not in (ViewName.PLANNING, ViewName.RESULT)):
            self._act(lambda: self.controller.open_modal(ModalName.BRIEF_DETAIL))
        if col4.button("History", disabled=self.session.view_name not in (ViewName.PLANNING, ViewName.RESULT)):
            self._act(lambda: self.controller.open_modal(ModalName.HISTORY))
        if col5.button("Reset key"):
            self.controller.clear_credentials()
            st.rerun()

    def render_brief(self):
        brief = self.session.brief
        st.subheader("📋 New client enquiry")
        st.markdown(f"**Project overview**  \n{brief.objective}")
        st.markdown(f"**Product**  \n{brief.product_details}")
        st.markdown(f"**Current challenges**  \n{brief.challenges}")
        col1, col2 = st.columns(2)
        col1.metric("Budget", self._money(brief.budget))
        col2.metric("Target CPA", self._money(brief.target_cpa))
        st.markdown(f"**Audience:** {brief.audience}")

        if st.button("Take the job", type="primary", use_container_width=True):
            self._act(self.controller.accept_brief)
            st.rerun()
        if st.button("Find another client"):
            self._act(self.controller.reload_brief)
            st.rerun()

    def render_modal(self):
        modal = self.session.modal
        if modal == ModalName.NONE:
            return

        with st.container(border=True):
            if modal == ModalName.BRIEF_DETAIL:
                brief = self.session.brief
                st.subheader("Brief")
                st.write(f"**Client:** {brief.client_name}")
                st.write(f"**Product:** {brief.product} ({brief.product_details})")
                st.write(f"**Challenges:**  \n{brief.challenges}")
                st.write(f"**Audience:** {brief.audience}")
                st.write(f"**Budget:** {self._money(brief.budget)}")
                st.write(f"**Target CPA:** {self._money(brief.target_cpa)}")
                st.write(f"**Target ROAS:** {brief.min_roas:.2f}")
            elif modal == ModalName.HISTORY:
                st.subheader("Delivery history")
                if not self.session.history:
                    st.write("No data yet.")
                else:
                    st.dataframe(history_frame(self.session.history), hide_index=True)
            elif modal == ModalName.CHANNEL_INFO:
                st.subheader("Channel guide")
                for profile in CHANNEL_PROFILES.values():
                    st.markdown(f"**{profile.label}** · {' · '.join(profile.tags)}")
                    st.caption(profile.description)

            if st.button("Close"):
                self.controller.close_modal()
                st.rerun()

    def render_dashboard(self):
        brief = self.session.brief
        result = self.session.last_result if self.session.view_name == ViewName.RESULT else None
        st.subheader("Dashboard")
        col1, col2, col3 = st.columns(3)
        if result is None:
            col1.metric("Spend", "---")
            col2.metric(f"CPA (target {self._money(brief.target_cpa)})", "---")
            col3.metric(f"ROAS (target {brief.min_roas:.2f})", "---")
            return

        status = kpi_status(result, brief)
        col1.metric("Spend", self._money(result.total.spend))
        col2.metric(f"CPA (target {self._money(brief.target_cpa)})", self._money(result.total.cpa),
                    delta="on target" if status.cpa_on_target else "over target",
                    delta_color="normal" if status.cpa_on_target else "inverse")
        col3.metric(f"ROAS (target {brief.min_roas:.2f})", f"{result.total.roas:.2f}",
                    delta="on target" if status.roas_on_target else "below target",
                    delta_color="normal" if status.roas_on_target else "inverse")
        utilisation = budget_utilisation(result, brief)
        st.progress(utilisation / 100, text=f"Budget used: {utilisation:.0f}%")

    def render_channel_breakdown(self):
        frame = channel_breakdown_frame(self.session.last_result)
        for column in ('CTR', 'CVR'):
            frame[column] = frame[column].map(format_percent)
        st.subheader("Channel report")
        st.dataframe(frame, hide_index=True)

    def render_action_panel(self):
        session = self.session
        view = session.view_name
        planning = view == ViewName.PLANNING

        st.subheader("Planning")
        if st.button("Channel guide", disabled=view == ViewName.RUNNING):
            self._act(lambda: self.controller.open_modal(ModalName.CHANNEL_INFO))
            st.rerun()

        for channel in CHANNELS:
            amount = st.number_input(
                CHANNEL_PROFILES[channel].label,
                min_value=0,
                step=10000,
                value=int(session.allocation[channel]),
                disabled=not planning,
                key=f"alloc_{channel}_{session.date.year}_{session.date.month}"
            )
            if planning and amount != session.allocation[channel]:
                self._act(lambda: self.controller.set_allocation(channel, amount))

        remaining = session.remaining_budget
        st.write(f"**Remaining budget:** {self._money(remaining)}")

        if planning:
            if st.button("🚀 Launch", type="primary", disabled=remaining < 0, use_container_width=True):
                with st.spinner("Running the month..."):
                    self._act(self.controller.run_round)
                st.rerun()

        if view == ViewName.RESULT:
            st.info(round_feedback(session.last_result, session.brief))
            if st.button("Next month", type="primary", use_container_width=True):
                with st.spinner("Preparing next month..."):
                    self._act(self.controller.advance_month)
                st.rerun()

    def render_chat(self):
        st.subheader("Ask the client")
        for exchange in self.session.qa_log:
            with st.chat_message("user"):
                st.write(exchange.question)
            with st.chat_message("assistant"):
                st.write(exchange.answer)

        question = st.chat_input("What makes this product stand out?")
        if question:
            self._act(lambda: self.controller.ask_question(question))
            st.rerun()

    def render_challenge(self):
        challenge = self.session.challenge
        st.subheader("📢 Quarterly review")
        st.write("Three months have passed. The client has a question.")
        with st.chat_message("assistant"):
            st.write(challenge.question)

        if not challenge.is_scored:
            answer = st.text_area("Your answer", key=f"challenge_{challenge.challenge_id}")
            if st.button("Submit answer", type="primary", use_container_width=True,
                         disabled=self.session.scoring_pending):
                with st.spinner("The client is reviewing your answer..."):
                    self._act(lambda: self.controller.submit_challenge_answer(answer))
                st.rerun()
            return

        st.caption("Your answer")
        st.write(challenge.answer)
        st.markdown(f"### Client reaction (score: {challenge.score}/10)")
        st.write(challenge.feedback)
        if challenge.score >= 8:
            st.success("✨ You earned the client's trust. Next month's budget has been increased!")
        elif challenge.score <= 3:
            st.error("⚠️ The client lost confidence. The budget has been cut.")

        if st.button("Next month", type="primary", use_container_width=True):
            self._act(self.controller.continue_after_challenge)
            st.rerun()
