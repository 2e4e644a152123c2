"""
Tests for the GameScreen UI component.
"""

import asyncio
import pytest
from unittest.mock import Mock, patch

from business_logic.error_handler import BudgetExceeded, ProviderFailure
from ui.components import GameScreen, format_money, format_percent
from conftest import FakeBriefProvider


def test_format_helpers():
    assert format_money(1234567.4) == "1,234,567 JPY"
    assert format_money(500, "USD") == "500 USD"
    assert format_percent(0.0234) == "2.34%"


class TestGameScreen:
    """Test cases for GameScreen."""

    @pytest.fixture
    def controller(self, make_controller):
        return make_controller()

    def test_act_runs_coroutines(self, controller):
        run = Mock(side_effect=asyncio.run)
        screen = GameScreen(controller, run)

        assert screen._act(lambda: controller.submit_credentials("sk-test"))
        run.assert_called_once()

    @patch('ui.components.st')
    def test_act_shows_rejected_action(self, mock_st, controller):
        screen = GameScreen(controller, asyncio.run)

        def over_budget():
            raise BudgetExceeded(2, 1)

        assert screen._act(over_budget) is None
        mock_st.warning.assert_called_once()

    @patch('ui.components.st')
    def test_credentials_view_shows_notice(self, mock_st, make_controller):
        controller = make_controller(brief_provider=FakeBriefProvider(ProviderFailure("bad json")))
        asyncio.run(controller.submit_credentials("sk-test"))
        mock_st.form_submit_button.return_value = False

        GameScreen(controller, asyncio.run).render()

        mock_st.subheader.assert_called_with("🔑 API Key")
        # One call for the queued notification, one for the view notice
        assert mock_st.error.call_count == 2

    @patch('ui.components.st')
    def test_loading_view(self, mock_st, controller):
        controller.session.begin_brief_request()

        GameScreen(controller, asyncio.run).render()

        mock_st.info.assert_called_once()

    @patch('ui.components.st')
    def test_channel_report_shows_rates_as_percentages(self, mock_st, controller):
        asyncio.run(controller.submit_credentials("sk-test"))
        controller.accept_brief()
        controller.set_allocation("google", 500000)
        result = asyncio.run(controller.run_round())

        GameScreen(controller, asyncio.run).render_channel_breakdown()

        frame = mock_st.dataframe.call_args.args[0]
        assert list(frame['Channel']) == ["google"]
        assert frame['CTR'].iloc[0] == format_percent(result.channels["google"].ctr)
        assert frame['CVR'].iloc[0].endswith("%")
