"""
Main entry point for the AdSim agency game.
"""
import asyncio
import logging
import streamlit as st

# Set up logging
logger = logging.getLogger(__name__)
from config.settings import config_manager
from business_logic.game_controller import GameController
from ui.components import GameScreen


def _get_event_loop() -> asyncio.AbstractEventLoop:
    """One event loop per browser session, so AI clients keep their connections."""
    if 'event_loop' not in st.session_state:
        st.session_state['event_loop'] = asyncio.new_event_loop()
    return st.session_state['event_loop']


def _run(coro):
    return _get_event_loop().run_until_complete(coro)


def main():
    """Main application entry point."""
    st.set_page_config(
        page_title="AdSim",
        page_icon="📈",
        layout="wide"
    )

    config = config_manager.load_config()

    if 'controller' not in st.session_state:
        controller = GameController()
        st.session_state['controller'] = controller
        logger.info("Starting new game session")
        _run(controller.start())

    screen = GameScreen(st.session_state['controller'], _run, currency=config.currency)
    screen.render()


if __name__ == "__main__":
    main()
