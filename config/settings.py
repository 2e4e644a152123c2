"""
Configuration management for the AdSim game.
Handles the API key fallback, AI model settings and game tuning values.
"""

import os
import streamlit as st
from dotenv import load_dotenv
from typing import Optional
from dataclasses import dataclass


@dataclass
class AppConfig:
    """Application configuration settings."""
    openai_api_key: Optional[str] = None
    model_name: str = "gpt-4o-mini"
    temperature: float = 0.7
    request_timeout_seconds: float = 60.0
    simulation_delay_seconds: float = 1.0
    challenge_bonus: float = 500000.0
    currency: str = "JPY"
    credential_file: str = "~/.adsim/credentials.json"


class ConfigManager:
    """Manages application configuration and settings."""

    def __init__(self):
        self._config: Optional[AppConfig] = None

    def load_config(self) -> AppConfig:
        """Load configuration from Streamlit secrets, the environment and .env."""
        if self._config is not None:
            return self._config

        load_dotenv()

        defaults = AppConfig()
        self._config = AppConfig(
            openai_api_key=self._get_secret_or_env("OPENAI_API_KEY"),
            model_name=self._get_setting("ADSIM_MODEL", defaults.model_name),
            temperature=self._get_float_setting("ADSIM_TEMPERATURE", defaults.temperature),
            request_timeout_seconds=self._get_float_setting(
                "ADSIM_REQUEST_TIMEOUT", defaults.request_timeout_seconds
            ),
            simulation_delay_seconds=self._get_float_setting(
                "ADSIM_SIMULATION_DELAY", defaults.simulation_delay_seconds
            ),
            challenge_bonus=self._get_float_setting("ADSIM_CHALLENGE_BONUS", defaults.challenge_bonus),
            currency=self._get_setting("ADSIM_CURRENCY", defaults.currency),
            credential_file=self._get_setting("ADSIM_CREDENTIAL_FILE", defaults.credential_file)
        )

        return self._config

    def reset(self):
        """Forget the cached configuration so the next load re-reads it."""
        self._config = None

    def _get_secret_or_env(self, key: str) -> Optional[str]:
        """Get value from Streamlit secrets or environment variables."""
        # Streamlit raises when no secrets file exists
        try:
            if hasattr(st, 'secrets') and key in st.secrets:
                return st.secrets[key]
        except Exception:
            pass

        return os.getenv(key)

    def _get_setting(self, key: str, default: str) -> str:
        """Get string setting with default value."""
        value = self._get_secret_or_env(key)
        return value if value is not None else default

    def _get_float_setting(self, key: str, default: float) -> float:
        """Get numeric setting with default value."""
        value = self._get_secret_or_env(key)
        if value is not None:
            try:
                return float(value)
            except ValueError:
                pass
        return default

    def get_openai_api_key(self) -> Optional[str]:
        """Get the fallback OpenAI API key, if one is configured."""
        config = self.load_config()
        return config.openai_api_key

    def get_simulation_delay(self) -> float:
        """Get the pacing delay of a running month in seconds."""
        config = self.load_config()
        return config.simulation_delay_seconds


# Global configuration manager instance
config_manager = ConfigManager()
