"""
Client brief generation.

Asks the AI service for a fictional client scenario and validates every
field before it reaches the game.
"""

import logging
from abc import ABC, abstractmethod
from typing import Any, Dict

from models.data_models import CHANNELS, Brief
from .ai_client import OpenAIChatClient, is_finite_number
from .error_handler import ProviderFailure

# Set up logging
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)


TEXT_FIELDS = {
    'clientName': 'client_name',
    'product': 'product',
    'objective': 'objective',
    'productDetails': 'product_details',
    'challenges': 'challenges',
    'audience': 'audience',
}

NUMBER_FIELDS = {
    'budget': 'budget',
    'targetCPA': 'target_cpa',
    'minROAS': 'min_roas',
}


class BriefProvider(ABC):
    """Source of new client scenarios."""

    @abstractmethod
    async def generate(self) -> Brief:
        """Return a new brief or raise ProviderFailure."""


def _as_positive_number(value: Any, field_name: str) -> float:
    if not is_finite_number(value):
        raise ProviderFailure(f"Brief field '{field_name}' must be a finite number, got {value!r}")
    if value <= 0:
        raise ProviderFailure(f"Brief field '{field_name}' must be positive, got {value!r}")
    return value


def parse_brief(payload: Dict[str, Any]) -> Brief:
    """
    Validate a raw brief payload and convert it to a Brief.

    Args:
        payload: Decoded JSON object from the AI service

    Returns:
        Validated Brief

    Raises:
        ProviderFailure: If any field is missing or has the wrong type
    """
    values = {}

    for source, target in TEXT_FIELDS.items():
        value = payload.get(source)
        if not isinstance(value, str) or not value.strip():
            raise ProviderFailure(f"Brief missing required text field: {source}")
        values[target] = value.strip()

    for source, target in NUMBER_FIELDS.items():
        if source not in payload:
            raise ProviderFailure(f"Brief missing required number field: {source}")
        values[target] = _as_positive_number(payload[source], source)

    best_channel = payload.get('bestChannel')
    if not isinstance(best_channel, str) or best_channel.strip().lower() not in CHANNELS:
        raise ProviderFailure(f"Brief field 'bestChannel' must be one of {', '.join(CHANNELS)}")
    values['best_channel'] = best_channel.strip().lower()

    return Brief(**values)


class AIBriefProvider(BriefProvider):
    """
    Generates briefs with the OpenAI chat API.
    """

    def __init__(self, chat_client: OpenAIChatClient, currency: str = "JPY"):
        self.chat_client = chat_client
        self.currency = currency

    def create_brief_prompt(self) -> str:
        """Build the scenario generation prompt."""
        return f"""You are the simulation engine of an advertising agency game. Create a fictional client scenario.
Return ONLY a JSON object with the following fields:
- clientName: string (fictional company name)
- product: string (product or service name)
- objective: string (campaign objective)
- productDetails: string (2-3 sentences describing the product)
- challenges: string (bulleted list of 3 marketing challenges)
- budget: number (monthly budget between 500,000 and 5,000,000 {self.currency})
- targetCPA: number (a realistic cost per acquisition for the industry, in {self.currency})
- minROAS: number (between 1.5 and 4.0)
- audience: string (target audience description)
- bestChannel: string (one of: {', '.join(f'"{c}"' for c in CHANNELS)})

Pick a random industry (SaaS, e-commerce, games, B2B, recruitment, real estate, etc.)."""

    async def generate(self) -> Brief:
        payload = await self.chat_client.complete_json(self.create_brief_prompt(), "brief generation")
        brief = parse_brief(payload)
        logger.info(f"Generated brief for {brief.client_name} ({brief.product})")
        return brief
