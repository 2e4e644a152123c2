"""
Outcome engine for simulated monthly ad delivery.

Turns a budget allocation into per-channel delivery metrics. Every
channel gets a random luck multiplier each month; the scenario's hidden
best channel gets an extra boost, which is how a correct read of the
brief pays off without the game ever naming the channel.
"""

import logging
import math
import random
from typing import Dict, Mapping, Optional

from models.data_models import (
    ChannelProfile, ChannelResult, GameDate, MonthResult, MonthTotals
)
from .error_handler import BudgetExceeded

# Set up logging
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)


LUCK_MIN = 0.8
LUCK_SPREAD = 0.4
BEST_CHANNEL_BONUS = 0.3
DEFAULT_BEST_CHANNEL = "google"

CHANNEL_PROFILES: Dict[str, ChannelProfile] = {
    "google": ChannelProfile(
        channel_id="google",
        label="Google Ads",
        base_cpm=500,
        base_ctr=0.02,
        base_cvr=0.05,
        base_roas=2.5,
        tags=("Search", "High intent"),
        description=(
            "Users search actively, so conversion rates tend to be high. "
            "Competition is heavy and click prices climb quickly. "
            "Suits B2B and urgent, need-driven services."
        ),
    ),
    "meta": ChannelProfile(
        channel_id="meta",
        label="Meta (Facebook/Instagram)",
        base_cpm=800,
        base_ctr=0.015,
        base_cvr=0.04,
        base_roas=3.0,
        tags=("Precise targeting", "Visual"),
        description=(
            "Real-name profiles allow precise targeting by age, interests and job. "
            "Strong at reaching latent demand with detailed personas."
        ),
    ),
    "tiktok": ChannelProfile(
        channel_id="tiktok",
        label="TikTok",
        base_cpm=400,
        base_ctr=0.01,
        base_cvr=0.03,
        base_roas=1.5,
        tags=("Viral reach", "Young audience"),
        description=(
            "The recommendation feed spreads content fast, but creatives wear out quickly. "
            "Strong for teens and twenty-somethings and for visually striking products."
        ),
    ),
}


class OutcomeEngine:
    """
    Simulates one month of ad delivery.

    The engine owns the game's only source of randomness. Pass a seeded
    ``random.Random`` (or any object with a ``random()`` method) to make
    results reproducible.
    """

    def __init__(self, rng: Optional[random.Random] = None,
                 profiles: Optional[Dict[str, ChannelProfile]] = None):
        self.rng = rng or random.Random()
        self.profiles = profiles or CHANNEL_PROFILES

    def draw_luck(self, channel: str, best_channel: str) -> float:
        """
        Draw the luck multiplier for one channel.

        Args:
            channel: Channel being simulated
            best_channel: The brief's hidden best channel

        Returns:
            Multiplier in [0.8, 1.2), plus the best-channel bonus when it matches
        """
        luck = LUCK_MIN + self.rng.random() * LUCK_SPREAD
        if channel == (best_channel or DEFAULT_BEST_CHANNEL).strip().lower():
            luck += BEST_CHANNEL_BONUS
        return luck

    def simulate_channel(self, channel: str, amount: float, luck: float) -> ChannelResult:
        """
        Compute delivery metrics for a single channel at a given luck.

        Args:
            channel: Channel id
            amount: Spend on the channel, greater than zero
            luck: Luck multiplier for this month

        Returns:
            ChannelResult for the channel
        """
        profile = self.profiles[channel]

        cpm = profile.base_cpm / luck
        ctr = profile.base_ctr * luck
        cvr = profile.base_cvr * luck

        impressions = math.floor(amount / cpm * 1000)
        clicks = math.floor(impressions * ctr)
        conversions = math.floor(clicks * cvr)
        revenue = amount * profile.base_roas * luck

        cpa = amount / conversions if conversions > 0 else 0
        roas = revenue / amount if amount > 0 else 0

        return ChannelResult(
            spend=amount,
            impressions=impressions,
            clicks=clicks,
            conversions=conversions,
            revenue=revenue,
            cpa=cpa,
            cpm=cpm,
            ctr=ctr,
            cvr=cvr,
            roas=roas,
        )

    def simulate(self, allocation: Mapping[str, float], best_channel: str, date: GameDate,
                 budget: Optional[float] = None) -> MonthResult:
        """
        Simulate one month for the given allocation.

        Args:
            allocation: Spend per channel id; missing channels count as zero
            best_channel: The brief's hidden best channel
            date: Month being simulated
            budget: When given, reject allocations that exceed it

        Returns:
            MonthResult with per-channel results and totals

        Raises:
            BudgetExceeded: If the allocation is larger than the budget
            ValueError: For unknown channels or negative amounts
        """
        unknown = set(allocation) - set(self.profiles)
        if unknown:
            raise ValueError(f"Unknown channels in allocation: {', '.join(sorted(unknown))}")

        for channel, amount in allocation.items():
            if amount < 0:
                raise ValueError(f"Allocation for {channel} must not be negative, got {amount}")

        allocated = sum(allocation.values())
        if budget is not None and allocated > budget:
            raise BudgetExceeded(allocated, budget)

        channel_results: Dict[str, Optional[ChannelResult]] = {}
        total_spend = 0
        total_conversions = 0
        total_revenue = 0

        for channel in self.profiles:
            amount = allocation.get(channel, 0)
            if amount <= 0:
                channel_results[channel] = None
                continue

            luck = self.draw_luck(channel, best_channel)
            result = self.simulate_channel(channel, amount, luck)
            channel_results[channel] = result

            total_spend += result.spend
            total_conversions += result.conversions
            total_revenue += result.revenue

        overall_cpa = total_spend / total_conversions if total_conversions > 0 else 0
        overall_roas = total_revenue / total_spend if total_spend > 0 else 0

        logger.info(
            f"Simulated {date.label()}: spend={total_spend:,.0f} "
            f"conversions={total_conversions} roas={overall_roas:.2f}"
        )

        return MonthResult(
            date=date,
            total=MonthTotals(
                spend=total_spend,
                conversions=total_conversions,
                revenue=total_revenue,
                cpa=overall_cpa,
                roas=overall_roas,
            ),
            channels=channel_results,
        )
