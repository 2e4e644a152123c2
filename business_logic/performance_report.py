"""
Reporting helpers for monthly results.

Builds the tables shown in the history and result panels and the short
verdict the client gives after each month.
"""

from dataclasses import dataclass
from typing import Sequence

import pandas as pd

from models.data_models import Brief, MonthResult


UNDERSPEND_RATIO = 0.8
CPA_TOLERANCE = 1.2

HISTORY_COLUMNS = ['Year', 'Month', 'Spend', 'Conversions', 'Revenue', 'CPA', 'ROAS']
CHANNEL_COLUMNS = ['Channel', 'Spend', 'Impressions', 'Clicks', 'CTR', 'Conversions', 'CVR', 'CPA', 'ROAS']


@dataclass(frozen=True)
class KpiStatus:
    """Whether a month met the brief's targets."""
    cpa_on_target: bool
    roas_on_target: bool

    @property
    def all_met(self) -> bool:
        return self.cpa_on_target and self.roas_on_target


def round_feedback(result: MonthResult, brief: Brief) -> str:
    """
    One-line verdict on a month.

    Unspent budget is called out first, then an expensive CPA.
    """
    if result.total.spend < brief.budget * UNDERSPEND_RATIO:
        return "Budget underspent."
    if result.total.cpa > brief.target_cpa * CPA_TOLERANCE:
        return "CPA is rising."
    return "Strong results."


def kpi_status(result: MonthResult, brief: Brief) -> KpiStatus:
    return KpiStatus(
        cpa_on_target=result.total.cpa <= brief.target_cpa,
        roas_on_target=result.total.roas >= brief.min_roas
    )


def budget_utilisation(result: MonthResult, brief: Brief) -> float:
    """Spend as a percentage of budget, capped at 100."""
    if brief.budget <= 0:
        return 0.0
    return min(result.total.spend / brief.budget * 100, 100.0)


def history_frame(history: Sequence[MonthResult]) -> pd.DataFrame:
    """
    Tabulate monthly totals, one row per simulated month in order.

    Args:
        history: Month results in chronological order

    Returns:
        DataFrame with HISTORY_COLUMNS
    """
    rows = [
        {
            'Year': month.date.year,
            'Month': month.date.month,
            'Spend': month.total.spend,
            'Conversions': month.total.conversions,
            'Revenue': month.total.revenue,
            'CPA': month.total.cpa,
            'ROAS': month.total.roas,
        }
        for month in history
    ]
    return pd.DataFrame(rows, columns=HISTORY_COLUMNS)


def channel_breakdown_frame(result: MonthResult) -> pd.DataFrame:
    """
    Tabulate per-channel delivery for one month.

    Channels that received no spend are left out.
    """
    rows = []
    for channel, data in result.active_channels().items():
        rows.append({
            'Channel': channel,
            'Spend': data.spend,
            'Impressions': data.impressions,
            'Clicks': data.clicks,
            'CTR': data.ctr,
            'Conversions': data.conversions,
            'CVR': data.cvr,
            'CPA': data.cpa,
            'ROAS': data.roas,
        })
    return pd.DataFrame(rows, columns=CHANNEL_COLUMNS)
