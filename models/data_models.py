"""
Core data models for the AdSim agency game.
"""

from dataclasses import dataclass, replace
from enum import Enum
from types import MappingProxyType
from typing import ClassVar, Dict, Mapping, Optional, Tuple, Union


CHANNELS: Tuple[str, ...] = ("google", "meta", "tiktok")

PENDING_ANSWER = "..."
FAILED_ANSWER = "Error."


class ViewName(Enum):
    """Main views of the game."""
    AWAITING_CREDENTIALS = "awaiting_credentials"
    LOADING = "loading"
    BRIEF = "brief"
    PLANNING = "planning"
    RUNNING = "running"
    RESULT = "result"
    CHALLENGE = "challenge"


class ModalName(Enum):
    """Overlay selector shown on top of the main view."""
    NONE = "none"
    HISTORY = "history"
    BRIEF_DETAIL = "brief_detail"
    CHANNEL_INFO = "channel_info"


class RequestKind(Enum):
    """Kinds of asynchronous work the session waits on."""
    BRIEF = "brief"
    ROUND = "round"
    CHALLENGE_QUESTION = "challenge_question"
    CHALLENGE_SCORE = "challenge_score"


@dataclass(frozen=True)
class Brief:
    """Client scenario the player is working on."""
    client_name: str
    product: str
    objective: str
    product_details: str
    challenges: str
    budget: float
    target_cpa: float
    min_roas: float
    audience: str
    best_channel: str

    def with_budget(self, budget: float) -> "Brief":
        return replace(self, budget=budget)


@dataclass(frozen=True)
class ChannelProfile:
    """Baseline performance of an advertising channel."""
    channel_id: str
    label: str
    base_cpm: float
    base_ctr: float
    base_cvr: float
    base_roas: float
    tags: Tuple[str, ...] = ()
    description: str = ""


@dataclass(frozen=True)
class ChannelResult:
    """Delivery metrics for one channel in one month."""
    spend: float
    impressions: int
    clicks: int
    conversions: int
    revenue: float
    cpa: float
    cpm: float
    ctr: float
    cvr: float
    roas: float


@dataclass(frozen=True)
class MonthTotals:
    """Aggregate metrics across all channels."""
    spend: float
    conversions: int
    revenue: float
    cpa: float
    roas: float


@dataclass(frozen=True)
class GameDate:
    """In-game calendar position."""
    year: int = 1
    month: int = 1

    def __post_init__(self):
        if self.year < 1:
            raise ValueError(f"Year must be at least 1, got {self.year}")
        if not 1 <= self.month <= 12:
            raise ValueError(f"Month must be between 1 and 12, got {self.month}")

    def next_month(self) -> "GameDate":
        if self.month == 12:
            return GameDate(year=self.year + 1, month=1)
        return GameDate(year=self.year, month=self.month + 1)

    def label(self) -> str:
        return f"Year {self.year}, Month {self.month}"


@dataclass(frozen=True)
class MonthResult:
    """Outcome of a single simulated month."""
    date: GameDate
    total: MonthTotals
    channels: Mapping[str, Optional[ChannelResult]]

    def __post_init__(self):
        # Freeze the per-channel mapping so history entries stay untouched
        object.__setattr__(self, "channels", MappingProxyType(dict(self.channels)))

    def active_channels(self) -> Dict[str, ChannelResult]:
        return {name: res for name, res in self.channels.items() if res is not None}


@dataclass
class QAExchange:
    """A question put to the client and its (possibly pending) answer."""
    exchange_id: int
    question: str
    answer: str = PENDING_ANSWER
    answered: bool = False


@dataclass(frozen=True)
class Challenge:
    """Quarterly review question and its grading."""
    challenge_id: int
    question: str
    answer: str = ""
    feedback: str = ""
    score: int = 0
    question_failed: bool = False

    @property
    def is_scored(self) -> bool:
        return self.feedback != ""


@dataclass(frozen=True)
class ScoreResult:
    """Validated grading returned by the evaluator."""
    score: int
    feedback: str
    budget_bonus: float


@dataclass(frozen=True)
class RequestToken:
    """Identifies one outstanding asynchronous request."""
    kind: RequestKind
    request_id: int


# View variants. Each carries only the data valid while it is shown.

@dataclass(frozen=True)
class AwaitingCredentialsView:
    name: ClassVar[ViewName] = ViewName.AWAITING_CREDENTIALS
    notice: Optional[str] = None


@dataclass(frozen=True)
class LoadingView:
    name: ClassVar[ViewName] = ViewName.LOADING
    token: RequestToken
    origin: ViewName


@dataclass(frozen=True)
class BriefView:
    name: ClassVar[ViewName] = ViewName.BRIEF


@dataclass(frozen=True)
class PlanningView:
    name: ClassVar[ViewName] = ViewName.PLANNING


@dataclass(frozen=True)
class RunningView:
    name: ClassVar[ViewName] = ViewName.RUNNING
    token: RequestToken


@dataclass(frozen=True)
class ResultView:
    name: ClassVar[ViewName] = ViewName.RESULT
    result: MonthResult


@dataclass(frozen=True)
class ChallengeView:
    name: ClassVar[ViewName] = ViewName.CHALLENGE
    challenge: Challenge


GameView = Union[
    AwaitingCredentialsView,
    LoadingView,
    BriefView,
    PlanningView,
    RunningView,
    ResultView,
    ChallengeView,
]


def empty_allocation() -> Dict[str, float]:
    """Allocation with every channel set to zero."""
    return {channel: 0 for channel in CHANNELS}
