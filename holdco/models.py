"""
Holdco data model
=================
Pure data records shared by every engine module. All money is in $k.
"""

import math
import re
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, List, Optional

from .calibration_config import FINANCE_CONFIG


# ==================== Enums ====================

class Heat(Enum):
    """Competitive pressure on a deal"""
    COLD = "cold"
    WARM = "warm"
    HOT = "hot"
    CONTESTED = "contested"


HEAT_LEVELS = [Heat.COLD, Heat.WARM, Heat.HOT, Heat.CONTESTED]


class IntegrationOutcome(Enum):
    """Result class of a tuck-in or merger"""
    SUCCESS = "success"
    PARTIAL = "partial"
    FAILURE = "failure"


class Affinity(Enum):
    """Operational similarity between two sub-types"""
    MATCH = "match"
    RELATED = "related"
    DISTANT = "distant"


class SizeRatioTier(Enum):
    """Acquired-to-base EBITDA size class"""
    IDEAL = "ideal"
    STRETCH = "stretch"
    STRAINED = "strained"
    OVERREACH = "overreach"


class DistressLevel(Enum):
    """Balance-sheet health, ordered from best to worst"""
    COMFORTABLE = "comfortable"
    ELEVATED = "elevated"
    STRESSED = "stressed"
    BREACH = "breach"


class GamePhase(Enum):
    COLLECT = "collect"
    EVENT = "event"
    ALLOCATE = "allocate"
    RESTRUCTURE = "restructure"


# Lifecycle status of a business
ACTIVE = 'active'
INTEGRATED = 'integrated'
SOLD = 'sold'
WOUND_DOWN = 'wound_down'
MERGED = 'merged'

SERVICED_STATUSES = (ACTIVE, INTEGRATED)  # statuses whose debt is still on the books

SHARED_SERVICE_TYPES = (
    'finance_reporting',
    'recruiting_hr',
    'procurement',
    'marketing_brand',
    'technology_systems',
)


# ==================== Helpers ====================

def round_money(x: float) -> int:
    """Round half up to a whole $k"""
    return int(math.floor(x + 0.5))


def clamp(x, a, b):
    """Clamp value between min and max"""
    return max(a, min(b, x))


def clamp_margin(margin: float) -> float:
    return clamp(margin, FINANCE_CONFIG.min_margin, FINANCE_CONFIG.max_margin)


def cap_growth_rate(rate: float) -> float:
    return clamp(rate, FINANCE_CONFIG.min_growth_rate, FINANCE_CONFIG.max_growth_rate)


def money(x) -> str:
    """Format a $k amount for display"""
    if abs(x) >= 1000:
        return f"${x / 1000:.1f}M"
    return f"${x:,.0f}k"


# ==================== Records ====================

@dataclass
class DueDiligence:
    """Diligence signals; the *_text fields are display copy"""
    revenue_concentration: str = 'medium'   # low / medium / high
    revenue_concentration_text: str = ""
    operator_quality: str = 'moderate'      # weak / moderate / strong
    operator_quality_text: str = ""
    trend: str = 'flat'                     # growing / flat / declining
    trend_text: str = ""
    customer_retention: int = 85            # %
    customer_retention_text: str = ""
    competitive_position: str = 'competitive'  # leader / competitive / commoditized
    competitive_position_text: str = ""


@dataclass
class Improvement:
    type: str
    applied_round: int
    effect: float  # fractional EBITDA change when applied


@dataclass
class Business:
    """An owned or offered operating company"""
    id: str
    name: str
    sector_id: str
    sub_type: str
    revenue: int
    ebitda_margin: float
    ebitda: int
    quality_rating: int
    due_diligence: DueDiligence = field(default_factory=DueDiligence)

    # Growth
    organic_growth_rate: float = 0.0
    revenue_growth_rate: float = 0.0
    margin_drift_rate: float = 0.0

    # Acquisition snapshot
    acquisition_revenue: int = 0
    acquisition_margin: float = 0.0
    acquisition_ebitda: int = 0
    acquisition_multiple: float = 0.0
    acquisition_price: int = 0
    acquisition_round: int = 0

    # Peak trackers
    peak_ebitda: int = 0
    peak_revenue: int = 0

    integration_rounds_remaining: int = 2
    improvements: List[Improvement] = field(default_factory=list)

    # Debt sub-ledgers
    seller_note_balance: int = 0
    seller_note_rate: float = 0.0
    seller_note_rounds_remaining: int = 0
    bank_debt_balance: int = 0
    bank_debt_rate: float = 0.0
    bank_debt_rounds_remaining: int = 0
    earnout_remaining: int = 0
    earnout_target: float = 0.0  # required EBITDA growth since acquisition

    # Lifecycle
    status: str = ACTIVE
    exit_price: Optional[int] = None
    exit_round: Optional[int] = None

    # Platform
    is_platform: bool = False
    platform_scale: int = 0
    bolt_on_ids: List[str] = field(default_factory=list)
    parent_platform_id: Optional[str] = None
    integration_outcome: Optional[IntegrationOutcome] = None
    synergies_realized: int = 0
    total_acquisition_cost: int = 0
    quality_improved_tiers: int = 0
    was_merged: bool = False
    integrated_platform_id: Optional[str] = None

    def set_financials(self, revenue: Optional[float] = None, margin: Optional[float] = None):
        """Update revenue and/or margin, then re-derive EBITDA and peaks"""
        if revenue is not None:
            self.revenue = max(0, round_money(revenue))
        if margin is not None:
            self.ebitda_margin = clamp_margin(margin)
        self.ebitda = round_money(self.revenue * self.ebitda_margin)
        self.peak_revenue = max(self.peak_revenue, self.revenue)
        self.peak_ebitda = max(self.peak_ebitda, self.ebitda)

    def scale_ebitda(self, factor: float):
        """Apply an EBITDA shock as a margin move"""
        if self.revenue <= 0:
            return
        target = self.ebitda * factor
        raw_margin = target / self.revenue
        self.set_financials(margin=raw_margin)
        if self.ebitda_margin != raw_margin:
            # margin hit a guard rail; carry the rest of the move through revenue
            self.set_financials(revenue=target / self.ebitda_margin)

    @property
    def ebitda_growth(self) -> float:
        """EBITDA growth since acquisition"""
        if self.acquisition_ebitda <= 0:
            return 0.0
        return (self.ebitda - self.acquisition_ebitda) / self.acquisition_ebitda


@dataclass
class Deal:
    """Time-boxed acquisition offer"""
    id: str
    business: Business
    asking_price: int
    effective_price: int
    freshness: int
    round_appeared: int
    source: str = 'inbound'              # inbound / brokered / sourced / proprietary
    acquisition_type: str = 'standalone'  # standalone / tuck_in / platform
    heat: Heat = Heat.COLD
    seller_archetype: Optional[str] = None
    tuck_in_discount: Optional[float] = None


@dataclass
class SharedService:
    type: str
    name: str
    unlock_cost: int
    annual_cost: int
    active: bool = False
    unlocked_round: Optional[int] = None


@dataclass
class MASourcingState:
    tier: int = 0
    active: bool = False
    unlocked_round: Optional[int] = None


@dataclass
class MAFocus:
    sector_id: Optional[str] = None
    size_preference: str = 'any'  # any / small / medium / large
    sub_type: Optional[str] = None


@dataclass
class ActiveTurnaround:
    id: str
    business_id: str
    program_id: str
    start_round: int
    end_round: int
    status: str = 'active'  # active / completed / partial / failed / cancelled


@dataclass
class PlatformBonuses:
    margin_boost: float
    growth_boost: float
    multiple_expansion: float
    recession_resistance_reduction: float  # multiplier on recession shocks


@dataclass
class IntegratedPlatform:
    """A forged multi-opco platform; constituents keep their own books"""
    id: str
    recipe_id: str
    name: str
    sector_ids: List[str]
    constituent_business_ids: List[str]
    forged_in_round: int
    bonuses: PlatformBonuses


@dataclass
class EventChoice:
    label: str
    description: str
    action: str


@dataclass
class GameEvent:
    """A drawn macro or portfolio event"""
    id: str
    type: str
    title: str
    description: str
    effect: str = ""
    affected_business_id: Optional[str] = None
    sector_id: Optional[str] = None
    offer_amount: Optional[int] = None
    offer_multiple: Optional[float] = None
    buyer_name: Optional[str] = None
    choices: List[EventChoice] = field(default_factory=list)
    impacts: List[Dict] = field(default_factory=list)
    narrative: Optional[str] = None


@dataclass
class RoundHistoryEntry:
    round: int
    cash: int
    total_debt: int
    total_ebitda: int
    net_debt_to_ebitda: float
    distress_level: str
    intrinsic_value_per_share: float
    event_type: Optional[str] = None
    actions: List[str] = field(default_factory=list)
    chronicle: Optional[str] = None


class IdCounter:
    """Sequential business-id source owned by the game state"""

    ID_PATTERN = re.compile(r'^biz_(\d+)$')

    def __init__(self, value: int = 0):
        self.value = value

    def next_id(self) -> str:
        self.value += 1
        return f"biz_{self.value}"

    def restore_from_ids(self, ids) -> int:
        """Move the counter past every biz_<n> id in a loaded save"""
        highest = self.value
        for business_id in ids:
            match = self.ID_PATTERN.match(business_id or "")
            if match:
                highest = max(highest, int(match.group(1)))
        self.value = highest
        return highest


@dataclass
class GameState:
    """Complete game state (pure data, no UI). Metrics are derived, never stored."""
    seed: int = 0
    holdco_name: str = "Holdco"
    difficulty: str = 'easy'
    duration: str = 'standard'
    max_rounds: int = 20

    # Time
    round: int = 1
    phase: GamePhase = GamePhase.COLLECT

    # Capital
    cash: int = 0
    founder_shares: float = 1000
    shares_outstanding: float = 1000
    interest_rate: float = FINANCE_CONFIG.starting_interest_rate  # market base rate
    holdco_loan_balance: int = 0
    holdco_loan_rate: float = 0.0
    holdco_loan_rounds_remaining: int = 0

    # Portfolio
    businesses: List[Business] = field(default_factory=list)
    exited_businesses: List[Business] = field(default_factory=list)
    deal_pipeline: List[Deal] = field(default_factory=list)
    shared_services: List[SharedService] = field(default_factory=list)
    ma_sourcing: MASourcingState = field(default_factory=MASourcingState)
    ma_focus: MAFocus = field(default_factory=MAFocus)
    turnaround_tier: int = 0
    active_turnarounds: List[ActiveTurnaround] = field(default_factory=list)
    integrated_platforms: List[IntegratedPlatform] = field(default_factory=list)

    # Events
    current_event: Optional[GameEvent] = None
    event_history: List[GameEvent] = field(default_factory=list)
    inflation_rounds_remaining: int = 0
    credit_tightening_rounds_remaining: int = 0
    exit_multiple_penalty: float = 0.0

    # Round bookkeeping
    acquisitions_this_round: int = 0
    max_acquisitions_per_round: int = 2
    last_acquisition_result: Optional[str] = None
    last_integration_outcome: Optional[IntegrationOutcome] = None
    actions_this_round: list = field(default_factory=list)  # ActionRecord variants
    round_history: List[RoundHistoryEntry] = field(default_factory=list)

    # Cumulative totals
    total_invested_capital: int = 0
    total_distributions: int = 0
    total_buybacks: int = 0
    total_exit_proceeds: int = 0
    founder_distributions_received: int = 0
    founder_cashflows: List[Dict] = field(default_factory=list)  # [{'round': 0, 'amount': -2000}, ...]

    # Equity bookkeeping
    equity_raises_used: int = 0
    last_equity_raise_round: int = 0
    last_buyback_round: int = 0

    # Distress
    covenant_breach_rounds: int = 0
    has_restructured: bool = False
    requires_restructuring: bool = False
    payments_skipped: bool = False

    # End state
    game_over: bool = False
    bankrupt_round: Optional[int] = None
    reason: str = ""

    id_counter: IdCounter = field(default_factory=IdCounter)

    @property
    def total_debt(self) -> int:
        """Holdco loan plus bank debt of every business still on the books"""
        return self.holdco_loan_balance + sum(
            b.bank_debt_balance for b in self.businesses if b.status in SERVICED_STATUSES
        )

    @property
    def active_businesses(self) -> List[Business]:
        return [b for b in self.businesses if b.status == ACTIVE]

    def find_business(self, business_id: str, status: Optional[str] = None) -> Optional[Business]:
        for b in self.businesses:
            if b.id == business_id and (status is None or b.status == status):
                return b
        return None

    @property
    def founder_ownership(self) -> float:
        if self.shares_outstanding <= 0:
            return 0.0
        return self.founder_shares / self.shares_outstanding
