"""
Calibration configuration for the holdco simulation
"""
from dataclasses import dataclass, field
from typing import Dict, Optional, Tuple


@dataclass
class DifficultyPreset:
    """Starting conditions for one difficulty level"""
    label: str
    initial_cash: int              # $k
    founder_shares: int
    total_shares: int
    starting_debt: int             # holdco term loan at start, $k
    starting_ebitda: int           # EBITDA of the starting opco, $k
    starting_multiple_cap: Optional[float] = None  # keeps premium sectors from eating all cash
    starting_quality: int = 3
    leaderboard_multiplier: float = 1.0


DIFFICULTY_CONFIG = {
    'easy': DifficultyPreset(
        label="Easy - Institutional Fund",
        initial_cash=20_000,       # $20M from patient LPs
        founder_shares=800,
        total_shares=1000,         # 80% ownership
        starting_debt=0,
        starting_ebitda=1000,
    ),
    'normal': DifficultyPreset(
        label="Hard - Self-Funded Search",
        initial_cash=5000,         # $2M equity + $3M bank debt
        founder_shares=1000,
        total_shares=1000,         # 100% ownership
        starting_debt=3000,
        starting_ebitda=800,
        starting_multiple_cap=4.0,
        leaderboard_multiplier=1.15,
    ),
}

DURATION_CONFIG = {
    'standard': 20,  # years
    'quick': 10,
}


@dataclass
class DealConfig:
    """Deal flow and pricing parameters"""
    # Target EBITDA bands per size preference ($k)
    size_ranges: Dict[str, Tuple[int, int]] = field(default_factory=lambda: {
        'small': (500, 1500),
        'medium': (1500, 3000),
        'large': (3000, 8000),
    })

    # Heat premium bands (uniform draw inside each band)
    heat_premium_bands: Dict[str, Tuple[float, float]] = field(default_factory=lambda: {
        'cold': (1.0, 1.0),
        'warm': (1.10, 1.15),
        'hot': (1.20, 1.30),
        'contested': (1.30, 1.50),
    })

    # Base heat roll thresholds (25/35/30/10)
    heat_roll_cold: float = 0.25
    heat_roll_warm: float = 0.60
    heat_roll_hot: float = 0.90
    max_negative_heat_shift: int = -3
    late_game_fraction: float = 0.75

    # Pipeline
    max_deals: int = 8
    base_new_deals: int = 5
    min_new_deals: int = 4
    base_freshness: int = 2
    portfolio_scaler_threshold: int = 3000

    contested_snatch_chance: float = 0.40

    # Sourcing costs ($k)
    deal_sourcing_cost_base: int = 500
    deal_sourcing_cost_tier1: int = 300
    proactive_outreach_cost: int = 400

    name_retry_limit: int = 20


DEAL_CONFIG = DealConfig()


@dataclass
class IntegrationConfig:
    """Integration outcome and synergy parameters"""
    base_success: float = 0.60

    # Size-ratio success penalties for tuck-ins; mergers use a softer curve
    size_penalties: Dict[str, float] = field(default_factory=lambda: {
        'ideal': 0.0,
        'stretch': -0.08,
        'strained': -0.18,
        'overreach': -0.28,
    })
    merger_penalty_factor: float = 0.70
    max_mitigation_share: float = 0.50  # mitigation never removes more than half the penalty
    mitigation_platform_scale: float = 0.15  # platform scale >= 3
    mitigation_shared_services: float = 0.05
    mitigation_high_quality: float = 0.05    # both sides quality >= 4

    # Synergy dampening by size-ratio tier
    tuck_in_size_synergy: Dict[str, float] = field(default_factory=lambda: {
        'ideal': 1.0,
        'stretch': 0.80,
        'strained': 0.50,
        'overreach': 0.25,
    })
    merger_size_synergy: Dict[str, float] = field(default_factory=lambda: {
        'ideal': 1.0,
        'stretch': 0.90,
        'strained': 0.70,
        'overreach': 0.50,
    })

    # Growth drag on failed integrations
    drag_base_rate: float = 0.05
    drag_floor: float = -0.005  # smallest drag applied
    drag_cap: float = -0.04     # largest drag applied
    drag_merger_factor: float = 0.67

    failure_restructuring_pct: float = 0.07  # of acquired EBITDA
    merge_cost_pct: float = 0.15             # of the smaller business
    merge_cost_floor: int = 100
    platform_setup_pct: float = 0.05
    platform_setup_floor: int = 50


INTEGRATION_CONFIG = IntegrationConfig()


@dataclass
class FinanceConfig:
    """Waterfall, distress and capital structure parameters"""
    tax_rate: float = 0.30
    starting_interest_rate: float = 0.07
    min_interest_rate: float = 0.03
    max_interest_rate: float = 0.15

    # Margins and growth guard rails
    min_margin: float = 0.03
    max_margin: float = 0.80
    min_growth_rate: float = -0.10
    max_growth_rate: float = 0.20
    ebitda_floor_pct: float = 0.30  # EBITDA never drops below 30% of acquisition EBITDA

    # Distress (net debt / EBITDA)
    elevated_leverage: float = 2.5
    stressed_leverage: float = 3.5
    breach_leverage: float = 4.5
    stressed_rate_penalty: float = 0.01
    breach_rate_penalty: float = 0.02
    covenant_breach_rounds_threshold: int = 2

    earnout_expiration_years: int = 4

    # Equity
    min_founder_ownership: float = 0.51
    equity_dilution_step: float = 0.10
    equity_dilution_floor: float = 0.60
    equity_buyback_cooldown: int = 2
    emergency_equity_discount: float = 0.50

    # Restructuring
    distressed_sale_haircut: float = 0.70

    improvement_cost_floor: int = 100
    min_opcos_for_shared_services: int = 3


FINANCE_CONFIG = FinanceConfig()


@dataclass
class TurnaroundConfig:
    """Turnaround programme parameters"""
    fatigue_threshold: int = 3   # concurrent programmes before bandwidth suffers
    fatigue_penalty: float = 0.10
    base_quality_improvement_chance: float = 0.30
    tier_quality_bonus: Dict[int, float] = field(default_factory=lambda: {1: 0.15, 2: 0.20, 3: 0.25})
    exit_premium: float = 0.25
    exit_premium_min_tiers: int = 2


TURNAROUND_CONFIG = TurnaroundConfig()


@dataclass
class PlatformConfig:
    """Integrated platform forging parameters"""
    # Scales recipe EBITDA thresholds; shorter or harder games forge sooner
    threshold_multiplier: Dict[str, Dict[str, float]] = field(default_factory=lambda: {
        'easy': {'standard': 1.0, 'quick': 0.7},
        'normal': {'standard': 0.7, 'quick': 0.5},
    })


PLATFORM_CONFIG = PlatformConfig()
