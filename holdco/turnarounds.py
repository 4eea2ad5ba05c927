"""
Turnaround Resolution Engine
============================
Multi-round rehabilitation programmes for low-quality opcos. Each programme
resolves exactly once, against a single pre-rolled value from the market lane.
"""

from dataclasses import dataclass
from typing import Dict, List, Optional

from .calibration_config import TURNAROUND_CONFIG
from .models import ActiveTurnaround, Business, round_money
from .sectors import get_sector


@dataclass
class TurnaroundTierConfig:
    name: str
    unlock_cost: int   # one-time, $k
    annual_cost: int   # recurring, $k
    required_opcos: int
    description: str


TURNAROUND_TIER_CONFIG: Dict[int, TurnaroundTierConfig] = {
    1: TurnaroundTierConfig("Portfolio Operations", 600, 250, 2,
                            "Dedicated ops team to run structured turnaround playbooks"),
    2: TurnaroundTierConfig("Transformation Office", 1000, 450, 3,
                            "Full transformation team with cross-functional expertise"),
    3: TurnaroundTierConfig("Interim Management", 1400, 700, 4,
                            "Interim C-suite operators placed into struggling businesses"),
}


@dataclass
class TurnaroundProgram:
    """success_rate + partial_rate + failure_rate == 1.0"""
    id: str
    tier_id: int
    source_quality: int
    target_quality: int
    duration_standard: int
    duration_quick: int
    success_rate: float
    partial_rate: float
    failure_rate: float
    ebitda_boost_on_success: float
    ebitda_boost_on_partial: float
    ebitda_damage_on_failure: float
    upfront_cost_fraction: float  # of |EBITDA|
    annual_cost: int


TURNAROUND_PROGRAMS: List[TurnaroundProgram] = [
    TurnaroundProgram('t1_plan_a', 1, 1, 2, 4, 2, 0.65, 0.30, 0.05, 0.07, 0.03, 0.04, 0.10, 50),
    TurnaroundProgram('t1_plan_b', 1, 2, 3, 4, 2, 0.60, 0.35, 0.05, 0.05, 0.02, 0.03, 0.12, 75),
    TurnaroundProgram('t2_plan_a', 2, 1, 3, 5, 3, 0.68, 0.27, 0.05, 0.11, 0.05, 0.05, 0.14, 100),
    TurnaroundProgram('t2_plan_b', 2, 2, 4, 5, 3, 0.65, 0.30, 0.05, 0.09, 0.04, 0.04, 0.16, 125),
    TurnaroundProgram('t3_plan_a', 3, 1, 4, 6, 3, 0.73, 0.22, 0.05, 0.15, 0.07, 0.06, 0.18, 150),
    TurnaroundProgram('t3_plan_b', 3, 2, 5, 6, 3, 0.70, 0.25, 0.05, 0.13, 0.06, 0.06, 0.20, 200),
    # faster and pricier variant of t3_plan_a
    TurnaroundProgram('t3_quick', 3, 1, 4, 3, 2, 0.63, 0.32, 0.05, 0.15, 0.07, 0.06, 0.27, 150),
]


def get_program(program_id: str) -> TurnaroundProgram:
    """Look up a programme; unknown ids are a caller error"""
    for program in TURNAROUND_PROGRAMS:
        if program.id == program_id:
            return program
    raise KeyError(f"Unknown turnaround program: {program_id}")


def get_quality_ceiling(sector_id: str) -> int:
    return get_sector(sector_id).quality_ceiling


def get_eligible_programs(business: Business, turnaround_tier: int,
                          active_turnarounds: List[ActiveTurnaround]) -> List[TurnaroundProgram]:
    if turnaround_tier <= 0:
        return []
    if any(t.business_id == business.id and t.status == 'active' for t in active_turnarounds):
        return []
    ceiling = get_quality_ceiling(business.sector_id)
    return [
        p for p in TURNAROUND_PROGRAMS
        if p.tier_id <= turnaround_tier
        and p.source_quality == business.quality_rating
        and p.target_quality <= ceiling
    ]


def calculate_turnaround_cost(program: TurnaroundProgram, business: Business) -> int:
    return round_money(abs(business.ebitda) * program.upfront_cost_fraction)


def get_turnaround_duration(program: TurnaroundProgram, duration: str) -> int:
    return program.duration_quick if duration == 'quick' else program.duration_standard


def get_turnaround_tier_annual_cost(tier: int) -> int:
    config = TURNAROUND_TIER_CONFIG.get(tier)
    return config.annual_cost if config else 0


def can_unlock_tier(current_tier: int, cash: int, active_opco_count: int) -> Optional[str]:
    """None when the next tier can be unlocked, otherwise the reason it cannot"""
    next_tier = current_tier + 1
    if next_tier > 3:
        return "Already at maximum tier"
    config = TURNAROUND_TIER_CONFIG[next_tier]
    if active_opco_count < config.required_opcos:
        return f"Need {config.required_opcos} active businesses (have {active_opco_count})"
    if cash < config.unlock_cost:
        return f"Need ${config.unlock_cost}k cash (have ${cash}k)"
    return None


@dataclass
class TurnaroundOutcome:
    result: str              # success / partial / failure
    quality_change: int
    ebitda_multiplier: float
    target_quality: int


def resolve_turnaround(program: TurnaroundProgram, active_concurrent_count: int,
                       roll: float) -> TurnaroundOutcome:
    """Bucket a pre-rolled value against the programme's cumulative rates.

    At the fatigue threshold, success probability moves into partial.
    """
    cfg = TURNAROUND_CONFIG
    success_rate, partial_rate = program.success_rate, program.partial_rate
    if active_concurrent_count >= cfg.fatigue_threshold:
        success_rate = max(0.0, success_rate - cfg.fatigue_penalty)
        partial_rate = min(1 - success_rate - program.failure_rate, partial_rate + cfg.fatigue_penalty)

    if roll < success_rate:
        return TurnaroundOutcome('success', program.target_quality - program.source_quality,
                                 1 + program.ebitda_boost_on_success, program.target_quality)
    if roll < success_rate + partial_rate:
        partial_target = min(program.target_quality, program.source_quality + 1)
        return TurnaroundOutcome('partial', partial_target - program.source_quality,
                                 1 + program.ebitda_boost_on_partial, partial_target)
    return TurnaroundOutcome('failure', 0, 1 - program.ebitda_damage_on_failure, program.source_quality)


def apply_turnaround_outcome(business: Business, outcome: TurnaroundOutcome):
    """Move quality (capped at the sector ceiling) and scale EBITDA"""
    target = min(outcome.target_quality, get_quality_ceiling(business.sector_id))
    gained = max(0, target - business.quality_rating)
    business.quality_rating = max(business.quality_rating, target)
    business.quality_improved_tiers += gained
    business.scale_ebitda(outcome.ebitda_multiplier)


def get_quality_improvement_chance(turnaround_tier: int) -> float:
    cfg = TURNAROUND_CONFIG
    return cfg.base_quality_improvement_chance + cfg.tier_quality_bonus.get(turnaround_tier, 0.0)


def get_turnaround_exit_premium(business: Business) -> float:
    cfg = TURNAROUND_CONFIG
    if business.quality_improved_tiers >= cfg.exit_premium_min_tiers:
        return cfg.exit_premium
    return 0.0
