"""
Integration & Synergy Resolver
==============================
Tuck-in and merger outcome classes, synergy capture and roll-up multiple
expansion. Affinity and size ratio are graduated, never binary.
"""

import math
from typing import Optional, Tuple

from .calibration_config import INTEGRATION_CONFIG
from .models import Affinity, Business, IntegrationOutcome, SizeRatioTier, clamp, round_money
from .sectors import SECTORS

AFFINITY_SYNERGY = {
    Affinity.MATCH: 1.0,
    Affinity.RELATED: 0.75,
    Affinity.DISTANT: 0.45,
}

AFFINITY_PROBABILITY = {
    Affinity.MATCH: 0.0,
    Affinity.RELATED: -0.05,
    Affinity.DISTANT: -0.15,
}

# Synergy rate by (outcome, kind)
SYNERGY_RATES = {
    'tuck_in': {IntegrationOutcome.SUCCESS: 0.20, IntegrationOutcome.PARTIAL: 0.08, IntegrationOutcome.FAILURE: -0.05},
    'standalone': {IntegrationOutcome.SUCCESS: 0.10, IntegrationOutcome.PARTIAL: 0.03, IntegrationOutcome.FAILURE: -0.10},
    'merger': {IntegrationOutcome.SUCCESS: 0.15, IntegrationOutcome.PARTIAL: 0.05, IntegrationOutcome.FAILURE: -0.07},
}

# Multiple-expansion bonus by platform scale up to 3
SCALE_BONUS = [0.0, 0.3, 0.6, 1.0]


def get_sub_type_affinity(sector_id: str, sub_type_a: str, sub_type_b: str) -> Affinity:
    """match on identical sub-types, related inside one affinity group, distant otherwise"""
    if sub_type_a and sub_type_a == sub_type_b:
        return Affinity.MATCH
    sector = SECTORS.get(sector_id)
    if sector is None:
        return Affinity.DISTANT
    for group in sector.sub_type_groups:
        if sub_type_a in group and sub_type_b in group:
            return Affinity.RELATED
    return Affinity.DISTANT


def get_size_ratio_tier(acquired_ebitda: float, base_ebitda: float) -> Tuple[SizeRatioTier, float]:
    """Classify |acquired| / base; boundaries are inclusive on the lower tier"""
    if base_ebitda <= 0:
        return SizeRatioTier.OVERREACH, math.inf
    ratio = abs(acquired_ebitda) / base_ebitda
    if ratio <= 0.5:
        return SizeRatioTier.IDEAL, ratio
    if ratio <= 1.0:
        return SizeRatioTier.STRETCH, ratio
    if ratio <= 2.0:
        return SizeRatioTier.STRAINED, ratio
    return SizeRatioTier.OVERREACH, ratio


def size_ratio_penalty(tier: SizeRatioTier, platform_scale: int, has_shared_services: bool,
                       both_high_quality: bool, is_merger: bool = False) -> float:
    """Success-probability penalty for oversized targets, partly mitigated"""
    cfg = INTEGRATION_CONFIG
    base = cfg.size_penalties[tier.value]
    if is_merger:
        base *= cfg.merger_penalty_factor
    if base == 0:
        return 0.0
    mitigation = 0.0
    if platform_scale >= 3:
        mitigation += cfg.mitigation_platform_scale
    if has_shared_services:
        mitigation += cfg.mitigation_shared_services
    if both_high_quality:
        mitigation += cfg.mitigation_high_quality
    return base + min(mitigation, abs(base) * cfg.max_mitigation_share)


def integration_success_probability(acquired: Business, target_platform: Optional[Business] = None,
                                    has_shared_services: bool = False,
                                    affinity: Optional[Affinity] = None,
                                    size_tier: Optional[SizeRatioTier] = None,
                                    is_merger: bool = False) -> float:
    cfg = INTEGRATION_CONFIG
    p = cfg.base_success
    p += (acquired.quality_rating - 3) * 0.1

    operator = acquired.due_diligence.operator_quality
    if operator == 'strong':
        p += 0.15
    elif operator == 'weak':
        p -= 0.15

    if target_platform is not None and target_platform.sector_id == acquired.sector_id:
        p += 0.15
    if affinity is not None:
        p += AFFINITY_PROBABILITY[affinity]
    if has_shared_services:
        p += 0.10
    if acquired.due_diligence.revenue_concentration == 'high':
        p -= 0.10

    if size_tier is not None and target_platform is not None:
        both_high = acquired.quality_rating >= 4 and target_platform.quality_rating >= 4
        p += size_ratio_penalty(size_tier, target_platform.platform_scale, has_shared_services,
                                both_high, is_merger)
    return p


def determine_integration_outcome(acquired: Business, roll: float,
                                  target_platform: Optional[Business] = None,
                                  has_shared_services: bool = False,
                                  affinity: Optional[Affinity] = None,
                                  size_tier: Optional[SizeRatioTier] = None,
                                  is_merger: bool = False) -> IntegrationOutcome:
    """Bucket one pre-rolled value: < p*0.6 success, < p*1.2 partial, else failure"""
    p = integration_success_probability(acquired, target_platform, has_shared_services,
                                        affinity, size_tier, is_merger)
    if roll < p * 0.6:
        return IntegrationOutcome.SUCCESS
    if roll < p * 1.2:
        return IntegrationOutcome.PARTIAL
    return IntegrationOutcome.FAILURE


def calculate_synergies(outcome: IntegrationOutcome, base_ebitda: float, is_tuck_in: bool,
                        affinity: Optional[Affinity] = None,
                        size_tier: Optional[SizeRatioTier] = None,
                        is_merger: bool = False) -> int:
    """Signed EBITDA synergy; failures destroy value, damped like gains"""
    cfg = INTEGRATION_CONFIG
    kind = 'merger' if is_merger else 'tuck_in' if is_tuck_in else 'standalone'
    rate = SYNERGY_RATES[kind][outcome]
    if affinity is not None:
        rate *= AFFINITY_SYNERGY[affinity]
    if size_tier is not None:
        table = cfg.merger_size_synergy if is_merger else cfg.tuck_in_size_synergy
        rate *= table[size_tier.value]
    return round_money(base_ebitda * rate)


def calculate_integration_growth_penalty(acquired_ebitda: float, platform_ebitda: float,
                                         is_merger: bool = False) -> float:
    """Growth drag after a failed integration, proportional to relative size"""
    cfg = INTEGRATION_CONFIG
    factor = cfg.drag_merger_factor if is_merger else 1.0
    floor = cfg.drag_floor * factor
    cap = cfg.drag_cap * factor
    if platform_ebitda <= 0:
        return cap
    raw = -(abs(acquired_ebitda) / abs(platform_ebitda)) * cfg.drag_base_rate * factor
    return clamp(raw, cap, floor)


def calculate_multiple_expansion(platform_scale: int, total_ebitda: float) -> float:
    """Roll-up multiple bonus; scale 3 earns +1.0x, log continuation beyond"""
    if platform_scale <= 0:
        scale_bonus = 0.0
    elif platform_scale <= 3:
        scale_bonus = SCALE_BONUS[platform_scale]
    else:
        scale_bonus = 1.0 + 0.5 * math.log2(platform_scale / 3)

    if total_ebitda > 5000:
        size_bonus = 0.3
    elif total_ebitda > 3000:
        size_bonus = 0.15
    else:
        size_bonus = 0.0
    return scale_bonus + size_bonus


def incremental_multiple_expansion(old_scale: int, old_ebitda: float,
                                   new_scale: int, new_ebitda: float) -> float:
    """Delta between the new and prior bonus, so a bolt-on never re-applies the whole table"""
    return (calculate_multiple_expansion(new_scale, new_ebitda)
            - calculate_multiple_expansion(old_scale, old_ebitda))


def failure_restructuring_cost(acquired_ebitda: float) -> int:
    return round_money(abs(acquired_ebitda) * INTEGRATION_CONFIG.failure_restructuring_pct)
