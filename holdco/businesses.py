"""
Business & Deal Generator
=========================
Procedural opcos with internally consistent financials, wrapped into
time-boxed deals. Every draw comes from an explicit SeededRng; nothing here
touches a global random source.

Pricing order for a deal is fixed: the largest single discount (tuck-in,
sourcing, seller archetype) applies first, an archetype premium applies only
when no discount did, and the heat premium is applied last.
"""

import math
from dataclasses import dataclass, replace
from typing import Dict, Iterable, List, Optional, Set

from .calibration_config import DEAL_CONFIG
from .models import (
    Business, Deal, DueDiligence, Heat, HEAT_LEVELS, IdCounter, MAFocus,
    clamp, clamp_margin, round_money,
)
from .names import generate_business_name
from .rng import SeededRng
from .sectors import SECTOR_IDS, SECTOR_PRICE_TIERS, get_sector

# ==================== Lookup tables ====================

QUALITY_THRESHOLDS = [(0.05, 1), (0.20, 2), (0.60, 3), (0.85, 4)]  # else 5

CONCENTRATION_TEXTS = {
    'low': ["No client exceeds 10% of revenue", "Well-diversified customer base", "Healthy client mix"],
    'medium': ["Top client is 20-25% of revenue", "Some customer concentration", "Moderate client diversity"],
    'high': ["Top client is 40%+ of revenue", "Significant customer concentration", "Key account dependency"],
}

OPERATOR_TEXTS = {
    'strong': ["Strong management team in place", "Experienced leadership staying on", "Proven operational team"],
    'moderate': ["Decent team, some gaps", "Owner willing to transition slowly", "Management needs development"],
    'weak': ["Founder looking to exit fully", "Key person dependency", "Management transition needed"],
}

TREND_TEXTS = {
    'growing': ["Strong growth trajectory", "Consistent expansion"],
    'flat': ["EBITDA flat for 2 years", "Stable but not growing", "Revenue plateau"],
    'declining': ["EBITDA declining 5-10% annually", "Business in contraction", "Shrinking market share"],
}

POSITION_TEXTS = {
    'leader': ["Category leader in niche", "Strong market position", "Dominant in local market"],
    'competitive': ["Solid competitive position", "Well-regarded in market", "Good reputation"],
    'commoditized': ["Commoditized market", "Price competition pressure", "Low differentiation"],
}

# Retention bands (inclusive) by minimum quality
RETENTION_BANDS = [(4, (90, 98)), (3, (82, 92)), (2, (75, 85)), (1, (65, 78))]


# ==================== Seller archetypes ====================

SELLER_ARCHETYPES = [
    'retiring_founder',
    'burnt_out_operator',
    'accidental_holdco',
    'distressed_seller',
    'mbo_candidate',
    'franchise_breakaway',
]

ARCHETYPE_BASE_WEIGHTS = {
    'retiring_founder': 0.30,
    'burnt_out_operator': 0.20,
    'accidental_holdco': 0.10,
    'distressed_seller': 0.08,
    'mbo_candidate': 0.15,
    'franchise_breakaway': 0.15,
}

ARCHETYPE_HEAT_MODIFIERS = {
    'retiring_founder': -1,
    'burnt_out_operator': 0,
    'accidental_holdco': 1,
    'distressed_seller': -2,
    'mbo_candidate': 0,
    'franchise_breakaway': 0,
}

# Signed price modifier bands; negative is a discount
ARCHETYPE_PRICE_BANDS = {
    'retiring_founder': (0.0, 0.05),
    'burnt_out_operator': (-0.10, -0.05),
    'accidental_holdco': (0.05, 0.10),
    'distressed_seller': (-0.20, -0.10),
    'mbo_candidate': (0.0, 0.05),
    'franchise_breakaway': (0.05, 0.10),
}

FRANCHISE_BREAKAWAY_GROWTH = 0.02


def _archetype_quality_adjustment(archetype: str, quality: int) -> float:
    high, low = quality >= 4, quality <= 2
    if archetype == 'retiring_founder':
        return 0.10 if high else -0.10 if low else 0.0
    if archetype == 'burnt_out_operator':
        return 0.05 if low else -0.05 if high else 0.0
    if archetype == 'distressed_seller':
        return 0.12 if low else -0.05 if high else 0.0
    if archetype == 'mbo_candidate':
        return 0.05 if high else -0.05 if low else 0.0
    if archetype == 'franchise_breakaway':
        return -0.05 if low else 0.0
    return 0.0


def assign_seller_archetype(quality: int, stream: SeededRng) -> str:
    """Weighted archetype draw; low quality skews distressed, high quality skews retiring"""
    weights = [
        (a, max(0.02, ARCHETYPE_BASE_WEIGHTS[a] + _archetype_quality_adjustment(a, quality)))
        for a in SELLER_ARCHETYPES
    ]
    roll = stream.next() * sum(w for _, w in weights)
    for archetype, weight in weights:
        roll -= weight
        if roll <= 0:
            return archetype
    return 'retiring_founder'


def archetype_operator_quality(archetype: str, stream: SeededRng) -> str:
    if archetype == 'retiring_founder':
        return 'strong' if stream.next() > 0.5 else 'moderate'
    if archetype == 'burnt_out_operator':
        return 'weak' if stream.next() > 0.5 else 'moderate'
    if archetype == 'distressed_seller':
        return 'weak'
    if archetype == 'mbo_candidate':
        return 'strong'
    if archetype == 'franchise_breakaway':
        return 'strong' if stream.next() > 0.5 else 'moderate'
    return 'moderate'


# ==================== Business generation ====================

def generate_quality_rating(stream: SeededRng) -> int:
    """5/15/40/25/15 % across tiers 1-5"""
    roll = stream.next()
    for threshold, quality in QUALITY_THRESHOLDS:
        if roll < threshold:
            return quality
    return 5


def generate_due_diligence(quality: int, sector_id: str, stream: SeededRng) -> DueDiligence:
    sector = get_sector(sector_id)

    if sector.client_concentration == 'high':
        concentration = 'medium' if quality >= 4 else 'high'
    elif sector.client_concentration == 'medium':
        concentration = 'low' if quality >= 4 else 'medium' if quality >= 2 else 'high'
    else:
        concentration = 'low' if quality >= 3 else 'medium'

    if quality >= 4:
        operator = 'strong'
    elif quality >= 2:
        operator = 'moderate'
    else:
        operator = 'weak'

    if quality >= 4:
        trend = 'growing'
    elif quality >= 2:
        trend = 'flat' if stream.next() > 0.3 else 'growing'
    else:
        trend = 'declining' if stream.next() > 0.5 else 'flat'
    trend_texts = list(TREND_TEXTS[trend])
    if trend == 'growing':
        trend_texts.insert(0, f"EBITDA growing {stream.next_int(8, 15)}% YoY")

    retention = 65
    for min_quality, band in RETENTION_BANDS:
        if quality >= min_quality:
            retention = stream.next_int(*band)
            break

    if quality >= 4:
        position = 'leader' if stream.next() > 0.3 else 'competitive'
    elif quality >= 2:
        position = 'competitive' if stream.next() > 0.5 else 'commoditized'
    else:
        position = 'commoditized'

    return DueDiligence(
        revenue_concentration=concentration,
        revenue_concentration_text=stream.pick(CONCENTRATION_TEXTS[concentration]),
        operator_quality=operator,
        operator_quality_text=stream.pick(OPERATOR_TEXTS[operator]),
        trend=trend,
        trend_text=stream.pick(trend_texts),
        customer_retention=retention,
        customer_retention_text=f"{retention}% annual retention",
        competitive_position=position,
        competitive_position_text=stream.pick(POSITION_TEXTS[position]),
    )


def generate_business(sector_id: str, round_number: int, stream: SeededRng,
                      quality_override: Optional[int] = None,
                      sub_type_override: Optional[str] = None,
                      business_id: str = "",
                      used_names: Optional[Iterable[str]] = None) -> Business:
    """Synthesize one opco.

    Args:
        sector_id: Sector to draw from (unknown ids use the default profile)
        round_number: Round the business appears in
        stream: RNG lane to draw from
        quality_override: Force a quality rating instead of drawing one
        sub_type_override: Force a sub-type (ignored if the sector lacks it)

    Returns:
        Business with financials, due diligence and acquisition snapshot set
    """
    sector = get_sector(sector_id)
    quality = quality_override if quality_override is not None else generate_quality_rating(stream)
    quality = int(clamp(quality, 1, 5))
    diligence = generate_due_diligence(quality, sector_id, stream)

    quality_modifier = 0.8 + (quality - 1) * 0.1  # 0.8x to 1.2x

    margin = stream.next_in_range(sector.base_margin) + (quality - 3) * 0.015
    margin = clamp_margin(margin)
    revenue = round_money(stream.next_in_range(sector.base_revenue) * quality_modifier)

    growth = stream.next_in_range(sector.organic_growth_range) + (quality - 3) * 0.005
    if diligence.trend == 'growing':
        growth += 0.02
    elif diligence.trend == 'declining':
        growth -= 0.03
    drift = stream.next_in_range(sector.margin_drift_range)

    multiple = stream.next_in_range(sector.acquisition_multiple) + (quality - 3) * 0.2
    multiple = round(multiple * 10) / 10

    if sub_type_override and sub_type_override in sector.sub_types:
        sub_type = sub_type_override
    else:
        sub_type = stream.pick(sector.sub_types)

    margin = clamp_margin(margin + sector.sub_type_margin_modifiers.get(sub_type, 0.0))
    growth += sector.sub_type_growth_modifiers.get(sub_type, 0.0)

    business = Business(
        id=business_id,
        name=generate_business_name(sector_id, stream, used_names),
        sector_id=sector_id,
        sub_type=sub_type,
        revenue=0,
        ebitda_margin=margin,
        ebitda=0,
        quality_rating=quality,
        due_diligence=diligence,
        organic_growth_rate=growth,
        revenue_growth_rate=growth,
        margin_drift_rate=drift,
        acquisition_multiple=multiple,
        acquisition_round=round_number,
    )
    business.set_financials(revenue=revenue)
    _snapshot_acquisition(business)
    return business


def _snapshot_acquisition(business: Business):
    business.acquisition_revenue = business.revenue
    business.acquisition_margin = business.ebitda_margin
    business.acquisition_ebitda = business.ebitda
    business.acquisition_price = round_money(business.ebitda * business.acquisition_multiple)
    business.total_acquisition_cost = business.acquisition_price
    business.peak_revenue = business.revenue
    business.peak_ebitda = business.ebitda


def create_starting_business(stream: SeededRng, ids: IdCounter, sector_id: str = 'agency',
                             target_ebitda: int = 1000,
                             multiple_cap: Optional[float] = None) -> Business:
    """Fair-quality opco the holdco owns at the start of the game"""
    sector = get_sector(sector_id)
    business = generate_business(sector_id, 1, stream, quality_override=3, business_id=ids.next_id())

    multiple = sector.average_multiple
    if multiple_cap is not None:
        multiple = min(multiple_cap, multiple)
    business.acquisition_multiple = multiple
    business.acquisition_round = 0
    business.set_financials(revenue=target_ebitda / business.ebitda_margin)
    _snapshot_acquisition(business)
    return business


# ==================== Deal heat ====================

def calculate_deal_heat(quality: int, source: str, round_number: int, stream: SeededRng,
                        last_event_type: Optional[str] = None,
                        seller_archetype: Optional[str] = None,
                        max_rounds: int = 20,
                        ma_sourcing_tier: int = 0,
                        credit_tightening: bool = False) -> Heat:
    """Categorical heat roll plus integer tier shifts"""
    cfg = DEAL_CONFIG
    roll = stream.next()
    if roll < cfg.heat_roll_cold:
        tier = 0
    elif roll < cfg.heat_roll_warm:
        tier = 1
    elif roll < cfg.heat_roll_hot:
        tier = 2
    else:
        tier = 3

    if quality >= 4:
        tier += 1
    if quality <= 2:
        tier -= 1

    if last_event_type == 'global_bull_market':
        tier += 1
    if last_event_type == 'global_recession':
        tier -= 1
    if credit_tightening:
        tier -= 1

    if round_number >= math.ceil(max_rounds * cfg.late_game_fraction):
        tier += 1

    # source and archetype discounts share one capped budget
    negative = 0
    if source == 'proprietary':
        negative -= 2
    if source == 'sourced':
        negative -= 1
        if ma_sourcing_tier >= 2:
            negative -= 1
    if seller_archetype:
        shift = ARCHETYPE_HEAT_MODIFIERS.get(seller_archetype, 0)
        if shift < 0:
            negative += shift
        else:
            tier += shift
    tier += max(cfg.max_negative_heat_shift, negative)

    return HEAT_LEVELS[int(clamp(tier, 0, 3))]


def calculate_heat_premium(heat: Heat, stream: SeededRng) -> float:
    """Uniform draw inside the heat band; cold is always 1.0"""
    if heat == Heat.COLD:
        return 1.0
    return stream.next_in_range(DEAL_CONFIG.heat_premium_bands[heat.value])


def get_max_acquisitions(ma_sourcing_tier: int) -> int:
    if ma_sourcing_tier >= 2:
        return 4
    if ma_sourcing_tier >= 1:
        return 3
    return 2


def determine_acquisition_type(ebitda: int, stream: SeededRng) -> str:
    """Sizing hint: small targets are tuck-ins, large ones platform candidates"""
    if ebitda < 500:
        return 'tuck_in'
    if ebitda < 2000:
        return 'platform' if stream.next() > 0.6 else 'standalone'
    return 'platform' if stream.next() > 0.3 else 'standalone'


def calculate_tuck_in_discount(quality: int) -> float:
    """5-25 % off; weaker businesses need more help and sell cheaper"""
    return clamp(0.15 + (3 - quality) * 0.05, 0.05, 0.25)


def portfolio_scaler(portfolio_ebitda: float) -> float:
    threshold = DEAL_CONFIG.portfolio_scaler_threshold
    if portfolio_ebitda > threshold:
        return max(1.0, math.log2(portfolio_ebitda / threshold))
    return 1.0


# ==================== Sector weighting ====================

def get_sector_weights_for_round(round_number: int, max_rounds: int = 20) -> Dict[str, float]:
    """Cheap sectors early, premium sectors late"""
    if round_number <= math.ceil(max_rounds * 0.25):
        shares = {'cheap': 0.60, 'mid': 0.30, 'premium': 0.10}
    elif round_number <= math.ceil(max_rounds * 0.60):
        shares = {'cheap': 0.30, 'mid': 0.40, 'premium': 0.30}
    else:
        shares = {'cheap': 0.20, 'mid': 0.30, 'premium': 0.50}

    weights = {}
    for tier, sectors in SECTOR_PRICE_TIERS.items():
        for sector_id in sectors:
            weights[sector_id] = shares[tier] / len(sectors)
    return weights


def pick_weighted_sector(round_number: int, stream: SeededRng, max_rounds: int = 20) -> str:
    weights = get_sector_weights_for_round(round_number, max_rounds)
    roll = stream.next() * sum(weights.values())
    for sector_id, weight in weights.items():
        roll -= weight
        if roll <= 0:
            return sector_id
    return 'agency'


# ==================== Deals ====================

@dataclass
class DealOptions:
    """Knobs for a single deal draw"""
    sub_type: Optional[str] = None
    quality_floor: Optional[int] = None
    source: Optional[str] = None
    freshness_bonus: int = 0
    multiple_discount: float = 0.0      # e.g. 0.15 = 15% off asking
    last_event_type: Optional[str] = None
    max_rounds: int = 20
    credit_tightening: bool = False
    ma_sourcing_tier: int = 0


def _distressed_multiple_cap(sector_id: str, quality: int) -> float:
    low, high = get_sector(sector_id).acquisition_multiple
    return low + 0.5 if quality <= 2 else (low + high) / 2


def generate_deal_with_size(sector_id: str, round_number: int, stream: SeededRng, ids: IdCounter,
                            size_preference: str = 'any', portfolio_ebitda: float = 0,
                            options: Optional[DealOptions] = None,
                            used_names: Optional[Set[str]] = None) -> Deal:
    """Generate a deal whose EBITDA follows the requested size band.

    Args:
        sector_id: Sector of the target
        round_number: Current round
        stream: RNG lane (normally the deals lane)
        ids: Id counter owned by the game state
        size_preference: 'any', 'small', 'medium' or 'large'
        portfolio_ebitda: Owned EBITDA, scales 'any' and 'large' deals
        options: Source, discount, quality floor and heat context
        used_names: Names already taken; the new name is added to it

    Returns:
        Deal with heat and effective price set
    """
    options = options or DealOptions()
    cfg = DEAL_CONFIG

    quality = generate_quality_rating(stream)
    if options.quality_floor and quality < options.quality_floor:
        quality = options.quality_floor

    business_id = ids.next_id()
    business = generate_business(sector_id, round_number, stream, quality_override=quality,
                                 sub_type_override=options.sub_type, business_id=business_id,
                                 used_names=used_names)
    if used_names is not None:
        used_names.add(business.name)

    if size_preference in cfg.size_ranges:
        low, high = cfg.size_ranges[size_preference]
        target = low + stream.next() * (high - low)
        if size_preference == 'large':
            target *= portfolio_scaler(portfolio_ebitda)
        # back-solve revenue so the margin stays an intrinsic trait
        business.set_financials(revenue=round_money(target) / business.ebitda_margin)
    else:
        business.set_financials(revenue=business.revenue * portfolio_scaler(portfolio_ebitda))
    business.peak_revenue = business.revenue
    business.peak_ebitda = business.ebitda
    _snapshot_acquisition(business)
    ebitda = business.ebitda
    list_price = business.acquisition_price

    acquisition_type = determine_acquisition_type(ebitda, stream)
    tuck_in_discount = calculate_tuck_in_discount(quality) if acquisition_type == 'tuck_in' else None

    archetype = assign_seller_archetype(quality, stream)
    operator = archetype_operator_quality(archetype, stream)
    business.due_diligence = replace(
        business.due_diligence,
        operator_quality=operator,
        operator_quality_text=stream.pick(OPERATOR_TEXTS[operator]),
    )

    price_modifier = stream.next_in_range(ARCHETYPE_PRICE_BANDS[archetype])
    archetype_discount = -price_modifier if price_modifier < 0 else 0.0
    archetype_premium = price_modifier if price_modifier > 0 else 0.0

    # largest single discount wins, premium only when nothing was discounted
    discount = max(tuck_in_discount or 0.0, options.multiple_discount or 0.0, archetype_discount)
    if discount > 0:
        asking = round_money(list_price * (1 - discount))
    elif archetype_premium > 0:
        asking = round_money(list_price * (1 + archetype_premium))
    else:
        asking = list_price

    if archetype == 'distressed_seller' and ebitda > 0:
        cap = _distressed_multiple_cap(sector_id, quality)
        if asking / ebitda > cap:
            asking = round_money(ebitda * cap)

    if archetype == 'franchise_breakaway':
        business.organic_growth_rate += FRANCHISE_BREAKAWAY_GROWTH
        business.revenue_growth_rate += FRANCHISE_BREAKAWAY_GROWTH

    source = options.source or ('inbound' if stream.next() > 0.4 else 'brokered')

    heat = calculate_deal_heat(quality, source, round_number, stream,
                               last_event_type=options.last_event_type,
                               seller_archetype=archetype,
                               max_rounds=options.max_rounds,
                               ma_sourcing_tier=options.ma_sourcing_tier,
                               credit_tightening=options.credit_tightening)
    effective_price = round_money(asking * calculate_heat_premium(heat, stream))
    if archetype == 'distressed_seller' and ebitda > 0:
        effective_price = min(effective_price, round_money(ebitda * _distressed_multiple_cap(sector_id, quality)))
    effective_price = max(effective_price, asking)

    return Deal(
        id=f"deal_{business_id}",
        business=business,
        asking_price=asking,
        effective_price=effective_price,
        freshness=cfg.base_freshness + options.freshness_bonus,
        round_appeared=round_number,
        source=source,
        acquisition_type=acquisition_type,
        heat=heat,
        seller_archetype=archetype,
        tuck_in_discount=tuck_in_discount,
    )


def generate_deal_pipeline(current_pipeline: List[Deal], round_number: int, stream: SeededRng,
                           ids: IdCounter,
                           ma_focus: Optional[MAFocus] = None,
                           portfolio_focus_sector: Optional[str] = None,
                           portfolio_focus_tier: int = 0,
                           portfolio_ebitda: float = 0,
                           ma_sourcing_tier: int = 0,
                           ma_sourcing_active: bool = False,
                           last_event_type: Optional[str] = None,
                           max_rounds: int = 20,
                           credit_tightening: bool = False,
                           used_names: Optional[Set[str]] = None) -> List[Deal]:
    """Age the pipeline, drop expired deals and top it back up.

    Order of additions: M&A focus deals, sourcing-tier deals, portfolio focus
    deals, up to three sectors missing from the pipeline, then weighted
    random fill to the target size (never fewer than four deals).
    """
    cfg = DEAL_CONFIG
    ma_focus = ma_focus or MAFocus()
    used_names = used_names if used_names is not None else set()

    pipeline = []
    for deal in current_pipeline:
        deal.freshness -= 1
        if deal.freshness > 0:
            pipeline.append(deal)
    used_names.update(d.business.name for d in pipeline)

    target_new = max(0, cfg.base_new_deals - len(pipeline))
    sectors_present = {d.business.sector_id for d in pipeline}
    size_pref = ma_focus.size_preference or 'any'
    heat_opts = DealOptions(last_event_type=last_event_type, max_rounds=max_rounds,
                            credit_tightening=credit_tightening)

    def add(sector_id, size, options):
        pipeline.append(generate_deal_with_size(sector_id, round_number, stream, ids, size,
                                                portfolio_ebitda, options, used_names))

    def room() -> bool:
        return len(pipeline) < cfg.max_deals

    # 1. M&A focus
    if ma_focus.sector_id:
        for _ in range(2):
            if not room():
                break
            add(ma_focus.sector_id, size_pref, heat_opts)

    # 1b. Sourcing subscription
    if ma_sourcing_active and ma_sourcing_tier >= 1 and room():
        focus_sector = ma_focus.sector_id or pick_weighted_sector(round_number, stream, max_rounds)
        sourcing = DealOptions(freshness_bonus=1, source='sourced', last_event_type=last_event_type,
                               max_rounds=max_rounds, credit_tightening=credit_tightening,
                               ma_sourcing_tier=ma_sourcing_tier)
        if ma_sourcing_tier >= 2 and ma_focus.sub_type:
            sourcing.sub_type = ma_focus.sub_type
            sourcing.quality_floor = 2
        if ma_sourcing_tier >= 3:
            sourcing.quality_floor = 3

        for _ in range(2):
            if not room():
                break
            add(focus_sector, size_pref, sourcing)

        if ma_sourcing_tier >= 2 and ma_focus.sub_type and ma_focus.sector_id:
            count = stream.next_int(2, 3) if ma_sourcing_tier >= 3 else stream.next_int(1, 2)
            for _ in range(count):
                if not room():
                    break
                add(ma_focus.sector_id, size_pref, replace(sourcing, sub_type=ma_focus.sub_type))

        if ma_sourcing_tier >= 3:
            proprietary = DealOptions(sub_type=ma_focus.sub_type, quality_floor=3, source='proprietary',
                                      multiple_discount=0.15, freshness_bonus=1,
                                      last_event_type=last_event_type, max_rounds=max_rounds,
                                      credit_tightening=credit_tightening)
            for _ in range(2):
                if not room():
                    break
                add(ma_focus.sector_id or focus_sector, size_pref, proprietary)

    # 2. Portfolio focus
    if portfolio_focus_sector and portfolio_focus_tier >= 1:
        for _ in range(2 if portfolio_focus_tier >= 2 else 1):
            if not room():
                break
            add(portfolio_focus_sector, size_pref, heat_opts)

    # 3. Sector variety; the first two rounds lean small/medium so a first deal is affordable
    def early_size(index: int) -> str:
        if round_number > 2:
            return size_pref
        if round_number == 1:
            return 'medium' if index < 2 else 'small'
        return 'medium' if index < 3 else 'small'

    size_index = len(pipeline)
    missing = stream.shuffle([s for s in SECTOR_IDS if s not in sectors_present])
    for sector_id in missing[:3]:
        if not room():
            break
        add(sector_id, early_size(size_index), heat_opts)
        size_index += 1

    # 4. Weighted fill
    target_length = min(cfg.max_deals, len(pipeline) + target_new)
    while len(pipeline) < target_length or len(pipeline) < cfg.min_new_deals:
        add(pick_weighted_sector(round_number, stream, max_rounds), early_size(size_index), heat_opts)
        size_index += 1

    return pipeline


def _cap_quality(deals: List[Deal], ceiling: int = 3) -> List[Deal]:
    for deal in deals:
        deal.business.quality_rating = min(ceiling, deal.business.quality_rating)
    return deals


def generate_distressed_deals(round_number: int, stream: SeededRng, ids: IdCounter,
                              max_rounds: int = 20) -> List[Deal]:
    """Financial-crisis fire sales: 3-4 deals at 30-50 % off, quality 2-3"""
    deals = []
    for _ in range(stream.next_int(3, 4)):
        sector_id = pick_weighted_sector(round_number, stream, max_rounds)
        discount = 0.30 + stream.next() * 0.20
        deals.append(generate_deal_with_size(
            sector_id, round_number, stream, ids, 'any', 0,
            DealOptions(quality_floor=2, source='brokered', freshness_bonus=1,
                        multiple_discount=discount, max_rounds=max_rounds, credit_tightening=True),
        ))
    return _cap_quality(deals)


def generate_recession_deals(round_number: int, stream: SeededRng, ids: IdCounter,
                             max_rounds: int = 20) -> List[Deal]:
    """Recession bargains: 1-2 deals at 15-25 % off, quality 2-3"""
    deals = []
    for _ in range(stream.next_int(1, 2)):
        sector_id = pick_weighted_sector(round_number, stream, max_rounds)
        discount = 0.15 + stream.next() * 0.10
        deals.append(generate_deal_with_size(
            sector_id, round_number, stream, ids, 'any', 0,
            DealOptions(quality_floor=2, source='brokered', freshness_bonus=1,
                        multiple_discount=discount, max_rounds=max_rounds,
                        last_event_type='global_recession'),
        ))
    return _cap_quality(deals)


def generate_sourced_deals(round_number: int, stream: SeededRng, ids: IdCounter,
                           ma_focus: Optional[MAFocus] = None,
                           portfolio_focus_sector: Optional[str] = None,
                           portfolio_ebitda: float = 0,
                           ma_sourcing_tier: int = 0,
                           max_rounds: int = 20,
                           credit_tightening: bool = False) -> List[Deal]:
    """Three banker-sourced deals, weighted toward the focus sector"""
    ma_focus = ma_focus or MAFocus()
    options = DealOptions(source='sourced', max_rounds=max_rounds,
                          credit_tightening=credit_tightening, ma_sourcing_tier=ma_sourcing_tier)
    if ma_sourcing_tier >= 2:
        options.quality_floor = 2
        options.sub_type = ma_focus.sub_type
    if ma_sourcing_tier >= 3:
        options.quality_floor = 3

    if ma_focus.sector_id:
        size = ma_focus.size_preference
        if portfolio_focus_sector and portfolio_focus_sector != ma_focus.sector_id:
            other = portfolio_focus_sector
        else:
            other = None
        sectors = [ma_focus.sector_id, ma_focus.sector_id]
        deals = [generate_deal_with_size(s, round_number, stream, ids, size, portfolio_ebitda, options)
                 for s in sectors]
        other = other or pick_weighted_sector(round_number, stream, max_rounds)
        deals.append(generate_deal_with_size(other, round_number, stream, ids, size, portfolio_ebitda, options))
    elif portfolio_focus_sector:
        deals = [generate_deal_with_size(portfolio_focus_sector, round_number, stream, ids, 'any',
                                         portfolio_ebitda, options) for _ in range(2)]
        deals.append(generate_deal_with_size(pick_weighted_sector(round_number, stream, max_rounds),
                                             round_number, stream, ids, 'any', portfolio_ebitda, options))
    else:
        sectors = stream.shuffle(list(SECTOR_IDS))[:3]
        deals = [generate_deal_with_size(s, round_number, stream, ids, 'any', portfolio_ebitda, options)
                 for s in sectors]

    for deal in deals:
        deal.source = 'sourced'
        deal.freshness = DEAL_CONFIG.base_freshness
    return deals


def generate_proactive_outreach_deals(round_number: int, stream: SeededRng, ids: IdCounter,
                                      ma_focus: MAFocus,
                                      portfolio_ebitda: float = 0,
                                      max_rounds: int = 20,
                                      credit_tightening: bool = False) -> List[Deal]:
    """Two proprietary, quality 3+ deals from direct outreach"""
    sector_id = ma_focus.sector_id or pick_weighted_sector(round_number, stream, max_rounds)
    options = DealOptions(sub_type=ma_focus.sub_type, quality_floor=3, source='proprietary',
                          max_rounds=max_rounds, credit_tightening=credit_tightening)
    return [
        generate_deal_with_size(sector_id, round_number, stream, ids,
                                ma_focus.size_preference or 'any', portfolio_ebitda, options)
        for _ in range(2)
    ]


def generate_referral_deal(round_number: int, stream: SeededRng, ids: IdCounter, sector_id: str,
                           sub_type: Optional[str] = None, max_rounds: int = 20) -> Deal:
    """Quality 3+ sourced deal introduced by a portfolio company"""
    deal = generate_deal_with_size(sector_id, round_number, stream, ids, 'any', 0,
                                   DealOptions(sub_type=sub_type, quality_floor=3, source='sourced',
                                               freshness_bonus=1, max_rounds=max_rounds))
    deal.source = 'sourced'
    return deal
