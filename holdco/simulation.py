"""
Portfolio Simulation
====================
Per-round economics of the owned portfolio: free cash flow, portfolio tax,
shared-service and sector-focus benefits, organic growth, exit valuation and
the derived metrics view. Metrics are always recomputed from GameState.
"""

from dataclasses import dataclass
from typing import Dict, List, Optional

from .calibration_config import FINANCE_CONFIG
from .distress import calculate_distress_level
from .models import (
    ACTIVE, SERVICED_STATUSES, Business, DistressLevel, GameState, SharedService, SHARED_SERVICE_TYPES,
    cap_growth_rate, round_money,
)
from .rng import SeededRng
from .sectors import get_sector
from .turnarounds import get_turnaround_exit_premium

# ==================== Shared services ====================

# type -> (display name, unlock cost, annual cost) in $k
SHARED_SERVICE_DEFINITIONS = {
    'finance_reporting': ("Finance & Reporting", 560, 250),
    'recruiting_hr': ("Recruiting & HR", 750, 320),
    'procurement': ("Procurement", 600, 190),
    'marketing_brand': ("Marketing & Brand", 675, 250),
    'technology_systems': ("Technology & Systems", 900, 380),
}
MAX_ACTIVE_SHARED_SERVICES = 3

# M&A sourcing tier -> (upgrade cost, annual cost, required active opcos) in $k
MA_SOURCING_TIERS = {
    1: (800, 200, 2),
    2: (1500, 400, 3),
    3: (2500, 600, 4),
}


def get_ma_sourcing_annual_cost(tier: int) -> int:
    config = MA_SOURCING_TIERS.get(tier)
    return config[1] if config else 0


def ma_sourcing_cost(gs: GameState) -> int:
    return get_ma_sourcing_annual_cost(gs.ma_sourcing.tier) if gs.ma_sourcing.active else 0


def create_shared_services() -> List[SharedService]:
    return [
        SharedService(type=t, name=SHARED_SERVICE_DEFINITIONS[t][0],
                      unlock_cost=SHARED_SERVICE_DEFINITIONS[t][1],
                      annual_cost=SHARED_SERVICE_DEFINITIONS[t][2])
        for t in SHARED_SERVICE_TYPES
    ]


@dataclass
class SharedServicesBenefits:
    capex_reduction: float = 0.0
    cash_conversion_bonus: float = 0.0
    growth_bonus: float = 0.0
    reinvestment_bonus: float = 0.0
    talent_retention_bonus: float = 0.0
    talent_gain_bonus: float = 0.0


def shared_services_cost(gs: GameState) -> int:
    return sum(s.annual_cost for s in gs.shared_services if s.active)


def calculate_shared_services_benefits(gs: GameState) -> SharedServicesBenefits:
    """Benefits ramp with opco count: 1.0x below 3, +5% per opco, 1.2x at 6+"""
    opcos = len(gs.active_businesses)
    if opcos >= 6:
        scale = 1.2
    elif opcos >= 3:
        scale = 1.0 + (opcos - 2) * 0.05
    else:
        scale = 1.0

    benefits = SharedServicesBenefits()
    for service in gs.shared_services:
        if not service.active:
            continue
        if service.type == 'finance_reporting':
            benefits.cash_conversion_bonus += 0.05 * scale
        elif service.type == 'recruiting_hr':
            benefits.talent_retention_bonus += 0.5 * scale
            benefits.talent_gain_bonus += 0.3 * scale
        elif service.type == 'procurement':
            benefits.capex_reduction += 0.15 * scale
        elif service.type == 'marketing_brand':
            benefits.growth_bonus += 0.015 * scale
        elif service.type == 'technology_systems':
            benefits.reinvestment_bonus += 0.2 * scale
    return benefits


# ==================== Sector focus ====================

@dataclass
class SectorFocusBonus:
    focus_group: str
    tier: int
    opco_count: int


FOCUS_GROWTH_BONUS = {1: 0.02, 2: 0.04, 3: 0.07}


def calculate_sector_focus_bonus(businesses: List[Business]) -> Optional[SectorFocusBonus]:
    """Concentration in one focus group: tier 1/2/3 at 2/3/4+ opcos"""
    active = [b for b in businesses if b.status == ACTIVE]
    if len(active) < 2:
        return None
    counts: Dict[str, int] = {}
    for b in active:
        for group in get_sector(b.sector_id).sector_focus_group:
            counts[group] = counts.get(group, 0) + 1
    best_group, best_count = '', 0
    for group, count in counts.items():
        if count > best_count:
            best_group, best_count = group, count
    if best_count < 2:
        return None
    tier = 3 if best_count >= 4 else 2 if best_count >= 3 else 1
    return SectorFocusBonus(best_group, tier, best_count)


def get_sector_focus_growth_bonus(tier: int) -> float:
    return FOCUS_GROWTH_BONUS.get(tier, 0.0)


def portfolio_focus_sector(businesses: List[Business]) -> Optional[str]:
    """Most common sector among active opcos inside the leading focus group"""
    focus = calculate_sector_focus_bonus(businesses)
    if focus is None:
        return None
    counts: Dict[str, int] = {}
    for b in businesses:
        if b.status == ACTIVE and focus.focus_group in get_sector(b.sector_id).sector_focus_group:
            counts[b.sector_id] = counts.get(b.sector_id, 0) + 1
    return max(counts, key=counts.get) if counts else None


# ==================== Cash flow & tax ====================

def calculate_annual_fcf(business: Business, capex_reduction: float = 0.0,
                         cash_conversion_bonus: float = 0.0) -> int:
    """Pre-tax FCF: EBITDA less capex, lifted by cash conversion"""
    sector = get_sector(business.sector_id)
    capex = business.ebitda * sector.capex_rate * (1 - capex_reduction)
    return round_money((business.ebitda - capex) * (1 + cash_conversion_bonus))


@dataclass
class PortfolioTaxBreakdown:
    gross_ebitda: int           # positive-EBITDA opcos only
    loss_offset: int            # |EBITDA| of loss-making opcos
    net_ebitda: int
    holdco_interest: int
    opco_interest: int
    total_interest: int
    shared_services_cost: int
    sourcing_cost: int
    taxable_income: int
    tax_amount: int
    effective_tax_rate: float
    interest_tax_shield: int
    shared_services_tax_shield: int
    loss_offset_tax_shield: int
    total_tax_savings: int


def calculate_portfolio_tax(businesses: List[Business], holdco_debt: float = 0,
                            holdco_interest_rate: float = 0.0, ss_cost: int = 0,
                            sourcing_cost: int = 0) -> PortfolioTaxBreakdown:
    """Consolidated tax; interest, shared services and sourcing are deductible"""
    rate = FINANCE_CONFIG.tax_rate
    active = [b for b in businesses if b.status == ACTIVE]

    gross = sum(b.ebitda for b in active if b.ebitda >= 0)
    losses = sum(-b.ebitda for b in active if b.ebitda < 0)
    net = gross - losses

    holdco_interest = round_money(holdco_debt * holdco_interest_rate)
    opco_interest = sum(round_money(b.seller_note_balance * b.seller_note_rate) for b in active)
    total_interest = holdco_interest + opco_interest
    overhead = ss_cost + sourcing_cost

    taxable = max(0, net - total_interest - overhead)
    tax = round_money(taxable * rate)
    naive_tax = round_money(max(0, gross) * rate)

    # shields by ordered deduction: losses, interest, then overhead
    remaining = max(0, gross)
    loss_deduction = min(remaining, losses)
    remaining -= loss_deduction
    interest_deduction = min(remaining, total_interest)
    remaining -= interest_deduction
    overhead_deduction = min(remaining, overhead)

    return PortfolioTaxBreakdown(
        gross_ebitda=gross,
        loss_offset=losses,
        net_ebitda=net,
        holdco_interest=holdco_interest,
        opco_interest=opco_interest,
        total_interest=total_interest,
        shared_services_cost=ss_cost,
        sourcing_cost=sourcing_cost,
        taxable_income=taxable,
        tax_amount=tax,
        effective_tax_rate=tax / gross if gross > 0 else 0.0,
        interest_tax_shield=round_money(interest_deduction * rate),
        shared_services_tax_shield=round_money(overhead_deduction * rate),
        loss_offset_tax_shield=round_money(loss_deduction * rate),
        total_tax_savings=naive_tax - tax,
    )


def calculate_portfolio_fcf(businesses: List[Business], capex_reduction: float = 0.0,
                            cash_conversion_bonus: float = 0.0, holdco_debt: float = 0,
                            holdco_interest_rate: float = 0.0, ss_cost: int = 0,
                            sourcing_cost: int = 0) -> int:
    """After-tax, pre-debt-service FCF of the active portfolio"""
    pre_tax = sum(calculate_annual_fcf(b, capex_reduction, cash_conversion_bonus)
                  for b in businesses if b.status == ACTIVE)
    tax = calculate_portfolio_tax(businesses, holdco_debt, holdco_interest_rate, ss_cost, sourcing_cost)
    return pre_tax - tax.tax_amount


# ==================== Organic growth ====================

def apply_organic_growth(business: Business, stream: SeededRng, ss_growth_bonus: float = 0.0,
                         focus_bonus: float = 0.0, inflation_active: bool = False):
    """One year of revenue growth and margin drift for an active opco.

    EBITDA is floored at 30% of acquisition EBITDA.
    """
    sector = get_sector(business.sector_id)
    business.organic_growth_rate = cap_growth_rate(business.organic_growth_rate)

    growth = business.organic_growth_rate
    growth += sector.volatility * (stream.next() * 2 - 1)
    growth += ss_growth_bonus
    if business.sector_id in ('agency', 'consumer') and ss_growth_bonus > 0:
        growth += 0.01
    growth += focus_bonus
    if business.integration_rounds_remaining > 0:
        growth -= 0.03 + stream.next() * 0.05
    if inflation_active:
        growth -= 0.03

    margin = business.ebitda_margin + business.margin_drift_rate
    margin += sector.margin_volatility * (stream.next() * 2 - 1)
    business.set_financials(revenue=business.revenue * (1 + growth), margin=margin)

    floor = round_money(business.acquisition_ebitda * FINANCE_CONFIG.ebitda_floor_pct)
    if business.ebitda < floor and business.ebitda_margin > 0:
        business.set_financials(revenue=floor / business.ebitda_margin)

    business.revenue_growth_rate = business.organic_growth_rate
    business.integration_rounds_remaining = max(0, business.integration_rounds_remaining - 1)


# ==================== Exit valuation ====================

SIZE_TIER_BANDS = [
    # (low, high, premium at low, premium at high, buyer pool)
    (2000, 5000, 0.5, 0.8, 'regional_strategic'),
    (5000, 10000, 0.8, 1.5, 'lower_middle_market_pe'),
    (10000, 20000, 1.5, 2.5, 'institutional_pe'),
    (20000, 30000, 2.5, 3.5, 'large_pe'),
]


def calculate_size_tier_premium(ebitda: float):
    """(premium, buyer pool) interpolated inside each EBITDA band"""
    if ebitda < SIZE_TIER_BANDS[0][0]:
        return 0.0, 'individual'
    for low, high, p_low, p_high, pool in SIZE_TIER_BANDS:
        if ebitda < high:
            return p_low + (ebitda - low) / (high - low) * (p_high - p_low), pool
    return SIZE_TIER_BANDS[-1][3], SIZE_TIER_BANDS[-1][4]


def calculate_de_risking_premium(business: Business) -> float:
    dd = business.due_diligence
    premium = 0.0
    if dd.revenue_concentration == 'low':
        premium += 0.3
    if dd.operator_quality == 'strong':
        premium += 0.3
    if business.is_platform:
        premium += min(0.6, business.platform_scale * 0.2)
    if len(business.improvements) >= 2:
        premium += 0.2
    if dd.customer_retention >= 90:
        premium += 0.2
    return min(1.5, premium)


@dataclass
class ExitValuation:
    base_multiple: float
    growth_premium: float
    quality_premium: float
    platform_premium: float
    hold_premium: float
    improvements_premium: float
    market_modifier: float
    size_tier_premium: float
    de_risking_premium: float
    turnaround_premium: float
    buyer_pool: str
    total_multiple: float
    exit_price: int
    net_proceeds: int
    ebitda_growth: float
    years_held: int
    integrated_platform_premium: float = 0.0


def calculate_exit_valuation(business: Business, current_round: int,
                             last_event_type: Optional[str] = None,
                             platform_ebitda: Optional[float] = None,
                             platform_multiple_expansion: float = 0.0) -> ExitValuation:
    """Exit multiple build-up from the acquisition multiple, floored at 2.0x.

    platform_multiple_expansion is the forged-platform uplift for constituents.
    """
    growth = business.ebitda_growth
    growth_premium = min(2.5, growth * 0.8) if growth > 0 else max(-1.0, growth * 0.5)
    quality_premium = (business.quality_rating - 3) * 0.4
    platform_premium = business.platform_scale * 0.2 if business.is_platform else 0.0
    years_held = current_round - business.acquisition_round
    hold_premium = min(0.5, years_held * 0.1)
    improvements_premium = len(business.improvements) * 0.15
    market = 0.0
    if last_event_type == 'global_bull_market':
        market = 0.5
    elif last_event_type == 'global_recession':
        market = -0.5
    size_premium, pool = calculate_size_tier_premium(
        platform_ebitda if platform_ebitda is not None else business.ebitda)
    de_risking = calculate_de_risking_premium(business)
    turnaround = get_turnaround_exit_premium(business)

    total = max(2.0, business.acquisition_multiple + growth_premium + quality_premium
                + platform_premium + hold_premium + improvements_premium + market
                + size_premium + de_risking + turnaround + platform_multiple_expansion)
    exit_price = round_money(business.ebitda * total)
    payoff = business.seller_note_balance + business.bank_debt_balance

    return ExitValuation(
        base_multiple=business.acquisition_multiple,
        growth_premium=growth_premium,
        quality_premium=quality_premium,
        platform_premium=platform_premium,
        hold_premium=hold_premium,
        improvements_premium=improvements_premium,
        market_modifier=market,
        size_tier_premium=size_premium,
        de_risking_premium=de_risking,
        turnaround_premium=turnaround,
        buyer_pool=pool,
        total_multiple=total,
        exit_price=exit_price,
        net_proceeds=max(0, exit_price - payoff),
        ebitda_growth=growth,
        years_held=years_held,
        integrated_platform_premium=platform_multiple_expansion,
    )


def sale_market_variance(last_event_type: Optional[str], roll: float) -> float:
    """Buyer-market noise on the exit multiple"""
    if last_event_type == 'global_bull_market':
        return roll * 0.3
    if last_event_type == 'global_recession':
        return -roll * 0.3
    return (roll - 0.5) * 0.2


def calculate_sale_price(valuation: ExitValuation, ebitda: int, variance: float,
                         exit_multiple_penalty: float = 0.0) -> int:
    multiple = max(2.0, valuation.total_multiple + variance - exit_multiple_penalty)
    return max(0, round_money(ebitda * multiple))


# ==================== Metrics ====================

@dataclass
class Metrics:
    """Derived view of a GameState; never persisted"""
    cash: int
    total_debt: int
    total_ebitda: int
    total_revenue: int
    avg_ebitda_margin: float
    total_fcf: int
    fcf_per_share: float
    portfolio_roic: float
    portfolio_moic: float
    net_debt_to_ebitda: float
    distress_level: DistressLevel
    cash_conversion: float
    interest_rate: float
    shares_outstanding: float
    portfolio_value: float
    intrinsic_value_per_share: float
    total_invested_capital: int
    total_distributions: int
    total_buybacks: int
    total_exit_proceeds: int


def calculate_metrics(gs: GameState) -> Metrics:
    active = gs.active_businesses
    benefits = calculate_shared_services_benefits(gs)
    ss_cost = shared_services_cost(gs)

    total_ebitda = sum(b.ebitda for b in active)
    total_revenue = sum(b.revenue for b in active)
    total_fcf = calculate_portfolio_fcf(active, benefits.capex_reduction, benefits.cash_conversion_bonus,
                                        gs.total_debt, gs.interest_rate, ss_cost)
    tax = calculate_portfolio_tax(active, gs.total_debt, gs.interest_rate, ss_cost)

    # bolt-ons keep servicing their own notes after integration
    serviced = [b for b in gs.businesses if b.status in SERVICED_STATUSES]
    total_debt = gs.total_debt + sum(b.seller_note_balance for b in serviced)
    annual_interest = gs.total_debt * gs.interest_rate
    opco_interest = sum(b.seller_note_balance * b.seller_note_rate for b in serviced)
    net_fcf = round_money(total_fcf - annual_interest - opco_interest - ss_cost)

    portfolio_value = sum(b.ebitda * get_sector(b.sector_id).average_multiple for b in active)
    intrinsic = portfolio_value + gs.cash - total_debt
    shares = gs.shares_outstanding

    nopat = total_ebitda - tax.tax_amount
    invested = gs.total_invested_capital
    returns = gs.total_distributions + gs.total_exit_proceeds + portfolio_value + gs.cash
    net_debt_to_ebitda = (total_debt - gs.cash) / total_ebitda if total_ebitda > 0 else 0.0

    return Metrics(
        cash=gs.cash,
        total_debt=total_debt,
        total_ebitda=total_ebitda,
        total_revenue=total_revenue,
        avg_ebitda_margin=total_ebitda / total_revenue if total_revenue > 0 else 0.0,
        total_fcf=net_fcf,
        fcf_per_share=net_fcf / shares if shares > 0 else 0.0,
        portfolio_roic=nopat / invested if invested > 0 else 0.0,
        portfolio_moic=returns / invested if invested > 0 else 1.0,
        net_debt_to_ebitda=net_debt_to_ebitda,
        distress_level=calculate_distress_level(net_debt_to_ebitda, total_debt, total_ebitda),
        cash_conversion=total_fcf / total_ebitda if total_ebitda > 0 else 0.0,
        interest_rate=gs.interest_rate,
        shares_outstanding=shares,
        portfolio_value=portfolio_value,
        intrinsic_value_per_share=intrinsic / shares if shares > 0 else 0.0,
        total_invested_capital=invested,
        total_distributions=gs.total_distributions,
        total_buybacks=gs.total_buybacks,
        total_exit_proceeds=gs.total_exit_proceeds,
    )
