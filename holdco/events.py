"""
Event Engine
============
One macro or micro event per round, drawn from the events lane. Effects are a
pure numeric function of the event, the state and the stream. Choice events
(offers, equity demands, seller-note renegotiations) are surfaced only; the
engine resolves them through explicit accept/decline actions.
"""

import math
from dataclasses import dataclass
from typing import Dict, List, Optional, Tuple, Union

from .calibration_config import FINANCE_CONFIG
from .logging_config import get_logger
from .models import (
    ACTIVE, Business, EventChoice, GameEvent, GameState,
    cap_growth_rate, money, round_money,
)
from .platforms import get_platform_multiple_expansion, get_platform_recession_modifier
from .rng import SeededRng
from .sectors import get_sector
from .simulation import calculate_exit_valuation, calculate_shared_services_benefits

logger = get_logger(__name__)

CHOICE_EVENT_TYPES = ('unsolicited_offer', 'portfolio_equity_demand', 'portfolio_seller_note_renego')


@dataclass
class EventDefinition:
    type: str
    title: str
    description: str
    effect: str
    probability: float


GLOBAL_EVENTS = [
    EventDefinition('global_bull_market', "Bull Market",
                    "Buyers are flush with capital and valuations are climbing.",
                    "EBITDA +5-15% across the portfolio; deals run hotter", 0.10),
    EventDefinition('global_recession', "Recession",
                    "Demand contracts across the economy.",
                    "EBITDA down by sector recession sensitivity; bargains appear", 0.07),
    EventDefinition('global_interest_hike', "Rate Hike",
                    "The central bank raises rates to cool the economy.",
                    "Base interest rate +1-2%", 0.08),
    EventDefinition('global_interest_cut', "Rate Cut",
                    "The central bank cuts rates to stimulate growth.",
                    "Base interest rate -1-2%", 0.07),
    EventDefinition('global_inflation', "Inflation Spike",
                    "Input costs and wages rise faster than prices.",
                    "Organic growth -3% for two years", 0.05),
    EventDefinition('global_credit_tightening', "Credit Tightening",
                    "Lenders pull back; bank debt is off the table.",
                    "No new bank debt for two years", 0.04),
    EventDefinition('global_financial_crisis', "Financial Crisis",
                    "A credit shock freezes markets and forces sellers to the table.",
                    "Rates +2%, exit multiples -1.0x this year; distressed deals appear", 0.02),
]

PORTFOLIO_EVENTS = [
    EventDefinition('portfolio_star_joins', "Star Hire",
                    "A standout executive joins one of your companies.",
                    "EBITDA +12%, growth +2%", 0.05),
    EventDefinition('portfolio_talent_leaves', "Key Talent Departs",
                    "A senior leader leaves for a competitor.",
                    "EBITDA -10%, growth -1.5%", 0.05),
    EventDefinition('portfolio_client_signs', "Major Client Win",
                    "A large new customer signs a multi-year contract.",
                    "EBITDA +8-12%", 0.06),
    EventDefinition('portfolio_client_churns', "Client Churn",
                    "A major customer walks away.",
                    "EBITDA -12-18%, worse with concentrated revenue", 0.05),
    EventDefinition('portfolio_breakthrough', "Operational Breakthrough",
                    "A process change unlocks real efficiency.",
                    "EBITDA +6%", 0.04),
    EventDefinition('portfolio_compliance', "Compliance Issue",
                    "Regulators flag a problem that needs fixing.",
                    "EBITDA -8% and up to $500k in costs", 0.03),
    EventDefinition('portfolio_referral_deal', "Referral Deal",
                    "A portfolio CEO introduces you to a quality owner looking to sell.",
                    "A quality 3+ deal joins the pipeline", 0.04),
    EventDefinition('portfolio_equity_demand', "Equity Demand",
                    "A key manager wants a piece of the holdco.",
                    "Grant shares or risk losing them", 0.03),
    EventDefinition('portfolio_seller_note_renego', "Seller Note Discount",
                    "A seller offers to settle their note early at a discount.",
                    "Pay off the note at a discount, or keep paying", 0.03),
]


@dataclass
class SectorEventDefinition:
    sector_id: str
    title: str
    description: str
    effect: str
    probability: float
    ebitda_effect: Union[float, Tuple[float, float]]
    growth_effect: float = 0.0
    cost_amount: int = 0
    affects_all: bool = False


SECTOR_EVENTS = [
    SectorEventDefinition('agency', "Ad Spend Pullback", "Brands freeze discretionary marketing budgets.",
                          "Agency EBITDA -8-15%", 0.06, (-0.15, -0.08), affects_all=True),
    SectorEventDefinition('agency', "AI Tooling Boost", "Generative tooling lifts delivery productivity.",
                          "EBITDA +10%, growth +1%", 0.04, 0.10, growth_effect=0.01),
    SectorEventDefinition('saas', "Platform Shift", "A major platform change forces costly re-engineering.",
                          "EBITDA -10%, $200k rebuild", 0.05, -0.10, cost_amount=200),
    SectorEventDefinition('saas', "Expansion Revenue Surge", "Existing customers upgrade tiers en masse.",
                          "SaaS EBITDA +8-14%", 0.05, (0.08, 0.14), growth_effect=0.01, affects_all=True),
    SectorEventDefinition('homeServices', "Extreme Weather Season", "A brutal season drives emergency demand.",
                          "Home services EBITDA +6-12%", 0.06, (0.06, 0.12), affects_all=True),
    SectorEventDefinition('consumer', "Retailer Delisting", "A big-box retailer drops a product line.",
                          "EBITDA -15%", 0.05, -0.15, growth_effect=-0.01),
    SectorEventDefinition('industrial', "Reshoring Orders", "Manufacturers bring production home.",
                          "Industrial EBITDA +5-10%", 0.05, (0.05, 0.10), affects_all=True),
    SectorEventDefinition('healthcare', "Reimbursement Cut", "Payers cut reimbursement rates.",
                          "Healthcare EBITDA -6-10%", 0.05, (-0.10, -0.06), affects_all=True),
    SectorEventDefinition('restaurant', "Food Cost Spike", "Commodity prices squeeze kitchens.",
                          "Restaurant EBITDA -10-16%", 0.06, (-0.16, -0.10), affects_all=True),
    SectorEventDefinition('realEstate', "Cap Rate Expansion", "Rising yields pressure property income.",
                          "EBITDA -5%", 0.04, -0.05, affects_all=True),
    SectorEventDefinition('education', "Enrollment Boom", "Demand for training programmes jumps.",
                          "EBITDA +8%, growth +1%", 0.04, 0.08, growth_effect=0.01),
    SectorEventDefinition('insurance', "Carrier Appetite Shift", "Carriers tighten appetite in key lines.",
                          "EBITDA -7%", 0.04, -0.07),
    SectorEventDefinition('autoServices', "EV Transition Pressure", "Electric vehicles need less service.",
                          "Growth -1%", 0.04, -0.03, growth_effect=-0.01, affects_all=True),
    SectorEventDefinition('distribution', "Supplier Consolidation", "A key supplier is acquired and reprices.",
                          "EBITDA -8%", 0.05, -0.08),
    SectorEventDefinition('wealthManagement', "Market Rally", "AUM-linked fees rise with the market.",
                          "Wealth management EBITDA +6-10%", 0.05, (0.06, 0.10), affects_all=True),
    SectorEventDefinition('environmental', "New Regulation", "Tighter environmental rules lift demand.",
                          "EBITDA +8%, growth +1%", 0.04, 0.08, growth_effect=0.01, affects_all=True),
    SectorEventDefinition('b2bServices', "Outsourcing Wave", "Mid-market firms outsource back-office work.",
                          "EBITDA +7%", 0.05, 0.07),
]

BUYER_NAMES = [
    "Summit Peak Capital", "Harborview Partners", "Granite Ridge Equity", "Northgate Holdings",
    "Bluewater Strategic", "Ironwood Capital", "Crescent Lake Partners", "Redline Industries",
]

LATE_GAME_GLOBAL_WEIGHT = 1.25
EQUITY_DEMAND_SHARES = 25
SELLER_NOTE_RENEGO_DISCOUNT = 0.75
EQUITY_DECLINE_TALENT_LOSS_CHANCE = 0.60
CRISIS_RATE_HIKE = 0.02
CRISIS_EXIT_MULTIPLE_PENALTY = 1.0
COMPLIANCE_COST = 500


def _last_event_type(gs: GameState) -> Optional[str]:
    return gs.event_history[-1].type if gs.event_history else None


def _event_from(definition: EventDefinition, round_number: int, **kwargs) -> GameEvent:
    return GameEvent(
        id=f"event_{round_number}_{definition.type}",
        type=definition.type,
        title=definition.title,
        description=definition.description,
        effect=definition.effect,
        **kwargs,
    )


def _roll_global(gs: GameState, stream: SeededRng) -> Optional[GameEvent]:
    """Late rounds lean on global events; a repeat of last year's type is half as likely"""
    weight = LATE_GAME_GLOBAL_WEIGHT if gs.round >= math.ceil(gs.max_rounds * 0.75) else 1.0
    last_type = _last_event_type(gs)
    roll = stream.next()
    cumulative = 0.0
    for definition in GLOBAL_EVENTS:
        p = definition.probability * weight
        if definition.type == last_type:
            p *= 0.5
        cumulative += p
        if roll < cumulative:
            return _event_from(definition, gs.round)
    return None


def _portfolio_candidates(gs: GameState, event_type: str) -> List[Business]:
    active = gs.active_businesses
    if event_type == 'portfolio_seller_note_renego':
        return [b for b in active if b.seller_note_balance > 0]
    return active


def _roll_portfolio(gs: GameState, stream: SeededRng) -> Optional[GameEvent]:
    if not gs.active_businesses:
        return None
    benefits = calculate_shared_services_benefits(gs)
    roll = stream.next()
    cumulative = 0.0
    for definition in PORTFOLIO_EVENTS:
        p = definition.probability
        if definition.type == 'portfolio_talent_leaves':
            p *= max(0.0, 1 - benefits.talent_retention_bonus)
        elif definition.type == 'portfolio_star_joins':
            p *= 1 + benefits.talent_gain_bonus
        cumulative += p
        if roll < min(1.0, cumulative):
            candidates = _portfolio_candidates(gs, definition.type)
            business = stream.pick(candidates)
            if business is None:
                return None
            event = _event_from(definition, gs.round, affected_business_id=business.id,
                                sector_id=business.sector_id)
            _attach_choices(event, business)
            return event
    return None


def _attach_choices(event: GameEvent, business: Business):
    if event.type == 'portfolio_equity_demand':
        event.choices = [
            EventChoice(f"Grant {EQUITY_DEMAND_SHARES} shares",
                        "Margin +1%, growth +2%; dilutes the holdco", 'grant_equity_demand'),
            EventChoice("Decline", "60% chance the manager leaves", 'decline_equity_demand'),
        ]
    elif event.type == 'portfolio_seller_note_renego':
        payoff = round_money(business.seller_note_balance * SELLER_NOTE_RENEGO_DISCOUNT)
        event.offer_amount = payoff
        event.choices = [
            EventChoice("Pay off early", f"Settle at {SELLER_NOTE_RENEGO_DISCOUNT:.0%} of the balance "
                                         f"({money(payoff)})", 'accept_seller_note_renego'),
            EventChoice("Keep paying", "Note continues on its schedule", 'decline_seller_note_renego'),
        ]


def _roll_sector(gs: GameState, stream: SeededRng) -> Optional[GameEvent]:
    owned = {b.sector_id for b in gs.active_businesses}
    applicable = [e for e in SECTOR_EVENTS if e.sector_id in owned]
    if not applicable:
        return None
    roll = stream.next()
    cumulative = 0.0
    for definition in applicable:
        cumulative += definition.probability
        if roll < cumulative:
            in_sector = [b for b in gs.active_businesses if b.sector_id == definition.sector_id]
            affected = None if definition.affects_all else stream.pick(in_sector)
            slug = definition.title.replace(' ', '_')
            return GameEvent(
                id=f"event_{gs.round}_{definition.sector_id}_{slug}",
                type='sector_event',
                title=definition.title,
                description=definition.description,
                effect=definition.effect,
                affected_business_id=affected.id if affected else None,
                sector_id=definition.sector_id,
            )
    return None


def _roll_unsolicited_offer(gs: GameState, stream: SeededRng) -> Optional[GameEvent]:
    """Each active opco independently draws 5% interest from a buyer"""
    active = gs.active_businesses
    if not active:
        return None
    if stream.next() >= 1 - 0.95 ** len(active):
        return None
    business = stream.pick(active)
    valuation = calculate_exit_valuation(
        business, gs.round, _last_event_type(gs),
        platform_multiple_expansion=get_platform_multiple_expansion(business, gs.integrated_platforms))
    multiple = valuation.total_multiple
    buyer = stream.pick(BUYER_NAMES)
    strategic = stream.next() < 0.3
    if strategic:
        multiple += 0.5 + stream.next() * 0.5
        buyer = f"Strategic acquirer {buyer}"
    multiple = max(2.0, multiple * (0.9 + stream.next() * 0.3))
    amount = round_money(business.ebitda * multiple)
    return GameEvent(
        id=f"event_{gs.round}_unsolicited_{business.id}",
        type='unsolicited_offer',
        title="Unsolicited Acquisition Offer",
        description=(f"{buyer} has approached you with an offer to acquire {business.name} "
                     f"for {money(amount)} ({multiple:.1f}x EBITDA)."),
        effect="Accept to sell immediately, or decline to keep the business",
        affected_business_id=business.id,
        sector_id=business.sector_id,
        offer_amount=amount,
        offer_multiple=multiple,
        buyer_name=buyer,
        choices=[
            EventChoice("Accept", f"Sell for {money(amount)}", 'accept_offer'),
            EventChoice("Decline", "Keep the business", 'decline_offer'),
        ],
    )


def generate_event(gs: GameState, stream: SeededRng) -> GameEvent:
    """Draw this round's event: global, then portfolio, sector and offer; else a quiet year"""
    for roll in (_roll_global, _roll_portfolio, _roll_sector, _roll_unsolicited_offer):
        event = roll(gs, stream)
        if event is not None:
            logger.debug("Round %d event: %s", gs.round, event.type)
            return event
    return GameEvent(
        id=f"event_{gs.round}_quiet",
        type='global_quiet',
        title="Quiet Year",
        description="Markets are stable. Business as usual.",
        effect="No special effects this year",
    )


# ==================== Effects ====================

def _impact(metric: str, before, after, business: Optional[Business] = None) -> Dict:
    impact = {'metric': metric, 'before': before, 'after': after, 'delta': after - before}
    if business is not None:
        impact['business_id'] = business.id
        impact['business_name'] = business.name
    return impact


def _shock(business: Business, factor: float, impacts: List[Dict], growth_delta: float = 0.0):
    before = business.ebitda
    business.scale_ebitda(factor)
    if growth_delta:
        business.organic_growth_rate = cap_growth_rate(business.organic_growth_rate + growth_delta)
    impacts.append(_impact('ebitda', before, business.ebitda, business))


def _charge_cash(gs: GameState, amount: int, impacts: List[Dict]):
    """Event costs never push cash below zero"""
    cost = min(amount, gs.cash)
    impacts.append(_impact('cash', gs.cash, gs.cash - cost))
    gs.cash -= cost


def _set_rate(gs: GameState, rate: float, impacts: List[Dict]):
    impacts.append(_impact('interest_rate', gs.interest_rate, rate))
    gs.interest_rate = rate


def apply_event_effects(gs: GameState, event: GameEvent, stream: SeededRng) -> List[Dict]:
    """Apply a non-choice event's numeric effects to the state.

    Args:
        gs: Game state, mutated in place
        event: The drawn event
        stream: Lane for the event's own variance draws

    Returns:
        Impact records, also attached to event.impacts
    """
    if event.type in CHOICE_EVENT_TYPES:
        return []
    impacts: List[Dict] = []
    active = gs.active_businesses
    target = gs.find_business(event.affected_business_id, status=ACTIVE) if event.affected_business_id else None
    cfg = FINANCE_CONFIG

    if event.type == 'global_bull_market':
        boost = 0.05 + stream.next() * 0.10
        for b in active:
            _shock(b, 1 + boost, impacts)
    elif event.type == 'global_recession':
        for b in active:
            damping = get_platform_recession_modifier(b, gs.integrated_platforms)
            _shock(b, 1 - get_sector(b.sector_id).recession_sensitivity * 0.15 * damping, impacts)
    elif event.type == 'global_interest_hike':
        _set_rate(gs, min(cfg.max_interest_rate, gs.interest_rate + 0.01 + stream.next() * 0.01), impacts)
    elif event.type == 'global_interest_cut':
        _set_rate(gs, max(cfg.min_interest_rate, gs.interest_rate - 0.01 - stream.next() * 0.01), impacts)
    elif event.type == 'global_inflation':
        gs.inflation_rounds_remaining = 2
    elif event.type == 'global_credit_tightening':
        gs.credit_tightening_rounds_remaining = 2
    elif event.type == 'global_financial_crisis':
        _set_rate(gs, min(cfg.max_interest_rate, gs.interest_rate + CRISIS_RATE_HIKE), impacts)
        gs.exit_multiple_penalty = CRISIS_EXIT_MULTIPLE_PENALTY
        gs.credit_tightening_rounds_remaining = max(gs.credit_tightening_rounds_remaining, 2)
    elif target is not None and event.type == 'portfolio_star_joins':
        _shock(target, 1.12, impacts, growth_delta=0.02)
    elif target is not None and event.type == 'portfolio_talent_leaves':
        _shock(target, 0.90, impacts, growth_delta=-0.015)
    elif target is not None and event.type == 'portfolio_client_signs':
        _shock(target, 1.08 + stream.next() * 0.04, impacts)
    elif target is not None and event.type == 'portfolio_client_churns':
        concentration = get_sector(target.sector_id).client_concentration
        multiplier = {'high': 1.3, 'medium': 1.0}.get(concentration, 0.7)
        _shock(target, 1 - (0.12 + stream.next() * 0.06) * multiplier, impacts)
    elif target is not None and event.type == 'portfolio_breakthrough':
        _shock(target, 1.06, impacts)
    elif target is not None and event.type == 'portfolio_compliance':
        _shock(target, 0.92, impacts)
        _charge_cash(gs, COMPLIANCE_COST, impacts)
    elif event.type == 'sector_event':
        _apply_sector_event(gs, event, stream, impacts)

    event.impacts = impacts
    return impacts


def _apply_sector_event(gs: GameState, event: GameEvent, stream: SeededRng, impacts: List[Dict]):
    definition = next((e for e in SECTOR_EVENTS
                       if e.title == event.title and e.sector_id == event.sector_id), None)
    if definition is None:
        return
    effect = definition.ebitda_effect
    if isinstance(effect, tuple):
        effect = stream.next_in_range(effect)
    if definition.affects_all:
        affected = [b for b in gs.active_businesses if b.sector_id == definition.sector_id]
    else:
        target = gs.find_business(event.affected_business_id, status=ACTIVE)
        affected = [target] if target else []
    for b in affected:
        _shock(b, 1 + effect, impacts, growth_delta=definition.growth_effect)
    if definition.cost_amount:
        _charge_cash(gs, definition.cost_amount, impacts)
