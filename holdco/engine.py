"""
Holdco Tycoon - Game Engine (Pure Logic, No UI)
===============================================
Headless round orchestrator for the holding-company simulation. One Engine
owns one GameState and drives it through

    collect -> event -> allocate -> [restructure] -> collect

Player actions are action_* methods that return an ActionResult. A rejected
action leaves the state untouched and sets gs.reason. Every random draw comes
from the per-round RNG streams, so a seed plus the same action sequence always
replays to the same game.
"""

import math
from dataclasses import dataclass
from enum import Enum
from typing import Dict, List, Optional, Tuple, Union

import numpy as np
from scipy import optimize

from .actions import (
    AcquireRecord, AcquireTuckInRecord, ActionRecord, ActionResult, AddToPlatformRecord, BuybackRecord,
    DealLostRecord, DesignatePlatformRecord, DistributeRecord, EventChoiceRecord, ForgePlatformRecord,
    ImproveRecord, IssueEquityRecord, MASourcingRecord, MergeRecord, PayDebtRecord,
    PlatformDissolvedRecord, RestructureRecord, SellRecord, SetMAFocusRecord,
    SharedServiceRecord, SourceDealsRecord, StartTurnaroundRecord, TurnaroundResolvedRecord,
    UnlockTurnaroundTierRecord,
)
from .businesses import (
    create_starting_business, generate_deal_pipeline, generate_distressed_deals,
    generate_proactive_outreach_deals, generate_recession_deals, generate_referral_deal,
    generate_sourced_deals, get_max_acquisitions, pick_weighted_sector,
)
from .calibration_config import (
    DEAL_CONFIG, DIFFICULTY_CONFIG, DURATION_CONFIG, FINANCE_CONFIG, INTEGRATION_CONFIG,
)
from .deals import bank_debt_terms, find_structure, generate_deal_structures, execute_deal_structure
from .distress import get_distress_restrictions
from .events import (
    CHOICE_EVENT_TYPES, EQUITY_DECLINE_TALENT_LOSS_CHANCE, EQUITY_DEMAND_SHARES,
    apply_event_effects, generate_event,
)
from .integration import (
    calculate_integration_growth_penalty, calculate_synergies, determine_integration_outcome,
    failure_restructuring_cost, get_size_ratio_tier, get_sub_type_affinity,
    incremental_multiple_expansion,
)
from .logging_config import get_logger
from .models import (
    ACTIVE, INTEGRATED, MERGED, SOLD, ActiveTurnaround, Affinity, Business, Deal, DistressLevel,
    GameEvent, GamePhase, GameState, Improvement, IntegrationOutcome, RoundHistoryEntry,
    cap_growth_rate, clamp_margin, money, round_money,
)
from .platforms import (
    calculate_add_to_platform_cost, calculate_integration_cost, check_platform_dissolution,
    check_platform_eligibility, forge_platform, get_platform_multiple_expansion, get_recipe,
    recipe_accepts,
)
from .rng import RngStreams, create_rng_streams, generate_random_seed, pre_roll_action_outcomes
from .sectors import get_sector
from .simulation import (
    MA_SOURCING_TIERS, MAX_ACTIVE_SHARED_SERVICES, apply_organic_growth,
    calculate_exit_valuation, calculate_metrics, calculate_sale_price,
    calculate_sector_focus_bonus, calculate_shared_services_benefits, create_shared_services,
    get_sector_focus_growth_bonus, portfolio_focus_sector, sale_market_variance,
)
from .telemetry import TelemetrySink, emit_round
from .turnarounds import (
    TURNAROUND_TIER_CONFIG, apply_turnaround_outcome, calculate_turnaround_cost, can_unlock_tier,
    get_program, get_quality_ceiling, get_quality_improvement_chance, get_turnaround_duration,
    resolve_turnaround,
)
from .waterfall import WaterfallResult, run_waterfall

logger = get_logger(__name__)


# ==================== Constants ====================

@dataclass
class ImprovementDefinition:
    cost_pct: float  # of |EBITDA|
    margin_boost: float
    revenue_boost: Union[float, Tuple[float, float]]
    growth_boost: float


IMPROVEMENT_DEFINITIONS = {
    'operating_playbook': ImprovementDefinition(0.15, 0.03, 0.0, 0.0),
    'pricing_model': ImprovementDefinition(0.10, 0.02, 0.01, 0.01),
    'service_expansion': ImprovementDefinition(0.20, -0.01, (0.08, 0.12), 0.0),
    'fix_underperformance': ImprovementDefinition(0.12, 0.04, 0.0, 0.0),
    'recurring_revenue_conversion': ImprovementDefinition(0.25, -0.02, 0.0, 0.03),
    'management_professionalization': ImprovementDefinition(0.18, 0.01, 0.0, 0.01),
    'digital_transformation': ImprovementDefinition(0.22, 0.02, 0.03, 0.02),
}

# Positive improvement effects scale with quality
QUALITY_IMPROVEMENT_MULTIPLIER = {1: 0.7, 2: 0.85, 3: 1.0, 4: 1.1, 5: 1.2}

# Growth bonus on a merger by sub-type affinity
MERGE_AFFINITY_GROWTH = {
    Affinity.MATCH: 0.015,
    Affinity.RELATED: 0.01,
    Affinity.DISTANT: 0.005,
}

OPERATOR_UPGRADE = {'weak': 'moderate', 'moderate': 'strong', 'strong': 'strong'}

BOT_CASH_RESERVE = 1000  # $k the heuristic bot keeps on hand


# ==================== Enums ====================

class IRRStatus(Enum):
    """IRR calculation result status"""
    VALID = "valid"
    NO_SIGN_CHANGE = "no_sign_change"
    DID_NOT_CONVERGE = "did_not_converge"


# ==================== Engine Class ====================

class Engine:
    """Pure game logic engine (no UI dependencies)"""

    def __init__(self, gs: GameState, telemetry: Optional[TelemetrySink] = None):
        self.gs = gs
        self.telemetry = telemetry
        self.last_waterfall: Optional[WaterfallResult] = None
        self._refresh_streams()

    def _refresh_streams(self):
        """Derive this round's lanes and pre-roll the action outcomes"""
        self.streams: RngStreams = create_rng_streams(self.gs.seed, self.gs.round)
        self.rolls = pre_roll_action_outcomes(self.streams.market)
        self._forks = 0

    def _fork(self, label: str):
        """Fresh generator for an action-driven draw whose count is not fixed"""
        self._forks += 1
        return self.streams.market.fork(f"{label}_{self._forks}")

    # ==================== Helpers ====================

    def _reject(self, reason: str) -> ActionResult:
        self.gs.reason = reason
        logger.debug("Round %d: action rejected: %s", self.gs.round, reason)
        return ActionResult(False, reason)

    def _done(self, record: ActionRecord, reason: str) -> ActionResult:
        self.gs.actions_this_round.append(record)
        self.gs.reason = reason
        return ActionResult(True, reason)

    def _check_phase(self, *phases: GamePhase) -> Optional[ActionResult]:
        gs = self.gs
        if gs.game_over:
            return self._reject("The game is over.")
        if gs.phase not in phases:
            return self._reject(f"Not available during the {gs.phase.value} phase.")
        return None

    def metrics(self):
        return calculate_metrics(self.gs)

    def restrictions(self):
        return get_distress_restrictions(self.metrics().distress_level)

    def has_active_shared_services(self) -> bool:
        return any(s.active for s in self.gs.shared_services)

    def last_event_type(self) -> Optional[str]:
        history = self.gs.event_history
        return history[-1].type if history else None

    def find_deal(self, deal_id: str) -> Optional[Deal]:
        for deal in self.gs.deal_pipeline:
            if deal.id == deal_id:
                return deal
        return None

    def used_names(self) -> set:
        gs = self.gs
        names = {b.name for b in gs.businesses}
        names.update(b.name for b in gs.exited_businesses)
        names.update(d.business.name for d in gs.deal_pipeline)
        return names

    def portfolio_ebitda(self) -> int:
        return sum(b.ebitda for b in self.gs.active_businesses)

    def exit_valuation(self, business: Business, last_event_type: Optional[str] = None,
                       current_round: Optional[int] = None):
        gs = self.gs
        return calculate_exit_valuation(
            business, current_round or gs.round, last_event_type,
            platform_multiple_expansion=get_platform_multiple_expansion(business, gs.integrated_platforms),
        )

    def deal_structures(self, deal: Deal):
        """Structures currently on offer for a deal"""
        gs = self.gs
        return generate_deal_structures(
            deal, gs.cash, gs.interest_rate,
            credit_tightening=gs.credit_tightening_rounds_remaining > 0,
            max_rounds=gs.max_rounds,
            no_new_debt=not self.restrictions().can_take_debt,
        )

    def _check_acquisition(self, structure_cash: Optional[int] = None) -> Optional[ActionResult]:
        gs = self.gs
        if gs.requires_restructuring:
            return self._reject("No acquisitions while restructuring is pending.")
        if not self.restrictions().can_acquire:
            return self._reject("Covenant breach: acquisitions are blocked.")
        if gs.acquisitions_this_round >= gs.max_acquisitions_per_round:
            return self._reject(f"Acquisition limit reached ({gs.max_acquisitions_per_round} per round).")
        if structure_cash is not None and gs.cash < structure_cash:
            return self._reject(f"Need {money(structure_cash)} cash (have {money(gs.cash)}).")
        return None

    def _snatched(self, deal: Deal) -> bool:
        """Contested deals go to a rival bidder on a low roll; the attempt still counts"""
        gs = self.gs
        if deal.heat.value != 'contested':
            return False
        if self.rolls.take('contested_snatch') >= DEAL_CONFIG.contested_snatch_chance:
            return False
        gs.deal_pipeline = [d for d in gs.deal_pipeline if d.id != deal.id]
        gs.acquisitions_this_round += 1
        gs.last_acquisition_result = 'snatched'
        gs.actions_this_round.append(DealLostRecord(gs.round, deal_id=deal.id))
        return True

    def _dispose(self, business: Business, exit_price: int) -> int:
        """Sell a business and its bolt-ons, settle their debt, bank the net proceeds"""
        gs = self.gs
        bolt_ons = [b for b in gs.businesses if b.id in business.bolt_on_ids]
        disposed = [business] + bolt_ons
        payoff = sum(b.seller_note_balance + b.bank_debt_balance + b.earnout_remaining for b in disposed)
        net = max(0, exit_price - payoff)

        for b in disposed:
            b.status = SOLD
            b.exit_round = gs.round
            b.exit_price = exit_price if b is business else 0
            b.seller_note_balance = 0
            b.bank_debt_balance = 0
            b.earnout_remaining = 0
        disposed_ids = {b.id for b in disposed}
        gs.businesses = [b for b in gs.businesses if b.id not in disposed_ids]
        gs.exited_businesses.extend(disposed)
        gs.active_turnarounds = [t for t in gs.active_turnarounds
                                 if not (t.business_id in disposed_ids and t.status == 'active')]

        gs.cash += net
        gs.total_exit_proceeds += net
        if len(gs.active_businesses) < FINANCE_CONFIG.min_opcos_for_shared_services:
            for service in gs.shared_services:
                service.active = False
        self._dissolve_broken_platforms()
        return net

    # ==================== Phase transitions ====================

    def advance_to_event(self) -> ActionResult:
        """Collect: run the waterfall, then draw and apply this round's event"""
        rejected = self._check_phase(GamePhase.COLLECT)
        if rejected:
            return rejected
        gs = self.gs
        self._refresh_streams()

        self.last_waterfall = run_waterfall(gs)
        if gs.game_over:
            logger.info("Round %d: bankrupt during collection", gs.round)
            return ActionResult(True, gs.reason)

        # Last year's multi-round effects tick down before a new event can reset them
        if gs.credit_tightening_rounds_remaining > 0:
            gs.credit_tightening_rounds_remaining -= 1
        if gs.inflation_rounds_remaining > 0:
            gs.inflation_rounds_remaining -= 1

        event = generate_event(gs, self.streams.events)
        gs.current_event = event
        if event.type not in CHOICE_EVENT_TYPES and not gs.requires_restructuring:
            apply_event_effects(gs, event, self.streams.events)

        if event.type == 'portfolio_referral_deal':
            sector_id = pick_weighted_sector(gs.round, self.streams.deals, gs.max_rounds)
            gs.deal_pipeline.append(generate_referral_deal(gs.round, self.streams.deals, gs.id_counter,
                                                           sector_id, max_rounds=gs.max_rounds))

        self._resolve_turnarounds()
        gs.event_history.append(event)

        gs.phase = GamePhase.RESTRUCTURE if gs.requires_restructuring else GamePhase.EVENT
        logger.info("Round %d: collect -> %s (%s)", gs.round, gs.phase.value, event.type)
        return ActionResult(True, gs.reason)

    def _resolve_turnarounds(self):
        gs = self.gs
        for ta in gs.active_turnarounds:
            business = gs.find_business(ta.business_id)
            if ta.status == 'active' and (business is None or business.status != ACTIVE):
                # programme lost its business; stop charging for it
                ta.status = 'cancelled'
                logger.debug("Round %d: turnaround %s cancelled, %s no longer owned", gs.round,
                             ta.program_id, ta.business_id)

        concurrent = sum(1 for t in gs.active_turnarounds if t.status == 'active')
        for ta in gs.active_turnarounds:
            if ta.status != 'active' or gs.round < ta.end_round:
                continue
            business = gs.find_business(ta.business_id)
            outcome = resolve_turnaround(get_program(ta.program_id), concurrent, self.streams.market.next())
            apply_turnaround_outcome(business, outcome)
            ta.status = {'success': 'completed', 'partial': 'partial'}.get(outcome.result, 'failed')
            gs.actions_this_round.append(TurnaroundResolvedRecord(
                gs.round, business_id=business.id, program_id=ta.program_id,
                outcome=outcome.result, new_quality=business.quality_rating,
            ))
            logger.debug("Round %d: turnaround %s on %s -> %s", gs.round, ta.program_id,
                         business.id, outcome.result)

    def advance_to_allocate(self) -> ActionResult:
        """Event -> allocate: refresh the deal pipeline"""
        rejected = self._check_phase(GamePhase.EVENT)
        if rejected:
            return rejected
        gs = self.gs
        focus = calculate_sector_focus_bonus(gs.businesses)
        stream = self.streams.deals
        gs.deal_pipeline = generate_deal_pipeline(
            gs.deal_pipeline, gs.round, stream, gs.id_counter,
            ma_focus=gs.ma_focus,
            portfolio_focus_sector=portfolio_focus_sector(gs.businesses),
            portfolio_focus_tier=focus.tier if focus else 0,
            portfolio_ebitda=self.portfolio_ebitda(),
            ma_sourcing_tier=gs.ma_sourcing.tier,
            ma_sourcing_active=gs.ma_sourcing.active,
            last_event_type=self.last_event_type(),
            max_rounds=gs.max_rounds,
            credit_tightening=gs.credit_tightening_rounds_remaining > 0,
            used_names=self.used_names(),
        )
        event_type = gs.current_event.type if gs.current_event else None
        if event_type == 'global_financial_crisis':
            gs.deal_pipeline.extend(generate_distressed_deals(gs.round, stream, gs.id_counter, gs.max_rounds))
        elif event_type == 'global_recession':
            gs.deal_pipeline.extend(generate_recession_deals(gs.round, stream, gs.id_counter, gs.max_rounds))

        gs.actions_this_round = [a for a in gs.actions_this_round if isinstance(a, TurnaroundResolvedRecord)]
        gs.last_acquisition_result = None
        gs.last_integration_outcome = None
        gs.phase = GamePhase.ALLOCATE
        logger.info("Round %d: event -> allocate (%d deals)", gs.round, len(gs.deal_pipeline))
        return ActionResult(True, f"{len(gs.deal_pipeline)} deals in the pipeline.")

    def end_round(self) -> ActionResult:
        """Grow the portfolio, check covenants and solvency, close the round"""
        rejected = self._check_phase(GamePhase.ALLOCATE)
        if rejected:
            return rejected
        gs = self.gs

        benefits = calculate_shared_services_benefits(gs)
        focus = calculate_sector_focus_bonus(gs.businesses)
        focus_bonus = get_sector_focus_growth_bonus(focus.tier) if focus else 0.0
        inflation = gs.inflation_rounds_remaining > 0
        for b in gs.active_businesses:
            in_focus = focus is not None and focus.focus_group in get_sector(b.sector_id).sector_focus_group
            apply_organic_growth(b, self.streams.simulation, benefits.growth_bonus,
                                 focus_bonus if in_focus else 0.0, inflation)

        metrics = calculate_metrics(gs)
        if metrics.distress_level == DistressLevel.BREACH:
            gs.covenant_breach_rounds += 1
        elif not gs.has_restructured:
            gs.covenant_breach_rounds = 0

        bankrupt = False
        if gs.covenant_breach_rounds >= FINANCE_CONFIG.covenant_breach_rounds_threshold:
            if gs.has_restructured:
                bankrupt = True
            else:
                gs.requires_restructuring = True
                gs.reason = "Covenant breached two years running. Forced restructuring triggered."
        if gs.has_restructured and not bankrupt:
            if metrics.intrinsic_value_per_share * gs.shares_outstanding <= 0:
                bankrupt = True
            elif not gs.active_businesses and gs.cash <= 0:
                bankrupt = True

        entry = RoundHistoryEntry(
            round=gs.round,
            cash=gs.cash,
            total_debt=metrics.total_debt,
            total_ebitda=metrics.total_ebitda,
            net_debt_to_ebitda=metrics.net_debt_to_ebitda,
            distress_level=metrics.distress_level.value,
            intrinsic_value_per_share=metrics.intrinsic_value_per_share,
            event_type=gs.current_event.type if gs.current_event else None,
            actions=[a.kind for a in gs.actions_this_round],
        )
        gs.round_history.append(entry)
        emit_round(self.telemetry, entry, gs.actions_this_round)

        if bankrupt:
            gs.game_over = True
            gs.bankrupt_round = gs.round
            gs.requires_restructuring = False
            gs.reason = "Insolvent after restructuring. Bankruptcy declared."
            logger.info("Round %d: bankrupt at year end", gs.round)

        gs.round += 1
        if gs.round > gs.max_rounds:
            gs.game_over = True
        gs.phase = GamePhase.COLLECT
        gs.current_event = None
        gs.exit_multiple_penalty = 0.0
        gs.acquisitions_this_round = 0
        gs.last_acquisition_result = None
        gs.last_integration_outcome = None
        gs.actions_this_round = []
        if not gs.game_over:
            self._refresh_streams()
        logger.info("Round %d closed (%s)", entry.round, entry.distress_level)
        return ActionResult(True, gs.reason)

    # ==================== Acquisitions ====================

    def action_acquire_business(self, deal_id: str, structure_type: str) -> ActionResult:
        """Buy a deal as a standalone opco"""
        rejected = self._check_phase(GamePhase.ALLOCATE)
        if rejected:
            return rejected
        gs = self.gs
        deal = self.find_deal(deal_id)
        if deal is None:
            return self._reject("Deal is no longer available.")
        structure = find_structure(self.deal_structures(deal), structure_type)
        if structure is None:
            return self._reject(f"Structure '{structure_type}' is not available for this deal.")
        rejected = self._check_acquisition(structure.cash_required)
        if rejected:
            return rejected
        if self._snatched(deal):
            return self._reject(f"Outbid: another buyer snatched {deal.business.name}.")

        business = execute_deal_structure(deal, structure, gs.round)
        gs.businesses.append(business)
        gs.cash -= structure.cash_required
        gs.total_invested_capital += deal.effective_price
        gs.deal_pipeline = [d for d in gs.deal_pipeline if d.id != deal.id]
        gs.acquisitions_this_round += 1
        gs.last_acquisition_result = 'success'
        return self._done(
            AcquireRecord(gs.round, business_id=business.id, structure=structure.type,
                          price=deal.effective_price, heat=deal.heat.value),
            f"Acquired {business.name} for {money(deal.effective_price)} ({structure.label}).",
        )

    def action_acquire_tuck_in(self, deal_id: str, platform_id: str, structure_type: str) -> ActionResult:
        """Buy a deal and fold it into an owned platform of the same sector"""
        rejected = self._check_phase(GamePhase.ALLOCATE)
        if rejected:
            return rejected
        gs = self.gs
        deal = self.find_deal(deal_id)
        if deal is None:
            return self._reject("Deal is no longer available.")
        platform = gs.find_business(platform_id, status=ACTIVE)
        if platform is None:
            return self._reject("Target platform not found.")
        if platform.sector_id != deal.business.sector_id:
            return self._reject("Tuck-ins must be in the platform's sector.")
        structure = find_structure(self.deal_structures(deal), structure_type)
        if structure is None:
            return self._reject(f"Structure '{structure_type}' is not available for this deal.")
        rejected = self._check_acquisition(structure.cash_required)
        if rejected:
            return rejected
        if self._snatched(deal):
            return self._reject(f"Outbid: another buyer snatched {deal.business.name}.")

        acquired = deal.business
        affinity = get_sub_type_affinity(platform.sector_id, platform.sub_type, acquired.sub_type)
        size_tier, _ = get_size_ratio_tier(acquired.ebitda, platform.ebitda)
        outcome = determine_integration_outcome(acquired, self.rolls.take('integration'), platform,
                                                self.has_active_shared_services(), affinity, size_tier)
        synergies = calculate_synergies(outcome, acquired.ebitda, True, affinity, size_tier)

        bolt_on = execute_deal_structure(deal, structure, gs.round)
        bolt_on.status = INTEGRATED
        bolt_on.parent_platform_id = platform.id
        bolt_on.integration_rounds_remaining = 1
        bolt_on.integration_outcome = outcome
        bolt_on.synergies_realized = synergies

        restructuring = 0
        drag = 0.0
        if outcome == IntegrationOutcome.FAILURE:
            restructuring = failure_restructuring_cost(acquired.ebitda)
            drag = calculate_integration_growth_penalty(acquired.ebitda, platform.ebitda)

        old_scale, old_ebitda = platform.platform_scale, platform.ebitda
        combined_ebitda = platform.ebitda + acquired.ebitda + synergies
        combined_revenue = platform.revenue + acquired.revenue
        platform.is_platform = True
        platform.platform_scale += 1
        platform.bolt_on_ids.append(bolt_on.id)
        if combined_revenue > 0:
            platform.set_financials(revenue=combined_revenue, margin=combined_ebitda / combined_revenue)
        platform.synergies_realized += synergies
        platform.total_acquisition_cost += deal.effective_price
        platform.acquisition_multiple += incremental_multiple_expansion(
            old_scale, old_ebitda, platform.platform_scale, combined_ebitda)
        platform.organic_growth_rate = cap_growth_rate(platform.organic_growth_rate + drag)
        platform.revenue_growth_rate += drag

        gs.businesses.append(bolt_on)
        gs.cash = max(0, gs.cash - structure.cash_required - restructuring)
        gs.total_invested_capital += deal.effective_price + restructuring
        gs.deal_pipeline = [d for d in gs.deal_pipeline if d.id != deal.id]
        gs.acquisitions_this_round += 1
        gs.last_acquisition_result = 'success'
        gs.last_integration_outcome = outcome
        return self._done(
            AcquireTuckInRecord(gs.round, business_id=bolt_on.id, platform_id=platform.id,
                                structure=structure.type, price=deal.effective_price,
                                outcome=outcome.value, synergies=synergies),
            f"Tucked {bolt_on.name} into {platform.name}: {outcome.value}, synergies {money(synergies)}.",
        )

    def action_merge_businesses(self, business_id_1: str, business_id_2: str,
                                new_name: Optional[str] = None) -> ActionResult:
        """Combine two same-sector opcos into one larger platform"""
        rejected = self._check_phase(GamePhase.ALLOCATE)
        if rejected:
            return rejected
        gs = self.gs
        if business_id_1 == business_id_2:
            return self._reject("Pick two different businesses to merge.")
        biz1 = gs.find_business(business_id_1, status=ACTIVE)
        biz2 = gs.find_business(business_id_2, status=ACTIVE)
        if biz1 is None or biz2 is None:
            return self._reject("Merge failed: one or both businesses not found.")
        if biz1.sector_id != biz2.sector_id:
            return self._reject("Merge failed: businesses must be in the same sector.")

        cfg = INTEGRATION_CONFIG
        smaller, larger = sorted((biz1, biz2), key=lambda b: abs(b.ebitda))
        cost = max(cfg.merge_cost_floor, round_money(abs(smaller.ebitda) * cfg.merge_cost_pct))
        if gs.cash < cost:
            return self._reject(f"Merge costs {money(cost)} (have {money(gs.cash)}).")

        affinity = get_sub_type_affinity(biz1.sector_id, biz1.sub_type, biz2.sub_type)
        size_tier, _ = get_size_ratio_tier(smaller.ebitda, larger.ebitda)
        outcome = determine_integration_outcome(biz2, self.rolls.take('integration'), biz1,
                                                self.has_active_shared_services(), affinity, size_tier,
                                                is_merger=True)
        synergies = calculate_synergies(outcome, smaller.ebitda, False, affinity, size_tier, is_merger=True)
        restructuring = 0
        drag = 0.0
        if outcome == IntegrationOutcome.FAILURE:
            restructuring = failure_restructuring_cost(smaller.ebitda)
            drag = calculate_integration_growth_penalty(smaller.ebitda, larger.ebitda, is_merger=True)

        merged = self._merged_business(biz1, biz2, new_name, synergies, affinity, drag, outcome)
        merged.total_acquisition_cost += cost + restructuring

        for old in (biz1, biz2):
            old.status = MERGED
            old.exit_round = gs.round
        gs.businesses = [b for b in gs.businesses if b.id not in (biz1.id, biz2.id)]
        gs.exited_businesses.extend([biz1, biz2])
        for b in gs.businesses:
            if b.parent_platform_id in (biz1.id, biz2.id):
                b.parent_platform_id = merged.id
        for ta in gs.active_turnarounds:
            if ta.status == 'active' and ta.business_id in (biz1.id, biz2.id):
                ta.business_id = merged.id
        gs.businesses.append(merged)
        merged.integrated_platform_id = biz1.integrated_platform_id or biz2.integrated_platform_id
        for platform in gs.integrated_platforms:
            if platform.id == merged.integrated_platform_id:
                platform.constituent_business_ids = [
                    i for i in platform.constituent_business_ids if i not in (biz1.id, biz2.id)] + [merged.id]
        self._dissolve_broken_platforms()

        gs.cash = max(0, gs.cash - cost - restructuring)
        gs.total_invested_capital += cost + restructuring
        gs.last_integration_outcome = outcome
        return self._done(
            MergeRecord(gs.round, business_ids=[biz1.id, biz2.id], new_business_id=merged.id,
                        cost=cost, outcome=outcome.value),
            f"Merged into {merged.name}: {outcome.value}, synergies {money(synergies)}.",
        )

    def _merged_business(self, biz1: Business, biz2: Business, new_name: Optional[str], synergies: int,
                         affinity: Affinity, drag: float, outcome: IntegrationOutcome) -> Business:
        pair = (biz1, biz2)
        revenue = biz1.revenue + biz2.revenue
        ebitda = biz1.ebitda + biz2.ebitda + synergies
        old_scale = max(biz1.platform_scale, biz2.platform_scale)
        new_scale = old_scale + 1

        def weighted(balance_attr, value_attr):
            total = sum(getattr(b, balance_attr) for b in pair)
            if total <= 0:
                return 0.0
            return sum(getattr(b, balance_attr) * getattr(b, value_attr) for b in pair) / total

        best_improvements: Dict[str, Improvement] = {}
        for imp in biz1.improvements + biz2.improvements:
            kept = best_improvements.get(imp.type)
            if kept is None or imp.effect > kept.effect:
                best_improvements[imp.type] = imp

        acquisition_revenue = biz1.acquisition_revenue + biz2.acquisition_revenue
        acquisition_ebitda = biz1.acquisition_ebitda + biz2.acquisition_ebitda
        merged = Business(
            id=self.gs.id_counter.next_id(),
            name=new_name or f"{biz1.name} Group",
            sector_id=biz1.sector_id,
            sub_type=biz1.sub_type,
            revenue=revenue,
            ebitda_margin=biz1.ebitda_margin,
            ebitda=ebitda,
            quality_rating=max(biz1.quality_rating, biz2.quality_rating),
            due_diligence=max(pair, key=lambda b: abs(b.ebitda)).due_diligence,
            organic_growth_rate=cap_growth_rate(
                (biz1.organic_growth_rate + biz2.organic_growth_rate) / 2 + MERGE_AFFINITY_GROWTH[affinity] + drag),
            revenue_growth_rate=(biz1.revenue_growth_rate + biz2.revenue_growth_rate) / 2,
            margin_drift_rate=(biz1.margin_drift_rate + biz2.margin_drift_rate) / 2,
            acquisition_revenue=acquisition_revenue,
            acquisition_margin=acquisition_ebitda / acquisition_revenue if acquisition_revenue > 0 else 0.0,
            acquisition_ebitda=acquisition_ebitda,
            acquisition_multiple=(biz1.acquisition_multiple + biz2.acquisition_multiple) / 2
            + incremental_multiple_expansion(old_scale, max(biz1.ebitda, biz2.ebitda), new_scale, ebitda),
            acquisition_price=biz1.acquisition_price + biz2.acquisition_price,
            acquisition_round=max(biz1.acquisition_round, biz2.acquisition_round),
            integration_rounds_remaining=2,
            improvements=list(best_improvements.values()),
            seller_note_balance=biz1.seller_note_balance + biz2.seller_note_balance,
            seller_note_rate=weighted('seller_note_balance', 'seller_note_rate'),
            seller_note_rounds_remaining=math.ceil(weighted('seller_note_balance', 'seller_note_rounds_remaining')),
            bank_debt_balance=biz1.bank_debt_balance + biz2.bank_debt_balance,
            bank_debt_rate=weighted('bank_debt_balance', 'bank_debt_rate'),
            bank_debt_rounds_remaining=math.ceil(weighted('bank_debt_balance', 'bank_debt_rounds_remaining')),
            earnout_remaining=biz1.earnout_remaining + biz2.earnout_remaining,
            earnout_target=max(biz1.earnout_target, biz2.earnout_target),
            is_platform=True,
            platform_scale=new_scale,
            bolt_on_ids=biz1.bolt_on_ids + biz2.bolt_on_ids,
            integration_outcome=outcome,
            synergies_realized=biz1.synergies_realized + biz2.synergies_realized + synergies,
            total_acquisition_cost=biz1.total_acquisition_cost + biz2.total_acquisition_cost,
            quality_improved_tiers=max(biz1.quality_improved_tiers, biz2.quality_improved_tiers),
            was_merged=True,
        )
        if revenue > 0:
            merged.set_financials(revenue=revenue, margin=ebitda / revenue)
        else:
            merged.set_financials()
        return merged

    def action_designate_platform(self, business_id: str) -> ActionResult:
        rejected = self._check_phase(GamePhase.ALLOCATE)
        if rejected:
            return rejected
        gs = self.gs
        business = gs.find_business(business_id, status=ACTIVE)
        if business is None:
            return self._reject("Business not found.")
        if business.is_platform:
            return self._reject(f"{business.name} is already a platform.")
        cfg = INTEGRATION_CONFIG
        cost = max(cfg.platform_setup_floor, round_money(abs(business.ebitda) * cfg.platform_setup_pct))
        if gs.cash < cost:
            return self._reject(f"Platform setup costs {money(cost)} (have {money(gs.cash)}).")
        business.is_platform = True
        business.platform_scale = max(1, business.platform_scale)
        gs.cash -= cost
        gs.total_invested_capital += cost
        return self._done(DesignatePlatformRecord(gs.round, business_id=business.id, cost=cost),
                          f"{business.name} designated as a platform.")

    def _join_platform(self, business: Business, platform_id: str, bonuses):
        """One-time margin boost plus a permanent growth boost"""
        business.integrated_platform_id = platform_id
        business.set_financials(margin=business.ebitda_margin + bonuses.margin_boost)
        business.organic_growth_rate = cap_growth_rate(business.organic_growth_rate + bonuses.growth_boost)
        business.revenue_growth_rate += bonuses.growth_boost

    def action_forge_integrated_platform(self, recipe_id: str, business_ids: List[str]) -> ActionResult:
        """Consolidate opcos with complementary sub-types into a recipe platform"""
        rejected = self._check_phase(GamePhase.ALLOCATE)
        if rejected:
            return rejected
        gs = self.gs
        recipe = get_recipe(recipe_id)
        if recipe is None:
            return self._reject(f"Unknown platform recipe: {recipe_id}")
        eligibility = next((e for e in check_platform_eligibility(gs.businesses, gs.integrated_platforms,
                                                                   gs.difficulty, gs.duration)
                            if e.recipe.id == recipe_id), None)
        if eligibility is None:
            return self._reject(f"{recipe.name} is not available: check sub-types and sector EBITDA.")
        candidates = {b.id: b for b in eligibility.eligible_businesses}
        if not business_ids or any(bid not in candidates for bid in business_ids):
            return self._reject(f"Every selected business must fit the {recipe.name} recipe.")
        selected = [candidates[bid] for bid in dict.fromkeys(business_ids)]
        if len({b.sub_type for b in selected}) < recipe.min_sub_types:
            return self._reject(f"{recipe.name} needs {recipe.min_sub_types} distinct sub-types.")
        if recipe.cross_sector_ids and not set(recipe.cross_sector_ids) <= {b.sector_id for b in selected}:
            return self._reject(f"{recipe.name} needs a business from each of its sectors.")
        cost = calculate_integration_cost(recipe, selected)
        if gs.cash < cost:
            return self._reject(f"Integration costs {money(cost)} (have {money(gs.cash)}).")

        platform = forge_platform(recipe, [b.id for b in selected], gs.round)
        for b in selected:
            self._join_platform(b, platform.id, platform.bonuses)
        gs.integrated_platforms.append(platform)
        gs.cash -= cost
        gs.total_invested_capital += cost
        logger.debug("Round %d: forged %s from %s", gs.round, platform.id, platform.constituent_business_ids)
        return self._done(
            ForgePlatformRecord(gs.round, platform_id=platform.id, recipe_id=recipe.id,
                                business_ids=list(platform.constituent_business_ids), cost=cost),
            f"Forged {platform.name} for {money(cost)}.",
        )

    def action_add_to_integrated_platform(self, platform_id: str, business_id: str) -> ActionResult:
        rejected = self._check_phase(GamePhase.ALLOCATE)
        if rejected:
            return rejected
        gs = self.gs
        platform = next((p for p in gs.integrated_platforms if p.id == platform_id), None)
        if platform is None:
            return self._reject("Integrated platform not found.")
        business = gs.find_business(business_id, status=ACTIVE)
        if business is None:
            return self._reject("Business not found.")
        if business.integrated_platform_id:
            return self._reject(f"{business.name} already belongs to a platform.")
        recipe = get_recipe(platform.recipe_id)
        if recipe is None or not recipe_accepts(recipe, business):
            return self._reject(f"{business.name} does not fit {platform.name}.")
        cost = calculate_add_to_platform_cost(platform, business)
        if gs.cash < cost:
            return self._reject(f"Integration costs {money(cost)} (have {money(gs.cash)}).")

        self._join_platform(business, platform.id, platform.bonuses)
        platform.constituent_business_ids.append(business.id)
        gs.cash -= cost
        gs.total_invested_capital += cost
        return self._done(AddToPlatformRecord(gs.round, platform_id=platform.id, business_id=business.id,
                                              cost=cost),
                          f"{business.name} joined {platform.name} for {money(cost)}.")

    def _dissolve_broken_platforms(self):
        """Drop platforms whose remaining constituents no longer satisfy their recipe"""
        gs = self.gs
        live_ids = {b.id for b in gs.businesses}
        kept = []
        for platform in gs.integrated_platforms:
            platform.constituent_business_ids = [i for i in platform.constituent_business_ids if i in live_ids]
            if not check_platform_dissolution(platform, gs.businesses):
                kept.append(platform)
                continue
            for b in gs.businesses:
                if b.integrated_platform_id == platform.id:
                    b.integrated_platform_id = None
            gs.actions_this_round.append(PlatformDissolvedRecord(gs.round, platform_id=platform.id))
            logger.info("Round %d: platform %s dissolved", gs.round, platform.id)
        gs.integrated_platforms = kept

    # ==================== Operations ====================

    def improvement_cost(self, business: Business, improvement_type: str) -> int:
        definition = IMPROVEMENT_DEFINITIONS[improvement_type]
        abs_ebitda = abs(business.ebitda) or 1
        return max(FINANCE_CONFIG.improvement_cost_floor, round_money(abs_ebitda * definition.cost_pct))

    def action_improve_business(self, business_id: str, improvement_type: str) -> ActionResult:
        """Apply one operational improvement; each type once per business"""
        rejected = self._check_phase(GamePhase.ALLOCATE)
        if rejected:
            return rejected
        gs = self.gs
        business = gs.find_business(business_id, status=ACTIVE)
        if business is None:
            return self._reject("Business not found.")
        definition = IMPROVEMENT_DEFINITIONS.get(improvement_type)
        if definition is None:
            return self._reject(f"Unknown improvement: {improvement_type}")
        if any(i.type == improvement_type for i in business.improvements):
            return self._reject(f"{business.name} already has {improvement_type}.")
        cost = self.improvement_cost(business, improvement_type)
        if gs.cash < cost:
            return self._reject(f"Improvement needs {money(cost)} (have {money(gs.cash)}).")

        margin_boost = definition.margin_boost
        if improvement_type == 'digital_transformation' and business.ebitda_margin > 0.30:
            margin_boost /= 2
        revenue_boost = definition.revenue_boost
        if isinstance(revenue_boost, tuple):
            revenue_boost = self._fork('improve').next_in_range(revenue_boost)
        growth_boost = definition.growth_boost
        multiplier = QUALITY_IMPROVEMENT_MULTIPLIER.get(business.quality_rating, 1.0)
        if margin_boost > 0:
            margin_boost *= multiplier
        if revenue_boost > 0:
            revenue_boost *= multiplier
        if growth_boost > 0:
            growth_boost *= multiplier

        before = business.ebitda
        business.set_financials(revenue=business.revenue * (1 + revenue_boost),
                                margin=clamp_margin(business.ebitda_margin + margin_boost))
        business.organic_growth_rate += growth_boost
        business.revenue_growth_rate += growth_boost
        business.total_acquisition_cost += cost
        if improvement_type == 'management_professionalization':
            dd = business.due_diligence
            dd.operator_quality = OPERATOR_UPGRADE[dd.operator_quality]
        if improvement_type == 'digital_transformation':
            business.margin_drift_rate += 0.002
        effect = (business.ebitda - before) / before if before > 0 else 0.0
        business.improvements.append(Improvement(improvement_type, gs.round, effect))

        quality_improved = False
        if business.quality_rating < get_quality_ceiling(business.sector_id):
            if self.rolls.take('quality_improvement') < get_quality_improvement_chance(gs.turnaround_tier):
                business.quality_rating += 1
                business.quality_improved_tiers += 1
                quality_improved = True

        gs.cash -= cost
        gs.total_invested_capital += cost
        reason = f"{improvement_type} applied to {business.name} for {money(cost)}."
        if quality_improved:
            reason += f" Quality improved to Q{business.quality_rating}."
        return self._done(ImproveRecord(gs.round, business_id=business.id, improvement=improvement_type,
                                        cost=cost, quality_improved=quality_improved), reason)

    def action_unlock_turnaround_tier(self) -> ActionResult:
        rejected = self._check_phase(GamePhase.ALLOCATE)
        if rejected:
            return rejected
        gs = self.gs
        problem = can_unlock_tier(gs.turnaround_tier, gs.cash, len(gs.active_businesses))
        if problem:
            return self._reject(problem)
        gs.turnaround_tier += 1
        config = TURNAROUND_TIER_CONFIG[gs.turnaround_tier]
        gs.cash -= config.unlock_cost
        return self._done(UnlockTurnaroundTierRecord(gs.round, tier=gs.turnaround_tier, cost=config.unlock_cost),
                          f"{config.name} unlocked.")

    def action_start_turnaround_program(self, business_id: str, program_id: str) -> ActionResult:
        rejected = self._check_phase(GamePhase.ALLOCATE)
        if rejected:
            return rejected
        gs = self.gs
        business = gs.find_business(business_id, status=ACTIVE)
        if business is None:
            return self._reject("Business not found.")
        try:
            program = get_program(program_id)
        except KeyError:
            return self._reject(f"Unknown turnaround program: {program_id}")
        if program.tier_id > gs.turnaround_tier:
            return self._reject(f"Requires turnaround tier {program.tier_id}.")
        if program.source_quality != business.quality_rating:
            return self._reject(f"Program needs a Q{program.source_quality} business.")
        if program.target_quality > get_quality_ceiling(business.sector_id):
            return self._reject("Target quality is above the sector ceiling.")
        if any(t.business_id == business.id and t.status == 'active' for t in gs.active_turnarounds):
            return self._reject(f"{business.name} already has a turnaround under way.")
        cost = calculate_turnaround_cost(program, business)
        if gs.cash < cost:
            return self._reject(f"Turnaround needs {money(cost)} (have {money(gs.cash)}).")

        end_round = gs.round + get_turnaround_duration(program, gs.duration)
        gs.active_turnarounds.append(ActiveTurnaround(
            id=f"ta_{business.id}_{gs.round}", business_id=business.id, program_id=program.id,
            start_round=gs.round, end_round=end_round,
        ))
        gs.cash -= cost
        gs.total_invested_capital += cost
        return self._done(StartTurnaroundRecord(gs.round, business_id=business.id, program_id=program.id,
                                                cost=cost, end_round=end_round),
                          f"Turnaround started on {business.name}; resolves in round {end_round}.")

    def action_unlock_shared_service(self, service_type: str) -> ActionResult:
        rejected = self._check_phase(GamePhase.ALLOCATE)
        if rejected:
            return rejected
        gs = self.gs
        service = next((s for s in gs.shared_services if s.type == service_type), None)
        if service is None:
            return self._reject(f"Unknown shared service: {service_type}")
        if service.active:
            return self._reject(f"{service.name} is already active.")
        minimum = FINANCE_CONFIG.min_opcos_for_shared_services
        if len(gs.active_businesses) < minimum:
            return self._reject(f"Shared services need {minimum} active businesses.")
        if sum(1 for s in gs.shared_services if s.active) >= MAX_ACTIVE_SHARED_SERVICES:
            return self._reject(f"At most {MAX_ACTIVE_SHARED_SERVICES} shared services can run at once.")
        if gs.cash < service.unlock_cost:
            return self._reject(f"{service.name} costs {money(service.unlock_cost)} (have {money(gs.cash)}).")
        service.active = True
        service.unlocked_round = gs.round
        gs.cash -= service.unlock_cost
        gs.total_invested_capital += service.unlock_cost
        return self._done(SharedServiceRecord(gs.round, service_type=service.type, active=True,
                                              cost=service.unlock_cost),
                          f"{service.name} unlocked.")

    def action_deactivate_shared_service(self, service_type: str) -> ActionResult:
        rejected = self._check_phase(GamePhase.ALLOCATE)
        if rejected:
            return rejected
        gs = self.gs
        service = next((s for s in gs.shared_services if s.type == service_type and s.active), None)
        if service is None:
            return self._reject(f"{service_type} is not active.")
        service.active = False
        return self._done(SharedServiceRecord(gs.round, service_type=service.type, active=False),
                          f"{service.name} deactivated.")

    # ==================== Capital ====================

    def action_pay_down_debt(self, amount: int) -> ActionResult:
        """Prepay the holdco loan"""
        rejected = self._check_phase(GamePhase.ALLOCATE, GamePhase.RESTRUCTURE)
        if rejected:
            return rejected
        gs = self.gs
        payment = min(amount, gs.holdco_loan_balance, gs.cash)
        if payment <= 0:
            return self._reject("Nothing to pay down.")
        gs.holdco_loan_balance -= payment
        gs.cash -= payment
        if gs.holdco_loan_balance == 0:
            gs.holdco_loan_rounds_remaining = 0
        return self._done(PayDebtRecord(gs.round, amount=payment),
                          f"Paid down {money(payment)} of holdco debt.")

    def action_pay_down_bank_debt(self, business_id: str, amount: int) -> ActionResult:
        rejected = self._check_phase(GamePhase.ALLOCATE, GamePhase.RESTRUCTURE)
        if rejected:
            return rejected
        gs = self.gs
        business = gs.find_business(business_id, status=ACTIVE)
        if business is None:
            return self._reject("Business not found.")
        payment = min(amount, business.bank_debt_balance, gs.cash)
        if payment <= 0:
            return self._reject("Nothing to pay down.")
        business.bank_debt_balance -= payment
        gs.cash -= payment
        if business.bank_debt_balance == 0:
            business.bank_debt_rounds_remaining = 0
        return self._done(PayDebtRecord(gs.round, amount=payment, business_id=business.id),
                          f"Paid down {money(payment)} of {business.name}'s bank debt.")

    def action_issue_equity(self, amount: int) -> ActionResult:
        """Sell new shares to outside investors at a discount to intrinsic value"""
        rejected = self._check_phase(GamePhase.ALLOCATE)
        if rejected:
            return rejected
        gs = self.gs
        cfg = FINANCE_CONFIG
        if amount <= 0:
            return self._reject("Raise amount must be positive.")
        if gs.requires_restructuring:
            return self._reject("Use an emergency raise while restructuring.")
        if gs.last_buyback_round > 0 and gs.round - gs.last_buyback_round < cfg.equity_buyback_cooldown:
            return self._reject("Cannot raise equity within two rounds of a buyback.")
        ivps = self.metrics().intrinsic_value_per_share
        if ivps <= 0:
            return self._reject("Intrinsic value is not positive; no investor will buy in.")

        discount = max(1 - cfg.equity_dilution_step * gs.equity_raises_used, cfg.equity_dilution_floor)
        price = ivps * discount
        new_shares = round(amount / price, 3)
        ownership = gs.founder_shares / (gs.shares_outstanding + new_shares)
        if ownership < cfg.min_founder_ownership:
            return self._reject(f"Raise would cut founder ownership to {ownership:.1%} (floor "
                                f"{cfg.min_founder_ownership:.0%}).")

        gs.cash += amount
        gs.shares_outstanding += new_shares
        gs.equity_raises_used += 1
        gs.last_equity_raise_round = gs.round
        return self._done(IssueEquityRecord(gs.round, amount=amount, new_shares=new_shares, price_per_share=price),
                          f"Raised {money(amount)} issuing {new_shares:.1f} shares.")

    def action_buyback_shares(self, amount: int) -> ActionResult:
        rejected = self._check_phase(GamePhase.ALLOCATE)
        if rejected:
            return rejected
        gs = self.gs
        cfg = FINANCE_CONFIG
        if amount <= 0 or gs.cash < amount:
            return self._reject(f"Need {money(amount)} cash for the buyback.")
        if not gs.active_businesses:
            return self._reject("Need at least one active business.")
        if gs.last_equity_raise_round > 0 and gs.round - gs.last_equity_raise_round < cfg.equity_buyback_cooldown:
            return self._reject("Cannot buy back within two rounds of an equity raise.")
        if not self.restrictions().can_buyback:
            return self._reject("Covenant breach: buybacks are blocked.")
        ivps = self.metrics().intrinsic_value_per_share
        if ivps <= 0:
            return self._reject("Intrinsic value is not positive.")
        outside = gs.shares_outstanding - gs.founder_shares
        if outside <= 0:
            return self._reject("No outside shares left to repurchase.")

        shares = min(amount / ivps, outside)
        cost = round_money(shares * ivps)
        gs.shares_outstanding -= shares
        if gs.shares_outstanding - gs.founder_shares < 0.01:
            gs.shares_outstanding = gs.founder_shares
        gs.cash -= cost
        gs.total_buybacks += cost
        gs.last_buyback_round = gs.round
        return self._done(BuybackRecord(gs.round, amount=cost, shares_repurchased=shares),
                          f"Bought back {shares:.1f} shares for {money(cost)}.")

    def action_distribute_to_owners(self, amount: int) -> ActionResult:
        rejected = self._check_phase(GamePhase.ALLOCATE)
        if rejected:
            return rejected
        gs = self.gs
        if amount <= 0 or gs.cash < amount:
            return self._reject(f"Need {money(amount)} cash to distribute.")
        if not self.restrictions().can_distribute:
            return self._reject("Covenant breach: distributions are blocked.")
        founder_share = round_money(amount * gs.founder_ownership)
        gs.cash -= amount
        gs.total_distributions += amount
        gs.founder_distributions_received += founder_share
        gs.founder_cashflows.append({'round': gs.round, 'amount': founder_share})
        return self._done(DistributeRecord(gs.round, amount=amount, founder_share=founder_share),
                          f"Distributed {money(amount)} ({money(founder_share)} to the founder).")

    def action_sell_business(self, business_id: str) -> ActionResult:
        """Sell an opco (and its bolt-ons) at the market exit multiple"""
        rejected = self._check_phase(GamePhase.ALLOCATE)
        if rejected:
            return rejected
        gs = self.gs
        business = gs.find_business(business_id, status=ACTIVE)
        if business is None:
            return self._reject("Business not found.")
        last_type = self.last_event_type()
        valuation = self.exit_valuation(business, last_type)
        variance = sale_market_variance(last_type, self.rolls.take('sell_variance'))
        exit_price = calculate_sale_price(valuation, business.ebitda, variance, gs.exit_multiple_penalty)
        net = self._dispose(business, exit_price)
        return self._done(SellRecord(gs.round, business_id=business.id, exit_price=exit_price, net_proceeds=net),
                          f"Sold {business.name} for {money(exit_price)} ({money(net)} net).")

    # ==================== M&A sourcing ====================

    def action_set_ma_focus(self, sector_id: Optional[str], size_preference: str = 'any',
                            sub_type: Optional[str] = None) -> ActionResult:
        rejected = self._check_phase(GamePhase.ALLOCATE)
        if rejected:
            return rejected
        gs = self.gs
        if size_preference not in ('any', 'small', 'medium', 'large'):
            return self._reject(f"Unknown size preference: {size_preference}")
        keep_sub_type = (sector_id == gs.ma_focus.sector_id and gs.ma_sourcing.tier >= 2
                         and gs.ma_sourcing.active)
        gs.ma_focus.sector_id = sector_id
        gs.ma_focus.size_preference = size_preference
        gs.ma_focus.sub_type = sub_type if keep_sub_type else None
        return self._done(SetMAFocusRecord(gs.round, sector_id=sector_id, size_preference=size_preference,
                                           sub_type=gs.ma_focus.sub_type),
                          f"M&A focus set to {sector_id or 'any sector'}.")

    def action_source_deal_flow(self) -> ActionResult:
        """Pay a banker for three extra deals"""
        rejected = self._check_phase(GamePhase.ALLOCATE)
        if rejected:
            return rejected
        gs = self.gs
        cfg = DEAL_CONFIG
        cost = cfg.deal_sourcing_cost_tier1 if gs.ma_sourcing.tier >= 1 else cfg.deal_sourcing_cost_base
        if gs.cash < cost:
            return self._reject(f"Deal sourcing costs {money(cost)} (have {money(gs.cash)}).")
        deals = generate_sourced_deals(
            gs.round, self._fork('sourcing'), gs.id_counter, gs.ma_focus,
            portfolio_focus_sector(gs.businesses), self.portfolio_ebitda(), gs.ma_sourcing.tier,
            gs.max_rounds, gs.credit_tightening_rounds_remaining > 0,
        )
        gs.deal_pipeline.extend(deals)
        gs.cash -= cost
        return self._done(SourceDealsRecord(gs.round, cost=cost, deals_generated=len(deals)),
                          f"Sourced {len(deals)} new deals for {money(cost)}.")

    def action_upgrade_ma_sourcing(self) -> ActionResult:
        rejected = self._check_phase(GamePhase.ALLOCATE)
        if rejected:
            return rejected
        gs = self.gs
        next_tier = gs.ma_sourcing.tier + 1
        if next_tier not in MA_SOURCING_TIERS:
            return self._reject("M&A sourcing is already at the top tier.")
        upgrade_cost, _, required_opcos = MA_SOURCING_TIERS[next_tier]
        if len(gs.active_businesses) < required_opcos:
            return self._reject(f"Need {required_opcos} active businesses.")
        if gs.cash < upgrade_cost:
            return self._reject(f"Upgrade costs {money(upgrade_cost)} (have {money(gs.cash)}).")
        gs.cash -= upgrade_cost
        gs.ma_sourcing.tier = next_tier
        gs.ma_sourcing.active = True
        gs.ma_sourcing.unlocked_round = gs.round
        gs.max_acquisitions_per_round = get_max_acquisitions(next_tier)
        return self._done(MASourcingRecord(gs.round, tier=next_tier, active=True, cost=upgrade_cost),
                          f"M&A sourcing upgraded to tier {next_tier}.")

    def action_toggle_ma_sourcing(self) -> ActionResult:
        rejected = self._check_phase(GamePhase.ALLOCATE)
        if rejected:
            return rejected
        gs = self.gs
        if gs.ma_sourcing.tier <= 0:
            return self._reject("No M&A sourcing team to toggle.")
        gs.ma_sourcing.active = not gs.ma_sourcing.active
        gs.max_acquisitions_per_round = get_max_acquisitions(gs.ma_sourcing.tier if gs.ma_sourcing.active else 0)
        state = "resumed" if gs.ma_sourcing.active else "paused"
        return self._done(MASourcingRecord(gs.round, tier=gs.ma_sourcing.tier, active=gs.ma_sourcing.active),
                          f"M&A sourcing {state}.")

    def action_proactive_outreach(self) -> ActionResult:
        rejected = self._check_phase(GamePhase.ALLOCATE)
        if rejected:
            return rejected
        gs = self.gs
        if gs.ma_sourcing.tier < 3 or not gs.ma_sourcing.active:
            return self._reject("Proactive outreach needs an active tier 3 sourcing team.")
        cost = DEAL_CONFIG.proactive_outreach_cost
        if gs.cash < cost:
            return self._reject(f"Outreach costs {money(cost)} (have {money(gs.cash)}).")
        deals = generate_proactive_outreach_deals(gs.round, self._fork('outreach'), gs.id_counter, gs.ma_focus,
                                                  self.portfolio_ebitda(), gs.max_rounds,
                                                  gs.credit_tightening_rounds_remaining > 0)
        gs.deal_pipeline.extend(deals)
        gs.cash -= cost
        return self._done(SourceDealsRecord(gs.round, cost=cost, deals_generated=len(deals), proactive=True),
                          f"Outreach found {len(deals)} proprietary deals.")

    # ==================== Event choices ====================

    def _pending_choice(self, event_type: str) -> Union[GameEvent, ActionResult]:
        rejected = self._check_phase(GamePhase.EVENT, GamePhase.ALLOCATE)
        if rejected:
            return rejected
        event = self.gs.current_event
        if event is None or event.type != event_type:
            return self._reject("No such decision is pending.")
        return event

    def _choice_done(self, event: GameEvent, choice: str, reason: str, amount: int = 0) -> ActionResult:
        self.gs.current_event = None
        return self._done(EventChoiceRecord(self.gs.round, event_type=event.type, choice=choice,
                                            business_id=event.affected_business_id, amount=amount), reason)

    def action_resolve_event_choice(self, choice: str) -> ActionResult:
        """Dispatch one of the current event's choice actions"""
        event = self.gs.current_event
        if event is None or choice not in [c.action for c in event.choices]:
            return self._reject(f"'{choice}' is not a choice of the current event.")
        return getattr(self, f"action_{choice}")()

    def action_accept_offer(self) -> ActionResult:
        event = self._pending_choice('unsolicited_offer')
        if isinstance(event, ActionResult):
            return event
        business = self.gs.find_business(event.affected_business_id, status=ACTIVE)
        if business is None:
            self.gs.current_event = None
            return self._reject("The business is no longer owned; the offer lapsed.")
        net = self._dispose(business, event.offer_amount or 0)
        self.gs.actions_this_round.append(SellRecord(self.gs.round, business_id=business.id,
                                                     exit_price=event.offer_amount or 0, net_proceeds=net))
        return self._choice_done(event, 'accept_offer',
                                 f"Sold {business.name} to {event.buyer_name} for {money(event.offer_amount)}.",
                                 event.offer_amount or 0)

    def action_decline_offer(self) -> ActionResult:
        event = self._pending_choice('unsolicited_offer')
        if isinstance(event, ActionResult):
            return event
        return self._choice_done(event, 'decline_offer', "Offer declined.")

    def action_grant_equity_demand(self) -> ActionResult:
        event = self._pending_choice('portfolio_equity_demand')
        if isinstance(event, ActionResult):
            return event
        gs = self.gs
        business = gs.find_business(event.affected_business_id, status=ACTIVE)
        gs.shares_outstanding += EQUITY_DEMAND_SHARES
        if business is not None:
            business.set_financials(margin=business.ebitda_margin + 0.01)
            business.organic_growth_rate = cap_growth_rate(business.organic_growth_rate + 0.02)
        return self._choice_done(event, 'grant_equity_demand',
                                 f"Granted {EQUITY_DEMAND_SHARES} shares; the manager stays.")

    def action_decline_equity_demand(self) -> ActionResult:
        event = self._pending_choice('portfolio_equity_demand')
        if isinstance(event, ActionResult):
            return event
        business = self.gs.find_business(event.affected_business_id, status=ACTIVE)
        if business is not None and self.rolls.take('event_decline') < EQUITY_DECLINE_TALENT_LOSS_CHANCE:
            business.set_financials(revenue=business.revenue * 0.94, margin=business.ebitda_margin - 0.02)
            business.organic_growth_rate = cap_growth_rate(business.organic_growth_rate - 0.015)
            return self._choice_done(event, 'decline_equity_demand',
                                     f"The manager left {business.name}; revenue and margin took a hit.")
        return self._choice_done(event, 'decline_equity_demand', "Demand declined; the manager stayed.")

    def action_accept_seller_note_renego(self) -> ActionResult:
        event = self._pending_choice('portfolio_seller_note_renego')
        if isinstance(event, ActionResult):
            return event
        gs = self.gs
        business = gs.find_business(event.affected_business_id, status=ACTIVE)
        if business is None or business.seller_note_balance <= 0:
            gs.current_event = None
            return self._reject("The seller note is already settled.")
        payoff = event.offer_amount or 0
        if gs.cash < payoff:
            return self._reject(f"Early payoff needs {money(payoff)} (have {money(gs.cash)}).")
        gs.cash -= payoff
        business.seller_note_balance = 0
        business.seller_note_rounds_remaining = 0
        return self._choice_done(event, 'accept_seller_note_renego',
                                 f"Seller note on {business.name} settled for {money(payoff)}.", payoff)

    def action_decline_seller_note_renego(self) -> ActionResult:
        event = self._pending_choice('portfolio_seller_note_renego')
        if isinstance(event, ActionResult):
            return event
        return self._choice_done(event, 'decline_seller_note_renego', "Seller note continues as scheduled.")

    # ==================== Restructuring ====================

    def action_distressed_sale(self, business_id: str) -> ActionResult:
        """Fire sale at 70% of exit valuation"""
        rejected = self._check_phase(GamePhase.RESTRUCTURE)
        if rejected:
            return rejected
        gs = self.gs
        business = gs.find_business(business_id, status=ACTIVE)
        if business is None:
            return self._reject("Business not found.")
        valuation = self.exit_valuation(business, self.last_event_type())
        exit_price = round_money(valuation.exit_price * FINANCE_CONFIG.distressed_sale_haircut)
        net = self._dispose(business, exit_price)
        gs.actions_this_round.append(SellRecord(gs.round, business_id=business.id, exit_price=exit_price,
                                                net_proceeds=net, distressed=True))
        return self._done(RestructureRecord(gs.round, step='distressed_sale', amount=net),
                          f"Fire-sold {business.name} for {money(exit_price)} ({money(net)} net).")

    def action_emergency_equity_raise(self, amount: int) -> ActionResult:
        """Shares at half of intrinsic value; no ownership floor"""
        rejected = self._check_phase(GamePhase.RESTRUCTURE)
        if rejected:
            return rejected
        gs = self.gs
        if amount <= 0:
            return self._reject("Raise amount must be positive.")
        ivps = self.metrics().intrinsic_value_per_share
        if ivps <= 0:
            return self._reject("Intrinsic value is not positive; no investor will buy in.")
        price = ivps * FINANCE_CONFIG.emergency_equity_discount
        new_shares = round(amount / price, 3)
        gs.cash += amount
        gs.shares_outstanding += new_shares
        gs.equity_raises_used += 1
        gs.last_equity_raise_round = gs.round
        gs.actions_this_round.append(IssueEquityRecord(gs.round, amount=amount, new_shares=new_shares,
                                                       price_per_share=price))
        return self._done(RestructureRecord(gs.round, step='emergency_equity', amount=amount),
                          f"Emergency raise of {money(amount)} issuing {new_shares:.1f} shares.")

    def action_declare_bankruptcy(self) -> ActionResult:
        rejected = self._check_phase(GamePhase.RESTRUCTURE)
        if rejected:
            return rejected
        gs = self.gs
        gs.actions_this_round.append(RestructureRecord(gs.round, step='bankruptcy'))
        gs.game_over = True
        gs.bankrupt_round = gs.round
        gs.requires_restructuring = False
        gs.reason = "Bankruptcy declared."
        logger.info("Round %d: bankruptcy declared", gs.round)
        return ActionResult(True, gs.reason)

    def action_advance_from_restructure(self) -> ActionResult:
        """Close the restructuring; a second forced restructuring is bankruptcy"""
        rejected = self._check_phase(GamePhase.RESTRUCTURE)
        if rejected:
            return rejected
        gs = self.gs
        gs.requires_restructuring = False
        gs.has_restructured = True
        gs.covenant_breach_rounds = 0
        gs.phase = GamePhase.EVENT
        event = gs.current_event
        if event is not None and event.type not in CHOICE_EVENT_TYPES:
            apply_event_effects(gs, event, self.streams.events)
        logger.info("Round %d: restructuring complete", gs.round)
        return self._done(RestructureRecord(gs.round, step='advance'), "Restructuring complete.")

    # ==================== Dispatch ====================

    def apply_action(self, name: str, **kwargs) -> ActionResult:
        """Run action_<name>; unknown names are a caller error"""
        method = getattr(self, f"action_{name}", None)
        if method is None:
            raise ValueError(f"Unknown action: {name}")
        return method(**kwargs)

    def advance_phase(self) -> ActionResult:
        phase = self.gs.phase
        if phase == GamePhase.COLLECT:
            return self.advance_to_event()
        if phase == GamePhase.EVENT:
            return self.advance_to_allocate()
        if phase == GamePhase.ALLOCATE:
            return self.end_round()
        return self.action_advance_from_restructure()

    # ==================== AI ====================

    def ai_handle_restructure(self):
        """Sell the weakest opcos until cash covers next year's debt service, then move on"""
        gs = self.gs
        if gs.phase != GamePhase.RESTRUCTURE:
            return
        while len(gs.active_businesses) > 1 and gs.cash < BOT_CASH_RESERVE:
            weakest = min(gs.active_businesses, key=lambda b: b.ebitda)
            self.action_distressed_sale(weakest.id)
        self.action_advance_from_restructure()

    def ai_resolve_event(self):
        gs = self.gs
        event = gs.current_event
        if event is None or not event.choices:
            return
        if event.type == 'unsolicited_offer':
            business = gs.find_business(event.affected_business_id, status=ACTIVE)
            fair = self.exit_valuation(business).exit_price if business else 0
            self.action_resolve_event_choice('accept_offer' if (event.offer_amount or 0) >= fair * 1.2 else 'decline_offer')
        elif event.type == 'portfolio_equity_demand':
            ownership = gs.founder_shares / (gs.shares_outstanding + EQUITY_DEMAND_SHARES)
            self.action_resolve_event_choice('grant_equity_demand' if ownership >= 0.6 else 'decline_equity_demand')
        elif event.type == 'portfolio_seller_note_renego':
            affordable = gs.cash - (event.offer_amount or 0) >= BOT_CASH_RESERVE
            self.action_resolve_event_choice('accept_seller_note_renego' if affordable
                                             else 'decline_seller_note_renego')

    def ai_decide_action(self):
        """AI allocates capital for the round (deterministic heuristics)"""
        gs = self.gs
        if gs.game_over or gs.phase != GamePhase.ALLOCATE:
            return

        metrics = self.metrics()

        # Priority 1: Deleverage when stressed
        if metrics.distress_level in (DistressLevel.STRESSED, DistressLevel.BREACH):
            spare = gs.cash - BOT_CASH_RESERVE
            if spare > 0 and gs.holdco_loan_balance > 0:
                self.action_pay_down_debt(spare)
            for b in sorted(gs.active_businesses, key=lambda x: -x.bank_debt_balance):
                spare = gs.cash - BOT_CASH_RESERVE
                if spare <= 0:
                    break
                if b.bank_debt_balance > 0:
                    self.action_pay_down_bank_debt(b.id, spare)
            return

        # Priority 2: Buy the best affordable deals
        for deal in sorted(gs.deal_pipeline, key=lambda d: (-d.business.quality_rating, d.effective_price)):
            if gs.acquisitions_this_round >= gs.max_acquisitions_per_round:
                break
            if deal.heat.value == 'contested' or deal.business.quality_rating < 3:
                continue
            structures = self.deal_structures(deal)
            structure = find_structure(structures, 'all_cash')
            if structure is None or gs.cash - structure.cash_required < BOT_CASH_RESERVE:
                structure = find_structure(structures, 'seller_note')
            if structure is None or gs.cash - structure.cash_required < BOT_CASH_RESERVE:
                continue
            platform = next((b for b in gs.active_businesses
                             if b.is_platform and b.sector_id == deal.business.sector_id), None)
            if platform is not None and deal.acquisition_type == 'tuck_in':
                self.action_acquire_tuck_in(deal.id, platform.id, structure.type)
            else:
                self.action_acquire_business(deal.id, structure.type)

        # Priority 3: Designate a platform where a sector has two or more opcos
        sectors: Dict[str, List[Business]] = {}
        for b in gs.active_businesses:
            sectors.setdefault(b.sector_id, []).append(b)
        for members in sectors.values():
            if len(members) >= 2 and not any(b.is_platform for b in members):
                self.action_designate_platform(max(members, key=lambda b: b.ebitda).id)

        # Priority 4: Forge any integrated platform the portfolio qualifies for
        for eligibility in check_platform_eligibility(gs.businesses, gs.integrated_platforms,
                                                      gs.difficulty, gs.duration):
            selected = eligibility.eligible_businesses
            if gs.cash - calculate_integration_cost(eligibility.recipe, selected) > 2 * BOT_CASH_RESERVE:
                self.action_forge_integrated_platform(eligibility.recipe.id, [b.id for b in selected])

        # Priority 5: Shared services once the portfolio is big enough
        if len(gs.active_businesses) >= FINANCE_CONFIG.min_opcos_for_shared_services:
            service = next((s for s in gs.shared_services if s.type == 'finance_reporting'), None)
            if service is not None and not service.active and gs.cash - service.unlock_cost > 2 * BOT_CASH_RESERVE:
                self.action_unlock_shared_service(service.type)

        # Priority 6: Operating playbook on the largest opco
        for b in sorted(gs.active_businesses, key=lambda x: -x.ebitda):
            if any(i.type == 'operating_playbook' for i in b.improvements):
                continue
            if gs.cash - self.improvement_cost(b, 'operating_playbook') > 2 * BOT_CASH_RESERVE:
                self.action_improve_business(b.id, 'operating_playbook')
            break

        # Priority 7: Return surplus cash in the final rounds
        if gs.round >= gs.max_rounds - 1 and gs.cash > 2 * BOT_CASH_RESERVE:
            self.action_distribute_to_owners(gs.cash - BOT_CASH_RESERVE)

    # ==================== Calculations ====================

    def net_asset_value(self) -> int:
        """Portfolio at end-of-game exit multiples plus cash, less every debt"""
        gs = self.gs
        portfolio = sum(self.exit_valuation(b, current_round=gs.max_rounds).exit_price
                        for b in gs.active_businesses)
        seller_notes = sum(b.seller_note_balance for b in gs.businesses if b.status in (ACTIVE, INTEGRATED))
        earnouts = sum(b.earnout_remaining for b in gs.businesses if b.status in (ACTIVE, INTEGRATED))
        return max(0, portfolio + gs.cash - gs.total_debt - seller_notes - earnouts)

    def founder_equity_value(self) -> int:
        gs = self.gs
        if gs.bankrupt_round:
            return 0
        return round_money(gs.founder_ownership * self.net_asset_value())

    def score(self):
        """Calculate game score: founder equity value scaled by difficulty"""
        gs = self.gs
        if gs.bankrupt_round:
            return 0
        multiplier = DIFFICULTY_CONFIG[gs.difficulty].leaderboard_multiplier
        return round_money(self.founder_equity_value() * multiplier)

    def calculate_irr_moic(self):
        """Calculate founder IRR and MOIC from equity cashflows"""
        gs = self.gs
        cashflows = list(gs.founder_cashflows)

        # Mark-to-market terminal value
        if gs.game_over:
            terminal = self.founder_equity_value()
            if terminal > 0:
                cashflows.append({'round': min(gs.round, gs.max_rounds), 'amount': terminal})

        equity_in = sum(-cf['amount'] for cf in cashflows if cf['amount'] < 0)
        equity_out = sum(cf['amount'] for cf in cashflows if cf['amount'] > 0)
        moic = equity_out / equity_in if equity_in > 0 else 0.0

        if len(cashflows) < 2:
            return 0.0, moic, equity_in, equity_out, IRRStatus.NO_SIGN_CHANGE

        amounts = [cf['amount'] for cf in cashflows]
        if not (any(a > 0 for a in amounts) and any(a < 0 for a in amounts)):
            return 0.0, moic, equity_in, equity_out, IRRStatus.NO_SIGN_CHANGE

        try:
            years = np.array([cf['round'] for cf in cashflows], dtype=float)
            flows = np.array(amounts, dtype=float)

            def npv(rate):
                return np.sum(flows / (1 + rate) ** years)

            irr = float(optimize.newton(npv, 0.1, maxiter=100))

            # Sanity check
            if not np.isfinite(irr) or abs(irr) > 10.0:
                return 0.0, moic, equity_in, equity_out, IRRStatus.DID_NOT_CONVERGE

            return irr, moic, equity_in, equity_out, IRRStatus.VALID

        except (RuntimeError, ValueError, OverflowError, ZeroDivisionError):
            return 0.0, moic, equity_in, equity_out, IRRStatus.DID_NOT_CONVERGE


# ==================== Public API ====================

def new_game(seed: Optional[int] = None, difficulty: str = 'easy', duration: str = 'standard',
             holdco_name: str = "Holdco", starting_sector: str = 'agency',
             telemetry: Optional[TelemetrySink] = None) -> Engine:
    """Create a new game instance

    Args:
        seed: Master seed; a fresh random one when None
        difficulty: 'easy' or 'normal'
        duration: 'standard' (20 rounds) or 'quick' (10 rounds)
        holdco_name: Display name of the holding company
        starting_sector: Sector of the opco owned at the start
        telemetry: Optional sink for finished rounds

    Returns:
        Engine in round 1, collect phase
    """
    if difficulty not in DIFFICULTY_CONFIG:
        raise ValueError(f"Unknown difficulty: {difficulty}")
    if duration not in DURATION_CONFIG:
        raise ValueError(f"Unknown duration: {duration}")
    preset = DIFFICULTY_CONFIG[difficulty]
    max_rounds = DURATION_CONFIG[duration]
    seed = generate_random_seed() if seed is None else seed

    gs = GameState(seed=seed, holdco_name=holdco_name, difficulty=difficulty, duration=duration,
                   max_rounds=max_rounds, founder_shares=preset.founder_shares,
                   shares_outstanding=preset.total_shares)
    gs.shared_services = create_shared_services()

    setup = create_rng_streams(seed, 0).deals
    starting = create_starting_business(setup, gs.id_counter, starting_sector, preset.starting_ebitda,
                                        preset.starting_multiple_cap)
    gs.businesses.append(starting)
    gs.cash = preset.initial_cash - starting.acquisition_price
    gs.total_invested_capital = starting.acquisition_price

    if preset.starting_debt > 0:
        gs.holdco_loan_balance = preset.starting_debt
        gs.holdco_loan_rate = FINANCE_CONFIG.starting_interest_rate
        gs.holdco_loan_rounds_remaining = max_rounds if duration == 'quick' else bank_debt_terms(max_rounds)

    founder_equity = round_money((preset.initial_cash - preset.starting_debt) * gs.founder_ownership)
    gs.founder_cashflows.append({'round': 0, 'amount': -founder_equity})

    gs.deal_pipeline = generate_deal_pipeline([], 1, setup, gs.id_counter, max_rounds=max_rounds,
                                              used_names={starting.name})
    gs.reason = f"{holdco_name} founded with {money(preset.initial_cash)}; {starting.name} acquired."
    logger.info("New game: seed=%d difficulty=%s duration=%s", seed, difficulty, duration)
    return Engine(gs, telemetry=telemetry)


def advance_phase(engine: Engine) -> Engine:
    """Advance the game to its next phase

    Args:
        engine: Current engine instance

    Returns:
        Updated engine instance (same object, mutated)
    """
    engine.advance_phase()
    return engine


def is_finished(engine: Engine) -> bool:
    """Check if game is over

    Args:
        engine: Engine instance

    Returns:
        True if game is finished
    """
    return engine.gs.game_over


def get_results(engine: Engine) -> dict:
    """Get final results from a game

    Args:
        engine: Engine instance (normally finished)

    Returns:
        Dictionary with survival, score, IRR, MOIC, etc.
    """
    gs = engine.gs
    metrics = engine.metrics()
    irr, moic, equity_in, equity_out, irr_status = engine.calculate_irr_moic()
    return {
        'seed': gs.seed,
        'survived': gs.bankrupt_round is None,
        'bankrupt_round': gs.bankrupt_round,
        'rounds_played': min(gs.round, gs.max_rounds) if gs.game_over else gs.round,
        'score': engine.score(),
        'founder_equity_value': engine.founder_equity_value(),
        'founder_ownership': gs.founder_ownership,
        'cash': gs.cash,
        'total_debt': metrics.total_debt,
        'total_ebitda': metrics.total_ebitda,
        'active_businesses': len(gs.active_businesses),
        'distress_level': metrics.distress_level.value,
        'has_restructured': gs.has_restructured,
        'irr': irr,
        'moic': moic,
        'equity_in': equity_in,
        'equity_out': equity_out,
        'irr_status': irr_status.value,
        'reason': gs.reason,
    }


def run_one_simulation(seed: int, difficulty: str = 'easy', duration: str = 'standard',
                       telemetry: Optional[TelemetrySink] = None) -> dict:
    """Run a single headless game with the heuristic bot

    Args:
        seed: Master seed for reproducibility
        difficulty: Difficulty preset
        duration: Game length preset
        telemetry: Optional sink for finished rounds

    Returns:
        Dictionary with simulation results
    """
    engine = new_game(seed=seed, difficulty=difficulty, duration=duration, telemetry=telemetry)
    gs = engine.gs
    while not gs.game_over:
        engine.advance_to_event()
        if gs.game_over:
            break
        engine.ai_handle_restructure()
        engine.ai_resolve_event()
        engine.advance_to_allocate()
        engine.ai_decide_action()
        engine.end_round()
    return get_results(engine)


def run_monte_carlo(n: int, difficulty: str = 'easy', duration: str = 'standard',
                    start_seed: int = 0) -> dict:
    """Run Monte Carlo simulation

    Args:
        n: Number of simulations to run
        difficulty: Difficulty preset for every run
        duration: Game length preset for every run
        start_seed: Seed of the first run; run i uses start_seed + i

    Returns:
        Dictionary with aggregate statistics
    """
    results = [run_one_simulation(start_seed + i, difficulty, duration) for i in range(n)]

    survivors = [r for r in results if r['survived']]
    survival_rate = len(survivors) / len(results) if results else 0.0

    scores = [r['score'] for r in results]
    irrs = [r['irr'] for r in survivors if r['irr_status'] == 'valid']
    moics = [r['moic'] for r in survivors]

    return {
        'n': len(results),
        'survival_rate': survival_rate,
        'median_score': float(np.median(scores)) if scores else 0.0,
        'median_irr': float(np.median(irrs)) if irrs else 0.0,
        'median_moic': float(np.median(moics)) if moics else 0.0,
        'results': results,
    }
