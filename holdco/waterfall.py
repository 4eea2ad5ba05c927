"""
Financial Waterfall Engine
==========================
Annual cash collection and debt service. Strict order each round:

1. after-tax, pre-debt FCF of active opcos
2. fixed operating costs (shared services, M&A sourcing, turnaround office
   and running programmes)
3. holdco loan interest (base rate + distress penalty) and equal principal
4. per opco, in portfolio order: seller note, earn-out, bank debt

Every payment is capped at the running cash balance and applied interest
first. Only a senior shortfall (operating costs, holdco loan) forces
restructuring; an opco-level shortfall (seller note, earn-out, bank debt)
just marks the payment as skipped and leaves the balance owed.
"""

from dataclasses import dataclass, field
from typing import List, Optional, Tuple

from .calibration_config import FINANCE_CONFIG
from .distress import get_distress_restrictions
from .logging_config import get_logger
from .models import INTEGRATED, SERVICED_STATUSES, Business, GameState, round_money
from .simulation import (
    calculate_metrics, calculate_portfolio_fcf, calculate_shared_services_benefits,
    ma_sourcing_cost, shared_services_cost,
)
from .turnarounds import get_program, get_turnaround_tier_annual_cost

logger = get_logger(__name__)

SENIOR_KINDS = ('operating', 'holdco_loan')


# ==================== Pure payment logic ====================

@dataclass
class Obligation:
    """One amount owed this round"""
    kind: str  # operating / holdco_loan / seller_note / earnout / bank_debt
    interest: int
    principal: int
    business_id: Optional[str] = None

    @property
    def total(self) -> int:
        return self.interest + self.principal

    @property
    def senior(self) -> bool:
        return self.kind in SENIOR_KINDS


@dataclass
class Payment:
    obligation: Obligation
    interest_paid: int
    principal_paid: int

    @property
    def paid(self) -> int:
        return self.interest_paid + self.principal_paid

    @property
    def shortfall(self) -> int:
        return self.obligation.total - self.paid

    @property
    def partial(self) -> bool:
        return self.shortfall > 0


def pay_obligation(available: int, obligation: Obligation) -> Payment:
    """Pay as much as the balance allows, interest first"""
    available = max(0, available)
    interest_paid = min(obligation.interest, available)
    principal_paid = min(obligation.principal, available - interest_paid)
    return Payment(obligation, interest_paid, principal_paid)


def pay_obligations(cash: int, obligations: List[Obligation]) -> Tuple[int, List[Payment]]:
    """Pay obligations in order against a running balance.

    Args:
        cash: Cash available before the first obligation
        obligations: Obligations in priority order

    Returns:
        (remaining cash, one Payment per obligation). Remaining cash is never negative.
    """
    running = max(0, cash)
    payments = []
    for obligation in obligations:
        payment = pay_obligation(running, obligation)
        running -= payment.paid
        payments.append(payment)
    return running, payments


def amortising_obligation(kind: str, balance: int, rate: float, rounds_remaining: int,
                          business_id: Optional[str] = None) -> Optional[Obligation]:
    """Interest plus equal principal; the whole balance falls due in the final round"""
    if balance <= 0:
        return None
    interest = round_money(balance * rate)
    if rounds_remaining <= 1:
        principal = balance
    else:
        principal = min(balance, round_money(balance / rounds_remaining))
    return Obligation(kind, interest, principal, business_id)


# ==================== Round waterfall ====================

@dataclass
class WaterfallResult:
    """What happened to cash during one collection"""
    starting_cash: int
    portfolio_fcf: int = 0
    operating_costs: int = 0
    payments: List[Payment] = field(default_factory=list)
    earnouts_paid: List[Tuple[str, int]] = field(default_factory=list)
    earnouts_expired: List[Tuple[str, int]] = field(default_factory=list)
    senior_shortfall: int = 0
    junior_shortfall: int = 0
    ending_cash: int = 0
    requires_restructuring: bool = False
    bankrupt: bool = False

    @property
    def payments_skipped(self) -> bool:
        return self.junior_shortfall > 0 or self.senior_shortfall > 0

    @property
    def total_debt_service(self) -> int:
        return sum(p.paid for p in self.payments if p.obligation.kind != 'operating')


def operating_costs(gs: GameState) -> int:
    """Recurring holdco overhead charged before any debt service"""
    programmes = sum(get_program(t.program_id).annual_cost
                     for t in gs.active_turnarounds if t.status == 'active')
    return (shared_services_cost(gs) + ma_sourcing_cost(gs)
            + get_turnaround_tier_annual_cost(gs.turnaround_tier) + programmes)


def _earnout_growth(gs: GameState, business: Business) -> float:
    """Bolt-ons are measured on their parent platform's growth"""
    if business.status == INTEGRATED and business.parent_platform_id:
        platform = gs.find_business(business.parent_platform_id, status='active')
        return platform.ebitda_growth if platform else 0.0
    return business.ebitda_growth


class _Ledger:
    """Running cash balance shared by every step of one waterfall"""

    def __init__(self, cash: int, result: WaterfallResult):
        self.cash = cash
        self.result = result

    def pay(self, obligation: Obligation) -> Payment:
        payment = pay_obligation(self.cash, obligation)
        self.cash -= payment.paid
        self.result.payments.append(payment)
        if payment.partial:
            if obligation.senior:
                self.result.senior_shortfall += payment.shortfall
            else:
                self.result.junior_shortfall += payment.shortfall
        return payment


def _service_seller_note(ledger: _Ledger, b: Business):
    obligation = amortising_obligation('seller_note', b.seller_note_balance, b.seller_note_rate,
                                       b.seller_note_rounds_remaining, b.id)
    if obligation is None:
        return
    payment = ledger.pay(obligation)
    b.seller_note_balance -= payment.principal_paid
    if not payment.partial:
        b.seller_note_rounds_remaining = max(0, b.seller_note_rounds_remaining - 1)


def _service_earnout(gs: GameState, ledger: _Ledger, b: Business):
    if b.earnout_remaining <= 0:
        return
    if gs.round - b.acquisition_round > FINANCE_CONFIG.earnout_expiration_years:
        ledger.result.earnouts_expired.append((b.id, b.earnout_remaining))
        b.earnout_remaining = 0
        b.earnout_target = 0.0
        return
    if b.earnout_target <= 0 or _earnout_growth(gs, b) < b.earnout_target:
        return
    payment = ledger.pay(Obligation('earnout', 0, b.earnout_remaining, b.id))
    if payment.paid > 0:
        b.earnout_remaining -= payment.paid
        ledger.result.earnouts_paid.append((b.id, payment.paid))
        if b.earnout_remaining <= 0:
            b.earnout_target = 0.0


def _service_bank_debt(gs: GameState, ledger: _Ledger, b: Business):
    obligation = amortising_obligation('bank_debt', b.bank_debt_balance, b.bank_debt_rate or gs.interest_rate,
                                       b.bank_debt_rounds_remaining, b.id)
    if obligation is None:
        return
    payment = ledger.pay(obligation)
    b.bank_debt_balance -= payment.principal_paid
    if not payment.partial:
        b.bank_debt_rounds_remaining = max(0, b.bank_debt_rounds_remaining - 1)


def run_waterfall(gs: GameState) -> WaterfallResult:
    """Collect FCF and service every obligation, mutating the state.

    A senior shortfall floors cash at zero and requires restructuring, or
    ends the game in bankruptcy when restructuring was already used.
    """
    result = WaterfallResult(starting_cash=gs.cash)
    penalty = get_distress_restrictions(calculate_metrics(gs).distress_level).interest_penalty
    benefits = calculate_shared_services_benefits(gs)
    ss_cost = shared_services_cost(gs)

    result.portfolio_fcf = calculate_portfolio_fcf(
        gs.active_businesses, benefits.capex_reduction, benefits.cash_conversion_bonus,
        gs.holdco_loan_balance, gs.interest_rate + penalty, ss_cost, ma_sourcing_cost(gs),
    )
    cash = gs.cash + result.portfolio_fcf
    if cash < 0:
        # operating losses the portfolio could not fund
        result.senior_shortfall += -cash
        cash = 0
    ledger = _Ledger(cash, result)

    result.operating_costs = operating_costs(gs)
    if result.operating_costs > 0:
        ledger.pay(Obligation('operating', 0, result.operating_costs))

    loan = amortising_obligation('holdco_loan', gs.holdco_loan_balance, gs.holdco_loan_rate + penalty,
                                 gs.holdco_loan_rounds_remaining)
    if loan is not None:
        payment = ledger.pay(loan)
        gs.holdco_loan_balance -= payment.principal_paid
        if not payment.partial:
            gs.holdco_loan_rounds_remaining = max(0, gs.holdco_loan_rounds_remaining - 1)

    for b in gs.businesses:
        if b.status not in SERVICED_STATUSES:
            continue
        _service_seller_note(ledger, b)
        _service_earnout(gs, ledger, b)
        _service_bank_debt(gs, ledger, b)

    result.ending_cash = ledger.cash
    gs.cash = ledger.cash
    gs.payments_skipped = result.payments_skipped

    if result.senior_shortfall > 0:
        if gs.has_restructured:
            result.bankrupt = True
            gs.game_over = True
            gs.bankrupt_round = gs.round
            gs.requires_restructuring = False
            gs.reason = "Cash depleted again. Bankruptcy declared."
            logger.info("Round %d: senior shortfall of %d after restructuring, bankrupt", gs.round,
                        result.senior_shortfall)
        else:
            result.requires_restructuring = True
            gs.requires_restructuring = True
            gs.reason = "Cash depleted. Forced restructuring triggered."
            logger.info("Round %d: senior shortfall of %d, restructuring required", gs.round,
                        result.senior_shortfall)
    elif result.junior_shortfall > 0:
        gs.reason = "Debt payments partially skipped: insufficient cash to cover all obligations."

    return result
