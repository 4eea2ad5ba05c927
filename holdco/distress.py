"""
Financial distress and covenants (pure functions, no side effects)
"""

import math
from dataclasses import dataclass
from typing import Iterable

from .calibration_config import FINANCE_CONFIG
from .models import Business, DistressLevel, round_money

DISTRESS_LABELS = {
    DistressLevel.COMFORTABLE: "Healthy",
    DistressLevel.ELEVATED: "Elevated",
    DistressLevel.STRESSED: "Covenant Watch",
    DistressLevel.BREACH: "COVENANT BREACH",
}


@dataclass
class DistressRestrictions:
    can_acquire: bool
    can_take_debt: bool
    can_distribute: bool
    can_buyback: bool
    interest_penalty: float  # added to the base rate


def calculate_distress_level(net_debt_to_ebitda: float, total_debt: float = 0,
                             total_ebitda: float = 0) -> DistressLevel:
    """Classify leverage; debt against non-positive EBITDA is always a breach"""
    cfg = FINANCE_CONFIG
    if total_debt <= 0 and net_debt_to_ebitda <= 0:
        return DistressLevel.COMFORTABLE
    if total_ebitda <= 0 and total_debt > 0:
        return DistressLevel.BREACH
    if net_debt_to_ebitda >= cfg.breach_leverage:
        return DistressLevel.BREACH
    if net_debt_to_ebitda >= cfg.stressed_leverage:
        return DistressLevel.STRESSED
    if net_debt_to_ebitda >= cfg.elevated_leverage:
        return DistressLevel.ELEVATED
    return DistressLevel.COMFORTABLE


def get_distress_restrictions(level: DistressLevel) -> DistressRestrictions:
    cfg = FINANCE_CONFIG
    if level == DistressLevel.STRESSED:
        return DistressRestrictions(True, False, True, True, cfg.stressed_rate_penalty)
    if level == DistressLevel.BREACH:
        return DistressRestrictions(False, False, False, False, cfg.breach_rate_penalty)
    return DistressRestrictions(True, True, True, True, 0.0)


@dataclass
class CovenantHeadroom:
    current_leverage: float
    breach_threshold: float
    headroom_ratio: float
    headroom_cash: float          # cash that can be spent before net debt / EBITDA hits breach
    next_year_debt_service: int
    projected_cash_after_debt: int

    @property
    def cash_will_go_negative(self) -> bool:
        return self.projected_cash_after_debt < 0


def calculate_covenant_headroom(cash: int, total_debt: int, total_ebitda: int,
                                holdco_loan_balance: int, holdco_loan_rate: float,
                                holdco_loan_rounds_remaining: int,
                                businesses: Iterable[Business],
                                interest_rate: float, interest_penalty: float) -> CovenantHeadroom:
    threshold = FINANCE_CONFIG.breach_leverage
    if total_ebitda > 0:
        leverage = max(0, total_debt - cash) / total_ebitda
        headroom_cash = cash - (total_debt - threshold * total_ebitda)
    else:
        leverage = math.inf if total_debt > 0 else 0.0
        headroom_cash = 0 if total_debt > 0 else cash

    service = 0
    if holdco_loan_balance > 0 and holdco_loan_rounds_remaining > 0:
        service += round_money(holdco_loan_balance * (holdco_loan_rate + interest_penalty))
        service += round_money(holdco_loan_balance / holdco_loan_rounds_remaining)
    for b in businesses:
        if b.bank_debt_balance > 0 and b.bank_debt_rounds_remaining > 0:
            service += round_money(b.bank_debt_balance * (b.bank_debt_rate or interest_rate))
            service += round_money(b.bank_debt_balance / b.bank_debt_rounds_remaining)

    return CovenantHeadroom(
        current_leverage=leverage,
        breach_threshold=threshold,
        headroom_ratio=threshold - leverage,
        headroom_cash=headroom_cash,
        next_year_debt_service=service,
        projected_cash_after_debt=cash - service,
    )
