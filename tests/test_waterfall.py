"""Annual cash waterfall and partial-payment semantics"""
import pytest

from holdco.calibration_config import FINANCE_CONFIG
from holdco.models import GameState
from holdco.waterfall import (
    Obligation, amortising_obligation, pay_obligation, pay_obligations, run_waterfall,
)


def test_payments_are_interest_first_and_capped():
    payment = pay_obligation(150, Obligation('bank_debt', 100, 200))
    assert payment.interest_paid == 100
    assert payment.principal_paid == 50
    assert payment.partial
    assert payment.shortfall == 150


def test_running_balance_never_goes_negative():
    remaining, payments = pay_obligations(300, [
        Obligation('operating', 0, 100),
        Obligation('holdco_loan', 50, 100),
        Obligation('seller_note', 20, 200),
    ])
    assert remaining == 0
    assert [p.paid for p in payments] == [100, 150, 50]
    assert [p.partial for p in payments] == [False, False, True]

    remaining, payments = pay_obligations(-500, [Obligation('operating', 0, 100)])
    assert remaining == 0
    assert payments[0].paid == 0


def test_amortising_obligation_balloons_in_final_round():
    assert amortising_obligation('bank_debt', 0, 0.07, 4) is None
    regular = amortising_obligation('bank_debt', 1000, 0.07, 4)
    assert (regular.interest, regular.principal) == (70, 250)
    final = amortising_obligation('bank_debt', 1000, 0.07, 1)
    assert final.principal == 1000


def levered_state(business_factory, has_restructured=False, **debt):
    gs = GameState(seed=1, round=3, cash=0, has_restructured=has_restructured)
    gs.businesses.append(business_factory("biz_1", revenue=1000, margin=0.10, **debt))
    return gs


def holdco_loan_state(business_factory, has_restructured=False):
    gs = levered_state(business_factory, has_restructured=has_restructured)
    gs.holdco_loan_balance = 10000
    gs.holdco_loan_rate = 0.07
    gs.holdco_loan_rounds_remaining = 5
    return gs


def test_senior_shortfall_floors_cash_and_requires_restructuring(business_factory):
    gs = holdco_loan_state(business_factory)
    result = run_waterfall(gs)
    assert gs.cash == 0
    assert result.senior_shortfall > 0
    assert result.payments_skipped
    assert gs.payments_skipped
    assert gs.requires_restructuring
    assert not gs.game_over


def test_second_senior_shortfall_is_bankruptcy(business_factory):
    gs = holdco_loan_state(business_factory, has_restructured=True)
    result = run_waterfall(gs)
    assert result.bankrupt
    assert gs.game_over
    assert gs.bankrupt_round == 3
    assert not gs.requires_restructuring


def test_junior_shortfall_only_skips_payment(business_factory):
    gs = levered_state(business_factory, seller_note_balance=5000, seller_note_rate=0.05,
                       seller_note_rounds_remaining=2)
    result = run_waterfall(gs)
    assert gs.cash == 0
    assert result.junior_shortfall > 0
    assert result.senior_shortfall == 0
    assert gs.payments_skipped
    assert not gs.requires_restructuring
    # a partial payment does not consume a term round
    assert gs.businesses[0].seller_note_rounds_remaining == 2


def test_debt_free_portfolio_accumulates_cash(business_factory):
    gs = GameState(seed=1, round=2, cash=100)
    gs.businesses.append(business_factory("biz_1"))
    result = run_waterfall(gs)
    assert result.portfolio_fcf > 0
    assert gs.cash == 100 + result.portfolio_fcf
    assert not gs.payments_skipped


def test_holdco_loan_amortises(business_factory):
    gs = GameState(seed=1, round=2, cash=5000, holdco_loan_balance=3000, holdco_loan_rate=0.07,
                   holdco_loan_rounds_remaining=10)
    gs.businesses.append(business_factory("biz_1"))
    run_waterfall(gs)
    assert gs.holdco_loan_balance == 2700
    assert gs.holdco_loan_rounds_remaining == 9


@pytest.mark.parametrize("evaluated_round, expired", [
    (1 + FINANCE_CONFIG.earnout_expiration_years, False),
    (1 + FINANCE_CONFIG.earnout_expiration_years + 1, True),
])
def test_earnout_expires_after_expiration_years(business_factory, evaluated_round, expired):
    gs = GameState(seed=1, round=evaluated_round, cash=10000)
    gs.businesses.append(business_factory("biz_1", acquisition_round=1, earnout_remaining=1500,
                                          earnout_target=0.10))
    result = run_waterfall(gs)
    business = gs.businesses[0]
    if expired:
        assert business.earnout_remaining == 0
        assert result.earnouts_expired == [("biz_1", 1500)]
    else:
        assert business.earnout_remaining == 1500
        assert result.earnouts_expired == []


def test_earnout_pays_when_growth_target_met(business_factory):
    gs = GameState(seed=1, round=3, cash=10000)
    b = business_factory("biz_1", acquisition_round=1, earnout_remaining=500, earnout_target=0.10)
    b.set_financials(revenue=b.revenue * 1.2)
    gs.businesses.append(b)
    result = run_waterfall(gs)
    assert b.earnout_remaining == 0
    assert result.earnouts_paid == [("biz_1", 500)]


def test_operating_losses_are_a_senior_shortfall(business_factory):
    gs = GameState(seed=1, round=3, cash=0)
    gs.businesses.append(business_factory("biz_1", revenue=1000, margin=0.10))
    gs.turnaround_tier = 3
    result = run_waterfall(gs)
    assert result.senior_shortfall > 0
    assert gs.requires_restructuring


@pytest.mark.parametrize("has_restructured", [False, True])
def test_bank_debt_shortfall_is_capped_not_restructured(business_factory, has_restructured):
    gs = GameState(seed=1, round=3, cash=100, has_restructured=has_restructured)
    gs.businesses.append(business_factory("biz_1", revenue=5000, margin=0.20, bank_debt_balance=20000,
                                          bank_debt_rate=0.07, bank_debt_rounds_remaining=5))
    result = run_waterfall(gs)
    assert result.portfolio_fcf > 0
    assert result.senior_shortfall == 0
    assert result.junior_shortfall > 0
    assert gs.cash == 0
    assert gs.payments_skipped
    assert not gs.requires_restructuring
    assert not gs.game_over
    business = gs.businesses[0]
    assert 20000 - business.bank_debt_balance == result.payments[-1].principal_paid
    assert business.bank_debt_rounds_remaining == 5
