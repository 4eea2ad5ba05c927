"""Distress classification, covenant headroom, tax and exit valuation"""
import math

import pytest

from holdco.distress import calculate_covenant_headroom, calculate_distress_level, get_distress_restrictions
from holdco.models import INTEGRATED, DistressLevel, GameState
from holdco.simulation import (
    calculate_exit_valuation, calculate_metrics, calculate_portfolio_tax, calculate_sale_price,
    sale_market_variance,
)


@pytest.mark.parametrize("leverage, level", [
    (0.0, DistressLevel.COMFORTABLE),
    (2.49, DistressLevel.COMFORTABLE),
    (2.5, DistressLevel.ELEVATED),
    (3.5, DistressLevel.STRESSED),
    (4.5, DistressLevel.BREACH),
])
def test_leverage_thresholds(leverage, level):
    assert calculate_distress_level(leverage, total_debt=1000, total_ebitda=1000) == level


def test_debt_against_no_ebitda_is_breach():
    assert calculate_distress_level(0.0, total_debt=500, total_ebitda=0) == DistressLevel.BREACH
    assert calculate_distress_level(0.0, total_debt=0, total_ebitda=0) == DistressLevel.COMFORTABLE


def test_restrictions_tighten_with_distress():
    comfortable = get_distress_restrictions(DistressLevel.COMFORTABLE)
    stressed = get_distress_restrictions(DistressLevel.STRESSED)
    breach = get_distress_restrictions(DistressLevel.BREACH)
    assert comfortable.can_take_debt and comfortable.interest_penalty == 0.0
    assert stressed.can_acquire and not stressed.can_take_debt
    assert stressed.interest_penalty == pytest.approx(0.01)
    assert not (breach.can_acquire or breach.can_distribute or breach.can_buyback)
    assert breach.interest_penalty == pytest.approx(0.02)


def test_covenant_headroom(business_factory):
    levered = business_factory(bank_debt_balance=2000, bank_debt_rate=0.08, bank_debt_rounds_remaining=4)
    headroom = calculate_covenant_headroom(500, 3000, 1000, 1000, 0.07, 5, [levered], 0.07, 0.0)
    assert headroom.current_leverage == pytest.approx(2.5)
    assert headroom.headroom_cash == pytest.approx(2000)
    assert headroom.next_year_debt_service == 70 + 200 + 160 + 500
    assert headroom.cash_will_go_negative

    no_ebitda = calculate_covenant_headroom(100, 500, 0, 500, 0.07, 5, [], 0.07, 0.0)
    assert math.isinf(no_ebitda.current_leverage)


def test_interest_and_losses_shield_tax(business_factory):
    profitable = business_factory("biz_1")
    loss_maker = business_factory("biz_2", revenue=1000, margin=0.10)
    loss_maker.ebitda = -200
    tax = calculate_portfolio_tax([profitable, loss_maker], holdco_debt=1000, holdco_interest_rate=0.10)
    assert tax.net_ebitda == 800
    assert tax.taxable_income == 700
    assert tax.tax_amount == 210
    assert tax.loss_offset_tax_shield == 60
    assert tax.interest_tax_shield == 30
    assert tax.total_tax_savings == 300 - 210


def test_exit_multiple_floor(business_factory):
    weak = business_factory(quality=1, acquisition_multiple=1.0)
    assert calculate_exit_valuation(weak, 1).total_multiple == pytest.approx(2.0)


def test_exit_premiums_stack(business_factory):
    business = business_factory(acquisition_round=1)
    base = calculate_exit_valuation(business, 1)
    held = calculate_exit_valuation(business, 4)
    bull = calculate_exit_valuation(business, 4, 'global_bull_market')
    assert held.hold_premium == pytest.approx(0.3)
    assert held.total_multiple > base.total_multiple
    assert bull.total_multiple == pytest.approx(held.total_multiple + 0.5)


def test_sale_price_variance_and_penalty(business_factory):
    valuation = calculate_exit_valuation(business_factory(), 3)
    assert sale_market_variance(None, 0.5) == 0.0
    assert sale_market_variance('global_recession', 1.0) == pytest.approx(-0.3)
    plain = calculate_sale_price(valuation, 1000, 0.0)
    crisis = calculate_sale_price(valuation, 1000, 0.0, exit_multiple_penalty=1.0)
    assert crisis < plain
    assert calculate_sale_price(valuation, 1000, -99.0) == 2000


def test_metrics_count_seller_notes_of_integrated_bolt_ons(business_factory):
    gs = GameState(seed=3, round=2, cash=1000)
    platform = business_factory("biz_1", is_platform=True, bolt_on_ids=["biz_2"], seller_note_balance=1000,
                                seller_note_rate=0.05)
    bolt_on = business_factory("biz_2", status=INTEGRATED, parent_platform_id="biz_1", seller_note_balance=800,
                               seller_note_rate=0.06, bank_debt_balance=500)
    gs.businesses.extend([platform, bolt_on])

    metrics = calculate_metrics(gs)
    assert metrics.total_debt == 1000 + 800 + 500
    # the bolt-on's EBITDA is already folded into its platform
    assert metrics.total_ebitda == platform.ebitda

    bolt_on.seller_note_balance = 0
    assert calculate_metrics(gs).total_debt == 1000 + 500
