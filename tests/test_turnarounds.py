"""Turnaround programmes: eligibility, tier unlocks and outcome buckets"""
import pytest

from holdco.models import ActiveTurnaround
from holdco.turnarounds import (
    TURNAROUND_PROGRAMS, TurnaroundOutcome, apply_turnaround_outcome, calculate_turnaround_cost,
    can_unlock_tier, get_eligible_programs, get_program, get_turnaround_duration,
    get_turnaround_exit_premium, get_turnaround_tier_annual_cost, resolve_turnaround,
)


def test_programme_rates_sum_to_one():
    for program in TURNAROUND_PROGRAMS:
        total = program.success_rate + program.partial_rate + program.failure_rate
        assert total == pytest.approx(1.0)
        assert program.target_quality > program.source_quality


def test_unknown_programme_is_a_key_error():
    with pytest.raises(KeyError):
        get_program('t9_plan_z')


@pytest.mark.parametrize("tier, cash, opcos, reason", [
    (0, 1000, 1, "Need 2 active businesses (have 1)"),
    (0, 100, 2, "Need $600k cash (have $100k)"),
    (0, 600, 2, None),
    (1, 5000, 2, "Need 3 active businesses (have 2)"),
    (3, 99999, 9, "Already at maximum tier"),
])
def test_can_unlock_tier(tier, cash, opcos, reason):
    assert can_unlock_tier(tier, cash, opcos) == reason


def test_tier_annual_costs():
    assert get_turnaround_tier_annual_cost(0) == 0
    assert get_turnaround_tier_annual_cost(1) == 250
    assert get_turnaround_tier_annual_cost(3) == 700


def test_eligibility_respects_tier_quality_and_ceiling(business_factory):
    # agency quality tops out at 3
    weak = business_factory(quality=1)
    assert get_eligible_programs(weak, 0, []) == []
    assert [p.id for p in get_eligible_programs(weak, 1, [])] == ['t1_plan_a']
    assert [p.id for p in get_eligible_programs(weak, 3, [])] == ['t1_plan_a', 't2_plan_a']

    fair = business_factory(quality=2)
    assert [p.id for p in get_eligible_programs(fair, 3, [])] == ['t1_plan_b']


def test_one_active_programme_per_business(business_factory):
    weak = business_factory("biz_1", quality=1)
    running = [ActiveTurnaround('ta_1', 'biz_1', 't1_plan_a', 2, 6)]
    assert get_eligible_programs(weak, 1, running) == []
    running[0].status = 'completed'
    assert get_eligible_programs(weak, 1, running) != []


def test_cost_and_duration(business_factory):
    program = get_program('t1_plan_a')
    assert calculate_turnaround_cost(program, business_factory()) == 100
    assert get_turnaround_duration(program, 'quick') == 2
    assert get_turnaround_duration(program, 'standard') == 4


@pytest.mark.parametrize("roll, result, quality_change, multiplier", [
    (0.10, 'success', 1, 1.07),
    (0.70, 'partial', 1, 1.03),
    (0.97, 'failure', 0, 0.96),
])
def test_outcome_buckets(roll, result, quality_change, multiplier):
    outcome = resolve_turnaround(get_program('t1_plan_a'), 1, roll)
    assert outcome.result == result
    assert outcome.quality_change == quality_change
    assert outcome.ebitda_multiplier == pytest.approx(multiplier)


def test_partial_moves_at_most_one_tier():
    outcome = resolve_turnaround(get_program('t3_plan_a'), 1, 0.80)
    assert outcome.result == 'partial'
    assert outcome.target_quality == 2


def test_fatigue_moves_success_into_partial():
    program = get_program('t1_plan_a')
    assert resolve_turnaround(program, 2, 0.60).result == 'success'
    assert resolve_turnaround(program, 3, 0.60).result == 'partial'
    # failure odds are unchanged by fatigue
    assert resolve_turnaround(program, 3, 0.94).result == 'partial'
    assert resolve_turnaround(program, 3, 0.96).result == 'failure'


def test_outcome_is_capped_at_sector_ceiling(business_factory):
    business = business_factory(quality=2)
    apply_turnaround_outcome(business, TurnaroundOutcome('success', 2, 1.10, 4))
    assert business.quality_rating == 3
    assert business.quality_improved_tiers == 1
    assert business.ebitda == 1100


def test_exit_premium_needs_two_improved_tiers(business_factory):
    business = business_factory(quality_improved_tiers=1)
    assert get_turnaround_exit_premium(business) == 0.0
    business.quality_improved_tiers = 2
    assert get_turnaround_exit_premium(business) == pytest.approx(0.25)
