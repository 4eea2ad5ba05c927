"""Integration outcomes, synergies and multiple expansion"""
import math

import pytest

from holdco.integration import (
    calculate_integration_growth_penalty, calculate_multiple_expansion, calculate_synergies,
    determine_integration_outcome, get_size_ratio_tier, get_sub_type_affinity,
    incremental_multiple_expansion, integration_success_probability,
)
from holdco.models import Affinity, IntegrationOutcome, SizeRatioTier


@pytest.mark.parametrize("acquired, base, tier", [
    (500, 1000, SizeRatioTier.IDEAL),
    (501, 1000, SizeRatioTier.STRETCH),
    (1000, 1000, SizeRatioTier.STRETCH),
    (1001, 1000, SizeRatioTier.STRAINED),
    (2000, 1000, SizeRatioTier.STRAINED),
    (2001, 1000, SizeRatioTier.OVERREACH),
])
def test_size_ratio_boundaries_are_inclusive_on_lower_tier(acquired, base, tier):
    assert get_size_ratio_tier(acquired, base)[0] == tier


def test_size_ratio_with_non_positive_base_is_overreach():
    tier, ratio = get_size_ratio_tier(500, 0)
    assert tier == SizeRatioTier.OVERREACH
    assert math.isinf(ratio)


def test_sub_type_affinity():
    assert get_sub_type_affinity('agency', 'Digital Agency', 'Digital Agency') == Affinity.MATCH
    assert get_sub_type_affinity('agency', 'Digital Agency', 'Performance Marketing') == Affinity.RELATED
    assert get_sub_type_affinity('agency', 'Digital Agency', 'PR Firm') == Affinity.DISTANT


def test_synergies_dampen_with_size_and_affinity():
    base = calculate_synergies(IntegrationOutcome.SUCCESS, 1000, True, Affinity.MATCH, SizeRatioTier.IDEAL)
    stretched = calculate_synergies(IntegrationOutcome.SUCCESS, 1000, True, Affinity.MATCH, SizeRatioTier.STRETCH)
    overreach = calculate_synergies(IntegrationOutcome.SUCCESS, 1000, True, Affinity.MATCH,
                                    SizeRatioTier.OVERREACH)
    distant = calculate_synergies(IntegrationOutcome.SUCCESS, 1000, True, Affinity.DISTANT, SizeRatioTier.IDEAL)
    assert base == 200
    assert base > stretched > overreach > 0
    assert 0 < distant < base


def test_failed_integration_destroys_value():
    assert calculate_synergies(IntegrationOutcome.FAILURE, 1000, True) < 0
    assert calculate_synergies(IntegrationOutcome.FAILURE, 1000, False, is_merger=True) < 0


def test_outcome_buckets(business_factory):
    acquired = business_factory()
    p = integration_success_probability(acquired)
    assert determine_integration_outcome(acquired, 0.0) == IntegrationOutcome.SUCCESS
    assert determine_integration_outcome(acquired, p * 0.6 + 1e-9) == IntegrationOutcome.PARTIAL
    assert determine_integration_outcome(acquired, 0.999) == IntegrationOutcome.FAILURE


def test_oversized_targets_lower_success_probability(business_factory):
    acquired = business_factory()
    platform = business_factory("biz_200", revenue=10000)
    ideal = integration_success_probability(acquired, platform, size_tier=SizeRatioTier.IDEAL)
    overreach = integration_success_probability(acquired, platform, size_tier=SizeRatioTier.OVERREACH)
    assert overreach < ideal


def test_growth_penalty_is_bounded():
    small = calculate_integration_growth_penalty(10, 10000)
    large = calculate_integration_growth_penalty(10000, 1000)
    assert small == pytest.approx(-0.005)
    assert large == pytest.approx(-0.04)
    assert calculate_integration_growth_penalty(1000, 0) == pytest.approx(-0.04)
    merger = calculate_integration_growth_penalty(10000, 1000, is_merger=True)
    assert merger > large


def test_multiple_expansion_table():
    assert calculate_multiple_expansion(0, 1000) == 0.0
    assert calculate_multiple_expansion(3, 1000) == pytest.approx(1.0)
    assert calculate_multiple_expansion(3, 6000) == pytest.approx(1.3)
    assert calculate_multiple_expansion(6, 1000) == pytest.approx(1.5)


def test_incremental_expansion_only_adds_the_delta():
    steps = [(0, 1000), (1, 2000), (2, 3500), (3, 6000)]
    total = 0.0
    for (old_scale, old_ebitda), (new_scale, new_ebitda) in zip(steps, steps[1:]):
        total += incremental_multiple_expansion(old_scale, old_ebitda, new_scale, new_ebitda)
    assert total == pytest.approx(calculate_multiple_expansion(3, 6000))
    assert incremental_multiple_expansion(2, 2000, 3, 2000) == pytest.approx(0.4)
