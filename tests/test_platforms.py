"""Integrated platforms: recipe eligibility, forge costs, bonuses and dissolution"""
import pytest

from holdco.engine import Engine
from holdco.models import INTEGRATED, GamePhase, GameState
from holdco.persistence import dumps, loads
from holdco.platforms import (
    PLATFORM_RECIPES, calculate_add_to_platform_cost, calculate_integration_cost,
    check_platform_dissolution, check_platform_eligibility, forge_platform, get_platform_multiple_expansion,
    get_platform_recession_modifier, get_recipe, get_scaled_threshold,
)


def agency_pair(business_factory):
    """Two agency opcos of different sub-types with 5000 of combined EBITDA"""
    return [
        business_factory("biz_1", sub_type='Digital Agency', revenue=12500, margin=0.20),
        business_factory("biz_2", sub_type='Creative Studio', revenue=12500, margin=0.20),
    ]


@pytest.fixture
def forge_engine(business_factory):
    gs = GameState(seed=11, round=3, phase=GamePhase.ALLOCATE, cash=20000)
    gs.businesses.extend(agency_pair(business_factory))
    gs.id_counter.value = 2
    return Engine(gs)


# ==================== Recipes ====================

def test_recipe_ids_are_unique():
    ids = [r.id for r in PLATFORM_RECIPES]
    assert len(ids) == len(set(ids))
    for recipe in PLATFORM_RECIPES:
        assert bool(recipe.sector_id) != bool(recipe.cross_sector_ids)
        assert recipe.min_sub_types <= len(recipe.required_sub_types)


@pytest.mark.parametrize("difficulty, duration, expected", [
    ('easy', 'standard', 5000),
    ('easy', 'quick', 3500),
    ('normal', 'standard', 3500),
    ('normal', 'quick', 2500),
])
def test_threshold_scales_with_difficulty_and_duration(difficulty, duration, expected):
    assert get_scaled_threshold(5000, difficulty, duration) == expected


# ==================== Eligibility ====================

def test_two_sub_types_over_threshold_are_eligible(business_factory):
    eligible = check_platform_eligibility(agency_pair(business_factory), [], 'easy', 'standard')
    assert [e.recipe.id for e in eligible] == ['agency_full_service']
    assert eligible[0].sector_ebitda == 5000
    assert {b.id for b in eligible[0].eligible_businesses} == {"biz_1", "biz_2"}


def test_single_sub_type_is_not_eligible(business_factory):
    businesses = agency_pair(business_factory)
    businesses[1].sub_type = 'Digital Agency'
    assert check_platform_eligibility(businesses, [], 'easy', 'standard') == []


def test_below_threshold_only_qualifies_on_easier_settings(business_factory):
    businesses = agency_pair(business_factory)
    for b in businesses:
        b.set_financials(margin=0.16)  # 2000 each, 4000 combined
    assert check_platform_eligibility(businesses, [], 'easy', 'standard') == []
    assert len(check_platform_eligibility(businesses, [], 'normal', 'standard')) == 1


def test_forged_recipe_is_not_offered_again(business_factory):
    businesses = agency_pair(business_factory)
    platform = forge_platform(get_recipe('agency_full_service'), ["biz_1", "biz_2"], 3)
    assert check_platform_eligibility(businesses, [platform], 'easy', 'standard') == []


def test_cross_sector_recipe_needs_both_sectors(business_factory):
    businesses = [
        business_factory("biz_1", sector_id='insurance', sub_type='P&C Agency', revenue=25000, margin=0.20),
        business_factory("biz_2", sector_id='insurance', sub_type='Benefits Brokerage', revenue=20000, margin=0.20),
    ]
    recipes = {e.recipe.id for e in check_platform_eligibility(businesses, [], 'easy', 'standard')}
    assert 'risk_and_wealth' not in recipes

    businesses.append(business_factory("biz_3", sector_id='wealthManagement', sub_type='Independent RIA',
                                       revenue=10000, margin=0.30))
    recipes = {e.recipe.id for e in check_platform_eligibility(businesses, [], 'easy', 'standard')}
    assert 'risk_and_wealth' in recipes


# ==================== Costs & bonuses ====================

def test_integration_cost_is_a_fraction_of_constituent_ebitda(business_factory):
    recipe = get_recipe('agency_full_service')
    assert calculate_integration_cost(recipe, agency_pair(business_factory)) == 1000


def test_add_to_platform_cost_uses_absolute_ebitda(business_factory):
    platform = forge_platform(get_recipe('agency_full_service'), ["biz_1", "biz_2"], 3)
    loser = business_factory("biz_3", sub_type='Content Production', revenue=5000, margin=0.20)
    loser.ebitda = -500
    assert calculate_add_to_platform_cost(platform, loser) == 100


def test_forged_platform_copies_recipe_bonuses():
    recipe = get_recipe('agency_full_service')
    platform = forge_platform(recipe, ["biz_1", "biz_2"], 4)
    assert platform.id == "platform_agency_full_service_r4"
    assert platform.sector_ids == ['agency']
    assert platform.bonuses == recipe.bonuses
    assert platform.bonuses is not recipe.bonuses


def test_multiple_expansion_and_recession_damping_follow_membership(business_factory):
    member, outsider = agency_pair(business_factory)
    platform = forge_platform(get_recipe('agency_full_service'), [member.id], 3)
    member.integrated_platform_id = platform.id
    assert get_platform_multiple_expansion(member, [platform]) == 1.5
    assert get_platform_recession_modifier(member, [platform]) == 0.80
    assert get_platform_multiple_expansion(outsider, [platform]) == 0.0
    assert get_platform_recession_modifier(outsider, [platform]) == 1.0


# ==================== Dissolution ====================

def test_platform_dissolves_when_sub_types_drop_below_minimum(business_factory):
    businesses = agency_pair(business_factory)
    platform = forge_platform(get_recipe('agency_full_service'), ["biz_1", "biz_2"], 3)
    assert not check_platform_dissolution(platform, businesses)
    assert check_platform_dissolution(platform, businesses[:1])


def test_integrated_bolt_on_still_counts_toward_its_platform(business_factory):
    businesses = agency_pair(business_factory)
    businesses[1].status = INTEGRATED
    platform = forge_platform(get_recipe('agency_full_service'), ["biz_1", "biz_2"], 3)
    assert not check_platform_dissolution(platform, businesses)


# ==================== Engine actions ====================

def test_forge_applies_bonuses_and_charges_cost(forge_engine):
    gs = forge_engine.gs
    result = forge_engine.action_forge_integrated_platform('agency_full_service', ["biz_1", "biz_2"])
    assert result.ok, result.reason
    assert gs.cash == 19000
    assert gs.total_invested_capital == 1000
    assert len(gs.integrated_platforms) == 1
    platform = gs.integrated_platforms[0]
    for b in gs.businesses:
        assert b.integrated_platform_id == platform.id
        assert b.ebitda_margin == pytest.approx(0.24)
        assert b.organic_growth_rate == pytest.approx(0.03)
    assert gs.actions_this_round[-1].kind == 'forge_integrated_platform'


@pytest.mark.parametrize("recipe_id, business_ids", [
    ('no_such_recipe', ["biz_1", "biz_2"]),
    ('saas_suite', ["biz_1", "biz_2"]),
    ('agency_full_service', ["biz_1"]),
    ('agency_full_service', ["biz_1", "biz_404"]),
])
def test_invalid_forge_is_rejected(forge_engine, recipe_id, business_ids):
    result = forge_engine.action_forge_integrated_platform(recipe_id, business_ids)
    assert not result.ok
    assert forge_engine.gs.cash == 20000
    assert forge_engine.gs.integrated_platforms == []


def test_forge_without_cash_is_rejected(forge_engine):
    forge_engine.gs.cash = 999
    result = forge_engine.action_forge_integrated_platform('agency_full_service', ["biz_1", "biz_2"])
    assert not result.ok
    assert "Integration costs" in result.reason


def test_add_to_platform_joins_a_matching_opco(forge_engine, business_factory):
    gs = forge_engine.gs
    assert forge_engine.action_forge_integrated_platform('agency_full_service', ["biz_1", "biz_2"]).ok
    platform_id = gs.integrated_platforms[0].id
    gs.businesses.append(business_factory("biz_3", sub_type='Content Production', revenue=5000, margin=0.20))
    gs.businesses.append(business_factory("biz_4", sector_id='saas', sub_type='Vertical SaaS'))

    assert not forge_engine.action_add_to_integrated_platform(platform_id, "biz_4").ok
    result = forge_engine.action_add_to_integrated_platform(platform_id, "biz_3")
    assert result.ok, result.reason
    assert gs.cash == 19000 - 200
    assert "biz_3" in gs.integrated_platforms[0].constituent_business_ids
    assert gs.find_business("biz_3").integrated_platform_id == platform_id
    assert not forge_engine.action_add_to_integrated_platform(platform_id, "biz_3").ok


def test_selling_a_constituent_dissolves_the_platform(forge_engine):
    gs = forge_engine.gs
    assert forge_engine.action_forge_integrated_platform('agency_full_service', ["biz_1", "biz_2"]).ok
    assert forge_engine.action_sell_business("biz_1").ok
    assert gs.integrated_platforms == []
    assert gs.find_business("biz_2").integrated_platform_id is None
    assert 'platform_dissolved' in [a.kind for a in gs.actions_this_round]


def test_platform_member_exits_at_a_higher_multiple(forge_engine):
    gs = forge_engine.gs
    before = forge_engine.exit_valuation(gs.find_business("biz_1"))
    assert forge_engine.action_forge_integrated_platform('agency_full_service', ["biz_1", "biz_2"]).ok
    after = forge_engine.exit_valuation(gs.find_business("biz_1"))
    assert after.integrated_platform_premium == 1.5
    assert before.integrated_platform_premium == 0.0


def test_platforms_survive_a_snapshot(forge_engine):
    assert forge_engine.action_forge_integrated_platform('agency_full_service', ["biz_1", "biz_2"]).ok
    restored = loads(dumps(forge_engine.gs))
    assert restored.integrated_platforms == forge_engine.gs.integrated_platforms
    assert restored.find_business("biz_1").integrated_platform_id == restored.integrated_platforms[0].id
