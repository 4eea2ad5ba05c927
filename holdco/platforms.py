"""
Integrated Platforms
====================
Recipes for consolidating several owned opcos with complementary sub-types
into one named platform. Forging costs a fraction of the constituents'
EBITDA and grants a one-time margin boost, a permanent growth boost, extra
exit multiple and softer recession shocks.
"""

from dataclasses import dataclass, replace
from typing import List, Optional

from .calibration_config import PLATFORM_CONFIG
from .models import SERVICED_STATUSES, Business, IntegratedPlatform, PlatformBonuses, round_money


@dataclass
class PlatformRecipe:
    """Exactly one of sector_id / cross_sector_ids is set"""
    id: str
    name: str
    sector_id: Optional[str]
    required_sub_types: List[str]
    min_sub_types: int
    base_ebitda_threshold: int  # $k, before difficulty / duration scaling
    bonuses: PlatformBonuses
    integration_cost_fraction: float
    cross_sector_ids: Optional[List[str]] = None

    @property
    def sector_ids(self) -> List[str]:
        return [self.sector_id] if self.sector_id else list(self.cross_sector_ids or [])


@dataclass
class PlatformEligibility:
    recipe: PlatformRecipe
    eligible_businesses: List[Business]
    sector_ebitda: int
    scaled_threshold: int


def _bonuses(margin, growth, multiple, recession):
    return PlatformBonuses(margin, growth, multiple, recession)


PLATFORM_RECIPES: List[PlatformRecipe] = [
    # ---- within-sector ----
    PlatformRecipe('agency_full_service', "Full-Service Marketing Group", 'agency',
                   ['Performance Marketing', 'Digital Agency', 'Creative Studio', 'Content Production'],
                   2, 5000, _bonuses(0.04, 0.03, 1.5, 0.80), 0.20),
    PlatformRecipe('saas_suite', "Vertical Software Suite", 'saas',
                   ['Vertical SaaS', 'Data & Analytics', 'Security Software'],
                   2, 6000, _bonuses(0.03, 0.03, 2.0, 0.85), 0.25),
    PlatformRecipe('home_services_one_call', "One-Call Home Services", 'homeServices',
                   ['HVAC', 'Plumbing', 'Electrical'],
                   2, 5000, _bonuses(0.03, 0.02, 1.5, 0.80), 0.15),
    PlatformRecipe('home_services_exterior', "Exterior Services Network", 'homeServices',
                   ['Roofing', 'Landscaping', 'Pest Control'],
                   2, 5000, _bonuses(0.03, 0.02, 1.2, 0.85), 0.15),
    PlatformRecipe('consumer_house_of_brands', "House of Brands", 'consumer',
                   ['DTC Brand', 'Personal Care', 'Apparel', 'Pet Products'],
                   3, 7000, _bonuses(0.03, 0.03, 1.5, 0.85), 0.20),
    PlatformRecipe('industrial_solutions', "Engineered Solutions Group", 'industrial',
                   ['Precision Machining', 'Industrial Automation', 'Testing & Inspection'],
                   2, 7000, _bonuses(0.03, 0.02, 1.5, 0.80), 0.20),
    PlatformRecipe('b2b_outsourcing', "Outsourced Back Office", 'b2bServices',
                   ['IT Managed Services', 'Accounting & Bookkeeping', 'Compliance Consulting'],
                   2, 5000, _bonuses(0.04, 0.02, 1.5, 0.80), 0.20),
    PlatformRecipe('healthcare_multi_specialty', "Multi-Specialty Care Network", 'healthcare',
                   ['Dental Practice', 'Physical Therapy', 'Behavioral Health', 'Home Health'],
                   2, 6000, _bonuses(0.03, 0.02, 1.5, 0.75), 0.20),
    PlatformRecipe('restaurant_multi_brand', "Multi-Brand Restaurant Group", 'restaurant',
                   ['Quick Service', 'Fast Casual', 'Franchise Unit Group', 'Coffee & Cafe'],
                   3, 6000, _bonuses(0.02, 0.02, 1.0, 0.90), 0.15),
    PlatformRecipe('real_estate_operating_co', "Diversified Property Operator", 'realEstate',
                   ['Self Storage', 'Industrial Flex', 'Multifamily', 'Manufactured Housing'],
                   2, 8000, _bonuses(0.02, 0.01, 1.0, 0.85), 0.15),
    PlatformRecipe('education_lifelong_learning', "Lifelong Learning Platform", 'education',
                   ['Tutoring', 'Test Prep', 'Vocational School', 'Corporate Training'],
                   2, 5000, _bonuses(0.03, 0.03, 1.2, 0.85), 0.20),
    PlatformRecipe('insurance_brokerage_platform', "Commercial Brokerage Platform", 'insurance',
                   ['P&C Agency', 'Benefits Brokerage', 'Specialty MGA'],
                   2, 5000, _bonuses(0.04, 0.02, 2.0, 0.80), 0.20),
    PlatformRecipe('auto_aftermarket', "Auto Aftermarket Network", 'autoServices',
                   ['Collision Repair', 'Auto Glass', 'Quick Lube', 'Tire Shop'],
                   2, 5000, _bonuses(0.03, 0.02, 1.2, 0.85), 0.15),
    PlatformRecipe('distribution_one_stop', "One-Stop Distribution", 'distribution',
                   ['Building Products', 'MRO Supplies', 'Medical Supplies'],
                   2, 7000, _bonuses(0.02, 0.02, 1.2, 0.85), 0.15),
    PlatformRecipe('wealth_multi_family_office', "Integrated Wealth Platform", 'wealthManagement',
                   ['Independent RIA', 'Tax & Estate Planning', 'Retirement Plan Advisor'],
                   2, 5000, _bonuses(0.04, 0.03, 2.0, 0.80), 0.20),
    PlatformRecipe('environmental_lifecycle', "Environmental Lifecycle Services", 'environmental',
                   ['Waste Hauling', 'Recycling', 'Remediation'],
                   2, 6000, _bonuses(0.03, 0.02, 1.5, 0.75), 0.20),

    # ---- cross-sector ----
    PlatformRecipe('risk_and_wealth', "Risk & Wealth Advisory", None,
                   ['P&C Agency', 'Benefits Brokerage', 'Independent RIA', 'Retirement Plan Advisor'],
                   2, 8000, _bonuses(0.05, 0.03, 2.0, 0.75), 0.25,
                   cross_sector_ids=['insurance', 'wealthManagement']),
    PlatformRecipe('property_services', "Property Services Platform", None,
                   ['HVAC', 'Plumbing', 'Electrical', 'Facilities Services'],
                   2, 8000, _bonuses(0.03, 0.03, 1.5, 0.80), 0.20,
                   cross_sector_ids=['homeServices', 'b2bServices']),
    PlatformRecipe('healthcare_supply_chain', "Healthcare Supply Chain", None,
                   ['Medical Supplies', 'Dental Practice', 'Veterinary Clinic', 'Home Health'],
                   2, 9000, _bonuses(0.03, 0.02, 1.5, 0.75), 0.25,
                   cross_sector_ids=['distribution', 'healthcare']),
]


def get_recipe(recipe_id: str) -> Optional[PlatformRecipe]:
    for recipe in PLATFORM_RECIPES:
        if recipe.id == recipe_id:
            return recipe
    return None


def get_integration_threshold_multiplier(difficulty: str, duration: str) -> float:
    return PLATFORM_CONFIG.threshold_multiplier.get(difficulty, {}).get(duration, 1.0)


def get_scaled_threshold(base_threshold: int, difficulty: str, duration: str) -> int:
    return round_money(base_threshold * get_integration_threshold_multiplier(difficulty, duration))


def _on_books(businesses: List[Business]) -> List[Business]:
    return [b for b in businesses if b.status in SERVICED_STATUSES]


def recipe_accepts(recipe: PlatformRecipe, business: Business) -> bool:
    return business.sector_id in recipe.sector_ids and business.sub_type in recipe.required_sub_types


def check_platform_eligibility(businesses: List[Business], existing_platforms: List[IntegratedPlatform],
                               difficulty: str, duration: str) -> List[PlatformEligibility]:
    """Recipes the portfolio can forge right now.

    Args:
        businesses: Every business on the game state (any status)
        existing_platforms: Platforms already forged; their recipes are excluded
        difficulty: Difficulty preset key
        duration: Duration preset key

    Returns:
        One PlatformEligibility per forgeable recipe, in recipe order.
    """
    owned = _on_books(businesses)
    free = [b for b in owned if not b.integrated_platform_id]
    forged = {p.recipe_id for p in existing_platforms}

    eligible = []
    for recipe in PLATFORM_RECIPES:
        if recipe.id in forged:
            continue
        matching = [b for b in free if recipe_accepts(recipe, b)]
        if len({b.sub_type for b in matching}) < recipe.min_sub_types:
            continue
        if recipe.cross_sector_ids and not set(recipe.cross_sector_ids) <= {b.sector_id for b in matching}:
            continue
        # threshold counts every owned opco in the recipe's sectors, not just the matches
        sector_ebitda = sum(b.ebitda for b in owned if b.sector_id in recipe.sector_ids)
        threshold = get_scaled_threshold(recipe.base_ebitda_threshold, difficulty, duration)
        if sector_ebitda < threshold:
            continue
        eligible.append(PlatformEligibility(recipe, matching, sector_ebitda, threshold))
    return eligible


def calculate_integration_cost(recipe: PlatformRecipe, selected: List[Business]) -> int:
    return round_money(sum(b.ebitda for b in selected) * recipe.integration_cost_fraction)


def calculate_add_to_platform_cost(platform: IntegratedPlatform, business: Business) -> int:
    recipe = get_recipe(platform.recipe_id)
    fraction = recipe.integration_cost_fraction if recipe else 0.20
    return round_money(abs(business.ebitda) * fraction)


def forge_platform(recipe: PlatformRecipe, business_ids: List[str], round_number: int) -> IntegratedPlatform:
    return IntegratedPlatform(
        id=f"platform_{recipe.id}_r{round_number}",
        recipe_id=recipe.id,
        name=recipe.name,
        sector_ids=recipe.sector_ids,
        constituent_business_ids=list(business_ids),
        forged_in_round=round_number,
        bonuses=replace(recipe.bonuses),
    )


def get_platform_bonuses(business: Business, platforms: List[IntegratedPlatform]) -> Optional[PlatformBonuses]:
    if not business.integrated_platform_id:
        return None
    for platform in platforms:
        if platform.id == business.integrated_platform_id:
            return platform.bonuses
    return None


def get_platform_multiple_expansion(business: Business, platforms: List[IntegratedPlatform]) -> float:
    bonuses = get_platform_bonuses(business, platforms)
    return bonuses.multiple_expansion if bonuses else 0.0


def get_platform_recession_modifier(business: Business, platforms: List[IntegratedPlatform]) -> float:
    bonuses = get_platform_bonuses(business, platforms)
    return bonuses.recession_resistance_reduction if bonuses else 1.0


def check_platform_dissolution(platform: IntegratedPlatform, businesses: List[Business]) -> bool:
    """True when too few distinct sub-types remain among the platform's live constituents"""
    recipe = get_recipe(platform.recipe_id)
    if recipe is None:
        return True
    members = set(platform.constituent_business_ids)
    remaining = [b for b in _on_books(businesses) if b.id in members]
    return len({b.sub_type for b in remaining}) < recipe.min_sub_types
