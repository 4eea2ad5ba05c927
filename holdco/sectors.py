"""
Sector definitions
==================
Financial profile of every sector a deal can come from. Ranges are
(low, high) tuples; revenue in $k.
"""

from dataclasses import dataclass, field
from typing import Dict, List, Optional, Tuple


@dataclass
class SectorDefinition:
    id: str
    name: str
    acquisition_multiple: Tuple[float, float]
    base_revenue: Tuple[int, int]
    base_margin: Tuple[float, float]
    organic_growth_range: Tuple[float, float]
    margin_drift_range: Tuple[float, float] = (-0.005, 0.005)
    margin_volatility: float = 0.01
    volatility: float = 0.05           # annual growth noise
    capex_rate: float = 0.05           # share of EBITDA
    reinvestment_efficiency: float = 1.0
    client_concentration: str = 'medium'  # low / medium / high
    talent_dependency: str = 'medium'
    recession_sensitivity: float = 1.0
    sector_focus_group: List[str] = field(default_factory=list)
    sub_types: List[str] = field(default_factory=list)
    sub_type_groups: List[List[str]] = field(default_factory=list)
    sub_type_margin_modifiers: Dict[str, float] = field(default_factory=dict)
    sub_type_growth_modifiers: Dict[str, float] = field(default_factory=dict)
    quality_ceiling: int = 5

    @property
    def average_multiple(self) -> float:
        return (self.acquisition_multiple[0] + self.acquisition_multiple[1]) / 2


SECTORS: Dict[str, SectorDefinition] = {}


def _register(sector: SectorDefinition):
    SECTORS[sector.id] = sector


_register(SectorDefinition(
    id='agency', name="Marketing Agency",
    acquisition_multiple=(2.5, 4.5), base_revenue=(2500, 8000), base_margin=(0.10, 0.20),
    organic_growth_range=(-0.02, 0.06), margin_drift_range=(-0.006, 0.002), margin_volatility=0.015,
    volatility=0.08, capex_rate=0.03, client_concentration='high', talent_dependency='high',
    recession_sensitivity=1.2, sector_focus_group=['marketing_services'],
    sub_types=['Performance Marketing', 'Digital Agency', 'Creative Studio', 'Content Production',
               'Brand Strategy', 'PR Firm'],
    sub_type_groups=[['Performance Marketing', 'Digital Agency'],
                     ['Creative Studio', 'Content Production', 'Brand Strategy'],
                     ['PR Firm']],
    sub_type_margin_modifiers={'Performance Marketing': 0.02, 'PR Firm': -0.01},
    sub_type_growth_modifiers={'Performance Marketing': 0.01, 'Creative Studio': -0.01},
    quality_ceiling=3,
))

_register(SectorDefinition(
    id='saas', name="B2B SaaS",
    acquisition_multiple=(5.0, 9.0), base_revenue=(2000, 6000), base_margin=(0.20, 0.40),
    organic_growth_range=(0.05, 0.15), margin_drift_range=(-0.002, 0.008), margin_volatility=0.02,
    volatility=0.10, capex_rate=0.08, reinvestment_efficiency=1.4, client_concentration='medium',
    talent_dependency='high', recession_sensitivity=0.6, sector_focus_group=['technology'],
    sub_types=['Vertical SaaS', 'Horizontal Platform', 'Developer Tools', 'Data & Analytics',
               'Security Software'],
    sub_type_groups=[['Vertical SaaS', 'Horizontal Platform'],
                     ['Developer Tools', 'Security Software'],
                     ['Data & Analytics']],
    sub_type_margin_modifiers={'Developer Tools': 0.03, 'Vertical SaaS': 0.02},
    sub_type_growth_modifiers={'Security Software': 0.02, 'Horizontal Platform': -0.01},
    quality_ceiling=4,
))

_register(SectorDefinition(
    id='homeServices', name="Home Services",
    acquisition_multiple=(3.0, 5.5), base_revenue=(3000, 10000), base_margin=(0.10, 0.18),
    organic_growth_range=(0.02, 0.06), volatility=0.05, capex_rate=0.05,
    client_concentration='low', talent_dependency='medium', recession_sensitivity=0.7,
    sector_focus_group=['home_services'],
    sub_types=['HVAC', 'Plumbing', 'Electrical', 'Roofing', 'Pest Control', 'Landscaping'],
    sub_type_groups=[['HVAC', 'Plumbing', 'Electrical'], ['Roofing', 'Landscaping'], ['Pest Control']],
    sub_type_margin_modifiers={'Pest Control': 0.03, 'Roofing': -0.02},
    sub_type_growth_modifiers={'HVAC': 0.01},
))

_register(SectorDefinition(
    id='consumer', name="Consumer Brands",
    acquisition_multiple=(3.0, 6.0), base_revenue=(3000, 10000), base_margin=(0.08, 0.18),
    organic_growth_range=(0.0, 0.08), margin_volatility=0.02, volatility=0.10, capex_rate=0.06,
    client_concentration='medium', talent_dependency='medium', recession_sensitivity=1.0,
    sector_focus_group=['consumer'],
    sub_types=['DTC Brand', 'Specialty Food', 'Personal Care', 'Pet Products', 'Apparel'],
    sub_type_groups=[['DTC Brand', 'Apparel'], ['Specialty Food', 'Pet Products'], ['Personal Care']],
    sub_type_margin_modifiers={'Personal Care': 0.02, 'Apparel': -0.02},
    sub_type_growth_modifiers={'Pet Products': 0.02},
))

_register(SectorDefinition(
    id='industrial', name="Light Industrial",
    acquisition_multiple=(4.0, 7.0), base_revenue=(5000, 15000), base_margin=(0.10, 0.18),
    organic_growth_range=(0.01, 0.05), volatility=0.06, capex_rate=0.12,
    client_concentration='medium', talent_dependency='medium', recession_sensitivity=1.1,
    sector_focus_group=['industrial'],
    sub_types=['Precision Machining', 'Specialty Chemicals', 'Packaging', 'Testing & Inspection',
               'Industrial Automation'],
    sub_type_groups=[['Precision Machining', 'Industrial Automation'],
                     ['Specialty Chemicals', 'Packaging'],
                     ['Testing & Inspection']],
    sub_type_margin_modifiers={'Testing & Inspection': 0.03},
    sub_type_growth_modifiers={'Industrial Automation': 0.02},
    quality_ceiling=4,
))

_register(SectorDefinition(
    id='b2bServices', name="B2B Services",
    acquisition_multiple=(3.0, 5.5), base_revenue=(2000, 8000), base_margin=(0.12, 0.22),
    organic_growth_range=(0.02, 0.08), volatility=0.06, capex_rate=0.03, reinvestment_efficiency=1.1,
    client_concentration='medium', talent_dependency='high', recession_sensitivity=0.8,
    sector_focus_group=['business_services'],
    sub_types=['IT Managed Services', 'Staffing', 'Facilities Services', 'Accounting & Bookkeeping',
               'Compliance Consulting'],
    sub_type_groups=[['IT Managed Services'], ['Staffing', 'Facilities Services'],
                     ['Accounting & Bookkeeping', 'Compliance Consulting']],
    sub_type_margin_modifiers={'Staffing': -0.04, 'IT Managed Services': 0.02},
    sub_type_growth_modifiers={'IT Managed Services': 0.01},
))

_register(SectorDefinition(
    id='healthcare', name="Healthcare Services",
    acquisition_multiple=(5.0, 8.0), base_revenue=(3000, 10000), base_margin=(0.12, 0.22),
    organic_growth_range=(0.03, 0.08), volatility=0.05, capex_rate=0.06,
    client_concentration='low', talent_dependency='high', recession_sensitivity=0.3,
    sector_focus_group=['healthcare'],
    sub_types=['Dental Practice', 'Physical Therapy', 'Veterinary Clinic', 'Home Health',
               'Behavioral Health'],
    sub_type_groups=[['Dental Practice', 'Veterinary Clinic'], ['Physical Therapy', 'Home Health'],
                     ['Behavioral Health']],
    sub_type_margin_modifiers={'Dental Practice': 0.02, 'Home Health': -0.02},
    sub_type_growth_modifiers={'Behavioral Health': 0.02},
))

_register(SectorDefinition(
    id='restaurant', name="Restaurants",
    acquisition_multiple=(2.5, 4.5), base_revenue=(3000, 10000), base_margin=(0.06, 0.14),
    organic_growth_range=(-0.02, 0.05), margin_drift_range=(-0.006, 0.003), margin_volatility=0.02,
    volatility=0.12, capex_rate=0.08, client_concentration='low', talent_dependency='medium',
    recession_sensitivity=1.3, sector_focus_group=['consumer'],
    sub_types=['Quick Service', 'Fast Casual', 'Full Service', 'Coffee & Cafe', 'Franchise Unit Group'],
    sub_type_groups=[['Quick Service', 'Fast Casual', 'Franchise Unit Group'],
                     ['Full Service'], ['Coffee & Cafe']],
    sub_type_margin_modifiers={'Coffee & Cafe': 0.02, 'Full Service': -0.02},
    sub_type_growth_modifiers={'Fast Casual': 0.02},
    quality_ceiling=3,
))

_register(SectorDefinition(
    id='realEstate', name="Real Estate Operators",
    acquisition_multiple=(6.0, 10.0), base_revenue=(2000, 6000), base_margin=(0.30, 0.55),
    organic_growth_range=(0.01, 0.04), volatility=0.05, capex_rate=0.15,
    client_concentration='medium', talent_dependency='low', recession_sensitivity=0.9,
    sector_focus_group=['real_estate'],
    sub_types=['Self Storage', 'Multifamily', 'Industrial Flex', 'Medical Office',
               'Manufactured Housing'],
    sub_type_groups=[['Self Storage', 'Industrial Flex'], ['Multifamily', 'Manufactured Housing'],
                     ['Medical Office']],
    sub_type_margin_modifiers={'Self Storage': 0.05, 'Multifamily': -0.03},
))

_register(SectorDefinition(
    id='education', name="Education & Childcare",
    acquisition_multiple=(3.0, 5.0), base_revenue=(2000, 7000), base_margin=(0.12, 0.22),
    organic_growth_range=(0.02, 0.07), volatility=0.05, capex_rate=0.05,
    client_concentration='low', talent_dependency='high', recession_sensitivity=0.4,
    sector_focus_group=['education'],
    sub_types=['Tutoring', 'Test Prep', 'Childcare', 'Vocational School', 'Corporate Training'],
    sub_type_groups=[['Tutoring', 'Test Prep'], ['Vocational School', 'Corporate Training'],
                     ['Childcare']],
    sub_type_growth_modifiers={'Vocational School': 0.01},
))

_register(SectorDefinition(
    id='insurance', name="Insurance Brokerage",
    acquisition_multiple=(5.0, 8.0), base_revenue=(2000, 7000), base_margin=(0.18, 0.30),
    organic_growth_range=(0.03, 0.07), volatility=0.04, capex_rate=0.02,
    client_concentration='low', talent_dependency='high', recession_sensitivity=0.4,
    sector_focus_group=['financial_services'],
    sub_types=['P&C Agency', 'Benefits Brokerage', 'Specialty MGA', 'Life & Annuity Agency'],
    sub_type_groups=[['P&C Agency', 'Specialty MGA'], ['Benefits Brokerage', 'Life & Annuity Agency']],
    sub_type_margin_modifiers={'Specialty MGA': 0.04},
))

_register(SectorDefinition(
    id='autoServices', name="Auto Services",
    acquisition_multiple=(3.0, 5.0), base_revenue=(2000, 8000), base_margin=(0.10, 0.18),
    organic_growth_range=(0.01, 0.05), volatility=0.05, capex_rate=0.07,
    client_concentration='low', talent_dependency='medium', recession_sensitivity=0.6,
    sector_focus_group=['auto_services'],
    sub_types=['Collision Repair', 'Quick Lube', 'Car Wash', 'Auto Glass', 'Tire Shop'],
    sub_type_groups=[['Collision Repair', 'Auto Glass'], ['Quick Lube', 'Tire Shop'], ['Car Wash']],
    sub_type_margin_modifiers={'Car Wash': 0.06},
    sub_type_growth_modifiers={'Car Wash': 0.01},
))

_register(SectorDefinition(
    id='distribution', name="Specialty Distribution",
    acquisition_multiple=(4.0, 6.5), base_revenue=(8000, 20000), base_margin=(0.05, 0.10),
    organic_growth_range=(0.01, 0.05), volatility=0.06, capex_rate=0.04,
    client_concentration='medium', talent_dependency='low', recession_sensitivity=1.0,
    sector_focus_group=['industrial'],
    sub_types=['Food Distribution', 'Building Products', 'MRO Supplies', 'Medical Supplies'],
    sub_type_groups=[['Food Distribution'], ['Building Products', 'MRO Supplies'], ['Medical Supplies']],
    sub_type_margin_modifiers={'Medical Supplies': 0.02, 'Food Distribution': -0.01},
))

_register(SectorDefinition(
    id='wealthManagement', name="Wealth Management",
    acquisition_multiple=(6.0, 10.0), base_revenue=(2000, 6000), base_margin=(0.25, 0.40),
    organic_growth_range=(0.03, 0.08), volatility=0.08, capex_rate=0.02,
    client_concentration='low', talent_dependency='high', recession_sensitivity=1.1,
    sector_focus_group=['financial_services'],
    sub_types=['Independent RIA', 'Retirement Plan Advisor', 'Tax & Estate Planning',
               'Family Office Services'],
    sub_type_groups=[['Independent RIA', 'Family Office Services'],
                     ['Retirement Plan Advisor', 'Tax & Estate Planning']],
))

_register(SectorDefinition(
    id='environmental', name="Environmental Services",
    acquisition_multiple=(5.0, 8.0), base_revenue=(3000, 10000), base_margin=(0.12, 0.22),
    organic_growth_range=(0.03, 0.08), volatility=0.05, capex_rate=0.10,
    client_concentration='medium', talent_dependency='medium', recession_sensitivity=0.5,
    sector_focus_group=['industrial'],
    sub_types=['Waste Hauling', 'Recycling', 'Remediation', 'Environmental Consulting'],
    sub_type_groups=[['Waste Hauling', 'Recycling'], ['Remediation', 'Environmental Consulting']],
    sub_type_margin_modifiers={'Waste Hauling': 0.02},
))

# Fallback profile for unknown sector ids
DEFAULT_SECTOR = SectorDefinition(
    id='default', name="Diversified Services",
    acquisition_multiple=(3.5, 5.5), base_revenue=(3000, 8000), base_margin=(0.10, 0.20),
    organic_growth_range=(0.01, 0.05), sub_types=['General'], sub_type_groups=[['General']],
)

SECTOR_IDS = list(SECTORS.keys())

# Price tiers used to weight deal flow by game phase
SECTOR_PRICE_TIERS = {
    'cheap': ['agency', 'homeServices', 'b2bServices', 'education', 'autoServices'],
    'mid': ['consumer', 'restaurant', 'healthcare', 'insurance', 'distribution',
            'wealthManagement', 'environmental'],
    'premium': ['saas', 'industrial', 'realEstate'],
}


def get_sector(sector_id: Optional[str]) -> SectorDefinition:
    return SECTORS.get(sector_id, DEFAULT_SECTOR)


def sub_type_group(sector_id: str, sub_type: str) -> Optional[int]:
    """Index of the affinity group a sub-type belongs to, or None"""
    for i, group in enumerate(get_sector(sector_id).sub_type_groups):
        if sub_type in group:
            return i
    return None
