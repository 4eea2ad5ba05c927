"""
Business name generation
"""

from typing import Iterable, Optional, Set

from .calibration_config import DEAL_CONFIG
from .rng import SeededRng

# ==================== Name parts ====================

PREFIXES = [
    "Summit", "Harbor", "Keystone", "Northstar", "Blue Ridge", "Ironwood", "Cardinal",
    "Pioneer", "Granite", "Meridian", "Redwood", "Beacon", "Sterling", "Cascade",
    "Liberty", "Evergreen", "Crescent", "Frontier", "Oakmont", "Prairie", "Lakeside",
    "Copper", "Anchor", "Highland", "Riverbend", "Silverline", "Trident", "Apex",
]

SECTOR_SUFFIXES = {
    'agency': ["Creative", "Media", "Collective", "Studio", "Partners"],
    'saas': ["Software", "Labs", "Cloud", "Systems", "Analytics"],
    'homeServices': ["Home Services", "Comfort", "Plumbing & Air", "Roofing", "Pros"],
    'consumer': ["Brands", "Goods", "Provisions", "Co.", "Outfitters"],
    'industrial': ["Manufacturing", "Industries", "Fabrication", "Precision", "Works"],
    'b2bServices': ["Solutions", "Group", "Services", "Associates", "Advisors"],
    'healthcare': ["Health", "Care Partners", "Clinics", "Wellness", "Medical"],
    'restaurant': ["Kitchen", "Grill", "Eatery", "Hospitality", "Cafe"],
    'realEstate': ["Properties", "Realty", "Holdings", "Storage", "Communities"],
    'education': ["Academy", "Learning", "Institute", "Education", "Kids"],
    'insurance': ["Insurance", "Risk Partners", "Benefits", "Underwriters", "Agency"],
    'autoServices': ["Auto", "Collision", "Car Care", "Motors", "Tire & Service"],
    'distribution': ["Supply", "Distribution", "Logistics", "Wholesale", "Trading"],
    'wealthManagement': ["Wealth", "Capital", "Advisors", "Financial", "Asset Partners"],
    'environmental': ["Environmental", "Waste Solutions", "Recycling", "Eco Services", "Earthworks"],
}

DEFAULT_SUFFIXES = ["Group", "Holdings", "Partners", "Company", "Enterprises"]


def generate_business_name(sector_id: str, stream: SeededRng,
                           used_names: Optional[Iterable[str]] = None) -> str:
    """Draw a name not already in use.

    Retries a fixed number of times, then appends a numeric suffix that is
    guaranteed not to collide.
    """
    taken: Set[str] = set(used_names or ())
    suffixes = SECTOR_SUFFIXES.get(sector_id, DEFAULT_SUFFIXES)

    name = f"{stream.pick(PREFIXES)} {stream.pick(suffixes)}"
    attempts = 1
    while name in taken and attempts < DEAL_CONFIG.name_retry_limit:
        name = f"{stream.pick(PREFIXES)} {stream.pick(suffixes)}"
        attempts += 1
    if name not in taken:
        return name

    n = 2
    while f"{name} {n}" in taken:
        n += 1
    return f"{name} {n}"
