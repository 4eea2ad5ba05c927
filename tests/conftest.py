"""Shared fixtures for the holdco engine tests"""
import pytest

from holdco.engine import Engine, new_game
from holdco.models import Business, Deal, DueDiligence, GamePhase, GameState, Heat


def make_business(business_id="biz_100", sector_id='agency', sub_type='Digital Agency', revenue=5000,
                  margin=0.20, quality=3, acquisition_round=1, **overrides) -> Business:
    """Deterministic owned opco with consistent revenue / margin / EBITDA"""
    ebitda = round(revenue * margin)
    business = Business(
        id=business_id,
        name=f"Test Co {business_id}",
        sector_id=sector_id,
        sub_type=sub_type,
        revenue=revenue,
        ebitda_margin=margin,
        ebitda=ebitda,
        quality_rating=quality,
        due_diligence=DueDiligence(),
        acquisition_revenue=revenue,
        acquisition_margin=margin,
        acquisition_ebitda=ebitda,
        acquisition_multiple=4.0,
        acquisition_price=ebitda * 4,
        acquisition_round=acquisition_round,
        peak_ebitda=ebitda,
        peak_revenue=revenue,
        integration_rounds_remaining=0,
    )
    for key, value in overrides.items():
        setattr(business, key, value)
    return business


def make_deal(business: Business, price=None, heat=Heat.COLD, round_appeared=1,
              acquisition_type='standalone') -> Deal:
    price = price if price is not None else business.ebitda * 4
    return Deal(id=f"deal_{business.id}", business=business, asking_price=price, effective_price=price,
                freshness=2, round_appeared=round_appeared, heat=heat, acquisition_type=acquisition_type)


@pytest.fixture
def business_factory():
    return make_business


@pytest.fixture
def deal_factory():
    return make_deal


@pytest.fixture
def engine():
    """Fresh easy game on a fixed seed"""
    return new_game(seed=42)


@pytest.fixture
def allocate_engine():
    """Hand-built game sitting in the allocate phase with one opco and plenty of cash"""
    gs = GameState(seed=7, round=2, phase=GamePhase.ALLOCATE, cash=20000)
    gs.businesses.append(make_business("biz_1"))
    gs.id_counter.value = 1
    return Engine(gs)
