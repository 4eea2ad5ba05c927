"""Event draws and their numeric effects"""
import pytest

from holdco.events import COMPLIANCE_COST, apply_event_effects, generate_event
from holdco.models import GameEvent, GameState
from holdco.rng import SeededRng


class FixedStream:
    """Stream that always draws the same value"""

    def __init__(self, value):
        self.value = value

    def next(self):
        return self.value

    def next_in_range(self, bounds):
        low, high = bounds
        return low + self.value * (high - low)

    def pick(self, items):
        return items[0] if items else None


@pytest.fixture
def state(business_factory):
    gs = GameState(seed=1, round=3, cash=2000)
    gs.businesses.append(business_factory("biz_1"))
    return gs


def test_high_draws_fall_through_to_a_quiet_year(state):
    event = generate_event(state, FixedStream(0.999))
    assert event.type == 'global_quiet'
    assert apply_event_effects(state, event, FixedStream(0.5)) == []


def test_low_draw_is_a_bull_market(state):
    assert generate_event(state, FixedStream(0.0)).type == 'global_bull_market'


def test_repeat_of_last_event_is_less_likely(state):
    assert generate_event(state, FixedStream(0.07)).type == 'global_bull_market'
    state.event_history.append(GameEvent(id='event_2', type='global_bull_market', title="", description=""))
    assert generate_event(state, FixedStream(0.07)).type == 'global_recession'


def test_generation_is_deterministic(state, business_factory):
    other = GameState(seed=1, round=3, cash=2000)
    other.businesses.append(business_factory("biz_1"))
    for seed in range(20):
        a = generate_event(state, SeededRng(seed))
        b = generate_event(other, SeededRng(seed))
        assert (a.type, a.affected_business_id, a.offer_amount) == (b.type, b.affected_business_id, b.offer_amount)


def test_bull_market_lifts_every_opco(state):
    event = GameEvent(id='e', type='global_bull_market', title="Bull Market", description="")
    impacts = apply_event_effects(state, event, FixedStream(0.5))
    assert state.businesses[0].ebitda == 1100
    assert impacts[0]['delta'] == 100
    assert event.impacts is impacts


def test_interest_hike_respects_ceiling(state):
    state.interest_rate = 0.145
    event = GameEvent(id='e', type='global_interest_hike', title="", description="")
    apply_event_effects(state, event, FixedStream(0.9))
    assert state.interest_rate == pytest.approx(0.15)


def test_compliance_cost_never_overdraws(state):
    state.cash = 300
    event = GameEvent(id='e', type='portfolio_compliance', title="", description="",
                      affected_business_id='biz_1')
    apply_event_effects(state, event, FixedStream(0.5))
    assert state.cash == 0
    assert state.businesses[0].ebitda == 920
    assert COMPLIANCE_COST > 300


def test_choice_events_have_no_automatic_effects(state):
    event = GameEvent(id='e', type='unsolicited_offer', title="", description="",
                      affected_business_id='biz_1', offer_amount=6000)
    assert apply_event_effects(state, event, FixedStream(0.5)) == []
    assert state.cash == 2000
    assert state.businesses[0].ebitda == 1000


def test_credit_tightening_sets_counter(state):
    event = GameEvent(id='e', type='global_credit_tightening', title="", description="")
    apply_event_effects(state, event, FixedStream(0.5))
    assert state.credit_tightening_rounds_remaining == 2
