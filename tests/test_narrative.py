"""Narrative service fallbacks and the stale-result guard"""
import pytest

from holdco.models import GameEvent, GameState, RoundHistoryEntry
from holdco.narrative import (
    GENERIC_EVENT_NARRATIVE, NarrativeRequest, NarrativeService, apply_event_narrative,
    get_fallback_event_narrative,
)


class FakeResponse:
    def __init__(self, text):
        self.text = text


class FakeClient:
    def __init__(self, text="A strong year for the portfolio.", error=None):
        self.text = text
        self.error = error
        self.prompts = []

    def generate_content(self, prompt):
        self.prompts.append(prompt)
        if self.error:
            raise self.error
        return FakeResponse(self.text)


@pytest.fixture
def state():
    gs = GameState(seed=1, round=4, holdco_name="Acme Holdings")
    gs.current_event = GameEvent(id='event_4_global_recession', type='global_recession',
                                 title="Recession", description="")
    return gs


def test_generated_text_is_used():
    client = FakeClient()
    service = NarrativeService(client=client)
    text = service.generate_event_narrative('global_recession', "EBITDA down", "3 opcos")
    assert text == "A strong year for the portfolio."
    assert "global_recession" in client.prompts[0]


def test_client_error_falls_back():
    service = NarrativeService(client=FakeClient(error=RuntimeError("quota")))
    text = service.generate_event_narrative('global_recession', "EBITDA down", "3 opcos")
    assert text == get_fallback_event_narrative('global_recession')


def test_empty_response_falls_back():
    service = NarrativeService(client=FakeClient(text="   "))
    thesis = service.generate_buyer_thesis("Ironwood Capital", "Test Co", 'agency', 6000)
    assert "Ironwood Capital" in thesis


def test_missing_key_disables_service(monkeypatch):
    monkeypatch.delenv("GEMINI_API_KEY", raising=False)
    service = NarrativeService()
    assert not service.enabled
    assert service.generate_event_narrative('global_quiet', "", "") == get_fallback_event_narrative('global_quiet')


def test_unknown_event_type_has_generic_fallback():
    assert get_fallback_event_narrative('alien_invasion') == GENERIC_EVENT_NARRATIVE


def test_chronicle_is_stored_on_history(state):
    state.round_history.append(RoundHistoryEntry(round=4, cash=1000, total_debt=0, total_ebitda=2000,
                                                 net_debt_to_ebitda=0.0, distress_level='comfortable',
                                                 intrinsic_value_per_share=10.0))
    service = NarrativeService(client=FakeClient(text="Year four was quiet."))
    assert service.generate_year_chronicle(state) == "Year four was quiet."
    assert state.round_history[-1].chronicle == "Year four was quiet."


def test_fresh_narrative_is_applied(state):
    request = NarrativeRequest.for_current_event(state)
    assert apply_event_narrative(state, request, "Demand softens.")
    assert state.current_event.narrative == "Demand softens."


def test_stale_narrative_is_discarded(state):
    request = NarrativeRequest.for_current_event(state)
    state.round = 5
    state.current_event = GameEvent(id='event_5_global_quiet', type='global_quiet', title="Quiet", description="")
    assert not apply_event_narrative(state, request, "Demand softens.")
    assert state.current_event.narrative is None


def test_no_request_without_event():
    assert NarrativeRequest.for_current_event(GameState()) is None
