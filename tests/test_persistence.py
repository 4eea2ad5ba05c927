"""Snapshot save / restore"""
import json

import pytest

from holdco.engine import Engine, new_game
from holdco.models import GamePhase, Heat
from holdco.persistence import SNAPSHOT_VERSION, dumps, loads, restore, snapshot


@pytest.fixture
def played():
    """A game a few rounds in, paused in the allocate phase"""
    engine = new_game(seed=21)
    for _ in range(3):
        engine.advance_to_event()
        engine.ai_handle_restructure()
        engine.ai_resolve_event()
        engine.advance_to_allocate()
        engine.ai_decide_action()
        engine.end_round()
    engine.advance_to_event()
    engine.ai_handle_restructure()
    engine.advance_to_allocate()
    return engine


def test_round_trip_preserves_state(played):
    text = dumps(played.gs)
    restored = loads(text)
    assert snapshot(restored) == json.loads(text)
    assert restored.phase == played.gs.phase
    assert [b.id for b in restored.businesses] == [b.id for b in played.gs.businesses]
    assert all(isinstance(d.heat, Heat) for d in restored.deal_pipeline)


def test_snapshot_is_versioned(played):
    assert snapshot(played.gs)['version'] == SNAPSHOT_VERSION


def test_restored_game_keeps_playing(played):
    engine = Engine(loads(dumps(played.gs)))
    assert engine.end_round().ok
    assert engine.gs.round == played.gs.round + 1


def test_missing_fields_take_defaults():
    gs = restore({'seed': 5, 'round': 3, 'businesses': [{'id': 'biz_7', 'name': "Old Co"}]})
    assert gs.seed == 5
    assert gs.phase == GamePhase.COLLECT
    assert gs.cash == 0
    assert gs.businesses[0].name == "Old Co"
    assert gs.businesses[0].revenue == 0
    assert gs.id_counter.value == 7
    assert gs.id_counter.next_id() == 'biz_8'


def test_unknown_enum_value_falls_back(caplog):
    gs = restore({'phase': 'lunch'})
    assert gs.phase == GamePhase.COLLECT
    assert "Unknown GamePhase" in caplog.text


def test_non_mapping_is_rejected():
    with pytest.raises(TypeError):
        restore(["not", "a", "snapshot"])
