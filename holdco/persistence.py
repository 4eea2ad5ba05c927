"""
Game-state snapshots
====================
Plain-dict save format for a GameState. Derived metrics are never written;
they are recomputed from the restored state. Loading tolerates missing fields
by falling back to dataclass defaults, so older saves keep working.
"""

import json
from dataclasses import MISSING, fields, is_dataclass
from enum import Enum
from typing import Any, Dict, Mapping, Optional, Type, TypeVar

from .actions import ActionRecord, record_from_dict
from .logging_config import get_logger
from .models import (
    ActiveTurnaround, Business, Deal, DueDiligence, EventChoice, GameEvent, GamePhase, GameState,
    Heat, IdCounter, Improvement, IntegratedPlatform, IntegrationOutcome, MAFocus, MASourcingState,
    PlatformBonuses, RoundHistoryEntry, SharedService,
)

logger = get_logger(__name__)

SNAPSHOT_VERSION = 1

T = TypeVar('T')


# ==================== Writing ====================

def _plain(value: Any) -> Any:
    if isinstance(value, ActionRecord):
        return value.to_dict()
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, IdCounter):
        return value.value
    if is_dataclass(value):
        return {f.name: _plain(getattr(value, f.name)) for f in fields(value)}
    if isinstance(value, dict):
        return {k: _plain(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [_plain(v) for v in value]
    return value


def snapshot(gs: GameState) -> Dict:
    """Serialize a game state to JSON-compatible primitives"""
    data = _plain(gs)
    data['version'] = SNAPSHOT_VERSION
    return data


def dumps(gs: GameState) -> str:
    return json.dumps(snapshot(gs))


# ==================== Reading ====================

def _build(cls: Type[T], data: Optional[Mapping], **overrides) -> T:
    """Construct a dataclass from known keys; missing keys take the field default"""
    data = data or {}
    kwargs = {}
    for f in fields(cls):
        if f.name in overrides:
            kwargs[f.name] = overrides[f.name]
        elif f.name in data:
            kwargs[f.name] = data[f.name]
        elif f.default is MISSING and f.default_factory is MISSING:
            kwargs[f.name] = _REQUIRED_DEFAULTS.get(f.type, None)
    return cls(**kwargs)


# Fallbacks for fields without a dataclass default
_REQUIRED_DEFAULTS = {str: "", 'str': "", int: 0, 'int': 0, float: 0.0, 'float': 0.0}


def _enum(enum_cls: Type[Enum], value, default=None):
    if value is None:
        return default
    try:
        return enum_cls(value)
    except ValueError:
        logger.warning("Unknown %s value %r in snapshot; using %r", enum_cls.__name__, value, default)
        return default


def _business(data: Mapping) -> Business:
    return _build(
        Business, data,
        due_diligence=_build(DueDiligence, data.get('due_diligence')),
        improvements=[_build(Improvement, i) for i in data.get('improvements', [])],
        bolt_on_ids=list(data.get('bolt_on_ids', [])),
        integration_outcome=_enum(IntegrationOutcome, data.get('integration_outcome')),
    )


def _deal(data: Mapping) -> Deal:
    return _build(Deal, data, business=_business(data.get('business') or {}),
                  heat=_enum(Heat, data.get('heat'), Heat.COLD))


def _platform(data: Mapping) -> IntegratedPlatform:
    return _build(IntegratedPlatform, data, bonuses=_build(PlatformBonuses, data.get('bonuses')),
                  sector_ids=list(data.get('sector_ids', [])),
                  constituent_business_ids=list(data.get('constituent_business_ids', [])))


def _event(data: Optional[Mapping]) -> Optional[GameEvent]:
    if data is None:
        return None
    return _build(GameEvent, data,
                  choices=[_build(EventChoice, c) for c in data.get('choices', [])],
                  impacts=list(data.get('impacts', [])))


def restore(data: Mapping) -> GameState:
    """Rebuild a GameState from a snapshot dict.

    Args:
        data: Output of snapshot(), possibly from an older version

    Returns:
        GameState with its business-id counter moved past every known id

    Raises:
        TypeError: if data is not a mapping
    """
    if not isinstance(data, Mapping):
        raise TypeError(f"Snapshot must be a mapping, got {type(data).__name__}")
    version = data.get('version', 0)
    if version != SNAPSHOT_VERSION:
        logger.info("Restoring snapshot version %s (current %d)", version, SNAPSHOT_VERSION)

    businesses = [_business(b) for b in data.get('businesses', [])]
    exited = [_business(b) for b in data.get('exited_businesses', [])]
    pipeline = [_deal(d) for d in data.get('deal_pipeline', [])]

    gs = _build(
        GameState, data,
        phase=_enum(GamePhase, data.get('phase'), GamePhase.COLLECT),
        businesses=businesses,
        exited_businesses=exited,
        deal_pipeline=pipeline,
        shared_services=[_build(SharedService, s) for s in data.get('shared_services', [])],
        ma_sourcing=_build(MASourcingState, data.get('ma_sourcing')),
        ma_focus=_build(MAFocus, data.get('ma_focus')),
        integrated_platforms=[_platform(p) for p in data.get('integrated_platforms', [])],
        active_turnarounds=[_build(ActiveTurnaround, t) for t in data.get('active_turnarounds', [])],
        current_event=_event(data.get('current_event')),
        event_history=[_event(e) for e in data.get('event_history', [])],
        last_integration_outcome=_enum(IntegrationOutcome, data.get('last_integration_outcome')),
        actions_this_round=[record_from_dict(a) for a in data.get('actions_this_round', [])],
        round_history=[_build(RoundHistoryEntry, r) for r in data.get('round_history', [])],
        founder_cashflows=[dict(cf) for cf in data.get('founder_cashflows', [])],
        id_counter=IdCounter(int(data.get('id_counter') or 0)),
    )

    ids = [b.id for b in businesses + exited] + [d.business.id for d in pipeline]
    gs.id_counter.restore_from_ids(ids)
    return gs


def loads(text: str) -> GameState:
    return restore(json.loads(text))
