"""
Telemetry sinks
===============
The engine hands each finished round (its history entry and the typed action
records taken during it) to an optional sink. Sinks are fire-and-forget: a
failing sink is logged and ignored, never allowed to change the game.
"""

import json
from dataclasses import asdict
from pathlib import Path
from typing import Dict, List, Optional, Union

from .logging_config import get_logger
from .models import RoundHistoryEntry

logger = get_logger(__name__)


class TelemetrySink:
    """Base sink; subclasses override record_round"""

    def record_round(self, entry: Dict, actions: List[Dict]) -> None:
        raise NotImplementedError


class MemorySink(TelemetrySink):
    """Keeps every round in memory (analytics runs, tests)"""

    def __init__(self):
        self.rounds: List[Dict] = []

    def record_round(self, entry: Dict, actions: List[Dict]) -> None:
        self.rounds.append({'entry': entry, 'actions': actions})


class JsonlSink(TelemetrySink):
    """Appends one JSON line per round to a file"""

    def __init__(self, path: Union[str, Path]):
        self.path = Path(path)

    def record_round(self, entry: Dict, actions: List[Dict]) -> None:
        line = json.dumps({'entry': entry, 'actions': actions}, default=str)
        with self.path.open('a', encoding='utf-8') as f:
            f.write(line + "\n")


def emit_round(sink: Optional[TelemetrySink], entry: RoundHistoryEntry, actions: List) -> bool:
    """Send a finished round to the sink.

    Args:
        sink: Destination, or None when telemetry is off
        entry: History entry of the round just closed
        actions: ActionRecord instances taken during the round

    Returns:
        True if the sink accepted the round
    """
    if sink is None:
        return False
    try:
        sink.record_round(asdict(entry), [a.to_dict() for a in actions])
    except Exception as e:  # a broken sink must never break the game
        logger.warning("Telemetry sink failed for round %d: %s", entry.round, e)
        return False
    return True
