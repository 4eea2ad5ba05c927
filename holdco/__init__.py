"""
Holdco Tycoon - simulation and deal engine for a holding-company strategy game.
"""

from .actions import ActionResult
from .engine import (
    Engine, IRRStatus, advance_phase, get_results, is_finished, new_game, run_monte_carlo,
    run_one_simulation,
)
from .models import GamePhase, GameState

__version__ = "0.1.0"

__all__ = [
    'ActionResult', 'Engine', 'GamePhase', 'GameState', 'IRRStatus', 'advance_phase', 'get_results',
    'is_finished', 'new_game', 'run_monte_carlo', 'run_one_simulation',
]
