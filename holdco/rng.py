"""
Seeded RNG Streams
==================
Mulberry32 generator with round- and lane-scoped seeds.

master seed -> derive_round_seed(seed, round) -> derive_stream_seed(round_seed, lane)

Every round gets fresh generators, one per lane, so a client that draws extra
numbers in one lane (e.g. cosmetic flavour text) never shifts another lane.
All arithmetic is 32-bit two's complement.
"""

import random
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Sequence, Tuple, TypeVar, Union

T = TypeVar('T')

MASK32 = 0xFFFFFFFF

LANES = ('deals', 'events', 'simulation', 'market', 'cosmetic')

ROLL_KINDS = (
    'contested_snatch',
    'sell_variance',
    'event_decline',
    'integration',
    'quality_improvement',
)

PRE_ROLL_SLOTS = 16


# ==================== 32-bit helpers ====================

def to_int32(x: int) -> int:
    """Wrap an integer to signed 32-bit"""
    x &= MASK32
    return x - 0x100000000 if x & 0x80000000 else x


def imul(a: int, b: int) -> int:
    """32-bit integer multiply (low 32 bits, signed)"""
    return to_int32((a & MASK32) * (b & MASK32))


def _ushr(x: int, n: int) -> int:
    return (x & MASK32) >> n


def string_hash(text: str) -> int:
    """31-multiplier string hash wrapped to int32"""
    h = 0
    for ch in text:
        h = to_int32(h * 31 + ord(ch))
    return h


def hash_two(a: int, b: int) -> int:
    """Mix two integers into one 32-bit hash"""
    # float product truncated to int32 (ToInt32 semantics)
    golden = int(float(b) * 2654435769.0)
    h = to_int32(to_int32(a) ^ golden)
    h = imul(h ^ _ushr(h, 16), 0x85EBCA6B)
    h = imul(h ^ _ushr(h, 13), 0xC2B2AE35)
    return to_int32(h ^ _ushr(h, 16))


def derive_round_seed(master_seed: int, round_number: int) -> int:
    """Derive a round-specific seed from the master seed"""
    return hash_two(master_seed, round_number)


def derive_stream_seed(round_seed: int, lane: str) -> int:
    """Derive a lane-specific seed from the round seed"""
    return hash_two(round_seed, string_hash(lane))


# ==================== Generator ====================

class SeededRng:
    """Mulberry32 pseudo-random generator"""

    def __init__(self, seed: int):
        self.state = to_int32(seed)

    def next(self) -> float:
        """Float in [0, 1)"""
        self.state = to_int32(self.state + 0x6D2B79F5)
        s = self.state
        t = imul(s ^ _ushr(s, 15), 1 | s)
        t = to_int32(t + imul(t ^ _ushr(t, 7), 61 | t)) ^ t
        return ((t ^ _ushr(t, 14)) & MASK32) / 4294967296

    def next_int(self, low: int, high: int) -> int:
        """Integer in [low, high], inclusive"""
        return int(self.next() * (high - low + 1)) + low

    def next_in_range(self, bounds: Tuple[float, float]) -> float:
        low, high = bounds
        return low + self.next() * (high - low)

    def pick(self, items: Sequence[T]) -> Optional[T]:
        if not items:
            return None
        return items[int(self.next() * len(items))]

    def shuffle(self, items: List[T]) -> List[T]:
        """Fisher-Yates shuffle in place; returns the same list"""
        for i in range(len(items) - 1, 0, -1):
            j = int(self.next() * (i + 1))
            items[i], items[j] = items[j], items[i]
        return items

    def fork(self, key: Union[str, int]) -> 'SeededRng':
        """Independent sub-stream keyed by a label, e.g. 'business_0'.

        The parent is not advanced, so forking is free of side effects.
        """
        key_seed = to_int32(key) if isinstance(key, int) else string_hash(key)
        return SeededRng(hash_two(self.state, key_seed))


# ==================== Round streams ====================

@dataclass
class RngStreams:
    """The five lanes for one (seed, round) pair"""
    seed: int
    round: int
    deals: SeededRng
    events: SeededRng
    simulation: SeededRng
    market: SeededRng
    cosmetic: SeededRng

    def lane(self, name: str) -> SeededRng:
        if name not in LANES:
            raise ValueError(f"Unknown RNG lane: {name}")
        return getattr(self, name)


def create_rng_streams(master_seed: int, round_number: int) -> RngStreams:
    """Create all lanes for a master seed and round"""
    round_seed = derive_round_seed(master_seed, round_number)
    lanes = {lane: SeededRng(derive_stream_seed(round_seed, lane)) for lane in LANES}
    return RngStreams(seed=master_seed, round=round_number, **lanes)


# ==================== Pre-rolled action outcomes ====================

@dataclass
class ActionRolls:
    """Rolls drawn up front for player actions whose order is not fixed.

    Each kind is consumed front to back; once a list runs dry further rolls
    come from an overflow generator forked off the market lane.
    """
    rolls: Dict[str, List[float]]
    overflow: SeededRng
    cursor: Dict[str, int] = field(default_factory=dict)

    def take(self, kind: str) -> float:
        if kind not in self.rolls:
            raise ValueError(f"Unknown roll kind: {kind}")
        i = self.cursor.get(kind, 0)
        self.cursor[kind] = i + 1
        values = self.rolls[kind]
        if i < len(values):
            return values[i]
        return self.overflow.next()

    def override(self, kind: str, values: Sequence[float]) -> None:
        """Replace the queued rolls for one kind (replays feed recorded rolls here)"""
        if kind not in self.rolls:
            raise ValueError(f"Unknown roll kind: {kind}")
        self.rolls[kind] = list(values)
        self.cursor[kind] = 0


def pre_roll_action_outcomes(market_rng: SeededRng, slots: int = PRE_ROLL_SLOTS) -> ActionRolls:
    """Pre-roll all action outcomes for a round from the market lane"""
    rolls: Dict[str, List[float]] = {kind: [] for kind in ROLL_KINDS}
    for _ in range(slots):
        for kind in ROLL_KINDS:
            rolls[kind].append(market_rng.next())
    return ActionRolls(rolls=rolls, overflow=market_rng.fork('overflow'))


def generate_random_seed() -> int:
    """Fresh seed for non-challenge games"""
    return random.randint(0, 0x7FFFFFFE)
