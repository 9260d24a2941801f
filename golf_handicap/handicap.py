"""Handicap Index engine.

Turns a player's score differentials into a published Handicap Index
(selection table, flat low-count adjustment, soft / hard cap against the
player's low index) and replays a whole history in date order so every round
gets the index the player carried *into* it.

Everything here is pure: no session, no I/O. The persistence side lives in
``crud`` and ``recompute``.
"""

from dataclasses import dataclass, field, replace
from datetime import date as date_type
from decimal import Decimal
from itertools import groupby

from .golf_calc import round_half_up, score_differential

WINDOW = 20
MIN_ROUNDS = 3
SOFT_CAP = Decimal("3.0")
HARD_CAP = Decimal("5.0")
# reporting-only multiplier seen in old diagnostics, never applied to the index
DIAGNOSTIC_MULTIPLIER = Decimal("0.96")

# (max count, differentials used, flat adjustment); 20+ -> best 8, no adjustment
SELECTION_TABLE = (
    (3, 1, Decimal("-2.0")),
    (4, 1, Decimal("-1.0")),
    (5, 1, Decimal("0")),
    (6, 2, Decimal("-1.0")),
    (8, 2, Decimal("0")),
    (11, 3, Decimal("0")),
    (14, 4, Decimal("0")),
    (16, 5, Decimal("0")),
    (18, 6, Decimal("0")),
    (19, 7, Decimal("0")),
)


def as_date(value) -> date_type:
    if isinstance(value, date_type):
        return value
    # acepta "YYYY-MM-DD" y también ISO con hora
    return date_type.fromisoformat(str(value)[:10])


@dataclass
class RoundResult:
    """One completed round. Either score/rating/slope or a precomputed differential."""

    id: str
    date: date_type
    score: float | None = None
    rating: float | None = None
    slope: float | None = None
    differential: float | None = None
    pcc: float = 0.0

    def __post_init__(self):
        self.date = as_date(self.date)

    def differential_value(self) -> float:
        if self.differential is not None:
            return self.differential
        return score_differential(self.score, self.rating, self.slope, self.pcc)


@dataclass
class Differential:
    id: str
    date: date_type
    value: float
    used: bool = False
    seq: int = 0  # arrival order, breaks same-date ties


@dataclass
class HandicapResult:
    handicap_index: float
    differentials: list[Differential]
    is_soft_capped: bool = False
    is_hard_capped: bool = False
    low_handicap_index: float | None = None
    used_count: int = 0
    diagnostic_096: float | None = None

    @property
    def is_computable(self) -> bool:
        return self.used_count > 0


@dataclass(frozen=True)
class PlayerHandicapState:
    current_index: float = 0.0
    low_handicap_index: float | None = None
    version: int = 0


def selection_for(count: int):
    """Number of lowest differentials averaged and the flat adjustment for ``count``."""
    if count < MIN_ROUNDS:
        return 0, Decimal("0")
    for max_count, used, adjustment in SELECTION_TABLE:
        if count <= max_count:
            return used, adjustment
    return 8, Decimal("0")


def differentials_from_rounds(rounds) -> list[Differential]:
    return [
        Differential(id=r.id, date=r.date, value=r.differential_value(), seq=i)
        for i, r in enumerate(rounds)
    ]


def compute_handicap_index(differentials, low_handicap_index=None) -> HandicapResult:
    # newest first; reverse sort keeps the given order for equal (date, seq)
    ordered = sorted(
        (replace(d, used=False) for d in differentials),
        key=lambda d: (as_date(d.date), d.seq),
        reverse=True,
    )
    recent = ordered[:WINDOW]
    n_used, adjustment = selection_for(len(recent))

    if n_used == 0:
        return HandicapResult(
            handicap_index=0.0,
            differentials=ordered,
            low_handicap_index=low_handicap_index,
        )

    # lowest values win; stable sort keeps the more recent one on equal values
    chosen = sorted(range(len(recent)), key=lambda i: recent[i].value)[:n_used]
    for i in chosen:
        recent[i].used = True

    total = sum(Decimal(str(recent[i].value)) for i in chosen)
    candidate = total / n_used + adjustment
    uncapped = candidate

    soft = hard = False
    if low_handicap_index is not None:
        low = Decimal(str(low_handicap_index))
        if candidate > low + SOFT_CAP:
            soft = True
            candidate = low + SOFT_CAP + (candidate - (low + SOFT_CAP)) / 2
        if candidate > low + HARD_CAP:
            hard = True
            candidate = low + HARD_CAP

    return HandicapResult(
        handicap_index=round_half_up(candidate),
        differentials=ordered,
        is_soft_capped=soft,
        is_hard_capped=hard,
        low_handicap_index=low_handicap_index,
        used_count=n_used,
        diagnostic_096=round_half_up(uncapped * DIAGNOSTIC_MULTIPLIER),
    )


def advance_state(state: PlayerHandicapState, result: HandicapResult) -> PlayerHandicapState:
    """Publish ``result`` on top of ``state``. The low index only ever moves down."""
    low = state.low_handicap_index
    if result.is_computable and (low is None or result.handicap_index < low):
        low = result.handicap_index
    return PlayerHandicapState(
        current_index=result.handicap_index,
        low_handicap_index=low,
        version=state.version + 1,
    )


#---------------------------------------------------------------------------------
# -------------------------------- History replay --------------------------------
# --------------------------------------------------------------------------------

@dataclass
class RoundSnapshot:
    round_id: str
    date: date_type
    differential: float
    index_at_time: float
    index_after: float
    used: bool
    low_handicap_index: float | None


@dataclass
class Replay:
    snapshots: list[RoundSnapshot] = field(default_factory=list)
    result: HandicapResult | None = None
    state: PlayerHandicapState = field(default_factory=PlayerHandicapState)


def replay_history(rounds) -> Replay:
    """
    Walk a player's rounds oldest first. A round's index_at_time only sees
    rounds on strictly earlier dates and the low floor those rounds produced;
    index_after adds the same-day rounds up to and including itself, capped
    against the floor as it stands after the rounds before it.
    """
    diffs = differentials_from_rounds(rounds)
    diffs.sort(key=lambda d: (d.date, d.seq))

    state = PlayerHandicapState()
    history: list[Differential] = []
    snapshots = []

    for day, group in groupby(diffs, key=lambda d: d.date):
        before = compute_handicap_index(history, state.low_handicap_index)

        for d in group:
            # a new low earlier the same day already binds the rounds after it
            floor = state.low_handicap_index
            history.append(d)
            after = compute_handicap_index(history, floor)
            used = any(x.id == d.id and x.used for x in after.differentials)
            snapshots.append(RoundSnapshot(
                round_id=d.id,
                date=day,
                differential=d.value,
                index_at_time=before.handicap_index,
                index_after=after.handicap_index,
                used=used,
                low_handicap_index=floor,
            ))
            state = advance_state(state, after)

    final = compute_handicap_index(history, state.low_handicap_index)
    state = advance_state(state, final)
    return Replay(snapshots=snapshots, result=final, state=state)


def index_as_of(rounds, target_date) -> HandicapResult:
    """Index a player carried into a round played on ``target_date``."""
    target = as_date(target_date)
    earlier = [r for r in rounds if r.date < target]
    return replay_history(earlier).result
