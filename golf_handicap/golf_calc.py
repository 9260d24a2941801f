from dataclasses import dataclass, field
from decimal import Decimal, ROUND_HALF_UP

from .errors import ConfigurationError

NEUTRAL_SLOPE = 113
MAX_OVER_PAR = 2


def round_half_up(value: float, places: int = 1) -> float:
    # str() first so 0.15 is treated as written and not as 0.1499999...
    exp = Decimal(1).scaleb(-places)
    return float(Decimal(str(value)).quantize(exp, rounding=ROUND_HALF_UP))


#---------------------------------------------------------------------------------
# --------------------------- Adjusted Gross Score -------------------------------
# --------------------------------------------------------------------------------

@dataclass
class HoleResult:
    hole_number: int
    par: int | None
    strokes: int


@dataclass
class AdjustedHole:
    hole_number: int
    original: int
    adjusted: int


@dataclass
class AdjustedScore:
    adjusted_gross_score: int
    gross_score: int
    adjusted_holes: list[AdjustedHole] = field(default_factory=list)


def max_hole_score(par) -> int:
    # doble bogey
    if par is None:
        raise ConfigurationError("hole par is required to cap the hole score")
    return par + MAX_OVER_PAR


def adjusted_gross_score(holes) -> AdjustedScore:
    """
    holes: iterable of HoleResult (or anything with hole_number/par/strokes)
    Each hole is capped at par + 2. The total never exceeds the gross total.
    """
    gross = 0
    adjusted = 0
    adjusted_holes = []

    for h in holes:
        cap = max_hole_score(h.par)
        gross += h.strokes
        if h.strokes > cap:
            adjusted += cap
            adjusted_holes.append(AdjustedHole(h.hole_number, h.strokes, cap))
        else:
            adjusted += h.strokes

    return AdjustedScore(
        adjusted_gross_score=min(adjusted, gross),
        gross_score=gross,
        adjusted_holes=adjusted_holes,
    )


#---------------------------------------------------------------------------------
# ------------------------------ Score Differential ------------------------------
# --------------------------------------------------------------------------------

def score_differential(score: float, rating: float, slope: float, pcc: float = 0.0) -> float:
    """(score - rating - pcc) * 113 / slope, rounded half-up to one decimal."""
    if slope is None or slope <= 0:
        raise ConfigurationError(f"invalid slope {slope!r}")
    if rating is None:
        raise ConfigurationError("course rating is required")
    raw = (score - rating - pcc) * (NEUTRAL_SLOPE / slope)
    return round_half_up(raw)


def course_handicap(index: float, slope: int, rating: float, par: int) -> int:
    # WHS: index * slope/113 + (rating - par)
    if slope is None or slope <= 0:
        raise ConfigurationError(f"invalid slope {slope!r}")
    return int(round_half_up(index * (slope / NEUTRAL_SLOPE) + (rating - par), 0))


#---------------------------------------------------------------------------------
# ---------------------------------- Tee boxes -----------------------------------
# --------------------------------------------------------------------------------

@dataclass(frozen=True)
class TeeRating:
    name: str | None
    rating: float
    slope: float
    source: str  # preferred / recorded / default


def resolve_tee(preferred_name, course_tees, recorded_tee=None, par=None) -> TeeRating:
    """
    The player's preferred tee wins over the tee stored on the round; then the
    recorded tee; then neutral slope 113 with rating = par.
    course_tees / recorded_tee: objects with name, rating, slope.
    """
    if preferred_name:
        wanted = preferred_name.strip().lower()
        for t in course_tees or []:
            if t.name and t.name.strip().lower() == wanted:
                return TeeRating(t.name, t.rating, t.slope, "preferred")

    if recorded_tee is not None:
        return TeeRating(recorded_tee.name, recorded_tee.rating, recorded_tee.slope, "recorded")

    if par is None:
        raise ConfigurationError("no tee data and no course par to fall back on")
    return TeeRating(None, float(par), NEUTRAL_SLOPE, "default")
