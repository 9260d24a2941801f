import datetime as dt
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class ApiModel(BaseModel):
    # camelCase en el JSON, snake_case en Python
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, from_attributes=True)


#---------------------------------------------------------------------------------
# ------------------------------- Store inputs -----------------------------------
# --------------------------------------------------------------------------------

class PlayerCreate(BaseModel):
    name: str
    preferred_tee_box: Optional[str] = None
    index: float = 0.0


class TeeBoxCreate(BaseModel):
    name: str
    rating: float
    slope: int


class HoleCreate(BaseModel):
    number: int
    par: Optional[int] = None
    stroke_index: Optional[int] = None


class CourseCreate(BaseModel):
    name: str
    par_total: Optional[int] = None
    tee_boxes: list[TeeBoxCreate] = []
    holes: list[HoleCreate] = []


#---------------------------------------------------------------------------------
# ---------------------------------- Handicap ------------------------------------
# --------------------------------------------------------------------------------

class DifferentialIn(ApiModel):
    id: Optional[str] = None
    date: dt.date
    value: float


class DifferentialOut(ApiModel):
    id: str
    date: dt.date
    value: float
    used: bool


class ComputeRequest(ApiModel):
    differentials: list[DifferentialIn]
    low_handicap_index: Optional[float] = None


class ComputeResponse(ApiModel):
    handicap_index: float
    is_soft_capped: bool
    is_hard_capped: bool
    differentials: list[DifferentialOut]
    diagnostic_096: Optional[float] = None


class DifferentialRequest(ApiModel):
    score: float
    rating: float
    slope: float
    pcc: float = 0.0


class DifferentialResponse(ApiModel):
    differential: float


class HoleIn(ApiModel):
    hole_number: int
    par: Optional[int] = None
    strokes: int = Field(ge=0)


class AdjustedHoleOut(ApiModel):
    hole_number: int
    original: int
    adjusted: int


class AdjustedScoreRequest(ApiModel):
    holes: list[HoleIn]


class AdjustedScoreResponse(ApiModel):
    adjusted_gross_score: int
    gross_score: int
    adjusted_holes: list[AdjustedHoleOut]


#---------------------------------------------------------------------------------
# ---------------------------------- Recompute -----------------------------------
# --------------------------------------------------------------------------------

class RecomputeRequest(ApiModel):
    player_id: int


class IndexUpdateOut(ApiModel):
    round_id: int
    date: dt.date
    old_index: Optional[float] = None
    new_index: float


class RecomputeResponse(ApiModel):
    player_id: int
    updates: list[IndexUpdateOut]
    old_index: float
    new_index: float
    low_handicap_index: Optional[float] = None


class FailureOut(ApiModel):
    player_id: int
    error: str


class BatchResponse(ApiModel):
    players: int
    updated: int
    failures: list[FailureOut]


class CardRequest(ApiModel):
    scores: dict[int, int]


class CardResponse(ApiModel):
    gross_score: int
    adjusted_gross_score: int
    score_differential: float
    course_handicap: int
    adjusted_holes: list[AdjustedHoleOut]
    player_index: float


class HistoryItemOut(ApiModel):
    id: str
    date: dt.date
    type: str
    tee: Optional[str] = None
    tee_source: Optional[str] = None
    gross: Optional[int] = None
    adjusted: Optional[int] = None
    rating: Optional[float] = None
    slope: Optional[float] = None
    differential: float
    index_before: float
    index_after: float
    used: bool
    is_low_hi: bool


class HistoryResponse(ApiModel):
    player_id: int
    name: str
    current_index: float
    low_index: Optional[float] = None
    history: list[HistoryItemOut]
