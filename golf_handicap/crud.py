import logging
from dataclasses import dataclass

from sqlalchemy.orm import Session

from . import models, schemas
from .errors import ConfigurationError, NotFoundError
from .golf_calc import (
    HoleResult,
    TeeRating,
    adjusted_gross_score,
    course_handicap,
    resolve_tee,
    score_differential,
)
from .handicap import PlayerHandicapState, RoundResult

logger = logging.getLogger(__name__)


#---------------------------------------------------------------------------------
# ---------------------------------- Players -------------------------------------
# --------------------------------------------------------------------------------

def get_players(db: Session):
    return db.query(models.Player).order_by(models.Player.name).all()

def get_player(db: Session, player_id: int):
    return db.query(models.Player).filter(models.Player.id == player_id).first()

def require_player(db: Session, player_id: int):
    p = get_player(db, player_id)
    if not p:
        raise NotFoundError("player", player_id)
    return p

def create_player(db: Session, data: schemas.PlayerCreate):
    p = models.Player(**data.model_dump())
    db.add(p)
    db.commit()
    db.refresh(p)
    return p

def player_state(player: models.Player) -> PlayerHandicapState:
    return PlayerHandicapState(
        current_index=player.index or 0.0,
        low_handicap_index=player.low_handicap_index,
        version=player.handicap_version or 0,
    )

def write_player_state(db: Session, player: models.Player, state: PlayerHandicapState):
    player.index = state.current_index
    player.low_handicap_index = state.low_handicap_index
    player.handicap_version = state.version
    db.flush()


#---------------------------------------------------------------------------------
# ------------------------------------ Course ------------------------------------
# --------------------------------------------------------------------------------

def get_course(db: Session, course_id: int):
    return db.query(models.Course).filter(models.Course.id == course_id).first()

def require_course(db: Session, course_id: int):
    c = get_course(db, course_id)
    if not c:
        raise NotFoundError("course", course_id)
    return c

def create_course(db: Session, data: schemas.CourseCreate):
    c = models.Course(name=data.name, par_total=data.par_total)
    for t in data.tee_boxes:
        c.tee_boxes.append(models.TeeBox(**t.model_dump()))
    for h in data.holes:
        c.holes.append(models.Hole(**h.model_dump()))
    db.add(c)
    db.commit()
    db.refresh(c)
    return c

def get_tee_box(db: Session, course_id: int, name: str):
    return (
        db.query(models.TeeBox)
        .filter(models.TeeBox.course_id == course_id)
        .filter(models.TeeBox.name.ilike(name))
        .first()
    )

def get_holes_for_course(db: Session, course_id: int):
    return (
        db.query(models.Hole)
        .filter(models.Hole.course_id == course_id)
        .order_by(models.Hole.number)
        .all()
    )


#---------------------------------------------------------------------------------
# ------------------------------------- Rounds ------------------------------------
# --------------------------------------------------------------------------------

def create_round(db, round_date, course_id, player_ids, tee_box_id=None, completed=True, is_live=False):
    require_course(db, course_id)
    r = models.Round(
        date=round_date,
        course_id=course_id,
        completed=completed,
        is_live=is_live,
    )
    db.add(r)
    db.commit()
    db.refresh(r)

    for pid in player_ids:
        require_player(db, pid)
        rp = models.RoundPlayer(
            round_id=r.id,
            player_id=pid,
            tee_box_id=tee_box_id,
        )
        db.add(rp)

    db.commit()
    return r

def add_manual_round(db, player_id, date_played, differential):
    require_player(db, player_id)
    m = models.ManualRound(
        player_id=player_id,
        date_played=date_played,
        score_differential=differential,
    )
    db.add(m)
    db.commit()
    db.refresh(m)
    return m

def get_round_player(db, rp_id: int):
    return db.query(models.RoundPlayer).filter(models.RoundPlayer.id == rp_id).first()

def require_round_player(db, rp_id: int):
    rp = get_round_player(db, rp_id)
    if not rp:
        raise NotFoundError("round player", rp_id)
    return rp


def tee_for_round(player: models.Player, rp: models.RoundPlayer) -> TeeRating:
    course = rp.round.course
    try:
        return resolve_tee(player.preferred_tee_box, course.tee_boxes, rp.tee_box, course.par)
    except ConfigurationError as e:
        raise ConfigurationError(str(e), player=player.name, round_date=rp.round.date) from e


def save_card(db, rp: models.RoundPlayer, strokes_by_hole: dict[int, int]):
    """
    Store a hole-by-hole card and recompute the totals that feed the index:
    gross, adjusted gross (par + 2 cap), differential and course handicap.
    Only flushes: the caller commits once the index recompute has gone through.
    """
    player = rp.player
    course = rp.round.course
    holes = get_holes_for_course(db, course.id)

    # borrar tarjeta previa
    db.query(models.HoleScore).filter(models.HoleScore.round_player_id == rp.id).delete()

    card = []
    for h in holes:
        if h.number not in strokes_by_hole:
            continue
        strokes = int(strokes_by_hole[h.number])
        card.append(HoleResult(h.number, h.par, strokes))
        db.add(models.HoleScore(round_player_id=rp.id, hole_number=h.number, strokes=strokes))

    try:
        adjusted = adjusted_gross_score(card)
    except ConfigurationError as e:
        raise ConfigurationError(str(e), player=player.name, round_date=rp.round.date) from e

    tee = tee_for_round(player, rp)
    rp.gross_score = adjusted.gross_score
    rp.adjusted_gross_score = adjusted.adjusted_gross_score
    rp.score_differential = score_differential(adjusted.adjusted_gross_score, tee.rating, tee.slope)
    rp.course_handicap = course_handicap(player.index or 0.0, tee.slope, tee.rating, course.par or tee.rating)

    db.flush()
    db.refresh(rp)

    return {
        "gross_score": rp.gross_score,
        "adjusted_gross_score": rp.adjusted_gross_score,
        "score_differential": rp.score_differential,
        "course_handicap": rp.course_handicap,
        "adjusted_holes": adjusted.adjusted_holes,
    }


def recalculate_adjusted_scores(db):
    """Re-derive every stored adjusted gross score from its hole scores."""
    report = []
    rps = (
        db.query(models.RoundPlayer)
        .filter(models.RoundPlayer.gross_score >= 1)
        .order_by(models.RoundPlayer.id)
        .all()
    )

    for rp in rps:
        if not rp.hole_scores:
            continue

        par_map = {h.number: h.par for h in rp.round.course.holes}
        card = [HoleResult(s.hole_number, par_map.get(s.hole_number), s.strokes) for s in rp.hole_scores]
        adjusted = adjusted_gross_score(card)

        # nunca por encima del bruto guardado
        new = min(adjusted.adjusted_gross_score, rp.gross_score)
        old = rp.adjusted_gross_score
        rp.adjusted_gross_score = new

        report.append({
            "round_player_id": rp.id,
            "player": rp.player.name,
            "date": rp.round.date,
            "gross": rp.gross_score,
            "old": old,
            "new": new,
            "holes_adjusted": len(adjusted.adjusted_holes),
        })

    db.commit()
    logger.info("Adjusted scores recalculated for %d rounds", len(report))
    return report


#---------------------------------------------------------------------------------
# --------------------------------- Round history --------------------------------
# --------------------------------------------------------------------------------

@dataclass
class HistoryItem:
    result: RoundResult
    round_player: models.RoundPlayer | None = None
    manual: models.ManualRound | None = None
    tee: TeeRating | None = None


def get_round_history(db, player: models.Player, before=None) -> list[HistoryItem]:
    """
    Every round that counts for the player's index, oldest first.
    Card rounds first, then manual rounds; same-date ties keep that order.
    before: only rounds strictly earlier than this date.
    """
    q = (
        db.query(models.RoundPlayer)
        .join(models.Round)
        .filter(models.RoundPlayer.player_id == player.id)
        .filter(models.RoundPlayer.gross_score >= 1)
        .filter(models.Round.completed.is_(True))
        .filter(models.Round.is_live.is_(False))
    )
    mq = db.query(models.ManualRound).filter(models.ManualRound.player_id == player.id)
    if before is not None:
        q = q.filter(models.Round.date < before)
        mq = mq.filter(models.ManualRound.date_played < before)

    items = []
    for rp in q.order_by(models.Round.date, models.RoundPlayer.id).all():
        tee = tee_for_round(player, rp)
        score = rp.gross_score
        if rp.adjusted_gross_score:
            score = min(rp.adjusted_gross_score, rp.gross_score)
        try:
            diff = score_differential(score, tee.rating, tee.slope)
        except ConfigurationError as e:
            raise ConfigurationError(str(e), player=player.name, round_date=rp.round.date) from e

        items.append(HistoryItem(
            result=RoundResult(
                id=f"rp:{rp.id}",
                date=rp.round.date,
                score=score,
                rating=tee.rating,
                slope=tee.slope,
                differential=diff,
            ),
            round_player=rp,
            tee=tee,
        ))

    for m in mq.order_by(models.ManualRound.date_played, models.ManualRound.id).all():
        items.append(HistoryItem(
            result=RoundResult(id=f"manual:{m.id}", date=m.date_played, differential=m.score_differential),
            manual=m,
        ))

    items.sort(key=lambda i: i.result.date)
    return items


def write_round_snapshot(db, rp: models.RoundPlayer, index_at_time, index_after=None, differential=None):
    rp.index_at_time = index_at_time
    if index_after is not None:
        rp.index_after = index_after
    if differential is not None:
        rp.score_differential = differential
    db.flush()
