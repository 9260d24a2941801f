"""Historical recompute: re-derive every stored "index at time of round".

Recomputes for one player are serialized by a per-player lock; the walk
inside a player is strictly date ordered. A batch over all players runs one
player at a time and collects failures instead of stopping.
"""

import logging
import threading
from collections import defaultdict
from contextlib import contextmanager
from dataclasses import dataclass, field, replace
from datetime import date

from sqlalchemy.orm import Session

from . import crud, models
from .handicap import PlayerHandicapState, replay_history

logger = logging.getLogger(__name__)

_registry_lock = threading.Lock()
_player_locks: dict = defaultdict(threading.RLock)


@contextmanager
def player_lock(player_id: int):
    with _registry_lock:
        lock = _player_locks[player_id]
    with lock:
        yield


@dataclass
class IndexUpdate:
    round_id: int
    date: date
    old_index: float | None
    new_index: float


@dataclass
class PlayerRecompute:
    player_id: int
    before: PlayerHandicapState
    after: PlayerHandicapState
    updates: list[IndexUpdate] = field(default_factory=list)


@dataclass
class BatchReport:
    players: int = 0
    updated: int = 0
    results: list[PlayerRecompute] = field(default_factory=list)
    failures: list[dict] = field(default_factory=list)


def _recompute(db: Session, player: models.Player) -> PlayerRecompute:
    before = crud.player_state(player)
    items = crud.get_round_history(db, player)
    replay = replay_history([i.result for i in items])
    snapshots = {s.round_id: s for s in replay.snapshots}

    updates = []
    for item in items:
        rp = item.round_player
        if rp is None:
            continue
        snap = snapshots[item.result.id]
        old = rp.index_at_time
        crud.write_round_snapshot(db, rp, snap.index_at_time, snap.index_after, snap.differential)
        updates.append(IndexUpdate(rp.id, snap.date, old, snap.index_at_time))

    after = PlayerHandicapState(
        current_index=replay.state.current_index,
        low_handicap_index=replay.state.low_handicap_index,
        version=before.version,
    )
    # misma entrada, mismo estado: la versión solo avanza si algo cambia
    if (after.current_index, after.low_handicap_index) != (before.current_index, before.low_handicap_index):
        after = replace(after, version=before.version + 1)
    crud.write_player_state(db, player, after)
    return PlayerRecompute(player.id, before, after, updates)


def recompute_player_history(db: Session, player_id: int) -> PlayerRecompute:
    """Rebuild every round snapshot of one player plus the player's published state."""
    with player_lock(player_id):
        player = crud.require_player(db, player_id)
        try:
            result = _recompute(db, player)
        except Exception:
            db.rollback()
            raise
        db.commit()

    changed = sum(1 for u in result.updates if u.old_index != u.new_index)
    logger.info(
        "Recalculated player %s: %.1f -> %.1f (%d rounds, %d changed)",
        player.name, result.before.current_index, result.after.current_index,
        len(result.updates), changed,
    )
    return result


def recompute_round_index(db: Session, round_player_id: int) -> IndexUpdate:
    """Index a player carried into one round, from strictly earlier rounds only."""
    rp = crud.require_round_player(db, round_player_id)
    with player_lock(rp.player_id):
        # releer bajo el lock: otra escritura pudo cambiar la vuelta
        db.expire_all()
        player = rp.player
        round_date = rp.round.date
        old = rp.index_at_time
        try:
            items = crud.get_round_history(db, player, before=round_date)
            replay = replay_history([i.result for i in items])
            crud.write_round_snapshot(db, rp, replay.result.handicap_index)
        except Exception:
            db.rollback()
            raise
        db.commit()

    return IndexUpdate(rp.id, round_date, old, replay.result.handicap_index)


def recompute_all_players(db: Session) -> BatchReport:
    report = BatchReport()
    player_ids = [p.id for p in crud.get_players(db)]

    # de uno en uno: el suelo del low index depende del orden dentro de cada jugador
    for pid in player_ids:
        report.players += 1
        try:
            result = recompute_player_history(db, pid)
        except Exception as e:
            logger.exception("Skipping player %s", pid)
            report.failures.append({"player_id": pid, "error": str(e)})
            continue
        report.results.append(result)
        report.updated += len(result.updates)

    logger.info(
        "Batch recompute done: %d players, %d rounds, %d failures",
        report.players, report.updated, len(report.failures),
    )
    return report


def handicap_history(db: Session, player_id: int) -> dict:
    """Newest-first audit view: index before/after each round and whether it counted."""
    player = crud.require_player(db, player_id)
    items = crud.get_round_history(db, player)
    replay = replay_history([i.result for i in items])
    snapshots = {s.round_id: s for s in replay.snapshots}

    history = []
    for item in items:
        snap = snapshots[item.result.id]
        rp = item.round_player
        history.append({
            "id": item.result.id,
            "date": snap.date,
            "type": "card" if rp is not None else "manual",
            "tee": item.tee.name if item.tee else None,
            "tee_source": item.tee.source if item.tee else None,
            "gross": rp.gross_score if rp is not None else None,
            "adjusted": rp.adjusted_gross_score if rp is not None else None,
            "rating": item.result.rating,
            "slope": item.result.slope,
            "differential": snap.differential,
            "index_before": snap.index_at_time,
            "index_after": snap.index_after,
            "used": snap.used,
            "is_low_hi": (
                replay.state.low_handicap_index is not None
                and snap.index_after == replay.state.low_handicap_index
            ),
        })

    history.reverse()
    return {
        "player_id": player.id,
        "name": player.name,
        "current_index": player.index,
        "low_index": player.low_handicap_index,
        "history": history,
    }
