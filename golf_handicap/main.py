import logging
import os
import sys
from dataclasses import asdict

from fastapi import FastAPI, Request, Depends, HTTPException
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session

from . import crud, schemas
from .db import get_db, init_db
from .errors import ConfigurationError, NotFoundError
from .golf_calc import HoleResult, adjusted_gross_score, score_differential
from .handicap import Differential, compute_handicap_index
from .recompute import (
    handicap_history,
    player_lock,
    recompute_all_players,
    recompute_player_history,
)


def setup_logging(debug: bool = False) -> None:
    level = logging.DEBUG if debug else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        handlers=[logging.StreamHandler(sys.stdout)],
    )


setup_logging(os.getenv("DEBUG", "").lower() in ("1", "true", "yes"))
logger = logging.getLogger(__name__)

init_db()

app = FastAPI(title="Golf Handicap")

ADMIN_KEY = os.getenv("ADMIN_KEY", "")  # vacío en local: sin protección


def require_admin(request: Request):
    # 1) Si no hay ADMIN_KEY configurada, NO protegemos (modo dev)
    if not ADMIN_KEY:
        return

    # 2) Cabecera o cookie
    key = request.headers.get("x-admin-key") or request.cookies.get("admin_key")
    if key == ADMIN_KEY:
        return

    raise HTTPException(status_code=401, detail="Admin auth required")


@app.exception_handler(NotFoundError)
async def not_found_handler(request: Request, exc: NotFoundError):
    return JSONResponse(status_code=404, content={"detail": str(exc)})


@app.exception_handler(ConfigurationError)
async def configuration_handler(request: Request, exc: ConfigurationError):
    logger.warning("Configuration error on %s: %s", request.url.path, exc)
    return JSONResponse(status_code=422, content={"detail": str(exc)})


# ================================================================================
# ============================ HANDICAP: PURE CALCS ==============================
# ================================================================================

@app.post("/handicap/compute", response_model=schemas.ComputeResponse)
def handicap_compute(body: schemas.ComputeRequest):
    # en la misma fecha, el primero de la lista cuenta como el más reciente
    diffs = [
        Differential(id=d.id or str(i), date=d.date, value=d.value, seq=len(body.differentials) - i)
        for i, d in enumerate(body.differentials)
    ]
    result = compute_handicap_index(diffs, body.low_handicap_index)
    return schemas.ComputeResponse(
        handicap_index=result.handicap_index,
        is_soft_capped=result.is_soft_capped,
        is_hard_capped=result.is_hard_capped,
        differentials=[
            schemas.DifferentialOut(id=d.id, date=d.date, value=d.value, used=d.used)
            for d in result.differentials
        ],
        diagnostic_096=result.diagnostic_096,
    )


@app.post("/handicap/differential", response_model=schemas.DifferentialResponse)
def handicap_differential(body: schemas.DifferentialRequest):
    value = score_differential(body.score, body.rating, body.slope, body.pcc)
    return schemas.DifferentialResponse(differential=value)


@app.post("/handicap/adjusted-score", response_model=schemas.AdjustedScoreResponse)
def handicap_adjusted_score(body: schemas.AdjustedScoreRequest):
    card = [HoleResult(h.hole_number, h.par, h.strokes) for h in body.holes]
    result = adjusted_gross_score(card)
    return schemas.AdjustedScoreResponse.model_validate(asdict(result))


# ================================================================================
# ============================ HANDICAP: RECOMPUTE ===============================
# ================================================================================

@app.post(
    "/handicap/recompute-history",
    response_model=schemas.RecomputeResponse,
    dependencies=[Depends(require_admin)],
)
def handicap_recompute_history(body: schemas.RecomputeRequest, db: Session = Depends(get_db)):
    result = recompute_player_history(db, body.player_id)
    return schemas.RecomputeResponse(
        player_id=result.player_id,
        updates=[schemas.IndexUpdateOut.model_validate(asdict(u)) for u in result.updates],
        old_index=result.before.current_index,
        new_index=result.after.current_index,
        low_handicap_index=result.after.low_handicap_index,
    )


@app.post(
    "/handicap/recompute-all",
    response_model=schemas.BatchResponse,
    dependencies=[Depends(require_admin)],
)
def handicap_recompute_all(db: Session = Depends(get_db)):
    report = recompute_all_players(db)
    return schemas.BatchResponse(
        players=report.players,
        updated=report.updated,
        failures=[schemas.FailureOut(**f) for f in report.failures],
    )


@app.post("/handicap/recalculate-adjusted-scores", dependencies=[Depends(require_admin)])
def handicap_recalculate_adjusted(db: Session = Depends(get_db)):
    report = crud.recalculate_adjusted_scores(db)
    changed = [r for r in report if r["old"] != r["new"]]
    return {"processed": len(report), "changed": len(changed)}


@app.post(
    "/round-players/{rp_id}/card",
    response_model=schemas.CardResponse,
    dependencies=[Depends(require_admin)],
)
def round_player_card(rp_id: int, body: schemas.CardRequest, db: Session = Depends(get_db)):
    rp = crud.require_round_player(db, rp_id)
    with player_lock(rp.player_id):
        try:
            card = crud.save_card(db, rp, body.scores)
            # la tarjeta nueva puede mover el índice de todas las vueltas posteriores
            result = recompute_player_history(db, rp.player_id)
        except Exception:
            db.rollback()
            raise

    return schemas.CardResponse(
        gross_score=card["gross_score"],
        adjusted_gross_score=card["adjusted_gross_score"],
        score_differential=card["score_differential"],
        course_handicap=card["course_handicap"],
        adjusted_holes=[schemas.AdjustedHoleOut.model_validate(asdict(h)) for h in card["adjusted_holes"]],
        player_index=result.after.current_index,
    )


@app.get("/players/{player_id}/handicap-history", response_model=schemas.HistoryResponse)
def player_handicap_history(player_id: int, db: Session = Depends(get_db)):
    return handicap_history(db, player_id)


# ---------------------------------------------------------------------------


@app.get("/health")
def health():
    return {"status": "ok"}
