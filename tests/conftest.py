"""Shared fixtures: an in-memory SQLite store seeded with one course."""

import os

os.environ.setdefault("DATABASE_URL", "sqlite://")

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from golf_handicap import crud, models, schemas
from golf_handicap.db import Base, init_db

PARS = [4, 4, 3, 5, 4, 4, 3, 4, 5] * 2  # par 72


@pytest.fixture
def db():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    init_db(engine)
    session = sessionmaker(autocommit=False, autoflush=False, bind=engine)()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture
def course(db) -> models.Course:
    return crud.create_course(db, schemas.CourseCreate(
        name="City Park North",
        tee_boxes=[
            schemas.TeeBoxCreate(name="White", rating=70.0, slope=120),
            schemas.TeeBoxCreate(name="Gold", rating=68.0, slope=113),
        ],
        holes=[schemas.HoleCreate(number=i + 1, par=p, stroke_index=i + 1) for i, p in enumerate(PARS)],
    ))


@pytest.fixture
def player(db) -> models.Player:
    return crud.create_player(db, schemas.PlayerCreate(name="Wayne"))


@pytest.fixture
def make_round(db, course):
    """Create a completed card round for a player: make_round(player, day, gross, tee="White")."""

    def _make(player, day, gross, tee="White", adjusted=None, completed=True, is_live=False, on_course=None):
        c = on_course or course
        tee_box = crud.get_tee_box(db, c.id, tee) if tee else None
        r = crud.create_round(
            db,
            day,
            c.id,
            [player.id],
            tee_box_id=tee_box.id if tee_box else None,
            completed=completed,
            is_live=is_live,
        )
        rp = r.round_players[0]
        rp.gross_score = gross
        rp.adjusted_gross_score = adjusted
        db.commit()
        return rp

    return _make

