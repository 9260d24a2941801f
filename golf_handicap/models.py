from sqlalchemy import Column, Integer, String, Float, Date, ForeignKey, Boolean
from sqlalchemy.orm import relationship
from .db import Base


class Player(Base):
    __tablename__ = "players"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String, nullable=False, index=True)

    # estado publicado: solo lo escribe el recálculo
    index = Column(Float, nullable=False, default=0.0)
    low_handicap_index = Column(Float, nullable=True)
    handicap_version = Column(Integer, nullable=False, default=0)

    # nombre de la tee preferida ("White", "Gold"...), manda sobre la tee de la vuelta
    preferred_tee_box = Column(String, nullable=True)

    rounds = relationship("RoundPlayer", back_populates="player")
    manual_rounds = relationship(
        "ManualRound",
        back_populates="player",
        cascade="all, delete-orphan"
    )


class Course(Base):
    __tablename__ = "courses"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String, nullable=False, index=True)
    par_total = Column(Integer, nullable=True)

    holes = relationship(
        "Hole",
        back_populates="course",
        cascade="all, delete-orphan"
    )
    tee_boxes = relationship(
        "TeeBox",
        back_populates="course",
        cascade="all, delete-orphan"
    )

    rounds = relationship("Round", back_populates="course")

    @property
    def par(self):
        # par de los hoyos si están cargados, si no el par_total guardado
        if self.holes and all(h.par is not None for h in self.holes):
            return sum(h.par for h in self.holes)
        return self.par_total


class TeeBox(Base):
    __tablename__ = "tee_boxes"

    id = Column(Integer, primary_key=True, index=True)
    course_id = Column(Integer, ForeignKey("courses.id"), nullable=False)
    name = Column(String, nullable=False)
    rating = Column(Float, nullable=False)
    slope = Column(Integer, nullable=False)

    course = relationship("Course", back_populates="tee_boxes")


class Hole(Base):
    __tablename__ = "holes"

    id = Column(Integer, primary_key=True, index=True)
    course_id = Column(Integer, ForeignKey("courses.id"), nullable=False)

    number = Column(Integer, nullable=False)          # 1..18
    par = Column(Integer, nullable=True)              # 3/4/5
    stroke_index = Column(Integer, nullable=True)     # HCP hoyo 1..18

    course = relationship("Course", back_populates="holes")


class Round(Base):
    __tablename__ = "rounds"

    id = Column(Integer, primary_key=True, index=True)
    date = Column(Date, nullable=False)
    course_id = Column(Integer, ForeignKey("courses.id"), nullable=False)

    completed = Column(Boolean, nullable=False, default=True)
    is_live = Column(Boolean, nullable=False, default=False)

    course = relationship("Course", back_populates="rounds")
    round_players = relationship("RoundPlayer", back_populates="round")


class RoundPlayer(Base):
    __tablename__ = "round_players"

    id = Column(Integer, primary_key=True, index=True)
    round_id = Column(Integer, ForeignKey("rounds.id"), nullable=False)
    player_id = Column(Integer, ForeignKey("players.id"), nullable=False)
    tee_box_id = Column(Integer, ForeignKey("tee_boxes.id"), nullable=True)

    gross_score = Column(Integer, nullable=True)
    adjusted_gross_score = Column(Integer, nullable=True)
    score_differential = Column(Float, nullable=True)
    course_handicap = Column(Integer, nullable=True)

    # snapshots: índice al empezar la vuelta y después de ella
    index_at_time = Column(Float, nullable=True)
    index_after = Column(Float, nullable=True)

    round = relationship("Round", back_populates="round_players")
    player = relationship("Player", back_populates="rounds")
    tee_box = relationship("TeeBox")

    hole_scores = relationship(
        "HoleScore",
        back_populates="round_player",
        cascade="all, delete-orphan"
    )


class HoleScore(Base):
    __tablename__ = "hole_scores"

    id = Column(Integer, primary_key=True, index=True)

    round_player_id = Column(Integer, ForeignKey("round_players.id"), nullable=False)
    hole_number = Column(Integer, nullable=False)  # 1..18
    strokes = Column(Integer, nullable=False)       # golpes brutos

    round_player = relationship("RoundPlayer", back_populates="hole_scores")


class ManualRound(Base):
    """Legacy round entered as a bare differential (no card, no tee)."""

    __tablename__ = "manual_rounds"

    id = Column(Integer, primary_key=True, index=True)
    player_id = Column(Integer, ForeignKey("players.id"), nullable=False)
    date_played = Column(Date, nullable=False)
    score_differential = Column(Float, nullable=False)

    player = relationship("Player", back_populates="manual_rounds")
