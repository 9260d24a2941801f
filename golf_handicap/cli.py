"""Batch entry point for the handicap repair jobs.

    golf-handicap recompute              # every player, one at a time
    golf-handicap recompute --player 7   # a single player
    golf-handicap adjust-scores          # re-derive adjusted gross scores first
"""

import argparse
import logging
import sys

from .errors import HandicapError

logger = logging.getLogger(__name__)


def parse_args(argv=None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="golf-handicap",
        description="Recompute stored handicap indexes",
    )
    parser.add_argument("--debug", action="store_true", help="debug logging")

    sub = parser.add_subparsers(dest="command", required=True)

    recompute = sub.add_parser("recompute", help="replay round history and rewrite index snapshots")
    recompute.add_argument("--player", type=int, default=None, help="only this player id")

    sub.add_parser("adjust-scores", help="recalculate adjusted gross scores from hole scores")

    return parser.parse_args(argv)


def main(argv=None) -> int:
    args = parse_args(argv)

    # importar aquí: db.py exige DATABASE_URL
    from .main import setup_logging
    from .db import SessionLocal
    from . import crud
    from .recompute import recompute_all_players, recompute_player_history

    setup_logging(args.debug)

    db = SessionLocal()
    try:
        if args.command == "adjust-scores":
            report = crud.recalculate_adjusted_scores(db)
            for r in report:
                if r["old"] != r["new"]:
                    logger.info("%s %s: %s -> %s", r["player"], r["date"], r["old"], r["new"])
            return 0

        if args.player is not None:
            try:
                result = recompute_player_history(db, args.player)
            except HandicapError as e:
                logger.error("%s", e)
                return 1
            for u in result.updates:
                if u.old_index != u.new_index:
                    logger.info("round %s (%s): %s -> %s", u.round_id, u.date, u.old_index, u.new_index)
            return 0

        report = recompute_all_players(db)
        for f in report.failures:
            logger.error("player %s failed: %s", f["player_id"], f["error"])
        return 1 if report.failures else 0
    finally:
        db.close()


if __name__ == "__main__":
    sys.exit(main())
