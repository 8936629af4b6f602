"""ELO rating update, applied once per finished session."""

import time
from dataclasses import dataclass, asdict
from typing import Optional

from flask import current_app
from sqlalchemy import update

from wordduel import db
from wordduel.models import GameSession, Player, SESSION_FINISHED
from .errors import InvalidState, RatingUpdateConflict, SessionNotFound
from .scoring import round_half_up


def k_factor(games_played: int) -> int:
    if games_played < 10:
        return 64
    if games_played < 25:
        return 32
    if games_played < 100:
        return 24
    return 16


def expected_score(rating: float, opponent_rating: float) -> float:
    return 1.0 / (1.0 + 10 ** ((opponent_rating - rating) / 400.0))


def elo_delta(winner_elo: int, winner_games: int, loser_elo: int, loser_games: int) -> int:
    """Points moved from loser to winner."""
    average_k = (k_factor(winner_games) + k_factor(loser_games)) / 2
    return round_half_up(average_k * (1 - expected_score(winner_elo, loser_elo)))


@dataclass
class RatingOutcome:
    lobby_id: str
    winner_id: Optional[int]
    loser_id: Optional[int]
    delta: Optional[int]
    applied: bool

    def to_dict(self) -> dict:
        return asdict(self)


def _claim(session_id: int, delta: int, now: int) -> None:
    """Flip elo_updated false -> true. Raises if another writer got there first."""
    result = db.session.execute(
        update(GameSession)
        .where(
            GameSession.id == session_id,
            GameSession.status == SESSION_FINISHED,
            GameSession.elo_updated.is_(False),
        )
        .values(
            elo_updated=True,
            elo_delta=delta,
            archived_at=now,
            updated_at=now,
            version=GameSession.version + 1,
        )
        .execution_options(synchronize_session=False)
    )
    if result.rowcount != 1:
        raise RatingUpdateConflict()


def apply_rating_update(lobby_id: str, now_ms: Optional[int] = None) -> RatingOutcome:
    """Move rating points from loser to winner.

    Safe to call any number of times: only the first call on a finished
    session changes ratings, later calls return the recorded outcome with
    ``applied=False``.
    """
    now = now_ms if now_ms is not None else int(time.time() * 1000)
    session = GameSession.query.filter_by(lobby_id=lobby_id).first()
    if not session:
        raise SessionNotFound()
    if session.status != SESSION_FINISHED or session.winner_index is None:
        raise InvalidState('Ratings are only updated for finished sessions')

    seats = session.seats
    if len(seats) != 2:
        raise InvalidState('Session does not have two players')
    winner = seats[session.winner_index]
    loser = seats[1 - session.winner_index]

    if session.elo_updated:
        return RatingOutcome(lobby_id, winner.id, loser.id, session.elo_delta, applied=False)

    delta = elo_delta(winner.elo_rating, winner.games_played, loser.elo_rating, loser.games_played)
    current_app.logger.info(
        f"[elo] lobby={lobby_id} winner={winner.id}({winner.elo_rating}, k={k_factor(winner.games_played)}) "
        f"loser={loser.id}({loser.elo_rating}, k={k_factor(loser.games_played)}) delta={delta}"
    )
    try:
        _claim(session.id, delta, now)
    except RatingUpdateConflict:
        db.session.rollback()
        current_app.logger.info(f"[elo-skip] lobby={lobby_id} already updated")
        refreshed = GameSession.query.filter_by(lobby_id=lobby_id).first()
        return RatingOutcome(lobby_id, winner.id, loser.id, refreshed.elo_delta, applied=False)

    # Increment in SQL so a player finishing two sessions at once keeps both updates
    db.session.execute(
        update(Player)
        .where(Player.id == winner.id)
        .values(elo_rating=Player.elo_rating + delta, games_played=Player.games_played + 1)
        .execution_options(synchronize_session=False)
    )
    db.session.execute(
        update(Player)
        .where(Player.id == loser.id)
        .values(elo_rating=Player.elo_rating - delta, games_played=Player.games_played + 1)
        .execution_options(synchronize_session=False)
    )
    db.session.commit()
    current_app.logger.info(f"[elo] lobby={lobby_id} applied delta={delta}")
    return RatingOutcome(lobby_id, winner.id, loser.id, delta, applied=True)
