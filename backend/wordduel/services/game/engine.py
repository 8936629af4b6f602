"""Turn and clock state machine for two-player sessions.

The session row is the only shared mutable state. Every operation is a single
read-modify-write whose commit is conditional on the row version that was
read (``version_id_col`` on GameSession). A writer that lost a race gets
StaleDataError, rolls back, re-reads and tries again, so a clock tick and a
move crossing a turn boundary can never both win.

Only the clock of the seat holding the turn is ever decremented. Invalid
words are recorded but do not pass the turn.
"""

import json
import time
from dataclasses import dataclass
from typing import Callable, Optional

from flask import current_app
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm.exc import StaleDataError

from wordduel import db
from wordduel.models import (
    GameSession, LobbyMember, Move, Player, WordReport,
    PLAYER_TIME_FIELDS, REPORT_REASONS,
    SESSION_ACTIVE, SESSION_PAUSED, SESSION_FINISHED,
)
from . import sync
from .errors import (
    BannedLetters, DuplicateWord, GameError, InvalidClockUpdate, InvalidReport,
    InvalidState, InvalidWord, LexiconUnavailable, LobbyFull, MoveNotFound,
    NotInSession, NotPlayersTurn, PlayerNotFound, SessionConflict, SessionNotFound,
)
from .lexicon import LookupResult, build_lexicon
from .rating import RatingOutcome, apply_rating_update
from .rules import (
    banned_letters_in, dump_rules, first_violation, load_rules,
    parse_banned_letters, parse_rules,
)
from .scoring import ScoringWeights, score_word

MAX_WORD_LENGTH = 64
FINISH_TIME = 'time'
FINISH_FORFEIT = 'forfeit'
FINISH_REASONS = (FINISH_TIME, FINISH_FORFEIT)


def now_ms() -> int:
    return int(time.time() * 1000)


def normalize_word(word) -> str:
    text = (word or '').strip().lower()
    if not text or not text.isalpha() or len(text) > MAX_WORD_LENGTH:
        raise InvalidWord()
    return text


@dataclass
class _Change:
    move: Optional[Move] = None
    finished: bool = False
    error: Optional[GameError] = None


@dataclass
class MoveResult:
    move: Move
    session: GameSession

    def to_dict(self):
        return {'move': self.move.to_dict(), 'session': self.session.to_dict()}


class SessionEngine:
    def __init__(self, lexicon, weights: ScoringWeights, config):
        self.lexicon = lexicon
        self.weights = weights
        self.starting_clock_ms = int(config.get('STARTING_CLOCK_MS', 180000))
        self.conflict_retries = max(1, int(config.get('CONFLICT_RETRIES', 3)))
        self.lexicon_retries = max(0, int(config.get('LEXICON_RETRIES', 2)))
        self.word_rules = parse_rules(config.get('WORD_RULES', ''))
        self.banned_letters = parse_banned_letters(config.get('BANNED_LETTERS', ''))

    # ---- reads ----

    def get_session(self, lobby_id: str) -> GameSession:
        session = (
            GameSession.query.populate_existing()
            .filter_by(lobby_id=str(lobby_id))
            .first()
        )
        if session is None:
            raise SessionNotFound()
        return session

    def snapshot(self, lobby_id: str) -> dict:
        return sync.catchup_payload(self.get_session(lobby_id))

    # ---- session initialization ----

    def initialize_session(self, lobby_id: str, user_id: int, now: Optional[int] = None) -> GameSession:
        """Seat ``user_id`` in the lobby and create its session on first call.

        Idempotent: repeated calls by a seated player change nothing. Clocks
        start running once the second seat is filled.
        """
        now = now if now is not None else now_ms()
        lobby_id = str(lobby_id)
        player = db.session.get(Player, user_id)
        if player is None:
            raise PlayerNotFound()

        for attempt in range(1, self.conflict_retries + 1):
            try:
                self._seat_player(lobby_id, player, now)
                db.session.commit()
                break
            except (IntegrityError, StaleDataError):
                # Concurrent init for the same lobby; re-read and retry
                db.session.rollback()
                current_app.logger.info(f"[init-conflict] lobby={lobby_id} attempt={attempt}")
            except Exception:
                db.session.rollback()
                raise
        else:
            raise SessionConflict()

        session = self.get_session(lobby_id)
        sync.publish_state(session)
        return session

    def _seat_player(self, lobby_id: str, player: Player, now: int) -> None:
        members = LobbyMember.query.filter_by(lobby_id=lobby_id).order_by(LobbyMember.id).all()
        seated = len(members)
        if not any(m.player_id == player.id for m in members):
            if seated >= 2:
                raise LobbyFull()
            db.session.add(LobbyMember(lobby_id=lobby_id, player_id=player.id))
            seated += 1
            current_app.logger.info(f"[seat] lobby={lobby_id} player={player.id} seat={seated - 1}")

        session = GameSession.query.populate_existing().filter_by(lobby_id=lobby_id).first()
        if session is None:
            session = GameSession(
                lobby_id=lobby_id,
                status=SESSION_ACTIVE,
                current_turn=0,
                player1_time=self.starting_clock_ms,
                player2_time=self.starting_clock_ms,
                game_started_at=now,
                updated_at=now,
                elo_updated=False,
                banned_letters=json.dumps(self.banned_letters),
                word_rules=dump_rules(self.word_rules),
            )
            db.session.add(session)
            current_app.logger.info(f"[session-create] lobby={lobby_id} clock={self.starting_clock_ms}ms")

        if seated == 2 and session.last_tick_at is None and session.status == SESSION_ACTIVE:
            session.last_tick_at = now
            session.updated_at = now
            current_app.logger.info(f"[clock-start] lobby={lobby_id}")

    # ---- conditional write ----

    def _write(self, lobby_id: str, mutate: Callable[[GameSession], Optional[_Change]]):
        """Apply ``mutate`` to a fresh read of the session and commit it.

        The commit only succeeds if the session row still has the version that
        was read; otherwise the whole read-modify-write is repeated.
        """
        for attempt in range(1, self.conflict_retries + 1):
            session = self.get_session(lobby_id)
            try:
                change = mutate(session)
                db.session.commit()
                return session, change
            except (StaleDataError, IntegrityError):
                db.session.rollback()
                current_app.logger.info(f"[conflict] lobby={lobby_id} attempt={attempt}")
            except Exception:
                db.session.rollback()
                raise
        raise SessionConflict()

    def _publish(self, session: GameSession, change: Optional[_Change]) -> Optional[RatingOutcome]:
        """Broadcast a committed change; returns the rating outcome when it finished the session."""
        if change is None:
            return None
        if change.move is not None:
            sync.publish_move(session, change.move)
        sync.publish_state(session)
        if change.finished:
            return self._settle_ratings(session.lobby_id)
        return None

    def _settle_ratings(self, lobby_id: str) -> RatingOutcome:
        outcome = apply_rating_update(lobby_id)
        if outcome.applied:
            sync.publish_state(self.get_session(lobby_id))
        return outcome

    # ---- clock helpers ----

    @staticmethod
    def _clock_running(session: GameSession) -> bool:
        return session.status == SESSION_ACTIVE and session.last_tick_at is not None

    def _settle_clock(self, session: GameSession, now: int) -> bool:
        """Charge the active seat for time since the last tick. True if it ran out."""
        if not self._clock_running(session):
            return False
        elapsed = max(0, now - session.last_tick_at)
        seat = session.current_turn
        session.set_clock(seat, session.clock_of(seat) - elapsed)
        session.last_tick_at = max(session.last_tick_at, now)
        session.updated_at = max(session.updated_at or 0, now)
        return session.clock_of(seat) <= 0

    def _finish(self, session: GameSession, winner_index: int, reason: str, now: int) -> None:
        session.status = SESSION_FINISHED
        session.winner_index = winner_index
        session.finish_reason = reason
        session.updated_at = max(session.updated_at or 0, now)
        current_app.logger.info(
            f"[finish] lobby={session.lobby_id} winner_seat={winner_index} reason={reason} "
            f"p1={session.player1_time} p2={session.player2_time}"
        )

    def _expire(self, session: GameSession, now: int) -> _Change:
        # The seat holding the turn when time ran out loses
        self._finish(session, 1 - session.current_turn, FINISH_TIME, now)
        return _Change(finished=True)

    # ---- moves ----

    def submit_move(self, lobby_id: str, player_id: int, word: str, now: Optional[int] = None) -> MoveResult:
        text = normalize_word(word)

        # Reject what we can before spending a dictionary lookup
        self._validate_submission(self.get_session(lobby_id), player_id, text)
        lookup = self._lookup(text)

        def mutate(session):
            seats = self._validate_submission(session, player_id, text)
            at = now if now is not None else now_ms()
            if self._settle_clock(session, at):
                change = self._expire(session, at)
                change.error = InvalidState('Time ran out')
                return change
            return _Change(move=self._record_move(session, seats, player_id, text, lookup, at))

        session, change = self._write(lobby_id, mutate)
        self._publish(session, change)
        if change.error is not None:
            raise change.error
        move = change.move
        current_app.logger.info(
            f"[move] lobby={lobby_id} player={player_id} seq={move.seq} word={move.word} "
            f"valid={move.is_valid} score={move.score} turn={session.current_turn}"
        )
        return MoveResult(move, session)

    def _validate_submission(self, session: GameSession, player_id: int, text: str):
        if session.status != SESSION_ACTIVE:
            raise InvalidState(f'Session is {session.status}')
        seats = session.seats
        if len(seats) < 2:
            raise InvalidState('Waiting for an opponent to join')
        if seats[session.current_turn].id != player_id:
            if player_id not in {p.id for p in seats}:
                raise NotInSession()
            raise NotPlayersTurn()
        if Move.query.filter_by(session_id=session.id, word=text).first() is not None:
            raise DuplicateWord(word=text)
        banned = banned_letters_in(text, json.loads(session.banned_letters or '[]'))
        if banned:
            raise BannedLetters(letters=banned)
        return seats

    def _lookup(self, text: str) -> LookupResult:
        attempts = self.lexicon_retries + 1
        for attempt in range(1, attempts + 1):
            try:
                return self.lexicon.lookup(text)
            except LexiconUnavailable as exc:
                current_app.logger.warning(f"[lexicon-retry] word={text} attempt={attempt}/{attempts} error={exc.message}")
                if attempt == attempts:
                    raise

    def _record_move(self, session, seats, player_id, text, lookup: LookupResult, now: int) -> Move:
        reason = 'not found in dictionary'
        if lookup.found:
            reason = first_violation(load_rules(session.word_rules), text, lookup)
        move = Move(
            session_id=session.id,
            seq=session.moves.count() + 1,
            word=text,
            player_id=player_id,
            created_at=now,
            is_valid=reason is None,
            rejection_reason=reason,
        )
        if lookup.found:
            move.part_of_speech = lookup.part_of_speech
            move.definition = lookup.definition
            move.phonetics = lookup.phonetics
        if move.is_valid:
            previous = (
                Move.query.filter_by(session_id=session.id, is_valid=True)
                .order_by(Move.seq.desc())
                .first()
            )
            breakdown = score_word(text, previous.word if previous else None, self.weights)
            move.score = breakdown.total
            move.length_score = breakdown.length_score
            move.leven_bonus = breakdown.leven_bonus
            move.rarity_bonus = breakdown.rarity_bonus
            session.current_turn = 1 - session.current_turn
            session.last_move_at = max(session.last_move_at or 0, now)
        session.updated_at = max(session.updated_at or 0, now)
        db.session.add(move)
        return move

    # ---- clock operations ----

    def tick(self, lobby_id: str, now: Optional[int] = None) -> GameSession:
        session, _ = self._tick(lobby_id, now)
        return session

    def _tick(self, lobby_id: str, now: Optional[int] = None):
        def mutate(session):
            if not self._clock_running(session):
                return None
            at = now if now is not None else now_ms()
            if self._settle_clock(session, at):
                return self._expire(session, at)
            return _Change()

        session, change = self._write(lobby_id, mutate)
        return session, self._publish(session, change)

    def update_clock(self, lobby_id: str, player_time_field: str, new_value: int,
                     now: Optional[int] = None) -> GameSession:
        """Authoritative clock write from the client holding the turn.

        Clocks never run backwards: the stored value only moves down.
        """
        if player_time_field not in PLAYER_TIME_FIELDS:
            raise InvalidClockUpdate(f'Unknown clock field {player_time_field!r}')
        seat = PLAYER_TIME_FIELDS.index(player_time_field)

        def mutate(session):
            if session.status != SESSION_ACTIVE:
                raise InvalidState(f'Session is {session.status}')
            if session.last_tick_at is None:
                raise InvalidState('Clocks have not started')
            if seat != session.current_turn:
                raise InvalidClockUpdate()
            at = now if now is not None else now_ms()
            if self._settle_clock(session, at):
                return self._expire(session, at)
            session.set_clock(seat, min(int(new_value), session.clock_of(seat)))
            if session.clock_of(seat) <= 0:
                return self._expire(session, at)
            return _Change()

        session, change = self._write(lobby_id, mutate)
        self._publish(session, change)
        return session

    def pause(self, lobby_id: str, now: Optional[int] = None) -> GameSession:
        def mutate(session):
            if session.status != SESSION_ACTIVE:
                raise InvalidState(f'Session is {session.status}')
            at = now if now is not None else now_ms()
            if self._settle_clock(session, at):
                return self._expire(session, at)
            session.status = SESSION_PAUSED
            session.updated_at = max(session.updated_at or 0, at)
            return _Change()

        session, change = self._write(lobby_id, mutate)
        self._publish(session, change)
        current_app.logger.info(f"[pause] lobby={lobby_id} status={session.status}")
        return session

    def resume(self, lobby_id: str, now: Optional[int] = None) -> GameSession:
        def mutate(session):
            if session.status != SESSION_PAUSED:
                raise InvalidState(f'Session is {session.status}')
            at = now if now is not None else now_ms()
            session.status = SESSION_ACTIVE
            if session.last_tick_at is not None:
                # Paused time is never charged
                session.last_tick_at = max(session.last_tick_at, at)
            session.updated_at = max(session.updated_at or 0, at)
            return _Change()

        session, change = self._write(lobby_id, mutate)
        self._publish(session, change)
        current_app.logger.info(f"[resume] lobby={lobby_id}")
        return session

    def forfeit(self, lobby_id: str, player_id: int, now: Optional[int] = None) -> GameSession:
        def mutate(session):
            if session.status == SESSION_FINISHED:
                raise InvalidState('Session is finished')
            seat_ids = [p.id for p in session.seats]
            if player_id not in seat_ids:
                raise NotInSession()
            if len(seat_ids) < 2:
                raise InvalidState('Waiting for an opponent to join')
            at = now if now is not None else now_ms()
            self._settle_clock(session, at)
            self._finish(session, 1 - seat_ids.index(player_id), FINISH_FORFEIT, at)
            return _Change(finished=True)

        session, change = self._write(lobby_id, mutate)
        self._publish(session, change)
        return session

    # ---- session end ----

    def end_session(self, lobby_id: str, final_status: str, reason: str,
                    now: Optional[int] = None) -> RatingOutcome:
        """Session-end notification. Runs the rating update at most once."""
        if final_status != SESSION_FINISHED:
            raise InvalidState(f'Cannot end a session as {final_status!r}')
        session = self.get_session(lobby_id)
        outcome = None
        if session.status != SESSION_FINISHED:
            # Settling an expired clock here also applies the ratings
            session, outcome = self._tick(lobby_id, now)
        if session.status != SESSION_FINISHED:
            raise InvalidState('Session has not finished')
        if reason != session.finish_reason:
            current_app.logger.info(
                f"[end] lobby={lobby_id} reported reason={reason} recorded reason={session.finish_reason}"
            )
        if outcome is not None:
            return outcome
        return self._settle_ratings(lobby_id)

    # ---- reports ----

    def report_word(self, lobby_id: str, move_id: int, player_id: int, reason: str,
                    details: Optional[str] = None) -> WordReport:
        session = self.get_session(lobby_id)
        move = Move.query.filter_by(id=move_id, session_id=session.id).first()
        if move is None:
            raise MoveNotFound()
        if player_id not in {p.id for p in session.seats}:
            raise NotInSession()
        if reason not in REPORT_REASONS:
            raise InvalidReport(reasons=list(REPORT_REASONS))
        report = WordReport(move_id=move.id, reporter_id=player_id, reason=reason, details=details)
        db.session.add(report)
        db.session.commit()
        current_app.logger.info(f"[report] lobby={lobby_id} move={move.id} word={move.word} reason={reason}")
        return report


def get_engine(app=None) -> SessionEngine:
    app = app or current_app._get_current_object()
    engine = app.extensions.get('wordduel_engine')
    if engine is None:
        engine = SessionEngine(
            lexicon=build_lexicon(app.config),
            weights=ScoringWeights.from_config(app.config),
            config=app.config,
        )
        app.extensions['wordduel_engine'] = engine
    return engine
