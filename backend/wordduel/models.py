from wordduel import db
from wordduel.protocol import PLAYER_TIME_FIELDS
from datetime import datetime
import json

SESSION_ACTIVE = 'active'
SESSION_PAUSED = 'paused'
SESSION_FINISHED = 'finished'


class Player(db.Model):
    __tablename__ = 'player'
    id = db.Column(db.Integer, primary_key=True)
    display_name = db.Column(db.String(64), nullable=False)
    elo_rating = db.Column(db.Integer, nullable=False, default=1200)
    games_played = db.Column(db.Integer, nullable=False, default=0)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)

    def to_dict(self):
        return {
            'id': self.id,
            'display_name': self.display_name,
            'elo_rating': self.elo_rating,
            'games_played': self.games_played,
        }


class LobbyMember(db.Model):
    """A seat in a lobby. Seat order is join order (lowest id first)."""
    __tablename__ = 'lobby_member'
    __table_args__ = (db.UniqueConstraint('lobby_id', 'player_id', name='uq_lobby_member'),)
    id = db.Column(db.Integer, primary_key=True)
    lobby_id = db.Column(db.String(64), nullable=False, index=True)
    player_id = db.Column(db.Integer, db.ForeignKey('player.id'), nullable=False)
    joined_at = db.Column(db.DateTime, default=datetime.utcnow)
    player = db.relationship('Player')


class GameSession(db.Model):
    __tablename__ = 'game_session'
    id = db.Column(db.Integer, primary_key=True)
    lobby_id = db.Column(db.String(64), unique=True, nullable=False, index=True)
    status = db.Column(db.String(16), nullable=False, default=SESSION_ACTIVE)  # active, paused, finished
    current_turn = db.Column(db.Integer, nullable=False, default=0)
    player1_time = db.Column(db.BigInteger, nullable=False)
    player2_time = db.Column(db.BigInteger, nullable=False)
    # All timestamps are epoch milliseconds
    game_started_at = db.Column(db.BigInteger, nullable=False)
    last_move_at = db.Column(db.BigInteger, nullable=True)
    last_tick_at = db.Column(db.BigInteger, nullable=True)  # null until both seats are filled
    updated_at = db.Column(db.BigInteger, nullable=False)
    winner_index = db.Column(db.Integer, nullable=True)
    finish_reason = db.Column(db.String(16), nullable=True)  # time, forfeit
    elo_updated = db.Column(db.Boolean, nullable=False, default=False)
    elo_delta = db.Column(db.Integer, nullable=True)
    archived_at = db.Column(db.BigInteger, nullable=True)
    banned_letters = db.Column(db.Text, nullable=True)  # JSON list of uppercase letters
    word_rules = db.Column(db.Text, nullable=True)  # JSON list of {kind, value}
    version = db.Column(db.Integer, nullable=False)
    moves = db.relationship('Move', back_populates='session', order_by='Move.seq', lazy='dynamic')

    __mapper_args__ = {'version_id_col': version}

    @property
    def seats(self):
        members = (
            LobbyMember.query.filter_by(lobby_id=self.lobby_id)
            .order_by(LobbyMember.id)
            .limit(2)
            .all()
        )
        return [m.player for m in members]

    def clock_of(self, seat: int) -> int:
        return getattr(self, PLAYER_TIME_FIELDS[seat])

    def set_clock(self, seat: int, value: int) -> None:
        setattr(self, PLAYER_TIME_FIELDS[seat], max(0, int(value)))

    def session_scores(self, seats=None):
        seats = seats if seats is not None else self.seats
        scores = []
        for player in seats:
            total = (
                db.session.query(db.func.coalesce(db.func.sum(Move.score), 0))
                .filter(Move.session_id == self.id, Move.player_id == player.id, Move.is_valid.is_(True))
                .scalar()
            )
            scores.append(int(total or 0))
        return scores

    def to_dict(self):
        seats = self.seats
        scores = self.session_scores(seats)
        players_serialized = []
        for idx, p in enumerate(seats):
            pd = p.to_dict()
            pd['seat'] = idx
            pd['session_score'] = scores[idx]
            players_serialized.append(pd)
        winner_id = None
        if self.winner_index is not None and self.winner_index < len(seats):
            winner_id = seats[self.winner_index].id
        return {
            'lobby_id': self.lobby_id,
            'status': self.status,
            'current_turn': self.current_turn,
            'player1_time': self.player1_time,
            'player2_time': self.player2_time,
            'game_started_at': self.game_started_at,
            'last_move_at': self.last_move_at,
            'last_tick_at': self.last_tick_at,
            'winner_index': self.winner_index,
            'winner_id': winner_id,
            'finish_reason': self.finish_reason,
            'elo_updated': self.elo_updated,
            'elo_delta': self.elo_delta,
            'banned_letters': json.loads(self.banned_letters) if self.banned_letters else [],
            'word_rules': json.loads(self.word_rules) if self.word_rules else [],
            'version': self.version,
            'players': players_serialized,
            'move_count': self.moves.count(),
        }


class Move(db.Model):
    """A word submission. Append-only: rows are never updated after insert."""
    __tablename__ = 'move'
    __table_args__ = (
        db.UniqueConstraint('session_id', 'word', name='uq_move_session_word'),
        db.UniqueConstraint('session_id', 'seq', name='uq_move_session_seq'),
    )
    id = db.Column(db.Integer, primary_key=True)
    session_id = db.Column(db.Integer, db.ForeignKey('game_session.id'), nullable=False, index=True)
    seq = db.Column(db.Integer, nullable=False)
    word = db.Column(db.String(64), nullable=False)  # stored lowercase
    player_id = db.Column(db.Integer, db.ForeignKey('player.id'), nullable=False)
    created_at = db.Column(db.BigInteger, nullable=False)
    is_valid = db.Column(db.Boolean, nullable=False)
    rejection_reason = db.Column(db.String(128), nullable=True)
    score = db.Column(db.Integer, nullable=True)
    length_score = db.Column(db.Integer, nullable=True)
    leven_bonus = db.Column(db.Integer, nullable=True)
    rarity_bonus = db.Column(db.Integer, nullable=True)
    part_of_speech = db.Column(db.String(32), nullable=True)
    definition = db.Column(db.Text, nullable=True)
    phonetics = db.Column(db.String(128), nullable=True)
    session = db.relationship('GameSession', back_populates='moves')

    def to_dict(self):
        breakdown = None
        if self.is_valid and self.score is not None:
            breakdown = {
                'length_score': self.length_score,
                'leven_bonus': self.leven_bonus,
                'rarity_bonus': self.rarity_bonus,
            }
        metadata = None
        if self.part_of_speech or self.definition or self.phonetics:
            metadata = {
                'part_of_speech': self.part_of_speech,
                'definition': self.definition,
                'phonetics': self.phonetics,
            }
        return {
            'id': self.id,
            'seq': self.seq,
            'word': self.word,
            'player_id': self.player_id,
            'created_at': self.created_at,
            'is_valid': self.is_valid,
            'rejection_reason': self.rejection_reason,
            'score': self.score,
            'score_breakdown': breakdown,
            'lexical_metadata': metadata,
        }


class Word(db.Model):
    """Lexicon corpus and lookup cache. One row per (word, part of speech)."""
    __tablename__ = 'word'
    __table_args__ = (db.UniqueConstraint('word', 'part_of_speech', name='uq_word_pos'),)
    id = db.Column(db.Integer, primary_key=True)
    word = db.Column(db.String(64), nullable=False, index=True)
    part_of_speech = db.Column(db.String(32), nullable=False)
    definitions = db.Column(db.Text, nullable=False, default='[]')  # JSON list of strings
    phonetics = db.Column(db.String(128), nullable=True)


REPORT_REASONS = (
    'Violates requirement',
    'Not English',
    'Inappropriate content',
    'Other',
)


class WordReport(db.Model):
    __tablename__ = 'word_report'
    id = db.Column(db.Integer, primary_key=True)
    move_id = db.Column(db.Integer, db.ForeignKey('move.id'), nullable=False, index=True)
    reporter_id = db.Column(db.Integer, db.ForeignKey('player.id'), nullable=False)
    reason = db.Column(db.String(64), nullable=False)
    details = db.Column(db.Text, nullable=True)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)

    def to_dict(self):
        return {
            'id': self.id,
            'move_id': self.move_id,
            'reporter_id': self.reporter_id,
            'reason': self.reason,
            'details': self.details,
        }
